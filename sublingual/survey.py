#!/usr/bin/env python3
"""
Survey scheduler: unattended, resumable passes over growing collections

    SCANNING → PRIORITIZING → PROCESSING ──────────────→ CYCLE_COOLDOWN → SCANNING
                                  │  ↑
                  budget blocked  ↓  │  UTC midnight passed
                            WAITING_FOR_API_RESET

Single-run mode goes SCANNING → PRIORITIZING → PROCESSING → DONE, keeps scan
order and never waits. Clock and sleep are injected so the machine can be
driven in tests without real time passing.
"""

import logging
import time
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from sublingual.budget import BudgetGovernor, utc_now
from sublingual.constants import (
    SURVEY_COOLDOWN_SECONDS, SURVEY_HIGH_USAGE_THRESHOLD, SURVEY_MIDNIGHT_BUFFER_SECONDS,
)
from sublingual.nfo import find_nfo
from sublingual.pipeline import MoviePipeline, RunStats
from sublingual.scan import scan_roots
from sublingual.survey_state import SurveyState

logger = logging.getLogger(__name__)

# Log a countdown line at most this often while waiting
COUNTDOWN_INTERVAL_SECONDS = 600


class SurveyPhase(Enum):
    SCANNING = 'scanning'
    PRIORITIZING = 'prioritizing'
    PROCESSING = 'processing'
    WAITING_FOR_API_RESET = 'waiting_for_api_reset'
    CYCLE_COOLDOWN = 'cycle_cooldown'
    DONE = 'done'


def format_duration(seconds: int) -> str:
    hours, rest = divmod(max(int(seconds), 0), 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours}h {minutes:02d}m {secs:02d}s"


class SurveyScheduler:
    def __init__(self, pipeline: MoviePipeline, roots: Sequence[Path],
                 budget: BudgetGovernor,
                 state: Optional[SurveyState] = None,
                 continuous: bool = True,
                 pause: int = 1,
                 clock: Callable[[], datetime] = utc_now,
                 sleep: Callable[[float], None] = time.sleep,
                 max_cycles: Optional[int] = None):
        self.pipeline = pipeline
        self.roots = list(roots)
        self.budget = budget
        self.state = state
        self.continuous = continuous
        self.pause = pause
        self.clock = clock
        self.sleep = sleep
        self.max_cycles = max_cycles

        self.phase = SurveyPhase.SCANNING
        self.cycle = 0
        self.directories: List[Path] = []
        self.queue: List[Path] = []
        self.index = 0
        self.cycle_stats = RunStats()
        self._completed = RunStats()

    @property
    def stats(self) -> RunStats:
        """Totals across finished cycles plus the one in progress"""
        return self._completed.merge(self.cycle_stats)

    def run(self) -> RunStats:
        handlers = {
            SurveyPhase.SCANNING: self._scan,
            SurveyPhase.PRIORITIZING: self._prioritize,
            SurveyPhase.PROCESSING: self._process,
            SurveyPhase.WAITING_FOR_API_RESET: self._wait_for_reset,
            SurveyPhase.CYCLE_COOLDOWN: self._cooldown,
        }
        while self.phase is not SurveyPhase.DONE:
            logger.debug(f"Survey phase: {self.phase.value}")
            self.phase = handlers[self.phase]()
        return self.stats

    # ---- phases

    def _scan(self) -> SurveyPhase:
        self.cycle += 1
        if self.continuous:
            logger.info(f"Survey cycle {self.cycle} starting at "
                        f"{self.clock().strftime('%Y-%m-%d %H:%M:%S %Z')}")
        self.directories = scan_roots(self.roots)
        return SurveyPhase.PRIORITIZING

    def _prioritize(self) -> SurveyPhase:
        """Survey order: directories without an NFO first, minus those already handled"""
        self.index = 0
        if not self.continuous:
            self.queue = list(self.directories)
            return SurveyPhase.PROCESSING

        pending = [d for d in self.directories
                   if self.state is None or not self.state.is_processed(d)]
        without_nfo, with_nfo = [], []
        for directory in pending:
            if find_nfo(directory) is None:
                without_nfo.append(directory)
            else:
                with_nfo.append(directory)
        self.queue = without_nfo + with_nfo

        skipped = len(self.directories) - len(pending)
        if skipped:
            logger.info(f"Skipping {skipped} directories already processed this cycle")
        logger.info(f"Queue: {len(without_nfo)} without NFO, {len(with_nfo)} with NFO")
        return SurveyPhase.PROCESSING

    def _process(self) -> SurveyPhase:
        total = len(self.queue)
        while self.index < total:
            if self.continuous and self.budget.is_blocked():
                return SurveyPhase.WAITING_FOR_API_RESET

            directory = self.queue[self.index]
            logger.info(f"Progress: {self.index + 1}/{total}")
            self.pipeline.process_movie(directory, self.cycle_stats)
            if self.state is not None:
                self.state.mark(directory)
            self.index += 1

            if self.index < total:
                self.sleep(self.pause)

        self.cycle_stats.log_summary(
            f"SURVEY CYCLE {self.cycle} SUMMARY" if self.continuous else "SUMMARY"
        )
        self._completed = self._completed.merge(self.cycle_stats)
        self.cycle_stats = RunStats()
        if not self.continuous:
            return SurveyPhase.DONE
        return SurveyPhase.CYCLE_COOLDOWN

    def _wait_for_reset(self) -> SurveyPhase:
        seconds = self.budget.seconds_until_reset()
        logger.warning(f"API budget exhausted ({self.budget.current_count()}/"
                       f"{self.budget.api_limit}), pausing until UTC midnight "
                       f"({format_duration(seconds)})")
        self._countdown(seconds, "API reset")
        logger.info(f"API budget reset, resuming at {self.index + 1}/{len(self.queue)}")
        return SurveyPhase.PROCESSING

    def _cooldown(self) -> SurveyPhase:
        if self.state is not None:
            self.state.clear()
        if self.max_cycles is not None and self.cycle >= self.max_cycles:
            logger.info(f"Reached {self.max_cycles} survey cycle(s), stopping")
            return SurveyPhase.DONE

        usage = self.budget.current_count()
        if usage >= SURVEY_HIGH_USAGE_THRESHOLD:
            seconds = self.budget.seconds_until_reset() + SURVEY_MIDNIGHT_BUFFER_SECONDS
            logger.info(f"High API usage today ({usage}/{self.budget.api_limit}), "
                        f"next cycle after UTC midnight")
        else:
            seconds = SURVEY_COOLDOWN_SECONDS
        next_start = self.clock() + timedelta(seconds=seconds)
        logger.info(f"Next survey cycle at {next_start.strftime('%Y-%m-%d %H:%M:%S %Z')}")
        self._countdown(seconds, "next cycle")
        return SurveyPhase.SCANNING

    def _countdown(self, seconds: int, label: str) -> None:
        remaining = seconds
        while remaining > 0:
            step = min(remaining, COUNTDOWN_INTERVAL_SECONDS)
            self.sleep(step)
            remaining -= step
            if remaining > 0:
                logger.info(f"Waiting for {label}: {format_duration(remaining)} remaining")
