#!/usr/bin/env python3
"""
Daily OMDb call budget with UTC calendar-day semantics

State lives in a two-line file (ISO date, call count) that is rewritten in
full on every recorded call, so it survives restarts and interrupts. The
day boundary is always UTC midnight: a count stored for any other UTC date
is stale and reads as zero.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Tuple

from sublingual.constants import (
    API_LIMIT, API_BUDGET_LIMIT, API_WARNING_THRESHOLDS, API_RESET_BUFFER_SECONDS,
)

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BudgetStatus(Enum):
    ALLOWED = 'allowed'
    BLOCKED = 'blocked'


class BudgetGovernor:
    """Persist and enforce the daily call quota against OMDb"""

    def __init__(self, state_path: Path,
                 budget_limit: int = API_BUDGET_LIMIT,
                 api_limit: int = API_LIMIT,
                 clock: Callable[[], datetime] = utc_now):
        self.state_path = state_path
        self.budget_limit = budget_limit
        self.api_limit = api_limit
        self.clock = clock

    def _today(self) -> date:
        return self.clock().astimezone(timezone.utc).date()

    def _load_state(self) -> Optional[Tuple[date, int]]:
        """Read (date, count) from disk; None when missing or unreadable"""
        try:
            lines = self.state_path.read_text(encoding='utf-8').splitlines()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Could not read API state {self.state_path}: {e}")
            return None

        if len(lines) < 2:
            logger.debug(f"API state file is truncated: {self.state_path}")
            return None
        try:
            state_date = date.fromisoformat(lines[0].strip())
            count = int(lines[1].strip())
        except ValueError:
            logger.debug(f"API state file is corrupt: {self.state_path}")
            return None
        if count < 0:
            return None
        return state_date, count

    def _save_state(self, day: date, count: int) -> None:
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.state_path.with_name(self.state_path.name + '.tmp')
        tmp.write_text(f"{day.isoformat()}\n{count}\n", encoding='utf-8')
        tmp.replace(self.state_path)
        logger.debug(f"API state saved: {count} calls on {day.isoformat()}")

    def current_count(self) -> int:
        """Calls made on the current UTC day (0 for a stale or missing state)"""
        state = self._load_state()
        if state is None:
            return 0
        state_date, count = state
        if state_date != self._today():
            return 0
        return count

    def remaining(self) -> int:
        """Calls left before the provider's hard ceiling"""
        return max(self.api_limit - self.current_count(), 0)

    def check_limit(self) -> BudgetStatus:
        if self.current_count() >= self.budget_limit:
            return BudgetStatus.BLOCKED
        return BudgetStatus.ALLOWED

    def is_blocked(self) -> bool:
        return self.check_limit() is BudgetStatus.BLOCKED

    def record_call(self) -> int:
        """Account one attempted network call; returns the new count for today"""
        new_count = self.current_count() + 1
        self._save_state(self._today(), new_count)

        logger.debug(f"API call count: {new_count}/{self.api_limit}")
        message = API_WARNING_THRESHOLDS.get(new_count)
        if message:
            pct = new_count * 100 // self.api_limit
            logger.warning(f"{message}: {new_count}/{self.api_limit} calls used ({pct}%)")
        return new_count

    def seconds_until_reset(self) -> int:
        """Seconds until the next UTC midnight, plus a small safety buffer"""
        now = self.clock().astimezone(timezone.utc)
        next_midnight = datetime.combine(now.date() + timedelta(days=1), time.min,
                                         tzinfo=timezone.utc)
        remaining = int((next_midnight - now).total_seconds())
        return remaining + API_RESET_BUFFER_SECONDS

    def log_exhausted(self) -> None:
        """Banner shown when a quota-costing call is refused"""
        count = self.current_count()
        logger.error("=" * 50)
        logger.error(f"API budget limit reached: {count}/{self.api_limit} calls used today "
                     f"({self._today().isoformat()} UTC)")
        logger.error(f"Stopping at {self.budget_limit} to preserve safety buffer.")
        logger.error("=" * 50)
        logger.error("Options:")
        logger.error("  1. Wait until the next UTC day (or use --survey to resume automatically)")
        logger.error(f"  2. Manually reset counter: rm {self.state_path}")
        logger.error("  3. Use a different API key with higher limits")
