#!/usr/bin/env python3
"""
Per-directory pipeline: parse → resolve identity → download subtitles

All counters live in a RunStats value owned by the caller, so one run (or
one survey cycle) can be summarised without process-wide state.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from sublingual.budget import BudgetGovernor
from sublingual.config import SublingualConfig
from sublingual.mapping import MappingStore
from sublingual.nfo import NfoCache
from sublingual.omdb import OMDbClient
from sublingual.parser import DirectoryParser, MediaItem
from sublingual.resolver import Resolution, ResolutionChain
from sublingual.subtitles import DownloadResult, SubtitleDownloader
from sublingual.websearch import WebSearch

logger = logging.getLogger(__name__)


def _rate(success: int, fail: int) -> float:
    total = success + fail
    return (success / total * 100) if total > 0 else 0.0


@dataclass
class RunStats:
    """Results accumulator for one run or one survey cycle"""
    directories: int = 0
    identifier_success: int = 0
    identifier_fail: int = 0
    identifier_sources: Counter = field(default_factory=Counter)
    subtitle_success: int = 0
    subtitle_fail: int = 0
    subtitle_sources: Counter = field(default_factory=Counter)
    cache_outcomes: Counter = field(default_factory=Counter)

    def record_resolution(self, resolution: Resolution) -> None:
        self.directories += 1
        if resolution.resolved:
            self.identifier_success += 1
            self.identifier_sources[resolution.provenance.value] += 1
        else:
            self.identifier_fail += 1
        if resolution.cache_outcome is not None:
            self.cache_outcomes[resolution.cache_outcome.value] += 1

    def record_download(self, backend: Optional[str], result: DownloadResult) -> None:
        if result.success:
            self.subtitle_success += 1
            if backend:
                self.subtitle_sources[backend] += 1
        else:
            self.subtitle_fail += 1

    def merge(self, other: 'RunStats') -> 'RunStats':
        return RunStats(
            directories=self.directories + other.directories,
            identifier_success=self.identifier_success + other.identifier_success,
            identifier_fail=self.identifier_fail + other.identifier_fail,
            identifier_sources=self.identifier_sources + other.identifier_sources,
            subtitle_success=self.subtitle_success + other.subtitle_success,
            subtitle_fail=self.subtitle_fail + other.subtitle_fail,
            subtitle_sources=self.subtitle_sources + other.subtitle_sources,
            cache_outcomes=self.cache_outcomes + other.cache_outcomes,
        )

    def log_summary(self, heading: str = "SUMMARY") -> None:
        logger.info("=" * 60)
        logger.info(heading)
        logger.info("=" * 60)
        logger.info(f"Directories processed: {self.directories}")
        logger.info(f"IMDb ID resolution: {self.identifier_success} found, "
                    f"{self.identifier_fail} not found "
                    f"({_rate(self.identifier_success, self.identifier_fail):.1f}% success)")
        for source, count in sorted(self.identifier_sources.items(), key=lambda x: -x[1]):
            logger.info(f"  {source:15s}: {count:4d}")
        logger.info(f"Subtitles: {self.subtitle_success} downloaded, "
                    f"{self.subtitle_fail} not found "
                    f"({_rate(self.subtitle_success, self.subtitle_fail):.1f}% success)")
        for source, count in sorted(self.subtitle_sources.items(), key=lambda x: -x[1]):
            logger.info(f"  {source:15s}: {count:4d}")
        if self.cache_outcomes:
            outcomes = ', '.join(f"{k}={v}" for k, v in sorted(self.cache_outcomes.items()))
            logger.info(f"NFO cache: {outcomes}")
        logger.info("=" * 60)


class MoviePipeline:
    """Wire parser, resolution chain and download stage for one configuration"""

    def __init__(self, parser: DirectoryParser, chain: ResolutionChain,
                 downloader: SubtitleDownloader, budget: BudgetGovernor,
                 web: Optional[WebSearch] = None,
                 languages: Sequence[str] = ('EN',)):
        self.parser = parser
        self.chain = chain
        self.downloader = downloader
        self.budget = budget
        self.web = web
        self.languages = tuple(languages)

    @classmethod
    def from_config(cls, config: SublingualConfig) -> 'MoviePipeline':
        budget = BudgetGovernor(config.api_state_path,
                                budget_limit=config.budget_limit,
                                api_limit=config.api_limit)
        cache = NfoCache(dry_run=config.dry_run)
        mapping = MappingStore(config.mapping_path)
        if len(mapping):
            logger.info(f"Loaded {len(mapping)} manual IMDb mappings")
        omdb = OMDbClient(config.omdb_api_key, budget)
        web = WebSearch() if config.web_search else None
        if web is not None and not web.available:
            logger.debug("ddgr not installed, web search fallback disabled")

        chain = ResolutionChain.build(cache, mapping, omdb, web=web,
                                      verify_by_id=config.verify_by_id)
        return cls(
            parser=DirectoryParser(nfo_cache=cache),
            chain=chain,
            downloader=SubtitleDownloader.default(dry_run=config.dry_run),
            budget=budget,
            web=web,
            languages=config.languages,
        )

    def _lookup_year(self, item: MediaItem) -> None:
        """Ask the web search for a year when the directory and NFO gave none"""
        if item.year is not None or not item.name or self.web is None or not self.web.available:
            return
        year = self.web.find_year(item.name, datetime.now(timezone.utc).year)
        if year:
            item.year = year

    def process_movie(self, item_dir: Path, stats: RunStats,
                      languages: Optional[Sequence[str]] = None) -> Resolution:
        """
        Resolve one directory once, then fetch subtitles for each language

        The identifier does not depend on the language, so one resolution
        serves every target; repeating it per language would only re-read
        the sidecar it just wrote.
        """
        item = self.parser.parse(item_dir)
        logger.info(f"Processing: {item.dir_name}")
        logger.debug(f"Parsed - Name: '{item.name}', Year: {item.year}, "
                     f"Resolution: {item.resolution}")

        self._lookup_year(item)
        resolution = self.chain.resolve(item)
        stats.record_resolution(resolution)

        for language in languages or self.languages:
            backend, result = self.downloader.download(item.path, language.lower(),
                                                       resolution.identifier)
            if not self.downloader.dry_run:
                stats.record_download(backend, result)
        return resolution
