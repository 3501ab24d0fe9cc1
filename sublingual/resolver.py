#!/usr/bin/env python3
"""
IMDb identity resolution chain

Strategies are tried strictly in this order; the first success wins:

1. dirname  - identifier embedded in the directory name (free)
2. nfo      - existing NFO sidecar (free, the reason the cache exists)
3. mapping  - manual name|identifier table (free)
4. omdb     - OMDb title search (costs budget, gated by BudgetGovernor)
5. ddgr     - web search for "imdb <name> [year]" (free, optional tool)

Each strategy answers Found, NotFound or Blocked. Blocked only comes from
the budget-gated strategy; the chain logs it and moves on to the free
strategies that remain. Any success other than the cache itself is written
through to the NFO sidecar so the next run stops at strategy 2.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from sublingual.errors import BudgetExhausted
from sublingual.identifiers import find_identifier, is_valid_identifier
from sublingual.mapping import MappingStore
from sublingual.nfo import MetadataRecord, NfoCache, WriteOutcome
from sublingual.omdb import OMDbClient
from sublingual.parser import MediaItem
from sublingual.websearch import WebSearch

logger = logging.getLogger(__name__)

# Fields carried from a strategy into the NFO record
METADATA_FIELDS = ('title', 'year', 'plot', 'director', 'genre', 'runtime', 'rating', 'premiered')


class Provenance(str, Enum):
    DIRNAME = 'dirname'
    NFO = 'nfo'
    MAPPING = 'mapping'
    OMDB = 'omdb'
    DDGR = 'ddgr'


@dataclass(frozen=True)
class Found:
    identifier: str
    provenance: Provenance
    fields: Dict[str, Any] = field(default_factory=dict)
    record: Optional[MetadataRecord] = None


@dataclass(frozen=True)
class NotFound:
    reason: str = ''


@dataclass(frozen=True)
class Blocked:
    reason: str = ''


StrategyResult = Union[Found, NotFound, Blocked]


class Strategy:
    """One way of obtaining an identifier for a MediaItem"""
    provenance: Provenance

    def attempt(self, item: MediaItem) -> StrategyResult:
        raise NotImplementedError


class DirnameStrategy(Strategy):
    provenance = Provenance.DIRNAME

    def attempt(self, item: MediaItem) -> StrategyResult:
        identifier = find_identifier(item.dir_name)
        if identifier:
            logger.debug(f"Found IMDb ID in directory name: {identifier}")
            return Found(identifier, self.provenance)
        return NotFound()


class NfoStrategy(Strategy):
    provenance = Provenance.NFO

    def __init__(self, cache: NfoCache):
        self.cache = cache

    def attempt(self, item: MediaItem) -> StrategyResult:
        record = self.cache.read(item.path)
        if record is None:
            return NotFound()
        fields = {name: getattr(record, name) for name in METADATA_FIELDS
                  if getattr(record, name) not in (None, '')}
        logger.debug(f"NFO metadata extracted - Title: {record.title}, Year: {record.year}, "
                     f"Sublingual: {record.pipeline_authored}")
        return Found(record.identifier, self.provenance, fields, record)


class MappingStrategy(Strategy):
    provenance = Provenance.MAPPING

    def __init__(self, store: MappingStore):
        self.store = store

    def attempt(self, item: MediaItem) -> StrategyResult:
        identifier = self.store.lookup(item.name)
        if identifier:
            return Found(identifier, self.provenance)
        return NotFound()


class OMDbStrategy(Strategy):
    provenance = Provenance.OMDB

    def __init__(self, client: OMDbClient):
        self.client = client
        self._banner_shown = False

    def attempt(self, item: MediaItem) -> StrategyResult:
        if not item.name:
            return NotFound('empty name')
        try:
            result = self.client.search_film(item.name, item.year)
        except BudgetExhausted as e:
            if not self._banner_shown:
                self.client.budget.log_exhausted()
                self._banner_shown = True
            return Blocked(str(e))
        if result is None:
            return NotFound()
        fields = {k: v for k, v in result.items() if k != 'identifier'}
        logger.debug(f"OMDb metadata extracted - Plot: {len(fields.get('plot', ''))} chars, "
                     f"Director: {fields.get('director')}, Genre: {fields.get('genre')}")
        return Found(result['identifier'], self.provenance, fields)


class WebSearchStrategy(Strategy):
    provenance = Provenance.DDGR

    def __init__(self, search: WebSearch):
        self.search = search

    def attempt(self, item: MediaItem) -> StrategyResult:
        if not item.name or not self.search.available:
            return NotFound()
        identifier = self.search.find_identifier(item.name, item.year)
        if identifier:
            return Found(identifier, self.provenance)
        return NotFound()


@dataclass
class Resolution:
    """Outcome of running the chain for one MediaItem"""
    item: MediaItem
    identifier: Optional[str] = None
    provenance: Optional[Provenance] = None
    fields: Dict[str, Any] = field(default_factory=dict)
    blocked: bool = False
    cache_outcome: Optional[WriteOutcome] = None

    @property
    def resolved(self) -> bool:
        return self.identifier is not None


class ResolutionChain:
    """Run strategies in priority order and write successes through to the cache"""

    def __init__(self, strategies: List[Strategy], cache: NfoCache,
                 verifier: Optional[OMDbClient] = None):
        self.strategies = strategies
        self.cache = cache
        # When set, identifiers found for free are enriched with an OMDb lookup by ID
        self.verifier = verifier

    @classmethod
    def build(cls, cache: NfoCache, mapping: MappingStore, omdb: OMDbClient,
              web: Optional[WebSearch] = None,
              verify_by_id: bool = False) -> 'ResolutionChain':
        strategies: List[Strategy] = [
            DirnameStrategy(),
            NfoStrategy(cache),
            MappingStrategy(mapping),
            OMDbStrategy(omdb),
        ]
        if web is not None:
            strategies.append(WebSearchStrategy(web))
        return cls(strategies, cache, verifier=omdb if verify_by_id else None)

    def resolve(self, item: MediaItem) -> Resolution:
        resolution = Resolution(item=item)
        found: Optional[Found] = None

        for strategy in self.strategies:
            result = strategy.attempt(item)
            if isinstance(result, Blocked):
                logger.warning(f"   Skipping {strategy.provenance.value} lookup: {result.reason}")
                resolution.blocked = True
                continue
            if not isinstance(result, Found):
                continue
            if not is_valid_identifier(result.identifier):
                logger.debug(f"Discarding malformed identifier {result.identifier!r} "
                             f"from {strategy.provenance.value}")
                continue

            found = result
            break

        if found is None:
            logger.info("   IMDb ID: not found")
            return resolution

        resolution.identifier = found.identifier
        resolution.provenance = found.provenance
        resolution.fields = dict(found.fields)

        logger.info(f"   IMDb ID: {resolution.identifier} (source: {resolution.provenance.value})")

        if resolution.provenance is Provenance.NFO:
            self._refresh_cached(resolution, found.record)
        else:
            self._verify(resolution)
            resolution.cache_outcome = self.cache.write(item.path, self._record_for(resolution))
        return resolution

    def _refresh_cached(self, resolution: Resolution, record: MetadataRecord):
        """Use NFO title/year for this run; merge in what the directory name adds"""
        item = resolution.item
        directory_year = item.year
        if record.title:
            item.name = record.title
            logger.debug(f"Using title from NFO: {item.name}")
        if record.year:
            item.year = record.year
            logger.debug(f"Using year from NFO: {item.year}")
        resolution.cache_outcome = self.cache.merge_missing(
            item.path, record, year=directory_year, provenance=Provenance.NFO.value,
        )

    def _verify(self, resolution: Resolution):
        if self.verifier is None or resolution.provenance is Provenance.OMDB:
            return
        try:
            details = self.verifier.get_by_id(resolution.identifier)
        except BudgetExhausted as e:
            logger.debug(f"Skipping verification lookup: {e}")
            resolution.blocked = True
            return
        if details:
            for key, value in details.items():
                if key != 'identifier':
                    resolution.fields.setdefault(key, value)

    @staticmethod
    def _record_for(resolution: Resolution) -> MetadataRecord:
        item = resolution.item
        fields = resolution.fields
        return MetadataRecord(
            identifier=resolution.identifier,
            title=fields.get('title') or item.name or None,
            year=item.year or fields.get('year'),
            premiered=fields.get('premiered'),
            plot=fields.get('plot'),
            director=fields.get('director'),
            genre=fields.get('genre'),
            runtime=fields.get('runtime'),
            rating=fields.get('rating'),
            provenance=resolution.provenance.value,
        )
