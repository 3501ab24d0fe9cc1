#!/usr/bin/env python3
"""
NFO sidecar cache for resolved movie metadata

One Kodi-compatible .nfo file per movie directory holds the IMDb ID and the
metadata the pipeline resolved for it, so later runs skip every lookup that
costs time or quota.

Rules imposed by media-center compatibility and by the pipeline:
- Nothing is written unless the identifier is well-formed and the year (if
  any) lies in [1920, current year].
- An existing .nfo is reused in place; a new one is named after the video
  file (<video stem>.nfo), falling back to movie.nfo.
- An existing record with a DIFFERENT identifier always wins: the write is
  skipped and reported as a conflict.
- Existing records are merged into, never rewritten: only missing elements
  are inserted before </movie>, and bytes already in the file are kept as
  they are whatever their encoding. Non-XML .nfo files only get a note
  appended at the end.
- Text values are escaped for the five reserved XML characters.
- Dry-run is enforced in one place (_commit).
"""

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple
from xml.sax.saxutils import escape, quoteattr

from sublingual import __version__
from sublingual.budget import utc_now
from sublingual.constants import DEFAULT_NFO_NAME, MIN_YEAR
from sublingual.errors import CacheError
from sublingual.identifiers import find_identifier, is_valid_identifier
from sublingual.scan import find_video_file

logger = logging.getLogger(__name__)

# Record attribute → NFO element, in the order elements are written
FIELD_TAGS: List[Tuple[str, str]] = [
    ('title', 'title'),
    ('year', 'year'),
    ('premiered', 'premiered'),
    ('plot', 'plot'),
    ('director', 'director'),
    ('genre', 'genre'),
    ('runtime', 'runtime'),
    ('rating', 'mpaa'),
]

MARKER_TAG = 'sublingual'
SELF_CLOSING_ROOT = re.compile(r'<movie(\s[^>]*)?/>')
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'

_ENTITIES = {'"': '&quot;', "'": '&apos;'}


def xml_escape(value: str) -> str:
    """Escape &, <, >, " and ' for embedding in element text"""
    return escape(value, _ENTITIES)


@dataclass
class MetadataRecord:
    """Cached identity and metadata for one movie directory"""
    identifier: Optional[str] = None
    title: Optional[str] = None
    year: Optional[int] = None
    premiered: Optional[str] = None
    plot: Optional[str] = None
    director: Optional[str] = None
    genre: Optional[str] = None
    runtime: Optional[str] = None
    rating: Optional[str] = None
    provenance: Optional[str] = None
    cached_at: Optional[str] = None
    # Written by this tool (carries the <sublingual/> marker)
    pipeline_authored: bool = False
    # Parsed as a <movie> XML document (False for plain-text .nfo files)
    structured: bool = True
    # Identifier stored in a <uniqueid type="imdb"> element
    has_uniqueid: bool = False

    def field_values(self) -> Dict[str, str]:
        """Populated metadata fields as element-name → text"""
        values = {}
        for attr, tag in FIELD_TAGS:
            value = getattr(self, attr)
            if value is None or value == '':
                continue
            values[tag] = str(value)
        return values


class WriteOutcome(Enum):
    CREATED = 'created'
    UPDATED = 'updated'
    APPENDED = 'appended'
    UNCHANGED = 'unchanged'
    CONFLICT = 'conflict'
    INVALID = 'invalid'


def find_nfo(directory: Path) -> Optional[Path]:
    """First .nfo file directly inside directory"""
    try:
        candidates = sorted(p for p in directory.iterdir()
                            if p.is_file() and p.suffix.lower() == '.nfo')
    except OSError:
        return None
    return candidates[0] if candidates else None


def _text(node: Optional[ET.Element]) -> Optional[str]:
    if node is None or node.text is None:
        return None
    value = node.text.strip()
    return value or None


def _parse_year(value: Optional[str]) -> Optional[int]:
    if value and len(value) == 4 and value.isdigit():
        return int(value)
    return None


def parse_nfo_text(text: str) -> MetadataRecord:
    """Parse .nfo content (XML <movie> document or plain text)"""
    try:
        root = ET.fromstring(text)
    except ET.ParseError:
        root = None

    if root is None or root.tag != 'movie':
        return MetadataRecord(identifier=find_identifier(text), structured=False)

    identifier = None
    has_uniqueid = False
    for node in root.findall('uniqueid'):
        if (node.get('type') or '').lower() != 'imdb':
            continue
        value = _text(node)
        if is_valid_identifier(value):
            identifier = value
            has_uniqueid = True
            break
    if identifier is None:
        # Older scrapers store the ID in <id> or a URL
        identifier = find_identifier(text)

    record = MetadataRecord(identifier=identifier, structured=True, has_uniqueid=has_uniqueid)
    for attr, tag in FIELD_TAGS:
        value = _text(root.find(tag))
        if attr == 'year':
            record.year = _parse_year(value)
        else:
            setattr(record, attr, value)

    marker = root.find(MARKER_TAG)
    if marker is not None:
        record.pipeline_authored = True
        record.provenance = marker.get('source')
        record.cached_at = marker.get('cached')
    return record


def read_nfo_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise CacheError(f"Cannot read NFO {path}: {e}") from e


def read_nfo(path: Path) -> MetadataRecord:
    return parse_nfo_text(read_nfo_bytes(path).decode('utf-8-sig', errors='replace'))


class NfoCache:
    """Read and merge-write NFO sidecars"""

    def __init__(self, dry_run: bool = False,
                 clock: Callable[[], datetime] = utc_now,
                 version: str = __version__):
        self.dry_run = dry_run
        self.clock = clock
        self.version = f"v{version}"

    # ---- reading

    def read(self, directory: Path) -> Optional[MetadataRecord]:
        """Cached record for directory, or None if absent/unusable"""
        nfo_path = find_nfo(directory)
        if nfo_path is None:
            return None
        logger.debug(f"Checking .nfo file for metadata: {nfo_path.name}")
        try:
            record = read_nfo(nfo_path)
        except CacheError as e:
            logger.warning(str(e))
            return None
        if not is_valid_identifier(record.identifier):
            logger.debug(f"No IMDb ID found in NFO file {nfo_path.name}")
            return None
        return record

    def read_year(self, directory: Path) -> Optional[int]:
        """<year> of an existing .nfo, regardless of identifier"""
        nfo_path = find_nfo(directory)
        if nfo_path is None:
            return None
        try:
            return read_nfo(nfo_path).year
        except CacheError:
            return None

    # ---- writing

    def _current_year(self) -> int:
        return self.clock().astimezone(timezone.utc).year

    def _timestamp(self) -> str:
        return self.clock().astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')

    def validate(self, record: MetadataRecord) -> bool:
        if not is_valid_identifier(record.identifier):
            logger.debug(f"Invalid IMDb ID format: {record.identifier!r}")
            return False
        if record.year is not None and not (MIN_YEAR <= record.year <= self._current_year()):
            logger.debug(f"Invalid year: {record.year}")
            return False
        return True

    def _marker(self, provenance: Optional[str]) -> str:
        return (f"<{MARKER_TAG} version={quoteattr(self.version)} "
                f"source={quoteattr(provenance or 'unknown')} "
                f"cached={quoteattr(self._timestamp())}/>")

    def _new_document(self, record: MetadataRecord) -> str:
        lines = [XML_DECLARATION, '<movie>']
        for tag, value in record.field_values().items():
            lines.append(f"  <{tag}>{xml_escape(value)}</{tag}>")
        lines.append(f'  <uniqueid type="imdb">{record.identifier}</uniqueid>')
        lines.append(f"  {self._marker(record.provenance)}")
        lines.append('</movie>')
        return '\n'.join(lines) + '\n'

    def _merge_lines(self, existing: MetadataRecord, record: MetadataRecord) -> List[str]:
        """Elements missing from existing that record can supply"""
        present = existing.field_values()
        lines = [f"<{tag}>{xml_escape(value)}</{tag}>"
                 for tag, value in record.field_values().items()
                 if tag not in present]
        if not existing.has_uniqueid:
            lines.append(f'<uniqueid type="imdb">{record.identifier}</uniqueid>')
        if lines and not existing.pipeline_authored:
            lines.append(self._marker(record.provenance))
        return lines

    @staticmethod
    def _insert_before_close(text: str, lines: List[str]) -> str:
        idx = text.rfind('</movie>')
        if idx < 0:
            # <movie/> has nowhere to insert into; open it up first
            match = SELF_CLOSING_ROOT.search(text)
            if match is None:
                raise CacheError("Structured NFO has no closing </movie> tag")
            opening = match.group(0)[:-2].rstrip() + '>'
            text = text[:match.start()] + opening + '\n</movie>' + text[match.end():]
            idx = text.rfind('</movie>')
        head = text[:idx]
        # Keep the closing tag's own indentation on its line
        line_start = head.rfind('\n') + 1
        if head[line_start:].strip() == '':
            prefix, indent = head[:line_start], head[line_start:]
        else:
            prefix, indent = head + '\n', ''
        insert = ''.join(f"  {line}\n" for line in lines)
        return prefix + insert + indent + text[idx:]

    def _commit(self, path: Path, content: bytes, action: str, append: bool = False) -> None:
        """
        Single write gate: every sidecar mutation goes through here

        Whole-file writes go through a temp file and replace; appends only
        add bytes to the end so the existing content is never re-encoded.
        """
        if self.dry_run:
            logger.info(f"   Cache: DRY-RUN: Would {action} {path.name}")
            return
        try:
            if append:
                with open(path, 'ab') as f:
                    f.write(content)
            else:
                tmp = path.with_name(path.name + '.tmp')
                tmp.write_bytes(content)
                tmp.replace(path)
        except OSError as e:
            raise CacheError(f"Cannot write NFO {path}: {e}") from e

    def write(self, directory: Path, record: MetadataRecord) -> WriteOutcome:
        """
        Create or merge-update the sidecar for directory

        Returns what happened (or, in dry-run mode, what would have happened).
        Never raises for validation problems; a write error is logged and
        reported as INVALID since the cache is an optimisation only.
        """
        if not self.validate(record):
            logger.warning(f"Cache data validation failed for {directory.name}, skipping cache write")
            return WriteOutcome.INVALID

        try:
            return self._write(directory, record)
        except CacheError as e:
            logger.warning(f"Cache write failed: {e}")
            return WriteOutcome.INVALID

    def _write(self, directory: Path, record: MetadataRecord) -> WriteOutcome:
        nfo_path = find_nfo(directory)

        if nfo_path is None:
            video = find_video_file(directory)
            if video is not None:
                nfo_path = directory / f"{video.stem}.nfo"
                logger.debug(f"Creating new NFO named after video file: {nfo_path.name}")
            else:
                nfo_path = directory / DEFAULT_NFO_NAME
                logger.debug(f"Creating new NFO cache file: {DEFAULT_NFO_NAME}")
            self._commit(nfo_path, self._new_document(record).encode('utf-8'), 'create')
            logger.info(f"   Cache: Created NFO with IMDb ID {record.identifier}")
            return WriteOutcome.CREATED

        raw = read_nfo_bytes(nfo_path)
        existing = parse_nfo_text(raw.decode('utf-8-sig', errors='replace'))
        source = 'Sublingual' if existing.pipeline_authored else 'external source'
        logger.debug(f"NFO file exists ({source}), checking if update needed: {nfo_path.name}")

        if existing.identifier and existing.identifier != record.identifier:
            logger.debug(f"NFO contains different IMDb ID ({existing.identifier}), "
                         f"preserving existing to avoid conflicts")
            return WriteOutcome.CONFLICT

        if not existing.structured:
            if existing.identifier == record.identifier:
                return WriteOutcome.UNCHANGED
            note = (f"\nIMDb ID: {record.identifier}\n"
                    f"Cached: {self._timestamp()} by Sublingual {self.version} "
                    f"({record.provenance or 'unknown'})\n")
            if raw and not raw.endswith(b'\n'):
                note = '\n' + note
            self._commit(nfo_path, note.encode('utf-8'), 'append IMDb ID to', append=True)
            logger.info("   Cache: Appended IMDb ID to NFO")
            return WriteOutcome.APPENDED

        lines = self._merge_lines(existing, record)
        if not lines:
            logger.debug("NFO already contains this IMDb ID and all known fields")
            return WriteOutcome.UNCHANGED

        # Bytes that are not UTF-8 survive the round trip unchanged
        text = raw.decode('utf-8', errors='surrogateescape')
        merged = self._insert_before_close(text, lines)
        self._commit(nfo_path, merged.encode('utf-8', errors='surrogateescape'), 'update')
        logger.info(f"   Cache: Updated NFO with IMDb ID {record.identifier}")
        return WriteOutcome.UPDATED

    def merge_missing(self, directory: Path, cached: MetadataRecord,
                      **known) -> WriteOutcome:
        """Fill fields a cached record lacks from values learned this run"""
        additions = {k: v for k, v in known.items()
                     if v not in (None, '') and getattr(cached, k, None) in (None, '')}
        if not additions:
            return WriteOutcome.UNCHANGED
        return self.write(directory, replace(cached, **additions))
