#!/usr/bin/env python3
"""
Manual name → IMDb ID mapping table

User-maintained file, one "name|identifier" pair per line. Blank lines and
lines starting with "#" are ignored. The table is read-only to the pipeline.

Lookup is case-insensitive and literal: an exact name match wins, otherwise
the first entry whose name contains the query as a plain substring.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from sublingual.identifiers import is_valid_identifier

logger = logging.getLogger(__name__)


def _fold(name: str) -> str:
    return ' '.join(name.split()).casefold()


class MappingStore:
    """Parse the mapping file into an ordered list of (name, identifier) pairs"""

    def __init__(self, mapping_path: Path):
        self.mapping_path = mapping_path
        self.entries: List[Tuple[str, str]] = []
        self.skipped = 0
        self._exact: Dict[str, str] = {}
        self._parse_mapping(mapping_path)

    def _parse_mapping(self, file_path: Path):
        if not file_path.exists():
            logger.debug(f"No manual mapping file at {file_path}")
            return

        try:
            content = file_path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read mapping file {file_path}: {e}")
            return

        for line in content.splitlines():
            line = line.strip()
            if not line or line.startswith('#') or '|' not in line:
                continue

            name, identifier = line.split('|', 1)
            name = name.strip()
            identifier = identifier.split('|', 1)[0].strip()

            if not name or not is_valid_identifier(identifier):
                logger.debug(f"Skipping invalid mapping line: {line}")
                self.skipped += 1
                continue

            self.entries.append((name, identifier))
            # Keep first occurrence
            self._exact.setdefault(_fold(name), identifier)

        logger.debug(f"Loaded {len(self.entries)} manual IMDb mappings from {file_path}")

    def lookup(self, name: str) -> Optional[str]:
        """Return the identifier mapped to name, or None"""
        query = _fold(name or '')
        if not query:
            return None

        identifier = self._exact.get(query)
        if identifier:
            logger.debug(f"Mapping hit (exact): '{name}' → {identifier}")
            return identifier

        for entry_name, entry_id in self.entries:
            if query in _fold(entry_name):
                logger.debug(f"Mapping hit (partial): '{name}' → '{entry_name}' {entry_id}")
                return entry_id

        logger.debug(f"Mapping miss: '{name}'")
        return None

    def __len__(self) -> int:
        return len(self.entries)
