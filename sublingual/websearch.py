#!/usr/bin/env python3
"""
Web search fallback through the ddgr command-line tool

ddgr is optional: when it is not installed every lookup quietly returns
None and the pipeline carries on without it.
"""

import logging
import re
import shutil
import subprocess
from typing import Callable, List, Optional

from sublingual.constants import MIN_YEAR
from sublingual.identifiers import find_title_url_identifier

logger = logging.getLogger(__name__)

DDGR_BIN = 'ddgr'
SEARCH_TIMEOUT = 30
# First page of results
RESULT_LINES = 20


class WebSearch:
    """Free-text search returning the raw first page of results"""

    def __init__(self, binary: str = DDGR_BIN,
                 which: Callable[[str], Optional[str]] = shutil.which):
        self.binary = binary
        self._path = which(binary)

    @property
    def available(self) -> bool:
        return self._path is not None

    def search(self, query: str) -> Optional[str]:
        if not self.available:
            logger.debug(f"{self.binary} not available for web search")
            return None

        logger.debug(f"{self.binary} search: {query}")
        try:
            completed = subprocess.run(
                [self._path, '--np', query],
                capture_output=True,
                text=True,
                timeout=SEARCH_TIMEOUT,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"{self.binary} search failed: {e}")
            return None

        lines: List[str] = completed.stdout.splitlines()[:RESULT_LINES]
        return '\n'.join(lines)

    def find_identifier(self, name: str, year: Optional[int] = None) -> Optional[str]:
        """IMDb ID of the first imdb.com/title/ link for "imdb <name> [year]" """
        query = f"imdb {name}"
        if year:
            query = f"{query} {year}"
        identifier = find_title_url_identifier(self.search(query))
        if identifier:
            logger.debug(f"Found IMDb ID via {self.binary}: {identifier}")
        else:
            logger.debug(f"No IMDb ID found via {self.binary}")
        return identifier

    def find_year(self, name: str, current_year: int) -> Optional[int]:
        """Release year from the top result's "(YYYY)" for "imdb <name>" """
        output = self.search(f"imdb {name}")
        if not output:
            return None
        first_line = output.splitlines()[0] if output.splitlines() else ''
        for candidate in re.findall(r'\(((?:19|20)\d{2})\)', first_line):
            year = int(candidate)
            if MIN_YEAR <= year <= current_year:
                logger.debug(f"Year from {self.binary} search: {year}")
                return year
        return None
