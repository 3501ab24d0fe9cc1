#!/usr/bin/env python3
"""
Directory-name parser for extracting movie name, year and resolution
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sublingual.constants import MIN_YEAR, RELEASE_TAGS, RESOLUTION_BY_DIMENSION
from sublingual.nfo import NfoCache
from sublingual.scan import find_video_file


@dataclass
class MediaItem:
    """One movie directory, derived fresh on every pass (never persisted)"""
    path: Path
    name: str
    year: Optional[int] = None
    resolution: Optional[str] = None

    @property
    def dir_name(self) -> str:
        return self.path.name


class DirectoryParser:
    """Parse movie metadata from a directory name and its video files"""

    def __init__(self, nfo_cache: Optional[NfoCache] = None,
                 current_year: Optional[int] = None):
        self.nfo_cache = nfo_cache or NfoCache()
        self.current_year = current_year or datetime.now(timezone.utc).year

    def _valid_year(self, year: int) -> bool:
        return MIN_YEAR <= year <= self.current_year

    def _extract_year(self, dir_name: str, dir_path: Path) -> Optional[int]:
        """Year from (YYYY), else the last plausible 4-digit number, else the NFO"""
        # Method 1: parentheses (fast, precise)
        match = re.search(r'\((\d{4})\)', dir_name)
        if match and self._valid_year(int(match.group(1))):
            return int(match.group(1))

        # Method 2: last 4-digit number in range (skips 1080, 2160, ...)
        candidates = [int(y) for y in re.findall(r'\d{4}', dir_name)]
        valid = [y for y in candidates if self._valid_year(y)]
        if valid:
            return valid[-1]

        # Method 3: existing .nfo
        year = self.nfo_cache.read_year(dir_path)
        if year and self._valid_year(year):
            return year
        return None

    def _extract_resolution(self, dir_name: str, dir_path: Path) -> Optional[str]:
        # Priority: bracketed [1080p], then bare with spaces, then bare at start
        for pattern in (r'\[(\d+p)\]', r'\s(\d{3,4}p)\s', r'^(\d{3,4}p)\s'):
            match = re.search(pattern, dir_name)
            if match:
                return match.group(1)

        video = find_video_file(dir_path)
        if video is None:
            return None
        match = re.search(r'(\d{3,4}p)', video.name)
        if match:
            return match.group(1)
        match = re.search(r'(\d{3,4})x(\d{3,4})', video.name)
        if match:
            height = match.group(2)
            return RESOLUTION_BY_DIMENSION.get(height, f"{height}p")
        return None

    def _clean_name(self, dir_name: str, year: Optional[int]) -> str:
        """Strip tags, year, release tokens and separators from a directory name"""
        name = re.sub(r'\[[^\]]*\]', ' ', dir_name)
        name = re.sub(r'\([^)]*\)', ' ', name)

        # Remove the specific year only (not every 4-digit number)
        if year:
            name = name.replace(str(year), ' ')

        # Non-alphanumeric boundaries so short tags don't eat real words
        for tag in RELEASE_TAGS:
            pattern = r'(?<![A-Za-z0-9])' + re.escape(tag) + r'(?![A-Za-z0-9])'
            name = re.sub(pattern, ' ', name, flags=re.IGNORECASE)

        # Bare resolutions (720p, 1080p, 2160p, ...)
        name = re.sub(r'(?<![A-Za-z0-9])\d{3,4}p(?![A-Za-z0-9])', ' ', name)

        name = re.sub(r'[._-]', ' ', name)
        return ' '.join(name.split())

    def parse(self, dir_path: Path) -> MediaItem:
        dir_name = dir_path.name
        year = self._extract_year(dir_name, dir_path)
        return MediaItem(
            path=dir_path,
            name=self._clean_name(dir_name, year),
            year=year,
            resolution=self._extract_resolution(dir_name, dir_path),
        )
