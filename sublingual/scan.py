#!/usr/bin/env python3
"""
Movie directory discovery

A movie directory is any directory holding at least one video file at
depth 1. A root that itself holds video files is treated as a single movie
directory; otherwise all of its sub-directories are searched.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from sublingual.constants import VIDEO_EXTENSIONS
from sublingual.errors import ConfigError

logger = logging.getLogger(__name__)


def is_video_file(path: Path) -> bool:
    return path.is_file() and path.suffix.lower() in VIDEO_EXTENSIONS


def list_video_files(directory: Path) -> List[Path]:
    """Video files directly inside directory, sorted by name"""
    try:
        return sorted(p for p in directory.iterdir() if is_video_file(p))
    except OSError as e:
        logger.debug(f"Cannot list {directory}: {e}")
        return []


def find_video_file(directory: Path) -> Optional[Path]:
    videos = list_video_files(directory)
    return videos[0] if videos else None


def has_video_files(directory: Path) -> bool:
    return find_video_file(directory) is not None


def validate_root(root: Path) -> Path:
    """Resolve a configured root, raising ConfigError when it is not a directory"""
    resolved = root.expanduser().resolve()
    if not resolved.exists():
        raise ConfigError(f"Invalid directory (does not exist): {root}")
    if not resolved.is_dir():
        raise ConfigError(f"Invalid directory (not a directory): {root}")
    return resolved


def scan_movie_dirs(root: Path) -> List[Path]:
    """Enumerate movie directories under a single root"""
    if has_video_files(root):
        return [root]

    found = []
    candidates = sorted(p for p in root.rglob('*') if p.is_dir())
    for directory in candidates:
        if has_video_files(directory):
            found.append(directory)
            if len(found) == 1 or len(found) % 10 == 0:
                logger.debug(f"Scanning: {len(found)} folders discovered")
    return found


def scan_roots(roots: Sequence[Path]) -> List[Path]:
    """Enumerate movie directories under every root, without duplicates"""
    seen = set()
    result = []
    for root in roots:
        for directory in scan_movie_dirs(root):
            if directory not in seen:
                seen.add(directory)
                result.append(directory)
    logger.info(f"Found {len(result)} movie directories")
    return result
