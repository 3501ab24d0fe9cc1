#!/usr/bin/env python3
"""
Subtitle download stage

Backends are tried in priority order and the first one that reports a
download wins:

1. subdownloader CLI   (hash-based, needs no identifier)
2. subliminal CLI      (30s timeout)
3. OpenSubtitles site  (needs the IMDb ID; zip or plain-text payload)

The command-line tools are optional; a missing tool is skipped quietly.
"""

import io
import logging
import re
import shutil
import subprocess
import time
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import requests

from sublingual.constants import OPENSUBTITLES_LANGUAGES, SUBTITLE_EXTENSIONS
from sublingual.omdb import REQUEST_TIMEOUT, build_session

logger = logging.getLogger(__name__)

SUBLIMINAL_TIMEOUT = 30
OPENSUBTITLES_BASE = "https://www.opensubtitles.org"
OPENSUBTITLES_SEARCH = OPENSUBTITLES_BASE + "/en/search/sublanguageid-{code}/imdbid-{number}"
OPENSUBTITLES_PAUSE_SECONDS = 1
DEFAULT_OPENSUBTITLES_LANGUAGE = 'eng'

DOWNLOAD_LINK_RE = re.compile(r'href="(/en/subtitleserve/sub/\d+)"')
HTML_RE = re.compile(r'<html|<!DOCTYPE|<head|<body', re.IGNORECASE)
# Cue numbers, timestamps, [section] headers or ASS dialogue lines
SUBTITLE_CONTENT_RE = re.compile(r'^(\d+|\d{2}:\d{2}:.*|\[.*\]|Dialogue:.*)$', re.MULTILINE)


@dataclass(frozen=True)
class DownloadResult:
    success: bool
    count: int = 0


NOTHING = DownloadResult(False, 0)


def sanitize_filename(name: str) -> str:
    """Keep [A-Za-z0-9._-]; never start with a dash"""
    safe = re.sub(r'[^A-Za-z0-9._-]', '_', Path(name).name)
    if safe.startswith('-'):
        safe = '_' + safe
    return safe or 'subtitle.srt'


def opensubtitles_language(language: str) -> str:
    return OPENSUBTITLES_LANGUAGES.get(language.lower(), DEFAULT_OPENSUBTITLES_LANGUAGE)


class SubtitleBackend:
    name = 'backend'

    def download(self, directory: Path, language: str,
                 identifier: Optional[str]) -> DownloadResult:
        raise NotImplementedError


class CommandBackend(SubtitleBackend):
    """Backend driven by an optional command-line tool"""
    binary = ''

    def __init__(self, which: Callable[[str], Optional[str]] = shutil.which):
        self._path = which(self.binary)

    @property
    def available(self) -> bool:
        return self._path is not None

    def _run(self, args: List[str], timeout: Optional[int] = None) -> Optional[str]:
        try:
            completed = subprocess.run(
                [self._path] + args,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            logger.debug(f"{self.binary} timed out after {timeout}s")
            return None
        except OSError as e:
            logger.debug(f"{self.binary} failed to start: {e}")
            return None
        output = (completed.stdout or '') + (completed.stderr or '')
        logger.debug(f"{self.name} output (first 500 chars): {output[:500]}")
        return output


class SubdownloaderBackend(CommandBackend):
    name = 'subdownloader'
    binary = 'subdownloader'

    def download(self, directory, language, identifier):
        if not self.available:
            logger.debug("subdownloader not installed")
            return NOTHING
        logger.info(f"  [Subdownloader] Searching for {language} subtitles...")
        output = self._run(['-c', '-V', str(directory), '-l', language])
        count = output.count('Saved subtitle') if output else 0
        if count:
            logger.info(f"  [Subdownloader] Downloaded {count} subtitle(s)")
            return DownloadResult(True, count)
        logger.info("  [Subdownloader] No subtitles found")
        return NOTHING


class SubliminalBackend(CommandBackend):
    name = 'subliminal'
    binary = 'subliminal'

    def download(self, directory, language, identifier):
        if not self.available:
            logger.debug("subliminal not installed")
            return NOTHING
        logger.info(f"  [Subliminal] Searching for {language} subtitles...")
        output = self._run(['download', '-l', language, '-f', str(directory)],
                           timeout=SUBLIMINAL_TIMEOUT)
        match = re.search(r'Downloaded (\d+)', output or '')
        count = int(match.group(1)) if match else 0
        if count:
            logger.info(f"  [Subliminal] Downloaded {count} subtitle(s)")
            return DownloadResult(True, count)
        logger.info("  [Subliminal] No subtitles found")
        return NOTHING


class OpenSubtitlesBackend(SubtitleBackend):
    name = 'opensubtitles'

    def __init__(self, session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.session = session or build_session()
        self.sleep = sleep

    def download(self, directory, language, identifier):
        if not identifier:
            logger.info("  [OpenSubtitles] Skipped (no IMDb ID)")
            return NOTHING

        logger.info(f"  [OpenSubtitles] Searching for {language} subtitles...")
        self.sleep(OPENSUBTITLES_PAUSE_SECONDS)
        url = OPENSUBTITLES_SEARCH.format(code=opensubtitles_language(language),
                                          number=identifier[2:])
        logger.debug(f"OpenSubtitles URL: {url}")

        try:
            response = self.session.get(url, timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
            match = DOWNLOAD_LINK_RE.search(response.text)
            if not match:
                logger.debug("No download link found in response")
                logger.info("  [OpenSubtitles] No subtitles found")
                return NOTHING
            logger.debug(f"Found download link: {match.group(1)}")
            payload = self.session.get(OPENSUBTITLES_BASE + match.group(1),
                                       timeout=REQUEST_TIMEOUT)
            payload.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.warning(f"OpenSubtitles request failed: {e}")
            return NOTHING

        try:
            count = self._store(payload.content, directory,
                                self._payload_name(payload, identifier, language))
        except (OSError, zipfile.BadZipFile) as e:
            logger.warning(f"Could not save OpenSubtitles payload: {e}")
            return NOTHING
        if count:
            logger.info(f"  [OpenSubtitles] Downloaded {count} subtitle(s)")
            self.sleep(OPENSUBTITLES_PAUSE_SECONDS)
            return DownloadResult(True, count)
        logger.info("  [OpenSubtitles] No subtitles found")
        return NOTHING

    @staticmethod
    def _payload_name(response: requests.Response, identifier: str, language: str) -> str:
        disposition = response.headers.get('Content-Disposition', '')
        match = re.search(r'filename="?([^";]+)"?', disposition)
        if match and not match.group(1).lower().endswith('.zip'):
            return match.group(1)
        return f"{identifier}.{language.lower()}.srt"

    def _store(self, content: bytes, directory: Path, fallback_name: str) -> int:
        """Write subtitle files from a zip archive or a single text payload"""
        if zipfile.is_zipfile(io.BytesIO(content)):
            return self._extract_zip(content, directory)

        text = content.decode('utf-8', errors='replace')
        if HTML_RE.search(text[:2048]):
            logger.debug("OpenSubtitles returned HTML error page instead of subtitle")
            return 0
        if not SUBTITLE_CONTENT_RE.search(text):
            logger.debug("File doesn't appear to contain valid subtitle content")
            return 0
        (directory / sanitize_filename(fallback_name)).write_bytes(content)
        return 1

    @staticmethod
    def _extract_zip(content: bytes, directory: Path) -> int:
        count = 0
        with zipfile.ZipFile(io.BytesIO(content)) as archive:
            for member in archive.infolist():
                if member.is_dir() or Path(member.filename).suffix.lower() not in SUBTITLE_EXTENSIONS:
                    continue
                # Flatten paths inside the archive
                target = directory / sanitize_filename(member.filename)
                target.write_bytes(archive.read(member))
                count += 1
        logger.debug(f"Extracted {count} subtitle files from ZIP")
        return count


class SubtitleDownloader:
    """Run backends in order until one downloads something"""

    def __init__(self, backends: List[SubtitleBackend], dry_run: bool = False):
        self.backends = backends
        self.dry_run = dry_run

    @classmethod
    def default(cls, dry_run: bool = False) -> 'SubtitleDownloader':
        return cls([SubdownloaderBackend(), SubliminalBackend(), OpenSubtitlesBackend()],
                   dry_run=dry_run)

    def download(self, directory: Path, language: str,
                 identifier: Optional[str]) -> Tuple[Optional[str], DownloadResult]:
        """Returns (name of the backend that succeeded, result)"""
        if self.dry_run:
            target = f" with IMDb ID {identifier}" if identifier else ""
            logger.info(f"  DRY-RUN: Would search for {language} subtitles{target}")
            return None, NOTHING

        for backend in self.backends:
            result = backend.download(directory, language, identifier)
            if result.success:
                logger.debug(f"Subtitle found via {backend.name}, skipping remaining providers")
                return backend.name, result
        return None, NOTHING
