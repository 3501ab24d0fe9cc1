#!/usr/bin/env python3
"""
Survey-mode progress: directories already handled in the current cycle

One absolute path per line, appended as each directory finishes so an
interrupted cycle resumes where it stopped. Cleared when the cycle ends.
"""

import logging
from pathlib import Path
from typing import Set

logger = logging.getLogger(__name__)


class SurveyState:
    def __init__(self, state_path: Path):
        self.state_path = state_path
        self._processed: Set[str] = set()
        self.load()

    def load(self) -> None:
        try:
            lines = self.state_path.read_text(encoding='utf-8').splitlines()
        except FileNotFoundError:
            lines = []
        except OSError as e:
            logger.warning(f"Could not read survey state {self.state_path}: {e}")
            lines = []
        self._processed = {line.strip() for line in lines if line.strip()}
        if self._processed:
            logger.info(f"Resuming survey cycle: {len(self._processed)} directories already processed")

    @staticmethod
    def _key(directory: Path) -> str:
        return str(directory)

    def is_processed(self, directory: Path) -> bool:
        return self._key(directory) in self._processed

    def mark(self, directory: Path) -> None:
        key = self._key(directory)
        if key in self._processed:
            return
        self._processed.add(key)
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.state_path, 'a', encoding='utf-8') as f:
            f.write(key + '\n')

    def clear(self) -> None:
        self._processed.clear()
        self.state_path.unlink(missing_ok=True)
        logger.debug(f"Survey state cleared: {self.state_path}")

    def __len__(self) -> int:
        return len(self._processed)
