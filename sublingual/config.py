#!/usr/bin/env python3
"""
Configuration loading and validation

Sources, lowest to highest priority:
  1. YAML config file (optional, default ~/.sublingual.yaml)
  2. OMDB_API_KEY environment variable
  3. Command-line flags

Every problem raises ConfigError before any resolution work starts.

Example config file:

    roots:
      - /Volumes/Movies
    languages: EN,RO
    omdb_api_key: abcd1234
    pause: 1
    web_search: true
    verify_by_id: false
    state_dir: ~/
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from sublingual.constants import (
    API_LIMIT, API_BUDGET_LIMIT,
    API_STATE_FILENAME, IMDB_MAPPING_FILENAME, SURVEY_STATE_FILENAME,
)
from sublingual.errors import ConfigError
from sublingual.scan import validate_root

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path('~/.sublingual.yaml')

LANGUAGES_RE = re.compile(r'^[A-Za-z]+(,[A-Za-z]+)*$')


@dataclass(frozen=True)
class SublingualConfig:
    roots: Tuple[Path, ...]
    languages: Tuple[str, ...]
    omdb_api_key: str
    pause: int = 1
    workers: int = 4  # accepted for CLI compatibility; processing is sequential
    dry_run: bool = False
    survey: bool = False
    web_search: bool = True
    verify_by_id: bool = False
    debug: bool = False
    state_dir: Path = field(default_factory=Path.home)
    budget_limit: int = API_BUDGET_LIMIT
    api_limit: int = API_LIMIT

    @property
    def api_state_path(self) -> Path:
        return self.state_dir / API_STATE_FILENAME

    @property
    def mapping_path(self) -> Path:
        return self.state_dir / IMDB_MAPPING_FILENAME

    @property
    def survey_state_path(self) -> Path:
        return self.state_dir / SURVEY_STATE_FILENAME


def load_config(config_path: Path) -> Dict[str, Any]:
    """Load configuration from YAML file (empty dict when the file is absent)"""
    path = config_path.expanduser()
    if not path.exists():
        return {}
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML parse error in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a mapping: {path}")
    return data


def parse_languages(value: Any) -> Tuple[str, ...]:
    """Validate a comma-separated list of letter-only language codes"""
    if isinstance(value, (list, tuple)):
        value = ','.join(str(v) for v in value)
    if not isinstance(value, str) or not value:
        raise ConfigError(f"Invalid language code format: {value!r}")
    if value.startswith(',') or value.endswith(',') or ',,' in value:
        raise ConfigError(f"Invalid language code format. Empty language codes detected: {value}")
    if not LANGUAGES_RE.match(value):
        raise ConfigError(
            f"Invalid language code format. Only letters and commas allowed: {value}"
        )
    return tuple(value.split(','))


def _positive_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ConfigError(f"{name} must be a positive integer: {value!r}")
    if isinstance(value, str):
        if not value.isdigit():
            raise ConfigError(f"{name} must be a positive integer: {value}")
        value = int(value)
    if value <= 0:
        raise ConfigError(f"{name} must be greater than zero: {value}")
    return value


def _bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ConfigError(f"Expected boolean for '{name}', got: {type(value).__name__}")


def _roots(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return value
    raise ConfigError(f"Expected a path or list of paths for 'roots', got: {value!r}")


def build_config(file_values: Mapping[str, Any],
                 overrides: Optional[Mapping[str, Any]] = None,
                 environ: Optional[Mapping[str, str]] = None) -> SublingualConfig:
    """Merge file values, environment and CLI overrides into a validated config"""
    environ = os.environ if environ is None else environ
    merged: Dict[str, Any] = dict(file_values)
    if environ.get('OMDB_API_KEY'):
        merged['omdb_api_key'] = environ['OMDB_API_KEY']
    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = value

    roots = _roots(merged.get('roots'))
    if not roots:
        raise ConfigError("--folder is required")
    resolved_roots = tuple(validate_root(Path(os.path.expandvars(r))) for r in roots)

    api_key = merged.get('omdb_api_key')
    if not isinstance(api_key, str) or not api_key.strip():
        raise ConfigError(
            "OMDb API key is not configured. Apply for a FREE key at "
            "https://www.omdbapi.com/apikey.aspx and set OMDB_API_KEY or pass --omdb-key"
        )

    state_dir = merged.get('state_dir')
    state_path = Path(os.path.expandvars(str(state_dir))).expanduser() if state_dir else Path.home()

    budget_limit = _positive_int(merged.get('budget_limit', API_BUDGET_LIMIT), 'budget_limit')
    api_limit = _positive_int(merged.get('api_limit', API_LIMIT), 'api_limit')
    if budget_limit > api_limit:
        raise ConfigError(f"budget_limit ({budget_limit}) cannot exceed api_limit ({api_limit})")

    return SublingualConfig(
        roots=resolved_roots,
        languages=parse_languages(merged.get('languages', 'EN')),
        omdb_api_key=api_key.strip(),
        pause=_positive_int(merged.get('pause', 1), '--pause'),
        workers=_positive_int(merged.get('workers', 4), '--workers'),
        dry_run=_bool(merged.get('dry_run', False), 'dry_run'),
        survey=_bool(merged.get('survey', False), 'survey'),
        web_search=_bool(merged.get('web_search', True), 'web_search'),
        verify_by_id=_bool(merged.get('verify_by_id', False), 'verify_by_id'),
        debug=_bool(merged.get('debug', False), 'debug'),
        state_dir=state_path,
        budget_limit=budget_limit,
        api_limit=api_limit,
    )
