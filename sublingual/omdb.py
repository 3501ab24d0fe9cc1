#!/usr/bin/env python3
"""
OMDb API client gated by the daily call budget
"""

import logging
import time
from typing import Callable, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from sublingual.budget import BudgetGovernor
from sublingual.constants import OMDB_UNAVAILABLE
from sublingual.errors import BudgetExhausted
from sublingual.identifiers import is_valid_identifier

logger = logging.getLogger(__name__)

OMDB_URL = "https://www.omdbapi.com/"
USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7)"
REQUEST_TIMEOUT = 30
MAX_RETRIES = 3
# Courtesy pause after every OMDb call
CALL_PAUSE_SECONDS = 0.5

# OMDb response key → metadata field
FIELD_KEYS = {
    'Plot': 'plot',
    'Director': 'director',
    'Genre': 'genre',
    'Runtime': 'runtime',
    'Rated': 'rating',
    'Released': 'premiered',
}


def build_session() -> requests.Session:
    """Session with a small fixed retry policy for transient HTTP failures"""
    session = requests.Session()
    retry = Retry(
        total=MAX_RETRIES,
        backoff_factor=1,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET"],
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({'User-Agent': USER_AGENT})
    return session


def parse_year(value: Optional[str]) -> Optional[int]:
    """OMDb years may be ranges like "2019–2020"; take the first year"""
    if not value or value == OMDB_UNAVAILABLE:
        return None
    year_str = value.split('–')[0].split('-')[0].strip()
    try:
        return int(year_str)
    except ValueError:
        return None


class OMDbClient:
    """Interface to the Open Movie Database API, one budget unit per request"""

    def __init__(self, api_key: str, budget: BudgetGovernor,
                 session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.api_key = api_key
        self.budget = budget
        self.session = session or build_session()
        self.sleep = sleep

    def search_film(self, title: str, year: Optional[int] = None) -> Optional[Dict]:
        """
        Look a film up by title (and year, if known)

        Returns a dict with keys: identifier, title, year, plot, director,
        genre, runtime, rating, premiered (unavailable fields omitted), or
        None if OMDb has no match. Raises BudgetExhausted before any request
        the budget does not allow.
        """
        # Separators in scene names hurt OMDb matching
        query = ' '.join(title.replace('.', ' ').replace('_', ' ').replace('-', ' ').split())
        if not query:
            return None

        params = {'t': query, 'type': 'movie', 'plot': 'full'}
        if year:
            params['y'] = str(year)

        result = self._extract(self._query_api(params))
        if result is None and year:
            logger.debug("IMDb ID not found with year, retrying without year parameter")
            params.pop('y')
            result = self._extract(self._query_api(params))

        if result is not None:
            self._warn_mismatch(query, year, result)
        return result

    def get_by_id(self, identifier: str) -> Optional[Dict]:
        """Fetch full metadata for a known identifier (verification lookup)"""
        if not is_valid_identifier(identifier):
            return None
        result = self._extract(self._query_api({'i': identifier, 'plot': 'full'}))
        if result is not None and result['identifier'] != identifier:
            logger.warning(f"OMDb returned {result['identifier']} for {identifier}, ignoring")
            return None
        return result

    def _query_api(self, params: Dict[str, str]) -> Optional[Dict]:
        """Make one budget-accounted request; returns the decoded JSON body"""
        if self.budget.is_blocked():
            raise BudgetExhausted(
                f"OMDb budget reached ({self.budget.current_count()}/{self.budget.api_limit})"
            )

        logger.debug(f"OMDb query: {params}")
        try:
            response = self.session.get(
                OMDB_URL,
                params={'apikey': self.api_key, **params},
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout:
            logger.warning(f"OMDb API timeout for {params}")
            return None
        except requests.exceptions.RequestException as e:
            logger.warning(f"OMDb API error for {params}: {e}")
            return None
        except ValueError as e:
            logger.warning(f"OMDb returned malformed JSON for {params}: {e}")
            return None
        finally:
            # Attempted calls count against the quota whether or not they succeed
            self.budget.record_call()
            self.sleep(CALL_PAUSE_SECONDS)

        if not isinstance(data, dict):
            logger.warning(f"OMDb returned unexpected payload for {params}")
            return None
        return data

    def _extract(self, data: Optional[Dict]) -> Optional[Dict]:
        if not data:
            return None
        if data.get('Response') == 'False':
            logger.debug(f"No OMDb results: {data.get('Error', 'Unknown error')}")
            return None

        identifier = data.get('imdbID')
        if not is_valid_identifier(identifier):
            logger.debug(f"OMDb response has no usable imdbID: {identifier!r}")
            return None

        result = {'identifier': identifier}
        title = data.get('Title')
        if title and title != OMDB_UNAVAILABLE:
            result['title'] = title
        year = parse_year(data.get('Year'))
        if year:
            result['year'] = year
        for key, field_name in FIELD_KEYS.items():
            value = data.get(key)
            if value and value != OMDB_UNAVAILABLE:
                result[field_name] = value
        return result

    @staticmethod
    def _warn_mismatch(query: str, year: Optional[int], result: Dict):
        """Regional titles and release years legitimately differ; warn only"""
        title = result.get('title')
        if title and title.lower() != query.lower():
            logger.warning(f"Title mismatch - Folder: '{query}', OMDb: '{title}'")
        if year and result.get('year') and result['year'] != year:
            logger.warning(f"Year mismatch - Folder: {year}, OMDb: {result['year']}")
