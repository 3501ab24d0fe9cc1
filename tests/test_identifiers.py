#!/usr/bin/env python3
"""
Test suite for sublingual/identifiers.py — IMDb ID validation and extraction
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from sublingual.identifiers import (
    find_identifier, find_title_url_identifier, is_valid_identifier,
)


class TestValidation:
    """Only tt + 7 or 8 digits is an identifier"""

    @pytest.mark.parametrize('value', ['tt1375666', 'tt12345678', 'tt0000001'])
    def test_valid(self, value):
        assert is_valid_identifier(value)

    @pytest.mark.parametrize('value', [
        'tt123456',          # too short
        'tt123456789',       # too long
        'TT1375666',         # wrong case
        'tt1375666 ',        # trailing whitespace
        ' tt1375666',
        'xtt1375666',
        'tt1375666a',
        '1375666',
        '',
    ])
    def test_invalid(self, value):
        assert not is_valid_identifier(value)

    def test_non_string(self):
        assert not is_valid_identifier(None)
        assert not is_valid_identifier(1375666)


class TestEmbeddedExtraction:
    """Identifiers embedded in directory names and free text"""

    def test_bracketed_in_dirname(self):
        assert find_identifier("Inception (2010) [tt1375666]") == 'tt1375666'

    def test_first_match_wins(self):
        assert find_identifier("tt1375666 tt0133093") == 'tt1375666'

    def test_in_imdb_url(self):
        assert find_identifier("https://www.imdb.com/title/tt0133093/") == 'tt0133093'

    def test_nine_digits_not_truncated(self):
        """A 9-digit run is not an identifier, not even its prefix"""
        assert find_identifier("tt123456789") is None

    def test_glued_to_word(self):
        assert find_identifier("Matt1234567") is None

    def test_none_and_empty(self):
        assert find_identifier(None) is None
        assert find_identifier("") is None


class TestTitleUrlExtraction:

    def test_search_output(self):
        output = (
            " 1.  Inception (2010) - IMDb\n"
            "     https://www.imdb.com/title/tt1375666/\n"
            " 2.  Inception - Wikipedia\n"
        )
        assert find_title_url_identifier(output) == 'tt1375666'

    def test_ignores_bare_identifiers(self):
        """Only title-page links count"""
        assert find_title_url_identifier("see tt1375666 for details") is None

    def test_no_output(self):
        assert find_title_url_identifier(None) is None
