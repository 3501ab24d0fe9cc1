#!/usr/bin/env python3
"""
Test suite for sublingual/websearch.py — ddgr fallback (subprocess mocked)
"""

import pytest
import subprocess
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

sys.path.insert(0, str(Path(__file__).parent.parent))

from sublingual.websearch import WebSearch


DDGR_OUTPUT = """ 1.  Inception (2010) - IMDb [imdb.com]
     https://www.imdb.com/title/tt1375666/
     Inception: Directed by Christopher Nolan.

 2.  Inception - Wikipedia [en.wikipedia.org]
     https://en.wikipedia.org/wiki/Inception
"""


def installed(_binary):
    return '/usr/bin/ddgr'


def missing(_binary):
    return None


def completed(stdout):
    return MagicMock(stdout=stdout, stderr='', returncode=0)


class TestAvailability:

    def test_missing_tool_is_silent(self):
        search = WebSearch(which=missing)
        assert not search.available
        with patch('sublingual.websearch.subprocess.run') as run:
            assert search.find_identifier('Inception', 2010) is None
            run.assert_not_called()


class TestFindIdentifier:

    @patch('sublingual.websearch.subprocess.run')
    def test_query_and_result(self, run):
        run.return_value = completed(DDGR_OUTPUT)
        search = WebSearch(which=installed)
        assert search.find_identifier('Inception', 2010) == 'tt1375666'

        args = run.call_args.args[0]
        assert args == ['/usr/bin/ddgr', '--np', 'imdb Inception 2010']
        assert run.call_args.kwargs['timeout'] == 30

    @patch('sublingual.websearch.subprocess.run')
    def test_query_without_year(self, run):
        run.return_value = completed(DDGR_OUTPUT)
        WebSearch(which=installed).find_identifier('Inception')
        assert run.call_args.args[0][-1] == 'imdb Inception'

    @patch('sublingual.websearch.subprocess.run')
    def test_no_title_link(self, run):
        run.return_value = completed(" 1.  Something else\n     https://example.com/\n")
        assert WebSearch(which=installed).find_identifier('Inception') is None

    @patch('sublingual.websearch.subprocess.run')
    def test_only_first_page_considered(self, run):
        filler = ''.join(f"line {i}\n" for i in range(25))
        run.return_value = completed(filler + "https://www.imdb.com/title/tt1375666/\n")
        assert WebSearch(which=installed).find_identifier('Inception') is None

    @patch('sublingual.websearch.subprocess.run')
    def test_timeout_is_not_found(self, run):
        run.side_effect = subprocess.TimeoutExpired(cmd='ddgr', timeout=30)
        assert WebSearch(which=installed).find_identifier('Inception') is None


class TestFindYear:

    @patch('sublingual.websearch.subprocess.run')
    def test_year_from_first_line(self, run):
        run.return_value = completed(DDGR_OUTPUT)
        assert WebSearch(which=installed).find_year('Inception', 2024) == 2010

    @patch('sublingual.websearch.subprocess.run')
    def test_year_out_of_range(self, run):
        run.return_value = completed(" 1.  Future Film (2099) - IMDb\n")
        assert WebSearch(which=installed).find_year('Future Film', 2024) is None

    @patch('sublingual.websearch.subprocess.run')
    def test_empty_output(self, run):
        run.return_value = completed('')
        assert WebSearch(which=installed).find_year('Inception', 2024) is None
