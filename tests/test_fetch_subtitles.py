#!/usr/bin/env python3
"""
Test suite for fetch_subtitles.py — CLI exit codes and end-to-end dry run
"""

import pytest
import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent))

import fetch_subtitles
from sublingual.subtitles import DownloadResult


@pytest.fixture
def setup(tmp_path, monkeypatch):
    monkeypatch.delenv('OMDB_API_KEY', raising=False)
    movies = tmp_path / 'movies'
    movie = movies / 'Inception (2010) [tt1375666]'
    movie.mkdir(parents=True)
    (movie / 'Inception.mkv').write_bytes(b'')
    config = tmp_path / 'config.yaml'
    config.write_text(f"state_dir: {tmp_path / 'state'}\nomdb_api_key: test-key\n")
    return movies, movie, config


class TestExitCodes:

    def test_missing_folder(self, setup):
        _, _, config = setup
        assert fetch_subtitles.main(['--config', str(config)]) == 2

    def test_missing_api_key(self, setup, tmp_path):
        movies, _, _ = setup
        empty = tmp_path / 'empty.yaml'
        empty.write_text('')
        assert fetch_subtitles.main(['--config', str(empty), '--folder', str(movies)]) == 2

    def test_invalid_language(self, setup):
        movies, _, config = setup
        code = fetch_subtitles.main(['--config', str(config), '--folder', str(movies),
                                     '--language', 'EN,,RO'])
        assert code == 2

    def test_nonexistent_folder(self, setup, tmp_path):
        _, _, config = setup
        code = fetch_subtitles.main(['--config', str(config), '--folder', str(tmp_path / 'nope')])
        assert code == 2

    def test_interrupt(self, setup):
        movies, _, config = setup
        with patch('fetch_subtitles.SurveyScheduler.run', side_effect=KeyboardInterrupt):
            code = fetch_subtitles.main(['--config', str(config), '--folder', str(movies),
                                         '--dry-run', '--no-web-search'])
        assert code == 130

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            fetch_subtitles.main(['--version'])
        assert exc.value.code == 0
        assert '1.0.0' in capsys.readouterr().out


class TestDryRun:

    def test_resolves_without_writing(self, setup, caplog):
        movies, movie, config = setup
        with caplog.at_level('INFO'):
            code = fetch_subtitles.main(['--config', str(config), '--folder', str(movies),
                                         '--dry-run', '--no-web-search'])
        assert code == 0
        assert 'IMDb ID: tt1375666 (source: dirname)' in caplog.text
        assert 'DRY-RUN' in caplog.text
        assert sorted(p.name for p in movie.iterdir()) == ['Inception.mkv']

    def test_writes_sidecar(self, setup):
        movies, movie, config = setup
        with patch('sublingual.subtitles.SubtitleDownloader.download',
                   return_value=(None, DownloadResult(False, 0))):
            code = fetch_subtitles.main(['--config', str(config), '--folder', str(movies),
                                         '--no-web-search', '--pause', '1'])
        assert code == 0
        assert (movie / 'Inception.nfo').exists()
