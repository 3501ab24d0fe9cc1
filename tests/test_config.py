#!/usr/bin/env python3
"""
Test suite for sublingual/config.py — YAML, environment and CLI merging
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from sublingual.config import build_config, load_config, parse_languages
from sublingual.errors import ConfigError


@pytest.fixture
def movies(tmp_path):
    root = tmp_path / 'movies'
    root.mkdir()
    return root


class TestLoadConfig:

    def test_missing_file_is_empty(self, tmp_path):
        assert load_config(tmp_path / 'absent.yaml') == {}

    def test_yaml_values(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text("roots:\n  - /movies\nlanguages: EN,RO\npause: 3\n")
        assert load_config(path) == {'roots': ['/movies'], 'languages': 'EN,RO', 'pause': 3}

    def test_empty_file(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text("")
        assert load_config(path) == {}

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text("roots: [unclosed\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError):
            load_config(path)


class TestLanguages:

    def test_single(self):
        assert parse_languages('EN') == ('EN',)

    def test_multiple(self):
        assert parse_languages('EN,RO,fr') == ('EN', 'RO', 'fr')

    def test_yaml_list(self):
        assert parse_languages(['EN', 'RO']) == ('EN', 'RO')

    @pytest.mark.parametrize('value', ['', 'EN,', ',EN', 'EN,,RO', 'EN RO', 'E1', 'EN;RO'])
    def test_invalid(self, value):
        with pytest.raises(ConfigError):
            parse_languages(value)


class TestBuildConfig:

    def test_defaults(self, movies, tmp_path):
        config = build_config({}, {'roots': [str(movies)], 'omdb_api_key': 'abc'}, environ={})
        assert config.roots == (movies.resolve(),)
        assert config.languages == ('EN',)
        assert config.pause == 1
        assert config.web_search is True
        assert config.dry_run is False
        assert config.budget_limit == 490
        assert config.api_state_path.name == '.sublingual_api_state'

    def test_cli_beats_environment_beats_file(self, movies):
        config = build_config(
            {'roots': [str(movies)], 'omdb_api_key': 'from-file', 'pause': 5},
            {'omdb_api_key': 'from-cli', 'pause': None},
            environ={'OMDB_API_KEY': 'from-env'},
        )
        assert config.omdb_api_key == 'from-cli'
        assert config.pause == 5

    def test_environment_key(self, movies):
        config = build_config({'roots': [str(movies)]}, {}, environ={'OMDB_API_KEY': 'env-key'})
        assert config.omdb_api_key == 'env-key'

    def test_single_root_string(self, movies):
        config = build_config({'roots': str(movies), 'omdb_api_key': 'k'}, environ={})
        assert config.roots == (movies.resolve(),)

    def test_state_dir(self, movies, tmp_path):
        config = build_config({'roots': [str(movies)], 'omdb_api_key': 'k',
                               'state_dir': str(tmp_path / 'state')}, environ={})
        assert config.survey_state_path == tmp_path / 'state' / '.sublingual_survey_state'
        assert config.mapping_path == tmp_path / 'state' / '.sublingual_imdb_map'

    def test_no_web_search_flag(self, movies):
        config = build_config({'roots': [str(movies)], 'omdb_api_key': 'k'},
                              {'web_search': False}, environ={})
        assert config.web_search is False


class TestValidation:
    """Every configuration problem is fatal before any work starts"""

    def test_missing_root(self):
        with pytest.raises(ConfigError, match='--folder is required'):
            build_config({'omdb_api_key': 'k'}, environ={})

    def test_nonexistent_root(self, tmp_path):
        with pytest.raises(ConfigError, match='does not exist'):
            build_config({'roots': [str(tmp_path / 'nope')], 'omdb_api_key': 'k'}, environ={})

    def test_root_is_file(self, tmp_path):
        path = tmp_path / 'file.mkv'
        path.write_bytes(b'')
        with pytest.raises(ConfigError, match='not a directory'):
            build_config({'roots': [str(path)], 'omdb_api_key': 'k'}, environ={})

    def test_missing_api_key(self, movies):
        with pytest.raises(ConfigError, match='OMDb API key'):
            build_config({'roots': [str(movies)]}, environ={})

    def test_blank_api_key(self, movies):
        with pytest.raises(ConfigError):
            build_config({'roots': [str(movies)], 'omdb_api_key': '   '}, environ={})

    @pytest.mark.parametrize('key,value', [
        ('pause', 0), ('pause', -1), ('pause', 'abc'), ('workers', 0), ('pause', True),
    ])
    def test_non_positive_numbers(self, movies, key, value):
        with pytest.raises(ConfigError):
            build_config({'roots': [str(movies)], 'omdb_api_key': 'k', key: value}, environ={})

    def test_bad_language(self, movies):
        with pytest.raises(ConfigError, match='Empty language codes'):
            build_config({'roots': [str(movies)], 'omdb_api_key': 'k', 'languages': 'EN,'},
                         environ={})

    def test_budget_cannot_exceed_ceiling(self, movies):
        with pytest.raises(ConfigError):
            build_config({'roots': [str(movies)], 'omdb_api_key': 'k',
                          'budget_limit': 600}, environ={})

    def test_boolean_type_checked(self, movies):
        with pytest.raises(ConfigError):
            build_config({'roots': [str(movies)], 'omdb_api_key': 'k', 'dry_run': 'yes'},
                         environ={})
