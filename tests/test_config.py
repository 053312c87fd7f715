#!/usr/bin/env python3
"""
Test suite for episode_import/config.py — YAML configuration loading
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from episode_import.config import ImportConfig, load_config
from episode_import.constants import IMPORT_TIMEOUT_SECONDS, KILL_GRACE_SECONDS


class TestLoadConfig:

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / 'config_external.yaml')
        assert config == ImportConfig()
        assert config.timeout_seconds == IMPORT_TIMEOUT_SECONDS
        assert config.kill_grace_seconds == KILL_GRACE_SECONDS
        assert config.conflict_action == 'w'

    def test_none_gives_defaults(self):
        assert load_config(None) == ImportConfig()

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text('', encoding='utf-8')
        assert load_config(path) == ImportConfig()

    def test_values_loaded(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text(
            "tmdb_import_path: /opt/TMDB-Import-master\n"
            "tool_command: [python3, -m, tmdb-import]\n"
            "conflict_action: Y\n"
            "tmdb_language: en-US\n"
            "tmdb_api_key: abc123\n"
            "timeout_seconds: 120\n"
            "cache_path: cache/seasons.json\n",
            encoding='utf-8',
        )
        config = load_config(path)
        assert config.tmdb_import_path == Path('/opt/TMDB-Import-master')
        assert config.tool_command == ['python3', '-m', 'tmdb-import']
        assert config.conflict_action == 'y'
        assert config.tmdb_language == 'en-US'
        assert config.tmdb_api_key == 'abc123'
        assert config.timeout_seconds == 120
        assert config.kill_grace_seconds == KILL_GRACE_SECONDS
        assert config.cache_path == Path('cache/seasons.json')

    def test_tool_command_string_is_split(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text("tool_command: python3 -m tmdb-import\n", encoding='utf-8')
        assert load_config(path).tool_command == ['python3', '-m', 'tmdb-import']

    def test_unknown_keys_ignored(self, tmp_path, caplog):
        path = tmp_path / 'config.yaml'
        path.write_text("conflict_action: n\nproject_path: /tmp\n", encoding='utf-8')
        config = load_config(path)
        assert config.conflict_action == 'n'
        assert 'project_path' in caplog.text
