#!/usr/bin/env python3
"""
Test suite for import_episodes.py — CLI argument handling
"""

import argparse
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from import_episodes import build_request, main, parse_episode_list, print_tmdb_stats
from episode_import.tmdb import TMDbClient
from episode_import.transform import ColumnKind


def make_args(**overrides):
    values = dict(
        delete='', platform_url=None, youku=False, title_marker=None, title_column=None,
        blank=[], remove=[], flatten_overview=False,
    )
    values.update(overrides)
    return argparse.Namespace(**values)


class TestParseEpisodeSpec:

    @pytest.mark.parametrize("text,expected", [
        ('', set()),
        ('3', {3}),
        ('1,2,5-7', {1, 2, 5, 6, 7}),
        (' 4 , 9-8 ', {4, 8, 9}),
        ('1,,2', {1, 2}),
    ])
    def test_valid(self, text, expected):
        assert parse_episode_list(text) == expected

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_episode_list('one,two')


class TestBuildRequest:

    def test_defaults(self):
        request = build_request(make_args())
        assert request.episode_numbers == set()
        assert request.platform_adjustment is False
        assert request.title_cleanup is None

    def test_youku_from_url(self):
        request = build_request(make_args(platform_url='https://v.youku.com/v_show/x.html', delete='2'))
        assert request.platform_adjustment is True
        assert request.episode_numbers == {2}

    def test_column_rules(self):
        request = build_request(make_args(
            blank=['air_date'], remove=['backdrop', 'runtime'], title_marker=' - ',
        ))
        assert request.columns_to_blank == {ColumnKind.AIR_DATE}
        assert request.columns_to_remove == {ColumnKind.BACKDROP, ColumnKind.RUNTIME}
        assert request.title_cleanup.marker_text == ' - '


class TestMain:

    def test_dry_run_does_not_write(self, tmp_path, monkeypatch, capsys):
        csv_path = tmp_path / 'import.csv'
        text = "episode_number,name\n1,a\n2,b\n"
        csv_path.write_text(text, encoding='utf-8')
        monkeypatch.setattr(sys, 'argv', [
            'import_episodes.py', str(csv_path), '--delete', '1',
            '--config', str(tmp_path / 'missing.yaml'),
        ])
        assert main() == 0
        assert csv_path.read_text(encoding='utf-8') == text
        assert 'DRY RUN' in capsys.readouterr().out

    def test_skip_import_writes(self, tmp_path, monkeypatch):
        csv_path = tmp_path / 'import.csv'
        csv_path.write_text("episode_number,name\n1,a\n2,b\n", encoding='utf-8')
        monkeypatch.setattr(sys, 'argv', [
            'import_episodes.py', str(csv_path), '--delete', '1', '--execute', '--skip-import',
            '--config', str(tmp_path / 'missing.yaml'),
        ])
        assert main() == 0
        assert csv_path.read_text(encoding='utf-8') == "episode_number,name\n2,b"

    def test_missing_csv_returns_error(self, tmp_path, monkeypatch):
        monkeypatch.setattr(sys, 'argv', [
            'import_episodes.py', str(tmp_path / 'nope.csv'),
            '--config', str(tmp_path / 'missing.yaml'),
        ])
        assert main() == 1


class TestTmdbStats:

    def test_no_client_prints_nothing(self, capsys):
        print_tmdb_stats(None)
        assert capsys.readouterr().out == ''

    def test_stats_line(self, tmp_path, capsys):
        client = TMDbClient('key', tmp_path / 'cache.json')
        client.cache_hits, client.cache_misses = 3, 1
        print_tmdb_stats(client)
        assert capsys.readouterr().out.strip() == 'TMDb: 1 API queries, 3 cache hits (75% hit rate)'
