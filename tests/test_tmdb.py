#!/usr/bin/env python3
"""
Test suite for episode_import/tmdb.py — season preflight with caching
"""

import json
import sys
from pathlib import Path
from unittest.mock import Mock, patch

import requests

sys.path.insert(0, str(Path(__file__).parent.parent))

from episode_import.tmdb import TMDbClient


def season_response(status_code=200, payload=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code}")
    return response


SEASON_PAYLOAD = {
    'season_number': 1,
    'name': 'Season 1',
    'episodes': [{'episode_number': 1}, {'episode_number': 2}, {'name': 'special'}],
}


class TestSeasonLookup:

    def test_existing_season(self, tmp_path):
        client = TMDbClient('key', tmp_path / 'cache.json')
        with patch('requests.get', return_value=season_response(200, SEASON_PAYLOAD)) as mock_get:
            season = client.get_season(1399, 1)
        assert season['episode_count'] == 2
        assert season['episodes'] == [1, 2]
        assert season['name'] == 'Season 1'
        args, kwargs = mock_get.call_args
        assert args[0] == 'https://api.themoviedb.org/3/tv/1399/season/1'
        assert kwargs['params'] == {'api_key': 'key', 'language': 'zh-CN'}
        assert client.season_exists(1399, 1) is True

    def test_missing_season(self, tmp_path):
        client = TMDbClient('key', tmp_path / 'cache.json')
        with patch('requests.get', return_value=season_response(404)):
            assert client.season_exists(1399, 9) is False

    def test_api_error_is_unknown(self, tmp_path):
        client = TMDbClient('key', tmp_path / 'cache.json')
        with patch('requests.get', return_value=season_response(500)):
            assert client.season_exists(1399, 1) is None
        assert client.cache == {}

    def test_timeout_is_unknown(self, tmp_path):
        client = TMDbClient('key', tmp_path / 'cache.json')
        with patch('requests.get', side_effect=requests.exceptions.Timeout()):
            assert client.season_exists(1399, 1) is None

    def test_no_api_key(self, tmp_path):
        client = TMDbClient('', tmp_path / 'cache.json')
        with patch('requests.get') as mock_get:
            assert client.season_exists(1399, 1) is None
        mock_get.assert_not_called()


class TestCache:

    def test_cache_hit_skips_api(self, tmp_path):
        client = TMDbClient('key', tmp_path / 'cache.json')
        with patch('requests.get', return_value=season_response(200, SEASON_PAYLOAD)) as mock_get:
            client.get_season(1399, 1)
            client.get_season(1399, 1)
        assert mock_get.call_count == 1
        stats = client.get_cache_stats()
        assert stats['hits'] == 1 and stats['misses'] == 1
        assert stats['hit_rate'] == 50.0
        assert stats['cached_seasons'] == 1

    def test_cache_persisted(self, tmp_path):
        cache_path = tmp_path / 'nested' / 'cache.json'
        client = TMDbClient('key', cache_path)
        with patch('requests.get', return_value=season_response(404)):
            client.get_season(1399, 9)
        assert json.loads(cache_path.read_text(encoding='utf-8')) == {'1399|9': {}}
        assert list(cache_path.parent.iterdir()) == [cache_path]

        reloaded = TMDbClient('key', cache_path)
        with patch('requests.get') as mock_get:
            assert reloaded.season_exists(1399, 9) is False
        mock_get.assert_not_called()

    def test_corrupt_cache_starts_fresh(self, tmp_path):
        cache_path = tmp_path / 'cache.json'
        cache_path.write_text('{not json', encoding='utf-8')
        assert TMDbClient('key', cache_path).cache == {}
