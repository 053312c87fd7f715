#!/usr/bin/env python3
"""
TMDb API client for season preflight checks, with persistent JSON caching

Used before an import to make sure the target season exists, so the import
tool is never pointed at a page that will 404 halfway through a run.
"""

import json
import os
import logging
from pathlib import Path
from typing import Dict, Optional

import requests

logger = logging.getLogger(__name__)


class TMDbClient:
    """Interface to The Movie Database TV endpoints with persistent caching"""

    def __init__(self, api_key: str, cache_path: Path, language: str = 'zh-CN'):
        self.api_key = api_key
        self.base_url = "https://api.themoviedb.org/3"
        self.language = language
        self.cache_path = cache_path
        self.cache = self._load_cache()
        self.cache_hits = 0
        self.cache_misses = 0

    def _load_cache(self) -> Dict:
        """Season answers from earlier runs; an unreadable file means an empty cache"""
        if not self.cache_path.exists():
            return {}
        try:
            cache = json.loads(self.cache_path.read_text(encoding='utf-8'))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable season cache {self.cache_path}: {e}")
            return {}
        logger.debug(f"Season cache: {len(cache)} entries from {self.cache_path}")
        return cache

    def _save_cache(self):
        # Write-then-replace: the cache file on disk is always complete JSON
        tmp_path = self.cache_path.with_suffix(self.cache_path.suffix + '.tmp')
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(self.cache, indent=2, ensure_ascii=False), encoding='utf-8')
            os.replace(tmp_path, self.cache_path)
        except OSError as e:
            logger.error(f"Could not write season cache {self.cache_path}: {e}")

    def _make_cache_key(self, tmdb_id: int, season: int) -> str:
        return f"{tmdb_id}|{season}"

    def get_season(self, tmdb_id: int, season: int) -> Optional[Dict]:
        """
        Fetch a season summary (with caching).

        Returns dict with keys: tmdb_id, season, name, episode_count, episodes
        ({} when TMDb says the season does not exist), or None if the API
        could not be reached. Only definitive answers are cached.
        """
        if not self.api_key:
            return None

        cache_key = self._make_cache_key(tmdb_id, season)
        if cache_key in self.cache:
            self.cache_hits += 1
            logger.debug(f"Cache hit: show {tmdb_id} season {season}")
            return self.cache[cache_key]

        self.cache_misses += 1
        result = self._query_api(tmdb_id, season)
        if result is not None:
            self.cache[cache_key] = result
            self._save_cache()
        return result

    def _query_api(self, tmdb_id: int, season: int) -> Optional[Dict]:
        try:
            response = requests.get(
                f"{self.base_url}/tv/{tmdb_id}/season/{season}",
                params={'api_key': self.api_key, 'language': self.language},
                timeout=10
            )
            if response.status_code == 404:
                logger.info(f"TMDb: show {tmdb_id} has no season {season}")
                return {}
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout:
            logger.warning(f"TMDb API timeout for show {tmdb_id} season {season}")
            return None
        except requests.exceptions.RequestException as e:
            logger.warning(f"TMDb API error for show {tmdb_id} season {season}: {e}")
            return None

        episodes = [
            ep.get('episode_number') for ep in data.get('episodes', [])
            if ep.get('episode_number') is not None
        ]
        result = {
            'tmdb_id': tmdb_id,
            'season': data.get('season_number', season),
            'name': data.get('name'),
            'episode_count': len(episodes),
            'episodes': episodes,
        }
        logger.info(f"TMDb: show {tmdb_id} season {season} '{result['name']}' has {len(episodes)} episodes")
        return result

    def season_exists(self, tmdb_id: int, season: int) -> Optional[bool]:
        """True/False when TMDb answered, None when it could not be asked"""
        result = self.get_season(tmdb_id, season)
        if result is None:
            return None
        return bool(result)

    def get_cache_stats(self) -> Dict:
        lookups = self.cache_hits + self.cache_misses
        return {
            'hits': self.cache_hits,
            'misses': self.cache_misses,
            'hit_rate': 100.0 * self.cache_hits / lookups if lookups else 0.0,
            'cached_seasons': len(self.cache),
        }
