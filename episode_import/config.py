#!/usr/bin/env python3
"""
YAML configuration for the import pipeline

Example config_external.yaml:

    tmdb_import_path: /opt/TMDB-Import-master
    tool_command: [python, -m, tmdb-import]
    conflict_action: w
    tmdb_language: zh-CN
    tmdb_api_key: ''
    timeout_seconds: 600
    kill_grace_seconds: 5
    cache_path: output/tmdb_season_cache.json
"""

import logging
import sys
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Optional

import yaml

from episode_import.constants import (
    DEFAULT_TMDB_LANGUAGE, IMPORT_TIMEOUT_SECONDS, KILL_GRACE_SECONDS,
)

logger = logging.getLogger(__name__)


def _default_tool_command() -> List[str]:
    return [sys.executable, '-m', 'tmdb-import']


@dataclass
class ImportConfig:
    tmdb_import_path: Path = Path('TMDB-Import-master')
    tool_command: List[str] = field(default_factory=_default_tool_command)
    conflict_action: str = 'w'
    tmdb_language: str = DEFAULT_TMDB_LANGUAGE
    tmdb_api_key: Optional[str] = None
    timeout_seconds: float = IMPORT_TIMEOUT_SECONDS
    kill_grace_seconds: float = KILL_GRACE_SECONDS
    cache_path: Path = Path('output/tmdb_season_cache.json')


def load_config(config_path: Optional[Path]) -> ImportConfig:
    """Load configuration from YAML; a missing file means all defaults"""
    if config_path is None or not config_path.exists():
        if config_path is not None:
            logger.info(f"Config file not found: {config_path} (using defaults)")
        return ImportConfig()

    with open(config_path, 'r', encoding='utf-8') as f:
        raw = yaml.safe_load(f) or {}

    known = {f.name for f in fields(ImportConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")

    values = {key: value for key, value in raw.items() if key in known and value is not None}
    for key in ('tmdb_import_path', 'cache_path'):
        if key in values:
            values[key] = Path(values[key]).expanduser()
    if isinstance(values.get('tool_command'), str):
        values['tool_command'] = values['tool_command'].split()
    if 'conflict_action' in values:
        values['conflict_action'] = str(values['conflict_action']).strip().lower()

    return ImportConfig(**values)
