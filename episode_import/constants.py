#!/usr/bin/env python3
"""
Shared constants for the episode CSV import pipeline

Single source of truth for column-name candidates, tool-output markers and
process limits. DO NOT duplicate these lists in other modules - import from here.
"""

import re

# Episode-number column, in priority order (first match wins)
EPISODE_COLUMN_CANDIDATES = [
    'episode_number',
    'episode',
    'ep',
    'number',
    'episode_num',
    'ep_num',
    '集数',
    '第几集',
    '剧集',
]

# Episode title column used by title cleanup
TITLE_COLUMN_CANDIDATES = ['name', 'title', '标题', '名称', '剧集名']

# Overview column flattened by TransformRequest.flatten_overview
OVERVIEW_COLUMN_CANDIDATES = ['overview', 'description', '简介', '剧情']

# Semantic column kinds for blanking/removal.
# Keys match ColumnKind values in transform.py.
COLUMN_KIND_CANDIDATES = {
    'air_date': ['air_date', 'airdate', '播出日期', '首播日期'],
    'runtime': ['runtime', '时长', '分钟', 'duration', '片长'],
    'backdrop': [
        'backdrop_path', 'backdrop', 'still_path', 'still',
        '分集图片', '背景图片', '剧照', 'episode_image',
    ],
}

# Minimum fuzz.ratio for the last-resort header match
FUZZY_HEADER_THRESHOLD = 85

# Start of a new logical row inside a merged repair buffer:
# <episode number>,<name>,<YYYY-MM-DD>,
# Only accepted at a token boundary (start of buffer excluded by the parser).
ROW_BOUNDARY_PATTERN = re.compile(r'(?<![\w.\-])\d+,[^,]+,\d{4}-\d{2}-\d{2},')

# TMDB-Import interactive prompts (matched case-insensitively on stdout chunks)
CONFLICT_MARKERS = [
    'already exists',
    'overwrite',
    '(w/y/n)',
    '[w/y/n]',
    'w/y/n',
]

# Single-character answers TMDB-Import accepts on a conflict prompt
CONFLICT_RESPONSES = ('w', 'y', 'n')

# How the tool reports processed episodes: (pattern, what it recognises).
# Evaluated in order; all matches are unioned.
IMPORTED_EPISODE_PATTERNS = [
    (re.compile(r'Episode\s+(\d+)', re.IGNORECASE), 'english "Episode N"'),
    (re.compile(r'第(\d+)集'), 'chinese "第N集"'),
    (re.compile(r'S\d+E(\d+)', re.IGNORECASE), 'SxxEyy code'),
    (re.compile(r'(?<![a-z])E(\d+)', re.IGNORECASE), 'bare Eyy code'),
    (re.compile(r'导入第?(\d+)集?'), 'chinese "导入第N集"'),
    (re.compile(r'Imported\s+episode\s+(\d+)', re.IGNORECASE), 'english "Imported episode N"'),
    (re.compile(r'成功导入\s*(\d+)'), 'chinese "成功导入 N"'),
]

# Fallback: any bare integer token in this range is taken as an episode number.
# ASCII word boundaries, so numbers next to CJK text still count as tokens.
FALLBACK_NUMBER_PATTERN = re.compile(r'\b\d+\b', re.ASCII)
FALLBACK_EPISODE_RANGE = (1, 999)

# Output phrases that mean the browser/session behind the tool was closed
# by the user (matched case-insensitively)
USER_INTERRUPT_PATTERNS = [
    'user closed',
    'window closed',
    'browser closed',
    'session closed',
    'no such window',
    'target window already closed',
    'invalid session id',
    'chrome not reachable',
    'edge not reachable',
    'browser process exited',
    'process terminated',
    'killed by user',
    'keyboardinterrupt',
    'sigterm',
    'sigkill',
]

# Signals that count as a user interrupt when they end the process
USER_INTERRUPT_SIGNALS = ('SIGINT', 'SIGTERM', 'SIGKILL')

SERVER_ERROR_MARKERS = ['HTTP 500']
TIMEOUT_MARKERS = ['timeout', 'timed out']
CONNECTION_ERROR_MARKERS = ['ConnectionError']

# stderr content worth a WARNING in the log (matched case-insensitively)
FATAL_STDERR_MARKERS = ['fatal', 'critical', 'traceback', 'modulenotfounderror']

# Process limits
IMPORT_TIMEOUT_SECONDS = 600
KILL_GRACE_SECONDS = 5

# Length of stdout/stderr kept in ImportOutcome.raw_output_excerpt
OUTPUT_EXCERPT_CHARS = 1000

# TMDb season page the tool is pointed at
TMDB_SEASON_URL = 'https://www.themoviedb.org/tv/{tmdb_id}/season/{season}?language={language}'
DEFAULT_TMDB_LANGUAGE = 'zh-CN'
