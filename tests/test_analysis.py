#!/usr/bin/env python3
"""
Test suite for episode_import/analysis.py — remaining episodes and structure checks
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from episode_import.analysis import remaining_episodes, validate_table
from episode_import.table import Table


class TestRemainingEpisodes:
    """Episode numbers still present in a table"""

    def test_sorted_episodes(self):
        table = Table(['集数', 'name'], [['3', 'c'], ['1', 'a'], ['2', 'b']])
        analysis = remaining_episodes(table)
        assert analysis.episode_column == '集数'
        assert analysis.episodes == [1, 2, 3]
        assert analysis.episode_range == (1, 3)
        assert analysis.problems == []

    def test_unreadable_rows_reported(self):
        table = Table(['name', 'episode'], [['a', '1'], ['b', 'two'], ['c']])
        analysis = remaining_episodes(table)
        assert analysis.episodes == [1]
        assert [(p.line, p.reason) for p in analysis.problems] == [
            (3, 'not an integer'),
            (4, 'only 1 columns'),
        ]

    def test_no_episode_column(self):
        analysis = remaining_episodes(Table(['name', 'overview'], [['a', 'b']]))
        assert analysis.episode_column is None
        assert analysis.episodes == []
        assert analysis.episode_range is None


class TestValidateTable:
    """Structural problems that would break an import"""

    def test_valid_table(self):
        report = validate_table(Table(['episode_number', 'name'], [['1', 'a']]))
        assert report.valid
        assert report.errors == [] and report.warnings == []

    def test_missing_header(self):
        report = validate_table(Table([], []))
        assert not report.valid
        assert report.errors == ['missing header row']

    def test_empty_header_name(self):
        report = validate_table(Table(['episode_number', ' '], [['1', 'a']]))
        assert 'empty header name at column 2' in report.errors

    def test_no_data_rows(self):
        report = validate_table(Table(['episode_number', 'name'], []))
        assert 'no data rows' in report.errors

    def test_width_mismatch(self):
        report = validate_table(Table(['episode_number', 'name'], [['1', 'a'], ['2']]))
        assert report.errors == ['row 2: 1 fields, expected 2']

    def test_duplicate_headers_warn(self):
        report = validate_table(Table(['name', 'name'], [['a', 'b']]))
        assert report.valid
        assert report.warnings == ["duplicate header 'name'"]

    def test_dropped_rows_warn(self):
        table = Table(['episode_number', 'name'], [['1', 'a']], dropped_rows=2)
        report = validate_table(table)
        assert report.valid
        assert '2 unrepairable row(s) dropped while parsing' in report.warnings
