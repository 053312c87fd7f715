#!/usr/bin/env python3
"""
Read-only analysis of an episode table: which episodes remain, and whether
the structure is sound enough to hand to TMDB-Import.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from episode_import.constants import EPISODE_COLUMN_CANDIDATES
from episode_import.table import Table
from episode_import.transform import parse_episode_number, resolve_column

logger = logging.getLogger(__name__)


@dataclass
class RowProblem:
    line: int   # 1-based, header is line 1
    value: str
    reason: str


@dataclass
class EpisodeAnalysis:
    episode_column: Optional[str]
    episodes: List[int] = field(default_factory=list)
    problems: List[RowProblem] = field(default_factory=list)

    @property
    def episode_range(self) -> Optional[Tuple[int, int]]:
        if not self.episodes:
            return None
        return self.episodes[0], self.episodes[-1]


@dataclass
class ValidationReport:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def remaining_episodes(table: Table) -> EpisodeAnalysis:
    """List the episode numbers still present, sorted, with unreadable rows"""
    index = resolve_column(table.headers, EPISODE_COLUMN_CANDIDATES)
    if index is None:
        logger.warning(f"No episode-number column in headers {table.headers}")
        return EpisodeAnalysis(episode_column=None)

    analysis = EpisodeAnalysis(episode_column=table.headers[index])
    for offset, row in enumerate(table.rows):
        line = offset + 2
        if len(row) <= index:
            analysis.problems.append(RowProblem(line, '', f"only {len(row)} columns"))
            continue
        number = parse_episode_number(row[index])
        if number is None:
            analysis.problems.append(RowProblem(line, row[index], 'not an integer'))
            continue
        analysis.episodes.append(number)

    analysis.episodes.sort()
    return analysis


def validate_table(table: Table) -> ValidationReport:
    report = ValidationReport()

    if not table.headers:
        report.errors.append('missing header row')
        return report

    for position, header in enumerate(table.headers):
        if not header.strip():
            report.errors.append(f"empty header name at column {position + 1}")

    duplicates = [h for h, count in Counter(table.headers).items() if count > 1 and h]
    for header in duplicates:
        report.warnings.append(f"duplicate header {header!r}")

    if not table.rows:
        report.errors.append('no data rows')

    for offset, row in enumerate(table.rows):
        if len(row) != len(table.headers):
            report.errors.append(
                f"row {offset + 1}: {len(row)} fields, expected {len(table.headers)}"
            )

    if table.dropped_rows:
        report.warnings.append(f"{table.dropped_rows} unrepairable row(s) dropped while parsing")

    return report
