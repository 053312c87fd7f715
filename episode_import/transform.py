#!/usr/bin/env python3
"""
Episode deletion and column redaction for parsed episode tables

Pure operation: takes a Table and a TransformRequest, returns a new Table plus
a record of what changed. No I/O.

Order of operations:
1. Resolve the episode-number column (missing -> deletion is a no-op)
2. Compute the effective deletion set (platform numbering quirks applied)
3. Decide each row: DELETE / RETAIN / RETAIN_UNMODIFIED
4. Title cleanup on RETAIN rows
5. Overview flattening, column blanking (header kept)
6. Column removal (header and cells spliced out, descending index order)

FAIL-OPEN: whenever a row or column cannot be identified confidently, it is kept.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Set

from fuzzywuzzy import fuzz

from episode_import.constants import (
    COLUMN_KIND_CANDIDATES, EPISODE_COLUMN_CANDIDATES, FUZZY_HEADER_THRESHOLD,
    OVERVIEW_COLUMN_CANDIDATES, TITLE_COLUMN_CANDIDATES,
)
from episode_import.table import Table

logger = logging.getLogger(__name__)


class ColumnKind(Enum):
    """Semantic column kinds that can be blanked or removed"""
    AIR_DATE = 'air_date'
    RUNTIME = 'runtime'
    BACKDROP = 'backdrop'

    @property
    def candidates(self) -> List[str]:
        return COLUMN_KIND_CANDIDATES[self.value]


class PlatformKind(Enum):
    """Source platform whose episode numbering may need correcting"""
    GENERIC = 'generic'
    # Labels episodes one higher than the catalog's numbering
    YOUKU = 'youku'


class RowDecision(Enum):
    DELETE = 'delete'
    RETAIN = 'retain'
    # Episode number unreadable (short row, non-integer cell): keep as-is
    RETAIN_UNMODIFIED = 'retain_unmodified'


@dataclass
class TitleCleanup:
    """Cut the episode title at the first occurrence of marker_text"""
    marker_text: str
    # Header to clean; defaults to the first title-like column
    column: Optional[str] = None


@dataclass
class TransformRequest:
    episode_numbers: Set[int] = field(default_factory=set)
    platform_adjustment: bool = False
    title_cleanup: Optional[TitleCleanup] = None
    columns_to_blank: Set[ColumnKind] = field(default_factory=set)
    columns_to_remove: Set[ColumnKind] = field(default_factory=set)
    flatten_overview: bool = False

    @property
    def platform(self) -> PlatformKind:
        return PlatformKind.YOUKU if self.platform_adjustment else PlatformKind.GENERIC


@dataclass
class TransformResult:
    table: Table
    removed_episodes: List[int]
    effective_deletions: Set[int]
    original_row_count: int
    titles_cleaned: int = 0
    blanked_columns: List[str] = field(default_factory=list)
    removed_columns: List[str] = field(default_factory=list)

    @property
    def retained_row_count(self) -> int:
        return len(self.table.rows)


def resolve_column(headers: List[str], candidates: Iterable[str], fuzzy: bool = False) -> Optional[int]:
    """
    Find a column index by candidate names, in candidate priority order.

    For each candidate an exact (case-insensitive) header match beats a
    substring match. With fuzzy=True, a fuzz.ratio match is tried last.
    """
    lowered = [h.strip().lower() for h in headers]
    candidates = [c.lower() for c in candidates]

    for candidate in candidates:
        for index, header in enumerate(lowered):
            if header == candidate:
                return index
        for index, header in enumerate(lowered):
            if header and candidate in header:
                return index

    if fuzzy:
        best_index, best_score = None, 0
        for candidate in candidates:
            for index, header in enumerate(lowered):
                score = fuzz.ratio(candidate, header) if header else 0
                if score > best_score:
                    best_index, best_score = index, score
        if best_score >= FUZZY_HEADER_THRESHOLD:
            logger.debug(f"Fuzzy header match: {headers[best_index]!r} (score {best_score})")
            return best_index

    return None


def resolve_kind_columns(headers: List[str], kind: ColumnKind) -> List[int]:
    """Every column matched by any candidate name of a kind (used for blanking)"""
    indices: List[int] = []
    for candidate in kind.candidates:
        index = resolve_column(headers, [candidate])
        if index is not None and index not in indices:
            indices.append(index)
    if not indices:
        index = resolve_column(headers, kind.candidates, fuzzy=True)
        if index is not None:
            indices.append(index)
    return indices


def adjust_for_platform(requested: Iterable[int], platform: PlatformKind) -> Set[int]:
    """Map requested episode numbers onto the CSV's numbering for a platform"""
    requested = set(requested)
    if platform is PlatformKind.YOUKU and requested:
        return {episode - 1 for episode in requested if episode - 1 > 0}
    return requested


def parse_episode_number(value: str) -> Optional[int]:
    try:
        return int(value.strip())
    except (ValueError, AttributeError):
        return None


def decide_row(row: List[str], episode_index: Optional[int], deletions: Set[int]) -> RowDecision:
    if episode_index is None:
        return RowDecision.RETAIN
    if len(row) <= episode_index:
        return RowDecision.RETAIN_UNMODIFIED
    number = parse_episode_number(row[episode_index])
    if number is None:
        return RowDecision.RETAIN_UNMODIFIED
    return RowDecision.DELETE if number in deletions else RowDecision.RETAIN


def clean_title(value: str, marker: str) -> str:
    """Keep the text before the marker's first occurrence"""
    position = value.find(marker)
    if position < 0:
        return value
    if position == 0:
        return ''
    return value[:position].strip()


def flatten_text(value: str) -> str:
    return re.sub(r'\s+', ' ', value.replace('\r', ' ').replace('\n', ' ')).strip()


def transform(table: Table, request: TransformRequest) -> TransformResult:
    """Apply deletions and column rules to a copy of the table"""
    result_table = table.copy()
    headers = result_table.headers

    # === Deletion ===
    deletions = adjust_for_platform(request.episode_numbers, request.platform)
    if deletions != set(request.episode_numbers):
        logger.info(
            f"Platform adjustment ({request.platform.value}): "
            f"{sorted(request.episode_numbers)} -> {sorted(deletions)}"
        )

    episode_index = resolve_column(headers, EPISODE_COLUMN_CANDIDATES)
    if episode_index is None and deletions:
        logger.warning(f"No episode-number column in headers {headers}; nothing deleted")

    title_index = None
    marker = request.title_cleanup.marker_text if request.title_cleanup else ''
    if marker:
        names = [request.title_cleanup.column] if request.title_cleanup.column else TITLE_COLUMN_CANDIDATES
        title_index = resolve_column(headers, names)
        if title_index is None:
            logger.warning(f"No title column for cleanup in headers {headers}")

    kept: List[List[str]] = []
    removed: Set[int] = set()
    titles_cleaned = 0

    for row in result_table.rows:
        decision = decide_row(row, episode_index, deletions)

        if decision is RowDecision.DELETE:
            removed.add(int(row[episode_index].strip()))
            continue

        if decision is RowDecision.RETAIN and title_index is not None and title_index < len(row):
            if marker in row[title_index]:
                row[title_index] = clean_title(row[title_index], marker)
                titles_cleaned += 1

        kept.append(row)

    result_table.rows = kept

    # === Column rewrites (header and position kept) ===
    if request.flatten_overview:
        overview_index = resolve_column(headers, OVERVIEW_COLUMN_CANDIDATES)
        if overview_index is not None:
            for row in kept:
                if overview_index < len(row):
                    row[overview_index] = flatten_text(row[overview_index])

    blanked: List[str] = []
    for kind in sorted(request.columns_to_blank, key=lambda k: k.value):
        indices = resolve_kind_columns(headers, kind)
        if not indices:
            logger.info(f"No {kind.value} column to blank")
        for index in indices:
            for row in kept:
                if index < len(row):
                    row[index] = ''
            blanked.append(headers[index])
            logger.debug(f"Blanked {kind.value} column {headers[index]!r} (index {index})")

    # === Column removal (descending index so earlier indices stay valid) ===
    removal_indices: List[int] = []
    for kind in sorted(request.columns_to_remove, key=lambda k: k.value):
        index = resolve_column(headers, kind.candidates, fuzzy=True)
        if index is None:
            logger.info(f"No {kind.value} column to remove")
        elif index not in removal_indices:
            removal_indices.append(index)

    removed_columns: List[str] = []
    for index in sorted(removal_indices, reverse=True):
        removed_columns.append(headers.pop(index))
        for row in kept:
            if index < len(row):
                del row[index]
    removed_columns.reverse()

    if removed:
        logger.info(f"Deleted episodes: {sorted(removed)}")

    return TransformResult(
        table=result_table,
        removed_episodes=sorted(removed),
        effective_deletions=deletions,
        original_row_count=len(table.rows),
        titles_cleaned=titles_cleaned,
        blanked_columns=blanked,
        removed_columns=removed_columns,
    )
