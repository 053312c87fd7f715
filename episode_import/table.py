#!/usr/bin/env python3
"""
Robust CSV table parser and serializer

The parser repairs logical rows that were split across physical lines by an
embedded newline, using only field-count matching:

1. Each physical line is appended to a repair buffer (joined with one space)
2. Exact field count      -> commit the row, clear the buffer
3. Too few fields         -> keep accumulating
4. Too many fields        -> the buffer holds two logical rows; split at the
                             start of the next row (<int>,<name>,<YYYY-MM-DD>,)
                             or discard the whole buffer if that fails

Repair is LOSSY: a buffer that cannot be reconciled is dropped
without raising. Table.dropped_rows counts how many buffers were discarded.

A buffer that ends inside an open quote is a quoted embedded newline and is
joined to the next line with a newline, which keeps parse(serialize(t)) == t.
If the quote never closes (overflow with no boundary, or end of input), the
buffer is cut back to its first exact-count parse, that row is committed and
the lines after it are parsed again.

A boundary split whose remainder is already a complete row commits both rows.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from episode_import.constants import ROW_BOUNDARY_PATTERN
from episode_import.fields import scan_line

logger = logging.getLogger(__name__)


@dataclass
class Table:
    """Header row plus data rows; every committed row has len(headers) fields"""
    headers: List[str]
    rows: List[List[str]]
    # Repair buffers discarded while parsing (not part of equality)
    dropped_rows: int = field(default=0, compare=False)

    def copy(self) -> 'Table':
        return Table(
            headers=list(self.headers),
            rows=[list(row) for row in self.rows],
            dropped_rows=self.dropped_rows,
        )


def _physical_lines(text: str) -> List[str]:
    """Split on LF, dropping the CR of CRLF line endings"""
    return [line[:-1] if line.endswith('\r') else line for line in text.split('\n')]


def _split_at_boundary(buffer: str, expected: int) -> Optional[Tuple[List[str], str]]:
    """
    Find where a second logical row starts inside an overflowing buffer.

    Returns (committed_fields, remainder) for the first boundary whose prefix
    parses to exactly `expected` fields, or None.
    """
    pos = 1  # a boundary at offset 0 is just the start of this row
    while True:
        match = ROW_BOUNDARY_PATTERN.search(buffer, pos)
        if match is None:
            return None

        head = buffer[:match.start()].rstrip()
        candidates = [head]
        if head.endswith(','):
            candidates.append(head[:-1])

        for candidate in candidates:
            fields, open_quote = scan_line(candidate)
            if len(fields) == expected and not open_quote:
                return fields, buffer[match.start():]

        pos = match.start() + 1


def parse_table(text: str) -> Table:
    """
    Parse full CSV text into a Table, repairing split rows.

    Never raises for malformed rows; unreconcilable buffers are dropped.
    """
    lines = _physical_lines(text)

    # Header: first non-blank line (continued while a quote is open)
    index = 0
    while index < len(lines) and not lines[index].strip():
        index += 1
    if index == len(lines):
        return Table(headers=[], rows=[])

    header_text = lines[index]
    headers, open_quote = scan_line(header_text)
    index += 1
    while open_quote and index < len(lines):
        header_text += '\n' + lines[index]
        headers, open_quote = scan_line(header_text)
        index += 1

    expected = len(headers)
    rows: List[List[str]] = []
    dropped = 0
    queue = deque(enumerate(lines[index:], start=index + 1))
    buffer = ''
    open_quote = False
    # First exact-count parse of a buffer still inside a quote, and the
    # lines appended after it; committed if the quote turns out to be stray
    held: Optional[List[str]] = None
    held_tail: List[Tuple[int, str]] = []

    def release_held(reason: str):
        nonlocal buffer, open_quote, held, held_tail
        logger.warning(f"Unbalanced quote in row {held[0]!r} ({reason}); committed it as-is")
        rows.append(held)
        queue.extendleft(reversed(held_tail))
        buffer, open_quote, held, held_tail = '', False, None, []

    while queue or (buffer and held is not None):
        if not queue:
            release_held('end of input')
            continue

        line_number, line = queue.popleft()
        if not buffer and not line.strip():
            continue

        if buffer:
            buffer += ('\n' if open_quote else ' ') + line
        else:
            buffer = line
        if held is not None:
            held_tail.append((line_number, line))

        fields, open_quote = scan_line(buffer)

        if len(fields) < expected:
            continue

        if len(fields) == expected:
            if not open_quote:
                rows.append(fields)
                buffer, held, held_tail = '', None, []
            elif held is None:
                held = fields
            continue

        # Overflow: two logical rows merged into one buffer
        split = _split_at_boundary(buffer, expected)
        if split is None:
            if held is not None:
                release_held(f"overflow at line {line_number}")
                continue
            logger.warning(
                f"Dropped unrepairable row ending at line {line_number}: "
                f"{len(fields)} fields, expected {expected} ({buffer[:80]!r})"
            )
            dropped += 1
            buffer, open_quote = '', False
            continue

        committed, remainder = split
        logger.debug(f"Split merged row at line {line_number}; remainder {remainder[:40]!r}")
        rows.append(committed)
        buffer, held, held_tail = remainder, None, []
        fields, open_quote = scan_line(buffer)
        if len(fields) == expected:
            if not open_quote:
                rows.append(fields)
                buffer = ''
            else:
                held = fields

    if buffer:
        fields, open_quote = scan_line(buffer)
        if len(fields) == expected and not open_quote:
            rows.append(fields)
        else:
            logger.warning(
                f"Dropped incomplete final row: {len(fields)} fields, "
                f"expected {expected} ({buffer[:80]!r})"
            )
            dropped += 1

    if dropped:
        logger.info(f"Parsed {len(rows)} rows, dropped {dropped} unrepairable buffer(s)")

    return Table(headers=headers, rows=rows, dropped_rows=dropped)


def format_field(value: Optional[str]) -> str:
    """Quote a field when it holds a delimiter, quote, line break or edge whitespace"""
    if value is None:
        return ''
    value = str(value)
    needs_quotes = (
        ',' in value or '"' in value or '\n' in value or '\r' in value
        or value != value.strip()
    )
    if needs_quotes:
        return '"' + value.replace('"', '""') + '"'
    return value


def _format_row(fields: List[str]) -> str:
    # A lone empty field would otherwise serialize to a blank line
    if len(fields) == 1 and not fields[0]:
        return '""'
    return ','.join(format_field(value) for value in fields)


def serialize_table(table: Table) -> str:
    """Render a Table as CSV text: comma-joined fields, newline-joined rows"""
    lines = [_format_row(table.headers)]
    lines.extend(_format_row(row) for row in table.rows)
    return '\n'.join(lines)
