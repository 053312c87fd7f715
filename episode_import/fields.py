#!/usr/bin/env python3
"""
Quote-aware field splitter for a single physical CSV line

Rules:
- A double quote toggles "inside quotes" mode
- A comma separates fields only outside quotes
- Two consecutive quotes inside quotes emit one literal quote (mode unchanged)
- Whitespace around each field is trimmed; whitespace inside quotes is kept

Malformed quoting never raises: the mode simply stays toggled to end of line.
"""

from typing import List, Tuple


def _finish_field(chars: List[str], quoted: List[bool]) -> str:
    """Join a field, trimming only whitespace that was outside quotes"""
    start, end = 0, len(chars)
    while start < end and chars[start].isspace() and not quoted[start]:
        start += 1
    while end > start and chars[end - 1].isspace() and not quoted[end - 1]:
        end -= 1
    return ''.join(chars[start:end])


def scan_line(line: str) -> Tuple[List[str], bool]:
    """
    Split one line into fields.

    Returns:
        (fields, in_quotes) where in_quotes is True when the line ended
        inside an unterminated quoted section.
    """
    fields: List[str] = []
    chars: List[str] = []
    quoted: List[bool] = []
    in_quotes = False
    i = 0
    n = len(line)

    while i < n:
        char = line[i]

        if char == '"':
            if in_quotes and i + 1 < n and line[i + 1] == '"':
                # Escaped quote
                chars.append('"')
                quoted.append(True)
                i += 2
                continue
            in_quotes = not in_quotes
        elif char == ',' and not in_quotes:
            fields.append(_finish_field(chars, quoted))
            chars, quoted = [], []
        else:
            chars.append(char)
            quoted.append(in_quotes)
        i += 1

    fields.append(_finish_field(chars, quoted))
    return fields, in_quotes


def split_line(line: str) -> List[str]:
    """Return the unquoted field values of one physical line"""
    fields, _ = scan_line(line)
    return fields
