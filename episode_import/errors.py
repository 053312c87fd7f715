#!/usr/bin/env python3
"""
Hard errors raised before the external import tool is spawned.

Anything that goes wrong after spawn is reported as an ImportOutcome instead.
"""

from pathlib import Path
from typing import Optional


class ImportPrepError(Exception):
    """Base class for errors that stop a job before the tool runs"""


class CsvFileNotFound(ImportPrepError):
    def __init__(self, path: Path):
        super().__init__(f"CSV file not found: {path}")
        self.path = path


class EmptyCsvFile(ImportPrepError):
    def __init__(self, path: Path):
        super().__init__(f"CSV file is empty: {path}")
        self.path = path


class ToolDirectoryNotFound(ImportPrepError):
    def __init__(self, path: Path, reason: str = "does not exist"):
        super().__init__(f"TMDB-Import directory {reason}: {path}")
        self.path = path


class InvalidConflictResponse(ImportPrepError):
    def __init__(self, value: str):
        super().__init__(f"Conflict response must be one of w/y/n, got {value!r}")
        self.value = value


class SeasonNotFound(ImportPrepError):
    def __init__(self, tmdb_id: int, season: int, detail: Optional[str] = None):
        message = f"TMDb reports no season {season} for show {tmdb_id}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)
        self.tmdb_id = tmdb_id
        self.season = season
