#!/usr/bin/env python3
"""
End-to-end import job: repair CSV -> transform -> overwrite -> run TMDB-Import

Hard gates (raised as ImportPrepError before anything is spawned):
- CSV file must exist and be non-empty
- TMDB-Import directory must exist and be a directory
- Conflict response must be w, y or n
- Target season must exist on TMDb (only checked when an API key is set)

After spawn nothing is raised: the caller always gets an ImportOutcome.

The parse -> transform -> serialize sequence overwrites csv_path in place
without locking; callers must not run two jobs on the same file at once.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from episode_import.config import ImportConfig
from episode_import.constants import (
    CONFLICT_RESPONSES, DEFAULT_TMDB_LANGUAGE, TMDB_SEASON_URL,
)
from episode_import.errors import (
    CsvFileNotFound, EmptyCsvFile, InvalidConflictResponse, SeasonNotFound,
    ToolDirectoryNotFound,
)
from episode_import.orchestrator import ProcessSession
from episode_import.outcome import ImportOutcome, build_outcome
from episode_import.table import Table, parse_table, serialize_table
from episode_import.tmdb import TMDbClient
from episode_import.transform import (
    PlatformKind, TransformRequest, TransformResult, transform,
)

logger = logging.getLogger(__name__)


@dataclass
class ImportJob:
    csv_path: Path
    tool_dir: Path
    target_reference: str
    conflict_response: str = 'w'
    tmdb_id: Optional[int] = None
    season: Optional[int] = None

    @classmethod
    def for_season(
        cls,
        csv_path: Path,
        tool_dir: Path,
        tmdb_id: int,
        season: int,
        conflict_response: str = 'w',
        language: str = DEFAULT_TMDB_LANGUAGE,
    ) -> 'ImportJob':
        return cls(
            csv_path=Path(csv_path),
            tool_dir=Path(tool_dir),
            target_reference=build_target_reference(tmdb_id, season, language),
            conflict_response=conflict_response,
            tmdb_id=tmdb_id,
            season=season,
        )


@dataclass
class PrepareReport:
    csv_path: Path
    removed_episodes: List[int]
    original_row_count: int
    processed_row_count: int
    dropped_rows: int
    written: bool
    transform: TransformResult

    def to_dict(self) -> dict:
        return {
            'csvPath': str(self.csv_path),
            'removedEpisodes': self.removed_episodes,
            'originalRowCount': self.original_row_count,
            'processedRowCount': self.processed_row_count,
            'droppedRows': self.dropped_rows,
            'written': self.written,
        }


@dataclass
class ImportReport:
    outcome: ImportOutcome
    prepare: Optional[PrepareReport] = None
    signals_sent: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        payload = self.outcome.to_dict()
        payload['signalsSent'] = list(self.signals_sent)
        if self.prepare is not None:
            payload['rowsRemoved'] = len(self.prepare.removed_episodes)
            payload['rowsRetained'] = self.prepare.processed_row_count
            payload['prepare'] = self.prepare.to_dict()
        return payload


def build_target_reference(tmdb_id: int, season: int, language: str = DEFAULT_TMDB_LANGUAGE) -> str:
    return TMDB_SEASON_URL.format(tmdb_id=tmdb_id, season=season, language=language)


def platform_from_url(url: Optional[str]) -> PlatformKind:
    """Detect which platform's numbering a scraped CSV follows"""
    if url and 'youku.com' in url.lower():
        return PlatformKind.YOUKU
    return PlatformKind.GENERIC


def load_table(csv_path: Path) -> Table:
    """Read and repair a CSV file; missing or empty files are hard errors"""
    csv_path = Path(csv_path)
    if not csv_path.is_file():
        raise CsvFileNotFound(csv_path)

    text = csv_path.read_text(encoding='utf-8-sig')
    if not text.strip():
        raise EmptyCsvFile(csv_path)

    table = parse_table(text)
    logger.info(f"Loaded {csv_path.name}: {len(table.headers)} columns, {len(table.rows)} rows")
    return table


def prepare_csv(csv_path: Path, request: TransformRequest, dry_run: bool = False) -> PrepareReport:
    """
    Repair and transform a CSV file, overwriting it in place.

    With dry_run=True the file is analysed but left untouched.
    """
    csv_path = Path(csv_path)
    table = load_table(csv_path)
    result = transform(table, request)

    written = False
    if not dry_run:
        csv_path.write_text(serialize_table(result.table), encoding='utf-8')
        written = True
        logger.info(
            f"Wrote {csv_path}: {result.original_row_count} -> {result.retained_row_count} rows"
        )
    else:
        logger.info(f"[DRY RUN] {csv_path}: would remove episodes {result.removed_episodes}")

    return PrepareReport(
        csv_path=csv_path,
        removed_episodes=result.removed_episodes,
        original_row_count=result.original_row_count,
        processed_row_count=result.retained_row_count,
        dropped_rows=table.dropped_rows,
        written=written,
        transform=result,
    )


def validate_job(job: ImportJob):
    if job.conflict_response not in CONFLICT_RESPONSES:
        raise InvalidConflictResponse(job.conflict_response)

    csv_path = Path(job.csv_path)
    if not csv_path.is_file():
        raise CsvFileNotFound(csv_path)
    if csv_path.stat().st_size == 0:
        raise EmptyCsvFile(csv_path)

    tool_dir = Path(job.tool_dir)
    if not tool_dir.exists():
        raise ToolDirectoryNotFound(tool_dir)
    if not tool_dir.is_dir():
        raise ToolDirectoryNotFound(tool_dir, reason='is not a directory')


def check_season(job: ImportJob, client: Optional[TMDbClient]):
    """Refuse a season TMDb says is missing; unreachable API fails open"""
    if client is None or job.tmdb_id is None or job.season is None:
        return
    exists = client.season_exists(job.tmdb_id, job.season)
    if exists is False:
        raise SeasonNotFound(job.tmdb_id, job.season)
    if exists is None:
        logger.warning(f"Could not verify season {job.season} of show {job.tmdb_id}; continuing")


async def run_import_job(
    job: ImportJob,
    request: Optional[TransformRequest] = None,
    config: Optional[ImportConfig] = None,
    tmdb_client: Optional[TMDbClient] = None,
) -> ImportReport:
    """Validate, prepare the CSV, run TMDB-Import and classify the result"""
    config = config or ImportConfig()

    validate_job(job)
    check_season(job, tmdb_client)

    prepare = None
    if request is not None:
        prepare = prepare_csv(job.csv_path, request)

    session = ProcessSession(
        config.tool_command,
        job.target_reference,
        job.tool_dir,
        conflict_response=job.conflict_response,
        timeout=config.timeout_seconds,
        kill_grace=config.kill_grace_seconds,
    )
    result = await session.run()
    outcome = build_outcome(result)

    if outcome.success:
        logger.info(f"Import finished; episodes reported: {list(outcome.imported_record_numbers)}")
    else:
        logger.error(f"Import failed ({outcome.error_classification.value}): {outcome.message}")

    return ImportReport(outcome=outcome, prepare=prepare, signals_sent=list(session.signals_sent))
