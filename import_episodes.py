#!/usr/bin/env python3
"""
import_episodes.py - Prepare an episode CSV and submit it to TMDB-Import

Pipeline:
  1. [REPAIR]    Parse the CSV, re-joining rows split by embedded newlines
  2. [TRANSFORM] Delete already-marked episodes, clean titles, blank/remove columns
  3. [WRITE]     Overwrite the CSV in place
  4. [IMPORT]    Run TMDB-Import against the TMDb season page, auto-answering
                 its overwrite prompts, with a 10-minute budget
  5. [REPORT]    Classify the result and list the episodes it reported

Safety:
- Dry-run is the DEFAULT: the CSV is analysed, nothing is written or run
- Pass --execute to overwrite the CSV and start the import
- Hard gates: CSV must exist and be non-empty, TMDB-Import dir must exist
"""

import sys
import json
import asyncio
import logging
import argparse
from pathlib import Path
from typing import Optional, Set

from episode_import.config import load_config
from episode_import.constants import CONFLICT_RESPONSES
from episode_import.errors import ImportPrepError
from episode_import.pipeline import (
    ImportJob, platform_from_url, prepare_csv, run_import_job,
)
from episode_import.tmdb import TMDbClient
from episode_import.transform import (
    ColumnKind, PlatformKind, TitleCleanup, TransformRequest,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

COLUMN_CHOICES = [kind.value for kind in ColumnKind]


def parse_episode_list(text: str) -> Set[int]:
    """Parse '1,2,5-7' into {1, 2, 5, 6, 7}"""
    episodes = set()
    for part in (text or '').split(','):
        part = part.strip()
        if not part:
            continue
        if '-' in part:
            start, end = part.split('-', 1)
            low, high = int(start), int(end)
            if low > high:
                low, high = high, low
            episodes.update(range(low, high + 1))
        else:
            episodes.add(int(part))
    return episodes


def build_request(args: argparse.Namespace) -> TransformRequest:
    platform_adjustment = args.youku or platform_from_url(args.platform_url) is PlatformKind.YOUKU
    title_cleanup = None
    if args.title_marker:
        title_cleanup = TitleCleanup(marker_text=args.title_marker, column=args.title_column)

    return TransformRequest(
        episode_numbers=parse_episode_list(args.delete),
        platform_adjustment=platform_adjustment,
        title_cleanup=title_cleanup,
        columns_to_blank={ColumnKind(value) for value in args.blank},
        columns_to_remove={ColumnKind(value) for value in args.remove},
        flatten_overview=args.flatten_overview,
    )


def print_summary(report, dry_run: bool):
    """Print a human-readable summary of the prepare stage"""
    print("\n" + "=" * 60)
    print("DRY RUN SUMMARY (CSV not written, import not run)" if dry_run else "CSV PREPARED")
    print("=" * 60)
    print(f"  CSV:                 {report.csv_path}")
    print(f"  Rows before:         {report.original_row_count:5d}")
    print(f"  Rows after:          {report.processed_row_count:5d}")
    print(f"  Rows dropped (repair): {report.dropped_rows:3d}")
    removed = ', '.join(str(ep) for ep in report.removed_episodes) or '-'
    print(f"  Episodes removed:    {removed}")
    if report.transform.titles_cleaned:
        print(f"  Titles cleaned:      {report.transform.titles_cleaned:5d}")
    if report.transform.blanked_columns:
        print(f"  Columns blanked:     {', '.join(report.transform.blanked_columns)}")
    if report.transform.removed_columns:
        print(f"  Columns removed:     {', '.join(report.transform.removed_columns)}")
    print("=" * 60)
    if dry_run:
        print("\nTo execute, run again with --execute")


def print_tmdb_stats(tmdb_client: Optional[TMDbClient]):
    if tmdb_client is None:
        return
    cache_stats = tmdb_client.get_cache_stats()
    print(f"TMDb: {cache_stats['misses']} API queries, "
          f"{cache_stats['hits']} cache hits "
          f"({cache_stats['hit_rate']:.0f}% hit rate)")


def main():
    parser = argparse.ArgumentParser(
        description='Prepare an episode CSV and import it with TMDB-Import',
        epilog="""
SAFETY: Defaults to dry-run. You must pass --execute to write the CSV and run the import.

Examples:
  python import_episodes.py import.csv --tmdb-id 1399 --season 1 --delete 1-3
  python import_episodes.py import.csv --tmdb-id 1399 --season 1 --delete 5 --youku --execute
  python import_episodes.py import.csv --tmdb-id 1399 --season 2 --blank air_date --remove backdrop --execute
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('csv', type=Path, help='Episode CSV to prepare and import')
    parser.add_argument('--tmdb-id', type=int, help='TMDb show id (required with --execute)')
    parser.add_argument('--season', type=int, help='Season number (required with --execute)')
    parser.add_argument('--delete', default='', help="Episodes already done, e.g. '1,2,5-7'")
    parser.add_argument('--platform-url', default=None,
                        help='Source platform URL; youku.com enables the -1 numbering fix')
    parser.add_argument('--youku', action='store_true', help='Force the youku numbering fix')
    parser.add_argument('--title-marker', default=None,
                        help='Cut episode titles at the first occurrence of this text')
    parser.add_argument('--title-column', default=None, help='Column to clean (default: name/title)')
    parser.add_argument('--blank', action='append', default=[], choices=COLUMN_CHOICES,
                        help='Empty a column but keep its header (repeatable)')
    parser.add_argument('--remove', action='append', default=[], choices=COLUMN_CHOICES,
                        help='Remove a column entirely (repeatable)')
    parser.add_argument('--flatten-overview', action='store_true',
                        help='Collapse line breaks in the overview column')
    parser.add_argument('--conflict-action', choices=CONFLICT_RESPONSES, default=None,
                        help='Answer sent to overwrite prompts (default: from config, else w)')
    parser.add_argument('--tool-dir', type=Path, default=None,
                        help='TMDB-Import directory (default: from config)')
    parser.add_argument('--config', type=Path, default=Path('config_external.yaml'),
                        help='Configuration file (default: config_external.yaml)')
    parser.add_argument('--skip-import', action='store_true',
                        help='With --execute: write the CSV but do not run TMDB-Import')
    parser.add_argument('--json', action='store_true', help='Print the result as JSON')
    parser.add_argument('--execute', action='store_true',
                        help='Write the CSV and run the import (default is dry-run)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    dry_run = not args.execute
    config = load_config(args.config)
    try:
        request = build_request(args)
    except ValueError:
        parser.error(f"--delete must look like '1,2,5-7', got {args.delete!r}")

    try:
        if dry_run or args.skip_import:
            report = prepare_csv(args.csv, request, dry_run=dry_run)
            if args.json:
                print(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
            else:
                print_summary(report, dry_run)
            return 0

        if args.tmdb_id is None or args.season is None:
            logger.error("--tmdb-id and --season are required to run the import")
            return 1

        job = ImportJob.for_season(
            csv_path=args.csv,
            tool_dir=args.tool_dir or config.tmdb_import_path,
            tmdb_id=args.tmdb_id,
            season=args.season,
            conflict_response=args.conflict_action or config.conflict_action,
            language=config.tmdb_language,
        )

        tmdb_client = None
        if config.tmdb_api_key:
            tmdb_client = TMDbClient(config.tmdb_api_key, config.cache_path, config.tmdb_language)

        import_report = asyncio.run(run_import_job(job, request, config, tmdb_client))

    except ImportPrepError as e:
        logger.error(str(e))
        return 1

    outcome = import_report.outcome
    if args.json:
        print(json.dumps(import_report.to_dict(), ensure_ascii=False, indent=2))
    else:
        print_summary(import_report.prepare, dry_run=False)
        print(f"\nImport: {outcome.error_classification.value} - {outcome.message}")
        if import_report.signals_sent:
            print(f"Signals sent: {', '.join(import_report.signals_sent)}")
        if outcome.imported_record_numbers:
            print(f"Episodes reported: {', '.join(str(ep) for ep in outcome.imported_record_numbers)}")
        print_tmdb_stats(tmdb_client)

    return 0 if outcome.success else 1


if __name__ == '__main__':
    sys.exit(main())
