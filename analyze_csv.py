#!/usr/bin/env python3
"""
analyze_csv.py - Report which episodes remain in a CSV and check its structure

Read-only. Never writes the CSV.

Usage:
  python analyze_csv.py import.csv            # episodes + validation summary
  python analyze_csv.py import.csv --json     # same, as JSON
"""

import sys
import json
import logging
import argparse
from pathlib import Path

from episode_import.analysis import remaining_episodes, validate_table
from episode_import.errors import ImportPrepError
from episode_import.pipeline import load_table

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description='Analyze an episode CSV (read-only)')
    parser.add_argument('csv', type=Path, help='Episode CSV to analyze')
    parser.add_argument('--json', action='store_true', help='Print the report as JSON')
    args = parser.parse_args()

    try:
        table = load_table(args.csv)
    except ImportPrepError as e:
        logger.error(str(e))
        return 1

    analysis = remaining_episodes(table)
    validation = validate_table(table)

    if args.json:
        print(json.dumps({
            'episodeColumn': analysis.episode_column,
            'remainingEpisodes': analysis.episodes,
            'problems': [vars(p) for p in analysis.problems[:10]],
            'valid': validation.valid,
            'errors': validation.errors,
            'warnings': validation.warnings,
        }, ensure_ascii=False, indent=2))
        return 0 if validation.valid else 1

    print("\n" + "=" * 60)
    print(f"CSV ANALYSIS: {args.csv}")
    print("=" * 60)
    print(f"  Columns:             {len(table.headers):5d}")
    print(f"  Data rows:           {len(table.rows):5d}")
    print(f"  Episode column:      {analysis.episode_column or '(not found)'}")
    if analysis.episode_range:
        low, high = analysis.episode_range
        print(f"  Episodes:            {len(analysis.episodes)} ({low}-{high})")
        print(f"  Remaining:           {', '.join(str(ep) for ep in analysis.episodes)}")
    for problem in analysis.problems[:10]:
        print(f"  ! line {problem.line}: {problem.reason} {problem.value!r}")
    print(f"  Structure:           {'OK' if validation.valid else 'INVALID'}")
    for error in validation.errors:
        print(f"  ERROR:   {error}")
    for warning in validation.warnings:
        print(f"  WARNING: {warning}")
    print("=" * 60)

    return 0 if validation.valid else 1


if __name__ == '__main__':
    sys.exit(main())
