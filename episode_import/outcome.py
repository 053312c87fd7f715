#!/usr/bin/env python3
"""
Turn a finished TMDB-Import run into a structured ImportOutcome

Classification rules are a data table evaluated in order; the first rule
whose markers appear in the captured output wins. Imported episodes are
recovered from free-form output by IMPORTED_EPISODE_PATTERNS, with a
best-effort bare-integer fallback.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from episode_import.constants import (
    CONNECTION_ERROR_MARKERS, FALLBACK_EPISODE_RANGE, FALLBACK_NUMBER_PATTERN,
    IMPORTED_EPISODE_PATTERNS, OUTPUT_EXCERPT_CHARS, SERVER_ERROR_MARKERS,
    TIMEOUT_MARKERS, USER_INTERRUPT_PATTERNS, USER_INTERRUPT_SIGNALS,
)
from episode_import.orchestrator import ProcessResult, ProcessState

logger = logging.getLogger(__name__)


class ErrorClassification(Enum):
    SUCCESS = 'success'
    USER_INTERRUPTED = 'user_interrupted'
    SERVER_ERROR = 'server_error'
    TIMEOUT = 'timeout'
    CONNECTION_ERROR = 'connection_error'
    PROCESS_SPAWN_FAILURE = 'process_spawn_failure'
    PROCESS_KILLED = 'process_killed'
    UNKNOWN_FAILURE = 'unknown_failure'


# (classification, markers, case_sensitive), checked in order on failed runs
TEXT_RULES: List[Tuple[ErrorClassification, List[str], bool]] = [
    (ErrorClassification.USER_INTERRUPTED, USER_INTERRUPT_PATTERNS, False),
    (ErrorClassification.SERVER_ERROR, SERVER_ERROR_MARKERS, True),
    (ErrorClassification.TIMEOUT, TIMEOUT_MARKERS, False),
    (ErrorClassification.CONNECTION_ERROR, CONNECTION_ERROR_MARKERS, True),
]

MESSAGES = {
    ErrorClassification.SUCCESS: 'TMDB import finished',
    ErrorClassification.USER_INTERRUPTED: 'The import was interrupted (browser closed or process stopped by the user)',
    ErrorClassification.SERVER_ERROR: 'The target server returned HTTP 500, retry later',
    ErrorClassification.TIMEOUT: 'The import timed out, check the network connection',
    ErrorClassification.CONNECTION_ERROR: 'Network connection failed',
    ErrorClassification.PROCESS_SPAWN_FAILURE: 'TMDB-Import could not be started',
    ErrorClassification.PROCESS_KILLED: 'The import was aborted',
    ErrorClassification.UNKNOWN_FAILURE: 'TMDB-Import exited with an error',
}


@dataclass(frozen=True)
class ImportOutcome:
    success: bool
    imported_record_numbers: Tuple[int, ...]
    error_classification: ErrorClassification
    raw_output_excerpt: str
    message: str = ''
    exit_code: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            'success': self.success,
            'importedRecordNumbers': list(self.imported_record_numbers),
            'errorClassification': self.error_classification.value,
            'rawOutputExcerpt': self.raw_output_excerpt,
            'message': self.message,
            'exitCode': self.exit_code,
        }


def _contains_any(text: str, markers: List[str], case_sensitive: bool) -> bool:
    if case_sensitive:
        return any(marker in text for marker in markers)
    lowered = text.lower()
    return any(marker.lower() in lowered for marker in markers)


def classify_result(result: ProcessResult) -> ErrorClassification:
    """Map a terminal process result to an error class (first match wins)"""
    if result.state is ProcessState.TIMED_OUT:
        return ErrorClassification.TIMEOUT
    if result.spawn_failed:
        return ErrorClassification.PROCESS_SPAWN_FAILURE
    if result.state is ProcessState.KILLED:
        return ErrorClassification.PROCESS_KILLED
    if result.state is ProcessState.COMPLETED and result.exit_code == 0:
        return ErrorClassification.SUCCESS

    if result.signal_name in USER_INTERRUPT_SIGNALS:
        return ErrorClassification.USER_INTERRUPTED

    text = '\n'.join(part for part in (result.error, result.stdout, result.stderr) if part)
    for classification, markers, case_sensitive in TEXT_RULES:
        if _contains_any(text, markers, case_sensitive):
            return classification

    return ErrorClassification.UNKNOWN_FAILURE


def parse_imported_episodes(output: str) -> List[int]:
    """
    Extract imported episode numbers from tool output.

    All patterns are applied and unioned. When none match, any bare integer
    in 1-999 is accepted instead (lossy: it may pick up unrelated numbers).
    """
    episodes = set()
    for pattern, _meaning in IMPORTED_EPISODE_PATTERNS:
        for match in pattern.finditer(output):
            episodes.add(int(match.group(1)))

    if not episodes:
        low, high = FALLBACK_EPISODE_RANGE
        for token in FALLBACK_NUMBER_PATTERN.findall(output):
            number = int(token)
            if low <= number <= high:
                episodes.add(number)
        if episodes:
            logger.warning(f"No episode markers in output; guessed from bare numbers: {sorted(episodes)}")

    return sorted(episodes)


def build_outcome(result: ProcessResult) -> ImportOutcome:
    classification = classify_result(result)
    success = classification is ErrorClassification.SUCCESS

    if success:
        imported = tuple(parse_imported_episodes(result.stdout))
        excerpt = result.stdout[:OUTPUT_EXCERPT_CHARS]
        message = f"{MESSAGES[classification]}: {len(imported)} episode(s) imported"
    else:
        imported = ()
        excerpt = '\n'.join(
            part[:OUTPUT_EXCERPT_CHARS // 2] for part in (result.stdout, result.stderr) if part
        )
        message = MESSAGES[classification]
        if result.error:
            message += f" ({result.error})"

    return ImportOutcome(
        success=success,
        imported_record_numbers=imported,
        error_classification=classification,
        raw_output_excerpt=excerpt,
        message=message,
        exit_code=result.exit_code,
    )
