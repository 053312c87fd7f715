#!/usr/bin/env python3
"""
Test suite for episode_import/outcome.py — classification and episode extraction
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from episode_import.orchestrator import ProcessResult, ProcessState
from episode_import.outcome import (
    ErrorClassification, build_outcome, classify_result, parse_imported_episodes,
)


def failed(stdout='', stderr='', exit_code=1, signal_name=None, error=None):
    return ProcessResult(
        state=ProcessState.FAILED, stdout=stdout, stderr=stderr,
        exit_code=exit_code, signal_name=signal_name,
        error=error or f"exited with code {exit_code}",
    )


class TestParseImportedEpisodes:
    """Episode numbers recovered from free-form tool output"""

    @pytest.mark.parametrize("output,expected", [
        ("Episode 3 imported", [3]),
        ("第5集已导入", [5]),
        ("S01E07", [7]),
        ("Processed 12 rows", [12]),
        ("导入第1集 导入第1集", [1]),
        ("成功导入 4", [4]),
        ("Imported episode 9", [9]),
        ("共处理12个文件", [12]),
        ("完成：8", [8]),
    ])
    def test_known_formats(self, output, expected):
        assert parse_imported_episodes(output) == expected

    def test_union_sorted_unique(self):
        output = "Episode 10 done\n第2集 ok\nS01E02\nEpisode 10 done"
        assert parse_imported_episodes(output) == [2, 10]

    def test_fallback_ignores_out_of_range_numbers(self):
        """Bare-number fallback only accepts 1-999"""
        assert parse_imported_episodes("status 0 took 2048 ms for 7") == [7]

    def test_fallback_not_used_when_patterns_match(self):
        assert parse_imported_episodes("Episode 3 of 24") == [3]

    def test_nothing_found(self):
        assert parse_imported_episodes("all done") == []


class TestClassification:
    """Ordered rules, first match wins"""

    def test_zero_exit_is_success(self):
        result = ProcessResult(state=ProcessState.COMPLETED, stdout="timeout retried", exit_code=0)
        assert classify_result(result) is ErrorClassification.SUCCESS

    def test_timed_out_state(self):
        result = ProcessResult(state=ProcessState.TIMED_OUT, error="timed out after 600s")
        assert classify_result(result) is ErrorClassification.TIMEOUT

    def test_spawn_failure(self):
        result = ProcessResult(state=ProcessState.FAILED, spawn_failed=True, error="spawn failed")
        assert classify_result(result) is ErrorClassification.PROCESS_SPAWN_FAILURE

    def test_killed(self):
        result = ProcessResult(state=ProcessState.KILLED, error="aborted by caller")
        assert classify_result(result) is ErrorClassification.PROCESS_KILLED

    def test_interrupt_phrase(self):
        result = failed(stderr="selenium: chrome not reachable")
        assert classify_result(result) is ErrorClassification.USER_INTERRUPTED

    def test_interrupt_signal(self):
        result = failed(exit_code=-2, signal_name="SIGINT", error="terminated by SIGINT")
        assert classify_result(result) is ErrorClassification.USER_INTERRUPTED

    def test_interrupt_beats_server_error(self):
        result = failed(stdout="HTTP 500", stderr="browser closed")
        assert classify_result(result) is ErrorClassification.USER_INTERRUPTED

    def test_server_error(self):
        assert classify_result(failed(stderr="got HTTP 500 from server")) is ErrorClassification.SERVER_ERROR

    def test_timeout_text(self):
        assert classify_result(failed(stderr="ReadTimeout: timeout")) is ErrorClassification.TIMEOUT

    def test_connection_error(self):
        result = failed(stderr="requests.exceptions.ConnectionError: Max retries")
        assert classify_result(result) is ErrorClassification.CONNECTION_ERROR

    def test_unknown_failure(self):
        assert classify_result(failed(stderr="KeyError: 'x'")) is ErrorClassification.UNKNOWN_FAILURE


class TestBuildOutcome:
    """Immutable outcome record"""

    def test_success_outcome(self):
        result = ProcessResult(state=ProcessState.COMPLETED, stdout="Episode 2\nEpisode 1\n", exit_code=0)
        outcome = build_outcome(result)
        assert outcome.success is True
        assert outcome.imported_record_numbers == (1, 2)
        assert outcome.error_classification is ErrorClassification.SUCCESS
        assert "Episode 2" in outcome.raw_output_excerpt

    def test_failure_outcome_has_no_episodes(self):
        outcome = build_outcome(failed(stdout="Episode 1", stderr="HTTP 500"))
        assert outcome.success is False
        assert outcome.imported_record_numbers == ()
        assert outcome.error_classification is ErrorClassification.SERVER_ERROR
        assert "HTTP 500" in outcome.raw_output_excerpt

    def test_outcome_is_frozen(self):
        outcome = build_outcome(failed())
        with pytest.raises(AttributeError):
            outcome.success = True

    def test_to_dict(self):
        result = ProcessResult(state=ProcessState.COMPLETED, stdout="第3集", exit_code=0)
        payload = build_outcome(result).to_dict()
        assert payload['importedRecordNumbers'] == [3]
        assert payload['errorClassification'] == 'success'
