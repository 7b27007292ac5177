"""Unit tests for CLI exit codes and failure reporting."""

from __future__ import annotations

import json

import pytest

from modelship.cli.utils import ExitCode, get_exit_code_from_exception, report_failure
from modelship.errors import (
    ConfigurationError,
    DescriptorNotFoundError,
    EmptyDescriptorError,
    PartialPromotionError,
    PushConflictError,
    ReviewAssignmentError,
    ReviewGatewayError,
    ReviewRequestCreationError,
    StateStoreError,
    StepFailedError,
    TransportError,
)
from modelship.schemas.promotion import PromotionOutcome, PromotionRecord


class TestExitCodeMapping:
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (ConfigurationError("x"), ExitCode.CONFIGURATION_ERROR),
            (DescriptorNotFoundError("d"), ExitCode.DESCRIPTOR_NOT_FOUND),
            (EmptyDescriptorError("d"), ExitCode.DESCRIPTOR_NOT_FOUND),
            (StateStoreError("add", "x"), ExitCode.STATE_STORE_ERROR),
            (PushConflictError("master", "abc"), ExitCode.CONFLICT),
            (TransportError("fetch", "x"), ExitCode.NETWORK_ERROR),
            (PartialPromotionError("x", environment="p", branch="b"), ExitCode.PARTIAL_PROMOTION),
            (ReviewGatewayError("assign", "x"), ExitCode.REVIEW_GATEWAY_ERROR),
            (StepFailedError("e2e", "x"), ExitCode.STEP_FAILED),
            (RuntimeError("unexpected"), ExitCode.GENERAL_ERROR),
        ],
    )
    def test_mapping(self, error: Exception, expected: ExitCode) -> None:
        assert get_exit_code_from_exception(error) == expected


class TestReportFailure:
    def test_json_payload(self, capsys: pytest.CaptureFixture[str]) -> None:
        error = ReviewAssignmentError("production", "promote/production/t", "9", "rm", "422")

        with pytest.raises(SystemExit) as exc_info:
            report_failure(error, "json", "promote")

        assert exc_info.value.code == ExitCode.PARTIAL_PROMOTION
        payload = json.loads(capsys.readouterr().out)
        assert payload["status"] == "failed"
        assert payload["branch"] == "promote/production/t"
        assert payload["request_id"] == "9"
        assert payload["environment"] == "production"

    def test_json_payload_lists_completed_environments(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        error = ReviewRequestCreationError("production", "promote/production/t", "HTTP 503")
        error.completed = (
            PromotionRecord(
                environment="staging",
                strategy="direct",
                outcome=PromotionOutcome.COMMITTED,
                changed=True,
                commit_sha="a" * 40,
                branch="master",
            ),
        )

        with pytest.raises(SystemExit):
            report_failure(error, "json", "promote")

        payload = json.loads(capsys.readouterr().out)
        (staging,) = payload["completed"]
        assert staging["environment"] == "staging"
        assert staging["outcome"] == "committed"
        assert staging["commit_sha"] == "a" * 40

    def test_json_payload_omits_completed_when_empty(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with pytest.raises(SystemExit):
            report_failure(TransportError("fetch", "x"), "json", "promote")

        assert "completed" not in json.loads(capsys.readouterr().out)

    def test_table_writes_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit):
            report_failure(TransportError("fetch", "timed out"), "table", "promote")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err.startswith("Error: fetch failed: timed out")
