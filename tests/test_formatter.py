"""Tests for result output formats."""

import csv
import io
import json
from datetime import UTC, datetime, timedelta

import pytest

from csbot.errors import WorkflowFailedError
from csbot.output import CSV_HEADER, OutputFormat, ResultFormatter, format_seconds
from csbot.workflow import ActionResult, ErrorKind, ExecutionResult, SkippedAction, SkipReason

START = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def result():
    return ExecutionResult(
        workflow_name="recon",
        beacon_id="1234",
        operator="neo",
        actions=[
            ActionResult(
                name="whoami",
                type="shell",
                start_time=START,
                end_time=START + timedelta(seconds=1.5),
                success=True,
                output="corp\\neo, admin",
            ),
            ActionResult(
                name="dir",
                type="bof",
                start_time=START + timedelta(seconds=2),
                end_time=START + timedelta(seconds=32),
                success=False,
                error="action timed out after 30s",
                error_kind=ErrorKind.TIMEOUT,
            ),
        ],
        skipped=[SkippedAction("ps", SkipReason.CONDITIONS_NOT_MET)],
        started_at=START,
        completed_at=START + timedelta(seconds=75),
        error=WorkflowFailedError("1 action(s) failed: dir", ["dir"]),
    )


def _render(fmt, result):
    stream = io.StringIO()
    ResultFormatter(fmt, stream).write_result(result)
    return stream.getvalue()


def test_format_seconds():
    assert format_seconds(1.5) == "1.50s"
    assert format_seconds(75) == "1m15.0s"


def test_unsupported_format():
    with pytest.raises(ValueError, match="unsupported format: xml"):
        ResultFormatter("xml")


def test_accepts_string_format():
    assert ResultFormatter("csv").format is OutputFormat.CSV


class TestJSON:
    def test_structure(self, result):
        data = json.loads(_render("json", result))
        assert data["workflow_name"] == "recon"
        assert data["operator"] == "neo"
        assert data["success"] is False
        assert data["duration"] == 75.0
        assert [a["name"] for a in data["actions"]] == ["whoami", "dir"]
        assert data["actions"][1]["error_kind"] == "timeout"
        assert data["skipped"] == [
            {"name": "ps", "reason": "conditions_not_met", "detail": ""}
        ]

    def test_successful_run_has_null_error(self, result):
        result.error = None
        data = json.loads(_render(OutputFormat.JSON, result))
        assert data["success"] is True
        assert data["error"] is None


class TestCSV:
    def test_rows(self, result):
        rows = list(csv.reader(io.StringIO(_render("csv", result))))
        assert rows[0] == CSV_HEADER
        assert rows[1] == [
            "whoami",
            "shell",
            "2024-05-01T12:00:00+00:00",
            "2024-05-01T12:00:01+00:00",
            "1.50",
            "true",
            "corp\\neo, admin",
            "",
        ]
        assert rows[2][4:] == ["30.00", "false", "", "action timed out after 30s"]
        assert len(rows) == 3

    def test_skipped_actions_are_not_rows(self, result):
        text = _render("csv", result)
        assert "ps" not in [row[0] for row in csv.reader(io.StringIO(text))]


class TestText:
    def test_summary(self, result):
        text = _render("text", result)
        assert "=== Workflow Execution Summary ===" in text
        assert "Workflow: recon" in text
        assert "Operator: neo" in text
        assert "Duration: 1m15.0s" in text
        assert "✗ FAILED" in text
        assert "=== Actions (2 total) ===" in text
        assert "[1] whoami (shell)" in text
        assert "Output: corp\\neo, admin" in text
        assert "Status: ✗ Failed (timeout)" in text
        assert "  - ps: conditions_not_met" in text

    def test_markup_in_output_is_literal(self, result):
        result.actions[0] = ActionResult(
            name="cat",
            type="shell",
            start_time=START,
            end_time=START,
            success=True,
            output="[bold]not markup[/bold]",
        )
        assert "[bold]not markup[/bold]" in _render("text", result)
