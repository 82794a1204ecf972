from __future__ import annotations

import json

import pytest
from rich.console import Console

from api_harness.console_reporter import ConsoleReporter
from api_harness.logging_utils import RichConsoleRenderer, configure_logging
from api_harness.models import ScenarioResult, ScenarioStatus
from api_harness.output_config import ENV_VAR_NAME, OutputFormat, get_output_format, log_format_for


def test_output_format_priority(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(ENV_VAR_NAME, "json")

    assert get_output_format("plain") is OutputFormat.PLAIN
    assert get_output_format() is OutputFormat.JSON
    assert get_output_format("bogus") is OutputFormat.JSON

    monkeypatch.delenv(ENV_VAR_NAME)
    assert get_output_format() is OutputFormat.AUTO


def test_log_format_mapping() -> None:
    assert log_format_for(OutputFormat.JSON) == "json"
    assert log_format_for(OutputFormat.PLAIN) == "plain"
    assert log_format_for(OutputFormat.RICH) == "console"


def test_plain_reporter_output(capsys: pytest.CaptureFixture[str]) -> None:
    reporter = ConsoleReporter(OutputFormat.PLAIN)

    reporter.start_run(total=2)
    reporter.report_scenario_result(1, ScenarioResult(name="get-user", status=ScenarioStatus.PASSED, elapsed_ms=12))
    reporter.report_scenario_result(
        2, ScenarioResult(name="bad", status=ScenarioStatus.FAILED, error="expected status 200", elapsed_ms=3)
    )
    reporter.finish_run(total=2, passed=1, failed=1, duration_ms=20)

    out = capsys.readouterr().out
    assert "[1] get-user ... ✓ PASS (12ms)" in out
    assert "Error: expected status 200" in out
    assert "Total: 2 | Passed: 1 | Failed: 1" in out
    assert "SOME SCENARIOS FAILED" in out


def test_json_reporter_emits_events(capsys: pytest.CaptureFixture[str]) -> None:
    reporter = ConsoleReporter(OutputFormat.JSON)

    reporter.start_run(total=1)
    reporter.report_scenario_result(1, ScenarioResult(name="x", status=ScenarioStatus.PASSED, elapsed_ms=1))
    reporter.finish_run(total=1, passed=1, failed=0, duration_ms=1)

    lines = capsys.readouterr().out.splitlines()
    assert [json.loads(line) for line in lines] == [{"scenario": "x", "passed": True, "error": None, "elapsedMs": 1}]


def test_rich_reporter_renders_summary() -> None:
    console = Console(record=True, force_terminal=False, width=120)
    reporter = ConsoleReporter(OutputFormat.RICH, console=console)

    reporter.start_run(total=1)
    reporter.report_scenario_result(1, ScenarioResult(name="x", status=ScenarioStatus.PASSED, elapsed_ms=1))
    reporter.finish_run(total=1, passed=1, failed=0, duration_ms=1)

    assert "ALL SCENARIOS PASSED" in console.export_text()


def test_rich_renderer_formats_key_values() -> None:
    rendered = RichConsoleRenderer()(None, "info", {"event": "scenario_finished", "level": "info", "timestamp": "t", "status": "passed"})

    assert "scenario_finished" in rendered
    assert "status=" in rendered


def test_configure_logging_returns_bound_logger() -> None:
    logger = configure_logging("info", "json")

    assert hasattr(logger, "info")
