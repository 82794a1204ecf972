"""Entry point for the api-harness CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from .client import HttpClient
from .config import parse_header_pairs, resolve_config
from .console_reporter import ConsoleReporter
from .errors import ConfigurationError
from .executor import HttpScenarioExecutor
from .loader import load_suite
from .logging_utils import configure_logging
from .output_config import get_output_format, log_format_for
from .retry import RetryPolicy
from .runner import ScenarioRunner

app = typer.Typer(help="Run data-driven CRUD scenarios against a REST API.")


@app.command()
def run(
    scenarios: Path = typer.Option(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="YAML/JSON file with scenario definitions.",
    ),
    base_url: Optional[str] = typer.Option(None, help="Target API root, e.g. https://jsonplaceholder.typicode.com."),
    timeout_ms: Optional[int] = typer.Option(None, help="Per-request timeout in milliseconds."),
    max_attempts: Optional[int] = typer.Option(None, help="Attempts per request, including the first one."),
    base_delay_ms: Optional[int] = typer.Option(None, help="Backoff base delay; attempt i waits 2^i * base."),
    parallelism: Optional[int] = typer.Option(None, help="Number of scenarios executed concurrently."),
    run_timeout_ms: Optional[int] = typer.Option(None, help="Overall run timeout in milliseconds."),
    header: list[str] = typer.Option(
        [],
        "--header",
        "-H",
        help="Default request header as Name=value (repeatable).",
    ),
    output: Optional[Path] = typer.Option(None, help="Write one JSON line per scenario result to this file."),
    output_format: Optional[str] = typer.Option(
        None,
        "--output-format",
        help="Console output: auto, rich, plain or json (env CONSOLE_OUTPUT_FORMAT).",
    ),
    log_level: str = typer.Option("warning", help="Log level for structured logs on stderr."),
) -> None:
    """Execute every scenario and exit 0 only if all of them passed."""

    fmt = get_output_format(output_format)
    logger = configure_logging(log_level, log_format_for(fmt))

    try:
        suite = load_suite(scenarios)
        config = resolve_config(
            suite.config,
            overrides={
                "base_url": base_url,
                "timeout_ms": timeout_ms,
                "max_attempts": max_attempts,
                "base_delay_ms": base_delay_ms,
                "parallelism": parallelism,
                "run_timeout_ms": run_timeout_ms,
                "headers": parse_header_pairs(header) or None,
            },
        )
    except ConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc

    logger.info(
        "config_resolved",
        base_url=config.base_url,
        timeout_ms=config.timeout_ms,
        max_attempts=config.max_attempts,
        parallelism=config.parallelism,
        scenarios=len(suite.scenarios),
    )

    reporter = ConsoleReporter(output_format=fmt)
    retry_policy = RetryPolicy(config.max_attempts, base_delay_ms=config.base_delay_ms)
    scenario_runner = ScenarioRunner(
        parallelism=config.parallelism,
        timeout_ms=config.run_timeout_ms,
        reporter=reporter,
    )
    with HttpClient(config.base_url, headers=config.headers, timeout_ms=config.timeout_ms) as client:
        report = scenario_runner.run(suite.scenarios, HttpScenarioExecutor(client, retry_policy))

    if output is not None:
        destination = report.write_json_lines(output)
        reporter.print_info(f"Results written -> {destination}")

    raise typer.Exit(code=0 if report.passed else 1)


def main() -> None:
    """Console_scripts hook."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
