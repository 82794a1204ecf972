"""Console reporter with environment detection for run output."""

from __future__ import annotations

import json
import os
import sys
from typing import TYPE_CHECKING, Optional

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn, TimeRemainingColumn
from rich.table import Table
from rich.text import Text

from .output_config import OutputFormat

if TYPE_CHECKING:
    from .models import ScenarioResult


class ConsoleReporter:
    """
    Console reporter that adapts to its environment.

    Automatically detects:
    - Interactive terminals (use rich with progress bars)
    - CI/CD environments (use plain text)
    - Pipe/redirect scenarios (use plain text)

    ``OutputFormat.JSON`` writes one JSON event per scenario instead.
    """

    def __init__(self, output_format: OutputFormat = OutputFormat.AUTO, *, console: Optional[Console] = None):
        self.output_format = output_format
        self._detect_environment()

        if self.use_rich:
            self.console = console or Console()
            self._setup_rich_components()
        else:
            self.console = None

    def _detect_environment(self) -> None:
        """Decide between rich and plain output."""
        if self.output_format == OutputFormat.RICH:
            self.use_rich = True
        elif self.output_format in (OutputFormat.PLAIN, OutputFormat.JSON):
            self.use_rich = False
        else:  # AUTO
            is_terminal = sys.stdout.isatty()
            is_ci = any(name in os.environ for name in ("CI", "JENKINS_HOME", "GITLAB_CI", "TRAVIS", "GITHUB_ACTIONS"))
            self.use_rich = is_terminal and not is_ci

    def _setup_rich_components(self) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TimeRemainingColumn(),
            console=self.console,
        )
        self.progress_task: Optional[TaskID] = None
        self.live: Optional[Live] = None
        self.results_table: Optional[Table] = None

    def start_run(self, total: int) -> None:
        if self.use_rich:
            self.results_table = Table(show_header=True, header_style="bold cyan")
            self.results_table.add_column("#", style="dim", width=5)
            self.results_table.add_column("Scenario", width=48)
            self.results_table.add_column("Status", width=10)
            self.results_table.add_column("Duration", justify="right", width=12)

            self.progress_task = self.progress.add_task("[cyan]Running scenarios", total=total)
            self.live = Live(Group(self.progress, self.results_table), console=self.console, refresh_per_second=4)
            self.live.start()
        elif self.output_format != OutputFormat.JSON:
            print(f"Running {total} scenario(s)")
            print("-" * 80)

    def report_scenario_result(self, index: int, result: ScenarioResult) -> None:
        if self.output_format == OutputFormat.JSON:
            print(json.dumps(result.as_event()), flush=True)
            return

        if self.use_rich:
            status_text = Text(
                "✓ PASS" if result.passed else "✗ FAIL",
                style="green" if result.passed else "red",
            )
            self.results_table.add_row(str(index), result.name, status_text, f"{result.elapsed_ms}ms")
            if result.error and not result.passed:
                self.results_table.add_row("", Text(f"Error: {result.error}", style="red"), "", "")
            self.progress.update(self.progress_task, advance=1)
        else:
            # Single print per result so concurrent scenarios do not interleave
            line = f"[{index}] {result.name} ... {'✓ PASS' if result.passed else '✗ FAIL'} ({result.elapsed_ms}ms)"
            if result.error and not result.passed:
                line += f"\n  Error: {result.error}"
            print(line, flush=True)

    def finish_run(self, total: int, passed: int, failed: int, duration_ms: float) -> None:
        if self.output_format == OutputFormat.JSON:
            return

        if self.use_rich:
            if self.live:
                self.live.stop()

            summary_text = Text()
            summary_text.append(f"Total: {total}  ", style="bold")
            summary_text.append(f"Passed: {passed}  ", style="bold green")
            summary_text.append(f"Failed: {failed}  ", style="bold red" if failed > 0 else "bold green")
            summary_text.append(f"Duration: {duration_ms:.0f}ms", style="bold cyan")

            status = "✓ ALL SCENARIOS PASSED" if failed == 0 else "✗ SOME SCENARIOS FAILED"
            self.console.print()
            self.console.print(Panel(
                summary_text,
                title=Text(status, style="bold green" if failed == 0 else "bold red"),
                border_style="green" if failed == 0 else "red",
            ))
        else:
            print("-" * 80)
            print(f"Total: {total} | Passed: {passed} | Failed: {failed} | Duration: {duration_ms:.0f}ms")
            print("✓ ALL SCENARIOS PASSED" if failed == 0 else "✗ SOME SCENARIOS FAILED")

    def print_info(self, message: str) -> None:
        if self.use_rich:
            self.console.print(f"[cyan]{message}[/]")
        elif self.output_format != OutputFormat.JSON:
            print(message)
