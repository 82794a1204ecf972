"""Data-driven scenario runner."""

from __future__ import annotations

import queue
import threading
import time
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import structlog
from pydantic import ValidationError

from .console_reporter import ConsoleReporter
from .errors import AssertionFailure, ConfigurationError, HarnessError
from .models import AssertionResult, RunReport, Scenario, ScenarioResult, ScenarioStatus

LOGGER = structlog.get_logger("api_harness")

Executor = Callable[[Scenario], Any]


class _ScenarioState:
    """Tracks one scenario through PENDING -> RUNNING -> PASSED/FAILED."""

    def __init__(self, index: int, scenario: Scenario) -> None:
        self.index = index
        self.scenario = scenario
        self.status = ScenarioStatus.PENDING
        self.result: Optional[ScenarioResult] = None
        self._started: Optional[float] = None
        self._lock = threading.Lock()

    def _move(self, target: ScenarioStatus) -> None:
        if not self.status.can_transition_to(target):
            raise HarnessError(
                f"Scenario '{self.scenario.name}' cannot move from {self.status.value} to {target.value}"
            )
        self.status = target

    def _elapsed_ms(self) -> int:
        if self._started is None:
            return 0
        return int(round((time.perf_counter() - self._started) * 1000))

    def start(self) -> bool:
        with self._lock:
            if self.status.is_terminal:
                return False
            self._move(ScenarioStatus.RUNNING)
            self._started = time.perf_counter()
            return True

    def finish(self, error: Optional[str]) -> Optional[ScenarioResult]:
        """Record the outcome; returns None when the scenario already ended (timed out)."""
        with self._lock:
            if self.status.is_terminal:
                return None
            self._move(ScenarioStatus.PASSED if error is None else ScenarioStatus.FAILED)
            self.result = ScenarioResult(
                name=self.scenario.name,
                status=self.status,
                error=error,
                elapsed_ms=self._elapsed_ms(),
            )
            return self.result

    def expire(self, timeout_ms: int) -> Optional[ScenarioResult]:
        with self._lock:
            phase = "started" if self.status == ScenarioStatus.PENDING else "finished"
            return self._fail_unfinished(f"Run timed out after {timeout_ms}ms before scenario {phase}")

    def abort(self, error: str) -> Optional[ScenarioResult]:
        with self._lock:
            return self._fail_unfinished(error)

    def _fail_unfinished(self, error: str) -> Optional[ScenarioResult]:
        # caller holds the lock
        if self.status.is_terminal:
            return None
        self._move(ScenarioStatus.FAILED)
        self.result = ScenarioResult(
            name=self.scenario.name,
            status=self.status,
            error=error,
            elapsed_ms=self._elapsed_ms(),
        )
        return self.result


class ScenarioRunner:
    """
    Runs scenarios through a user-supplied executor and collects one result each.

    The executor receives a ``Scenario`` and may return ``None``, a bool, an
    ``AssertionResult`` or an iterable of them. A failed check or any raised
    exception (short of ``KeyboardInterrupt``) fails that scenario only; the remaining scenarios still run.

    With ``parallelism > 1`` scenarios run on daemon worker threads, and the report
    keeps submission order. ``timeout_ms`` bounds the whole run: whatever has
    not finished by the deadline is reported as FAILED without waiting for
    in-flight calls to return.
    """

    def __init__(
        self,
        *,
        parallelism: int = 1,
        timeout_ms: Optional[int] = None,
        reporter: Optional[ConsoleReporter] = None,
    ) -> None:
        if parallelism < 1:
            raise ConfigurationError("parallelism must be at least 1")
        if timeout_ms is not None and timeout_ms <= 0:
            raise ConfigurationError("timeout_ms must be positive")
        self.parallelism = parallelism
        self.timeout_ms = timeout_ms
        self._reporter = reporter
        self._report_lock = threading.Lock()

    def run(self, scenarios: Sequence[Scenario | Mapping[str, Any]], executor: Executor) -> RunReport:
        if not callable(executor):
            raise ConfigurationError("executor must be callable")
        states = [_ScenarioState(index, scenario) for index, scenario in enumerate(validate_scenarios(scenarios))]

        started_at = datetime.now(timezone.utc)
        timer = time.perf_counter()
        LOGGER.info("run_started", scenarios=len(states), parallelism=self.parallelism, timeout_ms=self.timeout_ms)
        if self._reporter:
            self._reporter.start_run(total=len(states))

        if self.parallelism == 1 and self.timeout_ms is None:
            for state in states:
                self._execute(state, executor)
        else:
            self._execute_pooled(states, executor)
        for state in states:
            if state.abort("scenario ended without recording an outcome") is not None:
                LOGGER.error("scenario_lost", scenario=state.scenario.name)

        duration_ms = (time.perf_counter() - timer) * 1000
        report = RunReport(
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            duration_ms=round(duration_ms, 3),
            results=[state.result for state in states],
        )
        LOGGER.info(
            "run_finished",
            total=report.total,
            passed=report.passed_count,
            failed=report.failed_count,
            duration_ms=report.duration_ms,
        )
        if self._reporter:
            self._reporter.finish_run(
                total=report.total,
                passed=report.passed_count,
                failed=report.failed_count,
                duration_ms=report.duration_ms,
            )
        return report

    def _execute_pooled(self, states: list[_ScenarioState], executor: Executor) -> None:
        work: queue.SimpleQueue[_ScenarioState] = queue.SimpleQueue()
        for state in states:
            work.put(state)
        outstanding = len(states)
        all_done = threading.Event()
        counter_lock = threading.Lock()

        def worker() -> None:
            nonlocal outstanding
            while True:
                try:
                    state = work.get_nowait()
                except queue.Empty:
                    return
                try:
                    self._execute(state, executor)
                finally:
                    with counter_lock:
                        outstanding -= 1
                        if outstanding == 0:
                            all_done.set()

        # Daemon workers: a call still in flight after the run timeout must not hold up interpreter exit
        for number in range(min(self.parallelism, len(states))):
            threading.Thread(target=worker, name=f"api-harness-{number}", daemon=True).start()

        timeout = self.timeout_ms / 1000 if self.timeout_ms is not None else None
        if states:
            all_done.wait(timeout)
        if self.timeout_ms is None:
            return
        # Queued scenarios picked up after this point see a terminal state and are skipped
        for state in states:
            result = state.expire(self.timeout_ms)
            if result is not None:
                LOGGER.warning("scenario_timed_out", scenario=result.name, error=result.error)
                self._report(state.index, result)

    def _execute(self, state: _ScenarioState, executor: Executor) -> None:
        scenario = state.scenario
        if not state.start():
            return
        LOGGER.info("scenario_started", scenario=scenario.name)
        try:
            error = _failure_message(executor(scenario))
        except AssertionFailure as exc:
            error = str(exc)
        except KeyboardInterrupt:
            raise
        except BaseException as exc:
            # SystemExit or a host test runner's fail/skip still ends as a FAILED result
            LOGGER.warning("scenario_errored", scenario=scenario.name, exc_info=True)
            error = f"{type(exc).__name__}: {exc}"

        result = state.finish(error)
        if result is None:
            return
        LOGGER.info(
            "scenario_finished",
            scenario=result.name,
            status=result.status.value,
            elapsed_ms=result.elapsed_ms,
            error=result.error,
        )
        self._report(state.index, result)

    def _report(self, index: int, result: ScenarioResult) -> None:
        if self._reporter is None:
            return
        with self._report_lock:
            self._reporter.report_scenario_result(index + 1, result)


def validate_scenarios(scenarios: Sequence[Scenario | Mapping[str, Any]]) -> list[Scenario]:
    """Coerce and check a scenario list; raises ``ConfigurationError`` before anything runs."""

    if isinstance(scenarios, (str, bytes)) or not isinstance(scenarios, Sequence):
        raise ConfigurationError("scenarios must be a list of scenario definitions")

    validated: list[Scenario] = []
    seen: set[str] = set()
    for position, item in enumerate(scenarios, start=1):
        if isinstance(item, Scenario):
            scenario = item
        elif isinstance(item, Mapping):
            try:
                scenario = Scenario.model_validate(item)
            except ValidationError as exc:
                raise ConfigurationError(f"Scenario #{position} is invalid: {exc}") from exc
        else:
            raise ConfigurationError(f"Scenario #{position} must be a mapping, got {type(item).__name__}")
        if scenario.name in seen:
            raise ConfigurationError(f"Duplicate scenario name '{scenario.name}'")
        seen.add(scenario.name)
        validated.append(scenario)
    return validated


def _failure_message(outcome: Any) -> Optional[str]:
    if outcome is None or outcome is True:
        return None
    if outcome is False:
        return "executor reported failure"
    if isinstance(outcome, AssertionResult):
        checks = [outcome]
    elif isinstance(outcome, Iterable) and not isinstance(outcome, (str, bytes, Mapping)):
        checks = list(outcome)
    else:
        return f"executor returned unsupported value of type {type(outcome).__name__}"

    unsupported = [check for check in checks if not isinstance(check, AssertionResult)]
    if unsupported:
        return f"executor returned unsupported value of type {type(unsupported[0]).__name__}"
    failed = [check.message for check in checks if not check.ok]
    return "; ".join(failed) if failed else None
