"""Built-in executor for declarative HTTP scenarios."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol

from .assertions import (
    assert_elapsed_below,
    assert_field_values,
    assert_has_fields,
    assert_max_items,
    assert_status,
)
from .models import AssertionResult, ResponseEnvelope, Scenario
from .retry import Classification, Classifier, Outcome, RetryPolicy


class Adapter(Protocol):
    def call(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
        query: Mapping[str, Any] | None = None,
    ) -> ResponseEnvelope: ...


class HttpScenarioExecutor:
    """Sends a scenario's request and evaluates every expectation it declares."""

    def __init__(self, adapter: Adapter, retry_policy: Optional[RetryPolicy] = None) -> None:
        self._adapter = adapter
        self._retry_policy = retry_policy

    def __call__(self, scenario: Scenario) -> list[AssertionResult]:
        envelope = self.send(scenario)
        return self.evaluate(scenario, envelope)

    def send(self, scenario: Scenario) -> ResponseEnvelope:
        request_spec = scenario.request

        def attempt() -> ResponseEnvelope:
            return self._adapter.call(
                request_spec.method,
                request_spec.path,
                body=request_spec.body,
                headers=request_spec.headers,
                query=request_spec.query,
            )

        if self._retry_policy is None:
            return attempt()
        return self._retry_policy.call(attempt, classify=self._classifier_for(scenario))

    def _classifier_for(self, scenario: Scenario) -> Classifier:
        # A response carrying the expected status is final even when it is a 5xx.
        expected = scenario.expect.status
        base = self._retry_policy.classify if self._retry_policy else None

        def classify(outcome: Outcome) -> Classification:
            if isinstance(outcome, ResponseEnvelope) and outcome.status == expected:
                return Classification.TERMINAL
            return base(outcome) if base else Classification.TERMINAL

        return classify

    @staticmethod
    def evaluate(scenario: Scenario, envelope: ResponseEnvelope) -> list[AssertionResult]:
        expect = scenario.expect
        results = [assert_status(envelope, expect.status)]
        if expect.required_fields:
            results.append(assert_has_fields(envelope.body, expect.required_fields))
        if expect.field_values:
            results.append(assert_field_values(envelope.body, expect.field_values))
        if expect.max_items is not None:
            results.append(assert_max_items(envelope.body, expect.max_items))
        if expect.max_elapsed_ms is not None:
            results.append(assert_elapsed_below(envelope, expect.max_elapsed_ms))
        return results
