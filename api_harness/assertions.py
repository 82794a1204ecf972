"""Response checks that return ``AssertionResult`` values instead of raising."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from .errors import AssertionFailure
from .models import AssertionResult, ResponseEnvelope

_MISSING = object()


def assert_status(envelope: ResponseEnvelope, expected: int) -> AssertionResult:
    if envelope.status == expected:
        return AssertionResult.passed(f"status == {expected}")
    return AssertionResult.failed(f"expected status {expected} but received {envelope.status}")


def assert_status_in_range(envelope: ResponseEnvelope, low: int, high: int) -> AssertionResult:
    """Inclusive range check, e.g. ``(200, 299)`` for any success status."""

    if low <= envelope.status <= high:
        return AssertionResult.passed(f"status {envelope.status} within [{low}, {high}]")
    return AssertionResult.failed(f"expected status within [{low}, {high}] but received {envelope.status}")


def assert_has_fields(body: Any, fields: Iterable[str]) -> AssertionResult:
    """Every field must be present in ``body`` and not null."""

    wanted = sorted(set(fields))
    if not isinstance(body, Mapping):
        return AssertionResult.failed(f"expected a JSON object with fields {wanted}, got {type(body).__name__}")
    missing = [name for name in wanted if body.get(name) is None]
    if missing:
        return AssertionResult.failed(f"missing or null fields: {', '.join(missing)}")
    return AssertionResult.passed(f"fields present: {', '.join(wanted)}")


def assert_field_values(body: Any, expected: Mapping[str, Any]) -> AssertionResult:
    if not isinstance(body, Mapping):
        return AssertionResult.failed(f"expected a JSON object, got {type(body).__name__}")
    mismatches = []
    for name, value in expected.items():
        actual = body.get(name, _MISSING)
        if actual is _MISSING:
            mismatches.append(f"{name} is missing")
        elif actual != value:
            mismatches.append(f"{name} expected {value!r} but was {actual!r}")
    if mismatches:
        return AssertionResult.failed("; ".join(mismatches))
    return AssertionResult.passed(f"field values match: {', '.join(expected)}")


def assert_elapsed_below(envelope: ResponseEnvelope, threshold_ms: float) -> AssertionResult:
    if envelope.elapsed_ms < threshold_ms:
        return AssertionResult.passed(f"response_time_ms < {threshold_ms:g}")
    return AssertionResult.failed(
        f"response time {envelope.elapsed_ms:.0f}ms exceeded threshold {threshold_ms:g}ms"
    )


def assert_max_items(body: Any, limit: int) -> AssertionResult:
    if not isinstance(body, list):
        return AssertionResult.failed(f"expected a JSON array, got {type(body).__name__}")
    if len(body) > limit:
        return AssertionResult.failed(f"expected at most {limit} items but received {len(body)}")
    return AssertionResult.passed(f"{len(body)} item(s) <= {limit}")


def failures(results: Iterable[AssertionResult]) -> list[str]:
    return [result.message for result in results if not result.ok]


def require(results: Iterable[AssertionResult]) -> None:
    """Raise ``AssertionFailure`` listing every failed check."""

    messages = failures(results)
    if messages:
        raise AssertionFailure(messages)
