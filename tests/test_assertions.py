from __future__ import annotations

import pytest

from api_harness.assertions import (
    assert_elapsed_below,
    assert_field_values,
    assert_has_fields,
    assert_max_items,
    assert_status,
    assert_status_in_range,
    failures,
    require,
)
from api_harness.errors import AssertionFailure
from api_harness.models import ResponseEnvelope


def test_assert_status() -> None:
    assert assert_status(ResponseEnvelope(status=200), 200).ok is True

    result = assert_status(ResponseEnvelope(status=404), 200)
    assert result.ok is False
    assert "expected status 200 but received 404" == result.message


def test_assert_status_in_range() -> None:
    assert assert_status_in_range(ResponseEnvelope(status=204), 200, 299)
    assert not assert_status_in_range(ResponseEnvelope(status=301), 200, 299)


def test_assert_has_fields_reports_missing_field() -> None:
    result = assert_has_fields({"id": 1, "name": "x"}, {"id", "name", "email"})

    assert result.ok is False
    assert "email" in result.message


def test_assert_has_fields_passes_when_all_present() -> None:
    assert assert_has_fields({"id": 1, "name": "x", "email": "x@example.com"}, {"id", "name", "email"}).ok


def test_assert_has_fields_treats_null_as_missing() -> None:
    result = assert_has_fields({"id": 1, "name": None}, ["id", "name"])

    assert not result.ok
    assert "name" in result.message


@pytest.mark.parametrize("body", [None, "text", [{"id": 1}]])
def test_assert_has_fields_requires_object(body: object) -> None:
    assert not assert_has_fields(body, {"id"})


def test_assert_field_values() -> None:
    body = {"id": 2, "name": "John Smith", "job": "Tech Lead"}

    assert assert_field_values(body, {"id": 2, "job": "Tech Lead"})
    result = assert_field_values(body, {"job": "Designer", "email": "a@b.c"})
    assert not result.ok
    assert "job expected 'Designer' but was 'Tech Lead'" in result.message
    assert "email is missing" in result.message


def test_assert_elapsed_below() -> None:
    assert assert_elapsed_below(ResponseEnvelope(status=200, elapsed_ms=120.0), 5000)
    assert not assert_elapsed_below(ResponseEnvelope(status=200, elapsed_ms=6000.0), 5000)


def test_assert_max_items() -> None:
    assert assert_max_items([1, 2, 3], 3)
    assert not assert_max_items([1, 2, 3, 4], 3)
    assert not assert_max_items({"items": []}, 3)


def test_checks_aggregate_without_early_termination() -> None:
    envelope = ResponseEnvelope(status=404, body={"id": 1})
    results = [
        assert_status(envelope, 200),
        assert_has_fields(envelope.body, {"id", "name"}),
        assert_has_fields(envelope.body, {"id"}),
    ]

    assert len(failures(results)) == 2
    with pytest.raises(AssertionFailure) as excinfo:
        require(results)
    assert len(excinfo.value.messages) == 2
    assert isinstance(excinfo.value, AssertionError)


def test_require_passes_silently() -> None:
    require([assert_status(ResponseEnvelope(status=201), 201)])
