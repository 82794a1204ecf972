"""Convenience calls for CRUD-style resources."""

from __future__ import annotations

from typing import Any, Iterable, Optional

import structlog

from .assertions import assert_has_fields
from .client import HttpClient
from .errors import HttpError
from .models import AssertionResult, ResponseEnvelope
from .retry import Classification, Outcome, RetryPolicy, default_classify

LOGGER = structlog.get_logger("api_harness")


def _retry_unless_ok(outcome: Outcome) -> Classification:
    # Any non-2xx response is worth another try when fetching by id.
    if isinstance(outcome, ResponseEnvelope):
        return Classification.TERMINAL if outcome.ok else Classification.RETRYABLE
    return default_classify(outcome)


class ApiHelper:
    """Wraps a client with create/fetch/list/search shortcuts that raise on non-2xx."""

    def __init__(self, client: HttpClient, retry_policy: Optional[RetryPolicy] = None) -> None:
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()

    def create(self, path: str, data: Any) -> Any:
        envelope = self.client.post(path, body=data)
        if not envelope.ok:
            LOGGER.error("create_failed", path=path, status=envelope.status)
            raise HttpError(envelope, f"Failed to create resource at {path}: {envelope.status}")
        return envelope.body

    def get_with_retry(self, path: str) -> Any:
        envelope = self.retry_policy.call(lambda: self.client.get(path), classify=_retry_unless_ok)
        return envelope.raise_for_status().body

    def list_all(self, path: str) -> list[Any]:
        envelope = self.client.get(path)
        if not envelope.ok:
            raise HttpError(envelope, f"Failed to list resources at {path}: {envelope.status}")
        if not isinstance(envelope.body, list):
            raise HttpError(envelope, f"Expected a JSON array from {path}")
        return envelope.body

    def search(self, path: str, field: str, text: str) -> list[Any]:
        """Case-insensitive substring match of ``text`` against ``field`` on each listed item."""

        needle = text.lower()
        return [
            item
            for item in self.list_all(path)
            if isinstance(item, dict) and needle in str(item.get(field, "")).lower()
        ]

    @staticmethod
    def validate_fields(body: Any, fields: Iterable[str]) -> AssertionResult:
        return assert_has_fields(body, fields)
