"""Error taxonomy shared by the client, retry policy and runner."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from .models import ResponseEnvelope


class HarnessError(Exception):
    """Base class for every error raised by the harness."""


class ConfigurationError(HarnessError, ValueError):
    """Invalid configuration or scenario list; raised before anything runs."""


class TransportError(HarnessError):
    """Network-level failure: DNS, refused connection, timeout."""

    def __init__(self, message: str, *, method: str | None = None, url: str | None = None) -> None:
        super().__init__(message)
        self.method = method
        self.url = url


class HttpError(HarnessError):
    """Non-2xx response surfaced as an error."""

    def __init__(self, envelope: ResponseEnvelope, message: str | None = None) -> None:
        super().__init__(message or f"Unexpected HTTP status {envelope.status}")
        self.envelope = envelope

    @property
    def status(self) -> int:
        return self.envelope.status


class AssertionFailure(HarnessError, AssertionError):
    """One or more expectations did not hold."""

    def __init__(self, messages: Iterable[str]) -> None:
        self.messages = list(messages)
        super().__init__("; ".join(self.messages) or "assertion failed")


class RetryExhausted(HarnessError):
    """All attempts were used up on retryable outcomes."""

    def __init__(
        self,
        attempts: int,
        *,
        last_envelope: ResponseEnvelope | None = None,
        last_error: BaseException | None = None,
    ) -> None:
        if last_error is not None:
            reason = str(last_error)
        elif last_envelope is not None:
            reason = f"last status {last_envelope.status}"
        else:
            reason = "no outcome recorded"
        super().__init__(f"Gave up after {attempts} attempt(s): {reason}")
        self.attempts = attempts
        self.last_envelope = last_envelope
        self.last_error = last_error
