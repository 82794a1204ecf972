"""Bounded retry with exponential backoff around client calls."""

from __future__ import annotations

import time
from enum import Enum
from typing import Callable, Optional, Union

import structlog

from .config import DEFAULT_BASE_DELAY_MS, DEFAULT_MAX_ATTEMPTS
from .errors import ConfigurationError, RetryExhausted, TransportError
from .models import ResponseEnvelope, RetryState

LOGGER = structlog.get_logger("api_harness")

Outcome = Union[ResponseEnvelope, Exception]


class Classification(str, Enum):
    TERMINAL = "terminal"
    RETRYABLE = "retryable"


Classifier = Callable[[Outcome], Classification]


def default_classify(outcome: Outcome) -> Classification:
    """Transport errors and 5xx responses are retryable; everything else is terminal."""

    if isinstance(outcome, TransportError):
        return Classification.RETRYABLE
    if isinstance(outcome, ResponseEnvelope) and outcome.status >= 500:
        return Classification.RETRYABLE
    return Classification.TERMINAL


class RetryPolicy:
    """
    Runs a call up to ``max_attempts`` times.

    After failed attempt ``i`` (0-indexed) the policy sleeps
    ``2**i * base_delay_ms`` before trying again. Terminal envelopes are
    returned as-is and terminal errors re-raised immediately. When every
    attempt came back retryable, ``RetryExhausted`` is raised carrying the
    last envelope or error. Every exception raised by the call is handed
    to ``classify``; the default only retries ``TransportError``.

    ``sleep`` takes seconds and defaults to ``time.sleep``; tests inject a
    recorder instead to avoid real delays.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        *,
        base_delay_ms: float = DEFAULT_BASE_DELAY_MS,
        classify: Classifier = default_classify,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")
        if base_delay_ms < 0:
            raise ConfigurationError("base_delay_ms cannot be negative")
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self.classify = classify
        self._sleep = sleep

    def delay_ms(self, attempt_index: int) -> float:
        return (2 ** attempt_index) * self.base_delay_ms

    def call(
        self,
        fn: Callable[[], ResponseEnvelope],
        *,
        classify: Optional[Classifier] = None,
    ) -> ResponseEnvelope:
        classify = classify or self.classify
        state = RetryState(max_attempts=self.max_attempts)

        while True:
            attempt_index = state.attempt
            state.attempt += 1
            try:
                outcome: Outcome = fn()
            except Exception as exc:
                outcome = exc

            if classify(outcome) is Classification.TERMINAL:
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome

            if isinstance(outcome, Exception):
                state.last_error = outcome
                state.last_envelope = None
            else:
                state.last_envelope = outcome
                state.last_error = None

            if state.exhausted:
                LOGGER.warning(
                    "retry_exhausted",
                    attempts=state.attempt,
                    last_status=state.last_envelope.status if state.last_envelope else None,
                    last_error=str(state.last_error) if state.last_error else None,
                )
                raise RetryExhausted(
                    state.attempt,
                    last_envelope=state.last_envelope,
                    last_error=state.last_error,
                ) from state.last_error

            delay_ms = self.delay_ms(attempt_index)
            LOGGER.info(
                "retry_scheduled",
                attempt=state.attempt,
                max_attempts=state.max_attempts,
                delay_ms=delay_ms,
                last_status=state.last_envelope.status if state.last_envelope else None,
                last_error=str(state.last_error) if state.last_error else None,
            )
            self._sleep(delay_ms / 1000)


def with_retry(
    fn: Callable[[], ResponseEnvelope],
    max_attempts: int,
    classify: Classifier = default_classify,
    *,
    base_delay_ms: float = DEFAULT_BASE_DELAY_MS,
    sleep: Callable[[float], None] = time.sleep,
) -> ResponseEnvelope:
    """Functional form of ``RetryPolicy.call``."""

    policy = RetryPolicy(max_attempts, base_delay_ms=base_delay_ms, classify=classify, sleep=sleep)
    return policy.call(fn)
