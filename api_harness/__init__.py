"""Minimal API test harness: HTTP client adapter, retry policy, checks and scenario runner."""

from .assertions import assert_has_fields, assert_status
from .client import HttpClient
from .errors import (
    AssertionFailure,
    ConfigurationError,
    HarnessError,
    HttpError,
    RetryExhausted,
    TransportError,
)
from .executor import HttpScenarioExecutor
from .models import AssertionResult, ResponseEnvelope, RunReport, Scenario, ScenarioResult, ScenarioStatus
from .retry import Classification, RetryPolicy, default_classify, with_retry
from .runner import ScenarioRunner

__version__ = "0.1.0"

__all__ = [
    "AssertionFailure",
    "AssertionResult",
    "Classification",
    "ConfigurationError",
    "HarnessError",
    "HttpClient",
    "HttpError",
    "HttpScenarioExecutor",
    "ResponseEnvelope",
    "RetryExhausted",
    "RetryPolicy",
    "RunReport",
    "Scenario",
    "ScenarioResult",
    "ScenarioRunner",
    "ScenarioStatus",
    "TransportError",
    "assert_has_fields",
    "assert_status",
    "default_classify",
    "with_retry",
]
