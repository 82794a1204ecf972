"""Scenario, response and runtime result models."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import HttpError

HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"})


class RequestSpec(BaseModel):
    """HTTP request issued by a scenario."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    method: str = "GET"
    path: str
    body: Any = None
    headers: dict[str, str] = Field(default_factory=dict)
    query: dict[str, Any] = Field(default_factory=dict)

    @field_validator("method")
    @classmethod
    def _normalize_method(cls, value: str) -> str:
        method = value.strip().upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method '{value}'")
        return method

    @field_validator("path")
    @classmethod
    def _require_path(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Request path cannot be empty")
        return value


class Expectation(BaseModel):
    """Outcome a scenario expects from its request."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    status: int = Field(ge=100, le=599)
    required_fields: frozenset[str] = Field(default_factory=frozenset, alias="requiredFields")
    field_values: dict[str, Any] = Field(default_factory=dict, alias="fieldValues")
    max_elapsed_ms: Optional[float] = Field(default=None, alias="maxElapsedMs", gt=0)
    max_items: Optional[int] = Field(default=None, alias="maxItems", ge=0)


class Scenario(BaseModel):
    """One declarative request + expectation unit."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    name: str = Field(min_length=1)
    description: Optional[str] = None
    request: RequestSpec
    expect: Expectation


@dataclass(frozen=True)
class ResponseEnvelope:
    """Normalized HTTP response: status, lower-cased headers and decoded body."""

    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str, default: str | None = None) -> str | None:
        return self.headers.get(name.lower(), default)

    def raise_for_status(self) -> ResponseEnvelope:
        if not self.ok:
            raise HttpError(self)
        return self


@dataclass
class RetryState:
    """Book-keeping for a single retried call."""

    max_attempts: int
    attempt: int = 0
    last_error: BaseException | None = None
    last_envelope: ResponseEnvelope | None = None

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts


@dataclass(frozen=True)
class AssertionResult:
    """Structured outcome of a single check."""

    ok: bool
    message: str

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def passed(cls, message: str) -> AssertionResult:
        return cls(ok=True, message=message)

    @classmethod
    def failed(cls, message: str) -> AssertionResult:
        return cls(ok=False, message=message)


class ScenarioStatus(str, Enum):
    """Lifecycle of a scenario within a run."""

    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ScenarioStatus.PASSED, ScenarioStatus.FAILED)

    def can_transition_to(self, target: ScenarioStatus) -> bool:
        return target in _TRANSITIONS[self]


# PENDING -> FAILED covers scenarios cut off by the run timeout before they started.
_TRANSITIONS: dict[ScenarioStatus, frozenset[ScenarioStatus]] = {
    ScenarioStatus.PENDING: frozenset({ScenarioStatus.RUNNING, ScenarioStatus.FAILED}),
    ScenarioStatus.RUNNING: frozenset({ScenarioStatus.PASSED, ScenarioStatus.FAILED}),
    ScenarioStatus.PASSED: frozenset(),
    ScenarioStatus.FAILED: frozenset(),
}


class ScenarioResult(BaseModel):
    """Runtime result for one scenario."""

    name: str
    status: ScenarioStatus
    error: Optional[str] = None
    elapsed_ms: int = 0

    @property
    def passed(self) -> bool:
        return self.status == ScenarioStatus.PASSED

    def as_event(self) -> dict[str, Any]:
        """Machine-readable line consumed by CI reporters."""

        return {
            "scenario": self.name,
            "passed": self.passed,
            "error": self.error,
            "elapsedMs": self.elapsed_ms,
        }


class RunReport(BaseModel):
    """Ordered results of a run; order matches scenario submission order."""

    started_at: datetime
    finished_at: datetime
    duration_ms: float
    results: list[ScenarioResult] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def passed_count(self) -> int:
        return sum(1 for result in self.results if result.passed)

    @property
    def failed_count(self) -> int:
        return self.total - self.passed_count

    @property
    def passed(self) -> bool:
        return all(result.passed for result in self.results)

    def failures(self) -> list[ScenarioResult]:
        return [result for result in self.results if not result.passed]

    def to_json_lines(self) -> str:
        return "".join(json.dumps(result.as_event()) + "\n" for result in self.results)

    def write_json_lines(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json_lines(), encoding="utf-8")
        return path

    def summary(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "passed": self.passed_count,
            "failed": self.failed_count,
            "duration_ms": round(self.duration_ms, 3),
            "failures": [result.as_event() for result in self.failures()],
        }
