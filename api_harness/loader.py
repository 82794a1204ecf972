"""Scenario loading utilities."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError
from .models import Scenario
from .runner import validate_scenarios


@dataclass(frozen=True)
class ScenarioSuite:
    """Scenarios read from one file plus the optional ``config`` block beside them."""

    scenarios: list[Scenario]
    config: dict[str, Any] = field(default_factory=dict)
    source: Path | None = None


def load_suite(path: Path) -> ScenarioSuite:
    """
    Load and validate a YAML or JSON scenario file.

    The file holds either a bare list of scenarios or a mapping with a
    ``scenarios`` list and an optional ``config`` mapping.
    """
    if not path.is_file():
        raise ConfigurationError(f"Scenario file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Scenario file {path} could not be parsed: {exc}") from exc

    config: Any = {}
    if isinstance(data, dict):
        config = data.get("config") or {}
        if "scenarios" not in data:
            raise ConfigurationError(f"Scenario file {path} must contain a 'scenarios' list")
        data = data["scenarios"]
    if not isinstance(data, list):
        raise ConfigurationError(f"Scenario file {path} must contain a list of scenarios")
    if not isinstance(config, dict):
        raise ConfigurationError(f"'config' in {path} must be a mapping")

    return ScenarioSuite(scenarios=validate_scenarios(data), config=config, source=path)


def load_scenarios(path: Path) -> list[Scenario]:
    return load_suite(path).scenarios
