"""
kernel_config.py - Kernel Configuration

KernelConfig is the frozen settings record a Session is built from: timing,
log capacity, classifier cutoffs, default event rates and mode, RNG seed,
and the two collaborator endpoints (state store path, profile URL).

Loading rules:
- JSON or YAML, picked by file suffix
- validated against a JSON Schema (Draft 2020-12)
- strict=True: any invalid field raises ConfigError
- strict=False: invalid fields fall back to defaults, one warning each
- frozen after load
"""

from __future__ import annotations

import json
import warnings
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from jsonschema import Draft202012Validator

from kernel.classifier import ClassifierThresholds
from kernel.constants import (
    BREATH_PERIOD_GROUNDED,
    BREATH_PERIOD_UNGROUNDED,
    LOG_CAPACITY,
    TICK_PERIOD_SECONDS,
    ControlMode,
)
from kernel.types_config import DEFAULT_PARAMS, SimulationParams

__all__ = [
    "KernelConfig",
    "ConfigError",
    "load",
    "from_dict",
    "default",
]


class ConfigError(ValueError):
    """Invalid configuration in strict mode."""


# =============================================================================
# JSON Schema Definition (Draft 2020-12)
# =============================================================================

_RATIO = {"type": "number", "minimum": 0.0, "maximum": 1.0}
_POSITIVE = {"type": "number", "exclusiveMinimum": 0}

_JSON_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "KernelConfig",
    "type": "object",
    "properties": {
        "tick_period": _POSITIVE,
        "breath_period_ungrounded": _POSITIVE,
        "breath_period_grounded": _POSITIVE,
        "log_capacity": {"type": "integer", "minimum": 1},
        "thresholds": {
            "type": "object",
            "properties": {
                "failure_health": _RATIO,
                "failure_lesions": {"type": "integer", "minimum": 0},
                "regenerative_health": _RATIO,
                "recalibrating_decoherence": _RATIO,
                "sovereign_health": _RATIO,
                "sovereign_decoherence": _RATIO,
            },
            "additionalProperties": False,
        },
        "params": {
            "type": "object",
            "properties": {
                "decoherence_chance": _RATIO,
                "lesion_chance": _RATIO,
            },
            "additionalProperties": False,
        },
        "mode": {"enum": [m.value for m in ControlMode]},
        "seed": {"type": ["integer", "null"]},
        "store_path": {"type": ["string", "null"]},
        "profile_url": {"type": ["string", "null"]},
        "profile_token": {"type": ["string", "null"]},
        "profile_timeout": _POSITIVE,
    },
    "additionalProperties": False,
}

_VALIDATOR = Draft202012Validator(_JSON_SCHEMA)


# =============================================================================
# KernelConfig
# =============================================================================

@dataclass(frozen=True)
class KernelConfig:
    """Immutable session settings."""
    tick_period: float = TICK_PERIOD_SECONDS
    breath_period_ungrounded: float = BREATH_PERIOD_UNGROUNDED
    breath_period_grounded: float = BREATH_PERIOD_GROUNDED
    log_capacity: int = LOG_CAPACITY
    thresholds: ClassifierThresholds = field(default_factory=ClassifierThresholds)
    params: SimulationParams = DEFAULT_PARAMS
    mode: ControlMode = ControlMode.STANDBY
    seed: Optional[int] = None
    store_path: Optional[str] = None
    profile_url: Optional[str] = None
    profile_token: Optional[str] = None
    profile_timeout: float = 5.0

    def breath_period(self, grounded: bool) -> float:
        return self.breath_period_grounded if grounded else self.breath_period_ungrounded

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["mode"] = self.mode.value
        return data

    @staticmethod
    def schema() -> Dict[str, Any]:
        return json.loads(json.dumps(_JSON_SCHEMA))


# =============================================================================
# Loading
# =============================================================================

def _schema_errors(data: Dict[str, Any]) -> List[Any]:
    return sorted(_VALIDATOR.iter_errors(data), key=lambda e: list(e.absolute_path))


def _self_heal(data: Dict[str, Any], errors: List[Any]) -> Dict[str, Any]:
    """Drop every offending field so its default applies; warn once per field."""
    healed = json.loads(json.dumps(data, default=str))
    for error in errors:
        path = list(error.absolute_path)
        if not path:
            # root-level problem: unknown keys
            allowed = set(_JSON_SCHEMA["properties"])
            for key in [k for k in healed if k not in allowed]:
                warnings.warn(f"KernelConfig: unknown field '{key}' ignored",
                              UserWarning, stacklevel=4)
                healed.pop(key)
            continue
        target = healed
        for part in path[:-1]:
            target = target.get(part, {}) if isinstance(target, dict) else {}
        if isinstance(target, dict) and path[-1] in target:
            dotted = ".".join(str(p) for p in path)
            warnings.warn(f"KernelConfig: {dotted}: {error.message}; using default",
                          UserWarning, stacklevel=4)
            target.pop(path[-1])
    return healed


def _build(data: Dict[str, Any]) -> KernelConfig:
    kwargs: Dict[str, Any] = {}
    names = {f.name for f in fields(KernelConfig)}
    for key, value in data.items():
        if key not in names:
            continue
        if key == "thresholds":
            kwargs[key] = ClassifierThresholds(**value)
        elif key == "params":
            kwargs[key] = SimulationParams(**value)
        elif key == "mode":
            kwargs[key] = ControlMode(value)
        else:
            kwargs[key] = value
    return KernelConfig(**kwargs)


def from_dict(data: Optional[Dict[str, Any]], strict: bool = False) -> KernelConfig:
    """
    Build a validated config from a plain mapping.

    Args:
        data: Parsed config; None or {} gives defaults
        strict: If True, raise on invalid; if False, self-heal with warnings

    Raises:
        ConfigError: strict=True and validation fails, or the root is not a mapping
    """
    if data is None:
        return KernelConfig()
    if not isinstance(data, dict):
        if strict:
            raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")
        warnings.warn("KernelConfig: config root is not a mapping; using defaults",
                      UserWarning, stacklevel=3)
        return KernelConfig()

    errors = _schema_errors(data)
    if errors:
        if strict:
            raise ConfigError("Config validation failed:\n" + "\n".join(
                f"  - {'.'.join(str(p) for p in e.absolute_path) or '<root>'}: {e.message}"
                for e in errors
            ))
        data = _self_heal(data, errors)
    return _build(data)


def load(path: Union[str, Path], strict: bool = False) -> KernelConfig:
    """
    Load config from a JSON or YAML file.

    Raises:
        FileNotFoundError: path doesn't exist
        ConfigError: strict=True and validation fails
    """
    path_obj = Path(path)
    if not path_obj.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    content = path_obj.read_text()
    if path_obj.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(content)
    else:
        data = json.loads(content)
    return from_dict(data, strict=strict)


def default() -> KernelConfig:
    return KernelConfig()
