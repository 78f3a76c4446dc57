"""
kernel/types_config.py - Tick Inputs and Scenario Presets

Immutable inputs supplied by the host each tick.
"""

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class SimulationParams:
    """Per-tick Bernoulli rates for spontaneous events (immutable)."""
    decoherence_chance: float = 0.05
    lesion_chance: float = 0.02

    def __post_init__(self):
        for name in ("decoherence_chance", "lesion_chance"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")


@dataclass(frozen=True)
class TickFlags:
    """Host toggles read by the tick engine."""
    optimization_active: bool = False
    grounded: bool = False
    diagnostic: bool = False
    phase_locked: bool = False


@dataclass(frozen=True)
class Scenario:
    name: str
    description: str
    params: SimulationParams


# =============================================================================
# SCENARIO PRESETS
# =============================================================================

DEFAULT_PARAMS = SimulationParams()

SCENARIO_INNER_STORM = Scenario(
    name="Inner Storm",
    description="High decoherence, low lesion.",
    params=SimulationParams(decoherence_chance=0.15, lesion_chance=0.01),
)

SCENARIO_HEART_MIND_TENSION = Scenario(
    name="Heart-Mind Tension",
    description="Medium decoherence, high lesion.",
    params=SimulationParams(decoherence_chance=0.08, lesion_chance=0.08),
)

SCENARIO_GENTLE_AWAKENING = Scenario(
    name="Gentle Awakening",
    description="Very low chance of anomalies.",
    params=SimulationParams(decoherence_chance=0.01, lesion_chance=0.001),
)

SCENARIO_STILL_POINT = Scenario(
    name="Still Point",
    description="Anomalies disabled.",
    params=SimulationParams(decoherence_chance=0.0, lesion_chance=0.0),
)

SCENARIOS: Dict[str, Scenario] = {
    s.name: s for s in (
        SCENARIO_INNER_STORM,
        SCENARIO_HEART_MIND_TENSION,
        SCENARIO_GENTLE_AWAKENING,
        SCENARIO_STILL_POINT,
    )
}


def get_scenario(name: str) -> Scenario:
    """Look up a preset by name (case-insensitive)."""
    for key, scenario in SCENARIOS.items():
        if key.lower() == name.lower():
            return scenario
    raise KeyError(f"Unknown scenario '{name}'. Known: {sorted(SCENARIOS)}")
