"""
kernel - Simulation Kernel Package

Public API for the tick-driven state kernel.
One file = one responsibility.
"""

# =============================================================================
# TYPES (Dataclasses)
# =============================================================================
from .types_config import (
    SimulationParams,
    TickFlags,
    Scenario,
    DEFAULT_PARAMS,
    SCENARIO_INNER_STORM,
    SCENARIO_HEART_MIND_TENSION,
    SCENARIO_GENTLE_AWAKENING,
    SCENARIO_STILL_POINT,
    SCENARIOS,
    get_scenario,
)
from .types_state import (
    SystemState,
    HealthRecord,
    PillarRecord,
    TriforceRecord,
    ConcordanceRecord,
    CoherenceResonanceRecord,
    PerformanceTelemetry,
    InterventionGuards,
    UserResources,
)
from .types_result import SimResult

# =============================================================================
# CONSTANTS
# =============================================================================
from .constants import (
    ControlMode,
    GovernanceAxiom,
    CoherenceStatus,
    TriforceState,
    BreathPhase,
    PillarId,
    Intervention,
    UserTier,
    RECEIPT_SCHEMA,
)

# =============================================================================
# CORE SIMULATION
# =============================================================================
from .tick import (
    tick,
    initialize_state,
    run_simulation,
)
from .classifier import (
    ClassifierThresholds,
    DEFAULT_THRESHOLDS,
    classify_governance_axiom,
    next_governance_axiom,
    classify_coherence,
    classify_triforce,
)
from .derivations import DERIVATION_ORDER, evaluate_derivations
from .breath import breath_period, toggle_breath

# =============================================================================
# INTERVENTIONS
# =============================================================================
from .interventions import (
    boost_pillar,
    calibrate_relay,
    calibrate_star,
    purge_flow,
    grounding_discharge,
    coolant_flush,
    thermal_calibrate,
    expire_guards,
    reset_state,
)

# =============================================================================
# RUNTIME
# =============================================================================
from .scheduler import Scheduler
from .session import Session

# =============================================================================
# VALIDATION / EXPORT
# =============================================================================
from .validation import validate_bounds, find_bound_violations, clamp_state
from .export import generate_report, export_trace, verify_trace

__all__ = [
    # Types
    "SimulationParams", "TickFlags", "Scenario", "DEFAULT_PARAMS",
    "SCENARIO_INNER_STORM", "SCENARIO_HEART_MIND_TENSION",
    "SCENARIO_GENTLE_AWAKENING", "SCENARIO_STILL_POINT", "SCENARIOS", "get_scenario",
    "SystemState", "HealthRecord", "PillarRecord", "TriforceRecord",
    "ConcordanceRecord", "CoherenceResonanceRecord", "PerformanceTelemetry",
    "InterventionGuards", "UserResources", "SimResult",
    # Constants
    "ControlMode", "GovernanceAxiom", "CoherenceStatus", "TriforceState",
    "BreathPhase", "PillarId", "Intervention", "UserTier", "RECEIPT_SCHEMA",
    # Core
    "tick", "initialize_state", "run_simulation",
    "ClassifierThresholds", "DEFAULT_THRESHOLDS", "classify_governance_axiom",
    "next_governance_axiom", "classify_coherence", "classify_triforce",
    "DERIVATION_ORDER", "evaluate_derivations", "breath_period", "toggle_breath",
    # Interventions
    "boost_pillar", "calibrate_relay", "calibrate_star", "purge_flow",
    "grounding_discharge", "coolant_flush", "thermal_calibrate",
    "expire_guards", "reset_state",
    # Runtime
    "Scheduler", "Session",
    # Validation / export
    "validate_bounds", "find_bound_violations", "clamp_state",
    "generate_report", "export_trace", "verify_trace",
]
