"""
kernel/constants.py - Kernel Tunables and Enumerations

All constants for the tick engine, classifier, breath oscillator and
intervention guards. Centralized for tuning; values are arbitrary tunables,
not physical quantities.
"""

from enum import Enum

# =============================================================================
# SCHEDULING
# =============================================================================

TICK_PERIOD_SECONDS = 1.0
BREATH_PERIOD_UNGROUNDED = 4.5
BREATH_PERIOD_GROUNDED = 6.0
LOG_CAPACITY = 50

# =============================================================================
# DIAGNOSTIC JITTER / OPTIMIZATION BOOST (steps 1-2)
# =============================================================================

DIAGNOSTIC_JITTER_AMPLITUDE = 0.005
RESONANCE_JITTER_FLOOR = 0.1      # jitter never drags resonance below this

OPTIMIZATION_DECOHERENCE_REDUCTION = 0.1
OPTIMIZATION_HEALTH_BOOST = 0.05
OPTIMIZATION_LESION_HEAL_CHANCE = 0.5
OPTIMIZATION_SHIELD_BOOST = 0.1
OPTIMIZATION_RESONANCE_BOOST = 0.02

# =============================================================================
# ENTROPY EVENTS (steps 3-4)
# =============================================================================

GROUNDED_ENTROPY_MODIFIER = 0.5
GROUNDING_MODE_ENTROPY_MODIFIER = 0.5
DECOHERENCE_SPIKE = 0.1
SHIELD_DAMPING = 0.8              # fraction of a spike the full shield absorbs
LESION_SHIELD_THRESHOLD = 0.5     # lesions only land below this shield level

BIOMETRIC_STRAIN_THRESHOLD = 0.4
BIOMETRIC_STRAIN_DECOHERENCE = 0.02
BIOMETRIC_STRAIN_LOG_CHANCE = 0.05

# =============================================================================
# SHIELD FEEDBACK / PASSIVE HEALING (steps 5-6)
# =============================================================================

SHIELD_RECOVERY_DECOHERENCE = 0.1
SHIELD_RECOVERY_RESONANCE = 0.8
SHIELD_RECOVERY_RATE = 0.01
SHIELD_DECAY_RATE = 0.05          # scaled by decoherence

PASSIVE_HEAL_DECOHERENCE = 0.2
PASSIVE_HEAL_LESIONS = 2
PASSIVE_HEAL_RATE = 0.002         # scaled by resonance
DECOHERENCE_BASE_DECAY = 0.002
DECOHERENCE_RESONANCE_DECAY = 0.008

# =============================================================================
# MODE EFFECTS / HEALTH RECOMPUTE (steps 7-8)
# =============================================================================

BASE_REPAIR_RATE = 0.005
REPAIR_MODE_REPAIR_RATE = 0.02
REPAIR_MODE_HEAL_CHANCE = 0.1
REPAIR_MODE_DECOHERENCE_REDUCTION = 0.01
GROUNDING_MODE_DECOHERENCE_REDUCTION = 0.02
GROUNDING_MODE_HEALTH_BOOST = 0.005
GROUNDING_MODE_SHIELD_BOOST = 0.01
SYNTHESIS_MODE_REPAIR_RATE = 0.01
OFFLINE_HEALTH_DRAIN = 0.002
OFFLINE_SHIELD_DRAIN = 0.005

HEALTH_DECOHERENCE_PENALTY = 0.02
HEALTH_LESION_PENALTY = 0.01

# =============================================================================
# GOVERNANCE CLASSIFIER THRESHOLDS (step 9)
# =============================================================================

FAILURE_HEALTH = 0.05
FAILURE_LESIONS = 10
REGENERATIVE_HEALTH = 0.4
RECALIBRATING_DECOHERENCE = 0.3
SOVEREIGN_HEALTH = 0.9
SOVEREIGN_DECOHERENCE = 0.05

# =============================================================================
# PILLARS / TRIFORCE (step 10)
# =============================================================================

PILLAR_DECAY_CHANCE = 0.1
PILLAR_DECAY_MAX = 0.005
PILLAR_BOOST_MAX = 0.02

TRIFORCE_WALK_AMPLITUDE = 0.02    # energy += (u - 0.5) * amplitude
TRIFORCE_DECOHERENCE_WEIGHT = 0.5
TRIFORCE_OUTPUT_SCALE = 16.0
TRIFORCE_CHARGING_BELOW = 0.5
TRIFORCE_SUPERNOVA_ABOVE = 0.95

# =============================================================================
# CONCORDANCE (step 11)
# =============================================================================

CONCORDANCE_DRIFT_CORRECTION = 0.01
CONCORDANCE_STABILITY_GAIN = 0.01
CONCORDANCE_DRIFT_GROWTH = 0.0005
CONCORDANCE_STABILITY_EROSION = 0.001   # scaled by drift

# =============================================================================
# RESONANCE / TEMPORAL DRIFT / COHERENCE (steps 12-13)
# =============================================================================

RESONANCE_PILLAR_WEIGHT = 0.4
RESONANCE_TRIFORCE_WEIGHT = 0.35
RESONANCE_CONCORDANCE_WEIGHT = 0.25

DRIFT_DECOHERENCE_GAIN = 0.0002
DRIFT_RESONANCE_RELIEF = 0.0008

COHERENCE_COHERENT_ABOVE = 0.75
COHERENCE_RESONATING_ABOVE = 0.5
COHERENCE_DECOHERING_ABOVE = 0.3
ENTROPY_FLUX_DECOHERENCE_WEIGHT = 0.3
ENTROPY_FLUX_RESONANCE_WEIGHT = 0.7
CORRELATION_CONSTANT = 0.98

# =============================================================================
# SUBSYSTEM UPKEEP (step 15)
# =============================================================================

GROUNDING_RECHARGE_RATE = 0.01
REFRIGERATOR_NOMINAL_MK = 10.0
REFRIGERATOR_FLOOR_MK = 5.0
REFRIGERATOR_RELAX_RATE = 0.1     # fraction of the gap closed per tick
REFRIGERATOR_NOMINAL_POWER = 500.0
AETHER_EFFICIENCY_DECAY = 0.0005
AETHER_TURBULENT_BELOW = 0.6
RELAY_DEGRADE_FACTOR = 0.01       # chance per tick = decoherence * factor

# =============================================================================
# INTERVENTIONS
# =============================================================================

PILLAR_BOOST_AMOUNT = 0.1
PILLAR_BOOST_MAX_COST = 0.05
RELAY_CALIBRATION_MAX_COST = 0.03
RELAY_DEGRADED_SUCCESS = 0.8
RELAY_OFFLINE_SUCCESS = 0.3

STAR_COUNT = 7
STAR_CONNECTION_REWARD = 0.05   # concordance.connection_stability on a hit
STAR_ALIGNMENT_REWARD = 0.02    # concordance.alignment_drift on a hit
STAR_MAX_COST = 0.015
STAR_ALIGNMENT_PENALTY = 0.01   # concordance.alignment_drift on a miss
CALIBRATION_EFFECT_SECONDS = 0.8

PURGE_COOLDOWN_SECONDS = 10.0
PURGE_EFFICIENCY_GAIN = 0.2
PURGE_PSI_DRAIN = 0.1
PURGE_DECOHERENCE_COST = 0.05

DISCHARGE_COOLDOWN_SECONDS = 15.0
DISCHARGE_MIN_CHARGE = 0.75
DISCHARGE_RESIDUAL_CHARGE = 0.0     # discharge drains the well completely
DISCHARGE_DECOHERENCE_RELIEF = 0.5

FLUSH_BOOST_SECONDS = 10.0
FLUSH_TEMPERATURE_DROP = 20.0
FLUSH_COOLING_POWER_GAIN = 400.0
FLUSH_DECOHERENCE_COST = 0.03

THERMAL_CALIBRATION_SECONDS = 3.0

# =============================================================================
# RECEIPT SCHEMA
# =============================================================================

RECEIPT_SCHEMA = [
    "tick", "intervention", "guard_expired", "bound_violation",
    "sim_result",
]


# =============================================================================
# ENUMERATIONS
# =============================================================================

class ControlMode(str, Enum):
    """Operator-selected mode; keys the tick engine's effect table."""
    STANDBY = "STANDBY"
    ANALYSIS = "ANALYSIS"
    SYNTHESIS = "SYNTHESIS"
    REPAIR = "REPAIR"
    GROUNDING = "GROUNDING"
    CONCORDANCE = "CONCORDANCE"
    OFFLINE = "OFFLINE"


class GovernanceAxiom(str, Enum):
    """Discrete operational status; FAILURE is terminal."""
    SOVEREIGN = "SOVEREIGN EMBODIMENT"
    CRADLE = "CRADLE OF PRESENCE"
    RECALIBRATING = "RECALIBRATING HARMONICS"
    REGENERATIVE = "REGENERATIVE CYCLE"
    FAILURE = "SYSTEM COMPOSURE FAILURE"


class TriforceState(str, Enum):
    CHARGING = "CHARGING"
    STABLE = "STABLE"
    SUPERNOVA = "SUPERNOVA"


class CoherenceStatus(str, Enum):
    COHERENT = "COHERENT"
    RESONATING = "RESONATING"
    DECOHERING = "DECOHERING"
    CRITICAL = "CRITICAL"


class BreathPhase(str, Enum):
    INHALE = "INHALE"
    EXHALE = "EXHALE"


class HealthStatus(str, Enum):
    STABLE = "STABLE"
    REPAIRING = "REPAIRING"
    DAMAGED = "DAMAGED"


class PillarId(str, Enum):
    ARCTURIAN = "ARCTURIAN"
    LEMURIAN = "LEMURIAN"
    ATLANTEAN = "ATLANTEAN"


class RelayStatus(str, Enum):
    ONLINE = "ONLINE"
    DEGRADED = "DEGRADED"
    OFFLINE = "OFFLINE"


class GroundingStatus(str, Enum):
    CHARGING = "CHARGING"
    DISCHARGING = "DISCHARGING"
    STABLE = "STABLE"
    WEAK = "WEAK"


class FluxStatus(str, Enum):
    STABLE = "STABLE"
    TURBULENT = "TURBULENT"
    STAGNANT = "STAGNANT"


class RefrigeratorStatus(str, Enum):
    STABLE = "STABLE"
    UNSTABLE = "UNSTABLE"
    BOOSTED = "BOOSTED"
    OFFLINE = "OFFLINE"


class UserTier(str, Enum):
    ACOLYTE = "ACOLYTE"
    ARCHITECT = "ARCHITECT"
    SOVEREIGN = "SOVEREIGN"


class Intervention(str, Enum):
    """Guarded interventions; each owns one busy slot."""
    FLOW_PURGE = "FLOW_PURGE"
    GROUNDING_DISCHARGE = "GROUNDING_DISCHARGE"
    COOLANT_FLUSH = "COOLANT_FLUSH"
    THERMAL_CALIBRATION = "THERMAL_CALIBRATION"


GUARD_DURATIONS = {
    Intervention.FLOW_PURGE: PURGE_COOLDOWN_SECONDS,
    Intervention.GROUNDING_DISCHARGE: DISCHARGE_COOLDOWN_SECONDS,
    Intervention.COOLANT_FLUSH: FLUSH_BOOST_SECONDS,
    Intervention.THERMAL_CALIBRATION: THERMAL_CALIBRATION_SECONDS,
}

PILLAR_NAMES = {
    PillarId.ARCTURIAN: "Arcturian Logic",
    PillarId.LEMURIAN: "Lemurian Heart",
    PillarId.ATLANTEAN: "Atlantean Will",
}

RELAY_NAMES = {
    "RELAY_ALPHA": "Alpha Centauri Link",
    "RELAY_BETA": "Sirius B Relay",
}
