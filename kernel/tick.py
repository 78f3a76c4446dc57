"""
kernel/tick.py - Simulation Tick Engine

One tick reads the previous snapshot and returns the next one. The previous
snapshot is never touched: every step below works on a single working copy.

Tick sequence:
     0. expire intervention guards (timed reverts)
     1. diagnostic jitter on resonance
     2. optimization boost
     3. entropy modifier
     4. spontaneous decoherence / lesion events (+ biometric strain)
     5. shield feedback
     6. passive healing, base decoherence decay
     7. control-mode effects
     8. health recompute
     9. governance axiom (FAILURE latched)
    10. pillar and triforce random walks
    11. concordance
 10b-14. derived fields (kernel.derivations DAG)
    15. subsystem upkeep, clamp

Randomness comes only from the injected ``numpy.random.Generator``; two
engines given equal snapshots and equally seeded generators agree exactly.
"""

import logging
from typing import List, Optional, Tuple

import numpy as np

from event_log import LogEntry, LogType, extend, make_entry
from receipts import StopRule, emit_receipt

from .classifier import DEFAULT_THRESHOLDS, ClassifierThresholds, next_governance_axiom
from .constants import (
    AETHER_EFFICIENCY_DECAY,
    AETHER_TURBULENT_BELOW,
    BASE_REPAIR_RATE,
    BIOMETRIC_STRAIN_DECOHERENCE,
    BIOMETRIC_STRAIN_LOG_CHANCE,
    BIOMETRIC_STRAIN_THRESHOLD,
    CONCORDANCE_DRIFT_CORRECTION,
    CONCORDANCE_DRIFT_GROWTH,
    CONCORDANCE_STABILITY_EROSION,
    CONCORDANCE_STABILITY_GAIN,
    DECOHERENCE_BASE_DECAY,
    DECOHERENCE_RESONANCE_DECAY,
    DECOHERENCE_SPIKE,
    DIAGNOSTIC_JITTER_AMPLITUDE,
    DISCHARGE_MIN_CHARGE,
    GROUNDED_ENTROPY_MODIFIER,
    GROUNDING_MODE_DECOHERENCE_REDUCTION,
    GROUNDING_MODE_ENTROPY_MODIFIER,
    GROUNDING_MODE_HEALTH_BOOST,
    GROUNDING_MODE_SHIELD_BOOST,
    GROUNDING_RECHARGE_RATE,
    HEALTH_DECOHERENCE_PENALTY,
    HEALTH_LESION_PENALTY,
    LESION_SHIELD_THRESHOLD,
    LOG_CAPACITY,
    OFFLINE_HEALTH_DRAIN,
    OFFLINE_SHIELD_DRAIN,
    OPTIMIZATION_DECOHERENCE_REDUCTION,
    OPTIMIZATION_HEALTH_BOOST,
    OPTIMIZATION_LESION_HEAL_CHANCE,
    OPTIMIZATION_RESONANCE_BOOST,
    OPTIMIZATION_SHIELD_BOOST,
    PASSIVE_HEAL_DECOHERENCE,
    PASSIVE_HEAL_LESIONS,
    PASSIVE_HEAL_RATE,
    PILLAR_BOOST_MAX,
    PILLAR_DECAY_CHANCE,
    PILLAR_DECAY_MAX,
    REFRIGERATOR_NOMINAL_MK,
    REFRIGERATOR_NOMINAL_POWER,
    REFRIGERATOR_RELAX_RATE,
    RELAY_DEGRADE_FACTOR,
    REPAIR_MODE_DECOHERENCE_REDUCTION,
    REPAIR_MODE_HEAL_CHANCE,
    REPAIR_MODE_REPAIR_RATE,
    RESONANCE_JITTER_FLOOR,
    SHIELD_DAMPING,
    SHIELD_DECAY_RATE,
    SHIELD_RECOVERY_DECOHERENCE,
    SHIELD_RECOVERY_RATE,
    SHIELD_RECOVERY_RESONANCE,
    SYNTHESIS_MODE_REPAIR_RATE,
    TICK_PERIOD_SECONDS,
    TRIFORCE_WALK_AMPLITUDE,
    ControlMode,
    FluxStatus,
    GovernanceAxiom,
    GroundingStatus,
    HealthStatus,
    RefrigeratorStatus,
    RelayStatus,
)
from .derivations import evaluate_derivations
from .interventions import draw_calibration_target, expire_guards
from .types_config import DEFAULT_PARAMS, SimulationParams, TickFlags
from .types_result import SimResult
from .types_state import SystemState
from .validation import clamp, clamp_state, find_bound_violations

logger = logging.getLogger(__name__)

Events = List[Tuple[LogType, str]]


# =============================================================================
# STEPS 1-4: PERTURBATIONS
# =============================================================================

def apply_diagnostic_jitter(state: SystemState, rng: np.random.Generator) -> None:
    """Step 1: bounded noise on resonance while diagnostics run."""
    noise = (rng.random() - 0.5) * DIAGNOSTIC_JITTER_AMPLITUDE
    state.resonance_factor = clamp(state.resonance_factor + noise, RESONANCE_JITTER_FLOOR, 1.0)


def apply_optimization_boost(state: SystemState, rng: np.random.Generator) -> None:
    """Step 2: one-shot relief applied on every tick the boost is active."""
    h = state.health
    h.decoherence = clamp(h.decoherence - OPTIMIZATION_DECOHERENCE_REDUCTION)
    h.health = clamp(h.health + OPTIMIZATION_HEALTH_BOOST)
    if h.lesions > 0 and rng.random() < OPTIMIZATION_LESION_HEAL_CHANCE:
        h.lesions -= 1
    h.stabilization_shield = clamp(h.stabilization_shield + OPTIMIZATION_SHIELD_BOOST)
    state.resonance_factor = clamp(state.resonance_factor + OPTIMIZATION_RESONANCE_BOOST)


def entropy_modifier(grounded: bool, mode: ControlMode) -> float:
    """Step 3: grounding (flag or mode) scales the base event rates down."""
    modifier = 1.0
    if grounded:
        modifier *= GROUNDED_ENTROPY_MODIFIER
    if mode == ControlMode.GROUNDING:
        modifier *= GROUNDING_MODE_ENTROPY_MODIFIER
    return modifier


def apply_entropy_events(
    state: SystemState,
    params: SimulationParams,
    modifier: float,
    boosted: bool,
    rng: np.random.Generator,
    events: Events,
) -> None:
    """
    Step 4: spontaneous decoherence and lesion events.

    Both Bernoulli trials are always drawn so the random stream advances the
    same way whatever the outcome. A boosted tick ignores both; lesions only
    land while the shield is below LESION_SHIELD_THRESHOLD.
    """
    h = state.health
    decoherence_hit = rng.random() < params.decoherence_chance * modifier
    lesion_hit = rng.random() < params.lesion_chance * modifier
    if boosted:
        return
    if decoherence_hit:
        spike = DECOHERENCE_SPIKE * (1.0 - h.stabilization_shield * SHIELD_DAMPING)
        h.decoherence = clamp(h.decoherence + spike)
    if lesion_hit and h.stabilization_shield < LESION_SHIELD_THRESHOLD:
        h.lesions += 1
        events.append((LogType.WARNING, f"Structural lesion detected. Active lesions: {h.lesions}."))

    if state.biometric.coherence < BIOMETRIC_STRAIN_THRESHOLD:
        h.decoherence = clamp(h.decoherence + BIOMETRIC_STRAIN_DECOHERENCE)
        if rng.random() < BIOMETRIC_STRAIN_LOG_CHANCE:
            events.append((LogType.WARNING,
                           "Lattice fracture: neural instability detected. Throttle logic core."))


# =============================================================================
# STEPS 5-8: FEEDBACK, HEALING, MODES
# =============================================================================

def apply_shield_feedback(state: SystemState, boosted: bool) -> None:
    """Step 5."""
    h = state.health
    if h.decoherence < SHIELD_RECOVERY_DECOHERENCE and state.resonance_factor > SHIELD_RECOVERY_RESONANCE:
        h.stabilization_shield = clamp(h.stabilization_shield + SHIELD_RECOVERY_RATE)
    elif not boosted:
        h.stabilization_shield = clamp(h.stabilization_shield - h.decoherence * SHIELD_DECAY_RATE)


def apply_passive_healing(state: SystemState) -> None:
    """Step 6."""
    h = state.health
    if h.decoherence < PASSIVE_HEAL_DECOHERENCE and h.lesions < PASSIVE_HEAL_LESIONS:
        h.health = clamp(h.health + PASSIVE_HEAL_RATE * state.resonance_factor)
    decay = DECOHERENCE_BASE_DECAY + DECOHERENCE_RESONANCE_DECAY * state.resonance_factor
    h.decoherence = clamp(h.decoherence - decay)


def apply_mode_effects(state: SystemState, mode: ControlMode, rng: np.random.Generator) -> None:
    """Step 7: exactly one mode's effect applies."""
    h = state.health
    if mode == ControlMode.REPAIR:
        h.repair_rate = REPAIR_MODE_REPAIR_RATE
        if h.lesions > 0 and rng.random() < REPAIR_MODE_HEAL_CHANCE:
            h.lesions -= 1
        h.decoherence = clamp(h.decoherence - REPAIR_MODE_DECOHERENCE_REDUCTION)
    elif mode == ControlMode.GROUNDING:
        h.repair_rate = BASE_REPAIR_RATE
        h.decoherence = clamp(h.decoherence - GROUNDING_MODE_DECOHERENCE_REDUCTION)
        h.health = clamp(h.health + GROUNDING_MODE_HEALTH_BOOST)
        h.stabilization_shield = clamp(h.stabilization_shield + GROUNDING_MODE_SHIELD_BOOST)
    elif mode == ControlMode.SYNTHESIS:
        h.repair_rate = SYNTHESIS_MODE_REPAIR_RATE
    elif mode == ControlMode.OFFLINE:
        h.repair_rate = 0.0
        h.health = clamp(h.health - OFFLINE_HEALTH_DRAIN)
        h.stabilization_shield = clamp(h.stabilization_shield - OFFLINE_SHIELD_DRAIN)
    else:
        h.repair_rate = BASE_REPAIR_RATE


def recompute_health(state: SystemState) -> None:
    """Step 8."""
    h = state.health
    h.health = clamp(
        h.health + h.repair_rate
        - h.decoherence * HEALTH_DECOHERENCE_PENALTY
        - h.lesions * HEALTH_LESION_PENALTY
    )


def apply_governance(state: SystemState, thresholds: ClassifierThresholds, events: Events) -> None:
    """Step 9."""
    previous = state.governance_axiom
    h = state.health
    axiom = next_governance_axiom(previous, h.health, h.lesions, h.decoherence, thresholds)
    if axiom != previous:
        if axiom == GovernanceAxiom.FAILURE:
            events.append((LogType.CRITICAL, f"{axiom.value}: composure lost. Full reset required."))
        else:
            events.append((LogType.SYSTEM, f"Governance axiom shifted to {axiom.value}."))
    state.governance_axiom = axiom


# =============================================================================
# STEPS 10-11: RANDOM WALKS, CONCORDANCE
# =============================================================================

def walk_pillars(state: SystemState, optimization_active: bool, rng: np.random.Generator) -> None:
    """Step 10a: rare small decay, or steady growth under optimization."""
    for pillar in state.pillars.values():
        if optimization_active:
            pillar.activation = clamp(pillar.activation + rng.uniform(0.0, PILLAR_BOOST_MAX))
        elif rng.random() < PILLAR_DECAY_CHANCE:
            pillar.activation = clamp(pillar.activation - rng.uniform(0.0, PILLAR_DECAY_MAX))


def walk_triforce(state: SystemState, rng: np.random.Generator) -> None:
    """Step 10b: symmetric random walk on each energy."""
    t = state.triforce
    steps = (rng.random(3) - 0.5) * TRIFORCE_WALK_AMPLITUDE
    t.phi_energy = clamp(t.phi_energy + steps[0])
    t.psi_energy = clamp(t.psi_energy + steps[1])
    t.omega_energy = clamp(t.omega_energy + steps[2])


def update_concordance(state: SystemState, mode: ControlMode, optimization_active: bool) -> None:
    """Step 11: stability only improves in CONCORDANCE mode or under boost."""
    c = state.concordance
    if mode == ControlMode.CONCORDANCE or optimization_active:
        c.alignment_drift = clamp(c.alignment_drift - CONCORDANCE_DRIFT_CORRECTION)
        c.connection_stability = clamp(c.connection_stability + CONCORDANCE_STABILITY_GAIN)
    else:
        c.alignment_drift = clamp(c.alignment_drift + CONCORDANCE_DRIFT_GROWTH)
        c.connection_stability = clamp(
            c.connection_stability - c.alignment_drift * CONCORDANCE_STABILITY_EROSION
        )


# =============================================================================
# STEP 15: SUBSYSTEM UPKEEP
# =============================================================================

def apply_subsystem_upkeep(state: SystemState, rng: np.random.Generator, events: Events) -> None:
    g = state.grounding
    g.charge = clamp(g.charge + GROUNDING_RECHARGE_RATE)
    if g.status != GroundingStatus.DISCHARGING:
        g.status = GroundingStatus.CHARGING if g.charge < DISCHARGE_MIN_CHARGE else GroundingStatus.STABLE

    r = state.refrigerator
    if r.status != RefrigeratorStatus.BOOSTED:
        r.temperature += (REFRIGERATOR_NOMINAL_MK - r.temperature) * REFRIGERATOR_RELAX_RATE
        r.cooling_power += (REFRIGERATOR_NOMINAL_POWER - r.cooling_power) * REFRIGERATOR_RELAX_RATE

    a = state.aether
    a.efficiency = clamp(a.efficiency - AETHER_EFFICIENCY_DECAY)
    if a.efficiency < AETHER_TURBULENT_BELOW:
        a.flux_status = FluxStatus.TURBULENT

    degrade_chance = state.health.decoherence * RELAY_DEGRADE_FACTOR
    for relay in state.relays.values():
        if rng.random() < degrade_chance and relay.status == RelayStatus.ONLINE:
            relay.status = RelayStatus.DEGRADED
            events.append((LogType.WARNING, f"{relay.name} signal degraded."))


def health_status(state: SystemState) -> HealthStatus:
    h = state.health
    if h.lesions == 0 and h.decoherence < SHIELD_RECOVERY_DECOHERENCE:
        return HealthStatus.STABLE
    if h.repair_rate > BASE_REPAIR_RATE:
        return HealthStatus.REPAIRING
    return HealthStatus.DAMAGED


# =============================================================================
# TICK
# =============================================================================

def tick(
    prev: SystemState,
    params: SimulationParams,
    mode: ControlMode,
    flags: TickFlags,
    rng: np.random.Generator,
    now: Optional[float] = None,
    thresholds: ClassifierThresholds = DEFAULT_THRESHOLDS,
    log_capacity: int = LOG_CAPACITY,
) -> SystemState:
    """
    Compute the next snapshot.

    Args:
        prev: Previous snapshot (not modified)
        params: Latest event rates
        mode: Latest control mode
        flags: Latest host toggles
        rng: Sole source of randomness
        now: Session clock; defaults to prev.clock + one period
        thresholds: Governance classifier cutoffs
        log_capacity: Maximum retained log entries

    Returns:
        New SystemState with every bounded field clamped
    """
    now = prev.clock + TICK_PERIOD_SECONDS if now is None else now
    state = prev.copy()
    events: Events = []

    expiry_entries = expire_guards(state, now)                           # 0

    if flags.diagnostic:
        apply_diagnostic_jitter(state, rng)                              # 1
    boosted = flags.optimization_active
    if boosted:
        apply_optimization_boost(state, rng)                             # 2
    modifier = entropy_modifier(flags.grounded, mode)                    # 3
    apply_entropy_events(state, params, modifier, boosted, rng, events)  # 4
    apply_shield_feedback(state, boosted)                                # 5
    apply_passive_healing(state)                                         # 6
    apply_mode_effects(state, mode, rng)                                 # 7
    recompute_health(state)                                              # 8
    apply_governance(state, thresholds, events)                          # 9
    walk_pillars(state, flags.optimization_active, rng)                  # 10
    walk_triforce(state, rng)
    update_concordance(state, mode, flags.optimization_active)           # 11
    evaluate_derivations(state, flags)                                   # 10b, 12-14
    apply_subsystem_upkeep(state, rng, events)                           # 15
    state.health.status = health_status(state)

    clamp_state(state)
    state.tick_count += 1
    state.clock = now

    entries: List[LogEntry] = list(expiry_entries)
    entries.extend(make_entry(t, m, now) for t, m in events)
    state.log = extend(state.log, entries, log_capacity)
    return state


# =============================================================================
# HEADLESS RUNS
# =============================================================================

def initialize_state(rng: np.random.Generator) -> SystemState:
    """Fresh default snapshot with a random calibration target."""
    state = SystemState()
    state.calibration_target = draw_calibration_target(rng)
    return state


def run_simulation(
    n_ticks: int,
    params: SimulationParams = DEFAULT_PARAMS,
    mode: ControlMode = ControlMode.STANDBY,
    flags: TickFlags = TickFlags(),
    seed: int = 42,
    initial: Optional[SystemState] = None,
    thresholds: ClassifierThresholds = DEFAULT_THRESHOLDS,
    strict: bool = False,
) -> SimResult:
    """
    Run ``n_ticks`` ticks with fixed inputs.

    Args:
        n_ticks: Number of ticks
        params: Event rates
        mode: Control mode
        flags: Host toggles
        seed: Generator seed
        initial: Starting snapshot (defaults to a fresh one)
        thresholds: Classifier cutoffs
        strict: Raise StopRule on the first bound violation

    Returns:
        SimResult with final state, traces, violations and statistics
    """
    rng = np.random.default_rng(seed)
    state = initial.copy() if initial is not None else initialize_state(rng)
    traces = {"health": [], "decoherence": [], "resonance_factor": [],
              "lesions": [], "governance_axiom": []}
    violations: List[dict] = []
    first_failure: Optional[int] = None

    for _ in range(n_ticks):
        state = tick(state, params, mode, flags, rng, thresholds=thresholds)
        found = find_bound_violations(state)
        if found:
            if strict:
                raise StopRule(f"bound violation at tick {state.tick_count}: {found}")
            violations.extend({"tick": state.tick_count, **v} for v in found)
        if state.is_failed and first_failure is None:
            first_failure = state.tick_count
        traces["health"].append(state.health.health)
        traces["decoherence"].append(state.health.decoherence)
        traces["resonance_factor"].append(state.resonance_factor)
        traces["lesions"].append(state.health.lesions)
        traces["governance_axiom"].append(state.governance_axiom.value)

    statistics = {
        "ticks": n_ticks,
        "final_axiom": state.governance_axiom.value,
        "first_failure_tick": first_failure,
        "min_health": min(traces["health"], default=state.health.health),
        "max_decoherence": max(traces["decoherence"], default=state.health.decoherence),
        "final_lesions": state.health.lesions,
    }
    logger.debug("run_simulation finished: %s", statistics)

    receipt = emit_receipt("sim_result", {
        "tenant_id": "kernel",
        "mode": mode.value,
        "decoherence_chance": params.decoherence_chance,
        "lesion_chance": params.lesion_chance,
        "seed": seed,
        **statistics,
    })

    return SimResult(
        final_state=state,
        traces=traces,
        violations=violations,
        statistics=statistics,
        params=params,
        receipts=[receipt],
    )
