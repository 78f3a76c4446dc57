"""
kernel/interventions.py - Intervention Guard Set

Operator-triggered state mutations. Every handler takes a snapshot and
returns the next one; the input snapshot is never modified.

Guarded interventions hold a busy slot until a deadline stored in the
snapshot. The tick engine calls ``expire_guards`` first thing each tick, so
timed reverts run on the same ordered loop as everything else instead of on
ad hoc timers.

Re-entry while busy returns the input snapshot itself: no mutation, no timer
restart, no log entry. A failed precondition returns a copy carrying only a
WARNING entry.
"""

import logging
from typing import Callable, Dict, List, Optional, Union

import numpy as np

from event_log import LogEntry, LogType, append, make_entry

from .constants import (
    CALIBRATION_EFFECT_SECONDS,
    DISCHARGE_DECOHERENCE_RELIEF,
    DISCHARGE_MIN_CHARGE,
    DISCHARGE_RESIDUAL_CHARGE,
    FLUSH_COOLING_POWER_GAIN,
    FLUSH_DECOHERENCE_COST,
    FLUSH_TEMPERATURE_DROP,
    GUARD_DURATIONS,
    LOG_CAPACITY,
    PILLAR_BOOST_AMOUNT,
    PILLAR_BOOST_MAX_COST,
    PURGE_DECOHERENCE_COST,
    PURGE_EFFICIENCY_GAIN,
    PURGE_PSI_DRAIN,
    REFRIGERATOR_FLOOR_MK,
    REFRIGERATOR_NOMINAL_MK,
    RELAY_CALIBRATION_MAX_COST,
    RELAY_DEGRADED_SUCCESS,
    RELAY_OFFLINE_SUCCESS,
    STAR_ALIGNMENT_PENALTY,
    STAR_ALIGNMENT_REWARD,
    STAR_CONNECTION_REWARD,
    STAR_COUNT,
    STAR_MAX_COST,
    FluxStatus,
    GroundingStatus,
    Intervention,
    PillarId,
    RefrigeratorStatus,
    RelayStatus,
)
from .types_state import CalibrationEffect, SystemState
from .validation import clamp

logger = logging.getLogger(__name__)


def _log(state: SystemState, log_type: LogType, message: str, now: float,
         capacity: int = LOG_CAPACITY) -> None:
    state.log = append(state.log, make_entry(log_type, message, now), capacity)


# =============================================================================
# CALIBRATION GAME
# =============================================================================

def draw_calibration_target(rng: np.random.Generator, exclude: Optional[int] = None) -> int:
    """
    Draw a star id in 1..STAR_COUNT, never equal to ``exclude``.

    Uses one draw over the remaining ids rather than rejection sampling, so
    the generator always advances by exactly one value.
    """
    choices = [i for i in range(1, STAR_COUNT + 1) if i != exclude]
    return int(choices[int(rng.integers(len(choices)))])


def calibrate_star(state: SystemState, star_id: int, rng: np.random.Generator,
                   now: float, capacity: int = LOG_CAPACITY) -> SystemState:
    """
    Hit the current target to tighten concordance; a miss widens the drift.

    The reward lands on the concordance record, which feeds the resonance
    blend on the next tick. An id outside 1..STAR_COUNT is logged and
    otherwise ignored.
    """
    nxt = state.copy()
    if not 1 <= star_id <= STAR_COUNT:
        _log(nxt, LogType.WARNING, f"Star {star_id} not in the array (1..{STAR_COUNT}).", now, capacity)
        return nxt

    c = nxt.concordance
    if star_id == nxt.calibration_target:
        _log(nxt, LogType.SYSTEM, f"Star {star_id} locked. Harmonic calibration in progress.", now, capacity)
        c.connection_stability = clamp(c.connection_stability + STAR_CONNECTION_REWARD)
        c.alignment_drift = clamp(c.alignment_drift - STAR_ALIGNMENT_REWARD)
        nxt.health.decoherence = clamp(nxt.health.decoherence + rng.uniform(0.0, STAR_MAX_COST))
        nxt.calibration_target = draw_calibration_target(rng, exclude=star_id)
        nxt.calibration_effect = CalibrationEffect(star_id, True, now + CALIBRATION_EFFECT_SECONDS)
        _log(nxt, LogType.INFO,
             f"Calibration success. Next target: star {nxt.calibration_target}.", now, capacity)
    else:
        _log(nxt, LogType.SYSTEM, f"Star {star_id} scanned.", now, capacity)
        c.alignment_drift = clamp(c.alignment_drift + STAR_ALIGNMENT_PENALTY)
        nxt.calibration_effect = CalibrationEffect(star_id, False, now + CALIBRATION_EFFECT_SECONDS)
        _log(nxt, LogType.WARNING,
             f"Calibration miss on star {star_id}. Alignment drift rising.", now, capacity)
    return nxt


# =============================================================================
# UNGUARDED INTERVENTIONS
# =============================================================================

def boost_pillar(state: SystemState, pillar_id: Union[PillarId, str],
                 rng: np.random.Generator, now: float, capacity: int = LOG_CAPACITY) -> SystemState:
    """
    Raise one pillar's activation at a small decoherence cost.

    Raises:
        KeyError: unknown pillar id
    """
    pid = pillar_id if isinstance(pillar_id, PillarId) else PillarId[str(pillar_id).upper()]
    nxt = state.copy()
    pillar = nxt.pillars[pid]
    _log(nxt, LogType.SYSTEM, f"Channeling energy into {pillar.name}.", now, capacity)
    pillar.activation = clamp(pillar.activation + PILLAR_BOOST_AMOUNT)
    cost = rng.uniform(0.0, PILLAR_BOOST_MAX_COST)
    nxt.health.decoherence = clamp(nxt.health.decoherence + cost)
    _log(nxt, LogType.WARNING, f"{pillar.name} amplified. Decoherence +{cost:.3f}.", now, capacity)
    return nxt


def calibrate_relay(state: SystemState, relay_id: str, rng: np.random.Generator,
                    now: float, capacity: int = LOG_CAPACITY) -> SystemState:
    """DEGRADED -> ONLINE (p=0.8), OFFLINE -> DEGRADED (p=0.3)."""
    nxt = state.copy()
    relay = nxt.relays.get(relay_id)
    if relay is None:
        _log(nxt, LogType.WARNING, f"Relay {relay_id} not found.", now, capacity)
        return nxt

    _log(nxt, LogType.SYSTEM, f"Calibrating {relay.name}...", now, capacity)
    roll = rng.random()
    if relay.status == RelayStatus.DEGRADED and roll < RELAY_DEGRADED_SUCCESS:
        relay.status = RelayStatus.ONLINE
        _log(nxt, LogType.INFO, f"{relay.name} restored to ONLINE.", now, capacity)
    elif relay.status == RelayStatus.OFFLINE and roll < RELAY_OFFLINE_SUCCESS:
        relay.status = RelayStatus.DEGRADED
        _log(nxt, LogType.INFO, f"{relay.name} partially restored (DEGRADED).", now, capacity)
    else:
        _log(nxt, LogType.WARNING, f"{relay.name} calibration had no effect ({relay.status.value}).", now, capacity)
    nxt.health.decoherence = clamp(nxt.health.decoherence + rng.uniform(0.0, RELAY_CALIBRATION_MAX_COST))
    return nxt


# =============================================================================
# GUARDED INTERVENTIONS
# =============================================================================

def purge_flow(state: SystemState, now: float, capacity: int = LOG_CAPACITY) -> SystemState:
    if state.guards.is_busy(Intervention.FLOW_PURGE):
        return state
    nxt = state.copy()
    _log(nxt, LogType.SYSTEM, "Initiating aetheric flow purge.", now, capacity)
    nxt.aether.flux_status = FluxStatus.STABLE
    nxt.aether.efficiency = clamp(nxt.aether.efficiency + PURGE_EFFICIENCY_GAIN)
    nxt.triforce.psi_energy = clamp(nxt.triforce.psi_energy - PURGE_PSI_DRAIN)
    nxt.health.decoherence = clamp(nxt.health.decoherence + PURGE_DECOHERENCE_COST)
    nxt.guards.arm(Intervention.FLOW_PURGE, now + GUARD_DURATIONS[Intervention.FLOW_PURGE])
    _log(nxt, LogType.INFO, "Flow purged. Psi energy drawn down.", now, capacity)
    return nxt


def grounding_discharge(state: SystemState, now: float, capacity: int = LOG_CAPACITY) -> SystemState:
    """Dump the grounding charge to shed decoherence. Needs charge >= 0.75."""
    if state.guards.is_busy(Intervention.GROUNDING_DISCHARGE):
        return state
    if state.grounding.charge < DISCHARGE_MIN_CHARGE:
        nxt = state.copy()
        message = f"Insufficient grounding charge ({nxt.grounding.charge:.2f} < {DISCHARGE_MIN_CHARGE})."
        _log(nxt, LogType.WARNING, message, now, capacity)
        return nxt
    nxt = state.copy()
    _log(nxt, LogType.SYSTEM, "Earth grounding discharge engaged.", now, capacity)
    nxt.grounding.status = GroundingStatus.DISCHARGING
    nxt.grounding.charge = DISCHARGE_RESIDUAL_CHARGE
    nxt.health.decoherence = clamp(nxt.health.decoherence - DISCHARGE_DECOHERENCE_RELIEF)
    nxt.guards.arm(Intervention.GROUNDING_DISCHARGE,
                   now + GUARD_DURATIONS[Intervention.GROUNDING_DISCHARGE])
    _log(nxt, LogType.INFO, "Decoherence shunted to ground.", now, capacity)
    return nxt


def coolant_flush(state: SystemState, now: float, capacity: int = LOG_CAPACITY) -> SystemState:
    if state.guards.is_busy(Intervention.COOLANT_FLUSH):
        return state
    nxt = state.copy()
    r = nxt.refrigerator
    _log(nxt, LogType.SYSTEM, "Coolant flush initiated.", now, capacity)
    r.status = RefrigeratorStatus.BOOSTED
    r.temperature = max(REFRIGERATOR_FLOOR_MK, r.temperature - FLUSH_TEMPERATURE_DROP)
    r.cooling_power += FLUSH_COOLING_POWER_GAIN
    nxt.health.decoherence = clamp(nxt.health.decoherence + FLUSH_DECOHERENCE_COST)
    nxt.guards.arm(Intervention.COOLANT_FLUSH, now + GUARD_DURATIONS[Intervention.COOLANT_FLUSH])
    _log(nxt, LogType.INFO, f"Refrigerator boosted to {r.temperature:.1f} mK.", now, capacity)
    return nxt


def thermal_calibrate(state: SystemState, now: float, capacity: int = LOG_CAPACITY) -> SystemState:
    """Effect lands on expiry: temperature reset to nominal."""
    if state.guards.is_busy(Intervention.THERMAL_CALIBRATION):
        return state
    nxt = state.copy()
    _log(nxt, LogType.SYSTEM, "Thermal calibration started.", now, capacity)
    nxt.guards.arm(Intervention.THERMAL_CALIBRATION,
                   now + GUARD_DURATIONS[Intervention.THERMAL_CALIBRATION])
    return nxt


# =============================================================================
# TIMED REVERTS
# =============================================================================

def _revert_flow_purge(state: SystemState) -> str:
    return "Flow purge cooldown complete."


def _revert_grounding_discharge(state: SystemState) -> str:
    state.grounding.status = (
        GroundingStatus.STABLE if state.grounding.charge >= DISCHARGE_MIN_CHARGE
        else GroundingStatus.CHARGING
    )
    return "Grounding discharge complete. Well recharging."


def _revert_coolant_flush(state: SystemState) -> str:
    state.refrigerator.status = RefrigeratorStatus.STABLE
    return "Coolant flush complete. Refrigerator nominal."


def _revert_thermal_calibration(state: SystemState) -> str:
    state.refrigerator.temperature = REFRIGERATOR_NOMINAL_MK
    state.refrigerator.status = RefrigeratorStatus.STABLE
    return f"Thermal calibration complete. Core held at {REFRIGERATOR_NOMINAL_MK:.0f} mK."


REVERTS: Dict[Intervention, Callable[[SystemState], str]] = {
    Intervention.FLOW_PURGE: _revert_flow_purge,
    Intervention.GROUNDING_DISCHARGE: _revert_grounding_discharge,
    Intervention.COOLANT_FLUSH: _revert_coolant_flush,
    Intervention.THERMAL_CALIBRATION: _revert_thermal_calibration,
}


def expire_guards(state: SystemState, now: float) -> List[LogEntry]:
    """
    Run the revert for every guard whose deadline has passed.

    Mutates ``state`` in place, so callers pass a working copy. Also clears a
    stale calibration effect.

    Args:
        state: Working copy
        now: Session clock

    Returns:
        Log entries for the completed reverts, oldest first
    """
    entries = []
    for intervention in state.guards.expired(now):
        message = REVERTS[intervention](state)
        state.guards.release(intervention)
        entries.append(make_entry(LogType.INFO, message, now))
        logger.debug("guard %s expired at %.2f", intervention.value, now)
    effect = state.calibration_effect
    if effect is not None and effect.deadline <= now:
        state.calibration_effect = None
    return entries


# =============================================================================
# RESET
# =============================================================================

def reset_state(state: SystemState, rng: np.random.Generator, now: float,
                capacity: int = LOG_CAPACITY) -> SystemState:
    """
    Rebuild the snapshot from defaults, keeping user resources.

    The only way out of FAILURE.
    """
    nxt = SystemState()
    nxt.resources = state.copy().resources
    nxt.calibration_target = draw_calibration_target(rng)
    nxt.clock = now
    _log(nxt, LogType.SYSTEM, "Full system reset. Defaults restored.", now, capacity)
    return nxt
