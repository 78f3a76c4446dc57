"""
tests/test_interventions.py - Intervention Guard Set Tests

Validates:
- guard idempotence (busy re-entry is a silent no-op)
- grounding discharge scenario and its precondition
- timed reverts via expire_guards / tick
- calibration game target rotation
- relay calibration and pillar boost costs
"""

import numpy as np
import pytest

from event_log import LogType
from kernel.constants import (
    REFRIGERATOR_NOMINAL_MK,
    ControlMode,
    FluxStatus,
    GroundingStatus,
    Intervention,
    PillarId,
    RefrigeratorStatus,
    RelayStatus,
)
from kernel.interventions import (
    boost_pillar,
    calibrate_relay,
    calibrate_star,
    coolant_flush,
    draw_calibration_target,
    expire_guards,
    grounding_discharge,
    purge_flow,
    thermal_calibrate,
)
from kernel.tick import tick
from kernel.types_config import SCENARIO_STILL_POINT, TickFlags
from kernel.types_state import SystemState


class FixedRng:
    """Generator stand-in: every draw sits at the low end of its range."""

    def __init__(self, value=0.0):
        self.value = value

    def random(self):
        return self.value

    def uniform(self, low=0.0, high=1.0):
        return low + (high - low) * self.value


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def rng():
    return np.random.default_rng(7)


@pytest.fixture
def state():
    s = SystemState()
    s.health.decoherence = 0.4
    return s


@pytest.fixture
def loose_concordance():
    """Concordance with room to improve; the star target is 3."""
    s = SystemState()
    s.concordance.connection_stability = 0.8
    s.concordance.alignment_drift = 0.1
    s.calibration_target = 3
    return s


def _tick_once(state, seed=11):
    return tick(state, SCENARIO_STILL_POINT.params, ControlMode.STANDBY, TickFlags(),
                np.random.default_rng(seed), now=1.0)


GUARDED = [
    (Intervention.FLOW_PURGE, purge_flow),
    (Intervention.GROUNDING_DISCHARGE, grounding_discharge),
    (Intervention.COOLANT_FLUSH, coolant_flush),
    (Intervention.THERMAL_CALIBRATION, thermal_calibrate),
]


# =============================================================================
# GUARD IDEMPOTENCE
# =============================================================================

class TestGuardIdempotence:

    @pytest.mark.parametrize("intervention,handler", GUARDED)
    def test_second_call_is_noop(self, state, intervention, handler):
        """Second call inside the busy window changes nothing at all."""
        first = handler(state, 0.0)
        assert first.guards.is_busy(intervention)
        deadline = first.guards.slots[intervention].deadline

        second = handler(first, 1.0)
        assert second is first
        assert second.guards.slots[intervention].deadline == deadline
        assert len(second.log) == len(first.log)

    @pytest.mark.parametrize("intervention,handler", GUARDED)
    def test_input_not_mutated(self, state, intervention, handler):
        before = state.to_dict()
        handler(state, 0.0)
        assert state.to_dict() == before

    @pytest.mark.parametrize("intervention,handler", GUARDED)
    def test_logs_around_effect(self, state, intervention, handler):
        after = handler(state, 0.0)
        assert len(after.log) >= 1
        assert after.log[-1].type == LogType.SYSTEM


# =============================================================================
# GROUNDING DISCHARGE
# =============================================================================

class TestGroundingDischarge:

    def test_zeroes_charge_and_sheds_decoherence(self, state):
        nxt = grounding_discharge(state, 0.0)
        assert nxt.grounding.charge == 0.0
        assert nxt.health.decoherence == 0.0
        assert nxt.grounding.status == GroundingStatus.DISCHARGING

    def test_repeated_calls_never_raise_decoherence(self, state):
        """Repeated discharges: decoherence non-increasing, charge ends at zero."""
        current = state
        for now in [0.0, 1.0, 5.0, 14.0]:
            nxt = grounding_discharge(current, now)
            assert nxt.health.decoherence <= current.health.decoherence
            assert nxt.grounding.charge == 0.0
            current = nxt

    def test_insufficient_charge_warns_only(self, state):
        state.grounding.charge = 0.5
        nxt = grounding_discharge(state, 0.0)
        assert nxt.log[0].type == LogType.WARNING
        assert nxt.grounding.charge == 0.5
        assert nxt.health.decoherence == state.health.decoherence
        assert not nxt.guards.is_busy(Intervention.GROUNDING_DISCHARGE)

    def test_after_cooldown_charge_is_too_low(self, state, rng):
        """The drained well cannot be discharged again right after the cooldown."""
        s = grounding_discharge(state, 0.0)
        s = tick(s, SCENARIO_STILL_POINT.params, ControlMode.STANDBY, TickFlags(), rng, now=15.0)
        assert not s.guards.is_busy(Intervention.GROUNDING_DISCHARGE)
        assert s.grounding.status == GroundingStatus.CHARGING
        again = grounding_discharge(s, 16.0)
        assert again.log[0].type == LogType.WARNING


# =============================================================================
# TIMED REVERTS
# =============================================================================

class TestTimedReverts:

    def test_coolant_flush_reverts_on_deadline(self, state, rng):
        s = coolant_flush(state, 0.0)
        assert s.refrigerator.status == RefrigeratorStatus.BOOSTED
        assert s.refrigerator.temperature == 5.0

        early = tick(s, SCENARIO_STILL_POINT.params, ControlMode.STANDBY, TickFlags(), rng, now=9.0)
        assert early.refrigerator.status == RefrigeratorStatus.BOOSTED

        done = tick(early, SCENARIO_STILL_POINT.params, ControlMode.STANDBY, TickFlags(), rng, now=10.0)
        assert done.refrigerator.status == RefrigeratorStatus.STABLE
        assert not done.guards.is_busy(Intervention.COOLANT_FLUSH)
        assert any("Coolant flush complete" in e.message for e in done.log)

    def test_thermal_calibration_lands_on_expiry(self, state):
        s = thermal_calibrate(state, 0.0)
        s.refrigerator.temperature = 42.0
        entries = expire_guards(s, 3.0)
        assert s.refrigerator.temperature == REFRIGERATOR_NOMINAL_MK
        assert s.refrigerator.status == RefrigeratorStatus.STABLE
        assert len(entries) == 1

    def test_purge_flow_effect_and_cooldown(self, state):
        state.aether.flux_status = FluxStatus.TURBULENT
        s = purge_flow(state, 0.0)
        assert s.aether.flux_status == FluxStatus.STABLE
        assert s.triforce.psi_energy == pytest.approx(0.8)
        assert s.health.decoherence == pytest.approx(0.45)
        assert expire_guards(s.copy(), 9.99) == []
        entries = expire_guards(s, 10.0)
        assert "cooldown complete" in entries[0].message

    def test_nothing_due_nothing_changes(self, state):
        assert expire_guards(state, 100.0) == []


# =============================================================================
# CALIBRATION GAME
# =============================================================================

class TestCalibrationGame:

    def test_hit_moves_target(self, state, rng):
        state.calibration_target = 3
        nxt = calibrate_star(state, 3, rng, 0.0)
        assert nxt.calibration_target != 3
        assert 1 <= nxt.calibration_target <= 7
        assert nxt.calibration_effect.success is True

    def test_never_reselects_same_target(self, state, rng):
        current = state
        for _ in range(200):
            previous = current.calibration_target
            current = calibrate_star(current, previous, rng, 0.0)
            assert current.calibration_target != previous

    def test_hit_tightens_concordance(self, loose_concordance, rng):
        nxt = calibrate_star(loose_concordance, 3, rng, 0.0)
        assert nxt.concordance.connection_stability == pytest.approx(0.85)
        assert nxt.concordance.alignment_drift == pytest.approx(0.08)

    def test_miss_penalizes_alignment(self, state, rng):
        state.calibration_target = 2
        nxt = calibrate_star(state, 5, rng, 0.0)
        assert nxt.calibration_target == 2
        assert nxt.concordance.alignment_drift == pytest.approx(0.01)
        assert nxt.calibration_effect.success is False
        assert nxt.log[0].type == LogType.WARNING

    def test_hit_reward_survives_a_tick(self, loose_concordance, rng):
        control = _tick_once(loose_concordance)
        hit = calibrate_star(loose_concordance, 3, rng, 0.0)
        hit.health.decoherence = loose_concordance.health.decoherence
        after = _tick_once(hit)
        assert after.concordance.connection_stability > control.concordance.connection_stability
        assert after.concordance.alignment_drift < control.concordance.alignment_drift
        assert after.resonance_factor > control.resonance_factor

    def test_miss_penalty_survives_a_tick(self, loose_concordance, rng):
        control = _tick_once(loose_concordance)
        after = _tick_once(calibrate_star(loose_concordance, 5, rng, 0.0))
        assert after.concordance.alignment_drift == pytest.approx(
            control.concordance.alignment_drift + 0.01
        )
        assert after.concordance.connection_stability < control.concordance.connection_stability

    @pytest.mark.parametrize("star_id", [0, 8, 99, -1])
    def test_unknown_star_logged_not_scored(self, state, rng, star_id):
        nxt = calibrate_star(state, star_id, rng, 0.0)
        assert nxt.log[0].type == LogType.WARNING
        assert f"Star {star_id} not in the array" in nxt.log[0].message
        assert nxt.concordance == state.concordance
        assert nxt.calibration_target == state.calibration_target
        assert nxt.calibration_effect is None

    def test_effect_clears_after_deadline(self, state, rng):
        nxt = calibrate_star(state, state.calibration_target, rng, 0.0)
        expire_guards(nxt, 0.5)
        assert nxt.calibration_effect is not None
        expire_guards(nxt, 0.8)
        assert nxt.calibration_effect is None

    def test_draw_excludes(self, rng):
        draws = {draw_calibration_target(rng, exclude=4) for _ in range(300)}
        assert 4 not in draws
        assert draws <= set(range(1, 8))


# =============================================================================
# UNGUARDED INTERVENTIONS
# =============================================================================

class TestPillarAndRelay:

    def test_boost_pillar(self, state, rng):
        state.pillars[PillarId.ARCTURIAN].activation = 0.5
        nxt = boost_pillar(state, "arcturian", rng, 0.0)
        assert nxt.pillars[PillarId.ARCTURIAN].activation == pytest.approx(0.6)
        assert 0.4 <= nxt.health.decoherence <= 0.45
        assert [e.type for e in nxt.log[:2]] == [LogType.WARNING, LogType.SYSTEM]

    def test_boost_unknown_pillar_raises(self, state, rng):
        with pytest.raises(KeyError):
            boost_pillar(state, "HYPERBOREAN", rng, 0.0)

    def test_relay_degraded_to_online(self, state):
        state.relays["RELAY_ALPHA"].status = RelayStatus.DEGRADED
        nxt = calibrate_relay(state, "RELAY_ALPHA", FixedRng(0.0), 0.0)
        assert nxt.relays["RELAY_ALPHA"].status == RelayStatus.ONLINE

    def test_relay_offline_to_degraded(self, state):
        state.relays["RELAY_BETA"].status = RelayStatus.OFFLINE
        nxt = calibrate_relay(state, "RELAY_BETA", FixedRng(0.1), 0.0)
        assert nxt.relays["RELAY_BETA"].status == RelayStatus.DEGRADED

    def test_relay_failed_roll(self, state):
        state.relays["RELAY_BETA"].status = RelayStatus.OFFLINE
        nxt = calibrate_relay(state, "RELAY_BETA", FixedRng(0.9), 0.0)
        assert nxt.relays["RELAY_BETA"].status == RelayStatus.OFFLINE
        assert nxt.health.decoherence > state.health.decoherence

    def test_unknown_relay_warns(self, state, rng):
        nxt = calibrate_relay(state, "RELAY_GAMMA", rng, 0.0)
        assert nxt.log[0].type == LogType.WARNING
        assert nxt.relays == state.relays
        assert nxt.health.decoherence == state.health.decoherence
