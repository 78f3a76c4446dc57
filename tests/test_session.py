"""
tests/test_session.py - Session Integration Tests

Validates:
- tick and breath scheduling on the virtual clock
- breath period follows the grounded flag
- latest params / mode are read on every tick
- FAILURE refusal and reset
- teardown stops all mutation
- resource seeding from the store and from profile sync
- receipts
"""

import io
import json

import pytest

from event_log import LogType
from kernel.constants import BreathPhase, ControlMode, GovernanceAxiom, Intervention, UserTier
from kernel.session import Session
from kernel.types_config import SimulationParams
from kernel_config import KernelConfig
from persistence import STORAGE_KEY, StateStore
from profile_sync import OperatorProfile
from receipts import read_receipts_jsonl


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def session():
    s = Session(seed=42)
    s.start()
    yield s
    s.close()


def _force_failure(session):
    nxt = session.state.copy()
    nxt.governance_axiom = GovernanceAxiom.FAILURE
    session.state = nxt


# =============================================================================
# SCHEDULING
# =============================================================================

class TestScheduling:

    def test_one_tick_per_period(self, session):
        session.advance(5.0)
        assert session.state.tick_count == 5
        assert session.state.clock == 5.0

    def test_tick_receipts(self, session):
        session.advance(3.0)
        ticks = [r for r in session.receipts if r["receipt_type"] == "tick"]
        assert [r["tick"] for r in ticks] == [1, 2, 3]
        assert all(":" in r["payload_hash"] for r in ticks)

    def test_breath_ungrounded(self, session):
        assert session.state.breath_phase == BreathPhase.INHALE
        session.advance(4.0)
        assert session.state.breath_phase == BreathPhase.INHALE
        session.advance(0.5)
        assert session.state.breath_phase == BreathPhase.EXHALE
        session.advance(4.5)
        assert session.state.breath_phase == BreathPhase.INHALE

    def test_breath_grounded_rearms(self, session):
        session.set_grounded(True)
        session.advance(4.5)
        assert session.state.breath_phase == BreathPhase.INHALE
        session.advance(1.5)
        assert session.state.breath_phase == BreathPhase.EXHALE

    def test_latest_params_are_used(self, session):
        session.set_params(SimulationParams(decoherence_chance=0.0, lesion_chance=0.0))
        session.set_mode(ControlMode.REPAIR)
        session.advance(1.0)
        assert session.state.health.repair_rate == pytest.approx(0.02)
        session.set_mode("OFFLINE")
        session.advance(1.0)
        assert session.state.health.repair_rate == 0.0

    def test_snapshot_replaced_not_mutated(self, session):
        held = session.state
        session.advance(1.0)
        assert session.state is not held
        assert held.tick_count == 0


# =============================================================================
# COMMANDS
# =============================================================================

class TestCommands:

    def test_commands_return_none(self, session):
        assert session.purge_flow() is None
        assert session.state.guards.is_busy(Intervention.FLOW_PURGE)

    def test_guard_expires_on_tick(self, session):
        session.coolant_flush()
        session.advance(9.0)
        assert session.state.guards.is_busy(Intervention.COOLANT_FLUSH)
        session.advance(1.0)
        assert not session.state.guards.is_busy(Intervention.COOLANT_FLUSH)

    def test_intervention_receipt(self, session):
        session.boost_pillar("LEMURIAN")
        receipt = session.receipts[-1]
        assert receipt["receipt_type"] == "intervention"
        assert receipt["command"] == "boost_pillar"
        assert receipt["target"] == "LEMURIAN"
        assert receipt["applied"] is True

    def test_busy_reentry_reported_unapplied(self, session):
        session.thermal_calibrate()
        session.thermal_calibrate()
        assert session.receipts[-1]["applied"] is False

    def test_failed_precondition_reported_unapplied(self, session):
        nxt = session.state.copy()
        nxt.grounding.charge = 0.2
        session.state = nxt
        session.grounding_discharge()
        assert session.state.log[0].type == LogType.WARNING
        assert session.receipts[-1]["applied"] is False

    def test_guard_expiry_receipt(self, session):
        session.thermal_calibrate()
        session.advance(3.0)
        expired = [r for r in session.receipts if r["receipt_type"] == "guard_expired"]
        assert len(expired) == 1
        assert expired[0]["intervention"] == "THERMAL_CALIBRATION"
        assert expired[0]["tick"] == 3

    def test_failure_refuses_interventions(self, session):
        _force_failure(session)
        before = session.state.health.decoherence
        session.grounding_discharge()
        session.boost_pillar("ARCTURIAN")
        assert session.state.log[0].type == LogType.CRITICAL
        assert "refused" in session.state.log[0].message
        assert not session.state.guards.is_busy(Intervention.GROUNDING_DISCHARGE)
        assert session.state.health.decoherence == before
        assert session.state.governance_axiom == GovernanceAxiom.FAILURE

    def test_reset_leaves_failure(self, session):
        _force_failure(session)
        session.reset()
        assert session.state.governance_axiom == GovernanceAxiom.SOVEREIGN
        session.purge_flow()
        assert session.state.guards.is_busy(Intervention.FLOW_PURGE)

    def test_biometric_input_clamped(self, session):
        session.set_biometric_coherence(1.7)
        assert session.state.biometric.coherence == 1.0


# =============================================================================
# TEARDOWN
# =============================================================================

class TestTeardown:

    def test_close_stops_everything(self):
        s = Session(seed=1)
        s.start()
        s.advance(2.0)
        s.close()
        frozen = s.state
        assert s.advance(10.0) == 0
        s.purge_flow()
        s.calibrate_star(frozen.calibration_target)
        s.reset()
        assert s.state is frozen
        assert s.scheduler.pending == 0

    def test_context_manager(self):
        with Session(seed=2) as s:
            s.advance(1.0)
        assert s.closed
        assert s.state.tick_count == 1


# =============================================================================
# RESOURCES: STORE + PROFILE SYNC
# =============================================================================

class TestResources:

    def test_seeded_from_store(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text(json.dumps({STORAGE_KEY: {"tier": "ARCHITECT", "tokens": 12, "ledgerHistory": []}}))
        s = Session(store=StateStore(path), seed=0)
        s.start()
        assert s.state.resources.tier == UserTier.ARCHITECT
        assert s.state.resources.tokens == 12
        s.close()

    def test_profile_overlay_is_persisted(self, tmp_path):
        store = StateStore(tmp_path / "store.json")
        s = Session(store=store, profile_fetcher=lambda: OperatorProfile(UserTier.SOVEREIGN, 99), seed=0)
        s.start()
        assert s.state.resources.tier == UserTier.SOVEREIGN
        assert store.get(STORAGE_KEY) == {"tier": "SOVEREIGN", "tokens": 99, "ledgerHistory": []}
        s.close()

    def test_profile_failure_keeps_defaults(self):
        def broken():
            raise ConnectionError("offline")

        s = Session(profile_fetcher=broken, seed=0)
        s.start()
        assert s.state.resources.tier == UserTier.ACOLYTE
        assert s.state.resources.tokens == 0
        s.advance(1.0)
        assert s.state.tick_count == 1
        s.close()

    def test_profile_none_keeps_defaults(self):
        s = Session(profile_fetcher=lambda: None, seed=0)
        s.start()
        assert s.state.resources.tier == UserTier.ACOLYTE
        s.close()


# =============================================================================
# CONFIG / RECEIPTS STREAM
# =============================================================================

class TestConfigAndReceipts:

    def test_config_log_capacity(self):
        s = Session(KernelConfig(log_capacity=5), seed=0)
        s.start()
        for _ in range(10):
            s.calibrate_star(99)
        assert len(s.state.log) == 5
        s.close()

    @pytest.mark.parametrize("command", [
        lambda s: s.boost_pillar("ATLANTEAN"),
        lambda s: s.calibrate_star(s.state.calibration_target),
        lambda s: s.calibrate_relay("nope"),
        lambda s: s.purge_flow(),
        lambda s: s.coolant_flush(),
        lambda s: s.reset(),
    ])
    def test_every_command_respects_log_capacity(self, command):
        s = Session(KernelConfig(log_capacity=1), seed=0)
        s.start()
        command(s)
        assert len(s.state.log) == 1
        s.close()

    def test_config_tick_period(self):
        s = Session(KernelConfig(tick_period=0.5), seed=0)
        s.start()
        s.advance(2.0)
        assert s.state.tick_count == 4
        s.close()

    def test_receipts_streamed_as_jsonl(self):
        out = io.StringIO()
        with Session(receipts_out=out, seed=3) as s:
            s.advance(2.0)
            s.purge_flow()
        out.seek(0)
        records = read_receipts_jsonl(out)
        assert [r["receipt_type"] for r in records] == ["tick", "tick", "intervention"]
