"""
kernel/session.py - Kernel Session

The single owner of a running simulation. Holds the current snapshot, the
latest host inputs (params, mode, flags), the random generator and the
scheduler that drives the tick and the breath toggle.

Every writer follows read -> compute -> replace: the handler receives the
current snapshot, returns a new one, and the session swaps it in. Readers
holding an older snapshot keep a complete, consistent view.

Collaborators are injected:
    store           persistence.StateStore (or None)
    profile_fetcher zero-arg callable returning OperatorProfile | None
    receipts_out    open text handle for JSONL receipts (or None)
"""

import logging
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, TextIO, Union

import numpy as np

from event_log import LogType, append, make_entry
from receipts import emit_receipt, write_receipt_jsonl

from .breath import toggle_breath
from .constants import ControlMode, PillarId
from .interventions import (
    boost_pillar,
    calibrate_relay,
    calibrate_star,
    coolant_flush,
    grounding_discharge,
    purge_flow,
    reset_state,
    thermal_calibrate,
)
from .scheduler import Scheduler, TimerHandle
from .tick import initialize_state, tick
from .types_config import SimulationParams, TickFlags
from .types_state import SystemState
from .validation import clamp, emit_violation_receipt, find_bound_violations

logger = logging.getLogger(__name__)


def _state_changed(before: SystemState, after: SystemState) -> bool:
    """True when anything besides the log differs between two snapshots."""
    if after is before:
        return False
    return replace(after, log=before.log) != before


class Session:
    """
    Single-owner simulation context.

    Args:
        config: kernel_config.KernelConfig (defaults when None)
        store: Resource store; persisted resources seed the session
        profile_fetcher: Called once by ``start``; failures are swallowed
        receipts_out: Text handle receipts are streamed to as JSONL
        seed: Overrides config.seed
    """

    def __init__(self, config=None, store=None,
                 profile_fetcher: Optional[Callable[[], Any]] = None,
                 receipts_out: Optional[TextIO] = None,
                 seed: Optional[int] = None):
        from kernel_config import KernelConfig

        self.config = config or KernelConfig()
        self.store = store
        self.profile_fetcher = profile_fetcher
        self.receipts_out = receipts_out
        self.receipts: List[Dict[str, Any]] = []

        self.rng = np.random.default_rng(self.config.seed if seed is None else seed)
        self.scheduler = Scheduler()
        self.params: SimulationParams = self.config.params
        self.mode: ControlMode = self.config.mode
        self.flags = TickFlags()

        self.state: SystemState = initialize_state(self.rng)
        self._tick_handle: Optional[TimerHandle] = None
        self._breath_handle: Optional[TimerHandle] = None
        self._started = False
        self._closed = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def now(self) -> float:
        return self.scheduler.now

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Seed resources (store, then profile), then schedule tick and breath."""
        if self._started or self._closed:
            return
        self._started = True

        if self.store is not None:
            nxt = self.state.copy()
            nxt.resources = self.store.load_resources(nxt.resources)
            self.state = nxt

        if self.profile_fetcher is not None:
            from profile_sync import apply_profile
            try:
                profile = self.profile_fetcher()
            except Exception as e:
                logger.debug("profile fetcher raised: %s", e)
                profile = None
            if profile is not None:
                self._replace(apply_profile(self.state, profile))
                self._log(LogType.SYSTEM,
                          f"Operator profile synced: {profile.tier.value}, {profile.tokens} tokens.")

        self._log(LogType.SYSTEM, "Kernel online.")
        self._tick_handle = self.scheduler.call_every(self.config.tick_period, self._on_tick, "tick")
        self._arm_breath()

    def close(self) -> None:
        """Tear down: drop every pending callback; later commands are no-ops."""
        if self._closed:
            return
        self._closed = True
        self.scheduler.clear()
        self._tick_handle = self._breath_handle = None
        logger.debug("session closed at t=%.2f after %d ticks", self.now, self.state.tick_count)

    def __enter__(self) -> "Session":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def advance(self, seconds: float) -> int:
        """Move the virtual clock forward; returns callbacks fired."""
        if self._closed:
            return 0
        return self.scheduler.advance(seconds)

    def run_realtime(self, duration: float) -> int:
        if self._closed:
            return 0
        return self.scheduler.run_realtime(duration)

    def reset(self) -> None:
        """Full reset to defaults, keeping resources. Leaves FAILURE."""
        if self._closed:
            return
        self._replace(reset_state(self.state, self.rng, self.now, self.config.log_capacity))
        self._emit("intervention", {"command": "reset", "applied": True})

    # =========================================================================
    # Host inputs (read fresh on every tick)
    # =========================================================================

    def set_params(self, params: SimulationParams) -> None:
        self.params = params

    def set_mode(self, mode: Union[ControlMode, str]) -> None:
        self.mode = ControlMode(mode)

    def set_optimization(self, active: bool) -> None:
        self.flags = replace(self.flags, optimization_active=bool(active))

    def set_diagnostic(self, active: bool) -> None:
        self.flags = replace(self.flags, diagnostic=bool(active))

    def set_phase_lock(self, locked: bool) -> None:
        self.flags = replace(self.flags, phase_locked=bool(locked))

    def set_grounded(self, grounded: bool) -> None:
        """Grounding changes the breath period; the breath timer is re-armed."""
        grounded = bool(grounded)
        if grounded == self.flags.grounded:
            return
        self.flags = replace(self.flags, grounded=grounded)
        if self._started and not self._closed:
            self._arm_breath()

    def set_biometric_coherence(self, coherence: float) -> None:
        if self._closed:
            return
        nxt = self.state.copy()
        nxt.biometric.coherence = clamp(float(coherence))
        self._replace(nxt)

    # =========================================================================
    # Command surface (return nothing; observe the log and the snapshot)
    # =========================================================================

    def boost_pillar(self, pillar_id: Union[PillarId, str]) -> None:
        self._command("boost_pillar", boost_pillar, pillar_id, self.rng, self.now,
                      target=str(getattr(pillar_id, "value", pillar_id)))

    def calibrate_relay(self, relay_id: str) -> None:
        self._command("calibrate_relay", calibrate_relay, relay_id, self.rng, self.now,
                      target=relay_id)

    def calibrate_star(self, star_id: int) -> None:
        self._command("calibrate_star", calibrate_star, star_id, self.rng, self.now,
                      target=star_id)

    def purge_flow(self) -> None:
        self._command("purge_flow", purge_flow, self.now)

    def grounding_discharge(self) -> None:
        self._command("grounding_discharge", grounding_discharge, self.now)

    def coolant_flush(self) -> None:
        self._command("coolant_flush", coolant_flush, self.now)

    def thermal_calibrate(self) -> None:
        self._command("thermal_calibrate", thermal_calibrate, self.now)

    # =========================================================================
    # Internals
    # =========================================================================

    def _command(self, name: str, handler: Callable[..., SystemState], *args: Any,
                 target: Any = None) -> None:
        """Run one handler on the current snapshot and record the outcome."""
        if self._closed:
            return
        if self.state.is_failed:
            self._log(LogType.CRITICAL, f"Intervention '{name}' refused: system composure failure.")
            self._emit("intervention", {"command": name, "target": target, "applied": False,
                                        "refused": True})
            return
        before = self.state
        self._replace(handler(before, *args, capacity=self.config.log_capacity))
        self._emit("intervention", {
            "command": name,
            "target": target,
            "applied": _state_changed(before, self.state),
            "decoherence": self.state.health.decoherence,
        })

    def _on_tick(self) -> None:
        if self._closed:
            return
        expiring = self.state.guards.expired(self.now)
        self._replace(tick(
            self.state, self.params, self.mode, self.flags, self.rng,
            now=self.now,
            thresholds=self.config.thresholds,
            log_capacity=self.config.log_capacity,
        ))
        s = self.state
        self._emit("tick", {
            "tick": s.tick_count,
            "mode": self.mode.value,
            "health": s.health.health,
            "decoherence": s.health.decoherence,
            "lesions": s.health.lesions,
            "resonance_factor": s.resonance_factor,
            "governance_axiom": s.governance_axiom.value,
        })
        for intervention in expiring:
            self._emit("guard_expired", {"intervention": intervention.value, "tick": s.tick_count})
        violations = find_bound_violations(s)
        if violations:
            self._record(emit_violation_receipt(s, violations))

    def _on_breath(self) -> None:
        if self._closed:
            return
        self._replace(toggle_breath(self.state))

    def _arm_breath(self) -> None:
        self.scheduler.cancel(self._breath_handle)
        self._breath_handle = self.scheduler.call_every(
            self.config.breath_period(self.flags.grounded), self._on_breath, "breath"
        )

    def _replace(self, nxt: SystemState) -> None:
        """Swap in a new snapshot; persist resources if they changed."""
        changed = nxt.resources != self.state.resources
        self.state = nxt
        if changed and self.store is not None:
            self.store.save_resources(nxt.resources)

    def _log(self, log_type: LogType, message: str) -> None:
        nxt = self.state.copy()
        nxt.log = append(nxt.log, make_entry(log_type, message, self.now), self.config.log_capacity)
        self.state = nxt

    def _emit(self, receipt_type: str, data: Dict[str, Any]) -> None:
        self._record(emit_receipt(receipt_type, {"tenant_id": "kernel", "t": self.now, **data}))

    def _record(self, receipt: Dict[str, Any]) -> None:
        self.receipts.append(receipt)
        if self.receipts_out is not None:
            write_receipt_jsonl(receipt, self.receipts_out)
