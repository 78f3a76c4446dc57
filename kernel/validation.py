"""
kernel/validation.py - Range Enforcement and Bound Checks

Every ratio field is bound to [0, 1] and ``lesions`` is a non-negative
integer. ``clamp_state`` enforces this on a working copy; the check
functions report escapes without fixing them.
"""

from typing import Iterator, List, Tuple

from receipts import emit_receipt

from .types_state import SystemState


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


def iter_ratio_fields(state: SystemState) -> Iterator[Tuple[str, float]]:
    """Yield (path, value) for every field bound to [0, 1]."""
    h = state.health
    yield "health.health", h.health
    yield "health.repair_rate", h.repair_rate
    yield "health.decoherence", h.decoherence
    yield "health.stabilization_shield", h.stabilization_shield
    for pid, pillar in state.pillars.items():
        yield f"pillars.{pid.value}.activation", pillar.activation
    t = state.triforce
    yield "triforce.phi_energy", t.phi_energy
    yield "triforce.psi_energy", t.psi_energy
    yield "triforce.omega_energy", t.omega_energy
    yield "triforce.stability", t.stability
    yield "concordance.alignment_drift", state.concordance.alignment_drift
    yield "concordance.connection_stability", state.concordance.connection_stability
    yield "resonance_factor", state.resonance_factor
    c = state.coherence
    yield "coherence.score", c.score
    yield "coherence.entropy_flux", c.entropy_flux
    yield "coherence.phase_sync", c.phase_sync
    yield "coherence.quantum_correlation", c.quantum_correlation
    yield "temporal_drift", state.temporal_drift
    yield "grounding.charge", state.grounding.charge
    yield "aether.efficiency", state.aether.efficiency


def find_bound_violations(state: SystemState) -> List[dict]:
    """
    List every field outside its declared range.

    Args:
        state: Snapshot to inspect (not modified)

    Returns:
        List of violation dicts; empty when the snapshot is in bounds
    """
    violations = []
    for path, value in iter_ratio_fields(state):
        if not 0.0 <= value <= 1.0:
            violations.append({"field": path, "value": value, "bound": [0.0, 1.0]})
    if state.health.lesions < 0:
        violations.append({"field": "health.lesions", "value": state.health.lesions, "bound": [0, None]})
    return violations


def validate_bounds(state: SystemState) -> bool:
    return not find_bound_violations(state)


def emit_violation_receipt(state: SystemState, violations: List[dict]) -> dict:
    return emit_receipt("bound_violation", {
        "tenant_id": "kernel",
        "tick": state.tick_count,
        "violations": violations,
    })


def clamp_state(state: SystemState) -> None:
    """Clamp every bounded field of a working copy in place."""
    h = state.health
    h.health = clamp(h.health)
    h.lesions = max(0, int(h.lesions))
    h.repair_rate = clamp(h.repair_rate)
    h.decoherence = clamp(h.decoherence)
    h.stabilization_shield = clamp(h.stabilization_shield)
    for pillar in state.pillars.values():
        pillar.activation = clamp(pillar.activation)
    t = state.triforce
    t.phi_energy = clamp(t.phi_energy)
    t.psi_energy = clamp(t.psi_energy)
    t.omega_energy = clamp(t.omega_energy)
    t.stability = clamp(t.stability)
    t.output = max(0.0, t.output)
    state.concordance.alignment_drift = clamp(state.concordance.alignment_drift)
    state.concordance.connection_stability = clamp(state.concordance.connection_stability)
    state.resonance_factor = clamp(state.resonance_factor)
    c = state.coherence
    c.score = clamp(c.score)
    c.entropy_flux = clamp(c.entropy_flux)
    c.phase_sync = clamp(c.phase_sync)
    c.quantum_correlation = clamp(c.quantum_correlation)
    state.temporal_drift = clamp(state.temporal_drift)
    state.grounding.charge = clamp(state.grounding.charge)
    state.aether.efficiency = clamp(state.aether.efficiency)
