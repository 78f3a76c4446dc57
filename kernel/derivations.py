"""
kernel/derivations.py - Derived-Field DAG

The tail of each tick recomputes several scalars that depend on each other
(triforce readout -> resonance -> temporal drift / coherence record, and
triforce readout -> telemetry). Each derived field is a pure function of
its inputs; the dependency edges live in a networkx DiGraph and are
evaluated in topological order, ties broken by tick step number so the
order matches the documented tick sequence.
"""

from typing import Callable, Dict, List, Tuple

import networkx as nx

from .classifier import classify_coherence, classify_triforce
from .constants import (
    DRIFT_DECOHERENCE_GAIN,
    DRIFT_RESONANCE_RELIEF,
    ENTROPY_FLUX_DECOHERENCE_WEIGHT,
    ENTROPY_FLUX_RESONANCE_WEIGHT,
    RESONANCE_CONCORDANCE_WEIGHT,
    RESONANCE_PILLAR_WEIGHT,
    RESONANCE_TRIFORCE_WEIGHT,
    TRIFORCE_DECOHERENCE_WEIGHT,
    TRIFORCE_OUTPUT_SCALE,
    BreathPhase,
    TriforceState,
)
from .types_config import TickFlags
from .types_state import CoherenceResonanceRecord, PerformanceTelemetry, SystemState
from .validation import clamp


# =============================================================================
# PURE DERIVATIONS
# =============================================================================

def derive_triforce(
    energies: Tuple[float, float, float],
    decoherence: float,
    breath: BreathPhase,
) -> Tuple[float, float, TriforceState]:
    """Return (stability, output, state) for the current energies."""
    mean = sum(energies) / len(energies)
    stability = clamp(mean * (1.0 - decoherence * TRIFORCE_DECOHERENCE_WEIGHT))
    output = mean * TRIFORCE_OUTPUT_SCALE
    return stability, output, classify_triforce(stability, breath)


def derive_resonance(pillar_mean: float, triforce_stability: float,
                     connection_stability: float) -> float:
    """Weighted blend of the three sub-scores."""
    return clamp(
        RESONANCE_PILLAR_WEIGHT * pillar_mean
        + RESONANCE_TRIFORCE_WEIGHT * triforce_stability
        + RESONANCE_CONCORDANCE_WEIGHT * connection_stability
    )


def derive_temporal_drift(previous: float, decoherence: float, resonance: float,
                          phase_locked: bool = False) -> float:
    """Leaky integral of decoherence against resonance; frozen while phase-locked."""
    if phase_locked:
        return clamp(previous)
    step = decoherence * DRIFT_DECOHERENCE_GAIN - resonance * DRIFT_RESONANCE_RELIEF
    return clamp(previous + step)


def derive_coherence(resonance: float, decoherence: float, biometric_coherence: float,
                     correlation: float) -> CoherenceResonanceRecord:
    score = clamp((resonance + biometric_coherence + correlation) / 3.0)
    return CoherenceResonanceRecord(
        score=score,
        entropy_flux=clamp(
            decoherence * ENTROPY_FLUX_DECOHERENCE_WEIGHT
            + (1.0 - resonance) * ENTROPY_FLUX_RESONANCE_WEIGHT
        ),
        phase_sync=clamp(resonance),
        quantum_correlation=clamp(correlation * resonance),
        status=classify_coherence(score),
    )


def derive_performance(decoherence: float, output: float, stability: float,
                       vibration_amplitude: float) -> PerformanceTelemetry:
    return PerformanceTelemetry(
        logical_latency=0.0001 + decoherence * 0.005,
        visual_parity=1.0 - decoherence * 0.1,
        gpu_load=0.1 + output / 100.0,
        frame_stability=1.0 - vibration_amplitude / 100.0,
        thermal_index=30.0 + stability * 10.0,
    )


# =============================================================================
# APPLIERS (write one derived field onto a working copy)
# =============================================================================

def _apply_triforce(state: SystemState, flags: TickFlags) -> None:
    t = state.triforce
    t.stability, t.output, t.state = derive_triforce(
        t.energies, state.health.decoherence, state.breath_phase
    )


def _apply_resonance(state: SystemState, flags: TickFlags) -> None:
    state.resonance_factor = derive_resonance(
        state.pillar_mean,
        state.triforce.stability,
        state.concordance.connection_stability,
    )


def _apply_temporal_drift(state: SystemState, flags: TickFlags) -> None:
    state.temporal_drift = derive_temporal_drift(
        state.temporal_drift, state.health.decoherence, state.resonance_factor,
        flags.phase_locked,
    )


def _apply_coherence(state: SystemState, flags: TickFlags) -> None:
    state.coherence = derive_coherence(
        state.resonance_factor, state.health.decoherence,
        state.biometric.coherence, state.correlation,
    )


def _apply_performance(state: SystemState, flags: TickFlags) -> None:
    state.performance = derive_performance(
        state.health.decoherence, state.triforce.output,
        state.triforce.stability, state.vibration.amplitude,
    )


# name -> (tick step, dependencies, applier)
DERIVATIONS: Dict[str, Tuple[float, Tuple[str, ...], Callable[[SystemState, TickFlags], None]]] = {
    "triforce": (10, (), _apply_triforce),
    "resonance": (12, ("triforce",), _apply_resonance),
    "temporal_drift": (12.5, ("resonance",), _apply_temporal_drift),
    "coherence": (13, ("resonance",), _apply_coherence),
    "performance": (14, ("triforce",), _apply_performance),
}


def build_derivation_graph() -> nx.DiGraph:
    graph = nx.DiGraph()
    for name, (step, deps, _) in DERIVATIONS.items():
        graph.add_node(name, step=step)
        for dep in deps:
            graph.add_edge(dep, name)
    if not nx.is_directed_acyclic_graph(graph):
        raise ValueError("derivation graph has a cycle")
    return graph


DERIVATION_GRAPH = build_derivation_graph()


def derivation_order(graph: nx.DiGraph = DERIVATION_GRAPH) -> List[str]:
    """Topological order, ties broken by tick step."""
    return list(nx.lexicographical_topological_sort(
        graph, key=lambda n: graph.nodes[n]["step"]
    ))


DERIVATION_ORDER = derivation_order()


def evaluate_derivations(state: SystemState, flags: TickFlags) -> List[str]:
    """
    Recompute every derived field on a working copy.

    Args:
        state: Working copy (mutated in place)
        flags: Tick flags (phase lock freezes temporal drift)

    Returns:
        Names of the derivations in the order they ran
    """
    for name in DERIVATION_ORDER:
        DERIVATIONS[name][2](state, flags)
    return list(DERIVATION_ORDER)
