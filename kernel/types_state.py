"""
kernel/types_state.py - State Snapshot Dataclasses

The aggregate snapshot shared by the tick engine, the intervention guards,
the breath oscillator and profile sync. Writers never mutate a snapshot that
a reader may hold: they call ``SystemState.copy()``, change the copy, and
hand the copy back for wholesale replacement.
"""

import copy
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from event_log import LogEntry

from .constants import (
    BASE_REPAIR_RATE,
    CORRELATION_CONSTANT,
    PILLAR_NAMES,
    RELAY_NAMES,
    REFRIGERATOR_NOMINAL_MK,
    REFRIGERATOR_NOMINAL_POWER,
    BreathPhase,
    CoherenceStatus,
    FluxStatus,
    GovernanceAxiom,
    GroundingStatus,
    HealthStatus,
    Intervention,
    PillarId,
    RefrigeratorStatus,
    RelayStatus,
    TriforceState,
    UserTier,
)


# =============================================================================
# CORE MODEL RECORDS
# =============================================================================

@dataclass
class HealthRecord:
    """Primary health variables.

    ``health`` trends toward 0 as ``lesions`` and ``decoherence`` rise;
    ``stabilization_shield`` damps how hard a decoherence spike lands.
    ``repair_rate`` is reassigned every tick and carries no memory.
    """
    health: float = 1.0
    lesions: int = 0
    repair_rate: float = BASE_REPAIR_RATE
    decoherence: float = 0.0
    stabilization_shield: float = 1.0
    status: HealthStatus = HealthStatus.STABLE


@dataclass
class PillarRecord:
    id: PillarId
    name: str
    activation: float = 0.95


def _default_pillars() -> Dict[PillarId, PillarRecord]:
    return {pid: PillarRecord(id=pid, name=PILLAR_NAMES[pid]) for pid in PillarId}


@dataclass
class TriforceRecord:
    """Three random-walked energies and their derived readout."""
    phi_energy: float = 0.9
    psi_energy: float = 0.9
    omega_energy: float = 0.95
    stability: float = 0.99
    output: float = 15.0
    state: TriforceState = TriforceState.STABLE

    @property
    def energies(self) -> Tuple[float, float, float]:
        return (self.phi_energy, self.psi_energy, self.omega_energy)


@dataclass
class ConcordanceRecord:
    alignment_drift: float = 0.0
    connection_stability: float = 1.0


@dataclass
class CoherenceResonanceRecord:
    score: float = 0.99
    entropy_flux: float = 0.02
    phase_sync: float = 0.98
    quantum_correlation: float = 0.97
    status: CoherenceStatus = CoherenceStatus.COHERENT


@dataclass
class PerformanceTelemetry:
    """Informational readout; never fed back into the model."""
    logical_latency: float = 0.00012
    visual_parity: float = 0.9998
    gpu_load: float = 0.12
    frame_stability: float = 1.0
    thermal_index: float = 32.4


# =============================================================================
# SUBSYSTEM RECORDS (touched by interventions)
# =============================================================================

@dataclass
class EarthGroundingRecord:
    charge: float = 0.8
    conductivity: float = 0.95
    status: GroundingStatus = GroundingStatus.STABLE


@dataclass
class AethericTransferRecord:
    efficiency: float = 0.95
    particle_density: float = 0.5
    flux_status: FluxStatus = FluxStatus.STABLE


@dataclass
class DilutionRefrigeratorRecord:
    temperature: float = REFRIGERATOR_NOMINAL_MK
    cooling_power: float = REFRIGERATOR_NOMINAL_POWER
    status: RefrigeratorStatus = RefrigeratorStatus.STABLE


@dataclass
class RelayRecord:
    id: str
    name: str
    status: RelayStatus = RelayStatus.ONLINE
    latency: float = 50.0


def _default_relays() -> Dict[str, RelayRecord]:
    latencies = {"RELAY_ALPHA": 42.0, "RELAY_BETA": 85.0}
    return {
        rid: RelayRecord(id=rid, name=name, latency=latencies.get(rid, 50.0))
        for rid, name in RELAY_NAMES.items()
    }


@dataclass
class BiometricRecord:
    """Host-supplied operator coherence; the kernel only reads it."""
    hrv: float = 75.0
    coherence: float = 0.95


@dataclass
class VibrationRecord:
    amplitude: float = 2.5
    frequency: float = 432.0


@dataclass
class CalibrationEffect:
    """Transient outcome of the last star calibration attempt."""
    star_id: int
    success: bool
    deadline: float


# =============================================================================
# INTERVENTION GUARDS
# =============================================================================

@dataclass
class GuardSlot:
    busy: bool = False
    deadline: Optional[float] = None


@dataclass
class InterventionGuards:
    """One busy flag + deadline per guarded intervention."""
    slots: Dict[Intervention, GuardSlot] = field(
        default_factory=lambda: {i: GuardSlot() for i in Intervention}
    )

    def is_busy(self, intervention: Intervention) -> bool:
        return self.slots[intervention].busy

    def arm(self, intervention: Intervention, deadline: float) -> None:
        self.slots[intervention] = GuardSlot(busy=True, deadline=deadline)

    def release(self, intervention: Intervention) -> None:
        self.slots[intervention] = GuardSlot()

    def expired(self, now: float) -> List[Intervention]:
        """Busy slots whose deadline has passed, in declaration order."""
        return [
            i for i, slot in self.slots.items()
            if slot.busy and slot.deadline is not None and slot.deadline <= now
        ]


# =============================================================================
# RESOURCES
# =============================================================================

@dataclass
class UserResources:
    """The persisted sub-record."""
    tier: UserTier = UserTier.ACOLYTE
    tokens: int = 0
    ledger_history: List[Dict[str, Any]] = field(default_factory=list)


# =============================================================================
# AGGREGATE SNAPSHOT
# =============================================================================

@dataclass
class SystemState:
    """Aggregate state snapshot.

    All ratio fields live in [0, 1]; ``kernel.validation`` enforces this at
    the end of every tick and reports any escape as a violation.
    """
    health: HealthRecord = field(default_factory=HealthRecord)
    pillars: Dict[PillarId, PillarRecord] = field(default_factory=_default_pillars)
    triforce: TriforceRecord = field(default_factory=TriforceRecord)
    concordance: ConcordanceRecord = field(default_factory=ConcordanceRecord)
    resonance_factor: float = 0.99
    coherence: CoherenceResonanceRecord = field(default_factory=CoherenceResonanceRecord)
    governance_axiom: GovernanceAxiom = GovernanceAxiom.SOVEREIGN
    temporal_drift: float = 0.0
    performance: PerformanceTelemetry = field(default_factory=PerformanceTelemetry)

    grounding: EarthGroundingRecord = field(default_factory=EarthGroundingRecord)
    aether: AethericTransferRecord = field(default_factory=AethericTransferRecord)
    refrigerator: DilutionRefrigeratorRecord = field(default_factory=DilutionRefrigeratorRecord)
    relays: Dict[str, RelayRecord] = field(default_factory=_default_relays)
    biometric: BiometricRecord = field(default_factory=BiometricRecord)
    vibration: VibrationRecord = field(default_factory=VibrationRecord)
    correlation: float = CORRELATION_CONSTANT

    calibration_target: int = 1
    calibration_effect: Optional[CalibrationEffect] = None
    guards: InterventionGuards = field(default_factory=InterventionGuards)
    resources: UserResources = field(default_factory=UserResources)
    log: Tuple[LogEntry, ...] = ()

    breath_phase: BreathPhase = BreathPhase.INHALE
    tick_count: int = 0
    clock: float = 0.0

    def copy(self) -> "SystemState":
        """Full, independent copy for read-compute-replace writers."""
        return copy.deepcopy(self)

    @property
    def pillar_mean(self) -> float:
        return sum(p.activation for p in self.pillars.values()) / len(self.pillars)

    @property
    def is_failed(self) -> bool:
        return self.governance_axiom == GovernanceAxiom.FAILURE

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready view (enums by value, dict keys as strings)."""
        return _jsonable(asdict(self))


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {_jsonable(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value
