"""
kernel/classifier.py - Threshold Classifiers

Pure functions mapping continuous metrics to discrete status labels.

Governance axiom rules, evaluated in strict priority order:
    1. health < FAILURE_HEALTH or lesions > FAILURE_LESIONS -> FAILURE
    2. health < REGENERATIVE_HEALTH                         -> REGENERATIVE
    3. decoherence > RECALIBRATING_DECOHERENCE              -> RECALIBRATING
    4. health > SOVEREIGN_HEALTH and
       decoherence < SOVEREIGN_DECOHERENCE                  -> SOVEREIGN
    5. otherwise                                            -> CRADLE

FAILURE is terminal: ``next_governance_axiom`` never leaves it. Only a full
state reset (``kernel.interventions.reset_state``) does.
"""

from dataclasses import dataclass
from typing import Optional

from .constants import (
    COHERENCE_COHERENT_ABOVE,
    COHERENCE_DECOHERING_ABOVE,
    COHERENCE_RESONATING_ABOVE,
    FAILURE_HEALTH,
    FAILURE_LESIONS,
    RECALIBRATING_DECOHERENCE,
    REGENERATIVE_HEALTH,
    SOVEREIGN_DECOHERENCE,
    SOVEREIGN_HEALTH,
    TRIFORCE_CHARGING_BELOW,
    TRIFORCE_SUPERNOVA_ABOVE,
    BreathPhase,
    CoherenceStatus,
    GovernanceAxiom,
    TriforceState,
)


@dataclass(frozen=True)
class ClassifierThresholds:
    """Named cutoffs for the governance axiom rules."""
    failure_health: float = FAILURE_HEALTH
    failure_lesions: int = FAILURE_LESIONS
    regenerative_health: float = REGENERATIVE_HEALTH
    recalibrating_decoherence: float = RECALIBRATING_DECOHERENCE
    sovereign_health: float = SOVEREIGN_HEALTH
    sovereign_decoherence: float = SOVEREIGN_DECOHERENCE


DEFAULT_THRESHOLDS = ClassifierThresholds()


def classify_governance_axiom(
    health: float,
    lesions: int,
    decoherence: float,
    thresholds: ClassifierThresholds = DEFAULT_THRESHOLDS,
) -> GovernanceAxiom:
    """
    Classify one set of metrics, ignoring history.

    Args:
        health: Current health ratio
        lesions: Current lesion count
        decoherence: Current decoherence ratio
        thresholds: Cutoffs to apply

    Returns:
        GovernanceAxiom for these values
    """
    if health < thresholds.failure_health or lesions > thresholds.failure_lesions:
        return GovernanceAxiom.FAILURE
    if health < thresholds.regenerative_health:
        return GovernanceAxiom.REGENERATIVE
    if decoherence > thresholds.recalibrating_decoherence:
        return GovernanceAxiom.RECALIBRATING
    if health > thresholds.sovereign_health and decoherence < thresholds.sovereign_decoherence:
        return GovernanceAxiom.SOVEREIGN
    return GovernanceAxiom.CRADLE


def next_governance_axiom(
    previous: Optional[GovernanceAxiom],
    health: float,
    lesions: int,
    decoherence: float,
    thresholds: ClassifierThresholds = DEFAULT_THRESHOLDS,
) -> GovernanceAxiom:
    """Classifier with the FAILURE latch applied."""
    if previous == GovernanceAxiom.FAILURE:
        return GovernanceAxiom.FAILURE
    return classify_governance_axiom(health, lesions, decoherence, thresholds)


def classify_coherence(score: float) -> CoherenceStatus:
    if score >= COHERENCE_COHERENT_ABOVE:
        return CoherenceStatus.COHERENT
    if score >= COHERENCE_RESONATING_ABOVE:
        return CoherenceStatus.RESONATING
    if score >= COHERENCE_DECOHERING_ABOVE:
        return CoherenceStatus.DECOHERING
    return CoherenceStatus.CRITICAL


def classify_triforce(stability: float, breath: BreathPhase) -> TriforceState:
    """SUPERNOVA needs peak stability on the exhale; the inhale holds STABLE."""
    if stability < TRIFORCE_CHARGING_BELOW:
        return TriforceState.CHARGING
    if stability > TRIFORCE_SUPERNOVA_ABOVE and breath == BreathPhase.EXHALE:
        return TriforceState.SUPERNOVA
    return TriforceState.STABLE
