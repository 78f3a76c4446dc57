"""
kernel/breath.py - Breath Oscillator

Two-phase INHALE/EXHALE toggle. Independent of the tick engine; it writes
one field and the triforce SUPERNOVA classification reads it. Grounding
slows the cycle.
"""

from .constants import BREATH_PERIOD_GROUNDED, BREATH_PERIOD_UNGROUNDED, BreathPhase
from .types_state import SystemState


def breath_period(grounded: bool) -> float:
    """Seconds between toggles."""
    return BREATH_PERIOD_GROUNDED if grounded else BREATH_PERIOD_UNGROUNDED


def next_phase(phase: BreathPhase) -> BreathPhase:
    return BreathPhase.EXHALE if phase == BreathPhase.INHALE else BreathPhase.INHALE


def toggle_breath(state: SystemState) -> SystemState:
    nxt = state.copy()
    nxt.breath_phase = next_phase(state.breath_phase)
    return nxt
