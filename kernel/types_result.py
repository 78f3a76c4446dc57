"""
kernel/types_result.py - SimResult Dataclass

Output of a headless simulation run.
"""

from dataclasses import dataclass, field
from typing import Dict, List

from .types_config import SimulationParams
from .types_state import SystemState


@dataclass
class SimResult:
    """Final snapshot plus per-tick traces, bound violations and statistics."""
    final_state: SystemState
    traces: Dict[str, List]
    violations: List[dict]
    statistics: Dict
    params: SimulationParams
    receipts: List[dict] = field(default_factory=list)
