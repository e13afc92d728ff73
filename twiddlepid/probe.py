"""
Data records shared by the twiddle tuner and its observers.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List


class ProbePhase(IntEnum):
    """Which half of the +/- probe a parameter is trying next."""

    INCREASE = 0  # Probe above the baseline by one step
    DECREASE = 1  # Probe below the baseline by one step


@dataclass
class ParamDelta:
    """Step size and probe phase for one tuned parameter."""

    value: float
    phase: ProbePhase = ProbePhase.INCREASE


@dataclass
class CycleReport:
    """Snapshot of the tuner taken when an evaluation cycle ends."""

    cycle: int
    params: List[float]
    deltas: List[float]
    score: float
    previous_best: float
    param_index: int
    diverged: bool = False
    samples: int = 0
    best_params: List[float] = field(default_factory=list)
