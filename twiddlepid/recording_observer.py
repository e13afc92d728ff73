"""
In-memory observer that records tuner transitions
"""
from typing import Any, List, Tuple

from .observer_base import TuningObserver
from .probe import CycleReport, ProbePhase


class RecordingObserver(TuningObserver):
    def __init__(self):
        self.events: List[Tuple[str, Any]] = []

    def names(self) -> List[str]:
        """Event names in the order they were received"""
        return [name for name, _ in self.events]

    def of(self, name: str) -> List[Any]:
        """Payloads of every event called name"""
        return [payload for event, payload in self.events if event == name]

    def clear(self):
        self.events.clear()

    def on_warmup_complete(self, cycle: int) -> None:
        self.events.append(("warmup_complete", cycle))

    def on_cycle_end(self, report: CycleReport) -> None:
        self.events.append(("cycle_end", report))

    def on_step_scaled(self, index: int, old_value: float, factor: float) -> None:
        self.events.append(("step_scaled", (index, old_value, factor)))

    def on_probe(
        self, index: int, old_value: float, amount: float, phase: ProbePhase
    ) -> None:
        self.events.append(("probe", (index, old_value, amount, phase)))

    def on_phase_flip(self, index: int, phase: ProbePhase) -> None:
        self.events.append(("phase_flip", (index, phase)))

    def on_parameter_advance(self, old_index: int, new_index: int) -> None:
        self.events.append(("parameter_advance", (old_index, new_index)))

    def on_cycle_complete(
        self, report: CycleReport, best_error: float, best_params: List[float]
    ) -> None:
        self.events.append(("cycle_complete", (report, best_error, list(best_params))))

    def on_tuned(self, best_error: float, best_params: List[float]) -> None:
        self.events.append(("tuned", (best_error, list(best_params))))

    def __str__(self):
        return f"RecordingObserver({len(self.events)} events)"
