from typing import List, Protocol, runtime_checkable

from .probe import CycleReport, ProbePhase


@runtime_checkable
class TuningObserver(Protocol):
    def on_warmup_complete(self, cycle: int) -> None:
        """Warmup samples of a cycle have been discarded"""
        ...

    def on_cycle_end(self, report: CycleReport) -> None:
        """An evaluation cycle ended, before any parameter is touched"""
        ...

    def on_step_scaled(self, index: int, old_value: float, factor: float) -> None:
        """A step size was grown or shrunk"""
        ...

    def on_probe(
        self, index: int, old_value: float, amount: float, phase: ProbePhase
    ) -> None:
        """A parameter value was moved by amount"""
        ...

    def on_phase_flip(self, index: int, phase: ProbePhase) -> None:
        """The active parameter switched probe phase"""
        ...

    def on_parameter_advance(self, old_index: int, new_index: int) -> None:
        """Another parameter became the active one"""
        ...

    def on_cycle_complete(
        self, report: CycleReport, best_error: float, best_params: List[float]
    ) -> None:
        """Cycle bookkeeping finished, the next trial point is set"""
        ...

    def on_tuned(self, best_error: float, best_params: List[float]) -> None:
        """Step sizes dropped below the convergence threshold"""
        ...
