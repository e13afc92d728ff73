"""
Loguru rendering of tuner transitions
"""
from enum import IntEnum
from typing import List

from loguru import logger

from .observer_base import TuningObserver
from .probe import CycleReport, ProbePhase


class LogMode(IntEnum):
    """Tuner log verbosity levels."""

    LOG_OFF = 0  # No output
    LOG_SUMMARY = 1  # Cycle results and convergence only
    LOG_ALL = 2  # Every probe, flip and step change


def _fmt(values: List[float]) -> str:
    return " ".join(f"{v:.6g}" for v in values)


class LogObserver(TuningObserver):
    def __init__(self, mode: LogMode = LogMode.LOG_SUMMARY):
        self.mode = mode

    def on_warmup_complete(self, cycle: int) -> None:
        if self.mode == LogMode.LOG_ALL:
            logger.debug(f"Cycle {cycle} Warmup Completed")

    def on_cycle_end(self, report: CycleReport) -> None:
        if self.mode == LogMode.LOG_OFF:
            return
        ending = "diverged" if report.diverged else "completed"
        logger.info(
            f"End of Cycle {report.cycle} ({ending} after {report.samples} samples) | "
            f"params: {_fmt(report.params)} | deltas: {_fmt(report.deltas)} | "
            f"cycle error: {report.score:.6g} | previous best: {report.previous_best:.6g} | "
            f"index: {report.param_index} | "
            f"error delta: {report.score - report.previous_best:.6g}"
        )

    def on_step_scaled(self, index: int, old_value: float, factor: float) -> None:
        if self.mode == LogMode.LOG_ALL:
            logger.debug(f"TUNING p_delta_{index}: ({old_value:.6g} * {factor})")

    def on_probe(
        self, index: int, old_value: float, amount: float, phase: ProbePhase
    ) -> None:
        if self.mode != LogMode.LOG_ALL:
            return
        if phase == ProbePhase.INCREASE:
            logger.debug(f"INCREASING p_{index}: ({old_value:.6g} + {amount:.6g})")
        else:
            logger.debug(f"DECREASING p_{index}: ({old_value:.6g} - {amount:.6g})")

    def on_phase_flip(self, index: int, phase: ProbePhase) -> None:
        if self.mode == LogMode.LOG_ALL:
            logger.debug(f"p_{index} switched to {phase.name}")

    def on_parameter_advance(self, old_index: int, new_index: int) -> None:
        if self.mode == LogMode.LOG_ALL:
            logger.debug(f"Active parameter p_{old_index} -> p_{new_index}")

    def on_cycle_complete(
        self, report: CycleReport, best_error: float, best_params: List[float]
    ) -> None:
        if self.mode != LogMode.LOG_OFF:
            logger.info(
                f"Current best: {best_error:.6g} | best params: {_fmt(best_params)}"
            )

    def on_tuned(self, best_error: float, best_params: List[float]) -> None:
        if self.mode != LogMode.LOG_OFF:
            logger.success(
                f"Tuning finished, best error: {best_error:.6g} | "
                f"best params: {_fmt(best_params)}"
            )

    def __str__(self):
        return f"LogObserver({self.mode.name})"
