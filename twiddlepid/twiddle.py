"""
Twiddle - Streaming Coordinate-Descent Gain Tuner

This module implements the twiddle parameter search as a resumable state
machine. The objective (mean squared cross-track error) can only be observed
by running the simulation for many samples, so each call to tune() is one
sample of bookkeeping and the probe/adapt logic only runs when an evaluation
cycle ends.
"""

import math
from typing import List, Optional, Sequence

from .exceptions import ConfigurationError
from .observer_base import TuningObserver
from .probe import CycleReport, ParamDelta, ProbePhase


class Twiddle:
    """
    Online twiddle tuner with instance method interface.

    One parameter is active at a time. For the active parameter the tuner
    first tries baseline + step; if that does not beat the best score it tries
    baseline - step; if that fails too it restores the baseline, shrinks the
    step and moves to the next parameter. Any improvement grows the step and
    moves on. Tuning is complete once the step sizes add up to no more than
    the convergence threshold.

    Usage pattern:
        tuner = Twiddle(params=[0.2, 3.0], params_delta=[0.1, 1.0], max_steps=2000)

        # For every telemetry sample:
        params = tuner.tune(cte)
        if tuner.is_reset_cycle():
            reset_simulator()
        else:
            pid.set_tunings(params[0], ki, params[1])
    """

    # Step size scaling after a successful / failed round of probes
    STEP_GROWTH = 1.1
    STEP_SHRINK = 0.9

    def __init__(
        self,
        params: Sequence[float],
        params_delta: Sequence[float],
        max_steps: int,
        warmup_steps: int = 600,
        divergence_threshold: float = 4.0,
        convergence_threshold: float = 0.1,
        observer: Optional[TuningObserver] = None,
    ):
        """
        Initialize the twiddle tuner.

        Args:
            params: Initial values of the tuned parameters
            params_delta: Initial step size for each parameter
            max_steps: Scored samples per evaluation cycle; 0 disables tuning
            warmup_steps: Samples discarded from scoring at the start of a cycle
            divergence_threshold: |CTE| above which a cycle is cut short
            convergence_threshold: Step size sum at which tuning stops
            observer: Receives transition callbacks, may be None

        Raises:
            ConfigurationError: If the parameter lists or counts are invalid
        """
        if len(params) == 0:
            raise ConfigurationError("At least one parameter is required")
        if len(params) != len(params_delta):
            raise ConfigurationError(
                f"Got {len(params)} parameters but {len(params_delta)} step sizes"
            )
        if any(delta < 0 for delta in params_delta):
            raise ConfigurationError("Step sizes cannot be negative")
        if max_steps < 0:
            raise ConfigurationError("Step budget cannot be negative")
        if warmup_steps < 0:
            raise ConfigurationError("Warmup steps cannot be negative")

        # Configuration
        self._max_steps = max_steps
        self._warmup_steps = warmup_steps
        self._divergence_threshold = divergence_threshold
        self._convergence_threshold = convergence_threshold
        self._observer = observer

        # Search state
        self._params: List[float] = [float(p) for p in params]
        self._params_delta: List[ParamDelta] = [
            ParamDelta(float(d)) for d in params_delta
        ]
        self._best_params: List[float] = list(self._params)
        self._best_err: float = math.inf

        # Cycle state
        self._total_err: float = 0.0
        self._sample_count: int = 0
        self._cycle: int = 1
        self._param_idx: int = 0
        self._tuned_reported: bool = False

    def enabled(self) -> bool:
        """Check if tuning was requested (positive step budget)."""
        return self._max_steps > 0

    def is_reset_cycle(self) -> bool:
        """Check if a cycle boundary was just processed and the simulator must be reset."""
        return self._sample_count == 0

    def is_tuned(self) -> bool:
        """Check if the step sizes have shrunk below the convergence threshold."""
        total = sum(delta.value for delta in self._params_delta)
        return total <= self._convergence_threshold

    def tune(self, cte: float) -> List[float]:
        """
        Account one cross-track error sample.

        Args:
            cte: Cross-track error for this sample

        Returns:
            Parameters to run the next sample with (best parameters once tuned)
        """
        if self.is_tuned():
            if not self._tuned_reported:
                self._tuned_reported = True
                self._notify("on_tuned", self._best_err, list(self._best_params))
            return list(self._best_params)

        if self._sample_count == self._warmup_steps:
            self._notify("on_warmup_complete", self._cycle)

        # Let the simulation settle before scoring
        if self._sample_count >= self._warmup_steps:
            self._total_err += cte * cte

        self._sample_count += 1
        cte_abs = abs(cte)
        diverged = cte_abs > self._divergence_threshold

        if diverged or self._sample_count - self._warmup_steps >= self._max_steps:
            self._end_cycle(cte_abs, diverged)

        return list(self._params)

    def _end_cycle(self, cte_abs: float, diverged: bool) -> None:
        """Score the finished cycle and move to the next trial point."""
        if diverged:
            err_avg = cte_abs
        else:
            err_avg = self._total_err / (self._sample_count - self._warmup_steps)

        report = CycleReport(
            cycle=self._cycle,
            params=list(self._params),
            deltas=[delta.value for delta in self._params_delta],
            score=err_avg,
            previous_best=self._best_err,
            param_index=self._param_idx,
            diverged=diverged,
            samples=self._sample_count,
            best_params=list(self._best_params),
        )
        self._notify("on_cycle_end", report)

        active = self._params_delta[self._param_idx]
        if err_avg < self._best_err:
            # Error improved
            self._best_err = err_avg
            self._best_params = list(self._params)
            self._scale_step(self.STEP_GROWTH)
            active.phase = ProbePhase.INCREASE  # Reset for the next visit
            self._next_param()
        elif active.phase == ProbePhase.INCREASE:
            # Upper probe failed, try the lower one
            active.phase = ProbePhase.DECREASE
            self._notify("on_phase_flip", self._param_idx, active.phase)
        else:
            # Both probes failed: undo the lower probe and narrow the search
            self._move(active.value, ProbePhase.INCREASE)
            self._scale_step(self.STEP_SHRINK)
            active.phase = ProbePhase.INCREASE
            self._next_param()

        if self._params_delta[self._param_idx].phase == ProbePhase.INCREASE:
            self._move(self._params_delta[self._param_idx].value, ProbePhase.INCREASE)
        else:
            # Cancels the earlier increase and steps one below the baseline
            self._move(
                2 * self._params_delta[self._param_idx].value, ProbePhase.DECREASE
            )

        self._notify(
            "on_cycle_complete", report, self._best_err, list(self._best_params)
        )

        # Clear the cycle
        self._sample_count = 0
        self._total_err = 0.0
        self._cycle += 1

    def _next_param(self) -> None:
        """Advance round-robin to the next parameter."""
        old_idx = self._param_idx
        self._param_idx = (self._param_idx + 1) % len(self._params)
        self._notify("on_parameter_advance", old_idx, self._param_idx)

    def _scale_step(self, factor: float) -> None:
        """Scale the active parameter's step size."""
        delta = self._params_delta[self._param_idx]
        self._notify("on_step_scaled", self._param_idx, delta.value, factor)
        delta.value *= factor

    def _move(self, amount: float, phase: ProbePhase) -> None:
        """Shift the active parameter up or down by amount."""
        old_value = self._params[self._param_idx]
        if phase == ProbePhase.INCREASE:
            self._params[self._param_idx] = old_value + amount
        else:
            self._params[self._param_idx] = old_value - amount
        self._notify("on_probe", self._param_idx, old_value, amount, phase)

    def _notify(self, event: str, *args) -> None:
        """Forward a transition to the observer, if one is attached."""
        if self._observer is not None:
            getattr(self._observer, event)(*args)

    # Query methods
    def get_params(self) -> List[float]:
        """Get the current trial parameters."""
        return list(self._params)

    def get_best_params(self) -> List[float]:
        """Get the parameters with the lowest score so far."""
        return list(self._best_params)

    def get_best_error(self) -> float:
        """Get the lowest cycle score so far (inf before the first cycle ends)."""
        return self._best_err

    def get_params_delta(self) -> List[ParamDelta]:
        """Get copies of the per-parameter step records."""
        return [ParamDelta(d.value, d.phase) for d in self._params_delta]

    def get_cycle(self) -> int:
        """Get the current cycle number (starts at 1)."""
        return self._cycle

    def get_param_index(self) -> int:
        """Get the index of the active parameter."""
        return self._param_idx

    def get_sample_count(self) -> int:
        """Get the number of samples seen in the current cycle."""
        return self._sample_count

    def get_max_steps(self) -> int:
        """Get the step budget (scored samples per cycle)."""
        return self._max_steps

    def get_warmup_steps(self) -> int:
        """Get the number of unscored samples per cycle."""
        return self._warmup_steps

    def __repr__(self) -> str:
        """String representation for debugging."""
        params = ", ".join(f"{p:.4f}" for p in self._params)
        return (
            f"Twiddle(params=[{params}], cycle={self._cycle}, "
            f"best_err={self._best_err:.4f}, tuned={self.is_tuned()})"
        )
