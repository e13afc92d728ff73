"""
SteeringPID - Cross-Track Error PID Controller

This module provides the steering controller that turns a streamed cross-track
error (CTE) into a steering command. The error accumulators are kept separate
from the gains so that gains can be swapped every sample (as the tuner does)
without disturbing the controller history.
"""

from typing import Tuple


class SteeringPID:
    """
    PID controller driven by cross-track error samples.

    The controller keeps three error terms:
    - p_error: the most recent CTE
    - i_error: running sum of every CTE since construction or reset()
    - d_error: difference between the current and the previous CTE

    Usage pattern:
        pid = SteeringPID(kp=0.2, ki=0.0001, kd=3.0)

        # For every telemetry sample:
        pid.update_error(cte)
        steer_value = pid.total_error()
    """

    def __init__(self, kp: float = 0.0, ki: float = 0.0, kd: float = 0.0):
        """
        Initialize the steering controller.

        Args:
            kp: Proportional gain
            ki: Integral gain
            kd: Derivative gain
        """
        # Gains
        self._kp: float = 0.0
        self._ki: float = 0.0
        self._kd: float = 0.0

        # Error terms
        self._p_error: float = 0.0
        self._i_error: float = 0.0
        self._d_error: float = 0.0

        # Set once the first CTE has seeded p_error
        self._initialized: bool = False

        self.set_tunings(kp, ki, kd)

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit with cleanup."""
        self.reset()

    def set_tunings(self, kp: float, ki: float, kd: float) -> None:
        """
        Replace the controller gains.

        Gains are not range checked and the error terms are left untouched,
        so the controller history carries over across gain changes.

        Args:
            kp: Proportional gain
            ki: Integral gain
            kd: Derivative gain
        """
        self._kp = kp
        self._ki = ki
        self._kd = kd

    def update_error(self, cte: float) -> None:
        """
        Update the error terms with a new cross-track error sample.

        Args:
            cte: Cross-track error for this sample
        """
        # First sample: no previous CTE, derivative starts at zero
        if not self._initialized:
            self._p_error = cte
            self._initialized = True

        self._d_error = cte - self._p_error  # p_error still holds the previous CTE
        self._p_error = cte
        self._i_error += cte

    def total_error(self) -> float:
        """
        Calculate the steering command for the current error terms.

        Returns:
            Negated weighted sum of the proportional, integral and derivative terms
        """
        return -(
            self._kp * self._p_error
            + self._ki * self._i_error
            + self._kd * self._d_error
        )

    def reset(self) -> None:
        """Reset all error terms to zero."""
        self._p_error = 0.0
        self._i_error = 0.0
        self._d_error = 0.0
        self._initialized = False

    # Query methods
    def get_kp(self) -> float:
        """Get proportional gain."""
        return self._kp

    def get_ki(self) -> float:
        """Get integral gain."""
        return self._ki

    def get_kd(self) -> float:
        """Get derivative gain."""
        return self._kd

    def get_tunings(self) -> Tuple[float, float, float]:
        """Get gains as (kp, ki, kd) tuple."""
        return (self._kp, self._ki, self._kd)

    def get_p_error(self) -> float:
        """Get proportional error (last CTE)."""
        return self._p_error

    def get_i_error(self) -> float:
        """Get integral error (sum of CTE)."""
        return self._i_error

    def get_d_error(self) -> float:
        """Get derivative error (CTE change)."""
        return self._d_error

    def is_initialized(self) -> bool:
        """Check if a CTE sample has been seen."""
        return self._initialized

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"SteeringPID(Kp={self._kp:.4f}, Ki={self._ki:.4f}, "
            f"Kd={self._kd:.4f}, cte={self._p_error:.4f})"
        )
