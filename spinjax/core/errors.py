"""
Error taxonomy for spinjax.

Every error raised on purpose by the library derives from SpinError.
Construction-time errors also derive from ValueError so that callers
validating user input can catch them the usual way.
"""

from __future__ import annotations

from typing import Any, Optional


class SpinError(Exception):
    """Base class for spinjax errors."""


class InvalidOperatorError(SpinError, ValueError):
    """Malformed operator: degenerate domain, component mismatch, unknown preset."""


class InvalidGridError(SpinError, ValueError):
    """Grid size that the transform layer cannot use."""


class InvalidTimeSpanError(SpinError, ValueError):
    """Output times that are empty, decreasing, or start before t0."""


class DivergenceError(SpinError):
    """Numerical blow-up detected during time stepping.

    Attributes:
        time: Last time at which the state was still valid
        state: Physical-space state at that time
        step: Number of completed steps before the failure
        result: Partial SimulationResult with the snapshots recorded so far
    """

    def __init__(
        self,
        message: str,
        time: float,
        state: Any,
        step: int,
        result: Optional[Any] = None,
    ):
        super().__init__(message)
        self.time = time
        self.state = state
        self.step = step
        self.result = result


class ToleranceUnachievableError(SpinError):
    """Auto-selection of dt or N ran out of budget before meeting the tolerance.

    Attributes:
        best_dt: Smallest time step tried
        best_N: Largest grid size tried
        error_estimate: Error estimate achieved with best_dt / best_N
    """

    def __init__(
        self,
        message: str,
        best_dt: Optional[float] = None,
        best_N: Optional[int] = None,
        error_estimate: Optional[float] = None,
    ):
        super().__init__(message)
        self.best_dt = best_dt
        self.best_N = best_N
        self.error_estimate = error_estimate
