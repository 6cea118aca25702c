"""
Result type of a spinjax run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Tuple

import jax.numpy as jnp

from spinjax.core.grid import PeriodicGrid


class RunStatus:
    """Final status of a run."""
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DIVERGED = "diverged"


@dataclass(frozen=True)
class SimulationResult:
    """
    Snapshots of a run in physical space.

    For scalar equations each state has the grid shape; for systems the
    component axis comes first, (C, *grid.shape).

    Attributes:
        times: Output times, one per snapshot
        states: Physical states at those times
        final_time: Time reached (last output time unless cancelled)
        final_state: Physical state at final_time
        grid: Working grid
        dt: Nominal step size used
        N: Grid points per axis
        scheme: Scheme name
        n_steps: Total number of steps taken
        status: RunStatus value; partial results attached to a
            DivergenceError carry RunStatus.DIVERGED
        diagnostics: Extra information (auto-selection estimates, restarts,
            imaginary residual of real problems, ...)
    """
    times: Tuple[float, ...]
    states: Tuple[jnp.ndarray, ...]
    final_time: float
    final_state: jnp.ndarray
    grid: PeriodicGrid
    dt: float
    N: int
    scheme: str
    n_steps: int
    status: str = RunStatus.COMPLETED
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    def __iter__(self) -> Iterator[Tuple[float, jnp.ndarray]]:
        return iter(zip(self.times, self.states))

    def __len__(self) -> int:
        return len(self.times)

    @property
    def completed(self) -> bool:
        return self.status == RunStatus.COMPLETED

    def as_array(self) -> jnp.ndarray:
        """Snapshots stacked along a new leading time axis."""
        return jnp.stack(self.states)
