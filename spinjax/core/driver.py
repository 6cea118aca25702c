"""
Time-stepping driver for spinjax.

integrate() runs an operator from t0 through a list of output times:

    Initializing -> Stepping -> {Stepping | Snapshotting | Diverged | Completed}
                                                         (+ Cancelled)

Initializing resolves the preferences, chooses the grid size (smallest
power of two on which the initial condition's Fourier tail is below the
tolerance) and the step size (Richardson step halving over a trial horizon)
unless they were given, then moves the initial state to Fourier space.
Stepping advances with a fixed step per output interval, adjusted so that
every output time is hit exactly. Snapshotting records the physical state
at each output time.

Design decisions:
- Python-level loop over steps; each step is one jitted call, so divergence
  checks, cancellation and progress reporting happen between steps
- Coefficients (and the jitted step) are cached per distinct step size
- With automatic N the resolution is re-checked during the run; loss of
  resolution restarts the run from t0 on a grid twice as fine
- Real initial data under a real-preserving operator give real snapshots;
  the imaginary round-off that was dropped is reported in diagnostics
"""

from __future__ import annotations

import logging
import math
import threading
import warnings
from dataclasses import replace
from functools import partial
from typing import Any, Callable, Dict, Optional, Sequence, Tuple, Union

import jax
import jax.numpy as jnp
import numpy as np

from spinjax.core.errors import (
    DivergenceError,
    InvalidOperatorError,
    InvalidTimeSpanError,
    ToleranceUnachievableError,
)
from spinjax.core.grid import PeriodicGrid
from spinjax.core.operator import DiscreteOperator, SpinOperator, create_operator
from spinjax.core.phi import PhiConfig
from spinjax.core.preferences import (
    DEFAULT_MAX_N,
    DEFAULT_MIN_N,
    ProgressInfo,
    SpinPreferences,
    resolve_preferences,
)
from spinjax.core.result import RunStatus, SimulationResult
from spinjax.core.schemes import SchemeDescriptor, advance, compute_coefficients, get_scheme
from spinjax.core.state import InitialState, is_finite, is_real, max_abs, sample_on_grid
from spinjax.core.transforms import spectral_tail, to_physical, to_spectral


logger = logging.getLogger(__name__)

TimeSpan = Union[float, Sequence[float]]


class _ResolutionLost(Exception):
    """Raised inside a run when the Fourier tail exceeds the tolerance."""

    def __init__(self, time: float, tail: float):
        super().__init__(f"resolution lost at t={time:g} (tail {tail:.2e})")
        self.time = time
        self.tail = tail


class StepperCache:
    """Jitted single-step functions, one per distinct step size.

    Args:
        discrete: Operator on the working grid
        scheme: Scheme descriptor
        phi_config: Contour settings for diagonal phi evaluation
    """

    def __init__(self, discrete: DiscreteOperator, scheme: SchemeDescriptor, phi_config: PhiConfig):
        self.discrete = discrete
        self.scheme = scheme
        self.phi_config = phi_config
        self._steps: Dict[float, Callable[[jnp.ndarray], jnp.ndarray]] = {}

    def __len__(self) -> int:
        return len(self._steps)

    def __call__(self, dt: float) -> Callable[[jnp.ndarray], jnp.ndarray]:
        if dt not in self._steps:
            coeffs = compute_coefficients(
                self.scheme,
                self.discrete.linear,
                dt,
                diagonal=self.discrete.diagonal,
                phi_config=self.phi_config,
            )
            self._steps[dt] = jax.jit(
                partial(advance, coeffs=coeffs, nonlinear_hat=self.discrete.nonlinear_hat)
            )
        return self._steps[dt]


# =============================================================================
# Initializing
# =============================================================================

def output_times(time_span: TimeSpan, t0: float = 0.0) -> Tuple[float, ...]:
    """
    Validate and normalise the requested output times.

    Args:
        time_span: Final time, or non-decreasing sequence of output times
        t0: Initial time

    Returns:
        Tuple of output times

    Raises:
        InvalidTimeSpanError: Empty, non-finite, decreasing, or before t0
    """
    values = np.asarray(time_span, dtype=float)
    if values.ndim == 0:
        values = values[None]
    if values.ndim != 1 or values.size == 0:
        raise InvalidTimeSpanError(f"time_span must be a number or a 1-D sequence, got {time_span!r}")
    if not np.all(np.isfinite(values)):
        raise InvalidTimeSpanError("time_span contains non-finite values")
    if values[0] < t0:
        raise InvalidTimeSpanError(f"First output time {values[0]:g} is before t0={t0:g}")
    if np.any(np.diff(values) < 0):
        raise InvalidTimeSpanError("Output times must be non-decreasing")
    return tuple(float(t) for t in values)


def _select_grid(
    operator: SpinOperator,
    initial: InitialState,
    prefs: SpinPreferences,
) -> Tuple[PeriodicGrid, jnp.ndarray, float]:
    """Grid (fixed or auto-selected), sampled initial state and its spectral tail."""
    ndim = operator.ndim
    C = operator.n_components

    if not prefs.auto_N:
        grid = PeriodicGrid.uniform(prefs.N, operator.domain)
        u0 = sample_on_grid(initial, grid, C)
        return grid, u0, float(spectral_tail(to_spectral(u0, ndim), ndim))

    n = prefs.min_N or DEFAULT_MIN_N[ndim]
    max_n = prefs.max_N or DEFAULT_MAX_N[ndim]
    while True:
        grid = PeriodicGrid.uniform(n, operator.domain)
        u0 = sample_on_grid(initial, grid, C)
        tail = float(spectral_tail(to_spectral(u0, ndim), ndim))
        if tail <= prefs.tolerance:
            logger.info("Auto-selected N=%d (spectral tail %.2e)", n, tail)
            return grid, u0, tail
        if 2 * n > max_n:
            raise ToleranceUnachievableError(
                f"Initial condition is not resolved to {prefs.tolerance:g} with N <= {max_n} "
                f"(spectral tail {tail:.2e} at N={n})",
                best_N=n,
                error_estimate=tail,
            )
        logger.debug("N=%d does not resolve the initial condition (tail %.2e)", n, tail)
        n *= 2


def _trial_run(
    stepper: StepperCache,
    v_hat: jnp.ndarray,
    dt: float,
    n_steps: int,
    threshold: float,
    ndim: int,
) -> Optional[jnp.ndarray]:
    """Advance n_steps without snapshots; None if the run blows up."""
    step = stepper(dt)
    for _ in range(n_steps):
        v_hat = step(v_hat)
        if not is_finite(v_hat):
            return None
    u = to_physical(v_hat, ndim)
    if max_abs(u) > threshold:
        return None
    return u


def _select_dt(
    stepper: StepperCache,
    v0_hat: jnp.ndarray,
    horizon: float,
    dt_start: float,
    prefs: SpinPreferences,
    threshold: float,
    grid: PeriodicGrid,
) -> Tuple[float, float]:
    """
    Richardson step halving: accept the first dt whose error estimate
    |u(dt) - u(dt/2)| / (1 - 2^-p), relative to max(1, max|u|), is below
    the tolerance at the end of the trial horizon.
    """
    order = stepper.scheme.order
    n = max(1, int(math.ceil(horizon / dt_start)))
    coarse = _trial_run(stepper, v0_hat, horizon / n, n, threshold, grid.ndim)
    estimate = math.inf
    for _ in range(prefs.max_refinements):
        fine = _trial_run(stepper, v0_hat, horizon / (2 * n), 2 * n, threshold, grid.ndim)
        if coarse is not None and fine is not None:
            scale = max(1.0, max_abs(fine))
            estimate = max_abs(coarse - fine) / scale / (1.0 - 2.0 ** (-order))
            logger.debug("dt=%g: error estimate %.2e", horizon / n, estimate)
            if estimate <= prefs.tolerance:
                dt = horizon / n
                logger.info("Auto-selected dt=%g (error estimate %.2e)", dt, estimate)
                return dt, estimate
        n *= 2
        coarse = fine
    raise ToleranceUnachievableError(
        f"Step size did not reach tolerance {prefs.tolerance:g} after "
        f"{prefs.max_refinements} halvings (estimate {estimate:.2e})",
        best_dt=horizon / n,
        best_N=grid.n[0],
        error_estimate=estimate,
    )


# =============================================================================
# Stepping and snapshotting
# =============================================================================

def _present(v_hat: jnp.ndarray, ndim: int, n_components: int, real: bool) -> Tuple[jnp.ndarray, float]:
    """Physical snapshot; real part for real problems, component axis dropped for scalars."""
    u = to_physical(v_hat, ndim)
    residual = 0.0
    if real:
        residual = float(jnp.max(jnp.abs(u.imag)))
        u = u.real
    if n_components == 1:
        u = u[0]
    return u, residual


def _solve_on_grid(
    operator: SpinOperator,
    grid: PeriodicGrid,
    u0: jnp.ndarray,
    times: Tuple[float, ...],
    t0: float,
    scheme: SchemeDescriptor,
    prefs: SpinPreferences,
    cancel_event: Optional[threading.Event],
    diagnostics: Dict[str, Any],
) -> SimulationResult:
    ndim = grid.ndim
    C = operator.n_components

    real_data = is_real(u0)
    if real_data:
        u0 = jnp.real(u0)
    discrete = operator.discretize(grid, dealias=prefs.dealias, real_data=real_data)
    real_output = real_data and discrete.real_preserving
    if real_data and not discrete.real_preserving:
        warnings.warn(
            f"Operator '{operator.name}' does not map real fields to real fields; "
            "snapshots of the real initial condition will be complex",
            UserWarning,
        )

    v = to_spectral(u0.astype(jnp.complex128), ndim)
    stepper = StepperCache(discrete, scheme, PhiConfig(contour_points=prefs.contour_points))
    threshold = prefs.divergence_factor * max(1.0, max_abs(u0))

    if not prefs.auto_dt:
        dt = float(prefs.dt)
    else:
        horizon = (times[-1] - t0) / 10.0
        if horizon <= 0:
            dt = operator.dt or 1.0
        else:
            dt_start = min(operator.dt or horizon / 8.0, horizon)
            dt, estimate = _select_dt(stepper, v, horizon, dt_start, prefs, threshold, grid)
            diagnostics["dt_error_estimate"] = estimate

    diagnostics["real_output"] = real_output
    imag_residual = 0.0
    t = t0
    n_steps = 0
    snap_times = []
    snap_states = []

    def make_result(status: str) -> SimulationResult:
        final_state, _ = _present(v, ndim, C, real_output)
        diagnostics["imag_residual"] = imag_residual
        diagnostics["coefficient_sets"] = len(stepper)
        return SimulationResult(
            times=tuple(snap_times),
            states=tuple(snap_states),
            final_time=t,
            final_state=final_state,
            grid=grid,
            dt=dt,
            N=grid.n[0],
            scheme=scheme.name,
            n_steps=n_steps,
            status=status,
            diagnostics=dict(diagnostics),
        )

    for target in times:
        interval = target - t
        if interval > 0:
            n_interval = max(1, int(math.ceil(interval / dt - 1e-9)))
            h = float(f"{interval / n_interval:.12g}")
            step = stepper(h)
            t_start = t
            for k in range(n_interval):
                if cancel_event is not None and cancel_event.is_set():
                    logger.info("Run cancelled at t=%g after %d steps", t, n_steps)
                    return make_result(RunStatus.CANCELLED)

                v_new = step(v)
                peak = max_abs(to_physical(v_new, ndim))
                if not math.isfinite(peak) or peak > threshold:
                    state, _ = _present(v, ndim, C, real_output)
                    raise DivergenceError(
                        f"Solution diverged after t={t:g} (step {n_steps + 1}, "
                        f"max|u|={peak:.3e}, threshold {threshold:.3e})",
                        time=t,
                        state=state,
                        step=n_steps,
                        result=make_result(RunStatus.DIVERGED),
                    )
                v = v_new
                n_steps += 1
                t = target if k == n_interval - 1 else t_start + (k + 1) * h

                if prefs.progress_callback is not None and n_steps % prefs.progress_every == 0:
                    prefs.progress_callback(ProgressInfo(t=t, step=n_steps, dt=h, N=grid.n[0], max_abs=peak))

                if prefs.auto_N and n_steps % prefs.resolution_check_every == 0:
                    tail = float(spectral_tail(v, ndim))
                    if tail > prefs.tolerance:
                        raise _ResolutionLost(t, tail)

        state, residual = _present(v, ndim, C, real_output)
        imag_residual = max(imag_residual, residual)
        snap_times.append(target)
        snap_states.append(state)

    return make_result(RunStatus.COMPLETED)


# =============================================================================
# Public entry points
# =============================================================================

def integrate(
    operator: Union[SpinOperator, str],
    time_span: TimeSpan,
    initial_state: Optional[InitialState] = None,
    preferences: Optional[Union[SpinPreferences, Dict[str, Any]]] = None,
    t0: float = 0.0,
    cancel_event: Optional[threading.Event] = None,
) -> SimulationResult:
    """
    Integrate u_t = L u + N(u) and return snapshots at the output times.

    Args:
        operator: SpinOperator or preset name
        time_span: Final time (single snapshot) or non-decreasing sequence
            of output times, the first of which is >= t0
        initial_state: Callable of the mesh, sample array(s), or None for the
            operator's default initial condition
        preferences: SpinPreferences or mapping (None for defaults)
        t0: Initial time
        cancel_event: threading.Event checked before every step

    Returns:
        SimulationResult with one snapshot per output time

    Raises:
        InvalidTimeSpanError: Bad time_span
        InvalidOperatorError: No initial condition, or malformed inputs
        DivergenceError: Blow-up during stepping
        ToleranceUnachievableError: Automatic dt/N selection ran out of budget

    Example:
        >>> result = integrate("ks", [0, 10, 20], preferences={"dt": 0.1, "N": 256})
        >>> for t, u in result:
        ...     print(t, float(abs(u).max()))
    """
    if isinstance(operator, str):
        operator = create_operator(operator)
    if not isinstance(operator, SpinOperator):
        raise InvalidOperatorError(
            f"operator must be a SpinOperator or a preset name, got {type(operator).__name__}"
        )
    prefs = resolve_preferences(preferences)
    t0 = float(t0)
    times = output_times(time_span, t0)

    initial = initial_state if initial_state is not None else operator.initial
    if initial is None:
        raise InvalidOperatorError(
            f"No initial state given and operator '{operator.name}' has no default"
        )

    scheme = get_scheme(prefs.scheme)
    grid, u0, tail = _select_grid(operator, initial, prefs)
    diagnostics: Dict[str, Any] = {"initial_spectral_tail": tail, "restarts": 0}
    max_n = prefs.max_N or DEFAULT_MAX_N[operator.ndim]

    while True:
        try:
            return _solve_on_grid(operator, grid, u0, times, t0, scheme, prefs, cancel_event, diagnostics)
        except _ResolutionLost as lost:
            n_new = 2 * grid.n[0]
            if n_new > max_n:
                raise ToleranceUnachievableError(
                    f"Solution lost resolution at t={lost.time:g} and N={grid.n[0]} "
                    f"cannot be doubled beyond max_N={max_n}",
                    best_dt=prefs.dt,
                    best_N=grid.n[0],
                    error_estimate=lost.tail,
                ) from lost
            logger.info("%s; restarting with N=%d", lost, n_new)
            grid = grid.refined(2)
            u0 = sample_on_grid(initial, grid, operator.n_components)
            diagnostics["restarts"] += 1


def spin(
    operator: Union[SpinOperator, str],
    time_span: Optional[TimeSpan] = None,
    initial_state: Optional[InitialState] = None,
    preferences: Optional[Union[SpinPreferences, Dict[str, Any]]] = None,
    cancel_event: Optional[threading.Event] = None,
    domain: Optional[Sequence[float]] = None,
    **prefs,
) -> SimulationResult:
    """
    Convenience front end with preset defaults.

    The time span follows the [t0, t1, ..., tn] convention: t0 is the
    initial time; with two entries only the final state is returned, with
    more entries a snapshot is returned at each of t0 .. tn. A scalar is a
    final time with t0 = 0. Without a time span the operator's default is
    used.

    Args:
        operator: SpinOperator or preset name
        time_span: See above
        initial_state: As for integrate()
        preferences: SpinPreferences or mapping
        cancel_event: As for integrate()
        domain: Replacement domain for a preset, e.g. [0, 16*pi] for "ks"
        **prefs: Preference overrides, e.g. dt=5e-2, N=256, scheme='exprk5s8'

    Example:
        >>> result = spin("ks", dt=5e-2, N=256)
        >>> result = spin("ac", [0, 30], lambda x: -1 + 4 * jnp.exp(-19 * (x - jnp.pi) ** 2))
    """
    if isinstance(operator, str):
        operator = create_operator(operator, domain=domain)
    elif domain is not None:
        operator = replace(operator, domain=domain)
    preferences = resolve_preferences(preferences, **prefs)

    span = operator.tspan if time_span is None else time_span
    if span is None:
        raise InvalidTimeSpanError(f"No time span given and operator '{operator.name}' has no default")
    values = np.asarray(span, dtype=float)
    if values.ndim == 0:
        t0, times = 0.0, values
    elif values.size == 2:
        t0, times = float(values[0]), values[1]
    elif values.size > 2:
        t0, times = float(values[0]), values
    else:
        raise InvalidTimeSpanError(f"time_span needs at least two entries, got {span!r}")
    return integrate(operator, times, initial_state, preferences, t0=t0, cancel_event=cancel_event)
