"""
State utilities for spinjax.

A state is one array of shape (n_components, *grid.shape). This module
converts user-facing inputs to that canonical form and provides the small
reductions the driver needs.

Design decisions:
- A single array is accepted for scalar equations, a sequence of arrays for
  systems; both normalise to (C, *shape)
- Callables are sampled on the grid mesh: f(x), f(x, y) or f(x, y, z)
- Sample arrays on a different even grid are resampled by trigonometric
  interpolation rather than rejected
"""

from typing import Any, Callable, Sequence, Tuple, Union

import jax.numpy as jnp

from spinjax.core.errors import InvalidOperatorError
from spinjax.core.grid import PeriodicGrid
from spinjax.core.transforms import resample


InitialState = Union[Callable[..., Any], jnp.ndarray, Sequence[Any]]


def as_state(value: Any, n_components: int, shape: Tuple[int, ...]) -> jnp.ndarray:
    """
    Normalise an array or a sequence of per-component arrays to (C, *shape).

    Scalars and arrays broadcastable to shape are broadcast.

    Raises:
        InvalidOperatorError: If the number of components does not match
    """
    if isinstance(value, (list, tuple)):
        if len(value) != n_components:
            raise InvalidOperatorError(
                f"Expected {n_components} components, got {len(value)}"
            )
        return jnp.stack([jnp.broadcast_to(jnp.asarray(v), shape) for v in value])

    value = jnp.asarray(value)
    full_shape = (n_components,) + tuple(shape)
    if value.shape == full_shape:
        return value
    if n_components == 1 and value.shape == tuple(shape):
        return value[None]
    try:
        return jnp.broadcast_to(value, full_shape)
    except ValueError as exc:
        raise InvalidOperatorError(
            f"Cannot interpret array of shape {value.shape} as a state of shape {full_shape}"
        ) from exc


def _resample_component(values: jnp.ndarray, grid: PeriodicGrid) -> jnp.ndarray:
    values = jnp.asarray(values)
    if values.ndim != grid.ndim:
        raise InvalidOperatorError(
            f"Sample array has {values.ndim} dimensions on a {grid.ndim}-D grid"
        )
    if values.shape == grid.shape:
        return values
    if any(n % 2 != 0 for n in values.shape):
        raise InvalidOperatorError(
            f"Sample arrays must have even sizes to be resampled, got {values.shape}"
        )
    return resample(values, grid.shape, grid.ndim)


def sample_on_grid(
    initial: InitialState,
    grid: PeriodicGrid,
    n_components: int,
) -> jnp.ndarray:
    """
    Turn an initial condition into a physical state on the grid.

    Args:
        initial: Callable of the mesh coordinates, array of samples, or
            sequence of either (one per component)
        grid: Working grid
        n_components: Number of unknowns

    Returns:
        Array (C, *grid.shape)
    """
    if callable(initial):
        return as_state(initial(*grid.mesh()), n_components, grid.shape)

    if isinstance(initial, (list, tuple)):
        if len(initial) != n_components:
            raise InvalidOperatorError(
                f"Expected {n_components} initial components, got {len(initial)}"
            )
        components = []
        for item in initial:
            if callable(item):
                components.append(jnp.broadcast_to(jnp.asarray(item(*grid.mesh())), grid.shape))
            else:
                components.append(_resample_component(item, grid))
        return jnp.stack(components)

    values = jnp.asarray(initial)
    if values.ndim == grid.ndim + 1:
        return sample_on_grid(list(values), grid, n_components)
    if n_components != 1:
        raise InvalidOperatorError(
            f"A single sample array was given for {n_components} components"
        )
    return _resample_component(values, grid)[None]


def max_abs(state: jnp.ndarray) -> float:
    """Largest absolute value over all components."""
    return float(jnp.max(jnp.abs(state)))


def is_finite(state: jnp.ndarray) -> bool:
    """True if the state holds no NaN or Inf."""
    return bool(jnp.all(jnp.isfinite(state)))


def is_real(state: jnp.ndarray) -> bool:
    """True for a real dtype or a complex array with zero imaginary part."""
    if not jnp.iscomplexobj(state):
        return True
    return bool(jnp.all(jnp.imag(state) == 0))
