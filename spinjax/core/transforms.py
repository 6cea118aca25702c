"""
Forward/inverse Fourier transforms on periodic grids.

States are arrays of shape (n_components, *grid.shape). Transforms act on
the trailing ndim axes and are batched over the leading component axis.

Design decisions:
- Plain jnp.fft.fftn / ifftn; the XLA compilation cache per shape plays the
  role of an FFT plan, so there is no explicit plan object
- Spectral arrays are always complex; to_physical returns complex values and
  leaves the decision to drop the imaginary part to the caller
- resample() uses zero-padding / truncation in Fourier space, i.e. exact
  trigonometric interpolation of band-limited data
"""

from __future__ import annotations

from functools import partial
from typing import Sequence, Tuple, Union

import jax
import jax.numpy as jnp

from spinjax.core.grid import PeriodicGrid


def _axes(ndim: int) -> Tuple[int, ...]:
    return tuple(range(-ndim, 0))


@partial(jax.jit, static_argnums=(1,))
def to_spectral(state: jnp.ndarray, ndim: int) -> jnp.ndarray:
    """
    Physical samples -> Fourier coefficients.

    Args:
        state: Array (..., *grid.shape)
        ndim: Number of space dimensions (trailing axes to transform)

    Returns:
        Complex array of the same shape
    """
    return jnp.fft.fftn(state, axes=_axes(ndim))


@partial(jax.jit, static_argnums=(1,))
def to_physical(state_hat: jnp.ndarray, ndim: int) -> jnp.ndarray:
    """
    Fourier coefficients -> physical samples (complex).

    Args:
        state_hat: Array (..., *grid.shape)
        ndim: Number of space dimensions

    Returns:
        Complex array of the same shape
    """
    return jnp.fft.ifftn(state_hat, axes=_axes(ndim))


# =============================================================================
# Resampling
# =============================================================================

def _resize_axis(values_hat: jnp.ndarray, axis: int, n_new: int) -> jnp.ndarray:
    """Zero-pad or truncate one Fourier axis (FFT ordering, even sizes)."""
    n_old = values_hat.shape[axis]
    if n_new == n_old:
        return values_hat

    def take(start, stop):
        return jnp.take(values_hat, jnp.arange(start, stop), axis=axis)

    if n_new > n_old:
        m = n_old // 2
        # The old Nyquist coefficient is split between +m and -m
        half_nyquist = 0.5 * take(m, m + 1)
        pad_shape = list(values_hat.shape)
        pad_shape[axis] = n_new - n_old - 1
        zeros = jnp.zeros(pad_shape, dtype=values_hat.dtype)
        pieces = [take(0, m), half_nyquist, zeros, half_nyquist, take(m + 1, n_old)]
    else:
        m = n_new // 2
        # +m and -m alias to the same mode on the coarse grid
        nyquist = take(m, m + 1) + take(n_old - m, n_old - m + 1)
        pieces = [take(0, m), nyquist, take(n_old - m + 1, n_old)]
    return jnp.concatenate(pieces, axis=axis) * (n_new / n_old)


def resample(
    values: jnp.ndarray,
    n_new: Union[int, Sequence[int]],
    ndim: int,
) -> jnp.ndarray:
    """
    Trigonometric interpolation of periodic samples onto another grid size.

    Args:
        values: Array (..., *shape) of samples on a periodic grid
        n_new: New size per axis (int for every axis)
        ndim: Number of space dimensions

    Returns:
        Array (..., *n_new); real input gives real output
    """
    if isinstance(n_new, int):
        n_new = (n_new,) * ndim
    n_new = tuple(int(n) for n in n_new)
    if tuple(values.shape[-ndim:]) == n_new:
        return values
    values_hat = to_spectral(values, ndim)
    for axis, n in zip(_axes(ndim), n_new):
        values_hat = _resize_axis(values_hat, axis, n)
    out = to_physical(values_hat, ndim)
    if not jnp.iscomplexobj(values):
        out = out.real
    return out


def dealias_mask(grid: PeriodicGrid) -> jnp.ndarray:
    """
    Boolean 2/3-rule mask: True for modes kept, False for the top third.

    Returns:
        Array of shape grid.shape
    """
    mask = jnp.ones(grid.shape, dtype=bool)
    for axis, n in enumerate(grid.n):
        index = jnp.abs(jnp.fft.fftfreq(n, d=1.0 / n))
        keep = index < n / 3.0
        shape = [1] * grid.ndim
        shape[axis] = n
        mask = mask & keep.reshape(shape)
    return mask


def spectral_tail(state_hat: jnp.ndarray, ndim: int, fraction: float = 0.125) -> jnp.ndarray:
    """
    Relative size of the highest Fourier modes.

    The tail is the outer `fraction` of the index range on each axis; the
    result is max|tail| / max|all| (0 for an identically zero state). Used to
    decide whether a grid resolves a state.
    """
    shape = state_hat.shape[-ndim:]
    in_tail = jnp.zeros(shape, dtype=bool)
    for axis, n in enumerate(shape):
        index = jnp.abs(jnp.fft.fftfreq(n, d=1.0 / n))
        outer = index >= (0.5 - fraction) * n
        bshape = [1] * ndim
        bshape[axis] = n
        in_tail = in_tail | outer.reshape(bshape)
    magnitude = jnp.abs(state_hat)
    peak = jnp.max(magnitude)
    tail = jnp.max(jnp.where(in_tail, magnitude, 0.0))
    return jnp.where(peak > 0, tail / jnp.where(peak > 0, peak, 1.0), 0.0)
