"""
Spectral differentiation symbols.

A constant-coefficient linear operator on a periodic grid is diagonal in
Fourier space: it acts on mode k by multiplication with its symbol. This
module builds those multipliers from a small vocabulary of derivatives.

Linear parts are written as plain Python callables of a SpectralDerivatives
object, e.g. for Kuramoto-Sivashinsky

    linear = lambda d: -d.dx(2) - d.dx(4)

and for a two-component reaction-diffusion system

    linear = lambda d: [2e-5 * d.laplacian, 1e-5 * d.laplacian]

A nested C x C list couples the components through the linear part.

Design decisions:
- Odd derivatives zero the Nyquist mode so that real data stay real
- Multipliers are complex arrays of the grid shape
- Derivative arrays are computed once per grid and cached on the object
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Tuple

import jax.numpy as jnp
import numpy as np

from spinjax.core.errors import InvalidOperatorError
from spinjax.core.grid import PeriodicGrid


LinearSymbol = Callable[["SpectralDerivatives"], Any]

DIAGONAL = "diagonal"
FULL = "full"


@dataclass(frozen=True)
class SpectralDerivatives:
    """Fourier multipliers of derivatives on a periodic grid.

    Args:
        grid: PeriodicGrid instance

    Example:
        >>> grid = PeriodicGrid.uniform(32, [0, 2 * jnp.pi])
        >>> d = SpectralDerivatives(grid)
        >>> symbol = d.dx(2) + 0.5  # u_xx + u/2
    """

    grid: PeriodicGrid
    _ik: Tuple[jnp.ndarray, ...] = field(init=False, repr=False, compare=False)
    _nyquist: Tuple[jnp.ndarray, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        ik = tuple(
            jnp.broadcast_to(1j * k, self.grid.shape) for k in self.grid.wavenumbers()
        )
        nyquist = tuple(
            jnp.broadcast_to(mask, self.grid.shape) for mask in self.grid.nyquist_masks()
        )
        object.__setattr__(self, '_ik', ik)
        object.__setattr__(self, '_nyquist', nyquist)

    def diff(self, order: int, axis: int = 0) -> jnp.ndarray:
        """
        Symbol (i k)^order of the order-th derivative along one axis.

        Args:
            order: Derivative order (>= 0)
            axis: Coordinate axis (0 = x, 1 = y, 2 = z)

        Returns:
            Complex multiplier array of shape grid.shape
        """
        if order < 0:
            raise InvalidOperatorError(f"Derivative order must be >= 0, got {order}")
        if not 0 <= axis < self.grid.ndim:
            raise InvalidOperatorError(
                f"Axis {axis} out of range for a {self.grid.ndim}-D grid"
            )
        symbol = self._ik[axis] ** order
        if order % 2 == 1:
            symbol = jnp.where(self._nyquist[axis], 0.0, symbol)
        return symbol.astype(jnp.complex128)

    def dx(self, order: int = 1) -> jnp.ndarray:
        return self.diff(order, 0)

    def dy(self, order: int = 1) -> jnp.ndarray:
        return self.diff(order, 1)

    def dz(self, order: int = 1) -> jnp.ndarray:
        return self.diff(order, 2)

    @property
    def laplacian(self) -> jnp.ndarray:
        """Symbol -|k|^2 of the Laplacian."""
        return sum(self.diff(2, axis) for axis in range(self.grid.ndim))

    @property
    def biharmonic(self) -> jnp.ndarray:
        """Symbol |k|^4 of the bi-Laplacian."""
        return self.laplacian ** 2

    def constant(self, value: complex) -> jnp.ndarray:
        """Multiplier for the operator u -> value * u."""
        return jnp.full(self.grid.shape, value, dtype=jnp.complex128)


# =============================================================================
# Symbol Evaluation
# =============================================================================

def _as_multiplier(value: Any, shape: Tuple[int, ...]) -> jnp.ndarray:
    return jnp.broadcast_to(jnp.asarray(value, dtype=jnp.complex128), shape)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def evaluate_linear_symbol(
    linear: LinearSymbol,
    derivs: SpectralDerivatives,
    n_components: int,
) -> Tuple[str, jnp.ndarray]:
    """
    Evaluate a linear-part callable into multiplier arrays.

    Args:
        linear: Callable of a SpectralDerivatives object
        derivs: SpectralDerivatives for the working grid
        n_components: Number of unknowns

    Returns:
        ("diagonal", array (C, *shape)) or ("full", array (C, C, *shape))

    Raises:
        InvalidOperatorError: If the number of multipliers does not match
    """
    shape = derivs.grid.shape
    value = linear(derivs)

    if not _is_sequence(value):
        if n_components != 1:
            raise InvalidOperatorError(
                f"Linear part returned one multiplier for {n_components} components"
            )
        return DIAGONAL, _as_multiplier(value, shape)[None]

    if len(value) != n_components:
        raise InvalidOperatorError(
            f"Linear part returned {len(value)} multipliers for {n_components} components"
        )

    if any(_is_sequence(row) for row in value):
        rows = []
        for row in value:
            if not _is_sequence(row) or len(row) != n_components:
                raise InvalidOperatorError(
                    f"Coupled linear part must be a {n_components}x{n_components} nested sequence"
                )
            rows.append(jnp.stack([_as_multiplier(entry, shape) for entry in row]))
        return FULL, jnp.stack(rows)

    return DIAGONAL, jnp.stack([_as_multiplier(entry, shape) for entry in value])


def evaluate_component_symbol(
    symbol: Callable[[SpectralDerivatives], Any],
    derivs: SpectralDerivatives,
    n_components: int,
) -> jnp.ndarray:
    """
    Evaluate a per-component multiplier callable (used for nonlinear_diff).

    A single multiplier is applied to every component.

    Returns:
        Array (C, *shape)
    """
    shape = derivs.grid.shape
    value = symbol(derivs)
    if not _is_sequence(value):
        return jnp.broadcast_to(_as_multiplier(value, shape), (n_components,) + shape)
    if len(value) != n_components:
        raise InvalidOperatorError(
            f"Nonlinear differential part returned {len(value)} multipliers "
            f"for {n_components} components"
        )
    return jnp.stack([_as_multiplier(entry, shape) for entry in value])


def reflect_modes(values: jnp.ndarray, ndim: int) -> jnp.ndarray:
    """Re-index the trailing ndim Fourier axes from k to -k."""
    axes = tuple(range(-ndim, 0))
    return jnp.roll(jnp.flip(values, axis=axes), 1, axis=axes)


def is_hermitian(multipliers: jnp.ndarray, ndim: int, rtol: float = 1e-12) -> bool:
    """
    True when m(-k) == conj(m(k)) for every mode, i.e. the operator maps real
    fields to real fields.
    """
    reflected = jnp.conj(reflect_modes(multipliers, ndim))
    scale = max(float(jnp.max(jnp.abs(multipliers))), 1.0)
    return bool(np.all(np.abs(np.asarray(reflected - multipliers)) <= rtol * scale))
