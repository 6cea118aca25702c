"""
Periodic domains and grids for spinjax.

This module provides the Domain and PeriodicGrid dataclasses that define the
computational setting of a stiff PDE: a box [a1, b1] x ... x [ad, bd] with
d = 1, 2 or 3, periodic in every direction, sampled by n points per axis.

Arrays on a grid have shape grid.shape = (n_x,), (n_x, n_y) or
(n_x, n_y, n_z); array axis d is coordinate d (indexing='ij'). Multi-component
states carry one extra leading axis.

Design decisions:
- Domains and grids are immutable dataclasses (frozen=True)
- Grid points exclude the right endpoint: x_j = a + j*(b - a)/n
- Wavenumbers follow the FFT ordering (0, 1, ..., n/2-1, -n/2, ..., -1),
  scaled by 2*pi/(b - a)
- n must be even so that the Nyquist mode is well defined; powers of two are
  preferred for transform speed but not required
"""

from __future__ import annotations

import numbers
import warnings
from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import jax.numpy as jnp

from spinjax.core.errors import InvalidGridError, InvalidOperatorError


def _is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


@dataclass(frozen=True)
class Domain:
    """
    Periodic box given by (lower, upper) bounds per axis.

    Attributes:
        bounds: Tuple of (lower, upper) pairs, one per axis (1 to 3 axes)

    Example:
        >>> Domain.from_bounds([0, 2 * jnp.pi]).lengths
        (6.283185307179586,)
        >>> Domain.from_bounds([0, 1, 0, 2]).ndim
        2
    """
    bounds: Tuple[Tuple[float, float], ...]

    def __post_init__(self):
        if not 1 <= len(self.bounds) <= 3:
            raise InvalidOperatorError(
                f"Domain must have 1 to 3 axes, got {len(self.bounds)}"
            )
        for axis, (lower, upper) in enumerate(self.bounds):
            if not float(lower) < float(upper):
                raise InvalidOperatorError(
                    f"Degenerate domain on axis {axis}: lower={lower} must be < upper={upper}"
                )

    @classmethod
    def from_bounds(cls, bounds: Union["Domain", Sequence]) -> "Domain":
        """
        Build a domain from a flat [a, b, c, d, ...] list or from pairs.

        Args:
            bounds: Domain, flat sequence of even length, or sequence of pairs

        Returns:
            Domain instance
        """
        if isinstance(bounds, Domain):
            return bounds
        items = list(bounds)
        if len(items) == 0:
            raise InvalidOperatorError("Domain bounds must not be empty")
        if all(isinstance(item, (tuple, list)) for item in items):
            pairs = tuple((float(a), float(b)) for a, b in items)
        else:
            if len(items) % 2 != 0:
                raise InvalidOperatorError(
                    f"Flat domain bounds need an even number of entries, got {len(items)}"
                )
            pairs = tuple(
                (float(items[i]), float(items[i + 1])) for i in range(0, len(items), 2)
            )
        return cls(bounds=pairs)

    @property
    def ndim(self) -> int:
        """Number of space dimensions."""
        return len(self.bounds)

    @property
    def lengths(self) -> Tuple[float, ...]:
        """Period length along each axis."""
        return tuple(upper - lower for lower, upper in self.bounds)

    @property
    def lower(self) -> Tuple[float, ...]:
        return tuple(lower for lower, _ in self.bounds)


@dataclass(frozen=True)
class PeriodicGrid:
    """
    Uniform periodic grid with n points per axis.

    Attributes:
        n: Number of points per axis (one entry per domain axis)
        domain: Periodic Domain

    Example:
        >>> grid = PeriodicGrid.uniform(64, Domain.from_bounds([0, 2 * jnp.pi]))
        >>> grid.shape
        (64,)
        >>> float(grid.wavenumbers()[0][1])
        1.0
    """
    n: Tuple[int, ...]
    domain: Domain

    def __post_init__(self):
        if len(self.n) != self.domain.ndim:
            raise InvalidGridError(
                f"Grid has {len(self.n)} sizes for a {self.domain.ndim}-D domain"
            )
        for n in self.n:
            if int(n) != n or n < 4 or n % 2 != 0:
                raise InvalidGridError(
                    f"Grid size must be an even integer >= 4, got {n}"
                )
        object.__setattr__(self, 'n', tuple(int(m) for m in self.n))
        if not all(_is_power_of_two(n) for n in self.n):
            warnings.warn(
                f"Grid sizes {self.n} are not all powers of two; FFTs will be slower",
                UserWarning,
            )

    @classmethod
    def uniform(
        cls,
        n: Union[int, Sequence[int]],
        domain: Union[Domain, Sequence],
    ) -> "PeriodicGrid":
        """
        Create a periodic grid.

        Args:
            n: Points per axis; an int is used for every axis
            domain: Domain or bounds accepted by Domain.from_bounds

        Returns:
            PeriodicGrid instance
        """
        domain = Domain.from_bounds(domain)
        if isinstance(n, numbers.Integral):
            sizes = (int(n),) * domain.ndim
        else:
            sizes = tuple(int(m) for m in n)
        return cls(n=sizes, domain=domain)

    @property
    def ndim(self) -> int:
        """Number of space dimensions."""
        return self.domain.ndim

    @property
    def shape(self) -> Tuple[int, ...]:
        """Array shape of one component on this grid."""
        return tuple(self.n)

    @property
    def size(self) -> int:
        """Total number of grid points."""
        total = 1
        for n in self.n:
            total *= n
        return total

    @property
    def lengths(self) -> Tuple[float, ...]:
        return self.domain.lengths

    @property
    def spacing(self) -> Tuple[float, ...]:
        """Grid spacing along each axis."""
        return tuple(length / n for length, n in zip(self.domain.lengths, self.n))

    def coords(self) -> Tuple[jnp.ndarray, ...]:
        """
        One-dimensional coordinate arrays, one per axis.

        Returns:
            Tuple of arrays; entry d has shape (n_d,)
        """
        return tuple(
            lower + h * jnp.arange(n)
            for lower, h, n in zip(self.domain.lower, self.spacing, self.n)
        )

    def mesh(self) -> Tuple[jnp.ndarray, ...]:
        """
        Coordinate arrays broadcast to the full grid shape.

        Returns:
            Tuple (X,), (X, Y) or (X, Y, Z) with indexing='ij'
        """
        return tuple(jnp.meshgrid(*self.coords(), indexing='ij'))

    def wavenumbers(self) -> Tuple[jnp.ndarray, ...]:
        """
        Angular wavenumbers per axis, shaped to broadcast against grid.shape.

        Entry d has n_d values along axis d and length 1 elsewhere.
        """
        ks = []
        for axis, (n, length) in enumerate(zip(self.n, self.domain.lengths)):
            k = 2.0 * jnp.pi / length * jnp.fft.fftfreq(n, d=1.0 / n)
            shape = [1] * self.ndim
            shape[axis] = n
            ks.append(k.reshape(shape))
        return tuple(ks)

    def nyquist_masks(self) -> Tuple[jnp.ndarray, ...]:
        """Boolean arrays marking the Nyquist mode k = -n/2 along each axis."""
        masks = []
        for axis, n in enumerate(self.n):
            mask = jnp.zeros(n, dtype=bool).at[n // 2].set(True)
            shape = [1] * self.ndim
            shape[axis] = n
            masks.append(mask.reshape(shape))
        return tuple(masks)

    def refined(self, factor: int = 2) -> "PeriodicGrid":
        """Same domain with factor times as many points per axis."""
        return PeriodicGrid(n=tuple(factor * n for n in self.n), domain=self.domain)
