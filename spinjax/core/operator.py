"""
Operator specification for u_t = L u + N(u) on a periodic domain.

SpinOperator is the immutable description of a problem: domain, number of
unknowns, the linear part L (a callable of SpectralDerivatives), the
pointwise nonlinear part N and an optional constant-coefficient operator
applied to N in Fourier space (e.g. the d/dx in -(u^2/2)_x). Presets add
default time span, initial condition and discretisation hints.

DiscreteOperator is the same problem on a concrete grid: multiplier arrays
and the spectral nonlinear function N_hat(v_hat) used by the schemes.

Design decisions:
- Validation happens at construction by evaluating the callables on a small grid; a
  linear part that depends on the state cannot be detected and is a
  documented precondition
- The nonlinear callable receives the state (C, *shape) and returns either
  an array of that shape or a sequence of C arrays
- Realness is decided per grid: L and the nonlinear differential part must
  have Hermitian symbols and N must map a real test field to real values
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, NamedTuple, Optional, Sequence, Tuple, Union

import jax.numpy as jnp
import numpy as np

from spinjax.core.errors import InvalidOperatorError
from spinjax.core.grid import Domain, PeriodicGrid
from spinjax.core.state import as_state
from spinjax.core.symbols import (
    DIAGONAL,
    LinearSymbol,
    SpectralDerivatives,
    evaluate_component_symbol,
    evaluate_linear_symbol,
    is_hermitian,
)
from spinjax.core.transforms import dealias_mask, to_physical, to_spectral


NonlinearFn = Callable[[jnp.ndarray], Any]

_CHECK_N = 8


def _check_field(grid: PeriodicGrid, n_components: int) -> jnp.ndarray:
    """Smooth real non-constant field used to check user callables."""
    field_ = 0.5 * jnp.ones(grid.shape)
    for axis, (x, lower, length) in enumerate(
        zip(grid.mesh(), grid.domain.lower, grid.lengths)
    ):
        field_ = field_ + 0.1 * (axis + 1) * jnp.cos(2.0 * jnp.pi * (x - lower) / length)
    return jnp.stack([field_ * (1.0 + 0.1 * c) for c in range(n_components)])


class DiscreteOperator(NamedTuple):
    """A SpinOperator on a concrete grid.

    Attributes:
        grid: Working grid
        linear: (C, *shape) if diagonal else (C, C, *shape)
        diagonal: Whether the linear part is diagonal
        nonlinear_hat: Spectral nonlinear term v_hat -> N_hat(v_hat)
        real_preserving: Whether real fields stay real under L and N
    """
    grid: PeriodicGrid
    linear: jnp.ndarray
    diagonal: bool
    nonlinear_hat: Callable[[jnp.ndarray], jnp.ndarray]
    real_preserving: bool


@dataclass(frozen=True)
class SpinOperator:
    """Stiff semilinear PDE u_t = L u + N(u) on a periodic box.

    Args:
        domain: Domain or bounds, e.g. [0, 2*pi] or [0, 1, 0, 1]
        linear: Callable of SpectralDerivatives returning the symbol(s) of L
        nonlinear: Pointwise nonlinear term, state (C, *shape) -> same shape
        n_components: Number of unknowns
        nonlinear_diff: Optional callable of SpectralDerivatives; its
            multiplier(s) are applied to N in Fourier space
        name: Identifier (preset name for the catalogue)
        tspan: Default output times
        initial: Default initial condition (callable of the mesh)
        N: Suggested grid size per axis
        dt: Suggested step size
        description: Human readable equation

    Example:
        >>> op = SpinOperator(
        ...     domain=[0, 32 * jnp.pi],
        ...     linear=lambda d: -d.dx(2) - d.dx(4),
        ...     nonlinear=lambda u: -0.5 * u**2,
        ...     nonlinear_diff=lambda d: d.dx(1),
        ... )
    """

    domain: Union[Domain, Sequence[float]]
    linear: LinearSymbol
    nonlinear: NonlinearFn
    n_components: int = 1
    nonlinear_diff: Optional[Callable[[SpectralDerivatives], Any]] = None
    name: str = "custom"
    tspan: Optional[Tuple[float, ...]] = None
    initial: Optional[Callable[..., Any]] = field(default=None, repr=False)
    N: Optional[int] = None
    dt: Optional[float] = None
    description: str = ""

    def __post_init__(self):
        object.__setattr__(self, 'domain', Domain.from_bounds(self.domain))
        if int(self.n_components) != self.n_components or self.n_components < 1:
            raise InvalidOperatorError(
                f"n_components must be a positive integer, got {self.n_components}"
            )
        if not callable(self.linear):
            raise InvalidOperatorError("linear must be a callable of SpectralDerivatives")
        if not callable(self.nonlinear):
            raise InvalidOperatorError("nonlinear must be a callable of the state")
        if self.nonlinear_diff is not None and not callable(self.nonlinear_diff):
            raise InvalidOperatorError("nonlinear_diff must be a callable of SpectralDerivatives")
        if self.tspan is not None:
            object.__setattr__(self, 'tspan', tuple(float(t) for t in self.tspan))
        self._check_callables()

    @property
    def ndim(self) -> int:
        return self.domain.ndim

    def _check_callables(self) -> None:
        grid = PeriodicGrid.uniform(_CHECK_N, self.domain)
        derivs = SpectralDerivatives(grid)
        evaluate_linear_symbol(self.linear, derivs, self.n_components)
        if self.nonlinear_diff is not None:
            evaluate_component_symbol(self.nonlinear_diff, derivs, self.n_components)
        self._evaluate_nonlinear(_check_field(grid, self.n_components), grid)

    def _evaluate_nonlinear(self, u: jnp.ndarray, grid: PeriodicGrid) -> jnp.ndarray:
        try:
            value = self.nonlinear(u)
        except (IndexError, TypeError, ValueError) as exc:
            raise InvalidOperatorError(
                f"Nonlinear part failed on a {self.n_components}-component state: {exc}"
            ) from exc
        return as_state(value, self.n_components, grid.shape)

    def discretize(
        self,
        grid: PeriodicGrid,
        dealias: bool = False,
        real_data: bool = False,
    ) -> DiscreteOperator:
        """
        Evaluate multipliers and build the spectral nonlinear function.

        Args:
            grid: Working grid (must live on this operator's domain)
            dealias: Apply the 2/3 rule to the nonlinear term
            real_data: Treat physical fields as real inside N when the
                operator preserves realness

        Returns:
            DiscreteOperator
        """
        if grid.domain != self.domain:
            raise InvalidOperatorError("Grid domain does not match the operator domain")

        derivs = SpectralDerivatives(grid)
        kind, linear = evaluate_linear_symbol(self.linear, derivs, self.n_components)
        diagonal = kind == DIAGONAL
        diff = None
        if self.nonlinear_diff is not None:
            diff = evaluate_component_symbol(self.nonlinear_diff, derivs, self.n_components)
        mask = dealias_mask(grid) if dealias else None

        real_preserving = self._is_real_preserving(grid, linear, diff)
        drop_imag = real_data and real_preserving
        ndim = grid.ndim
        shape = grid.shape
        C = self.n_components
        nonlinear = self.nonlinear

        def nonlinear_hat(v_hat: jnp.ndarray) -> jnp.ndarray:
            u = to_physical(v_hat, ndim)
            if drop_imag:
                u = u.real
            n_hat = to_spectral(as_state(nonlinear(u), C, shape), ndim)
            if diff is not None:
                n_hat = diff * n_hat
            if mask is not None:
                n_hat = jnp.where(mask, n_hat, 0.0)
            return n_hat

        return DiscreteOperator(
            grid=grid,
            linear=linear,
            diagonal=diagonal,
            nonlinear_hat=nonlinear_hat,
            real_preserving=real_preserving,
        )

    def _is_real_preserving(
        self,
        grid: PeriodicGrid,
        linear: jnp.ndarray,
        diff: Optional[jnp.ndarray],
    ) -> bool:
        if not is_hermitian(linear, grid.ndim):
            return False
        if diff is not None and not is_hermitian(diff, grid.ndim):
            return False
        sample = self._evaluate_nonlinear(_check_field(grid, self.n_components), grid)
        if not jnp.iscomplexobj(sample):
            return True
        scale = max(float(jnp.max(jnp.abs(sample))), 1.0)
        return bool(np.max(np.abs(np.asarray(jnp.imag(sample)))) <= 1e-12 * scale)


def create_operator(
    preset: Optional[str] = None,
    *,
    domain: Optional[Union[Domain, Sequence[float]]] = None,
    linear: Optional[LinearSymbol] = None,
    nonlinear: Optional[NonlinearFn] = None,
    n_components: int = 1,
    nonlinear_diff: Optional[Callable[[SpectralDerivatives], Any]] = None,
    **metadata,
) -> SpinOperator:
    """
    Build an operator from a preset name or from its parts.

    Args:
        preset: Case-insensitive preset name (see list_presets())
        domain: Domain of a custom operator, or a new domain for the preset
            (same number of axes; L, N, initial condition and hints are kept)
        linear, nonlinear, n_components, nonlinear_diff: Parts of a custom
            operator (used when preset is None)
        **metadata: Optional tspan, initial, N, dt, name, description; for a
            preset these replace its defaults

    Returns:
        SpinOperator

    Raises:
        InvalidOperatorError: Unknown preset, missing parts or malformed parts

    Example:
        >>> op = create_operator("ks")
        >>> op = create_operator("kdv", domain=[-jnp.pi, jnp.pi])
        >>> op = create_operator(domain=[0, 2 * jnp.pi], linear=lambda d: d.dx(2),
        ...                      nonlinear=lambda u: 0 * u)
    """
    from spinjax.core.presets import get_preset

    if preset is not None:
        if linear is not None or nonlinear is not None or nonlinear_diff is not None:
            raise InvalidOperatorError("Give either a preset name or operator parts, not both")
        operator = get_preset(preset)
        changes = dict(metadata)
        if domain is not None:
            new_domain = Domain.from_bounds(domain)
            if new_domain.ndim != operator.ndim:
                raise InvalidOperatorError(
                    f"Preset '{operator.name}' is {operator.ndim}-D, got a {new_domain.ndim}-D domain"
                )
            changes["domain"] = new_domain
        return replace(operator, **changes) if changes else operator

    missing = [name for name, value in (("domain", domain), ("linear", linear),
                                        ("nonlinear", nonlinear)) if value is None]
    if missing:
        raise InvalidOperatorError(f"Custom operator is missing: {', '.join(missing)}")
    return SpinOperator(
        domain=domain,
        linear=linear,
        nonlinear=nonlinear,
        n_components=n_components,
        nonlinear_diff=nonlinear_diff,
        **metadata,
    )
