"""
Exponential Runge-Kutta schemes for u_t = L u + N(u) in Fourier space.

A scheme with s stages and nodes c_1 = 0, c_2, ..., c_s advances v by

    U_1 = v
    U_i = exp(c_i h L) v + h * sum_{j<i} a_ij(h L) N(U_j)
    v_new = exp(h L) v + h * sum_i b_i(h L) N(U_i)

where the a_ij and b_i are linear combinations of phi_k(c h L). Each stage
costs one nonlinear evaluation, i.e. one inverse and one forward transform.

Available schemes:
- expeuler:  exponential Euler (order 1)
- etdrk4:    Cox & Matthews (2002) ETDRK4 (order 4, default)
- krogstad:  Krogstad (2005) ETD4RK (order 4)
- exprk5s8:  Luan & Ostermann (2014) eight-stage method (order 5)

Design decisions:
- The scheme set is closed: Scheme enum + immutable SchemeDescriptor
- Coefficients are computed once per distinct step size by the caller and
  stored in a SchemeCoefficients NamedTuple (a JAX pytree)
- Diagonal linear parts use elementwise products; coupled linear parts use
  per-wavenumber C x C matrices in the (*shape, C, C) layout
- With N = 0 every scheme reduces to v_new = exp(h L) v exactly
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, NamedTuple, Tuple, Union

import jax.numpy as jnp
import numpy as np

from spinjax.core.phi import DEFAULT_PHI_CONFIG, DiagonalPhi, MatrixPhi, PhiConfig


logger = logging.getLogger(__name__)

Tableau = Tuple[Dict[Tuple[int, int], jnp.ndarray], Dict[int, jnp.ndarray]]
PhiEvaluator = Union[DiagonalPhi, MatrixPhi]


class Scheme(Enum):
    """Named exponential integrators."""
    EXPEULER = "expeuler"
    ETDRK4 = "etdrk4"
    KROGSTAD = "krogstad"
    EXPRK5S8 = "exprk5s8"


@dataclass(frozen=True)
class SchemeDescriptor:
    """Immutable description of an exponential Runge-Kutta scheme.

    Attributes:
        name: Scheme name
        order: Classical order of accuracy
        nodes: Stage nodes c_1 .. c_s (c_1 = 0)
        max_phi: Highest phi index used by the coefficients
        builder: Callable(P) -> (a, b) with a[(i, j)] and b[i] (1-based)
    """
    name: str
    order: int
    nodes: Tuple[float, ...]
    max_phi: int
    builder: Callable[[PhiEvaluator], Tableau]

    @property
    def n_stages(self) -> int:
        return len(self.nodes)


class SchemeCoefficients(NamedTuple):
    """Step-size dependent coefficients of one scheme.

    Stage and weight coefficients already include the factor h.
    """
    dt: float
    diagonal: bool
    stage_exps: Tuple[jnp.ndarray, ...]             # exp(c_i h L), i = 2..s
    stage_weights: Tuple[Tuple[Tuple[int, jnp.ndarray], ...], ...]  # ((j, h a_ij), ...)
    final_exp: jnp.ndarray                          # exp(h L)
    final_weights: Tuple[Tuple[int, jnp.ndarray], ...]              # ((i, h b_i), ...)


# =============================================================================
# Tableaux
# =============================================================================

def _expeuler(P: PhiEvaluator) -> Tableau:
    return {}, {1: P(1)}


def _etdrk4(P: PhiEvaluator) -> Tableau:
    """Cox-Matthews ETDRK4."""
    phi1_half = P(1, 0.5)
    a = {
        (2, 1): 0.5 * phi1_half,
        (3, 2): 0.5 * phi1_half,
        (4, 1): 0.5 * (P.mul(phi1_half, P.exp(0.5)) - phi1_half),
        (4, 3): phi1_half,
    }
    b_mid = 2 * P(2) - 4 * P(3)
    b = {
        1: P(1) - 3 * P(2) + 4 * P(3),
        2: b_mid,
        3: b_mid,
        4: -P(2) + 4 * P(3),
    }
    return a, b


def _krogstad(P: PhiEvaluator) -> Tableau:
    """Krogstad ETD4RK."""
    phi1_half = P(1, 0.5)
    phi2_half = P(2, 0.5)
    a = {
        (2, 1): 0.5 * phi1_half,
        (3, 1): 0.5 * phi1_half - phi2_half,
        (3, 2): phi2_half,
        (4, 1): P(1) - 2 * P(2),
        (4, 3): 2 * P(2),
    }
    b_mid = 2 * P(2) - 4 * P(3)
    b = {
        1: P(1) - 3 * P(2) + 4 * P(3),
        2: b_mid,
        3: b_mid,
        4: -P(2) + 4 * P(3),
    }
    return a, b


_EXPRK5S8_NODES = (0.0, 1 / 2, 1 / 2, 1 / 4, 1 / 2, 1 / 5, 2 / 3, 1.0)


def _moment(a_row: Dict[int, jnp.ndarray], nodes: Dict[int, float], k: int) -> jnp.ndarray:
    """sum_j a_ij c_j^(k-1) / (k-1)!"""
    return sum(a * nodes[j] ** (k - 1) / math.factorial(k - 1) for j, a in a_row.items())


def _collocate(
    P: PhiEvaluator,
    nodes: Dict[int, float],
    i: int,
    deps: Tuple[int, ...],
    rhs_shift: Dict[int, jnp.ndarray] = None,
) -> Dict[int, jnp.ndarray]:
    """
    Stage weights a_ij (j in deps) from the stiff order conditions

        sum_j a_ij c_j^(k-1)/(k-1)! = c_i^k phi_k(c_i h L) - rhs_shift[k]

    for k = 2 .. len(deps) + 1. The system matrix only involves the nodes,
    so it is inverted once in numpy and applied to the phi values.
    """
    rhs_shift = rhs_shift or {}
    ks = range(2, len(deps) + 2)
    V = np.array([[nodes[j] ** (k - 1) / math.factorial(k - 1) for j in deps] for k in ks])
    Vinv = np.linalg.inv(V)
    c = nodes[i]
    rhs = [c ** k * P(k, c) - rhs_shift.get(k, 0.0) for k in ks]
    return {
        j: sum(Vinv[col, row] * rhs[row] for row in range(len(deps)))
        for col, j in enumerate(deps)
    }


def _exprk5s8(P: PhiEvaluator) -> Tableau:
    """Luan-Ostermann expRK5s8 (stiff order 5)."""
    nodes = {i + 1: c for i, c in enumerate(_EXPRK5S8_NODES)}
    rows: Dict[int, Dict[int, jnp.ndarray]] = {}

    rows[2] = {}
    rows[3] = _collocate(P, nodes, 3, (2,))
    rows[4] = _collocate(P, nodes, 4, (3,))
    rows[5] = _collocate(P, nodes, 5, (3, 4))
    rows[6] = _collocate(P, nodes, 6, (4, 5))

    a74 = -125 / 162 * rows[6][4]
    shift7 = {k: a74 * nodes[4] ** (k - 1) / math.factorial(k - 1) for k in (2, 3)}
    rows[7] = {4: a74, **_collocate(P, nodes, 7, (5, 6), shift7)}

    def psi4(i):
        return _moment(rows[i], nodes, 4) - nodes[i] ** 4 * P(4, nodes[i])

    # Weights b_6, b_7, b_8 at h L = 0
    b6_0, b7_0, b8_0 = 125 / 336, 27 / 56, 5 / 48
    shift8 = {4: (b6_0 * psi4(6) + b7_0 * psi4(7)) / b8_0}
    rows[8] = _collocate(P, nodes, 8, (5, 6, 7), shift8)

    a = {}
    for i in range(2, 9):
        # Row sums fix the weight of N(U_1)
        a[(i, 1)] = nodes[i] * P(1, nodes[i]) - sum(rows[i].values(), P.zeros())
        for j, value in rows[i].items():
            a[(i, j)] = value

    phi2, phi3, phi4 = P(2), P(3), P(4)
    b6 = 125 / 14 * phi2 - 625 / 14 * phi3 + 1125 / 14 * phi4
    b7 = -27 / 14 * phi2 + 162 / 7 * phi3 - 405 / 7 * phi4
    b8 = 1 / 2 * phi2 - 13 / 2 * phi3 + 45 / 2 * phi4
    b = {1: P(1) - b6 - b7 - b8, 6: b6, 7: b7, 8: b8}
    return a, b


SCHEMES: Dict[Scheme, SchemeDescriptor] = {
    Scheme.EXPEULER: SchemeDescriptor("expeuler", 1, (0.0,), 1, _expeuler),
    Scheme.ETDRK4: SchemeDescriptor("etdrk4", 4, (0.0, 0.5, 0.5, 1.0), 3, _etdrk4),
    Scheme.KROGSTAD: SchemeDescriptor("krogstad", 4, (0.0, 0.5, 0.5, 1.0), 3, _krogstad),
    Scheme.EXPRK5S8: SchemeDescriptor("exprk5s8", 5, _EXPRK5S8_NODES, 4, _exprk5s8),
}


def get_scheme(scheme: Union[str, Scheme, SchemeDescriptor]) -> SchemeDescriptor:
    """
    Look up a scheme by name (case-insensitive), enum member or descriptor.

    Raises:
        ValueError: If the name is unknown
    """
    if isinstance(scheme, SchemeDescriptor):
        return scheme
    if isinstance(scheme, Scheme):
        return SCHEMES[scheme]
    key = str(scheme).lower()
    for member, descriptor in SCHEMES.items():
        if member.value == key:
            return descriptor
    valid = ", ".join(member.value for member in Scheme)
    raise ValueError(f"Unknown scheme: {scheme!r}. Valid schemes: {valid}")


# =============================================================================
# Coefficients and stepping
# =============================================================================

def compute_coefficients(
    scheme: Union[str, Scheme, SchemeDescriptor],
    linear: jnp.ndarray,
    dt: float,
    diagonal: bool = True,
    phi_config: PhiConfig = DEFAULT_PHI_CONFIG,
) -> SchemeCoefficients:
    """
    Evaluate the step-size dependent coefficients of a scheme.

    Args:
        scheme: Scheme name, enum member or descriptor
        linear: Linear symbol, (C, *shape) if diagonal else (C, C, *shape)
        dt: Step size
        diagonal: Whether the linear part is diagonal
        phi_config: Contour settings for diagonal phi evaluation

    Returns:
        SchemeCoefficients for this step size
    """
    descriptor = get_scheme(scheme)
    hL = dt * jnp.asarray(linear, dtype=jnp.complex128)
    if diagonal:
        P = DiagonalPhi(hL, descriptor.max_phi, phi_config)
    else:
        P = MatrixPhi(hL, descriptor.max_phi)

    a, b = descriptor.builder(P)
    s = descriptor.n_stages
    stage_exps = tuple(P.exp(descriptor.nodes[i - 1]) for i in range(2, s + 1))
    stage_weights = tuple(
        tuple((j - 1, dt * a[(i, j)]) for j in range(1, i) if (i, j) in a)
        for i in range(2, s + 1)
    )
    final_weights = tuple((i - 1, dt * b[i]) for i in range(1, s + 1) if i in b)

    logger.debug("Computed %s coefficients for dt=%g (diagonal=%s)", descriptor.name, dt, diagonal)
    return SchemeCoefficients(
        dt=dt,
        diagonal=diagonal,
        stage_exps=stage_exps,
        stage_weights=stage_weights,
        final_exp=P.exp(1.0),
        final_weights=final_weights,
    )


def apply_coefficient(coef: jnp.ndarray, values: jnp.ndarray, diagonal: bool) -> jnp.ndarray:
    """
    Multiply spectral values (C, *shape) by a coefficient.

    Diagonal coefficients have shape (C, *shape); coupled ones (*shape, C, C).
    """
    if diagonal:
        return coef * values
    moved = jnp.moveaxis(values, 0, -1)
    return jnp.moveaxis(jnp.einsum('...ij,...j->...i', coef, moved), -1, 0)


def advance(
    v_hat: jnp.ndarray,
    coeffs: SchemeCoefficients,
    nonlinear_hat: Callable[[jnp.ndarray], jnp.ndarray],
) -> jnp.ndarray:
    """
    Advance the spectral state by one step of size coeffs.dt.

    Args:
        v_hat: Spectral state (C, *shape)
        coeffs: Coefficients from compute_coefficients
        nonlinear_hat: Spectral nonlinear term v_hat -> N_hat(v_hat)

    Returns:
        Spectral state after one step
    """
    diagonal = coeffs.diagonal
    N = [nonlinear_hat(v_hat)]
    for exp_c, weights in zip(coeffs.stage_exps, coeffs.stage_weights):
        U = apply_coefficient(exp_c, v_hat, diagonal)
        for j, coef in weights:
            U = U + apply_coefficient(coef, N[j], diagonal)
        N.append(nonlinear_hat(U))

    v_new = apply_coefficient(coeffs.final_exp, v_hat, diagonal)
    for i, coef in coeffs.final_weights:
        v_new = v_new + apply_coefficient(coef, N[i], diagonal)
    return v_new
