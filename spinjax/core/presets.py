"""
Catalogue of preset stiff PDEs.

Each factory returns a SpinOperator with its default domain, time span,
initial condition and discretisation hints. Parameters can be changed by
calling the factory directly; the catalogue itself holds the defaults and
is populated once at import.

1-D: ac, burg, ch, gs, kdv, ks, nls
2-D: gl2, gs2, sh2
3-D: gl3, gs3
"""

from typing import Dict, List

import jax.numpy as jnp

from spinjax.core.errors import InvalidOperatorError
from spinjax.core.operator import SpinOperator


def _sech(x):
    return 1.0 / jnp.cosh(x)


# =============================================================================
# 1-D presets
# =============================================================================

def create_allen_cahn_operator(epsilon: float = 5e-3) -> SpinOperator:
    """
    Allen-Cahn equation on [0, 2*pi].

    Equation:
        u_t = epsilon * u_xx + u - u^3
    """
    return SpinOperator(
        domain=[0.0, 2 * jnp.pi],
        linear=lambda d: epsilon * d.dx(2),
        nonlinear=lambda u: u - u**3,
        name="ac",
        tspan=(0.0, 300.0),
        initial=lambda x: (jnp.tanh(2 * jnp.sin(x))
                           + 3 * jnp.exp(-27 * (x - 4.2) ** 2)
                           - 3 * jnp.exp(-23.5 * (x - jnp.pi / 2) ** 2)
                           + 3 * jnp.exp(-38 * (x - 5.4) ** 2)),
        N=256,
        dt=1e-1,
        description=f"u_t = {epsilon:g} u_xx + u - u^3",
    )


def create_burgers_operator(nu: float = 1e-3) -> SpinOperator:
    """
    Viscous Burgers equation on [-1, 1].

    Equation:
        u_t = nu * u_xx - (u^2 / 2)_x
    """
    return SpinOperator(
        domain=[-1.0, 1.0],
        linear=lambda d: nu * d.dx(2),
        nonlinear=lambda u: -0.5 * u**2,
        nonlinear_diff=lambda d: d.dx(1),
        name="burg",
        tspan=(0.0, 20.0),
        initial=lambda x: (1 - x**2) * jnp.exp(-30 * (x + 0.5) ** 2),
        N=512,
        dt=1e-2,
        description=f"u_t = {nu:g} u_xx - (u^2/2)_x",
    )


def create_cahn_hilliard_operator(epsilon: float = 1e-2) -> SpinOperator:
    """
    Cahn-Hilliard equation on [-1, 1].

    Equation:
        u_t = -epsilon * u_xxxx + (u^3 - u)_xx
    """
    return SpinOperator(
        domain=[-1.0, 1.0],
        linear=lambda d: -epsilon * d.dx(4),
        nonlinear=lambda u: u**3 - u,
        nonlinear_diff=lambda d: d.dx(2),
        name="ch",
        tspan=(0.0, 70.0),
        initial=lambda x: jnp.sin(4 * jnp.pi * x) ** 5 - jnp.sin(jnp.pi * x),
        N=256,
        dt=1e-2,
        description=f"u_t = -{epsilon:g} u_xxxx + (u^3 - u)_xx",
    )


def _gray_scott_nonlinear(F: float, k: float):
    def nonlinear(w):
        u, v = w[0], w[1]
        uv2 = u * v**2
        return [F * (1 - u) - uv2, uv2 - (F + k) * v]
    return nonlinear


def create_gray_scott_1d_operator(
    Du: float = 2e-4,
    Dv: float = 1e-4,
    F: float = 3.5e-2,
    k: float = 6.5e-2,
) -> SpinOperator:
    """
    Gray-Scott reaction-diffusion system on [-1, 1].

    System:
        u_t = Du * u_xx - u*v^2 + F*(1-u)
        v_t = Dv * v_xx + u*v^2 - (F+k)*v
    """
    def initial(x):
        bump = jnp.sin(jnp.pi * (x - 1) / 2) ** 100
        return [1 - 0.5 * bump, 0.25 * bump]

    return SpinOperator(
        domain=[-1.0, 1.0],
        linear=lambda d: [Du * d.dx(2), Dv * d.dx(2)],
        nonlinear=_gray_scott_nonlinear(F, k),
        n_components=2,
        name="gs",
        tspan=(0.0, 8000.0),
        initial=initial,
        N=256,
        dt=2.0,
        description="Gray-Scott system in 1-D",
    )


def create_kdv_operator(A: float = 25.0**2, B: float = 16.0**2) -> SpinOperator:
    """
    Korteweg-de Vries equation on [-pi, pi] with a two-soliton initial state.

    Equation:
        u_t = -u_xxx - (u^2 / 2)_x
    """
    return SpinOperator(
        domain=[-jnp.pi, jnp.pi],
        linear=lambda d: -d.dx(3),
        nonlinear=lambda u: -0.5 * u**2,
        nonlinear_diff=lambda d: d.dx(1),
        name="kdv",
        tspan=(0.0, 2 * jnp.pi * 3 / A),
        initial=lambda x: (3 * A * _sech(0.5 * jnp.sqrt(A) * (x + 2)) ** 2
                           + 3 * B * _sech(0.5 * jnp.sqrt(B) * (x + 1)) ** 2),
        N=512,
        dt=7e-6,
        description="u_t = -u_xxx - (u^2/2)_x",
    )


def create_kuramoto_sivashinsky_operator() -> SpinOperator:
    """
    Kuramoto-Sivashinsky equation on [0, 32*pi].

    Equation:
        u_t = -u_xx - u_xxxx - (u^2 / 2)_x
    """
    return SpinOperator(
        domain=[0.0, 32 * jnp.pi],
        linear=lambda d: -d.dx(2) - d.dx(4),
        nonlinear=lambda u: -0.5 * u**2,
        nonlinear_diff=lambda d: d.dx(1),
        name="ks",
        tspan=(0.0, 300.0),
        initial=lambda x: jnp.cos(x / 16) * (1 + jnp.sin(x / 16)),
        N=256,
        dt=1e-1,
        description="u_t = -u_xx - u_xxxx - (u^2/2)_x",
    )


def create_nls_operator(A: float = 2.0, B: float = 1.0) -> SpinOperator:
    """
    Focusing nonlinear Schroedinger equation on [-pi, pi] (breather).

    Equation:
        u_t = i u_xx + i |u|^2 u
    """
    return SpinOperator(
        domain=[-jnp.pi, jnp.pi],
        linear=lambda d: 1j * d.dx(2),
        nonlinear=lambda u: 1j * jnp.abs(u) ** 2 * u,
        name="nls",
        tspan=(0.0, 18.0),
        initial=lambda x: (2 * B**2 / (2 - jnp.sqrt(2) * jnp.sqrt(2 - B**2)
                                      * jnp.cos(A * B * x)) - 1) * A + 0j,
        N=256,
        dt=5e-3,
        description="u_t = i u_xx + i |u|^2 u",
    )


# =============================================================================
# 2-D and 3-D presets
# =============================================================================

def _ginzburg_landau_nonlinear(c: complex):
    return lambda u: u - c * u * jnp.abs(u) ** 2


def create_ginzburg_landau_2d_operator(c: complex = 1 + 1.3j) -> SpinOperator:
    """
    Complex Ginzburg-Landau equation on [0, 200]^2.

    Equation:
        u_t = Laplacian(u) + u - c * u |u|^2
    """
    def initial(x, y):
        r2 = (x - 100) ** 2 + (y - 100) ** 2
        return ((1j * (x - 100) + (y - 100)) / 10.0
                + 0.1 * jnp.cos(2 * jnp.pi * x / 50) * jnp.sin(2 * jnp.pi * y / 40)) * jnp.exp(-r2 / 2000)

    return SpinOperator(
        domain=[0.0, 200.0, 0.0, 200.0],
        linear=lambda d: d.laplacian,
        nonlinear=_ginzburg_landau_nonlinear(c),
        name="gl2",
        tspan=(0.0, 150.0),
        initial=initial,
        N=128,
        dt=1e-1,
        description="u_t = Lap(u) + u - (1+1.3i) u|u|^2",
    )


def create_gray_scott_2d_operator(
    Du: float = 0.16,
    Dv: float = 0.08,
    F: float = 0.04,
    k: float = 0.06,
) -> SpinOperator:
    """
    Gray-Scott reaction-diffusion system on [0, 100]^2.

    System:
        u_t = Du * Laplacian(u) - u*v^2 + F*(1-u)
        v_t = Dv * Laplacian(v) + u*v^2 - (F+k)*v
    """
    def initial(x, y):
        bump = jnp.exp(-((x - 50) ** 2 + (y - 50) ** 2) / 50) + jnp.exp(-((x - 30) ** 2 + (y - 65) ** 2) / 30)
        return [1 - 0.5 * bump, 0.25 * bump]

    return SpinOperator(
        domain=[0.0, 100.0, 0.0, 100.0],
        linear=lambda d: [Du * d.laplacian, Dv * d.laplacian],
        nonlinear=_gray_scott_nonlinear(F, k),
        n_components=2,
        name="gs2",
        tspan=(0.0, 500.0),
        initial=initial,
        N=128,
        dt=1.0,
        description="Gray-Scott system in 2-D",
    )


def create_swift_hohenberg_2d_operator(epsilon: float = 0.3, g: float = 0.0) -> SpinOperator:
    """
    Swift-Hohenberg equation on [0, 20*pi]^2.

    Equation:
        u_t = (epsilon - 1) u - 2 Laplacian(u) - Laplacian^2(u) + g u^2 - u^3
    """
    L = 20 * jnp.pi

    def initial(x, y):
        return 0.25 * (jnp.sin(jnp.pi * x / 10) + jnp.sin(jnp.pi * y / 10)
                       + jnp.sin(jnp.pi * x / 2) * jnp.sin(jnp.pi * y / 2))

    return SpinOperator(
        domain=[0.0, L, 0.0, L],
        linear=lambda d: (epsilon - 1) - 2 * d.laplacian - d.biharmonic,
        nonlinear=lambda u: g * u**2 - u**3,
        name="sh2",
        tspan=(0.0, 200.0),
        initial=initial,
        N=128,
        dt=1e-1,
        description=f"u_t = ({epsilon:g} - 1)u - 2 Lap(u) - Lap^2(u) + {g:g} u^2 - u^3",
    )


def create_ginzburg_landau_3d_operator(c: complex = 1 + 1.3j) -> SpinOperator:
    """
    Complex Ginzburg-Landau equation on [0, 100]^3.

    Equation:
        u_t = Laplacian(u) + u - c * u |u|^2
    """
    def initial(x, y, z):
        r2 = (x - 50) ** 2 + (y - 50) ** 2 + (z - 50) ** 2
        return (1j * (x - 50) + (y - 50) + 0.5 * (z - 50)) / 10.0 * jnp.exp(-r2 / 500)

    return SpinOperator(
        domain=[0.0, 100.0, 0.0, 100.0, 0.0, 100.0],
        linear=lambda d: d.laplacian,
        nonlinear=_ginzburg_landau_nonlinear(c),
        name="gl3",
        tspan=(0.0, 200.0),
        initial=initial,
        N=64,
        dt=1e-1,
        description="u_t = Lap(u) + u - (1+1.3i) u|u|^2 in 3-D",
    )


def create_gray_scott_3d_operator(
    Du: float = 0.16,
    Dv: float = 0.08,
    F: float = 0.04,
    k: float = 0.06,
) -> SpinOperator:
    """
    Gray-Scott reaction-diffusion system on [0, 60]^3.

    System:
        u_t = Du * Laplacian(u) - u*v^2 + F*(1-u)
        v_t = Dv * Laplacian(v) + u*v^2 - (F+k)*v
    """
    def initial(x, y, z):
        bump = jnp.exp(-((x - 30) ** 2 + (y - 30) ** 2 + (z - 30) ** 2) / 40)
        return [1 - 0.5 * bump, 0.25 * bump]

    return SpinOperator(
        domain=[0.0, 60.0, 0.0, 60.0, 0.0, 60.0],
        linear=lambda d: [Du * d.laplacian, Dv * d.laplacian],
        nonlinear=_gray_scott_nonlinear(F, k),
        n_components=2,
        name="gs3",
        tspan=(0.0, 500.0),
        initial=initial,
        N=64,
        dt=1.0,
        description="Gray-Scott system in 3-D",
    )


# =============================================================================
# Registry
# =============================================================================

PRESETS: Dict[str, SpinOperator] = {
    op.name: op
    for op in (
        create_allen_cahn_operator(),
        create_burgers_operator(),
        create_cahn_hilliard_operator(),
        create_gray_scott_1d_operator(),
        create_kdv_operator(),
        create_kuramoto_sivashinsky_operator(),
        create_nls_operator(),
        create_ginzburg_landau_2d_operator(),
        create_gray_scott_2d_operator(),
        create_swift_hohenberg_2d_operator(),
        create_ginzburg_landau_3d_operator(),
        create_gray_scott_3d_operator(),
    )
}


def list_presets() -> List[str]:
    """Names of all preset operators."""
    return sorted(PRESETS)


def get_preset(name: str) -> SpinOperator:
    """
    Look up a preset operator by case-insensitive name.

    Raises:
        InvalidOperatorError: If the name is unknown
    """
    key = str(name).strip().lower()
    if key not in PRESETS:
        raise InvalidOperatorError(
            f"Unknown preset: {name!r}. Available presets: {', '.join(list_presets())}"
        )
    return PRESETS[key]
