"""
spinjax: A JAX-based stiff PDE integrator on periodic domains

Solves u_t = L u + N(u) in 1, 2 or 3 space dimensions, where L is a
constant-coefficient linear differential operator (diagonal in Fourier
space) and N is a lower-order nonlinear term, with exponential Runge-Kutta
time stepping.

Key Features:
- Fourier spectral discretisation with jnp.fft on periodic boxes
- Exponential integrators: ETDRK4 (default), Krogstad, EXPRK5S8, exponential Euler
- Stable phi functions (contour integrals, augmented matrix exponentials)
- Scalar equations and systems, including linear coupling between components
- Automatic choice of grid size and time step for a target accuracy
- Preset catalogue: ac, burg, ch, gs, kdv, ks, nls, gl2, gs2, sh2, gl3, gs3
"""

import jax

# Complex128 coefficients and spectral states
jax.config.update("jax_enable_x64", True)

from spinjax.core.errors import (
    SpinError,
    InvalidOperatorError,
    InvalidGridError,
    InvalidTimeSpanError,
    DivergenceError,
    ToleranceUnachievableError,
)
from spinjax.core.grid import Domain, PeriodicGrid
from spinjax.core.transforms import to_spectral, to_physical, resample, dealias_mask
from spinjax.core.symbols import SpectralDerivatives, evaluate_linear_symbol
from spinjax.core.phi import PhiConfig, phi_functions, phi_matrix_functions
from spinjax.core.operator import SpinOperator, DiscreteOperator, create_operator
from spinjax.core.presets import list_presets, get_preset
from spinjax.core.schemes import (
    Scheme,
    SchemeDescriptor,
    SchemeCoefficients,
    get_scheme,
    compute_coefficients,
    advance,
)
from spinjax.core.preferences import SpinPreferences, ProgressInfo
from spinjax.core.result import SimulationResult, RunStatus
from spinjax.core.driver import integrate, spin
from spinjax.core.logs import configure_logging

__version__ = "0.1.0"
__all__ = [
    # Errors
    "SpinError",
    "InvalidOperatorError",
    "InvalidGridError",
    "InvalidTimeSpanError",
    "DivergenceError",
    "ToleranceUnachievableError",
    # Grid and transforms
    "Domain",
    "PeriodicGrid",
    "to_spectral",
    "to_physical",
    "resample",
    "dealias_mask",
    # Symbols and phi functions
    "SpectralDerivatives",
    "evaluate_linear_symbol",
    "PhiConfig",
    "phi_functions",
    "phi_matrix_functions",
    # Operators
    "SpinOperator",
    "DiscreteOperator",
    "create_operator",
    "list_presets",
    "get_preset",
    # Schemes
    "Scheme",
    "SchemeDescriptor",
    "SchemeCoefficients",
    "get_scheme",
    "compute_coefficients",
    "advance",
    # Driver
    "SpinPreferences",
    "ProgressInfo",
    "SimulationResult",
    "RunStatus",
    "integrate",
    "spin",
    "configure_logging",
]
