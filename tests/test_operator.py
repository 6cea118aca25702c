"""
Tests for operator specifications, symbols and the preset catalogue.

Verifies:
- Spectral derivative symbols and realness of odd derivatives
- Construction-time validation of custom operators
- Spectral nonlinear term against an analytic value
- Realness detection
- Every preset constructs and samples its initial condition
"""

import pytest
import jax
import jax.numpy as jnp
import numpy as np

jax.config.update("jax_enable_x64", True)

from spinjax.core.errors import InvalidOperatorError
from spinjax.core.grid import PeriodicGrid
from spinjax.core.operator import SpinOperator, create_operator
from spinjax.core.presets import PRESETS, get_preset, list_presets
from spinjax.core.state import sample_on_grid
from spinjax.core.symbols import (
    DIAGONAL,
    FULL,
    SpectralDerivatives,
    evaluate_linear_symbol,
    is_hermitian,
)
from spinjax.core.transforms import to_physical, to_spectral


@pytest.fixture
def derivs_1d():
    return SpectralDerivatives(PeriodicGrid.uniform(16, [0.0, 2 * np.pi]))


class TestSpectralDerivatives:
    """Derivative multipliers."""

    def test_first_derivative_of_sine(self, derivs_1d):
        (x,) = derivs_1d.grid.mesh()
        u_hat = to_spectral(jnp.sin(3 * x), 1)
        du = to_physical(derivs_1d.dx(1) * u_hat, 1).real
        np.testing.assert_allclose(np.asarray(du), np.asarray(3 * jnp.cos(3 * x)), atol=1e-12)

    def test_odd_derivative_zeroes_nyquist(self, derivs_1d):
        assert complex(derivs_1d.dx(1)[8]) == 0
        assert complex(derivs_1d.dx(3)[8]) == 0
        assert complex(derivs_1d.dx(2)[8]) == pytest.approx(-64.0)

    def test_laplacian_and_biharmonic_2d(self):
        d = SpectralDerivatives(PeriodicGrid.uniform(8, [0, 2 * np.pi, 0, 2 * np.pi]))
        np.testing.assert_allclose(np.asarray(d.laplacian[1, 2]), -5.0)
        np.testing.assert_allclose(np.asarray(d.biharmonic[1, 2]), 25.0)

    def test_axis_out_of_range(self, derivs_1d):
        with pytest.raises(InvalidOperatorError):
            derivs_1d.dy(1)

    def test_hermitian_detection(self, derivs_1d):
        assert is_hermitian(derivs_1d.dx(1)[None], 1)
        assert is_hermitian((-derivs_1d.dx(2) - derivs_1d.dx(4))[None], 1)
        assert not is_hermitian((1j * derivs_1d.dx(2))[None], 1)


class TestLinearSymbolEvaluation:
    """Diagonal vs coupled linear parts."""

    def test_single_multiplier(self, derivs_1d):
        kind, values = evaluate_linear_symbol(lambda d: d.dx(2), derivs_1d, 1)
        assert kind == DIAGONAL
        assert values.shape == (1, 16)

    def test_scalar_constant_broadcasts(self, derivs_1d):
        kind, values = evaluate_linear_symbol(lambda d: -1.0, derivs_1d, 1)
        assert kind == DIAGONAL
        np.testing.assert_allclose(np.asarray(values), -1.0)

    def test_coupled_matrix(self, derivs_1d):
        kind, values = evaluate_linear_symbol(
            lambda d: [[d.dx(2), 1.0], [-1.0, d.dx(2)]], derivs_1d, 2
        )
        assert kind == FULL
        assert values.shape == (2, 2, 16)

    def test_count_mismatch_raises(self, derivs_1d):
        with pytest.raises(InvalidOperatorError):
            evaluate_linear_symbol(lambda d: [d.dx(2)], derivs_1d, 2)
        with pytest.raises(InvalidOperatorError):
            evaluate_linear_symbol(lambda d: d.dx(2), derivs_1d, 2)
        with pytest.raises(InvalidOperatorError):
            evaluate_linear_symbol(lambda d: [[1.0, 0.0], [0.0]], derivs_1d, 2)


class TestOperatorValidation:
    """Construction-time checks."""

    def test_degenerate_domain(self):
        with pytest.raises(InvalidOperatorError):
            SpinOperator(domain=[1.0, 1.0], linear=lambda d: d.dx(2), nonlinear=lambda u: u)

    def test_linear_component_mismatch(self):
        with pytest.raises(InvalidOperatorError):
            SpinOperator(
                domain=[0.0, 1.0],
                linear=lambda d: d.dx(2),
                nonlinear=lambda u: [u[0], u[1]],
                n_components=2,
            )

    def test_nonlinear_component_mismatch(self):
        with pytest.raises(InvalidOperatorError):
            SpinOperator(
                domain=[0.0, 1.0],
                linear=lambda d: [d.dx(2), d.dx(2)],
                nonlinear=lambda u: [u[0], u[1], u[0]],
                n_components=2,
            )

    def test_nonlinear_diff_mismatch(self):
        with pytest.raises(InvalidOperatorError):
            SpinOperator(
                domain=[0.0, 1.0],
                linear=lambda d: d.dx(2),
                nonlinear=lambda u: u**2,
                nonlinear_diff=lambda d: [d.dx(1), d.dx(1)],
            )

    def test_create_operator_requires_parts(self):
        with pytest.raises(InvalidOperatorError, match="nonlinear"):
            create_operator(domain=[0.0, 1.0], linear=lambda d: d.dx(2))

    def test_create_operator_rejects_preset_and_parts(self):
        with pytest.raises(InvalidOperatorError):
            create_operator("ks", linear=lambda d: d.dx(2))

    def test_preset_on_other_domain(self):
        base = get_preset("ks")
        op = create_operator("ks", domain=[0, 16 * np.pi])
        assert op.domain.bounds == ((0.0, 16 * np.pi),)
        assert op.name == "ks"
        assert op.linear is base.linear
        assert op.nonlinear is base.nonlinear
        assert op.initial is base.initial
        assert base.domain.bounds == ((0.0, 32 * np.pi),)

    def test_preset_metadata_override(self):
        op = create_operator("ks", tspan=(0, 10))
        assert op.tspan == (0.0, 10.0)
        assert op.domain == get_preset("ks").domain

    def test_preset_domain_dimension_mismatch(self):
        with pytest.raises(InvalidOperatorError, match="2-D"):
            create_operator("gl2", domain=[0, 1])

    def test_custom_operator_metadata(self):
        op = create_operator(
            domain=[0, 5],
            linear=lambda d: 0.3 * d.dx(2),
            nonlinear=lambda u: u**2 - 1,
            name="mine",
            tspan=(0, 1),
        )
        assert op.name == "mine"
        assert op.tspan == (0.0, 1.0)
        assert op.ndim == 1


class TestDiscretize:
    """Discrete operators on a grid."""

    def test_burgers_nonlinear_term(self):
        op = create_operator(
            domain=[0.0, 2 * np.pi],
            linear=lambda d: 0.1 * d.dx(2),
            nonlinear=lambda u: -0.5 * u**2,
            nonlinear_diff=lambda d: d.dx(1),
        )
        grid = PeriodicGrid.uniform(32, op.domain)
        discrete = op.discretize(grid, real_data=True)
        (x,) = grid.mesh()
        v_hat = to_spectral(jnp.sin(x)[None].astype(jnp.complex128), 1)
        n_phys = to_physical(discrete.nonlinear_hat(v_hat), 1).real
        # -(sin^2 / 2)_x = -sin(x) cos(x)
        np.testing.assert_allclose(np.asarray(n_phys[0]), np.asarray(-jnp.sin(x) * jnp.cos(x)), atol=1e-12)

    def test_real_preserving_flags(self):
        assert get_preset("ks").discretize(PeriodicGrid.uniform(32, get_preset("ks").domain)).real_preserving
        nls = get_preset("nls")
        assert not nls.discretize(PeriodicGrid.uniform(32, nls.domain)).real_preserving
        gl2 = get_preset("gl2")
        assert not gl2.discretize(PeriodicGrid.uniform(8, gl2.domain)).real_preserving

    def test_coupled_linear_part_is_full(self):
        op = create_operator(
            domain=[0.0, 2 * np.pi],
            linear=lambda d: [[0.0, 1.0], [-1.0, 0.0]],
            nonlinear=lambda u: 0 * u,
            n_components=2,
        )
        discrete = op.discretize(PeriodicGrid.uniform(16, op.domain))
        assert not discrete.diagonal
        assert discrete.linear.shape == (2, 2, 16)

    def test_dealias_removes_top_third(self):
        op = create_operator(domain=[0.0, 2 * np.pi], linear=lambda d: d.dx(2),
                             nonlinear=lambda u: u**2)
        grid = PeriodicGrid.uniform(16, op.domain)
        discrete = op.discretize(grid, dealias=True)
        (x,) = grid.mesh()
        v_hat = to_spectral(jnp.cos(3 * x)[None].astype(jnp.complex128), 1)
        n_hat = discrete.nonlinear_hat(v_hat)
        # cos^2(3x) = (1 + cos 6x)/2 and mode 6 lies above 16/3
        assert float(jnp.max(jnp.abs(n_hat[0, 6]))) == 0.0
        assert float(jnp.abs(n_hat[0, 0])) == pytest.approx(8.0)

    def test_grid_on_other_domain_rejected(self):
        op = get_preset("ks")
        with pytest.raises(InvalidOperatorError):
            op.discretize(PeriodicGrid.uniform(16, [0.0, 1.0]))


class TestPresets:
    """Preset catalogue."""

    def test_catalogue(self):
        assert list_presets() == sorted(
            ["ac", "burg", "ch", "gs", "kdv", "ks", "nls", "gl2", "gs2", "sh2", "gl3", "gs3"]
        )

    def test_case_insensitive_lookup(self):
        assert create_operator("KS") is get_preset("ks")
        assert get_preset(" Gl2 ").name == "gl2"

    def test_unknown_preset(self):
        with pytest.raises(InvalidOperatorError, match="Available presets"):
            create_operator("heat")

    @pytest.mark.parametrize("name", sorted(PRESETS))
    def test_preset_initial_condition(self, name):
        op = get_preset(name)
        grid = PeriodicGrid.uniform(16, op.domain)
        u0 = sample_on_grid(op.initial, grid, op.n_components)
        assert u0.shape == (op.n_components,) + grid.shape
        assert bool(jnp.all(jnp.isfinite(u0)))
        assert op.tspan is not None and op.tspan[-1] > op.tspan[0]
        assert op.ndim == {"2": 2, "3": 3}.get(name[-1], 1)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
