"""
Tests for phi-function evaluation.

Verifies:
- phi_k(0) = 1/k!
- Relative accuracy across magnitudes 1e-12 .. 1e3, real and complex
- Matrix phi functions agree with the scalar ones and with their series
"""

import math

import pytest
import jax
import jax.numpy as jnp
import numpy as np

jax.config.update("jax_enable_x64", True)

from spinjax.core.phi import (
    DiagonalPhi,
    MatrixPhi,
    PhiConfig,
    phi_functions,
    phi_matrix_functions,
)


MAX_ORDER = 4


def reference_phi(z: complex, k: int) -> complex:
    """phi_k(z) by its power series for |z| <= 2, by the recurrence otherwise."""
    if abs(z) <= 2:
        return sum(z**n / math.factorial(n + k) for n in range(60))
    value = np.exp(complex(z))
    for j in range(1, k + 1):
        value = (value - 1.0 / math.factorial(j - 1)) / z
    return value


MAGNITUDES = [
    0.0, 1e-12, -1e-12, 1e-8, -1e-6, 1e-4, -1e-3, 0.3, -0.7, 0.99, -1.01,
    1.5, -3.0, 10.0, -25.0, -300.0, -1e3,
]

COMPLEX_POINTS = [
    1e-10j, 1e-5 + 1e-5j, 0.5 + 0.5j, -0.9j, 1.2j, -3 + 20j, 100j, -1e3 + 1e3j,
]


class TestScalarPhi:
    """Diagonal phi functions."""

    def test_values_at_zero(self):
        phis = phi_functions(jnp.zeros(3), MAX_ORDER)
        for k, phi in enumerate(phis):
            np.testing.assert_allclose(np.asarray(phi), 1.0 / math.factorial(k), rtol=1e-13)

    @pytest.mark.parametrize("k", [1, 2, 3, 4])
    def test_real_magnitudes(self, k):
        z = jnp.array(MAGNITUDES)
        values = np.asarray(phi_functions(z, MAX_ORDER)[k])
        expected = np.array([reference_phi(complex(v), k) for v in MAGNITUDES])
        np.testing.assert_allclose(values, expected, rtol=1e-11)

    @pytest.mark.parametrize("k", [1, 2, 3, 4])
    def test_complex_arguments(self, k):
        z = jnp.array(COMPLEX_POINTS)
        values = np.asarray(phi_functions(z, MAX_ORDER)[k])
        expected = np.array([reference_phi(complex(v), k) for v in COMPLEX_POINTS])
        np.testing.assert_allclose(values, expected, rtol=1e-11)

    def test_real_arguments_give_real_values(self):
        z = jnp.linspace(-5.0, 0.5, 23)
        for phi in phi_functions(z, MAX_ORDER):
            assert float(jnp.max(jnp.abs(phi.imag))) < 1e-14

    def test_large_negative_asymptotics(self):
        # phi_1(z) ~ -1/z for z -> -inf
        phi1 = phi_functions(jnp.array([-1e6]), 1)[1]
        np.testing.assert_allclose(complex(phi1[0]), 1e-6, rtol=1e-5)

    def test_preserves_shape(self):
        z = -jnp.arange(24.0).reshape(2, 3, 4)
        phis = phi_functions(z, 2)
        assert len(phis) == 3
        assert all(phi.shape == (2, 3, 4) for phi in phis)

    def test_fewer_contour_points_still_accurate(self):
        config = PhiConfig(contour_points=16)
        z = jnp.array([1e-9, -0.5, 0.5j])
        values = np.asarray(phi_functions(z, 3, config)[3])
        expected = np.array([reference_phi(complex(v), 3) for v in [1e-9, -0.5, 0.5j]])
        np.testing.assert_allclose(values, expected, rtol=1e-10)


class TestPhiConfig:
    """Validation of contour settings."""

    def test_defaults(self):
        config = PhiConfig()
        assert config.contour_points == 32
        assert config.contour_radius >= 2 * config.cutoff

    @pytest.mark.parametrize("kwargs", [
        {"contour_points": 4},
        {"cutoff": 0.0},
        {"contour_radius": 1.0, "cutoff": 1.0},
    ])
    def test_invalid_config_raises(self, kwargs):
        with pytest.raises(ValueError):
            PhiConfig(**kwargs)


class TestMatrixPhi:
    """Matrix phi functions via the augmented exponential."""

    def test_diagonal_matrices_match_scalar(self):
        eigenvalues = jnp.array([-1e-9, -0.5, -4.0, -40.0])
        A = jax.vmap(jnp.diag)(jnp.stack([eigenvalues, 0.5 * eigenvalues], axis=1))
        matrix_phis = phi_matrix_functions(A, 3)
        scalar_phis = phi_functions(jnp.stack([eigenvalues, 0.5 * eigenvalues], axis=1), 3)
        for k in range(4):
            diag = jnp.diagonal(matrix_phis[k], axis1=-2, axis2=-1)
            # exp(-40) ~ 4e-18 sits below the round-off of the expm path
            np.testing.assert_allclose(np.asarray(diag), np.asarray(scalar_phis[k]), rtol=1e-10, atol=1e-14)

    def test_non_normal_matrix_matches_series(self):
        A = np.array([[-1.0, 2.0], [0.0, -3.0]])
        phis = phi_matrix_functions(jnp.asarray(A)[None], 3)
        for k in range(4):
            expected = np.zeros((2, 2))
            power = np.eye(2)
            for n in range(60):
                expected = expected + power / math.factorial(n + k)
                power = power @ A
            np.testing.assert_allclose(np.asarray(phis[k][0]).real, expected, rtol=1e-10, atol=1e-13)

    def test_rotation_generator_exponential(self):
        theta = 0.7
        A = jnp.array([[0.0, theta], [-theta, 0.0]])
        E = np.asarray(phi_matrix_functions(A[None], 1)[0][0]).real
        expected = np.array([[np.cos(theta), np.sin(theta)], [-np.sin(theta), np.cos(theta)]])
        np.testing.assert_allclose(E, expected, atol=1e-13)


class TestEvaluators:
    """Cached evaluators used by the scheme builders."""

    def test_diagonal_evaluator_scales_argument(self):
        hL = -jnp.linspace(0.0, 10.0, 6)[None]
        P = DiagonalPhi(hL, 3)
        np.testing.assert_allclose(
            np.asarray(P(2, 0.5)), np.asarray(phi_functions(0.5 * hL, 3)[2]), rtol=1e-14
        )
        np.testing.assert_allclose(np.asarray(P.exp(0.5)), np.exp(0.5 * np.asarray(hL)), rtol=1e-14)

    def test_matrix_evaluator_layout(self):
        # (C, C, *shape) in, (*shape, C, C) out
        hL = jnp.zeros((2, 2, 5)).at[0, 0].set(-1.0).at[1, 1].set(-2.0)
        P = MatrixPhi(hL, 1)
        E = P.exp()
        assert E.shape == (5, 2, 2)
        np.testing.assert_allclose(np.asarray(E[:, 0, 0]).real, np.exp(-1.0), rtol=1e-13)
        np.testing.assert_allclose(np.asarray(E[:, 1, 1]).real, np.exp(-2.0), rtol=1e-13)
        np.testing.assert_allclose(np.asarray(E[:, 0, 1]), 0.0, atol=1e-15)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
