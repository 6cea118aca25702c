"""
Tests for run preferences.
"""

import pytest
import jax
import numpy as np

jax.config.update("jax_enable_x64", True)

from spinjax.core.preferences import SpinPreferences, resolve_preferences


class TestDefaults:
    """Default values."""

    def test_defaults(self):
        prefs = SpinPreferences()
        assert prefs.scheme == "etdrk4"
        assert prefs.auto_dt and prefs.auto_N
        assert prefs.tolerance == 1e-6
        assert not prefs.dealias
        assert prefs.progress_callback is None

    def test_explicit_values_disable_auto_selection(self):
        prefs = SpinPreferences(dt=0.05, N=128)
        assert not prefs.auto_dt
        assert not prefs.auto_N

    def test_frozen(self):
        with pytest.raises(Exception):
            SpinPreferences().dt = 0.1


class TestValidation:
    """Invalid values raise ValueError."""

    @pytest.mark.parametrize("kwargs", [
        {"scheme": "rk45"},
        {"dt": 0.0},
        {"dt": -1e-3},
        {"N": 7},
        {"N": 2},
        {"tolerance": 0.0},
        {"progress_callback": "not callable"},
        {"progress_every": 0},
        {"max_refinements": 0},
        {"min_N": 256, "max_N": 64},
        {"divergence_factor": 1.0},
        {"resolution_check_every": 0},
        {"contour_points": 4},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            SpinPreferences(**kwargs)

    def test_numpy_integers_become_ints(self):
        prefs = SpinPreferences(N=np.int64(64), min_N=np.int32(16), max_N=256.0)
        assert prefs.N == 64 and type(prefs.N) is int
        assert type(prefs.min_N) is int
        assert type(prefs.max_N) is int

    @pytest.mark.parametrize("kwargs", [{"N": 16.5}, {"min_N": 8.5}])
    def test_non_integer_sizes(self, kwargs):
        with pytest.raises(ValueError):
            SpinPreferences(**kwargs)


class TestMappings:
    """Dict input and overrides."""

    def test_case_insensitive_keys(self):
        prefs = SpinPreferences.from_mapping({"DT": 0.05, "n": 256, "Scheme": "EXPRK5S8"})
        assert prefs.dt == 0.05
        assert prefs.N == 256
        assert prefs.scheme == "exprk5s8"

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="Unknown preference"):
            SpinPreferences.from_mapping({"timestep": 0.1})

    def test_replace_revalidates(self):
        prefs = SpinPreferences(dt=0.1)
        assert prefs.replace(dt=0.2).dt == 0.2
        assert prefs.dt == 0.1
        with pytest.raises(ValueError):
            prefs.replace(dt=-1.0)

    def test_resolve_preferences(self):
        assert resolve_preferences() == SpinPreferences()
        base = SpinPreferences(N=64)
        assert resolve_preferences(base) is base
        merged = resolve_preferences({"N": 64}, dt=0.1, scheme="krogstad")
        assert (merged.N, merged.dt, merged.scheme) == (64, 0.1, "krogstad")

    def test_resolve_rejects_other_types(self):
        with pytest.raises(ValueError):
            resolve_preferences([("dt", 0.1)])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
