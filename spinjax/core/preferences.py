"""
Run preferences for spinjax.

SpinPreferences collects everything that tunes a run without changing the
problem: the scheme, the step size and grid size (or their automatic
selection), the accuracy target and the progress reporting.

Design decisions:
- Immutable dataclass (frozen=True) validated in __post_init__
- dt=None / N=None mean "choose automatically"; an explicit value disables
  the automatic selection for that parameter
- from_mapping() accepts plain dicts with case-insensitive keys, so
  {"dt": 5e-2, "N": 256} works as well as SpinPreferences(dt=5e-2, N=256)
"""

from dataclasses import dataclass, fields, replace as dc_replace
from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional

from spinjax.core.schemes import get_scheme


@dataclass(frozen=True)
class ProgressInfo:
    """
    Snapshot of run progress passed to the progress callback.

    Attributes:
        t: Current time
        step: Steps completed in the current run
        dt: Current step size
        N: Grid points per axis
        max_abs: Largest absolute value of the state
    """
    t: float
    step: int
    dt: float
    N: int
    max_abs: float


@dataclass(frozen=True)
class SpinPreferences:
    """
    Preferences of a run.

    Attributes:
        scheme: Exponential integrator name (default 'etdrk4')
        dt: Step size, None for automatic selection
        N: Grid points per axis, None for automatic selection
        tolerance: Accuracy target of the automatic selection (default 1e-6)
        progress_callback: Called with a ProgressInfo every progress_every steps
        progress_every: Steps between progress reports (default 100)
        dealias: Apply the 2/3 rule to the nonlinear term (default False)
        max_refinements: Maximum step halvings of the automatic dt search
        min_N: Smallest grid tried by the automatic N search (None: by dimension)
        max_N: Largest grid allowed (None: by dimension)
        divergence_factor: Blow-up threshold relative to max(1, max|u0|)
        resolution_check_every: Steps between resolution checks (auto N only)
        contour_points: Points of the phi-function contour integral
    """
    scheme: str = "etdrk4"
    dt: Optional[float] = None
    N: Optional[int] = None
    tolerance: float = 1e-6
    progress_callback: Optional[Callable[[ProgressInfo], Any]] = None
    progress_every: int = 100
    dealias: bool = False
    max_refinements: int = 12
    min_N: Optional[int] = None
    max_N: Optional[int] = None
    divergence_factor: float = 1e8
    resolution_check_every: int = 50
    contour_points: int = 32

    def __post_init__(self):
        descriptor = get_scheme(self.scheme)
        object.__setattr__(self, 'scheme', descriptor.name)
        if self.dt is not None and not self.dt > 0:
            raise ValueError(f"dt must be > 0, got {self.dt}")
        if self.N is not None and (int(self.N) != self.N or self.N < 4 or self.N % 2 != 0):
            raise ValueError(f"N must be an even integer >= 4, got {self.N}")
        # numpy integers and integral floats become plain ints
        for name in ('N', 'min_N', 'max_N'):
            value = getattr(self, name)
            if value is not None:
                if int(value) != value:
                    raise ValueError(f"{name} must be an integer, got {value}")
                object.__setattr__(self, name, int(value))
        if not self.tolerance > 0:
            raise ValueError(f"tolerance must be > 0, got {self.tolerance}")
        if self.progress_callback is not None and not callable(self.progress_callback):
            raise ValueError("progress_callback must be callable")
        if self.progress_every < 1:
            raise ValueError(f"progress_every must be >= 1, got {self.progress_every}")
        if self.max_refinements < 1:
            raise ValueError(f"max_refinements must be >= 1, got {self.max_refinements}")
        if self.min_N is not None and self.max_N is not None and self.min_N > self.max_N:
            raise ValueError(f"min_N ({self.min_N}) must not exceed max_N ({self.max_N})")
        if not self.divergence_factor > 1:
            raise ValueError(f"divergence_factor must be > 1, got {self.divergence_factor}")
        if self.resolution_check_every < 1:
            raise ValueError(
                f"resolution_check_every must be >= 1, got {self.resolution_check_every}"
            )
        if self.contour_points < 8:
            raise ValueError(f"contour_points must be >= 8, got {self.contour_points}")

    @property
    def auto_dt(self) -> bool:
        return self.dt is None

    @property
    def auto_N(self) -> bool:
        return self.N is None

    def replace(self, **changes) -> "SpinPreferences":
        """Copy with some fields changed (validated again)."""
        return dc_replace(self, **changes)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "SpinPreferences":
        """
        Build preferences from a dict with case-insensitive keys.

        Raises:
            ValueError: For unknown keys
        """
        names: Dict[str, str] = {f.name.lower(): f.name for f in fields(cls)}
        kwargs = {}
        for key, value in mapping.items():
            name = names.get(str(key).lower())
            if name is None:
                raise ValueError(
                    f"Unknown preference: {key!r}. Valid preferences: {', '.join(sorted(names.values()))}"
                )
            kwargs[name] = value
        return cls(**kwargs)


# Default bounds of the automatic grid-size search, per space dimension
DEFAULT_MIN_N = {1: 64, 2: 32, 3: 16}
DEFAULT_MAX_N = {1: 4096, 2: 512, 3: 128}


def resolve_preferences(preferences: Any = None, **overrides) -> SpinPreferences:
    """
    Accept None, a SpinPreferences or a mapping, and apply keyword overrides.
    """
    if preferences is None:
        prefs = SpinPreferences()
    elif isinstance(preferences, SpinPreferences):
        prefs = preferences
    elif isinstance(preferences, Mapping):
        prefs = SpinPreferences.from_mapping(preferences)
    else:
        raise ValueError(
            f"preferences must be a SpinPreferences or a mapping, got {type(preferences).__name__}"
        )
    if overrides:
        merged = {f.name: getattr(prefs, f.name) for f in fields(prefs)}
        merged.update(overrides)
        prefs = SpinPreferences.from_mapping(merged)
    return prefs
