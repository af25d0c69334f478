"""
Engine configuration.

Defaults reproduce the documented policy (100 years, scores clamped to
[20, 100], at most 8 turning points). Any field can be overridden from the
environment with EngineConfig.from_env().
"""

import os
from dataclasses import dataclass, fields, replace
from typing import Mapping, Optional


START_AGE_METHODS = ("solar_term", "fixed")
HOUR_SLOT_MODES = ("even", "traditional")
CALENDAR_BACKENDS = ("swisseph", "lunar")
SOLAR_TIME_METHODS = ("offset", "corrected")

# env var -> (field name, parser)
_ENV_FIELDS = {
    "LIFEKLINE_SERIES_YEARS": ("series_years", int),
    "LIFEKLINE_SCORE_FLOOR": ("score_floor", float),
    "LIFEKLINE_SCORE_CEILING": ("score_ceiling", float),
    "LIFEKLINE_MAX_YEAR_CHANGE": ("max_year_change", float),
    "LIFEKLINE_TURNING_POINT_LIMIT": ("turning_point_limit", int),
    "LIFEKLINE_START_AGE_METHOD": ("start_age_method", str),
    "LIFEKLINE_FIXED_START_AGE": ("fixed_start_age", int),
    "LIFEKLINE_HOUR_SLOT_MODE": ("hour_slot_mode", str),
    "LIFEKLINE_SOLAR_TIME_METHOD": ("solar_time_method", str),
    "LIFEKLINE_CALENDAR": ("calendar_backend", str),
    "LIFEKLINE_MIN_YEAR": ("min_year", int),
    "LIFEKLINE_MAX_YEAR": ("max_year", int),
    "SWE_EPHE_PATH": ("ephe_path", str),
}


@dataclass(frozen=True)
class EngineConfig:
    series_years: int = 100
    score_floor: float = 20.0
    score_ceiling: float = 100.0
    max_year_change: float = 30.0
    turning_point_limit: int = 8
    start_age_method: str = "solar_term"
    fixed_start_age: int = 1
    hour_slot_mode: str = "even"
    solar_time_method: str = "offset"
    calendar_backend: str = "swisseph"
    min_year: int = 1900
    max_year: int = 2100
    ephe_path: Optional[str] = None

    def __post_init__(self):
        if self.series_years < 1:
            raise ValueError(f"series_years must be positive, got {self.series_years}")
        if self.score_floor >= self.score_ceiling:
            raise ValueError(
                f"score_floor ({self.score_floor}) must be below score_ceiling ({self.score_ceiling})"
            )
        if self.max_year_change <= 0:
            raise ValueError(f"max_year_change must be positive, got {self.max_year_change}")
        if self.turning_point_limit < 0:
            raise ValueError(f"turning_point_limit must be >= 0, got {self.turning_point_limit}")
        if self.start_age_method not in START_AGE_METHODS:
            raise ValueError(f"start_age_method must be one of {START_AGE_METHODS}")
        if not 1 <= self.fixed_start_age <= 15:
            raise ValueError(f"fixed_start_age must be in 1-15, got {self.fixed_start_age}")
        if self.hour_slot_mode not in HOUR_SLOT_MODES:
            raise ValueError(f"hour_slot_mode must be one of {HOUR_SLOT_MODES}")
        if self.solar_time_method not in SOLAR_TIME_METHODS:
            raise ValueError(f"solar_time_method must be one of {SOLAR_TIME_METHODS}")
        if self.calendar_backend not in CALENDAR_BACKENDS:
            raise ValueError(f"calendar_backend must be one of {CALENDAR_BACKENDS}")
        if self.min_year > self.max_year:
            raise ValueError(f"min_year ({self.min_year}) is after max_year ({self.max_year})")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """Build a config from defaults overridden by environment variables."""
        env = os.environ if environ is None else environ
        overrides = {}
        for var, (name, parse) in _ENV_FIELDS.items():
            raw = env.get(var)
            if raw is None or raw.strip() == "":
                continue
            try:
                overrides[name] = parse(raw.strip())
            except ValueError as exc:
                raise ValueError(f"{var}={raw!r} is not a valid {parse.__name__}") from exc
        return cls(**overrides)

    def with_overrides(self, **changes) -> "EngineConfig":
        """Return a copy with the given non-None fields replaced."""
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise TypeError(f"Unknown config fields: {sorted(unknown)}")
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
