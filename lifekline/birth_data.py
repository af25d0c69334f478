"""
Birth data input model and validation.

Birth data arrives as JSON from the form/edge layer. It is validated here,
before any pillar is computed, and every problem is reported as an
InvalidInput naming the offending field.
"""

import re
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Any, Optional, Union
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field, ValidationError, field_validator
from timezonefinder import TimezoneFinder

from lifekline.bazi import Gender
from lifekline.errors import InvalidInput

_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
_TIME_RE = re.compile(r"([01][0-9]|2[0-3]):([0-5][0-9])")


class Location(BaseModel):
    """Birth place. Longitude is east positive."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    timezone_offset_hours: Optional[float] = Field(
        None, ge=-12, le=14, description="Standard UTC offset; auto-detected when omitted"
    )
    city: Optional[str] = None
    country: Optional[str] = None


class BirthData(BaseModel):
    """Birth data for one chart. `name` never influences the result."""
    name: Optional[str] = Field(None, max_length=50)
    gender: Gender
    birth_date: str = Field(..., description="YYYY-MM-DD")
    birth_time: str = Field(..., description="HH:mm, 24h local clock time")
    location: Location

    @field_validator("birth_date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        if not _DATE_RE.fullmatch(value):
            raise ValueError("expected YYYY-MM-DD")
        # strptime rejects month 13, Feb 30 and friends
        datetime.strptime(value, "%Y-%m-%d")
        return value

    @field_validator("birth_time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        if not _TIME_RE.fullmatch(value):
            raise ValueError("expected HH:mm (00:00-23:59)")
        return value

    @property
    def birth_datetime(self) -> datetime:
        """Naive local civil date-time of birth."""
        return datetime.strptime(f"{self.birth_date} {self.birth_time}", "%Y-%m-%d %H:%M")


def _error_field(error: dict) -> str:
    return ".".join(str(part) for part in error["loc"]) or "birth_data"


def parse_birth_data(data: Union[BirthData, dict[str, Any]],
                     min_year: int = 1900, max_year: int = 2100) -> BirthData:
    """
    Validate raw birth data.

    Raises:
        InvalidInput: on the first invalid field, with its dotted path
    """
    if isinstance(data, BirthData):
        birth = data
    else:
        try:
            birth = BirthData.model_validate(data)
        except ValidationError as exc:
            first = exc.errors()[0]
            raise InvalidInput(_error_field(first), first["msg"]) from exc

    year = birth.birth_datetime.year
    if not min_year <= year <= max_year:
        raise InvalidInput("birth_date", f"year {year} is outside {min_year}-{max_year}")
    return birth


# ============================================================
# TIMEZONE DETECTION
# ============================================================

@lru_cache(maxsize=1)
def _timezone_finder() -> TimezoneFinder:
    return TimezoneFinder()


def utc_offset_for(latitude: float, longitude: float, birth: datetime):
    """
    Determine UTC offset from coordinates and date.
    Detects historical DST (e.g., China 1986-1991).

    Returns:
        (clock_offset, standard_offset, timezone_name, dst_detected)

        clock_offset:    what the clock was actually set to (includes DST if active)
        standard_offset: the zone's standard (non-DST) offset
        dst_detected:    True if DST was active at birth time

    BaZi uses standard_offset (strips DST for solar time).
    When DST is not active, both offsets are the same.
    """
    tz_name = _timezone_finder().timezone_at(lat=latitude, lng=longitude)
    if tz_name is None:
        raise InvalidInput("location", f"Could not determine timezone for ({latitude}, {longitude})")

    local_dt = birth.replace(tzinfo=ZoneInfo(tz_name))
    clock_offset = local_dt.utcoffset().total_seconds() / 3600

    dst_seconds = local_dt.dst()
    dst_detected = dst_seconds is not None and dst_seconds.total_seconds() > 0

    if dst_detected:
        standard_offset = clock_offset - (dst_seconds.total_seconds() / 3600)
    else:
        standard_offset = clock_offset

    return clock_offset, standard_offset, tz_name, dst_detected


def resolve_timezone_offset(birth: BirthData) -> tuple[float, datetime]:
    """
    The standard UTC offset to use for solar time, and the birth clock
    time expressed in standard time.

    An explicit offset is trusted as-is. An auto-detected one has DST
    stripped, and the clock time is moved back by the DST amount.
    """
    local_dt = birth.birth_datetime
    if birth.location.timezone_offset_hours is not None:
        return birth.location.timezone_offset_hours, local_dt

    clock_offset, standard_offset, _, dst_detected = utc_offset_for(
        birth.location.latitude, birth.location.longitude, local_dt
    )
    if dst_detected:
        local_dt = local_dt - timedelta(hours=clock_offset - standard_offset)
    return standard_offset, local_dt
