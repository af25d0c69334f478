"""
Calendar utilities for BaZi charting.
Handles true solar time, solar term lookups, hour slots and the
calendar adapters that turn a civil date into raw pillars.

Two adapters implement the same contract:
- SwissEphemerisCalendar: computes Li Chun, month branches and solar
  terms from the Sun's ecliptic longitude (pyswisseph)
- LunarPythonCalendar: delegates to the lunar-python EightChar tables
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Optional, Protocol

import swisseph as swe
from lunar_python import Solar

from lifekline.bazi import (
    BRANCH_BY_CHINESE, EARTHLY_BRANCHES, STEM_BY_CHINESE, Pillar,
    day_pillar, hour_pillars, month_pillar, year_pillar,
)
from lifekline.errors import CalendricalResolutionFailure

logger = logging.getLogger("lifekline.astro_calendar")


# ============================================================
# TRUE SOLAR TIME
# ============================================================

def day_of_year(moment: datetime) -> int:
    """Ordinal day within the year, January 1st = 1."""
    return moment.timetuple().tm_yday


def equation_of_time(day_number: int) -> float:
    """
    Simplified equation of time, in minutes.

    B = 360/365 * (day - 81) degrees
    EoT = 9.87 sin(2B) - 7.53 cos(B) - 1.5 sin(B)
    """
    b = math.radians((360.0 / 365.0) * (day_number - 81))
    return 9.87 * math.sin(2 * b) - 7.53 * math.cos(b) - 1.5 * math.sin(b)


def lmt_correction(longitude: float, standard_meridian: float = 120.0) -> float:
    """
    Calculate Local Mean Time correction in minutes.

    China uses a single timezone based on 120°E. For locations
    significantly west of this (like Nanning at 108.37°E), the clock
    time differs from solar time.

    Args:
        longitude: birth location longitude in degrees (east positive)
        standard_meridian: timezone standard meridian (120.0 for China/CST)

    Returns:
        Correction in minutes (negative = subtract from clock time)

    Example:
        Nanning (108.37°E): correction = (108.37 - 120.0) * 4 = -46.52 min
        So 2:05 PM clock time → ~1:18 PM LMT
    """
    return (longitude - standard_meridian) * 4.0


def apply_lmt(clock_time: datetime, longitude: float,
              standard_meridian: float = 120.0) -> datetime:
    """
    Convert clock time to Local Mean Time.

    Args:
        clock_time: datetime in clock/standard time
        longitude: birth location longitude
        standard_meridian: timezone standard meridian

    Returns:
        datetime adjusted to LMT
    """
    correction_minutes = lmt_correction(longitude, standard_meridian)
    return clock_time + timedelta(minutes=correction_minutes)


def true_solar_time(local_time: datetime, longitude: float,
                    timezone_offset: float, method: str = "offset") -> datetime:
    """
    Convert local clock time to true (apparent) solar time.

    "offset" (default): the clock fields are read as a UTC instant and
    moved by timezone*60 + longitude*4 + EoT minutes.
    "corrected": the clock time is first taken back to UTC
    (timezone_offset hours), then moved by 4 minutes per degree of
    longitude and by the equation of time, i.e. a single offset of
    -timezone*60 + longitude*4 + EoT minutes.

    Args:
        local_time: naive civil date-time at the birth place
        longitude: degrees, east positive
        timezone_offset: hours east of UTC, may be fractional
        method: "offset" or "corrected"

    Returns:
        naive datetime on the true-solar clock
    """
    eot = equation_of_time(day_of_year(local_time))
    if method == "offset":
        return local_time + timedelta(minutes=timezone_offset * 60 + longitude * 4 + eot)
    if method == "corrected":
        mean_time = apply_lmt(local_time, longitude, standard_meridian=timezone_offset * 15.0)
        return mean_time + timedelta(minutes=eot)
    raise ValueError(f"Unknown solar time method: {method!r}")


def hour_slot(solar_time: datetime, mode: str = "even") -> int:
    """
    Index (0-11) of the two-hour slot a true-solar time falls in.

    "even": slot = floor(hour / 2), slots start on even hours.
    "traditional": Zi runs 23:00-00:59, so slot = floor((hour + 1) / 2).
    """
    if mode == "even":
        return (solar_time.hour // 2) % 12
    if mode == "traditional":
        return ((solar_time.hour + 1) // 2) % 12
    raise ValueError(f"Unknown hour slot mode: {mode!r}")


# ============================================================
# SOLAR TERM COMPUTATION
# ============================================================
#
# The 12 Jie (节) solar terms mark BaZi month boundaries.
# Each Jie is defined by the Sun reaching a specific ecliptic longitude.
# Swiss Ephemeris swe.solcross_ut() finds the exact crossing moment.
#
# Li Chun (315°) → Tiger month (month 1)
# Jing Zhe (345°) → Rabbit month (month 2)
# Qing Ming (15°) → Dragon month (month 3)
# Li Xia (45°) → Snake month (month 4)
# Mang Zhong (75°) → Horse month (month 5)
# Xiao Shu (105°) → Goat month (month 6)
# Li Qiu (135°) → Monkey month (month 7)
# Bai Lu (165°) → Rooster month (month 8)
# Han Lu (195°) → Dog month (month 9)
# Li Dong (225°) → Pig month (month 10)
# Da Xue (255°) → Rat month (month 11)
# Xiao Han (285°) → Ox month (month 12)

# (longitude, term_name, branch_pinyin, branch_index)
JIE_DEFINITIONS = [
    (285, "Xiao Han", "Chou", 1),
    (315, "Li Chun", "Yin", 2),
    (345, "Jing Zhe", "Mao", 3),
    (15,  "Qing Ming", "Chen", 4),
    (45,  "Li Xia", "Si", 5),
    (75,  "Mang Zhong", "Wu", 6),
    (105, "Xiao Shu", "Wei", 7),
    (135, "Li Qiu", "Shen", 8),
    (165, "Bai Lu", "You", 9),
    (195, "Han Lu", "Xu", 10),
    (225, "Li Dong", "Hai", 11),
    (255, "Da Xue", "Zi", 0),
]

LI_CHUN_LONGITUDE = 315.0


def sun_longitude_to_month_branch_index(sun_lon: float) -> int:
    """
    Map Sun's ecliptic longitude to BaZi month branch index.

    Every 30° past Li Chun (315°) starts the next month, beginning with
    Yin (Tiger, index 2) and ending with Chou (Ox, index 1).
    """
    adjusted = (sun_lon - LI_CHUN_LONGITUDE) % 360
    month_num = int(adjusted / 30)
    return (month_num + 2) % 12


# ============================================================
# CALENDAR ADAPTERS
# ============================================================

@dataclass(frozen=True)
class CalendarPillars:
    """Raw calendar facts for one civil date-time."""
    year: Pillar
    month: Pillar
    day: Pillar
    hour_table: tuple  # 12 Pillars indexed by hour slot
    pillar_year: int   # Gregorian year whose Li Chun opened the year pillar


class CalendarAdapter(Protocol):
    min_year: int
    max_year: int

    def resolve(self, moment: datetime, utc_offset: float = 0.0) -> CalendarPillars:
        ...

    def days_to_jie(self, moment: datetime, utc_offset: float, forward: bool) -> float:
        ...


def pillar_year_for(pillar: Pillar, gregorian_year: int) -> int:
    """Which of the Gregorian year or the one before owns a year pillar."""
    for candidate in (gregorian_year, gregorian_year - 1):
        if year_pillar(candidate) == pillar:
            return candidate
    raise ValueError(f"Year pillar {pillar.chinese} does not belong to {gregorian_year}")


@lru_cache(maxsize=1)
def _warn_moshier_fallback():
    """Log the Moshier fallback once per process."""
    logger.warning("Swiss Ephemeris files not found, using Moshier ephemeris")


class SwissEphemerisCalendar:
    """
    Calendar adapter computing pillars from the Sun's position.

    Year pillar switches at the exact Li Chun moment, the month branch
    follows the Sun's ecliptic longitude, day and hour pillars come from
    the Julian Day Number and Five Rats rule.
    """

    def __init__(self, min_year: int = 1900, max_year: int = 2100,
                 ephe_path: Optional[str] = None):
        self.min_year = min_year
        self.max_year = max_year
        if ephe_path:
            swe.set_ephe_path(ephe_path)

    def _check_range(self, moment: datetime):
        if not self.min_year <= moment.year <= self.max_year:
            raise CalendricalResolutionFailure(
                moment,
                f"{moment.date().isoformat()} is outside the supported calendar range "
                f"{self.min_year}-{self.max_year}",
            )

    @staticmethod
    def julian_day_ut(moment: datetime, utc_offset: float = 0.0) -> float:
        hour = moment.hour + moment.minute / 60 + moment.second / 3600 - utc_offset
        return swe.julday(moment.year, moment.month, moment.day, hour)

    def sun_longitude(self, jd_ut: float) -> float:
        result, flag = swe.calc_ut(jd_ut, swe.SUN, swe.FLG_SWIEPH)
        if flag & swe.FLG_MOSEPH:
            _warn_moshier_fallback()
        return result[0]

    def li_chun_jd(self, year: int) -> float:
        """Julian Day (UT) of Li Chun in a Gregorian year."""
        return swe.solcross_ut(LI_CHUN_LONGITUDE, swe.julday(year, 1, 1, 0), swe.FLG_SWIEPH)

    def find_jie_dates(self, year: int) -> list[dict]:
        """
        Compute all 12 Jie solar term dates for a given Gregorian year.

        Uses Swiss Ephemeris to find the exact moment the Sun crosses
        each Jie longitude. Returns dates in chronological order.

        Args:
            year: Gregorian year

        Returns:
            List of dicts with keys: month, day, hour_utc, term_name,
            branch, branch_index, jd (Julian Day of crossing)
        """
        results = []
        jd_year_start = swe.julday(year, 1, 1, 0)

        for lon, name, branch, branch_idx in JIE_DEFINITIONS:
            jd_cross = swe.solcross_ut(float(lon), jd_year_start, swe.FLG_SWIEPH)
            y, m, d, h = swe.revjul(jd_cross)
            # Only include crossings that fall within this Gregorian year
            if y == year:
                results.append({
                    "month": m,
                    "day": d,
                    "hour_utc": round(h, 2),
                    "term_name": name,
                    "branch": branch,
                    "branch_index": branch_idx,
                    "jd": jd_cross,
                })

        results.sort(key=lambda x: x["jd"])
        return results

    def find_nearest_jie(self, birth_jd: float, year: int, forward: bool) -> float:
        """
        Find the nearest Jie solar term JD in the given direction from birth.

        Args:
            birth_jd: Julian Day of birth
            year: birth year (Gregorian)
            forward: True = find next Jie after birth, False = find previous

        Returns:
            Julian Day of the nearest Jie solar term
        """
        # Get Jie dates for birth year and adjacent years
        all_jie = []
        for y in [year - 1, year, year + 1]:
            all_jie.extend(self.find_jie_dates(y))
        all_jie.sort(key=lambda x: x["jd"])

        if forward:
            for jie in all_jie:
                if jie["jd"] > birth_jd:
                    return jie["jd"]
        else:
            for jie in reversed(all_jie):
                if jie["jd"] < birth_jd:
                    return jie["jd"]

        raise CalendricalResolutionFailure(
            None, f"Could not find {'next' if forward else 'previous'} Jie from JD {birth_jd}"
        )

    def resolve(self, moment: datetime, utc_offset: float = 0.0) -> CalendarPillars:
        self._check_range(moment)
        try:
            jd_ut = self.julian_day_ut(moment, utc_offset)
            effective_year = moment.year
            if jd_ut < self.li_chun_jd(moment.year):
                effective_year -= 1
            month_branch_index = sun_longitude_to_month_branch_index(self.sun_longitude(jd_ut))
        except swe.Error as exc:
            raise CalendricalResolutionFailure(moment, f"Swiss Ephemeris failed: {exc}") from exc

        yp = year_pillar(effective_year)
        mp = month_pillar(yp.stem, EARTHLY_BRANCHES[month_branch_index])
        dp = day_pillar(moment.date())

        return CalendarPillars(
            year=yp,
            month=mp,
            day=dp,
            hour_table=hour_pillars(dp.stem),
            pillar_year=effective_year,
        )

    def days_to_jie(self, moment: datetime, utc_offset: float, forward: bool) -> float:
        self._check_range(moment)
        try:
            birth_jd = self.julian_day_ut(moment, utc_offset)
            jie_jd = self.find_nearest_jie(birth_jd, moment.year, forward=forward)
        except swe.Error as exc:
            raise CalendricalResolutionFailure(moment, f"Swiss Ephemeris failed: {exc}") from exc
        return abs(jie_jd - birth_jd)


class LunarPythonCalendar:
    """
    Calendar adapter backed by lunar-python's EightChar tables.

    lunar-python works in China Standard Time, so `utc_offset` is not
    used; dates are taken as civil dates at the birth place.
    """

    def __init__(self, min_year: int = 1900, max_year: int = 2100):
        self.min_year = min_year
        self.max_year = max_year

    def _lunar(self, moment: datetime):
        if not self.min_year <= moment.year <= self.max_year:
            raise CalendricalResolutionFailure(
                moment,
                f"{moment.date().isoformat()} is outside the supported calendar range "
                f"{self.min_year}-{self.max_year}",
            )
        solar = Solar.fromYmdHms(moment.year, moment.month, moment.day,
                                 moment.hour, moment.minute, moment.second)
        return solar, solar.getLunar()

    def resolve(self, moment: datetime, utc_offset: float = 0.0) -> CalendarPillars:
        _, lunar = self._lunar(moment)
        eight_char = lunar.getEightChar()

        yp = Pillar(STEM_BY_CHINESE[eight_char.getYearGan()], BRANCH_BY_CHINESE[eight_char.getYearZhi()])
        mp = Pillar(STEM_BY_CHINESE[eight_char.getMonthGan()], BRANCH_BY_CHINESE[eight_char.getMonthZhi()])
        dp = Pillar(STEM_BY_CHINESE[eight_char.getDayGan()], BRANCH_BY_CHINESE[eight_char.getDayZhi()])

        return CalendarPillars(
            year=yp,
            month=mp,
            day=dp,
            hour_table=hour_pillars(dp.stem),
            pillar_year=pillar_year_for(yp, moment.year),
        )

    def days_to_jie(self, moment: datetime, utc_offset: float, forward: bool) -> float:
        solar, lunar = self._lunar(moment)
        jie = lunar.getNextJie() if forward else lunar.getPrevJie()
        return abs(jie.getSolar().getJulianDay() - solar.getJulianDay())


def get_calendar(config) -> CalendarAdapter:
    """Build the calendar adapter named by an EngineConfig."""
    if config.calendar_backend == "swisseph":
        return SwissEphemerisCalendar(config.min_year, config.max_year, config.ephe_path)
    if config.calendar_backend == "lunar":
        return LunarPythonCalendar(config.min_year, config.max_year)
    raise ValueError(f"Unknown calendar backend: {config.calendar_backend!r}")
