"""
Chart creation library.
Computes the BaZi chart and the life K-line from birth data.

Called by the edge/API layer for every request; nothing is cached or
written to disk here. Each call builds its own calendar adapter state and
random generator, so concurrent calls never observe each other.

Usage from Python:
    from lifekline.create_chart import compute_life_kline
    result = compute_life_kline({
        "gender": "male", "birth_date": "1990-01-01", "birth_time": "12:00",
        "location": {"latitude": 39.9042, "longitude": 116.4074,
                     "timezone_offset_hours": 8},
    })
    payload = result.to_dict()
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Union

from lifekline.astro_calendar import (
    CalendarAdapter, CalendarPillars, get_calendar, hour_slot, true_solar_time,
)
from lifekline.bazi import (
    BaziResult, LuckDirection, SiZhu, base_fortune_score, compute_luck_schedule,
    luck_direction, start_age_from_jie_distance, tally_elements,
)
from lifekline.birth_data import BirthData, parse_birth_data, resolve_timezone_offset
from lifekline.config import EngineConfig
from lifekline.kline import (
    KLineData, TurningPoint, generate_kline_data, identify_turning_points,
)
from lifekline.prng import BaziRandom, fingerprint_seed

logger = logging.getLogger("lifekline.create_chart")


@dataclass(frozen=True)
class LifeKline:
    bazi: BaziResult
    kline: list[KLineData]
    turning_points: list[TurningPoint]

    def to_dict(self):
        return {
            "bazi": self.bazi.to_dict(),
            "klineData": [candle.to_dict() for candle in self.kline],
            "turningPoints": [point.to_dict() for point in self.turning_points],
        }


# ============================================================
# COMPUTATION HELPERS
# ============================================================

def assemble_si_zhu(calendar_pillars: CalendarPillars, solar_time: datetime,
                    slot_mode: str = "even") -> SiZhu:
    """
    Package the calendar facts into the four pillars.

    Year, month and day pillars come straight from the calendar; the hour
    pillar is looked up in the day's hour table by the true-solar slot.
    """
    slot = hour_slot(solar_time, slot_mode)
    return SiZhu(
        year=calendar_pillars.year,
        month=calendar_pillars.month,
        day=calendar_pillars.day,
        hour=calendar_pillars.hour_table[slot],
    )


def luck_start_age(calendar: CalendarAdapter, birth: datetime, utc_offset: float,
                   forward: bool, config: EngineConfig) -> int:
    """Age the first Luck Cycle starts at, by the configured method."""
    if config.start_age_method == "fixed":
        return config.fixed_start_age
    days = calendar.days_to_jie(birth, utc_offset, forward=forward)
    return start_age_from_jie_distance(days)


# ============================================================
# CHART COMPUTATION
# ============================================================

def compute_bazi(birth_data: Union[BirthData, dict[str, Any]],
                 config: Optional[EngineConfig] = None,
                 calendar: Optional[CalendarAdapter] = None) -> BaziResult:
    """
    Compute the BaZi chart for one person.

    Args:
        birth_data: BirthData or its JSON-like dict
        config: engine settings (default: EngineConfig())
        calendar: calendar adapter (default: built from config)

    Returns:
        BaziResult

    Raises:
        InvalidInput: birth data is malformed or out of range
        CalendricalResolutionFailure: the calendar cannot resolve the date
    """
    started = time.perf_counter()
    config = config or EngineConfig()
    birth = parse_birth_data(birth_data, config.min_year, config.max_year)
    calendar = calendar or get_calendar(config)

    utc_offset, local_dt = resolve_timezone_offset(birth)
    solar_time = true_solar_time(local_dt, birth.location.longitude, utc_offset,
                                 config.solar_time_method)

    calendar_pillars = calendar.resolve(local_dt, utc_offset)
    si_zhu = assemble_si_zhu(calendar_pillars, solar_time, config.hour_slot_mode)
    logger.debug("Pillars for %s %s: %s", birth.birth_date, birth.birth_time, si_zhu.symbols())

    # Element tally and luck schedule only read the pillars
    tally = tally_elements(si_zhu)

    direction = luck_direction(si_zhu.year.stem, birth.gender)
    start_age = luck_start_age(calendar, local_dt, utc_offset,
                               direction is LuckDirection.FORWARD, config)
    luck = compute_luck_schedule(si_zhu, birth.gender, local_dt.year, start_age)
    logger.debug("Luck cycles run %s from age %d", direction.value, start_age)

    elapsed_ms = (time.perf_counter() - started) * 1000
    return BaziResult(
        si_zhu=si_zhu,
        elements=tally,
        luck=luck,
        base_score=base_fortune_score(si_zhu, tally),
        gender=birth.gender,
        birth_year=local_dt.year,
        pillar_year=calendar_pillars.pillar_year,
        true_solar_time=solar_time,
        calculated_at=datetime.now(timezone.utc),
        calculation_time_ms=elapsed_ms,
    )


def compute_life_kline(birth_data: Union[BirthData, dict[str, Any]],
                       config: Optional[EngineConfig] = None,
                       calendar: Optional[CalendarAdapter] = None,
                       start_year: Optional[int] = None) -> LifeKline:
    """
    Full pipeline: chart, 100-year K-line and turning points.

    This is the main entry point for collaborators.

    Args:
        birth_data: BirthData or its JSON-like dict
        config: engine settings (default: EngineConfig())
        calendar: calendar adapter (default: built from config)
        start_year: first year of the series (default: birth year)

    Returns:
        LifeKline with bazi, kline and turning_points
    """
    started = time.perf_counter()
    config = config or EngineConfig()

    bazi = compute_bazi(birth_data, config, calendar)

    seed = fingerprint_seed(bazi.si_zhu, bazi.elements)
    logger.debug("Fingerprint seed %d", seed)
    rng = BaziRandom(seed)

    kline = generate_kline_data(bazi, start_year=start_year, rng=rng, config=config)
    turning_points = identify_turning_points(kline, bazi, limit=config.turning_point_limit)

    logger.info("Life K-line for %s computed in %.1f ms (%d candles, %d turning points)",
                bazi.si_zhu.symbols(), (time.perf_counter() - started) * 1000,
                len(kline), len(turning_points))
    return LifeKline(bazi=bazi, kline=kline, turning_points=turning_points)
