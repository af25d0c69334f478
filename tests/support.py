"""Chart builders shared by the test modules."""

from datetime import datetime

from lifekline.bazi import (
    BaziResult, Gender, Pillar, SiZhu, base_fortune_score, compute_luck_schedule,
    tally_elements,
)
from lifekline.kline import KLineData

BEIJING = {"latitude": 39.9042, "longitude": 116.4074, "timezone_offset_hours": 8}


def birth_data(**overrides) -> dict:
    data = {
        "gender": "male",
        "birth_date": "1990-01-01",
        "birth_time": "12:00",
        "location": dict(BEIJING),
    }
    data.update(overrides)
    return data


def make_si_zhu(year="己巳", month="丙子", day="丙寅", hour="甲午") -> SiZhu:
    return SiZhu(
        year=Pillar.from_chinese(year),
        month=Pillar.from_chinese(month),
        day=Pillar.from_chinese(day),
        hour=Pillar.from_chinese(hour),
    )


def make_bazi(year="己巳", month="丙子", day="丙寅", hour="甲午",
              gender=Gender.MALE, birth_year=1990, pillar_year=1989,
              start_age=1) -> BaziResult:
    si_zhu = make_si_zhu(year, month, day, hour)
    tally = tally_elements(si_zhu)
    return BaziResult(
        si_zhu=si_zhu,
        elements=tally,
        luck=compute_luck_schedule(si_zhu, gender, birth_year, start_age),
        base_score=base_fortune_score(si_zhu, tally),
        gender=gender,
        birth_year=birth_year,
        pillar_year=pillar_year,
        true_solar_time=datetime(birth_year, 1, 1, 11, 41),
    )


def flat_series(start_year=1990, years=100, close=60.0) -> list:
    return [
        KLineData(year=start_year + i, open=close, close=close,
                  high=close + 5, low=close - 5, volume=75.0)
        for i in range(years)
    ]


def with_candle(series, year, open_, close):
    """Copy of `series` with one year's open/close replaced."""
    out = []
    for candle in series:
        if candle.year == year:
            candle = KLineData(year=year, open=open_, close=close,
                               high=max(open_, close) + 5, low=min(open_, close) - 5,
                               volume=candle.volume)
        out.append(candle)
    return out
