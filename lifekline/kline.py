"""
Life fortune K-line (candlestick) generation.

Handles:
- Luck Cycle (大运) and annual (流年) influence on a year's score
- The 100-year open/high/low/close series, one candle per year
- Turning point detection over a finished series

Same chart in → same candles out: every random draw comes from a
BaziRandom seeded by the chart fingerprint, in a fixed order per year.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from lifekline.bazi import BaziResult, element_relationship
from lifekline.config import EngineConfig
from lifekline.prng import BaziRandom

logger = logging.getLogger("lifekline.kline")


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass(frozen=True)
class KLineData:
    year: int
    open: float
    close: float
    high: float
    low: float
    volume: float

    def to_dict(self):
        return {
            "year": self.year,
            "open": round(self.open, 2),
            "close": round(self.close, 2),
            "high": round(self.high, 2),
            "low": round(self.low, 2),
            "volume": self.volume,
        }


class TurningPointKind(Enum):
    PEAK = "peak"
    TROUGH = "trough"
    CHANGE = "change"


@dataclass(frozen=True)
class TurningPoint:
    year: int
    kind: TurningPointKind
    reason: str
    advice: str
    score: float

    def to_dict(self):
        return {
            "year": self.year,
            "type": self.kind.value,
            "reason": self.reason,
            "advice": self.advice,
            "score": round(self.score, 2),
        }


# ============================================================
# YEARLY INFLUENCES
# ============================================================

# relationship of the influencing stem to the Day Master → points
DAYUN_WEIGHTS = {"same": 5, "produces_me": 3, "controls_me": -3}
LIUNIAN_WEIGHTS = {"same": 3, "produces_me": 2, "controls_me": -2}


def dayun_impact(bazi: BaziResult, year: int, rng: BaziRandom) -> float:
    """
    Influence of the active Luck Cycle on a year.

    Cycle stem same element as the Day Master: +5, producing it: +3,
    controlling it: -3. The first three and last three years of a cycle
    carry extra random swing (±3 and ±2).
    """
    cycle = bazi.luck.cycle_for_year(year)
    if cycle is None:
        return 0

    relation = element_relationship(bazi.day_master.element, cycle.pillar.stem.element)
    impact = DAYUN_WEIGHTS.get(relation, 0)

    year_in_cycle = year - cycle.year_range[0]
    if year_in_cycle <= 2:
        impact += rng.next_int(-3, 3)
    elif year_in_cycle >= 7:
        impact += rng.next_int(-2, 2)

    return impact


def liunian_impact(bazi: BaziResult, year: int, rng: BaziRandom) -> float:
    """
    Influence of the year's own pillar (流年).

    Annual stem same element as the Day Master: +3, producing it: +2,
    controlling it: -2. A year whose branch repeats the natal year branch
    (本命年) swings by up to ±5.
    """
    annual = bazi.annual_pillar(year)

    relation = element_relationship(bazi.day_master.element, annual.stem.element)
    impact = LIUNIAN_WEIGHTS.get(relation, 0)

    if annual.branch == bazi.si_zhu.year.branch:
        impact += rng.next_int(-5, 5)

    return impact


# ============================================================
# SERIES GENERATION
# ============================================================

def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def generate_year_kline(bazi: BaziResult, year: int, base_score: float,
                        prev_close: float, rng: BaziRandom,
                        config: EngineConfig) -> KLineData:
    """One candle. Draw order is fixed: dayun, liunian, noise, open, volatility, volume."""
    low_bound, high_bound = config.score_floor, config.score_ceiling

    dayun = dayun_impact(bazi, year, rng)
    liunian = liunian_impact(bazi, year, rng)
    fluctuation = rng.next_normal(0, 3)

    open_ = _clamp(prev_close + rng.next_normal(0, 2), low_bound, high_bound)

    close = _clamp(base_score + dayun + liunian + fluctuation, low_bound, high_bound)
    if abs(close - open_) > config.max_year_change:
        close = open_ + math.copysign(config.max_year_change, close - open_)

    volatility = abs(rng.next_normal(10, 5))
    high = _clamp(max(open_, close) + volatility, low_bound, high_bound)
    low = _clamp(min(open_, close) - volatility, low_bound, high_bound)

    volume = float(rng.next_int(50, 100))

    return KLineData(year=year, open=open_, close=close, high=high, low=low, volume=volume)


def generate_kline_data(bazi: BaziResult, start_year: Optional[int] = None,
                        rng: Optional[BaziRandom] = None,
                        config: Optional[EngineConfig] = None) -> list[KLineData]:
    """
    Generate the life K-line: one candle per year for `config.series_years` years.

    Each year opens near the previous close and closes around the base
    score moved by the Luck Cycle, the annual pillar and noise.

    Args:
        bazi: the computed chart
        start_year: first year of the series (default: birth year)
        rng: generator to draw from (default: seeded from the chart)
        config: engine settings (default: EngineConfig())

    Returns:
        list of KLineData, consecutive years
    """
    config = config or EngineConfig()
    if rng is None:
        rng = BaziRandom.from_chart(bazi.si_zhu, bazi.elements)
    if start_year is None:
        start_year = bazi.birth_year

    base_score = bazi.base_score
    prev_close = base_score
    series = []
    for i in range(config.series_years):
        candle = generate_year_kline(bazi, start_year + i, base_score, prev_close, rng, config)
        series.append(candle)
        prev_close = candle.close

    logger.debug("Generated %d candles from %d (base score %.2f)",
                 len(series), start_year, base_score)
    return series


# ============================================================
# TURNING POINTS
# ============================================================

PEAK_CLOSE = 75
TROUGH_CLOSE = 45
TRANSITION_CHANGE_PCT = 5
MILESTONE_AGES = (18, 30, 60)
EXTREMUM_WINDOW = 2

TRANSITION_ADVICE = {
    TurningPointKind.PEAK: "把握机遇，大展宏图",
    TurningPointKind.TROUGH: "谨慎行事，蓄势待发",
    TurningPointKind.CHANGE: "平稳过渡，顺势而为",
}


def _transition_points(series: list[KLineData], bazi: BaziResult) -> list[TurningPoint]:
    by_year = {candle.year: candle for candle in series}
    first_year, last_year = series[0].year, series[-1].year

    points = []
    for cycle in bazi.luck.cycles[1:]:
        turn_year = cycle.year_range[0]
        if not first_year < turn_year <= last_year:
            continue
        candle = by_year.get(turn_year)
        if candle is None:
            continue
        change = (candle.close - candle.open) / candle.open * 100
        if change > TRANSITION_CHANGE_PCT:
            kind = TurningPointKind.PEAK
        elif change < -TRANSITION_CHANGE_PCT:
            kind = TurningPointKind.TROUGH
        else:
            kind = TurningPointKind.CHANGE
        points.append(TurningPoint(
            year=turn_year,
            kind=kind,
            reason=f"进入{cycle.label}大运，人生阶段发生重要转变",
            advice=TRANSITION_ADVICE[kind],
            score=candle.close,
        ))
    return points


def _extremum_points(series: list[KLineData]) -> list[TurningPoint]:
    points = []
    w = EXTREMUM_WINDOW
    for i in range(w, len(series) - w):
        current = series[i]
        neighbours = [series[j].close for j in range(i - w, i + w + 1) if j != i]

        if all(current.close > n for n in neighbours) and current.close > PEAK_CLOSE:
            points.append(TurningPoint(
                year=current.year,
                kind=TurningPointKind.PEAK,
                reason=f"{current.year}年运势达到峰值，各方面条件最为有利",
                advice="抓住黄金机遇，大胆施展才华",
                score=current.close,
            ))
        elif all(current.close < n for n in neighbours) and current.close < TROUGH_CLOSE:
            points.append(TurningPoint(
                year=current.year,
                kind=TurningPointKind.TROUGH,
                reason=f"{current.year}年运势处于低谷，面临挑战和考验",
                advice="保持耐心，修身养性，等待时机",
                score=current.close,
            ))
    return points


def _milestone_points(series: list[KLineData], bazi: BaziResult) -> list[TurningPoint]:
    by_year = {candle.year: candle for candle in series}
    points = []
    for age in MILESTONE_AGES:
        year = bazi.birth_year + age
        candle = by_year.get(year)
        if candle is None:
            continue
        points.append(TurningPoint(
            year=year,
            kind=TurningPointKind.CHANGE,
            reason=f"{year}年是人生重要节点，{age}岁",
            advice="认真规划人生方向，做出重要决策",
            score=candle.close,
        ))
    return points


def identify_turning_points(series: list[KLineData], bazi: BaziResult,
                            limit: int = 8) -> list[TurningPoint]:
    """
    Pick out the noteworthy years of a finished series.

    Sources, in priority order: Luck Cycle transitions, local extrema
    (strict over two years each side), and ages 18 / 30 / 60. One point
    per year; the earlier source wins. Sorted by year and cut to `limit`.
    """
    if not series:
        return []

    candidates = (
        _transition_points(series, bazi)
        + _extremum_points(series)
        + _milestone_points(series, bazi)
    )

    seen = set()
    points = []
    for point in candidates:
        if point.year in seen:
            continue
        seen.add(point.year)
        points.append(point)

    points.sort(key=lambda p: p.year)
    logger.debug("Found %d turning points, keeping %d", len(points), min(len(points), limit))
    return points[:limit]
