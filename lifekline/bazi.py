"""
BaZi (Four Pillars of Destiny) data model and chart arithmetic.

Handles:
- Heavenly Stem / Earthly Branch tables with element and polarity
- Pillar arithmetic on the sexagenary (60) cycle
- Year / month / day / hour pillar formulas
- Element tally and the base fortune score
- Luck Cycle (大运 Da Yun) schedule
- Annual pillar (流年 Liu Nian)

Design principle: This module only does arithmetic on already-resolved
calendar facts. Turning a civil date into pillars is the calendar
adapter's job (astro_calendar.py).
"""

from dataclasses import dataclass, asdict, field
from datetime import date, datetime
from enum import Enum


# ============================================================
# FUNDAMENTAL DATA STRUCTURES
# ============================================================

class Polarity(Enum):
    YANG = "yang"
    YIN = "yin"


class Element(Enum):
    METAL = "metal"
    WOOD = "wood"
    WATER = "water"
    FIRE = "fire"
    EARTH = "earth"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class HeavenlyStem(Enum):
    JIA = ("甲", "Jia", Element.WOOD, Polarity.YANG, 0)
    YI = ("乙", "Yi", Element.WOOD, Polarity.YIN, 1)
    BING = ("丙", "Bing", Element.FIRE, Polarity.YANG, 2)
    DING = ("丁", "Ding", Element.FIRE, Polarity.YIN, 3)
    WU = ("戊", "Wu", Element.EARTH, Polarity.YANG, 4)
    JI = ("己", "Ji", Element.EARTH, Polarity.YIN, 5)
    GENG = ("庚", "Geng", Element.METAL, Polarity.YANG, 6)
    XIN = ("辛", "Xin", Element.METAL, Polarity.YIN, 7)
    REN = ("壬", "Ren", Element.WATER, Polarity.YANG, 8)
    GUI = ("癸", "Gui", Element.WATER, Polarity.YIN, 9)

    def __init__(self, chinese: str, pinyin: str, element: Element,
                 polarity: Polarity, index: int):
        self.chinese = chinese
        self.pinyin = pinyin
        self.element = element
        self.polarity = polarity
        self.index = index  # 0-9 in the cycle

    @property
    def is_yang(self) -> bool:
        return self.polarity is Polarity.YANG

    def __str__(self):
        return f"{self.pinyin} ({self.polarity.value} {self.element.value})"


class EarthlyBranch(Enum):
    ZI = ("子", "Zi", "Rat", Element.WATER, Polarity.YANG, 0)
    CHOU = ("丑", "Chou", "Ox", Element.EARTH, Polarity.YIN, 1)
    YIN = ("寅", "Yin", "Tiger", Element.WOOD, Polarity.YANG, 2)
    MAO = ("卯", "Mao", "Rabbit", Element.WOOD, Polarity.YIN, 3)
    CHEN = ("辰", "Chen", "Dragon", Element.EARTH, Polarity.YANG, 4)
    SI = ("巳", "Si", "Snake", Element.FIRE, Polarity.YIN, 5)
    WU = ("午", "Wu", "Horse", Element.FIRE, Polarity.YANG, 6)
    WEI = ("未", "Wei", "Goat", Element.EARTH, Polarity.YIN, 7)
    SHEN = ("申", "Shen", "Monkey", Element.METAL, Polarity.YANG, 8)
    YOU = ("酉", "You", "Rooster", Element.METAL, Polarity.YIN, 9)
    XU = ("戌", "Xu", "Dog", Element.EARTH, Polarity.YANG, 10)
    HAI = ("亥", "Hai", "Pig", Element.WATER, Polarity.YIN, 11)

    def __init__(self, chinese: str, pinyin: str, animal: str,
                 element: Element, polarity: Polarity, index: int):
        self.chinese = chinese
        self.pinyin = pinyin
        self.animal = animal
        self.element = element  # primary/season element
        self.polarity = polarity
        self.index = index  # 0-11 in the cycle

    def __str__(self):
        return f"{self.pinyin} ({self.animal})"


HEAVENLY_STEMS = list(HeavenlyStem)
EARTHLY_BRANCHES = list(EarthlyBranch)

# Lookup helpers
STEM_BY_CHINESE = {s.chinese: s for s in HeavenlyStem}
BRANCH_BY_CHINESE = {b.chinese: b for b in EarthlyBranch}


@dataclass(frozen=True)
class Pillar:
    stem: HeavenlyStem
    branch: EarthlyBranch

    def __post_init__(self):
        # Stem and branch must share parity, otherwise the pair is not on the 60 cycle
        if self.stem.index % 2 != self.branch.index % 2:
            raise ValueError(f"{self.stem.chinese}{self.branch.chinese} is not a sexagenary pair")

    @classmethod
    def from_sexagenary(cls, number: int) -> "Pillar":
        """Pillar for position `number` of the 60 cycle (0 = 甲子)."""
        return cls(HEAVENLY_STEMS[number % 10], EARTHLY_BRANCHES[number % 12])

    @classmethod
    def from_chinese(cls, text: str) -> "Pillar":
        if len(text) != 2 or text[0] not in STEM_BY_CHINESE or text[1] not in BRANCH_BY_CHINESE:
            raise ValueError(f"Not a stem-branch pair: {text!r}")
        return cls(STEM_BY_CHINESE[text[0]], BRANCH_BY_CHINESE[text[1]])

    @property
    def chinese(self) -> str:
        return self.stem.chinese + self.branch.chinese

    @property
    def sexagenary_index(self) -> int:
        return (6 * self.stem.index - 5 * self.branch.index) % 60

    def shift(self, steps: int) -> "Pillar":
        """Move `steps` positions along the 60 cycle (negative = backward)."""
        return Pillar(
            stem=HEAVENLY_STEMS[(self.stem.index + steps) % 10],
            branch=EARTHLY_BRANCHES[(self.branch.index + steps) % 12],
        )

    def to_dict(self):
        return {"gan": self.stem.chinese, "zhi": self.branch.chinese}

    def __str__(self):
        return f"{self.stem.pinyin} {self.branch.pinyin} ({self.stem.polarity.value} {self.stem.element.value} {self.branch.animal})"


@dataclass(frozen=True)
class SiZhu:
    """The four pillars. Built once per computation, read-only afterwards."""
    year: Pillar
    month: Pillar
    day: Pillar
    hour: Pillar

    @property
    def pillars(self) -> tuple:
        return (self.year, self.month, self.day, self.hour)

    @property
    def day_master(self) -> HeavenlyStem:
        return self.day.stem

    def symbols(self) -> str:
        """All 8 characters: the four stems, then the four branches."""
        stems = "".join(p.stem.chinese for p in self.pillars)
        branches = "".join(p.branch.chinese for p in self.pillars)
        return stems + branches

    def to_dict(self):
        return {
            "year": self.year.to_dict(),
            "month": self.month.to_dict(),
            "day": self.day.to_dict(),
            "hour": self.hour.to_dict(),
        }


# ============================================================
# PILLAR COMPUTATION
# ============================================================

def year_pillar(effective_year: int) -> Pillar:
    """
    Compute the Year Pillar for a BaZi year.

    The BaZi year starts at Li Chun (Start of Spring), so callers pass the
    year already adjusted for births before Li Chun.
    """
    # Year 4 CE was Jia Zi, the start of the cycle
    return Pillar.from_sexagenary(effective_year - 4)


def month_pillar(year_stem: HeavenlyStem, month_branch: EarthlyBranch) -> Pillar:
    """
    Compute the Month Pillar using the Five Tigers Escape (Wu Hu Dun) formula.

    Five Tigers Escape rule:
    - Year stem Jia/Ji → month 1 stem starts at Bing
    - Year stem Yi/Geng → month 1 stem starts at Wu
    - Year stem Bing/Xin → month 1 stem starts at Geng
    - Year stem Ding/Ren → month 1 stem starts at Ren
    - Year stem Wu/Gui → month 1 stem starts at Jia

    Args:
        year_stem: the year's heavenly stem
        month_branch: the month's earthly branch (month 1 is Yin/Tiger)
    """
    tiger_start_stem = (2 * (year_stem.index % 5) + 2) % 10

    # Months counted from Tiger (index 2)
    months_from_tiger = (month_branch.index - 2) % 12
    stem_index = (tiger_start_stem + months_from_tiger) % 10

    return Pillar(HEAVENLY_STEMS[stem_index], month_branch)


# JDN 2451545 (2000-01-01) is Wu Wu, position 54 of the cycle
_JDN_SEXAGENARY_OFFSET = 49


def julian_day_number(day: date) -> int:
    """Julian Day Number (integer, noon-based) of a Gregorian date."""
    return day.toordinal() + 1721425


def day_pillar(day: date) -> Pillar:
    """
    Compute the Day Pillar from the Julian Day Number.

    The 60-day cycle runs unbroken, so position = (JDN + 49) mod 60.
    Verified against published day pillars: 1949-10-01 = Jia Zi,
    2000-01-01 = Wu Wu.
    """
    return Pillar.from_sexagenary(julian_day_number(day) + _JDN_SEXAGENARY_OFFSET)


def hour_pillar(day_stem: HeavenlyStem, slot: int) -> Pillar:
    """
    Compute the Hour Pillar using Five Rats Escape (Wu Shu Dun) formula.

    Args:
        day_stem: the day's heavenly stem
        slot: two-hour slot 0-11, slot 0 being the Zi (Rat) hour
    """
    # Jia/Ji day → Jia Zi hour, Yi/Geng → Bing Zi, Bing/Xin → Wu Zi,
    # Ding/Ren → Geng Zi, Wu/Gui → Ren Zi
    zi_start_stem = (2 * (day_stem.index % 5)) % 10
    branch_index = slot % 12
    stem_index = (zi_start_stem + branch_index) % 10
    return Pillar(HEAVENLY_STEMS[stem_index], EARTHLY_BRANCHES[branch_index])


def hour_pillars(day_stem: HeavenlyStem) -> tuple:
    """The 12 hour pillars of a day, indexed by slot."""
    return tuple(hour_pillar(day_stem, slot) for slot in range(12))


# ============================================================
# FIVE ELEMENT CYCLES
# ============================================================

# Production cycle: Metal → Water → Wood → Fire → Earth → Metal
PRODUCTION_CYCLE = {
    Element.METAL: Element.WATER,
    Element.WATER: Element.WOOD,
    Element.WOOD: Element.FIRE,
    Element.FIRE: Element.EARTH,
    Element.EARTH: Element.METAL,
}

# Control cycle: Metal → Wood → Earth → Water → Fire → Metal
CONTROL_CYCLE = {
    Element.METAL: Element.WOOD,
    Element.WOOD: Element.EARTH,
    Element.EARTH: Element.WATER,
    Element.WATER: Element.FIRE,
    Element.FIRE: Element.METAL,
}


def element_relationship(day_master_element: Element, other_element: Element) -> str:
    """Determine the elemental relationship from the Day Master's perspective."""
    if day_master_element == other_element:
        return "same"
    elif PRODUCTION_CYCLE[other_element] == day_master_element:
        return "produces_me"  # other produces DM
    elif PRODUCTION_CYCLE[day_master_element] == other_element:
        return "i_produce"  # DM produces other
    elif CONTROL_CYCLE[day_master_element] == other_element:
        return "i_control"  # DM controls other
    elif CONTROL_CYCLE[other_element] == day_master_element:
        return "controls_me"  # other controls DM
    else:
        raise ValueError(f"No valid relationship between {day_master_element} and {other_element}")


# ============================================================
# ELEMENT TALLY AND BASE SCORE
# ============================================================

@dataclass(frozen=True)
class ElementTally:
    metal: int = 0
    wood: int = 0
    water: int = 0
    fire: int = 0
    earth: int = 0

    def counts(self) -> tuple:
        """Counts in canonical order: metal, wood, water, fire, earth."""
        return (self.metal, self.wood, self.water, self.fire, self.earth)

    @property
    def total(self) -> int:
        return sum(self.counts())

    def get(self, element: Element) -> int:
        return getattr(self, element.value)

    def to_dict(self):
        return asdict(self)


def tally_elements(si_zhu: SiZhu) -> ElementTally:
    """
    Count the element of each of the 8 visible symbols.

    Every symbol carries exactly one element, so the counts sum to 8.
    """
    counts = {e.value: 0 for e in Element}
    for pillar in si_zhu.pillars:
        counts[pillar.stem.element.value] += 1
        counts[pillar.branch.element.value] += 1
    return ElementTally(**counts)


BASE_SCORE = 60.0
BASE_SCORE_RANGE = (40.0, 100.0)


def balance_score(tally: ElementTally) -> float:
    """Up to 20 points for an even elemental spread."""
    counts = tally.counts()
    mean = sum(counts) / len(counts)
    variance = sum((c - mean) ** 2 for c in counts) / len(counts)
    return max(0.0, 20.0 - variance * 2)


def strength_score(si_zhu: SiZhu) -> float:
    """
    Up to 20 points for a seasonally supported Day Master.

    Day stem sharing the month branch's element ("in command") scores 20;
    a month branch that produces the day stem's element scores 15.
    """
    day_element = si_zhu.day.stem.element
    month_element = si_zhu.month.branch.element

    score = 10.0
    if day_element == month_element:
        score += 10.0
    elif PRODUCTION_CYCLE[month_element] == day_element:
        score += 5.0
    return min(20.0, score)


def base_fortune_score(si_zhu: SiZhu, tally: ElementTally) -> float:
    low, high = BASE_SCORE_RANGE
    score = BASE_SCORE + balance_score(tally) + strength_score(si_zhu)
    return min(high, max(low, score))


# ============================================================
# LUCK CYCLE COMPUTATION
# ============================================================

class LuckDirection(Enum):
    FORWARD = "forward"
    BACKWARD = "backward"


LUCK_CYCLE_COUNT = 8
LUCK_CYCLE_YEARS = 10
START_AGE_RANGE = (1, 15)


@dataclass(frozen=True)
class LuckCycle:
    start_age: int
    end_age: int
    pillar: Pillar
    year_range: tuple  # (first calendar year, last calendar year), inclusive

    @property
    def label(self) -> str:
        return self.pillar.chinese

    def contains_year(self, year: int) -> bool:
        return self.year_range[0] <= year <= self.year_range[1]

    def to_dict(self):
        return {
            "age": self.start_age,
            "label": self.label,
            "years": [self.year_range[0], self.year_range[1]],
        }


@dataclass(frozen=True)
class LuckSchedule:
    start_age: int
    direction: LuckDirection
    cycles: tuple

    def cycle_for_year(self, year: int):
        """The cycle active in a calendar year, or None before the first one."""
        for cycle in self.cycles:
            if cycle.contains_year(year):
                return cycle
        return None

    def to_dict(self):
        return {
            "startAge": self.start_age,
            "direction": self.direction.value,
            "cycles": [c.to_dict() for c in self.cycles],
        }


def luck_direction(year_stem: HeavenlyStem, gender: Gender) -> LuckDirection:
    """
    Direction of count depends on gender + year stem polarity:
    - Yang stem year + Male OR Yin stem year + Female → FORWARD
    - Yang stem year + Female OR Yin stem year + Male → BACKWARD
    """
    if (Gender(gender) is Gender.MALE) == year_stem.is_yang:
        return LuckDirection.FORWARD
    return LuckDirection.BACKWARD


def start_age_from_jie_distance(days_to_jie: float) -> int:
    """
    Traditional rule: 3 days between birth and the nearest Jie = 1 year.

    Clamped to the 1-15 range the schedule documents.
    """
    low, high = START_AGE_RANGE
    return min(high, max(low, round(abs(days_to_jie) / 3)))


def compute_luck_schedule(si_zhu: SiZhu, gender: Gender, birth_year: int,
                          start_age: int,
                          num_cycles: int = LUCK_CYCLE_COUNT) -> LuckSchedule:
    """
    Compute the Luck Cycles (大运 Da Yun).

    Each cycle's pillar steps one position along the 60 cycle from the
    month pillar, forward or backward by direction.

    Args:
        si_zhu: the natal four pillars
        gender: "male" or "female"
        birth_year: Gregorian birth year, anchors the calendar-year ranges
        start_age: age at which the first cycle begins
        num_cycles: how many cycles to compute

    Returns:
        LuckSchedule with `num_cycles` consecutive decade cycles
    """
    low, high = START_AGE_RANGE
    if not low <= start_age <= high:
        raise ValueError(f"start_age must be in {low}-{high}, got {start_age}")

    direction = luck_direction(si_zhu.year.stem, gender)
    step = 1 if direction is LuckDirection.FORWARD else -1

    cycles = []
    for i in range(num_cycles):
        age_start = start_age + i * LUCK_CYCLE_YEARS
        age_end = age_start + LUCK_CYCLE_YEARS - 1
        cycles.append(LuckCycle(
            start_age=age_start,
            end_age=age_end,
            pillar=si_zhu.month.shift(step * (i + 1)),
            year_range=(birth_year + age_start, birth_year + age_end),
        ))

    return LuckSchedule(start_age=start_age, direction=direction, cycles=tuple(cycles))


# ============================================================
# FULL RESULT
# ============================================================

@dataclass(frozen=True)
class BaziResult:
    """
    Everything derived from one birth-data input.

    calculated_at and calculation_time_ms are run metadata: they are left
    out of equality and never feed the fingerprint.
    """
    si_zhu: SiZhu
    elements: ElementTally
    luck: LuckSchedule
    base_score: float
    gender: Gender
    birth_year: int
    pillar_year: int  # Gregorian year whose Li Chun opened the year pillar
    true_solar_time: datetime
    calculated_at: datetime = field(default=None, compare=False)
    calculation_time_ms: float = field(default=0.0, compare=False)

    @property
    def day_master(self) -> HeavenlyStem:
        return self.si_zhu.day.stem

    def annual_pillar(self, year: int) -> Pillar:
        """Liu Nian pillar: the year pillar moved by the years elapsed since it."""
        return self.si_zhu.year.shift(year - self.pillar_year)

    def to_dict(self):
        return {
            "siZhu": self.si_zhu.to_dict(),
            "wuXing": self.elements.to_dict(),
            "daYun": self.luck.to_dict(),
            "trueSolarTime": self.true_solar_time.isoformat(),
            "calculatedAt": self.calculated_at.isoformat() if self.calculated_at else None,
            "calculationTimeMs": round(self.calculation_time_ms, 3),
        }
