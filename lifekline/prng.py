"""
Deterministic randomness for the fortune series.

The seed is a fingerprint of the chart, so the same eight characters and
element tally always replay the same random sequence. Seed folding and the
generator arithmetic are kept bit-for-bit compatible with results already
stored by existing clients.
"""

import json
import math

from lifekline.bazi import ElementTally, SiZhu


# ============================================================
# FINGERPRINTS
# ============================================================

def fingerprint_text(si_zhu: SiZhu, tally: ElementTally) -> str:
    """Stems, then branches, then the tally counts (metal, wood, water, fire, earth)."""
    return si_zhu.symbols() + "".join(str(c) for c in tally.counts())


def rolling_hash(text: str) -> int:
    """
    Classic `h = h * 31 + c` string hash, wrapped to signed 32 bits at
    every step. Characters are folded as UTF-16 code units.
    """
    h = 0
    encoded = text.encode("utf-16-le")
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        h = (((h << 5) - h) + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


def fingerprint_seed(si_zhu: SiZhu, tally: ElementTally) -> int:
    return abs(rolling_hash(fingerprint_text(si_zhu, tally)))


_FNV64_OFFSET = 0xCBF29CE484222325
_FNV64_PRIME = 0x100000001B3


def fnv1a_64(data: bytes) -> int:
    h = _FNV64_OFFSET
    for byte in data:
        h ^= byte
        h = (h * _FNV64_PRIME) & 0xFFFFFFFFFFFFFFFF
    return h


def cache_key(payload, prefix: str = "cache") -> str:
    """
    Stable cache key for any JSON-serializable payload.

    Keys are FNV-1a over the canonical JSON form (sorted keys, no
    whitespace), so dict ordering never changes the key.
    """
    if isinstance(payload, str):
        canonical = payload
    else:
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return f"{prefix}:{fnv1a_64(canonical.encode('utf-8')):016x}"


# ============================================================
# SEEDED GENERATOR
# ============================================================

LCG_MULTIPLIER = 9301
LCG_INCREMENT = 49297
LCG_MODULUS = 233280

# Applied once when the fingerprint folds to 0
ZERO_SEED_PERTURBATION = 1


class BaziRandom:
    """
    Linear-congruential generator with a Box-Muller normal transform.

    One instance per computation. The state is a single integer and every
    draw advances it; never share an instance between runs.
    """

    def __init__(self, seed: int):
        seed = abs(int(seed))
        if seed == 0:
            seed = ZERO_SEED_PERTURBATION
        self.seed = seed

    @classmethod
    def from_chart(cls, si_zhu: SiZhu, tally: ElementTally) -> "BaziRandom":
        return cls(fingerprint_seed(si_zhu, tally))

    def next(self) -> float:
        """Uniform draw in [0, 1)."""
        self.seed = (self.seed * LCG_MULTIPLIER + LCG_INCREMENT) % LCG_MODULUS
        return self.seed / LCG_MODULUS

    def next_int(self, low: int, high: int) -> int:
        """Uniform integer in [low, high], both ends included."""
        return math.floor(self.next() * (high - low + 1)) + low

    def next_normal(self, mean: float, stddev: float) -> float:
        u = 0.0
        while u == 0:
            u = self.next()
        v = 0.0
        while v == 0:
            v = self.next()
        num = math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)
        return num * stddev + mean
