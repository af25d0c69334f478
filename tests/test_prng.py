import math
import unittest

from lifekline.bazi import tally_elements
from lifekline.prng import (
    LCG_MODULUS, BaziRandom, cache_key, fingerprint_seed, fingerprint_text, fnv1a_64,
    rolling_hash,
)
from tests.support import make_si_zhu


class ScriptedRandom(BaziRandom):
    """Replays fixed uniform draws instead of the LCG."""

    def __init__(self, draws):
        super().__init__(1)
        self.draws = list(draws)

    def next(self):
        return self.draws.pop(0)


class TestFingerprint(unittest.TestCase):

    def test_fingerprint_text(self):
        si_zhu = make_si_zhu("己巳", "丙子", "丙寅", "甲午")
        self.assertEqual(fingerprint_text(si_zhu, tally_elements(si_zhu)), "己丙丙甲巳子寅午02141")

    def test_rolling_hash_small_strings(self):
        self.assertEqual(rolling_hash(""), 0)
        self.assertEqual(rolling_hash("a"), 97)
        self.assertEqual(rolling_hash("ab"), 97 * 31 + 98)
        self.assertEqual(rolling_hash("hello"), 99162322)

    def test_rolling_hash_wraps_to_signed_32_bits(self):
        self.assertEqual(rolling_hash("polygenelubricants"), -2147483648)

    def test_rolling_hash_uses_code_units(self):
        self.assertEqual(rolling_hash("甲"), ord("甲"))

    def test_seed_is_absolute_hash(self):
        si_zhu = make_si_zhu()
        tally = tally_elements(si_zhu)
        seed = fingerprint_seed(si_zhu, tally)
        self.assertEqual(seed, abs(rolling_hash(fingerprint_text(si_zhu, tally))))
        self.assertGreaterEqual(seed, 0)

    def test_different_charts_different_seeds(self):
        a = make_si_zhu("己巳", "丙子", "丙寅", "甲午")
        b = make_si_zhu("己巳", "丙子", "丁卯", "甲辰")
        self.assertNotEqual(fingerprint_seed(a, tally_elements(a)),
                            fingerprint_seed(b, tally_elements(b)))


class TestCacheKey(unittest.TestCase):

    def test_fnv_reference_values(self):
        self.assertEqual(fnv1a_64(b""), 0xCBF29CE484222325)
        self.assertEqual(fnv1a_64(b"a"), 0xAF63DC4C8601EC8C)

    def test_key_ignores_dict_order(self):
        a = cache_key({"birth_date": "1990-01-01", "gender": "male"})
        b = cache_key({"gender": "male", "birth_date": "1990-01-01"})
        self.assertEqual(a, b)

    def test_key_format(self):
        key = cache_key({"x": 1}, prefix="kline")
        prefix, digest = key.split(":")
        self.assertEqual(prefix, "kline")
        self.assertEqual(len(digest), 16)
        int(digest, 16)

    def test_different_payloads_differ(self):
        self.assertNotEqual(cache_key({"x": 1}), cache_key({"x": 2}))


class TestBaziRandom(unittest.TestCase):

    def test_first_draw(self):
        rng = BaziRandom(1)
        self.assertEqual(rng.next(), 58598 / LCG_MODULUS)
        self.assertEqual(rng.seed, 58598)

    def test_zero_seed_is_perturbed(self):
        self.assertEqual(BaziRandom(0).seed, 1)
        self.assertEqual(BaziRandom(0).next(), BaziRandom(1).next())

    def test_negative_seed_folded(self):
        self.assertEqual(BaziRandom(-42).seed, 42)

    def test_same_seed_same_sequence(self):
        a, b = BaziRandom(123456), BaziRandom(123456)
        for _ in range(200):
            self.assertEqual(a.next_int(-5, 5), b.next_int(-5, 5))
            self.assertEqual(a.next_normal(10, 5), b.next_normal(10, 5))

    def test_next_in_unit_interval(self):
        rng = BaziRandom(987654321)
        for _ in range(1000):
            value = rng.next()
            self.assertGreaterEqual(value, 0.0)
            self.assertLess(value, 1.0)

    def test_next_int_inclusive_bounds(self):
        rng = BaziRandom(2024)
        seen = {rng.next_int(-3, 3) for _ in range(2000)}
        self.assertEqual(seen, set(range(-3, 4)))

    def test_normal_redraws_zero(self):
        rng = ScriptedRandom([0.0, 0.5, 0.25])
        self.assertAlmostEqual(rng.next_normal(10, 5), 10.0)
        self.assertEqual(rng.draws, [])

    def test_normal_transform(self):
        # u = e^-2 gives radius 2, v = 0 is redrawn, v = 0.5 gives cos = -1
        rng = ScriptedRandom([math.exp(-2), 0.0, 0.5])
        self.assertAlmostEqual(rng.next_normal(0, 3), -6.0)


if __name__ == "__main__":
    unittest.main()
