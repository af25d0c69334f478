import unittest

from lifekline.config import EngineConfig


class TestEngineConfig(unittest.TestCase):

    def test_defaults(self):
        config = EngineConfig()
        self.assertEqual(config.series_years, 100)
        self.assertEqual((config.score_floor, config.score_ceiling), (20.0, 100.0))
        self.assertEqual(config.max_year_change, 30.0)
        self.assertEqual(config.turning_point_limit, 8)
        self.assertEqual(config.start_age_method, "solar_term")
        self.assertEqual(config.hour_slot_mode, "even")
        self.assertEqual(config.solar_time_method, "offset")
        self.assertEqual(config.calendar_backend, "swisseph")
        self.assertEqual((config.min_year, config.max_year), (1900, 2100))

    def test_from_empty_env(self):
        self.assertEqual(EngineConfig.from_env({}), EngineConfig())

    def test_from_env(self):
        config = EngineConfig.from_env({
            "LIFEKLINE_SERIES_YEARS": "80",
            "LIFEKLINE_SCORE_FLOOR": "25.5",
            "LIFEKLINE_START_AGE_METHOD": "fixed",
            "LIFEKLINE_CALENDAR": "lunar",
            "LIFEKLINE_SOLAR_TIME_METHOD": "corrected",
            "SWE_EPHE_PATH": "/opt/ephe",
            "LIFEKLINE_TURNING_POINT_LIMIT": "  ",
            "UNRELATED": "x",
        })
        self.assertEqual(config.series_years, 80)
        self.assertEqual(config.score_floor, 25.5)
        self.assertEqual(config.start_age_method, "fixed")
        self.assertEqual(config.calendar_backend, "lunar")
        self.assertEqual(config.solar_time_method, "corrected")
        self.assertEqual(config.ephe_path, "/opt/ephe")
        self.assertEqual(config.turning_point_limit, 8)

    def test_unparseable_env_names_the_variable(self):
        with self.assertRaises(ValueError) as ctx:
            EngineConfig.from_env({"LIFEKLINE_SERIES_YEARS": "many"})
        self.assertIn("LIFEKLINE_SERIES_YEARS", str(ctx.exception))

    def test_invalid_values(self):
        for kwargs in ({"series_years": 0},
                       {"score_floor": 100, "score_ceiling": 50},
                       {"max_year_change": 0},
                       {"turning_point_limit": -1},
                       {"start_age_method": "astrologer"},
                       {"fixed_start_age": 20},
                       {"hour_slot_mode": "odd"},
                       {"solar_time_method": "sidereal"},
                       {"calendar_backend": "gregorian"},
                       {"min_year": 2000, "max_year": 1999}):
            with self.assertRaises(ValueError, msg=kwargs):
                EngineConfig(**kwargs)

    def test_invalid_env_value(self):
        with self.assertRaises(ValueError):
            EngineConfig.from_env({"LIFEKLINE_HOUR_SLOT_MODE": "odd"})

    def test_with_overrides(self):
        config = EngineConfig().with_overrides(calendar_backend="lunar", hour_slot_mode=None)
        self.assertEqual(config.calendar_backend, "lunar")
        self.assertEqual(config.hour_slot_mode, "even")

    def test_unknown_override(self):
        with self.assertRaises(TypeError):
            EngineConfig().with_overrides(colour="red")

    def test_frozen(self):
        with self.assertRaises(AttributeError):
            EngineConfig().series_years = 50


if __name__ == "__main__":
    unittest.main()
