import unittest
from datetime import datetime

from lifekline.bazi import Gender
from lifekline.birth_data import (
    BirthData, parse_birth_data, resolve_timezone_offset, utc_offset_for,
)
from lifekline.errors import CalendricalResolutionFailure, InvalidInput, LifeKlineError
from tests.support import birth_data


class TestParseBirthData(unittest.TestCase):

    def assertInvalid(self, field, **overrides):
        with self.assertRaises(InvalidInput) as ctx:
            parse_birth_data(birth_data(**overrides))
        self.assertEqual(ctx.exception.field, field)
        return ctx.exception

    def test_valid(self):
        birth = parse_birth_data(birth_data(name="张三"))
        self.assertIs(birth.gender, Gender.MALE)
        self.assertEqual(birth.birth_datetime, datetime(1990, 1, 1, 12, 0))
        self.assertEqual(birth.location.timezone_offset_hours, 8)

    def test_model_passes_through(self):
        birth = BirthData.model_validate(birth_data())
        self.assertIs(parse_birth_data(birth), birth)

    def test_impossible_dates(self):
        self.assertInvalid("birth_date", birth_date="1990-13-01")
        self.assertInvalid("birth_date", birth_date="1990-02-30")
        self.assertInvalid("birth_date", birth_date="1990/01/01")
        self.assertInvalid("birth_date", birth_date="90-01-01")

    def test_bad_times(self):
        self.assertInvalid("birth_time", birth_time="24:00")
        self.assertInvalid("birth_time", birth_time="12:60")
        self.assertInvalid("birth_time", birth_time="9:30")

    def test_surrounding_whitespace_rejected(self):
        self.assertInvalid("birth_date", birth_date="1990-01-01\n")
        self.assertInvalid("birth_date", birth_date=" 1990-01-01")
        self.assertInvalid("birth_time", birth_time="12:00\n")
        self.assertInvalid("birth_time", birth_time="12:00 ")

    def test_non_ascii_digits_rejected(self):
        self.assertInvalid("birth_time", birth_time="１２:００")

    def test_bad_gender(self):
        self.assertInvalid("gender", gender="other")

    def test_bad_location(self):
        self.assertInvalid("location.latitude",
                           location={"latitude": 100, "longitude": 116.4})
        self.assertInvalid("location.longitude",
                           location={"latitude": 39.9, "longitude": -181})
        self.assertInvalid("location.timezone_offset_hours",
                           location={"latitude": 39.9, "longitude": 116.4,
                                     "timezone_offset_hours": 15})

    def test_missing_field(self):
        data = birth_data()
        del data["birth_time"]
        with self.assertRaises(InvalidInput) as ctx:
            parse_birth_data(data)
        self.assertEqual(ctx.exception.field, "birth_time")

    def test_name_too_long(self):
        self.assertInvalid("name", name="x" * 51)

    def test_year_range(self):
        err = self.assertInvalid("birth_date", birth_date="1850-06-01")
        self.assertIn("1900-2100", err.message)
        with self.assertRaises(InvalidInput):
            parse_birth_data(birth_data(birth_date="1960-06-01"), min_year=1970, max_year=2000)

    def test_error_payload(self):
        err = self.assertInvalid("birth_date", birth_date="1990-13-01")
        payload = err.to_dict()
        self.assertEqual(payload["error"], "invalid_input")
        self.assertEqual(payload["field"], "birth_date")
        self.assertTrue(payload["message"])

    def test_error_hierarchy(self):
        self.assertTrue(issubclass(InvalidInput, ValueError))
        self.assertTrue(issubclass(InvalidInput, LifeKlineError))
        self.assertTrue(issubclass(CalendricalResolutionFailure, LifeKlineError))


class TestTimezone(unittest.TestCase):

    def test_explicit_offset_trusted(self):
        birth = parse_birth_data(birth_data())
        self.assertEqual(resolve_timezone_offset(birth), (8, datetime(1990, 1, 1, 12, 0)))

    def test_detect_beijing(self):
        clock, standard, tz_name, dst = utc_offset_for(39.9042, 116.4074, datetime(1990, 1, 1, 12))
        self.assertEqual(tz_name, "Asia/Shanghai")
        self.assertEqual((clock, standard, dst), (8.0, 8.0, False))

    def test_china_dst_stripped(self):
        # China observed DST from 1986 to 1991
        birth = parse_birth_data(birth_data(
            birth_date="1988-07-01",
            location={"latitude": 39.9042, "longitude": 116.4074},
        ))
        offset, local_dt = resolve_timezone_offset(birth)
        self.assertEqual(offset, 8.0)
        self.assertEqual(local_dt, datetime(1988, 7, 1, 11, 0))

    def test_new_york_summer(self):
        clock, standard, tz_name, dst = utc_offset_for(40.7128, -74.0060, datetime(2000, 7, 1, 12))
        self.assertEqual(tz_name, "America/New_York")
        self.assertEqual((clock, standard, dst), (-4.0, -5.0, True))

    def test_no_dst_without_detection(self):
        birth = parse_birth_data(birth_data(location={"latitude": 39.9042, "longitude": 116.4074}))
        self.assertEqual(resolve_timezone_offset(birth), (8.0, datetime(1990, 1, 1, 12, 0)))


if __name__ == "__main__":
    unittest.main()
