"""
CLI wrapper for compute_life_kline().

Usage:
    python3 -m lifekline.run --birth-date YYYY-MM-DD --birth-time HH:MM \
        --gender GENDER --latitude LAT --longitude LON \
        [--utc-offset OFFSET] [--name NAME] [--start-year YEAR] \
        [--calendar swisseph|lunar] [--start-age-method solar_term|fixed] \
        [--solar-time-method offset|corrected]
"""

import argparse
import json
import logging
import sys

from lifekline.config import (
    CALENDAR_BACKENDS, HOUR_SLOT_MODES, SOLAR_TIME_METHODS, START_AGE_METHODS, EngineConfig,
)
from lifekline.create_chart import compute_life_kline
from lifekline.errors import CalendricalResolutionFailure, InvalidInput


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compute a BaZi chart and its 100-year life K-line.")
    parser.add_argument("--name")
    parser.add_argument("--birth-date", required=True, dest="birth_date")
    parser.add_argument("--birth-time", required=True, dest="birth_time")
    parser.add_argument("--gender", required=True, choices=["male", "female"])
    parser.add_argument("--latitude", required=True, type=float)
    parser.add_argument("--longitude", required=True, type=float)
    parser.add_argument("--utc-offset", dest="utc_offset", type=float, default=None,
                        help="standard UTC offset in hours (default: detect from coordinates)")
    parser.add_argument("--start-year", dest="start_year", type=int, default=None)
    parser.add_argument("--calendar", choices=CALENDAR_BACKENDS, default=None)
    parser.add_argument("--start-age-method", dest="start_age_method",
                        choices=START_AGE_METHODS, default=None)
    parser.add_argument("--hour-slot-mode", dest="hour_slot_mode",
                        choices=HOUR_SLOT_MODES, default=None)
    parser.add_argument("--solar-time-method", dest="solar_time_method",
                        choices=SOLAR_TIME_METHODS, default=None)
    parser.add_argument("--indent", type=int, default=2)
    parser.add_argument("--log-level", dest="log_level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = EngineConfig.from_env().with_overrides(
        calendar_backend=args.calendar,
        start_age_method=args.start_age_method,
        hour_slot_mode=args.hour_slot_mode,
        solar_time_method=args.solar_time_method,
    )
    birth_data = {
        "name": args.name,
        "gender": args.gender,
        "birth_date": args.birth_date,
        "birth_time": args.birth_time,
        "location": {
            "latitude": args.latitude,
            "longitude": args.longitude,
            "timezone_offset_hours": args.utc_offset,
        },
    }

    try:
        result = compute_life_kline(birth_data, config=config, start_year=args.start_year)
    except (InvalidInput, CalendricalResolutionFailure) as exc:
        print(json.dumps(exc.to_dict(), ensure_ascii=False), file=sys.stderr)
        return 2

    print(json.dumps(result.to_dict(), indent=args.indent, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
