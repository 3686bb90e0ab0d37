"""Unit conversions for values reported by gpsd.

gpsd reports speeds in meters per second and distances in meters.
"""

from __future__ import annotations

KILOMETERS_IN_MILE = 1.609344
KILOMETERS_IN_NAUTICAL_MILE = 1.852
METERS_IN_FOOT = 0.3048
KILOMETERS_PER_HOUR_IN_METER_PER_SECOND = 3.6
SECONDS_IN_MINUTE = 60
METERS_IN_KILOMETER = 1000


def meters_per_second_to_kilometers_per_hour(meters_per_second: float) -> float:
    return meters_per_second * KILOMETERS_PER_HOUR_IN_METER_PER_SECOND


def meters_per_second_to_miles_per_hour(meters_per_second: float) -> float:
    return meters_per_second_to_kilometers_per_hour(meters_per_second) / KILOMETERS_IN_MILE


def meters_per_second_to_knots(meters_per_second: float) -> float:
    return meters_per_second_to_kilometers_per_hour(meters_per_second) / KILOMETERS_IN_NAUTICAL_MILE


def meters_per_second_to_feet_per_minute(meters_per_second: float) -> float:
    return meters_per_second * SECONDS_IN_MINUTE / METERS_IN_FOOT


def meters_to_nautical_miles(meters: float) -> float:
    return meters / METERS_IN_KILOMETER / KILOMETERS_IN_NAUTICAL_MILE


def meters_to_feet(meters: float) -> float:
    return meters / METERS_IN_FOOT
