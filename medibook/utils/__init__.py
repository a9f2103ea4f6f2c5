"""Utility functions package."""

from .clock import hours_until, is_future, iter_slots, parse_date, parse_time, weekday_of
from .geo import distance_km, estimated_travel_minutes, round_half_up

__all__ = [
    "hours_until",
    "is_future",
    "iter_slots",
    "parse_date",
    "parse_time",
    "weekday_of",
    "distance_km",
    "estimated_travel_minutes",
    "round_half_up",
]
