"""Great-circle distance helpers."""

import math

EARTH_RADIUS_KM = 6371.0


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Haversine distance between two points.

    Coordinates are in degrees and are expected to be range-checked by the
    caller.

    Returns:
        Distance in kilometres
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    # Rounding can push a marginally past 1 for antipodal points
    a = min(1.0, a)
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def round_half_up(value: float, digits: int = 0) -> float:
    """Round to ``digits`` places with halves going up, not to even."""
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def estimated_travel_minutes(distance: float) -> int:
    """Rough travel time at three minutes per kilometre."""
    return int(round_half_up(distance * 3))
