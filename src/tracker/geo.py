"""
Great-circle distance between GPS coordinates.

Uses the haversine formula rather than the spherical law of cosines so that
separations of a few meters do not lose precision to cancellation.
"""
import math

# Equatorial radius used for all distance comparisons
EARTH_RADIUS_METERS = 6378100.0


def _hsin(theta: float) -> float:
    """haversin(theta) = sin^2(theta / 2)"""
    return math.sin(theta / 2) ** 2


def distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Distance in meters between two points given in degrees.

    Args:
        lat1, lon1: First point
        lat2, lon2: Second point

    Returns:
        Great-circle distance in meters
    """
    la1, lo1, la2, lo2 = map(math.radians, (lat1, lon1, lat2, lon2))

    h = _hsin(la2 - la1) + math.cos(la1) * math.cos(la2) * _hsin(lo2 - lo1)

    # Rounding can push h a hair past 1.0 for antipodal points
    return 2 * EARTH_RADIUS_METERS * math.asin(math.sqrt(min(1.0, h)))
