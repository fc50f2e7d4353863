from __future__ import annotations

import math
from dataclasses import dataclass

EARTH_RADIUS_M = 6_371_000.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = phi2 - phi1
    dlambda = math.radians(lon2 - lon1)
    a = (
        math.sin(dphi / 2.0) ** 2
        + (math.cos(phi1) * math.cos(phi2) * (math.sin(dlambda / 2.0) ** 2))
    )
    return 2.0 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(max(0.0, a))))


@dataclass(frozen=True)
class Ellipse:
    """Two-focus region used to bound the candidate arc search.

    A point lies inside when the great-circle distances to both foci sum to
    at most ``radius``. Straight-line distance never exceeds road distance, so
    any point on a start->end path of cost <= radius is contained; the test
    may admit points that fail the exact path cost check later.
    """

    focus1: tuple[float, float]
    focus2: tuple[float, float]
    radius: float

    def contains(self, lat: float, lon: float) -> bool:
        d1 = haversine_m(lat, lon, self.focus1[0], self.focus1[1])
        d2 = haversine_m(lat, lon, self.focus2[0], self.focus2[1])
        return d1 + d2 <= self.radius

    def contains_all(self, points: tuple[tuple[float, float], ...]) -> bool:
        return all(self.contains(lat, lon) for lat, lon in points)
