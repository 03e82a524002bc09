from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional

from ..core.constants import EARTH_RADIUS_METERS
from .validators import optional_accuracy, require_latitude, require_longitude


@dataclass(frozen=True)
class GeoPoint:
    """A client-reported coordinate with optional GPS accuracy (meters)."""

    lat: float
    lng: float
    accuracy: Optional[float] = None

    @classmethod
    def parse(cls, lat: Any, lng: Any, accuracy: Any = None) -> "GeoPoint":
        return cls(lat=require_latitude(lat), lng=require_longitude(lng), accuracy=optional_accuracy(accuracy))


def distance_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle (haversine) distance between two points on a spherical earth."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c
