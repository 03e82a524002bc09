from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Center:
    """Domain entity: a school center with an optional circular geofence."""

    center_id: int
    name: str
    code: str
    lat: Optional[float]
    lng: Optional[float]
    radius_meters: Optional[float]

    @property
    def has_geofence(self) -> bool:
        return self.lat is not None and self.lng is not None and self.radius_meters is not None

    def to_dict(self) -> dict:
        return {
            "id": self.center_id,
            "name": self.name,
            "code": self.code,
            "lat": self.lat,
            "lng": self.lng,
            "radiusMeters": self.radius_meters,
        }


@dataclass(frozen=True)
class Geofence:
    """Read model returned to the student client."""

    center_id: int
    center_name: str
    center_lat: float
    center_lng: float
    radius_meters: float

    def to_dict(self) -> dict:
        return {
            "centerId": self.center_id,
            "centerName": self.center_name,
            "centerLat": self.center_lat,
            "centerLng": self.center_lng,
            "radiusMeters": self.radius_meters,
        }
