from __future__ import annotations

import logging
from typing import Any, Sequence

from ..common.geo import GeoPoint
from ..common.validators import require_int, require_positive_radius
from ..core.enums import ErrorCode
from ..core.exceptions import AdmissionRejected, NotFoundError
from .model import Center, Geofence
from .repository import CenterRepository

logger = logging.getLogger(__name__)


class CenterService:
    """Use case: read centers and maintain their geofence."""

    def __init__(self, centers: CenterRepository):
        self._centers = centers

    def list_centers(self) -> Sequence[Center]:
        return self._centers.list_all()

    def get(self, center_id: int) -> Center:
        center = self._centers.get_by_id(int(center_id))
        if not center:
            raise NotFoundError("Center not found", code=ErrorCode.CENTER_NOT_FOUND, center_id=int(center_id))
        return center

    def geofence_of(self, center: Center) -> Geofence:
        if not center.has_geofence:
            raise AdmissionRejected(
                "Center geofence is not configured",
                code=ErrorCode.GEOFENCE_NOT_CONFIGURED,
                center_id=center.center_id,
            )
        return Geofence(
            center_id=center.center_id,
            center_name=center.name,
            center_lat=float(center.lat),
            center_lng=float(center.lng),
            radius_meters=float(center.radius_meters),
        )

    def update_location(self, center_id: Any, *, lat: Any, lng: Any, radius_meters: Any) -> Center:
        cid = require_int(center_id, "center_id")
        point = GeoPoint.parse(lat, lng)
        radius = require_positive_radius(radius_meters)

        self.get(cid)
        self._centers.update_location(cid, lat=point.lat, lng=point.lng, radius_meters=radius)
        logger.info("center %s geofence updated (radius=%.1fm)", cid, radius)
        return self.get(cid)
