from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, optional_float
from .model import Center
from .repository import CenterRepository

_COLUMNS = "center_id, name, code, lat, lng, radius_meters"


def _to_center(r: dict) -> Center:
    return Center(
        center_id=int(r["center_id"]),
        name=r["name"],
        code=r["code"],
        lat=optional_float(r.get("lat")),
        lng=optional_float(r.get("lng")),
        radius_meters=optional_float(r.get("radius_meters")),
    )


class MySQLCenterRepository(CenterRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, center_id: int) -> Optional[Center]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM centers WHERE center_id=%s", (int(center_id),))
            r = fetchone(cur)
            return _to_center(r) if r else None

    def get_by_code(self, code: str) -> Optional[Center]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM centers WHERE code=%s", (code,))
            r = fetchone(cur)
            return _to_center(r) if r else None

    def list_all(self) -> Sequence[Center]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM centers ORDER BY name ASC")
            return [_to_center(r) for r in fetchall(cur)]

    def update_location(self, center_id: int, *, lat: float, lng: float, radius_meters: float) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE centers SET lat=%s, lng=%s, radius_meters=%s WHERE center_id=%s",
                (lat, lng, radius_meters, int(center_id)),
            )
            return cur.rowcount > 0
