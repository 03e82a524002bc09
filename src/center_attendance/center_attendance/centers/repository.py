from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import Center


class CenterRepository(Protocol):
    def get_by_id(self, center_id: int) -> Optional[Center]:
        raise NotImplementedError

    def get_by_code(self, code: str) -> Optional[Center]:
        raise NotImplementedError

    def list_all(self) -> Sequence[Center]:
        raise NotImplementedError

    def update_location(self, center_id: int, *, lat: float, lng: float, radius_meters: float) -> bool:
        raise NotImplementedError
