from __future__ import annotations

import math
from typing import Any, Optional

from ..core.exceptions import ValidationError


def require_non_empty(value: Optional[str], field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} is required", field=field_name)
    return str(value).strip()


def require_min_length(value: Optional[str], field_name: str, min_len: int) -> str:
    if value is None or len(value) < min_len:
        raise ValidationError(f"{field_name} must be at least {min_len} characters", field=field_name)
    return value


def require_int(value: Any, field_name: str) -> int:
    try:
        result = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer", field=field_name)
    if result <= 0:
        raise ValidationError(f"{field_name} must be positive", field=field_name)
    return result


def require_float(value: Any, field_name: str) -> float:
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field_name} is required", field=field_name)
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number", field=field_name)
    if not math.isfinite(result):
        raise ValidationError(f"{field_name} must be a finite number", field=field_name)
    return result


def optional_float(value: Any, field_name: str) -> Optional[float]:
    if value is None or value == "":
        return None
    return require_float(value, field_name)


def require_latitude(value: Any) -> float:
    lat = require_float(value, "lat")
    if not -90.0 <= lat <= 90.0:
        raise ValidationError("lat must be within [-90, 90]", field="lat")
    return lat


def require_longitude(value: Any) -> float:
    lng = require_float(value, "lng")
    if not -180.0 <= lng <= 180.0:
        raise ValidationError("lng must be within [-180, 180]", field="lng")
    return lng


def optional_accuracy(value: Any) -> Optional[float]:
    accuracy = optional_float(value, "accuracy")
    if accuracy is not None and accuracy < 0:
        raise ValidationError("accuracy must not be negative", field="accuracy")
    return accuracy


def require_positive_radius(value: Any) -> float:
    radius = require_float(value, "radius_meters")
    if radius <= 0:
        raise ValidationError("radius_meters must be positive", field="radius_meters")
    return radius


def optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
