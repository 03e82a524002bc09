from __future__ import annotations

import io
from typing import Any

import qrcode
from PIL import Image

from ..core.constants import BADGE_PREFIX
from ..core.exceptions import ValidationError


def badge_payload(student_id: int) -> str:
    return f"{BADGE_PREFIX}{int(student_id)}"


def parse_badge(value: Any) -> int:
    """Student id from a badge string; a bare number is accepted too."""

    raw = str(value or "").strip()
    if raw.upper().startswith(BADGE_PREFIX):
        raw = raw[len(BADGE_PREFIX):]
    try:
        student_id = int(raw)
    except ValueError:
        raise ValidationError("Unrecognized badge code", field="badge")
    if student_id <= 0:
        raise ValidationError("Unrecognized badge code", field="badge")
    return student_id


def render_badge_png(student_id: int, *, box_size: int = 8) -> bytes:
    qr = qrcode.QRCode(border=2, box_size=box_size)
    qr.add_data(badge_payload(student_id))
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    out = io.BytesIO()
    img.save(out, format="PNG")
    return out.getvalue()


def decode_badge_image(data: bytes) -> int:
    """Decode an uploaded QR photo into a student id."""

    # pyzbar loads the zbar shared library on import; only the upload path needs it.
    from pyzbar.pyzbar import decode as pyzbar_decode

    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (OSError, ValueError):
        raise ValidationError("Badge image could not be read", field="file")

    for symbol in pyzbar_decode(image):
        payload = symbol.data.decode("utf-8", errors="replace")
        if payload.upper().startswith(BADGE_PREFIX):
            return parse_badge(payload)
    raise ValidationError("No badge QR code found in image", field="file")
