from __future__ import annotations

import logging
from datetime import date
from functools import wraps
from typing import Any, Callable, Optional

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

from ..attendance.model import ClientAudit
from ..core.enums import ErrorCode, Role
from ..core.exceptions import AuthorizationError, DomainError, ValidationError
from ..users.service import AuthService, SessionUser
from .datetime_utils import parse_iso_date

logger = logging.getLogger(__name__)

HTTP_STATUS = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.NO_CHANGES: 400,
    ErrorCode.CHECKOUT_BEFORE_CHECKIN: 400,
    ErrorCode.GEOFENCE_NOT_CONFIGURED: 400,
    ErrorCode.INVALID_CREDENTIALS: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.OUTSIDE_GEOFENCE: 403,
    ErrorCode.STUDENT_NOT_FOUND: 404,
    ErrorCode.CENTER_NOT_FOUND: 404,
    ErrorCode.RECORD_NOT_FOUND: 404,
    ErrorCode.USER_NOT_FOUND: 404,
    ErrorCode.ALREADY_CHECKED_IN: 409,
    ErrorCode.NO_OPEN_SESSION: 409,
    ErrorCode.DAILY_LIMIT_REACHED: 409,
    ErrorCode.OPEN_SESSION_EXISTS: 409,
    ErrorCode.USER_ALREADY_EXISTS: 409,
    ErrorCode.TOO_SOON: 429,
}


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(e: DomainError):
        return jsonify(e.to_dict()), HTTP_STATUS.get(e.code, 400)

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return jsonify({"error": (e.name or "http_error").lower().replace(" ", "_"), "message": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "internal_error"}), 500


def make_guards(auth: AuthService) -> tuple[Callable, Callable]:
    """Return ``(student_required, admin_required)`` decorators bound to ``auth``.

    The authenticated user is stored on ``flask.g.user``.
    """

    def _authenticate() -> SessionUser:
        user = auth.authenticate_headers(request.headers.get("X-User-Id"), request.headers.get("X-User-Password"))
        g.user = user
        return user

    def role_required(role: Role):
        def decorator(view):
            @wraps(view)
            def wrapper(*args, **kwargs):
                user = _authenticate()
                if user.role != role:
                    raise AuthorizationError("Forbidden", required_role=role.value)
                return view(*args, **kwargs)

            return wrapper

        return decorator

    return role_required(Role.STUDENT), role_required(Role.ADMIN)


def current_user() -> SessionUser:
    return g.user


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("JSON object expected")
    return data


def client_audit(body: Optional[dict] = None) -> ClientAudit:
    forwarded = request.headers.get("X-Forwarded-For", "")
    ip = forwarded.split(",")[0].strip() if forwarded else request.remote_addr
    device = (body or {}).get("deviceId") or request.headers.get("X-Device-Id")
    return ClientAudit(
        device_id=str(device)[:128] if device else None,
        ip_address=ip or None,
        user_agent=(request.headers.get("User-Agent") or None),
    )


def query_date(name: str, default: Optional[date] = None) -> Optional[date]:
    raw = request.args.get(name)
    if not raw:
        return default
    try:
        return parse_iso_date(raw)
    except ValidationError:
        raise ValidationError(f"Invalid {name} (YYYY-MM-DD)", field=name)


def query_int(name: str, default: Optional[int] = None, *, min_value: Optional[int] = None) -> Optional[int]:
    raw = request.args.get(name)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"Invalid {name}", field=name)
    if min_value is not None and value < min_value:
        raise ValidationError(f"{name} must be at least {min_value}", field=name)
    return value


def query_text(name: str) -> Optional[Any]:
    raw = (request.args.get(name) or "").strip()
    return raw or None
