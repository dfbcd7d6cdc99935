from datetime import datetime, timezone
from flask import request, current_app
from werkzeug.exceptions import HTTPException, BadRequest, ServiceUnavailable, UnsupportedMediaType, Unauthorized, Forbidden
from typing import Any, Dict, Tuple
from functools import wraps


# -----------------------------
# Domain errors
# -----------------------------

class ValidationError(BadRequest):
    """The movie shape was rejected, either by our validators or by the store."""


class PersistenceError(ServiceUnavailable):
    """The store could not be reached or the write failed."""
    description = "The movie store is unavailable"


# -----------------------------
# JSON error handlers
# -----------------------------

def install_json_error_handlers(app):
    @app.errorhandler(HTTPException)
    def handle_http(e: HTTPException):
        return {
            "error": {
                "status": e.code,
                "code": e.name.replace(" ", "_").upper(),
                "message": e.description
            }
        }, e.code

    @app.errorhandler(Exception)
    def handle_generic(e: Exception):
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        # Avoid leaking details in production responses
        return {
            "error": {
                "status": 500,
                "code": "INTERNAL_SERVER_ERROR",
                "message": "Internal Server Error"
            }
        }, 500


# -----------------------------
# Validators & helpers
# -----------------------------

ALLOWED_ORDERS = {"-created_at", "created_at", "title", "-watched_at"}

def expect_json():
    if request.method in {"POST", "PUT", "PATCH"}:
        ctype = request.headers.get("Content-Type", "")
        if "application/json" not in ctype:
            raise UnsupportedMediaType("Use Content-Type: application/json")

def read_json() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        raise BadRequest("Invalid or missing JSON body")
    if not isinstance(data, dict):
        raise BadRequest("JSON body must be an object")
    return data

def validate_title(v: Any) -> str | None:
    if v is None:
        return None
    if not isinstance(v, str):
        raise ValidationError("title must be a string or null")
    title = v.strip()
    if not title:
        return None
    if len(title) > 255:
        raise ValidationError("title must be ≤ 255 chars")
    return title

def parse_timestamp(v: Any, field: str = "watched_at") -> datetime | None:
    """
    Accepts ISO 8601 strings (a trailing 'Z' means UTC) or datetimes.
    Aware values are converted to naive UTC; naive values are taken as UTC.
    """
    if v in (None, ""):
        return None
    if isinstance(v, datetime):
        ts = v
    elif isinstance(v, str):
        raw = v.strip()
        if raw.endswith(("Z", "z")):
            raw = raw[:-1] + "+00:00"
        try:
            ts = datetime.fromisoformat(raw)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO 8601 timestamp, e.g. '2024-02-10T00:00:00Z'")
    else:
        raise ValidationError(f"{field} must be an ISO 8601 timestamp or null")
    if ts.tzinfo is not None:
        try:
            ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
        except OverflowError:
            raise ValidationError(f"{field} is out of range")
    return ts

def validate_pagination() -> Tuple[int, int]:
    try:
        page = max(int(request.args.get("page", 1)), 1)
        size = int(request.args.get("page_size", 10))
    except Exception:
        raise BadRequest("page and page_size must be integers")
    page_size = max(min(size, 100), 1)
    return page, page_size

def validate_order_param() -> str:
    order = request.args.get("order", "-created_at")
    if order not in ALLOWED_ORDERS:
        raise BadRequest(f"order must be one of {sorted(ALLOWED_ORDERS)}")
    return order


# -----------------------------
# Auth decorator
# -----------------------------

def require_auth(fn):
    """
    If API_TOKEN is configured on the app, require a Bearer token on mutating requests.
    When API_TOKEN is not set, auth is effectively disabled (everything allowed).
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        token = current_app.config.get("API_TOKEN")
        if not token:
            return fn(*args, **kwargs)

        hdr = request.headers.get("Authorization", "")
        parts = hdr.split(" ", 1)
        if len(parts) != 2 or parts[0].lower() != "bearer":
            raise Unauthorized("Missing or invalid Authorization header")
        if parts[1] != token:
            raise Forbidden("Invalid token")
        return fn(*args, **kwargs)
    return wrapper
