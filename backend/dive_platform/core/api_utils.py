"""
Common API utilities for consistent response formatting across all controllers.
"""

from typing import Any, Callable, Dict, Optional, Tuple

from flask import current_app, jsonify, request

from dive_platform.utils.pagination import normalize_pagination


def api_response(
    data: Optional[Any] = None,
    message: Optional[str] = None,
    status_code: int = 200,
    pagination: Optional[Dict[str, Any]] = None,
) -> tuple:
    """
    Standardized success response.

    Returns:
        Tuple of (json_response, status_code) shaped as
        ``{"success": true, "data": ..., "message"?: ..., "pagination"?: ...}``
    """
    response: Dict[str, Any] = {"success": True}
    if data is not None:
        response["data"] = data
    if message:
        response["message"] = message
    if pagination is not None:
        response["pagination"] = pagination
    return jsonify(response), status_code


def paginated_response(
    page_result: Dict[str, Any],
    serialize: Optional[Callable[[Any], Any]] = None,
    status_code: int = 200,
) -> tuple:
    """Wrap the output of ``utils.pagination.paginate``, serializing each row."""
    items = page_result["data"]
    if serialize is not None:
        items = [serialize(item) for item in items]
    return api_response(
        data=items,
        pagination=page_result["pagination"],
        status_code=status_code,
    )


def error_response(
    code: str,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None,
) -> tuple:
    error: Dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return jsonify({"success": False, "error": error}), status_code


def get_json_body() -> Dict[str, Any]:
    """Request JSON as a dict; anything else (missing, list, invalid) becomes {}."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def query_int(name: str, default: Optional[int] = None) -> Optional[int]:
    value = request.args.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


def query_bool(name: str) -> Optional[bool]:
    value = request.args.get(name)
    if value is None or value == "":
        return None
    return value.lower() in ("true", "1", "yes")


def client_ip() -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr


def verify_health_token() -> bool:
    """Check X-Health-Token against the configured token (deny when unset)."""
    token = request.headers.get("X-Health-Token")
    expected = current_app.config.get("HEALTH_CHECK_TOKEN")
    if not expected:
        return False
    return bool(token and token == expected)


def page_params() -> Tuple[int, int]:
    """Normalized ``(page, limit)`` from the query string."""
    return normalize_pagination(query_int("page"), query_int("limit"))
