"""
Standard response envelope shared by every endpoint.

Success: {"success": true, "data": ..., "message"?: ...}
Error:   {"success": false, "error": {"code", "message", "timestamp", "details"?}}
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


def success_response(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    """Build a success envelope."""
    response: Dict[str, Any] = {"success": True, "data": data}
    if message:
        response["message"] = message
    return response


def error_response(
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build an error envelope.

    Args:
        code: Machine-readable error code (clients should key off this)
        message: Human-readable message
        details: Optional extra context (field name, retryAfter, ...)

    Returns:
        Error envelope dictionary
    """
    error: Dict[str, Any] = {
        "code": code,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }
    if details:
        error["details"] = details
    return {"success": False, "error": error}
