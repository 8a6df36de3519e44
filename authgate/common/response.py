"""
Response bodies
"""

from datetime import datetime, timezone
from typing import Any, Dict


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def error_response(message: str = "Error") -> Dict[str, Any]:
    """Error body. Always a single ``error`` field."""
    return {"error": message}


def health_response() -> Dict[str, Any]:
    return {"status": "ok", "timestamp": utc_timestamp()}
