# reride/utils/json_parser.py
"""
Helpers for the JSON boundary shared by the local cache and the gateway.
Both sides store or receive JSON text that may be missing, truncated or corrupt.
"""

import json
from typing import Any, Optional


def safe_parse_json(raw: Optional[str | bytes], default: Any = None) -> Any:
    """Parse JSON text or bytes safely. Returns default on empty input or error."""
    if raw is None:
        return default
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not raw.strip():
        return default
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, ValueError):
        return default


def dump_json(data: Any) -> str:
    """Serialise to compact JSON. Raises TypeError/ValueError for unserialisable data."""
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def extract_error_message(payload: Any) -> Optional[str]:
    """Pull a human-readable message out of an error body ({error} or {reason})."""
    if not isinstance(payload, dict):
        return None
    for key in ("error", "reason"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return None
