# app/utils/json_parser.py
"""
Helpers for parsing JSON payloads from the parking controller.
The firmware is not strict about key names or types, so lookups are lenient.
"""

import json
from typing import Optional, Any


def safe_parse_json(raw_body: bytes) -> Optional[Any]:
    """Parse JSON bytes safely. Returns None on error."""
    try:
        return json.loads(raw_body.decode("utf-8", errors="replace"))
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


def get_first(data: dict, *keys: str, default: Any = None) -> Any:
    """Value of the first key present in data (firmware versions disagree on names)."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default
