# app/utils/plate.py
"""
License plate normalisation.
Operators type plates as "abc-123", "ABC 123" or "ABC123"; all three are the
same vehicle. Separators are stripped before validation and storage.
"""

import re

from app.exceptions import ValidationError

_SEPARATORS = re.compile(r"[-\s]")
_PLATE_RE = re.compile(r"^[A-Z0-9]{3,8}$")


def normalize_plate(raw) -> str:
    """Return the canonical (uppercase, no separators) plate or raise ValidationError."""
    if raw is None or not str(raw).strip():
        raise ValidationError("Plate is required")
    plate = _SEPARATORS.sub("", str(raw)).upper()
    if not _PLATE_RE.match(plate):
        raise ValidationError(f"Invalid plate format: {raw!r} (3-8 letters or digits)")
    return plate
