# app/exceptions.py
"""
Error kinds raised by the reconciliation engine.
Routers turn them into HTTP responses (see main.py); the engine loop logs them.
Anomalies are not exceptions; they are reported through alert_service.
"""


class ParkingError(Exception):
    """Base class for every error the engine raises on purpose."""


class ValidationError(ParkingError):
    """Malformed operator input (bad plate, missing field). Nothing was mutated."""


class NotFound(ParkingError):
    """Queue entry or session no longer exists. Usually lost a race, not a bug."""


class PersistenceError(ParkingError):
    """The store could not complete a write or read. Side effects did not happen."""
