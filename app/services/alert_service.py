# app/services/alert_service.py
"""
Shared anomaly reporting.
Used by the assignment resolver and the session manager. An anomaly is a
condition that needs an operator (a car parked without passing the entry queue,
a spot freed with nobody on it), never an exception that stops event processing.
"""

from typing import Optional

from app.exceptions import PersistenceError
from app.utils.logger import get_logger

logger = get_logger(__name__)

UNQUEUED_PARKING = "unqueued_parking"
ORPHAN_EXIT = "orphan_exit"
AMBIGUOUS_ASSIGNMENT = "ambiguous_assignment"


async def report_anomaly(store, alert_type: str, description: str, spot_id: Optional[int] = None,
                         plate: Optional[str] = None, source: Optional[str] = None):
    """Log the anomaly and persist it as an alert. A failed write is logged, not raised."""
    logger.warning(f"[ANOMALY][{alert_type.upper()}] {description}")
    try:
        await store.create_alert(alert_type, description, spot_id=spot_id, plate=plate, source=source)
    except PersistenceError as e:
        logger.error(f"[ANOMALY] could not persist {alert_type} alert: {e}")
