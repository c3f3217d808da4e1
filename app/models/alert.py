# app/models/alert.py
"""
Alerts table — stores reconciliation anomalies (parking with an empty queue,
spot freed with no active session, ambiguous assignment waiting for an operator).
Written by alert_service on behalf of the resolver and the session manager.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text
from app.database import Base


class Alert(Base):
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    alert_type = Column(String(50), nullable=False, index=True)
    spot_id = Column(Integer)
    plate_number = Column(String(20))
    source = Column(String(100))             # topic or operation that raised it
    description = Column(Text)
    is_resolved = Column(Integer, default=0, nullable=False)
    triggered_at = Column(DateTime, nullable=False, index=True)
    resolved_at = Column(DateTime)

    def __repr__(self):
        return f"<Alert {self.id} type={self.alert_type} resolved={self.is_resolved}>"
