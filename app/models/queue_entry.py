# app/models/queue_entry.py
"""
Entry queue table.
One row per vehicle confirmed at the entry barrier. A row stays pending until
the assignment resolver matches it to a spot (assigned_at set) or an operator
discards it (row deleted).
"""

from sqlalchemy import Column, Integer, String, DateTime
from app.database import Base


class QueueEntry(Base):
    __tablename__ = "entry_queue"

    id = Column(Integer, primary_key=True, autoincrement=True)
    plate_number = Column(String(20), nullable=False, index=True)
    detected_at = Column(DateTime, nullable=False, index=True)
    assigned_at = Column(DateTime)           # set once matched to a spot
    assigned_spot = Column(Integer)

    def __repr__(self):
        return f"<QueueEntry {self.id} plate={self.plate_number} assigned={self.assigned_at is not None}>"
