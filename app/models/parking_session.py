# app/models/parking_session.py
"""
Parking sessions table.
Active rows have closed_at NULL; exit_time is frozen once on the first accepted
exit signal. Rates are copied from the tariff when the row is created and are
never updated afterwards.
Closed rows are the payment history used by the dashboard.
"""

from sqlalchemy import Column, Integer, String, DateTime, Float
from app.database import Base


class ParkingSession(Base):
    __tablename__ = "parking_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    plate_number = Column(String(20), nullable=False, index=True)
    spot_id = Column(Integer, nullable=False, index=True)
    entry_time = Column(DateTime, nullable=False, index=True)
    exit_time = Column(DateTime)
    rate_base_at_entry = Column(Float, nullable=False)
    rate_minute_at_entry = Column(Float, nullable=False)
    queue_entry_id = Column(Integer)         # entry_queue.id the session was claimed from
    total_minutes = Column(Integer)          # billed minutes (set on close)
    fee = Column(Float)                      # final charge, 2 dp (set on close)
    closed_at = Column(DateTime, index=True)

    def __repr__(self):
        return f"<ParkingSession {self.id} plate={self.plate_number} spot={self.spot_id} closed={self.closed_at is not None}>"
