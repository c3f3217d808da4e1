# app/models/tariff.py
"""Current tariff. Single row (id=1), updated in place by the admin endpoint."""

from sqlalchemy import Column, Integer, Float, DateTime
from app.database import Base


class TariffSetting(Base):
    __tablename__ = "tariff"

    id = Column(Integer, primary_key=True)
    base = Column(Float, nullable=False)
    minute_price = Column(Float, nullable=False)
    updated_at = Column(DateTime)

    def __repr__(self):
        return f"<TariffSetting base={self.base} minute={self.minute_price}>"
