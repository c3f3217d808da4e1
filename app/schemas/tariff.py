# app/schemas/tariff.py
from pydantic import BaseModel, Field


class TariffIn(BaseModel):
    base: float = Field(ge=0, description="Flat fee for the first hour")
    minute_price: float = Field(ge=0, description="Price per minute after the first hour")


class TariffOut(BaseModel):
    base: float
    minute_price: float

    class Config:
        from_attributes = True
