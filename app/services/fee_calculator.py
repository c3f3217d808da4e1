# app/services/fee_calculator.py
"""
Tiered parking fee.

  - Up to 60 started minutes: flat tariff.base
  - After that: tariff.base + minute_price for every started minute past 60

Elapsed minutes are rounded UP (a vehicle parked 60 min 1 s pays 61 minutes).
Fees are kept unrounded here; round_fee() is applied only when a value is shown
to an operator or charged, so repeated live quotes never compound rounding error.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

BASE_TIER_MINUTES = 60

_MINUTE_US = 60 * 1_000_000
_ONE_US = timedelta(microseconds=1)


@dataclass(frozen=True)
class Tariff:
    base: float
    minute_price: float


@dataclass(frozen=True)
class FeeBreakdown:
    elapsed_minutes: int     # billed minutes (ceil)
    elapsed_seconds: int     # whole seconds actually elapsed (floor)
    fee: float               # unrounded


def billable_minutes(entry_time: datetime, end_time: datetime) -> int:
    """Started minutes between entry and end. Integer arithmetic, no float drift."""
    elapsed_us = (end_time - entry_time) // _ONE_US
    if elapsed_us <= 0:
        return 0
    return -(-elapsed_us // _MINUTE_US)


def calculate_fee(entry_time: datetime, end_time: datetime, tariff: Tariff) -> FeeBreakdown:
    minutes = billable_minutes(entry_time, end_time)
    seconds = max(0, int((end_time - entry_time).total_seconds()))

    fee = tariff.base
    if minutes > BASE_TIER_MINUTES:
        fee = tariff.base + (minutes - BASE_TIER_MINUTES) * tariff.minute_price

    return FeeBreakdown(elapsed_minutes=minutes, elapsed_seconds=seconds, fee=fee)


def round_fee(fee: float) -> float:
    """Round to cents. Display and final charge only."""
    return round(fee, 2)
