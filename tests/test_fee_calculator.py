# tests/test_fee_calculator.py
"""Unit tests for the tiered fee calculator."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import datetime, timedelta
from app.services.fee_calculator import Tariff, billable_minutes, calculate_fee, round_fee

ENTRY = datetime(2026, 3, 2, 9, 0, 0)
TARIFF = Tariff(base=5.00, minute_price=0.10)


class TestBillableMinutes:
    def test_started_minute_is_billed(self):
        assert billable_minutes(ENTRY, ENTRY + timedelta(seconds=1)) == 1
        assert billable_minutes(ENTRY, ENTRY + timedelta(seconds=60)) == 1
        assert billable_minutes(ENTRY, ENTRY + timedelta(seconds=61)) == 2

    def test_zero_and_negative_elapsed(self):
        assert billable_minutes(ENTRY, ENTRY) == 0
        assert billable_minutes(ENTRY, ENTRY - timedelta(minutes=3)) == 0

    def test_exact_hour_has_no_float_drift(self):
        entry = ENTRY + timedelta(milliseconds=100)
        end = entry + timedelta(seconds=3600)
        assert billable_minutes(entry, end) == 60


class TestFeeTiers:
    @pytest.mark.parametrize("elapsed", [
        timedelta(seconds=0),
        timedelta(seconds=30),
        timedelta(minutes=59, seconds=59),
        timedelta(minutes=60),
    ])
    def test_first_hour_is_flat(self, elapsed):
        result = calculate_fee(ENTRY, ENTRY + elapsed, TARIFF)
        assert result.fee == TARIFF.base

    def test_sixty_one_minutes_adds_one_minute_price(self):
        result = calculate_fee(ENTRY, ENTRY + timedelta(minutes=61), TARIFF)
        assert result.elapsed_minutes == 61
        assert result.fee == pytest.approx(5.10)

    def test_one_second_past_the_hour_bills_minute_61(self):
        result = calculate_fee(ENTRY, ENTRY + timedelta(minutes=60, seconds=1), TARIFF)
        assert result.elapsed_minutes == 61
        assert round_fee(result.fee) == 5.10

    def test_long_stay(self):
        result = calculate_fee(ENTRY, ENTRY + timedelta(hours=3), TARIFF)
        assert result.elapsed_minutes == 180
        assert round_fee(result.fee) == 17.00
        assert result.elapsed_seconds == 3 * 3600

    def test_elapsed_seconds_never_negative(self):
        result = calculate_fee(ENTRY, ENTRY - timedelta(seconds=10), TARIFF)
        assert result.elapsed_seconds == 0
        assert result.fee == TARIFF.base


class TestRounding:
    def test_fee_kept_unrounded_until_display(self):
        tariff = Tariff(base=1.0, minute_price=0.333)
        result = calculate_fee(ENTRY, ENTRY + timedelta(minutes=63), tariff)
        assert result.fee == pytest.approx(1.999)
        assert round_fee(result.fee) == 2.0

    def test_round_fee_two_decimals(self):
        assert round_fee(5.104) == 5.10
        assert round_fee(7.0) == 7.0
