"""
Unit tests for billing period arithmetic.
"""

import pytest
from datetime import datetime, timezone

from packages.subscriptions.billing_periods import advance, extension_days
from packages.subscriptions.models.domain.enums import BillingPeriod


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "moment, period, interval, expected",
    [
        (utc(2024, 1, 15), BillingPeriod.MONTH, 1, utc(2024, 2, 15)),
        (utc(2024, 1, 31), BillingPeriod.MONTH, 1, utc(2024, 2, 29)),
        (utc(2023, 1, 31), BillingPeriod.MONTH, 1, utc(2023, 2, 28)),
        (utc(2024, 2, 29), BillingPeriod.YEAR, 1, utc(2025, 2, 28)),
        (utc(2024, 1, 1), BillingPeriod.WEEK, 2, utc(2024, 1, 15)),
        (utc(2024, 1, 1), BillingPeriod.DAY, 14, utc(2024, 1, 15)),
        (utc(2024, 11, 30), BillingPeriod.MONTH, 3, utc(2025, 2, 28)),
    ],
)
def test_advance_uses_calendar_arithmetic(moment, period, interval, expected):
    assert advance(moment, period, interval) == expected


def test_advance_accepts_period_names():
    assert advance(utc(2024, 1, 15), "month", 1) == utc(2024, 2, 15)


@pytest.mark.parametrize(
    "period, interval, expected",
    [
        ("day", 1, 1),
        ("week", 2, 14),
        ("month", 1, 30),
        ("month", 3, 90),
        ("year", 1, 365),
        ("fortnight", 1, 365),
    ],
)
def test_extension_days(period, interval, expected):
    assert extension_days(period, interval) == expected


def test_license_extension_drifts_from_billing_on_purpose():
    """A 31-day month advances billing by 31 days but the license by 30."""
    start = utc(2024, 1, 1)

    billing_days = (advance(start, BillingPeriod.MONTH, 1) - start).days

    assert billing_days == 31
    assert extension_days(BillingPeriod.MONTH, 1) == 30
