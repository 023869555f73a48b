"""
Billing period arithmetic.

Two deliberately different calculations:
- next_payment moves by true calendar units (Jan 31 + 1 month = Feb 29/28)
- license expiry extends by a fixed day table (month = 30 days, year = 365)

License expiry is approximate insurance on top of billing, so the two are not
unified.
"""

from datetime import datetime

from dateutil.relativedelta import relativedelta

from packages.subscriptions.models.domain.enums import BillingPeriod

EXTENSION_DAYS_PER_UNIT = {
    BillingPeriod.DAY: 1,
    BillingPeriod.WEEK: 7,
    BillingPeriod.MONTH: 30,
    BillingPeriod.YEAR: 365,
}

# Used when the period is not recognised
DEFAULT_EXTENSION_DAYS = 365


def period_delta(period: BillingPeriod, interval: int) -> relativedelta:
    """Calendar delta for `interval` units of `period`."""
    period = BillingPeriod(period)
    if period == BillingPeriod.DAY:
        return relativedelta(days=interval)
    if period == BillingPeriod.WEEK:
        return relativedelta(weeks=interval)
    if period == BillingPeriod.MONTH:
        return relativedelta(months=interval)
    return relativedelta(years=interval)


def advance(moment: datetime, period: BillingPeriod, interval: int) -> datetime:
    """Add one billing period to `moment` using calendar arithmetic."""
    return moment + period_delta(period, interval)


def extension_days(period: str, interval: int) -> int:
    """Days to extend a license by for one billing period."""
    try:
        per_unit = EXTENSION_DAYS_PER_UNIT[BillingPeriod(period)]
    except ValueError:
        return DEFAULT_EXTENSION_DAYS
    return per_unit * int(interval)
