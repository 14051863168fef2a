"""Billing Period Calculator

Maps a customer's billing configuration and a reference date to the
billing period containing that date. Pure and deterministic: the
scheduler and the consolidation use case must always agree on the
period for the same (customer, reference date).
"""

import calendar
from datetime import date, datetime, time, timedelta
from typing import Union
from pydantic import BaseModel
from src.domain.customer import BillingPeriodType, Customer

DateLike = Union[date, datetime]


class BillingPeriod(BaseModel):
    """Inclusive [start, end] calendar-day window"""

    start: date
    end: date
    type: BillingPeriodType
    description: str

    @property
    def start_at(self) -> datetime:
        """First instant of the period"""
        return datetime.combine(self.start, time.min)

    @property
    def end_before(self) -> datetime:
        """First instant after the period (exclusive upper bound)"""
        return datetime.combine(self.end + timedelta(days=1), time.min)

    def contains(self, value: DateLike) -> bool:
        return self.start <= _as_date(value) <= self.end


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


class BillingPeriodCalculator:
    """
    Billing period arithmetic for WEEKLY and MONTHLY customers

    WEEKLY: 7 days starting on the most recent billing_period_start_day
    (1=Monday..7=Sunday) on or before the reference date.

    MONTHLY: from billing_period_start_day of the month through the month's
    last day. A start day beyond the month length is clamped to that month's
    last day, computed per month. A reference date before this month's start
    day belongs to the period that started in the previous month.
    """

    @classmethod
    def current_period(cls, customer: Customer, reference_date: DateLike) -> BillingPeriod:
        """
        Calculate the billing period containing the reference date

        Raises:
            ValueError: if the billing period type or start day is invalid
        """
        period_type = customer.billing_period_type
        if period_type == BillingPeriodType.WEEKLY:
            return cls._weekly_period(customer.billing_period_start_day or 1, _as_date(reference_date))
        if period_type == BillingPeriodType.MONTHLY:
            return cls._monthly_period(customer.billing_period_start_day or 1, _as_date(reference_date))
        raise ValueError(f"Unsupported billing period type: {period_type}")

    @classmethod
    def previous_period(cls, customer: Customer, reference_date: DateLike) -> BillingPeriod:
        """Calculate the period immediately before the one containing the reference date"""
        current = cls.current_period(customer, reference_date)
        return cls.current_period(customer, current.start - timedelta(days=1))

    @classmethod
    def is_period_end(cls, customer: Customer, reference_date: DateLike) -> bool:
        """True when the reference date (calendar day, time ignored) closes its period"""
        day = _as_date(reference_date)
        return cls.current_period(customer, day).end == day

    @staticmethod
    def next_period_start(current_period_end: DateLike) -> date:
        return _as_date(current_period_end) + timedelta(days=1)

    @staticmethod
    def _weekly_period(start_day: int, reference: date) -> BillingPeriod:
        if not 1 <= start_day <= 7:
            raise ValueError(f"Weekly billing start day must be 1..7, got {start_day}")

        days_back = (reference.isoweekday() - start_day) % 7
        start = reference - timedelta(days=days_back)
        end = start + timedelta(days=6)
        iso_year, iso_week, _ = start.isocalendar()

        return BillingPeriod(
            start=start,
            end=end,
            type=BillingPeriodType.WEEKLY,
            description=f"Week {iso_week:02d}, {iso_year}",
        )

    @staticmethod
    def _monthly_period(start_day: int, reference: date) -> BillingPeriod:
        if not 1 <= start_day <= 31:
            raise ValueError(f"Monthly billing start day must be 1..31, got {start_day}")

        year, month = reference.year, reference.month
        start = date(year, month, min(start_day, _days_in_month(year, month)))

        if reference < start:
            year, month = (year - 1, 12) if month == 1 else (year, month - 1)
            start = date(year, month, min(start_day, _days_in_month(year, month)))

        end = date(start.year, start.month, _days_in_month(start.year, start.month))

        return BillingPeriod(
            start=start,
            end=end,
            type=BillingPeriodType.MONTHLY,
            description=f"{calendar.month_name[start.month]} {start.year}",
        )
