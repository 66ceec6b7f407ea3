"""Billing cycle date math.

All functions are pure: callers pass the reference date explicitly and
nothing here reads the wall clock.
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Iterator, NamedTuple

from dateutil.relativedelta import relativedelta

from mealcycle.db.models.enums import BillingPeriod

MONDAY = 0


class CycleBoundaries(NamedTuple):
    cycle_start: date
    cycle_end: date
    renewal_date: date


def get_next_monday(day: date) -> date:
    """Return the first Monday strictly after ``day``.

    Sunday maps to the following day and Monday maps to one week later.
    """

    return day + timedelta(days=7 - day.weekday())


def get_next_month_start(day: date) -> date:
    """Return the 1st of the calendar month after ``day``'s month."""

    return day.replace(day=1) + relativedelta(months=1)


def get_cycle_boundaries(period: BillingPeriod | str, start_date: date) -> CycleBoundaries:
    """Compute the first full cycle following ``start_date``."""

    period = BillingPeriod(period)
    if period == BillingPeriod.WEEKLY:
        cycle_start = get_next_monday(start_date)
        cycle_end = cycle_start + timedelta(days=6)
    elif period == BillingPeriod.MONTHLY:
        cycle_start = get_next_month_start(start_date)
        cycle_end = cycle_start + relativedelta(months=1, days=-1)
    else:  # pragma: no cover - exhaustive over BillingPeriod
        raise ValueError(f"Unknown billing period: {period}")
    return CycleBoundaries(cycle_start, cycle_end, cycle_end + timedelta(days=1))


def cycle_for_renewal(period: BillingPeriod | str, renewal_date: date) -> CycleBoundaries:
    """Cycle billed on ``renewal_date``; it starts on the renewal date itself."""

    return get_cycle_boundaries(period, renewal_date - timedelta(days=1))


def iter_service_dates(start: date, end: date, weekdays: Iterable[int]) -> Iterator[date]:
    """Yield dates in ``[start, end]`` whose ``weekday()`` is selected."""

    selected = frozenset(int(w) for w in weekdays)
    day = start
    while day <= end:
        if day.weekday() in selected:
            yield day
        day += timedelta(days=1)


def first_full_cycle(period: BillingPeriod | str, start_date: date) -> CycleBoundaries:
    """First complete cycle starting on or after ``start_date``."""

    return get_cycle_boundaries(period, start_date - timedelta(days=1))


def prorated_span(period: BillingPeriod | str, start_date: date) -> tuple[date, date] | None:
    """Days from ``start_date`` up to the first full cycle, or ``None`` if empty."""

    first_full = first_full_cycle(period, start_date)
    if first_full.cycle_start <= start_date:
        return None
    return start_date, first_full.cycle_start - timedelta(days=1)
