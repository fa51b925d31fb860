"""Repayment schedule generation for financed rent deals"""

from datetime import date
from decimal import Decimal
from fractions import Fraction
from typing import Iterable, List, Union

from shelterflex_gateway.domain.exceptions import ValidationError
from shelterflex_gateway.domain.models import ScheduleItem, ScheduleItemStatus
from shelterflex_gateway.utils.date_utils import add_days, add_months

GRACE_PERIOD_DAYS = 5

Amount = Union[int, Decimal]


def _round_half_up(value: Fraction) -> Decimal:
    """Round an exact rational to 2 decimal places, halves away from zero"""
    scaled = abs(value) * 100
    minor = int(scaled + Fraction(1, 2))
    if value < 0:
        minor = -minor
    return Decimal(minor).scaleb(-2)


def generate_schedule(
    financed_amount: Amount,
    term_months: int,
    start_date: date,
) -> List[ScheduleItem]:
    """
    Generate a monthly amortization schedule for a financed amount.

    Requirements:
    - One item per month, periods 1..term_months
    - Due dates are calendar months after start_date (not 30-day steps)
    - Every period but the last is the exact monthly share rounded half-up
    - Last period absorbs the accumulated rounding error so the schedule
      sums to financed_amount exactly

    Args:
        financed_amount: Annual rent minus deposit
        term_months: Number of monthly payments
        start_date: Origination date; period 1 falls one month later

    Returns:
        List of ScheduleItem, all upcoming

    Example:
        800000 over 3 months → [266666.67, 266666.67, 266666.66]
    """
    if term_months < 1:
        raise ValidationError(
            "Term months must be a positive integer",
            {"termMonths": term_months},
        )

    total = Fraction(str(financed_amount))
    base_amount = _round_half_up(total / term_months)

    schedule = []
    for period in range(1, term_months):
        schedule.append(
            ScheduleItem(
                period=period,
                due_date=add_months(start_date, period),
                amount=base_amount,
            )
        )

    # Final period is the correction term, not an independent rounding
    allocated = sum((Fraction(item.amount) for item in schedule), Fraction(0))
    schedule.append(
        ScheduleItem(
            period=term_months,
            due_date=add_months(start_date, term_months),
            amount=_round_half_up(total - allocated),
        )
    )

    return schedule


def recompute_statuses(
    schedule: Iterable[ScheduleItem],
    current_date: date,
    paid_periods: Iterable[int] = (),
    grace_period_days: int = GRACE_PERIOD_DAYS,
) -> List[ScheduleItem]:
    """
    Derive each item's status from the calendar and the set of paid periods.

    paid → period is in paid_periods
    upcoming → current_date before due_date
    due → within grace_period_days after due_date (inclusive)
    late → otherwise
    """
    paid = set(paid_periods)
    updated = []

    for item in schedule:
        if item.period in paid:
            status = ScheduleItemStatus.PAID
        elif current_date < item.due_date:
            status = ScheduleItemStatus.UPCOMING
        elif current_date <= add_days(item.due_date, grace_period_days):
            status = ScheduleItemStatus.DUE
        else:
            status = ScheduleItemStatus.LATE

        updated.append(
            ScheduleItem(
                period=item.period,
                due_date=item.due_date,
                amount=item.amount,
                status=status,
            )
        )

    return updated


def calculate_total_paid(schedule: Iterable[ScheduleItem], paid_periods: Iterable[int]) -> Decimal:
    """Sum of amounts for the given paid periods"""
    paid = set(paid_periods)
    return sum((item.amount for item in schedule if item.period in paid), Decimal("0.00"))


def calculate_remaining_balance(schedule: Iterable[ScheduleItem], paid_periods: Iterable[int]) -> Decimal:
    """Sum of amounts still owed"""
    paid = set(paid_periods)
    return sum((item.amount for item in schedule if item.period not in paid), Decimal("0.00"))


def paid_periods_of(schedule: Iterable[ScheduleItem]) -> List[int]:
    """Periods already marked paid"""
    return [item.period for item in schedule if item.status == ScheduleItemStatus.PAID]
