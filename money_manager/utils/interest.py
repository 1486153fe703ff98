"""
Simple interest on money lent.

    interest = principal x rate/100 x days/365

where days is the longer of (lent -> today) and (lent -> due date), so a
debt with a due date accrues at least its full term.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from money_manager.models.finance import DebtStatus
from money_manager.utils.money import CENT, to_decimal, to_money


DAYS_PER_YEAR = Decimal("365")


@dataclass(frozen=True)
class InterestCalculation:
    original_amount: Decimal
    interest_amount: Decimal
    total_with_interest: Decimal
    days_elapsed: int
    days_total: int


@dataclass(frozen=True)
class RemainingCalculation:
    remaining_amount: Decimal
    total_with_interest: Decimal
    interest_amount: Decimal
    total_repaid: Decimal


def calculate_interest(
    principal: Decimal,
    annual_rate: Decimal,
    lent_date: date,
    due_date: Optional[date] = None,
    today: Optional[date] = None,
) -> InterestCalculation:
    principal = to_decimal(principal)
    annual_rate = to_decimal(annual_rate)
    today = today or date.today()

    if annual_rate == 0:
        return InterestCalculation(principal, Decimal("0"), principal, 0, 0)

    end_date = due_date or today
    days_elapsed = max(0, (today - lent_date).days)
    days_total = max(0, (end_date - lent_date).days)
    days = max(days_elapsed, days_total)

    interest = principal * (annual_rate / 100) * (Decimal(days) / DAYS_PER_YEAR)
    return InterestCalculation(
        original_amount=principal,
        interest_amount=interest,
        total_with_interest=principal + interest,
        days_elapsed=days_elapsed,
        days_total=days_total,
    )


def calculate_remaining_with_interest(
    principal: Decimal,
    annual_rate: Decimal,
    lent_date: date,
    due_date: Optional[date],
    repayments: Iterable[Decimal],
    today: Optional[date] = None,
) -> RemainingCalculation:
    calc = calculate_interest(principal, annual_rate, lent_date, due_date, today)
    repaid = sum((to_decimal(r) for r in repayments), Decimal("0"))
    remaining = max(Decimal("0"), calc.total_with_interest - repaid)
    return RemainingCalculation(
        remaining_amount=remaining,
        total_with_interest=calc.total_with_interest,
        interest_amount=calc.interest_amount,
        total_repaid=repaid,
    )


def determine_debt_status(
    current_status: DebtStatus,
    total_with_interest: Decimal,
    total_repaid: Decimal,
    due_date: Optional[date] = None,
    today: Optional[date] = None,
) -> DebtStatus:
    """
    Status after repayments change.

    DEFAULTED is only ever set by hand and survives repayments.
    """
    if current_status == DebtStatus.DEFAULTED:
        return DebtStatus.DEFAULTED

    today = today or date.today()
    if to_money(total_with_interest) - to_money(total_repaid) < CENT:
        return DebtStatus.FULLY_PAID
    if due_date is not None and due_date < today:
        return DebtStatus.OVERDUE
    if total_repaid > 0:
        return DebtStatus.PARTIALLY_PAID
    return DebtStatus.ACTIVE
