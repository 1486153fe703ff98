"""
Financial Context Formatting

Renders incomes and expenses as the markdown snapshot the assistant reads.
Amounts are converted into the user's currency before they are shown or
summed.
"""

import calendar
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, Sequence, Union

import structlog

from money_manager.models.chat import DateRangePreset, FinancialDataSummary
from money_manager.models.finance import Expense, Income
from money_manager.utils.money import to_decimal, to_money


CURRENCY_SYMBOLS = {
    "USD": "$ ",
    "INR": "₹ ",
    "NPR": "₨ ",
}
DEFAULT_SYMBOL = "$"

# Value of one unit in NPR: 1 INR = 1.6 NPR, 1 USD = 140 NPR
NPR_PER_UNIT = {
    "USD": Decimal("140"),
    "INR": Decimal("1.6"),
    "NPR": Decimal("1"),
}

TABLE_HEADER = (
    "| Date | Title | Category | Account | Amount | Tags | Notes |\n"
    "|------|-------|----------|---------|---------|------|-------|\n"
)

Entry = Union[Income, Expense]

logger = structlog.get_logger()


def currency_symbol(code: Optional[str]) -> str:
    return CURRENCY_SYMBOLS.get((code or "").upper(), DEFAULT_SYMBOL)


def format_currency(amount, code: Optional[str]) -> str:
    """
    Symbol, thousands separators and two decimals.

    >>> format_currency(Decimal("1234.5"), "INR")
    '₹ 1,234.50'
    """
    value = to_decimal(amount)
    if not value.is_finite():
        value = Decimal("0")
    return f"{currency_symbol(code)}{to_money(value):,.2f}"


def convert_currency(amount, from_code: Optional[str], to_code: Optional[str]) -> Decimal:
    """
    Convert between USD, INR and NPR at fixed rates.

    Amounts without a currency and unknown currencies pass through
    unchanged.
    """
    value = to_decimal(amount)
    source, target = (from_code or "").upper(), (to_code or "").upper()
    if not source or not target or source == target:
        return value
    if source not in NPR_PER_UNIT or target not in NPR_PER_UNIT:
        logger.warning("Currency conversion not available", source=source, target=target)
        return value
    return value * NPR_PER_UNIT[source] / NPR_PER_UNIT[target]


def _table(title: str, entries: Sequence[Entry], currency: str) -> str:
    lines = [f"## {title} ({len(entries)} items)\n\n", TABLE_HEADER]
    for entry in entries:
        amount = format_currency(convert_currency(entry.amount, entry.currency, currency), currency)
        tags = ", ".join(entry.tags) if entry.tags else "None"
        notes = entry.notes or "None"
        lines.append(
            f"| {entry.date.isoformat()} | {entry.title} | {entry.category.name} | "
            f"{entry.account_label} | {amount} | {tags} | {notes} |\n"
        )
    lines.append("\n")
    return "".join(lines)


def _breakdown(title: str, entries: Sequence[Entry], currency: str) -> str:
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for entry in entries:
        totals[entry.category.name] += convert_currency(entry.amount, entry.currency, currency)

    lines = [f"### {title}\n"]
    for name, total in sorted(totals.items(), key=lambda item: item[1], reverse=True):
        lines.append(f"- **{name}**: {format_currency(total, currency)}\n")
    lines.append("\n")
    return "".join(lines)


def format_financial_data_as_markdown(
    incomes: Sequence[Entry],
    expenses: Sequence[Entry],
    currency: str,
    summary: FinancialDataSummary,
) -> str:
    parts = [
        "# Financial Data Summary\n\n",
        f"## Summary for {summary.period}\n",
        f"- **Total Income**: {format_currency(summary.total_income, currency)}\n",
        f"- **Total Expenses**: {format_currency(summary.total_expenses, currency)}\n",
        f"- **Net Amount**: {format_currency(summary.net_amount, currency)}\n",
        f"- **Total Transactions**: {summary.transaction_count}\n",
        f"- **Currency**: {currency}\n\n",
    ]

    if incomes:
        parts.append(_table("Income Transactions", incomes, currency))
    if expenses:
        parts.append(_table("Expense Transactions", expenses, currency))

    if incomes or expenses:
        parts.append("## Category Breakdown\n\n")
        if incomes:
            parts.append(_breakdown("Income by Category", incomes, currency))
        if expenses:
            parts.append(_breakdown("Expenses by Category", expenses, currency))

    return "".join(parts)


def _month_end(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def get_date_range_presets(today: Optional[date] = None) -> dict[str, DateRangePreset]:
    """Named ranges offered by the financial data picker."""
    today = today or date.today()
    year, month = today.year, today.month
    last_month_year, last_month = (year - 1, 12) if month == 1 else (year, month - 1)
    quarter_start = (month - 1) // 3 * 3 + 1

    return {
        "this_month": DateRangePreset(
            label="This Month",
            start_date=date(year, month, 1),
            end_date=_month_end(year, month),
        ),
        "last_month": DateRangePreset(
            label="Last Month",
            start_date=date(last_month_year, last_month, 1),
            end_date=_month_end(last_month_year, last_month),
        ),
        "this_quarter": DateRangePreset(
            label="This Quarter",
            start_date=date(year, quarter_start, 1),
            end_date=_month_end(year, quarter_start + 2),
        ),
        "this_year": DateRangePreset(
            label="This Year",
            start_date=date(year, 1, 1),
            end_date=date(year, 12, 31),
        ),
        "last_year": DateRangePreset(
            label="Last Year",
            start_date=date(year - 1, 1, 1),
            end_date=date(year - 1, 12, 31),
        ),
        "last_30_days": DateRangePreset(
            label="Last 30 Days",
            start_date=today - timedelta(days=30),
            end_date=today,
        ),
        "last_90_days": DateRangePreset(
            label="Last 90 Days",
            start_date=today - timedelta(days=90),
            end_date=today,
        ),
    }
