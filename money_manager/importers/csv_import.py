"""
CSV Import

Turns an uploaded CSV into entry, debt, repayment or account payloads.
Parsing and row mapping live here; persistence goes through the normal
actions so balances move exactly as they would for hand-entered data.

Headers are matched case-insensitively with spaces, dashes, underscores,
slashes, brackets and percent signs removed, so "Interest Rate (%)"
reads as interestrate.

Expense and income columns:
    title, amount, date, category                      required
    description, account, tags, notes, recurring,
    frequency, currency                                optional

Debt columns:
    borrower name, amount, interest rate, lent date    required
    borrower contact, borrower email, due date,
    status, purpose, notes, id                         optional

Repayment columns:
    debt id, amount, repayment date                    required
    notes                                              optional

Account columns:
    holder name, bank name, account number             required
    branch name, branch code, account type, balance,
    account opening date, nickname, notes              optional
"""

import csv
import io
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Sequence

from money_manager.models.finance import DebtStatus, RecurringFrequency
from money_manager.utils.money import to_money


REQUIRED_COLUMNS = ("title", "amount", "date", "category")
DEBT_COLUMNS = ("borrowername", "amount", "interestrate", "lentdate")
REPAYMENT_COLUMNS = ("debtid", "amount", "repaymentdate")
ACCOUNT_COLUMNS = ("holdername", "bankname", "accountnumber")

DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y", "%d-%m-%Y", "%b %d, %Y", "%d %b %Y")

DEBT_STATUS_ALIASES = {
    "ACTIVE": DebtStatus.ACTIVE,
    "PARTIALLYPAID": DebtStatus.PARTIALLY_PAID,
    "FULLYPAID": DebtStatus.FULLY_PAID,
    "PAID": DebtStatus.FULLY_PAID,
    "OVERDUE": DebtStatus.OVERDUE,
    "LATE": DebtStatus.OVERDUE,
    "DEFAULTED": DebtStatus.DEFAULTED,
    "DEFAULT": DebtStatus.DEFAULTED,
}

_HEADER_NOISE = re.compile(r"[\s\-_/()%]")
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class CsvImportError(Exception):
    """The file as a whole cannot be imported."""
    pass


class RowError(Exception):
    """One row cannot be imported; the message is shown to the user."""
    pass


@dataclass
class AccountRef:
    """The account fields the matcher looks at."""
    id: int
    holder_name: str
    bank_name: str
    account_number: str


@dataclass
class CategoryRef:
    id: int
    name: str


@dataclass
class ParsedRow:
    """A CSV row mapped onto entry fields, before category/account lookup."""
    row_number: int
    title: str
    amount: Decimal
    date: date
    category_name: str
    description: Optional[str] = None
    account_name: Optional[str] = None
    tags: tuple[str, ...] = ()
    notes: Optional[str] = None
    is_recurring: bool = False
    recurring_frequency: Optional[RecurringFrequency] = None
    currency: Optional[str] = None


def normalize_header(header: str) -> str:
    """
    >>> normalize_header("Interest Rate (%)")
    'interestrate'
    """
    return _HEADER_NOISE.sub("", header.lower())


def parse_csv(
    text: str,
    required: Sequence[str] = (),
) -> tuple[list[str], list[tuple[int, list[str]]]]:
    """
    Split CSV text into normalized headers and numbered data rows.

    Handles quoted fields and doubled quotes; blank lines are skipped.
    Row numbers count the header as row 1.

    Raises:
        CsvImportError: If there is no header, no data row, or a required
            column is missing from the header
    """
    text = (text or "").lstrip("\ufeff")
    reader = csv.reader(io.StringIO(text), skipinitialspace=True)

    rows: list[list[str]] = []
    try:
        for cells in reader:
            if not any(cell.strip() for cell in cells):
                continue
            rows.append([cell.strip() for cell in cells])
    except csv.Error as e:
        raise CsvImportError(f"Could not parse CSV: {e}")

    if len(rows) <= 1:
        raise CsvImportError("CSV file must contain header row and at least one data row")

    headers = [normalize_header(h) for h in rows[0]]
    if not any(headers):
        raise CsvImportError("CSV file must have a valid header row")

    missing = [column for column in required if column not in headers]
    if missing:
        raise CsvImportError(
            f"Missing required headers: {', '.join(missing)}. "
            f"Required headers: {', '.join(required)}"
        )

    return headers, [(index + 2, cells) for index, cells in enumerate(rows[1:])]


def parse_date(value: str) -> date:
    value = value.strip()
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise RowError("Invalid date format. Use YYYY-MM-DD")


def parse_amount(value: str) -> Decimal:
    """Non-negative amount rounded to cents; thousands separators allowed."""
    cleaned = value.replace(",", "").strip()
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        raise RowError("Valid amount is required")
    if not amount.is_finite():
        raise RowError("Valid amount is required")
    if amount < 0:
        raise RowError("Amount cannot be negative")
    return to_money(amount)


def _row_values(headers: Sequence[str], cells: Sequence[str]) -> dict[str, str]:
    return {
        header: (cells[i].strip() if i < len(cells) else "")
        for i, header in enumerate(headers)
    }


def parse_row(headers: Sequence[str], cells: Sequence[str], row_number: int) -> ParsedRow:
    """
    Map one data row onto entry fields.

    Raises:
        RowError: On a missing required value or an unparseable one
    """
    values = _row_values(headers, cells)

    if not values.get("title"):
        raise RowError("Title is required")
    if not values.get("amount"):
        raise RowError("Valid amount is required")
    if not values.get("date"):
        raise RowError("Date is required")
    if not values.get("category"):
        raise RowError("Category is required")

    recurring = values.get("recurring", "").lower() in ("true", "yes")
    frequency = None
    if recurring:
        raw_frequency = values.get("frequency", "").upper() or RecurringFrequency.MONTHLY.value
        try:
            frequency = RecurringFrequency(raw_frequency)
        except ValueError:
            raise RowError(f"Invalid frequency '{values.get('frequency')}'")

    tags = tuple(tag.strip() for tag in values.get("tags", "").split(",") if tag.strip())

    return ParsedRow(
        row_number=row_number,
        title=values["title"],
        amount=parse_amount(values["amount"]),
        date=parse_date(values["date"]),
        category_name=values["category"],
        description=values.get("description") or None,
        account_name=values.get("account") or None,
        tags=tags,
        notes=values.get("notes") or None,
        is_recurring=recurring,
        recurring_frequency=frequency,
        currency=(values.get("currency") or "").upper() or None,
    )


def match_category(name: str, categories: Sequence[CategoryRef]) -> CategoryRef:
    wanted = name.strip().lower()
    for category in categories:
        if category.name.lower() == wanted:
            return category
    raise RowError(f'Category "{name}" not found')


def match_account(
    name: Optional[str],
    accounts: Sequence[AccountRef],
    default_account_id: Optional[int] = None,
) -> Optional[int]:
    """
    Resolve the account column to one of the user's accounts.

    Tries the exported "holder - bank" label first, then a substring of the
    holder or bank name, then an exact account number. Anything unmatched
    falls back to the default account when it is one of the user's,
    otherwise the entry is imported without an account.
    """
    owned_ids = {a.id for a in accounts}
    fallback = default_account_id if default_account_id in owned_ids else None
    if not name:
        return fallback

    wanted = name.strip().lower()
    for account in accounts:
        if f"{account.holder_name} - {account.bank_name}".lower() == wanted:
            return account.id
    for account in accounts:
        if (
            wanted in (account.holder_name or "").lower()
            or wanted in (account.bank_name or "").lower()
            or wanted == (account.account_number or "").lower()
        ):
            return account.id
    return fallback


def _require(values: dict[str, str], columns: Sequence[str]) -> None:
    for column in columns:
        if not values.get(column):
            raise RowError(f"Missing required field '{column}'")


def _positive_amount(value: str) -> Decimal:
    amount = parse_amount(value)
    if amount <= 0:
        raise RowError(f"Invalid amount value ({value}). Must be a positive number")
    return amount


def parse_debt_status(value: Optional[str]) -> DebtStatus:
    """Map the status column onto DebtStatus; blank or unknown is ACTIVE."""
    key = re.sub(r"[\s\-_]", "", (value or "").upper())
    return DEBT_STATUS_ALIASES.get(key, DebtStatus.ACTIVE)


def parse_debt_row(headers: Sequence[str], cells: Sequence[str]) -> tuple[dict[str, Any], Optional[int]]:
    """
    Map one debt row onto DebtCreate fields.

    Returns the payload and the row's own id column, which links
    repayments exported alongside the debt.

    Raises:
        RowError: On a missing required value or an unparseable one
    """
    values = _row_values(headers, cells)
    _require(values, DEBT_COLUMNS)

    rate_text = values["interestrate"].replace("%", "").strip()
    try:
        interest_rate = Decimal(rate_text)
    except InvalidOperation:
        raise RowError(f"Invalid interest rate value ({values['interestrate']})")
    if not interest_rate.is_finite() or interest_rate < 0:
        raise RowError(f"Invalid interest rate value ({values['interestrate']}). Must be a non-negative number")

    email = values.get("borroweremail") or None
    if email and not _EMAIL.match(email):
        raise RowError(f"Invalid email format ({email})")

    payload = {
        "borrower_name": values["borrowername"],
        "borrower_contact": values.get("borrowercontact") or None,
        "borrower_email": email,
        "amount": _positive_amount(values["amount"]),
        "interest_rate": interest_rate,
        "lent_date": parse_date(values["lentdate"]),
        "due_date": parse_date(values["duedate"]) if values.get("duedate") else None,
        "status": parse_debt_status(values.get("status")),
        "purpose": values.get("purpose") or None,
        "notes": values.get("notes") or None,
    }
    original_id = int(values["id"]) if values.get("id", "").isdigit() else None
    return payload, original_id


def parse_repayment_row(headers: Sequence[str], cells: Sequence[str]) -> dict[str, Any]:
    """
    Map one repayment row onto debt id, amount, date and notes.

    Raises:
        RowError: On a missing required value or an unparseable one
    """
    values = _row_values(headers, cells)
    _require(values, REPAYMENT_COLUMNS)

    debt_id = values["debtid"]
    if not debt_id.isdigit() or int(debt_id) <= 0:
        raise RowError(f"Invalid debt ID value ({debt_id}). Must be a positive number")

    return {
        "debt_id": int(debt_id),
        "amount": _positive_amount(values["amount"]),
        "repayment_date": parse_date(values["repaymentdate"]),
        "notes": values.get("notes") or None,
    }


def parse_account_row(headers: Sequence[str], cells: Sequence[str]) -> dict[str, Any]:
    """
    Map one account row onto AccountCreate fields.

    Blank optional columns are left out so the model defaults apply.
    The balance may be negative (an overdrawn account).
    """
    values = _row_values(headers, cells)
    _require(values, ACCOUNT_COLUMNS)

    payload: dict[str, Any] = {
        "holder_name": values["holdername"],
        "bank_name": values["bankname"],
        "account_number": values["accountnumber"],
    }
    for column, field in (
        ("branchname", "branch_name"),
        ("branchcode", "branch_code"),
        ("accounttype", "account_type"),
        ("nickname", "nickname"),
        ("notes", "notes"),
    ):
        if values.get(column):
            payload[field] = values[column]

    if values.get("balance"):
        try:
            balance = Decimal(values["balance"].replace(",", ""))
        except InvalidOperation:
            raise RowError(f"Invalid balance value ({values['balance']})")
        if not balance.is_finite():
            raise RowError(f"Invalid balance value ({values['balance']})")
        payload["balance"] = to_money(balance)
    if values.get("accountopeningdate"):
        payload["account_opening_date"] = parse_date(values["accountopeningdate"])
    return payload
