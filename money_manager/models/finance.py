"""
Core Data Models for Money Manager

These models define the schemas for all financial data flowing through
the actions layer. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be built straight from ORM records (from_attributes)
4. Keep money as Decimal end to end

Read models mirror database records. Create/Update models are the inputs
the actions accept; Update models carry only the fields a caller set
(model_dump(exclude_unset=True) gives the partial update).
"""

from datetime import date, date as date_type, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from money_manager.utils.money import to_money


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class CategoryType(str, Enum):
    """Whether a category classifies expenses or incomes."""
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"


class RecurringFrequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class DebtStatus(str, Enum):
    """
    Lifecycle of money lent to someone.

    DEFAULTED is only ever set by the user; repayments never clear it.
    """
    ACTIVE = "ACTIVE"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    FULLY_PAID = "FULLY_PAID"
    OVERDUE = "OVERDUE"
    DEFAULTED = "DEFAULTED"


class InvestmentType(str, Enum):
    STOCKS = "STOCKS"
    CRYPTO = "CRYPTO"
    MUTUAL_FUNDS = "MUTUAL_FUNDS"
    BONDS = "BONDS"
    REAL_ESTATE = "REAL_ESTATE"
    GOLD = "GOLD"
    FIXED_DEPOSIT = "FIXED_DEPOSIT"
    OTHER = "OTHER"


class TransactionType(str, Enum):
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"


# =============================================================================
# SESSION & RESULTS
# =============================================================================

class UserSession(BaseModel):
    """
    The authenticated caller.

    Every action is scoped to session.user_id.
    """
    user_id: int = Field(..., ge=1)
    email: Optional[str] = None
    name: Optional[str] = None


class ActionResult(BaseModel):
    """
    Uniform result returned to the UI by every action.

    Failures never raise past this boundary; they come back as
    success=False with a user-presentable error string.
    """
    success: bool
    data: Any = None
    error: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None, message: Optional[str] = None) -> "ActionResult":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, error: str) -> "ActionResult":
        return cls(success=False, error=error)


class ImportRowError(BaseModel):
    """A CSV row that could not be imported. Row 1 is the header."""
    row: int = Field(..., ge=2)
    error: str


class ImportResult(BaseModel):
    """Outcome of a bulk CSV import."""
    success_count: int = Field(default=0, ge=0)
    total_rows: int = Field(default=0, ge=0)
    errors: list[ImportRowError] = Field(default_factory=list)
    # id column of the file -> id of the created record, when the file has one
    id_mapping: dict[int, int] = Field(default_factory=dict)

    @property
    def error_count(self) -> int:
        return len(self.errors)


# =============================================================================
# USERS & CATEGORIES
# =============================================================================

class User(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    currency: str = "USD"
    created_at: datetime
    updated_at: datetime


class Category(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    type: CategoryType
    color: str = "#6B7280"
    icon: Optional[str] = None
    included_in_budget: bool = True
    user_id: Optional[int] = None


class CategoryCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    type: CategoryType
    color: str = Field(default="#6B7280", max_length=20)
    icon: Optional[str] = Field(default=None, max_length=20)
    included_in_budget: bool = True


class CategoryUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, max_length=20)
    icon: Optional[str] = Field(default=None, max_length=20)
    included_in_budget: Optional[bool] = None


# =============================================================================
# ACCOUNTS
# =============================================================================

class Account(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    holder_name: str
    account_number: str
    bank_name: str
    branch_name: str = ""
    branch_code: str = ""
    account_type: str = "SAVINGS"
    balance: Decimal = Decimal("0")
    account_opening_date: Optional[date] = None
    nickname: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @property
    def display_name(self) -> str:
        """How an account is named in markdown tables and CSV exports."""
        return f"{self.bank_name} ({self.account_type})"


class AccountCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    holder_name: str = Field(..., min_length=1, max_length=200)
    account_number: str = Field(..., min_length=1, max_length=50)
    bank_name: str = Field(..., min_length=1, max_length=200)
    branch_name: str = Field(default="", max_length=200)
    branch_code: str = Field(default="", max_length=50)
    account_type: str = Field(default="SAVINGS", max_length=50)
    balance: Decimal = Field(default=Decimal("0"), decimal_places=2)
    account_opening_date: Optional[date] = None
    nickname: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=1000)


class AccountUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    holder_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    account_number: Optional[str] = Field(default=None, min_length=1, max_length=50)
    bank_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    branch_name: Optional[str] = Field(default=None, max_length=200)
    branch_code: Optional[str] = Field(default=None, max_length=50)
    account_type: Optional[str] = Field(default=None, max_length=50)
    balance: Optional[Decimal] = Field(default=None, decimal_places=2)
    account_opening_date: Optional[date] = None
    nickname: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=1000)


class TransferResult(BaseModel):
    from_account: Account
    to_account: Account
    amount: Decimal
    expense_id: int


class BulkCreateResult(BaseModel):
    """Accounts created in one call, with a message per skipped entry."""
    created: list[Account] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)

    @property
    def success_count(self) -> int:
        return len(self.created)


# =============================================================================
# EXPENSES & INCOMES
# =============================================================================

class _LedgerEntryBase(BaseModel):
    """Fields shared by expenses and incomes."""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    currency: Optional[str] = Field(default=None, max_length=3)
    date: date_type
    category_id: int
    account_id: Optional[int] = None
    tags: list[str] = Field(default_factory=list)
    notes: Optional[str] = Field(default=None, max_length=1000)
    is_recurring: bool = False
    recurring_frequency: Optional[RecurringFrequency] = None

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: list[str]) -> list[str]:
        return [tag.strip() for tag in v if tag and tag.strip()]

    @model_validator(mode="after")
    def default_frequency(self):
        """A recurring entry without a frequency is monthly."""
        if self.is_recurring and self.recurring_frequency is None:
            self.recurring_frequency = RecurringFrequency.MONTHLY
        if not self.is_recurring:
            self.recurring_frequency = None
        return self


class ExpenseCreate(_LedgerEntryBase):
    receipt_url: Optional[str] = None


class IncomeCreate(_LedgerEntryBase):
    pass


class _LedgerEntryUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    amount: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    currency: Optional[str] = Field(default=None, max_length=3)
    date: Optional[date_type] = None
    category_id: Optional[int] = None
    account_id: Optional[int] = None
    tags: Optional[list[str]] = None
    notes: Optional[str] = Field(default=None, max_length=1000)
    is_recurring: Optional[bool] = None
    recurring_frequency: Optional[RecurringFrequency] = None


class ExpenseUpdate(_LedgerEntryUpdate):
    receipt_url: Optional[str] = None


class IncomeUpdate(_LedgerEntryUpdate):
    pass


class _LedgerEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    title: str
    description: Optional[str] = None
    amount: Decimal
    currency: str
    date: date_type
    category_id: int
    category: Category
    account_id: Optional[int] = None
    account: Optional[Account] = None
    tags: list[str] = Field(default_factory=list)
    notes: Optional[str] = None
    is_recurring: bool = False
    recurring_frequency: Optional[RecurringFrequency] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("tags", mode="before")
    @classmethod
    def none_tags(cls, v):
        return v or []

    @property
    def account_label(self) -> str:
        return self.account.display_name if self.account else "Cash"


class Expense(_LedgerEntry):
    receipt_url: Optional[str] = None


class Income(_LedgerEntry):
    pass


# =============================================================================
# DEBTS
# =============================================================================

class DebtRepayment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    debt_id: int
    account_id: Optional[int] = None
    amount: Decimal
    repayment_date: datetime
    notes: Optional[str] = None


class DebtCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    borrower_name: str = Field(..., min_length=1, max_length=200)
    borrower_contact: Optional[str] = Field(default=None, max_length=100)
    borrower_email: Optional[str] = Field(default=None, max_length=255)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    interest_rate: Decimal = Field(default=Decimal("0"), ge=0)
    lent_date: date = Field(default_factory=date.today)
    due_date: Optional[date] = None
    status: DebtStatus = DebtStatus.ACTIVE
    purpose: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=1000)
    account_id: Optional[int] = None

    @field_validator("amount", "interest_rate")
    @classmethod
    def finite(cls, v: Decimal) -> Decimal:
        if not v.is_finite():
            raise ValueError("must be a finite number")
        return v

    @model_validator(mode="after")
    def validate_dates(self) -> "DebtCreate":
        if self.due_date and self.due_date < self.lent_date:
            raise ValueError("Due date cannot be before lent date")
        return self


class DebtUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    borrower_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    borrower_contact: Optional[str] = Field(default=None, max_length=100)
    borrower_email: Optional[str] = Field(default=None, max_length=255)
    interest_rate: Optional[Decimal] = Field(default=None, ge=0)
    due_date: Optional[date] = None
    status: Optional[DebtStatus] = None
    purpose: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=1000)


class Debt(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    account_id: Optional[int] = None
    borrower_name: str
    borrower_contact: Optional[str] = None
    borrower_email: Optional[str] = None
    amount: Decimal
    interest_rate: Decimal
    lent_date: date
    due_date: Optional[date] = None
    status: DebtStatus
    purpose: Optional[str] = None
    notes: Optional[str] = None
    repayments: list[DebtRepayment] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    # Filled in by the debts action from the interest calculation
    interest_amount: Decimal = Decimal("0")
    total_with_interest: Decimal = Decimal("0")
    remaining_amount: Decimal = Decimal("0")

    @property
    def total_repaid(self) -> Decimal:
        return sum((r.amount for r in self.repayments), Decimal("0"))


# =============================================================================
# INVESTMENTS
# =============================================================================

# Matches the precision of the quantity column
QUANTITY_STEP = Decimal("0.000001")


class InvestmentCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=200)
    type: InvestmentType
    symbol: Optional[str] = Field(default=None, max_length=20)
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    purchase_price: Decimal = Field(..., ge=0)
    current_price: Optional[Decimal] = Field(default=None, ge=0)
    purchase_date: date = Field(default_factory=date.today)
    account_id: int
    interest_rate: Optional[Decimal] = Field(default=None, ge=0)
    maturity_date: Optional[date] = None
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("purchase_price", "current_price")
    @classmethod
    def round_price(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return None if v is None else to_money(v)

    @field_validator("quantity")
    @classmethod
    def round_quantity(cls, v: Decimal) -> Decimal:
        return v.quantize(QUANTITY_STEP)

    @model_validator(mode="after")
    def default_current_price(self) -> "InvestmentCreate":
        if self.current_price is None:
            self.current_price = self.purchase_price
        if self.maturity_date and self.maturity_date < self.purchase_date:
            raise ValueError("Maturity date cannot be before purchase date")
        return self

    @property
    def cost(self) -> Decimal:
        return investment_cost(self.type, self.quantity, self.purchase_price)


class InvestmentUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    symbol: Optional[str] = Field(default=None, max_length=20)
    current_price: Optional[Decimal] = Field(default=None, ge=0)
    interest_rate: Optional[Decimal] = Field(default=None, ge=0)
    maturity_date: Optional[date] = None
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("current_price")
    @classmethod
    def round_price(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return None if v is None else to_money(v)


class Investment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    account_id: int
    name: str
    type: InvestmentType
    symbol: Optional[str] = None
    quantity: Decimal
    purchase_price: Decimal
    current_price: Decimal
    purchase_date: date
    interest_rate: Optional[Decimal] = None
    maturity_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @property
    def cost(self) -> Decimal:
        return investment_cost(self.type, self.quantity, self.purchase_price)

    @property
    def current_value(self) -> Decimal:
        return investment_cost(self.type, self.quantity, self.current_price)


class PortfolioSummary(BaseModel):
    total_invested: Decimal = Decimal("0")
    current_value: Decimal = Decimal("0")
    gain_loss: Decimal = Decimal("0")
    gain_loss_percentage: float = 0.0
    count: int = 0


def investment_cost(
    investment_type: InvestmentType,
    quantity: Decimal,
    price: Decimal,
) -> Decimal:
    """Fixed deposits are a single principal; everything else is units x price."""
    if investment_type == InvestmentType.FIXED_DEPOSIT:
        return to_money(price)
    return to_money(quantity * price)


# =============================================================================
# ANALYTICS
# =============================================================================

class Transaction(BaseModel):
    """An expense or income flattened for the recent-activity list."""
    id: int
    type: TransactionType
    title: str
    amount: Decimal
    date: date_type
    category: str
    account: str


class CategoryTotal(BaseModel):
    category: str
    total: Decimal


class DashboardStats(BaseModel):
    total_balance: Decimal = Decimal("0")
    monthly_income: Decimal = Decimal("0")
    monthly_expenses: Decimal = Decimal("0")
    savings_rate: float = 0.0
    total_investments: Decimal = Decimal("0")
    recent_transactions: list[Transaction] = Field(default_factory=list)
