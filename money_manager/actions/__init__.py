"""Actions package: the user-scoped service layer the UI calls."""

from money_manager.actions.accounts import AccountActions
from money_manager.actions.base import BaseActions, require_user, server_action
from money_manager.actions.categories import CategoryActions
from money_manager.actions.chat_threads import ChatThreadActions
from money_manager.actions.debts import DebtActions
from money_manager.actions.expenses import ExpenseActions
from money_manager.actions.financial_data import FinancialDataActions
from money_manager.actions.incomes import IncomeActions
from money_manager.actions.investments import InvestmentActions
from money_manager.actions.receipts import ReceiptActions
from money_manager.actions.transactions import TransactionActions
from money_manager.actions.users import UserActions

__all__ = [
    "AccountActions",
    "BaseActions",
    "CategoryActions",
    "ChatThreadActions",
    "DebtActions",
    "ExpenseActions",
    "FinancialDataActions",
    "IncomeActions",
    "InvestmentActions",
    "ReceiptActions",
    "TransactionActions",
    "UserActions",
    "require_user",
    "server_action",
]
