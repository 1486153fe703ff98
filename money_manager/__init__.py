"""
Money Manager

Personal finance tracking: accounts, incomes, expenses, money lent,
investments, and an AI assistant that can read a snapshot of the user's
own records.

DESIGN PRINCIPLES:
1. Every balance change happens in the same transaction as its entry
2. Actions never raise to the UI; they return ActionResult
3. Every write is auditable
"""

__version__ = "1.0.0"
__author__ = "Money Manager Team"
