"""
Tests for accounts, self transfers and categories.
"""

from decimal import Decimal

from sqlalchemy import select

from money_manager.actions import CategoryActions
from money_manager.models import (
    AccountCreate,
    AccountUpdate,
    CategoryCreate,
    CategoryType,
    InvestmentCreate,
    InvestmentType,
)
from money_manager.services.storage.schema import ExpenseRecord

from conftest import balance, category_id, expense_data, make_account, run


class TestAccountActions:
    """Tests for account CRUD."""

    def test_create_and_list(self, db, session, accounts):
        """Test that a created account is listed with its opening balance."""
        make_account(accounts, session, opening="250.00")

        result = run(accounts.get_user_accounts(session))

        assert result.success
        assert [a.balance for a in result.data] == [Decimal("250.00")]

    def test_duplicate_account_number(self, db, session, other_session, accounts):
        """Test that account numbers are unique across users."""
        make_account(accounts, session, number="DUP-1")

        result = run(accounts.create_account(other_session, accounts_payload("DUP-1")))

        assert not result.success
        assert result.error == "An account with number DUP-1 already exists"

    def test_update_keeps_unset_fields(self, db, session, accounts):
        """Test a partial update."""
        account = make_account(accounts, session)

        result = run(accounts.update_account(session, account.id, AccountUpdate(nickname="Main")))

        assert result.data.nickname == "Main"
        assert result.data.bank_name == "First Bank"

    def test_total_balance(self, db, session, accounts):
        """Test the sum over all of a user's accounts."""
        make_account(accounts, session, number="A-1", opening="100.50")
        make_account(accounts, session, number="A-2", opening="200.25")

        assert run(accounts.get_total_balance(session)).data == Decimal("300.75")

    def test_account_with_investment_cannot_be_deleted(self, db, session, accounts, investments):
        """Test that investments pin their funding account."""
        account = make_account(accounts, session, opening="1000.00")
        run(investments.create_investment(session, InvestmentCreate(
            name="Index Fund", type=InvestmentType.MUTUAL_FUNDS, purchase_price=Decimal("100"), account_id=account.id,
        )))

        result = run(accounts.delete_account(session, account.id))

        assert not result.success
        assert "investment" in result.error

    def test_delete_keeps_entries_as_cash(self, db, session, accounts, expenses):
        """Test that deleting an account leaves its expenses without an account."""
        account = make_account(accounts, session)
        expense = run(expenses.create_expense(session, expense_data(db, "10.00", account.id))).data

        assert run(accounts.delete_account(session, account.id)).success

        with db.session_scope() as db_session:
            assert db_session.get(ExpenseRecord, expense.id).account_id is None


def accounts_payload(number: str):
    return AccountCreate(holder_name="Other", account_number=number, bank_name="Other Bank")


class TestBulkAccounts:
    """Tests for creating and importing several accounts at once."""

    def test_bulk_create_skips_bad_entries(self, db, session, accounts):
        """Test that invalid and duplicate entries are reported and the rest created."""
        make_account(accounts, session, number="TAKEN")

        result = run(accounts.bulk_create_accounts(session, [
            accounts_payload("NEW-1"),
            {"holder_name": "Asha", "bank_name": "City Bank"},
            {"holder_name": "Asha", "bank_name": "City Bank", "account_number": "TAKEN"},
            {"holder_name": "Asha", "bank_name": "River", "account_number": "NEW-1"},
            {"holder_name": "Asha", "bank_name": "River", "account_number": "NEW-2", "balance": "40.00"},
        ]))

        assert result.success, result.error
        assert result.data.total == 5
        assert result.data.success_count == 2
        assert result.data.errors == [
            "Account 2: account_number: Field required",
            "Account 3: An account with number TAKEN already exists",
            "Account 4: An account with number NEW-1 already exists",
        ]
        assert [a.balance for a in result.data.created] == [Decimal("0"), Decimal("40.00")]
        assert len(run(accounts.get_user_accounts(session)).data) == 3

    def test_csv_import_opens_with_balance(self, db, session, accounts):
        """Test account rows, a duplicate number and the opening balance."""
        make_account(accounts, session, number="TAKEN")
        csv_text = (
            "Holder Name,Bank Name,Account Number,Account Type,Balance,Account Opening Date\n"
            "Asha,City Bank,CB-1,CHECKING,\"1,250.00\",2023-05-01\n"
            "Asha,River Bank,TAKEN,,,\n"
            "Asha,Hill Bank,HB-1,,,\n"
        )

        result = run(accounts.bulk_import_accounts(session, csv_text))

        assert result.data.success_count == 2
        assert [(e.row, e.error) for e in result.data.errors] == [
            (3, "An account with number TAKEN already exists"),
        ]
        by_number = {a.account_number: a for a in run(accounts.get_user_accounts(session)).data}
        assert by_number["CB-1"].balance == Decimal("1250.00")
        assert by_number["CB-1"].account_type == "CHECKING"
        assert by_number["HB-1"].account_type == "SAVINGS"

    def test_csv_import_needs_account_number_column(self, db, session, accounts):
        """Test the file-level header check."""
        result = run(accounts.bulk_import_accounts(session, "Holder Name,Bank Name\nAsha,City Bank\n"))

        assert result.error == (
            "Missing required headers: accountnumber. "
            "Required headers: holdername, bankname, accountnumber"
        )


class TestTransfers:
    """Tests for moving money between a user's own accounts."""

    def test_transfer_moves_money_and_logs_zero_expense(self, db, session, accounts):
        """Test a successful transfer."""
        source = make_account(accounts, session, number="A-1", bank="First Bank", opening="500.00")
        target = make_account(accounts, session, number="A-2", bank="Second Bank", opening="50.00")

        result = run(accounts.transfer_money(session, source.id, target.id, Decimal("120.00"), notes="rent"))

        assert result.success, result.error
        assert result.data.from_account.balance == Decimal("380.00")
        assert result.data.to_account.balance == Decimal("170.00")

        with db.session_scope() as db_session:
            expense = db_session.get(ExpenseRecord, result.data.expense_id)
            assert expense.amount == 0
            assert expense.tags == ["Transfer", "Self-Transfer"]
            assert expense.title == "Transfer: First Bank → Second Bank"
            assert expense.notes.endswith("| Notes: rent")
            assert expense.category.user_id == session.user_id

    def test_insufficient_balance(self, db, session, accounts):
        """Test that a transfer cannot overdraw the source."""
        source = make_account(accounts, session, number="A-1", opening="10.00")
        target = make_account(accounts, session, number="A-2", opening="0.00")

        result = run(accounts.transfer_money(session, source.id, target.id, Decimal("10.01")))

        assert not result.success
        assert result.error.startswith("Insufficient balance")
        assert balance(db, source.id) == Decimal("10.00")
        assert balance(db, target.id) == Decimal("0.00")

    def test_same_account(self, db, session, accounts):
        """Test that source and destination must differ."""
        account = make_account(accounts, session)

        result = run(accounts.transfer_money(session, account.id, account.id, Decimal("1")))

        assert result.error == "Source and destination accounts cannot be the same"

    def test_foreign_destination(self, db, session, other_session, accounts):
        """Test that money cannot be moved into another user's account."""
        mine = make_account(accounts, session, number="A-1")
        theirs = make_account(accounts, other_session, number="B-1")

        result = run(accounts.transfer_money(session, mine.id, theirs.id, Decimal("5")))

        assert result.error == "Destination account not found or unauthorized"
        assert balance(db, theirs.id) == Decimal("1000.00")

    def test_self_transfer_category_created_once(self, db, session, accounts):
        """Test that repeated transfers reuse the same category."""
        source = make_account(accounts, session, number="A-1")
        target = make_account(accounts, session, number="A-2")

        first = run(accounts.transfer_money(session, source.id, target.id, Decimal("1"))).data
        second = run(accounts.transfer_money(session, target.id, source.id, Decimal("1"))).data

        with db.session_scope() as db_session:
            ids = db_session.scalars(
                select(ExpenseRecord.category_id).where(
                    ExpenseRecord.id.in_([first.expense_id, second.expense_id])
                )
            ).all()
        assert len(set(ids)) == 1


class TestCategoryActions:
    """Tests for user and global categories."""

    def test_lists_global_and_own(self, db, session, other_session):
        """Test that users see global categories plus their own only."""
        categories = CategoryActions(db)
        run(categories.create_category(session, CategoryCreate(name="Pets", type=CategoryType.EXPENSE)))

        mine = {c.name for c in run(categories.get_categories(session, CategoryType.EXPENSE)).data}
        theirs = {c.name for c in run(categories.get_categories(other_session, CategoryType.EXPENSE)).data}

        assert "Pets" in mine and "Food & Dining" in mine
        assert "Pets" not in theirs

    def test_duplicate_of_global_name_rejected(self, db, session):
        """Test that a user cannot shadow a global category."""
        result = run(CategoryActions(db).create_category(
            session, CategoryCreate(name="food & dining", type=CategoryType.EXPENSE)
        ))

        assert not result.success

    def test_global_category_is_read_only(self, db, session):
        """Test that global categories cannot be deleted by users."""
        result = run(CategoryActions(db).delete_category(session, category_id(db, "Groceries")))

        assert result.error == "Category not found or unauthorized"

    def test_category_in_use_cannot_be_deleted(self, db, session, expenses):
        """Test that a category with entries is kept."""
        categories = CategoryActions(db)
        pets = run(categories.create_category(session, CategoryCreate(name="Pets", type=CategoryType.EXPENSE))).data
        run(expenses.create_expense(session, expense_data(db, "5.00", category_id=pets.id)))

        result = run(categories.delete_category(session, pets.id))

        assert result.error == "Category is used by 1 transaction(s) and cannot be deleted"

    def test_seeding_is_idempotent(self, db):
        """Test that seeding twice creates nothing the second time."""
        assert CategoryActions(db).ensure_default_categories() == 0
