"""
Category actions.

Categories with no owner are global and visible to every user; users can
add their own alongside them. Global categories are read-only.
"""

from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from money_manager.actions.base import BaseActions, server_action
from money_manager.exceptions import DuplicateError, ValidationError, not_found
from money_manager.models.finance import (
    Category,
    CategoryCreate,
    CategoryType,
    CategoryUpdate,
    UserSession,
)
from money_manager.services.storage.schema import (
    CategoryRecord,
    ExpenseRecord,
    IncomeRecord,
)


SELF_TRANSFER_CATEGORY = "SToM (Self Transfer of Money)"
SELF_TRANSFER_NAMES = ("Transfer", "Self Transfer of Money", SELF_TRANSFER_CATEGORY)

DEFAULT_CATEGORIES: list[tuple[str, CategoryType, str, str]] = [
    ("Food & Dining", CategoryType.EXPENSE, "#EF4444", "🍔"),
    ("Groceries", CategoryType.EXPENSE, "#F97316", "🛒"),
    ("Transportation", CategoryType.EXPENSE, "#F59E0B", "🚗"),
    ("Housing", CategoryType.EXPENSE, "#84CC16", "🏠"),
    ("Utilities", CategoryType.EXPENSE, "#22C55E", "💡"),
    ("Healthcare", CategoryType.EXPENSE, "#14B8A6", "🏥"),
    ("Entertainment", CategoryType.EXPENSE, "#06B6D4", "🎬"),
    ("Shopping", CategoryType.EXPENSE, "#3B82F6", "🛍️"),
    ("Education", CategoryType.EXPENSE, "#6366F1", "📚"),
    ("Travel", CategoryType.EXPENSE, "#8B5CF6", "✈️"),
    ("Other Expense", CategoryType.EXPENSE, "#6B7280", "📦"),
    ("Salary", CategoryType.INCOME, "#10B981", "💼"),
    ("Freelance", CategoryType.INCOME, "#0EA5E9", "💻"),
    ("Business", CategoryType.INCOME, "#6366F1", "🏢"),
    ("Investments", CategoryType.INCOME, "#A855F7", "📈"),
    ("Interest", CategoryType.INCOME, "#EC4899", "🏦"),
    ("Gifts", CategoryType.INCOME, "#F43F5E", "🎁"),
    ("Other Income", CategoryType.INCOME, "#6B7280", "💰"),
]


def visible_to(user_id: int):
    """Filter for categories a user may use: global ones and their own."""
    return or_(CategoryRecord.user_id.is_(None), CategoryRecord.user_id == user_id)


def find_category_by_name(
    db_session: Session,
    user_id: int,
    name: str,
    category_type: CategoryType,
) -> Optional[CategoryRecord]:
    """Case-insensitive lookup among the categories a user can see."""
    return db_session.scalars(
        select(CategoryRecord)
        .where(
            visible_to(user_id),
            CategoryRecord.type == category_type,
            func.lower(CategoryRecord.name) == name.strip().lower(),
        )
        .order_by(CategoryRecord.user_id.is_(None))
    ).first()


def get_or_create_self_transfer_category(db_session: Session, user_id: int) -> CategoryRecord:
    """The category transfer bookkeeping entries live in, created on first use."""
    category = db_session.scalars(
        select(CategoryRecord)
        .where(
            visible_to(user_id),
            CategoryRecord.type == CategoryType.EXPENSE,
            CategoryRecord.name.in_(SELF_TRANSFER_NAMES),
        )
        .order_by(CategoryRecord.id)
    ).first()
    if category is None:
        category = CategoryRecord(
            name=SELF_TRANSFER_CATEGORY,
            type=CategoryType.EXPENSE,
            color="#8B5CF6",
            icon="↔️",
            included_in_budget=False,
            user_id=user_id,
        )
        db_session.add(category)
        db_session.flush()
    return category


class CategoryActions(BaseActions):

    @server_action("Failed to fetch categories")
    async def get_categories(
        self,
        session: UserSession,
        category_type: Optional[CategoryType] = None,
    ) -> list[Category]:
        with self._db.session_scope() as db_session:
            query = select(CategoryRecord).where(visible_to(session.user_id))
            if category_type is not None:
                query = query.where(CategoryRecord.type == category_type)
            records = db_session.scalars(query.order_by(CategoryRecord.name)).all()
            return [Category.model_validate(r) for r in records]

    @server_action("Failed to create category")
    async def create_category(self, session: UserSession, data: CategoryCreate) -> Category:
        with self._db.session_scope() as db_session:
            if find_category_by_name(db_session, session.user_id, data.name, data.type):
                raise DuplicateError(f"A {data.type.value.lower()} category named '{data.name}' already exists")
            record = CategoryRecord(user_id=session.user_id, **data.model_dump())
            db_session.add(record)
            db_session.flush()
            return Category.model_validate(record)

    @server_action("Failed to update category")
    async def update_category(
        self,
        session: UserSession,
        category_id: int,
        data: CategoryUpdate,
    ) -> Category:
        with self._db.session_scope() as db_session:
            record = self._get_owned(db_session, CategoryRecord, category_id, session.user_id, "Category")
            for field, value in data.model_dump(exclude_unset=True).items():
                setattr(record, field, value)
            db_session.flush()
            return Category.model_validate(record)

    @server_action("Failed to delete category")
    async def delete_category(self, session: UserSession, category_id: int) -> bool:
        with self._db.session_scope() as db_session:
            record = self._get_owned(db_session, CategoryRecord, category_id, session.user_id, "Category")
            in_use = sum(
                db_session.scalar(
                    select(func.count()).select_from(model).where(model.category_id == record.id)
                )
                for model in (ExpenseRecord, IncomeRecord)
            )
            if in_use:
                raise ValidationError(
                    f"Category is used by {in_use} transaction(s) and cannot be deleted"
                )
            db_session.delete(record)
        return True

    def ensure_default_categories(self) -> int:
        """
        Seed the global categories that don't exist yet.

        Returns the number of categories created.
        """
        created = 0
        with self._db.session_scope() as db_session:
            existing = {
                (name.lower(), category_type)
                for name, category_type in db_session.execute(
                    select(CategoryRecord.name, CategoryRecord.type)
                    .where(CategoryRecord.user_id.is_(None))
                )
            }
            for name, category_type, color, icon in DEFAULT_CATEGORIES:
                if (name.lower(), category_type) in existing:
                    continue
                db_session.add(CategoryRecord(
                    name=name,
                    type=category_type,
                    color=color,
                    icon=icon,
                ))
                created += 1

        if created:
            self._logger.info("default_categories_seeded", count=created)
        return created


def get_category_for_entry(
    db_session: Session,
    user_id: int,
    category_id: int,
    category_type: CategoryType,
) -> CategoryRecord:
    """Resolve the category of a new or edited entry."""
    record = db_session.get(CategoryRecord, category_id)
    if record is None or (record.user_id is not None and record.user_id != user_id):
        raise not_found("Category")
    if record.type != category_type:
        raise ValidationError(f"Category '{record.name}' is not an {category_type.value.lower()} category")
    return record
