from sqlalchemy import update
from sqlalchemy.orm import Session
from decimal import Decimal
from typing import Optional

import structlog

from errors import NotFoundError, ValidationError
from models import Category, Expense
from pricing import effective_amount, to_cents
from schemas import ExpenseCreate, UserPublic

logger = structlog.get_logger(__name__)

SORT_FIELDS = {
    "created_at": Expense.created_at,
    "createdAt": Expense.created_at,
    "amount": Expense.amount,
    "title": Expense.title,
    "is_recurring": Expense.is_recurring,
    "isRecurring": Expense.is_recurring,
}
ALL_CATEGORIES = "ALL"


def parse_category_filter(category: Optional[str]) -> Optional[Category]:
    """None or "ALL" means no filter; anything else must name a category."""
    if category is None or not category.strip():
        return None
    value = category.strip().upper()
    if value == ALL_CATEGORIES:
        return None
    try:
        return Category(value)
    except ValueError:
        raise ValidationError(f"Unknown category: {category}")


def _owned(db: Session, owner: UserPublic, expense_id: str):
    return db.query(Expense).filter(Expense.id == expense_id, Expense.user_id == owner.id)


def create_expense(db: Session, owner: UserPublic, expense_in: ExpenseCreate) -> Expense:
    expense = Expense(
        title=expense_in.title,
        category=expense_in.category,
        amount=expense_in.amount,
        quantity=expense_in.quantity,
        is_recurring=expense_in.is_recurring,
        tax_percent=expense_in.tax_percent,
        discount=expense_in.discount,
        user_id=owner.id,
    )
    db.add(expense)
    db.commit()
    db.refresh(expense)
    logger.info("expense_created", expense_id=expense.id, user_id=owner.id)
    return expense


def get_expense(db: Session, owner: UserPublic, expense_id: str) -> Expense:
    """
    Fetch one expense belonging to `owner`.

    An id owned by someone else raises the same NotFoundError as a missing one.
    """
    expense = _owned(db, owner, expense_id).first()
    if expense is None:
        raise NotFoundError()
    return expense


def get_expenses(
    db: Session,
    owner: UserPublic,
    category: Optional[str] = None,
    min_amount: Optional[Decimal] = None,
    max_amount: Optional[Decimal] = None,
    sort_by: str = "created_at",
    order: str = "desc",
) -> list[Expense]:
    """
    Fetch the owner's expenses with optional filters.

    Amount bounds are inclusive and apply to the unit amount. Results are not
    paginated.
    """
    column = SORT_FIELDS.get(sort_by)
    if column is None:
        raise ValidationError(f"Cannot sort by: {sort_by}")
    if order not in ("asc", "desc"):
        raise ValidationError(f"Order must be asc or desc, got: {order}")

    query = db.query(Expense).filter(Expense.user_id == owner.id)

    category_filter = parse_category_filter(category)
    if category_filter is not None:
        query = query.filter(Expense.category == category_filter)
    if min_amount is not None:
        query = query.filter(Expense.amount >= min_amount)
    if max_amount is not None:
        query = query.filter(Expense.amount <= max_amount)

    if order == "desc":
        query = query.order_by(column.desc(), Expense.id.desc())
    else:
        query = query.order_by(column.asc(), Expense.id.asc())

    return query.all()


def update_expense(db: Session, owner: UserPublic, expense_id: str, changes: dict) -> Expense:
    """
    Apply `changes` to one owned expense in a single filtered UPDATE.

    Where the dialect supports UPDATE ... RETURNING the row comes back from
    that statement; otherwise the affected-row count decides existence and
    the row is read back inside the same transaction.
    """
    if not changes:
        return get_expense(db, owner, expense_id)

    stmt = (
        update(Expense)
        .where(Expense.id == expense_id, Expense.user_id == owner.id)
        .values(**changes)
    )

    if db.get_bind().dialect.update_returning:
        expense = db.scalars(stmt.returning(Expense)).one_or_none()
        if expense is None:
            db.rollback()
            raise NotFoundError()
    else:
        result = db.execute(stmt, execution_options={"synchronize_session": False})
        if result.rowcount == 0:
            db.rollback()
            raise NotFoundError()
        expense = _owned(db, owner, expense_id).populate_existing().one()

    db.commit()
    logger.info("expense_updated", expense_id=expense_id, user_id=owner.id, fields=sorted(changes))
    return expense


def delete_expense(db: Session, owner: UserPublic, expense_id: str) -> None:
    deleted = _owned(db, owner, expense_id).delete(synchronize_session=False)
    if deleted == 0:
        db.rollback()
        raise NotFoundError()
    db.commit()
    logger.info("expense_deleted", expense_id=expense_id, user_id=owner.id)


def summarize_expenses(db: Session, owner: UserPublic) -> dict:
    """Totals of effective amounts per category, largest first."""
    totals: dict[Category, Decimal] = {}
    counts: dict[Category, int] = {}
    for e in get_expenses(db, owner):
        charge = effective_amount(e.amount, e.quantity, e.discount, e.tax_percent)
        totals[e.category] = totals.get(e.category, Decimal("0")) + charge
        counts[e.category] = counts.get(e.category, 0) + 1

    by_category = [
        {"category": cat, "total": to_cents(total), "count": counts[cat]}
        for cat, total in sorted(totals.items(), key=lambda x: (-x[1], x[0].value))
    ]
    return {
        "total": to_cents(sum(totals.values(), Decimal("0"))),
        "count": sum(counts.values()),
        "by_category": by_category,
    }
