"""
Ledger service.

Reads and appends rows in the Expenses and Incomes tables on behalf of the
assistant's tools. Every operation returns the text the model sees as the
tool result. Rows are never updated or deleted.
"""

import datetime
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from database import Expense, Income

logger = logging.getLogger(__name__)

CURRENCY = "INR"
EXPENSE_ADDED = "Expense added to the database."
INCOME_ADDED = "Income added to the database."


class LedgerError(Exception):
    """Raised when the ledger store rejects a query or insert."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def format_amount(value: float | int | None) -> str:
    """Render a SUM() result as '<amount> INR'. NULL (no rows) renders as 0."""
    total = round(float(value or 0), 2)
    if total.is_integer():
        return f"{int(total)} {CURRENCY}"
    return f"{total} {CURRENCY}"


async def _sum_amount(db: AsyncSession, model, *criteria) -> float:
    stmt = select(func.sum(model.amount))
    if criteria:
        stmt = stmt.where(*criteria)
    total = await db.scalar(stmt)
    return total or 0


async def _insert(db: AsyncSession, row) -> None:
    db.add(row)
    await db.commit()


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_total_expense(
    db: AsyncSession,
    start: datetime.datetime | None,
    end: datetime.datetime | None,
) -> str:
    """Sum of expenses with start <= date <= end. A None bound is open."""
    criteria = []
    if start is not None:
        criteria.append(Expense.date >= start)
    if end is not None:
        criteria.append(Expense.date <= end)

    try:
        total = await _sum_amount(db, Expense, *criteria)
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Error fetching total expense (%s to %s): %s", start, end, exc)
        raise LedgerError("could not fetch total expense") from exc
    return format_amount(total)


async def get_money_balance(db: AsyncSession) -> str:
    """Total income minus total expense across all rows."""
    try:
        total_income = await _sum_amount(db, Income)
        total_expense = await _sum_amount(db, Expense)
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Error calculating balance: %s", exc)
        raise LedgerError("could not calculate balance") from exc
    return format_amount(total_income - total_expense)


# ---------------------------------------------------------------------------
# Appends
# ---------------------------------------------------------------------------

async def add_expense(db: AsyncSession, name: str, amount: float) -> str:
    try:
        await _insert(db, Expense(name=name, amount=amount))
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Error adding expense %r (%s): %s", name, amount, exc)
        raise LedgerError("could not add expense") from exc
    logger.info("Expense recorded: %s %s", name, amount)
    return EXPENSE_ADDED


async def add_income(db: AsyncSession, name: str, amount: float) -> str:
    try:
        await _insert(db, Income(name=name, amount=amount))
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Error adding income %r (%s): %s", name, amount, exc)
        raise LedgerError("could not add income") from exc
    logger.info("Income recorded: %s %s", name, amount)
    return INCOME_ADDED
