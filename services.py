from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, DecimalException
from typing import Optional

from sqlalchemy import ColumnElement, Select, and_, func, or_, select
from sqlalchemy.orm import Session

from errors import NotFound
from models import Expense, SortField, SortOrder
from schemas import (
    AMOUNT_DECIMAL_PLACES,
    AMOUNT_MAX_DIGITS,
    MAX_SQL_INTEGER,
    ExpenseIn,
    ExpenseQuery,
    ExpenseUpdateIn,
)

logger = logging.getLogger(__name__)

_SORT_COLUMNS = {
    SortField.date: Expense.date,
    SortField.amount: Expense.amount_cents,
    SortField.category: Expense.category,
}


def cents_to_amount(cents: int) -> float:
    return cents / 100


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_amount_cents(term: str) -> Optional[int]:
    """Cents value of ``term`` when it reads as an exact money amount.

    Terms too large to be a stored amount never match; they are dropped
    before any arithmetic that could overflow the integer bind.
    """
    try:
        value = Decimal(term.strip())
        if not value.is_finite():
            return None
        if value.adjusted() >= AMOUNT_MAX_DIGITS - AMOUNT_DECIMAL_PLACES:
            return None
        cents = value * 100
        if cents != cents.to_integral_value():
            return None
    except DecimalException:
        return None
    return int(cents)


@dataclass(frozen=True)
class ExpenseCriteria:
    """AND-composed filter over one account's expenses.

    The owner predicate is not one of ``clauses``: ``where()`` always puts
    it first, so no combination of optional filters can drop it.
    """

    account_id: int
    clauses: tuple[ColumnElement[bool], ...] = ()

    @classmethod
    def from_query(cls, account_id: int, query: ExpenseQuery) -> ExpenseCriteria:
        criteria = cls(account_id)
        if query.start_date is not None and query.end_date is not None:
            criteria = criteria.with_date_range(query.start_date, query.end_date)
        if query.category:
            criteria = criteria.with_category(query.category)
        if query.search:
            criteria = criteria.with_search(query.search)
        return criteria

    def _and(self, clause: ColumnElement[bool]) -> ExpenseCriteria:
        return replace(self, clauses=self.clauses + (clause,))

    def with_date_range(self, start: date, end: date) -> ExpenseCriteria:
        return self._and(Expense.date.between(start, end))

    def with_category(self, category: str) -> ExpenseCriteria:
        return self._and(Expense.category == category)

    def with_search(self, term: str) -> ExpenseCriteria:
        like = f"%{_escape_like(term.lower())}%"
        alternatives: list[ColumnElement[bool]] = [
            func.lower(func.coalesce(Expense.description, "")).like(like, escape="\\"),
            func.lower(Expense.category).like(like, escape="\\"),
        ]
        cents = search_amount_cents(term)
        if cents is not None:
            alternatives.append(Expense.amount_cents == cents)
        return self._and(or_(*alternatives))

    def where(self) -> ColumnElement[bool]:
        return and_(Expense.account_id == self.account_id, *self.clauses)

    def statement(self) -> Select:
        return select(Expense).where(self.where())

    def count_statement(self) -> Select:
        return select(func.count(Expense.id)).where(self.where())


@dataclass
class ExpensePage:
    items: list[Expense]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit)


class ExpenseService:
    def __init__(self, session: Session, account_id: int) -> None:
        self.session = session
        self.account_id = account_id

    def _criteria(self) -> ExpenseCriteria:
        return ExpenseCriteria(self.account_id)

    def create(self, data: ExpenseIn) -> Expense:
        expense = Expense(
            account_id=self.account_id,
            amount_cents=data.amount_cents,
            category=data.category,
            date=data.date,
            description=data.description,
        )
        self.session.add(expense)
        self.session.commit()
        self.session.refresh(expense)
        logger.info(
            f"expense_created: account_id={self.account_id} expense_id={expense.id}"
        )
        return expense

    def get(self, expense_id: int) -> Expense:
        if not 0 < expense_id <= MAX_SQL_INTEGER:
            raise NotFound("Expense not found")
        stmt = self._criteria().statement().where(Expense.id == expense_id)
        expense = self.session.scalar(stmt)
        if not expense:
            raise NotFound("Expense not found")
        return expense

    def update(self, expense_id: int, data: ExpenseUpdateIn) -> Expense:
        expense = self.get(expense_id)
        for field, value in data.changes().items():
            setattr(expense, field, value)
        self.session.commit()
        self.session.refresh(expense)
        return expense

    def delete(self, expense_id: int) -> None:
        expense = self.get(expense_id)
        self.session.delete(expense)
        self.session.commit()
        logger.info(
            f"expense_deleted: account_id={self.account_id} expense_id={expense_id}"
        )

    def list(self, query: ExpenseQuery) -> ExpensePage:
        criteria = ExpenseCriteria.from_query(self.account_id, query)
        column = _SORT_COLUMNS[query.sort]
        ordering = column.asc() if query.order == SortOrder.asc else column.desc()
        stmt = (
            criteria.statement()
            .order_by(ordering)
            .offset((query.page - 1) * query.limit)
            .limit(query.limit)
        )
        items = list(self.session.scalars(stmt).all())
        # Separate round trip; no snapshot is shared with the page query.
        total = self.session.scalar(criteria.count_statement()) or 0
        logger.info(
            f"expenses_fetched: account_id={self.account_id} page={query.page} "
            f"limit={query.limit} total={total}"
        )
        return ExpensePage(items=items, total=total, page=query.page, limit=query.limit)


class InsightsService:
    def __init__(self, session: Session, account_id: int) -> None:
        self.session = session
        self.account_id = account_id

    def summarize(self) -> dict[str, object]:
        stmt = (
            ExpenseCriteria(self.account_id)
            .statement()
            .order_by(Expense.created_at.asc(), Expense.id.asc())
        )
        totals: dict[str, int] = {}
        for expense in self.session.scalars(stmt):
            totals[expense.category] = totals.get(expense.category, 0) + expense.amount_cents

        grand_total = sum(totals.values())
        distribution = []
        for category, cents in totals.items():
            if grand_total:
                percent = (Decimal(cents) * 100 / Decimal(grand_total)).quantize(
                    Decimal("0.01"), rounding=ROUND_HALF_UP
                )
            else:
                percent = Decimal("0.00")
            distribution.append(
                {
                    "category": category,
                    "amount": cents_to_amount(cents),
                    "percentage": f"{percent:.2f}",
                }
            )
        return {
            "total_by_category": {
                category: cents_to_amount(cents) for category, cents in totals.items()
            },
            "distribution": distribution,
        }
