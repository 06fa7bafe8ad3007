from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import and_, case, func, select
from sqlalchemy.orm import Session, joinedload

from errors import NotFound
from models import Budget, Category, Transaction, TransactionKind
from periods import month_bounds, transaction_month
from schemas import BudgetIn, CategoryIn, TransactionIn

logger = logging.getLogger(__name__)


def _kind_sum(kind: TransactionKind):
    return func.coalesce(
        func.sum(case((Transaction.kind == kind, Transaction.amount_cents))), 0
    )


@dataclass(frozen=True)
class BudgetRecord:
    id: int
    category_id: int
    category_name: str
    month: str
    amount_cents: int
    spent_cents: int


@dataclass(frozen=True)
class ReportMonth:
    month: str
    income_cents: int
    expense_cents: int

    @property
    def net_cents(self) -> int:
        return self.income_cents - self.expense_cents


@dataclass(frozen=True)
class ReportCategory:
    category_name: str
    expense_cents: int


class CategoryService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self) -> list[Category]:
        stmt = select(Category).order_by(Category.kind, Category.name)
        return self.session.scalars(stmt).all()

    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category:
            raise NotFound("Category not found")
        return category

    def create(self, data: CategoryIn) -> Category:
        category = Category(name=data.name, kind=data.kind)
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        logger.info(
            f"category_created: id={category.id} kind={category.kind.value}"
        )
        return category


class TransactionService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list(self, month: str, limit: int = 100) -> list[Transaction]:
        bounds = month_bounds(month)
        if bounds is None:
            return []
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(Transaction.occurred_on.between(*bounds))
            .order_by(Transaction.occurred_on.desc(), Transaction.id.desc())
            .limit(limit)
        )
        return self.session.scalars(stmt).all()

    def create(
        self, data: TransactionIn, receipt_path: Optional[str] = None
    ) -> Transaction:
        if data.category_id is not None:
            CategoryService(self.session).get(data.category_id)
        txn = Transaction(
            kind=data.kind,
            amount_cents=data.amount_cents,
            category_id=data.category_id,
            occurred_on=data.occurred_on,
            note=data.note,
            receipt_path=receipt_path,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_created: id={txn.id} kind={txn.kind.value} "
            f"date={txn.occurred_on} receipt={'yes' if receipt_path else 'no'}"
        )
        return txn


class BudgetService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, data: BudgetIn) -> Budget:
        CategoryService(self.session).get(data.category_id)
        budget = Budget(
            category_id=data.category_id,
            month=data.month,
            amount_cents=data.amount_cents,
        )
        self.session.add(budget)
        self.session.commit()
        self.session.refresh(budget)
        logger.info(f"budget_created: id={budget.id} month={budget.month}")
        return budget


class ReportService:
    """Read-only aggregations; every query returns zeros or empty lists when
    nothing matches."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def month_totals(self, month: str) -> tuple[int, int]:
        bounds = month_bounds(month)
        if bounds is None:
            return 0, 0
        stmt = select(
            _kind_sum(TransactionKind.income), _kind_sum(TransactionKind.expense)
        ).where(Transaction.occurred_on.between(*bounds))
        income, expense = self.session.execute(stmt).one()
        return int(income or 0), int(expense or 0)

    def budgets_for_month(self, month: str) -> list[BudgetRecord]:
        bounds = month_bounds(month)
        if bounds is None:
            return []
        spent = func.coalesce(func.sum(Transaction.amount_cents), 0).label("spent")
        stmt = (
            select(
                Budget.id,
                Budget.category_id,
                Category.name.label("category_name"),
                Budget.month,
                Budget.amount_cents,
                spent,
            )
            .join(Category, Category.id == Budget.category_id)
            .outerjoin(
                Transaction,
                and_(
                    Transaction.category_id == Budget.category_id,
                    Transaction.kind == TransactionKind.expense,
                    Transaction.occurred_on.between(*bounds),
                ),
            )
            .where(Budget.month == month)
            .group_by(
                Budget.id,
                Budget.category_id,
                Category.name,
                Budget.month,
                Budget.amount_cents,
            )
            .order_by(Category.name, Budget.id)
        )
        return [
            BudgetRecord(
                id=row.id,
                category_id=row.category_id,
                category_name=row.category_name,
                month=row.month,
                amount_cents=int(row.amount_cents),
                spent_cents=int(row.spent or 0),
            )
            for row in self.session.execute(stmt)
        ]

    def report_by_month(self, limit: int = 12) -> list[ReportMonth]:
        month = transaction_month().label("month")
        income = _kind_sum(TransactionKind.income).label("income")
        expense = _kind_sum(TransactionKind.expense).label("expense")
        stmt = (
            select(month, income, expense)
            .group_by(month)
            .order_by(month.desc())
            .limit(limit)
        )
        return [
            ReportMonth(
                month=row.month,
                income_cents=int(row.income or 0),
                expense_cents=int(row.expense or 0),
            )
            for row in self.session.execute(stmt)
        ]

    def report_by_category(self, month: str) -> list[ReportCategory]:
        bounds = month_bounds(month)
        if bounds is None:
            return []
        total = func.coalesce(func.sum(Transaction.amount_cents), 0).label("total")
        stmt = (
            select(Category.name, total)
            .join(Category, Category.id == Transaction.category_id)
            .where(
                Transaction.kind == TransactionKind.expense,
                Transaction.occurred_on.between(*bounds),
            )
            .group_by(Category.name)
            .order_by(total.desc(), Category.name)
        )
        return [
            ReportCategory(category_name=row.name, expense_cents=int(row.total or 0))
            for row in self.session.execute(stmt)
        ]
