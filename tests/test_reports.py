from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from errors import NotFound
from models import TransactionKind
from schemas import BudgetIn, CategoryIn, TransactionIn
from services import (
    BudgetService,
    CategoryService,
    ReportMonth,
    ReportService,
    TransactionService,
)


def _session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def _txn(kind, amount, on, category_id=None, note=None) -> TransactionIn:
    return TransactionIn(
        kind=kind,
        amount_cents=amount,
        category_id=category_id,
        occurred_on=on,
        note=note,
    )


def test_month_totals_and_month_report_end_to_end() -> None:
    with _session() as session:
        food = CategoryService(session).create(
            CategoryIn(name="Food", kind=TransactionKind.expense)
        )
        txns = TransactionService(session)
        txns.create(_txn(TransactionKind.expense, 500, date(2024, 1, 10), food.id))
        txns.create(_txn(TransactionKind.income, 10_000, date(2024, 1, 5)))

        reports = ReportService(session)
        assert reports.month_totals("2024-01") == (10_000, 500)

        rows = reports.report_by_month(1)
        assert rows == [
            ReportMonth(month="2024-01", income_cents=10_000, expense_cents=500)
        ]
        assert rows[0].net_cents == 9_500


def test_month_totals_empty_month_is_zero() -> None:
    with _session() as session:
        reports = ReportService(session)
        assert reports.month_totals("2030-01") == (0, 0)
        assert reports.month_totals("not-a-month") == (0, 0)


def test_report_by_month_orders_newest_first_and_limits() -> None:
    with _session() as session:
        txns = TransactionService(session)
        txns.create(_txn(TransactionKind.income, 1_000, date(2023, 12, 31)))
        txns.create(_txn(TransactionKind.expense, 300, date(2024, 2, 1)))
        txns.create(_txn(TransactionKind.income, 2_000, date(2024, 1, 15)))
        txns.create(_txn(TransactionKind.expense, 700, date(2024, 1, 20)))

        rows = ReportService(session).report_by_month(12)
        assert [r.month for r in rows] == ["2024-02", "2024-01", "2023-12"]
        assert rows[0].income_cents == 0
        assert rows[0].net_cents == -300
        assert rows[1].net_cents == 1_300

        assert [r.month for r in ReportService(session).report_by_month(2)] == [
            "2024-02",
            "2024-01",
        ]


def test_budgets_for_month_reports_zero_spent_without_transactions() -> None:
    with _session() as session:
        food = CategoryService(session).create(
            CategoryIn(name="Food", kind=TransactionKind.expense)
        )
        BudgetService(session).create(
            BudgetIn(category_id=food.id, month="2024-01", amount_cents=20_000)
        )

        rows = ReportService(session).budgets_for_month("2024-01")
        assert len(rows) == 1
        assert rows[0].category_name == "Food"
        assert rows[0].amount_cents == 20_000
        assert rows[0].spent_cents == 0


def test_budgets_for_month_counts_only_matching_expenses() -> None:
    with _session() as session:
        categories = CategoryService(session)
        food = categories.create(CategoryIn(name="Food", kind=TransactionKind.expense))
        rent = categories.create(CategoryIn(name="Rent", kind=TransactionKind.expense))
        budgets = BudgetService(session)
        budgets.create(
            BudgetIn(category_id=food.id, month="2024-01", amount_cents=10_000)
        )
        budgets.create(
            BudgetIn(category_id=food.id, month="2024-02", amount_cents=10_000)
        )

        txns = TransactionService(session)
        txns.create(_txn(TransactionKind.expense, 1_200, date(2024, 1, 3), food.id))
        txns.create(_txn(TransactionKind.expense, 800, date(2024, 1, 31), food.id))
        txns.create(_txn(TransactionKind.expense, 5_000, date(2024, 2, 1), food.id))
        txns.create(_txn(TransactionKind.expense, 9_000, date(2024, 1, 5), rent.id))
        txns.create(_txn(TransactionKind.income, 4_000, date(2024, 1, 6), food.id))

        rows = ReportService(session).budgets_for_month("2024-01")
        assert [(r.category_name, r.spent_cents) for r in rows] == [("Food", 2_000)]


def test_duplicate_budgets_are_listed_separately() -> None:
    with _session() as session:
        food = CategoryService(session).create(
            CategoryIn(name="Food", kind=TransactionKind.expense)
        )
        budgets = BudgetService(session)
        budgets.create(
            BudgetIn(category_id=food.id, month="2024-01", amount_cents=5_000)
        )
        budgets.create(
            BudgetIn(category_id=food.id, month="2024-01", amount_cents=3_000)
        )
        TransactionService(session).create(
            _txn(TransactionKind.expense, 1_000, date(2024, 1, 9), food.id)
        )

        rows = ReportService(session).budgets_for_month("2024-01")
        assert [(r.amount_cents, r.spent_cents) for r in rows] == [
            (5_000, 1_000),
            (3_000, 1_000),
        ]


def test_report_by_category_ranks_expenses() -> None:
    with _session() as session:
        categories = CategoryService(session)
        food = categories.create(CategoryIn(name="Food", kind=TransactionKind.expense))
        rent = categories.create(CategoryIn(name="Rent", kind=TransactionKind.expense))
        salary = categories.create(
            CategoryIn(name="Salary", kind=TransactionKind.income)
        )

        txns = TransactionService(session)
        txns.create(_txn(TransactionKind.expense, 400, date(2024, 1, 2), food.id))
        txns.create(_txn(TransactionKind.expense, 300, date(2024, 1, 9), food.id))
        txns.create(_txn(TransactionKind.expense, 50_000, date(2024, 1, 1), rent.id))
        txns.create(_txn(TransactionKind.income, 90_000, date(2024, 1, 1), salary.id))
        txns.create(_txn(TransactionKind.expense, 999, date(2024, 1, 1)))
        txns.create(_txn(TransactionKind.expense, 10_000, date(2024, 2, 1), food.id))

        rows = ReportService(session).report_by_category("2024-01")
        assert [(r.category_name, r.expense_cents) for r in rows] == [
            ("Rent", 50_000),
            ("Food", 700),
        ]
        assert ReportService(session).report_by_category("2024-03") == []


def test_transaction_list_is_scoped_to_month_newest_first() -> None:
    with _session() as session:
        txns = TransactionService(session)
        txns.create(_txn(TransactionKind.expense, 100, date(2024, 1, 2), note="a"))
        txns.create(_txn(TransactionKind.expense, 200, date(2024, 1, 20), note="b"))
        txns.create(_txn(TransactionKind.expense, 300, date(2024, 2, 1), note="c"))

        items = txns.list("2024-01")
        assert [t.note for t in items] == ["b", "a"]
        assert txns.list("bogus") == []


def test_writes_with_unknown_category_raise_not_found() -> None:
    with _session() as session:
        with pytest.raises(NotFound):
            TransactionService(session).create(
                _txn(TransactionKind.expense, 100, date(2024, 1, 2), category_id=42)
            )
        with pytest.raises(NotFound):
            BudgetService(session).create(
                BudgetIn(category_id=42, month="2024-01", amount_cents=100)
            )


def test_blank_note_is_stored_as_none() -> None:
    with _session() as session:
        txn = TransactionService(session).create(
            _txn(TransactionKind.income, 100, date(2024, 1, 2), note="   ")
        )
        assert txn.note is None
