"""Display projections: every money field leaves here already formatted."""

from dataclasses import dataclass
from typing import Optional

from models import Transaction
from money import format_amount, percent_of
from services import BudgetRecord, ReportCategory, ReportMonth

RECEIPTS_URL_PREFIX = "/receipts/"


@dataclass(frozen=True)
class TransactionView:
    id: int
    kind: str
    amount: str
    occurred_on: str
    note: Optional[str]
    category_name: Optional[str]
    receipt_url: Optional[str]


@dataclass(frozen=True)
class BudgetView:
    id: int
    category_name: str
    month: str
    amount: str
    spent: str
    remaining: str
    percent: int


@dataclass(frozen=True)
class ReportMonthView:
    month: str
    income: str
    expense: str
    net: str


@dataclass(frozen=True)
class ReportCategoryView:
    category_name: str
    expense: str


@dataclass(frozen=True)
class TotalsView:
    income: str
    expense: str
    net: str


def receipt_url(filename: Optional[str]) -> Optional[str]:
    if not filename:
        return None
    return f"{RECEIPTS_URL_PREFIX}{filename}"


def to_transaction_view(txn: Transaction) -> TransactionView:
    return TransactionView(
        id=txn.id,
        kind=txn.kind.value,
        amount=format_amount(txn.amount_cents),
        occurred_on=txn.occurred_on.isoformat(),
        note=txn.note,
        category_name=txn.category.name if txn.category else None,
        receipt_url=receipt_url(txn.receipt_path),
    )


def to_budget_view(record: BudgetRecord) -> BudgetView:
    return BudgetView(
        id=record.id,
        category_name=record.category_name,
        month=record.month,
        amount=format_amount(record.amount_cents),
        spent=format_amount(record.spent_cents),
        remaining=format_amount(record.amount_cents - record.spent_cents),
        percent=percent_of(record.spent_cents, record.amount_cents),
    )


def to_report_month_view(record: ReportMonth) -> ReportMonthView:
    return ReportMonthView(
        month=record.month,
        income=format_amount(record.income_cents),
        expense=format_amount(record.expense_cents),
        net=format_amount(record.net_cents),
    )


def to_report_category_view(record: ReportCategory) -> ReportCategoryView:
    return ReportCategoryView(
        category_name=record.category_name,
        expense=format_amount(record.expense_cents),
    )


def to_totals_view(income_cents: int, expense_cents: int) -> TotalsView:
    return TotalsView(
        income=format_amount(income_cents),
        expense=format_amount(expense_cents),
        net=format_amount(income_cents - expense_cents),
    )
