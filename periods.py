import re
from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from models import Budget, Transaction

MONTH_PATTERN = re.compile(r"^[0-9]{4}-(0[1-9]|1[0-2])$")


def current_month(today: Optional[date] = None) -> str:
    today = today or date.today()
    return today.strftime("%Y-%m")


def today_iso(today: Optional[date] = None) -> str:
    return (today or date.today()).isoformat()


def resolve_month(month: Optional[str], *, today: Optional[date] = None) -> str:
    if month is not None and month.strip():
        return month.strip()
    return current_month(today)


def month_bounds(month: str) -> Optional[tuple[date, date]]:
    """First and last day of a ``YYYY-MM`` token, or None if malformed."""
    if not MONTH_PATTERN.match(month):
        return None
    year, mon = int(month[:4]), int(month[5:7])
    first = date(year, mon, 1)
    if mon == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, mon + 1, 1)
    return first, next_month - date.resolution


def transaction_month():
    return func.strftime("%Y-%m", Transaction.occurred_on)


def available_months(
    session: Session, limit: int = 24, *, today: Optional[date] = None
) -> list[str]:
    month_col = transaction_month().label("month")
    txn_months = session.scalars(
        select(month_col).group_by(month_col).order_by(month_col.desc()).limit(limit)
    ).all()
    budget_months = session.scalars(
        select(Budget.month)
        .group_by(Budget.month)
        .order_by(Budget.month.desc())
        .limit(limit)
    ).all()
    months = {m for m in txn_months if m} | set(budget_months)
    months.add(current_month(today))
    return sorted(months, reverse=True)
