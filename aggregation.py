"""Reporting figures derived from an account's transaction list.

Every function here is pure: inputs are never mutated and nothing raises on
well-formed data. Missing categories fall back to ``Other`` and degenerate
ratios come out as 0.
"""

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence

from config import get_settings
from models import TransactionType
from periods import Period, PeriodFilter
from schemas import Category, Transaction

OTHER_LABEL = "Other"
OTHER_COLOR = "hsl(0, 0%, 50%)"


@dataclass(frozen=True)
class Summary:
    income_cents: int
    expense_cents: int
    balance_cents: int


@dataclass(frozen=True)
class CategoryBucket:
    category_id: str
    name: str
    color: str
    value_cents: int
    percent: float


@dataclass(frozen=True)
class SeriesPoint:
    label: str
    start: date
    income_cents: int
    expense_cents: int
    balance_cents: int


@dataclass(frozen=True)
class MonthTotals:
    month: str
    income_cents: int
    expense_cents: int
    profit_cents: int


@dataclass(frozen=True)
class GoalProgress:
    goal_cents: int
    spent_cents: int
    percent: int
    band: str


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def filter_by_period(
    transactions: Iterable[Transaction], period: Period
) -> list[Transaction]:
    return [txn for txn in transactions if period.contains(txn.date)]


def sum_by_type(
    transactions: Iterable[Transaction], transaction_type: TransactionType
) -> int:
    return sum(txn.amount_cents for txn in transactions if txn.type == transaction_type)


def summarize(transactions: Sequence[Transaction]) -> Summary:
    income = sum_by_type(transactions, TransactionType.income)
    expenses = sum_by_type(transactions, TransactionType.expense)
    return Summary(
        income_cents=income, expense_cents=expenses, balance_cents=income - expenses
    )


def category_lookup(categories: Iterable[Category]) -> dict[str, Category]:
    return {category.id: category for category in categories}


def category_label(
    category_id: Optional[str], lookup: dict[str, Category]
) -> tuple[str, str]:
    category = lookup.get(category_id or "")
    if category is None:
        return OTHER_LABEL, OTHER_COLOR
    return category.name, category.color


def expenses_by_category(
    transactions: Iterable[Transaction], categories: Iterable[Category]
) -> list[CategoryBucket]:
    grouped: dict[str, int] = {}
    for txn in transactions:
        if txn.type != TransactionType.expense:
            continue
        grouped[txn.category_id] = grouped.get(txn.category_id, 0) + txn.amount_cents

    lookup = category_lookup(categories)
    total = sum(grouped.values())
    buckets: list[CategoryBucket] = []
    for category_id, value in grouped.items():
        name, color = category_label(category_id, lookup)
        buckets.append(
            CategoryBucket(
                category_id=category_id,
                name=name,
                color=color,
                value_cents=value,
                percent=(value / total * 100) if total else 0,
            )
        )
    # sorted() is stable, so ties keep first-encountered order.
    return sorted(buckets, key=lambda b: b.value_cents, reverse=True)


def _week_start(d: date) -> date:
    # Weeks run Sunday to Saturday.
    return d - timedelta(days=(d.weekday() + 1) % 7)


def series_is_weekly(selector: PeriodFilter) -> bool:
    return selector == PeriodFilter.last_3_months


def running_series(
    transactions: Iterable[Transaction],
    period: Period,
    selector: PeriodFilter,
    *,
    today: date,
) -> list[SeriesPoint]:
    """Cumulative income/expense per bucket, up to ``min(period.end, today)``."""
    last_day = min(period.end, today)
    if last_day < period.start:
        return []
    scope = Period(period.slug, period.start, last_day)
    weekly = series_is_weekly(selector)

    def bucket_key(d: date) -> date:
        return _week_start(d) if weekly else d

    per_bucket: dict[date, tuple[int, int]] = {}
    for txn in filter_by_period(transactions, scope):
        key = bucket_key(txn.date)
        income, expenses = per_bucket.get(key, (0, 0))
        if txn.type == TransactionType.income:
            income += txn.amount_cents
        else:
            expenses += txn.amount_cents
        per_bucket[key] = (income, expenses)

    step = timedelta(days=7 if weekly else 1)
    label_format = "%d/%m" if weekly else "%d"
    points: list[SeriesPoint] = []
    acc_income = 0
    acc_expenses = 0
    current = bucket_key(scope.start)
    while current <= last_day:
        income, expenses = per_bucket.get(current, (0, 0))
        acc_income += income
        acc_expenses += expenses
        points.append(
            SeriesPoint(
                label=current.strftime(label_format),
                start=current,
                income_cents=acc_income,
                expense_cents=acc_expenses,
                balance_cents=acc_income - acc_expenses,
            )
        )
        current += step
    return points


def percent_change(current: int, previous: int) -> int:
    if previous <= 0:
        return 0
    return round_half_up((current - previous) / previous * 100)


def goal_utilization(expense_cents: int, goal_cents: int) -> int:
    if goal_cents <= 0:
        return 0
    return round_half_up(expense_cents / goal_cents * 100)


def goal_band(
    percent: int,
    *,
    warning_percent: Optional[int] = None,
    over_percent: Optional[int] = None,
) -> str:
    settings = get_settings()
    if warning_percent is None:
        warning_percent = settings.goal_warning_percent
    if over_percent is None:
        over_percent = settings.goal_over_percent
    if percent >= over_percent:
        return "over"
    if percent >= warning_percent:
        return "warning"
    return "nominal"


def goal_progress(expense_cents: int, goal_cents: int) -> GoalProgress:
    percent = goal_utilization(expense_cents, goal_cents)
    return GoalProgress(
        goal_cents=goal_cents,
        spent_cents=expense_cents,
        percent=percent,
        band=goal_band(percent),
    )


def savings_rate(summary: Summary) -> int:
    if summary.income_cents <= 0:
        return 0
    return round_half_up(summary.balance_cents / summary.income_cents * 100)


def monthly_comparison(transactions: Iterable[Transaction]) -> list[MonthTotals]:
    months: dict[tuple[int, int], list[int]] = {}
    for txn in transactions:
        totals = months.setdefault((txn.date.year, txn.date.month), [0, 0])
        if txn.type == TransactionType.income:
            totals[0] += txn.amount_cents
        else:
            totals[1] += txn.amount_cents
    return [
        MonthTotals(
            month=f"{year:04d}-{month:02d}",
            income_cents=income,
            expense_cents=expenses,
            profit_cents=income - expenses,
        )
        for (year, month), (income, expenses) in sorted(months.items())
    ]


def transactions_for_display(
    transactions: Iterable[Transaction], category_id: Optional[str] = None
) -> list[Transaction]:
    selected = [
        txn
        for txn in transactions
        if category_id is None or txn.category_id == category_id
    ]
    return sorted(selected, key=lambda t: t.date, reverse=True)


def recent_transactions(
    transactions: Iterable[Transaction], limit: int = 5
) -> list[Transaction]:
    return transactions_for_display(transactions)[:limit]
