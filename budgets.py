from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Mapping, Optional, Protocol, Sequence

from rapidfuzz.distance import Levenshtein

from models import BudgetStatus, TransactionType
from reports import CategoryRef, resolve_category_label

logger = logging.getLogger(__name__)

NEAR_MISS_MAX_DISTANCE = 2
_SEPARATOR_RE = re.compile(r"\s*(?:→|->|>)\s*")


class BudgetLineRow(Protocol):
    category_id: str
    amount_cents: int


class BudgetRow(Protocol):
    name: str
    start_date: date
    end_date: date
    status: BudgetStatus
    line_items: Sequence[BudgetLineRow]


class TypedCategoryRef(CategoryRef, Protocol):
    category_type: TransactionType


@dataclass(frozen=True)
class BudgetReportLine:
    category_name: str
    category_type: TransactionType
    budgeted_cents: int
    actual_cents: int
    variance_cents: int
    variance_percent: Optional[float]


@dataclass(frozen=True)
class BudgetTotals:
    budgeted_income_cents: int
    actual_income_cents: int
    budgeted_expenses_cents: int
    actual_expenses_cents: int
    net_budget_cents: int
    net_actual_cents: int


@dataclass(frozen=True)
class BudgetReportData:
    budget_name: str
    start_date: date
    end_date: date
    status: BudgetStatus
    income_lines: tuple[BudgetReportLine, ...]
    expense_lines: tuple[BudgetReportLine, ...]
    totals: BudgetTotals


@dataclass(frozen=True)
class CombinedBudgetLine:
    category_name: str
    income_budgeted_cents: int
    income_actual_cents: int
    expense_budgeted_cents: int
    expense_actual_cents: int
    net_budgeted_cents: int
    net_actual_cents: int


@dataclass(frozen=True)
class CombinedBudgetResult:
    combined_lines: tuple[CombinedBudgetLine, ...]
    unmatched_income_lines: tuple[BudgetReportLine, ...]
    unmatched_expense_lines: tuple[BudgetReportLine, ...]
    # (income name, expense name) pairs that look alike but do not match exactly.
    near_misses: tuple[tuple[str, str], ...] = ()


def _sum_by_name(lines: Iterable[BudgetReportLine]) -> dict[str, list[int]]:
    totals: dict[str, list[int]] = {}
    for line in lines:
        if line.budgeted_cents < 0 or line.actual_cents < 0:
            raise ValueError(
                f"Budget line '{line.category_name}' has a negative amount"
            )
        entry = totals.setdefault(line.category_name, [0, 0])
        entry[0] += line.budgeted_cents
        entry[1] += line.actual_cents
    return totals


def _comparable(name: str) -> str:
    return _SEPARATOR_RE.sub(" > ", name).strip().casefold()


def find_near_misses(
    income_names: Iterable[str], expense_names: Iterable[str]
) -> list[tuple[str, str]]:
    expense_list = list(dict.fromkeys(expense_names))
    misses: list[tuple[str, str]] = []
    for income_name in dict.fromkeys(income_names):
        left = _comparable(income_name)
        for expense_name in expense_list:
            right = _comparable(expense_name)
            if left == right or Levenshtein.distance(left, right) <= NEAR_MISS_MAX_DISTANCE:
                misses.append((income_name, expense_name))
    return misses


def build_combined_budget_lines(
    income_lines: Sequence[BudgetReportLine],
    expense_lines: Sequence[BudgetReportLine],
) -> CombinedBudgetResult:
    """Pair income and expense budget lines that share a display name.

    Duplicates within one side are summed before matching. Matching is exact
    string equality on the resolved name, so "Programs > Youth" and
    "Programs → Youth" stay separate; such pairs are only reported in
    ``near_misses``. Unmatched lines are returned as given, not summed.
    """
    income = _sum_by_name(income_lines)
    expense = _sum_by_name(expense_lines)

    combined: list[CombinedBudgetLine] = []
    for name, (inc_budgeted, inc_actual) in income.items():
        if name not in expense:
            continue
        exp_budgeted, exp_actual = expense[name]
        combined.append(
            CombinedBudgetLine(
                category_name=name,
                income_budgeted_cents=inc_budgeted,
                income_actual_cents=inc_actual,
                expense_budgeted_cents=exp_budgeted,
                expense_actual_cents=exp_actual,
                net_budgeted_cents=inc_budgeted - exp_budgeted,
                net_actual_cents=inc_actual - exp_actual,
            )
        )

    matched = {line.category_name for line in combined}
    unmatched_income = tuple(
        line for line in income_lines if line.category_name not in matched
    )
    unmatched_expense = tuple(
        line for line in expense_lines if line.category_name not in matched
    )

    near_misses = find_near_misses(
        (line.category_name for line in unmatched_income),
        (line.category_name for line in unmatched_expense),
    )
    for income_name, expense_name in near_misses:
        logger.warning(
            f"budget_match_near_miss: income={income_name!r} expense={expense_name!r}"
        )

    return CombinedBudgetResult(
        combined_lines=tuple(combined),
        unmatched_income_lines=unmatched_income,
        unmatched_expense_lines=unmatched_expense,
        near_misses=tuple(near_misses),
    )


def budget_variance(
    category_type: TransactionType, budgeted_cents: int, actual_cents: int
) -> tuple[int, Optional[float]]:
    if category_type == TransactionType.income:
        variance = actual_cents - budgeted_cents
    else:
        variance = budgeted_cents - actual_cents
    percent = actual_cents / budgeted_cents * 100 if budgeted_cents > 0 else None
    return variance, percent


def build_budget_report_data(
    budget: BudgetRow,
    categories: Iterable[TypedCategoryRef],
    actuals_by_category: Mapping[str, int],
) -> BudgetReportData:
    """Budget-vs-actual lines; a parent category's actual includes its children."""
    category_list = list(categories)
    by_id = {c.id: c for c in category_list}
    names = {c.id: c.name for c in category_list}
    parents = {c.id: c.parent_id for c in category_list}
    children_of: dict[str, list[str]] = {}
    for category in category_list:
        if category.parent_id:
            children_of.setdefault(category.parent_id, []).append(category.id)

    income_lines: list[BudgetReportLine] = []
    expense_lines: list[BudgetReportLine] = []
    for item in budget.line_items:
        category = by_id.get(item.category_id)
        category_type = (
            TransactionType(category.category_type)
            if category is not None
            else TransactionType.expense
        )
        actual = actuals_by_category.get(item.category_id, 0)
        for child_id in children_of.get(item.category_id, []):
            actual += actuals_by_category.get(child_id, 0)
        variance, percent = budget_variance(category_type, item.amount_cents, actual)
        line = BudgetReportLine(
            category_name=resolve_category_label(item.category_id, names, parents),
            category_type=category_type,
            budgeted_cents=item.amount_cents,
            actual_cents=actual,
            variance_cents=variance,
            variance_percent=percent,
        )
        if category_type == TransactionType.income:
            income_lines.append(line)
        else:
            expense_lines.append(line)

    budgeted_income = sum(line.budgeted_cents for line in income_lines)
    actual_income = sum(line.actual_cents for line in income_lines)
    budgeted_expenses = sum(line.budgeted_cents for line in expense_lines)
    actual_expenses = sum(line.actual_cents for line in expense_lines)

    return BudgetReportData(
        budget_name=budget.name,
        start_date=budget.start_date,
        end_date=budget.end_date,
        status=BudgetStatus(budget.status),
        income_lines=tuple(income_lines),
        expense_lines=tuple(expense_lines),
        totals=BudgetTotals(
            budgeted_income_cents=budgeted_income,
            actual_income_cents=actual_income,
            budgeted_expenses_cents=budgeted_expenses,
            actual_expenses_cents=actual_expenses,
            net_budget_cents=budgeted_income - budgeted_expenses,
            net_actual_cents=actual_income - actual_expenses,
        ),
    )
