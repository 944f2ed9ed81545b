import logging
from datetime import date
from types import SimpleNamespace

import pytest

from budgets import (
    BudgetReportLine,
    budget_variance,
    build_budget_report_data,
    build_combined_budget_lines,
    find_near_misses,
)
from models import BudgetStatus, TransactionType


def _line(name, kind, budgeted, actual):
    variance, percent = budget_variance(kind, budgeted, actual)
    return BudgetReportLine(
        category_name=name,
        category_type=kind,
        budgeted_cents=budgeted,
        actual_cents=actual,
        variance_cents=variance,
        variance_percent=percent,
    )


def _income(name, budgeted, actual):
    return _line(name, TransactionType.income, budgeted, actual)


def _expense(name, budgeted, actual):
    return _line(name, TransactionType.expense, budgeted, actual)


def test_disjoint_names_leave_everything_unmatched() -> None:
    income = [_income("Grants", 50_000, 40_000)]
    expense = [_expense("Supplies", 10_000, 12_000)]

    result = build_combined_budget_lines(income, expense)

    assert result.combined_lines == ()
    assert result.unmatched_income_lines == tuple(income)
    assert result.unmatched_expense_lines == tuple(expense)
    assert result.near_misses == ()


def test_shared_names_are_combined_and_duplicates_summed() -> None:
    income = [
        _income("Events", 10_000, 8_000),
        _income("Grants", 50_000, 40_000),
        _income("Events", 5_000, 4_000),
    ]
    expense = [_expense("Events", 6_000, 7_000), _expense("Supplies", 1_000, 900)]

    result = build_combined_budget_lines(income, expense)

    assert len(result.combined_lines) == 1
    events = result.combined_lines[0]
    assert events.category_name == "Events"
    assert events.income_budgeted_cents == 15_000
    assert events.income_actual_cents == 12_000
    assert events.expense_budgeted_cents == 6_000
    assert events.expense_actual_cents == 7_000
    assert events.net_budgeted_cents == 9_000
    assert events.net_actual_cents == 5_000
    assert [l.category_name for l in result.unmatched_income_lines] == ["Grants"]
    assert [l.category_name for l in result.unmatched_expense_lines] == ["Supplies"]


def test_combined_lines_follow_income_order() -> None:
    income = [_income("Zoo Trip", 100, 0), _income("Auction", 200, 0)]
    expense = [_expense("Auction", 50, 0), _expense("Zoo Trip", 25, 0)]
    result = build_combined_budget_lines(income, expense)
    assert [l.category_name for l in result.combined_lines] == ["Zoo Trip", "Auction"]


def test_separator_variants_do_not_match_but_are_reported(caplog) -> None:
    income = [_income("Programs > Youth", 1_000, 500)]
    expense = [_expense("Programs → Youth", 800, 600)]

    with caplog.at_level(logging.WARNING, logger="budgets"):
        result = build_combined_budget_lines(income, expense)

    assert result.combined_lines == ()
    assert result.near_misses == (("Programs > Youth", "Programs → Youth"),)
    assert "budget_match_near_miss" in caplog.text


def test_find_near_misses_uses_edit_distance() -> None:
    assert find_near_misses(["Fundraiser"], ["Fundraisers"]) == [
        ("Fundraiser", "Fundraisers")
    ]
    assert find_near_misses(["Grants"], ["Supplies"]) == []


def test_negative_amounts_are_rejected() -> None:
    with pytest.raises(ValueError):
        build_combined_budget_lines([_income("Events", -1, 0)], [])
    with pytest.raises(ValueError):
        build_combined_budget_lines([], [_expense("Events", 100, -5)])


def test_budget_variance() -> None:
    variance, percent = budget_variance(TransactionType.income, 10_000, 12_000)
    assert variance == 2_000
    assert percent == pytest.approx(120.0)

    variance, percent = budget_variance(TransactionType.expense, 10_000, 12_000)
    assert variance == -2_000
    assert percent == pytest.approx(120.0)

    assert budget_variance(TransactionType.expense, 0, 500) == (-500, None)


def test_build_budget_report_data_rolls_up_children() -> None:
    categories = [
        SimpleNamespace(
            id="programs",
            name="Programs",
            parent_id=None,
            category_type=TransactionType.expense,
        ),
        SimpleNamespace(
            id="youth",
            name="Youth",
            parent_id="programs",
            category_type=TransactionType.expense,
        ),
        SimpleNamespace(
            id="donations",
            name="Donations",
            parent_id=None,
            category_type=TransactionType.income,
        ),
    ]
    budget = SimpleNamespace(
        name="FY 2024",
        start_date=date(2024, 1, 1),
        end_date=date(2024, 12, 31),
        status=BudgetStatus.active,
        line_items=[
            SimpleNamespace(category_id="programs", amount_cents=50_000),
            SimpleNamespace(category_id="donations", amount_cents=100_000),
            SimpleNamespace(category_id="gone", amount_cents=0),
        ],
    )
    actuals = {"programs": 1_000, "youth": 2_000, "donations": 120_000}

    data = build_budget_report_data(budget, categories, actuals)

    assert data.budget_name == "FY 2024"
    assert data.status == BudgetStatus.active
    programs, unknown = data.expense_lines
    assert programs.category_name == "Programs"
    assert programs.actual_cents == 3_000
    assert programs.variance_cents == 47_000
    assert programs.variance_percent == pytest.approx(6.0)
    assert unknown.category_name == "Unknown"
    assert unknown.variance_percent is None

    (donations,) = data.income_lines
    assert donations.variance_cents == 20_000
    assert donations.variance_percent == pytest.approx(120.0)

    totals = data.totals
    assert totals.budgeted_income_cents == 100_000
    assert totals.actual_expenses_cents == 3_000
    assert totals.net_budget_cents == 50_000
    assert totals.net_actual_cents == 117_000
