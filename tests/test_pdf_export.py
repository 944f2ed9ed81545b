import re
from datetime import date, datetime
from types import SimpleNamespace

import pytest

from budgets import build_budget_report_data
from models import (
    BudgetStatus,
    EnrollmentStatus,
    SeasonStatus,
    TransactionStatus,
    TransactionType,
)
from pdf_export import (
    render_report_html,
    render_report_pdf,
    render_season_html,
    render_season_pdf,
)
from reports import StartingBalance, build_report_data
from seasons import build_season_report_data

CHECKING = SimpleNamespace(id="acct-checking", name="Checking")
CATEGORIES = [
    SimpleNamespace(
        id="programs", name="Programs", parent_id=None, category_type=TransactionType.expense
    ),
    SimpleNamespace(
        id="youth", name="Youth", parent_id="programs", category_type=TransactionType.expense
    ),
    SimpleNamespace(
        id="donations", name="Donations", parent_id=None, category_type=TransactionType.income
    ),
]


def _require_weasyprint() -> None:
    try:
        import weasyprint  # noqa: F401
    except Exception as exc:
        pytest.skip(f"WeasyPrint unavailable: {exc}")


def _txn(id, day, kind, items):
    return SimpleNamespace(
        id=id,
        account_id=CHECKING.id,
        account=CHECKING,
        transaction_date=day,
        created_at=None,
        transaction_type=kind,
        amount_cents=sum(amount for _, amount in items),
        status=TransactionStatus.cleared,
        check_number=None,
        vendor="Smith & Jones",
        description=f"Transaction {id}",
        cleared_at=datetime(2024, 1, 20),
        line_items=[
            SimpleNamespace(category_id=cat, amount_cents=amount, memo=None)
            for cat, amount in items
        ],
    )


def _report(transactions=None):
    if transactions is None:
        transactions = [
            _txn("t1", date(2024, 1, 5), TransactionType.income, [("donations", 12_500)]),
            _txn(
                "t2",
                date(2024, 1, 9),
                TransactionType.expense,
                [("youth", 3_000), ("programs", 1_000)],
            ),
        ]
    return build_report_data(
        organization_name="Hope Center",
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 31),
        transactions=transactions,
        categories=CATEGORIES,
        starting_balances=[StartingBalance(CHECKING.id, CHECKING.name, 10_000)],
        generated_at=datetime(2024, 2, 1, 9, 0),
    )


def _season_report(enrollments):
    season = SimpleNamespace(
        name="Fall 2024",
        description=None,
        start_date=date(2024, 9, 1),
        end_date=date(2024, 12, 15),
        fee_amount_cents=5_000,
        status=SeasonStatus.active,
        enrollments=enrollments,
    )
    return build_season_report_data(
        season, organization_name="Hope Center", generated_at=datetime(2024, 10, 1, 8)
    )


def test_report_html_contains_ledger_and_summary() -> None:
    html = render_report_html(_report())

    assert "Hope Center" in html
    assert "Account: Checking" in html
    assert "Programs → Youth" in html
    assert "GRAND TOTAL:" in html
    assert "$125.00" in html
    assert "$185.00" in html
    assert "OVERALL SUMMARY" in html
    assert "EXPENSES BY CATEGORY" in html
    assert "Smith &amp; Jones" in html
    assert "Budget vs. Actuals" not in html


def test_split_transaction_renders_one_row_per_line_item() -> None:
    html = render_report_html(_report())
    assert html.count('class="data-row"') == 2
    assert html.count('class="data-row split-line"') == 1


def test_split_running_balance_only_on_last_line() -> None:
    html = render_report_html(_report())
    rows = re.findall(r'<tr class="data-row[^"]*">(.*?)</tr>', html, re.S)
    last_cells = [re.findall(r"<td[^>]*>(.*?)</td>", row, re.S)[-1].strip() for row in rows]
    assert last_cells == ["$225.00", "", "$185.00"]


def test_empty_report_html_has_placeholder() -> None:
    html = render_report_html(_report(transactions=[]))
    assert "No transactions found matching these filters." in html


def test_report_html_with_budget_page() -> None:
    budget = build_budget_report_data(
        SimpleNamespace(
            name="FY 2024",
            start_date=date(2024, 1, 1),
            end_date=date(2024, 12, 31),
            status=BudgetStatus.active,
            line_items=[
                SimpleNamespace(category_id="programs", amount_cents=10_000),
                SimpleNamespace(category_id="donations", amount_cents=0),
            ],
        ),
        CATEGORIES,
        {"programs": 1_000, "youth": 3_000, "donations": 12_500},
    )
    html = render_report_html(_report(), budget=budget)

    assert "Budget vs. Actuals: FY 2024" in html
    assert "Income Subtotal" in html
    assert "Expenses Subtotal" in html
    assert "+$60.00" in html
    assert "--" in html


def test_season_html() -> None:
    student = SimpleNamespace(
        first_name="Ada",
        last_name="Lovelace",
        guardian_name=None,
        email="ada@example.org",
        phone=None,
        guardian_email=None,
        guardian_phone=None,
    )
    enrollment = SimpleNamespace(
        id="e1",
        fee_amount_cents=5_000,
        status=EnrollmentStatus.enrolled,
        student=student,
        payments=[],
    )
    html = render_season_html(_season_report([enrollment]))
    assert "Season Report: Fall 2024" in html
    assert "Lovelace, Ada" in html
    assert "ada@example.org" in html
    assert "Unpaid" in html
    assert "0.0%" in html

    empty = render_season_html(_season_report([]))
    assert "No enrollments in this season." in empty


def test_report_pdf_bytes() -> None:
    _require_weasyprint()
    payload = render_report_pdf(_report())
    assert payload.startswith(b"%PDF-")


def test_season_pdf_bytes() -> None:
    _require_weasyprint()
    payload = render_season_pdf(_season_report([]))
    assert payload.startswith(b"%PDF-")


def test_empty_report_pdf_bytes() -> None:
    _require_weasyprint()
    payload = render_report_pdf(_report(transactions=[]))
    assert payload.startswith(b"%PDF-")
