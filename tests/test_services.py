from datetime import date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from database import Base
from models import (
    Account,
    Budget,
    BudgetLineItem,
    BudgetStatus,
    Category,
    EnrollmentStatus,
    Organization,
    Season,
    SeasonEnrollment,
    SeasonPayment,
    SeasonStatus,
    Student,
    Transaction,
    TransactionLineItem,
    TransactionStatus,
    TransactionType,
)
from schemas import parse_report_params
from services import (
    AccountBalanceService,
    BudgetService,
    RecordNotFound,
    ReportService,
    SeasonService,
    get_organization,
)


def make_session() -> Session:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return SessionLocal()


def _seed(session: Session) -> dict:
    org = Organization(name="Hope Center", fiscal_year_start_month=7, seasons_enabled=True)
    session.add(org)
    session.flush()

    checking = Account(organization_id=org.id, name="Checking", opening_balance_cents=100_000)
    savings = Account(organization_id=org.id, name="Savings", opening_balance_cents=None)
    programs = Category(
        organization_id=org.id, name="Programs", category_type=TransactionType.expense
    )
    donations = Category(
        organization_id=org.id, name="Donations", category_type=TransactionType.income
    )
    session.add_all([checking, savings, programs, donations])
    session.flush()
    youth = Category(
        organization_id=org.id,
        name="Youth",
        parent_id=programs.id,
        category_type=TransactionType.expense,
    )
    session.add(youth)
    session.flush()

    def txn(account, day, kind, amount, status, cleared_at, category, description):
        row = Transaction(
            account=account,
            transaction_date=day,
            transaction_type=kind,
            amount_cents=amount,
            status=status,
            cleared_at=cleared_at,
            description=description,
            line_items=[
                TransactionLineItem(category_id=category.id, amount_cents=amount)
            ],
        )
        session.add(row)
        return row

    # cleared before the report window
    txn(
        checking,
        date(2023, 12, 20),
        TransactionType.income,
        20_000,
        TransactionStatus.reconciled,
        datetime(2023, 12, 28, 10),
        donations,
        "Year-end gift",
    )
    # dated before the window but cleared inside it
    txn(
        checking,
        date(2023, 12, 30),
        TransactionType.expense,
        5_000,
        TransactionStatus.cleared,
        datetime(2024, 1, 3, 9),
        youth,
        "Camp deposit",
    )
    txn(
        checking,
        date(2024, 1, 15),
        TransactionType.income,
        7_500,
        TransactionStatus.cleared,
        datetime(2024, 1, 31, 18),
        donations,
        "January gift",
    )
    # uncleared rows are always included
    txn(
        checking,
        date(2023, 11, 1),
        TransactionType.expense,
        1_200,
        TransactionStatus.uncleared,
        None,
        programs,
        "Outstanding check",
    )
    # cleared after the window
    txn(
        savings,
        date(2024, 1, 20),
        TransactionType.income,
        3_000,
        TransactionStatus.cleared,
        datetime(2024, 2, 1, 0, 0),
        donations,
        "Late deposit",
    )
    session.commit()
    return {
        "org": org,
        "checking": checking,
        "savings": savings,
        "programs": programs,
        "youth": youth,
        "donations": donations,
    }


def _params(**overrides):
    raw = {"start_date": "2024-01-01", "end_date": "2024-01-31"}
    raw.update(overrides)
    return parse_report_params(raw)


def test_report_inclusion_rule_and_starting_balances() -> None:
    session = make_session()
    seed = _seed(session)

    data = ReportService(session).fetch_report_data(seed["org"].id, _params())

    assert [t.description for t in data.transactions] == [
        "Outstanding check",
        "Camp deposit",
        "January gift",
    ]
    assert data.organization_name == "Hope Center"
    assert data.summary.total_income_cents == 7_500
    assert data.summary.total_expenses_cents == 6_200

    balances = {ab.account_name: ab for ab in data.account_balances}
    assert balances["Checking"].starting_balance_cents == 120_000
    assert balances["Checking"].ending_balance_cents == 121_300
    assert balances["Savings"].starting_balance_cents == 0
    assert balances["Savings"].ending_balance_cents == 0
    assert data.fiscal_year_label is None


def test_status_and_category_filters_drop_balances() -> None:
    session = make_session()
    seed = _seed(session)
    service = ReportService(session)

    cleared = service.fetch_report_data(seed["org"].id, _params(status="cleared"))
    assert [t.description for t in cleared.transactions] == [
        "Camp deposit",
        "January gift",
    ]
    assert cleared.account_balances is None

    uncleared = service.fetch_report_data(seed["org"].id, _params(status="uncleared"))
    assert [t.description for t in uncleared.transactions] == ["Outstanding check"]

    youth = service.fetch_report_data(seed["org"].id, _params(category_id=seed["youth"].id))
    assert [t.description for t in youth.transactions] == ["Camp deposit"]
    assert youth.account_balances is None


def test_account_filter_and_preset_label() -> None:
    session = make_session()
    seed = _seed(session)

    data = ReportService(session).fetch_report_data(
        seed["org"].id,
        _params(account_id=seed["savings"].id, preset="current_fy"),
        reference_date=date(2024, 1, 15),
    )

    assert data.transactions == ()
    assert [ab.account_name for ab in data.account_balances] == ["Savings"]
    assert data.fiscal_year_label == "FY 2023-2024 (Jul 1, 2023 – Jun 30, 2024)"
    assert data.start_date == date(2024, 1, 1)


def test_missing_records() -> None:
    session = make_session()
    seed = _seed(session)
    service = ReportService(session)

    with pytest.raises(RecordNotFound) as exc_info:
        service.fetch_report_data("no-such-org", _params())
    assert exc_info.value.message == "Organization not found"

    with pytest.raises(RecordNotFound):
        service.fetch_report_data(
            seed["org"].id, _params(account_id="00000000-0000-4000-8000-000000000000")
        )

    seed["org"].is_active = False
    session.commit()
    with pytest.raises(RecordNotFound):
        get_organization(session, seed["org"].id)
    assert get_organization(session, seed["org"].id, active_only=False).name == "Hope Center"


def test_budget_report_uses_transaction_dates_and_children() -> None:
    session = make_session()
    seed = _seed(session)
    budget = Budget(
        organization_id=seed["org"].id,
        name="FY 2024",
        start_date=date(2023, 12, 1),
        end_date=date(2023, 12, 31),
        status=BudgetStatus.active,
        line_items=[
            BudgetLineItem(category_id=seed["programs"].id, amount_cents=10_000, position=0),
            BudgetLineItem(category_id=seed["donations"].id, amount_cents=15_000, position=1),
        ],
    )
    session.add(budget)
    session.commit()

    data = BudgetService(session).fetch_budget_report(seed["org"].id, budget.id)

    (programs,) = data.expense_lines
    assert programs.category_name == "Programs"
    assert programs.actual_cents == 5_000
    (donations,) = data.income_lines
    assert donations.actual_cents == 20_000
    assert data.totals.net_actual_cents == 15_000

    with pytest.raises(RecordNotFound) as exc_info:
        BudgetService(session).fetch_budget_report(seed["org"].id, "missing")
    assert exc_info.value.message == "Budget not found"


def _add_season(
    session: Session,
    org: Organization,
    name: str,
    start: date,
    status: SeasonStatus = SeasonStatus.active,
) -> Season:
    season = Season(
        organization_id=org.id,
        name=name,
        start_date=start,
        end_date=date(start.year, 12, 31),
        fee_amount_cents=5_000,
        status=status,
    )
    student = Student(organization_id=org.id, first_name="Ada", last_name="Lovelace")
    session.add_all([season, student])
    session.flush()
    enrollment = SeasonEnrollment(
        season_id=season.id,
        student_id=student.id,
        fee_amount_cents=5_000,
        status=EnrollmentStatus.enrolled,
        enrolled_at=datetime(start.year, start.month, start.day, 12),
    )
    session.add(enrollment)
    session.flush()
    session.add(
        SeasonPayment(
            enrollment_id=enrollment.id, payment_date=start, amount_cents=2_000
        )
    )
    session.commit()
    return season


def test_season_reports() -> None:
    session = make_session()
    seed = _seed(session)
    org = seed["org"]
    spring = _add_season(session, org, "Spring", date(2024, 3, 1))
    _add_season(session, org, "Fall", date(2023, 9, 1))
    _add_season(session, org, "Archived", date(2022, 9, 1), SeasonStatus.archived)

    service = SeasonService(session)
    summary = service.fetch_seasons_summary(org.id)
    assert [line.season_name for line in summary.seasons] == ["Fall", "Spring"]
    assert summary.grand_totals.total_collected_cents == 4_000

    report = service.fetch_season_report(org.id, spring.id)
    assert report.organization_name == "Hope Center"
    assert report.summary.total_outstanding_cents == 3_000
    assert report.enrollments[0].student_name == "Lovelace, Ada"

    with pytest.raises(RecordNotFound) as exc_info:
        service.fetch_season_report(org.id, "missing")
    assert exc_info.value.message == "Season not found"

    org.seasons_enabled = False
    session.commit()
    with pytest.raises(RecordNotFound) as exc_info:
        service.fetch_season_report(org.id, spring.id)
    assert exc_info.value.message == "Season tracking is not enabled"


def test_account_balance_service() -> None:
    session = make_session()
    seed = _seed(session)
    service = AccountBalanceService(session)

    balances = service.organization_balances(seed["org"].id)
    checking = balances[seed["checking"].id]
    assert checking.current_balance_cents == 100_000 + 20_000 - 5_000 + 7_500 - 1_200
    assert balances[seed["savings"].id].current_balance_cents == 3_000

    assert service.reconciliation_starting_balance(seed["checking"].id) == 120_000
    assert service.cleared_balance(seed["checking"].id) == 122_500
    assert service.is_reconciled_to(seed["checking"].id, 122_500)
    assert not service.is_reconciled_to(seed["checking"].id, 121_300)

    with pytest.raises(RecordNotFound):
        service.cleared_balance("missing")
