from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session, joinedload, selectinload

from balances import AccountBalance, account_balances, reconciled_balance
from budgets import BudgetReportData, build_budget_report_data
from config import get_settings
from models import (
    Account,
    Budget,
    BudgetLineItem,
    Category,
    Organization,
    Season,
    SeasonEnrollment,
    SeasonStatus,
    Transaction,
    TransactionLineItem,
    TransactionStatus,
)
from money import is_balanced
from periods import preset_date_range
from reports import ReportData, StartingBalance, build_report_data
from schemas import ReportParams
from seasons import (
    SeasonReportData,
    SeasonsReportData,
    build_season_report_data,
    build_seasons_report_data,
)

logger = logging.getLogger(__name__)

CLEARED_STATUSES = (TransactionStatus.cleared, TransactionStatus.reconciled)


class RecordNotFound(LookupError):
    def __init__(self, what: str, message: Optional[str] = None) -> None:
        self.what = what
        self.message = message or f"{what} not found"
        super().__init__(self.message)


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min)


def now_local() -> datetime:
    return datetime.now(ZoneInfo(get_settings().timezone))


def get_organization(
    session: Session, org_id: str, active_only: bool = True
) -> Organization:
    stmt = select(Organization).where(Organization.id == org_id)
    if active_only:
        stmt = stmt.where(Organization.is_active.is_(True))
    org = session.scalars(stmt).first()
    if org is None:
        raise RecordNotFound("Organization")
    return org


class ReportService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _categories(self, org_id: str) -> list[Category]:
        return list(
            self.session.scalars(
                select(Category).where(Category.organization_id == org_id)
            )
        )

    def _accounts(self, org_id: str, account_id: Optional[str]) -> list[Account]:
        stmt = select(Account).where(Account.organization_id == org_id)
        if account_id:
            stmt = stmt.where(Account.id == account_id)
        accounts = list(self.session.scalars(stmt.order_by(Account.name)))
        if account_id and not accounts:
            raise RecordNotFound("Account")
        return accounts

    def _status_clause(self, params: ReportParams):
        """Uncleared rows regardless of date, cleared/reconciled by ``cleared_at``."""
        requested = params.status
        include_uncleared = not requested or TransactionStatus.uncleared in requested
        cleared = (
            [s for s in requested if s != TransactionStatus.uncleared]
            if requested
            else list(CLEARED_STATUSES)
        )
        parts = []
        if include_uncleared:
            parts.append(Transaction.status == TransactionStatus.uncleared)
        if cleared:
            parts.append(
                and_(
                    Transaction.status.in_(cleared),
                    Transaction.cleared_at >= _day_start(params.start_date),
                    Transaction.cleared_at
                    < _day_start(params.end_date + timedelta(days=1)),
                )
            )
        return or_(*parts)

    def query_transactions(self, org_id: str, params: ReportParams) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .join(Account, Transaction.account_id == Account.id)
            .where(Account.organization_id == org_id, self._status_clause(params))
            .options(
                joinedload(Transaction.account),
                selectinload(Transaction.line_items),
            )
        )
        if params.account_id:
            stmt = stmt.where(Transaction.account_id == params.account_id)
        transactions = list(self.session.scalars(stmt).unique())
        if params.category_id:
            transactions = [
                txn
                for txn in transactions
                if any(li.category_id == params.category_id for li in txn.line_items)
            ]
        return transactions

    def starting_balances(
        self, accounts: list[Account], start: date
    ) -> list[StartingBalance]:
        """Opening balance plus everything cleared before ``start``, per account."""
        if not accounts:
            return []
        prior = self.session.scalars(
            select(Transaction).where(
                Transaction.account_id.in_([a.id for a in accounts]),
                Transaction.status.in_(CLEARED_STATUSES),
                Transaction.cleared_at < _day_start(start),
            )
        )
        balances = account_balances(accounts, prior)
        return [
            StartingBalance(
                account_id=account.id,
                account_name=account.name,
                starting_balance_cents=balances[account.id].current_balance_cents,
            )
            for account in accounts
        ]

    def fetch_report_data(
        self,
        org_id: str,
        params: ReportParams,
        reference_date: Optional[date] = None,
    ) -> ReportData:
        started = datetime.now()
        org = get_organization(self.session, org_id)
        accounts = self._accounts(org.id, params.account_id)
        transactions = self.query_transactions(org.id, params)

        starting = None
        if not params.has_line_filters:
            starting = self.starting_balances(accounts, params.start_date)

        fiscal_label = None
        if params.uses_preset:
            period = preset_date_range(
                params.preset,
                org.fiscal_year_start_month or 1,
                reference_date or now_local().date(),
            )
            if period is not None:
                fiscal_label = period.label

        data = build_report_data(
            organization_name=org.name,
            start_date=params.start_date,
            end_date=params.end_date,
            transactions=transactions,
            categories=self._categories(org.id),
            starting_balances=starting,
            fiscal_year_label=fiscal_label,
            generated_at=now_local(),
        )
        duration = (datetime.now() - started).total_seconds()
        logger.info(
            f"report_data_gathered: org={org.id} rows={len(data.transactions)} "
            f"period={params.start_date}to{params.end_date} duration={duration:.2f}s"
        )
        return data


class BudgetService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def actuals_by_category(self, org_id: str, start: date, end: date) -> dict[str, int]:
        rows = self.session.execute(
            select(TransactionLineItem.category_id, TransactionLineItem.amount_cents)
            .join(Transaction, TransactionLineItem.transaction_id == Transaction.id)
            .join(Account, Transaction.account_id == Account.id)
            .where(
                Account.organization_id == org_id,
                Transaction.transaction_date >= start,
                Transaction.transaction_date <= end,
            )
        )
        actuals: dict[str, int] = {}
        for category_id, amount in rows:
            actuals[category_id] = actuals.get(category_id, 0) + amount
        return actuals

    def fetch_budget_report(self, org_id: str, budget_id: str) -> BudgetReportData:
        budget = self.session.scalars(
            select(Budget)
            .where(Budget.id == budget_id, Budget.organization_id == org_id)
            .options(
                selectinload(Budget.line_items).joinedload(BudgetLineItem.category)
            )
        ).first()
        if budget is None:
            raise RecordNotFound("Budget")
        categories = self.session.scalars(
            select(Category).where(Category.organization_id == org_id)
        )
        actuals = self.actuals_by_category(org_id, budget.start_date, budget.end_date)
        data = build_budget_report_data(budget, categories, actuals)
        logger.info(
            f"budget_report_gathered: budget={budget.id} "
            f"income_lines={len(data.income_lines)} "
            f"expense_lines={len(data.expense_lines)}"
        )
        return data


class SeasonService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _enrollment_options(self):
        return selectinload(Season.enrollments).options(
            joinedload(SeasonEnrollment.student),
            selectinload(SeasonEnrollment.payments),
        )

    def fetch_seasons_summary(self, org_id: str) -> Optional[SeasonsReportData]:
        seasons = self.session.scalars(
            select(Season)
            .where(
                Season.organization_id == org_id,
                Season.status == SeasonStatus.active,
            )
            .order_by(Season.start_date)
            .options(self._enrollment_options())
        )
        return build_seasons_report_data(seasons)

    def fetch_season_report(self, org_id: str, season_id: str) -> SeasonReportData:
        org = get_organization(self.session, org_id, active_only=False)
        if not org.seasons_enabled:
            raise RecordNotFound("Season", "Season tracking is not enabled")
        season = self.session.scalars(
            select(Season)
            .where(Season.id == season_id, Season.organization_id == org.id)
            .options(self._enrollment_options())
        ).first()
        if season is None:
            raise RecordNotFound("Season")
        data = build_season_report_data(
            season, organization_name=org.name, generated_at=now_local()
        )
        logger.info(
            f"season_report_gathered: season={season.id} "
            f"enrollments={len(data.enrollments)}"
        )
        return data


class AccountBalanceService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _account(self, account_id: str) -> Account:
        account = self.session.get(Account, account_id)
        if account is None:
            raise RecordNotFound("Account")
        return account

    def organization_balances(self, org_id: str) -> dict[str, AccountBalance]:
        org = get_organization(self.session, org_id, active_only=False)
        accounts = list(
            self.session.scalars(
                select(Account).where(
                    Account.organization_id == org.id, Account.is_active.is_(True)
                )
            )
        )
        transactions = self.session.scalars(
            select(Transaction).where(
                Transaction.account_id.in_([a.id for a in accounts])
            )
        )
        return account_balances(accounts, transactions)

    def reconciliation_starting_balance(self, account_id: str) -> int:
        account = self._account(account_id)
        transactions = self.session.scalars(
            select(Transaction).where(
                Transaction.account_id == account.id,
                Transaction.status == TransactionStatus.reconciled,
            )
        )
        return reconciled_balance(account.opening_balance_cents, transactions)

    def cleared_balance(self, account_id: str) -> int:
        account = self._account(account_id)
        transactions = self.session.scalars(
            select(Transaction).where(
                Transaction.account_id == account.id,
                Transaction.status.in_(CLEARED_STATUSES),
            )
        )
        return account_balances([account], transactions)[account.id].current_balance_cents

    def is_reconciled_to(self, account_id: str, statement_ending_balance_cents: int) -> bool:
        return is_balanced(self.cleared_balance(account_id), statement_ending_balance_cents)
