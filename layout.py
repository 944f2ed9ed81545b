"""Typed render rows shared by the spreadsheet and PDF renderers.

Grouping, subtotalling and tone decisions live here so both outputs lay out
the same rows with the same numbers. Renderers only map rows to cells.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional, Sequence, Union

from budgets import BudgetReportData, BudgetReportLine, build_combined_budget_lines
from models import STATUS_ORDER, TransactionStatus, TransactionType
from money import format_currency
from reports import (
    AccountBalanceSummary,
    CategoryGroup,
    ReportData,
    ReportSummary,
    ReportTransaction,
)
from seasons import SeasonsReportData, SeasonTotals

NO_TRANSACTIONS_MESSAGE = "No transactions found matching these filters."


class Tone(str, Enum):
    positive = "positive"
    negative = "negative"
    neutral = "neutral"


def tone_for(cents: int) -> Tone:
    return Tone.positive if cents >= 0 else Tone.negative


def type_tone(transaction_type: TransactionType) -> Tone:
    if transaction_type == TransactionType.income:
        return Tone.positive
    return Tone.negative


def format_date(value: Optional[Union[date, datetime]]) -> str:
    if value is None:
        return ""
    return f"{value.month:02d}/{value.day:02d}/{value.year}"


def format_timestamp(value: datetime) -> str:
    return value.strftime("%m/%d/%Y %I:%M %p")


def status_label(status: TransactionStatus) -> str:
    return TransactionStatus(status).value.capitalize()


@dataclass(frozen=True)
class ReportHeader:
    title: str
    subtitle: str
    range_line: str
    generated_line: str


def report_header(data: ReportData) -> ReportHeader:
    range_line = (
        f"Cleared: {format_date(data.start_date)} to {format_date(data.end_date)} "
        "(includes all uncleared)"
    )
    if data.fiscal_year_label:
        range_line = f"{data.fiscal_year_label} | {range_line}"
    return ReportHeader(
        title=data.organization_name,
        subtitle="Transaction Report",
        range_line=range_line,
        generated_line=f"Generated: {format_timestamp(data.generated_at)}",
    )


# Transactions table rows


@dataclass(frozen=True)
class AccountHeaderRow:
    account_name: str

    @property
    def label(self) -> str:
        return f"Account: {self.account_name}"


@dataclass(frozen=True)
class StatusHeaderRow:
    status: TransactionStatus

    @property
    def label(self) -> str:
        return status_label(self.status)


@dataclass(frozen=True)
class BalanceRow:
    label: str
    balance_cents: int


@dataclass(frozen=True)
class DataRow:
    """One line item. Shared transaction fields are set on the first row only."""

    is_first: bool
    transaction_date: Optional[date]
    created_at: Optional[datetime]
    account_name: str
    check_number: str
    vendor: str
    description: str
    category_label: str
    memo: str
    income_cents: Optional[int]
    expense_cents: Optional[int]
    status: Optional[TransactionStatus]
    cleared_at: Optional[datetime]
    running_balance_cents: Optional[int]


@dataclass(frozen=True)
class SubtotalRow:
    label: str
    income_cents: int
    expense_cents: int
    is_account_total: bool = False


@dataclass(frozen=True)
class GrandTotalRow:
    income_cents: int
    expense_cents: int
    label: str = "GRAND TOTAL:"


@dataclass(frozen=True)
class PlaceholderRow:
    message: str = NO_TRANSACTIONS_MESSAGE


RenderRow = Union[
    AccountHeaderRow,
    StatusHeaderRow,
    BalanceRow,
    DataRow,
    SubtotalRow,
    GrandTotalRow,
    PlaceholderRow,
]


def _data_rows(txn: ReportTransaction) -> list[DataRow]:
    rows: list[DataRow] = []
    is_income = txn.transaction_type == TransactionType.income
    last = len(txn.line_items) - 1
    for idx, item in enumerate(txn.line_items):
        first = idx == 0
        rows.append(
            DataRow(
                is_first=first,
                transaction_date=txn.transaction_date if first else None,
                created_at=txn.created_at if first else None,
                account_name=txn.account_name if first else "",
                check_number=(txn.check_number or "") if first else "",
                vendor=(txn.vendor or "") if first else "",
                description=txn.description if first else "",
                category_label=item.category_label,
                memo=item.memo or "",
                income_cents=item.amount_cents if is_income else None,
                expense_cents=None if is_income else item.amount_cents,
                status=txn.status if first else None,
                cleared_at=txn.cleared_at if first else None,
                running_balance_cents=txn.running_balance_cents if idx == last else None,
            )
        )
    return rows


def transaction_rows(data: ReportData) -> list[RenderRow]:
    """Account -> status -> transaction rows with subtotals and a grand total.

    Accounts appear in encounter order, statuses in ``STATUS_ORDER`` and
    transactions in input order. The grand total is taken from the summary,
    not re-added from the subtotals.
    """
    if not data.transactions:
        return [PlaceholderRow()]

    by_account: dict[str, list[ReportTransaction]] = {}
    for txn in data.transactions:
        by_account.setdefault(txn.account_id, []).append(txn)
    balances: dict[str, AccountBalanceSummary] = {
        ab.account_id: ab for ab in (data.account_balances or ())
    }

    rows: list[RenderRow] = []
    for account_id, txns in by_account.items():
        account_name = txns[0].account_name
        basis = balances.get(account_id)
        rows.append(AccountHeaderRow(account_name))
        if basis is not None:
            rows.append(BalanceRow("Starting Balance:", basis.starting_balance_cents))

        account_income = 0
        account_expense = 0
        for status in STATUS_ORDER:
            status_txns = [t for t in txns if t.status == status]
            if not status_txns:
                continue
            rows.append(StatusHeaderRow(status))
            income = 0
            expense = 0
            for txn in status_txns:
                rows.extend(_data_rows(txn))
                if txn.transaction_type == TransactionType.income:
                    income += txn.amount_cents
                else:
                    expense += txn.amount_cents
            rows.append(SubtotalRow(f"{status_label(status)} Subtotal:", income, expense))
            account_income += income
            account_expense += expense

        rows.append(
            SubtotalRow(
                f"{account_name} Total:",
                account_income,
                account_expense,
                is_account_total=True,
            )
        )
        if basis is not None:
            rows.append(BalanceRow("Ending Balance:", basis.ending_balance_cents))

    rows.append(
        GrandTotalRow(
            income_cents=data.summary.total_income_cents,
            expense_cents=data.summary.total_expenses_cents,
        )
    )
    return rows


# Summary page


@dataclass(frozen=True)
class SummaryLine:
    label: str
    amount_cents: Optional[int] = None
    tone: Tone = Tone.neutral
    bold: bool = False
    italic: bool = False
    indent: bool = False


@dataclass(frozen=True)
class SummarySection:
    title: str
    lines: tuple[SummaryLine, ...]


def overall_section(summary: ReportSummary) -> SummarySection:
    return SummarySection(
        "OVERALL SUMMARY",
        (
            SummaryLine("Total Income:", summary.total_income_cents, Tone.positive),
            SummaryLine("Total Expenses:", summary.total_expenses_cents, Tone.negative),
            SummaryLine(
                "Net Change:",
                summary.net_change_cents,
                tone_for(summary.net_change_cents),
                bold=True,
            ),
        ),
    )


def account_balances_section(
    account_balances: Optional[Sequence[AccountBalanceSummary]],
) -> Optional[SummarySection]:
    if not account_balances:
        return None
    lines: list[SummaryLine] = []
    for ab in account_balances:
        lines.append(SummaryLine(ab.account_name, bold=True))
        lines.append(SummaryLine("Starting Balance:", ab.starting_balance_cents, indent=True))
        lines.append(SummaryLine("Ending Balance:", ab.ending_balance_cents, indent=True))
        lines.append(
            SummaryLine(
                "Net Change:",
                ab.net_change_cents,
                tone_for(ab.net_change_cents),
                italic=True,
                indent=True,
            )
        )
    return SummarySection("ACCOUNT BALANCES", tuple(lines))


def status_section(summary: ReportSummary) -> SummarySection:
    return SummarySection(
        "BALANCE BY STATUS",
        tuple(
            SummaryLine(
                f"{status_label(status)} Balance:",
                summary.balance_by_status.get(status),
            )
            for status in STATUS_ORDER
        ),
    )


def category_section(
    title: str, groups: Sequence[CategoryGroup], tone: Tone
) -> Optional[SummarySection]:
    if not groups:
        return None
    lines: list[SummaryLine] = []
    for group in groups:
        lines.append(SummaryLine(group.parent_name, bold=True))
        for child in group.children:
            lines.append(SummaryLine(child.name, child.total_cents, tone, indent=True))
        if len(group.children) > 1:
            lines.append(
                SummaryLine(
                    "Subtotal:", group.subtotal_cents, tone, italic=True, indent=True
                )
            )
    return SummarySection(title, tuple(lines))


@dataclass(frozen=True)
class SummaryLayout:
    left: tuple[SummarySection, ...]
    right: tuple[SummarySection, ...]

    @property
    def sections(self) -> tuple[SummarySection, ...]:
        return self.left + self.right


def summary_layout(data: ReportData) -> SummaryLayout:
    summary = data.summary
    left = [overall_section(summary)]
    balances = account_balances_section(data.account_balances)
    if balances is not None:
        left.append(balances)
    left.append(status_section(summary))

    right = [
        section
        for section in (
            category_section("INCOME BY CATEGORY", summary.income_by_category, Tone.positive),
            category_section(
                "EXPENSES BY CATEGORY", summary.expenses_by_category, Tone.negative
            ),
        )
        if section is not None
    ]
    return SummaryLayout(left=tuple(left), right=tuple(right))


# Budget vs actuals


@dataclass(frozen=True)
class CombinedRow:
    category_name: str
    income_budgeted_cents: int
    income_actual_cents: int
    expense_budgeted_cents: int
    expense_actual_cents: int
    net_budgeted_cents: int
    net_actual_cents: int
    is_total: bool = False


@dataclass(frozen=True)
class BudgetRow:
    category_name: str
    budgeted_cents: int
    actual_cents: int
    variance_cents: int
    variance_percent: Optional[float] = None
    is_subtotal: bool = False

    @property
    def variance_tone(self) -> Tone:
        return tone_for(self.variance_cents)


@dataclass(frozen=True)
class BudgetSection:
    title: str
    tone: Tone
    rows: tuple[BudgetRow, ...]


@dataclass(frozen=True)
class BudgetLayout:
    title: str
    period_line: str
    combined_rows: tuple[CombinedRow, ...]
    sections: tuple[BudgetSection, ...]
    net_row: BudgetRow


def format_variance(cents: int) -> str:
    prefix = "+" if cents >= 0 else ""
    return f"{prefix}{format_currency(cents)}"


def format_percent(value: Optional[float], digits: int = 0) -> str:
    if value is None:
        return "--"
    return f"{value:.{digits}f}%"


def _budget_section(
    title: str,
    lines: Sequence[BudgetReportLine],
    subtotal_label: str,
    tone: Tone,
    income: bool,
) -> Optional[BudgetSection]:
    if not lines:
        return None
    rows = [
        BudgetRow(
            category_name=line.category_name,
            budgeted_cents=line.budgeted_cents,
            actual_cents=line.actual_cents,
            variance_cents=line.variance_cents,
            variance_percent=line.variance_percent,
        )
        for line in lines
    ]
    budgeted = sum(line.budgeted_cents for line in lines)
    actual = sum(line.actual_cents for line in lines)
    rows.append(
        BudgetRow(
            category_name=subtotal_label,
            budgeted_cents=budgeted,
            actual_cents=actual,
            variance_cents=actual - budgeted if income else budgeted - actual,
            is_subtotal=True,
        )
    )
    return BudgetSection(title, tone, tuple(rows))


def budget_layout(budget: BudgetReportData) -> BudgetLayout:
    """Combined lines and total, unmatched income, unmatched expenses, then NET.

    The NET row always uses the budget's full totals, so matched lines are
    counted there even though they are shown only in the combined table.
    """
    matched = build_combined_budget_lines(budget.income_lines, budget.expense_lines)

    combined_rows = [
        CombinedRow(
            category_name=line.category_name,
            income_budgeted_cents=line.income_budgeted_cents,
            income_actual_cents=line.income_actual_cents,
            expense_budgeted_cents=line.expense_budgeted_cents,
            expense_actual_cents=line.expense_actual_cents,
            net_budgeted_cents=line.net_budgeted_cents,
            net_actual_cents=line.net_actual_cents,
        )
        for line in matched.combined_lines
    ]
    if combined_rows:
        combined_rows.append(
            CombinedRow(
                category_name="Combined Total",
                income_budgeted_cents=sum(r.income_budgeted_cents for r in combined_rows),
                income_actual_cents=sum(r.income_actual_cents for r in combined_rows),
                expense_budgeted_cents=sum(r.expense_budgeted_cents for r in combined_rows),
                expense_actual_cents=sum(r.expense_actual_cents for r in combined_rows),
                net_budgeted_cents=sum(r.net_budgeted_cents for r in combined_rows),
                net_actual_cents=sum(r.net_actual_cents for r in combined_rows),
                is_total=True,
            )
        )

    sections = [
        section
        for section in (
            _budget_section(
                "INCOME",
                matched.unmatched_income_lines,
                "Income Subtotal",
                Tone.positive,
                income=True,
            ),
            _budget_section(
                "EXPENSES",
                matched.unmatched_expense_lines,
                "Expenses Subtotal",
                Tone.negative,
                income=False,
            ),
        )
        if section is not None
    ]

    totals = budget.totals
    net_row = BudgetRow(
        category_name="NET",
        budgeted_cents=totals.net_budget_cents,
        actual_cents=totals.net_actual_cents,
        variance_cents=totals.net_actual_cents - totals.net_budget_cents,
        is_subtotal=True,
    )
    return BudgetLayout(
        title=f"Budget vs. Actuals: {budget.budget_name}",
        period_line=(
            f"{format_date(budget.start_date)} to {format_date(budget.end_date)} "
            f"({budget.status.value})"
        ),
        combined_rows=tuple(combined_rows),
        sections=tuple(sections),
        net_row=net_row,
    )


# Seasons


@dataclass(frozen=True)
class SeasonLine:
    label: str
    period: str
    base_fee_cents: Optional[int]
    totals: SeasonTotals
    is_total: bool = False


def season_lines(seasons: SeasonsReportData) -> list[SeasonLine]:
    lines = [
        SeasonLine(
            label=line.season_name,
            period=f"{format_date(line.start_date)} to {format_date(line.end_date)}",
            base_fee_cents=line.base_fee_cents,
            totals=line.totals,
        )
        for line in seasons.seasons
    ]
    lines.append(
        SeasonLine(
            label="TOTAL",
            period="",
            base_fee_cents=None,
            totals=seasons.grand_totals,
            is_total=True,
        )
    )
    return lines
