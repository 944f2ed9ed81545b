"""Canonical, renderer-agnostic transaction report model and its builder.

``build_report_data`` is the only place where report numbers are computed.
The spreadsheet and PDF renderers read these structures and never
re-aggregate, so both outputs reconcile to the same cent.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Mapping, Optional, Protocol, Sequence

from balances import ledger_order_key, running_balances
from models import TransactionStatus, TransactionType
from money import status_net

CATEGORY_SEPARATOR = " → "
ROOT_CHILD_NAME = "(root)"
UNKNOWN_CATEGORY = "Unknown"
UNCATEGORIZED = "Uncategorized"


class CategoryRef(Protocol):
    id: str
    name: str
    parent_id: Optional[str]


class AccountRef(Protocol):
    name: str


class LineItemRow(Protocol):
    category_id: str
    amount_cents: int
    memo: Optional[str]


class TransactionRow(Protocol):
    id: str
    account_id: str
    account: Optional[AccountRef]
    transaction_date: date
    created_at: Optional[datetime]
    transaction_type: TransactionType
    amount_cents: int
    status: TransactionStatus
    check_number: Optional[str]
    vendor: Optional[str]
    description: str
    cleared_at: Optional[datetime]
    line_items: Sequence[LineItemRow]


@dataclass(frozen=True)
class ReportLineItem:
    category_label: str
    amount_cents: int
    memo: Optional[str]
    # Only the last line item of a transaction carries the running balance.
    running_balance_cents: Optional[int] = None


@dataclass(frozen=True)
class ReportTransaction:
    id: str
    transaction_date: date
    created_at: Optional[datetime]
    account_id: str
    account_name: str
    check_number: Optional[str]
    vendor: Optional[str]
    description: str
    transaction_type: TransactionType
    amount_cents: int
    status: TransactionStatus
    cleared_at: Optional[datetime]
    line_items: tuple[ReportLineItem, ...]
    running_balance_cents: Optional[int] = None

    @property
    def is_split(self) -> bool:
        return len(self.line_items) > 1


@dataclass(frozen=True)
class CategoryChild:
    name: str
    total_cents: int


@dataclass(frozen=True)
class CategoryGroup:
    parent_name: str
    children: tuple[CategoryChild, ...]
    subtotal_cents: int


@dataclass(frozen=True)
class BalanceByStatus:
    uncleared: int
    cleared: int
    reconciled: int

    def get(self, status: TransactionStatus) -> int:
        return getattr(self, TransactionStatus(status).value)


@dataclass(frozen=True)
class ReportSummary:
    total_income_cents: int
    total_expenses_cents: int
    net_change_cents: int
    balance_by_status: BalanceByStatus
    income_by_category: tuple[CategoryGroup, ...]
    expenses_by_category: tuple[CategoryGroup, ...]


@dataclass(frozen=True)
class AccountBalanceSummary:
    account_id: str
    account_name: str
    starting_balance_cents: int
    ending_balance_cents: int

    @property
    def net_change_cents(self) -> int:
        return self.ending_balance_cents - self.starting_balance_cents


@dataclass(frozen=True)
class StartingBalance:
    account_id: str
    account_name: str
    starting_balance_cents: int


@dataclass(frozen=True)
class ReportData:
    organization_name: str
    start_date: date
    end_date: date
    generated_at: datetime
    transactions: tuple[ReportTransaction, ...]
    summary: ReportSummary
    fiscal_year_label: Optional[str] = None
    account_balances: Optional[tuple[AccountBalanceSummary, ...]] = None


def _category_maps(
    categories: Iterable[CategoryRef],
) -> tuple[dict[str, str], dict[str, Optional[str]]]:
    names: dict[str, str] = {}
    parents: dict[str, Optional[str]] = {}
    for category in categories:
        names[category.id] = category.name
        parents[category.id] = category.parent_id
    return names, parents


def resolve_category_label(
    category_id: Optional[str],
    names: Mapping[str, str],
    parents: Mapping[str, Optional[str]],
) -> str:
    if category_id is None:
        return UNCATEGORIZED
    name = names.get(category_id)
    if not name:
        return UNKNOWN_CATEGORY
    parent_id = parents.get(category_id)
    if parent_id and names.get(parent_id):
        return f"{names[parent_id]}{CATEGORY_SEPARATOR}{name}"
    return name


def _group_key(
    category_id: Optional[str],
    names: Mapping[str, str],
    parents: Mapping[str, Optional[str]],
) -> tuple[str, str]:
    if category_id is None:
        return UNCATEGORIZED, ROOT_CHILD_NAME
    parent_id = parents.get(category_id)
    if parent_id and names.get(parent_id):
        return names[parent_id], names.get(category_id) or UNKNOWN_CATEGORY
    return names.get(category_id) or UNKNOWN_CATEGORY, ROOT_CHILD_NAME


def _name_order(name: str) -> tuple[str, str]:
    return (name.casefold(), name)


def build_category_groups(
    amounts: Mapping[tuple[str, str], int],
) -> tuple[CategoryGroup, ...]:
    """Fold (parent, child) totals into groups sorted by name, case-insensitively."""
    by_parent: dict[str, dict[str, int]] = defaultdict(dict)
    for (parent, child), amount in amounts.items():
        by_parent[parent][child] = by_parent[parent].get(child, 0) + amount

    groups: list[CategoryGroup] = []
    for parent in sorted(by_parent, key=_name_order):
        children = tuple(
            CategoryChild(name=child, total_cents=total)
            for child, total in sorted(
                by_parent[parent].items(), key=lambda item: _name_order(item[0])
            )
        )
        groups.append(
            CategoryGroup(
                parent_name=parent,
                children=children,
                subtotal_cents=sum(child.total_cents for child in children),
            )
        )
    return tuple(groups)


def _line_items_of(txn: TransactionRow) -> list[tuple[Optional[str], int, Optional[str]]]:
    items = [(li.category_id, li.amount_cents, li.memo) for li in txn.line_items]
    if not items:
        items = [(None, txn.amount_cents, None)]
    return items


def build_report_data(
    *,
    organization_name: str,
    start_date: Optional[date],
    end_date: Optional[date],
    transactions: Iterable[TransactionRow],
    categories: Iterable[CategoryRef],
    starting_balances: Optional[Sequence[StartingBalance]] = None,
    fiscal_year_label: Optional[str] = None,
    generated_at: Optional[datetime] = None,
) -> ReportData:
    """Aggregate an already-filtered ledger result set into ``ReportData``.

    Transactions are put into ledger order (transaction date, creation time,
    id) here, so results never depend on how the rows were queried. When
    ``starting_balances`` is given, running balances are computed per account
    and ``account_balances`` is filled in; otherwise both stay ``None``.
    """
    if not isinstance(start_date, date) or not isinstance(end_date, date):
        raise ValueError("Report requires both a start date and an end date")
    if start_date > end_date:
        raise ValueError("Start date must be on or before end date")

    names, parents = _category_maps(categories)
    ordered = sorted(transactions, key=ledger_order_key)

    running: dict[str, int] = {}
    account_balances: Optional[tuple[AccountBalanceSummary, ...]] = None
    if starting_balances is not None:
        summaries: dict[str, AccountBalanceSummary] = {}
        encounter = list(dict.fromkeys(txn.account_id for txn in ordered))
        by_account = {sb.account_id: sb for sb in starting_balances}
        for account_id in encounter + [a for a in by_account if a not in encounter]:
            basis = by_account.get(account_id)
            if basis is None:
                continue
            account_txns = [txn for txn in ordered if txn.account_id == account_id]
            balances = running_balances(basis.starting_balance_cents, account_txns)
            running.update(balances)
            ending = (
                balances[account_txns[-1].id]
                if account_txns
                else basis.starting_balance_cents
            )
            summaries[account_id] = AccountBalanceSummary(
                account_id=account_id,
                account_name=basis.account_name,
                starting_balance_cents=basis.starting_balance_cents,
                ending_balance_cents=ending,
            )
        account_balances = tuple(summaries.values())

    report_txns: list[ReportTransaction] = []
    income_amounts: dict[tuple[str, str], int] = defaultdict(int)
    expense_amounts: dict[tuple[str, str], int] = defaultdict(int)
    total_income = 0
    total_expenses = 0

    for txn in ordered:
        txn_type = TransactionType(txn.transaction_type)
        if txn_type == TransactionType.income:
            total_income += txn.amount_cents
            bucket = income_amounts
        else:
            total_expenses += txn.amount_cents
            bucket = expense_amounts

        balance = running.get(txn.id)
        raw_items = _line_items_of(txn)
        line_items: list[ReportLineItem] = []
        for idx, (category_id, amount, memo) in enumerate(raw_items):
            bucket[_group_key(category_id, names, parents)] += amount
            is_last = idx == len(raw_items) - 1
            line_items.append(
                ReportLineItem(
                    category_label=resolve_category_label(category_id, names, parents),
                    amount_cents=amount,
                    memo=memo,
                    running_balance_cents=balance if is_last else None,
                )
            )

        report_txns.append(
            ReportTransaction(
                id=txn.id,
                transaction_date=txn.transaction_date,
                created_at=txn.created_at,
                account_id=txn.account_id,
                account_name=txn.account.name if txn.account else "Unknown",
                check_number=txn.check_number,
                vendor=txn.vendor,
                description=txn.description,
                transaction_type=txn_type,
                amount_cents=txn.amount_cents,
                status=TransactionStatus(txn.status),
                cleared_at=txn.cleared_at,
                line_items=tuple(line_items),
                running_balance_cents=balance,
            )
        )

    nets = status_net(report_txns)
    summary = ReportSummary(
        total_income_cents=total_income,
        total_expenses_cents=total_expenses,
        net_change_cents=total_income - total_expenses,
        balance_by_status=BalanceByStatus(
            uncleared=nets[TransactionStatus.uncleared],
            cleared=nets[TransactionStatus.cleared],
            reconciled=nets[TransactionStatus.reconciled],
        ),
        income_by_category=build_category_groups(income_amounts),
        expenses_by_category=build_category_groups(expense_amounts),
    )

    return ReportData(
        organization_name=organization_name,
        start_date=start_date,
        end_date=end_date,
        generated_at=generated_at or datetime.now(),
        transactions=tuple(report_txns),
        summary=summary,
        fiscal_year_label=fiscal_year_label,
        account_balances=account_balances,
    )
