from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Optional, Protocol, Sequence

from models import STATUS_ORDER, TransactionStatus, TransactionType
from money import signed_amount


class AccountLike(Protocol):
    id: str
    opening_balance_cents: Optional[int]


class LedgerEntry(Protocol):
    id: str
    account_id: str
    transaction_type: TransactionType
    amount_cents: int
    status: TransactionStatus


class DatedEntry(Protocol):
    id: str
    transaction_date: date
    created_at: Optional[datetime]


@dataclass
class AccountBalance:
    current_balance_cents: int
    total_income_cents: int = 0
    total_expense_cents: int = 0
    status_net: dict[TransactionStatus, int] = field(
        default_factory=lambda: {status: 0 for status in STATUS_ORDER}
    )


def account_balances(
    accounts: Iterable[AccountLike], transactions: Iterable[LedgerEntry]
) -> dict[str, AccountBalance]:
    result: dict[str, AccountBalance] = {
        account.id: AccountBalance(current_balance_cents=account.opening_balance_cents or 0)
        for account in accounts
    }
    for txn in transactions:
        entry = result.get(txn.account_id)
        if entry is None:
            continue
        net = signed_amount(txn)
        if txn.transaction_type == TransactionType.income:
            entry.total_income_cents += txn.amount_cents
        else:
            entry.total_expense_cents += txn.amount_cents
        entry.current_balance_cents += net
        if txn.status in entry.status_net:
            entry.status_net[txn.status] += net
    return result


def reconciled_balance(
    opening_balance_cents: Optional[int], transactions: Iterable[LedgerEntry]
) -> int:
    """Starting balance for a new reconciliation session."""
    balance = opening_balance_cents or 0
    for txn in transactions:
        if txn.status == TransactionStatus.reconciled:
            balance += signed_amount(txn)
    return balance


def running_balances(
    opening_balance_cents: int, ordered_transactions: Sequence[LedgerEntry]
) -> dict[str, int]:
    """Balance after each transaction, applied in the order given.

    No sorting happens here: callers pass transactions already ordered with
    ``ledger_order_key`` (or whatever chronology they need).
    """
    balances: dict[str, int] = {}
    balance = opening_balance_cents
    for txn in ordered_transactions:
        balance += signed_amount(txn)
        balances[txn.id] = balance
    return balances


def ledger_order_key(txn: DatedEntry) -> tuple[date, datetime, str]:
    return (txn.transaction_date, txn.created_at or datetime.min, txn.id)
