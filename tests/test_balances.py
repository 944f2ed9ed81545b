from datetime import date, datetime
from types import SimpleNamespace

from balances import (
    account_balances,
    ledger_order_key,
    reconciled_balance,
    running_balances,
)
from models import TransactionStatus, TransactionType


def _txn(id, account_id, kind, amount, status=TransactionStatus.cleared):
    return SimpleNamespace(
        id=id,
        account_id=account_id,
        transaction_type=kind,
        amount_cents=amount,
        status=status,
    )


def test_account_balances() -> None:
    accounts = [
        SimpleNamespace(id="checking", opening_balance_cents=10_000),
        SimpleNamespace(id="savings", opening_balance_cents=None),
    ]
    transactions = [
        _txn("t1", "checking", TransactionType.income, 5_000),
        _txn("t2", "checking", TransactionType.expense, 2_000, TransactionStatus.uncleared),
        _txn("t3", "elsewhere", TransactionType.income, 99_999),
    ]
    balances = account_balances(accounts, transactions)

    assert set(balances) == {"checking", "savings"}
    checking = balances["checking"]
    assert checking.current_balance_cents == 13_000
    assert checking.total_income_cents == 5_000
    assert checking.total_expense_cents == 2_000
    assert checking.status_net[TransactionStatus.cleared] == 5_000
    assert checking.status_net[TransactionStatus.uncleared] == -2_000
    assert checking.status_net[TransactionStatus.reconciled] == 0
    assert balances["savings"].current_balance_cents == 0


def test_reconciled_balance_only_counts_reconciled() -> None:
    transactions = [
        _txn("t1", "a", TransactionType.income, 4_000, TransactionStatus.reconciled),
        _txn("t2", "a", TransactionType.expense, 1_000, TransactionStatus.reconciled),
        _txn("t3", "a", TransactionType.income, 9_000, TransactionStatus.cleared),
    ]
    assert reconciled_balance(500, transactions) == 3_500
    assert reconciled_balance(None, []) == 0


def test_running_balances_follow_given_order() -> None:
    ordered = [
        _txn("t1", "a", TransactionType.income, 1_000),
        _txn("t2", "a", TransactionType.expense, 300),
        _txn("t3", "a", TransactionType.expense, 900),
    ]
    balances = running_balances(1_000, ordered)
    assert balances == {"t1": 2_000, "t2": 1_700, "t3": 800}
    assert running_balances(1_000, ordered) == balances


def test_ledger_order_key() -> None:
    rows = [
        SimpleNamespace(id="b", transaction_date=date(2024, 1, 2), created_at=None),
        SimpleNamespace(
            id="c", transaction_date=date(2024, 1, 1), created_at=datetime(2024, 1, 1, 9)
        ),
        SimpleNamespace(id="a", transaction_date=date(2024, 1, 1), created_at=None),
    ]
    assert [r.id for r in sorted(rows, key=ledger_order_key)] == ["a", "c", "b"]
