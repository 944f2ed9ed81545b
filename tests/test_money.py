from decimal import Decimal
from types import SimpleNamespace

import pytest

from models import PaymentStatus, TransactionStatus, TransactionType
from money import (
    calculate_fee_cents,
    cents_equal,
    cents_to_dollars,
    classify_payment,
    compute_payment_status,
    format_currency,
    is_balanced,
    signed_amount,
    status_net,
    to_cents,
)


def _txn(kind: TransactionType, amount: int, status: TransactionStatus):
    return SimpleNamespace(transaction_type=kind, amount_cents=amount, status=status)


def test_signed_amount_follows_transaction_type() -> None:
    assert signed_amount(_txn(TransactionType.income, 1_500, TransactionStatus.cleared)) == 1_500
    assert signed_amount(_txn(TransactionType.expense, 1_500, TransactionStatus.cleared)) == -1_500


def test_status_net_always_has_every_status() -> None:
    totals = status_net(
        [
            _txn(TransactionType.income, 10_000, TransactionStatus.cleared),
            _txn(TransactionType.expense, 2_500, TransactionStatus.cleared),
            _txn(TransactionType.expense, 700, TransactionStatus.uncleared),
        ]
    )
    assert totals == {
        TransactionStatus.uncleared: -700,
        TransactionStatus.cleared: 7_500,
        TransactionStatus.reconciled: 0,
    }
    assert status_net([]) == {status: 0 for status in TransactionStatus}


def test_to_cents_rounds_half_up() -> None:
    assert to_cents("33.33") == 3_333
    assert to_cents(Decimal("1.005")) == 101
    assert to_cents(0.1 + 0.2) == 30
    assert to_cents(12) == 1_200
    assert to_cents("-4.555") == -456


def test_to_cents_rejects_bad_input() -> None:
    with pytest.raises(ValueError):
        to_cents("abc")
    with pytest.raises(ValueError):
        to_cents("NaN")
    with pytest.raises(ValueError):
        to_cents(float("inf"))


def test_cents_equal_ignores_float_noise() -> None:
    assert cents_equal(0.1 + 0.2, "0.30")
    assert not cents_equal("10.00", "10.01")


def test_classify_payment() -> None:
    assert classify_payment(0, 0) == PaymentStatus.paid
    assert classify_payment(0, 500) == PaymentStatus.paid
    assert classify_payment(5_000, 0) == PaymentStatus.unpaid
    assert classify_payment(5_000, 2_000) == PaymentStatus.partial
    assert classify_payment(5_000, 5_000) == PaymentStatus.paid
    assert classify_payment(5_000, 5_001) == PaymentStatus.overpaid


def test_compute_payment_status_compares_in_cents() -> None:
    paid = 11.11 + 11.11 + 11.11
    assert compute_payment_status(33.33, paid) == PaymentStatus.paid
    assert compute_payment_status("33.33", "33.32") == PaymentStatus.partial


def test_is_balanced_is_exact() -> None:
    assert is_balanced(125_000, 125_000)
    assert not is_balanced(125_000, 124_999)


def test_calculate_fee_cents() -> None:
    assert calculate_fee_cents(10_000, 2.9, 30) == 320
    assert calculate_fee_cents(1_000, None, None) == 0
    assert calculate_fee_cents(1_001, "2.5") == 25
    assert calculate_fee_cents(1_000, 0, 0) == 0


def test_formatting() -> None:
    assert format_currency(123_456) == "$1,234.56"
    assert format_currency(-5) == "-$0.05"
    assert format_currency(0) == "$0.00"
    assert cents_to_dollars(12_345) == 123.45
