"""Integer-cents money arithmetic shared by the aggregators and renderers.

All amounts inside the report engine are ``int`` cents. Decimal values only
appear at the edges: ``to_cents`` on the way in, ``format_currency`` and
``cents_to_dollars`` on the way out.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional, Protocol, Union

from models import PaymentStatus, STATUS_ORDER, TransactionStatus, TransactionType

DollarAmount = Union[Decimal, float, int, str]


class SignedTransaction(Protocol):
    transaction_type: TransactionType
    amount_cents: int


class StatusTransaction(SignedTransaction, Protocol):
    status: TransactionStatus


def signed_amount(txn: SignedTransaction) -> int:
    if txn.transaction_type == TransactionType.income:
        return txn.amount_cents
    return -txn.amount_cents


def status_net(transactions: Iterable[StatusTransaction]) -> dict[TransactionStatus, int]:
    """Signed net per status, always keyed by all three statuses."""
    totals = {status: 0 for status in STATUS_ORDER}
    for txn in transactions:
        if txn.status not in totals:
            continue
        totals[txn.status] += signed_amount(txn)
    return totals


def to_cents(value: DollarAmount) -> int:
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Amount must be finite: {value!r}")
    cents = (amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


def cents_equal(a: DollarAmount, b: DollarAmount) -> bool:
    return to_cents(a) == to_cents(b)


def is_balanced(cleared_balance_cents: int, statement_ending_balance_cents: int) -> bool:
    return cleared_balance_cents == statement_ending_balance_cents


def classify_payment(fee_cents: int, paid_cents: int) -> PaymentStatus:
    if fee_cents == 0:
        return PaymentStatus.paid
    if paid_cents == 0:
        return PaymentStatus.unpaid
    if paid_cents < fee_cents:
        return PaymentStatus.partial
    if paid_cents == fee_cents:
        return PaymentStatus.paid
    return PaymentStatus.overpaid


def compute_payment_status(fee_amount: DollarAmount, total_paid: DollarAmount) -> PaymentStatus:
    """Classify a payment given dollar amounts, comparing in whole cents."""
    return classify_payment(to_cents(fee_amount), to_cents(total_paid))


def calculate_fee_cents(
    amount_cents: int,
    fee_percentage: Optional[DollarAmount] = None,
    fee_flat_cents: Optional[int] = None,
) -> int:
    fee = Decimal(0)
    if fee_percentage is not None:
        pct = Decimal(str(fee_percentage))
        if pct > 0:
            fee += Decimal(amount_cents) * pct / Decimal(100)
    if fee_flat_cents and fee_flat_cents > 0:
        fee += Decimal(fee_flat_cents)
    return int(fee.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def cents_to_dollars(cents: int) -> float:
    return cents / 100


def format_currency(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}${whole:,}.{frac:02d}"
