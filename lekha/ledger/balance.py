"""Balance arithmetic.

All money is handled as ``Decimal`` quantized to cents. The balance is a
plain signed sum, so it never depends on the order of the transactions;
ordering only matters for display.
"""

from datetime import timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Iterable, List, Union

from lekha.errors import ValidationError
from lekha.transactions.models import LedgerTransaction, TransactionKind

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Numeric(14, 2) columns: 12 integer digits
MAX_AMOUNT = Decimal("999999999999.99")

Number = Union[Decimal, int, float, str]


class BalanceStatus(str, Enum):
    YOU_WILL_GET = "you_will_get"
    YOU_WILL_GIVE = "you_will_give"
    SETTLED = "settled"


def to_money(value: Number) -> Decimal:
    """Return ``value`` as a 2-place Decimal.

    Floats go through ``str`` first so that ``0.1`` becomes ``0.10`` and not
    the nearest binary fraction.
    """
    if isinstance(value, bool):
        raise ValidationError("Amount must be a number")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("Amount must be a number")
    if not amount.is_finite():
        raise ValidationError("Amount must be a finite number")
    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # more digits than the decimal context can hold
        raise ValidationError("Amount must be a number")


def ensure_positive_amount(value: Number) -> Decimal:
    amount = to_money(value)
    if amount <= ZERO:
        raise ValidationError("Please enter a valid positive number for the amount.")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"Amount cannot be more than {MAX_AMOUNT:,}.")
    return amount


def ensure_balance_in_range(balance: Decimal) -> Decimal:
    if abs(balance) > MAX_AMOUNT:
        raise ValidationError(
            f"This entry would take the balance past {MAX_AMOUNT:,}, which the ledger cannot hold."
        )
    return balance


def signed_amount(kind: TransactionKind, amount: Number) -> Decimal:
    """Credit adds to what the customer owes, debit takes it away."""
    amount = to_money(amount)
    if TransactionKind(kind) is TransactionKind.CREDIT:
        return amount
    return -amount


def calculate_balance(transactions: Iterable[LedgerTransaction]) -> Decimal:
    balance = ZERO
    for transaction in transactions:
        balance += signed_amount(transaction.kind, transaction.amount)
    return balance.quantize(CENT)


def balance_status(balance: Number) -> BalanceStatus:
    balance = to_money(balance)
    if balance > ZERO:
        return BalanceStatus.YOU_WILL_GET
    if balance < ZERO:
        return BalanceStatus.YOU_WILL_GIVE
    return BalanceStatus.SETTLED


def sort_for_display(transactions: Iterable[LedgerTransaction]) -> List[LedgerTransaction]:
    """Newest first; entries recorded in the same instant keep insertion order reversed."""
    return sorted(
        transactions,
        key=lambda t: (_timestamp_key(t.created_at), t.sequence),
        reverse=True,
    )


def _timestamp_key(value):
    # SQLite hands back naive datetimes; every timestamp here is stored as UTC.
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
