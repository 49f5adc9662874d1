from dataclasses import dataclass, field
from decimal import Decimal
from typing import List
import uuid

from pydantic import BaseModel

from lekha.customers.models import Customer
from lekha.ledger.balance import calculate_balance, to_money
from lekha.transactions.models import LedgerTransaction


@dataclass
class CustomerLedger:
    """A customer together with its full history, newest entry first.

    ``balance`` is the cached column maintained on every append;
    ``computed_balance`` is the ground truth recomputed from history.
    """

    customer: Customer
    transactions: List[LedgerTransaction] = field(default_factory=list)

    @property
    def balance(self) -> Decimal:
        return to_money(self.customer.balance)

    @property
    def computed_balance(self) -> Decimal:
        return calculate_balance(self.transactions)

    @property
    def is_consistent(self) -> bool:
        return self.balance == self.computed_balance

    def as_dict(self) -> dict:
        return {
            **self.customer.model_dump(),
            "balance": self.balance,
            "transactions": [t.model_dump() for t in self.transactions],
        }


class ReconcileResult(BaseModel):
    customer_id: uuid.UUID
    cached_balance: Decimal
    computed_balance: Decimal
    corrected: bool
