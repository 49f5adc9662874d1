"""The persistence boundary of the ledger.

Every operation takes the owner id explicitly; an implementation must only
ever see customers stored under that owner. A customer that exists under a
different owner is reported exactly like a missing one.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import List, Optional
import uuid

from lekha.analytics.schemas import DashboardSummary
from lekha.customers.models import Customer
from lekha.ledger.aggregate import CustomerLedger, ReconcileResult
from lekha.transactions.models import LedgerTransaction, TransactionKind


class LedgerStore(ABC):

    @abstractmethod
    async def list_customers(
        self, owner_id: uuid.UUID, search: Optional[str] = None
    ) -> List[Customer]:
        """Customers ordered by name, without their transactions.

        ``search`` filters case-insensitively on name or mobile.
        """

    @abstractmethod
    async def get_customer(self, owner_id: uuid.UUID, customer_id: uuid.UUID) -> CustomerLedger:
        """The customer with its full history, newest first.

        Raises:
            NotFoundError: No such customer under this owner.
        """

    @abstractmethod
    async def create_customer(
        self,
        owner_id: uuid.UUID,
        name: str,
        mobile: str,
        address: Optional[str] = None,
    ) -> Customer:
        """Create a customer with a zero balance and no history.

        Raises:
            ValidationError: Empty name or a mobile that is not 10 digits.
        """

    @abstractmethod
    async def update_customer(
        self,
        owner_id: uuid.UUID,
        customer_id: uuid.UUID,
        name: Optional[str] = None,
        mobile: Optional[str] = None,
        address: Optional[str] = None,
    ) -> Customer:
        """Change name, mobile or address. Balance and history are never touched.

        Raises:
            ValidationError: Nothing to update, or a malformed field.
            NotFoundError: No such customer under this owner.
        """

    @abstractmethod
    async def add_transaction(
        self,
        owner_id: uuid.UUID,
        customer_id: uuid.UUID,
        kind: TransactionKind,
        amount: Decimal,
        notes: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> LedgerTransaction:
        """Append a transaction and move the cached balance in one unit of work.

        When ``idempotency_key`` matches an earlier transaction of the same
        customer, that transaction is returned and nothing is written.

        Raises:
            ValidationError: ``amount`` is not strictly positive.
            NotFoundError: No such customer under this owner.
            WriteConflictError: A concurrent append won; retry the whole call.
            TransientStoreError: The store failed; nothing was recorded.
        """

    @abstractmethod
    async def list_transactions(
        self, owner_id: uuid.UUID, customer_id: uuid.UUID
    ) -> List[LedgerTransaction]:
        """The customer's history, newest first."""

    @abstractmethod
    async def reconcile_balance(
        self, owner_id: uuid.UUID, customer_id: uuid.UUID
    ) -> ReconcileResult:
        """Recompute the balance from history and repair the cached value if it drifted."""

    @abstractmethod
    async def summarize(self, owner_id: uuid.UUID) -> DashboardSummary:
        """Totals across all of the owner's customers."""
