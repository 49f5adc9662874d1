import asyncio
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional
import uuid

import structlog

from lekha.analytics.schemas import DashboardSummary
from lekha.customers.models import Customer, utc_now
from lekha.customers.validators import clean_address, clean_mobile, clean_name
from lekha.errors import NotFoundError, UnauthorizedError, ValidationError
from lekha.ledger.aggregate import CustomerLedger, ReconcileResult
from lekha.ledger.balance import (
    ZERO,
    calculate_balance,
    ensure_balance_in_range,
    ensure_positive_amount,
    signed_amount,
    sort_for_display,
    to_money,
)
from lekha.ledger.store import LedgerStore
from lekha.transactions.models import LedgerTransaction, TransactionKind
from lekha.transactions.validators import clean_idempotency_key, clean_kind, clean_notes

logger = structlog.get_logger(__name__)


def _copy(model):
    # Callers get detached copies so they can never mutate stored state.
    return type(model)(**model.model_dump())


@dataclass
class _CustomerRecord:
    customer: Customer
    transactions: List[LedgerTransaction] = field(default_factory=list)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class InMemoryLedgerStore(LedgerStore):
    """Process-local ledger for development and tests.

    Appends to one customer are serialized by that customer's lock; the
    balance and the history are replaced together while it is held.
    """

    def __init__(self):
        self._records: Dict[uuid.UUID, _CustomerRecord] = {}

    def _record(self, owner_id: uuid.UUID, customer_id: uuid.UUID) -> _CustomerRecord:
        record = self._records.get(customer_id)
        if record is None:
            raise NotFoundError()
        if record.customer.owner_id != owner_id:
            logger.warning(
                "cross_owner_access",
                owner_id=str(owner_id),
                customer_id=str(customer_id),
            )
            raise UnauthorizedError()
        return record

    async def list_customers(self, owner_id: uuid.UUID, search: Optional[str] = None) -> List[Customer]:
        term = (search or "").strip().lower()
        customers = [
            record.customer
            for record in self._records.values()
            if record.customer.owner_id == owner_id
        ]
        if term:
            customers = [
                c for c in customers
                if term in c.name.lower() or term in c.mobile
            ]
        customers.sort(key=lambda c: (c.name.casefold(), c.created_at))
        return [_copy(c) for c in customers]

    async def get_customer(self, owner_id: uuid.UUID, customer_id: uuid.UUID) -> CustomerLedger:
        record = self._record(owner_id, customer_id)
        async with record.lock:
            return CustomerLedger(
                customer=_copy(record.customer),
                transactions=[_copy(t) for t in sort_for_display(record.transactions)],
            )

    async def create_customer(
        self,
        owner_id: uuid.UUID,
        name: str,
        mobile: str,
        address: Optional[str] = None,
    ) -> Customer:
        customer = Customer(
            owner_id=owner_id,
            name=clean_name(name),
            mobile=clean_mobile(mobile),
            address=clean_address(address),
            balance=ZERO,
            transaction_count=0,
        )
        self._records[customer.id] = _CustomerRecord(customer=customer)
        logger.info("customer_created", owner_id=str(owner_id), customer_id=str(customer.id))
        return _copy(customer)

    async def update_customer(
        self,
        owner_id: uuid.UUID,
        customer_id: uuid.UUID,
        name: Optional[str] = None,
        mobile: Optional[str] = None,
        address: Optional[str] = None,
    ) -> Customer:
        changes = {}
        if name is not None:
            changes["name"] = clean_name(name)
        if mobile is not None:
            changes["mobile"] = clean_mobile(mobile)
        if address is not None:
            changes["address"] = clean_address(address)

        if not changes:
            raise ValidationError("You must provide at least one field to update (name, mobile, address)")

        record = self._record(owner_id, customer_id)
        async with record.lock:
            for key, value in changes.items():
                setattr(record.customer, key, value)
            record.customer.updated_at = utc_now()
            return _copy(record.customer)

    async def add_transaction(
        self,
        owner_id: uuid.UUID,
        customer_id: uuid.UUID,
        kind: TransactionKind,
        amount: Decimal,
        notes: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> LedgerTransaction:
        kind = clean_kind(kind)
        amount = ensure_positive_amount(amount)
        notes = clean_notes(notes)
        idempotency_key = clean_idempotency_key(idempotency_key)

        record = self._record(owner_id, customer_id)

        async with record.lock:
            if idempotency_key:
                for existing in record.transactions:
                    if existing.idempotency_key == idempotency_key:
                        return _copy(existing)

            customer = record.customer
            sequence = customer.transaction_count + 1
            new_balance = to_money(customer.balance) + signed_amount(kind, amount)
            ensure_balance_in_range(new_balance)

            transaction = LedgerTransaction(
                customer_id=customer.id,
                owner_id=customer.owner_id,
                kind=kind,
                amount=amount,
                notes=notes,
                sequence=sequence,
                idempotency_key=idempotency_key,
            )

            record.transactions = record.transactions + [transaction]
            customer.balance = new_balance
            customer.transaction_count = sequence
            customer.updated_at = utc_now()

        logger.info(
            "transaction_added",
            owner_id=str(owner_id),
            customer_id=str(customer_id),
            kind=kind.value,
            amount=str(amount),
            balance=str(new_balance),
        )
        return _copy(transaction)

    async def list_transactions(self, owner_id: uuid.UUID, customer_id: uuid.UUID) -> List[LedgerTransaction]:
        ledger = await self.get_customer(owner_id, customer_id)
        return ledger.transactions

    async def reconcile_balance(self, owner_id: uuid.UUID, customer_id: uuid.UUID) -> ReconcileResult:
        record = self._record(owner_id, customer_id)
        async with record.lock:
            cached = to_money(record.customer.balance)
            computed = calculate_balance(record.transactions)
            corrected = cached != computed
            if corrected:
                record.customer.balance = computed
                record.customer.updated_at = utc_now()
                logger.warning(
                    "balance_corrected",
                    customer_id=str(customer_id),
                    cached=str(cached),
                    computed=str(computed),
                )

        return ReconcileResult(
            customer_id=customer_id,
            cached_balance=cached,
            computed_balance=computed,
            corrected=corrected,
        )

    async def summarize(self, owner_id: uuid.UUID) -> DashboardSummary:
        balances = [
            to_money(record.customer.balance)
            for record in self._records.values()
            if record.customer.owner_id == owner_id
        ]
        return DashboardSummary(
            total_to_collect=sum((b for b in balances if b > ZERO), ZERO),
            total_to_give=sum((-b for b in balances if b < ZERO), ZERO),
            total_customers=len(balances),
        )
