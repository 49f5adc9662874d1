import asyncio
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from tenacity import wait_none

from lekha.db.main import init_db
from lekha.errors import TransientStoreError, WriteConflictError
from lekha.ledger.sql_store import SqlLedgerStore
from lekha.transactions.models import LedgerTransaction, TransactionKind
from lekha.transactions.schemas import TransactionInput
from lekha.transactions.services import TransactionServices


async def test_concurrent_appends_lose_nothing(memory_store, owner_id):
    customer = await memory_store.create_customer(owner_id, name="Priya Sharma", mobile="9876543210")

    credits = [
        memory_store.add_transaction(owner_id, customer.id, TransactionKind.CREDIT, Decimal("10"))
        for _ in range(50)
    ]
    debits = [
        memory_store.add_transaction(owner_id, customer.id, TransactionKind.DEBIT, Decimal("3"))
        for _ in range(20)
    ]
    await asyncio.gather(*credits, *debits)

    ledger = await memory_store.get_customer(owner_id, customer.id)
    assert ledger.balance == Decimal("440.00")
    assert len(ledger.transactions) == 70
    assert sorted(t.sequence for t in ledger.transactions) == list(range(1, 71))
    assert ledger.is_consistent


async def test_concurrent_sql_appends_lose_nothing(tmp_path, owner_id):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"timeout": 30},
    )
    await init_db(engine)

    async with AsyncSession(engine, expire_on_commit=False) as session:
        customer = await SqlLedgerStore(session).create_customer(
            owner_id, name="Priya Sharma", mobile="9876543210"
        )
        customer_id = customer.id

    services = TransactionServices(attempts=20, wait=wait_none())

    async def append():
        # one request: its own session and store
        async with AsyncSession(engine, expire_on_commit=False) as session:
            await services.add_transaction(customer_id, entry("10"), SqlLedgerStore(session), owner_id)

    try:
        await asyncio.gather(*(append() for _ in range(8)))

        async with AsyncSession(engine, expire_on_commit=False) as session:
            ledger = await SqlLedgerStore(session).get_customer(owner_id, customer_id)
    finally:
        await engine.dispose()

    assert ledger.balance == Decimal("80.00")
    assert ledger.customer.transaction_count == 8
    assert sorted(t.sequence for t in ledger.transactions) == list(range(1, 9))
    assert ledger.is_consistent


async def test_memory_store_hands_out_copies(memory_store, owner_id):
    customer = await memory_store.create_customer(owner_id, name="Priya Sharma", mobile="9876543210")
    customer.balance = Decimal("1000000")

    ledger = await memory_store.get_customer(owner_id, customer.id)
    ledger.customer.balance = Decimal("-1")

    ledger = await memory_store.get_customer(owner_id, customer.id)
    assert ledger.balance == Decimal("0.00")


async def test_memory_reconcile_repairs_drifted_balance(memory_store, owner_id):
    customer = await memory_store.create_customer(owner_id, name="Priya Sharma", mobile="9876543210")
    await memory_store.add_transaction(owner_id, customer.id, TransactionKind.CREDIT, Decimal("5000"))
    memory_store._records[customer.id].customer.balance = Decimal("4999.99")

    result = await memory_store.reconcile_balance(owner_id, customer.id)

    assert result.corrected is True
    assert result.cached_balance == Decimal("4999.99")
    assert result.computed_balance == Decimal("5000.00")
    ledger = await memory_store.get_customer(owner_id, customer.id)
    assert ledger.balance == Decimal("5000.00")


async def test_stale_count_is_a_write_conflict(sql_store, session, owner_id):
    customer = await sql_store.create_customer(owner_id, name="Priya Sharma", mobile="9876543210")
    customer_id = customer.id
    await sql_store.add_transaction(owner_id, customer_id, TransactionKind.CREDIT, Decimal("5000"))

    stale = LedgerTransaction(
        customer_id=customer_id,
        owner_id=owner_id,
        kind=TransactionKind.DEBIT,
        amount=Decimal("2000.00"),
        sequence=1,
    )
    # a writer that read the customer before the first append committed
    with pytest.raises(WriteConflictError):
        await sql_store._commit_append(customer, 0, Decimal("-2000.00"), stale)

    ledger = await sql_store.get_customer(owner_id, customer_id)
    assert ledger.balance == Decimal("5000.00")
    assert len(ledger.transactions) == 1

    rows = (await session.exec(select(LedgerTransaction))).all()
    assert len(rows) == 1


async def test_sql_reconcile_repairs_drifted_balance(sql_store, session, owner_id):
    customer = await sql_store.create_customer(owner_id, name="Priya Sharma", mobile="9876543210")
    customer_id = customer.id
    await sql_store.add_transaction(owner_id, customer_id, TransactionKind.CREDIT, Decimal("5000"))

    customer.balance = Decimal("1.00")
    session.add(customer)
    await session.commit()

    result = await sql_store.reconcile_balance(owner_id, customer_id)

    assert result.corrected is True
    assert result.cached_balance == Decimal("1.00")
    assert result.computed_balance == Decimal("5000.00")
    ledger = await sql_store.get_customer(owner_id, customer_id)
    assert ledger.balance == Decimal("5000.00")


class FlakyStore:
    """Loses the race a fixed number of times, then records the entry."""

    def __init__(self, conflicts, error=WriteConflictError):
        self.conflicts = conflicts
        self.error = error
        self.calls = 0

    async def add_transaction(self, owner_id, customer_id, kind, amount, notes=None, idempotency_key=None):
        self.calls += 1
        if self.calls <= self.conflicts:
            raise self.error()
        return {"kind": kind, "amount": amount, "sequence": self.calls}


def entry(amount="100"):
    return TransactionInput(kind="credit", amount=amount)


async def test_write_conflict_is_retried(owner_id):
    store = FlakyStore(conflicts=2)
    services = TransactionServices(attempts=3, wait=wait_none())

    result = await services.add_transaction("customer", entry(), store, owner_id)

    assert store.calls == 3
    assert result["amount"] == Decimal("100.00")


async def test_retries_are_bounded(owner_id):
    store = FlakyStore(conflicts=5)
    services = TransactionServices(attempts=3, wait=wait_none())

    with pytest.raises(WriteConflictError):
        await services.add_transaction("customer", entry(), store, owner_id)

    assert store.calls == 3


async def test_other_store_failures_are_not_retried(owner_id):
    store = FlakyStore(conflicts=1, error=TransientStoreError)
    services = TransactionServices(attempts=3, wait=wait_none())

    with pytest.raises(TransientStoreError):
        await services.add_transaction("customer", entry(), store, owner_id)

    assert store.calls == 1
