from decimal import Decimal
from typing import List, Optional
import uuid

import structlog
from sqlalchemy import case, func, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from lekha.analytics.schemas import DashboardSummary
from lekha.customers.models import Customer, utc_now
from lekha.customers.validators import clean_address, clean_mobile, clean_name
from lekha.errors import (
    NotFoundError,
    TransientStoreError,
    ValidationError,
    WriteConflictError,
)
from lekha.ledger.aggregate import CustomerLedger, ReconcileResult
from lekha.ledger.balance import (
    ZERO,
    calculate_balance,
    ensure_positive_amount,
    ensure_balance_in_range,
    signed_amount,
    to_money,
)
from lekha.ledger.store import LedgerStore
from lekha.transactions.models import LedgerTransaction, TransactionKind
from lekha.transactions.validators import clean_idempotency_key, clean_kind, clean_notes

logger = structlog.get_logger(__name__)


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class SqlLedgerStore(LedgerStore):
    """Ledger store on SQLModel tables, bound to one request's session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _fail(self, action: str, error: Exception, **context):
        await self.session.rollback()
        logger.error("ledger_store_error", action=action, error=str(error), **context)
        raise TransientStoreError() from error

    async def _get_owned_customer(
        self, owner_id: uuid.UUID, customer_id: uuid.UUID, for_update: bool = False
    ) -> Customer:
        statement = select(Customer).where(
            Customer.id == customer_id,
            Customer.owner_id == owner_id,
        )
        if for_update:
            # row lock on PostgreSQL
            statement = statement.with_for_update()
        # Balance columns are also written through Core updates; never trust the identity map.
        statement = statement.execution_options(populate_existing=True)

        try:
            result = await self.session.exec(statement)
            customer = result.first()
        except SQLAlchemyError as e:
            await self._fail("get_customer", e, customer_id=str(customer_id))

        if not customer:
            raise NotFoundError()

        return customer

    async def _history(self, customer_id: uuid.UUID) -> List[LedgerTransaction]:
        statement = (
            select(LedgerTransaction)
            .where(LedgerTransaction.customer_id == customer_id)
            .order_by(
                col(LedgerTransaction.created_at).desc(),
                col(LedgerTransaction.sequence).desc(),
            )
        )
        try:
            result = await self.session.exec(statement)
            return list(result.all())
        except SQLAlchemyError as e:
            await self._fail("list_transactions", e, customer_id=str(customer_id))

    async def list_customers(self, owner_id: uuid.UUID, search: Optional[str] = None) -> List[Customer]:
        statement = select(Customer).where(Customer.owner_id == owner_id)

        term = (search or "").strip()
        if term:
            pattern = _like_pattern(term)
            statement = statement.where(
                or_(
                    col(Customer.name).ilike(pattern, escape="\\"),
                    col(Customer.mobile).like(pattern, escape="\\"),
                )
            )

        statement = statement.order_by(func.lower(Customer.name).asc(), col(Customer.created_at).asc())

        try:
            result = await self.session.exec(statement)
            return list(result.all())
        except SQLAlchemyError as e:
            await self._fail("list_customers", e, owner_id=str(owner_id))

    async def get_customer(self, owner_id: uuid.UUID, customer_id: uuid.UUID) -> CustomerLedger:
        customer = await self._get_owned_customer(owner_id, customer_id)
        transactions = await self._history(customer.id)
        return CustomerLedger(customer=customer, transactions=transactions)

    async def create_customer(
        self,
        owner_id: uuid.UUID,
        name: str,
        mobile: str,
        address: Optional[str] = None,
    ) -> Customer:
        new_customer = Customer(
            owner_id=owner_id,
            name=clean_name(name),
            mobile=clean_mobile(mobile),
            address=clean_address(address),
            balance=ZERO,
            transaction_count=0,
        )

        self.session.add(new_customer)

        try:
            await self.session.commit()
            await self.session.refresh(new_customer)
        except SQLAlchemyError as e:
            await self._fail("create_customer", e, owner_id=str(owner_id))

        logger.info("customer_created", owner_id=str(owner_id), customer_id=str(new_customer.id))
        return new_customer

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

        customer = await self._get_owned_customer(owner_id, customer_id)

        for key, value in changes.items():
            setattr(customer, key, value)
        customer.updated_at = utc_now()

        try:
            await self.session.commit()
            await self.session.refresh(customer)
        except SQLAlchemyError as e:
            await self._fail("update_customer", e, customer_id=str(customer_id))

        return customer

    async def add_transaction(
        self,
        owner_id: uuid.UUID,
        customer_id: uuid.UUID,
        kind: TransactionKind,
        amount: Decimal,
        notes: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> LedgerTransaction:
        # Validate everything before touching the store.
        kind = clean_kind(kind)
        amount = ensure_positive_amount(amount)
        notes = clean_notes(notes)
        idempotency_key = clean_idempotency_key(idempotency_key)

        customer = await self._get_owned_customer(owner_id, customer_id, for_update=True)

        if idempotency_key:
            existing = await self._find_by_idempotency_key(customer.id, idempotency_key)
            if existing:
                # End the read transaction (and release the row lock) without expiring anything.
                await self.session.commit()
                logger.info(
                    "transaction_replayed",
                    customer_id=str(customer.id),
                    transaction_id=str(existing.id),
                )
                return existing

        expected_count = customer.transaction_count
        new_balance = to_money(customer.balance) + signed_amount(kind, amount)
        try:
            ensure_balance_in_range(new_balance)
        except ValidationError:
            # release the row lock before refusing
            await self.session.rollback()
            raise

        transaction = LedgerTransaction(
            customer_id=customer.id,
            owner_id=customer.owner_id,
            kind=kind,
            amount=amount,
            notes=notes,
            sequence=expected_count + 1,
            idempotency_key=idempotency_key,
        )

        await self._commit_append(customer, expected_count, new_balance, transaction)

        logger.info(
            "transaction_added",
            owner_id=str(owner_id),
            customer_id=str(customer.id),
            kind=kind.value,
            amount=str(amount),
            balance=str(new_balance),
        )
        return transaction

    async def _find_by_idempotency_key(self, customer_id: uuid.UUID, key: str) -> Optional[LedgerTransaction]:
        statement = select(LedgerTransaction).where(
            LedgerTransaction.customer_id == customer_id,
            LedgerTransaction.idempotency_key == key,
        )
        try:
            result = await self.session.exec(statement)
            return result.first()
        except SQLAlchemyError as e:
            await self._fail("find_transaction", e, customer_id=str(customer_id))

    async def _commit_append(
        self,
        customer: Customer,
        expected_count: int,
        new_balance: Decimal,
        transaction: LedgerTransaction,
    ):
        """Write the new balance and the new row as one unit.

        The balance update only applies while ``transaction_count`` still
        equals ``expected_count``; otherwise another append got there first
        and nothing is written.
        """
        customer_id = customer.id
        statement = (
            update(Customer)
            .where(
                col(Customer.id) == customer.id,
                col(Customer.owner_id) == customer.owner_id,
                col(Customer.transaction_count) == expected_count,
            )
            .values(
                balance=new_balance,
                transaction_count=expected_count + 1,
                updated_at=utc_now(),
            )
        )

        try:
            connection = await self.session.connection()
            result = await connection.execute(statement)
            swapped = result.rowcount == 1

            if swapped:
                self.session.add(transaction)
                await self.session.commit()
        except IntegrityError as e:
            # A racing append already took this sequence number or idempotency key.
            await self.session.rollback()
            logger.warning("transaction_conflict", customer_id=str(customer_id), error=str(e))
            raise WriteConflictError() from e
        except SQLAlchemyError as e:
            await self._fail("add_transaction", e, customer_id=str(customer_id))

        if not swapped:
            await self.session.rollback()
            logger.warning(
                "transaction_conflict",
                customer_id=str(customer_id),
                expected_count=expected_count,
            )
            raise WriteConflictError()

        await self.session.refresh(customer)
        await self.session.refresh(transaction)

    async def list_transactions(self, owner_id: uuid.UUID, customer_id: uuid.UUID) -> List[LedgerTransaction]:
        customer = await self._get_owned_customer(owner_id, customer_id)
        return await self._history(customer.id)

    async def reconcile_balance(self, owner_id: uuid.UUID, customer_id: uuid.UUID) -> ReconcileResult:
        customer = await self._get_owned_customer(owner_id, customer_id, for_update=True)
        transactions = await self._history(customer.id)

        cached = to_money(customer.balance)
        computed = calculate_balance(transactions)
        corrected = cached != computed or customer.transaction_count != len(transactions)

        if corrected:
            statement = (
                update(Customer)
                .where(
                    col(Customer.id) == customer.id,
                    col(Customer.transaction_count) == customer.transaction_count,
                )
                .values(
                    balance=computed,
                    transaction_count=len(transactions),
                    updated_at=utc_now(),
                )
            )
            try:
                connection = await self.session.connection()
                result = await connection.execute(statement)
                swapped = result.rowcount == 1
                if swapped:
                    await self.session.commit()
            except SQLAlchemyError as e:
                await self._fail("reconcile_balance", e, customer_id=str(customer.id))

            if not swapped:
                await self.session.rollback()
                raise WriteConflictError()

            await self.session.refresh(customer)

            logger.warning(
                "balance_corrected",
                customer_id=str(customer.id),
                cached=str(cached),
                computed=str(computed),
            )
        else:
            await self.session.commit()

        return ReconcileResult(
            customer_id=customer.id,
            cached_balance=cached,
            computed_balance=computed,
            corrected=corrected,
        )

    async def summarize(self, owner_id: uuid.UUID) -> DashboardSummary:
        to_collect = func.coalesce(
            func.sum(case((col(Customer.balance) > 0, Customer.balance), else_=0)), 0
        )
        to_give = func.coalesce(
            func.sum(case((col(Customer.balance) < 0, -col(Customer.balance)), else_=0)), 0
        )
        statement = select(to_collect, to_give, func.count(col(Customer.id))).where(
            Customer.owner_id == owner_id
        )

        try:
            result = await self.session.exec(statement)
            total_to_collect, total_to_give, total_customers = result.one()
        except SQLAlchemyError as e:
            await self._fail("summarize", e, owner_id=str(owner_id))

        return DashboardSummary(
            total_to_collect=to_money(total_to_collect),
            total_to_give=to_money(total_to_give),
            total_customers=total_customers or 0,
        )
