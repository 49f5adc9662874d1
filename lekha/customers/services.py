from typing import Optional
import uuid

import structlog

from lekha.customers.schemas import CustomerCreate, CustomerUpdate
from lekha.errors import ValidationError
from lekha.ledger.store import LedgerStore

logger = structlog.get_logger(__name__)


class CustomerServices():

    async def create_customer(self, customer: CustomerCreate, store: LedgerStore, owner_id: uuid.UUID):
        return await store.create_customer(
            owner_id,
            name=customer.name,
            mobile=customer.mobile,
            address=customer.address,
        )

    async def get_all_customers(self, store: LedgerStore, owner_id: uuid.UUID, search: Optional[str] = None):
        return await store.list_customers(owner_id, search=search)

    async def get_customer_by_id(self, customer_id: uuid.UUID, store: LedgerStore, owner_id: uuid.UUID):
        ledger = await store.get_customer(owner_id, customer_id)
        return ledger.as_dict()

    async def update_customer(self, customer_id: uuid.UUID, update_data: CustomerUpdate, store: LedgerStore, owner_id: uuid.UUID):
        # Only the fields the client actually sent
        update_dict = update_data.model_dump(exclude_unset=True, exclude_none=True)

        if not update_dict:
            raise ValidationError("You must provide at least one field to update (name, mobile, address)")

        return await store.update_customer(owner_id, customer_id, **update_dict)

    async def reconcile_customer(self, customer_id: uuid.UUID, store: LedgerStore, owner_id: uuid.UUID):
        result = await store.reconcile_balance(owner_id, customer_id)
        if result.corrected:
            logger.warning(
                "customer_balance_reconciled",
                owner_id=str(owner_id),
                customer_id=str(customer_id),
            )
        return result
