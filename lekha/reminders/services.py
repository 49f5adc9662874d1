from decimal import Decimal
from typing import Optional
import uuid

import structlog

from lekha.config import Config
from lekha.errors import ValidationError
from lekha.ledger.balance import ZERO
from lekha.ledger.store import LedgerStore
from lekha.reminders.generator import ReminderGenerator

logger = structlog.get_logger(__name__)


def format_amount(amount: Decimal) -> str:
    return f"₹{amount:,.2f}"


class ReminderServices:

    async def generate_reminder(
        self,
        customer_id: uuid.UUID,
        store: LedgerStore,
        owner_id: uuid.UUID,
        generator: ReminderGenerator,
        business_name: Optional[str] = None,
    ) -> dict:
        ledger = await store.get_customer(owner_id, customer_id)

        if ledger.balance <= ZERO:
            raise ValidationError(
                f"{ledger.customer.name} has no outstanding amount to be reminded about."
            )

        business_name = business_name or Config.DEFAULT_BUSINESS_NAME
        outstanding_amount = format_amount(ledger.balance)

        reminder_text = await generator.generate(
            customer_name=ledger.customer.name,
            outstanding_amount=outstanding_amount,
            business_name=business_name,
        )

        logger.info("reminder_generated", owner_id=str(owner_id), customer_id=str(customer_id))

        return {
            "customer_name": ledger.customer.name,
            "outstanding_amount": outstanding_amount,
            "business_name": business_name,
            "reminder_text": reminder_text,
        }
