from decimal import Decimal
from types import SimpleNamespace

import pytest
from tenacity import stop_after_attempt, wait_none

from lekha.config import Config
from lekha.errors import ExternalServiceError, ValidationError
from lekha.reminders.generator import REMINDER_PROMPT, GeminiReminderGenerator
from lekha.reminders.services import ReminderServices, format_amount
from lekha.transactions.models import TransactionKind


class StubModel:

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.prompts = []

    async def generate_content_async(self, prompt):
        self.prompts.append(prompt)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return SimpleNamespace(text=outcome)


def gemini_with(outcomes):
    generator = GeminiReminderGenerator(api_key="test-key")
    generator._model = StubModel(outcomes)
    return generator


def fast_generate(attempts=2):
    return GeminiReminderGenerator.generate.retry_with(wait=wait_none(), stop=stop_after_attempt(attempts))


def test_amounts_are_formatted_in_rupees():
    assert format_amount(Decimal("3000")) == "₹3,000.00"
    assert format_amount(Decimal("1234567.5")) == "₹1,234,567.50"


async def test_reminder_uses_ledger_balance(memory_store, owner_id, reminder_generator):
    customer = await memory_store.create_customer(owner_id, name="Priya Sharma", mobile="9876543210")
    await memory_store.add_transaction(owner_id, customer.id, TransactionKind.CREDIT, Decimal("5000"))
    await memory_store.add_transaction(owner_id, customer.id, TransactionKind.DEBIT, Decimal("2000"))

    reminder = await ReminderServices().generate_reminder(
        customer.id, memory_store, owner_id, reminder_generator, business_name="Sharma Stores"
    )

    assert reminder["outstanding_amount"] == "₹3,000.00"
    assert reminder["business_name"] == "Sharma Stores"
    assert "₹3,000.00" in reminder["reminder_text"]
    assert reminder_generator.calls == [
        {
            "customer_name": "Priya Sharma",
            "outstanding_amount": "₹3,000.00",
            "business_name": "Sharma Stores",
        }
    ]


async def test_reminder_falls_back_to_default_business_name(memory_store, owner_id, reminder_generator):
    customer = await memory_store.create_customer(owner_id, name="Priya Sharma", mobile="9876543210")
    await memory_store.add_transaction(owner_id, customer.id, TransactionKind.CREDIT, Decimal("100"))

    reminder = await ReminderServices().generate_reminder(customer.id, memory_store, owner_id, reminder_generator)

    assert reminder["business_name"] == Config.DEFAULT_BUSINESS_NAME


@pytest.mark.parametrize("entries", [[], [(TransactionKind.DEBIT, "750")]])
async def test_no_reminder_without_outstanding_amount(memory_store, owner_id, reminder_generator, entries):
    customer = await memory_store.create_customer(owner_id, name="Rahul Verma", mobile="9123456780")
    for kind, amount in entries:
        await memory_store.add_transaction(owner_id, customer.id, kind, Decimal(amount))

    with pytest.raises(ValidationError):
        await ReminderServices().generate_reminder(customer.id, memory_store, owner_id, reminder_generator)

    assert reminder_generator.calls == []


async def test_gemini_prompt_carries_ledger_figures():
    generator = gemini_with(["  Please clear ₹3,000.00 at Sharma Stores.  "])

    text = await fast_generate()(generator, "Priya Sharma", "₹3,000.00", "Sharma Stores")

    assert text == "Please clear ₹3,000.00 at Sharma Stores."
    assert generator._model.prompts == [
        REMINDER_PROMPT.format(
            customer_name="Priya Sharma",
            outstanding_amount="₹3,000.00",
            business_name="Sharma Stores",
        )
    ]


async def test_gemini_failure_is_retried_then_succeeds():
    generator = gemini_with([RuntimeError("quota"), "Reminder text"])

    text = await fast_generate()(generator, "Priya Sharma", "₹3,000.00", "Sharma Stores")

    assert text == "Reminder text"
    assert len(generator._model.prompts) == 2


async def test_gemini_failure_surfaces_as_external_service_error():
    generator = gemini_with([RuntimeError("quota"), ""])

    with pytest.raises(ExternalServiceError):
        await fast_generate()(generator, "Priya Sharma", "₹3,000.00", "Sharma Stores")
