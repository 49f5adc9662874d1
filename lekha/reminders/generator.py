"""Payment reminder drafting through a hosted language model.

The model only rewords the figures it is given; the outstanding amount
always comes from the ledger.
"""

from typing import Protocol

import google.generativeai as genai
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from lekha.config import Config
from lekha.errors import ExternalServiceError

logger = structlog.get_logger(__name__)

REMINDER_PROMPT = """You are a helpful assistant that generates payment reminders for businesses.

Generate a personalized payment reminder for the customer using the following information:

Customer Name: {customer_name}
Outstanding Amount: {outstanding_amount}
Business Name: {business_name}

The payment reminder should be polite and professional, and it should clearly state the outstanding amount and the business name. It should also encourage the customer to make the payment as soon as possible.
Do not add any salutations or closing remarks."""


class ReminderGenerator(Protocol):

    async def generate(self, customer_name: str, outstanding_amount: str, business_name: str) -> str:
        ...


class GeminiReminderGenerator:
    """Drafts reminders with Google's Gemini models."""

    def __init__(self, api_key: str = None, model_name: str = None):
        genai.configure(api_key=api_key or Config.GEMINI_API_KEY)
        self._model = genai.GenerativeModel(
            model_name=model_name or Config.GEMINI_MODEL,
            generation_config={
                "temperature": 0.7,
                "max_output_tokens": 512,
            }
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(ExternalServiceError),
        reraise=True,
    )
    async def generate(self, customer_name: str, outstanding_amount: str, business_name: str) -> str:
        prompt = REMINDER_PROMPT.format(
            customer_name=customer_name,
            outstanding_amount=outstanding_amount,
            business_name=business_name,
        )

        try:
            response = await self._model.generate_content_async(prompt)
            # .text raises ValueError when the candidate was blocked
            text = response.text.strip()
        except Exception as e:
            logger.warning("reminder_generation_failed", error=str(e))
            raise ExternalServiceError() from e

        if not text:
            logger.warning("reminder_generation_empty")
            raise ExternalServiceError()

        return text
