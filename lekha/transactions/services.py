import uuid

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from lekha.config import Config
from lekha.errors import WriteConflictError
from lekha.ledger.store import LedgerStore
from lekha.transactions.schemas import TransactionInput

logger = structlog.get_logger(__name__)


class TransactionServices:

    def __init__(self, attempts: int = None, wait=None):
        self.attempts = attempts or Config.LEDGER_WRITE_RETRIES
        self.wait = wait or wait_exponential(multiplier=0.05, max=1)

    async def add_transaction(self, customer_id: uuid.UUID, transaction: TransactionInput, store: LedgerStore, owner_id: uuid.UUID):
        """Append a transaction, repeating the whole read-modify-write on a lost race.

        Only ``WriteConflictError`` is retried: it guarantees nothing was
        written. Any other failure may have an unknown outcome and is
        surfaced to the caller.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=self.wait,
            retry=retry_if_exception_type(WriteConflictError),
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info(
                        "transaction_retry",
                        customer_id=str(customer_id),
                        attempt=attempt.retry_state.attempt_number,
                    )
                return await store.add_transaction(
                    owner_id,
                    customer_id,
                    kind=transaction.kind,
                    amount=transaction.amount,
                    notes=transaction.notes,
                    idempotency_key=transaction.idempotency_key,
                )

    async def get_customer_transactions(self, customer_id: uuid.UUID, store: LedgerStore, owner_id: uuid.UUID):
        return await store.list_transactions(owner_id, customer_id)
