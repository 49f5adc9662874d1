from pydantic import AfterValidator, BaseModel, Field
from typing import Annotated, Optional, List
from decimal import Decimal
import uuid
from datetime import datetime

from lekha.ledger.balance import ensure_positive_amount
from lekha.transactions.models import TransactionKind
from lekha.transactions.validators import clean_idempotency_key, clean_notes

class TransactionInput(BaseModel):
    kind: TransactionKind
    amount: Annotated[Decimal, AfterValidator(ensure_positive_amount), Field(examples=["5000.00"])]
    notes: Optional[Annotated[str, AfterValidator(clean_notes)]] = None
    # client-generated; resending the same key never records the entry twice
    idempotency_key: Optional[Annotated[str, AfterValidator(clean_idempotency_key)]] = None

class TransactionInfo(BaseModel):
    id: uuid.UUID
    kind: TransactionKind
    amount: Decimal
    notes: Optional[str] = None
    sequence: int
    created_at: datetime

class TransactionResponse(BaseModel):
    success: bool
    message: str
    data: TransactionInfo

class TransactionListResponse(BaseModel):
    success: bool
    message: str
    data: List[TransactionInfo]
