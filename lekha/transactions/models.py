from sqlmodel import SQLModel, Field, Column
from sqlalchemy import DateTime, UniqueConstraint
import uuid
from decimal import Decimal
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

def utc_now():
    return datetime.now(timezone.utc)


class TransactionKind(str, Enum):
    CREDIT = "credit"   # You Gave
    DEBIT = "debit"     # You Got


class LedgerTransaction(SQLModel, table=True):
    """One credit or debit entry. Rows are inserted, never updated or deleted."""

    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint("customer_id", "sequence", name="uq_transactions_customer_sequence"),
        UniqueConstraint("customer_id", "idempotency_key", name="uq_transactions_customer_idempotency_key"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    customer_id: uuid.UUID = Field(foreign_key="customers.id", index=True)
    owner_id: uuid.UUID = Field(index=True)
    kind: TransactionKind
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    notes: Optional[str] = Field(default=None, max_length=500)

    # position within the customer's history, breaks created_at ties
    sequence: int

    idempotency_key: Optional[str] = Field(default=None, max_length=64)

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
