from sqlmodel import SQLModel, Field, Column
import uuid
from decimal import Decimal
from typing import Optional
from sqlalchemy import DateTime
from datetime import datetime, timezone

def utc_now():
    return datetime.now(timezone.utc)

class Customer(SQLModel, table=True):
    __tablename__ = "customers"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    owner_id: uuid.UUID = Field(index=True)
    name: str = Field(index=True, max_length=100)
    mobile: str = Field(max_length=10, index=True)
    address: Optional[str] = Field(default=None, max_length=255)

    # balance: net position, positive when the customer owes the owner.
    # Only ever written together with a new transaction row.
    balance: Decimal = Field(default=Decimal("0.00"), max_digits=14, decimal_places=2)

    # transaction_count: number of appended transactions, also the
    # compare-and-swap version of the balance
    transaction_count: int = Field(default=0)

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
