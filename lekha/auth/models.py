from sqlmodel import SQLModel, Field, Column
import uuid
from typing import Optional
from datetime import datetime, timezone
from sqlalchemy import DateTime


def utc_now():
    return datetime.now(timezone.utc)

class Owner(SQLModel, table=True):
    """The signed-in business owner. Created on the first verified code."""

    __tablename__ = "owners"

    owner_id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    mobile: str = Field(max_length=10, unique=True, index=True)
    business_name: Optional[str] = Field(default=None, max_length=100)
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
