from pydantic import BaseModel, Field
from typing import Annotated, Optional

class ReminderInput(BaseModel):
    # falls back to the owner's business name, then the configured default
    business_name: Optional[Annotated[str, Field(min_length=1, max_length=100)]] = None

class Reminder(BaseModel):
    customer_name: str
    outstanding_amount: str
    business_name: str
    reminder_text: str

class ReminderResponse(BaseModel):
    success: bool
    message: str
    data: Reminder
