from pydantic import AfterValidator, BaseModel, Field, computed_field
from typing import Annotated, Optional, List
from decimal import Decimal
import uuid
from datetime import datetime

from lekha.customers.validators import clean_address, clean_mobile, clean_name
from lekha.ledger.balance import BalanceStatus, balance_status
from lekha.ledger.aggregate import ReconcileResult
from lekha.transactions.schemas import TransactionInfo

CustomerName = Annotated[str, AfterValidator(clean_name)]
Mobile = Annotated[str, AfterValidator(clean_mobile), Field(examples=["9876543210"])]
Address = Annotated[str, AfterValidator(clean_address)]

class CustomerCreate(BaseModel):
    name: CustomerName
    mobile: Mobile
    address: Optional[Address] = None

class CustomerUpdate(BaseModel):
    name: Optional[CustomerName] = None
    mobile: Optional[Mobile] = None
    address: Optional[Address] = None

class CustomerInfo(BaseModel):
    id: uuid.UUID
    name: str
    mobile: str
    address: Optional[str] = None
    balance: Decimal
    created_at: datetime

    @computed_field
    @property
    def balance_status(self) -> BalanceStatus:
        return balance_status(self.balance)

class CustomerDetail(CustomerInfo):
    transactions: List[TransactionInfo]

class CustomerResponse(BaseModel):
    success: bool
    message: str
    data: CustomerInfo

class CustomerDetailResponse(BaseModel):
    success: bool
    message: str
    data: CustomerDetail

class CustomerListResponse(BaseModel):
    success: bool
    message: str
    data: List[CustomerInfo]

class ReconcileResponse(BaseModel):
    success: bool
    message: str
    data: ReconcileResult
