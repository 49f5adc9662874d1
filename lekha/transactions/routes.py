from fastapi import APIRouter, Depends, Request, Response, status
from lekha.utils.auth import get_current_user
from lekha.transactions.schemas import (
    TransactionInput, TransactionResponse, TransactionListResponse,
)
from lekha.transactions.models import TransactionKind
from lekha.transactions.services import TransactionServices
from lekha.ledger.dependencies import get_ledger_store
from lekha.ledger.store import LedgerStore
from lekha.utils.limiter import limiter
import uuid


transaction_router = APIRouter()
transaction_services = TransactionServices()


@transaction_router.post("/{customer_id}/transactions", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def add_transaction(
    request: Request,
    response: Response,
    customer_id: uuid.UUID,
    transaction: TransactionInput,
    store: LedgerStore = Depends(get_ledger_store),
    user_details: dict = Depends(get_current_user)
):
    owner_id = user_details.get("owner_id")

    new_transaction = await transaction_services.add_transaction(customer_id, transaction, store, owner_id)

    kind = TransactionKind(new_transaction.kind).value
    return {
        "success": True,
        "message": f"Successfully recorded {kind} of {new_transaction.amount}.",
        "data": new_transaction
    }


@transaction_router.get("/{customer_id}/transactions", response_model=TransactionListResponse, status_code=status.HTTP_200_OK)
@limiter.limit("100/minute")
async def get_customer_transactions(
    request: Request,
    response: Response,
    customer_id: uuid.UUID,
    store: LedgerStore = Depends(get_ledger_store),
    user_details: dict = Depends(get_current_user)
):
    owner_id = user_details.get("owner_id")

    transactions = await transaction_services.get_customer_transactions(customer_id, store, owner_id)

    return {
        "success": True,
        "message": "customer transactions fetched successfully",
        "data": transactions
    }
