from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from typing import Optional
from lekha.utils.auth import get_current_user
from lekha.customers.schemas import (
    CustomerCreate, CustomerResponse, CustomerListResponse,
    CustomerDetailResponse, CustomerUpdate, ReconcileResponse,
)
from lekha.customers.services import CustomerServices
from lekha.ledger.dependencies import get_ledger_store
from lekha.ledger.store import LedgerStore
from lekha.utils.limiter import limiter
import uuid


customer_router = APIRouter()
customer_services = CustomerServices()


@customer_router.post("/", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
async def create_customer(
    request: Request,
    response: Response,
    customer: CustomerCreate,
    store: LedgerStore = Depends(get_ledger_store),
    user_details: dict = Depends(get_current_user)
):
    owner_id = user_details.get("owner_id")

    new_customer = await customer_services.create_customer(customer, store, owner_id)

    return {
        "success": True,
        "message": "customer created successfully",
        "data": new_customer
    }

@customer_router.get("/", response_model=CustomerListResponse, status_code=status.HTTP_200_OK)
@limiter.limit("100/minute")
async def get_all_customer(
    request: Request,
    response: Response,
    search: Optional[str] = Query(default=None, max_length=100, description="Filter by name or mobile"),
    store: LedgerStore = Depends(get_ledger_store),
    user_details: dict = Depends(get_current_user)
):
    owner_id = user_details.get("owner_id")

    customers = await customer_services.get_all_customers(store, owner_id, search=search)

    return {
        "success": True,
        "message": "customers fetched successfully",
        "data": customers
    }


@customer_router.get("/{id}", response_model=CustomerDetailResponse, status_code=status.HTTP_200_OK)
@limiter.limit("100/minute")
async def get_customer(
    request: Request,
    response: Response,
    id: uuid.UUID,
    store: LedgerStore = Depends(get_ledger_store),
    user_details: dict = Depends(get_current_user)
):
    owner_id = user_details.get("owner_id")

    customer = await customer_services.get_customer_by_id(id, store, owner_id)

    return {
        "success": True,
        "message": "customer fetched successfully",
        "data": customer
    }


@customer_router.patch("/{id}", response_model=CustomerResponse, status_code=status.HTTP_200_OK)
@limiter.limit("20/minute")
async def update_customer(
    request: Request,
    response: Response,
    id: uuid.UUID,
    update_data: CustomerUpdate,
    store: LedgerStore = Depends(get_ledger_store),
    user_details: dict = Depends(get_current_user)
):
    owner_id = user_details.get("owner_id")

    customer = await customer_services.update_customer(id, update_data, store, owner_id)

    return {
        "success": True,
        "message": "customer updated successfully",
        "data": customer
    }


@customer_router.post("/{id}/reconcile", response_model=ReconcileResponse, status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
async def reconcile_customer(
    request: Request,
    response: Response,
    id: uuid.UUID,
    store: LedgerStore = Depends(get_ledger_store),
    user_details: dict = Depends(get_current_user)
):
    owner_id = user_details.get("owner_id")

    result = await customer_services.reconcile_customer(id, store, owner_id)

    return {
        "success": True,
        "message": "balance corrected from history" if result.corrected else "balance matches history",
        "data": result
    }


@customer_router.delete("/{id}", status_code=status.HTTP_200_OK)
async def delete_customer(
    id: uuid.UUID,
    user_details: dict = Depends(get_current_user)
):
    # Ledgers are kept for good; there is no delete path for customers.
    raise HTTPException(
        status_code=status.HTTP_501_NOT_IMPLEMENTED,
        detail="Deleting customers is not supported"
    )


@customer_router.get("/{id}/report", status_code=status.HTTP_200_OK)
async def download_report(
    id: uuid.UUID,
    user_details: dict = Depends(get_current_user)
):
    raise HTTPException(
        status_code=status.HTTP_501_NOT_IMPLEMENTED,
        detail="Report download is coming soon"
    )
