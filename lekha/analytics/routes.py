from fastapi import APIRouter, Depends, Request, Response, status

from lekha.analytics.schemas import DashboardSummaryResponse
from lekha.analytics.services import AnalyticsServices
from lekha.ledger.dependencies import get_ledger_store
from lekha.ledger.store import LedgerStore
from lekha.utils.auth import get_current_user
from lekha.utils.limiter import limiter

analytics_router = APIRouter()
analytics_services = AnalyticsServices()

@analytics_router.get("/summary", response_model=DashboardSummaryResponse, status_code=status.HTTP_200_OK)
@limiter.limit("60/minute")
async def get_summary(
    request: Request,
    response: Response,
    store: LedgerStore = Depends(get_ledger_store),
    user_details: dict = Depends(get_current_user)
):
    summary = await analytics_services.get_dashboard_summary(store, user_details.get("owner_id"))
    return {
        "success": True,
        "message": "summary fetched successfully",
        "data": summary
    }
