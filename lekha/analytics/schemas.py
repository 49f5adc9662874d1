from pydantic import BaseModel
from decimal import Decimal

class DashboardSummary(BaseModel):
    # sum of positive balances ("You'll Get")
    total_to_collect: Decimal
    # sum of negative balances as a positive figure ("You'll Give")
    total_to_give: Decimal
    total_customers: int

class DashboardSummaryResponse(BaseModel):
    success: bool
    message: str
    data: DashboardSummary
