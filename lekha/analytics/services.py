import uuid

from lekha.analytics.schemas import DashboardSummary
from lekha.ledger.store import LedgerStore

class AnalyticsServices:

    async def get_dashboard_summary(self, store: LedgerStore, owner_id: uuid.UUID) -> DashboardSummary:
        return await store.summarize(owner_id)
