from fastapi import Depends, Request
from sqlmodel.ext.asyncio.session import AsyncSession

from lekha.db.main import get_Session
from lekha.ledger.sql_store import SqlLedgerStore
from lekha.ledger.store import LedgerStore


async def get_ledger_store(
    request: Request,
    session: AsyncSession = Depends(get_Session),
) -> LedgerStore:
    """The process-wide store when one was set up at startup, else a SQL store for this request."""
    store = getattr(request.app.state, "ledger_store", None)
    if store is not None:
        return store
    return SqlLedgerStore(session)
