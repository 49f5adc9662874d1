from fastapi import APIRouter, Depends, Request, Response, status
from sqlmodel.ext.asyncio.session import AsyncSession
import uuid

from lekha.auth.services import AuthServices
from lekha.db.main import get_Session
from lekha.ledger.dependencies import get_ledger_store
from lekha.ledger.store import LedgerStore
from lekha.reminders.generator import GeminiReminderGenerator, ReminderGenerator
from lekha.reminders.schemas import ReminderInput, ReminderResponse
from lekha.reminders.services import ReminderServices
from lekha.utils.auth import get_current_user
from lekha.utils.limiter import limiter


reminder_router = APIRouter()
reminder_services = ReminderServices()
authServices = AuthServices()


def get_reminder_generator(request: Request) -> ReminderGenerator:
    generator = getattr(request.app.state, "reminder_generator", None)
    if generator is None:
        generator = GeminiReminderGenerator()
        request.app.state.reminder_generator = generator
    return generator


@reminder_router.post("/{customer_id}/reminder", response_model=ReminderResponse, status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
async def generate_reminder(
    request: Request,
    response: Response,
    customer_id: uuid.UUID,
    reminder_input: ReminderInput,
    store: LedgerStore = Depends(get_ledger_store),
    session: AsyncSession = Depends(get_Session),
    generator: ReminderGenerator = Depends(get_reminder_generator),
    user_details: dict = Depends(get_current_user)
):
    owner_id = user_details.get("owner_id")

    business_name = reminder_input.business_name
    if not business_name:
        owner = await authServices.get_owner(owner_id, session)
        business_name = owner.business_name

    reminder = await reminder_services.generate_reminder(
        customer_id, store, owner_id, generator, business_name=business_name
    )

    return {
        "success": True,
        "message": "reminder generated successfully",
        "data": reminder
    }
