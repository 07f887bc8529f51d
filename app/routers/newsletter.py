from fastapi import APIRouter, Depends

from app.dependencies import get_mailer
from app.mailer import Mailer, welcome_message
from app.schemas import SubscribeRequest, SubscribeResponse

router = APIRouter(tags=["newsletter"])

@router.post("/subscribe", response_model=SubscribeResponse)
async def subscribe(data: SubscribeRequest, mailer: Mailer = Depends(get_mailer)):
    # MailFailure propagates to the 500 handler in app.main.
    await mailer.send(welcome_message(data.email))
    return SubscribeResponse(message="Subscription successful", email=data.email)
