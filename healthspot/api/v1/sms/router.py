"""SMS endpoints and the Twilio webhook."""

from typing import Any, Dict, List
from xml.sax.saxutils import escape

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from healthspot.api.deps import get_llm, get_sms_gateway
from healthspot.api.v1.sms.models import (
    SendBulkRequest,
    SendProviderInfoRequest,
    SmsResult,
    SubscribeRequest,
    SubscriptionRecord,
    normalize_phone,
)
from healthspot.api.v1.sms.service import SmsService
from healthspot.core.db import get_session
from healthspot.core.errors import ValidationError
from healthspot.core.logging import get_logger
from healthspot.integrations.deepseek import DeepSeekClient
from healthspot.integrations.twilio import TwilioGateway

router = APIRouter(prefix="/sms", tags=["sms"])
logger = get_logger().bind(module="sms_router")


def get_sms_service(
    session: AsyncSession = Depends(get_session),
    gateway: TwilioGateway = Depends(get_sms_gateway),
    llm: DeepSeekClient = Depends(get_llm),
) -> SmsService:
    return SmsService(session, gateway, llm)


def twiml_message(message: str) -> str:
    return f"<Response><Message>{escape(message)}</Message></Response>"


@router.post("/subscribe", response_model=SmsResult, status_code=status.HTTP_201_CREATED)
async def subscribe(
    payload: SubscribeRequest,
    service: SmsService = Depends(get_sms_service),
) -> SmsResult:
    return await service.subscribe(
        payload.phone_number, payload.preferences, payload.anonymous_id
    )


@router.post("/send", response_model=SmsResult)
async def send_provider_info(
    payload: SendProviderInfoRequest,
    service: SmsService = Depends(get_sms_service),
) -> SmsResult:
    return await service.send_provider_info(payload.phone_number, payload.provider_info)


@router.post("/send-bulk", response_model=SmsResult)
async def send_bulk(
    payload: SendBulkRequest,
    service: SmsService = Depends(get_sms_service),
) -> SmsResult:
    """Send a provider update to all matching subscribers."""
    return await service.send_bulk(payload.provider_info, payload.filter)


@router.get("/subscriptions/{anonymous_id}", response_model=List[SubscriptionRecord])
async def get_subscriptions(
    anonymous_id: str,
    service: SmsService = Depends(get_sms_service),
) -> List[SubscriptionRecord]:
    return await service.get_subscriptions(anonymous_id)


@router.delete("/unsubscribe/{phone_number}", response_model=SmsResult)
async def unsubscribe(
    phone_number: str,
    service: SmsService = Depends(get_sms_service),
) -> SmsResult:
    try:
        phone_number = normalize_phone(phone_number)
    except ValueError as e:
        raise ValidationError(str(e)) from e
    return await service.unsubscribe(phone_number)


@router.post("/webhook")
async def twilio_webhook(
    request: Request,
    service: SmsService = Depends(get_sms_service),
) -> Response:
    """
    Twilio callback for delivery status updates and incoming messages.

    Status callbacks get an empty 200. Incoming messages are answered with
    TwiML so Twilio delivers the reply.
    """
    form = await request.form()

    if form.get("MessageStatus"):
        await service.update_message_status(
            str(form.get("MessageSid", "")), str(form.get("MessageStatus"))
        )
        return Response(status_code=status.HTTP_200_OK)

    if form.get("Body"):
        reply = await service.process_incoming_message(
            str(form.get("From", "")), str(form.get("Body")), form.get("MessageSid")
        )
        if reply.get("message"):
            return Response(
                content=twiml_message(reply["message"]), media_type="text/xml"
            )

    return Response(status_code=status.HTTP_200_OK)


@router.get("/health")
async def sms_health(service: SmsService = Depends(get_sms_service)) -> Dict[str, Any]:
    return service.health()
