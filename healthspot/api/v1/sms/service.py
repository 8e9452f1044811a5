"""SMS subscriptions, provider notifications and the inbound command dispatcher."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from healthspot.api.v1.sms.models import (
    BulkFilter,
    ProviderInfo,
    SmsPreferences,
    SmsResult,
    SubscriptionRecord,
)
from healthspot.core.errors import (
    ConfigurationError,
    HealthSpotError,
    NotFoundError,
)
from healthspot.core.logging import get_logger
from healthspot.database.base import utcnow
from healthspot.database.models import SmsSubscriptionModel
from healthspot.database.repositories import SmsSubscriptionRepository
from healthspot.integrations.deepseek import DeepSeekClient
from healthspot.integrations.twilio import TwilioGateway

logger = get_logger().bind(module="sms_service")

DEFAULT_RADIUS_KM = 10

WELCOME_MESSAGE = (
    "Welcome to Healthspot! You are now subscribed to receive updates about "
    "healthcare providers. Reply STOP to unsubscribe at any time."
)
UNSUBSCRIBED_REPLY = (
    "You have been unsubscribed from Healthspot messages. "
    "We hope to see you again soon!"
)
NOT_SUBSCRIBED_REPLY = "You are not currently subscribed to Healthspot messages."
RESUBSCRIBED_REPLY = (
    "Welcome back to Healthspot! You are now resubscribed to receive updates."
)
NEW_SUBSCRIBER_REPLY = (
    "Thank you for subscribing to Healthspot! Visit our website to customize "
    "your preferences."
)
HELP_REPLY = (
    "Healthspot commands: STOP to unsubscribe, START to resubscribe, "
    "HELP for assistance, STATUS to check your subscription."
)
STATUS_NOT_SUBSCRIBED_REPLY = (
    "You are not currently subscribed to Healthspot messages. Text START to subscribe."
)
DEFAULT_REPLY = (
    "Thank you for your message. Please text HELP for available commands, "
    "or visit our website for more information."
)
ERROR_REPLY = (
    "Sorry, we encountered an error processing your message. "
    "Please try again later or contact support."
)

SMS_INITIATED_ID = "sms-initiated"


def format_provider_message(provider: ProviderInfo, header: str) -> str:
    lines = [
        header,
        provider.name,
        f"Address: {provider.address or 'N/A'}",
        f"Phone: {provider.phone or 'N/A'}",
        f"Rating: {provider.rating or 'N/A'}/5",
    ]
    if provider.website:
        lines.append(f"Website: {provider.website}")
    return "\n".join(lines).strip()


def status_reply(subscription: SmsSubscriptionModel) -> str:
    if subscription.provider_types:
        preferences = (
            f"You are receiving updates for: {', '.join(subscription.provider_types)}."
        )
    else:
        preferences = "You have not set specific provider preferences."
    return (
        f"You are subscribed to Healthspot messages. {preferences} "
        "Visit our website to update your preferences."
    )


class SmsService:
    """Twilio-backed SMS channel.

    Outbound operations raise ConfigurationError when the gateway has no
    credentials. Inbound messages that are exactly a command keyword go to its
    handler; anything else is free text.
    """

    def __init__(
        self,
        session: AsyncSession,
        gateway: TwilioGateway,
        llm: Optional[DeepSeekClient] = None,
    ):
        self.subscriptions = SmsSubscriptionRepository(session)
        self.gateway = gateway
        self.llm = llm
        self._commands: Dict[str, Callable[[str], Awaitable[str]]] = {
            "stop": self._handle_stop,
            "cancel": self._handle_stop,
            "unsubscribe": self._handle_stop,
            "start": self._handle_start,
            "subscribe": self._handle_start,
            "help": self._handle_help,
            "status": self._handle_status,
        }

    @property
    def is_configured(self) -> bool:
        return self.gateway.is_configured

    def _require_gateway(self) -> None:
        if not self.gateway.is_configured:
            raise ConfigurationError("SMS service is not configured")

    async def subscribe(
        self, phone_number: str, preferences: SmsPreferences, anonymous_id: str
    ) -> SmsResult:
        """Create or update a subscription; new numbers get a welcome SMS."""
        self._require_gateway()

        existing = await self.subscriptions.get_by_phone(phone_number)
        if existing is not None:
            updated = await self.subscriptions.save(
                existing,
                provider_types=preferences.provider_types,
                latitude=preferences.latitude,
                longitude=preferences.longitude,
                radius=preferences.radius or existing.radius,
                anonymous_id=anonymous_id,
            )
            return SmsResult(
                success=True,
                message="SMS subscription updated",
                subscription=SubscriptionRecord.model_validate(updated),
            )

        subscription = await self.subscriptions.create(
            phone_number=phone_number,
            provider_types=preferences.provider_types,
            latitude=preferences.latitude,
            longitude=preferences.longitude,
            radius=preferences.radius or DEFAULT_RADIUS_KM,
            anonymous_id=anonymous_id,
            is_verified=False,
        )
        await self.gateway.send(phone_number, WELCOME_MESSAGE)
        # Delivery of the welcome message counts as verification
        subscription = await self.subscriptions.save(
            subscription, is_verified=True, last_notification_sent=utcnow()
        )
        logger.info("sms_subscription_created", subscription_id=subscription.id)
        return SmsResult(
            success=True,
            message="SMS subscription created",
            subscription=SubscriptionRecord.model_validate(subscription),
        )

    async def send_provider_info(self, phone_number: str, provider: ProviderInfo) -> SmsResult:
        """Text one provider's details to a verified subscriber.

        Raises:
            NotFoundError: If the number is not subscribed and verified
        """
        self._require_gateway()

        subscription = await self.subscriptions.get_by_phone(phone_number, verified_only=True)
        if subscription is None:
            raise NotFoundError("Phone number not subscribed or not verified")

        await self.gateway.send(
            phone_number,
            format_provider_message(provider, "Healthspot Provider Information:"),
        )
        await self.subscriptions.save(subscription, last_notification_sent=utcnow())
        return SmsResult(success=True, message="Provider info sent via SMS")

    async def send_bulk(self, provider: ProviderInfo, filter: BulkFilter) -> SmsResult:
        """Send one provider update to every matching verified subscriber.

        Sends run concurrently; a failed send is reported in ``results`` and
        does not stop the others.
        """
        self._require_gateway()

        subscribers = await self.subscriptions.list_verified(
            provider_types=filter.provider_types, anonymous_id=filter.anonymous_id
        )
        if not subscribers:
            return SmsResult(success=False, message="No subscribed users match the filter")

        message = format_provider_message(provider, "Healthspot Provider Update:")

        async def deliver(subscriber: SmsSubscriptionModel) -> Dict[str, Any]:
            try:
                await self.gateway.send(subscriber.phone_number, message)
            except HealthSpotError as e:
                logger.error(
                    "bulk_sms_failed", phone_number=subscriber.phone_number, error=e.message
                )
                return {
                    "phoneNumber": subscriber.phone_number,
                    "success": False,
                    "error": e.message,
                }
            return {"phoneNumber": subscriber.phone_number, "success": True}

        results = await asyncio.gather(*(deliver(s) for s in subscribers))

        # Timestamps are written after the fan-out; the session is not shared
        # across concurrent tasks.
        sent_at = utcnow()
        delivered = {r["phoneNumber"] for r in results if r["success"]}
        for subscriber in subscribers:
            if subscriber.phone_number in delivered:
                subscriber.last_notification_sent = sent_at
        await self.subscriptions.session.commit()

        return SmsResult(
            success=True,
            message=f"SMS sent to {len(delivered)} out of {len(subscribers)} subscribers",
            results=list(results),
        )

    async def get_subscriptions(self, anonymous_id: str) -> List[SubscriptionRecord]:
        subscriptions = await self.subscriptions.list_by_anonymous_id(anonymous_id)
        return [SubscriptionRecord.model_validate(s) for s in subscriptions]

    async def unsubscribe(self, phone_number: str) -> SmsResult:
        if not await self.subscriptions.delete_by_phone(phone_number):
            return SmsResult(success=False, message="Subscription not found")
        logger.info("sms_unsubscribed", phone_number=phone_number)
        return SmsResult(success=True, message="Successfully unsubscribed from SMS updates")

    async def process_incoming_message(
        self, from_number: str, body: str, message_sid: Optional[str] = None
    ) -> Dict[str, Any]:
        """Reply to an inbound SMS. Never raises; errors produce an apology."""
        command = (body or "").strip().lower()
        logger.info("sms_received", from_number=from_number, message_sid=message_sid)

        try:
            handler = self._commands.get(command)
            if handler is not None:
                return {"success": True, "message": await handler(from_number)}
            return await self._handle_free_text(from_number, body)
        except Exception as e:
            logger.error("sms_processing_failed", from_number=from_number, exc_info=e)
            return {"success": False, "message": ERROR_REPLY, "error": str(e)}

    async def _handle_stop(self, from_number: str) -> str:
        if await self.subscriptions.get_by_phone(from_number) is None:
            return NOT_SUBSCRIBED_REPLY
        await self.unsubscribe(from_number)
        return UNSUBSCRIBED_REPLY

    async def _handle_start(self, from_number: str) -> str:
        existing = await self.subscriptions.get_by_phone(from_number)
        if existing is not None:
            await self.subscriptions.save(existing, is_verified=True)
            return RESUBSCRIBED_REPLY
        await self.subscriptions.create(
            phone_number=from_number,
            provider_types=[],
            radius=DEFAULT_RADIUS_KM,
            anonymous_id=SMS_INITIATED_ID,
            is_verified=True,
        )
        return NEW_SUBSCRIBER_REPLY

    async def _handle_help(self, from_number: str) -> str:
        return HELP_REPLY

    async def _handle_status(self, from_number: str) -> str:
        subscription = await self.subscriptions.get_by_phone(from_number)
        if subscription is None:
            return STATUS_NOT_SUBSCRIBED_REPLY
        return status_reply(subscription)

    async def _handle_free_text(self, from_number: str, body: str) -> Dict[str, Any]:
        if self.llm is None or not self.llm.is_configured:
            return {"success": True, "message": DEFAULT_REPLY}
        reply = await self.llm.generate_sms_reply(body, {"phone_number": from_number})
        return {
            "success": reply["success"],
            "message": reply["message"],
            "isAiGenerated": True,
        }

    async def update_message_status(self, message_sid: str, status: str) -> Dict[str, Any]:
        # No message table; delivery callbacks are only logged
        logger.info("sms_status_update", message_sid=message_sid, status=status)
        return {"success": True}

    def health(self) -> Dict[str, Any]:
        return {
            "status": "healthy" if self.is_configured else "unconfigured",
            "configured": self.is_configured,
            "aiReplies": bool(self.llm and self.llm.is_configured),
        }
