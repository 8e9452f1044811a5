"""Outbound SMS through the Twilio REST API."""

from typing import Any, Optional

import httpx

from healthspot.core.config import settings
from healthspot.core.errors import ConfigurationError, UpstreamServiceError
from healthspot.core.logging import get_logger

logger = get_logger().bind(module="twilio_gateway")


class TwilioGateway:
    """Sends messages via ``Accounts/{sid}/Messages.json`` with basic auth."""

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        api_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.api_url = (api_url or settings.TWILIO_API_URL).rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT)

    @property
    def is_configured(self) -> bool:
        return bool(
            self.account_sid
            and self.account_sid.startswith("AC")
            and self.auth_token
        )

    async def send(self, to: str, body: str) -> dict[str, Any]:
        """Send one SMS and return Twilio's message resource.

        Raises:
            ConfigurationError: If credentials are missing
            UpstreamServiceError: If Twilio rejects the message
        """
        if not self.is_configured:
            raise ConfigurationError("SMS service is not configured")

        url = f"{self.api_url}/Accounts/{self.account_sid}/Messages.json"
        data = {"To": to, "From": self.from_number or "", "Body": body}
        try:
            response = await self._client.post(
                url, data=data, auth=(self.account_sid, self.auth_token)
            )
        except httpx.HTTPError as e:
            raise UpstreamServiceError(f"SMS delivery failed: {e}", service="twilio") from e

        if response.is_error:
            try:
                message = response.json().get("message", response.text)
            except ValueError:
                message = response.text
            logger.error("sms_send_failed", to=to, status_code=response.status_code)
            raise UpstreamServiceError(f"SMS delivery failed: {message}", service="twilio")

        payload = response.json()
        logger.info("sms_sent", to=to, sid=payload.get("sid"))
        return payload

    async def aclose(self) -> None:
        await self._client.aclose()


_twilio_gateway: Optional[TwilioGateway] = None


def get_twilio_gateway() -> TwilioGateway:
    global _twilio_gateway
    if _twilio_gateway is None:
        _twilio_gateway = TwilioGateway(
            account_sid=settings.TWILIO_ACCOUNT_SID,
            auth_token=settings.TWILIO_AUTH_TOKEN,
            from_number=settings.TWILIO_PHONE_NUMBER,
        )
    return _twilio_gateway


async def close_twilio_gateway() -> None:
    global _twilio_gateway
    if _twilio_gateway is not None:
        await _twilio_gateway.aclose()
        _twilio_gateway = None
