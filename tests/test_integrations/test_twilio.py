"""Tests for the Twilio SMS gateway."""

from urllib.parse import parse_qs

import httpx
import pytest

from healthspot.core.errors import ConfigurationError, UpstreamServiceError
from healthspot.integrations.twilio import TwilioGateway


def _gateway(handler, account_sid="AC123", auth_token="token") -> TwilioGateway:
    return TwilioGateway(
        account_sid=account_sid,
        auth_token=auth_token,
        from_number="+15005550006",
        api_url="https://twilio.test/2010-04-01",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.mark.parametrize(
    "sid,token,expected",
    [("AC123", "token", True), ("XX123", "token", False), ("AC123", None, False), (None, None, False)],
)
def test_is_configured(sid, token, expected):
    assert _gateway(lambda r: httpx.Response(200), sid, token).is_configured is expected


@pytest.mark.asyncio
async def test_send_posts_form():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["form"] = parse_qs(request.content.decode())
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(201, json={"sid": "SM1", "status": "queued"})

    payload = await _gateway(handler).send("+14155550100", "Hello")

    assert payload["sid"] == "SM1"
    assert seen["url"] == "https://twilio.test/2010-04-01/Accounts/AC123/Messages.json"
    assert seen["form"] == {
        "To": ["+14155550100"],
        "From": ["+15005550006"],
        "Body": ["Hello"],
    }
    assert seen["auth"].startswith("Basic ")


@pytest.mark.asyncio
async def test_send_rejected():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"message": "The 'To' number is not valid."})

    with pytest.raises(UpstreamServiceError, match="The 'To' number is not valid."):
        await _gateway(handler).send("+1", "Hello")


@pytest.mark.asyncio
async def test_send_unconfigured():
    gateway = _gateway(lambda r: httpx.Response(200), account_sid=None)

    with pytest.raises(ConfigurationError):
        await gateway.send("+14155550100", "Hello")
