"""Tests for the SMS service and endpoints."""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from healthspot.api.v1.sms.models import (
    BulkFilter,
    ProviderInfo,
    SmsPreferences,
    normalize_phone,
)
from healthspot.api.v1.sms.router import twiml_message
from healthspot.api.v1.sms.service import (
    DEFAULT_REPLY,
    ERROR_REPLY,
    HELP_REPLY,
    NEW_SUBSCRIBER_REPLY,
    NOT_SUBSCRIBED_REPLY,
    RESUBSCRIBED_REPLY,
    STATUS_NOT_SUBSCRIBED_REPLY,
    UNSUBSCRIBED_REPLY,
    WELCOME_MESSAGE,
    SmsService,
    format_provider_message,
)
from healthspot.core.errors import ConfigurationError, NotFoundError, UpstreamServiceError
from healthspot.database.repositories import SmsSubscriptionRepository

PHONE = "+14155550100"
ANON = "0123456789abcdef0123456789abcdef"
CLINIC = ProviderInfo(name="Mission Clinic", address="1 Mission St", rating=4.5)


@pytest.fixture
def service(db_session: AsyncSession, gateway, llm) -> SmsService:
    return SmsService(db_session, gateway, llm)


async def _subscriber(db_session, phone=PHONE, verified=True, types=None):
    return await SmsSubscriptionRepository(db_session).create(
        phone_number=phone,
        provider_types=types or [],
        anonymous_id=ANON,
        is_verified=verified,
    )


@pytest.mark.parametrize(
    "raw,expected",
    [("+1 (415) 555-0100", PHONE), ("415.555.0100", "4155550100")],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


@pytest.mark.parametrize("raw", ["12345", "+1 415 CALL NOW", "1+4155550100"])
def test_normalize_phone_rejects_garbage(raw):
    with pytest.raises(ValueError):
        normalize_phone(raw)


def test_format_provider_message():
    message = format_provider_message(CLINIC, "Healthspot Provider Information:")

    assert message == (
        "Healthspot Provider Information:\n"
        "Mission Clinic\n"
        "Address: 1 Mission St\n"
        "Phone: N/A\n"
        "Rating: 4.5/5"
    )


def test_twiml_message_escapes_markup():
    assert twiml_message("A & B <ok>") == (
        "<Response><Message>A &amp; B &lt;ok&gt;</Message></Response>"
    )


@pytest.mark.asyncio
async def test_subscribe_sends_welcome_and_verifies(service, gateway):
    result = await service.subscribe(
        PHONE, SmsPreferences(provider_types=["hospital"]), ANON
    )

    assert result.message == "SMS subscription created"
    assert result.subscription.is_verified is True
    assert result.subscription.radius == 10
    assert result.subscription.last_notification_sent is not None
    gateway.send.assert_awaited_once_with(PHONE, WELCOME_MESSAGE)


@pytest.mark.asyncio
async def test_subscribe_twice_updates(service, gateway):
    await service.subscribe(PHONE, SmsPreferences(), ANON)
    result = await service.subscribe(
        PHONE, SmsPreferences(provider_types=["dentist"], radius=25), ANON
    )

    assert result.message == "SMS subscription updated"
    assert result.subscription.provider_types == ["dentist"]
    assert result.subscription.radius == 25
    assert gateway.send.await_count == 1


@pytest.mark.asyncio
async def test_subscribe_failed_welcome_leaves_unverified(service, gateway, db_session):
    gateway.send.side_effect = UpstreamServiceError("SMS delivery failed: bad number")

    with pytest.raises(UpstreamServiceError):
        await service.subscribe(PHONE, SmsPreferences(), ANON)

    subscription = await SmsSubscriptionRepository(db_session).get_by_phone(PHONE)
    assert subscription.is_verified is False


@pytest.mark.asyncio
async def test_outbound_requires_configured_gateway(service, gateway):
    gateway.is_configured = False

    with pytest.raises(ConfigurationError):
        await service.subscribe(PHONE, SmsPreferences(), ANON)
    with pytest.raises(ConfigurationError):
        await service.send_bulk(CLINIC, BulkFilter())


@pytest.mark.asyncio
async def test_send_provider_info_requires_verified_subscription(service, db_session):
    await _subscriber(db_session, verified=False)

    with pytest.raises(NotFoundError, match="Phone number not subscribed or not verified"):
        await service.send_provider_info(PHONE, CLINIC)


@pytest.mark.asyncio
async def test_send_provider_info(service, gateway, db_session):
    await _subscriber(db_session)

    result = await service.send_provider_info(PHONE, CLINIC)

    assert result.success is True
    body = gateway.send.await_args.args[1]
    assert body.startswith("Healthspot Provider Information:\nMission Clinic")


@pytest.mark.asyncio
async def test_send_bulk_reports_partial_failures(service, gateway, db_session):
    await _subscriber(db_session, phone="+14155550101", types=["hospital"])
    await _subscriber(db_session, phone="+14155550102", types=["hospital", "dentist"])
    await _subscriber(db_session, phone="+14155550103", types=["pharmacy"])

    async def send(to, body):
        if to == "+14155550102":
            raise UpstreamServiceError("SMS delivery failed: unreachable")
        return {"sid": "SM1"}

    gateway.send.side_effect = send

    result = await service.send_bulk(CLINIC, BulkFilter(provider_types=["hospital"]))

    assert result.success is True
    assert result.message == "SMS sent to 1 out of 2 subscribers"
    assert {r["phoneNumber"]: r["success"] for r in result.results} == {
        "+14155550101": True,
        "+14155550102": False,
    }
    assert gateway.send.await_args.args[1].startswith("Healthspot Provider Update:")


@pytest.mark.asyncio
async def test_send_bulk_without_matches(service, gateway):
    result = await service.send_bulk(CLINIC, BulkFilter(provider_types=["hospital"]))

    assert result.success is False
    assert result.message == "No subscribed users match the filter"
    gateway.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_unsubscribe(service, db_session):
    await _subscriber(db_session)

    assert (await service.unsubscribe(PHONE)).message == (
        "Successfully unsubscribed from SMS updates"
    )
    assert (await service.unsubscribe(PHONE)).message == "Subscription not found"


@pytest.mark.asyncio
async def test_stop_and_start_commands(service, db_session):
    assert (await service.process_incoming_message(PHONE, "STOP"))["message"] == (
        NOT_SUBSCRIBED_REPLY
    )

    started = await service.process_incoming_message(PHONE, " start ")
    assert started["message"] == NEW_SUBSCRIBER_REPLY
    subscription = await SmsSubscriptionRepository(db_session).get_by_phone(PHONE)
    assert subscription.anonymous_id == "sms-initiated"
    assert subscription.is_verified is True

    restarted = await service.process_incoming_message(PHONE, "subscribe")
    assert restarted["message"] == RESUBSCRIBED_REPLY

    stopped = await service.process_incoming_message(PHONE, "Unsubscribe")
    assert stopped["message"] == UNSUBSCRIBED_REPLY
    assert await SmsSubscriptionRepository(db_session).get_by_phone(PHONE) is None


@pytest.mark.asyncio
async def test_help_and_status_commands(service, db_session):
    assert (await service.process_incoming_message(PHONE, "HELP"))["message"] == HELP_REPLY
    assert (await service.process_incoming_message(PHONE, "status"))["message"] == (
        STATUS_NOT_SUBSCRIBED_REPLY
    )

    await _subscriber(db_session, types=["hospital", "pharmacy"])
    status = await service.process_incoming_message(PHONE, "status")

    assert "You are receiving updates for: hospital, pharmacy." in status["message"]


@pytest.mark.asyncio
async def test_free_text_uses_ai_reply(service, llm):
    reply = await service.process_incoming_message(PHONE, "Is there a pharmacy open late?")

    assert reply == {"success": True, "message": "AI reply", "isAiGenerated": True}
    llm.generate_sms_reply.assert_awaited_once()


@pytest.mark.asyncio
async def test_free_text_without_ai(db_session, gateway):
    service = SmsService(db_session, gateway, llm=None)

    reply = await service.process_incoming_message(PHONE, "hello?")

    assert reply == {"success": True, "message": DEFAULT_REPLY}


@pytest.mark.asyncio
async def test_incoming_message_errors_become_apology(service, llm):
    llm.generate_sms_reply.side_effect = RuntimeError("boom")

    reply = await service.process_incoming_message(PHONE, "hello?")

    assert reply["success"] is False
    assert reply["message"] == ERROR_REPLY


@pytest.mark.asyncio
async def test_subscribe_endpoint(client: AsyncClient, gateway):
    response = await client.post(
        "/api/sms/subscribe",
        json={
            "phoneNumber": "+1 (415) 555-0100",
            "anonymousId": ANON,
            "preferences": {"providerTypes": ["hospital"], "radius": 5},
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["subscription"]["phoneNumber"] == PHONE
    assert body["subscription"]["isVerified"] is True

    listed = await client.get(f"/api/sms/subscriptions/{ANON}")
    assert [s["phoneNumber"] for s in listed.json()] == [PHONE]


@pytest.mark.asyncio
async def test_subscribe_endpoint_rejects_bad_phone(client: AsyncClient):
    response = await client.post(
        "/api/sms/subscribe", json={"phoneNumber": "call me", "anonymousId": ANON}
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_send_endpoint_unknown_number(client: AsyncClient):
    response = await client.post(
        "/api/sms/send",
        json={"phoneNumber": PHONE, "providerInfo": {"name": "Mission Clinic"}},
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_unsubscribe_endpoint(client: AsyncClient, db_session):
    await _subscriber(db_session)

    response = await client.delete("/api/sms/unsubscribe/+1-415-555-0100")

    assert response.status_code == 200
    assert response.json()["success"] is True


@pytest.mark.asyncio
async def test_unsubscribe_endpoint_rejects_bad_phone(client: AsyncClient):
    response = await client.delete("/api/sms/unsubscribe/abc")

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_webhook_replies_with_twiml(client: AsyncClient):
    response = await client.post(
        "/api/sms/webhook", data={"From": PHONE, "Body": "HELP", "MessageSid": "SM1"}
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/xml")
    assert response.text == twiml_message(HELP_REPLY)


@pytest.mark.asyncio
async def test_webhook_status_callback(client: AsyncClient):
    response = await client.post(
        "/api/sms/webhook", data={"MessageSid": "SM1", "MessageStatus": "delivered"}
    )

    assert response.status_code == 200
    assert response.text == ""


@pytest.mark.asyncio
async def test_sms_health(client: AsyncClient, gateway):
    gateway.is_configured = False

    response = await client.get("/api/sms/health")

    assert response.json()["status"] == "unconfigured"
