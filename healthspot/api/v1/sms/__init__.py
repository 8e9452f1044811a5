"""SMS subscriptions and the Twilio webhook."""

from healthspot.api.v1.sms.router import router

__all__ = ["router"]
