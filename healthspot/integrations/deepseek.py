"""Chat completions against DeepSeek's OpenAI-compatible endpoint."""

from typing import Any

from openai import AsyncOpenAI, OpenAIError

from healthspot.core.config import settings
from healthspot.core.errors import ConfigurationError, UpstreamServiceError
from healthspot.core.logging import get_logger

logger = get_logger().bind(module="deepseek_client")

SMS_SYSTEM_PROMPT = (
    "You are HealthSpot's AI assistant, helping users with healthcare provider "
    "questions via SMS.\n"
    "Keep responses under 160 characters whenever possible to fit in a single SMS.\n"
    "If the message doesn't seem related to healthcare, provide a friendly response "
    "directing the user back to healthcare topics.\n"
    "Avoid using emojis or special characters that might not render well in SMS."
)

SMS_EMPTY_REPLY = (
    "Sorry, I could not generate a response at this time. Please try again later."
)
SMS_FAILURE_REPLY = (
    "Sorry, we encountered an issue processing your message. "
    "Please try again later or contact support."
)

Message = dict[str, str]


class DeepSeekClient:
    """Chat-completion client with SMS reply and health helpers."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model_name: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url or settings.DEEPSEEK_BASE_URL
        self.model_name = model_name or settings.DEEPSEEK_MODEL
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    @property
    def model(self) -> AsyncOpenAI:
        """Get or create the OpenAI client instance."""
        if self._client is None:
            if not self.api_key:
                raise ConfigurationError("DeepSeek API key is not configured")
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    async def complete(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> str:
        """Run one chat completion and return the assistant text.

        Raises:
            ConfigurationError: If no API key is configured
            UpstreamServiceError: If the API call fails
        """
        params: dict[str, Any] = {
            "model": self.model_name,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens is not None:
            params["max_tokens"] = max_tokens

        try:
            result = await self.model.chat.completions.create(**params)
        except OpenAIError as e:
            logger.error("completion_failed", error=str(e))
            raise UpstreamServiceError(
                f"AI completion failed: {e}", service="deepseek"
            ) from e

        if not result.choices:
            return ""
        return result.choices[0].message.content or ""

    async def generate_sms_reply(
        self, user_message: str, context: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Answer a free-form SMS. Never raises; failures yield a canned reply."""
        messages: list[Message] = [{"role": "system", "content": SMS_SYSTEM_PROMPT}]
        previous = (context or {}).get("previous_messages") or []
        messages.extend(previous)
        messages.append({"role": "user", "content": user_message})

        try:
            content = await self.complete(messages, temperature=0.7, max_tokens=300)
        except (ConfigurationError, UpstreamServiceError) as e:
            logger.warning("sms_reply_fallback", error=str(e))
            return {"success": False, "message": SMS_FAILURE_REPLY, "error": str(e)}

        return {"success": True, "message": content or SMS_EMPTY_REPLY}

    async def check_health(self) -> dict[str, Any]:
        if not self.is_configured:
            return {
                "status": "unconfigured",
                "message": "DeepSeek API key is not configured",
            }
        try:
            result = await self.model.chat.completions.create(
                model=self.model_name,
                messages=[
                    {"role": "system", "content": "You are a helpful assistant."},
                    {"role": "user", "content": "Hello"},
                ],
                max_tokens=5,
            )
        except OpenAIError as e:
            logger.error("health_check_failed", exc_info=e)
            return {
                "status": "error",
                "message": "Failed to connect to DeepSeek API",
                "error": str(e),
            }
        return {
            "status": "healthy",
            "message": "DeepSeek API connection is working properly",
            "model": getattr(result, "model", self.model_name),
        }


_deepseek_client: DeepSeekClient | None = None


def get_deepseek_client() -> DeepSeekClient:
    global _deepseek_client
    if _deepseek_client is None:
        _deepseek_client = DeepSeekClient(api_key=settings.DEEPSEEK_API_KEY)
    return _deepseek_client
