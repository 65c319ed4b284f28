"""OpenAI chat completion for guest replies."""

from openai import OpenAI

from hostenly.core.config import get_settings
from hostenly.core.errors import CompletionError
from hostenly.core.logging import get_logger

logger = get_logger(__name__)


class CompletionProvider:
    """Turns (system instructions, conversation turn) into reply text."""

    def __init__(
        self,
        client: OpenAI,
        model: str,
        max_tokens: int = 500,
        temperature: float = 0.7,
    ):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    @classmethod
    def from_settings(cls) -> "CompletionProvider":
        settings = get_settings()
        return cls(
            client=OpenAI(api_key=settings.OPENAI_API_KEY),
            model=settings.CHAT_MODEL,
            max_tokens=settings.CHAT_MAX_TOKENS,
            temperature=settings.CHAT_TEMPERATURE,
        )

    def complete(self, system_prompt: str, user_turn: str) -> str:
        """
        Generate a reply.

        Raises:
            CompletionError: If the API call fails or returns no text
        """
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_turn},
                ],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except Exception as e:
            logger.error(f"Chat completion failed with {self.model}: {e}")
            raise CompletionError(f"Chat completion failed: {e}") from e

        if not response.choices:
            raise CompletionError("Chat completion returned no choices")

        content = (response.choices[0].message.content or "").strip()
        if not content:
            raise CompletionError("Chat completion returned empty content")

        usage = getattr(response, "usage", None)
        logger.debug(
            f"Generated reply with {self.model}",
            extra={
                "extra_data": {
                    "model": self.model,
                    "completion_tokens": getattr(usage, "completion_tokens", None),
                }
            },
        )
        return content
