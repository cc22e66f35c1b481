"""Anthropic Claude provider using anthropic SDK with native async."""

import logging

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig
from src.models import ErrorKind, ImagePayload
from src.providers.base import AIProvider, ProviderError, classify_failure

logger = logging.getLogger(__name__)


class AnthropicProvider(AIProvider):
    """Anthropic Claude provider via anthropic SDK."""

    def __init__(self, config: ModelConfig) -> None:
        super().__init__(config)
        self._client = anthropic_sdk.AsyncAnthropic(api_key=self._api_key) if self._api_key else None

    @staticmethod
    def _user_content(prompt: str, image: ImagePayload | None) -> str | list[dict]:
        if image is None:
            return prompt
        return [
            {
                "type": "image",
                "source": {"type": "base64", "media_type": image.mime_type, "data": image.data},
            },
            {"type": "text", "text": prompt},
        ]

    async def _complete(self, prompt: str, image: ImagePayload | None) -> str:
        try:
            response = await self._client.messages.create(
                model=self._config.model,
                max_tokens=self._config.max_tokens,
                messages=[{"role": "user", "content": self._user_content(prompt, image)}],
            )
        except (anthropic_sdk.AuthenticationError, anthropic_sdk.PermissionDeniedError) as exc:
            raise ProviderError(self._config.name, f"API key invalid or permission denied: {exc}",
                                ErrorKind.API_KEY_INVALID) from exc
        except anthropic_sdk.RateLimitError as exc:
            raise ProviderError(self._config.name, f"Quota exceeded: {exc}", ErrorKind.QUOTA_EXCEEDED) from exc
        except anthropic_sdk.APIStatusError as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}",
                                classify_failure(exc.status_code, str(exc))) from exc
        except anthropic_sdk.APIError as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        if response.usage:
            logger.debug("Claude tokens: %d in / %d out", response.usage.input_tokens, response.usage.output_tokens)
        return "".join(block.text for block in response.content if getattr(block, "type", "") == "text")
