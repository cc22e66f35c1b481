"""OpenAI provider (and OpenAI-compatible endpoints) using openai SDK with native async."""

import logging

import openai
from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from src.models import ErrorKind, ImagePayload
from src.providers.base import AIProvider, ProviderError, classify_failure

logger = logging.getLogger(__name__)


class OpenAIProvider(AIProvider):
    """OpenAI provider via openai SDK. A base_url in settings points it at any compatible API."""

    def __init__(self, config: ModelConfig) -> None:
        super().__init__(config)
        self._client = (
            AsyncOpenAI(api_key=self._api_key, base_url=config.base_url) if self._api_key else None
        )

    @staticmethod
    def _user_content(prompt: str, image: ImagePayload | None) -> str | list[dict]:
        if image is None:
            return prompt
        return [
            {"type": "text", "text": prompt},
            {"type": "image_url", "image_url": {"url": f"data:{image.mime_type};base64,{image.data}"}},
        ]

    async def _complete(self, prompt: str, image: ImagePayload | None) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._config.model,
                messages=[{"role": "user", "content": self._user_content(prompt, image)}],
                max_tokens=self._config.max_tokens,
            )
        except (openai.AuthenticationError, openai.PermissionDeniedError) as exc:
            raise ProviderError(self._config.name, f"API key invalid or permission denied: {exc}",
                                ErrorKind.API_KEY_INVALID) from exc
        except openai.RateLimitError as exc:
            raise ProviderError(self._config.name, f"Quota exceeded: {exc}", ErrorKind.QUOTA_EXCEEDED) from exc
        except openai.APIStatusError as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}",
                                classify_failure(exc.status_code, str(exc))) from exc
        except openai.APIError as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        choice = response.choices[0] if response.choices else None
        if response.usage:
            logger.debug("OpenAI tokens: %s", response.usage.total_tokens)
        if not choice or not choice.message.content:
            return ""
        return choice.message.content
