"""Gemini provider using google-genai SDK with native async."""

import base64
import logging

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from config.config_loader import ModelConfig
from src.models import ImagePayload
from src.providers.base import AIProvider, ProviderError, classify_failure

logger = logging.getLogger(__name__)


class GeminiProvider(AIProvider):
    """Google Gemini provider via google-genai SDK."""

    def __init__(self, config: ModelConfig, thinking: bool = True) -> None:
        super().__init__(config)
        self._thinking = thinking
        self._client = genai.Client(api_key=self._api_key) if self._api_key else None

    def _generation_config(self) -> genai_types.GenerateContentConfig:
        thinking_config = None
        if self._thinking and self._config.thinking_budget is not None:
            thinking_config = genai_types.ThinkingConfig(thinking_budget=self._config.thinking_budget)
        return genai_types.GenerateContentConfig(
            max_output_tokens=self._config.max_tokens,
            thinking_config=thinking_config,
        )

    async def _complete(self, prompt: str, image: ImagePayload | None) -> str:
        contents: list = [prompt]
        if image is not None:
            contents = [
                genai_types.Part.from_bytes(data=base64.b64decode(image.data), mime_type=image.mime_type),
                prompt,
            ]
        try:
            response = await self._client.aio.models.generate_content(
                model=self._config.model,
                contents=contents,
                config=self._generation_config(),
            )
        except genai_errors.APIError as exc:
            message = f"API call failed: {exc.message or exc}"
            raise ProviderError(self._config.name, message, classify_failure(exc.code, str(exc))) from exc

        if response.usage_metadata:
            logger.debug("Gemini tokens: %s", response.usage_metadata.total_token_count)
        return response.text or ""
