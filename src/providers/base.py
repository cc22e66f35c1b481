"""Abstract base for all AI model providers (the generation contract)."""

import asyncio
import logging
import os
import time
from abc import ABC, abstractmethod

from config.config_loader import ModelConfig
from src.cancellation import CancellationToken, OperationCancelled
from src.models import ErrorKind, GenerationResult, ImagePayload

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Operation cancelled by user"

_INVALID_KEY_MARKERS = ("api key not valid", "api_key_invalid", "permission denied", "permission_denied")


class ProviderError(Exception):
    """Raised inside a provider when a call fails. Carries the classified ErrorKind."""

    def __init__(self, provider_name: str, message: str, kind: ErrorKind = ErrorKind.API_COMMUNICATION) -> None:
        self.provider_name = provider_name
        self.kind = kind
        super().__init__(f"[{provider_name}] {message}")


def classify_failure(status_code: int | None, message: str) -> ErrorKind:
    """Map an HTTP status and/or error text onto an ErrorKind."""
    lowered = message.lower()
    if status_code in (401, 403) or any(marker in lowered for marker in _INVALID_KEY_MARKERS):
        return ErrorKind.API_KEY_INVALID
    if status_code == 429 or "quota" in lowered or "resource_exhausted" in lowered:
        return ErrorKind.QUOTA_EXCEEDED
    return ErrorKind.API_COMMUNICATION


class AIProvider(ABC):
    """Abstract base for all AI model providers.

    Subclasses implement ``_complete``; ``generate`` wraps it with the API key
    check, the transport timeout, cancellation and error classification, and
    never raises for API failures.
    """

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        self._api_key = os.environ.get(config.api_key_env, "").strip()

    def name(self) -> str:
        """Return the short provider name from settings (e.g. 'gemini', 'claude')."""
        return self._config.name

    def model_string(self) -> str:
        """Return the actual model identifier string."""
        return self._config.model

    @property
    def has_api_key(self) -> bool:
        return bool(self._api_key)

    @abstractmethod
    async def _complete(self, prompt: str, image: ImagePayload | None) -> str:
        """Run one generation call and return the raw text (possibly empty).

        Raises:
            ProviderError: On API failure, with the failure classified.
        """
        ...

    async def generate(
        self,
        prompt: str,
        image: ImagePayload | None = None,
        token: CancellationToken | None = None,
    ) -> GenerationResult:
        """Generate a response for the full prompt.

        Returns:
            GenerationResult with text on success, or error_kind set and the
            user-facing error message in text. Elapsed time is always set.
        """
        start = time.monotonic()

        def elapsed_ms() -> float:
            return (time.monotonic() - start) * 1000

        if not self._api_key:
            return GenerationResult(
                text=f"Missing API key for {self.name()}: set {self._config.api_key_env}",
                elapsed_ms=elapsed_ms(),
                error_kind=ErrorKind.API_KEY_MISSING,
            )

        call = asyncio.wait_for(self._complete(prompt, image), timeout=self._config.timeout_sec)
        try:
            text = await token.run(call) if token is not None else await call
        except OperationCancelled:
            return GenerationResult(CANCELLED_MESSAGE, elapsed_ms(), ErrorKind.CANCELLED)
        except TimeoutError:
            return GenerationResult(
                f"Request timed out after {self._config.timeout_sec}s",
                elapsed_ms(),
                ErrorKind.API_COMMUNICATION,
            )
        except ProviderError as exc:
            logger.warning("Provider %s failed (%s): %s", self.name(), exc.kind.value, exc)
            return GenerationResult(str(exc), elapsed_ms(), exc.kind)
        except Exception as exc:
            logger.warning("Provider %s unexpected failure: %s", self.name(), exc)
            return GenerationResult(f"Unexpected error: {exc}", elapsed_ms(), ErrorKind.UNKNOWN)

        latency = elapsed_ms()
        logger.info("%s (%s): %.0f ms, %d chars", self.name(), self.model_string(), latency, len(text))
        return GenerationResult(text=text, elapsed_ms=latency)
