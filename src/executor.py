"""Run one discussion step's generation call with bounded retries."""

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from config.config_loader import DEFAULT_MAX_ATTEMPTS, DEFAULT_RETRY_DELAY_SEC
from src.cancellation import CancellationToken
from src.models import ErrorKind, ImagePayload, StepResult
from src.parser import parse_response
from src.providers.base import CANCELLED_MESSAGE

if TYPE_CHECKING:
    from src.discussion import Participant

logger = logging.getLogger(__name__)

# Errors that end the step at once; everything else is retried.
_NON_RETRYABLE = frozenset({ErrorKind.CANCELLED, ErrorKind.API_KEY_MISSING, ErrorKind.API_KEY_INVALID})


class StepExecutor:
    """Calls a participant's provider, retrying transient failures a fixed number of times."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        delay_sec: float = DEFAULT_RETRY_DELAY_SEC,
    ) -> None:
        self.max_attempts = max_attempts
        self.delay_sec = delay_sec

    async def execute(
        self,
        prompt: str,
        participant: "Participant",
        image: ImagePayload | None,
        token: CancellationToken,
        notify: Callable[[str], None] | None = None,
    ) -> StepResult:
        """Execute one step.

        Args:
            prompt: Step prompt; the participant's persona is prepended.
            participant: Who speaks, and through which provider.
            image: Optional image sent with every attempt.
            token: Checked before each attempt and honoured during the call.
            notify: Receives user-visible retry notifications.

        Returns:
            StepResult with the parsed response, or a classified error.
        """
        full_prompt = f"{participant.persona}\n\n{prompt}"
        speaker = participant.speaker.value

        for attempt in range(1, self.max_attempts + 1):
            if token.cancelled:
                return StepResult(elapsed_ms=0, error_kind=ErrorKind.CANCELLED, error_message=CANCELLED_MESSAGE)

            try:
                result = await participant.provider.generate(full_prompt, image=image, token=token)
            except Exception as exc:
                logger.exception("[%s] provider raised instead of returning an error", speaker)
                return StepResult(elapsed_ms=0, error_kind=ErrorKind.UNKNOWN,
                                  error_message=f"Unexpected error during AI call: {exc}")

            if token.cancelled:
                return StepResult(elapsed_ms=result.elapsed_ms, error_kind=ErrorKind.CANCELLED,
                                  error_message=CANCELLED_MESSAGE)

            if result.error_kind is None:
                return StepResult(elapsed_ms=result.elapsed_ms, parsed=parse_response(result.text))

            if result.error_kind in _NON_RETRYABLE:
                return StepResult(elapsed_ms=result.elapsed_ms, error_kind=result.error_kind,
                                  error_message=result.text)

            logger.warning(
                "[%s] attempt %d/%d failed (%s): %s",
                speaker, attempt, self.max_attempts, result.error_kind.value, result.text,
            )
            if notify:
                notify(
                    f"[{speaker}] call failed: {result.text or 'AI returned an empty response.'} "
                    f"Retrying in {self.delay_sec:g}s... ({attempt}/{self.max_attempts})"
                )
            await token.sleep(self.delay_sec)

        if token.cancelled:
            return StepResult(elapsed_ms=0, error_kind=ErrorKind.CANCELLED, error_message=CANCELLED_MESSAGE)

        logger.error("[%s] giving up after %d attempts", speaker, self.max_attempts)
        if notify:
            notify(f"[{speaker}] reached the maximum number of retries ({self.max_attempts}).")
        return StepResult(elapsed_ms=0, error_kind=ErrorKind.API_COMMUNICATION,
                          error_message="Maximum number of retries reached")
