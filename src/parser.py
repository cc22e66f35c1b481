"""Extract the notepad and the completion sentinel from raw model output."""

import re

from src.models import ParsedResponse

DISCUSSION_COMPLETE_TAG = "<DISCUSSION_COMPLETE>"
NOTEPAD_OPEN_TAG = "<notepad>"
NOTEPAD_CLOSE_TAG = "</notepad>"

PLACEHOLDER_ENDING = "(AI proposes ending the discussion)"
PLACEHOLDER_EMPTY = "(AI provided no additional text)"

# Greedy: first opening tag through the last closing tag.
_NOTEPAD_RE = re.compile(
    re.escape(NOTEPAD_OPEN_TAG) + r"([\s\S]*)" + re.escape(NOTEPAD_CLOSE_TAG)
)


def wrap_notepad(content: str) -> str:
    """Return content wrapped in the notepad tags, as a model is asked to emit it."""
    return f"{NOTEPAD_OPEN_TAG}{content}{NOTEPAD_CLOSE_TAG}"


def parse_response(raw_text: str) -> ParsedResponse:
    """Split raw model output into spoken text, stop signal and notepad.

    Never raises. Missing or unbalanced tags leave the text as plain speech
    and the notepad as "no change" (``updated_notepad is None``).
    """
    spoken = (raw_text or "").strip()
    notepad: str | None = None

    match = _NOTEPAD_RE.search(spoken)
    if match:
        notepad = match.group(1).strip()
        spoken = (spoken[: match.start()] + spoken[match.end():]).strip()

    should_end = False
    if spoken.endswith(DISCUSSION_COMPLETE_TAG):
        should_end = True
        spoken = spoken[: -len(DISCUSSION_COMPLETE_TAG)].strip()

    if not spoken:
        spoken = PLACEHOLDER_ENDING if should_end else PLACEHOLDER_EMPTY

    return ParsedResponse(
        spoken_text=spoken,
        discussion_should_end=should_end,
        updated_notepad=notepad,
    )
