"""The shared notepad: one plain-text scratchpad carried across every step."""

import logging

logger = logging.getLogger(__name__)


class NotepadStore:
    """Holds the notepad string. Whole-value replacement only, last write wins."""

    def __init__(self, content: str = "") -> None:
        self._content = content

    @property
    def content(self) -> str:
        return self._content

    def update(self, new_content: str | None) -> bool:
        """Replace the notepad. Returns True only if the content actually changed.

        None means the step produced no notepad section and is ignored.
        """
        if new_content is None or new_content == self._content:
            return False
        self._content = new_content
        logger.debug("Notepad updated (%d chars)", len(new_content))
        return True

    def clear(self) -> None:
        self._content = ""
