"""Command parsing for chat messages.

Pure Python, no framework dependencies.
"""

from typing import Iterable, Optional, Tuple

from floorbot.domain.models import Command

DEFAULT_TRIGGER_WORDS: Tuple[str, ...] = ("f",)


class CommandParser:
    """Turns raw message text into a Command when it starts with a trigger word.

    Matching is exact and case-sensitive on the first whitespace-delimited
    token. The rest of the message is trimmed and kept verbatim.
    """

    def __init__(self, trigger_words: Iterable[str] = DEFAULT_TRIGGER_WORDS):
        words = tuple(w for w in trigger_words if w)
        if not words:
            raise ValueError("at least one trigger word is required")
        for word in words:
            if len(word.split()) != 1 or word != word.strip():
                raise ValueError(f"trigger word must be a single token: {word!r}")
        self._trigger_words = frozenset(words)

    @property
    def trigger_words(self) -> frozenset:
        return self._trigger_words

    def parse(self, raw_text: str) -> Optional[Command]:
        """Return the Command in raw_text, or None if it is not addressed to the bot."""
        if not raw_text:
            return None
        parts = raw_text.split(None, 1)
        if not parts or parts[0] not in self._trigger_words:
            return None
        argument = parts[1].strip() if len(parts) > 1 else ""
        return Command(name=parts[0], argument=argument)
