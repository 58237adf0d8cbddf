"""Inbound port — platform-agnostic message representation."""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class MessageEvent:
    """A message-created event relayed by the gateway."""

    content: str
    channel_id: str
    author_id: str
    author_is_bot: bool = False
    message_id: str = ""
    guild_id: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "MessageEvent":
        """Build from a Discord MESSAGE_CREATE dispatch payload."""
        author = data.get("author") or {}
        guild_id = data.get("guild_id")
        return cls(
            content=data.get("content") or "",
            channel_id=str(data.get("channel_id", "")),
            author_id=str(author.get("id", "")),
            author_is_bot=bool(author.get("bot", False)),
            message_id=str(data.get("id", "")),
            guild_id=str(guild_id) if guild_id is not None else None,
        )
