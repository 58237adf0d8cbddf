"""Discord REST client — posts channel messages using aiohttp."""

import asyncio
from typing import Any, Dict

import aiohttp

from floorbot.domain.errors import SendError

DISCORD_API_BASE = "https://discord.com/api/v10"

# Hard cap on message content enforced by Discord
MAX_MESSAGE_LENGTH = 2000


class DiscordRestClient:
    """Minimal Discord HTTP API client for bot replies."""

    def __init__(
        self,
        token: str,
        *,
        api_base: str = DISCORD_API_BASE,
        request_timeout: float = 10.0,
        user_agent: str = "DiscordBot (https://github.com/floorbot, 0.1.0)",
    ):
        self._token = token
        self._api_base = api_base.rstrip("/")
        self._request_timeout = request_timeout
        self._user_agent = user_agent

    @property
    def is_configured(self) -> bool:
        return bool(self._token)

    @staticmethod
    def truncate_text(text: str, limit: int = MAX_MESSAGE_LENGTH) -> str:
        if len(text) <= limit:
            return text
        return text[: limit - 3] + "..."

    async def create_message(self, channel_id: str, content: str) -> Dict[str, Any]:
        """POST /channels/{channel_id}/messages. Mentions are never parsed."""
        url = f"{self._api_base}/channels/{channel_id}/messages"
        headers = {
            "Authorization": f"Bot {self._token}",
            "User-Agent": self._user_agent,
        }
        payload = {
            "content": self.truncate_text(content),
            "allowed_mentions": {"parse": []},
        }
        timeout = aiohttp.ClientTimeout(total=self._request_timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, headers=headers, json=payload) as resp:
                    if resp.status == 429:
                        data = await resp.json(content_type=None)
                        retry_after = data.get("retry_after") if isinstance(data, dict) else None
                        raise SendError(
                            f"rate limited posting to channel {channel_id}",
                            retry_after=float(retry_after) if retry_after is not None else None,
                        )
                    if resp.status >= 400:
                        body = await resp.text()
                        raise SendError(f"HTTP {resp.status} posting to channel {channel_id}: {body[:200]}")
                    data = await resp.json(content_type=None)
                    return data if isinstance(data, dict) else {}
        except SendError:
            raise
        except asyncio.TimeoutError as e:
            raise SendError(f"timed out posting to channel {channel_id}") from e
        except (aiohttp.ClientError, ValueError) as e:
            raise SendError(f"failed posting to channel {channel_id}: {e}") from e
