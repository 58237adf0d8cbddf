"""Turns chat commands into floor price replies.

Registered with the gateway as a message callback. Each channel gets a FIFO
worker so commands in one channel are answered in the order they arrived;
a shared semaphore caps concurrent marketplace lookups across channels.
"""

import asyncio
import logging
from typing import Dict, Optional, Tuple

from floorbot.adapters.discord.formatting import ReplyFormatter
from floorbot.domain.command_parser import CommandParser
from floorbot.domain.errors import (
    NotFoundError,
    PriceLookupError,
    RateLimitedError,
    SendError,
)
from floorbot.domain.models import Command
from floorbot.ports.inbound import MessageEvent
from floorbot.ports.outbound import PriceLookupPort, ReplyPort

logger = logging.getLogger(__name__)

_QueueItem = Tuple[MessageEvent, Command]


class BotController:
    """Answers floor price commands, one FIFO worker per channel."""

    def __init__(
        self,
        parser: CommandParser,
        lookup: PriceLookupPort,
        replies: ReplyPort,
        *,
        formatter: Optional[ReplyFormatter] = None,
        lookup_timeout: float = 5.0,
        max_concurrent_lookups: int = 8,
    ):
        self._parser = parser
        self._lookup = lookup
        self._replies = replies
        self._formatter = formatter or ReplyFormatter()
        self._lookup_timeout = lookup_timeout
        self._semaphore = asyncio.Semaphore(max_concurrent_lookups)
        self._queues: Dict[str, "asyncio.Queue[_QueueItem]"] = {}
        self._workers: Dict[str, asyncio.Task] = {}
        self._accepting = True

    @property
    def active_channels(self) -> int:
        return len(self._workers)

    async def handle_event(self, event: MessageEvent) -> None:
        """Gateway callback. Returns as soon as the command is queued."""
        if not self._accepting or event.author_is_bot:
            return
        command = self._parser.parse(event.content)
        if command is None:
            return

        queue = self._queues.get(event.channel_id)
        if queue is None:
            queue = asyncio.Queue()
            self._queues[event.channel_id] = queue
            self._workers[event.channel_id] = asyncio.create_task(
                self._channel_worker(event.channel_id, queue)
            )
        queue.put_nowait((event, command))

    async def process(self, event: MessageEvent) -> Optional[str]:
        """Handle one event inline. Returns the reply text, or None if ignored."""
        if event.author_is_bot:
            return None
        command = self._parser.parse(event.content)
        if command is None:
            return None
        return await self._execute(event, command)

    async def drain(self) -> None:
        """Wait until every queued command has been answered."""
        while self._workers:
            await asyncio.gather(*list(self._workers.values()), return_exceptions=True)

    async def shutdown(self, grace: float = 5.0) -> None:
        """Stop accepting events; give in-flight work `grace` seconds, then cancel it."""
        self._accepting = False
        workers = list(self._workers.values())
        if not workers:
            return
        _, pending = await asyncio.wait(workers, timeout=grace)
        if pending:
            logger.warning("Cancelling %d channel worker(s) after %.1fs grace", len(pending), grace)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
        self._queues.clear()
        self._workers.clear()

    async def _channel_worker(self, channel_id: str, queue: "asyncio.Queue[_QueueItem]") -> None:
        while True:
            event, command = await queue.get()
            try:
                await self._execute(event, command)
            except Exception:
                logger.exception("Unhandled error answering message %s", event.message_id)
            finally:
                queue.task_done()
            if queue.empty():
                # Exit while idle; handle_event starts a fresh worker on demand
                self._queues.pop(channel_id, None)
                self._workers.pop(channel_id, None)
                return

    async def _execute(self, event: MessageEvent, command: Command) -> str:
        reply = await self._build_reply(command)
        try:
            await self._replies.send_reply(event.channel_id, reply)
        except SendError as e:
            logger.warning("Could not reply in channel %s: %s", event.channel_id, e)
        return reply

    async def _build_reply(self, command: Command) -> str:
        slug = command.argument
        if not slug:
            return self._formatter.usage(command.name)

        try:
            async with self._semaphore:
                quote = await asyncio.wait_for(
                    self._lookup.fetch_floor_price(slug),
                    timeout=self._lookup_timeout,
                )
        except asyncio.TimeoutError:
            logger.warning("Lookup for %r timed out after %.1fs", slug, self._lookup_timeout)
            return self._formatter.unavailable()
        except NotFoundError:
            logger.info("Collection %r not found", slug)
            return self._formatter.not_found(slug)
        except RateLimitedError as e:
            logger.warning("Lookup for %r rate limited (retry_after=%s)", slug, e.retry_after)
            return self._formatter.rate_limited(e.retry_after)
        except PriceLookupError as e:
            logger.warning("Lookup for %r failed: %s", slug, e)
            return self._formatter.unavailable()

        logger.info("Floor price for %s: %s %s", quote.collection_slug, quote.price, quote.currency)
        return self._formatter.quote(quote)
