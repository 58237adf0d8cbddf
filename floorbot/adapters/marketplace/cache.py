"""TTL + LRU cache in front of a PriceLookupPort."""

import logging
import time
from collections import OrderedDict
from typing import Callable, Dict, Tuple

from floorbot.domain.models import FloorPriceQuote
from floorbot.ports.outbound import PriceLookupPort

logger = logging.getLogger(__name__)


class CachedPriceLookup:
    """Serve recent quotes from memory. Failures are never cached."""

    def __init__(
        self,
        inner: PriceLookupPort,
        ttl_seconds: float = 30.0,
        max_entries: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._inner = inner
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, FloorPriceQuote]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    async def fetch_floor_price(self, collection_slug: str) -> FloorPriceQuote:
        key = collection_slug.strip().lower()
        now = self._clock()

        cached = self._entries.get(key)
        if cached is not None:
            stored_at, quote = cached
            if now - stored_at < self._ttl:
                self._entries.move_to_end(key)
                logger.debug("Quote cache hit for %s", key)
                return quote
            del self._entries[key]

        quote = await self._inner.fetch_floor_price(collection_slug)
        self._entries[key] = (self._clock(), quote)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)
        return quote

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> Dict[str, float]:
        return {"entries": len(self._entries), "ttl_seconds": self._ttl}
