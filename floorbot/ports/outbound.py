"""Outbound ports — interfaces for external system adapters."""

from typing import Any, Dict, Protocol, runtime_checkable

from floorbot.domain.models import FloorPriceQuote, HealthStatus


@runtime_checkable
class PriceLookupPort(Protocol):
    """Interface for marketplace floor-price lookups."""

    async def fetch_floor_price(self, collection_slug: str) -> FloorPriceQuote: ...


@runtime_checkable
class ReplyPort(Protocol):
    """Capability to answer in a channel. Raises SendError on failure."""

    async def send_reply(self, channel_id: str, text: str) -> None: ...


@runtime_checkable
class HealthPort(Protocol):
    """Read-only view of process health for the liveness endpoint."""

    def health(self) -> HealthStatus: ...

    def snapshot(self) -> Dict[str, Any]: ...
