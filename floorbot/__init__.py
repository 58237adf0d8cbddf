"""Floor Price Bot — Discord gateway client answering NFT floor price commands."""

__version__ = "0.1.0"

from floorbot.config import AppConfig
from floorbot.controller import BotController
from floorbot.domain import (
    Command,
    CommandParser,
    FloorPriceQuote,
    HealthStatus,
    NotFoundError,
    RateLimitedError,
    SendError,
    SessionState,
    UpstreamUnavailableError,
)
from floorbot.adapters.discord import GatewaySessionManager, DiscordRestClient
from floorbot.adapters.marketplace import CachedPriceLookup, MarketplaceClient
from floorbot.ports import MessageEvent

__all__ = [
    "AppConfig",
    "BotController",
    "CachedPriceLookup",
    "Command",
    "CommandParser",
    "DiscordRestClient",
    "FloorPriceQuote",
    "GatewaySessionManager",
    "HealthStatus",
    "MarketplaceClient",
    "MessageEvent",
    "NotFoundError",
    "RateLimitedError",
    "SendError",
    "SessionState",
    "UpstreamUnavailableError",
]
