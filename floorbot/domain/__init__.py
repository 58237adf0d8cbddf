"""Domain layer — pure Python, no framework dependencies."""

from floorbot.domain.command_parser import CommandParser, DEFAULT_TRIGGER_WORDS
from floorbot.domain.errors import (
    ConfigError,
    FatalGatewayError,
    FloorBotError,
    NotFoundError,
    PriceLookupError,
    RateLimitedError,
    SendError,
    TransportError,
    UpstreamUnavailableError,
)
from floorbot.domain.models import Command, FloorPriceQuote, HealthStatus, SessionState

__all__ = [
    "Command",
    "CommandParser",
    "ConfigError",
    "DEFAULT_TRIGGER_WORDS",
    "FatalGatewayError",
    "FloorBotError",
    "FloorPriceQuote",
    "HealthStatus",
    "NotFoundError",
    "PriceLookupError",
    "RateLimitedError",
    "SendError",
    "SessionState",
    "TransportError",
    "UpstreamUnavailableError",
]
