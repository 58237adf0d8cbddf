"""Domain data models — pure Python dataclasses."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum


@dataclass(frozen=True)
class Command:
    """Parsed bot command."""

    name: str  # the trigger word that matched, e.g. "f"
    argument: str  # trimmed remainder, e.g. a collection slug


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class FloorPriceQuote:
    """Floor price of a collection at a point in time."""

    collection_slug: str
    price: Decimal
    currency: str
    fetched_at: datetime = field(default_factory=_utcnow)

    def display_price(self) -> str:
        """Price without exponent or trailing zeros ("80.50" -> "80.5")."""
        return format(self.price.normalize(), "f")


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    READY = "ready"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


class HealthStatus(str, Enum):
    OK = "OK"
    DEGRADED = "DEGRADED"
