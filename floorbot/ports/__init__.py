"""Port interfaces (Hexagonal Architecture)."""

from floorbot.ports.inbound import MessageEvent
from floorbot.ports.outbound import HealthPort, PriceLookupPort, ReplyPort

__all__ = [
    "MessageEvent",
    "HealthPort",
    "PriceLookupPort",
    "ReplyPort",
]
