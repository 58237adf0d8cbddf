"""Discord adapters — gateway session, REST replies, reply formatting."""

from floorbot.adapters.discord.backoff import ReconnectBackoff
from floorbot.adapters.discord.formatting import ReplyFormatter, ReplyTemplates
from floorbot.adapters.discord.gateway import GatewaySessionManager, default_intents
from floorbot.adapters.discord.rest import MAX_MESSAGE_LENGTH, DiscordRestClient
from floorbot.adapters.discord.transport import AiohttpGatewayTransport

__all__ = [
    "AiohttpGatewayTransport",
    "DiscordRestClient",
    "GatewaySessionManager",
    "MAX_MESSAGE_LENGTH",
    "ReconnectBackoff",
    "ReplyFormatter",
    "ReplyTemplates",
    "default_intents",
]
