"""Error taxonomy shared by every layer.

Pure Python, no framework dependencies.
"""

from typing import Optional


class FloorBotError(Exception):
    """Base class for all bot errors."""


class ConfigError(FloorBotError):
    """Raised at startup when configuration is missing or malformed. Fatal."""


# ── Price lookup ────────────────────────────────────────────


class PriceLookupError(FloorBotError):
    """Base class for marketplace lookup failures."""

    def __init__(self, message: str, collection_slug: str = ""):
        super().__init__(message)
        self.collection_slug = collection_slug


class NotFoundError(PriceLookupError):
    """The marketplace reports that the collection does not exist."""


class UpstreamUnavailableError(PriceLookupError):
    """Network failure, timeout, malformed body or non-2xx response."""


class RateLimitedError(PriceLookupError):
    """HTTP 429 from the marketplace."""

    def __init__(
        self,
        message: str,
        collection_slug: str = "",
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, collection_slug)
        self.retry_after = retry_after


# ── Gateway ─────────────────────────────────────────────────


class SendError(FloorBotError):
    """A reply could not be delivered."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class TransportError(FloorBotError):
    """Gateway connection failure. Handled by reconnecting."""

    def __init__(self, message: str, close_code: Optional[int] = None):
        super().__init__(message)
        self.close_code = close_code


class FatalGatewayError(TransportError):
    """The gateway refused the session for good (bad token, bad intents)."""
