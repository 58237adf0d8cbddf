"""Reply text for the floor price command."""

from dataclasses import dataclass
from typing import Optional

from discord.utils import escape_markdown, escape_mentions

from floorbot.domain.models import FloorPriceQuote


@dataclass(frozen=True)
class ReplyTemplates:
    """User-facing wording. Placeholders: {slug}, {price}, {currency}, {trigger}, {seconds}."""

    quote: str = "Floor price for **{slug}**: {price} {currency}"
    not_found: str = "Collection **{slug}** not found."
    unavailable: str = "Couldn't reach the marketplace right now, try again later."
    rate_limited: str = "The marketplace is busy, try again later."
    rate_limited_hint: str = "The marketplace is busy, try again later (in about {seconds}s)."
    usage: str = "Usage: `{trigger} <collection-slug>`"


def safe_text(text: str) -> str:
    """Neutralize markdown and @mentions in user-supplied text."""
    return escape_mentions(escape_markdown(text))


class ReplyFormatter:
    def __init__(self, templates: Optional[ReplyTemplates] = None):
        self.templates = templates or ReplyTemplates()

    def quote(self, quote: FloorPriceQuote) -> str:
        return self.templates.quote.format(
            slug=safe_text(quote.collection_slug),
            price=quote.display_price(),
            currency=safe_text(quote.currency),
        )

    def not_found(self, slug: str) -> str:
        return self.templates.not_found.format(slug=safe_text(slug))

    def unavailable(self) -> str:
        return self.templates.unavailable

    def rate_limited(self, retry_after: Optional[float] = None) -> str:
        if retry_after:
            return self.templates.rate_limited_hint.format(seconds=max(1, round(retry_after)))
        return self.templates.rate_limited

    def usage(self, trigger: str) -> str:
        return self.templates.usage.format(trigger=trigger)
