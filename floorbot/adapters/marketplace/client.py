"""Marketplace client — collection floor price lookup using aiohttp."""

import asyncio
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional
from urllib.parse import quote

import aiohttp

from floorbot.domain.errors import (
    NotFoundError,
    PriceLookupError,
    RateLimitedError,
    UpstreamUnavailableError,
)
from floorbot.domain.models import FloorPriceQuote

logger = logging.getLogger(__name__)

MARKETPLACE_API_BASE = "https://api.opensea.io/api/v2"


def _retry_after(headers: Mapping[str, str], body: Any) -> Optional[float]:
    raw = headers.get("Retry-After")
    if raw is None and isinstance(body, dict):
        raw = body.get("retry_after")
    if raw is None:
        return None
    try:
        return max(0.0, float(raw))
    except (TypeError, ValueError):
        return None


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


class MarketplaceClient:
    """Fetch collection floor prices from the marketplace stats API.

    One request per call and no retries; retry policy belongs to the caller.
    """

    def __init__(
        self,
        api_key: str,
        *,
        api_base: str = MARKETPLACE_API_BASE,
        default_currency: str = "ETH",
        request_timeout: float = 10.0,
    ):
        self._api_key = api_key
        self._api_base = api_base.rstrip("/")
        self._default_currency = default_currency
        self._request_timeout = request_timeout

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    @staticmethod
    def normalize_slug(collection_slug: str) -> str:
        return (collection_slug or "").strip().lower()

    def stats_url(self, slug: str) -> str:
        return f"{self._api_base}/collections/{quote(slug, safe='-_.')}/stats"

    async def fetch_floor_price(self, collection_slug: str) -> FloorPriceQuote:
        """Return the current floor price quote for a collection.

        Raises:
            NotFoundError: the collection does not exist.
            RateLimitedError: HTTP 429, with the server's retry-after hint.
            UpstreamUnavailableError: network failure, timeout or any other non-2xx.
        """
        slug = self.normalize_slug(collection_slug)
        if not slug:
            raise NotFoundError("collection slug is empty", slug)

        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["X-API-KEY"] = self._api_key
        timeout = aiohttp.ClientTimeout(total=self._request_timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(self.stats_url(slug), headers=headers) as resp:
                    if resp.status == 404:
                        raise NotFoundError(f"collection {slug!r} not found", slug)

                    if resp.status == 429:
                        body = await self._read_json(resp)
                        raise RateLimitedError(
                            "marketplace rate limited (429)",
                            slug,
                            retry_after=_retry_after(resp.headers, body),
                        )

                    if resp.status == 400:
                        # Unknown slugs come back as 400 with a "not found" message
                        text = await resp.text(errors="replace")
                        if "not found" in text.lower():
                            raise NotFoundError(f"collection {slug!r} not found", slug)
                        raise UpstreamUnavailableError(f"HTTP 400: {text[:200]}", slug)

                    if not 200 <= resp.status < 300:
                        text = await resp.text(errors="replace")
                        raise UpstreamUnavailableError(f"HTTP {resp.status}: {text[:200]}", slug)

                    data = await self._read_json(resp)
        except PriceLookupError:
            raise
        except asyncio.TimeoutError as e:
            raise UpstreamUnavailableError(
                f"marketplace request timed out after {self._request_timeout}s", slug
            ) from e
        except (aiohttp.ClientError, ValueError) as e:
            raise UpstreamUnavailableError(f"marketplace request failed: {e}", slug) from e

        return self._parse_quote(slug, data)

    @staticmethod
    async def _read_json(resp) -> Any:
        try:
            return await resp.json(content_type=None)
        except ValueError:
            return None

    def _parse_quote(self, slug: str, data: Any) -> FloorPriceQuote:
        """Accept both the flat {"floor", "currency"} shape and OpenSea's {"total": {...}}."""
        if not isinstance(data, dict):
            raise UpstreamUnavailableError("marketplace returned a non-object body", slug)

        price = _to_decimal(data.get("floor"))
        currency = data.get("currency")

        total = data.get("total")
        if price is None and isinstance(total, dict):
            price = _to_decimal(total.get("floor_price"))
            currency = currency or total.get("floor_price_symbol")

        if price is None:
            logger.warning("No floor price in marketplace response for %s: %s", slug, str(data)[:200])
            raise UpstreamUnavailableError("marketplace response has no floor price", slug)

        if not price.is_finite() or price < 0:
            logger.warning("Unusable floor price for %s: %s", slug, price)
            raise UpstreamUnavailableError(f"marketplace returned an invalid floor price: {price}", slug)

        return FloorPriceQuote(
            collection_slug=slug,
            price=price,
            currency=str(currency or self._default_currency).upper(),
        )
