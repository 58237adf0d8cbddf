"""Marketplace adapters — floor price lookup and caching."""

from floorbot.adapters.marketplace.cache import CachedPriceLookup
from floorbot.adapters.marketplace.client import MARKETPLACE_API_BASE, MarketplaceClient

__all__ = ["CachedPriceLookup", "MARKETPLACE_API_BASE", "MarketplaceClient"]
