"""Typed configuration, read once from the environment at startup."""

import os
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple, TypeVar

from floorbot.domain.command_parser import DEFAULT_TRIGGER_WORDS
from floorbot.domain.errors import ConfigError

T = TypeVar("T")

_PLACEHOLDER_VALUES = {"", "your_token_here", "changeme"}


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _env_number(name: str, default: T, cast: Callable[[str], T]) -> T:
    raw = _env(name)
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


def _split_words(raw: str) -> Tuple[str, ...]:
    return tuple(w.strip() for w in raw.split(",") if w.strip())


@dataclass
class DiscordConfig:
    token: str = ""
    gateway_url: str = "wss://gateway.discord.gg"
    api_base: str = "https://discord.com/api/v10"


@dataclass
class GatewayConfig:
    reconnect_base_seconds: float = 1.0
    reconnect_max_seconds: float = 60.0
    reconnect_max_attempts: int = 10  # 0 = retry forever
    hello_timeout: float = 30.0
    guild_ready_timeout: float = 2.0


@dataclass
class MarketplaceConfig:
    api_key: str = ""
    api_base: str = "https://api.opensea.io/api/v2"
    default_currency: str = "ETH"
    request_timeout: float = 10.0
    cache_ttl: float = 30.0  # 0 disables the quote cache
    cache_max_entries: int = 256


@dataclass
class BotConfig:
    trigger_words: Tuple[str, ...] = DEFAULT_TRIGGER_WORDS
    lookup_timeout: float = 5.0
    max_concurrent_lookups: int = 8


@dataclass
class AppConfig:
    """Application configuration. Build with from_env(), then validate()."""

    port: int = 8080
    host: str = "0.0.0.0"
    log_level: str = "INFO"
    shutdown_grace: float = 5.0
    discord: DiscordConfig = field(default_factory=DiscordConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    marketplace: MarketplaceConfig = field(default_factory=MarketplaceConfig)
    bot: BotConfig = field(default_factory=BotConfig)

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create AppConfig from environment variables."""
        trigger_words = _split_words(_env("TRIGGER_WORDS")) or DEFAULT_TRIGGER_WORDS
        return cls(
            port=_env_number("PORT", 8080, int),
            host=_env("HOST", "0.0.0.0"),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            shutdown_grace=_env_number("SHUTDOWN_GRACE_SECONDS", 5.0, float),
            discord=DiscordConfig(
                token=_env("DISCORD_BOT_TOKEN"),
                gateway_url=_env("DISCORD_GATEWAY_URL", "wss://gateway.discord.gg"),
                api_base=_env("DISCORD_API_BASE", "https://discord.com/api/v10"),
            ),
            gateway=GatewayConfig(
                reconnect_base_seconds=_env_number("RECONNECT_BASE_SECONDS", 1.0, float),
                reconnect_max_seconds=_env_number("RECONNECT_MAX_SECONDS", 60.0, float),
                reconnect_max_attempts=_env_number("RECONNECT_MAX_ATTEMPTS", 10, int),
            ),
            marketplace=MarketplaceConfig(
                api_key=_env("MARKETPLACE_API_KEY"),
                api_base=_env("MARKETPLACE_API_BASE", "https://api.opensea.io/api/v2"),
                default_currency=_env("MARKETPLACE_DEFAULT_CURRENCY", "ETH"),
                cache_ttl=_env_number("QUOTE_CACHE_TTL_SECONDS", 30.0, float),
            ),
            bot=BotConfig(
                trigger_words=trigger_words,
                lookup_timeout=_env_number("LOOKUP_TIMEOUT_SECONDS", 5.0, float),
                max_concurrent_lookups=_env_number("MAX_CONCURRENT_LOOKUPS", 8, int),
            ),
        )

    def missing_credentials(self) -> List[str]:
        missing = []
        if self.discord.token in _PLACEHOLDER_VALUES:
            missing.append("DISCORD_BOT_TOKEN")
        if self.marketplace.api_key in _PLACEHOLDER_VALUES:
            missing.append("MARKETPLACE_API_KEY")
        return missing

    def validate(self) -> "AppConfig":
        """Raise ConfigError on missing credentials or out-of-range values."""
        missing = self.missing_credentials()
        if missing:
            raise ConfigError(f"missing required configuration: {', '.join(missing)}")
        problem = self._range_problem()
        if problem:
            raise ConfigError(problem)
        return self

    def _range_problem(self) -> Optional[str]:
        if not 0 < self.port < 65536:
            return f"PORT out of range: {self.port}"
        if self.bot.lookup_timeout <= 0:
            return "LOOKUP_TIMEOUT_SECONDS must be positive"
        if self.bot.max_concurrent_lookups < 1:
            return "MAX_CONCURRENT_LOOKUPS must be at least 1"
        if self.gateway.reconnect_base_seconds < 0:
            return "RECONNECT_BASE_SECONDS must not be negative"
        if self.gateway.reconnect_max_seconds < self.gateway.reconnect_base_seconds:
            return "RECONNECT_MAX_SECONDS must be >= RECONNECT_BASE_SECONDS"
        if self.gateway.reconnect_max_attempts < 0:
            return "RECONNECT_MAX_ATTEMPTS must not be negative"
        if self.marketplace.cache_ttl < 0:
            return "QUOTE_CACHE_TTL_SECONDS must not be negative"
        return None
