"""Application startup: explicit construction, run, graceful shutdown."""

import asyncio
import logging
import signal
import sys
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from floorbot.adapters.discord.backoff import ReconnectBackoff
from floorbot.adapters.discord.formatting import ReplyFormatter
from floorbot.adapters.discord.gateway import GatewaySessionManager
from floorbot.adapters.discord.rest import DiscordRestClient
from floorbot.adapters.marketplace.cache import CachedPriceLookup
from floorbot.adapters.marketplace.client import MarketplaceClient
from floorbot.adapters.web.health import LivenessServer, create_health_app
from floorbot.config import AppConfig
from floorbot.controller import BotController
from floorbot.domain.command_parser import CommandParser
from floorbot.domain.errors import ConfigError
from floorbot.infrastructure.logging_config import setup_logging
from floorbot.ports.outbound import PriceLookupPort

logger = logging.getLogger(__name__)


@dataclass
class Services:
    lookup: PriceLookupPort
    parser: CommandParser
    gateway: GatewaySessionManager
    controller: BotController
    liveness: LivenessServer


def build_services(config: AppConfig) -> Services:
    """Construct every component in dependency order and wire them together."""
    market = config.marketplace
    lookup: PriceLookupPort = MarketplaceClient(
        market.api_key,
        api_base=market.api_base,
        default_currency=market.default_currency,
        request_timeout=market.request_timeout,
    )
    if market.cache_ttl > 0:
        lookup = CachedPriceLookup(lookup, ttl_seconds=market.cache_ttl, max_entries=market.cache_max_entries)

    parser = CommandParser(config.bot.trigger_words)

    rest = DiscordRestClient(config.discord.token, api_base=config.discord.api_base)
    gateway = GatewaySessionManager(
        config.discord.token,
        rest=rest,
        backoff=ReconnectBackoff(
            base=config.gateway.reconnect_base_seconds,
            max_delay=config.gateway.reconnect_max_seconds,
            max_attempts=config.gateway.reconnect_max_attempts,
        ),
        gateway_url=config.discord.gateway_url,
        hello_timeout=config.gateway.hello_timeout,
        guild_ready_timeout=config.gateway.guild_ready_timeout,
    )

    controller = BotController(
        parser,
        lookup,
        gateway,
        formatter=ReplyFormatter(),
        lookup_timeout=config.bot.lookup_timeout,
        max_concurrent_lookups=config.bot.max_concurrent_lookups,
    )
    gateway.on_message(controller.handle_event)

    liveness = LivenessServer(create_health_app(gateway), host=config.host, port=config.port)
    return Services(lookup, parser, gateway, controller, liveness)


async def run(config: AppConfig, stop_event: Optional[asyncio.Event] = None) -> None:
    """Run until a shutdown signal (or stop_event), then shut down in order."""
    services = build_services(config)
    stop_event = stop_event or asyncio.Event()

    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Windows / non-main thread: rely on KeyboardInterrupt
            pass

    logger.info("Starting floor price bot (triggers: %s)", ", ".join(sorted(services.parser.trigger_words)))
    liveness_task = services.liveness.start()
    gateway_task = asyncio.create_task(services.gateway.run())
    stop_task = asyncio.create_task(stop_event.wait())

    try:
        await asyncio.wait({gateway_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        if gateway_task.done() and not stop_event.is_set():
            # Permanent gateway failure: stay up so /health reports DEGRADED
            logger.error("Gateway stopped (state=%s); waiting for shutdown", services.gateway.state.value)
            await stop_event.wait()
    finally:
        logger.info("Shutting down")
        stop_task.cancel()
        await services.gateway.close()
        await asyncio.gather(gateway_task, return_exceptions=True)
        await services.controller.shutdown(config.shutdown_grace)
        await services.liveness.stop()
        await asyncio.gather(liveness_task, stop_task, return_exceptions=True)
        for sig in installed:
            loop.remove_signal_handler(sig)
        logger.info("Shutdown complete")


def main() -> int:
    load_dotenv()
    try:
        config = AppConfig.from_env()
        setup_logging(config.log_level)
        config.validate()
    except ConfigError as e:
        setup_logging("INFO")
        logger.error("Configuration error: %s", e)
        return 2

    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
