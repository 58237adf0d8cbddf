"""Tests for application wiring and lifecycle."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from floorbot import app as app_module
from floorbot.adapters.discord.gateway import GatewaySessionManager
from floorbot.adapters.marketplace.cache import CachedPriceLookup
from floorbot.adapters.marketplace.client import MarketplaceClient
from floorbot.app import Services, build_services, main, run
from floorbot.config import AppConfig, DiscordConfig, MarketplaceConfig
from floorbot.domain.models import SessionState


def _config(**kwargs):
    return AppConfig(
        discord=DiscordConfig(token="tok"),
        marketplace=MarketplaceConfig(api_key="key", **kwargs),
    )


class TestBuildServices:
    def test_wires_components(self):
        services = build_services(_config())
        assert isinstance(services.gateway, GatewaySessionManager)
        assert isinstance(services.lookup, CachedPriceLookup)
        assert services.parser.trigger_words == frozenset({"f"})
        assert services.gateway.state == SessionState.DISCONNECTED

    def test_cache_disabled(self):
        services = build_services(_config(cache_ttl=0))
        assert isinstance(services.lookup, MarketplaceClient)

    def test_controller_registered_on_gateway(self):
        services = build_services(_config())
        assert services.controller.handle_event in services.gateway._message_callbacks


def _fake_services(gateway_run=None):
    gateway = MagicMock()
    gateway.run = gateway_run or AsyncMock()
    gateway.close = AsyncMock()
    gateway.state = SessionState.FAILED
    controller = MagicMock()
    controller.shutdown = AsyncMock()
    liveness = MagicMock()
    liveness.start = MagicMock(side_effect=lambda: asyncio.create_task(asyncio.sleep(0)))
    liveness.stop = AsyncMock()
    parser = MagicMock()
    parser.trigger_words = frozenset({"f"})
    return Services(lookup=MagicMock(), parser=parser, gateway=gateway, controller=controller, liveness=liveness)


class TestRun:
    @pytest.mark.asyncio
    async def test_stop_event_shuts_down_in_order(self):
        order = []
        stopped = asyncio.Event()

        async def gateway_run():
            await stopped.wait()

        services = _fake_services(gateway_run)

        async def close():
            order.append("gateway")
            stopped.set()

        services.gateway.close = AsyncMock(side_effect=close)
        services.controller.shutdown = AsyncMock(side_effect=lambda grace: order.append("controller"))
        services.liveness.stop = AsyncMock(side_effect=lambda: order.append("liveness"))

        stop_event = asyncio.Event()
        with patch.object(app_module, "build_services", return_value=services):
            task = asyncio.create_task(run(_config(), stop_event))
            await asyncio.sleep(0.01)
            stop_event.set()
            await asyncio.wait_for(task, 1.0)

        assert order == ["gateway", "controller", "liveness"]
        services.liveness.start.assert_called_once()
        services.controller.shutdown.assert_awaited_once_with(5.0)

    @pytest.mark.asyncio
    async def test_failed_gateway_keeps_process_up(self):
        services = _fake_services(AsyncMock(return_value=None))
        stop_event = asyncio.Event()

        with patch.object(app_module, "build_services", return_value=services):
            task = asyncio.create_task(run(_config(), stop_event))
            await asyncio.sleep(0.02)
            assert not task.done()
            services.liveness.stop.assert_not_awaited()
            stop_event.set()
            await asyncio.wait_for(task, 1.0)

        services.liveness.stop.assert_awaited_once()


class TestMain:
    def test_missing_credentials_exit_code(self, monkeypatch):
        monkeypatch.delenv("DISCORD_BOT_TOKEN", raising=False)
        monkeypatch.delenv("MARKETPLACE_API_KEY", raising=False)
        with patch.object(app_module, "load_dotenv"), patch.object(app_module, "setup_logging"):
            assert main() == 2

    def test_runs_with_valid_config(self, monkeypatch):
        monkeypatch.setenv("DISCORD_BOT_TOKEN", "tok")
        monkeypatch.setenv("MARKETPLACE_API_KEY", "key")
        with patch.object(app_module, "load_dotenv"), \
                patch.object(app_module, "setup_logging"), \
                patch.object(app_module, "run", new=MagicMock(return_value=None)) as run_mock, \
                patch.object(app_module.asyncio, "run") as asyncio_run:
            assert main() == 0
        run_mock.assert_called_once()
        asyncio_run.assert_called_once()
