"""Tests for domain models and the MessageEvent inbound port."""

from dataclasses import FrozenInstanceError
from datetime import timezone
from decimal import Decimal

import pytest

from floorbot.domain.models import FloorPriceQuote, HealthStatus, SessionState
from floorbot.ports.inbound import MessageEvent


class TestFloorPriceQuote:
    def test_defaults_fetched_at_utc(self):
        q = FloorPriceQuote("azuki", Decimal("12.3"), "ETH")
        assert q.fetched_at.tzinfo == timezone.utc

    def test_immutable(self):
        q = FloorPriceQuote("azuki", Decimal("12.3"), "ETH")
        with pytest.raises(FrozenInstanceError):
            q.price = Decimal("1")

    @pytest.mark.parametrize("raw,expected", [
        ("80.5", "80.5"),
        ("80.50", "80.5"),
        ("100", "100"),
        ("100.000", "100"),
        ("0.000001", "0.000001"),
        ("1E+30", "1" + "0" * 30),
        ("Infinity", "Infinity"),
    ])
    def test_display_price(self, raw, expected):
        assert FloorPriceQuote("x", Decimal(raw), "ETH").display_price() == expected


class TestEnums:
    def test_health_values(self):
        assert HealthStatus.OK.value == "OK"
        assert HealthStatus.DEGRADED.value == "DEGRADED"

    def test_session_states(self):
        assert {s.value for s in SessionState} == {
            "disconnected", "connecting", "authenticated", "ready", "reconnecting", "failed",
        }


class TestMessageEvent:
    def test_from_payload(self):
        event = MessageEvent.from_payload({
            "id": "111",
            "channel_id": "C1",
            "guild_id": 42,
            "content": "f azuki",
            "author": {"id": "7", "bot": False},
        })
        assert event.content == "f azuki"
        assert event.channel_id == "C1"
        assert event.author_id == "7"
        assert event.author_is_bot is False
        assert event.message_id == "111"
        assert event.guild_id == "42"

    def test_from_payload_dm_without_guild(self):
        event = MessageEvent.from_payload({"channel_id": "D1", "author": {"id": "7"}})
        assert event.guild_id is None
        assert event.content == ""

    def test_bot_author(self):
        event = MessageEvent.from_payload({"channel_id": "C1", "author": {"id": "9", "bot": True}})
        assert event.author_is_bot is True
