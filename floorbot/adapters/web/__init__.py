"""Liveness HTTP surface."""

from floorbot.adapters.web.health import LivenessServer, create_health_app, health_router

__all__ = ["LivenessServer", "create_health_app", "health_router"]
