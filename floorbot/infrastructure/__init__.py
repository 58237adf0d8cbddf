"""Process-wide plumbing."""

from floorbot.infrastructure.logging_config import setup_logging

__all__ = ["setup_logging"]
