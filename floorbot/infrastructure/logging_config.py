import logging
import sys


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure application-wide logging on stdout."""
    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Avoid duplicate lines when called twice
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    # aiohttp logs every websocket frame at DEBUG
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    return root_logger
