"""
Ritual API - Main entry point.

Usage:
    python -m ritual.main

Configuration is entirely via environment variables.
See config.py and api/config.py for all available settings.

Invariants:
    - Configuration is validated before the server binds
    - Logging is configured once, before any component logs
"""

from __future__ import annotations

import logging

import json_log_formatter
import uvicorn

from .api.app import create_app
from .api.config import Settings
from .config import ServerConfig

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.WARNING)


def main() -> None:
    """Main entry point."""
    config = ServerConfig.from_env()
    setup_logging(config)
    settings = Settings()

    logger.info(f"Starting Ritual API on {settings.host}:{settings.port}")
    app = create_app(config=config, settings=settings)
    # log_config=None keeps the handlers installed by setup_logging
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
