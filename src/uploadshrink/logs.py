"""Logging setup for hosts embedding the filter."""

from __future__ import annotations

import logging

from uploadshrink.config import Settings, get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(settings: Settings | None = None) -> None:
    """Configure the root logger at the configured level."""
    if settings is None:
        settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
