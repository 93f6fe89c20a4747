"""
Logging setup shared by the API and the tariff client.
"""

import logging
from typing import Optional

from backend.services.settings.tariff_settings import TariffSettings

_LOGGING_CONFIGURED = False


def configure_logging(settings: Optional[TariffSettings] = None) -> None:
    """Configure process-wide logging once, using the configured log level."""

    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    settings = settings or TariffSettings.from_env()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    _LOGGING_CONFIGURED = True
