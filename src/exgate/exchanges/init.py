"""Exchange adapter initialization from settings."""

from __future__ import annotations

import logging

from ..core.reconciler import MarketContext
from ..settings import Settings
from .base import BaseExchangeAdapter
from .factory import create_exchange_adapter

logger = logging.getLogger(__name__)


def create_exchange_adapters_from_settings(
    settings: Settings,
    context: MarketContext | None = None,
) -> dict[str, BaseExchangeAdapter]:
    """Create exchange adapters from settings configuration.

    Exchanges without credentials become public-only adapters.
    """
    adapters: dict[str, BaseExchangeAdapter] = {}

    proxy = None
    if settings.proxy.enabled and settings.proxy.url:
        proxy = {
            "url": settings.proxy.url,
            "username": settings.proxy.username,
            "password": settings.proxy.password.get_secret_value() if settings.proxy.password else None,
        }

    for exchange_name, exchange_config in settings.exchanges.items():
        if not exchange_config.enabled:
            logger.debug("Exchange %s is disabled, skipping", exchange_name)
            continue

        creds = exchange_config.credentials
        try:
            adapter = create_exchange_adapter(
                exchange=exchange_name,
                api_key=creds.api_key.get_secret_value() if creds else "",
                api_secret=creds.api_secret.get_secret_value() if creds else "",
                passphrase=creds.passphrase.get_secret_value() if creds and creds.passphrase else None,
                sandbox=exchange_config.sandbox,
                proxy=proxy,
                context=context,
                exchange_rate=exchange_config.exchange_rate,
                **exchange_config.options,
            )
        except Exception as e:
            logger.error("Failed to initialize exchange adapter for %s: %s", exchange_name, e)
            continue

        adapters[exchange_name] = adapter
        logger.info("Initialized exchange adapter for %s%s", exchange_name, " (public only)" if adapter.is_public else "")

    return adapters
