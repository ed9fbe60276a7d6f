from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .core.models import Tickers
from .core.reconciler import MarketContext
from .exchanges.base import BaseExchangeAdapter

if TYPE_CHECKING:
    from .settings import Settings


def build_market_context(settings: "Settings") -> MarketContext:
    market = settings.market
    return MarketContext(
        fiat=market.fiat,
        volume_24h_base=market.volume_24h_base,
        volume_1m_base=market.volume_1m_base,
        btc_fiat_price=market.btc_fiat_price,
    )


@dataclass(slots=True)
class AppContainer:
    settings: "Settings"
    context: MarketContext
    shutdown: asyncio.Event = field(default_factory=asyncio.Event)
    adapters: dict[str, BaseExchangeAdapter] = field(default_factory=dict)
    tickers: dict[str, Tickers] = field(default_factory=dict)


def build_container(
    settings: "Settings",
    adapters: dict[str, BaseExchangeAdapter] | None = None,
    context: MarketContext | None = None,
) -> AppContainer:
    """Build application container with exchange adapters.

    Adapters built elsewhere should share ``context`` so BTC price updates
    reach every exchange.
    """
    return AppContainer(
        settings=settings,
        context=context or build_market_context(settings),
        adapters=adapters or {},
    )


def build_gateway(settings: "Settings") -> AppContainer:
    """Context, configured adapters and container in one step."""
    from .exchanges.init import create_exchange_adapters_from_settings

    context = build_market_context(settings)
    adapters = create_exchange_adapters_from_settings(settings, context)
    return build_container(settings, adapters, context)
