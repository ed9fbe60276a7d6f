"""exgate: multi-exchange market-data and trading gateway."""

from .core import MarketContext, OrderStatus, Tickers
from .exchanges import ExchangeAdapter, create_exchange_adapter, normalize_symbol
from .settings import Settings

__all__ = [
    "Settings",
    "MarketContext",
    "OrderStatus",
    "Tickers",
    "ExchangeAdapter",
    "create_exchange_adapter",
    "normalize_symbol",
]
