"""Exchange adapters and connectivity layer."""

from .base import BaseExchangeAdapter, ProxyConfig, guarded
from .factory import EXCHANGE_ADAPTERS, create_exchange_adapter
from .normalization import extract_base_symbol, format_symbol, normalize_symbol
from .protocol import ExchangeAdapter

__all__ = [
    "ExchangeAdapter",
    "normalize_symbol",
    "extract_base_symbol",
    "format_symbol",
    "create_exchange_adapter",
    "EXCHANGE_ADAPTERS",
    "BaseExchangeAdapter",
    "ProxyConfig",
    "guarded",
]
