"""Factory for creating exchange adapter instances."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Type

from ..core.reconciler import MarketContext
from ..errors import MissingCredentialError
from .base import BaseExchangeAdapter, ProxyConfig
from .binanceus import BinanceUSAdapter
from .bybit import BybitAdapter
from .coinone import CoinoneAdapter
from .korbit import KorbitAdapter
from .kucoin import KuCoinAdapter

EXCHANGE_ADAPTERS: dict[str, Type[BaseExchangeAdapter]] = {
    "bybit": BybitAdapter,
    "korbit": KorbitAdapter,
    "kucoin": KuCoinAdapter,
    "coinone": CoinoneAdapter,
    "binanceus": BinanceUSAdapter,
}


def create_exchange_adapter(
    exchange: str,
    api_key: str = "",
    api_secret: str = "",
    *,
    passphrase: str | None = None,
    sandbox: bool = False,
    proxy: dict[str, Any] | ProxyConfig | None = None,
    context: MarketContext | None = None,
    exchange_rate: Decimal | int | str = 1,
    **options: Any,
) -> BaseExchangeAdapter:
    """Create an exchange adapter instance.

    Args:
        exchange: Exchange name (bybit, korbit, kucoin, coinone, binanceus)
        api_key: API key; omit for a public-only adapter
        api_secret: API secret
        passphrase: API passphrase (required for KuCoin when credentials are given)
        sandbox: Use sandbox/testnet environment
        proxy: Proxy configuration (url, username, password)
        context: Shared market context
        exchange_rate: Multiplier for the exchange's rate quotes
        **options: Additional exchange-specific options

    Returns:
        Configured exchange adapter

    Raises:
        ValueError: If exchange is not supported
        MissingCredentialError: If required credentials are missing
    """
    exchange_lower = exchange.lower()

    if exchange_lower not in EXCHANGE_ADAPTERS:
        supported = ", ".join(EXCHANGE_ADAPTERS.keys())
        raise ValueError(f"Unsupported exchange: {exchange}. Supported exchanges: {supported}")

    adapter_class = EXCHANGE_ADAPTERS[exchange_lower]

    proxy_config = proxy if isinstance(proxy, ProxyConfig) else None
    if isinstance(proxy, dict):
        proxy_config = ProxyConfig(
            url=proxy.get("url"),
            username=proxy.get("username"),
            password=proxy.get("password"),
        )

    has_credentials = bool(api_key or api_secret)
    if has_credentials and adapter_class.profile.signing.value == "passphrase" and not passphrase:
        raise MissingCredentialError("passphrase", adapter_class.profile.signing.value)

    return adapter_class(
        api_key=api_key,
        api_secret=api_secret,
        passphrase=passphrase,
        sandbox=sandbox,
        proxy=proxy_config,
        context=context,
        exchange_rate=exchange_rate,
        **options,
    )
