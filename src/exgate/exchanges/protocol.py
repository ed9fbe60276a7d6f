"""Protocol definition for exchange adapters."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Protocol

from ..core.models import (
    AccountInfo,
    BalanceInfo,
    Candle,
    DepositAddress,
    DepositInfo,
    MarketTrade,
    Orderbook,
    OrderInfo,
    SideType,
    Tickers,
    TradeInfo,
    WithdrawalInfo,
)


class ExchangeAdapter(Protocol):
    """Capability contract every exchange binding honours.

    Market-data calls mutate the caller's ``Tickers`` in place and report
    success as a bool. Failed calls never raise (except for configuration
    errors); they report to the diagnostic sink and return a safe default.
    """

    name: str
    alive: bool

    def __init__(self, api_key: str = "", api_secret: str = "", **kwargs: Any):
        """Initialize exchange adapter.

        Args:
            api_key: API key; empty for a public-only adapter
            api_secret: API secret
            **kwargs: passphrase, sandbox, proxy, context, exchange_rate
        """
        ...

    def build_tickers(self) -> Tickers:
        """Build a fresh ticker arena from the current symbol registry."""
        ...

    async def verify_symbols(self) -> bool:
        """Discover tradable pairs; sets ``alive`` to the outcome."""
        ...

    async def verify_states(self, tickers: Tickers) -> bool:
        """Merge deposit/withdraw/chain availability into ``tickers``."""
        ...

    async def get_markets(self, tickers: Tickers) -> bool:
        """Fetch one market snapshot and reconcile it into ``tickers``."""
        ...

    async def get_price(self, symbol: str) -> Decimal:
        """Last traded price in the pair's quote currency, 0 on failure."""
        ...

    async def get_orderbook(self, symbol: str, limit: int = 5) -> Orderbook:
        ...

    async def get_candles(self, symbol: str, timeframe: str = "1m", since: int | None = None, limit: int = 100) -> list[Candle]:
        """OHLCV bars, oldest first.

        Args:
            symbol: Exchange-native or ``BASE/QUOTE`` symbol
            timeframe: Canonical interval (``1m``, ``5m``, ``1h``, ``1d`` ...)
            since: Epoch ms of the first bar; the latest bars when omitted
            limit: Maximum number of bars
        """
        ...

    async def get_recent_trades(self, symbol: str, limit: int = 50) -> list[MarketTrade]:
        """Latest public trade prints for ``symbol``."""
        ...

    async def get_balance(self) -> dict[str, BalanceInfo]:
        ...

    async def get_account(self) -> AccountInfo | None:
        """Account id, permissions and balances."""
        ...

    async def place_order(
        self,
        symbol: str,
        side: SideType | str,
        order_type: str,
        amount: Decimal,
        price: Decimal | None = None,
        client_order_id: str | None = None,
    ) -> OrderInfo | None:
        """Place an order.

        Args:
            symbol: Exchange-native or ``BASE/QUOTE`` symbol
            side: ``bid``/``ask`` or ``buy``/``sell``
            order_type: ``limit`` or ``market``
            amount: Quantity in the base asset
            price: Limit price; ignored for market orders
            client_order_id: Optional caller-chosen id

        Returns:
            The accepted order, or None when the call failed
        """
        ...

    async def cancel_order(self, order_id: str, symbol: str | None = None, client_order_id: str | None = None) -> bool:
        ...

    async def get_order(self, order_id: str, symbol: str | None = None, client_order_id: str | None = None) -> OrderInfo | None:
        ...

    async def get_open_orders(self, symbol: str | None = None) -> list[OrderInfo]:
        ...

    async def get_order_history(self, symbol: str | None = None, limit: int = 100) -> list[OrderInfo]:
        """Orders that are no longer working."""
        ...

    async def get_trade_history(self, symbol: str | None = None, limit: int = 100) -> list[TradeInfo]:
        ...

    async def get_deposit_history(self, currency: str | None = None, limit: int = 100) -> list[DepositInfo]:
        ...

    async def get_withdrawal_history(self, currency: str | None = None, limit: int = 100) -> list[WithdrawalInfo]:
        ...

    async def get_deposit_address(self, currency: str, network: str | None = None) -> DepositAddress | None:
        """Deposit address for ``currency``, on ``network`` when given."""
        ...

    async def withdraw(
        self,
        currency: str,
        amount: Decimal,
        address: str,
        tag: str | None = None,
        network: str | None = None,
    ) -> WithdrawalInfo | None:
        """Request a withdrawal.

        Returns:
            The pending withdrawal, or None when the request failed
        """
        ...

    async def close(self) -> None:
        """Close the HTTP session."""
        ...
