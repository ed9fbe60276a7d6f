"""Exchange-independent core: signing, symbol registry, reconciliation, statuses."""

from .models import (
    DEAD_SYMBOL,
    AccountInfo,
    BalanceInfo,
    Candle,
    DepositAddress,
    DepositInfo,
    MarketTrade,
    Orderbook,
    OrderbookItem,
    OrderInfo,
    QueueSymbol,
    SideType,
    Ticker,
    Tickers,
    TradeInfo,
    WithdrawalInfo,
    WNetwork,
    WState,
)
from .network_state import AssetStatus, ChainStatus, NetworkStateTracker
from .profile import ExchangeProfile
from .reconciler import MarketContext, RawTicker, ReconcileResult, TickerReconciler
from .registry import SymbolRegistry
from .signing import Credentials, SignedRequest, SigningStrategy, SigningVariant, create_signer
from .status import OrderStatus, OrderStatusNormalizer, StatusKind

__all__ = [
    "DEAD_SYMBOL",
    "AccountInfo",
    "AssetStatus",
    "BalanceInfo",
    "Candle",
    "ChainStatus",
    "Credentials",
    "DepositAddress",
    "DepositInfo",
    "ExchangeProfile",
    "MarketContext",
    "MarketTrade",
    "NetworkStateTracker",
    "Orderbook",
    "OrderbookItem",
    "OrderInfo",
    "OrderStatus",
    "OrderStatusNormalizer",
    "QueueSymbol",
    "RawTicker",
    "ReconcileResult",
    "SideType",
    "SignedRequest",
    "SigningStrategy",
    "SigningVariant",
    "StatusKind",
    "SymbolRegistry",
    "Ticker",
    "TickerReconciler",
    "Tickers",
    "TradeInfo",
    "WithdrawalInfo",
    "WNetwork",
    "WState",
    "create_signer",
]
