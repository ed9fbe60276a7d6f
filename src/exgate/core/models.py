"""Canonical cross-exchange data model."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Iterable, Iterator

from .status import OrderStatus

DEAD_SYMBOL = "X"

ZERO = Decimal(0)


class SideType(str, Enum):
    BID = "bid"
    ASK = "ask"

    @classmethod
    def parse(cls, value: str | SideType) -> SideType:
        if isinstance(value, SideType):
            return value
        text = str(value).strip().lower()
        if text in {"buy", "bid", "b"}:
            return cls.BID
        if text in {"sell", "ask", "s", "offer"}:
            return cls.ASK
        raise ValueError(f"Unknown order side: {value!r}")

    @property
    def is_buy(self) -> bool:
        return self is SideType.BID


@dataclass(frozen=True, slots=True)
class QueueSymbol:
    """One tradable pair on one exchange, as discovered at start-up."""

    symbol: str
    base_name: str
    quote_name: str
    comp_name: str = ""
    disp_name: str = ""
    min_price: Decimal = ZERO
    max_price: Decimal = ZERO
    tick_size: Decimal = ZERO
    min_qty: Decimal = ZERO
    max_qty: Decimal = ZERO
    qty_step: Decimal = ZERO
    maker_fee: Decimal = ZERO
    taker_fee: Decimal = ZERO

    def __post_init__(self) -> None:
        if not self.comp_name:
            object.__setattr__(self, "comp_name", self.base_name)
        if not self.disp_name:
            object.__setattr__(self, "disp_name", self.comp_name)

    def symbol_key(self) -> str:
        return self.symbol.casefold()


@dataclass(slots=True)
class OrderbookItem:
    price: Decimal = ZERO
    quantity: Decimal = ZERO
    total: int = 0


@dataclass(slots=True)
class Orderbook:
    timestamp: int = 0
    asks: list[OrderbookItem] = field(default_factory=list)
    bids: list[OrderbookItem] = field(default_factory=list)

    @property
    def best_ask(self) -> OrderbookItem | None:
        return min(self.asks, key=lambda item: item.price, default=None)

    @property
    def best_bid(self) -> OrderbookItem | None:
        return max(self.bids, key=lambda item: item.price, default=None)


@dataclass(slots=True)
class Ticker:
    """Live market snapshot for one pair, mutated by a single polling task."""

    symbol: str
    base_name: str = ""
    quote_name: str = ""
    comp_name: str = ""
    disp_name: str = ""
    bid_price: Decimal = ZERO
    bid_qty: Decimal = ZERO
    ask_price: Decimal = ZERO
    ask_qty: Decimal = ZERO
    last_price: Decimal = ZERO
    previous_24h: Decimal = ZERO
    volume_24h: Decimal = ZERO
    volume_1m: Decimal = ZERO
    timestamp: int = 0
    active: bool = True
    deposit: bool = True
    withdraw: bool = True
    network: bool = True
    orderbook: Orderbook | None = None

    @classmethod
    def from_symbol(cls, symbol: QueueSymbol) -> "Ticker":
        return cls(
            symbol=symbol.symbol,
            base_name=symbol.base_name,
            quote_name=symbol.quote_name,
            comp_name=symbol.comp_name,
            disp_name=symbol.disp_name,
        )

    @property
    def is_dead(self) -> bool:
        return self.symbol == DEAD_SYMBOL

    def mark_dead(self) -> None:
        self.symbol = DEAD_SYMBOL


@dataclass(slots=True)
class WNetwork:
    name: str
    network: str = ""
    chain: str = ""
    deposit: bool = True
    withdraw: bool = True
    min_withdrawal: Decimal = ZERO
    withdraw_fee: Decimal = ZERO
    min_confirm: int = 0


@dataclass(slots=True)
class WState:
    base_name: str
    active: bool = True
    deposit: bool = True
    withdraw: bool = True
    travel_rule: bool = False
    networks: list[WNetwork] = field(default_factory=list)

    def network_named(self, name: str) -> WNetwork | None:
        for network in self.networks:
            if network.name == name:
                return network
        return None


@dataclass(slots=True)
class Tickers:
    """Per-exchange ticker arena.

    ``items`` is never shrunk by reconciliation: a ticker that disappears from
    the exchange is flagged dead in place so positional references held by
    readers stay valid.
    """

    exchange: str
    items: list[Ticker] = field(default_factory=list)
    states: list[WState] = field(default_factory=list)
    exchg_rate: Decimal = Decimal(1)
    connected: bool = False
    reset_cache: bool = False
    next_state_check: int = 0
    timestamp: int = 0
    generation: int = 0

    @classmethod
    def from_symbols(cls, exchange: str, symbols: Iterable[QueueSymbol], *, exchg_rate: Decimal = Decimal(1)) -> "Tickers":
        return cls(
            exchange=exchange,
            items=[Ticker.from_symbol(s) for s in symbols],
            exchg_rate=exchg_rate,
        )

    def live(self) -> Iterator[tuple[int, Ticker]]:
        for index, ticker in enumerate(self.items):
            if not ticker.is_dead:
                yield index, ticker

    def live_symbols(self) -> list[str]:
        return [t.symbol for _, t in self.live()]

    def find(self, symbol: str) -> Ticker | None:
        key = symbol.casefold()
        for _, ticker in self.live():
            if ticker.symbol.casefold() == key:
                return ticker
        return None

    def state_for(self, base_name: str) -> WState | None:
        for state in self.states:
            if state.base_name == base_name:
                return state
        return None


@dataclass(slots=True)
class BalanceInfo:
    asset: str
    free: Decimal = ZERO
    used: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.free + self.used


@dataclass(slots=True)
class OrderInfo:
    id: str
    symbol: str
    side: SideType
    type: str = "limit"
    status: OrderStatus = OrderStatus.UNKNOWN
    raw_status: str | None = None
    amount: Decimal = ZERO
    price: Decimal | None = None
    filled: Decimal = ZERO
    remaining: Decimal = ZERO
    timestamp: int = 0
    fee: Decimal = ZERO
    fee_asset: str = ""
    client_order_id: str | None = None


@dataclass(slots=True)
class TradeInfo:
    id: str
    order_id: str
    symbol: str
    side: SideType
    amount: Decimal = ZERO
    price: Decimal = ZERO
    fee: Decimal = ZERO
    fee_asset: str = ""
    timestamp: int = 0


@dataclass(slots=True)
class DepositInfo:
    id: str
    currency: str
    amount: Decimal = ZERO
    address: str = ""
    tag: str | None = None
    network: str = ""
    status: OrderStatus = OrderStatus.UNKNOWN
    raw_status: str | None = None
    timestamp: int = 0
    txid: str = ""


@dataclass(slots=True)
class WithdrawalInfo:
    id: str
    currency: str
    amount: Decimal = ZERO
    address: str = ""
    tag: str | None = None
    network: str = ""
    status: OrderStatus = OrderStatus.UNKNOWN
    raw_status: str | None = None
    timestamp: int = 0
    fee: Decimal = ZERO


@dataclass(slots=True)
class Candle:
    """One OHLCV bar; ``timestamp`` is the bar's open time in epoch ms."""

    timestamp: int
    open: Decimal = ZERO
    high: Decimal = ZERO
    low: Decimal = ZERO
    close: Decimal = ZERO
    volume: Decimal = ZERO


@dataclass(slots=True)
class MarketTrade:
    """A public trade print, as opposed to one of our own fills (``TradeInfo``)."""

    id: str
    side: SideType
    price: Decimal = ZERO
    amount: Decimal = ZERO
    timestamp: int = 0


@dataclass(slots=True)
class DepositAddress:
    currency: str
    address: str = ""
    tag: str | None = None
    network: str = ""


@dataclass(slots=True)
class AccountInfo:
    id: str = ""
    type: str = "spot"
    can_trade: bool = True
    can_deposit: bool = True
    can_withdraw: bool = True
    balances: dict[str, BalanceInfo] = field(default_factory=dict)
