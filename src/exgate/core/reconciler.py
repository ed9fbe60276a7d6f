"""Market-data reconciliation.

Merges one raw snapshot per polling cycle into an exchange's ``Tickers``:
prices are converted into the gateway fiat, the 24h volume is scaled and a
one-minute volume estimate is derived from successive 24h polls.

The one-minute estimate is a delta between polls at least a minute apart,
not a true sliding window. Polled faster than once a minute it holds its
last value until the minute elapses.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import ROUND_FLOOR, Decimal
from typing import Any

from ..diagnostics import DiagnosticSink, LoggingDiagnosticSink
from .clock import ONE_MINUTE_MS, Clock, now_ms
from .jsonsafe import to_decimal
from .models import Ticker, Tickers
from .profile import ExchangeProfile

logger = logging.getLogger(__name__)

ONE = Decimal(1)
ZERO = Decimal(0)

# offset added to the exchange code base for "symbol missing from snapshot"
NOT_FOUND_OFFSET = 5


def floor(value: Decimal) -> Decimal:
    return value.to_integral_value(rounding=ROUND_FLOOR)


@dataclass(slots=True)
class MarketContext:
    """Gateway-wide market configuration shared by every exchange worker."""

    fiat: str = "KRW"
    volume_24h_base: Decimal = Decimal(1_000_000)
    volume_1m_base: Decimal = Decimal(10_000)
    btc_fiat_price: Decimal = ZERO
    sink: DiagnosticSink = field(default_factory=LoggingDiagnosticSink)
    clock: Clock = now_ms

    def __post_init__(self) -> None:
        self.fiat = self.fiat.upper()
        self.volume_24h_base = Decimal(self.volume_24h_base)
        self.volume_1m_base = Decimal(self.volume_1m_base)
        self.btc_fiat_price = Decimal(self.btc_fiat_price)
        if self.volume_24h_base <= 0 or self.volume_1m_base <= 0:
            raise ValueError("volume bases must be positive")

    def report(self, exchange: str, event: str | BaseException, code: int) -> None:
        self.sink(exchange, event, code)


@dataclass(slots=True)
class RawTicker:
    """One exchange-native snapshot entry; ``None`` means not reported.

    ``volume_24h`` is the 24h turnover in the pair's quote currency.
    """

    last: Decimal | None = None
    ask: Decimal | None = None
    bid: Decimal | None = None
    volume_24h: Decimal | None = None
    bid_qty: Decimal | None = None
    ask_qty: Decimal | None = None

    @classmethod
    def parse(
        cls,
        *,
        last: Any = None,
        ask: Any = None,
        bid: Any = None,
        volume_24h: Any = None,
        bid_qty: Any = None,
        ask_qty: Any = None,
    ) -> "RawTicker":
        """Build from raw JSON scalars, dropping anything unparseable."""
        return cls(
            last=to_decimal(last, None),
            ask=to_decimal(ask, None),
            bid=to_decimal(bid, None),
            volume_24h=to_decimal(volume_24h, None),
            bid_qty=to_decimal(bid_qty, None),
            ask_qty=to_decimal(ask_qty, None),
        )


@dataclass(slots=True)
class ReconcileResult:
    updated: int = 0
    invalidated: list[str] = field(default_factory=list)
    skipped: int = 0


class TickerReconciler:
    def __init__(self, context: MarketContext, profile: ExchangeProfile):
        self.context = context
        self.profile = profile
        self._warned_quotes: set[str] = set()

    def reconcile(self, tickers: Tickers, snapshot: Mapping[str, RawTicker], now: int | None = None) -> ReconcileResult:
        """Apply one snapshot to ``tickers`` in place.

        Dead tickers are skipped without looking them up. A live ticker
        missing from the snapshot is reported and marked dead; it stays in
        the list so positional references remain valid.
        """
        if now is None:
            now = self.context.clock()
        result = ReconcileResult()

        self._update_btc_price(tickers, snapshot)

        for ticker in tickers.items:
            if ticker.is_dead:
                result.skipped += 1
                continue

            raw = snapshot.get(ticker.symbol)
            if raw is None:
                self.context.report(
                    tickers.exchange,
                    f"not found: {ticker.symbol}",
                    self.profile.code(NOT_FOUND_OFFSET),
                )
                result.invalidated.append(ticker.symbol)
                ticker.mark_dead()
                continue

            self.apply(tickers, ticker, raw, now)
            result.updated += 1

        tickers.timestamp = now
        return result

    def apply(self, tickers: Tickers, ticker: Ticker, raw: RawTicker, now: int) -> None:
        factor = self.conversion_factor(tickers, ticker.quote_name)

        if raw.last is not None:
            ticker.last_price = raw.last * factor
        if raw.ask is not None:
            ticker.ask_price = raw.ask * factor
        if raw.bid is not None:
            ticker.bid_price = raw.bid * factor
        if raw.ask_qty is not None:
            ticker.ask_qty = raw.ask_qty
        if raw.bid_qty is not None:
            ticker.bid_qty = raw.bid_qty
        if raw.volume_24h is not None:
            self.advance_volume_window(ticker, raw.volume_24h * factor, now)

    def conversion_factor(self, tickers: Tickers, quote: str) -> Decimal:
        """Multiplier taking a price in ``quote`` into the gateway fiat."""
        quote = quote.upper()
        if quote == self.context.fiat:
            return ONE
        if quote in self.profile.rate_quotes:
            return tickers.exchg_rate
        if quote == "BTC":
            return self.context.btc_fiat_price

        if quote not in self._warned_quotes:
            self._warned_quotes.add(quote)
            logger.warning("%s: no conversion for quote %s, prices left unconverted", self.profile.name, quote)
        return ONE

    def advance_volume_window(self, ticker: Ticker, volume: Decimal, now: int) -> bool:
        """Scale the 24h volume and, once a minute has passed, the 1m delta.

        Returns True when the window advanced.
        """
        ticker.volume_24h = floor(volume / self.context.volume_24h_base)

        if now > ticker.timestamp + ONE_MINUTE_MS:
            delta = volume - ticker.previous_24h if ticker.previous_24h > 0 else ZERO
            ticker.volume_1m = floor(delta / self.context.volume_1m_base)
            ticker.timestamp = now
            ticker.previous_24h = volume
            return True
        return False

    def _update_btc_price(self, tickers: Tickers, snapshot: Mapping[str, RawTicker]) -> None:
        # A BTC pair quoted in the gateway fiat sets the price used for BTC-quoted pairs.
        for _, ticker in tickers.live():
            if ticker.base_name != "BTC" or ticker.quote_name != self.context.fiat:
                continue
            raw = snapshot.get(ticker.symbol)
            if raw is not None and raw.last:
                self.context.btc_fiat_price = raw.last
            return
