"""Per-exchange table of tradable pairs."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Iterable, Iterator

from .jsonsafe import to_decimal
from .models import QueueSymbol, Tickers

logger = logging.getLogger(__name__)


class SymbolRegistry:
    """Tradable pairs discovered for one exchange.

    Symbols are unique per exchange, compared case-insensitively; the first
    registration wins. ``clear()`` and ``fresh()`` start a new generation,
    which is how dead tickers come back after re-verification.
    """

    def __init__(self, exchange: str, quote_currencies: Iterable[str]):
        self.exchange = exchange
        self.quote_currencies = tuple(q.upper() for q in quote_currencies)
        self.generation = 0
        self._symbols: dict[str, QueueSymbol] = {}

    def __len__(self) -> int:
        return len(self._symbols)

    def __iter__(self) -> Iterator[QueueSymbol]:
        return iter(self._symbols.values())

    def __contains__(self, symbol: object) -> bool:
        return isinstance(symbol, str) and symbol.casefold() in self._symbols

    def supports_quote(self, quote: str) -> bool:
        return quote.upper() in self.quote_currencies

    def get(self, symbol: str) -> QueueSymbol | None:
        return self._symbols.get(symbol.casefold())

    def register(
        self,
        symbol: str,
        base: str,
        quote: str,
        *,
        separator: str | None = None,
        base_index: int = 0,
        comp_name: str = "",
        disp_name: str = "",
        **bounds: Any,
    ) -> QueueSymbol | None:
        """Register one vendor pair.

        Returns the stored symbol, or ``None`` when the quote is unsupported,
        the base is empty or the symbol is already known.

        When ``separator`` is given and the vendor-reported base disagrees
        with the part of ``symbol`` at ``base_index``, the parsed part wins.
        """
        quote = (quote or "").upper()
        if not symbol or not self.supports_quote(quote):
            return None

        base = (base or "").upper()
        if separator:
            parts = symbol.split(separator)
            if len(parts) > base_index:
                parsed = parts[base_index].upper()
                if parsed and parsed != base:
                    logger.debug("%s: base override for %s: %s -> %s", self.exchange, symbol, base, parsed)
                    base = parsed
        if not base:
            return None

        values = {key: to_decimal(value) for key, value in bounds.items()}
        return self.add(
            QueueSymbol(
                symbol=symbol,
                base_name=base,
                quote_name=quote,
                comp_name=comp_name.upper(),
                disp_name=disp_name,
                **values,
            )
        )

    def add(self, queue_symbol: QueueSymbol) -> QueueSymbol | None:
        key = queue_symbol.symbol_key()
        if key in self._symbols:
            return None
        self._symbols[key] = queue_symbol
        return queue_symbol

    def clear(self) -> None:
        self._symbols.clear()
        self.generation += 1

    def fresh(self) -> "SymbolRegistry":
        """Empty registry for the next generation; ``self`` is left untouched."""
        registry = SymbolRegistry(self.exchange, self.quote_currencies)
        registry.generation = self.generation + 1
        return registry

    def build_tickers(self, exchg_rate: Decimal | int = 1) -> Tickers:
        tickers = Tickers.from_symbols(self.exchange, self, exchg_rate=Decimal(exchg_rate))
        tickers.generation = self.generation
        return tickers
