"""Symbol normalization utilities for exchange symbols."""

from __future__ import annotations

from typing import Iterable

DEFAULT_QUOTES = ("USDT", "USDC", "USD", "KRW", "BTC", "ETH")


def extract_base_symbol(symbol: str, quotes: Iterable[str] = DEFAULT_QUOTES) -> tuple[str, str]:
    """Extract base and quote currency from a symbol.

    Handles various formats:
    - BTC/USDT, BTC-USDT, btc_krw -> (BTC, USDT), (BTC, KRW)
    - BTCUSDT -> (BTC, USDT) when USDT is one of ``quotes``
    - BTC -> (BTC, '')

    Returns:
        Tuple of (base, quote) currencies, upper-cased
    """
    if not symbol:
        return "", ""

    symbol = symbol.strip().upper()

    for separator in ("/", "-", "_"):
        if separator in symbol:
            parts = symbol.split(separator)
            if len(parts) == 2:
                return parts[0].strip(), parts[1].strip()

    # longest first so USDT wins over USD
    for quote in sorted({q.upper() for q in quotes}, key=len, reverse=True):
        if symbol.endswith(quote):
            base = symbol[: -len(quote)]
            if base:
                return base, quote

    return symbol, ""


def format_symbol(base: str, quote: str, separator: str = "", lowercase: bool = False) -> str:
    """Join base and quote the way an exchange spells its pair ids."""
    native = f"{base.upper()}{separator}{quote.upper()}"
    return native.lower() if lowercase else native


def normalize_symbol(
    symbol: str,
    separator: str = "",
    *,
    lowercase: bool = False,
    quotes: Iterable[str] = DEFAULT_QUOTES,
) -> str:
    """Convert any ``BASE?QUOTE`` spelling into an exchange-native pair id.

    Symbols whose quote cannot be recognised are returned stripped but
    otherwise unchanged.
    """
    if not symbol:
        return symbol
    base, quote = extract_base_symbol(symbol, quotes)
    if not quote:
        return symbol.strip()
    return format_symbol(base, quote, separator, lowercase)
