"""Per-exchange configuration record shared by the adapters and the reconciler."""

from __future__ import annotations

from dataclasses import dataclass

from .signing import SigningVariant


@dataclass(frozen=True, slots=True)
class ExchangeProfile:
    """Everything that distinguishes one exchange binding from another.

    ``quote_currencies`` bounds symbol discovery; ``rate_quotes`` are the
    quotes whose prices are multiplied by the configured exchange rate.
    """

    name: str
    base_url: str
    signing: SigningVariant
    quote_currencies: tuple[str, ...]
    rate_quotes: tuple[str, ...] = ()
    code_base: int = 0
    sandbox_url: str | None = None
    separator: str = ""
    lowercase_symbols: bool = False

    def url(self, sandbox: bool = False) -> str:
        if sandbox and self.sandbox_url:
            return self.sandbox_url
        return self.base_url

    def code(self, offset: int) -> int:
        return self.code_base + offset
