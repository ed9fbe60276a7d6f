"""Exception hierarchy shared by the core and the exchange adapters."""

from __future__ import annotations

from typing import Any


class GatewayError(Exception):
    """Base class for all gateway errors."""


class ConfigurationError(GatewayError, ValueError):
    """Raised when the gateway or an adapter is misconfigured."""


class MissingCredentialError(ConfigurationError):
    """Raised when a signing strategy lacks a credential it requires."""

    def __init__(self, field: str, variant: str | None = None):
        self.field = field
        self.variant = variant
        where = f" for {variant} signing" if variant else ""
        super().__init__(f"missing credential '{field}'{where}")


class ExchangeAPIError(GatewayError):
    """Raised when an exchange answers with an HTTP or vendor-level error."""

    def __init__(self, exchange: str, message: str, *, status: int | None = None, payload: Any = None):
        self.exchange = exchange
        self.status = status
        self.payload = payload
        prefix = f"{exchange}: " if exchange else ""
        suffix = f" (HTTP {status})" if status is not None else ""
        super().__init__(f"{prefix}{message}{suffix}")
