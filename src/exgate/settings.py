from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator

SECRET_FIELDS = frozenset({"api_key", "api_secret", "passphrase", "password"})


def _mask(data: Any) -> Any:
    if isinstance(data, dict):
        return {
            key: "***" if key in SECRET_FIELDS and value is not None else _mask(value)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [_mask(item) for item in data]
    return data


class ProxySettings(BaseModel):
    enabled: bool = False
    url: str | None = None
    username: str | None = None
    password: SecretStr | None = None

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def _url_when_enabled(self) -> "ProxySettings":
        if self.enabled and not self.url:
            raise ValueError("proxy.url is required when the proxy is enabled")
        return self


class MarketSettings(BaseModel):
    """Gateway-wide market parameters shared by every exchange."""

    fiat: str = "KRW"
    # 24h / 1m volumes are reported in units of these amounts of fiat
    volume_24h_base: Decimal = Field(default=Decimal(1_000_000), gt=0)
    volume_1m_base: Decimal = Field(default=Decimal(10_000), gt=0)
    btc_fiat_price: Decimal = Field(default=Decimal(0), ge=0)
    poll_interval: float = Field(default=1.0, gt=0, description="seconds between market polls")
    state_check_interval: float = Field(default=600.0, gt=0, description="seconds between deposit/withdraw checks")

    model_config = {"extra": "forbid"}

    @field_validator("fiat")
    @classmethod
    def _upper_fiat(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("fiat must not be empty")
        return value

    @model_validator(mode="after")
    def _intervals(self) -> "MarketSettings":
        if self.state_check_interval < self.poll_interval:
            raise ValueError("state_check_interval must not be shorter than poll_interval")
        return self


class ExchangeCredentials(BaseModel):
    api_key: SecretStr
    api_secret: SecretStr
    passphrase: SecretStr | None = None

    model_config = {"extra": "forbid"}


class ExchangeSettings(BaseModel):
    enabled: bool = True
    sandbox: bool = False
    credentials: ExchangeCredentials | None = None
    # multiplier taking the exchange's USD-like quotes into the gateway fiat
    exchange_rate: Decimal = Field(default=Decimal(1), gt=0)
    options: dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "forbid"}


class Settings(BaseModel):
    env: str = "dev"
    proxy: ProxySettings = Field(default_factory=ProxySettings)
    market: MarketSettings = Field(default_factory=MarketSettings)
    exchanges: dict[str, ExchangeSettings] = Field(default_factory=dict)

    model_config = {"extra": "forbid"}

    @field_validator("exchanges", mode="before")
    @classmethod
    def _lower_names(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        names = [str(name).lower() for name in value]
        if len(set(names)) != len(names):
            raise ValueError("exchange names must be unique ignoring case")
        return {str(name).lower(): (item if item is not None else {}) for name, item in value.items()}

    def enabled_exchanges(self) -> list[str]:
        return [name for name, exchange in self.exchanges.items() if exchange.enabled]

    def redacted(self) -> dict[str, Any]:
        """Settings as plain data with every credential masked."""
        return _mask(self.model_dump(mode="json"))
