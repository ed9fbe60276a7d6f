"""Base class for exchange adapters."""

from __future__ import annotations

import functools
import logging
from decimal import Decimal
from typing import Any, Awaitable, Callable, ClassVar, TypeVar

import aiohttp

from ..core.jsonsafe import get_path, to_decimal, to_int
from ..core.models import (
    AccountInfo,
    BalanceInfo,
    Candle,
    DepositAddress,
    DepositInfo,
    MarketTrade,
    Orderbook,
    OrderbookItem,
    OrderInfo,
    SideType,
    Tickers,
    TradeInfo,
    WithdrawalInfo,
)
from ..core.network_state import AssetStatus, NetworkStateTracker
from ..core.profile import ExchangeProfile
from ..core.reconciler import MarketContext, RawTicker, TickerReconciler
from ..core.registry import SymbolRegistry
from ..core.signing import Credentials, SigningStrategy, canonical_json, create_signer, encode_query
from ..core.status import OrderStatusNormalizer, default_normalizer
from ..errors import ConfigurationError, ExchangeAPIError, MissingCredentialError
from .normalization import normalize_symbol

logger = logging.getLogger(__name__)

USER_AGENT = "exgate/1.0"

# Diagnostic offsets, added to the exchange's code base.
SYMBOLS = 1
STATES_INFO = 2
STATES = 3
PRICE = 4
MARKETS = 6
CANDLES = 8
RECENT_TRADES = 10
ORDERBOOK = 20
BALANCE = 30
ACCOUNT = 32
PLACE_ORDER = 40
CANCEL_ORDER = 42
GET_ORDER = 44
OPEN_ORDERS = 46
ORDER_HISTORY = 48
TRADE_HISTORY = 50
DEPOSIT_ADDRESS = 60
WITHDRAW = 62
DEPOSITS = 64
WITHDRAWALS = 66

# Canonical candle intervals, shortest first.
TIMEFRAMES = ("1m", "3m", "5m", "15m", "30m", "1h", "2h", "4h", "6h", "12h", "1d", "1w")

T = TypeVar("T")


class ProxyConfig:
    """HTTP proxy configuration."""

    def __init__(self, url: str | None = None, username: str | None = None, password: str | None = None):
        self.url = url
        self.username = username
        self.password = password

    def __repr__(self) -> str:
        return f"ProxyConfig(url={self.url!r}, username={self.username!r})"

    @property
    def proxy_url(self) -> str | None:
        if not self.url:
            return None
        if self.username and self.password:
            scheme, _, rest = self.url.partition("://") if "://" in self.url else ("http", "", self.url)
            return f"{scheme}://{self.username}:{self.password}@{rest}"
        return self.url


def guarded(offset: int, default: Any = None) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Adapter error boundary.

    Any failure inside the wrapped coroutine is reported to the diagnostic
    sink under ``code_base + offset`` and the call returns ``default`` (called
    first when it is callable, so every failure gets a fresh container).
    Configuration errors are not the adapter's to absorb and propagate.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(self: "BaseExchangeAdapter", *args: Any, **kwargs: Any) -> T:
            try:
                return await func(self, *args, **kwargs)
            except (ConfigurationError, NotImplementedError):
                raise
            except Exception as exc:
                self.report(exc, offset)
                return default() if callable(default) else default

        return wrapper

    return decorator


class BaseExchangeAdapter:
    """Shared composition for all exchange adapters.

    Subclasses declare a ``profile`` and implement the three discovery hooks
    (``_load_symbols``, ``_fetch_states``, ``_fetch_snapshot``) plus whichever
    trading calls the exchange supports. Anything left unimplemented raises
    ``NotImplementedError``.
    """

    profile: ClassVar[ExchangeProfile]
    # canonical timeframe -> vendor interval id
    timeframes: ClassVar[dict[str, str]] = {}

    def __init__(
        self,
        api_key: str = "",
        api_secret: str = "",
        *,
        passphrase: str | None = None,
        sandbox: bool = False,
        proxy: ProxyConfig | None = None,
        context: MarketContext | None = None,
        exchange_rate: Decimal | int | str = 1,
        normalizer: OrderStatusNormalizer | None = None,
        **options: Any,
    ):
        """Initialize exchange adapter.

        Args:
            api_key: API key; leave empty for a public-only adapter
            api_secret: API secret
            passphrase: API passphrase (KuCoin)
            sandbox: Use sandbox/testnet environment where one exists
            proxy: Proxy configuration
            context: Gateway-wide market configuration and diagnostic sink
            exchange_rate: Multiplier taking this exchange's rate quotes into the gateway fiat
            normalizer: Status vocabulary tables
            **options: Extra signer options (e.g. ``recv_window_ms``)

        Raises:
            MissingCredentialError: only one of key/secret given, or a
                required passphrase is missing
        """
        self.name = self.profile.name
        self.credentials = Credentials(api_key or "", api_secret or "", passphrase)
        self.sandbox = sandbox
        self.proxy = proxy or ProxyConfig()
        self.context = context or MarketContext()
        self.exchange_rate = to_decimal(exchange_rate, Decimal(1))
        self.normalizer = normalizer or default_normalizer
        self.options = options

        self.alive = False
        self.session: aiohttp.ClientSession | None = None
        self.registry = SymbolRegistry(self.name, self.profile.quote_currencies)
        self.reconciler = TickerReconciler(self.context, self.profile)

        self._signer: SigningStrategy | None = None
        if not self.credentials.is_empty:
            self._signer = create_signer(self.profile.signing, self.credentials, **options)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, sandbox={self.sandbox}, public={self.is_public})"

    @property
    def is_public(self) -> bool:
        return self._signer is None

    @property
    def signer(self) -> SigningStrategy:
        if self._signer is None:
            raise MissingCredentialError("api_key", self.profile.signing.value)
        return self._signer

    def get_base_url(self) -> str:
        return self.profile.url(self.sandbox)

    def report(self, event: str | BaseException, offset: int) -> None:
        self.context.report(self.name, event, self.profile.code(offset))

    def native_symbol(self, symbol: str) -> str:
        """Map ``BTC/USDT``-style input onto this exchange's pair id."""
        known = self.registry.get(symbol)
        if known is not None:
            return known.symbol
        return normalize_symbol(
            symbol,
            self.profile.separator,
            lowercase=self.profile.lowercase_symbols,
            quotes=self.profile.quote_currencies,
        )

    def parse_side(self, value: Any) -> SideType:
        try:
            return SideType.parse(str(value or ""))
        except ValueError:
            logger.debug("%s: unknown side %r, assuming ask", self.name, value)
            return SideType.ASK

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None:
            connector = aiohttp.TCPConnector()
            self.session = aiohttp.ClientSession(connector=connector)
        return self.session

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: Any = None,
        signed: bool = False,
        base_url: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Dispatch one HTTP call and return the decoded JSON payload.

        Signed calls take their query string and body from the signer so the
        bytes on the wire are exactly the bytes that were signed.
        """
        method = method.upper()
        request_headers = {"User-Agent": USER_AGENT}
        query = encode_query(params) or None
        data = canonical_json(body) if body is not None else None

        if signed:
            signed_request = self.signer.sign(method, path, params=params, body=body)
            request_headers.update(signed_request.headers)
            query = signed_request.query
            data = signed_request.body
        elif data is not None:
            request_headers["Content-Type"] = "application/json"
        if headers:
            request_headers.update(headers)

        url = path if path.startswith("http") else f"{base_url or self.get_base_url()}{path}"
        if query:
            url = f"{url}?{query}"

        session = await self._ensure_session()
        async with session.request(
            method,
            url,
            data=data,
            headers=request_headers,
            proxy=self.proxy.proxy_url,
        ) as resp:
            if resp.status >= 400:
                text = await resp.text()
                raise ExchangeAPIError(self.name, f"{method} {path} failed", status=resp.status, payload=text[:500])
            payload = await resp.json(content_type=None)

        return self._check_response(payload)

    def _check_response(self, payload: Any) -> Any:
        """Raise ``ExchangeAPIError`` for vendor-level error envelopes."""
        return payload

    def build_tickers(self) -> Tickers:
        return self.registry.build_tickers(self.exchange_rate)

    async def verify_symbols(self) -> bool:
        """Rebuild the symbol registry; ``alive`` mirrors the outcome.

        Pairs load into a fresh registry that replaces the current one only
        when discovery succeeds; a failure leaves the previous pairs in place.
        """
        previous = self.registry
        self.registry = previous.fresh()
        result = False
        try:
            await self._load_symbols()
            result = True
        except ConfigurationError:
            raise
        except Exception as exc:
            self.report(exc, SYMBOLS)
        finally:
            if not result:
                self.registry = previous
            self.alive = result
        logger.debug("%s: %d symbols registered", self.name, len(self.registry))
        return result

    @guarded(STATES, False)
    async def verify_states(self, tickers: Tickers) -> bool:
        statuses = await self._fetch_states()
        NetworkStateTracker(tickers).apply(statuses)
        self.report("checking deposit & withdraw status...", STATES_INFO)
        return True

    @guarded(MARKETS, False)
    async def get_markets(self, tickers: Tickers) -> bool:
        snapshot = await self._fetch_snapshot()
        self.reconciler.reconcile(tickers, snapshot)
        return True

    @guarded(PRICE, Decimal)
    async def get_price(self, symbol: str) -> Decimal:
        snapshot = await self._fetch_snapshot()
        raw = snapshot.get(self.native_symbol(symbol))
        if raw is None or raw.last is None:
            return Decimal(0)
        return raw.last

    async def _load_symbols(self) -> None:
        """Register every supported pair into ``self.registry``."""
        raise NotImplementedError(f"{self.name} does not support symbol discovery")

    async def _fetch_states(self) -> list[AssetStatus]:
        raise NotImplementedError(f"{self.name} does not report deposit/withdraw states")

    async def _fetch_snapshot(self) -> dict[str, RawTicker]:
        """Return the current market snapshot keyed by exchange-native symbol."""
        raise NotImplementedError(f"{self.name} does not provide market snapshots")

    def interval(self, timeframe: str) -> str:
        """Vendor interval id for a canonical timeframe such as ``1h``."""
        try:
            return self.timeframes[timeframe.strip().lower()]
        except KeyError:
            supported = ", ".join(tf for tf in TIMEFRAMES if tf in self.timeframes)
            raise ValueError(f"{self.name} does not support timeframe {timeframe!r} (supported: {supported})") from None

    @staticmethod
    def _ordered_candles(candles: list[Candle], since: int | None, limit: int) -> list[Candle]:
        """Oldest first; ``limit`` bars from ``since`` onwards, else the latest ``limit``."""
        candles = sorted(candles, key=lambda candle: candle.timestamp)
        if since is not None:
            return [candle for candle in candles if candle.timestamp >= since][:limit]
        return candles[-limit:] if limit > 0 else []

    @staticmethod
    def _candle_row(row: Any, columns: tuple[int, int, int, int, int] = (1, 2, 3, 4, 5), time_scale: int = 1) -> Candle:
        """Candle from a positional row: open time first, then open/high/low/close/volume at ``columns``."""
        open_at, high_at, low_at, close_at, volume_at = columns
        return Candle(
            timestamp=to_int(get_path(row, 0)) * time_scale,
            open=to_decimal(get_path(row, open_at)),
            high=to_decimal(get_path(row, high_at)),
            low=to_decimal(get_path(row, low_at)),
            close=to_decimal(get_path(row, close_at)),
            volume=to_decimal(get_path(row, volume_at)),
        )

    @staticmethod
    def _book_levels(
        levels: Any, limit: int, price_key: str | int = 0, qty_key: str | int = 1
    ) -> list[OrderbookItem]:
        items = []
        for level in (levels or [])[:limit]:
            try:
                price, quantity = level[price_key], level[qty_key]
            except (KeyError, IndexError, TypeError):
                continue
            items.append(OrderbookItem(price=to_decimal(price), quantity=to_decimal(quantity)))
        return items

    async def get_orderbook(self, symbol: str, limit: int = 5) -> Orderbook:
        raise NotImplementedError(f"{self.name} does not support order books")

    async def get_candles(self, symbol: str, timeframe: str = "1m", since: int | None = None, limit: int = 100) -> list[Candle]:
        raise NotImplementedError(f"{self.name} does not support candles")

    async def get_recent_trades(self, symbol: str, limit: int = 50) -> list[MarketTrade]:
        raise NotImplementedError(f"{self.name} does not support public trades")

    async def get_balance(self) -> dict[str, BalanceInfo]:
        raise NotImplementedError(f"{self.name} does not support balances")

    async def get_account(self) -> AccountInfo | None:
        raise NotImplementedError(f"{self.name} does not support account info")

    async def place_order(
        self,
        symbol: str,
        side: SideType | str,
        order_type: str,
        amount: Decimal,
        price: Decimal | None = None,
        client_order_id: str | None = None,
    ) -> OrderInfo | None:
        raise NotImplementedError(f"{self.name} does not support order placement")

    async def cancel_order(self, order_id: str, symbol: str | None = None, client_order_id: str | None = None) -> bool:
        raise NotImplementedError(f"{self.name} does not support order cancellation")

    async def get_order(self, order_id: str, symbol: str | None = None, client_order_id: str | None = None) -> OrderInfo | None:
        raise NotImplementedError(f"{self.name} does not support order lookup")

    async def get_open_orders(self, symbol: str | None = None) -> list[OrderInfo]:
        raise NotImplementedError(f"{self.name} does not support open-order listing")

    async def get_order_history(self, symbol: str | None = None, limit: int = 100) -> list[OrderInfo]:
        raise NotImplementedError(f"{self.name} does not support order history")

    async def get_trade_history(self, symbol: str | None = None, limit: int = 100) -> list[TradeInfo]:
        raise NotImplementedError(f"{self.name} does not support trade history")

    async def get_deposit_history(self, currency: str | None = None, limit: int = 100) -> list[DepositInfo]:
        raise NotImplementedError(f"{self.name} does not support deposit history")

    async def get_withdrawal_history(self, currency: str | None = None, limit: int = 100) -> list[WithdrawalInfo]:
        raise NotImplementedError(f"{self.name} does not support withdrawal history")

    async def get_deposit_address(self, currency: str, network: str | None = None) -> DepositAddress | None:
        raise NotImplementedError(f"{self.name} does not support deposit addresses")

    async def withdraw(
        self,
        currency: str,
        amount: Decimal,
        address: str,
        tag: str | None = None,
        network: str | None = None,
    ) -> WithdrawalInfo | None:
        raise NotImplementedError(f"{self.name} does not support withdrawals")

    async def close(self) -> None:
        """Close connections."""
        if self.session:
            await self.session.close()
            self.session = None
