"""Korbit exchange adapter."""

from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Any

from ..core.jsonsafe import as_dict, as_list, get_decimal, get_int, get_str, to_decimal
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
    TradeInfo,
    WithdrawalInfo,
)
from ..core.network_state import AssetStatus, ChainStatus
from ..core.profile import ExchangeProfile
from ..core.reconciler import RawTicker
from ..core.signing import SigningVariant
from ..core.status import OrderStatus
from .base import (
    ACCOUNT,
    BALANCE,
    CANCEL_ORDER,
    CANDLES,
    DEPOSIT_ADDRESS,
    DEPOSITS,
    GET_ORDER,
    OPEN_ORDERS,
    ORDER_HISTORY,
    ORDERBOOK,
    PLACE_ORDER,
    RECENT_TRADES,
    TRADE_HISTORY,
    WITHDRAW,
    WITHDRAWALS,
    BaseExchangeAdapter,
    guarded,
)

logger = logging.getLogger(__name__)

CURRENCIES_URL = "https://portal-prod.korbit.co.kr/api/korbit/v3/currencies"


class KorbitAdapter(BaseExchangeAdapter):
    """Korbit exchange adapter.

    Pair ids are lower-case ``base_quote`` (``btc_krw``). Private calls carry
    the API key header and a sorted, signed form in the query (GET/DELETE) or
    the body (POST).
    """

    profile = ExchangeProfile(
        name="korbit",
        base_url="https://api.korbit.co.kr",
        signing=SigningVariant.SORTED_FORM,
        quote_currencies=("KRW", "BTC", "USDT"),
        rate_quotes=("USDT",),
        code_base=3900,
        separator="_",
        lowercase_symbols=True,
    )

    # interval ids are bar lengths in seconds
    timeframes = {
        "1m": "60",
        "3m": "180",
        "5m": "300",
        "15m": "900",
        "30m": "1800",
        "1h": "3600",
        "2h": "7200",
        "4h": "14400",
        "6h": "21600",
        "12h": "43200",
        "1d": "86400",
        "1w": "604800",
    }

    async def _detailed_tickers(self) -> dict[str, Any]:
        return as_dict(await self._request("GET", "/v1/ticker/detailed/all"))

    async def _load_symbols(self) -> None:
        for symbol in await self._detailed_tickers():
            base, _, quote = symbol.partition("_")
            self.registry.register(symbol, base, quote, separator="_")

    async def _fetch_states(self) -> list[AssetStatus]:
        data = await self._request("GET", CURRENCIES_URL, headers={"platform-identifier": "witcher_android"})

        chains: dict[str, list[ChainStatus]] = defaultdict(list)
        for item in as_list(data):
            if get_str(item, "currency_type") != "crypto":
                continue
            asset = (get_str(item, "symbol") or "").upper()
            if not asset:
                continue
            network = get_str(item, "currency_network") or "Mainnet"
            chains[asset].append(
                ChainStatus(
                    chain=network,
                    network=asset if network == "Mainnet" else network.replace("-", ""),
                    deposit=get_str(item, "deposit_status") == "launched",
                    withdraw=get_str(item, "withdrawal_status") == "launched",
                    min_withdrawal=get_decimal(item, "withdrawal_min_amount"),
                    withdraw_fee=get_decimal(item, "withdrawal_tx_fee"),
                )
            )
        return [AssetStatus(asset=asset, chains=items) for asset, items in chains.items()]

    async def _fetch_snapshot(self) -> dict[str, RawTicker]:
        snapshot = {}
        for symbol, item in (await self._detailed_tickers()).items():
            last = get_decimal(item, "last")
            # volume is reported in the base asset
            snapshot[symbol] = RawTicker(
                last=last,
                ask=get_decimal(item, "ask", None),
                bid=get_decimal(item, "bid", None),
                volume_24h=get_decimal(item, "volume") * last,
            )
        return snapshot

    @guarded(ORDERBOOK, Orderbook)
    async def get_orderbook(self, symbol: str, limit: int = 5) -> Orderbook:
        data = as_dict(await self._request("GET", "/v2/orderbook", params={"symbol": self.native_symbol(symbol)}))
        return Orderbook(
            timestamp=get_int(data, "timestamp") or self.context.clock(),
            asks=self._book_levels(data.get("asks"), limit),
            bids=self._book_levels(data.get("bids"), limit),
        )

    @guarded(CANDLES, list)
    async def get_candles(self, symbol: str, timeframe: str = "1m", since: int | None = None, limit: int = 100) -> list[Candle]:
        params: dict[str, Any] = {
            "symbol": self.native_symbol(symbol),
            "interval": self.interval(timeframe),
            "limit": min(limit, 500),
        }
        if since is not None:
            params["since"] = since
        data = await self._request("GET", "/v2/candles", params=params)

        candles = [
            Candle(
                timestamp=get_int(item, "timestamp"),
                open=get_decimal(item, "open"),
                high=get_decimal(item, "high"),
                low=get_decimal(item, "low"),
                close=get_decimal(item, "close"),
                volume=get_decimal(item, "volume"),
            )
            for item in as_list(data)
        ]
        return self._ordered_candles(candles, since, limit)

    @guarded(RECENT_TRADES, list)
    async def get_recent_trades(self, symbol: str, limit: int = 50) -> list[MarketTrade]:
        data = await self._request("GET", "/v2/trades", params={"symbol": self.native_symbol(symbol)})

        return [
            MarketTrade(
                id=get_str(item, "tid", ""),
                side=self.parse_side(get_str(item, "type")),
                price=get_decimal(item, "price"),
                amount=get_decimal(item, "amount"),
                timestamp=get_int(item, "timestamp"),
            )
            for item in as_list(data)[:limit]
        ]

    async def _balances(self) -> dict[str, BalanceInfo]:
        data = as_dict(await self._request("GET", "/v2/balance", signed=True))

        balances = {}
        for currency, item in data.items():
            available = get_decimal(item, "available")
            used = get_decimal(item, "trade_in_use") + get_decimal(item, "withdrawal_in_use")
            if available + used > 0:
                balances[currency.upper()] = BalanceInfo(currency.upper(), free=available, used=used)
        return balances

    @guarded(BALANCE, dict)
    async def get_balance(self) -> dict[str, BalanceInfo]:
        return await self._balances()

    @guarded(ACCOUNT)
    async def get_account(self) -> AccountInfo | None:
        data = as_dict(await self._request("GET", "/v2/user/info", signed=True))
        return AccountInfo(id=get_str(data, "email", ""), balances=await self._balances())

    @guarded(PLACE_ORDER)
    async def place_order(
        self,
        symbol: str,
        side: SideType | str,
        order_type: str,
        amount: Decimal,
        price: Decimal | None = None,
        client_order_id: str | None = None,
    ) -> OrderInfo | None:
        side = SideType.parse(side)
        order_type = "market" if order_type.lower() == "market" else "limit"
        native = self.native_symbol(symbol)

        form: dict[str, Any] = {
            "symbol": native,
            "side": "buy" if side.is_buy else "sell",
            "type": order_type,
            "volume": amount,
        }
        if order_type == "limit" and price is not None:
            form["price"] = price
        if client_order_id:
            form["clientOrderId"] = client_order_id

        data = as_dict(await self._request("POST", "/v2/orders", body=form, signed=True))
        order_id = get_str(data, "orderId")
        if not order_id:
            self.report(f"PlaceOrder error: {get_str(data, 'message', 'Unknown error')}", PLACE_ORDER - 1)
            return None

        return OrderInfo(
            id=order_id,
            client_order_id=client_order_id,
            symbol=native,
            side=side,
            type=order_type,
            status=OrderStatus.OPEN,
            amount=to_decimal(amount),
            price=price,
            remaining=to_decimal(amount),
            timestamp=self.context.clock(),
        )

    @guarded(CANCEL_ORDER, False)
    async def cancel_order(self, order_id: str, symbol: str | None = None, client_order_id: str | None = None) -> bool:
        data = as_dict(await self._request("DELETE", "/v2/orders", params={"orderId": order_id}, signed=True))
        if "orderId" not in data:
            self.report(f"CancelOrder error: {get_str(data, 'message', 'Unknown error')}", CANCEL_ORDER - 1)
            return False
        return True

    def _parse_order(self, item: dict[str, Any]) -> OrderInfo:
        raw_status = get_str(item, "status")
        amount = get_decimal(item, "volume", None)
        if amount is None:
            amount = get_decimal(item, "totalVolume")
        filled = get_decimal(item, "filledVolume", None)
        if filled is None:
            filled = get_decimal(item, "filled")
        price = get_decimal(item, "price")

        return OrderInfo(
            id=get_str(item, "orderId") or get_str(item, "id", ""),
            client_order_id=get_str(item, "clientOrderId") or None,
            symbol=get_str(item, "symbol", ""),
            side=self.parse_side(get_str(item, "side")),
            type=get_str(item, "type", "limit"),
            status=self.normalizer.order(self.name, raw_status),
            raw_status=raw_status,
            amount=amount,
            price=price or None,
            filled=filled,
            remaining=amount - filled,
            fee=get_decimal(item, "fee"),
            timestamp=get_int(item, "timestamp") or get_int(item, "createdAt"),
        )

    @guarded(GET_ORDER)
    async def get_order(self, order_id: str, symbol: str | None = None, client_order_id: str | None = None) -> OrderInfo | None:
        data = as_dict(await self._request("GET", "/v2/orders", params={"orderId": order_id}, signed=True))
        if "orderId" not in data:
            return None
        return self._parse_order(data)

    @guarded(OPEN_ORDERS, list)
    async def get_open_orders(self, symbol: str | None = None) -> list[OrderInfo]:
        params = {"symbol": self.native_symbol(symbol)} if symbol else None
        data = await self._request("GET", "/v2/openOrders", params=params, signed=True)
        return [self._parse_order(item) for item in as_list(data)]

    @guarded(ORDER_HISTORY, list)
    async def get_order_history(self, symbol: str | None = None, limit: int = 100) -> list[OrderInfo]:
        params: dict[str, Any] = {"limit": limit}
        if symbol:
            params["symbol"] = self.native_symbol(symbol)
        data = await self._request("GET", "/v2/orders", params=params, signed=True)
        return [self._parse_order(item) for item in as_list(data)]

    @guarded(TRADE_HISTORY, list)
    async def get_trade_history(self, symbol: str | None = None, limit: int = 100) -> list[TradeInfo]:
        params: dict[str, Any] = {"limit": limit}
        if symbol:
            params["symbol"] = self.native_symbol(symbol)
        data = await self._request("GET", "/v2/fills", params=params, signed=True)

        trades = []
        for item in as_list(data):
            amount = get_decimal(item, "volume", None)
            trades.append(
                TradeInfo(
                    id=get_str(item, "fillId") or get_str(item, "tid", ""),
                    order_id=get_str(item, "orderId", ""),
                    symbol=get_str(item, "symbol", ""),
                    side=self.parse_side(get_str(item, "side")),
                    amount=amount if amount is not None else get_decimal(item, "amount"),
                    price=get_decimal(item, "price"),
                    fee=get_decimal(item, "fee"),
                    fee_asset=(get_str(item, "feeCurrency") or "").upper(),
                    timestamp=get_int(item, "timestamp"),
                )
            )
        return trades

    async def _transfers(self, kind: str, currency: str | None, limit: int) -> list[Any]:
        params: dict[str, Any] = {"type": kind, "limit": limit}
        if currency:
            params["currency"] = currency.lower()
        return as_list(await self._request("GET", "/v2/transfers", params=params, signed=True))

    @guarded(DEPOSITS, list)
    async def get_deposit_history(self, currency: str | None = None, limit: int = 100) -> list[DepositInfo]:
        deposits = []
        for item in await self._transfers("deposit", currency, limit):
            raw_status = get_str(item, "status")
            deposits.append(
                DepositInfo(
                    id=get_str(item, "transferId") or get_str(item, "id", ""),
                    currency=(get_str(item, "currency") or "").upper(),
                    amount=get_decimal(item, "amount"),
                    address=get_str(item, "address", ""),
                    tag=get_str(item, "destinationTag") or get_str(item, "memo"),
                    network=(get_str(item, "network") or "").upper(),
                    status=self.normalizer.deposit(self.name, raw_status),
                    raw_status=raw_status,
                    timestamp=get_int(item, "timestamp") or get_int(item, "createdAt"),
                    txid=get_str(item, "txid") or get_str(item, "txHash", ""),
                )
            )
        return deposits

    @guarded(WITHDRAWALS, list)
    async def get_withdrawal_history(self, currency: str | None = None, limit: int = 100) -> list[WithdrawalInfo]:
        withdrawals = []
        for item in await self._transfers("withdrawal", currency, limit):
            raw_status = get_str(item, "status")
            withdrawals.append(
                WithdrawalInfo(
                    id=get_str(item, "transferId") or get_str(item, "id", ""),
                    currency=(get_str(item, "currency") or "").upper(),
                    amount=get_decimal(item, "amount"),
                    address=get_str(item, "address", ""),
                    tag=get_str(item, "destinationTag") or get_str(item, "memo"),
                    network=(get_str(item, "network") or "").upper(),
                    status=self.normalizer.withdrawal(self.name, raw_status),
                    raw_status=raw_status,
                    timestamp=get_int(item, "timestamp") or get_int(item, "createdAt"),
                    fee=get_decimal(item, "fee"),
                )
            )
        return withdrawals

    @guarded(DEPOSIT_ADDRESS)
    async def get_deposit_address(self, currency: str, network: str | None = None) -> DepositAddress | None:
        params = {"currency": currency.lower()}
        if network:
            params["network"] = network
        data = as_dict(await self._request("GET", "/v2/coin/depositAddress", params=params, signed=True))

        if not get_str(data, "address"):
            return None
        return DepositAddress(
            currency=currency.upper(),
            address=get_str(data, "address", ""),
            tag=get_str(data, "destinationTag") or get_str(data, "memo"),
            network=(get_str(data, "network") or "").upper(),
        )

    @guarded(WITHDRAW)
    async def withdraw(
        self,
        currency: str,
        amount: Decimal,
        address: str,
        tag: str | None = None,
        network: str | None = None,
    ) -> WithdrawalInfo | None:
        form: dict[str, Any] = {"currency": currency.lower(), "amount": amount, "address": address}
        if tag:
            form["destinationTag"] = tag
        if network:
            form["network"] = network

        data = as_dict(await self._request("POST", "/v2/coin/withdrawal", body=form, signed=True))
        transfer_id = get_str(data, "transferId") or get_str(data, "withdrawalId")
        if not transfer_id:
            self.report(f"Withdraw error: {get_str(data, 'message', 'Unknown error')}", WITHDRAW - 1)
            return None

        return WithdrawalInfo(
            id=transfer_id,
            currency=currency.upper(),
            amount=to_decimal(amount),
            address=address,
            tag=tag,
            network=(network or "").upper(),
            status=OrderStatus.PENDING,
            timestamp=self.context.clock(),
        )
