"""Binance.US exchange adapter."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from ..core.jsonsafe import as_dict, as_list, get_bool, get_decimal, get_int, get_str, to_decimal, to_int
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
from ..core.signing import SigningVariant, param_value
from ..core.status import OrderStatus
from ..errors import ExchangeAPIError
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
    TIMEFRAMES,
    TRADE_HISTORY,
    WITHDRAW,
    WITHDRAWALS,
    BaseExchangeAdapter,
    guarded,
)

logger = logging.getLogger(__name__)

DEPTH_LIMITS = (5, 10, 20, 50, 100, 500, 1000, 5000)


def _filters(item: dict[str, Any]) -> dict[str, dict[str, Any]]:
    return {get_str(f, "filterType", ""): as_dict(f) for f in as_list(item.get("filters"))}


class BinanceUSAdapter(BaseExchangeAdapter):
    """Binance.US exchange adapter."""

    profile = ExchangeProfile(
        name="binanceus",
        base_url="https://api.binance.us",
        signing=SigningVariant.QUERY_STRING,
        quote_currencies=("USD", "USDT", "BTC"),
        rate_quotes=("USD", "USDT"),
        code_base=3100,
    )

    # interval ids are the canonical timeframes
    timeframes = {tf: tf for tf in TIMEFRAMES}

    def _check_response(self, payload: Any) -> Any:
        # errors come back as {"code": <negative int>, "msg": ...}
        if isinstance(payload, dict) and to_int(payload.get("code")) < 0:
            raise ExchangeAPIError(self.name, get_str(payload, "msg", "request failed"), payload=payload)
        return payload

    async def _load_symbols(self) -> None:
        data = as_dict(await self._request("GET", "/api/v3/exchangeInfo"))

        for item in as_list(data.get("symbols")):
            if get_str(item, "status") != "TRADING":
                continue
            filters = _filters(item)
            price_filter = filters.get("PRICE_FILTER", {})
            lot_filter = filters.get("LOT_SIZE", {})
            self.registry.register(
                get_str(item, "symbol", ""),
                get_str(item, "baseAsset", ""),
                get_str(item, "quoteAsset", ""),
                tick_size=price_filter.get("tickSize"),
                min_price=price_filter.get("minPrice"),
                max_price=price_filter.get("maxPrice"),
                min_qty=lot_filter.get("minQty"),
                max_qty=lot_filter.get("maxQty"),
                qty_step=lot_filter.get("stepSize"),
            )

    async def _fetch_states(self) -> list[AssetStatus]:
        data = await self._request("GET", "/sapi/v1/capital/config/getall", signed=True)

        statuses = []
        for coin in as_list(data):
            asset = get_str(coin, "coin")
            if not asset:
                continue
            chains = [
                ChainStatus(
                    chain=get_str(network, "name") or get_str(network, "network", ""),
                    network=get_str(network, "network", ""),
                    deposit=get_bool(network, "depositEnable"),
                    withdraw=get_bool(network, "withdrawEnable"),
                    min_withdrawal=get_decimal(network, "withdrawMin"),
                    withdraw_fee=get_decimal(network, "withdrawFee"),
                    min_confirm=get_int(network, "minConfirm"),
                )
                for network in as_list(coin.get("networkList"))
                if get_str(network, "network")
            ]
            statuses.append(
                AssetStatus(
                    asset=asset,
                    active=get_bool(coin, "trading", True),
                    deposit=get_bool(coin, "depositAllEnable"),
                    withdraw=get_bool(coin, "withdrawAllEnable"),
                    chains=chains,
                )
            )
        return statuses

    async def _fetch_snapshot(self) -> dict[str, RawTicker]:
        data = await self._request("GET", "/api/v3/ticker/24hr")

        snapshot = {}
        for item in as_list(data):
            symbol = get_str(item, "symbol")
            if not symbol:
                continue
            snapshot[symbol] = RawTicker.parse(
                last=item.get("lastPrice"),
                ask=item.get("askPrice"),
                bid=item.get("bidPrice"),
                ask_qty=item.get("askQty"),
                bid_qty=item.get("bidQty"),
                volume_24h=item.get("quoteVolume"),
            )
        return snapshot

    @guarded(ORDERBOOK, Orderbook)
    async def get_orderbook(self, symbol: str, limit: int = 5) -> Orderbook:
        depth = next((n for n in DEPTH_LIMITS if n >= limit), DEPTH_LIMITS[-1])
        params = {"symbol": self.native_symbol(symbol), "limit": depth}
        data = as_dict(await self._request("GET", "/api/v3/depth", params=params))

        return Orderbook(
            timestamp=self.context.clock(),
            asks=self._book_levels(data.get("asks"), limit),
            bids=self._book_levels(data.get("bids"), limit),
        )

    @guarded(CANDLES, list)
    async def get_candles(self, symbol: str, timeframe: str = "1m", since: int | None = None, limit: int = 100) -> list[Candle]:
        params: dict[str, Any] = {
            "symbol": self.native_symbol(symbol),
            "interval": self.interval(timeframe),
            "limit": min(limit, 1000),
        }
        if since is not None:
            params["startTime"] = since
        data = await self._request("GET", "/api/v3/klines", params=params)

        candles = [self._candle_row(row) for row in as_list(data)]
        return self._ordered_candles(candles, since, limit)

    @guarded(RECENT_TRADES, list)
    async def get_recent_trades(self, symbol: str, limit: int = 50) -> list[MarketTrade]:
        params = {"symbol": self.native_symbol(symbol), "limit": min(limit, 1000)}
        data = await self._request("GET", "/api/v3/trades", params=params)

        # the maker side is the resting order; report the taker's side
        return [
            MarketTrade(
                id=get_str(item, "id", ""),
                side=SideType.ASK if get_bool(item, "isBuyerMaker") else SideType.BID,
                price=get_decimal(item, "price"),
                amount=get_decimal(item, "qty"),
                timestamp=get_int(item, "time"),
            )
            for item in as_list(data)
        ]

    @staticmethod
    def _balances(data: dict[str, Any]) -> dict[str, BalanceInfo]:
        balances = {}
        for item in as_list(data.get("balances")):
            asset = get_str(item, "asset")
            free = get_decimal(item, "free")
            locked = get_decimal(item, "locked")
            if asset and free + locked > 0:
                balances[asset] = BalanceInfo(asset, free=free, used=locked)
        return balances

    @guarded(BALANCE, dict)
    async def get_balance(self) -> dict[str, BalanceInfo]:
        data = as_dict(await self._request("GET", "/api/v3/account", signed=True))
        return self._balances(data)

    @guarded(ACCOUNT)
    async def get_account(self) -> AccountInfo | None:
        data = as_dict(await self._request("GET", "/api/v3/account", signed=True))
        return AccountInfo(
            id=get_str(data, "uid", ""),
            type=(get_str(data, "accountType") or "spot").lower(),
            can_trade=get_bool(data, "canTrade"),
            can_deposit=get_bool(data, "canDeposit"),
            can_withdraw=get_bool(data, "canWithdraw"),
            balances=self._balances(data),
        )

    def _parse_order(self, item: dict[str, Any]) -> OrderInfo:
        raw_status = get_str(item, "status")
        amount = get_decimal(item, "origQty")
        filled = get_decimal(item, "executedQty")
        price = get_decimal(item, "price")
        return OrderInfo(
            id=get_str(item, "orderId", ""),
            client_order_id=get_str(item, "clientOrderId") or None,
            symbol=get_str(item, "symbol", ""),
            side=self.parse_side(get_str(item, "side")),
            type=(get_str(item, "type") or "limit").lower(),
            status=self.normalizer.order(self.name, raw_status),
            raw_status=raw_status,
            amount=amount,
            price=price or None,
            filled=filled,
            remaining=amount - filled,
            timestamp=get_int(item, "time") or get_int(item, "transactTime"),
        )

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
        is_market = order_type.lower() == "market"

        params: dict[str, Any] = {
            "symbol": self.native_symbol(symbol),
            "side": "BUY" if side.is_buy else "SELL",
            "type": "MARKET" if is_market else "LIMIT",
            "quantity": param_value(amount),
        }
        if not is_market:
            params["timeInForce"] = "GTC"
            if price is not None:
                params["price"] = param_value(price)
        if client_order_id:
            params["newClientOrderId"] = client_order_id

        data = as_dict(await self._request("POST", "/api/v3/order", params=params, signed=True))
        order = self._parse_order(data)
        # the ack carries no quantities for non-FULL responses
        if not order.amount:
            order.amount = to_decimal(amount)
            order.remaining = to_decimal(amount)
        if order.price is None:
            order.price = price
        return order

    def _order_params(self, order_id: str, symbol: str | None, client_order_id: str | None) -> dict[str, Any]:
        if not symbol:
            raise ValueError("Binance.US requires symbol for order lookups")
        params: dict[str, Any] = {"symbol": self.native_symbol(symbol)}
        if order_id:
            params["orderId"] = order_id
        elif client_order_id:
            params["origClientOrderId"] = client_order_id
        return params

    @guarded(CANCEL_ORDER, False)
    async def cancel_order(self, order_id: str, symbol: str | None = None, client_order_id: str | None = None) -> bool:
        params = self._order_params(order_id, symbol, client_order_id)
        await self._request("DELETE", "/api/v3/order", params=params, signed=True)
        return True

    @guarded(GET_ORDER)
    async def get_order(self, order_id: str, symbol: str | None = None, client_order_id: str | None = None) -> OrderInfo | None:
        params = self._order_params(order_id, symbol, client_order_id)
        data = as_dict(await self._request("GET", "/api/v3/order", params=params, signed=True))
        if not data:
            return None
        return self._parse_order(data)

    @guarded(OPEN_ORDERS, list)
    async def get_open_orders(self, symbol: str | None = None) -> list[OrderInfo]:
        params = {"symbol": self.native_symbol(symbol)} if symbol else None
        data = await self._request("GET", "/api/v3/openOrders", params=params, signed=True)
        return [self._parse_order(item) for item in as_list(data)]

    @guarded(ORDER_HISTORY, list)
    async def get_order_history(self, symbol: str | None = None, limit: int = 100) -> list[OrderInfo]:
        if not symbol:
            raise ValueError("Binance.US requires symbol for order history")
        params = {"symbol": self.native_symbol(symbol), "limit": min(limit, 1000)}
        data = await self._request("GET", "/api/v3/allOrders", params=params, signed=True)
        return [order for order in map(self._parse_order, as_list(data)) if not order.status.is_active]

    @guarded(TRADE_HISTORY, list)
    async def get_trade_history(self, symbol: str | None = None, limit: int = 100) -> list[TradeInfo]:
        if not symbol:
            raise ValueError("Binance.US requires symbol for trade history")
        params = {"symbol": self.native_symbol(symbol), "limit": min(limit, 1000)}
        data = await self._request("GET", "/api/v3/myTrades", params=params, signed=True)

        return [
            TradeInfo(
                id=get_str(item, "id", ""),
                order_id=get_str(item, "orderId", ""),
                symbol=get_str(item, "symbol", ""),
                side=SideType.BID if get_bool(item, "isBuyer") else SideType.ASK,
                amount=get_decimal(item, "qty"),
                price=get_decimal(item, "price"),
                fee=get_decimal(item, "commission"),
                fee_asset=get_str(item, "commissionAsset", ""),
                timestamp=get_int(item, "time"),
            )
            for item in as_list(data)
        ]

    @guarded(DEPOSITS, list)
    async def get_deposit_history(self, currency: str | None = None, limit: int = 100) -> list[DepositInfo]:
        params: dict[str, Any] = {"limit": min(limit, 1000)}
        if currency:
            params["coin"] = currency.upper()
        data = await self._request("GET", "/sapi/v1/capital/deposit/hisrec", params=params, signed=True)

        deposits = []
        for item in as_list(data):
            raw_status = get_str(item, "status")
            deposits.append(
                DepositInfo(
                    id=get_str(item, "id", ""),
                    currency=get_str(item, "coin", ""),
                    amount=get_decimal(item, "amount"),
                    address=get_str(item, "address", ""),
                    tag=get_str(item, "addressTag") or None,
                    network=get_str(item, "network", ""),
                    status=self.normalizer.deposit(self.name, raw_status),
                    raw_status=raw_status,
                    timestamp=get_int(item, "insertTime"),
                    txid=get_str(item, "txId", ""),
                )
            )
        return deposits

    @guarded(WITHDRAWALS, list)
    async def get_withdrawal_history(self, currency: str | None = None, limit: int = 100) -> list[WithdrawalInfo]:
        params: dict[str, Any] = {"limit": min(limit, 1000)}
        if currency:
            params["coin"] = currency.upper()
        data = await self._request("GET", "/sapi/v1/capital/withdraw/history", params=params, signed=True)

        withdrawals = []
        for item in as_list(data):
            raw_status = get_str(item, "status")
            withdrawals.append(
                WithdrawalInfo(
                    id=get_str(item, "id", ""),
                    currency=get_str(item, "coin", ""),
                    amount=get_decimal(item, "amount"),
                    address=get_str(item, "address", ""),
                    tag=get_str(item, "addressTag") or None,
                    network=get_str(item, "network", ""),
                    status=self.normalizer.withdrawal(self.name, raw_status),
                    raw_status=raw_status,
                    timestamp=get_int(item, "applyTime"),
                    fee=get_decimal(item, "transactionFee"),
                )
            )
        return withdrawals

    @guarded(DEPOSIT_ADDRESS)
    async def get_deposit_address(self, currency: str, network: str | None = None) -> DepositAddress | None:
        params = {"coin": currency.upper()}
        if network:
            params["network"] = network.upper()
        data = as_dict(await self._request("GET", "/sapi/v1/capital/deposit/address", params=params, signed=True))

        if not get_str(data, "address"):
            return None
        return DepositAddress(
            currency=get_str(data, "coin") or currency.upper(),
            address=get_str(data, "address", ""),
            tag=get_str(data, "tag") or None,
            network=(network or "").upper(),
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
        params: dict[str, Any] = {"coin": currency.upper(), "address": address, "amount": param_value(amount)}
        if network:
            params["network"] = network.upper()
        if tag:
            params["addressTag"] = tag
        data = as_dict(await self._request("POST", "/sapi/v1/capital/withdraw/apply", params=params, signed=True))

        return WithdrawalInfo(
            id=get_str(data, "id", ""),
            currency=currency.upper(),
            amount=to_decimal(amount),
            address=address,
            tag=tag,
            network=(network or "").upper(),
            status=OrderStatus.PENDING,
            timestamp=self.context.clock(),
        )
