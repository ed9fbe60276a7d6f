"""Bybit exchange adapter (v5 API, spot)."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from ..core.jsonsafe import as_dict, as_list, get_decimal, get_int, get_path, get_str, to_decimal
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
    TRADE_HISTORY,
    WITHDRAW,
    WITHDRAWALS,
    BaseExchangeAdapter,
    guarded,
)

logger = logging.getLogger(__name__)


class BybitAdapter(BaseExchangeAdapter):
    """Bybit exchange adapter."""

    profile = ExchangeProfile(
        name="bybit",
        base_url="https://api.bybit.com",
        sandbox_url="https://api-testnet.bybit.com",
        signing=SigningVariant.CONCATENATED_TIMESTAMP,
        quote_currencies=("USDT", "USD"),
        rate_quotes=("USDT", "USD"),
        code_base=3300,
    )

    timeframes = {
        "1m": "1",
        "3m": "3",
        "5m": "5",
        "15m": "15",
        "30m": "30",
        "1h": "60",
        "2h": "120",
        "4h": "240",
        "6h": "360",
        "12h": "720",
        "1d": "D",
        "1w": "W",
    }

    def _check_response(self, payload: Any) -> Any:
        code = get_str(payload, "retCode")
        if code is not None and code != "0":
            raise ExchangeAPIError(self.name, get_str(payload, "retMsg", "request failed"), payload=payload)
        return payload

    async def _load_symbols(self) -> None:
        data = await self._request("GET", "/v5/market/instruments-info", params={"category": "spot"})

        for item in as_list(get_path(data, "result", "list")):
            if get_str(item, "status", "Trading") != "Trading":
                continue
            price_filter = as_dict(item.get("priceFilter"))
            lot_filter = as_dict(item.get("lotSizeFilter"))
            self.registry.register(
                get_str(item, "symbol", ""),
                get_str(item, "baseCoin", ""),
                get_str(item, "quoteCoin", ""),
                tick_size=price_filter.get("tickSize"),
                min_price=price_filter.get("minPrice"),
                max_price=price_filter.get("maxPrice"),
                min_qty=lot_filter.get("minOrderQty"),
                max_qty=lot_filter.get("maxOrderQty"),
                qty_step=lot_filter.get("basePrecision"),
            )

    async def _fetch_states(self) -> list[AssetStatus]:
        data = await self._request("GET", "/v5/asset/coin/query-info", signed=True)

        statuses = []
        for coin in as_list(get_path(data, "result", "rows")):
            asset = get_str(coin, "coin")
            if not asset:
                continue
            chains = [
                ChainStatus(
                    chain=get_str(chain, "chain", ""),
                    network=get_str(chain, "chainType", ""),
                    deposit=get_str(chain, "chainDeposit") == "1",
                    withdraw=get_str(chain, "chainWithdraw") == "1",
                    min_withdrawal=get_decimal(chain, "withdrawMin"),
                    withdraw_fee=get_decimal(chain, "withdrawFee"),
                    min_confirm=get_int(chain, "confirmation"),
                )
                for chain in as_list(coin.get("chains"))
                if get_str(chain, "chain")
            ]
            statuses.append(AssetStatus(asset=asset, chains=chains))
        return statuses

    async def _fetch_snapshot(self) -> dict[str, RawTicker]:
        data = await self._request("GET", "/v5/market/tickers", params={"category": "spot"})

        snapshot = {}
        for item in as_list(get_path(data, "result", "list")):
            symbol = get_str(item, "symbol")
            if not symbol:
                continue
            snapshot[symbol] = RawTicker.parse(
                last=item.get("lastPrice"),
                ask=item.get("ask1Price"),
                bid=item.get("bid1Price"),
                ask_qty=item.get("ask1Size"),
                bid_qty=item.get("bid1Size"),
                volume_24h=item.get("turnover24h"),
            )
        return snapshot

    @guarded(ORDERBOOK, Orderbook)
    async def get_orderbook(self, symbol: str, limit: int = 5) -> Orderbook:
        params = {"category": "spot", "symbol": self.native_symbol(symbol), "limit": limit}
        data = await self._request("GET", "/v5/market/orderbook", params=params)

        result = as_dict(get_path(data, "result"))
        return Orderbook(
            timestamp=get_int(result, "ts"),
            asks=self._book_levels(result.get("a"), limit),
            bids=self._book_levels(result.get("b"), limit),
        )

    @guarded(CANDLES, list)
    async def get_candles(self, symbol: str, timeframe: str = "1m", since: int | None = None, limit: int = 100) -> list[Candle]:
        params: dict[str, Any] = {
            "category": "spot",
            "symbol": self.native_symbol(symbol),
            "interval": self.interval(timeframe),
            "limit": min(limit, 1000),
        }
        if since is not None:
            params["start"] = since
        data = await self._request("GET", "/v5/market/kline", params=params)

        # rows are [start, open, high, low, close, volume, turnover], newest first
        candles = [self._candle_row(row) for row in as_list(get_path(data, "result", "list"))]
        return self._ordered_candles(candles, since, limit)

    @guarded(RECENT_TRADES, list)
    async def get_recent_trades(self, symbol: str, limit: int = 50) -> list[MarketTrade]:
        params = {"category": "spot", "symbol": self.native_symbol(symbol), "limit": min(limit, 60)}
        data = await self._request("GET", "/v5/market/recent-trade", params=params)

        return [
            MarketTrade(
                id=get_str(item, "execId", ""),
                side=self.parse_side(get_str(item, "side")),
                price=get_decimal(item, "price"),
                amount=get_decimal(item, "size"),
                timestamp=get_int(item, "time"),
            )
            for item in as_list(get_path(data, "result", "list"))
        ]

    async def _wallet_balances(self) -> dict[str, BalanceInfo]:
        data = await self._request("GET", "/v5/account/wallet-balance", params={"accountType": "UNIFIED"}, signed=True)

        balances = {}
        for coin in as_list(get_path(data, "result", "list", 0, "coin")):
            asset = get_str(coin, "coin")
            if not asset:
                continue
            wallet = get_decimal(coin, "walletBalance")
            locked = get_decimal(coin, "locked")
            balances[asset] = BalanceInfo(asset, free=wallet - locked, used=locked)
        return balances

    @guarded(BALANCE, dict)
    async def get_balance(self) -> dict[str, BalanceInfo]:
        return await self._wallet_balances()

    @guarded(ACCOUNT)
    async def get_account(self) -> AccountInfo | None:
        data = await self._request("GET", "/v5/user/query-api", signed=True)
        result = as_dict(get_path(data, "result"))
        permissions = as_dict(result.get("permissions"))
        read_only = get_int(result, "readOnly") == 1

        return AccountInfo(
            id=get_str(result, "userID", ""),
            can_trade=not read_only and "SpotTrade" in as_list(permissions.get("Spot")),
            can_withdraw=not read_only and "Withdraw" in as_list(permissions.get("Wallet")),
            balances=await self._wallet_balances(),
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
        native = self.native_symbol(symbol)

        body: dict[str, Any] = {
            "category": "spot",
            "symbol": native,
            "side": "Buy" if side.is_buy else "Sell",
            "orderType": "Market" if is_market else "Limit",
            "qty": param_value(amount),
        }
        if not is_market and price is not None:
            body["price"] = param_value(price)
        if client_order_id:
            body["orderLinkId"] = client_order_id

        data = await self._request("POST", "/v5/order/create", body=body, signed=True)
        result = as_dict(get_path(data, "result"))
        return OrderInfo(
            id=get_str(result, "orderId", ""),
            client_order_id=get_str(result, "orderLinkId", client_order_id),
            symbol=native,
            side=side,
            type="market" if is_market else "limit",
            status=OrderStatus.OPEN,
            amount=to_decimal(amount),
            price=price,
            remaining=to_decimal(amount),
            timestamp=self.context.clock(),
        )

    @guarded(CANCEL_ORDER, False)
    async def cancel_order(self, order_id: str, symbol: str | None = None, client_order_id: str | None = None) -> bool:
        if not symbol:
            raise ValueError("Bybit requires symbol to cancel order")

        body = {"category": "spot", "symbol": self.native_symbol(symbol)}
        if order_id:
            body["orderId"] = order_id
        elif client_order_id:
            body["orderLinkId"] = client_order_id

        await self._request("POST", "/v5/order/cancel", body=body, signed=True)
        return True

    def _parse_order(self, item: dict[str, Any]) -> OrderInfo:
        raw_status = get_str(item, "orderStatus")
        price = get_decimal(item, "price")
        return OrderInfo(
            id=get_str(item, "orderId", ""),
            client_order_id=get_str(item, "orderLinkId") or None,
            symbol=get_str(item, "symbol", ""),
            side=self.parse_side(get_str(item, "side")),
            type=(get_str(item, "orderType") or "limit").lower(),
            status=self.normalizer.order(self.name, raw_status),
            raw_status=raw_status,
            amount=get_decimal(item, "qty"),
            price=price or None,
            filled=get_decimal(item, "cumExecQty"),
            remaining=get_decimal(item, "leavesQty"),
            timestamp=get_int(item, "createdTime"),
            fee=get_decimal(item, "cumExecFee"),
        )

    @guarded(GET_ORDER)
    async def get_order(self, order_id: str, symbol: str | None = None, client_order_id: str | None = None) -> OrderInfo | None:
        params = {"category": "spot"}
        if order_id:
            params["orderId"] = order_id
        elif client_order_id:
            params["orderLinkId"] = client_order_id
        if symbol:
            params["symbol"] = self.native_symbol(symbol)

        # live orders first, then the archive
        for path in ("/v5/order/realtime", "/v5/order/history"):
            data = await self._request("GET", path, params=params, signed=True)
            items = as_list(get_path(data, "result", "list"))
            if items:
                return self._parse_order(items[0])
        return None

    @guarded(OPEN_ORDERS, list)
    async def get_open_orders(self, symbol: str | None = None) -> list[OrderInfo]:
        params = {"category": "spot", "openOnly": 0}
        if symbol:
            params["symbol"] = self.native_symbol(symbol)
        data = await self._request("GET", "/v5/order/realtime", params=params, signed=True)
        return [self._parse_order(item) for item in as_list(get_path(data, "result", "list"))]

    @guarded(ORDER_HISTORY, list)
    async def get_order_history(self, symbol: str | None = None, limit: int = 100) -> list[OrderInfo]:
        params: dict[str, Any] = {"category": "spot", "limit": min(limit, 50)}
        if symbol:
            params["symbol"] = self.native_symbol(symbol)
        data = await self._request("GET", "/v5/order/history", params=params, signed=True)
        return [self._parse_order(item) for item in as_list(get_path(data, "result", "list"))]

    @guarded(TRADE_HISTORY, list)
    async def get_trade_history(self, symbol: str | None = None, limit: int = 100) -> list[TradeInfo]:
        params: dict[str, Any] = {"category": "spot", "limit": min(limit, 100)}
        if symbol:
            params["symbol"] = self.native_symbol(symbol)
        data = await self._request("GET", "/v5/execution/list", params=params, signed=True)

        return [
            TradeInfo(
                id=get_str(item, "execId", ""),
                order_id=get_str(item, "orderId", ""),
                symbol=get_str(item, "symbol", ""),
                side=self.parse_side(get_str(item, "side")),
                amount=get_decimal(item, "execQty"),
                price=get_decimal(item, "execPrice"),
                fee=get_decimal(item, "execFee"),
                fee_asset=get_str(item, "feeCurrency", ""),
                timestamp=get_int(item, "execTime"),
            )
            for item in as_list(get_path(data, "result", "list"))
        ]

    @guarded(DEPOSITS, list)
    async def get_deposit_history(self, currency: str | None = None, limit: int = 100) -> list[DepositInfo]:
        params: dict[str, Any] = {"limit": min(limit, 50)}
        if currency:
            params["coin"] = currency.upper()
        data = await self._request("GET", "/v5/asset/deposit/query-record", params=params, signed=True)

        deposits = []
        for row in as_list(get_path(data, "result", "rows")):
            raw_status = get_str(row, "status")
            deposits.append(
                DepositInfo(
                    id=get_str(row, "txID", ""),
                    currency=get_str(row, "coin", ""),
                    amount=get_decimal(row, "amount"),
                    address=get_str(row, "toAddress", ""),
                    tag=get_str(row, "tag") or None,
                    network=get_str(row, "chain", ""),
                    status=self.normalizer.deposit(self.name, raw_status),
                    raw_status=raw_status,
                    timestamp=get_int(row, "successAt"),
                    txid=get_str(row, "txID", ""),
                )
            )
        return deposits

    @guarded(WITHDRAWALS, list)
    async def get_withdrawal_history(self, currency: str | None = None, limit: int = 100) -> list[WithdrawalInfo]:
        params: dict[str, Any] = {"limit": min(limit, 50)}
        if currency:
            params["coin"] = currency.upper()
        data = await self._request("GET", "/v5/asset/withdraw/query-record", params=params, signed=True)

        withdrawals = []
        for row in as_list(get_path(data, "result", "rows")):
            raw_status = get_str(row, "status")
            withdrawals.append(
                WithdrawalInfo(
                    id=get_str(row, "withdrawId", ""),
                    currency=get_str(row, "coin", ""),
                    amount=get_decimal(row, "amount"),
                    address=get_str(row, "toAddress", ""),
                    tag=get_str(row, "tag") or None,
                    network=get_str(row, "chain", ""),
                    status=self.normalizer.withdrawal(self.name, raw_status),
                    raw_status=raw_status,
                    timestamp=get_int(row, "createTime"),
                    fee=get_decimal(row, "withdrawFee"),
                )
            )
        return withdrawals

    @guarded(DEPOSIT_ADDRESS)
    async def get_deposit_address(self, currency: str, network: str | None = None) -> DepositAddress | None:
        params = {"coin": currency.upper()}
        if network:
            params["chainType"] = network
        data = await self._request("GET", "/v5/asset/deposit/query-address", params=params, signed=True)

        chains = as_list(get_path(data, "result", "chains"))
        if network:
            chains = [c for c in chains if network in (get_str(c, "chainType"), get_str(c, "chain"))]
        if not chains:
            return None
        chain = chains[0]
        return DepositAddress(
            currency=currency.upper(),
            address=get_str(chain, "addressDeposit", ""),
            tag=get_str(chain, "tagDeposit") or None,
            network=get_str(chain, "chain", ""),
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
        body: dict[str, Any] = {
            "coin": currency.upper(),
            "address": address,
            "amount": param_value(amount),
            "accountType": "FUND",
            "timestamp": self.context.clock(),
        }
        if network:
            body["chain"] = network
        if tag:
            body["tag"] = tag

        data = await self._request("POST", "/v5/asset/withdraw/create", body=body, signed=True)
        return WithdrawalInfo(
            id=get_str(get_path(data, "result"), "id", ""),
            currency=currency.upper(),
            amount=to_decimal(amount),
            address=address,
            tag=tag,
            network=network or "",
            status=OrderStatus.PENDING,
            timestamp=body["timestamp"],
        )
