"""KuCoin exchange adapter."""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Any

from ..core.jsonsafe import as_dict, as_list, get_bool, get_decimal, get_int, get_path, get_str, to_decimal
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


def order_state(item: dict[str, Any]) -> str:
    """Collapse KuCoin's ``isActive``/``cancelExist`` flags into one status word."""
    if get_bool(item, "isActive"):
        return "ACTIVE"
    if get_bool(item, "cancelExist"):
        return "CANCELED"
    return "DONE"


class KuCoinAdapter(BaseExchangeAdapter):
    """KuCoin exchange adapter.

    Every private call needs the API passphrase in addition to key and
    secret. Responses come wrapped in ``{"code": "200000", "data": ...}``.
    """

    profile = ExchangeProfile(
        name="kucoin",
        base_url="https://api.kucoin.com",
        sandbox_url="https://openapi-sandbox.kucoin.com",
        signing=SigningVariant.PASSPHRASE,
        quote_currencies=("USDT", "BTC"),
        rate_quotes=("USDT",),
        code_base=4000,
        separator="-",
    )

    timeframes = {
        "1m": "1min",
        "3m": "3min",
        "5m": "5min",
        "15m": "15min",
        "30m": "30min",
        "1h": "1hour",
        "2h": "2hour",
        "4h": "4hour",
        "6h": "6hour",
        "12h": "12hour",
        "1d": "1day",
        "1w": "1week",
    }

    def _check_response(self, payload: Any) -> Any:
        code = get_str(payload, "code")
        if code is not None and code != "200000":
            raise ExchangeAPIError(self.name, get_str(payload, "msg", "request failed"), payload=payload)
        return payload

    async def _load_symbols(self) -> None:
        data = await self._request("GET", "/api/v2/symbols")

        for item in as_list(get_path(data, "data")):
            if not get_bool(item, "enableTrading", True):
                continue
            self.registry.register(
                get_str(item, "symbol", ""),
                get_str(item, "baseCurrency", ""),
                get_str(item, "quoteCurrency", ""),
                separator="-",
                tick_size=item.get("priceIncrement"),
                min_qty=item.get("baseMinSize"),
                max_qty=item.get("baseMaxSize"),
                qty_step=item.get("baseIncrement"),
            )

    async def _fetch_states(self) -> list[AssetStatus]:
        data = await self._request("GET", "/api/v3/currencies")

        statuses = []
        for item in as_list(get_path(data, "data")):
            asset = get_str(item, "currency")
            if not asset:
                continue
            chains = [
                ChainStatus(
                    chain=get_str(chain, "chainName", ""),
                    network=get_str(chain, "chainId", "").upper(),
                    deposit=get_bool(chain, "isDepositEnabled"),
                    withdraw=get_bool(chain, "isWithdrawEnabled"),
                    min_withdrawal=get_decimal(chain, "withdrawalMinSize"),
                    withdraw_fee=get_decimal(chain, "withdrawalMinFee"),
                    min_confirm=get_int(chain, "confirms"),
                )
                for chain in as_list(item.get("chains"))
                if get_str(chain, "chainName")
            ]
            # currencies without chains are fiat or delisted
            if chains:
                statuses.append(AssetStatus(asset=asset, chains=chains))
        return statuses

    async def _fetch_snapshot(self) -> dict[str, RawTicker]:
        data = await self._request("GET", "/api/v1/market/allTickers")

        snapshot = {}
        for item in as_list(get_path(data, "data", "ticker")):
            symbol = get_str(item, "symbol")
            if not symbol:
                continue
            snapshot[symbol] = RawTicker.parse(
                last=item.get("last"),
                ask=item.get("sell"),
                bid=item.get("buy"),
                ask_qty=item.get("bestAskSize"),
                bid_qty=item.get("bestBidSize"),
                volume_24h=item.get("volValue"),
            )
        return snapshot

    @guarded(ORDERBOOK, Orderbook)
    async def get_orderbook(self, symbol: str, limit: int = 5) -> Orderbook:
        params = {"symbol": self.native_symbol(symbol)}
        data = await self._request("GET", "/api/v1/market/orderbook/level2_20", params=params)

        book = as_dict(get_path(data, "data"))
        return Orderbook(
            timestamp=get_int(book, "time"),
            asks=self._book_levels(book.get("asks"), limit),
            bids=self._book_levels(book.get("bids"), limit),
        )

    @guarded(CANDLES, list)
    async def get_candles(self, symbol: str, timeframe: str = "1m", since: int | None = None, limit: int = 100) -> list[Candle]:
        params: dict[str, Any] = {"symbol": self.native_symbol(symbol), "type": self.interval(timeframe)}
        if since is not None:
            params["startAt"] = since // 1000
        data = await self._request("GET", "/api/v1/market/candles", params=params)

        # rows are [time (s), open, close, high, low, volume, turnover], newest first
        candles = [
            self._candle_row(row, columns=(1, 3, 4, 2, 5), time_scale=1000)
            for row in as_list(get_path(data, "data"))
        ]
        return self._ordered_candles(candles, since, limit)

    @guarded(RECENT_TRADES, list)
    async def get_recent_trades(self, symbol: str, limit: int = 50) -> list[MarketTrade]:
        data = await self._request("GET", "/api/v1/market/histories", params={"symbol": self.native_symbol(symbol)})

        return [
            MarketTrade(
                id=get_str(item, "sequence", ""),
                side=self.parse_side(get_str(item, "side")),
                price=get_decimal(item, "price"),
                amount=get_decimal(item, "size"),
                # nanoseconds
                timestamp=get_int(item, "time") // 1_000_000,
            )
            for item in as_list(get_path(data, "data"))[:limit]
        ]

    async def _accounts(self, account_type: str | None = None) -> dict[str, BalanceInfo]:
        params = {"type": account_type} if account_type else None
        data = await self._request("GET", "/api/v1/accounts", params=params, signed=True)

        balances: dict[str, BalanceInfo] = {}
        for account in as_list(get_path(data, "data")):
            asset = get_str(account, "currency")
            if not asset or get_str(account, "type") not in ("main", "trade"):
                continue
            balance = balances.setdefault(asset, BalanceInfo(asset))
            balance.free += get_decimal(account, "available")
            balance.used += get_decimal(account, "holds")
        return balances

    @guarded(BALANCE, dict)
    async def get_balance(self) -> dict[str, BalanceInfo]:
        return await self._accounts("trade")

    @guarded(ACCOUNT)
    async def get_account(self) -> AccountInfo | None:
        # no account-info endpoint; main and trade accounts are summed per asset
        return AccountInfo(balances=await self._accounts())

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
        client_order_id = client_order_id or uuid.uuid4().hex

        body: dict[str, Any] = {
            "clientOid": client_order_id,
            "side": "buy" if side.is_buy else "sell",
            "symbol": native,
            "type": order_type,
            "size": param_value(amount),
        }
        if order_type == "limit" and price is not None:
            body["price"] = param_value(price)

        data = await self._request("POST", "/api/v1/orders", body=body, signed=True)
        return OrderInfo(
            id=get_str(get_path(data, "data"), "orderId", ""),
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
        if order_id:
            path = f"/api/v1/orders/{order_id}"
        elif client_order_id:
            path = f"/api/v1/order/client-order/{client_order_id}"
        else:
            raise ValueError("order_id or client_order_id is required")
        await self._request("DELETE", path, signed=True)
        return True

    def _parse_order(self, item: dict[str, Any]) -> OrderInfo:
        raw_status = order_state(item)
        amount = get_decimal(item, "size")
        filled = get_decimal(item, "dealSize")
        price = get_decimal(item, "price")
        return OrderInfo(
            id=get_str(item, "id", ""),
            client_order_id=get_str(item, "clientOid") or None,
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
            fee_asset=get_str(item, "feeCurrency", ""),
            timestamp=get_int(item, "createdAt"),
        )

    @guarded(GET_ORDER)
    async def get_order(self, order_id: str, symbol: str | None = None, client_order_id: str | None = None) -> OrderInfo | None:
        if order_id:
            path = f"/api/v1/orders/{order_id}"
        elif client_order_id:
            path = f"/api/v1/order/client-order/{client_order_id}"
        else:
            raise ValueError("order_id or client_order_id is required")

        data = await self._request("GET", path, signed=True)
        item = get_path(data, "data")
        if not item:
            return None
        return self._parse_order(as_dict(item))

    @guarded(OPEN_ORDERS, list)
    async def get_open_orders(self, symbol: str | None = None) -> list[OrderInfo]:
        params = {"status": "active"}
        if symbol:
            params["symbol"] = self.native_symbol(symbol)
        data = await self._request("GET", "/api/v1/orders", params=params, signed=True)
        return [self._parse_order(item) for item in as_list(get_path(data, "data", "items"))]

    @guarded(ORDER_HISTORY, list)
    async def get_order_history(self, symbol: str | None = None, limit: int = 100) -> list[OrderInfo]:
        params: dict[str, Any] = {"status": "done", "pageSize": min(limit, 500)}
        if symbol:
            params["symbol"] = self.native_symbol(symbol)
        data = await self._request("GET", "/api/v1/orders", params=params, signed=True)
        return [self._parse_order(item) for item in as_list(get_path(data, "data", "items"))]

    @guarded(TRADE_HISTORY, list)
    async def get_trade_history(self, symbol: str | None = None, limit: int = 100) -> list[TradeInfo]:
        params: dict[str, Any] = {"pageSize": min(limit, 500)}
        if symbol:
            params["symbol"] = self.native_symbol(symbol)
        data = await self._request("GET", "/api/v1/fills", params=params, signed=True)

        return [
            TradeInfo(
                id=get_str(item, "tradeId", ""),
                order_id=get_str(item, "orderId", ""),
                symbol=get_str(item, "symbol", ""),
                side=self.parse_side(get_str(item, "side")),
                amount=get_decimal(item, "size"),
                price=get_decimal(item, "price"),
                fee=get_decimal(item, "fee"),
                fee_asset=get_str(item, "feeCurrency", ""),
                timestamp=get_int(item, "createdAt"),
            )
            for item in as_list(get_path(data, "data", "items"))
        ]

    @guarded(DEPOSITS, list)
    async def get_deposit_history(self, currency: str | None = None, limit: int = 100) -> list[DepositInfo]:
        params: dict[str, Any] = {"pageSize": min(limit, 500)}
        if currency:
            params["currency"] = currency.upper()
        data = await self._request("GET", "/api/v1/deposits", params=params, signed=True)

        deposits = []
        for item in as_list(get_path(data, "data", "items")):
            raw_status = get_str(item, "status")
            txid = get_str(item, "walletTxId", "")
            deposits.append(
                DepositInfo(
                    id=txid,
                    currency=get_str(item, "currency", ""),
                    amount=get_decimal(item, "amount"),
                    address=get_str(item, "address", ""),
                    tag=get_str(item, "memo") or None,
                    network=get_str(item, "chain", "").upper(),
                    status=self.normalizer.deposit(self.name, raw_status),
                    raw_status=raw_status,
                    timestamp=get_int(item, "createdAt"),
                    txid=txid,
                )
            )
        return deposits

    @guarded(WITHDRAWALS, list)
    async def get_withdrawal_history(self, currency: str | None = None, limit: int = 100) -> list[WithdrawalInfo]:
        params: dict[str, Any] = {"pageSize": min(limit, 500)}
        if currency:
            params["currency"] = currency.upper()
        data = await self._request("GET", "/api/v1/withdrawals", params=params, signed=True)

        withdrawals = []
        for item in as_list(get_path(data, "data", "items")):
            raw_status = get_str(item, "status")
            withdrawals.append(
                WithdrawalInfo(
                    id=get_str(item, "id", ""),
                    currency=get_str(item, "currency", ""),
                    amount=get_decimal(item, "amount"),
                    address=get_str(item, "address", ""),
                    tag=get_str(item, "memo") or None,
                    network=get_str(item, "chain", "").upper(),
                    status=self.normalizer.withdrawal(self.name, raw_status),
                    raw_status=raw_status,
                    timestamp=get_int(item, "createdAt"),
                    fee=get_decimal(item, "fee"),
                )
            )
        return withdrawals

    @guarded(DEPOSIT_ADDRESS)
    async def get_deposit_address(self, currency: str, network: str | None = None) -> DepositAddress | None:
        params = {"currency": currency.upper()}
        if network:
            params["chain"] = network.lower()
        data = await self._request("GET", "/api/v1/deposit-addresses", params=params, signed=True)

        item = as_dict(get_path(data, "data"))
        if not get_str(item, "address"):
            return None
        return DepositAddress(
            currency=currency.upper(),
            address=get_str(item, "address", ""),
            tag=get_str(item, "memo") or None,
            network=get_str(item, "chain", "").upper(),
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
        body: dict[str, Any] = {"currency": currency.upper(), "address": address, "amount": param_value(amount)}
        if tag:
            body["memo"] = tag
        if network:
            body["chain"] = network.lower()

        data = await self._request("POST", "/api/v1/withdrawals", body=body, signed=True)
        return WithdrawalInfo(
            id=get_str(get_path(data, "data"), "withdrawalId", ""),
            currency=currency.upper(),
            amount=to_decimal(amount),
            address=address,
            tag=tag,
            network=(network or "").upper(),
            status=OrderStatus.PENDING,
            timestamp=self.context.clock(),
        )
