"""Coinone exchange adapter (public v2, private v2.1)."""

from __future__ import annotations

import logging
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
from .normalization import extract_base_symbol

logger = logging.getLogger(__name__)

QUOTE = "KRW"


class CoinoneAdapter(BaseExchangeAdapter):
    """Coinone exchange adapter.

    Only the KRW market is listed. Every private call is a POST whose JSON
    body (with ``access_token`` and ``nonce``) is also the signed payload.
    """

    profile = ExchangeProfile(
        name="coinone",
        base_url="https://api.coinone.co.kr",
        signing=SigningVariant.NONCE_PAYLOAD,
        quote_currencies=(QUOTE,),
        code_base=3500,
        separator="-",
    )

    timeframes = {tf: tf for tf in ("1m", "5m", "15m", "30m", "1h", "4h", "1d", "1w")}

    def _check_response(self, payload: Any) -> Any:
        result = get_str(payload, "result")
        if result is not None and result != "success":
            message = get_str(payload, "error_msg") or f"error_code {get_str(payload, 'error_code', '?')}"
            raise ExchangeAPIError(self.name, message, payload=payload)
        return payload

    async def _private(self, endpoint: str, body: dict[str, Any] | None = None) -> Any:
        return await self._request("POST", f"/v2.1{endpoint}", body=body or {}, signed=True)

    def _pair(self, symbol: str) -> dict[str, str]:
        base, quote = extract_base_symbol(self.native_symbol(symbol), self.profile.quote_currencies)
        return {"quote_currency": quote or QUOTE, "target_currency": base}

    async def _load_symbols(self) -> None:
        data = await self._request("GET", f"/public/v2/markets/{QUOTE}")

        for item in as_list(get_path(data, "markets")):
            if get_str(item, "trade_status", "1") not in ("1", "true"):
                continue
            base = (get_str(item, "target_currency") or "").upper()
            quote = (get_str(item, "quote_currency") or QUOTE).upper()
            self.registry.register(
                f"{base}-{quote}",
                base,
                quote,
                comp_name=base,
                tick_size=item.get("price_unit"),
                qty_step=item.get("qty_unit"),
                min_qty=item.get("min_qty"),
                max_qty=item.get("max_qty"),
            )

    async def _fetch_states(self) -> list[AssetStatus]:
        data = await self._request("GET", "/public/v2/currencies")

        statuses = []
        for item in as_list(get_path(data, "currencies")):
            asset = (get_str(item, "symbol") or "").upper()
            if not asset:
                continue
            deposit = get_str(item, "deposit_status") == "normal"
            withdraw = get_str(item, "withdraw_status") == "normal"
            statuses.append(
                AssetStatus(
                    asset=asset,
                    deposit=deposit,
                    withdraw=withdraw,
                    chains=[
                        ChainStatus(
                            chain=asset,
                            network=asset,
                            deposit=deposit,
                            withdraw=withdraw,
                            min_withdrawal=get_decimal(item, "withdrawal_min_amount"),
                            withdraw_fee=get_decimal(item, "withdrawal_fee"),
                            min_confirm=get_int(item, "deposit_confirm_count"),
                        )
                    ],
                )
            )
        return statuses

    async def _fetch_snapshot(self) -> dict[str, RawTicker]:
        data = await self._request("GET", f"/public/v2/ticker_new/{QUOTE}")

        snapshot = {}
        for item in as_list(get_path(data, "tickers")):
            base = (get_str(item, "target_currency") or "").upper()
            if not base:
                continue
            quote = (get_str(item, "quote_currency") or QUOTE).upper()
            snapshot[f"{base}-{quote}"] = RawTicker.parse(
                last=item.get("last"),
                ask=get_path(item, "best_asks", 0, "price"),
                bid=get_path(item, "best_bids", 0, "price"),
                ask_qty=get_path(item, "best_asks", 0, "qty"),
                bid_qty=get_path(item, "best_bids", 0, "qty"),
                volume_24h=item.get("quote_volume"),
            )
        return snapshot

    @guarded(ORDERBOOK, Orderbook)
    async def get_orderbook(self, symbol: str, limit: int = 5) -> Orderbook:
        pair = self._pair(symbol)
        path = f"/public/v2/orderbook/{pair['quote_currency']}/{pair['target_currency']}"
        data = as_dict(await self._request("GET", path, params={"size": 5 if limit <= 5 else 15}))

        return Orderbook(
            timestamp=get_int(data, "timestamp"),
            asks=self._book_levels(data.get("asks"), limit, "price", "qty"),
            bids=self._book_levels(data.get("bids"), limit, "price", "qty"),
        )

    @guarded(CANDLES, list)
    async def get_candles(self, symbol: str, timeframe: str = "1m", since: int | None = None, limit: int = 100) -> list[Candle]:
        pair = self._pair(symbol)
        path = f"/public/v2/chart/{pair['quote_currency']}/{pair['target_currency']}"
        data = await self._request("GET", path, params={"interval": self.interval(timeframe), "size": min(limit, 500)})

        candles = [
            Candle(
                timestamp=get_int(item, "timestamp"),
                open=get_decimal(item, "open"),
                high=get_decimal(item, "high"),
                low=get_decimal(item, "low"),
                close=get_decimal(item, "close"),
                volume=get_decimal(item, "target_volume"),
            )
            for item in as_list(get_path(data, "chart"))
        ]
        return self._ordered_candles(candles, since, limit)

    @guarded(RECENT_TRADES, list)
    async def get_recent_trades(self, symbol: str, limit: int = 50) -> list[MarketTrade]:
        pair = self._pair(symbol)
        path = f"/public/v2/trades/{pair['quote_currency']}/{pair['target_currency']}"
        data = await self._request("GET", path, params={"size": min(limit, 200)})

        items = get_path(data, "transactions") or get_path(data, "trades")
        return [
            MarketTrade(
                id=get_str(item, "id", ""),
                side=SideType.BID if get_bool(item, "is_seller_maker") else SideType.ASK,
                price=get_decimal(item, "price"),
                amount=get_decimal(item, "qty"),
                timestamp=get_int(item, "timestamp"),
            )
            for item in as_list(items)[:limit]
        ]

    async def _balances(self) -> dict[str, BalanceInfo]:
        data = await self._private("/account/balance/all")

        balances = {}
        for item in as_list(get_path(data, "balances")):
            asset = (get_str(item, "currency") or "").upper()
            if not asset:
                continue
            balances[asset] = BalanceInfo(asset, free=get_decimal(item, "available"), used=get_decimal(item, "limit"))
        return balances

    @guarded(BALANCE, dict)
    async def get_balance(self) -> dict[str, BalanceInfo]:
        return await self._balances()

    @guarded(ACCOUNT)
    async def get_account(self) -> AccountInfo | None:
        # no account-info endpoint
        return AccountInfo(balances=await self._balances())

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
        pair = self._pair(symbol)

        body: dict[str, Any] = {
            **pair,
            "side": "BUY" if side.is_buy else "SELL",
            "type": "MARKET" if is_market else "LIMIT",
        }
        if is_market:
            # market buys are sized in KRW, market sells in the target asset
            body["amount" if side.is_buy else "qty"] = param_value(amount)
        else:
            body["qty"] = param_value(amount)
            body["post_only"] = False
            if price is not None:
                body["price"] = param_value(price)
        if client_order_id:
            body["user_order_id"] = client_order_id

        data = await self._private("/order", body)
        return OrderInfo(
            id=get_str(data, "order_id", ""),
            client_order_id=client_order_id,
            symbol=f"{pair['target_currency']}-{pair['quote_currency']}",
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
            raise ValueError("Coinone requires symbol to cancel order")

        body: dict[str, Any] = self._pair(symbol)
        if order_id:
            body["order_id"] = order_id
        elif client_order_id:
            body["user_order_id"] = client_order_id
        await self._private("/order/cancel", body)
        return True

    def _parse_order(self, item: dict[str, Any]) -> OrderInfo:
        raw_status = get_str(item, "status")
        base = (get_str(item, "target_currency") or "").upper()
        quote = (get_str(item, "quote_currency") or QUOTE).upper()
        amount = get_decimal(item, "original_qty")
        filled = get_decimal(item, "executed_qty")
        price = get_decimal(item, "price")
        return OrderInfo(
            id=get_str(item, "order_id", ""),
            client_order_id=get_str(item, "user_order_id") or None,
            symbol=f"{base}-{quote}",
            side=self.parse_side(get_str(item, "side")),
            type=(get_str(item, "type") or "limit").lower(),
            status=self.normalizer.order(self.name, raw_status),
            raw_status=raw_status,
            amount=amount,
            price=price or None,
            filled=filled,
            remaining=get_decimal(item, "remain_qty", amount - filled),
            fee=get_decimal(item, "fee"),
            fee_asset=(get_str(item, "fee_currency") or "").upper(),
            timestamp=get_int(item, "ordered_at"),
        )

    @guarded(GET_ORDER)
    async def get_order(self, order_id: str, symbol: str | None = None, client_order_id: str | None = None) -> OrderInfo | None:
        if not symbol:
            raise ValueError("Coinone requires symbol to look up an order")

        body: dict[str, Any] = self._pair(symbol)
        if order_id:
            body["order_id"] = order_id
        elif client_order_id:
            body["user_order_id"] = client_order_id
        data = await self._private("/order/detail", body)

        order = get_path(data, "order")
        if not order:
            return None
        return self._parse_order(as_dict(order))

    @guarded(OPEN_ORDERS, list)
    async def get_open_orders(self, symbol: str | None = None) -> list[OrderInfo]:
        body = self._pair(symbol) if symbol else {}
        data = await self._private("/order/active_orders", body)
        return [self._parse_order(item) for item in as_list(get_path(data, "active_orders"))]

    @guarded(ORDER_HISTORY, list)
    async def get_order_history(self, symbol: str | None = None, limit: int = 100) -> list[OrderInfo]:
        body: dict[str, Any] = {"size": min(limit, 100)}
        if symbol:
            body.update(self._pair(symbol))
        data = await self._private("/order/completed_orders", body)

        # completed orders come back one row per fill
        orders = []
        for item in as_list(get_path(data, "completed_orders"))[:limit]:
            base = (get_str(item, "target_currency") or "").upper()
            quote = (get_str(item, "quote_currency") or QUOTE).upper()
            qty = get_decimal(item, "qty")
            orders.append(
                OrderInfo(
                    id=get_str(item, "order_id", ""),
                    symbol=f"{base}-{quote}",
                    side=SideType.ASK if get_str(item, "is_ask") in ("true", "1") else SideType.BID,
                    type=(get_str(item, "order_type") or "limit").lower(),
                    status=OrderStatus.CLOSED,
                    amount=qty,
                    price=get_decimal(item, "price") or None,
                    filled=qty,
                    fee=get_decimal(item, "fee"),
                    fee_asset=(get_str(item, "fee_currency") or quote).upper(),
                    timestamp=get_int(item, "timestamp"),
                )
            )
        return orders

    @guarded(TRADE_HISTORY, list)
    async def get_trade_history(self, symbol: str | None = None, limit: int = 100) -> list[TradeInfo]:
        body: dict[str, Any] = {"size": min(limit, 100)}
        if symbol:
            body.update(self._pair(symbol))
        data = await self._private("/order/completed_orders", body)

        trades = []
        for item in as_list(get_path(data, "completed_orders")):
            base = (get_str(item, "target_currency") or "").upper()
            quote = (get_str(item, "quote_currency") or QUOTE).upper()
            trades.append(
                TradeInfo(
                    id=get_str(item, "trade_id", ""),
                    order_id=get_str(item, "order_id", ""),
                    symbol=f"{base}-{quote}",
                    side=SideType.ASK if get_str(item, "is_ask") in ("true", "1") else SideType.BID,
                    amount=get_decimal(item, "qty"),
                    price=get_decimal(item, "price"),
                    fee=get_decimal(item, "fee"),
                    fee_asset=(get_str(item, "fee_currency") or "").upper(),
                    timestamp=get_int(item, "timestamp"),
                )
            )
        return trades

    async def _transactions(self, is_deposit: bool, currency: str | None, limit: int) -> list[Any]:
        body: dict[str, Any] = {"is_deposit": is_deposit, "size": min(limit, 100)}
        if currency:
            body["currency"] = currency.upper()
        data = await self._private("/transaction/coin/history", body)
        return as_list(get_path(data, "transactions"))

    @guarded(DEPOSITS, list)
    async def get_deposit_history(self, currency: str | None = None, limit: int = 100) -> list[DepositInfo]:
        deposits = []
        for item in await self._transactions(True, currency, limit):
            raw_status = get_str(item, "status")
            deposits.append(
                DepositInfo(
                    id=get_str(item, "id", ""),
                    currency=(get_str(item, "currency") or "").upper(),
                    amount=get_decimal(item, "amount"),
                    address=get_str(item, "address", ""),
                    tag=get_str(item, "secondary_address") or None,
                    network=(get_str(item, "currency") or "").upper(),
                    status=self.normalizer.deposit(self.name, raw_status),
                    raw_status=raw_status,
                    timestamp=get_int(item, "created_at"),
                    txid=get_str(item, "txid", ""),
                )
            )
        return deposits

    @guarded(WITHDRAWALS, list)
    async def get_withdrawal_history(self, currency: str | None = None, limit: int = 100) -> list[WithdrawalInfo]:
        withdrawals = []
        for item in await self._transactions(False, currency, limit):
            raw_status = get_str(item, "status")
            withdrawals.append(
                WithdrawalInfo(
                    id=get_str(item, "id", ""),
                    currency=(get_str(item, "currency") or "").upper(),
                    amount=get_decimal(item, "amount"),
                    address=get_str(item, "address", ""),
                    tag=get_str(item, "secondary_address") or None,
                    network=(get_str(item, "currency") or "").upper(),
                    status=self.normalizer.withdrawal(self.name, raw_status),
                    raw_status=raw_status,
                    timestamp=get_int(item, "created_at"),
                    fee=get_decimal(item, "fee"),
                )
            )
        return withdrawals

    @guarded(DEPOSIT_ADDRESS)
    async def get_deposit_address(self, currency: str, network: str | None = None) -> DepositAddress | None:
        data = await self._private("/wallet/deposit_address", {"currency": currency.lower()})

        info = get_path(data, "deposit_address")
        if not get_str(info, "address"):
            return None
        return DepositAddress(
            currency=currency.upper(),
            address=get_str(info, "address", ""),
            tag=get_str(info, "tag") or None,
            network=(network or get_str(info, "network") or currency).upper(),
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
        body: dict[str, Any] = {"currency": currency.upper(), "amount": param_value(amount), "address": address}
        if tag:
            body["secondary_address"] = tag
        data = await self._private("/transaction/coin/withdrawal", body)

        item = as_dict(get_path(data, "transaction"))
        raw_status = get_str(item, "status")
        return WithdrawalInfo(
            id=get_str(item, "id", ""),
            currency=currency.upper(),
            amount=to_decimal(amount),
            address=address,
            tag=tag,
            network=(network or currency).upper(),
            status=self.normalizer.withdrawal(self.name, raw_status) if raw_status else OrderStatus.PENDING,
            raw_status=raw_status,
            timestamp=get_int(item, "created_at") or self.context.clock(),
            fee=get_decimal(item, "fee"),
        )
