"""Tests for exchange adapters with mocked HTTP responses."""

import json
from decimal import Decimal
from urllib.parse import parse_qsl, urlsplit

import pytest

from exgate.core.models import Candle, SideType
from exgate.core.profile import ExchangeProfile
from exgate.core.signing import SigningVariant
from exgate.core.status import OrderStatus
from exgate.errors import MissingCredentialError
from exgate.exchanges.base import BaseExchangeAdapter
from exgate.exchanges.binanceus import BinanceUSAdapter
from exgate.exchanges.bybit import BybitAdapter
from exgate.exchanges.coinone import CoinoneAdapter
from exgate.exchanges.korbit import CURRENCIES_URL, KorbitAdapter
from exgate.exchanges.kucoin import KuCoinAdapter, order_state
from helpers import attach, create_async_response, sent


def query_of(url):
    return dict(parse_qsl(urlsplit(url).query))


BYBIT_INSTRUMENTS = {
    "retCode": 0,
    "retMsg": "OK",
    "result": {
        "list": [
            {
                "symbol": "BTCUSDT",
                "baseCoin": "BTC",
                "quoteCoin": "USDT",
                "status": "Trading",
                "priceFilter": {"tickSize": "0.01"},
                "lotSizeFilter": {"minOrderQty": "0.000048", "maxOrderQty": "71.73956243", "basePrecision": "0.000001"},
            },
            {"symbol": "ETHUSDT", "baseCoin": "ETH", "quoteCoin": "USDT", "status": "Trading"},
            {"symbol": "BTCEUR", "baseCoin": "BTC", "quoteCoin": "EUR", "status": "Trading"},
            {"symbol": "OLDUSDT", "baseCoin": "OLD", "quoteCoin": "USDT", "status": "Closed"},
        ]
    },
}

BYBIT_TICKERS = {
    "retCode": 0,
    "result": {
        "list": [
            {
                "symbol": "BTCUSDT",
                "lastPrice": "50000",
                "ask1Price": "50001",
                "bid1Price": "49999",
                "ask1Size": "1.5",
                "bid1Size": "2",
                "turnover24h": "1000000",
            }
        ]
    },
}


class TestBybitAdapter:
    """Tests for Bybit adapter."""

    @pytest.mark.asyncio
    async def test_discovery_and_markets(self, context, sink, mock_session):
        adapter = BybitAdapter(context=context, exchange_rate=1300)
        session = attach(adapter, mock_session(BYBIT_INSTRUMENTS, BYBIT_TICKERS))

        assert await adapter.verify_symbols() is True
        assert adapter.alive is True
        assert [s.symbol for s in adapter.registry] == ["BTCUSDT", "ETHUSDT"]
        assert adapter.registry.get("BTCUSDT").tick_size == Decimal("0.01")

        tickers = adapter.build_tickers()
        assert await adapter.get_markets(tickers) is True

        btc, eth = tickers.items
        assert btc.last_price == Decimal(65_000_000)
        assert btc.ask_price == Decimal(65_001_300)
        assert btc.ask_qty == Decimal("1.5")
        assert btc.volume_24h == Decimal(1300)
        assert eth.is_dead
        assert sink.events == [("bybit", "not found: ETHUSDT", 3305)]

        method, url, kwargs = sent(session, 0)
        assert method == "GET"
        assert url == "https://api.bybit.com/v5/market/instruments-info?category=spot"
        assert kwargs["headers"]["User-Agent"].startswith("exgate/")

    @pytest.mark.asyncio
    async def test_vendor_error_marks_not_alive(self, context, sink, mock_session):
        adapter = BybitAdapter(context=context)
        attach(adapter, mock_session({"retCode": 10001, "retMsg": "params error"}))

        assert await adapter.verify_symbols() is False
        assert adapter.alive is False
        assert sink.codes == [3301]

    @pytest.mark.asyncio
    async def test_failed_rediscovery_keeps_previous_symbols(self, context, sink, mock_session):
        adapter = BybitAdapter(context=context)
        attach(adapter, mock_session(BYBIT_INSTRUMENTS, {"retCode": 10002, "retMsg": "timeout"}))

        assert await adapter.verify_symbols() is True
        generation = adapter.registry.generation

        assert await adapter.verify_symbols() is False
        assert adapter.alive is False
        assert [s.symbol for s in adapter.registry] == ["BTCUSDT", "ETHUSDT"]
        assert adapter.registry.generation == generation
        assert sink.codes == [3301]

    @pytest.mark.asyncio
    async def test_rediscovery_starts_new_generation(self, context, mock_session):
        adapter = BybitAdapter(context=context)
        attach(adapter, mock_session(BYBIT_INSTRUMENTS, BYBIT_INSTRUMENTS))

        await adapter.verify_symbols()
        first = adapter.registry.generation
        await adapter.verify_symbols()

        assert adapter.registry.generation == first + 1
        assert len(adapter.registry) == 2

    @pytest.mark.asyncio
    async def test_http_error_reported(self, context, sink, mock_session):
        adapter = BybitAdapter(context=context)
        attach(adapter, mock_session(create_async_response(502, text="bad gateway")))

        assert await adapter.get_markets(adapter.build_tickers()) is False
        assert sink.codes == [3306]
        assert "502" in str(sink.events[0][1])

    @pytest.mark.asyncio
    async def test_public_adapter_cannot_sign(self, context):
        adapter = BybitAdapter(context=context)
        assert adapter.is_public

        with pytest.raises(MissingCredentialError):
            await adapter.get_balance()

    def test_partial_credentials_rejected(self):
        with pytest.raises(MissingCredentialError):
            BybitAdapter("key_only", "")

    @pytest.mark.asyncio
    async def test_verify_states(self, api_key, api_secret, context, sink, mock_session):
        adapter = BybitAdapter(api_key, api_secret, context=context)
        attach(
            adapter,
            mock_session(
                BYBIT_INSTRUMENTS,
                {
                    "retCode": 0,
                    "result": {
                        "rows": [
                            {
                                "coin": "BTC",
                                "chains": [
                                    {"chain": "BTC", "chainType": "BTC", "chainDeposit": "1", "chainWithdraw": "0", "withdrawFee": "0.0005", "confirmation": "1"},
                                    {"chain": "LN", "chainType": "LN", "chainDeposit": "0", "chainWithdraw": "0"},
                                ],
                            }
                        ]
                    },
                },
            ),
        )

        await adapter.verify_symbols()
        tickers = adapter.build_tickers()
        assert await adapter.verify_states(tickers) is True

        state = tickers.state_for("BTC")
        assert state.deposit is True
        assert state.withdraw is False
        assert [n.name for n in state.networks] == ["BTC-BTC", "BTC-LN"]
        assert state.networks[0].withdraw_fee == Decimal("0.0005")
        assert tickers.items[0].withdraw is False
        assert tickers.items[0].network is True
        assert sink.events[-1] == ("bybit", "checking deposit & withdraw status...", 3302)

    @pytest.mark.asyncio
    async def test_get_balance(self, api_key, api_secret, context, mock_session):
        adapter = BybitAdapter(api_key, api_secret, context=context)
        session = attach(
            adapter,
            mock_session(
                {
                    "retCode": 0,
                    "result": {"list": [{"coin": [{"coin": "USDT", "walletBalance": "1500", "locked": "500"}]}]},
                }
            ),
        )

        balances = await adapter.get_balance()

        assert balances["USDT"].free == Decimal(1000)
        assert balances["USDT"].used == Decimal(500)
        assert balances["USDT"].total == Decimal(1500)

        _, url, kwargs = sent(session)
        assert query_of(url) == {"accountType": "UNIFIED"}
        assert kwargs["headers"]["X-BAPI-API-KEY"] == api_key
        assert "X-BAPI-SIGN" in kwargs["headers"]

    @pytest.mark.asyncio
    async def test_place_order(self, api_key, api_secret, context, mock_session):
        adapter = BybitAdapter(api_key, api_secret, context=context)
        session = attach(adapter, mock_session({"retCode": 0, "result": {"orderId": "1001", "orderLinkId": "cid"}}))

        order = await adapter.place_order("BTC/USDT", "buy", "limit", Decimal("0.01"), Decimal(50000), "cid")

        assert order.id == "1001"
        assert order.status == OrderStatus.OPEN
        assert order.side is SideType.BID
        method, url, kwargs = sent(session)
        assert method == "POST"
        assert url == "https://api.bybit.com/v5/order/create"
        assert json.loads(kwargs["data"]) == {
            "category": "spot",
            "symbol": "BTCUSDT",
            "side": "Buy",
            "orderType": "Limit",
            "qty": "0.01",
            "price": "50000",
            "orderLinkId": "cid",
        }

    @pytest.mark.asyncio
    async def test_cancel_requires_symbol(self, api_key, api_secret, context, sink):
        adapter = BybitAdapter(api_key, api_secret, context=context)

        assert await adapter.cancel_order("1001") is False
        assert sink.codes == [3342]

    @pytest.mark.asyncio
    async def test_get_order_falls_back_to_history(self, api_key, api_secret, context, mock_session):
        adapter = BybitAdapter(api_key, api_secret, context=context)
        attach(
            adapter,
            mock_session(
                {"retCode": 0, "result": {"list": []}},
                {
                    "retCode": 0,
                    "result": {
                        "list": [
                            {
                                "orderId": "1001",
                                "symbol": "BTCUSDT",
                                "side": "Sell",
                                "orderType": "Limit",
                                "orderStatus": "Filled",
                                "qty": "0.01",
                                "cumExecQty": "0.01",
                                "leavesQty": "0",
                                "price": "50000",
                            }
                        ]
                    },
                },
            ),
        )

        order = await adapter.get_order("1001", "BTCUSDT")

        assert order.status == OrderStatus.CLOSED
        assert order.raw_status == "Filled"
        assert order.side is SideType.ASK
        assert order.filled == Decimal("0.01")

    @pytest.mark.asyncio
    async def test_get_candles_oldest_first(self, context, mock_session):
        adapter = BybitAdapter(context=context)
        session = attach(
            adapter,
            mock_session(
                {
                    "retCode": 0,
                    "result": {
                        "list": [
                            ["1700003600000", "101", "103", "100", "102", "5", "510"],
                            ["1700000000000", "100", "102", "99", "101", "4", "400"],
                        ]
                    },
                }
            ),
        )

        candles = await adapter.get_candles("BTC/USDT", "1h", limit=2)

        assert [c.timestamp for c in candles] == [1_700_000_000_000, 1_700_003_600_000]
        assert candles[0].low == Decimal(99)
        assert candles[1].close == Decimal(102)
        assert candles[1].volume == Decimal(5)
        _, url, _ = sent(session)
        assert url.startswith("https://api.bybit.com/v5/market/kline?")
        assert query_of(url) == {"category": "spot", "symbol": "BTCUSDT", "interval": "60", "limit": "2"}

    @pytest.mark.asyncio
    async def test_unsupported_timeframe_reported(self, context, sink, mock_session):
        adapter = BybitAdapter(context=context)
        session = attach(adapter, mock_session())

        assert await adapter.get_candles("BTC/USDT", "2d") == []
        assert sink.codes == [3308]
        assert "2d" in str(sink.events[0][1])
        session.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_recent_trades(self, context, mock_session):
        adapter = BybitAdapter(context=context)
        session = attach(
            adapter,
            mock_session(
                {
                    "retCode": 0,
                    "result": {
                        "list": [
                            {"execId": "e1", "price": "60000", "size": "0.1", "side": "Sell", "time": "1700000000000"},
                            {"execId": "e2", "price": "60001", "size": "0.2", "side": "Buy", "time": "1699999999000"},
                        ]
                    },
                }
            ),
        )

        trades = await adapter.get_recent_trades("BTC/USDT", limit=100)

        assert [t.id for t in trades] == ["e1", "e2"]
        assert trades[0].side is SideType.ASK
        assert trades[1].side is SideType.BID
        assert trades[0].price == Decimal(60000)
        assert trades[0].timestamp == 1_700_000_000_000
        assert query_of(sent(session)[1])["limit"] == "60"

    @pytest.mark.asyncio
    async def test_get_order_history(self, api_key, api_secret, context, mock_session):
        adapter = BybitAdapter(api_key, api_secret, context=context)
        session = attach(
            adapter,
            mock_session(
                {
                    "retCode": 0,
                    "result": {
                        "list": [
                            {
                                "orderId": "1002",
                                "symbol": "BTCUSDT",
                                "side": "Buy",
                                "orderType": "Limit",
                                "orderStatus": "Cancelled",
                                "qty": "0.02",
                                "cumExecQty": "0",
                                "leavesQty": "0",
                                "price": "49000",
                            }
                        ]
                    },
                }
            ),
        )

        orders = await adapter.get_order_history("BTC/USDT")

        assert len(orders) == 1
        assert orders[0].status == OrderStatus.CANCELED
        assert orders[0].price == Decimal(49000)
        _, url, kwargs = sent(session)
        params = query_of(url)
        assert url.startswith("https://api.bybit.com/v5/order/history?")
        assert params["symbol"] == "BTCUSDT"
        assert params["limit"] == "50"
        assert "X-BAPI-SIGN" in kwargs["headers"]

    @pytest.mark.asyncio
    async def test_get_deposit_address_picks_network(self, api_key, api_secret, context, mock_session):
        adapter = BybitAdapter(api_key, api_secret, context=context)
        session = attach(
            adapter,
            mock_session(
                {
                    "retCode": 0,
                    "result": {
                        "coin": "USDT",
                        "chains": [
                            {"chainType": "ERC20", "addressDeposit": "0xabc", "tagDeposit": "", "chain": "ETH"},
                            {"chainType": "TRC20", "addressDeposit": "Tabc", "tagDeposit": "", "chain": "TRX"},
                        ],
                    },
                }
            ),
        )

        address = await adapter.get_deposit_address("usdt", "TRC20")

        assert address.address == "Tabc"
        assert address.tag is None
        assert address.network == "TRX"
        assert query_of(sent(session)[1])["coin"] == "USDT"

    @pytest.mark.asyncio
    async def test_get_account(self, api_key, api_secret, context, mock_session):
        adapter = BybitAdapter(api_key, api_secret, context=context)
        attach(
            adapter,
            mock_session(
                {
                    "retCode": 0,
                    "result": {
                        "userID": 42,
                        "readOnly": 0,
                        "permissions": {"Spot": ["SpotTrade"], "Wallet": ["AccountTransfer"]},
                    },
                },
                {"retCode": 0, "result": {"list": [{"coin": [{"coin": "BTC", "walletBalance": "1", "locked": "0"}]}]}},
            ),
        )

        account = await adapter.get_account()

        assert account.id == "42"
        assert account.can_trade is True
        assert account.can_withdraw is False
        assert account.balances["BTC"].total == Decimal(1)

    @pytest.mark.asyncio
    async def test_withdraw(self, api_key, api_secret, context, mock_session):
        adapter = BybitAdapter(api_key, api_secret, context=context)
        session = attach(adapter, mock_session({"retCode": 0, "result": {"id": "w-1"}}))

        withdrawal = await adapter.withdraw("usdt", Decimal("1.5"), "Tabc", network="TRX")

        assert withdrawal.id == "w-1"
        assert withdrawal.status == OrderStatus.PENDING
        assert withdrawal.timestamp == 1_700_000_000_000
        method, url, kwargs = sent(session)
        assert (method, url) == ("POST", "https://api.bybit.com/v5/asset/withdraw/create")
        assert json.loads(kwargs["data"]) == {
            "coin": "USDT",
            "address": "Tabc",
            "amount": "1.5",
            "accountType": "FUND",
            "timestamp": 1_700_000_000_000,
            "chain": "TRX",
        }


KORBIT_TICKERS = {
    "btc_krw": {"last": "90000000", "bid": "89990000", "ask": "90010000", "volume": "100"},
    "eth_btc": {"last": "0.05", "bid": "0.049", "ask": "0.051", "volume": "2000"},
    "xrp_eur": {"last": "1", "volume": "1"},
}


class TestKorbitAdapter:
    """Tests for Korbit adapter."""

    @pytest.mark.asyncio
    async def test_markets_with_btc_conversion(self, context, mock_session):
        adapter = KorbitAdapter(context=context)
        attach(adapter, mock_session(KORBIT_TICKERS, KORBIT_TICKERS))

        assert await adapter.verify_symbols() is True
        assert sorted(s.symbol for s in adapter.registry) == ["btc_krw", "eth_btc"]

        tickers = adapter.build_tickers()
        await adapter.get_markets(tickers)

        btc = tickers.find("btc_krw")
        eth = tickers.find("eth_btc")
        assert context.btc_fiat_price == Decimal(90_000_000)
        assert btc.last_price == Decimal(90_000_000)
        # volume is base-denominated: 100 BTC * 90M KRW
        assert btc.volume_24h == Decimal(9000)
        assert eth.last_price == Decimal(4_500_000)
        assert eth.base_name == "ETH"

    @pytest.mark.asyncio
    async def test_states_from_portal(self, context, mock_session):
        adapter = KorbitAdapter(context=context)
        session = attach(
            adapter,
            mock_session(
                KORBIT_TICKERS,
                [
                    {"currency_type": "crypto", "symbol": "eth", "currency_network": "Mainnet", "deposit_status": "launched", "withdrawal_status": "stopped", "withdrawal_tx_fee": "0.01"},
                    {"currency_type": "crypto", "symbol": "eth", "currency_network": "Arbitrum-One", "deposit_status": "stopped", "withdrawal_status": "launched"},
                    {"currency_type": "fiat", "symbol": "krw"},
                ],
            ),
        )

        await adapter.verify_symbols()
        tickers = adapter.build_tickers()
        assert await adapter.verify_states(tickers) is True

        _, url, kwargs = sent(session, 1)
        assert url == CURRENCIES_URL
        assert kwargs["headers"]["platform-identifier"] == "witcher_android"

        state = tickers.state_for("ETH")
        assert state.deposit is True
        assert state.withdraw is True
        assert [n.name for n in state.networks] == ["ETH-Mainnet", "ETH-Arbitrum-One"]
        assert tickers.state_for("KRW") is None

    @pytest.mark.asyncio
    async def test_signed_balance(self, api_key, api_secret, context, mock_session):
        adapter = KorbitAdapter(api_key, api_secret, context=context)
        session = attach(
            adapter,
            mock_session(
                {
                    "krw": {"available": "1000", "trade_in_use": "200", "withdrawal_in_use": "0"},
                    "btc": {"available": "0", "trade_in_use": "0", "withdrawal_in_use": "0"},
                }
            ),
        )

        balances = await adapter.get_balance()

        assert list(balances) == ["KRW"]
        assert balances["KRW"].used == Decimal(200)
        _, url, kwargs = sent(session)
        assert "signature" in query_of(url)
        assert kwargs["headers"]["X-KAPI-KEY"] == api_key

    @pytest.mark.asyncio
    async def test_place_order_rejected(self, api_key, api_secret, context, sink, mock_session):
        adapter = KorbitAdapter(api_key, api_secret, context=context)
        session = attach(adapter, mock_session({"message": "insufficient balance"}))

        assert await adapter.place_order("BTC/KRW", "sell", "limit", Decimal(1), Decimal(1)) is None
        assert sink.codes == [3939]

        method, _, kwargs = sent(session)
        assert method == "POST"
        form = dict(parse_qsl(kwargs["data"]))
        assert form["symbol"] == "btc_krw"
        assert form["side"] == "sell"
        assert "signature" in form

    @pytest.mark.asyncio
    async def test_get_candles_since(self, context, mock_session):
        adapter = KorbitAdapter(context=context)
        session = attach(
            adapter,
            mock_session(
                [
                    {"timestamp": 1_700_000_120_000, "open": "3", "high": "3", "low": "3", "close": "3", "volume": "1"},
                    {"timestamp": 1_700_000_060_000, "open": "2", "high": "2", "low": "2", "close": "2", "volume": "1"},
                    {"timestamp": 1_700_000_000_000, "open": "1", "high": "1", "low": "1", "close": "1", "volume": "1"},
                ]
            ),
        )

        candles = await adapter.get_candles("BTC/KRW", "1m", since=1_700_000_060_000, limit=1)

        assert [c.open for c in candles] == [Decimal(2)]
        assert query_of(sent(session)[1]) == {
            "symbol": "btc_krw",
            "interval": "60",
            "limit": "1",
            "since": "1700000060000",
        }

    @pytest.mark.asyncio
    async def test_get_recent_trades(self, context, mock_session):
        adapter = KorbitAdapter(context=context)
        attach(
            adapter,
            mock_session(
                [
                    {"tid": "7", "price": "90000000", "amount": "0.01", "type": "buy", "timestamp": 1_700_000_000_000},
                    {"tid": "6", "price": "89990000", "amount": "0.02", "type": "sell", "timestamp": 1_699_999_990_000},
                ]
            ),
        )

        trades = await adapter.get_recent_trades("BTC/KRW", limit=1)

        assert len(trades) == 1
        assert trades[0].id == "7"
        assert trades[0].side is SideType.BID
        assert trades[0].amount == Decimal("0.01")

    @pytest.mark.asyncio
    async def test_get_order_history(self, api_key, api_secret, context, mock_session):
        adapter = KorbitAdapter(api_key, api_secret, context=context)
        session = attach(
            adapter,
            mock_session(
                [
                    {
                        "orderId": "88",
                        "symbol": "btc_krw",
                        "side": "sell",
                        "type": "limit",
                        "status": "filled",
                        "volume": "0.1",
                        "filledVolume": "0.1",
                        "price": "90000000",
                    }
                ]
            ),
        )

        orders = await adapter.get_order_history("BTC/KRW", limit=10)

        assert orders[0].id == "88"
        assert orders[0].side is SideType.ASK
        assert orders[0].remaining == Decimal(0)
        params = query_of(sent(session)[1])
        assert params["symbol"] == "btc_krw"
        assert params["limit"] == "10"
        assert "signature" in params

    @pytest.mark.asyncio
    async def test_get_deposit_address(self, api_key, api_secret, context, mock_session):
        adapter = KorbitAdapter(api_key, api_secret, context=context)
        session = attach(adapter, mock_session({"address": "rKorbit", "destinationTag": "1234", "network": "xrp"}))

        address = await adapter.get_deposit_address("XRP")

        assert address.address == "rKorbit"
        assert address.tag == "1234"
        assert address.network == "XRP"
        _, url, _ = sent(session)
        assert url.startswith("https://api.korbit.co.kr/v2/coin/depositAddress?")
        assert query_of(url)["currency"] == "xrp"

    @pytest.mark.asyncio
    async def test_missing_deposit_address(self, api_key, api_secret, context, sink, mock_session):
        adapter = KorbitAdapter(api_key, api_secret, context=context)
        attach(adapter, mock_session({}))

        assert await adapter.get_deposit_address("XRP") is None
        assert sink.codes == []

    @pytest.mark.asyncio
    async def test_withdraw_rejected(self, api_key, api_secret, context, sink, mock_session):
        adapter = KorbitAdapter(api_key, api_secret, context=context)
        session = attach(adapter, mock_session({"message": "address not whitelisted"}))

        assert await adapter.withdraw("BTC", Decimal("0.1"), "bc1q") is None
        assert sink.codes == [3961]
        assert "address not whitelisted" in sink.messages()[0]

        form = dict(parse_qsl(sent(session)[2]["data"]))
        assert form["currency"] == "btc"
        assert form["amount"] == "0.1"


class TestKuCoinAdapter:
    """Tests for KuCoin adapter."""

    def test_requires_passphrase(self, api_key, api_secret):
        with pytest.raises(MissingCredentialError):
            KuCoinAdapter(api_key, api_secret)

    @pytest.mark.asyncio
    async def test_discovery_and_markets(self, context, mock_session):
        adapter = KuCoinAdapter(context=context, exchange_rate=1400)
        attach(
            adapter,
            mock_session(
                {
                    "code": "200000",
                    "data": [
                        {"symbol": "BTC-USDT", "baseCurrency": "BTC", "quoteCurrency": "USDT", "enableTrading": True, "priceIncrement": "0.1"},
                        {"symbol": "ETH-BTC", "baseCurrency": "ETH", "quoteCurrency": "BTC", "enableTrading": False},
                    ],
                },
                {
                    "code": "200000",
                    "data": {"time": 1, "ticker": [{"symbol": "BTC-USDT", "last": "60000", "sell": "60001", "buy": "59999", "volValue": "5000000"}]},
                },
            ),
        )

        assert await adapter.verify_symbols() is True
        tickers = adapter.build_tickers()
        await adapter.get_markets(tickers)

        assert [t.symbol for t in tickers.items] == ["BTC-USDT"]
        assert tickers.items[0].last_price == Decimal(84_000_000)
        assert tickers.items[0].volume_24h == Decimal(7000)

    @pytest.mark.asyncio
    async def test_error_code(self, api_key, api_secret, passphrase, context, sink, mock_session):
        adapter = KuCoinAdapter(api_key, api_secret, passphrase=passphrase, context=context)
        attach(adapter, mock_session({"code": "400100", "msg": "Invalid KC-API-PASSPHRASE"}))

        assert await adapter.get_balance() == {}
        assert sink.codes == [4030]

    @pytest.mark.asyncio
    async def test_get_order_status(self, api_key, api_secret, passphrase, context, mock_session):
        adapter = KuCoinAdapter(api_key, api_secret, passphrase=passphrase, context=context)
        session = attach(
            adapter,
            mock_session(
                {
                    "code": "200000",
                    "data": {
                        "id": "abc",
                        "symbol": "BTC-USDT",
                        "side": "buy",
                        "type": "limit",
                        "price": "60000",
                        "size": "0.1",
                        "dealSize": "0.04",
                        "isActive": True,
                        "cancelExist": False,
                    },
                }
            ),
        )

        order = await adapter.get_order("abc")

        assert order.status == OrderStatus.OPEN
        assert order.remaining == Decimal("0.06")
        _, url, kwargs = sent(session)
        assert url == "https://api.kucoin.com/api/v1/orders/abc"
        assert kwargs["headers"]["KC-API-KEY"] == api_key

    def test_order_state(self):
        assert order_state({"isActive": False, "cancelExist": True}) == "CANCELED"
        assert order_state({"isActive": False, "cancelExist": False}) == "DONE"

    @pytest.mark.asyncio
    async def test_get_candles_column_order(self, context, mock_session):
        adapter = KuCoinAdapter(context=context)
        session = attach(
            adapter,
            mock_session(
                {
                    "code": "200000",
                    "data": [
                        ["1700000300", "61", "62", "63", "60", "10", "610"],
                        ["1700000000", "60", "61", "62", "59", "8", "480"],
                    ],
                }
            ),
        )

        candles = await adapter.get_candles("BTC/USDT", "5m")

        assert candles[0].timestamp == 1_700_000_000_000
        first = candles[0]
        assert (first.open, first.high, first.low, first.close) == (Decimal(60), Decimal(62), Decimal(59), Decimal(61))
        assert candles[1].volume == Decimal(10)
        assert query_of(sent(session)[1]) == {"symbol": "BTC-USDT", "type": "5min"}

    @pytest.mark.asyncio
    async def test_get_recent_trades(self, context, mock_session):
        adapter = KuCoinAdapter(context=context)
        attach(
            adapter,
            mock_session(
                {
                    "code": "200000",
                    "data": [
                        {"sequence": "101", "price": "60000", "size": "0.5", "side": "sell", "time": 1_700_000_000_123_456_789},
                    ],
                }
            ),
        )

        trades = await adapter.get_recent_trades("BTC/USDT")

        assert trades[0].id == "101"
        assert trades[0].side is SideType.ASK
        assert trades[0].timestamp == 1_700_000_000_123

    @pytest.mark.asyncio
    async def test_get_order_history(self, api_key, api_secret, passphrase, context, mock_session):
        adapter = KuCoinAdapter(api_key, api_secret, passphrase=passphrase, context=context)
        session = attach(
            adapter,
            mock_session(
                {
                    "code": "200000",
                    "data": {
                        "items": [
                            {
                                "id": "o1",
                                "symbol": "BTC-USDT",
                                "side": "buy",
                                "type": "limit",
                                "price": "60000",
                                "size": "0.1",
                                "dealSize": "0.1",
                                "isActive": False,
                                "cancelExist": False,
                            }
                        ]
                    },
                }
            ),
        )

        orders = await adapter.get_order_history(limit=20)

        assert orders[0].status == OrderStatus.CLOSED
        assert query_of(sent(session)[1]) == {"status": "done", "pageSize": "20"}

    @pytest.mark.asyncio
    async def test_get_deposit_address(self, api_key, api_secret, passphrase, context, mock_session):
        adapter = KuCoinAdapter(api_key, api_secret, passphrase=passphrase, context=context)
        session = attach(
            adapter,
            mock_session({"code": "200000", "data": {"address": "0xkucoin", "memo": "", "chain": "erc20"}}),
        )

        address = await adapter.get_deposit_address("usdt", "ERC20")

        assert address.address == "0xkucoin"
        assert address.tag is None
        assert address.network == "ERC20"
        assert query_of(sent(session)[1]) == {"currency": "USDT", "chain": "erc20"}

    @pytest.mark.asyncio
    async def test_account_sums_main_and_trade(self, api_key, api_secret, passphrase, context, mock_session):
        adapter = KuCoinAdapter(api_key, api_secret, passphrase=passphrase, context=context)
        attach(
            adapter,
            mock_session(
                {
                    "code": "200000",
                    "data": [
                        {"currency": "USDT", "type": "main", "available": "100", "holds": "0"},
                        {"currency": "USDT", "type": "trade", "available": "50", "holds": "25"},
                        {"currency": "USDT", "type": "margin", "available": "999", "holds": "0"},
                    ],
                }
            ),
        )

        account = await adapter.get_account()

        assert account.id == ""
        assert account.balances["USDT"].free == Decimal(150)
        assert account.balances["USDT"].used == Decimal(25)


class TestCoinoneAdapter:
    """Tests for Coinone adapter."""

    @pytest.mark.asyncio
    async def test_discovery_and_markets(self, context, mock_session):
        adapter = CoinoneAdapter(context=context)
        attach(
            adapter,
            mock_session(
                {
                    "result": "success",
                    "markets": [
                        {"quote_currency": "KRW", "target_currency": "BTC", "price_unit": "1000", "trade_status": 1},
                        {"quote_currency": "KRW", "target_currency": "XRP", "price_unit": "1", "trade_status": 1},
                    ],
                },
                {
                    "result": "success",
                    "tickers": [
                        {
                            "quote_currency": "krw",
                            "target_currency": "btc",
                            "last": "90000000",
                            "quote_volume": "3000000000",
                            "best_asks": [{"price": "90010000", "qty": "0.5"}],
                            "best_bids": [{"price": "89990000", "qty": "0.7"}],
                        }
                    ],
                },
            ),
        )

        assert await adapter.verify_symbols() is True
        tickers = adapter.build_tickers()
        await adapter.get_markets(tickers)

        btc = tickers.find("BTC-KRW")
        assert btc.ask_price == Decimal(90_010_000)
        assert btc.bid_qty == Decimal("0.7")
        assert btc.volume_24h == Decimal(3000)
        assert tickers.items[1].is_dead

    @pytest.mark.asyncio
    async def test_private_call_signed(self, api_key, api_secret, context, mock_session):
        adapter = CoinoneAdapter(api_key, api_secret, context=context)
        session = attach(
            adapter,
            mock_session({"result": "success", "balances": [{"currency": "KRW", "available": "5000", "limit": "1000"}]}),
        )

        balances = await adapter.get_balance()

        assert balances["KRW"].total == Decimal(6000)
        method, url, kwargs = sent(session)
        assert method == "POST"
        assert url == "https://api.coinone.co.kr/v2.1/account/balance/all"
        body = json.loads(kwargs["data"])
        assert body["access_token"] == api_key
        assert "nonce" in body
        assert "X-COINONE-SIGNATURE" in kwargs["headers"]

    @pytest.mark.asyncio
    async def test_error_result(self, api_key, api_secret, context, sink, mock_session):
        adapter = CoinoneAdapter(api_key, api_secret, context=context)
        attach(adapter, mock_session({"result": "error", "error_code": "107"}))

        assert await adapter.get_open_orders() == []
        assert sink.codes == [3546]

    @pytest.mark.asyncio
    async def test_get_candles(self, context, mock_session):
        adapter = CoinoneAdapter(context=context)
        session = attach(
            adapter,
            mock_session(
                {
                    "result": "success",
                    "chart": [
                        {"timestamp": 1_700_003_600_000, "open": "2", "high": "3", "low": "1", "close": "2", "target_volume": "7"},
                        {"timestamp": 1_700_000_000_000, "open": "1", "high": "2", "low": "1", "close": "2", "target_volume": "3"},
                    ],
                }
            ),
        )

        candles = await adapter.get_candles("BTC/KRW", "1h", limit=1)

        assert len(candles) == 1
        assert candles[0].timestamp == 1_700_003_600_000
        assert candles[0].volume == Decimal(7)
        _, url, _ = sent(session)
        assert url.startswith("https://api.coinone.co.kr/public/v2/chart/KRW/BTC?")
        assert query_of(url) == {"interval": "1h", "size": "1"}

    @pytest.mark.asyncio
    async def test_timeframe_not_offered(self, context, sink):
        adapter = CoinoneAdapter(context=context)

        assert await adapter.get_candles("BTC/KRW", "3m") == []
        assert sink.codes == [3508]

    @pytest.mark.asyncio
    async def test_recent_trades_taker_side(self, context, mock_session):
        adapter = CoinoneAdapter(context=context)
        attach(
            adapter,
            mock_session(
                {
                    "result": "success",
                    "transactions": [
                        {"id": "t1", "timestamp": 1_700_000_000_000, "price": "90000000", "qty": "0.1", "is_seller_maker": True},
                        {"id": "t2", "timestamp": 1_699_999_000_000, "price": "89000000", "qty": "0.2", "is_seller_maker": False},
                    ],
                }
            ),
        )

        trades = await adapter.get_recent_trades("BTC/KRW")

        assert [t.side for t in trades] == [SideType.BID, SideType.ASK]
        assert trades[1].amount == Decimal("0.2")

    @pytest.mark.asyncio
    async def test_get_order_history(self, api_key, api_secret, context, mock_session):
        adapter = CoinoneAdapter(api_key, api_secret, context=context)
        session = attach(
            adapter,
            mock_session(
                {
                    "result": "success",
                    "completed_orders": [
                        {
                            "trade_id": "f1",
                            "order_id": "o1",
                            "quote_currency": "KRW",
                            "target_currency": "BTC",
                            "order_type": "LIMIT",
                            "is_ask": True,
                            "price": "90000000",
                            "qty": "0.01",
                            "fee": "900",
                            "fee_currency": "KRW",
                            "timestamp": 1_700_000_000_000,
                        }
                    ],
                }
            ),
        )

        orders = await adapter.get_order_history("BTC/KRW")

        assert orders[0].id == "o1"
        assert orders[0].symbol == "BTC-KRW"
        assert orders[0].side is SideType.ASK
        assert orders[0].status == OrderStatus.CLOSED
        assert orders[0].filled == Decimal("0.01")
        _, url, kwargs = sent(session)
        assert url == "https://api.coinone.co.kr/v2.1/order/completed_orders"
        body = json.loads(kwargs["data"])
        assert body["target_currency"] == "BTC"
        assert body["size"] == 100

    @pytest.mark.asyncio
    async def test_get_deposit_address(self, api_key, api_secret, context, mock_session):
        adapter = CoinoneAdapter(api_key, api_secret, context=context)
        session = attach(
            adapter,
            mock_session({"result": "success", "deposit_address": {"address": "rCoinone", "tag": "77"}}),
        )

        address = await adapter.get_deposit_address("XRP")

        assert address.address == "rCoinone"
        assert address.tag == "77"
        assert address.network == "XRP"
        _, url, kwargs = sent(session)
        assert url == "https://api.coinone.co.kr/v2.1/wallet/deposit_address"
        assert json.loads(kwargs["data"])["currency"] == "xrp"

    @pytest.mark.asyncio
    async def test_withdraw_status(self, api_key, api_secret, context, mock_session):
        adapter = CoinoneAdapter(api_key, api_secret, context=context)
        attach(
            adapter,
            mock_session(
                {
                    "result": "success",
                    "transaction": {"id": "tx-9", "status": "WITHDRAWAL_REGISTER", "fee": "0.0005", "created_at": 1_700_000_100_000},
                }
            ),
        )

        withdrawal = await adapter.withdraw("BTC", Decimal("0.1"), "bc1q")

        assert withdrawal.id == "tx-9"
        assert withdrawal.status == OrderStatus.PENDING
        assert withdrawal.raw_status == "WITHDRAWAL_REGISTER"
        assert withdrawal.fee == Decimal("0.0005")
        assert withdrawal.timestamp == 1_700_000_100_000


class TestBinanceUSAdapter:
    """Tests for Binance.US adapter."""

    @pytest.mark.asyncio
    async def test_discovery_and_markets(self, context, mock_session):
        adapter = BinanceUSAdapter(context=context, exchange_rate=1350)
        attach(
            adapter,
            mock_session(
                {
                    "symbols": [
                        {
                            "symbol": "BTCUSD",
                            "status": "TRADING",
                            "baseAsset": "BTC",
                            "quoteAsset": "USD",
                            "filters": [
                                {"filterType": "PRICE_FILTER", "tickSize": "0.01", "minPrice": "0.01", "maxPrice": "100000"},
                                {"filterType": "LOT_SIZE", "minQty": "0.00001", "maxQty": "9000", "stepSize": "0.00001"},
                            ],
                        },
                        {"symbol": "BTCEUR", "status": "TRADING", "baseAsset": "BTC", "quoteAsset": "EUR"},
                    ]
                },
                [{"symbol": "BTCUSD", "lastPrice": "60000", "askPrice": "60010", "bidPrice": "59990", "quoteVolume": "2000000"}],
            ),
        )

        assert await adapter.verify_symbols() is True
        assert adapter.registry.get("BTCUSD").qty_step == Decimal("0.00001")

        tickers = adapter.build_tickers()
        await adapter.get_markets(tickers)

        assert tickers.items[0].last_price == Decimal(81_000_000)
        assert tickers.items[0].volume_24h == Decimal(2700)

    @pytest.mark.asyncio
    async def test_signed_query(self, api_key, api_secret, context, mock_session):
        adapter = BinanceUSAdapter(api_key, api_secret, context=context)
        session = attach(
            adapter,
            mock_session({"balances": [{"asset": "BTC", "free": "0.5", "locked": "0.1"}, {"asset": "ETH", "free": "0", "locked": "0"}]}),
        )

        balances = await adapter.get_balance()

        assert list(balances) == ["BTC"]
        assert balances["BTC"].total == Decimal("0.6")
        _, url, kwargs = sent(session)
        params = query_of(url)
        assert "timestamp" in params and "signature" in params
        assert kwargs["headers"]["X-MBX-APIKEY"] == api_key

    @pytest.mark.asyncio
    async def test_error_payload(self, api_key, api_secret, context, sink, mock_session):
        adapter = BinanceUSAdapter(api_key, api_secret, context=context)
        attach(adapter, mock_session({"code": -2013, "msg": "Order does not exist."}))

        assert await adapter.get_order("1", "BTCUSD") is None
        assert sink.codes == [3144]

    @pytest.mark.asyncio
    async def test_get_price(self, context, mock_session):
        adapter = BinanceUSAdapter(context=context)
        attach(adapter, mock_session([{"symbol": "BTCUSD", "lastPrice": "60000"}]))

        assert await adapter.get_price("BTC/USD") == Decimal(60000)

    @pytest.mark.asyncio
    async def test_get_candles_from_start_time(self, context, mock_session):
        adapter = BinanceUSAdapter(context=context)
        session = attach(
            adapter,
            mock_session(
                [
                    [1_700_000_000_000, "60000", "60100", "59900", "60050", "12.5", 1_700_000_059_999, "750000", 100, "6", "360000", "0"],
                    [1_700_000_060_000, "60050", "60200", "60000", "60150", "9.5", 1_700_000_119_999, "570000", 80, "5", "300000", "0"],
                ]
            ),
        )

        candles = await adapter.get_candles("BTC/USD", "1m", since=1_700_000_000_000, limit=500)

        assert [c.close for c in candles] == [Decimal(60050), Decimal(60150)]
        assert candles[0].volume == Decimal("12.5")
        assert query_of(sent(session)[1]) == {
            "symbol": "BTCUSD",
            "interval": "1m",
            "limit": "500",
            "startTime": "1700000000000",
        }

    @pytest.mark.asyncio
    async def test_recent_trades_taker_side(self, context, mock_session):
        adapter = BinanceUSAdapter(context=context)
        attach(
            adapter,
            mock_session(
                [
                    {"id": 28457, "price": "60000", "qty": "0.1", "time": 1_700_000_000_000, "isBuyerMaker": True},
                    {"id": 28458, "price": "60010", "qty": "0.3", "time": 1_700_000_000_500, "isBuyerMaker": False},
                ]
            ),
        )

        trades = await adapter.get_recent_trades("BTC/USD")

        assert [t.id for t in trades] == ["28457", "28458"]
        assert [t.side for t in trades] == [SideType.ASK, SideType.BID]

    @pytest.mark.asyncio
    async def test_order_history_drops_working_orders(self, api_key, api_secret, context, mock_session):
        adapter = BinanceUSAdapter(api_key, api_secret, context=context)
        session = attach(
            adapter,
            mock_session(
                [
                    {"orderId": 1, "symbol": "BTCUSD", "side": "BUY", "type": "LIMIT", "status": "FILLED", "origQty": "1", "executedQty": "1", "price": "60000"},
                    {"orderId": 2, "symbol": "BTCUSD", "side": "SELL", "type": "LIMIT", "status": "NEW", "origQty": "1", "executedQty": "0", "price": "70000"},
                    {"orderId": 3, "symbol": "BTCUSD", "side": "SELL", "type": "LIMIT", "status": "CANCELED", "origQty": "1", "executedQty": "0", "price": "65000"},
                ]
            ),
        )

        orders = await adapter.get_order_history("BTC/USD", limit=3)

        assert [o.id for o in orders] == ["1", "3"]
        assert [o.status for o in orders] == [OrderStatus.CLOSED, OrderStatus.CANCELED]
        _, url, _ = sent(session)
        assert url.startswith("https://api.binance.us/api/v3/allOrders?")
        assert query_of(url)["limit"] == "3"

    @pytest.mark.asyncio
    async def test_order_history_requires_symbol(self, api_key, api_secret, context, sink):
        adapter = BinanceUSAdapter(api_key, api_secret, context=context)

        assert await adapter.get_order_history() == []
        assert sink.codes == [3148]

    @pytest.mark.asyncio
    async def test_get_deposit_address(self, api_key, api_secret, context, mock_session):
        adapter = BinanceUSAdapter(api_key, api_secret, context=context)
        session = attach(adapter, mock_session({"coin": "XRP", "address": "rBinance", "tag": "4242", "url": ""}))

        address = await adapter.get_deposit_address("xrp", "xrp")

        assert address.currency == "XRP"
        assert address.address == "rBinance"
        assert address.tag == "4242"
        assert address.network == "XRP"
        params = query_of(sent(session)[1])
        assert params["coin"] == "XRP"
        assert params["network"] == "XRP"
        assert "signature" in params

    @pytest.mark.asyncio
    async def test_get_account(self, api_key, api_secret, context, mock_session):
        adapter = BinanceUSAdapter(api_key, api_secret, context=context)
        attach(
            adapter,
            mock_session(
                {
                    "canTrade": True,
                    "canWithdraw": False,
                    "canDeposit": True,
                    "accountType": "SPOT",
                    "balances": [{"asset": "USD", "free": "100", "locked": "0"}],
                }
            ),
        )

        account = await adapter.get_account()

        assert account.type == "spot"
        assert account.can_trade is True
        assert account.can_withdraw is False
        assert list(account.balances) == ["USD"]

    @pytest.mark.asyncio
    async def test_withdraw(self, api_key, api_secret, context, mock_session):
        adapter = BinanceUSAdapter(api_key, api_secret, context=context)
        session = attach(adapter, mock_session({"id": "7213fea8e94b4a5593d507237e5a555b"}))

        withdrawal = await adapter.withdraw("XRP", Decimal(25), "rDest", tag="99", network="XRP")

        assert withdrawal.id == "7213fea8e94b4a5593d507237e5a555b"
        assert withdrawal.status == OrderStatus.PENDING
        method, url, kwargs = sent(session)
        assert (method, url) == ("POST", "https://api.binance.us/sapi/v1/capital/withdraw/apply")
        form = dict(parse_qsl(kwargs["data"]))
        assert form["amount"] == "25"
        assert form["addressTag"] == "99"
        assert "signature" in form


class _BareAdapter(BaseExchangeAdapter):
    profile = ExchangeProfile(
        name="bare",
        base_url="https://example.invalid",
        signing=SigningVariant.QUERY_STRING,
        quote_currencies=("USDT",),
    )


class TestBaseAdapter:
    """Shared adapter behaviour."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "call",
        [
            lambda a: a.get_candles("BTC/USDT"),
            lambda a: a.get_recent_trades("BTC/USDT"),
            lambda a: a.get_account(),
            lambda a: a.get_order_history(),
            lambda a: a.get_deposit_address("BTC"),
            lambda a: a.withdraw("BTC", Decimal(1), "addr"),
        ],
    )
    async def test_unimplemented_operations_raise(self, context, call):
        with pytest.raises(NotImplementedError, match="bare"):
            await call(_BareAdapter(context=context))

    def test_interval_lookup_is_case_insensitive(self):
        adapter = BybitAdapter()

        assert adapter.interval(" 1H ") == "60"
        with pytest.raises(ValueError, match="supported: 1m, 3m"):
            adapter.interval("2d")

    def test_ordered_candles_without_since_keeps_latest(self):
        candles = [Candle(timestamp=t, open=Decimal(t), high=Decimal(t), low=Decimal(t), close=Decimal(t)) for t in (3, 1, 2)]

        assert [c.timestamp for c in BaseExchangeAdapter._ordered_candles(candles, None, 2)] == [2, 3]
        assert BaseExchangeAdapter._ordered_candles(candles, None, 0) == []
        assert [c.timestamp for c in BaseExchangeAdapter._ordered_candles(candles, 2, 5)] == [2, 3]
