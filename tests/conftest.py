"""Pytest configuration and fixtures."""

import logging
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from exgate.core.reconciler import MarketContext
from helpers import RecordingSink, create_async_response


@pytest.fixture
def api_key():
    """Test API key."""
    return "test_api_key_123456"


@pytest.fixture
def api_secret():
    """Test API secret."""
    return "test_api_secret_789012"


@pytest.fixture
def passphrase():
    """Test passphrase."""
    return "test_passphrase_345678"


@pytest.fixture
def sink():
    return RecordingSink()


class FakeClock:
    """Settable millisecond clock."""

    def __init__(self, now=1_700_000_000_000):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def context(sink, clock):
    return MarketContext(
        fiat="KRW",
        volume_24h_base=Decimal(1_000_000),
        volume_1m_base=Decimal(10_000),
        sink=sink,
        clock=clock,
    )


@pytest.fixture
def mock_session():
    """Factory: a session whose ``request()`` answers with the given payloads in order."""

    def factory(*payloads, status=200):
        responses = [
            payload if isinstance(payload, AsyncMock) else create_async_response(status, payload)
            for payload in payloads
        ]
        session = MagicMock()
        session.request = MagicMock(side_effect=responses)
        session.close = AsyncMock()
        return session

    return factory


@pytest.fixture
def restore_logging():
    """Undo ``configure_logging`` side effects on the root logger."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
    diagnostics = logging.getLogger("exgate.diagnostics")
    for handler in diagnostics.handlers[:]:
        diagnostics.removeHandler(handler)
        handler.close()
