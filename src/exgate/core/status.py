"""Canonical order/transfer status and per-exchange vocabulary tables."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class OrderStatus(str, Enum):
    OPEN = "open"
    PARTIALLY_FILLED = "partially_filled"
    CLOSED = "closed"
    CANCELED = "canceled"
    REJECTED = "rejected"
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL

    @property
    def is_active(self) -> bool:
        """True for confirmed non-terminal states; ``UNKNOWN`` is neither."""
        return self in _ACTIVE


_TERMINAL = frozenset(
    {
        OrderStatus.CLOSED,
        OrderStatus.CANCELED,
        OrderStatus.REJECTED,
        OrderStatus.COMPLETED,
        OrderStatus.FAILED,
    }
)
_ACTIVE = frozenset(
    {
        OrderStatus.OPEN,
        OrderStatus.PARTIALLY_FILLED,
        OrderStatus.PENDING,
        OrderStatus.PROCESSING,
    }
)


class StatusKind(str, Enum):
    ORDER = "order"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


S = OrderStatus

# Keys are matched case-insensitively; write them upper-case.
DEFAULT_TABLES: dict[str, dict[StatusKind, dict[str, OrderStatus]]] = {
    "bybit": {
        StatusKind.ORDER: {
            "NEW": S.OPEN,
            "PARTIALLYFILLED": S.PARTIALLY_FILLED,
            "FILLED": S.CLOSED,
            "CANCELLED": S.CANCELED,
            "PARTIALLYFILLEDCANCELED": S.CANCELED,
            "REJECTED": S.REJECTED,
        },
        StatusKind.DEPOSIT: {
            "1": S.PENDING,
            "2": S.PROCESSING,
            "3": S.COMPLETED,
            "4": S.FAILED,
        },
        StatusKind.WITHDRAWAL: {
            "SECURITYCHECK": S.PENDING,
            "PENDING": S.PENDING,
            "SUCCESS": S.COMPLETED,
            "CANCELBYUSER": S.CANCELED,
            "REJECT": S.REJECTED,
            "FAIL": S.FAILED,
            "BLOCKCHAINCONFIRMED": S.PROCESSING,
        },
    },
    "kucoin": {
        StatusKind.ORDER: {
            "ACTIVE": S.OPEN,
            "DONE": S.CLOSED,
            "CANCELED": S.CANCELED,
        },
        StatusKind.DEPOSIT: {
            "PROCESSING": S.PENDING,
            "SUCCESS": S.COMPLETED,
            "FAILURE": S.FAILED,
        },
        StatusKind.WITHDRAWAL: {
            "PROCESSING": S.PENDING,
            "WALLET_PROCESSING": S.PENDING,
            "SUCCESS": S.COMPLETED,
            "FAILURE": S.FAILED,
            "CANCEL": S.CANCELED,
        },
    },
    "korbit": {
        StatusKind.ORDER: {
            "OPEN": S.OPEN,
            "PARTIALLY_FILLED": S.PARTIALLY_FILLED,
            "FILLED": S.CLOSED,
            "CANCELED": S.CANCELED,
            "PARTIALLY_FILLED_CANCELED": S.CANCELED,
            "EXPIRED": S.CANCELED,
            "PENDING": S.PENDING,
        },
        StatusKind.DEPOSIT: {
            "PENDING": S.PENDING,
            "PROCESSING": S.PROCESSING,
            "SUCCESS": S.COMPLETED,
            "FAILED": S.FAILED,
        },
        StatusKind.WITHDRAWAL: {
            "PENDING": S.PENDING,
            "PROCESSING": S.PROCESSING,
            "SUCCESS": S.COMPLETED,
            "FAILED": S.FAILED,
            "CANCELED": S.CANCELED,
        },
    },
    "coinone": {
        StatusKind.ORDER: {
            "LIVE": S.OPEN,
            "PARTIALLY_FILLED": S.PARTIALLY_FILLED,
            "PARTIALLY_CANCELED": S.CANCELED,
            "FILLED": S.CLOSED,
            "CANCELED": S.CANCELED,
            "NOT_TRIGGERED": S.PENDING,
            "TRIGGERED": S.OPEN,
        },
        StatusKind.DEPOSIT: {
            "DEPOSIT_WAIT": S.PENDING,
            "DEPOSIT_SUCCESS": S.COMPLETED,
            "DEPOSIT_FAIL": S.FAILED,
            "DEPOSIT_REFUND": S.CANCELED,
            "DEPOSIT_REJECT": S.REJECTED,
        },
        StatusKind.WITHDRAWAL: {
            "WITHDRAWAL_REGISTER": S.PENDING,
            "WITHDRAWAL_WAIT": S.PROCESSING,
            "WITHDRAWAL_SUCCESS": S.COMPLETED,
            "WITHDRAWAL_FAIL": S.FAILED,
            "WITHDRAWAL_REFUND": S.CANCELED,
            "WITHDRAWAL_REFUND_FAIL": S.FAILED,
        },
    },
    "binanceus": {
        StatusKind.ORDER: {
            "NEW": S.OPEN,
            "PARTIALLY_FILLED": S.PARTIALLY_FILLED,
            "FILLED": S.CLOSED,
            "CANCELED": S.CANCELED,
            "PENDING_CANCEL": S.OPEN,
            "REJECTED": S.REJECTED,
            "EXPIRED": S.CANCELED,
        },
        StatusKind.DEPOSIT: {
            "0": S.PENDING,
            "6": S.PROCESSING,
            "1": S.COMPLETED,
        },
        StatusKind.WITHDRAWAL: {
            "0": S.PENDING,
            "1": S.CANCELED,
            "2": S.PENDING,
            "3": S.REJECTED,
            "4": S.PROCESSING,
            "5": S.FAILED,
            "6": S.COMPLETED,
        },
    },
}

del S


class OrderStatusNormalizer:
    """Maps vendor status strings onto :class:`OrderStatus`.

    Lookups are total: anything not in the exchange's table, including
    ``None`` and the empty string, resolves to ``OrderStatus.UNKNOWN``. Each
    unmapped (exchange, kind, raw) triple is logged once.
    """

    def __init__(self, tables: Mapping[str, Mapping[StatusKind, Mapping[str, OrderStatus]]] | None = None):
        self._tables: dict[str, dict[StatusKind, dict[str, OrderStatus]]] = {}
        self._reported: set[tuple[str, StatusKind, str]] = set()
        for exchange, kinds in (tables if tables is not None else DEFAULT_TABLES).items():
            for kind, table in kinds.items():
                self.register(exchange, kind, table)

    def register(self, exchange: str, kind: StatusKind | str, table: Mapping[str, OrderStatus | str]) -> None:
        kind = StatusKind(kind)
        target = self._tables.setdefault(exchange.lower(), {}).setdefault(kind, {})
        for raw, status in table.items():
            target[str(raw).strip().upper()] = OrderStatus(status)

    def normalize(self, exchange: str, kind: StatusKind | str, raw: Any) -> OrderStatus:
        kind = StatusKind(kind)
        key = "" if raw is None else str(raw).strip().upper()
        status = self._tables.get(exchange.lower(), {}).get(kind, {}).get(key) if key else None
        if status is not None:
            return status

        marker = (exchange.lower(), kind, key)
        if marker not in self._reported:
            self._reported.add(marker)
            logger.warning("unmapped %s status from %s: %r", kind.value, exchange, raw)
        return OrderStatus.UNKNOWN

    def order(self, exchange: str, raw: Any) -> OrderStatus:
        return self.normalize(exchange, StatusKind.ORDER, raw)

    def deposit(self, exchange: str, raw: Any) -> OrderStatus:
        return self.normalize(exchange, StatusKind.DEPOSIT, raw)

    def withdrawal(self, exchange: str, raw: Any) -> OrderStatus:
        return self.normalize(exchange, StatusKind.WITHDRAWAL, raw)


default_normalizer = OrderStatusNormalizer()
