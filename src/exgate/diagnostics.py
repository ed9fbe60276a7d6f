"""Diagnostic sink used by adapters and the reconciler.

A sink is any callable ``(exchange, message_or_exception, code)``. Codes are
namespaced per exchange (``code_base + offset``) and only serve to correlate
log lines; nothing branches on them.
"""

from __future__ import annotations

import logging
from typing import Callable, Union

logger = logging.getLogger(__name__)

DiagnosticSink = Callable[[str, Union[str, BaseException], int], None]


class LoggingDiagnosticSink:
    """Writes plain messages at INFO and exceptions at ERROR."""

    def __init__(self, log: logging.Logger | None = None):
        self.log = log or logger

    def __call__(self, exchange: str, event: str | BaseException, code: int) -> None:
        if isinstance(event, BaseException):
            self.log.error("[%s] %d: %s: %s", exchange, code, type(event).__name__, event)
        else:
            self.log.info("[%s] %d: %s", exchange, code, event)
