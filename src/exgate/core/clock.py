"""Wall clock helpers (epoch milliseconds)."""

from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], int]

ONE_MINUTE_MS = 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)
