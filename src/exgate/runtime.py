from __future__ import annotations

import asyncio
import logging

from .core.clock import Clock, now_ms
from .core.models import Tickers
from .di import AppContainer
from .exchanges.base import BaseExchangeAdapter

logger = logging.getLogger(__name__)


class ExchangeWorker:
    """Polling loop for one exchange.

    Cycles run strictly one after another, so the worker is the only writer
    of its ``Tickers``.
    """

    def __init__(
        self,
        adapter: BaseExchangeAdapter,
        *,
        poll_interval: float = 1.0,
        state_check_interval: float = 600.0,
        shutdown: asyncio.Event | None = None,
        clock: Clock = now_ms,
        published: dict[str, Tickers] | None = None,
    ):
        self.adapter = adapter
        self.poll_interval = poll_interval
        self.state_check_interval_ms = int(state_check_interval * 1000)
        self.shutdown = shutdown or asyncio.Event()
        self.clock = clock
        self.tickers: Tickers | None = None
        self.published = published if published is not None else {}

    @property
    def name(self) -> str:
        return self.adapter.name

    async def refresh_symbols(self) -> Tickers:
        """Rediscover symbols and start a fresh ticker list."""
        ok = await self.adapter.verify_symbols()
        tickers = self.adapter.build_tickers()
        # retry discovery next cycle when it failed
        tickers.reset_cache = not ok
        self.tickers = tickers
        self.published[self.name] = tickers
        logger.info("%s: %d tickers (generation %d)", self.name, len(tickers.items), tickers.generation)
        return tickers

    async def run_cycle(self) -> bool:
        tickers = self.tickers
        if tickers is None or tickers.reset_cache:
            tickers = await self.refresh_symbols()
        if not self.adapter.alive:
            tickers.connected = False
            return False

        now = self.clock()
        if now >= tickers.next_state_check:
            await self.adapter.verify_states(tickers)
            tickers.next_state_check = now + self.state_check_interval_ms

        ok = await self.adapter.get_markets(tickers)
        tickers.connected = ok
        return ok

    async def _wait(self) -> None:
        try:
            await asyncio.wait_for(self.shutdown.wait(), timeout=self.poll_interval)
        except TimeoutError:
            pass

    async def run(self) -> None:
        logger.info("%s: worker starting", self.name)
        try:
            while not self.shutdown.is_set():
                await self.run_cycle()
                await self._wait()
        except asyncio.CancelledError:
            raise
        except Exception:
            # contained: the other exchanges keep polling
            logger.exception("%s: worker crashed", self.name)
            if self.tickers is not None:
                self.tickers.connected = False
            return
        logger.info("%s: worker stopped", self.name)


async def run(container: AppContainer) -> None:
    logger.info("runtime starting")
    logger.debug("settings=%s", container.settings.redacted())

    if not container.adapters:
        logger.warning("no exchanges enabled, nothing to poll")
        await asyncio.sleep(0)
        logger.info("runtime stopped")
        return

    market = container.settings.market
    workers = [
        ExchangeWorker(
            adapter,
            poll_interval=market.poll_interval,
            state_check_interval=market.state_check_interval,
            shutdown=container.shutdown,
            published=container.tickers,
        )
        for adapter in container.adapters.values()
    ]

    try:
        async with asyncio.TaskGroup() as tg:
            for worker in workers:
                tg.create_task(worker.run())
    finally:
        for adapter in container.adapters.values():
            await adapter.close()

    logger.info("runtime stopped")
