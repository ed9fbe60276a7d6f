from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

from .config import load_settings
from .di import build_gateway
from .logging import configure_logging
from .runtime import run

logger = logging.getLogger(__name__)


def _log_dir() -> Path:
    return Path(os.environ.get("EXGATE_LOG_DIR", "logs"))


def main(argv: list[str] | None = None) -> int:
    """Main entry point supporting both CLI commands and the polling gateway.

    - `exgate` or `exgate run`: poll every enabled exchange
    - `exgate <typer-subcommand>`: run CLI mode (e.g. `exgate markets bybit`)
    """
    if argv is None:
        argv = sys.argv[1:]

    if not argv:
        return _run_gateway_mode([])

    if argv[0] == "run":
        return _run_gateway_mode(argv[1:])

    return _run_cli_mode(argv)


async def _serve(container) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, container.shutdown.set)
        except NotImplementedError:
            # not available on Windows event loops
            pass
    await run(container)


def _run_gateway_mode(argv: list[str]) -> int:
    """Run the polling gateway until interrupted."""
    parser = argparse.ArgumentParser(prog="exgate run", description="Poll exchange market data")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to YAML config file (default: EXGATE_CONFIG or ./config.yml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: EXGATE_LOG_LEVEL or INFO)",
    )

    args = parser.parse_args(argv)
    configure_logging(_log_dir(), args.log_level)

    settings = load_settings(args.config)
    container = build_gateway(settings)

    logger.info("exgate booting with %d exchange(s): %s", len(container.adapters), ", ".join(container.adapters))
    asyncio.run(_serve(container))
    logger.info("exgate exit")

    return 0


def _run_cli_mode(argv: list[str]) -> int:
    """Run in CLI mode using Typer."""
    try:
        configure_logging(_log_dir())

        # imported late to keep gateway start-up light
        from .cli import run_cli

        run_cli(argv)
        return 0
    except SystemExit as e:
        return e.code if e.code else 0
    except Exception as e:
        logger.error("CLI error: %s", e, exc_info=True)
        return 1
