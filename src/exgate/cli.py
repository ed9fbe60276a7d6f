"""Typer-based CLI for one-shot exchange queries and order operations."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from .di import AppContainer
    from .exchanges.base import BaseExchangeAdapter


# Import with local function to avoid circular imports
def _load_settings(config_path: Optional[Path] = None):
    from .config import load_settings

    return load_settings(config_path)


def _build_container(settings):
    from .di import build_gateway

    return build_gateway(settings)


app = typer.Typer(help="Exchange gateway CLI")
console = Console()
logger = logging.getLogger(__name__)


def run_cli(argv: list[str] | None = None) -> None:
    """Run CLI with optional argv parameter."""
    app(argv)


def init_components(config_path: Optional[Path] = None) -> "AppContainer":
    """Load settings and build the container."""
    settings = _load_settings(config_path)
    return _build_container(settings)


def get_adapter(container: "AppContainer", exchange: str) -> "BaseExchangeAdapter":
    """Configured adapter for ``exchange``, or a public-only one."""
    name = exchange.lower()
    if name in container.adapters:
        return container.adapters[name]

    from .exchanges.factory import create_exchange_adapter

    adapter = create_exchange_adapter(name, context=container.context)
    container.adapters[name] = adapter
    return adapter


def _decimal(value: str | None, name: str) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(value)
    except InvalidOperation:
        raise typer.BadParameter(f"{name} must be a number, got {value!r}")


def _fmt(value: Decimal | None) -> str:
    if value is None:
        return "-"
    return f"{value.normalize():f}"


async def _with_adapter(exchange: str, config: Optional[Path], action):
    container = init_components(config)
    adapter = get_adapter(container, exchange)
    try:
        return await action(adapter)
    finally:
        await adapter.close()


def _fail(message: str, exc: Exception | None = None) -> None:
    if exc is not None:
        logger.error("%s: %s", message, exc, exc_info=True)
        console.print(f"[red]Error:[/red] {exc}")
    else:
        console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(1)


@app.command()
def markets(
    exchange: str = typer.Argument(..., help="Exchange to query"),
    limit: int = typer.Option(20, help="Rows to show, by 24h volume"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Discover symbols and show one market snapshot."""

    async def action(adapter):
        if not await adapter.verify_symbols():
            return None
        tickers = adapter.build_tickers()
        await adapter.get_markets(tickers)
        return tickers

    try:
        tickers = asyncio.run(_with_adapter(exchange, config, action))
    except Exception as e:
        _fail("Failed to load markets", e)

    if tickers is None:
        _fail(f"symbol discovery failed on {exchange}")

    table = Table(title=f"{exchange} markets ({len(tickers.items)} symbols)")
    table.add_column("Symbol", style="cyan")
    table.add_column("Base", style="green")
    table.add_column("Quote", style="blue")
    table.add_column("Last", style="yellow")
    table.add_column("Bid", style="magenta")
    table.add_column("Ask", style="magenta")
    table.add_column("Vol 24h", style="dim")

    rows = sorted((t for _, t in tickers.live()), key=lambda t: t.volume_24h, reverse=True)
    for ticker in rows[:limit]:
        table.add_row(
            ticker.symbol,
            ticker.base_name,
            ticker.quote_name,
            _fmt(ticker.last_price),
            _fmt(ticker.bid_price),
            _fmt(ticker.ask_price),
            _fmt(ticker.volume_24h),
        )

    console.print(table)


@app.command()
def states(
    exchange: str = typer.Argument(..., help="Exchange to query"),
    asset: Optional[str] = typer.Option(None, help="Only show this asset"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Show deposit/withdraw availability per asset and network."""

    async def action(adapter):
        await adapter.verify_symbols()
        tickers = adapter.build_tickers()
        if not await adapter.verify_states(tickers):
            return None
        return tickers

    try:
        tickers = asyncio.run(_with_adapter(exchange, config, action))
    except Exception as e:
        _fail("Failed to load states", e)

    if tickers is None:
        _fail(f"state check failed on {exchange}")

    table = Table(title=f"{exchange} deposit / withdraw")
    table.add_column("Asset", style="cyan")
    table.add_column("Network", style="blue")
    table.add_column("Deposit")
    table.add_column("Withdraw")
    table.add_column("Fee", style="dim")

    def flag(value: bool) -> str:
        return "[green]on[/green]" if value else "[red]off[/red]"

    for state in sorted(tickers.states, key=lambda s: s.base_name):
        if asset and state.base_name != asset.upper():
            continue
        table.add_row(state.base_name, "", flag(state.deposit), flag(state.withdraw), "")
        for network in state.networks:
            table.add_row("", network.chain or network.name, flag(network.deposit), flag(network.withdraw), _fmt(network.withdraw_fee))

    console.print(table)


@app.command()
def balance(
    exchange: str = typer.Argument(..., help="Exchange to check"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Show non-zero balances."""
    try:
        balances = asyncio.run(_with_adapter(exchange, config, lambda adapter: adapter.get_balance()))
    except Exception as e:
        _fail("Failed to check balance", e)

    items = [b for b in balances.values() if b.total > 0]
    if not items:
        console.print(f"[yellow]No balances on {exchange}[/yellow]")
        return

    table = Table(title=f"{exchange} balances")
    table.add_column("Asset", style="cyan")
    table.add_column("Free", style="green")
    table.add_column("Used", style="yellow")
    table.add_column("Total", style="bold")
    for item in sorted(items, key=lambda b: b.asset):
        table.add_row(item.asset, _fmt(item.free), _fmt(item.used), _fmt(item.total))

    console.print(table)
    logger.info("Balance check: %s, %d assets", exchange, len(items))


@app.command()
def order_place(
    exchange: str = typer.Argument(..., help="Exchange"),
    symbol: str = typer.Argument(..., help="Symbol, e.g. BTC/USDT"),
    side: str = typer.Argument(..., help="buy or sell"),
    amount: str = typer.Argument(..., help="Order quantity"),
    price: Optional[str] = typer.Option(None, help="Limit price"),
    order_type: str = typer.Option("limit", "--type", help="limit or market"),
    client_order_id: Optional[str] = typer.Option(None, help="Client order id"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Place an order."""
    quantity = _decimal(amount, "amount")
    limit_price = _decimal(price, "price")
    if order_type.lower() == "limit" and limit_price is None:
        raise typer.BadParameter("--price is required for limit orders")

    try:
        order = asyncio.run(
            _with_adapter(
                exchange,
                config,
                lambda adapter: adapter.place_order(symbol, side, order_type, quantity, limit_price, client_order_id),
            )
        )
    except Exception as e:
        _fail("Failed to place order", e)

    if order is None:
        _fail(f"order rejected by {exchange}")

    console.print(
        Panel.fit(
            f"[green]✓ Order placed[/green]\n"
            f"Order ID: {order.id}\n"
            f"Symbol: {order.symbol}\n"
            f"Side: {order.side.value}\n"
            f"Amount: {_fmt(order.amount)}\n"
            f"Price: {_fmt(order.price)}",
            title="Order Place",
        )
    )


@app.command()
def order_cancel(
    exchange: str = typer.Argument(..., help="Exchange"),
    order_id: str = typer.Argument(..., help="Order id"),
    symbol: Optional[str] = typer.Option(None, help="Symbol (required by some exchanges)"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Cancel an order."""
    try:
        ok = asyncio.run(_with_adapter(exchange, config, lambda adapter: adapter.cancel_order(order_id, symbol)))
    except Exception as e:
        _fail("Failed to cancel order", e)

    if not ok:
        _fail(f"cancel failed on {exchange}")
    console.print(f"[green]✓ Order {order_id} canceled[/green]")


@app.command()
def order_status(
    exchange: str = typer.Argument(..., help="Exchange"),
    order_id: str = typer.Argument(..., help="Order id"),
    symbol: Optional[str] = typer.Option(None, help="Symbol (required by some exchanges)"),
    config: Optional[Path] = typer.Option(None, help="Path to config file"),
) -> None:
    """Show one order."""
    try:
        order = asyncio.run(_with_adapter(exchange, config, lambda adapter: adapter.get_order(order_id, symbol)))
    except Exception as e:
        _fail("Failed to fetch order", e)

    if order is None:
        _fail(f"order {order_id} not found on {exchange}")

    status_style = "green" if order.status.is_active else "blue" if order.status.is_terminal else "yellow"
    console.print(
        Panel.fit(
            f"Order ID: {order.id}\n"
            f"Symbol: {order.symbol}\n"
            f"Side: {order.side.value}\n"
            f"Status: [{status_style}]{order.status.value}[/{status_style}] ({order.raw_status})\n"
            f"Amount: {_fmt(order.amount)}\n"
            f"Filled: {_fmt(order.filled)}\n"
            f"Price: {_fmt(order.price)}",
            title="Order Status",
        )
    )


def main():
    """CLI main entry point."""
    app()


if __name__ == "__main__":
    main()
