"""Deposit/withdraw/chain availability merged into an exchange's tickers."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from .models import Tickers, WNetwork, WState

ZERO = Decimal(0)


@dataclass(slots=True)
class ChainStatus:
    chain: str
    network: str = ""
    deposit: bool = True
    withdraw: bool = True
    min_withdrawal: Decimal = ZERO
    withdraw_fee: Decimal = ZERO
    min_confirm: int = 0


@dataclass(slots=True)
class AssetStatus:
    """What one exchange reports about one asset.

    Flags left as ``None`` are not reported. When an asset-level deposit or
    withdraw flag is missing but chains are listed, the asset is enabled if
    any of its chains is.
    """

    asset: str
    active: bool | None = None
    deposit: bool | None = None
    withdraw: bool | None = None
    travel_rule: bool | None = None
    chains: list[ChainStatus] = field(default_factory=list)

    def resolved_deposit(self) -> bool | None:
        if self.deposit is None and self.chains:
            return any(c.deposit for c in self.chains)
        return self.deposit

    def resolved_withdraw(self) -> bool | None:
        if self.withdraw is None and self.chains:
            return any(c.withdraw for c in self.chains)
        return self.withdraw


class NetworkStateTracker:
    def __init__(self, tickers: Tickers):
        self.tickers = tickers

    def upsert_state(
        self,
        base: str,
        *,
        active: bool | None = None,
        deposit: bool | None = None,
        withdraw: bool | None = None,
        travel_rule: bool | None = None,
    ) -> WState:
        """Find the first state for ``base`` or append a new one.

        A new state defaults every flag it is not given to True (travel rule to
        False); an existing one only takes the flags explicitly supplied.
        """
        state = self.tickers.state_for(base)
        if state is None:
            state = WState(base_name=base)
            self.tickers.states.append(state)

        if active is not None:
            state.active = active
        if deposit is not None:
            state.deposit = deposit
        if withdraw is not None:
            state.withdraw = withdraw
        if travel_rule is not None:
            state.travel_rule = travel_rule
        return state

    def upsert_network(
        self,
        state: WState,
        chain: str,
        *,
        network: str = "",
        deposit: bool = True,
        withdraw: bool = True,
        min_withdrawal: Decimal = ZERO,
        withdraw_fee: Decimal = ZERO,
        min_confirm: int = 0,
    ) -> WNetwork:
        """Upsert the ``{asset}-{chain}`` network of ``state``.

        Fee and confirmation metadata is only written on creation; later
        calls refresh the availability flags.
        """
        name = f"{state.base_name}-{chain}"
        existing = state.network_named(name)
        if existing is not None:
            existing.deposit = deposit
            existing.withdraw = withdraw
            return existing

        created = WNetwork(
            name=name,
            network=network or chain,
            chain=chain,
            deposit=deposit,
            withdraw=withdraw,
            min_withdrawal=min_withdrawal,
            withdraw_fee=withdraw_fee,
            min_confirm=min_confirm,
        )
        state.networks.append(created)
        return created

    def propagate(self, state: WState) -> int:
        """Copy asset flags to every live ticker whose ``comp_name`` matches.

        Returns the number of tickers touched.
        """
        if state.networks:
            network = any(n.deposit or n.withdraw for n in state.networks)
        else:
            network = True

        touched = 0
        for _, ticker in self.tickers.live():
            if ticker.comp_name != state.base_name:
                continue
            ticker.active = state.active
            ticker.deposit = state.deposit
            ticker.withdraw = state.withdraw
            ticker.network = network
            touched += 1
        return touched

    def apply(self, statuses: Iterable[AssetStatus]) -> list[WState]:
        touched: list[WState] = []
        for status in statuses:
            state = self.upsert_state(
                status.asset.upper(),
                active=status.active,
                deposit=status.resolved_deposit(),
                withdraw=status.resolved_withdraw(),
                travel_rule=status.travel_rule,
            )
            for chain in status.chains:
                self.upsert_network(
                    state,
                    chain.chain,
                    network=chain.network,
                    deposit=chain.deposit,
                    withdraw=chain.withdraw,
                    min_withdrawal=chain.min_withdrawal,
                    withdraw_fee=chain.withdraw_fee,
                    min_confirm=chain.min_confirm,
                )
            self.propagate(state)
            touched.append(state)
        return touched
