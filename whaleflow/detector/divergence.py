# whaleflow/detector/divergence.py
from dataclasses import dataclass, field

from whaleflow.aggregator.flow import SideActivity
from whaleflow.client.models import Side
from whaleflow.detector.models import NO_SIGNAL, NoSignal, WalletAmount, rank_wallets
from whaleflow.detector.params import DivergenceRadarParams


@dataclass
class DivergenceSignal:
    instrument: str
    side: Side
    closers: list[WalletAmount] = field(default_factory=list)
    builders: list[WalletAmount] = field(default_factory=list)

    @property
    def closed_usd(self) -> float:
        return sum(c.notional for c in self.closers)

    @property
    def built_usd(self) -> float:
        return sum(b.notional for b in self.builders)


def divergence_radar(
    activity: dict[tuple[str, str], SideActivity],
    params: DivergenceRadarParams,
) -> DivergenceSignal | NoSignal:
    """
    同一品种同一方向上，一批大户在平仓、另一批 (不同的) 大户在开仓

    builders 与同一品种的 closers 互斥。按品种总活跃度从高到低，返回第一个满足条件的。
    """
    by_instrument: dict[str, list[SideActivity]] = {}
    for entry in activity.values():
        by_instrument.setdefault(entry.instrument, []).append(entry)

    def total(entries: list[SideActivity]) -> float:
        return sum(sum(e.opened.values()) + sum(e.closed.values()) for e in entries)

    ordered = sorted(by_instrument.items(), key=lambda kv: (-total(kv[1]), kv[0]))

    for instrument, entries in ordered:
        for side in (Side.LONG, Side.SHORT):
            closers = rank_wallets(
                {e.wallet: e.closed[side] for e in entries}, params.close_threshold
            )
            if len(closers) < params.min_closers:
                continue

            closer_wallets = {c.wallet for c in closers}
            builders = rank_wallets(
                {e.wallet: e.opened[side] for e in entries if e.wallet not in closer_wallets},
                params.build_threshold,
            )
            if len(builders) < params.min_builders:
                continue

            return DivergenceSignal(instrument, side, closers, builders)

    return NO_SIGNAL
