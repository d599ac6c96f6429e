# whaleflow/detector/liquidation.py
from dataclasses import dataclass, field

from whaleflow.aggregator.flow import OpenFlow
from whaleflow.aggregator.liquidation import LiqStats
from whaleflow.client.models import Side
from whaleflow.detector.models import NO_SIGNAL, NoSignal, WalletAmount, rank_wallets
from whaleflow.detector.params import LiquidationSniperParams, LiquidationSweepParams


@dataclass
class Cascade:
    instrument: str
    liquidated_side: Side
    liquidated_usd: float

    @property
    def direction(self) -> Side:
        # 多头爆仓 = 被动卖出，瀑布方向为空
        return self.liquidated_side.opposite

    @property
    def fade_side(self) -> Side:
        return self.direction.opposite


@dataclass
class SniperSignal:
    cascade: Cascade
    faders: list[WalletAmount] = field(default_factory=list)


@dataclass
class LiquidationRow:
    instrument: str
    long: float
    short: float
    total: float


def liquidation_sniper(
    liqs: dict[str, LiqStats],
    opens: dict[str, OpenFlow],
    params: LiquidationSniperParams,
) -> SniperSignal | NoSignal:
    """
    某一侧爆仓 >= liq_threshold 视为瀑布，再要求至少 min_wallets 个钱包
    逆瀑布方向开仓 >= build_threshold
    """
    ordered = sorted(liqs.values(), key=lambda s: s.max_side, reverse=True)
    for stats in ordered:
        sides = sorted(
            ((Side.LONG, stats.long), (Side.SHORT, stats.short)),
            key=lambda kv: kv[1],
            reverse=True,
        )
        for side, amount in sides:
            if amount <= 0 or amount < params.liq_threshold:
                continue
            cascade = Cascade(stats.instrument, side, amount)
            flow = opens.get(stats.instrument)
            if flow is None:
                continue
            faders = rank_wallets(flow.by_wallet(cascade.fade_side), params.build_threshold)
            if len(faders) >= params.min_wallets:
                return SniperSignal(cascade, faders)

    return NO_SIGNAL


def liquidation_sweep(
    liqs: dict[str, LiqStats], params: LiquidationSweepParams
) -> list[LiquidationRow] | NoSignal:
    """列出所有有爆仓的品种，按 max(多, 空) 降序 (稳定排序)"""
    rows = [
        LiquidationRow(s.instrument, long=s.long, short=s.short, total=s.total)
        for s in liqs.values()
        if s.total > 0
    ]
    rows.sort(key=lambda r: max(r.long, r.short), reverse=True)
    if params.top_n is not None:
        rows = rows[: params.top_n]
    return rows or NO_SIGNAL
