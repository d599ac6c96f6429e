# whaleflow/aggregator/liquidation.py
from dataclasses import dataclass

from whaleflow.client.models import LiquidationEvent, Side


@dataclass
class LiqStats:
    instrument: str
    long: float = 0.0
    short: float = 0.0

    @property
    def total(self) -> float:
        return self.long + self.short

    @property
    def max_side(self) -> float:
        return max(self.long, self.short)


def aggregate_liquidations(events: list[LiquidationEvent]) -> dict[str, LiqStats]:
    """按品种汇总爆仓，多空分开计数 (不做符号翻转)，保持首次出现顺序"""
    stats: dict[str, LiqStats] = {}
    for e in events:
        s = stats.setdefault(e.instrument, LiqStats(e.instrument))
        # LONG = 多头爆仓 (强制卖出)
        if e.liquidated_side is Side.LONG:
            s.long += e.notional_usd
        else:
            s.short += e.notional_usd
    return stats
