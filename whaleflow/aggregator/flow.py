# whaleflow/aggregator/flow.py
from dataclasses import dataclass, field

from whaleflow.client.models import Action, Fill, Side


@dataclass
class InstrumentFlow:
    instrument: str
    per_wallet: dict[str, float] = field(default_factory=dict)
    latest_timestamp: int = 0

    @property
    def net_notional(self) -> float:
        # 由 per_wallet 求和得到，保证两者严格一致
        return sum(self.per_wallet.values())

    @property
    def wallet_count(self) -> int:
        return sum(1 for v in self.per_wallet.values() if v != 0)

    def top_wallets(self, n: int = 3) -> list[tuple[str, float]]:
        ranked = sorted(self.per_wallet.items(), key=lambda kv: abs(kv[1]), reverse=True)
        return [(w, v) for w, v in ranked if v != 0][:n]


@dataclass
class OpenFlow:
    """只统计开仓 (忽略平仓) 的方向性活动"""

    instrument: str
    long_usd: float = 0.0
    short_usd: float = 0.0
    long_count: int = 0
    short_count: int = 0
    long_by_wallet: dict[str, float] = field(default_factory=dict)
    short_by_wallet: dict[str, float] = field(default_factory=dict)

    @property
    def net(self) -> float:
        return self.long_usd - self.short_usd

    def by_wallet(self, side: Side) -> dict[str, float]:
        return self.long_by_wallet if side is Side.LONG else self.short_by_wallet


@dataclass
class SideActivity:
    """单个 (钱包, 品种) 在窗口内按方向的开/平仓名义价值"""

    wallet: str
    instrument: str
    opened: dict[Side, float] = field(default_factory=lambda: {Side.LONG: 0.0, Side.SHORT: 0.0})
    closed: dict[Side, float] = field(default_factory=lambda: {Side.LONG: 0.0, Side.SHORT: 0.0})


def aggregate_net_flow(fills: list[Fill]) -> dict[str, InstrumentFlow]:
    flows: dict[str, InstrumentFlow] = {}
    for f in fills:
        flow = flows.setdefault(f.instrument, InstrumentFlow(f.instrument))
        flow.per_wallet[f.wallet] = flow.per_wallet.get(f.wallet, 0.0) + f.signed_notional
        flow.latest_timestamp = max(flow.latest_timestamp, f.timestamp)
    return flows


def aggregate_opens(fills: list[Fill]) -> dict[str, OpenFlow]:
    flows: dict[str, OpenFlow] = {}
    for f in fills:
        if f.action is not Action.OPEN:
            continue
        flow = flows.setdefault(f.instrument, OpenFlow(f.instrument))
        by_wallet = flow.by_wallet(f.side)
        by_wallet[f.wallet] = by_wallet.get(f.wallet, 0.0) + f.notional_usd
        if f.side is Side.LONG:
            flow.long_usd += f.notional_usd
            flow.long_count += 1
        else:
            flow.short_usd += f.notional_usd
            flow.short_count += 1
    return flows


def aggregate_side_activity(fills: list[Fill]) -> dict[tuple[str, str], SideActivity]:
    activity: dict[tuple[str, str], SideActivity] = {}
    for f in fills:
        key = (f.wallet, f.instrument)
        entry = activity.setdefault(key, SideActivity(f.wallet, f.instrument))
        bucket = entry.opened if f.action is Action.OPEN else entry.closed
        bucket[f.side] += f.notional_usd
    return activity
