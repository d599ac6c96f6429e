# whaleflow/detector/fill_insight.py
from dataclasses import dataclass, field

from whaleflow.client.models import Action, Fill, Side
from whaleflow.detector.params import FillInsightParams


@dataclass
class ProfitTake:
    instrument: str
    side: Side
    size: float
    price: float
    notional: float
    pnl: float | None
    timestamp: int


@dataclass
class Flip:
    instrument: str
    from_side: Side
    to_side: Side
    size: float
    price: float
    notional: float
    timestamp: int


@dataclass
class NewBuild:
    instrument: str
    side: Side
    size: float
    price: float
    notional: float
    timestamp: int


@dataclass
class FillInsight:
    profit_takes: list[ProfitTake] = field(default_factory=list)
    flips: list[Flip] = field(default_factory=list)
    new_builds: list[NewBuild] = field(default_factory=list)
    drip_style: bool = False

    @property
    def has_signal(self) -> bool:
        return bool(self.profit_takes or self.flips or self.new_builds or self.drip_style)


@dataclass
class WalletInsight:
    """单个钱包的成交分析，附带归一化后的成交供下游使用"""

    address: str
    fill_count: int
    insights: FillInsight | None
    error: str | None = None
    fills: list[Fill] = field(default_factory=list)


@dataclass
class _Entry:
    size: float = 0.0
    cost: float = 0.0


def _close_pnl(fill: Fill, entries: dict[tuple[str, Side], _Entry]) -> float | None:
    """优先用交易所给的已实现盈亏，否则按窗口内开仓均价估算"""
    entry = entries.get((fill.instrument, fill.side))
    estimated = None
    if entry and entry.size > 0:
        matched = min(fill.size, entry.size)
        avg_price = entry.cost / entry.size
        direction = 1 if fill.side is Side.LONG else -1
        estimated = (fill.price - avg_price) * matched * direction
        entry.cost -= avg_price * matched
        entry.size -= matched
    return fill.realized_pnl if fill.realized_pnl is not None else estimated


def analyse_fills(fills: list[Fill], params: FillInsightParams) -> FillInsight:
    """
    分析单个钱包的成交

    - 平仓名义价值 >= big_notional: 大额止盈
    - 开仓方向与该品种上一次记录方向相反且 >= big_notional: 反手
    - 开仓 >= big_notional: 大额建仓
    - 小额平仓 (<= drip_size) 次数 >= drip_count: 滴灌式平仓
    """
    out = FillInsight()
    if not fills:
        return out

    last_side: dict[str, Side] = {}
    entries: dict[tuple[str, Side], _Entry] = {}
    tiny_closes = 0

    for f in sorted(fills, key=lambda f: f.timestamp):
        notional = f.notional_usd
        big = notional >= params.big_notional

        if f.action is Action.CLOSE:
            pnl = _close_pnl(f, entries)
            if big:
                out.profit_takes.append(
                    ProfitTake(f.instrument, f.side, f.size, f.price, notional, pnl, f.timestamp)
                )
            if notional <= params.drip_size:
                tiny_closes += 1
        else:
            previous = last_side.get(f.instrument)
            if previous is not None and previous is not f.side and big:
                out.flips.append(
                    Flip(f.instrument, previous, f.side, f.size, f.price, notional, f.timestamp)
                )
            entry = entries.setdefault((f.instrument, f.side), _Entry())
            entry.size += f.size
            entry.cost += f.size * f.price
            if big:
                out.new_builds.append(
                    NewBuild(f.instrument, f.side, f.size, f.price, notional, f.timestamp)
                )

        last_side[f.instrument] = f.side

    out.drip_style = tiny_closes >= params.drip_count
    return out
