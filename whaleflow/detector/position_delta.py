# whaleflow/detector/position_delta.py
from dataclasses import dataclass
from enum import Enum

from whaleflow.aggregator.flow import SideActivity
from whaleflow.client.models import PositionSnapshot, Side
from whaleflow.detector.models import NO_SIGNAL, NoSignal
from whaleflow.detector.params import PositionDeltaParams


class DeltaKind(Enum):
    REDUCED = "reduced"
    ADDED = "added"
    OPENED = "opened"


@dataclass
class PositionDelta:
    wallet: str
    instrument: str
    kind: DeltaKind
    side: Side
    notional: float
    position_usd: float


def _classify(
    entry: SideActivity,
    held: PositionSnapshot | None,
    params: PositionDeltaParams,
) -> PositionDelta | None:
    # 每个 (钱包, 品种) 至多一个分类
    if held is not None:
        side = held.side
        if entry.closed[side] >= params.trim_threshold:
            return PositionDelta(
                entry.wallet, entry.instrument, DeltaKind.REDUCED, side, entry.closed[side], held.size_usd
            )
        if entry.opened[side] >= params.add_threshold:
            return PositionDelta(
                entry.wallet, entry.instrument, DeltaKind.ADDED, side, entry.opened[side], held.size_usd
            )
        return None

    side = Side.LONG if entry.opened[Side.LONG] >= entry.opened[Side.SHORT] else Side.SHORT
    if entry.opened[side] > 0 and entry.opened[side] >= params.new_threshold:
        return PositionDelta(
            entry.wallet, entry.instrument, DeltaKind.OPENED, side, entry.opened[side], 0.0
        )
    return None


def position_delta_pulse(
    positions: list[PositionSnapshot],
    activity: dict[tuple[str, str], SideActivity],
    params: PositionDeltaParams,
) -> list[PositionDelta] | NoSignal:
    """结合当前持仓与窗口内开/平仓，识别减仓 / 加仓 / 新开仓"""
    held = {(p.wallet, p.instrument): p for p in positions}

    hits = []
    for key, entry in activity.items():
        delta = _classify(entry, held.get(key), params)
        if delta is not None:
            hits.append(delta)

    hits.sort(key=lambda d: d.notional, reverse=True)
    return hits[: params.max_hits] or NO_SIGNAL
