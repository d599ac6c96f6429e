# whaleflow/detector/compression.py
from dataclasses import dataclass, field

from whaleflow.aggregator.flow import InstrumentFlow
from whaleflow.client.models import Candle, Side
from whaleflow.detector.models import NO_SIGNAL, NoSignal, WalletAmount
from whaleflow.detector.params import CompressionRadarParams


@dataclass
class PriceRange:
    instrument: str
    high: float
    low: float
    ticks: int

    @property
    def range_bps(self) -> float:
        if self.low <= 0:
            return float("inf")
        return (self.high - self.low) / self.low * 10_000


@dataclass
class CompressionSignal:
    instrument: str
    high: float
    low: float
    range_bps: float
    ticks: int
    net_notional: float
    wallet_count: int
    bias: Side
    top_wallets: list[WalletAmount] = field(default_factory=list)


def price_range(instrument: str, candles: list[Candle]) -> PriceRange | None:
    if not candles:
        return None
    return PriceRange(
        instrument=instrument,
        high=max(c.high for c in candles),
        low=min(c.low for c in candles),
        ticks=len(candles),
    )


def _builds(flows: dict[str, InstrumentFlow], params: CompressionRadarParams) -> list[InstrumentFlow]:
    kept = [
        f
        for f in flows.values()
        if f.net_notional != 0
        and abs(f.net_notional) >= params.build_threshold
        and f.wallet_count >= params.min_wallets
    ]
    return sorted(kept, key=lambda f: abs(f.net_notional), reverse=True)


def compression_candidates(
    flows: dict[str, InstrumentFlow], params: CompressionRadarParams
) -> list[str]:
    """满足建仓条件、需要拉 K 线确认区间的品种"""
    return [f.instrument for f in _builds(flows, params)]


def compression_radar(
    ranges: dict[str, PriceRange],
    flows: dict[str, InstrumentFlow],
    params: CompressionRadarParams,
) -> CompressionSignal | NoSignal:
    """价格窄幅震荡 + 大户持续单边建仓"""
    for flow in _builds(flows, params):
        pr = ranges.get(flow.instrument)
        # 数据不足直接跳过
        if pr is None or pr.ticks < params.min_ticks:
            continue
        if pr.range_bps > params.range_bps:
            continue

        net = flow.net_notional
        return CompressionSignal(
            instrument=flow.instrument,
            high=pr.high,
            low=pr.low,
            range_bps=pr.range_bps,
            ticks=pr.ticks,
            net_notional=net,
            wallet_count=flow.wallet_count,
            bias=Side.LONG if net > 0 else Side.SHORT,
            top_wallets=[WalletAmount(w, v) for w, v in flow.top_wallets(params.top_wallets)],
        )

    return NO_SIGNAL
