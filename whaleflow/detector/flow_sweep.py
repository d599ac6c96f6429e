# whaleflow/detector/flow_sweep.py
from dataclasses import dataclass, field

from whaleflow.aggregator.flow import InstrumentFlow, OpenFlow
from whaleflow.client.models import Side
from whaleflow.detector.models import NO_SIGNAL, NoSignal, WalletAmount
from whaleflow.detector.params import FlowSweepParams, MicroFlowPulseParams, TrendBiasParams


@dataclass
class FlowRank:
    instrument: str
    net_notional: float
    wallet_count: int
    bias: Side
    top_wallets: list[WalletAmount] = field(default_factory=list)


@dataclass
class PulseEntry:
    instrument: str
    net: float
    long_usd: float
    short_usd: float
    long_count: int
    short_count: int


def _rank(
    flows: dict[str, InstrumentFlow],
    threshold: float,
    min_wallets: int,
    top_wallets: int,
) -> list[FlowRank]:
    kept = [
        f
        for f in flows.values()
        if f.net_notional != 0 and abs(f.net_notional) >= threshold and f.wallet_count >= min_wallets
    ]
    kept.sort(key=lambda f: abs(f.net_notional), reverse=True)
    return [
        FlowRank(
            instrument=f.instrument,
            net_notional=f.net_notional,
            wallet_count=f.wallet_count,
            bias=Side.LONG if f.net_notional > 0 else Side.SHORT,
            top_wallets=[WalletAmount(w, v) for w, v in f.top_wallets(top_wallets)],
        )
        for f in kept
    ]


def flow_sweep(flows: dict[str, InstrumentFlow], params: FlowSweepParams) -> list[FlowRank] | NoSignal:
    ranked = _rank(flows, params.min_notional, params.min_wallets, params.top_wallets)
    return ranked or NO_SIGNAL


def trend_bias(flows: dict[str, InstrumentFlow], params: TrendBiasParams) -> list[FlowRank] | NoSignal:
    """长窗口累积/派发榜"""
    ranked = _rank(flows, params.threshold, params.min_wallets, 3)[: params.top_n]
    return ranked or NO_SIGNAL


def micro_flow_pulse(
    opens: dict[str, OpenFlow], params: MicroFlowPulseParams
) -> list[PulseEntry] | NoSignal:
    """只看开仓，不设金额门槛"""
    entries = [
        PulseEntry(
            instrument=o.instrument,
            net=o.net,
            long_usd=o.long_usd,
            short_usd=o.short_usd,
            long_count=o.long_count,
            short_count=o.short_count,
        )
        for o in opens.values()
        if o.long_count or o.short_count
    ]
    entries.sort(key=lambda e: abs(e.net), reverse=True)
    return entries[: params.top_n] or NO_SIGNAL
