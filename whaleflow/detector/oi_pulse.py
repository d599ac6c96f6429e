# whaleflow/detector/oi_pulse.py
from dataclasses import dataclass, field

from whaleflow.aggregator.flow import InstrumentFlow
from whaleflow.aggregator.oi import OIDelta
from whaleflow.client.models import Side
from whaleflow.detector.models import NO_SIGNAL, NoSignal, WalletAmount
from whaleflow.detector.params import OIPulseParams


@dataclass
class OIPulseSignal:
    instrument: str
    start_usd: float
    end_usd: float
    delta_pct: float
    bias: Side
    net_notional: float
    wallet_count: int
    top_wallets: list[WalletAmount] = field(default_factory=list)


def oi_pulse(
    deltas: dict[str, OIDelta],
    flows: dict[str, InstrumentFlow],
    params: OIPulseParams,
) -> OIPulseSignal | NoSignal:
    """OI 大幅变化，且大户净流向与指定方向一致"""
    ordered = sorted(deltas.values(), key=lambda d: abs(d.delta_pct), reverse=True)
    for delta in ordered:
        if abs(delta.delta_pct) < params.delta_threshold_pct:
            continue
        flow = flows.get(delta.instrument)
        if flow is None or flow.net_notional == 0:
            continue

        bias = Side.LONG if flow.net_notional > 0 else Side.SHORT
        if params.side != "any" and bias.value != params.side:
            continue
        if flow.wallet_count < params.min_wallets:
            continue

        return OIPulseSignal(
            instrument=delta.instrument,
            start_usd=delta.start_usd,
            end_usd=delta.end_usd,
            delta_pct=delta.delta_pct,
            bias=bias,
            net_notional=flow.net_notional,
            wallet_count=flow.wallet_count,
            top_wallets=[WalletAmount(w, v) for w, v in flow.top_wallets(params.top_wallets)],
        )

    return NO_SIGNAL
