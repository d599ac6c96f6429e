"""检测器共用模型"""

from dataclasses import dataclass
from enum import Enum


class DetectorKind(Enum):
    FILL_INSIGHT = "fill_insight"
    FLOW_SWEEP = "flow_sweep"
    MICRO_FLOW_PULSE = "micro_flow_pulse"
    TREND_BIAS = "trend_bias"
    DIVERGENCE_RADAR = "divergence_radar"
    COMPRESSION_RADAR = "compression_radar"
    LIQUIDATION_SNIPER = "liquidation_sniper"
    LIQUIDATION_SWEEP = "liquidation_sweep"
    OI_PULSE = "oi_pulse"
    POSITION_DELTA_PULSE = "position_delta_pulse"
    TICKER = "ticker"

    @property
    def needs_wallets(self) -> bool:
        return self not in (DetectorKind.LIQUIDATION_SWEEP, DetectorKind.TICKER)


@dataclass(frozen=True)
class NoSignal:
    """检测器没有发现任何形态 (不是错误)"""

    signal: str = "none"


NO_SIGNAL = NoSignal()


@dataclass
class WalletAmount:
    wallet: str
    notional: float


def rank_wallets(amounts: dict[str, float], minimum: float = 0.0) -> list[WalletAmount]:
    """按 |金额| 降序，过滤掉 < minimum 的钱包"""
    ranked = sorted(amounts.items(), key=lambda kv: abs(kv[1]), reverse=True)
    return [WalletAmount(w, v) for w, v in ranked if v != 0 and abs(v) >= minimum]
