"""每个检测器的参数结构 (带默认值，在入口处校验)"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from whaleflow.detector.models import DetectorKind

MAX_WINDOW_MINUTES = 7 * 24 * 60


class DetectorParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    window_minutes: int = Field(default=60, ge=1, le=MAX_WINDOW_MINUTES)


class FillInsightParams(DetectorParams):
    big_notional: float = Field(default=50_000, ge=0)
    drip_size: float = Field(default=500, ge=0)
    drip_count: int = Field(default=15, ge=1)


class FlowSweepParams(DetectorParams):
    min_notional: float = Field(default=100_000, ge=0)
    min_wallets: int = Field(default=1, ge=1)
    top_wallets: int = Field(default=3, ge=1)


class MicroFlowPulseParams(DetectorParams):
    window_minutes: int = Field(default=15, ge=1, le=MAX_WINDOW_MINUTES)
    top_n: int = Field(default=10, ge=1)


class TrendBiasParams(DetectorParams):
    window_minutes: int = Field(default=24 * 60, ge=1, le=MAX_WINDOW_MINUTES)
    threshold: float = Field(default=250_000, ge=0)
    min_wallets: int = Field(default=1, ge=1)
    top_n: int = Field(default=10, ge=1)


class DivergenceRadarParams(DetectorParams):
    close_threshold: float = Field(default=100_000, ge=0)
    build_threshold: float = Field(default=100_000, ge=0)
    min_closers: int = Field(default=1, ge=1)
    min_builders: int = Field(default=1, ge=1)


class CompressionRadarParams(DetectorParams):
    window_minutes: int = Field(default=4 * 60, ge=1, le=MAX_WINDOW_MINUTES)
    interval: str = "5m"
    min_ticks: int = Field(default=12, ge=1)
    range_bps: float = Field(default=150, ge=0)
    build_threshold: float = Field(default=100_000, ge=0)
    min_wallets: int = Field(default=2, ge=1)
    top_wallets: int = Field(default=3, ge=1)


class LiquidationSniperParams(DetectorParams):
    liq_threshold: float = Field(default=500_000, ge=0)
    build_threshold: float = Field(default=50_000, ge=0)
    min_wallets: int = Field(default=2, ge=1)


class LiquidationSweepParams(DetectorParams):
    top_n: int | None = Field(default=None, ge=1)


class OIPulseParams(DetectorParams):
    delta_threshold_pct: float = Field(default=2.0, ge=0)
    side: Literal["long", "short", "any"] = "any"
    min_wallets: int = Field(default=1, ge=1)
    top_wallets: int = Field(default=3, ge=1)


class PositionDeltaParams(DetectorParams):
    trim_threshold: float = Field(default=100_000, ge=0)
    add_threshold: float = Field(default=100_000, ge=0)
    new_threshold: float = Field(default=100_000, ge=0)
    max_hits: int = Field(default=20, ge=1)


class TickerParams(DetectorParams):
    symbol: str = Field(min_length=1)


PARAMS_BY_KIND: dict[DetectorKind, type[DetectorParams]] = {
    DetectorKind.FILL_INSIGHT: FillInsightParams,
    DetectorKind.FLOW_SWEEP: FlowSweepParams,
    DetectorKind.MICRO_FLOW_PULSE: MicroFlowPulseParams,
    DetectorKind.TREND_BIAS: TrendBiasParams,
    DetectorKind.DIVERGENCE_RADAR: DivergenceRadarParams,
    DetectorKind.COMPRESSION_RADAR: CompressionRadarParams,
    DetectorKind.LIQUIDATION_SNIPER: LiquidationSniperParams,
    DetectorKind.LIQUIDATION_SWEEP: LiquidationSweepParams,
    DetectorKind.OI_PULSE: OIPulseParams,
    DetectorKind.POSITION_DELTA_PULSE: PositionDeltaParams,
    DetectorKind.TICKER: TickerParams,
}
