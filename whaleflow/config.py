# whaleflow/config.py
from pathlib import Path

import yaml
from pydantic import BaseModel

from whaleflow.detector.params import (
    CompressionRadarParams,
    DivergenceRadarParams,
    FillInsightParams,
    FlowSweepParams,
    LiquidationSniperParams,
    LiquidationSweepParams,
    MicroFlowPulseParams,
    OIPulseParams,
    PositionDeltaParams,
    TrendBiasParams,
)


class ApiConfig(BaseModel):
    base_url: str = "https://api.hyperliquid.xyz"
    liquidation_endpoint: str = "/info"
    timeout_seconds: float = 10.0


class GatewayConfig(BaseModel):
    max_in_flight: int = 6
    max_retries: int = 2
    backoff_seconds: float = 0.5
    batch_size: int = 20
    cache_ttl_seconds: float = 60.0
    deadline_seconds: float | None = 30.0


class WindowsConfig(BaseModel):
    liquidation_max_span_ms: int = 119_000


class DetectorsConfig(BaseModel):
    fill_insight: FillInsightParams = FillInsightParams()
    flow_sweep: FlowSweepParams = FlowSweepParams()
    micro_flow_pulse: MicroFlowPulseParams = MicroFlowPulseParams()
    trend_bias: TrendBiasParams = TrendBiasParams()
    divergence_radar: DivergenceRadarParams = DivergenceRadarParams()
    compression_radar: CompressionRadarParams = CompressionRadarParams()
    liquidation_sniper: LiquidationSniperParams = LiquidationSniperParams()
    liquidation_sweep: LiquidationSweepParams = LiquidationSweepParams()
    oi_pulse: OIPulseParams = OIPulseParams()
    position_delta_pulse: PositionDeltaParams = PositionDeltaParams()


class Config(BaseModel):
    api: ApiConfig = ApiConfig()
    gateway: GatewayConfig = GatewayConfig()
    windows: WindowsConfig = WindowsConfig()
    addresses: list[str] = []
    detectors: DetectorsConfig = DetectorsConfig()


def load_config(path: Path) -> Config:
    with open(path) as f:
        data = yaml.safe_load(f)
    return Config(**(data or {}))
