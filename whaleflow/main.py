"""
大户行为分析入口

用法:
    python -m whaleflow.main --mode flow_sweep --address 0x... --address 0x... --hours 4
    python -m whaleflow.main --mode liquidation_sweep
    python -m whaleflow.main --mode ticker --symbol SOL-PERP
    python -m whaleflow.main --mode oi_pulse --default-addresses --param side=long --config config.yaml
"""

import argparse
import asyncio
import json
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, assert_never

import aiohttp
from pydantic import ValidationError

from whaleflow.aggregator.flow import aggregate_net_flow, aggregate_opens, aggregate_side_activity
from whaleflow.aggregator.liquidation import aggregate_liquidations
from whaleflow.aggregator.oi import oi_deltas
from whaleflow.client.cache import TTLCache
from whaleflow.client.gateway import FetchGateway
from whaleflow.client.hyperliquid import HyperliquidAPIError, HyperliquidClient
from whaleflow.client.models import TimeWindow
from whaleflow.config import Config, load_config
from whaleflow.detector.compression import compression_candidates, compression_radar, price_range
from whaleflow.detector.divergence import divergence_radar
from whaleflow.detector.fill_insight import WalletInsight, analyse_fills
from whaleflow.detector.flow_sweep import flow_sweep, micro_flow_pulse, trend_bias
from whaleflow.detector.liquidation import liquidation_sniper, liquidation_sweep
from whaleflow.detector.models import DetectorKind
from whaleflow.detector.oi_pulse import oi_pulse
from whaleflow.detector.params import (
    PARAMS_BY_KIND,
    CompressionRadarParams,
    DetectorParams,
    DivergenceRadarParams,
    FillInsightParams,
    FlowSweepParams,
    LiquidationSniperParams,
    LiquidationSweepParams,
    MicroFlowPulseParams,
    OIPulseParams,
    PositionDeltaParams,
    TickerParams,
    TrendBiasParams,
)
from whaleflow.detector.position_delta import position_delta_pulse
from whaleflow.detector.ticker import resolve_ticker
from whaleflow.formatter import format_report

logger = logging.getLogger(__name__)

ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
MAX_HOURS = 168


class InvalidRequestError(ValueError):
    """调用方输入错误，在发出任何请求前拒绝"""


@dataclass
class AnalysisRequest:
    kind: DetectorKind
    params: DetectorParams
    addresses: list[str] = field(default_factory=list)


@dataclass
class AnalysisReport:
    kind: DetectorKind
    window: TimeWindow
    result: Any
    errors: dict[str, str] = field(default_factory=dict)


def parse_kind(mode: str) -> DetectorKind:
    try:
        return DetectorKind(mode.strip().lower())
    except ValueError:
        raise InvalidRequestError(f"Unknown mode: {mode}") from None


def validate_addresses(addresses: Sequence[str]) -> list[str]:
    bad = [a for a in addresses if not ADDRESS_RE.match(a)]
    if bad:
        raise InvalidRequestError(f"Invalid address(es): {', '.join(bad)}")
    # 去重且保持顺序
    return list(dict.fromkeys(a.lower() for a in addresses))


def build_request(
    config: Config,
    mode: str,
    addresses: Sequence[str] | None = None,
    use_default_addresses: bool = False,
    hours: int | None = None,
    minutes: int | None = None,
    params: dict[str, Any] | None = None,
    symbol: str | None = None,
) -> AnalysisRequest:
    kind = parse_kind(mode)

    wallets: list[str] = []
    if kind.needs_wallets:
        source = list(config.addresses) if use_default_addresses else list(addresses or [])
        if not source:
            raise InvalidRequestError(f"{kind.value} requires at least one wallet address")
        wallets = validate_addresses(source)

    defaults = getattr(config.detectors, kind.value, None)
    merged: dict[str, Any] = defaults.model_dump() if defaults is not None else {}
    merged.update(params or {})
    if symbol is not None:
        merged["symbol"] = symbol

    if hours is not None and minutes is not None:
        raise InvalidRequestError("Specify either hours or minutes, not both")
    if hours is not None:
        if not 1 <= hours <= MAX_HOURS:
            raise InvalidRequestError(f"hours must be between 1 and {MAX_HOURS}")
        merged["window_minutes"] = hours * 60
    elif minutes is not None:
        merged["window_minutes"] = minutes

    try:
        detector_params = PARAMS_BY_KIND[kind].model_validate(merged)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'params'}: {err['msg']}" for err in e.errors()
        )
        raise InvalidRequestError(f"Invalid parameters for {kind.value}: {problems}") from None

    return AnalysisRequest(kind=kind, params=detector_params, addresses=wallets)


class WhaleFlowAnalyzer:
    def __init__(self, config: Config, gateway: FetchGateway | None = None):
        self.config = config
        self.gateway = gateway
        self.cache = TTLCache(config.gateway.cache_ttl_seconds)
        self._client: HyperliquidClient | None = None

    async def __aenter__(self) -> "WhaleFlowAnalyzer":
        if self.gateway is None:
            self._client = HyperliquidClient(
                base_url=self.config.api.base_url,
                timeout_seconds=self.config.api.timeout_seconds,
            )
            await self._client.__aenter__()
            gw = self.config.gateway
            self.gateway = FetchGateway(
                self._client,
                self.cache,
                max_in_flight=gw.max_in_flight,
                max_retries=gw.max_retries,
                backoff_seconds=gw.backoff_seconds,
                batch_size=gw.batch_size,
                liquidation_endpoint=self.config.api.liquidation_endpoint,
                liquidation_max_span_ms=self.config.windows.liquidation_max_span_ms,
            )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._client:
            await self._client.__aexit__(exc_type, exc_val, exc_tb)
            self._client = None
            self.gateway = None

    async def run(
        self,
        mode: str,
        addresses: Sequence[str] | None = None,
        use_default_addresses: bool = False,
        hours: int | None = None,
        minutes: int | None = None,
        params: dict[str, Any] | None = None,
        symbol: str | None = None,
    ) -> str:
        """入口: 返回 JSON 字符串，或以 ❌ 开头的错误信息"""
        try:
            request = build_request(
                self.config, mode, addresses, use_default_addresses, hours, minutes, params, symbol
            )
        except InvalidRequestError as e:
            return f"❌ {e}"

        try:
            report = await self.analyze(request)
        except (HyperliquidAPIError, aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"{request.kind.value} failed upstream: {e!r}")
            return f"❌ Upstream error: {e}"

        window = {"start_ms": report.window.start_ms, "end_ms": report.window.end_ms}
        payload = format_report(report.kind.value, window, report.result, report.errors)
        return json.dumps(payload, indent=2, ensure_ascii=False)

    async def analyze(self, request: AnalysisRequest, now_ms: int | None = None) -> AnalysisReport:
        if self.gateway is None:
            raise RuntimeError("Gateway not initialized. Use 'async with' context.")

        gateway = self.gateway
        kind = request.kind
        params = request.params
        wallets = request.addresses
        window = TimeWindow.last(params.window_minutes, now_ms)
        deadline = self.config.gateway.deadline_seconds
        logger.info(f"Running {kind.value} over {params.window_minutes}m for {len(wallets)} wallet(s)")

        match kind:
            case DetectorKind.FILL_INSIGHT:
                assert isinstance(params, FillInsightParams)
                fetched = await gateway.fetch_fills_by_wallet(wallets, window, timeout=deadline)
                insights = [
                    WalletInsight(
                        r.address, len(r.payload), analyse_fills(r.payload, params), fills=r.payload
                    )
                    if r.ok
                    else WalletInsight(r.address, 0, None, r.error)
                    for r in fetched
                ]
                errors = {r.address: r.error for r in fetched if r.error}
                return AnalysisReport(kind, window, insights, errors)

            case DetectorKind.FLOW_SWEEP:
                assert isinstance(params, FlowSweepParams)
                fills, errors = await gateway.fetch_fills(wallets, window, timeout=deadline)
                return AnalysisReport(kind, window, flow_sweep(aggregate_net_flow(fills), params), errors)

            case DetectorKind.MICRO_FLOW_PULSE:
                assert isinstance(params, MicroFlowPulseParams)
                fills, errors = await gateway.fetch_fills(wallets, window, timeout=deadline)
                return AnalysisReport(kind, window, micro_flow_pulse(aggregate_opens(fills), params), errors)

            case DetectorKind.TREND_BIAS:
                assert isinstance(params, TrendBiasParams)
                fills, errors = await gateway.fetch_fills(wallets, window, timeout=deadline)
                return AnalysisReport(kind, window, trend_bias(aggregate_net_flow(fills), params), errors)

            case DetectorKind.DIVERGENCE_RADAR:
                assert isinstance(params, DivergenceRadarParams)
                fills, errors = await gateway.fetch_fills(wallets, window, timeout=deadline)
                result = divergence_radar(aggregate_side_activity(fills), params)
                return AnalysisReport(kind, window, result, errors)

            case DetectorKind.COMPRESSION_RADAR:
                assert isinstance(params, CompressionRadarParams)
                fills, errors = await gateway.fetch_fills(wallets, window, timeout=deadline)
                flows = aggregate_net_flow(fills)
                candidates = compression_candidates(flows, params)
                candles = await gateway.fetch_candles(candidates, params.interval, window)
                ranges = {
                    coin: pr
                    for coin, series in candles.items()
                    if (pr := price_range(coin, series)) is not None
                }
                return AnalysisReport(kind, window, compression_radar(ranges, flows, params), errors)

            case DetectorKind.LIQUIDATION_SNIPER:
                assert isinstance(params, LiquidationSniperParams)
                (fills, errors), liqs = await asyncio.gather(
                    gateway.fetch_fills(wallets, window, timeout=deadline),
                    gateway.fetch_liquidations(window),
                )
                result = liquidation_sniper(aggregate_liquidations(liqs), aggregate_opens(fills), params)
                return AnalysisReport(kind, window, result, errors)

            case DetectorKind.LIQUIDATION_SWEEP:
                assert isinstance(params, LiquidationSweepParams)
                clamped = window.clamp(self.config.windows.liquidation_max_span_ms)
                liqs = await gateway.fetch_liquidations(clamped)
                return AnalysisReport(kind, clamped, liquidation_sweep(aggregate_liquidations(liqs), params))

            case DetectorKind.OI_PULSE:
                assert isinstance(params, OIPulseParams)
                fills, errors = await gateway.fetch_fills(wallets, window, timeout=deadline)
                flows = aggregate_net_flow(fills)
                coins = [f.instrument for f in flows.values() if f.wallet_count >= params.min_wallets]
                samples = await gateway.fetch_oi_history(coins, window)
                return AnalysisReport(kind, window, oi_pulse(oi_deltas(samples), flows, params), errors)

            case DetectorKind.POSITION_DELTA_PULSE:
                assert isinstance(params, PositionDeltaParams)
                (fills, fill_errors), (positions, position_errors) = await asyncio.gather(
                    gateway.fetch_fills(wallets, window, timeout=deadline),
                    gateway.fetch_positions(wallets, timeout=deadline),
                )
                result = position_delta_pulse(positions, aggregate_side_activity(fills), params)
                return AnalysisReport(kind, window, result, {**position_errors, **fill_errors})

            case DetectorKind.TICKER:
                assert isinstance(params, TickerParams)
                perps, spots = await asyncio.gather(gateway.perp_universe(), gateway.spot_pairs())
                return AnalysisReport(kind, window, resolve_ticker(params.symbol, perps, spots))

            case _:
                assert_never(kind)


def _parse_param(raw: str) -> tuple[str, Any]:
    key, sep, value = raw.partition("=")
    if not sep:
        raise argparse.ArgumentTypeError(f"expected key=value, got {raw!r}")
    try:
        return key.strip(), json.loads(value)
    except json.JSONDecodeError:
        return key.strip(), value


def parse_args(args: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Hyperliquid 大户行为分析")
    parser.add_argument(
        "--mode",
        required=True,
        help=f"检测模式: {', '.join(k.value for k in DetectorKind)}",
    )
    parser.add_argument(
        "--address",
        action="append",
        default=[],
        help="钱包地址 (可重复)",
    )
    parser.add_argument(
        "--default-addresses",
        action="store_true",
        help="使用配置文件中的地址列表",
    )
    window = parser.add_mutually_exclusive_group()
    window.add_argument("--hours", type=int, default=None, help="回看小时数 (1-168)")
    window.add_argument("--minutes", type=int, default=None, help="回看分钟数")
    parser.add_argument(
        "--param",
        action="append",
        type=_parse_param,
        default=[],
        help="检测器参数 key=value (可重复)",
    )
    parser.add_argument("--symbol", type=str, default=None, help="ticker 模式的币种")
    parser.add_argument("--config", type=Path, default=None, help="YAML 配置文件路径")
    return parser.parse_args(args)


async def main(args: argparse.Namespace) -> str:
    config = load_config(args.config) if args.config else Config()
    async with WhaleFlowAnalyzer(config) as analyzer:
        return await analyzer.run(
            args.mode,
            addresses=args.address,
            use_default_addresses=args.default_addresses,
            hours=args.hours,
            minutes=args.minutes,
            params=dict(args.param),
            symbol=args.symbol,
        )


def cli() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    print(asyncio.run(main(parse_args())))


if __name__ == "__main__":
    cli()
