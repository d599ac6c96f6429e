# tests/test_main.py
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from whaleflow.client.cache import TTLCache
from whaleflow.client.gateway import FetchGateway, WalletFetch
from whaleflow.client.hyperliquid import HyperliquidAPIError
from whaleflow.client.models import Action, Fill, Side
from whaleflow.config import Config
from whaleflow.detector.models import DetectorKind
from whaleflow.detector.params import FlowSweepParams, TickerParams
from whaleflow.main import (
    InvalidRequestError,
    WhaleFlowAnalyzer,
    build_request,
    parse_args,
    validate_addresses,
)

W1 = "0x" + "a" * 40
W2 = "0x" + "b" * 40


def _fill(wallet, action, side, notional, instrument="BTC"):
    return Fill(instrument, wallet, action, side, 1, notional, 1706600000000)


@pytest.fixture
def gateway():
    gw = MagicMock()
    gw.fetch_fills = AsyncMock(return_value=([], {}))
    gw.fetch_fills_by_wallet = AsyncMock(return_value=[])
    gw.fetch_positions = AsyncMock(return_value=([], {}))
    gw.fetch_liquidations = AsyncMock(return_value=[])
    gw.fetch_candles = AsyncMock(return_value={})
    gw.fetch_oi_history = AsyncMock(return_value=[])
    gw.perp_universe = AsyncMock(return_value=["BTC", "SOL"])
    gw.spot_pairs = AsyncMock(return_value=["PURR/USDC"])
    return gw


def test_validate_addresses():
    assert validate_addresses([W1, W1.upper().replace("0X", "0x"), W2]) == [W1, W2]

    with pytest.raises(InvalidRequestError, match="0x123"):
        validate_addresses([W1, "0x123"])


def test_build_request_merges_config_defaults():
    config = Config()
    config.detectors.flow_sweep = FlowSweepParams(min_notional=1_000, min_wallets=2)

    request = build_request(config, "flow_sweep", [W1], hours=4, params={"top_wallets": 5})

    assert request.kind is DetectorKind.FLOW_SWEEP
    assert request.params.min_notional == 1_000
    assert request.params.min_wallets == 2
    assert request.params.top_wallets == 5
    assert request.params.window_minutes == 240
    assert request.addresses == [W1]


def test_build_request_default_addresses():
    config = Config(addresses=[W2])

    request = build_request(config, "trend_bias", use_default_addresses=True)

    assert request.addresses == [W2]


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"mode": "whale_magic", "addresses": [W1]}, "Unknown mode"),
        ({"mode": "flow_sweep", "addresses": []}, "requires at least one wallet"),
        ({"mode": "flow_sweep", "addresses": ["0xnope"]}, "Invalid address"),
        ({"mode": "flow_sweep", "addresses": [W1], "hours": 200}, "hours must be"),
        ({"mode": "flow_sweep", "addresses": [W1], "hours": 1, "minutes": 5}, "either hours or minutes"),
        ({"mode": "flow_sweep", "addresses": [W1], "params": {"bogus": 1}}, "Invalid parameters"),
        ({"mode": "flow_sweep", "addresses": [W1], "params": {"min_notional": -5}}, "min_notional"),
        ({"mode": "ticker"}, "symbol"),
    ],
)
def test_build_request_rejects_bad_input(kwargs, message):
    with pytest.raises(InvalidRequestError, match=message):
        build_request(Config(), **kwargs)


def test_ticker_request_needs_no_wallets():
    request = build_request(Config(), "ticker", symbol="SOL-PERP")

    assert isinstance(request.params, TickerParams)
    assert request.addresses == []


async def test_invalid_input_rejected_before_fetch(gateway):
    analyzer = WhaleFlowAnalyzer(Config(), gateway=gateway)

    assert await analyzer.run("flow_sweep", addresses=[W1, "not-an-address"]) == (
        "❌ Invalid address(es): not-an-address"
    )
    assert await analyzer.run("nope", addresses=[W1]) == "❌ Unknown mode: nope"
    gateway.fetch_fills.assert_not_awaited()


async def test_flow_sweep_with_partial_failure(gateway):
    gateway.fetch_fills.return_value = (
        [
            _fill(W1, Action.OPEN, Side.LONG, 400_000),
            _fill(W1, Action.CLOSE, Side.SHORT, 100_000),
        ],
        {W2: "timeout"},
    )
    analyzer = WhaleFlowAnalyzer(Config(), gateway=gateway)

    output = json.loads(await analyzer.run("flow_sweep", addresses=[W1, W2], hours=2))

    assert output["mode"] == "flow_sweep"
    assert output["errors"] == {W2: "timeout"}
    assert output["window"]["end_ms"] - output["window"]["start_ms"] == 2 * 3_600_000
    [row] = output["result"]
    assert row["instrument"] == "BTC"
    assert row["net_notional"] == 500_000
    assert row["bias"] == "long"


async def test_no_signal_is_not_an_error(gateway):
    analyzer = WhaleFlowAnalyzer(Config(), gateway=gateway)

    output = json.loads(await analyzer.run("divergence_radar", addresses=[W1]))

    assert output["result"] == {"signal": "none"}
    assert output["errors"] == {}


async def test_fill_insight_per_wallet(gateway):
    gateway.fetch_fills_by_wallet.return_value = [
        WalletFetch(W1, payload=[_fill(W1, Action.OPEN, Side.LONG, 100_000)]),
        WalletFetch(W2, error="HTTP 400: unknown user"),
    ]
    analyzer = WhaleFlowAnalyzer(Config(), gateway=gateway)

    output = json.loads(await analyzer.run("fill_insight", addresses=[W1, W2]))

    first, second = output["result"]
    assert first["address"] == W1
    assert first["fill_count"] == 1
    assert len(first["insights"]["new_builds"]) == 1
    assert [f["wallet"] for f in first["fills"]] == [W1]
    assert first["fills"][0]["action"] == "open"
    assert second["insights"] is None
    assert second["error"] == "HTTP 400: unknown user"
    assert second["fills"] == []
    assert output["errors"] == {W2: "HTTP 400: unknown user"}


async def test_ticker(gateway):
    analyzer = WhaleFlowAnalyzer(Config(), gateway=gateway)

    output = json.loads(await analyzer.run("ticker", symbol="SOL-PERP"))

    assert output["result"]["available"] is True
    assert output["result"]["perp"] is True
    assert output["result"]["spot"] is False


async def test_compression_fetches_candles_for_candidates(gateway):
    gateway.fetch_fills.return_value = (
        [
            _fill(W1, Action.OPEN, Side.LONG, 200_000),
            _fill(W2, Action.OPEN, Side.LONG, 200_000),
        ],
        {},
    )
    analyzer = WhaleFlowAnalyzer(Config(), gateway=gateway)

    output = json.loads(await analyzer.run("compression_radar", addresses=[W1, W2]))

    assert output["result"] == {"signal": "none"}
    assert gateway.fetch_candles.await_args.args[0] == ["BTC"]


async def test_liquidation_sweep_window_is_clamped(gateway):
    analyzer = WhaleFlowAnalyzer(Config(), gateway=gateway)

    output = json.loads(await analyzer.run("liquidation_sweep", minutes=60))

    assert output["window"]["end_ms"] - output["window"]["start_ms"] == 119_000
    assert output["result"] == {"signal": "none"}


async def test_unprocessable_liquidations_yield_empty_sweep():
    client = MagicMock()
    client.request = AsyncMock(side_effect=HyperliquidAPIError(422, "invalid window"))
    gateway = FetchGateway(client, TTLCache(), sleep=AsyncMock())
    analyzer = WhaleFlowAnalyzer(Config(), gateway=gateway)

    output = json.loads(await analyzer.run("liquidation_sweep"))

    assert output["result"] == {"signal": "none"}


async def test_upstream_failure_returns_message(gateway):
    gateway.fetch_liquidations.side_effect = HyperliquidAPIError(400, "bad request")
    analyzer = WhaleFlowAnalyzer(Config(), gateway=gateway)

    result = await analyzer.run("liquidation_sweep")

    assert result.startswith("❌ Upstream error")


async def test_position_delta_merges_errors(gateway):
    gateway.fetch_fills.return_value = ([], {W1: "timeout"})
    gateway.fetch_positions.return_value = ([], {W2: "HTTP 500: oops"})
    analyzer = WhaleFlowAnalyzer(Config(), gateway=gateway)

    output = json.loads(await analyzer.run("position_delta_pulse", addresses=[W1, W2]))

    assert output["errors"] == {W1: "timeout", W2: "HTTP 500: oops"}


def test_parse_args():
    args = parse_args(
        ["--mode", "oi_pulse", "--address", W1, "--hours", "2", "--param", "side=long", "--param", "min_wallets=3"]
    )

    assert args.mode == "oi_pulse"
    assert args.address == [W1]
    assert args.hours == 2
    assert dict(args.param) == {"side": "long", "min_wallets": 3}


async def test_undecodable_upstream_body_returns_message(gateway):
    gateway.fetch_liquidations.side_effect = json.JSONDecodeError("Expecting value", "", 0)
    analyzer = WhaleFlowAnalyzer(Config(), gateway=gateway)

    result = await analyzer.run("liquidation_sweep")

    assert result.startswith("❌ Upstream error")
