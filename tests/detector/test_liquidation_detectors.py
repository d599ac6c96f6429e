# tests/detector/test_liquidation_detectors.py
from whaleflow.aggregator.flow import aggregate_opens
from whaleflow.aggregator.liquidation import LiqStats
from whaleflow.client.models import Action, Fill, Side
from whaleflow.detector.liquidation import liquidation_sniper, liquidation_sweep
from whaleflow.detector.models import NO_SIGNAL
from whaleflow.detector.params import LiquidationSniperParams, LiquidationSweepParams

W1 = "0x" + "1" * 40
W2 = "0x" + "2" * 40
W3 = "0x" + "3" * 40

SNIPER = LiquidationSniperParams(liq_threshold=500_000, build_threshold=50_000, min_wallets=2)


def _open(wallet, side, notional, instrument="BTC"):
    return Fill(instrument, wallet, Action.OPEN, side, 1, notional, 1)


def test_long_cascade_faded_by_long_openers():
    liqs = {"BTC": LiqStats("BTC", long=1_000_000, short=10_000)}
    opens = aggregate_opens(
        [
            _open(W1, Side.LONG, 100_000),
            _open(W2, Side.LONG, 60_000),
            _open(W3, Side.SHORT, 900_000),
        ]
    )

    signal = liquidation_sniper(liqs, opens, SNIPER)

    assert signal is not NO_SIGNAL
    assert signal.cascade.instrument == "BTC"
    assert signal.cascade.liquidated_side is Side.LONG
    # 多头爆仓 = 强制卖出，逆向方为开多
    assert signal.cascade.direction is Side.SHORT
    assert signal.cascade.fade_side is Side.LONG
    assert [f.wallet for f in signal.faders] == [W1, W2]


def test_short_cascade_needs_short_openers():
    liqs = {"ETH": LiqStats("ETH", long=0, short=700_000)}
    opens = aggregate_opens(
        [
            _open(W1, Side.LONG, 100_000, "ETH"),
            _open(W2, Side.LONG, 100_000, "ETH"),
        ]
    )

    assert liquidation_sniper(liqs, opens, SNIPER) is NO_SIGNAL


def test_no_cascade_below_threshold():
    liqs = {"BTC": LiqStats("BTC", long=499_999, short=0)}
    opens = aggregate_opens([_open(W1, Side.LONG, 100_000), _open(W2, Side.LONG, 100_000)])

    assert liquidation_sniper(liqs, opens, SNIPER) is NO_SIGNAL


def test_faders_below_build_threshold_ignored():
    liqs = {"BTC": LiqStats("BTC", long=1_000_000)}
    opens = aggregate_opens([_open(W1, Side.LONG, 100_000), _open(W2, Side.LONG, 49_999)])

    assert liquidation_sniper(liqs, opens, SNIPER) is NO_SIGNAL


def test_sweep_sorted_by_max_side_with_stable_ties():
    liqs = {
        "SOL": LiqStats("SOL", long=100, short=300),
        "BTC": LiqStats("BTC", long=1_000, short=0),
        "ETH": LiqStats("ETH", long=0, short=300),
        "DOGE": LiqStats("DOGE", long=0, short=0),
    }

    rows = liquidation_sweep(liqs, LiquidationSweepParams())

    assert [r.instrument for r in rows] == ["BTC", "SOL", "ETH"]
    assert rows[1].total == 400
    maxima = [max(r.long, r.short) for r in rows]
    assert maxima == sorted(maxima, reverse=True)


def test_sweep_top_n_and_no_signal():
    liqs = {"BTC": LiqStats("BTC", long=10), "ETH": LiqStats("ETH", short=5)}

    assert len(liquidation_sweep(liqs, LiquidationSweepParams(top_n=1))) == 1
    assert liquidation_sweep({}, LiquidationSweepParams()) is NO_SIGNAL
