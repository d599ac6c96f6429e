# tests/aggregator/test_flow.py
import random

import pytest

from whaleflow.aggregator.flow import aggregate_net_flow, aggregate_opens, aggregate_side_activity
from whaleflow.client.models import Action, Fill, Side

W1 = "0x" + "1" * 40
W2 = "0x" + "2" * 40
W3 = "0x" + "3" * 40


def _fill(wallet, action, side, size, price, instrument="BTC", ts=1706600000000):
    return Fill(instrument, wallet, action, side, size, price, ts)


def test_sign_convention():
    open_long = _fill(W1, Action.OPEN, Side.LONG, 1, 100)
    close_short = _fill(W1, Action.CLOSE, Side.SHORT, 1, 100)
    open_short = _fill(W1, Action.OPEN, Side.SHORT, 1, 100)
    close_long = _fill(W1, Action.CLOSE, Side.LONG, 1, 100)

    assert open_long.signed_notional == close_short.signed_notional == 100
    assert open_short.signed_notional == close_long.signed_notional == -100


def test_net_flow_by_instrument_and_wallet():
    fills = [
        _fill(W1, Action.OPEN, Side.LONG, 2, 50_000),
        _fill(W2, Action.OPEN, Side.SHORT, 1, 50_000),
        _fill(W2, Action.CLOSE, Side.LONG, 10, 3_000, instrument="ETH", ts=1706600005000),
    ]

    flows = aggregate_net_flow(fills)

    btc = flows["BTC"]
    assert btc.net_notional == 50_000  # 100000 - 50000
    assert btc.per_wallet == {W1: 100_000, W2: -50_000}
    assert btc.wallet_count == 2
    assert flows["ETH"].net_notional == -30_000
    assert flows["ETH"].latest_timestamp == 1706600005000


def test_wallet_count_ignores_netted_out_wallets():
    fills = [
        _fill(W1, Action.OPEN, Side.LONG, 1, 1000),
        _fill(W1, Action.CLOSE, Side.LONG, 1, 1000),
        _fill(W2, Action.OPEN, Side.SHORT, 1, 500),
    ]

    flow = aggregate_net_flow(fills)["BTC"]

    assert flow.wallet_count == 1
    assert flow.top_wallets() == [(W2, -500)]


def test_top_wallets_by_absolute_contribution():
    fills = [
        _fill(W1, Action.OPEN, Side.LONG, 1, 100),
        _fill(W2, Action.OPEN, Side.SHORT, 1, 300),
        _fill(W3, Action.OPEN, Side.LONG, 1, 200),
    ]

    flow = aggregate_net_flow(fills)["BTC"]

    assert [w for w, _ in flow.top_wallets(2)] == [W2, W3]


@pytest.mark.parametrize("seed", range(20))
def test_net_equals_sum_of_wallets(seed):
    rng = random.Random(seed)
    wallets = [f"0x{i:040x}" for i in range(5)]
    fills = [
        _fill(
            rng.choice(wallets),
            rng.choice(list(Action)),
            rng.choice(list(Side)),
            rng.uniform(0.001, 500),
            rng.uniform(0.01, 100_000),
            instrument=rng.choice(["BTC", "ETH", "SOL"]),
        )
        for _ in range(rng.randint(0, 200))
    ]

    for flow in aggregate_net_flow(fills).values():
        assert flow.net_notional == sum(flow.per_wallet.values())


@pytest.mark.parametrize("seed", range(5))
def test_net_flow_independent_of_fill_order(seed):
    rng = random.Random(seed)
    fills = [
        _fill(W1, rng.choice(list(Action)), rng.choice(list(Side)), rng.randint(1, 50), rng.randint(1, 1000))
        for _ in range(50)
    ]
    shuffled = fills[:]
    rng.shuffle(shuffled)

    # 整数金额下求和顺序不影响结果
    assert aggregate_net_flow(fills)["BTC"].net_notional == aggregate_net_flow(shuffled)["BTC"].net_notional


def test_aggregate_opens_ignores_closes():
    fills = [
        _fill(W1, Action.OPEN, Side.LONG, 1, 1000),
        _fill(W2, Action.OPEN, Side.LONG, 1, 500),
        _fill(W2, Action.OPEN, Side.SHORT, 1, 200),
        _fill(W3, Action.CLOSE, Side.LONG, 100, 1000),
    ]

    opens = aggregate_opens(fills)["BTC"]

    assert opens.long_usd == 1500
    assert opens.short_usd == 200
    assert opens.long_count == 2
    assert opens.short_count == 1
    assert opens.net == 1300
    assert opens.by_wallet(Side.LONG) == {W1: 1000, W2: 500}
    assert W3 not in opens.long_by_wallet


def test_aggregate_opens_empty():
    assert aggregate_opens([]) == {}
    assert aggregate_opens([_fill(W1, Action.CLOSE, Side.LONG, 1, 1)]) == {}


def test_side_activity():
    fills = [
        _fill(W1, Action.OPEN, Side.LONG, 1, 1000),
        _fill(W1, Action.CLOSE, Side.LONG, 1, 400),
        _fill(W1, Action.CLOSE, Side.SHORT, 1, 300, instrument="ETH"),
    ]

    activity = aggregate_side_activity(fills)

    btc = activity[(W1, "BTC")]
    assert btc.opened[Side.LONG] == 1000
    assert btc.closed[Side.LONG] == 400
    assert btc.opened[Side.SHORT] == 0
    assert activity[(W1, "ETH")].closed[Side.SHORT] == 300
