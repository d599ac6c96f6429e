"""原始 JSON 记录 → 类型化事件"""

import logging
from typing import Any

from whaleflow.client.models import (
    Action,
    Candle,
    Fill,
    LiquidationEvent,
    OpenInterestSample,
    PositionSnapshot,
    Side,
)

logger = logging.getLogger(__name__)

# 交易所方向码: A = 卖出 (多头被强平), B = 买入 (空头被强平)
LIQ_SIDE_CODES = {
    "long": Side.LONG,
    "short": Side.SHORT,
    "a": Side.LONG,
    "sell": Side.LONG,
    "b": Side.SHORT,
    "buy": Side.SHORT,
}


def _float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_direction(direction: str) -> tuple[Action, Side] | None:
    """解析 "Open Long" / "Close Short" 形式的方向"""
    parts = direction.strip().split()
    if len(parts) != 2:
        return None
    action_word, side_word = parts[0].lower(), parts[1].lower()
    if action_word not in ("open", "close") or side_word not in ("long", "short"):
        return None
    return Action(action_word), Side(side_word)


def parse_fill(data: dict[str, Any], wallet: str) -> Fill | None:
    parsed = parse_direction(str(data.get("dir", "")))
    if parsed is None:
        logger.debug(f"Skipping fill with direction {data.get('dir')!r} for {wallet}")
        return None

    size = _float(data.get("sz"))
    price = _float(data.get("px"))
    timestamp = _int(data.get("time"))
    if size is None or price is None or timestamp is None or not data.get("coin"):
        logger.debug(f"Skipping malformed fill for {wallet}: {data}")
        return None

    action, side = parsed
    return Fill(
        instrument=str(data["coin"]).upper(),
        wallet=wallet.lower(),
        action=action,
        side=side,
        size=abs(size),
        price=price,
        timestamp=timestamp,
        realized_pnl=_float(data.get("closedPnl")),
    )


def parse_fills(payload: Any, wallet: str) -> list[Fill]:
    if not isinstance(payload, list):
        return []
    fills = [parse_fill(item, wallet) for item in payload if isinstance(item, dict)]
    return sorted((f for f in fills if f is not None), key=lambda f: f.timestamp)


def parse_liquidation(data: dict[str, Any]) -> LiquidationEvent | None:
    side = LIQ_SIDE_CODES.get(str(data.get("side", "")).lower())
    size = _float(data.get("sz"))
    price = _float(data.get("px"))
    timestamp = _int(data.get("time"))
    if side is None or size is None or price is None or timestamp is None or not data.get("coin"):
        logger.debug(f"Skipping malformed liquidation: {data}")
        return None

    return LiquidationEvent(
        instrument=str(data["coin"]).upper(),
        liquidated_side=side,
        size=abs(size),
        price=price,
        timestamp=timestamp,
    )


def parse_liquidations(payload: Any) -> list[LiquidationEvent]:
    if not isinstance(payload, list):
        return []
    events = [parse_liquidation(item) for item in payload if isinstance(item, dict)]
    return [e for e in events if e is not None]


def parse_positions(payload: Any, wallet: str) -> list[PositionSnapshot]:
    """解析 clearinghouseState 的 assetPositions"""
    if not isinstance(payload, dict):
        return []

    asset_positions = payload.get("assetPositions")
    if not isinstance(asset_positions, list):
        return []

    positions = []
    for item in asset_positions:
        pos = item.get("position") if isinstance(item, dict) else None
        if not isinstance(pos, dict) or not pos.get("coin"):
            continue
        signed_size = _float(pos.get("szi"))
        size_usd = _float(pos.get("positionValue"))
        if not signed_size or size_usd is None:
            continue
        positions.append(
            PositionSnapshot(
                instrument=str(pos.get("coin", "")).upper(),
                wallet=wallet.lower(),
                side=Side.LONG if signed_size > 0 else Side.SHORT,
                size_usd=abs(size_usd),
                entry_price=_float(pos.get("entryPx")) or 0.0,
                liquidation_price=_float(pos.get("liquidationPx")),
                unrealized_pnl=_float(pos.get("unrealizedPnl")) or 0.0,
            )
        )
    return positions


def parse_candles(payload: Any, instrument: str) -> list[Candle]:
    if not isinstance(payload, list):
        return []

    candles = []
    for c in payload:
        try:
            candles.append(
                Candle(
                    instrument=instrument.upper(),
                    open_time=int(c["t"]),
                    close_time=int(c["T"]),
                    open=float(c["o"]),
                    high=float(c["h"]),
                    low=float(c["l"]),
                    close=float(c["c"]),
                    volume=float(c["v"]),
                    trades=int(c.get("n", 0)),
                )
            )
        except (KeyError, TypeError, ValueError):
            logger.debug(f"Skipping malformed candle for {instrument}: {c}")
    return candles


def parse_oi_history(payload: Any, instrument: str) -> list[OpenInterestSample]:
    if not isinstance(payload, list):
        return []

    samples = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        usd_value = _float(item.get("openInterestUsd"))
        timestamp = _int(item.get("time"))
        if usd_value is None or timestamp is None:
            continue
        samples.append(
            OpenInterestSample(
                instrument=instrument.upper(),
                timestamp=timestamp,
                usd_value=usd_value,
            )
        )
    return sorted(samples, key=lambda s: s.timestamp)


def parse_perp_universe(payload: Any) -> list[str]:
    if not isinstance(payload, dict):
        return []
    universe = payload.get("universe")
    if not isinstance(universe, list):
        return []
    return [str(asset["name"]) for asset in universe if isinstance(asset, dict) and asset.get("name")]


def parse_spot_pairs(payload: Any) -> list[str]:
    """spotMeta → "BASE/QUOTE" 交易对列表 (@N 形式的名称用 token 名重建)"""
    if not isinstance(payload, dict):
        return []

    tokens_meta = payload.get("tokens")
    universe = payload.get("universe")
    if not isinstance(tokens_meta, list) or not isinstance(universe, list):
        return []

    token_names = {
        t["index"]: t.get("name") for t in tokens_meta if isinstance(t, dict) and isinstance(t.get("index"), int)
    }
    pairs = []
    for pair in universe:
        if not isinstance(pair, dict):
            continue
        name = str(pair.get("name", ""))
        if "/" not in name:
            tokens = pair.get("tokens")
            if (
                isinstance(tokens, list)
                and len(tokens) == 2
                and all(isinstance(t, int) and t in token_names for t in tokens)
            ):
                name = f"{token_names[tokens[0]]}/{token_names[tokens[1]]}"
        if name:
            pairs.append(name)
    return pairs
