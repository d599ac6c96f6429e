"""Hyperliquid 数据模型"""

import time
from dataclasses import dataclass
from enum import Enum

MS_PER_MINUTE = 60_000
MS_PER_HOUR = 3_600_000


class Action(Enum):
    OPEN = "open"
    CLOSE = "close"


class Side(Enum):
    LONG = "long"
    SHORT = "short"

    @property
    def opposite(self) -> "Side":
        return Side.SHORT if self is Side.LONG else Side.LONG


@dataclass(frozen=True)
class TimeWindow:
    """查询时间窗口 [start_ms, end_ms)"""

    start_ms: int
    end_ms: int

    @classmethod
    def last(cls, minutes: int, now_ms: int | None = None) -> "TimeWindow":
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        return cls(start_ms=now_ms - minutes * MS_PER_MINUTE, end_ms=now_ms)

    @property
    def span_ms(self) -> int:
        return self.end_ms - self.start_ms

    def clamp(self, max_span_ms: int) -> "TimeWindow":
        """保留最近的 max_span_ms，超出部分直接截掉"""
        if self.span_ms <= max_span_ms:
            return self
        return TimeWindow(start_ms=self.end_ms - max_span_ms, end_ms=self.end_ms)


@dataclass(frozen=True)
class Fill:
    """成交记录"""

    instrument: str
    wallet: str
    action: Action
    side: Side
    size: float
    price: float
    timestamp: int
    realized_pnl: float | None = None

    @property
    def notional_usd(self) -> float:
        return abs(self.size) * self.price

    @property
    def sign(self) -> int:
        # 开多 / 平空 = 多头压力
        if (self.side is Side.LONG) == (self.action is Action.OPEN):
            return 1
        return -1

    @property
    def signed_notional(self) -> float:
        return self.sign * self.notional_usd


@dataclass(frozen=True)
class LiquidationEvent:
    """爆仓记录 (liquidated_side=LONG 即多头被强平，方向为卖出)"""

    instrument: str
    liquidated_side: Side
    size: float
    price: float
    timestamp: int

    @property
    def notional_usd(self) -> float:
        return abs(self.size) * self.price


@dataclass(frozen=True)
class OpenInterestSample:
    instrument: str
    timestamp: int
    usd_value: float


@dataclass(frozen=True)
class PositionSnapshot:
    """当前持仓"""

    instrument: str
    wallet: str
    side: Side
    size_usd: float
    entry_price: float
    liquidation_price: float | None
    unrealized_pnl: float


@dataclass(frozen=True)
class Candle:
    instrument: str
    open_time: int
    close_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    trades: int
