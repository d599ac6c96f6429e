"""Hyperliquid Info API 客户端"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import aiohttp

from whaleflow.client.models import TimeWindow

TRANSIENT_STATUS = (429, 500, 502, 503, 504)


class HyperliquidAPIError(Exception):
    """Hyperliquid API 错误"""

    def __init__(self, status: int, message: str):
        self.status = status
        self.message = message
        super().__init__(message)

    @property
    def is_transient(self) -> bool:
        return self.status in TRANSIENT_STATUS


class QueryKind(Enum):
    FILLS = "fills"
    POSITIONS = "positions"
    PERP_META = "perp_meta"
    SPOT_META = "spot_meta"
    CANDLES = "candles"
    LIQUIDATIONS = "liquidations"
    OI_HISTORY = "oi_history"


@dataclass(frozen=True)
class Query:
    """一次上游查询"""

    kind: QueryKind
    body: dict[str, Any]
    endpoint: str = "/info"


def fills_query(user: str, window: TimeWindow) -> Query:
    return Query(
        QueryKind.FILLS,
        {
            "type": "userFillsByTime",
            "user": user,
            "startTime": window.start_ms,
            "endTime": window.end_ms,
            "aggregateByTime": False,
        },
    )


def positions_query(user: str) -> Query:
    return Query(QueryKind.POSITIONS, {"type": "clearinghouseState", "user": user})


def perp_meta_query() -> Query:
    return Query(QueryKind.PERP_META, {"type": "meta"})


def spot_meta_query() -> Query:
    return Query(QueryKind.SPOT_META, {"type": "spotMeta"})


def candles_query(coin: str, interval: str, window: TimeWindow) -> Query:
    return Query(
        QueryKind.CANDLES,
        {
            "type": "candleSnapshot",
            "req": {
                "coin": coin,
                "interval": interval,
                "startTime": window.start_ms,
                "endTime": window.end_ms,
            },
        },
    )


def liquidations_query(window: TimeWindow, endpoint: str = "/info") -> Query:
    return Query(
        QueryKind.LIQUIDATIONS,
        {"type": "liquidations", "startTime": window.start_ms, "endTime": window.end_ms},
        endpoint=endpoint,
    )


def oi_history_query(coin: str, window: TimeWindow) -> Query:
    return Query(
        QueryKind.OI_HISTORY,
        {
            "type": "openInterestHistory",
            "coin": coin,
            "startTime": window.start_ms,
            "endTime": window.end_ms,
        },
    )


@dataclass
class HyperliquidClient:
    """Hyperliquid Info API 客户端"""

    base_url: str = "https://api.hyperliquid.xyz"
    timeout_seconds: float = 10.0
    _session: aiohttp.ClientSession | None = field(default=None, repr=False)

    async def request(self, query: Query) -> Any:
        """发送 POST 请求"""
        if self._session is None:
            raise RuntimeError("Session not initialized. Use 'async with' context.")

        url = f"{self.base_url}{query.endpoint}"
        response = await self._session.post(
            url,
            json=query.body,
            timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
        )

        if response.status != 200:
            error_text = await response.text()
            try:
                error_data = json.loads(error_text)
                message = error_data.get("error", error_text) if isinstance(error_data, dict) else error_text
            except json.JSONDecodeError:
                message = error_text
            raise HyperliquidAPIError(response.status, str(message))

        try:
            return await response.json()
        except (aiohttp.ContentTypeError, ValueError):
            # 200 但响应体不是合法 JSON
            raise HyperliquidAPIError(response.status, "invalid JSON body") from None

    async def __aenter__(self) -> "HyperliquidClient":
        self._session = aiohttp.ClientSession(headers={"Content-Type": "application/json"})
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._session:
            await self._session.close()
            self._session = None
