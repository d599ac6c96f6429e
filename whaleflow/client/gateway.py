"""有界并发 + 重试的上游请求网关"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import aiohttp

from whaleflow.client.cache import TTLCache
from whaleflow.client.hyperliquid import (
    HyperliquidAPIError,
    Query,
    QueryKind,
    candles_query,
    fills_query,
    liquidations_query,
    oi_history_query,
    perp_meta_query,
    positions_query,
    spot_meta_query,
)
from whaleflow.client.models import (
    Candle,
    Fill,
    LiquidationEvent,
    OpenInterestSample,
    PositionSnapshot,
    TimeWindow,
)
from whaleflow.client.normalize import (
    parse_candles,
    parse_fills,
    parse_liquidations,
    parse_oi_history,
    parse_perp_universe,
    parse_positions,
    parse_spot_pairs,
)

logger = logging.getLogger(__name__)

TIMEOUT_MARKER = "timeout"


class Transport(Protocol):
    async def request(self, query: Query) -> Any: ...


@dataclass
class WalletFetch:
    """单个钱包的抓取结果 (失败时 payload 为空，error 记录原因)"""

    address: str
    payload: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _chunks(items: Sequence[str], size: int) -> list[Sequence[str]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class FetchGateway:
    def __init__(
        self,
        client: Transport,
        cache: TTLCache,
        max_in_flight: int = 6,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
        batch_size: int = 20,
        liquidation_endpoint: str = "/info",
        liquidation_max_span_ms: int = 119_000,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.cache = cache
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.batch_size = batch_size
        self.liquidation_endpoint = liquidation_endpoint
        self.liquidation_max_span_ms = liquidation_max_span_ms
        self._semaphore = asyncio.Semaphore(max_in_flight)
        self._sleep = sleep

    async def fetch(self, query: Query) -> Any:
        """执行单个查询，瞬时错误线性退避重试"""
        attempt = 0
        while True:
            try:
                async with self._semaphore:
                    return await self.client.request(query)
            except HyperliquidAPIError as e:
                if query.kind is QueryKind.LIQUIDATIONS and e.status == 422:
                    logger.debug(f"Liquidation query rejected (422), treating as empty: {e.message}")
                    return []
                if not e.is_transient or attempt >= self.max_retries:
                    raise
                reason = f"HTTP {e.status}"
            except (asyncio.TimeoutError, aiohttp.ClientError) as e:
                if attempt >= self.max_retries:
                    raise
                reason = type(e).__name__

            attempt += 1
            delay = self.backoff_seconds * attempt
            logger.warning(
                f"{query.kind.value} attempt {attempt}/{self.max_retries + 1} failed ({reason}), "
                f"retrying in {delay:.1f}s"
            )
            await self._sleep(delay)

    async def _fetch_wallet(self, address: str, query: Query) -> WalletFetch:
        try:
            return WalletFetch(address=address, payload=await self.fetch(query))
        except HyperliquidAPIError as e:
            logger.warning(f"Fetch failed for {address}: HTTP {e.status} {e.message}")
            return WalletFetch(address=address, error=f"HTTP {e.status}: {e.message}")
        except (asyncio.TimeoutError, aiohttp.ClientError) as e:
            logger.warning(f"Fetch failed for {address}: {e!r}")
            return WalletFetch(address=address, error=str(e) or type(e).__name__)
        except ValueError as e:
            logger.warning(f"Undecodable response for {address}: {e!r}")
            return WalletFetch(address=address, error=f"invalid response: {e}")

    async def fetch_wallets(
        self,
        addresses: Sequence[str],
        build_query: Callable[[str], Query],
        timeout: float | None = None,
    ) -> list[WalletFetch]:
        """分批并发抓取每个钱包；超时未完成的钱包记为 timeout，不中断整体"""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None
        results: dict[str, WalletFetch] = {}

        for batch in _chunks(addresses, self.batch_size):
            remaining = None if deadline is None else max(deadline - loop.time(), 0)
            tasks = {
                asyncio.create_task(self._fetch_wallet(addr, build_query(addr))): addr
                for addr in batch
            }
            done, pending = await asyncio.wait(tasks, timeout=remaining)
            for task in done:
                results[tasks[task]] = task.result()
            for task in pending:
                task.cancel()
                addr = tasks[task]
                logger.warning(f"Fetch for {addr} did not finish before timeout")
                results[addr] = WalletFetch(address=addr, error=TIMEOUT_MARKER)
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        return [results[addr] for addr in addresses]

    async def fetch_fills(
        self, addresses: Sequence[str], window: TimeWindow, timeout: float | None = None
    ) -> tuple[list[Fill], dict[str, str]]:
        """返回 (全部成交, {失败钱包: 错误})"""
        fetched = await self.fetch_wallets(
            addresses, lambda addr: fills_query(addr, window), timeout=timeout
        )
        fills: list[Fill] = []
        errors: dict[str, str] = {}
        for r in fetched:
            if r.ok:
                fills.extend(parse_fills(r.payload, r.address))
            else:
                errors[r.address] = r.error or "unknown error"
        return fills, errors

    async def fetch_fills_by_wallet(
        self, addresses: Sequence[str], window: TimeWindow, timeout: float | None = None
    ) -> list[WalletFetch]:
        fetched = await self.fetch_wallets(
            addresses, lambda addr: fills_query(addr, window), timeout=timeout
        )
        return [
            WalletFetch(r.address, payload=parse_fills(r.payload, r.address)) if r.ok else r
            for r in fetched
        ]

    async def fetch_positions(
        self, addresses: Sequence[str], timeout: float | None = None
    ) -> tuple[list[PositionSnapshot], dict[str, str]]:
        fetched = await self.fetch_wallets(addresses, positions_query, timeout=timeout)
        positions: list[PositionSnapshot] = []
        errors: dict[str, str] = {}
        for r in fetched:
            if r.ok:
                positions.extend(parse_positions(r.payload, r.address))
            else:
                errors[r.address] = r.error or "unknown error"
        return positions, errors

    async def fetch_liquidations(self, window: TimeWindow) -> list[LiquidationEvent]:
        clamped = window.clamp(self.liquidation_max_span_ms)
        if clamped is not window:
            logger.debug(f"Liquidation window clamped to {self.liquidation_max_span_ms}ms")
        payload = await self.fetch(liquidations_query(clamped, self.liquidation_endpoint))
        # 上游不一定严格按时间边界返回
        return [
            e for e in parse_liquidations(payload) if clamped.start_ms <= e.timestamp < clamped.end_ms
        ]

    async def fetch_candles(
        self, coins: Sequence[str], interval: str, window: TimeWindow
    ) -> dict[str, list[Candle]]:
        """按币种抓 K 线；单个币种失败时记为空"""

        async def one(coin: str) -> list[Candle]:
            try:
                return parse_candles(await self.fetch(candles_query(coin, interval, window)), coin)
            except (HyperliquidAPIError, asyncio.TimeoutError, aiohttp.ClientError, ValueError) as e:
                logger.warning(f"Candle fetch failed for {coin}: {e!r}")
                return []

        results = await asyncio.gather(*(one(c) for c in coins))
        return dict(zip(coins, results))

    async def fetch_oi_history(
        self, coins: Sequence[str], window: TimeWindow
    ) -> list[OpenInterestSample]:
        async def one(coin: str) -> list[OpenInterestSample]:
            try:
                return parse_oi_history(await self.fetch(oi_history_query(coin, window)), coin)
            except (HyperliquidAPIError, asyncio.TimeoutError, aiohttp.ClientError, ValueError) as e:
                logger.warning(f"OI history fetch failed for {coin}: {e!r}")
                return []

        results = await asyncio.gather(*(one(c) for c in coins))
        return [sample for samples in results for sample in samples]

    async def perp_universe(self) -> list[str]:
        return await self.cache.get_or_load(
            "perp_meta",
            lambda: self._load_reference(perp_meta_query(), parse_perp_universe),
        )

    async def spot_pairs(self) -> list[str]:
        return await self.cache.get_or_load(
            "spot_meta",
            lambda: self._load_reference(spot_meta_query(), parse_spot_pairs),
        )

    async def _load_reference(self, query: Query, parse: Callable[[Any], list[str]]) -> list[str]:
        return parse(await self.fetch(query))
