# whaleflow/formatter.py
import dataclasses
from datetime import UTC, datetime
from enum import Enum
from typing import Any

# 这些字段在输出时额外附带一个 *_fmt 展示字符串
USD_FIELDS = {
    "net_notional",
    "notional",
    "net",
    "long_usd",
    "short_usd",
    "long",
    "short",
    "total",
    "liquidated_usd",
    "start_usd",
    "end_usd",
    "position_usd",
    "pnl",
}
SIGNED_FIELDS = {"net_notional", "net", "pnl", "notional"}


def _format_usd(value: float) -> str:
    if abs(value) >= 1_000_000_000:
        return f"${value / 1_000_000_000:.1f}B"
    elif abs(value) >= 1_000_000:
        return f"${value / 1_000_000:.1f}M"
    elif abs(value) >= 1_000:
        return f"${value / 1_000:.1f}K"
    else:
        return f"${value:,.0f}"


def _format_usd_signed(value: float) -> str:
    sign = "+" if value >= 0 else "-"
    return f"{sign}{_format_usd(abs(value))}"


def to_payload(value: Any) -> Any:
    """结果对象 → 可 JSON 序列化的结构 (数值保持数值，只追加展示字段)"""
    if isinstance(value, Enum):
        return value.value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        out: dict[str, Any] = {}
        for f in dataclasses.fields(value):
            raw = getattr(value, f.name)
            out[f.name] = to_payload(raw)
            if f.name in USD_FIELDS and isinstance(raw, int | float):
                fmt = _format_usd_signed if f.name in SIGNED_FIELDS else _format_usd
                out[f"{f.name}_fmt"] = fmt(raw)
        return out
    if isinstance(value, dict):
        return {str(k.value if isinstance(k, Enum) else k): to_payload(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [to_payload(v) for v in value]
    return value


def format_report(mode: str, window: dict[str, int], result: Any, errors: dict[str, str]) -> dict[str, Any]:
    return {
        "mode": mode,
        "generated_at": datetime.now(UTC).strftime("%Y-%m-%d %H:%M UTC"),
        "window": window,
        "result": to_payload(result),
        "errors": errors,
    }
