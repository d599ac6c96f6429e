# whaleflow/detector/ticker.py
import re
from dataclasses import dataclass, field

SUFFIX_MARKERS = ("-PERP", "_PERP", "PERP", "-SPOT", "_SPOT", ".P")
SEPARATORS = re.compile(r"[/\-_:]")


@dataclass
class TickerResolution:
    symbol: str
    base: str
    available: bool
    perp: bool
    spot: bool
    spot_pairs: list[str] = field(default_factory=list)


def normalize_symbol(symbol: str) -> str:
    """sol-perp → SOL, BTC/USDC:USDC → BTC"""
    s = symbol.strip().upper().lstrip("$")
    for marker in SUFFIX_MARKERS:
        if s.endswith(marker) and len(s) > len(marker):
            s = s[: -len(marker)]
            break
    return SEPARATORS.split(s, maxsplit=1)[0]


def resolve_ticker(symbol: str, perp_universe: list[str], spot_pairs: list[str]) -> TickerResolution:
    base = normalize_symbol(symbol)
    wanted = symbol.strip().upper()

    perp = base in {name.upper() for name in perp_universe}
    matches = [
        pair
        for pair in spot_pairs
        if pair.upper() == wanted
        or pair.upper().startswith(f"{base}/")
        or pair.upper().endswith(f"/{base}")
    ]

    return TickerResolution(
        symbol=symbol,
        base=base,
        available=perp or bool(matches),
        perp=perp,
        spot=bool(matches),
        spot_pairs=matches,
    )
