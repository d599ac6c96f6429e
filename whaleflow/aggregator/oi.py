# whaleflow/aggregator/oi.py
from dataclasses import dataclass

from whaleflow.client.models import OpenInterestSample


@dataclass
class OIDelta:
    instrument: str
    start_usd: float
    end_usd: float

    @property
    def delta_usd(self) -> float:
        return self.end_usd - self.start_usd

    @property
    def delta_pct(self) -> float:
        return calculate_oi_change(self.start_usd, self.end_usd)


def calculate_oi_change(start_usd: float, end_usd: float) -> float:
    if start_usd == 0:
        return 0.0
    return (end_usd - start_usd) / start_usd * 100


def oi_deltas(samples: list[OpenInterestSample]) -> dict[str, OIDelta]:
    """每个品种取窗口内最早与最晚的样本"""
    first: dict[str, OpenInterestSample] = {}
    last: dict[str, OpenInterestSample] = {}
    for s in samples:
        if s.instrument not in first or s.timestamp < first[s.instrument].timestamp:
            first[s.instrument] = s
        if s.instrument not in last or s.timestamp >= last[s.instrument].timestamp:
            last[s.instrument] = s

    return {
        name: OIDelta(name, start_usd=first[name].usd_value, end_usd=last[name].usd_value)
        for name in first
    }
