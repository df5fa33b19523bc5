"""Order blocks created by structure breaks.

When a pivot is broken, the order block is the bar between the pivot and
the break with the most extreme *parsed* price: the highest parsed high for
a bearish block, the lowest parsed low for a bullish block. Parsed prices
come from the volatility profile, so abnormally wide bars contribute their
opposite extreme instead of the spike.

Blocks stay live until price trades back through them (mitigation). The
collection is capped; the oldest blocks are dropped first.
"""

from dataclasses import dataclass

from smclab.analysis.pivots import BIAS_BEARISH, BIAS_BULLISH, PivotState
from smclab.analysis.series import CandleSeries
from smclab.analysis.volatility import VolatilityProfile

MITIGATION_CLOSE = "close"
MITIGATION_HIGHLOW = "highlow"


@dataclass
class OrderBlock:
    time: int
    high: float
    low: float
    bias: str     # bullish or bearish
    level: str    # internal or swing
    mitigated: bool = False
    mitigated_time: int | None = None

    def mitigate(self, time: int) -> None:
        if self.mitigated:
            return
        self.mitigated = True
        self.mitigated_time = time


def index_of_max(values, start: int, end: int) -> int:
    """Index of the maximum in values[start..end]; earliest wins ties."""
    best = start
    for i in range(start + 1, min(end, len(values) - 1) + 1):
        if values[i] > values[best]:
            best = i
    return best


def index_of_min(values, start: int, end: int) -> int:
    """Index of the minimum in values[start..end]; earliest wins ties."""
    best = start
    for i in range(start + 1, min(end, len(values) - 1) + 1):
        if values[i] < values[best]:
            best = i
    return best


class OrderBlockManager:
    def __init__(self, series: CandleSeries, profile: VolatilityProfile,
                 max_blocks: int, mitigation_mode: str = MITIGATION_HIGHLOW):
        if max_blocks < 1:
            raise ValueError(f"max_blocks must be >= 1, got {max_blocks}")
        if mitigation_mode not in (MITIGATION_CLOSE, MITIGATION_HIGHLOW):
            raise ValueError(f"Unknown mitigation mode: {mitigation_mode}")
        self._series = series
        self._profile = profile
        self.max_blocks = max_blocks
        self.mitigation_mode = mitigation_mode
        self.blocks: list[OrderBlock] = []

    def create(self, pivot: PivotState, current_index: int, bias: str, level: str) -> OrderBlock | None:
        if pivot.index is None:
            return None

        n = len(self._series)
        if not 0 <= pivot.index < n:
            return None

        if bias == BIAS_BEARISH:
            idx = index_of_max(self._profile.parsed_high, pivot.index, current_index - 1)
        else:
            idx = index_of_min(self._profile.parsed_low, pivot.index, current_index - 1)

        if idx < 0 or idx >= n:
            return None

        block = OrderBlock(
            time=int(self._series.time[idx]),
            high=float(self._profile.parsed_high[idx]),
            low=float(self._profile.parsed_low[idx]),
            bias=bias,
            level=level,
        )
        self.blocks.append(block)
        if len(self.blocks) > self.max_blocks:
            del self.blocks[:len(self.blocks) - self.max_blocks]
        return block

    def check_mitigation(self, index: int) -> None:
        s = self._series
        time = int(s.time[index])
        if self.mitigation_mode == MITIGATION_CLOSE:
            high = low = float(s.close[index])
        else:
            high = float(s.high[index])
            low = float(s.low[index])

        for block in self.blocks:
            if block.mitigated:
                continue
            if block.bias == BIAS_BEARISH and high > block.high:
                block.mitigate(time)
            elif block.bias == BIAS_BULLISH and low < block.low:
                block.mitigate(time)
