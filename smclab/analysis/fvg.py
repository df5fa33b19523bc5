"""Fair value gaps — three-bar price imbalances.

Bullish gap: the current low sits above the high two bars back and the
middle bar closed above that high. Bearish gap is the mirror image. A gap
is anchored at the middle bar and stays open until a later bar trades back
through its far edge.
"""

from dataclasses import dataclass

from smclab.analysis.pivots import BIAS_BEARISH, BIAS_BULLISH
from smclab.analysis.series import CandleSeries


@dataclass
class FairValueGap:
    time: int
    top: float
    bottom: float
    bias: str
    filled: bool = False
    filled_time: int | None = None

    def fill(self, time: int) -> None:
        if self.filled:
            return
        self.filled = True
        self.filled_time = time


class FVGDetector:
    def __init__(self, series: CandleSeries, max_gaps: int | None = None):
        if max_gaps is not None and max_gaps < 1:
            raise ValueError(f"max_gaps must be >= 1 or None, got {max_gaps}")
        self._series = series
        self.max_gaps = max_gaps
        self.gaps: list[FairValueGap] = []

    def detect(self, index: int) -> list[FairValueGap]:
        """Check the three bars ending at `index`; returns gaps found there."""
        if index < 2:
            return []

        s = self._series
        low0, high0 = float(s.low[index]), float(s.high[index])
        close1 = float(s.close[index - 1])
        time1 = int(s.time[index - 1])
        low2, high2 = float(s.low[index - 2]), float(s.high[index - 2])

        found: list[FairValueGap] = []
        if low0 > high2 and close1 > high2:
            found.append(FairValueGap(time1, top=low0, bottom=high2, bias=BIAS_BULLISH))
        if high0 < low2 and close1 < low2:
            found.append(FairValueGap(time1, top=low2, bottom=high0, bias=BIAS_BEARISH))

        if found:
            self.gaps.extend(found)
            if self.max_gaps is not None and len(self.gaps) > self.max_gaps:
                del self.gaps[:len(self.gaps) - self.max_gaps]
        return found

    def check_fill(self, index: int) -> None:
        s = self._series
        time = int(s.time[index])
        high = float(s.high[index])
        low = float(s.low[index])

        for gap in self.gaps:
            if gap.filled:
                continue
            if gap.bias == BIAS_BULLISH and low < gap.bottom:
                gap.fill(time)
            elif gap.bias == BIAS_BEARISH and high > gap.top:
                gap.fill(time)
