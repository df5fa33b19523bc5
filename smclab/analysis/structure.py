"""Structure breaks — BOS and CHoCH.

Each bar's close is tested against the live high and low pivots of a scale.
A close through an armed pivot is a break: a Break of Structure when it
continues the scale's trend, a Change of Character when it reverses it.
The broken pivot is latched (`crossed`) until the pivot tracker confirms a
new pivot of the same kind, and the break spawns an order block.
"""

from dataclasses import dataclass

from smclab.analysis.order_blocks import OrderBlockManager
from smclab.analysis.pivots import (
    BEARISH, BIAS_BEARISH, BIAS_BULLISH, BULLISH, INTERNAL, NEUTRAL, SWING,
    PivotTracker,
)
from smclab.analysis.series import CandleSeries

BOS = "BOS"
CHOCH = "CHoCH"


@dataclass(frozen=True)
class StructureEvent:
    time: int
    price: float
    type: str         # BOS or CHoCH
    direction: str    # bullish or bearish
    level: str        # internal or swing
    start_time: int   # time of the broken pivot


class StructureBreakDetector:
    def __init__(self, series: CandleSeries, tracker: PivotTracker,
                 order_blocks: OrderBlockManager | None = None):
        self._series = series
        self._tracker = tracker
        self._order_blocks = order_blocks
        self.trends = {INTERNAL: NEUTRAL, SWING: NEUTRAL}
        self.events: list[StructureEvent] = []

    def process(self, index: int, scale: str) -> list[StructureEvent]:
        """Test the close of bar `index` against the scale's pivots."""
        if scale not in self.trends:
            raise ValueError(f"Structure is tracked for internal/swing only, got {scale}")

        close = float(self._series.close[index])
        time = int(self._series.time[index])
        fired: list[StructureEvent] = []

        high_pivot = self._tracker.high_pivot(scale)
        if high_pivot.current_level is not None and close > high_pivot.current_level and not high_pivot.crossed:
            kind = CHOCH if self.trends[scale] == BEARISH else BOS
            fired.append(StructureEvent(time, high_pivot.current_level, kind, BIAS_BULLISH, scale, high_pivot.time))
            high_pivot.crossed = True
            self.trends[scale] = BULLISH
            if self._order_blocks is not None:
                self._order_blocks.create(high_pivot, index, BIAS_BULLISH, scale)

        low_pivot = self._tracker.low_pivot(scale)
        if low_pivot.current_level is not None and close < low_pivot.current_level and not low_pivot.crossed:
            kind = CHOCH if self.trends[scale] == BULLISH else BOS
            fired.append(StructureEvent(time, low_pivot.current_level, kind, BIAS_BEARISH, scale, low_pivot.time))
            low_pivot.crossed = True
            self.trends[scale] = BEARISH
            if self._order_blocks is not None:
                self._order_blocks.create(low_pivot, index, BIAS_BEARISH, scale)

        self.events.extend(fired)
        return fired
