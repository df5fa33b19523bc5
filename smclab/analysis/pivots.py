"""Leg classification and rolling pivot tracking.

A "leg" is the prevailing local direction at one lookback size. The bar
`size` bars back is compared with the window that followed it: if its high
towers over every later high the market has rolled over (bearish leg), if its
low undercuts every later low the market has turned up (bullish leg).

Every leg flip confirms a pivot at `index - size`: a flip to bullish confirms
a low, a flip to bearish confirms a high. Three scales are tracked
independently, each with its own leg state:

- swing: long lookback, labels HH/HL/LH/LL and drives trailing extremes
- internal: short lookback, feeds internal structure breaks
- equal: very short lookback, detects equal highs/lows (liquidity pools)
"""

from dataclasses import dataclass

import numpy as np

from smclab.analysis.series import CandleSeries
from smclab.analysis.volatility import VolatilityProfile

# ─── Constants ────────────────────────────────────────────────────────

BULLISH = 1
BEARISH = -1
NEUTRAL = 0

BULLISH_LEG = 1
BEARISH_LEG = 0

SWING = "swing"
INTERNAL = "internal"
EQUAL = "equal"
SCALES = (SWING, INTERNAL, EQUAL)

BIAS_BULLISH = "bullish"
BIAS_BEARISH = "bearish"

TREND_NAMES = {BULLISH: BIAS_BULLISH, BEARISH: BIAS_BEARISH, NEUTRAL: "neutral"}


# ─── Data structures ─────────────────────────────────────────────────

@dataclass
class PivotState:
    current_level: float | None = None
    last_level: float | None = None
    crossed: bool = False
    time: int | None = None
    index: int | None = None

    def confirm(self, price: float, time: int, index: int) -> None:
        """Shift the current level into history and arm the new pivot."""
        self.last_level = self.current_level
        self.current_level = price
        self.crossed = False
        self.time = time
        self.index = index


@dataclass
class TrailingExtremes:
    """Running max/min since the last swing pivot of each polarity."""
    top: float | None = None
    bottom: float | None = None
    top_time: int | None = None
    bottom_time: int | None = None
    bar_time: int | None = None
    bar_index: int | None = None


@dataclass(frozen=True)
class SwingPoint:
    time: int
    price: float
    type: str    # HH, HL, LH, LL
    swing: str   # high or low


@dataclass(frozen=True)
class EqualHighLow:
    time1: int
    time2: int
    price: float
    type: str    # EQH or EQL


# ─── Leg classification ──────────────────────────────────────────────

def get_leg(highs: np.ndarray, lows: np.ndarray, index: int, size: int, prev_leg: int) -> int:
    """Leg at `index` for lookback `size`; unchanged during warm-up."""
    if index < size:
        return prev_leg

    candidate_high = highs[index - size]
    candidate_low = lows[index - size]
    highest_recent = highs[index - size + 1:index + 1].max()
    lowest_recent = lows[index - size + 1:index + 1].min()

    if candidate_high > highest_recent:
        return BEARISH_LEG
    if candidate_low < lowest_recent:
        return BULLISH_LEG
    return prev_leg


# ─── Pivot tracking ──────────────────────────────────────────────────

class PivotTracker:
    def __init__(self, series: CandleSeries, profile: VolatilityProfile,
                 equal_hl_threshold: float = 0.1):
        self._times = series.time
        self._highs = series.high
        self._lows = series.low
        self._profile = profile
        self.equal_hl_threshold = equal_hl_threshold

        self._highs_by_scale = {scale: PivotState() for scale in SCALES}
        self._lows_by_scale = {scale: PivotState() for scale in SCALES}
        self.legs = {scale: BEARISH_LEG for scale in SCALES}

        self.trailing = TrailingExtremes()
        self.swing_points: list[SwingPoint] = []
        self.equal_highs_lows: list[EqualHighLow] = []

    def high_pivot(self, scale: str) -> PivotState:
        return self._highs_by_scale[scale]

    def low_pivot(self, scale: str) -> PivotState:
        return self._lows_by_scale[scale]

    def update_trailing(self, index: int) -> None:
        high = float(self._highs[index])
        low = float(self._lows[index])
        time = int(self._times[index])
        tr = self.trailing
        if tr.top is None or high > tr.top:
            tr.top = high
            tr.top_time = time
        if tr.bottom is None or low < tr.bottom:
            tr.bottom = low
            tr.bottom_time = time

    def process(self, index: int, size: int, scale: str) -> int | None:
        """Advance the leg for one scale; returns the pivot index if one was confirmed."""
        prev_leg = self.legs[scale]
        new_leg = get_leg(self._highs, self._lows, index, size, prev_leg)
        if new_leg == prev_leg:
            return None

        self.legs[scale] = new_leg
        pivot_index = index - size
        if new_leg == BULLISH_LEG:
            self._confirm_low(pivot_index, scale)
        else:
            self._confirm_high(pivot_index, scale)
        return pivot_index

    def _equal_tolerance(self, pivot_index: int) -> float:
        atr = self._profile.atr_at(pivot_index) or 0.0
        return self.equal_hl_threshold * atr

    def _confirm_low(self, pivot_index: int, scale: str) -> None:
        pivot = self._lows_by_scale[scale]
        price = float(self._lows[pivot_index])
        time = int(self._times[pivot_index])

        if scale == EQUAL and pivot.current_level is not None:
            if abs(pivot.current_level - price) < self._equal_tolerance(pivot_index):
                self.equal_highs_lows.append(EqualHighLow(pivot.time, time, price, "EQL"))

        # Labelled against last_level before the shift
        if scale == SWING:
            label = "LL" if pivot.last_level is None or price < pivot.last_level else "HL"
            self.swing_points.append(SwingPoint(time, price, label, "low"))

        pivot.confirm(price, time, pivot_index)

        if scale == SWING:
            tr = self.trailing
            tr.bottom = price
            tr.bottom_time = time
            tr.bar_time = time
            tr.bar_index = pivot_index

    def _confirm_high(self, pivot_index: int, scale: str) -> None:
        pivot = self._highs_by_scale[scale]
        price = float(self._highs[pivot_index])
        time = int(self._times[pivot_index])

        if scale == EQUAL and pivot.current_level is not None:
            if abs(pivot.current_level - price) < self._equal_tolerance(pivot_index):
                self.equal_highs_lows.append(EqualHighLow(pivot.time, time, price, "EQH"))

        if scale == SWING:
            label = "HH" if pivot.last_level is None or price > pivot.last_level else "LH"
            self.swing_points.append(SwingPoint(time, price, label, "high"))

        pivot.confirm(price, time, pivot_index)

        if scale == SWING:
            tr = self.trailing
            tr.top = price
            tr.top_time = time
            tr.bar_time = time
            tr.bar_index = pivot_index
