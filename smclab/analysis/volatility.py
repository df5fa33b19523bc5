"""Volatility profile used for order block placement.

For every bar computes the true range, a Wilder ATR seeded with a simple
mean, and the running mean of all true ranges so far. A bar whose range is
at least twice the volatility measure is a "high volatility" bar: its
effective high/low for order block placement are swapped to the opposite
extreme so that spike wicks do not stretch order block boundaries.
"""

from dataclasses import dataclass

import numpy as np

from smclab.analysis.series import CandleSeries

FILTER_ATR = "atr"
FILTER_RANGE = "range"

HIGH_VOLATILITY_FACTOR = 2.0


@dataclass(frozen=True, eq=False)
class VolatilityProfile:
    true_range: np.ndarray
    atr: np.ndarray               # NaN during warm-up
    cumulative_tr_avg: np.ndarray
    volatility_measure: np.ndarray
    high_volatility: np.ndarray   # bool
    parsed_high: np.ndarray
    parsed_low: np.ndarray

    def __len__(self) -> int:
        return len(self.true_range)

    def atr_at(self, index: int) -> float | None:
        if index < 0 or index >= len(self.atr):
            return None
        value = float(self.atr[index])
        return None if np.isnan(value) else value


def true_range(high: np.ndarray, low: np.ndarray, close: np.ndarray) -> np.ndarray:
    n = len(high)
    tr = np.empty(n, dtype=float)
    if n == 0:
        return tr
    tr[0] = high[0] - low[0]
    for i in range(1, n):
        prev_close = close[i - 1]
        tr[i] = max(high[i] - low[i], abs(high[i] - prev_close), abs(low[i] - prev_close))
    return tr


def wilder_atr(tr: np.ndarray, period: int) -> np.ndarray:
    """ATR seeded with the mean of the first `period` ranges, then Wilder smoothing."""
    if period < 1:
        raise ValueError(f"ATR period must be >= 1, got {period}")
    n = len(tr)
    atr = np.full(n, np.nan)
    if n < period:
        return atr
    atr[period - 1] = tr[:period].sum() / period
    for i in range(period, n):
        atr[i] = (atr[i - 1] * (period - 1) + tr[i]) / period
    return atr


class VolatilityProfiler:
    def __init__(self, atr_period: int = 200, filter_mode: str = FILTER_ATR):
        if atr_period < 1:
            raise ValueError(f"atr_period must be >= 1, got {atr_period}")
        if filter_mode not in (FILTER_ATR, FILTER_RANGE):
            raise ValueError(f"Unknown volatility filter: {filter_mode}")
        self.atr_period = atr_period
        self.filter_mode = filter_mode

    def profile(self, series: CandleSeries) -> VolatilityProfile:
        high, low, close = series.high, series.low, series.close
        n = len(series)

        tr = true_range(high, low, close)
        atr = wilder_atr(tr, self.atr_period)
        cum_avg = np.cumsum(tr) / np.arange(1, n + 1) if n else np.empty(0)

        if self.filter_mode == FILTER_ATR:
            # Unset or zero ATR falls back to the running mean
            measure = np.where(np.isnan(atr) | (atr == 0), cum_avg, atr)
        else:
            measure = cum_avg.copy()

        high_vol = (high - low) >= HIGH_VOLATILITY_FACTOR * measure
        parsed_high = np.where(high_vol, low, high)
        parsed_low = np.where(high_vol, high, low)

        return VolatilityProfile(
            true_range=tr,
            atr=atr,
            cumulative_tr_avg=cum_avg,
            volatility_measure=measure,
            high_volatility=high_vol,
            parsed_high=parsed_high,
            parsed_low=parsed_low,
        )
