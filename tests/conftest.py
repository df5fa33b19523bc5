"""Shared test fixtures for SMC analysis tests."""

import numpy as np
import pytest

from smclab.analysis.series import CandleSeries
from smclab.analysis.volatility import VolatilityProfile
from smclab.models.market import Candle

START_TIME = 1_700_000_000
STEP = 60


def make_candle(index=0, open=100.0, high=101.0, low=99.0, close=100.5, volume=0.0, time=None) -> Candle:
    return Candle(
        time=START_TIME + index * STEP if time is None else time,
        open=open,
        high=high,
        low=low,
        close=close,
        volume=volume,
    )


def make_candles(bars: list[tuple[float, float, float, float]]) -> list[Candle]:
    """Candles from (open, high, low, close) tuples, one minute apart."""
    return [make_candle(i, o, h, l, c) for i, (o, h, l, c) in enumerate(bars)]


def make_series(bars: list[tuple[float, float, float, float]]) -> CandleSeries:
    return CandleSeries.from_candles(make_candles(bars))


def t(index: int) -> int:
    """Timestamp of bar `index` in candles built by make_candle."""
    return START_TIME + index * STEP


def make_profile(series: CandleSeries, atr: float | None = 1.0) -> VolatilityProfile:
    """Profile with a constant ATR and no high-volatility bars (parsed = raw)."""
    n = len(series)
    tr = series.high - series.low
    return VolatilityProfile(
        true_range=tr,
        atr=np.full(n, np.nan if atr is None else atr),
        cumulative_tr_avg=tr.copy(),
        volatility_measure=np.full(n, np.inf),
        high_volatility=np.zeros(n, dtype=bool),
        parsed_high=series.high.copy(),
        parsed_low=series.low.copy(),
    )


# Low pivot at 0, high pivot at 2, higher low at 4 (lookback 2); bar 6 closes
# above the high pivot, bar 7 closes below the higher low, bar 8 confirms the
# bar-6 high as a new pivot.
STRUCTURE_BARS = [
    (9.2, 10.0, 9.0, 9.8),
    (10.2, 11.0, 10.0, 10.8),
    (11.2, 12.0, 11.0, 11.8),
    (10.8, 11.0, 10.0, 10.2),
    (9.8, 10.0, 9.5, 9.6),
    (10.2, 11.0, 10.0, 10.8),
    (11.6, 13.0, 11.5, 12.8),
    (12.5, 12.9, 9.0, 9.1),
    (9.3, 9.4, 8.0, 8.2),
]

# Swing and internal both at lookback 2; ATR period 1 keeps parsed prices raw
SMALL_LOOKBACK_CONFIG = {
    "swingLength": 2,
    "internalLength": 2,
    "showEqualHL": False,
    "atrPeriod": 1,
}


@pytest.fixture
def structure_candles():
    return make_candles(STRUCTURE_BARS)


@pytest.fixture
def structure_series():
    return make_series(STRUCTURE_BARS)


@pytest.fixture
def flat_candles():
    """5 bars with open = high = low = close = 100."""
    return make_candles([(100.0, 100.0, 100.0, 100.0)] * 5)


@pytest.fixture
def rising_candles():
    """60 bars, close = 100 + i, high/low half a point either side."""
    return [
        make_candle(i, open=100.0 + i - 0.25, high=100.0 + i + 0.5, low=100.0 + i - 0.5, close=100.0 + i)
        for i in range(60)
    ]


@pytest.fixture
def bullish_fvg_candles():
    """bar[2].low > bar[0].high and bar[1].close > bar[0].high."""
    return make_candles([
        (9.0, 10.0, 8.5, 9.5),
        (10.0, 11.5, 9.8, 11.0),
        (11.0, 12.0, 10.5, 11.8),
    ])
