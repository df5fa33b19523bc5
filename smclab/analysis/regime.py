"""Market state detection — classify bars as trend/range/neutral.

Uses the Choppiness Index for directionality and ADX for trend strength.
Each bar gets a label: "trend", "range", "neutral", or "wait" while either
indicator is still warming up.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Iterable, Mapping

import pandas as pd

from smclab.analysis.indicators import IndicatorEngine
from smclab.analysis.series import CandleSeries
from smclab.models.market import Candle


# State labels
TREND = "trend"
RANGE = "range"
NEUTRAL = "neutral"
WAIT = "wait"

STATES = (TREND, RANGE, NEUTRAL, WAIT)

# Fibonacci bands of the Choppiness Index
CHOP_TREND_MAX = 38.2
CHOP_RANGE_MIN = 61.8
ADX_TREND_MIN = 25.0
ADX_RANGE_MAX = 20.0


def classify_bar(chop: float | None, adx: float | None) -> str:
    if chop is None or adx is None:
        return WAIT
    if chop < CHOP_TREND_MAX and adx > ADX_TREND_MIN:
        return TREND
    if chop > CHOP_RANGE_MIN or adx < ADX_RANGE_MAX:
        return RANGE
    return NEUTRAL


def classify_market_state(
    candles: CandleSeries | pd.DataFrame | Iterable[Candle | Mapping[str, Any]],
    chop_period: int = 14,
    adx_period: int = 14,
) -> list[str]:
    """Classify each bar into a market state.

    Logic:
    - CHOP < 38.2 AND ADX > 25 → "trend" (directional, strong)
    - CHOP > 61.8 OR ADX < 20 → "range" (choppy or weak)
    - Otherwise → "neutral"

    Returns list of labels, same length as candles. Bars before both
    indicators are defined are labeled "wait".
    """
    engine = IndicatorEngine(candles)
    if len(engine) == 0:
        return []

    chop = engine.compute_series("CHOP", {"period": chop_period})["value"]
    adx = engine.compute_series("ADX", {"period": adx_period})["adx"]
    return [classify_bar(c, a) for c, a in zip(chop, adx)]


def summarize_market_state(labels: Iterable[str]) -> dict[str, int]:
    """Count bars per state; every state is present, zero if unseen."""
    counts = Counter(labels)
    unknown = set(counts) - set(STATES)
    if unknown:
        raise ValueError(f"Unknown market state label(s): {sorted(unknown)}")
    return {state: counts.get(state, 0) for state in STATES}
