"""Generic indicator library for chart overlays.

Full-series computations of the standard indicators (via pandas_ta) from
raw OHLC bars. All computations use only past data (no look-ahead); warm-up
values are returned as None so the chart layer can leave gaps.
"""

import math
from typing import Any, Iterable, Mapping

import pandas as pd
import pandas_ta as ta
from loguru import logger

from smclab.analysis.series import CandleSeries
from smclab.models.market import Candle

OVERLAY_INDICATORS = {"EMA", "SMA", "WMA", "HMA", "EHMA", "Bollinger"}
OSCILLATOR_INDICATORS = {"RSI", "ATR", "ADX", "CHOP"}
BUILTIN_INDICATORS = OVERLAY_INDICATORS | OSCILLATOR_INDICATORS

# Output buffers per indicator, used for empty results
OUTPUT_KEYS: dict[str, tuple[str, ...]] = {
    "Bollinger": ("lower", "middle", "upper"),
    "ADX": ("adx", "plus_di", "minus_di"),
}


def _period(params: Mapping[str, Any], key: str = "period", default: int = 14, minimum: int = 1) -> int:
    value = int(params.get(key, default))
    if value < minimum:
        raise ValueError(f"'{key}' must be >= {minimum}, got {value}")
    return value


def _column(frame: pd.DataFrame | None, prefix: str) -> pd.Series | None:
    """Pick a pandas_ta output column by its name prefix (e.g. 'BBL', 'DMP')."""
    if frame is None or frame.empty:
        return None
    for col in frame.columns:
        if str(col).startswith(prefix):
            return frame[col]
    return None


class IndicatorEngine:
    """Compute indicator series over a fixed candle history."""

    def __init__(self, candles: CandleSeries | pd.DataFrame | Iterable[Candle | Mapping[str, Any]]):
        self._df = CandleSeries.coerce(candles).to_frame()

    def __len__(self) -> int:
        return len(self._df)

    @staticmethod
    def _series_to_list(series: pd.Series | None, n: int) -> list[float | None]:
        """Convert a pandas Series to a list[float|None] of length n."""
        out: list[float | None] = [None] * n
        if series is None:
            return out
        for i, val in enumerate(series):
            if i >= n:
                break
            if val is None or pd.isna(val) or math.isinf(float(val)):
                continue
            out[i] = float(val)
        return out

    def empty_result(self, name: str) -> dict[str, list[float | None]]:
        n = len(self._df)
        return {key: [None] * n for key in OUTPUT_KEYS.get(name, ("value",))}

    def compute_series(self, name: str, params: Mapping[str, Any] | None = None) -> dict[str, list[float | None]]:
        """Compute indicator `name` over every bar; returns output name → values."""
        params = params or {}
        if name not in BUILTIN_INDICATORS:
            raise ValueError(f"Unknown indicator: {name}")
        if self._df.empty:
            return {key: [] for key in OUTPUT_KEYS.get(name, ("value",))}

        df = self._df
        n = len(df)

        if name == "EMA":
            r = ta.ema(df["close"], length=_period(params, default=20))
            return {"value": self._series_to_list(r, n)}

        if name == "SMA":
            r = ta.sma(df["close"], length=_period(params, default=20))
            return {"value": self._series_to_list(r, n)}

        if name == "WMA":
            r = ta.wma(df["close"], length=_period(params, default=20))
            return {"value": self._series_to_list(r, n)}

        if name == "HMA":
            r = ta.hma(df["close"], length=_period(params, default=20, minimum=2))
            return {"value": self._series_to_list(r, n)}

        if name == "EHMA":
            return {"value": self._series_to_list(self._ehma(df["close"], _period(params, default=20, minimum=2)), n)}

        if name == "RSI":
            r = ta.rsi(df["close"], length=_period(params))
            return {"value": self._series_to_list(r, n)}

        if name == "ATR":
            r = ta.atr(df["high"], df["low"], df["close"], length=_period(params))
            return {"value": self._series_to_list(r, n)}

        if name == "Bollinger":
            period = _period(params, default=20)
            deviation = float(params.get("deviation", 2.0))
            if deviation <= 0:
                raise ValueError(f"'deviation' must be > 0, got {deviation}")
            r = ta.bbands(df["close"], length=period, std=deviation)
            if r is None or r.empty:
                return self.empty_result(name)
            return {
                "lower": self._series_to_list(_column(r, "BBL"), n),
                "middle": self._series_to_list(_column(r, "BBM"), n),
                "upper": self._series_to_list(_column(r, "BBU"), n),
            }

        if name == "ADX":
            r = ta.adx(df["high"], df["low"], df["close"], length=_period(params))
            if r is None or r.empty:
                return self.empty_result(name)
            return {
                "adx": self._series_to_list(_column(r, "ADX_"), n),
                "plus_di": self._series_to_list(_column(r, "DMP"), n),
                "minus_di": self._series_to_list(_column(r, "DMN"), n),
            }

        # CHOP
        r = ta.chop(df["high"], df["low"], df["close"], length=_period(params))
        return {"value": self._series_to_list(r, n)}

    @staticmethod
    def _ehma(close: pd.Series, period: int) -> pd.Series | None:
        """Exponential Hull MA: EMA(2*EMA(n/2) - EMA(n), floor(sqrt(n)))."""
        half = max(period // 2, 1)
        smooth = max(int(math.sqrt(period)), 1)
        fast = ta.ema(close, length=half)
        slow = ta.ema(close, length=period)
        if fast is None or slow is None:
            return None
        raw = (2 * fast - slow).dropna()
        if len(raw) < smooth:
            return None
        result = ta.ema(raw, length=smooth)
        return result.reindex(close.index) if result is not None else None

    def compute_many(self, requests: Iterable[tuple[str, Mapping[str, Any]]]) -> dict[str, dict[str, list[float | None]]]:
        """Compute several indicators; failures are logged and skipped."""
        out: dict[str, dict[str, list[float | None]]] = {}
        for name, params in requests:
            try:
                out[name] = self.compute_series(name, params)
            except Exception as e:
                logger.warning(f"Indicator {name} failed: {e}")
        return out
