"""Columnar candle series consumed by the SMC engine and indicators.

Candles arrive as pydantic models, plain dicts (JSON bodies) or a pandas
DataFrame. All are normalised into numpy arrays once, so the per-bar loops
index plain floats instead of touching pandas objects.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import numpy as np
import pandas as pd

from smclab.models.market import Candle

OHLC_COLUMNS = ("time", "open", "high", "low", "close")


@dataclass(frozen=True, eq=False)
class CandleSeries:
    """Time-ascending OHLC bars as parallel arrays."""
    time: np.ndarray
    open: np.ndarray
    high: np.ndarray
    low: np.ndarray
    close: np.ndarray
    volume: np.ndarray

    def __post_init__(self) -> None:
        n = len(self.time)
        for name in ("open", "high", "low", "close", "volume"):
            if len(getattr(self, name)) != n:
                raise ValueError(f"Column '{name}' has {len(getattr(self, name))} values, expected {n}")
        if n > 1:
            steps = np.diff(self.time)
            bad = np.flatnonzero(steps <= 0)
            if bad.size:
                idx = int(bad[0]) + 1
                raise ValueError(
                    f"Candle times must be strictly increasing: "
                    f"time[{idx}]={int(self.time[idx])} follows time[{idx - 1}]={int(self.time[idx - 1])}"
                )

    def __len__(self) -> int:
        return len(self.time)

    @classmethod
    def empty(cls) -> "CandleSeries":
        blank = np.empty(0, dtype=float)
        return cls(np.empty(0, dtype=np.int64), blank, blank, blank, blank, blank)

    @classmethod
    def from_candles(cls, candles: Iterable[Candle | Mapping[str, Any]]) -> "CandleSeries":
        """Build from Candle models or dicts with time/open/high/low/close keys."""
        rows = [c if isinstance(c, Candle) else Candle.model_validate(c) for c in candles]
        if not rows:
            return cls.empty()
        return cls(
            time=np.array([c.time for c in rows], dtype=np.int64),
            open=np.array([c.open for c in rows], dtype=float),
            high=np.array([c.high for c in rows], dtype=float),
            low=np.array([c.low for c in rows], dtype=float),
            close=np.array([c.close for c in rows], dtype=float),
            volume=np.array([c.volume for c in rows], dtype=float),
        )

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "CandleSeries":
        """Build from a DataFrame with time/open/high/low/close (volume optional)."""
        missing = [c for c in OHLC_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"DataFrame is missing columns: {', '.join(missing)}")
        n = len(df)
        volume = df["volume"].to_numpy(dtype=float) if "volume" in df.columns else np.zeros(n)
        return cls(
            time=df["time"].to_numpy(dtype=np.int64),
            open=df["open"].to_numpy(dtype=float),
            high=df["high"].to_numpy(dtype=float),
            low=df["low"].to_numpy(dtype=float),
            close=df["close"].to_numpy(dtype=float),
            volume=volume,
        )

    @classmethod
    def coerce(cls, data: "CandleSeries | pd.DataFrame | Iterable[Candle | Mapping[str, Any]]") -> "CandleSeries":
        if isinstance(data, CandleSeries):
            return data
        if isinstance(data, pd.DataFrame):
            return cls.from_frame(data)
        return cls.from_candles(data)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "time": self.time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        })
