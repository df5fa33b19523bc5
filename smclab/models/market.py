from pydantic import BaseModel, model_validator


class Candle(BaseModel):
    time: int  # unix seconds, strictly increasing within a series
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @model_validator(mode="after")
    def _check_ohlc(self) -> "Candle":
        body_low = min(self.open, self.close)
        body_high = max(self.open, self.close)
        if not (self.low <= body_low <= body_high <= self.high):
            raise ValueError(
                f"Inconsistent OHLC at time {self.time}: "
                f"low={self.low} open={self.open} close={self.close} high={self.high}"
            )
        return self
