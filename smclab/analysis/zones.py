"""Premium/discount zone and strong/weak extremes, computed once per pass."""

from dataclasses import dataclass

from smclab.analysis.pivots import BEARISH, BULLISH, TrailingExtremes

ZONE_EDGE_FRACTION = 0.05


@dataclass(frozen=True)
class PremiumDiscountZone:
    start_time: int | None
    end_time: int
    premium_top: float
    premium_bottom: float
    equilibrium: float
    discount_top: float
    discount_bottom: float


@dataclass(frozen=True)
class StrongWeakLevel:
    time: int | None
    price: float
    strength: str   # strong or weak
    type: str       # high or low


def replace_level(levels: list[StrongWeakLevel], level: StrongWeakLevel) -> list[StrongWeakLevel]:
    """Drop any entry of the same type, then append."""
    kept = [lv for lv in levels if lv.type != level.type]
    kept.append(level)
    return kept


class ZoneSummarizer:
    def premium_discount(self, trailing: TrailingExtremes, end_time: int) -> PremiumDiscountZone | None:
        if trailing.top is None or trailing.bottom is None:
            return None
        top, bottom = trailing.top, trailing.bottom
        span = top - bottom
        return PremiumDiscountZone(
            start_time=trailing.bar_time,
            end_time=end_time,
            premium_top=top,
            premium_bottom=top - ZONE_EDGE_FRACTION * span,
            equilibrium=(top + bottom) / 2,
            discount_top=bottom + ZONE_EDGE_FRACTION * span,
            discount_bottom=bottom,
        )

    def strong_weak(self, trailing: TrailingExtremes, swing_trend: int,
                    levels: list[StrongWeakLevel] | None = None) -> list[StrongWeakLevel]:
        """A high is strong when the swing trend is bearish, a low when bullish."""
        levels = list(levels or [])
        if trailing.top is None or trailing.bottom is None:
            return levels

        if trailing.top_time is not None:
            strength = "strong" if swing_trend == BEARISH else "weak"
            levels = replace_level(levels, StrongWeakLevel(trailing.top_time, trailing.top, strength, "high"))

        if trailing.bottom_time is not None:
            strength = "strong" if swing_trend == BULLISH else "weak"
            levels = replace_level(levels, StrongWeakLevel(trailing.bottom_time, trailing.bottom, strength, "low"))

        return levels
