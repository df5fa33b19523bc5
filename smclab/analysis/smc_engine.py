"""SMC Engine — single forward pass over a candle series.

Runs the pivot tracker, structure break detector, order block manager and
fair value gap detector bar by bar, then summarises premium/discount zones
and strong/weak extremes. Every call to calculate() reprocesses the whole
series from bar 0 on fresh state; there is no incremental update path.

Per-bar order matters:
  1. trailing extremes
  2. pivots (swing, internal, equal); structure reads this bar's pivots
  3. structure (internal, swing), which may create order blocks
  4. order block mitigation, including blocks created on this bar
  5. fair value gaps (detect, fill)
"""

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, Mapping

import pandas as pd
from loguru import logger

from smclab.analysis.fvg import FairValueGap, FVGDetector
from smclab.analysis.order_blocks import OrderBlock, OrderBlockManager
from smclab.analysis.pivots import (
    EQUAL, INTERNAL, NEUTRAL, SWING, TREND_NAMES,
    EqualHighLow, PivotTracker, SwingPoint,
)
from smclab.analysis.series import CandleSeries
from smclab.analysis.structure import StructureBreakDetector, StructureEvent
from smclab.analysis.volatility import VolatilityProfiler
from smclab.analysis.zones import PremiumDiscountZone, StrongWeakLevel, ZoneSummarizer
from smclab.models.market import Candle
from smclab.models.smc import SMCConfig


class EngineState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    COMPUTED = "computed"


# ─── Query filters ───────────────────────────────────────────────────
# Unset fields place no constraint on the result.

@dataclass(frozen=True)
class StructureFilter:
    level: str | None = None
    direction: str | None = None
    type: str | None = None

    def matches(self, ev: StructureEvent) -> bool:
        return ((self.level is None or ev.level == self.level)
                and (self.direction is None or ev.direction == self.direction)
                and (self.type is None or ev.type == self.type))


@dataclass(frozen=True)
class SwingPointFilter:
    type: str | None = None
    swing: str | None = None

    def matches(self, sp: SwingPoint) -> bool:
        return ((self.type is None or sp.type == self.type)
                and (self.swing is None or sp.swing == self.swing))


@dataclass(frozen=True)
class OrderBlockFilter:
    level: str | None = None
    bias: str | None = None
    mitigated: bool | None = None

    def matches(self, ob: OrderBlock) -> bool:
        return ((self.level is None or ob.level == self.level)
                and (self.bias is None or ob.bias == self.bias)
                and (self.mitigated is None or ob.mitigated == self.mitigated))


@dataclass(frozen=True)
class FairValueGapFilter:
    bias: str | None = None
    filled: bool | None = None

    def matches(self, gap: FairValueGap) -> bool:
        return ((self.bias is None or gap.bias == self.bias)
                and (self.filled is None or gap.filled == self.filled))


@dataclass(frozen=True)
class EqualHighLowFilter:
    type: str | None = None

    def matches(self, eq: EqualHighLow) -> bool:
        return self.type is None or eq.type == self.type


# ─── Results ─────────────────────────────────────────────────────────

@dataclass
class SMCSnapshot:
    """Everything the chart layer needs from one pass."""
    structures: list[StructureEvent] = field(default_factory=list)
    swing_points: list[SwingPoint] = field(default_factory=list)
    order_blocks: list[OrderBlock] = field(default_factory=list)
    fair_value_gaps: list[FairValueGap] = field(default_factory=list)
    equal_highs_lows: list[EqualHighLow] = field(default_factory=list)
    premium_discount_zone: PremiumDiscountZone | None = None
    strong_weak_levels: list[StrongWeakLevel] = field(default_factory=list)
    swing_trend: str = "neutral"
    internal_trend: str = "neutral"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class _PassResult:
    structures: list[StructureEvent]
    swing_points: list[SwingPoint]
    order_blocks: list[OrderBlock]
    fair_value_gaps: list[FairValueGap]
    equal_highs_lows: list[EqualHighLow]
    premium_discount_zone: PremiumDiscountZone | None
    strong_weak_levels: list[StrongWeakLevel]
    trends: dict[str, int]
    bar_count: int


# ═══════════════════════════════════════════════════════════════════════
# Engine
# ═══════════════════════════════════════════════════════════════════════

class SMCEngine:
    """Smart Money Concepts analysis over a full candle series.

    Instances are not shared between threads; analyse independent symbols
    with independent engines.
    """

    def __init__(self, config: SMCConfig | Mapping[str, Any] | None = None):
        if config is None:
            config = SMCConfig()
        elif not isinstance(config, SMCConfig):
            config = SMCConfig.model_validate(config)
        self.config = config
        self.state = EngineState.UNINITIALIZED
        self._reset()

    def _reset(self) -> None:
        self._structures: list[StructureEvent] = []
        self._swing_points: list[SwingPoint] = []
        self._order_blocks: list[OrderBlock] = []
        self._fair_value_gaps: list[FairValueGap] = []
        self._equal_highs_lows: list[EqualHighLow] = []
        self._premium_discount_zone: PremiumDiscountZone | None = None
        self._strong_weak_levels: list[StrongWeakLevel] = []
        self._trends = {SWING: NEUTRAL, INTERNAL: NEUTRAL}
        self.bar_count = 0
        self.state = EngineState.READY

    def calculate(self, candles: CandleSeries | pd.DataFrame | Iterable[Candle | Mapping[str, Any]]) -> "SMCEngine":
        """Run the full pass. On failure the engine is left READY with no results."""
        self._reset()
        try:
            series = CandleSeries.coerce(candles)
            result = self._run(series)
        except Exception as e:
            logger.warning(f"SMC calculation failed: {e}")
            raise

        self._structures = result.structures
        self._swing_points = result.swing_points
        self._order_blocks = result.order_blocks
        self._fair_value_gaps = result.fair_value_gaps
        self._equal_highs_lows = result.equal_highs_lows
        self._premium_discount_zone = result.premium_discount_zone
        self._strong_weak_levels = result.strong_weak_levels
        self._trends = result.trends
        self.bar_count = result.bar_count
        self.state = EngineState.COMPUTED

        logger.debug(
            f"SMC pass complete: {result.bar_count} bars, {len(result.structures)} structures, "
            f"{len(result.swing_points)} swing points, {len(result.order_blocks)} order blocks, "
            f"{len(result.fair_value_gaps)} FVGs, {len(result.equal_highs_lows)} EQH/EQL"
        )
        return self

    def _run(self, series: CandleSeries) -> _PassResult:
        cfg = self.config
        n = len(series)

        profile = VolatilityProfiler(cfg.atr_period, cfg.order_block_filter).profile(series)
        tracker = PivotTracker(series, profile, cfg.equal_hl_threshold)
        order_blocks = None
        if cfg.show_order_blocks:
            order_blocks = OrderBlockManager(series, profile, cfg.order_block_cap, cfg.order_block_mitigation)
        structure = StructureBreakDetector(series, tracker, order_blocks)
        fvgs = FVGDetector(series, cfg.max_fair_value_gaps) if cfg.show_fvg else None

        for i in range(n):
            if cfg.show_premium_discount:
                tracker.update_trailing(i)

            tracker.process(i, cfg.swing_length, SWING)
            tracker.process(i, cfg.internal_length, INTERNAL)
            if cfg.show_equal_hl:
                tracker.process(i, cfg.equal_hl_length, EQUAL)

            if cfg.show_internal_structure:
                structure.process(i, INTERNAL)
            if cfg.show_swing_structure:
                structure.process(i, SWING)

            if order_blocks is not None:
                order_blocks.check_mitigation(i)

            if fvgs is not None:
                fvgs.detect(i)
                fvgs.check_fill(i)

        zone = None
        levels: list[StrongWeakLevel] = []
        if cfg.show_premium_discount and n > 0:
            summarizer = ZoneSummarizer()
            zone = summarizer.premium_discount(tracker.trailing, int(series.time[-1]))
            levels = summarizer.strong_weak(tracker.trailing, structure.trends[SWING])

        return _PassResult(
            structures=structure.events,
            swing_points=tracker.swing_points,
            order_blocks=order_blocks.blocks if order_blocks is not None else [],
            fair_value_gaps=fvgs.gaps if fvgs is not None else [],
            equal_highs_lows=tracker.equal_highs_lows,
            premium_discount_zone=zone,
            strong_weak_levels=levels,
            trends=dict(structure.trends),
            bar_count=n,
        )

    # --- Query surface ---

    def get_structures(self, criteria: StructureFilter | None = None) -> tuple[StructureEvent, ...]:
        criteria = criteria or StructureFilter()
        return tuple(ev for ev in self._structures if criteria.matches(ev))

    def get_swing_points(self, criteria: SwingPointFilter | None = None) -> tuple[SwingPoint, ...]:
        criteria = criteria or SwingPointFilter()
        return tuple(sp for sp in self._swing_points if criteria.matches(sp))

    def get_order_blocks(self, criteria: OrderBlockFilter | None = None) -> tuple[OrderBlock, ...]:
        criteria = criteria or OrderBlockFilter()
        return tuple(replace(ob) for ob in self._order_blocks if criteria.matches(ob))

    def get_fair_value_gaps(self, criteria: FairValueGapFilter | None = None) -> tuple[FairValueGap, ...]:
        criteria = criteria or FairValueGapFilter()
        return tuple(replace(gap) for gap in self._fair_value_gaps if criteria.matches(gap))

    def get_equal_highs_lows(self, criteria: EqualHighLowFilter | None = None) -> tuple[EqualHighLow, ...]:
        criteria = criteria or EqualHighLowFilter()
        return tuple(eq for eq in self._equal_highs_lows if criteria.matches(eq))

    def get_premium_discount_zone(self) -> PremiumDiscountZone | None:
        return self._premium_discount_zone

    def get_strong_weak_levels(self) -> tuple[StrongWeakLevel, ...]:
        return tuple(self._strong_weak_levels)

    def get_trend(self, scale: str) -> str:
        if scale not in self._trends:
            raise ValueError(f"Unknown structure scale: {scale}")
        return TREND_NAMES[self._trends[scale]]

    def snapshot(self) -> SMCSnapshot:
        return SMCSnapshot(
            structures=list(self.get_structures()),
            swing_points=list(self.get_swing_points()),
            order_blocks=list(self.get_order_blocks()),
            fair_value_gaps=list(self.get_fair_value_gaps()),
            equal_highs_lows=list(self.get_equal_highs_lows()),
            premium_discount_zone=self._premium_discount_zone,
            strong_weak_levels=list(self._strong_weak_levels),
            swing_trend=self.get_trend(SWING),
            internal_trend=self.get_trend(INTERNAL),
        )


def analyze(candles: CandleSeries | pd.DataFrame | Iterable[Candle | Mapping[str, Any]],
            config: SMCConfig | Mapping[str, Any] | None = None) -> SMCSnapshot:
    """One-shot helper: fresh engine, full pass, snapshot."""
    return SMCEngine(config).calculate(candles).snapshot()
