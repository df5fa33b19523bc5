"""Tests for smclab.analysis.smc_engine — full pass, queries, scenarios."""

import pandas as pd
import pytest
from pydantic import ValidationError

from smclab.analysis.pivots import INTERNAL, SWING
from smclab.analysis.smc_engine import (
    EngineState,
    EqualHighLowFilter,
    FairValueGapFilter,
    OrderBlockFilter,
    SMCEngine,
    StructureFilter,
    SwingPointFilter,
    analyze,
)
from smclab.analysis.structure import BOS, CHOCH
from tests.conftest import SMALL_LOOKBACK_CONFIG, STRUCTURE_BARS, make_candle, make_candles, t


# ── Lifecycle ──────────────────────────────────────────────────────

class TestLifecycle:
    def test_ready_after_construction(self):
        engine = SMCEngine()
        assert engine.state == EngineState.READY
        assert engine.get_structures() == ()
        assert engine.get_trend(SWING) == "neutral"

    def test_computed_after_calculate(self, structure_candles):
        engine = SMCEngine(SMALL_LOOKBACK_CONFIG)
        assert engine.calculate(structure_candles) is engine
        assert engine.state == EngineState.COMPUTED
        assert engine.bar_count == len(STRUCTURE_BARS)

    def test_bad_config_rejected(self):
        with pytest.raises(ValidationError):
            SMCEngine({"swingLength": 0})
        with pytest.raises(ValidationError):
            SMCEngine({"unknownOption": True})

    def test_failed_calculate_is_atomic(self, structure_candles):
        engine = SMCEngine(SMALL_LOOKBACK_CONFIG).calculate(structure_candles)
        assert engine.get_structures()

        bad = [make_candle(time=200), make_candle(time=100)]
        with pytest.raises(ValueError):
            engine.calculate(bad)
        assert engine.state == EngineState.READY
        assert engine.get_structures() == ()
        assert engine.get_swing_points() == ()
        assert engine.get_order_blocks() == ()
        assert engine.get_premium_discount_zone() is None
        assert engine.bar_count == 0

    def test_empty_series(self):
        engine = SMCEngine().calculate([])
        assert engine.state == EngineState.COMPUTED
        snap = engine.snapshot()
        assert snap.structures == []
        assert snap.premium_discount_zone is None
        assert snap.strong_weak_levels == []

    def test_unknown_trend_scale(self):
        with pytest.raises(ValueError):
            SMCEngine().get_trend("equal")

    def test_accepts_dataframe(self, structure_candles):
        df = pd.DataFrame([c.model_dump() for c in structure_candles])
        a = analyze(df, SMALL_LOOKBACK_CONFIG)
        b = analyze(structure_candles, SMALL_LOOKBACK_CONFIG)
        assert a.to_dict() == b.to_dict()


# ── Structure pass ─────────────────────────────────────────────────

class TestStructurePass:
    def setup_method(self):
        self.engine = SMCEngine(SMALL_LOOKBACK_CONFIG).calculate(make_candles(STRUCTURE_BARS))

    def test_events_in_processing_order(self):
        events = [(e.level, e.type, e.direction, e.time) for e in self.engine.get_structures()]
        assert events == [
            (INTERNAL, BOS, "bullish", t(6)),
            (SWING, BOS, "bullish", t(6)),
            (INTERNAL, CHOCH, "bearish", t(7)),
            (SWING, CHOCH, "bearish", t(7)),
        ]

    def test_structure_filters(self):
        swing = self.engine.get_structures(StructureFilter(level=SWING))
        assert len(swing) == 2
        chochs = self.engine.get_structures(StructureFilter(type=CHOCH, direction="bearish"))
        assert [e.level for e in chochs] == [INTERNAL, SWING]
        assert self.engine.get_structures(StructureFilter(type=CHOCH, direction="bullish")) == ()

    def test_swing_points(self):
        labels = [sp.type for sp in self.engine.get_swing_points()]
        assert labels == ["LL", "HH", "LL", "HH"]
        highs = self.engine.get_swing_points(SwingPointFilter(swing="high"))
        assert [sp.price for sp in highs] == [12.0, 13.0]

    def test_trends(self):
        assert self.engine.get_trend(SWING) == "bearish"
        assert self.engine.get_trend(INTERNAL) == "bearish"

    def test_order_blocks(self):
        blocks = self.engine.get_order_blocks()
        assert len(blocks) == 4
        mitigated = self.engine.get_order_blocks(OrderBlockFilter(mitigated=True))
        assert {b.bias for b in mitigated} == {"bullish"}
        assert all(b.mitigated_time == t(7) for b in mitigated)
        swing_bearish = self.engine.get_order_blocks(OrderBlockFilter(level=SWING, bias="bearish"))
        assert [(b.time, b.high, b.low) for b in swing_bearish] == [(t(6), 13.0, 11.5)]

    def test_queries_do_not_expose_state(self):
        block = self.engine.get_order_blocks()[0]
        block.mitigated = not block.mitigated
        assert self.engine.get_order_blocks()[0].mitigated != block.mitigated

    def test_premium_discount_zone(self):
        zone = self.engine.get_premium_discount_zone()
        assert zone.premium_top == 13.0
        assert zone.discount_bottom == 8.0
        assert zone.equilibrium == pytest.approx(10.5)
        assert zone.premium_bottom == pytest.approx(12.75)
        assert zone.discount_top == pytest.approx(8.25)
        assert zone.start_time == t(6)
        assert zone.end_time == t(8)

    def test_strong_weak_follow_swing_trend(self):
        levels = {lv.type: lv for lv in self.engine.get_strong_weak_levels()}
        assert (levels["high"].strength, levels["high"].time) == ("strong", t(6))
        assert (levels["low"].strength, levels["low"].time) == ("weak", t(8))

    def test_bullish_trend_after_swing_high_cleared(self):
        engine = SMCEngine(SMALL_LOOKBACK_CONFIG).calculate(make_candles(STRUCTURE_BARS[:7]))
        assert engine.get_trend(SWING) == "bullish"
        assert engine.get_trend(INTERNAL) == "bullish"

    def test_disabled_components(self):
        cfg = dict(SMALL_LOOKBACK_CONFIG, showSwingStructure=False, showOrderBlocks=False,
                   showFVG=False, showPremiumDiscount=False)
        engine = SMCEngine(cfg).calculate(make_candles(STRUCTURE_BARS))
        assert {e.level for e in engine.get_structures()} == {INTERNAL}
        assert engine.get_order_blocks() == ()
        assert engine.get_fair_value_gaps() == ()
        assert engine.get_premium_discount_zone() is None
        assert engine.get_strong_weak_levels() == ()
        # Swing pivots are still tracked
        assert len(engine.get_swing_points()) == 4
        assert engine.get_trend(SWING) == "neutral"


# ── Properties ─────────────────────────────────────────────────────

class TestProperties:
    def test_deterministic(self, structure_candles):
        a = SMCEngine(SMALL_LOOKBACK_CONFIG).calculate(structure_candles).snapshot().to_dict()
        b = SMCEngine(SMALL_LOOKBACK_CONFIG).calculate(structure_candles).snapshot().to_dict()
        assert a == b

    def test_recalculate_starts_fresh(self, structure_candles):
        engine = SMCEngine(SMALL_LOOKBACK_CONFIG)
        first = engine.calculate(structure_candles).snapshot().to_dict()
        second = engine.calculate(structure_candles).snapshot().to_dict()
        assert first == second

    def test_order_block_cap(self, structure_candles):
        cfg = dict(SMALL_LOOKBACK_CONFIG, maxOrderBlocks=1, orderBlockRetentionMultiplier=1)
        blocks = SMCEngine(cfg).calculate(structure_candles).get_order_blocks()
        assert len(blocks) == 1
        assert (blocks[0].level, blocks[0].bias) == (SWING, "bearish")

    def test_default_cap_is_four_times_max(self, rising_candles):
        engine = SMCEngine({"maxOrderBlocks": 2})
        assert engine.config.order_block_cap == 8
        assert len(engine.calculate(rising_candles).get_order_blocks()) <= 8

    def test_warm_up_without_swing_output(self, structure_candles):
        engine = SMCEngine().calculate(structure_candles)   # swing length 50
        assert engine.get_swing_points() == ()
        assert engine.get_structures(StructureFilter(level=SWING)) == ()
        assert engine.get_trend(SWING) == "neutral"


# ── Scenarios ──────────────────────────────────────────────────────

class TestScenarios:
    def test_five_flat_bars(self, flat_candles):
        engine = SMCEngine().calculate(flat_candles)
        assert engine.get_structures() == ()
        assert engine.get_swing_points() == ()
        assert len(engine.get_order_blocks()) <= 1
        assert engine.get_fair_value_gaps() == ()
        assert engine.get_equal_highs_lows() == ()
        zone = engine.get_premium_discount_zone()
        assert zone.premium_top == zone.discount_bottom == 100.0

    def test_rising_series(self, rising_candles):
        engine = SMCEngine({"swingLength": 50}).calculate(rising_candles)
        swings = engine.get_swing_points()
        # The swing leg flips to bullish at bar 50, confirming bar 0's low
        assert [(sp.type, sp.swing, sp.time, sp.price) for sp in swings] == [("LL", "low", t(0), 99.5)]
        # No swing high is ever confirmed, so nothing can break
        assert engine.get_structures() == ()
        assert engine.get_trend(SWING) == "neutral"
        zone = engine.get_premium_discount_zone()
        assert zone.premium_top == 159.5
        assert zone.discount_bottom == 99.5
        assert zone.start_time == t(0)

    def test_rising_series_gaps_stay_open(self, rising_candles):
        engine = SMCEngine({"swingLength": 50}).calculate(rising_candles)
        gaps = engine.get_fair_value_gaps(FairValueGapFilter(bias="bullish"))
        assert len(gaps) == 58
        assert engine.get_fair_value_gaps(FairValueGapFilter(filled=True)) == ()

    def test_three_bar_bullish_gap(self, bullish_fvg_candles):
        engine = SMCEngine().calculate(bullish_fvg_candles)
        gaps = engine.get_fair_value_gaps(FairValueGapFilter(bias="bullish"))
        assert len(gaps) == 1
        bar0, bar1, bar2 = bullish_fvg_candles
        assert gaps[0].time == bar1.time
        assert gaps[0].top == bar2.low
        assert gaps[0].bottom == bar0.high
        assert gaps[0].filled is False
        assert engine.get_fair_value_gaps(FairValueGapFilter(bias="bearish")) == ()

    def test_fvg_cap(self, rising_candles):
        engine = SMCEngine({"swingLength": 50, "maxFairValueGaps": 5}).calculate(rising_candles)
        gaps = engine.get_fair_value_gaps()
        assert [g.time for g in gaps] == [t(i) for i in range(54, 59)]

    def test_equal_lows_through_engine(self):
        bars = [
            (9.2, 10.0, 9.0, 9.8),
            (10.2, 11.0, 10.0, 10.8),
            (11.2, 12.0, 11.0, 11.8),
            (10.8, 11.0, 10.0, 10.2),
            (9.8, 10.0, 9.05, 9.6),
            (10.2, 11.0, 10.0, 10.8),
            (11.6, 13.0, 11.5, 12.8),
        ]
        cfg = {"equalHLLength": 2, "equalHLThreshold": 0.5, "atrPeriod": 1}
        engine = SMCEngine(cfg).calculate(make_candles(bars))
        eqs = engine.get_equal_highs_lows(EqualHighLowFilter(type="EQL"))
        assert [(e.time1, e.time2, e.price) for e in eqs] == [(t(0), t(4), 9.05)]
        assert engine.get_equal_highs_lows(EqualHighLowFilter(type="EQH")) == ()


def test_snapshot_to_dict(structure_candles):
    data = analyze(structure_candles, SMALL_LOOKBACK_CONFIG).to_dict()
    assert data["swing_trend"] == "bearish"
    assert data["structures"][0] == {
        "time": t(6),
        "price": 12.0,
        "type": "BOS",
        "direction": "bullish",
        "level": "internal",
        "start_time": t(2),
    }
    assert set(data["premium_discount_zone"]) == {
        "start_time", "end_time", "premium_top", "premium_bottom",
        "equilibrium", "discount_top", "discount_bottom",
    }
