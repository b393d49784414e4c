"""
Unit tests for DifficultyFeedback

Tests cover:
- Benchmarks and adjustment bands
- Evaluation cadence and multiplier bounds
- Propagation into market, competitors, churn and events
- Scripted difficulty events
"""
import numpy as np
import pytest
from agents import CompetitorAgent
from config import CONFIG
from difficulty import DifficultyFeedback
from event_catalog import DIFFICULTY_EVENT_IDS
from events import EventSystem


class TestDifficultyFeedback:
    """Test suite for the dynamic difficulty loop"""

    def test_benchmarks_grow(self):
        """Test expected values start at the base and compound yearly"""
        feedback = DifficultyFeedback()

        assert feedback.expected(0)["valuation"] == pytest.approx(1_000_000)
        assert feedback.expected(12)["users"] == pytest.approx(120)
        assert feedback.expected(24)["revenue"] == pytest.approx(5_000 * 1.18 ** 2)

    @pytest.mark.parametrize("score,step", [
        (1.6, 0.15), (1.3, 0.08), (1.0, 0.0), (0.7, -0.05), (0.5, -0.10),
    ])
    def test_bands(self, score, step):
        """Test score bands map to multiplier steps"""
        assert DifficultyFeedback().step_for(score) == step

    def test_skips_off_interval_turns(self, company, make_context):
        """Test evaluation only runs every sixth turn"""
        feedback = DifficultyFeedback()
        result = feedback.evaluate(make_context(company, turn=5), EventSystem())

        assert result is None
        assert feedback.samples == []

    def test_multiplier_clamped_high(self, company, make_context, fixed_rng):
        """Test sustained outperformance tops out at the upper bound"""
        company.valuation = 1e12
        feedback = DifficultyFeedback()
        events = EventSystem()
        for turn in range(6, 600, 6):
            feedback.evaluate(make_context(company, rng=fixed_rng(0.99), turn=turn), events)
            assert 0.7 <= feedback.multiplier <= 1.5

        assert feedback.multiplier == CONFIG.difficulty.multiplier_bounds[1]

    def test_multiplier_clamped_low(self, company, make_context, fixed_rng):
        """Test sustained underperformance bottoms out at the lower bound"""
        company.valuation = 0.0
        feedback = DifficultyFeedback()
        events = EventSystem()
        for turn in range(6, 300, 6):
            feedback.evaluate(make_context(company, rng=fixed_rng(0.99), turn=turn), events)

        assert feedback.multiplier == CONFIG.difficulty.multiplier_bounds[0]

    def test_sample_window(self, company, make_context, fixed_rng):
        """Test only the most recent samples are kept"""
        feedback = DifficultyFeedback()
        events = EventSystem()
        for turn in range(6, 120, 6):
            feedback.evaluate(make_context(company, rng=fixed_rng(0.99), turn=turn), events)

        assert len(feedback.samples) == CONFIG.difficulty.sample_window

    def test_propagation(self, company, make_context):
        """Test a new multiplier reaches market, competitors, churn and events"""
        rival = CompetitorAgent.create(1, "balanced", "saas", np.random.default_rng(0))
        rival.aggressiveness = 1.0
        ctx = make_context(company, competitors=[rival])
        events = EventSystem()
        feedback = DifficultyFeedback(preset="hard", multiplier=1.2)

        feedback.propagate(ctx, events)

        assert ctx.market.valuation_multiplier == pytest.approx(1.0 / 1.2)
        assert rival.aggressiveness == pytest.approx(1.2)
        assert company.churn_rate == pytest.approx(0.06)
        assert events.frequency == pytest.approx(1.3 * 1.2)

    def test_churn_floor(self, company, make_context):
        """Test an easier multiplier never drops churn below the floor"""
        feedback = DifficultyFeedback(multiplier=0.7)
        feedback.propagate(make_context(company), EventSystem())

        assert company.churn_rate == CONFIG.difficulty.churn_floor

    def test_large_jump_raises_scripted_event(self, company, make_context, fixed_rng):
        """Test a jump above 0.1 can raise an already-resolved difficulty event"""
        company.valuation = 1e9
        feedback = DifficultyFeedback()
        events = EventSystem()

        event = feedback.evaluate(make_context(company, rng=fixed_rng(0.0), turn=6), events)

        assert feedback.multiplier == pytest.approx(1.15)
        assert event is not None
        assert event.template_id in DIFFICULTY_EVENT_IDS
        assert event.resolved
        assert event.scripted

    def test_small_step_raises_nothing(self, company, make_context, fixed_rng):
        """Test moderate adjustments never raise scripted events"""
        feedback = DifficultyFeedback()
        company.valuation = 0.0
        event = feedback.evaluate(make_context(company, rng=fixed_rng(0.0), turn=6), EventSystem())

        assert event is None
        assert feedback.multiplier == pytest.approx(0.9)

    def test_round_trip(self, company, make_context, fixed_rng):
        """Test the feedback state survives serialization"""
        feedback = DifficultyFeedback(preset="easy")
        feedback.evaluate(make_context(company, rng=fixed_rng(0.99), turn=6), EventSystem())

        assert DifficultyFeedback.from_dict(feedback.to_dict()) == feedback
