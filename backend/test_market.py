"""
Unit tests for MarketModel

Tests cover:
- Baseline construction and difficulty contributions
- Cycle transitions and drift
- Trend lifecycle and modifiers
- Clamping of headline metrics
- Serialization
"""
import numpy as np
import pytest
from config import CONFIG
from market import MarketModel, MarketTrend


def make_market(seed=0, **kwargs):
    return MarketModel.create(np.random.default_rng(seed), **kwargs)


class TestMarketModel:
    """Test suite for MarketModel functionality"""

    def test_create_neutral_baseline(self):
        """Test a new market sits at the neutral baseline"""
        market = make_market()

        assert market.cycle_phase == "neutral"
        assert market.valuation_multiplier == 1.0
        assert market.funding_availability == 1.0
        assert market.sentiment_index == 0.5
        assert market.growth_rate == pytest.approx(0.05)
        low, high = CONFIG.market.cycle_length_range
        assert low <= market.cycle_length <= high
        assert set(market.industries) == set(CONFIG.industries)

    def test_difficulty_contributions(self):
        """Test preset growth bonus and funding scale shape the baseline"""
        market = make_market(growth_bonus=-0.1, funding_scale=0.7)

        assert market.growth_rate == pytest.approx(-0.05)
        assert market.funding_availability == pytest.approx(0.7)

    def test_most_likely_next_cycle(self):
        """Test drift targets the mode of the transition list"""
        market = make_market()
        assert market.most_likely_next_cycle() == "neutral"
        market.cycle_phase = "boom"
        assert market.most_likely_next_cycle() == "boom"

    def test_cycle_change_resets_counter(self):
        """Test the cycle rolls over and notifies at the end of its length"""
        market = make_market()
        market.cycle_turn = market.cycle_length - 1
        notes = []
        market.update(np.random.default_rng(1), lambda message, kind: notes.append(kind))

        assert market.cycle_turn == 0
        assert market.cycle_phase in CONFIG.market.cycle_transitions["neutral"]
        assert "market" in notes

    def test_drift_moves_toward_target(self):
        """Test mid-cycle drift pulls a boom-level multiplier toward the next baseline"""
        market = make_market()
        market.cycle_phase = "bust"
        market.cycle_length = 10
        market.cycle_turn = 5
        market.valuation_multiplier = 1.0
        market._advance_cycle(np.random.default_rng(0), None)

        assert market.valuation_multiplier < 1.0

    def test_metrics_stay_bounded(self):
        """Test headline metrics and trends stay within bounds over long runs"""
        market = make_market()
        rng = np.random.default_rng(42)
        cfg = CONFIG.market
        for _ in range(500):
            market.update(rng)
            assert cfg.valuation_bounds[0] <= market.valuation_multiplier <= cfg.valuation_bounds[1]
            assert cfg.funding_bounds[0] <= market.funding_availability <= cfg.funding_bounds[1]
            assert cfg.sentiment_bounds[0] <= market.sentiment_index <= cfg.sentiment_bounds[1]
            assert cfg.growth_bounds[0] <= market.growth_rate <= cfg.growth_bounds[1]
            assert len(market.trends) <= cfg.max_trends
            assert len({t.name for t in market.trends}) == len(market.trends)
            for metrics in market.industries.values():
                assert cfg.industry_growth_bounds[0] <= metrics.growth_rate <= cfg.industry_growth_bounds[1]
                assert cfg.competitiveness_bounds[0] <= metrics.competitiveness <= cfg.competitiveness_bounds[1]

    def test_trend_modifies_revenue_multiple(self):
        """Test an active trend scales only its industries and is applied on read"""
        market = make_market()
        market.trends = [MarketTrend("AI Revolution", ["saas", "fintech"], 0.05, 1.3, duration=10)]

        assert market.revenue_multiple("saas") == pytest.approx(8.0 * 1.3)
        assert market.revenue_multiple("saas") == pytest.approx(8.0 * 1.3)
        assert market.revenue_multiple("ecommerce") == pytest.approx(3.0)
        assert market.industry_growth("saas") == pytest.approx(market.industries["saas"].growth_rate + 0.05)

    def test_trend_fades(self):
        """Test trend strength falls linearly with elapsed turns"""
        trend = MarketTrend("Test Trend", ["saas"], 0.1, 1.5, duration=4, elapsed=2)

        assert trend.strength == pytest.approx(0.5)

    def test_trend_expires(self):
        """Test a trend is removed when its duration runs out"""
        market = make_market()
        market.trends = [MarketTrend("Test Trend", ["saas"], 0.1, 1.5, duration=2)]
        rng = np.random.default_rng(0)
        market._update_trends(rng, None)
        assert any(t.name == "Test Trend" for t in market.trends)
        market._update_trends(rng, None)
        assert all(t.name != "Test Trend" for t in market.trends)

    def test_event_effects_clamped(self):
        """Test event deltas use the wider event clamps"""
        market = make_market()
        market.apply_event_effects(funding_availability=-5.0, valuation_multiplier=-5.0)

        assert market.funding_availability == CONFIG.market.event_funding_bounds[0]
        assert market.valuation_multiplier == CONFIG.market.event_valuation_floor

    def test_apply_difficulty_lowers_valuations(self):
        """Test a harder multiplier divides the valuation multiplier"""
        market = make_market()
        market.apply_difficulty(1.25)

        assert market.valuation_multiplier == pytest.approx(0.8)

    def test_descriptions(self):
        """Test sentiment and funding labels"""
        market = make_market()
        market.sentiment_index = 0.85
        market.funding_availability = 0.4

        assert market.sentiment_description() == "Euphoric"
        assert market.funding_description() == "Scarce"

    def test_round_trip(self):
        """Test a market survives serialization"""
        market = make_market()
        rng = np.random.default_rng(9)
        for _ in range(30):
            market.update(rng)

        assert MarketModel.from_dict(market.to_dict()) == market
