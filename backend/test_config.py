"""
Unit tests for SimulationConfig

Tests cover:
- Default values the rest of the simulation relies on
- Validation of inconsistent configurations
- Funding round lookup
"""
import pytest
from config import (
    CONFIG,
    EventConfig,
    GameRulesConfig,
    MarketConfig,
    SimulationConfig,
    TeamConfig,
)


class TestSimulationConfig:
    """Test suite for configuration defaults and validation"""

    def test_defaults(self):
        """Test the headline defaults"""
        assert CONFIG.rules.max_turns == 120
        assert CONFIG.rules.starting_cash == 1_000_000.0
        assert CONFIG.rules.default_industry in CONFIG.industries
        assert set(CONFIG.difficulty.presets) == {"easy", "normal", "hard"}
        assert set(CONFIG.marketing.channels) == {"social", "search", "content", "traditional"}

    def test_industry_average_user_value(self):
        """Test average user value is the midpoint of the annual range"""
        assert CONFIG.industries["saas"].average_user_value == 300.0
        assert CONFIG.industries["social"].average_user_value == 30.0

    def test_every_tier_has_scales(self):
        """Test tiers 1-6 all define scales and tier 1 is the identity"""
        assert set(CONFIG.events.tier_scales) == set(range(1, 7))
        assert CONFIG.events.tier_scales[1] == (1, 1, 1)

    def test_rejects_non_positive_max_turns(self):
        """Test max_turns must be positive"""
        with pytest.raises(ValueError):
            SimulationConfig(rules=GameRulesConfig(max_turns=0))

    def test_rejects_unknown_default_industry(self):
        """Test the default industry must exist"""
        with pytest.raises(ValueError):
            SimulationConfig(rules=GameRulesConfig(default_industry="biotech"))

    def test_rejects_probability_out_of_range(self):
        """Test probabilities outside [0, 1] are rejected"""
        with pytest.raises(ValueError):
            SimulationConfig(events=EventConfig(base_event_chance=1.5))

    def test_rejects_inverted_ranges(self):
        """Test (low, high) ranges must be ordered"""
        with pytest.raises(ValueError):
            SimulationConfig(team=TeamConfig(performance_range=(1.3, 0.7)))
        with pytest.raises(ValueError):
            SimulationConfig(market=MarketConfig(cycle_length_range=(16, 8)))

    def test_find_round_is_case_insensitive(self):
        """Test funding rounds are looked up by name regardless of case"""
        assert CONFIG.funding.find_round("series a").name == "Series A"
        assert CONFIG.funding.find_round(" Seed ").name == "Seed"
        assert CONFIG.funding.find_round("Series Z") is None

    def test_rounds_are_ordered_by_valuation(self):
        """Test round thresholds increase"""
        thresholds = [r.min_valuation for r in CONFIG.funding.rounds]
        assert thresholds == sorted(thresholds)
