"""
Simulation Configuration

Centralizes all tunable parameters for the startup simulation.
This replaces scattered "magic numbers" throughout the codebase.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple


@dataclass
class GameRulesConfig:
    """Turn limits, starting position and endgame thresholds."""
    version: str = "0.1.0"
    max_turns: int = 120  # One turn = one month
    starting_cash: float = 1_000_000.0
    starting_valuation: float = 1_000_000.0
    default_industry: str = "saas"
    default_company_name: str = "My Startup"
    default_difficulty: str = "normal"

    # Endgame
    bankruptcy_threshold: float = 0.0  # cash <= threshold ends the game
    ipo_valuation_threshold: float = 100_000_000.0
    acquisition_valuation_threshold: float = 50_000_000.0
    acquisition_offer_chance: float = 0.15  # per turn once above threshold
    ipo_offer_chance: float = 0.20

    max_notifications: int = 50


@dataclass
class TeamConfig:
    """Hiring, salaries and morale dynamics."""
    base_salaries: Dict[str, float] = field(default_factory=lambda: {
        "founder": 0.0,
        "developer": 10000.0,
        "designer": 8000.0,
        "marketer": 7000.0,
        "salesperson": 6000.0,
        "operations": 5000.0,
        "manager": 12000.0,
    })
    performance_range: Tuple[float, float] = (0.7, 1.3)
    founder_performance: float = 1.2
    management_roles: Tuple[str, ...] = ("manager", "founder")

    # Morale
    initial_morale: float = 0.8
    morale_regen: float = 0.02  # per turn toward 1.0
    understaffed_penalty: float = 0.05
    max_reports_per_manager: int = 5
    morale_floor: float = 0.3
    fire_morale_hit: float = 0.1

    # Operations
    base_operating_cost: float = 5000.0
    per_head_operating_cost: float = 1000.0

    first_names: List[str] = field(default_factory=lambda: [
        "Alex", "Sam", "Jordan", "Taylor", "Casey", "Riley", "Quinn", "Avery", "Morgan", "Drew",
    ])
    last_names: List[str] = field(default_factory=lambda: [
        "Smith", "Johnson", "Williams", "Jones", "Brown", "Davis", "Miller", "Wilson", "Lee", "Chen",
    ])


@dataclass
class ProductConfig:
    """Product quality and feature development."""
    initial_quality: float = 0.5
    quality_decay: float = 0.05  # multiplicative per turn
    valuation_quality_bonus: float = 1_000_000.0
    minimum_valuation: float = 500_000.0
    valuation_premium_decay: float = 0.9  # event-driven valuation adjustments fade per turn

    complexity_levels: Dict[str, Dict[str, float]] = field(default_factory=lambda: {
        "simple": {"time": 1, "cost": 10000.0, "impact": 0.10},
        "medium": {"time": 3, "cost": 50000.0, "impact": 0.25},
        "complex": {"time": 6, "cost": 150000.0, "impact": 0.50},
    })

    # Named features per category; each entry lists the features it depends on
    feature_catalog: Dict[str, Dict[str, Tuple[str, ...]]] = field(default_factory=lambda: {
        "core": {
            "User Accounts": (),
            "Dashboard": ("User Accounts",),
            "Analytics": ("Dashboard",),
            "API Access": ("User Accounts",),
        },
        "growth": {
            "Onboarding Flow": (),
            "Referral Program": ("User Accounts",),
            "Notifications": ("User Accounts",),
        },
        "monetization": {
            "Billing": ("User Accounts",),
            "Premium Tier": ("Billing",),
            "Marketplace": ("Billing", "API Access"),
        },
        "infrastructure": {
            "Caching Layer": (),
            "Autoscaling": ("Caching Layer",),
            "Mobile App": ("API Access",),
        },
    })


@dataclass
class MarketingConfig:
    """Acquisition channels and brand dynamics."""
    channels: Dict[str, Dict[str, float]] = field(default_factory=lambda: {
        "social": {"efficiency": 0.8, "cost_per_user": 5.0},
        "search": {"efficiency": 1.0, "cost_per_user": 8.0},
        "content": {"efficiency": 0.6, "cost_per_user": 3.0},
        "traditional": {"efficiency": 0.4, "cost_per_user": 12.0},
    })
    initial_brand: float = 0.1
    initial_users: int = 0
    initial_churn: float = 0.05
    brand_growth_when_spending: float = 0.01
    brand_growth_per_sqrt_user: float = 0.001

    # Channel saturation (rolling usage window)
    saturation_window: int = 10
    saturation_penalty_per_turn: float = 0.05
    saturation_floor: float = 0.5

    acquisition_random_range: Tuple[float, float] = (0.8, 1.2)
    market_saturation_floor: float = 0.1

    churn_bounds: Tuple[float, float] = (0.01, 0.5)


@dataclass
class IndustryProfile:
    """Static parameters for one industry."""
    name: str
    growth_rate: float
    volatility: float
    competitors: int
    user_value_range: Tuple[float, float]  # revenue per user per year
    revenue_multiple: float
    addressable_users: int

    @property
    def average_user_value(self) -> float:
        low, high = self.user_value_range
        return (low + high) / 2.0


def _default_industries() -> Dict[str, IndustryProfile]:
    return {
        "saas": IndustryProfile("SaaS", 0.12, 0.20, 4, (100.0, 500.0), 8.0, 5_000_000),
        "ecommerce": IndustryProfile("E-Commerce", 0.08, 0.15, 6, (50.0, 200.0), 3.0, 20_000_000),
        "fintech": IndustryProfile("FinTech", 0.15, 0.25, 3, (200.0, 800.0), 6.0, 3_000_000),
        "social": IndustryProfile("Social Media", 0.20, 0.30, 5, (10.0, 50.0), 10.0, 50_000_000),
    }


@dataclass
class MarketConfig:
    """Market cycle, trends and noise."""
    cycle_length_range: Tuple[int, int] = (8, 16)
    initial_cycle: str = "neutral"

    # Baselines applied on a cycle change
    cycle_baselines: Dict[str, Dict[str, float]] = field(default_factory=lambda: {
        "boom": {"valuation_multiplier": 1.5, "funding_availability": 1.5,
                 "sentiment_index": 0.8, "growth_rate": 0.10},
        "bust": {"valuation_multiplier": 0.6, "funding_availability": 0.6,
                 "sentiment_index": 0.2, "growth_rate": -0.05},
        "neutral": {"valuation_multiplier": 1.0, "funding_availability": 1.0,
                    "sentiment_index": 0.5, "growth_rate": 0.05},
    })

    # Continuation or neutral is far more likely than a direct boom <-> bust flip
    cycle_transitions: Dict[str, List[str]] = field(default_factory=lambda: {
        "boom": ["boom", "boom", "neutral", "neutral", "bust"],
        "bust": ["bust", "bust", "neutral", "neutral", "boom"],
        "neutral": ["neutral", "neutral", "boom", "bust"],
    })
    drift_fraction: float = 0.3  # scaled by cycle progress

    # Trends
    trend_chance: float = 0.15
    max_trends: int = 3
    trend_duration_range: Tuple[int, int] = (6, 12)
    trend_catalog: List[Dict[str, object]] = field(default_factory=lambda: [
        {"name": "AI Revolution", "industries": ["saas", "fintech"],
         "growth_rate": 0.05, "valuation_multiplier": 1.3},
        {"name": "Sustainability Focus", "industries": ["ecommerce"],
         "growth_rate": 0.03, "valuation_multiplier": 1.1},
        {"name": "Privacy Concerns", "industries": ["social", "fintech"],
         "growth_rate": -0.04, "valuation_multiplier": 0.85},
        {"name": "Mobile-First", "industries": ["social", "ecommerce"],
         "growth_rate": 0.04, "valuation_multiplier": 1.15},
        {"name": "Crypto Boom", "industries": ["fintech"],
         "growth_rate": 0.08, "valuation_multiplier": 1.4},
        {"name": "Remote Work", "industries": ["saas"],
         "growth_rate": 0.04, "valuation_multiplier": 1.2},
    ])

    # Per-turn noise and clamps
    valuation_noise: float = 0.05
    funding_noise: float = 0.04
    sentiment_noise: float = 0.05
    valuation_bounds: Tuple[float, float] = (0.5, 2.0)
    funding_bounds: Tuple[float, float] = (0.3, 2.0)
    sentiment_bounds: Tuple[float, float] = (0.1, 0.9)
    growth_bounds: Tuple[float, float] = (-0.1, 0.5)

    # Event-driven adjustments use wider clamps
    event_funding_bounds: Tuple[float, float] = (0.1, 2.0)
    event_valuation_floor: float = 0.1

    # Per-industry metrics
    industry_growth_bounds: Tuple[float, float] = (-0.2, 0.3)
    industry_growth_coupling: float = 0.5
    industry_noise_scale: float = 0.1
    competitiveness_bounds: Tuple[float, float] = (0.1, 0.9)
    competitiveness_noise: float = 0.02


@dataclass
class CompetitorConfig:
    """AI rival archetypes, strategy selection and allocation."""
    archetypes: Dict[str, Dict[str, float]] = field(default_factory=lambda: {
        "aggressive": {"risk_tolerance": 0.8, "marketing_focus": 0.7, "product_focus": 0.3,
                       "cash_multiplier": 1.5, "user_multiplier": 2.0},
        "balanced": {"risk_tolerance": 0.5, "marketing_focus": 0.5, "product_focus": 0.5,
                     "cash_multiplier": 1.0, "user_multiplier": 1.0},
        "product": {"risk_tolerance": 0.4, "marketing_focus": 0.2, "product_focus": 0.8,
                    "cash_multiplier": 1.2, "user_multiplier": 0.5},
        "conservative": {"risk_tolerance": 0.2, "marketing_focus": 0.4, "product_focus": 0.6,
                         "cash_multiplier": 0.8, "user_multiplier": 0.7},
    })
    initial_strategy: Dict[str, str] = field(default_factory=lambda: {
        "aggressive": "growth",
        "balanced": "growth",
        "product": "product",
        "conservative": "consolidation",
    })

    base_cash: float = 500_000.0
    base_valuation: float = 1_000_000.0
    base_users: float = 100.0
    quality_range: Tuple[float, float] = (0.3, 0.7)
    brand_range: Tuple[float, float] = (0.1, 0.3)
    churn_range: Tuple[float, float] = (0.05, 0.10)

    strategy_timer_range: Tuple[int, int] = (3, 6)
    allocation_fraction: float = 0.2  # share of cash spent per turn
    marketing_ratios: Dict[str, float] = field(default_factory=lambda: {
        "growth": 0.8,
        "product": 0.3,
        "consolidation": 0.4,
        "pivot": 0.2,
    })
    pivot_quality_boost: float = 0.15
    pivot_user_retention: float = 0.8

    # Scalar update model
    quality_decay: float = 0.025
    quality_boosts: Dict[str, float] = field(default_factory=lambda: {
        "product": 0.10,
        "growth": 0.03,
        "consolidation": 0.02,
        "pivot": 0.15,
    })
    product_archetype_boost: float = 1.5
    cost_per_user: float = 10.0
    marketing_efficiency: float = 0.8
    organic_growth_rate: float = 0.1
    expense_ratio: float = 0.8  # share of revenue spent on operations
    fixed_operating_cost: float = 20_000.0
    valuation_quality_bonus: float = 500_000.0
    minimum_valuation: float = 300_000.0
    valuation_noise: float = 0.1
    decision_history: int = 5

    # Funding heuristics
    growth_funding_valuation: float = 2_000_000.0
    low_runway_months: float = 6.0
    pivot_runway_months: float = 12.0

    # Bankruptcy
    user_transfer_fraction: float = 0.3

    name_prefixes: List[str] = field(default_factory=lambda: [
        "Tech", "Pixel", "Cyber", "Digital", "Future", "Net", "Data", "Cloud", "Meta", "Block",
    ])
    name_suffixes: List[str] = field(default_factory=lambda: [
        "Corp", "Hub", "ify", "App", "ware", "Labs", "Works", "Byte", "Flux", "Wave",
    ])


@dataclass
class FundingRoundSpec:
    """One venture round."""
    name: str
    min_valuation: float
    max_valuation: float
    equity_range: Tuple[float, float]
    difficulty: float


@dataclass
class FundingConfig:
    """Funding rounds and investor naming."""
    rounds: List[FundingRoundSpec] = field(default_factory=lambda: [
        FundingRoundSpec("Seed", 1_000_000.0, 5_000_000.0, (0.10, 0.25), 0.2),
        FundingRoundSpec("Series A", 5_000_000.0, 20_000_000.0, (0.10, 0.20), 0.4),
        FundingRoundSpec("Series B", 20_000_000.0, 50_000_000.0, (0.05, 0.15), 0.6),
        FundingRoundSpec("Series C", 50_000_000.0, 100_000_000.0, (0.05, 0.10), 0.7),
    ])
    valuation_jitter: float = 0.2  # round valuation = valuation * (1 +/- jitter)
    min_success_chance: float = 0.05
    max_success_chance: float = 0.95
    buyback_premium: float = 1.1

    angel_first_names: List[str] = field(default_factory=lambda: [
        "John", "Sarah", "Michael", "Emma", "David", "Lisa", "Robert", "Jennifer",
    ])
    angel_last_names: List[str] = field(default_factory=lambda: [
        "Anderson", "Peterson", "Gates", "Musk", "Jones", "Wilson", "Zhang", "Patel",
    ])
    firm_prefixes: List[str] = field(default_factory=lambda: [
        "Alpha", "Beta", "Nova", "Summit", "Peak", "Horizon", "Quantum", "Vertex", "Spark", "Forge",
    ])
    firm_suffixes: List[str] = field(default_factory=lambda: [
        "Ventures", "Capital", "Partners", "Fund", "Investments", "Group", "Equity", "Accelerator",
    ])

    def find_round(self, name: str):
        lowered = name.strip().lower()
        for spec in self.rounds:
            if spec.name.lower() == lowered:
                return spec
        return None


@dataclass
class EventConfig:
    """Event cadence, categories and size-tier scaling."""
    categories: Dict[str, Dict[str, int]] = field(default_factory=lambda: {
        "market": {"weight": 30, "min_turn": 0},
        "competitor": {"weight": 25, "min_turn": 3},
        "internal": {"weight": 20, "min_turn": 2},
        "opportunity": {"weight": 15, "min_turn": 5},
        "global": {"weight": 10, "min_turn": 8},
        "risk_reward": {"weight": 12, "min_turn": 6},
    })
    min_turns_between_events: int = 2
    base_event_chance: float = 0.30

    # Tier thresholds (tier 2..6 lower bounds)
    valuation_tiers: Tuple[float, ...] = (10e6, 50e6, 100e6, 500e6, 1e9)
    user_tiers: Tuple[float, ...] = (1e3, 1e4, 1e5, 1e6, 1e7)
    annual_revenue_tiers: Tuple[float, ...] = (1e5, 1e6, 1e7, 5e7, 1e8)

    # tier -> (user_scale, cash_scale, valuation_scale)
    tier_scales: Dict[int, Tuple[float, float, float]] = field(default_factory=lambda: {
        1: (1, 1, 1),
        2: (10, 5, 3),
        3: (50, 10, 5),
        4: (200, 20, 10),
        5: (1000, 50, 20),
        6: (5000, 100, 50),
    })
    tier_phrases: Dict[int, Dict[str, str]] = field(default_factory=lambda: {
        1: {},
        2: {"100 users": "1,000 users", "1,000 users": "10,000 users", "small team": "growing team",
            "$10,000": "$50,000", "$50,000": "$150,000", "$100,000": "$300,000"},
        3: {"100 users": "5,000 users", "1,000 users": "50,000 users", "small team": "established team",
            "$10,000": "$100,000", "$50,000": "$500,000", "$100,000": "$1,000,000"},
        4: {"100 users": "20,000 users", "1,000 users": "200,000 users", "small team": "large organization",
            "$10,000": "$200,000", "$50,000": "$1,000,000", "$100,000": "$2,000,000"},
        5: {"100 users": "100,000 users", "1,000 users": "1,000,000 users", "small team": "major organization",
            "$10,000": "$500,000", "$50,000": "$2,500,000", "$100,000": "$5,000,000"},
        6: {"100 users": "500,000 users", "1,000 users": "5,000,000 users",
            "small team": "industry-leading organization",
            "$10,000": "$1,000,000", "$50,000": "$5,000,000", "$100,000": "$10,000,000"},
    })

    # Special effect tuning
    acquisition_close_chance: float = 0.9
    acquisition_premium_range: Tuple[float, float] = (0.9, 1.3)
    ipo_base_chance: float = 0.4
    ipo_sentiment_weight: float = 0.5  # chance shifts with (sentiment - 0.5)
    ipo_valuation_premium: float = 1.2
    ipo_cashout_fraction: float = 0.2  # share of the player's stake sold at listing
    ipo_failure_valuation_hit: float = 0.1
    emergency_funding_chance: float = 0.75
    emergency_funding_fraction: float = 0.2
    emergency_equity: float = 0.25
    emergency_equity_floor: float = 0.5  # equity factor shrinks 5% per tier, never below this
    regulatory_appeal_win_chance: float = 0.2
    regulatory_legal_fees: float = 50_000.0
    regulatory_fine: float = 800_000.0
    regulatory_valuation_hit: float = 1_500_000.0
    regulatory_final_win_chance: float = 0.35
    regulatory_final_win_valuation: float = 150_000_000.0
    regulatory_final_fine: float = 50_000_000.0
    regulatory_final_user_loss: float = 0.3
    vc_meeting_base_chance: float = 0.3
    vc_equity_range: Tuple[float, float] = (0.08, 0.15)
    unlock_feature_chance: float = 0.8
    competitor_acquisition_chance: float = 0.5
    competitor_acquisition_user_share: float = 0.4
    cost_increase_range: Tuple[float, float] = (0.15, 0.30)
    downturn_valuation_factor: float = 0.85
    downturn_growth_factor: float = 0.8
    new_competitor_cash_ratio: float = 1.2
    new_competitor_user_ratio: float = 0.5
    new_competitor_quality_ratio: float = 0.9
    poaching_min_team: int = 3
    option_pool_holder: str = "Employee Option Pool"


@dataclass
class DifficultyPreset:
    starting_cash_multiplier: float
    event_frequency: float
    competitor_aggressiveness: float
    market_growth_bonus: float
    funding_availability: float


@dataclass
class DifficultyConfig:
    """Difficulty presets and the dynamic feedback loop."""
    presets: Dict[str, DifficultyPreset] = field(default_factory=lambda: {
        "easy": DifficultyPreset(1.5, 0.7, 0.7, 0.2, 1.3),
        "normal": DifficultyPreset(1.0, 1.0, 1.0, 0.0, 1.0),
        "hard": DifficultyPreset(0.7, 1.3, 1.3, -0.1, 0.7),
    })
    evaluation_interval: int = 6  # turns
    sample_window: int = 5
    multiplier_bounds: Tuple[float, float] = (0.7, 1.5)

    # (score threshold, step); checked in order
    raise_bands: Tuple[Tuple[float, float], ...] = ((1.5, 0.15), (1.2, 0.08))
    lower_bands: Tuple[Tuple[float, float], ...] = ((0.6, -0.10), (0.8, -0.05))

    # Expected-performance benchmarks: base * growth ** (turn / 12)
    valuation_benchmark: Tuple[float, float] = (1_000_000.0, 1.15)
    users_benchmark: Tuple[float, float] = (100.0, 1.20)
    revenue_benchmark: Tuple[float, float] = (5_000.0, 1.18)

    scripted_event_chance: float = 0.4
    scripted_event_jump: float = 0.1
    churn_floor: float = 0.05
    poaching_morale_hit: float = 0.15


@dataclass
class SimulationConfig:
    """Master configuration for the entire simulation."""

    # Sub-configurations
    rules: GameRulesConfig = field(default_factory=GameRulesConfig)
    team: TeamConfig = field(default_factory=TeamConfig)
    product: ProductConfig = field(default_factory=ProductConfig)
    marketing: MarketingConfig = field(default_factory=MarketingConfig)
    industries: Dict[str, IndustryProfile] = field(default_factory=_default_industries)
    market: MarketConfig = field(default_factory=MarketConfig)
    competitors: CompetitorConfig = field(default_factory=CompetitorConfig)
    funding: FundingConfig = field(default_factory=FundingConfig)
    events: EventConfig = field(default_factory=EventConfig)
    difficulty: DifficultyConfig = field(default_factory=DifficultyConfig)

    def __post_init__(self):
        """Validation and derived values."""
        if self.rules.max_turns <= 0:
            raise ValueError("max_turns must be positive")
        if self.rules.starting_cash < 0:
            raise ValueError("starting_cash cannot be negative")
        if self.rules.default_industry not in self.industries:
            raise ValueError(f"unknown default_industry {self.rules.default_industry!r}")
        if self.rules.default_difficulty not in self.difficulty.presets:
            raise ValueError(f"unknown default_difficulty {self.rules.default_difficulty!r}")

        for name, (low, high) in {
            "performance_range": self.team.performance_range,
            "cycle_length_range": self.market.cycle_length_range,
            "trend_duration_range": self.market.trend_duration_range,
            "strategy_timer_range": self.competitors.strategy_timer_range,
            "multiplier_bounds": self.difficulty.multiplier_bounds,
        }.items():
            if low > high:
                raise ValueError(f"{name} lower bound exceeds upper bound: ({low}, {high})")

        for name, value in {
            "base_event_chance": self.events.base_event_chance,
            "trend_chance": self.market.trend_chance,
            "acquisition_offer_chance": self.rules.acquisition_offer_chance,
            "scripted_event_chance": self.difficulty.scripted_event_chance,
            "allocation_fraction": self.competitors.allocation_fraction,
        }.items():
            if not (0.0 <= value <= 1.0):
                raise ValueError(f"{name} must be in [0, 1], got {value}")

        if self.events.min_turns_between_events < 0:
            raise ValueError("min_turns_between_events cannot be negative")
        if set(self.events.tier_scales) != set(range(1, 7)):
            raise ValueError("tier_scales must define tiers 1 through 6")
        for spec in self.funding.rounds:
            low, high = spec.equity_range
            if not (0.0 < low <= high < 1.0):
                raise ValueError(f"invalid equity range for {spec.name}: {spec.equity_range}")


# Global configuration instance
CONFIG = SimulationConfig()
