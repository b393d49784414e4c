"""
Market Model

Macro environment shared by the player company and the AI competitors.
A boom/bust/neutral cycle drives four headline multipliers (valuation,
funding availability, sentiment, growth); time-boxed trends add
industry-scoped modifiers on top, and small bounded noise is applied
every turn.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import numpy as np

from config import CONFIG, SimulationConfig

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str], None]


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass
class MarketTrend:
    """A time-boxed modifier that fades linearly and expires at progress 1."""
    name: str
    industries: List[str]
    growth_rate: float  # additive at full strength
    valuation_multiplier: float  # applied to revenue multiples at full strength
    duration: int
    elapsed: int = 0

    @property
    def progress(self) -> float:
        return min(1.0, self.elapsed / self.duration) if self.duration > 0 else 1.0

    @property
    def strength(self) -> float:
        return 1.0 - self.progress

    def affects(self, industry_id: str) -> bool:
        return industry_id in self.industries

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "industries": list(self.industries),
            "growth_rate": self.growth_rate,
            "valuation_multiplier": self.valuation_multiplier,
            "duration": self.duration,
            "elapsed": self.elapsed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "MarketTrend":
        return cls(
            name=str(data["name"]),
            industries=list(data["industries"]),
            growth_rate=float(data["growth_rate"]),
            valuation_multiplier=float(data["valuation_multiplier"]),
            duration=int(data["duration"]),
            elapsed=int(data.get("elapsed", 0)),
        )


@dataclass
class IndustryMetrics:
    """Live per-industry state; static parameters stay in the config."""
    growth_rate: float
    volatility: float
    competitiveness: float = 0.5

    def to_dict(self) -> Dict[str, float]:
        return {
            "growth_rate": self.growth_rate,
            "volatility": self.volatility,
            "competitiveness": self.competitiveness,
        }


@dataclass
class MarketModel:
    """
    Market state plus its per-turn update.

    Mutates only itself; consumers read the multipliers and the
    industry helpers (`industry_growth`, `revenue_multiple`).
    """

    growth_rate: float = 0.05
    valuation_multiplier: float = 1.0
    funding_availability: float = 1.0
    sentiment_index: float = 0.5

    cycle_phase: str = "neutral"
    cycle_length: int = 12
    cycle_turn: int = 0

    trends: List[MarketTrend] = field(default_factory=list)
    industries: Dict[str, IndustryMetrics] = field(default_factory=dict)

    # Difficulty preset contributions
    growth_bonus: float = 0.0
    funding_scale: float = 1.0

    config: SimulationConfig = field(default_factory=lambda: CONFIG, repr=False, compare=False)

    def __post_init__(self):
        if self.cycle_phase not in self.config.market.cycle_baselines:
            raise ValueError(f"unknown cycle phase {self.cycle_phase!r}")
        if self.cycle_length <= 0:
            raise ValueError(f"cycle_length must be positive, got {self.cycle_length}")
        if not self.industries:
            self.industries = {
                industry_id: IndustryMetrics(profile.growth_rate, profile.volatility)
                for industry_id, profile in self.config.industries.items()
            }

    @classmethod
    def create(
        cls,
        rng: np.random.Generator,
        config: SimulationConfig = CONFIG,
        growth_bonus: float = 0.0,
        funding_scale: float = 1.0,
    ) -> "MarketModel":
        """Build a market at the baseline of the configured initial cycle."""
        market_cfg = config.market
        low, high = market_cfg.cycle_length_range
        market = cls(
            cycle_phase=market_cfg.initial_cycle,
            cycle_length=int(rng.integers(low, high + 1)),
            growth_bonus=growth_bonus,
            funding_scale=funding_scale,
            config=config,
        )
        market._reset_to_baseline(market.cycle_phase)
        return market

    # --- Derived values ---
    @property
    def cycle_progress(self) -> float:
        return min(1.0, self.cycle_turn / self.cycle_length)

    def most_likely_next_cycle(self) -> str:
        """Mode of the transition list; ties resolve to the first listed."""
        options = self.config.market.cycle_transitions[self.cycle_phase]
        counts = Counter(options)
        best = max(counts.values())
        for phase in options:
            if counts[phase] == best:
                return phase
        return self.cycle_phase

    def industry_growth(self, industry_id: str) -> float:
        metrics = self.industries.get(industry_id)
        base = metrics.growth_rate if metrics else 0.0
        return base + sum(t.growth_rate * t.strength for t in self.trends if t.affects(industry_id))

    def revenue_multiple(self, industry_id: str) -> float:
        """Industry revenue multiple with active trend modifiers, never compounded."""
        profile = self.config.industries.get(industry_id)
        base = profile.revenue_multiple if profile else 5.0
        factors = [1.0 + (t.valuation_multiplier - 1.0) * t.strength
                   for t in self.trends if t.affects(industry_id)]
        return base * float(np.prod(factors)) if factors else base

    def sentiment_description(self) -> str:
        if self.sentiment_index >= 0.8:
            return "Euphoric"
        if self.sentiment_index >= 0.6:
            return "Optimistic"
        if self.sentiment_index >= 0.4:
            return "Neutral"
        if self.sentiment_index >= 0.2:
            return "Pessimistic"
        return "Fearful"

    def funding_description(self) -> str:
        if self.funding_availability >= 1.5:
            return "Abundant"
        if self.funding_availability >= 1.1:
            return "Available"
        if self.funding_availability >= 0.8:
            return "Normal"
        if self.funding_availability >= 0.5:
            return "Tight"
        return "Scarce"

    # --- Per-turn update ---
    def update(self, rng: np.random.Generator, notify: Optional[Notifier] = None) -> None:
        """
        Advance the market by one turn.

        Mutates state.

        Args:
            rng: Shared simulation random generator
            notify: Optional callback receiving (message, kind)
        """
        self._advance_cycle(rng, notify)
        self._update_industries(rng)
        self._update_trends(rng, notify)
        self._apply_noise(rng)

    def _advance_cycle(self, rng: np.random.Generator, notify: Optional[Notifier]) -> None:
        self.cycle_turn += 1
        if self.cycle_turn >= self.cycle_length:
            previous = self.cycle_phase
            options = self.config.market.cycle_transitions[previous]
            self.cycle_phase = options[int(rng.integers(len(options)))]
            low, high = self.config.market.cycle_length_range
            self.cycle_length = int(rng.integers(low, high + 1))
            self.cycle_turn = 0
            self._reset_to_baseline(self.cycle_phase)
            logger.info("Market cycle %s -> %s (%d turns)", previous, self.cycle_phase, self.cycle_length)
            if notify:
                if previous == self.cycle_phase:
                    notify(f"The {self.cycle_phase} market continues", "market")
                else:
                    notify(f"The market has shifted from {previous} to {self.cycle_phase}", "market")
            return

        # Gradual drift toward the statistically most likely next cycle
        target = self.config.market.cycle_baselines[self.most_likely_next_cycle()]
        fraction = self.cycle_progress * self.config.market.drift_fraction
        self.valuation_multiplier += (target["valuation_multiplier"] - self.valuation_multiplier) * fraction
        self.funding_availability += (
            target["funding_availability"] * self.funding_scale - self.funding_availability
        ) * fraction
        self.sentiment_index += (target["sentiment_index"] - self.sentiment_index) * fraction
        self.growth_rate += (target["growth_rate"] + self.growth_bonus - self.growth_rate) * fraction
        self._clamp_metrics()

    def _reset_to_baseline(self, phase: str) -> None:
        baseline = self.config.market.cycle_baselines[phase]
        self.valuation_multiplier = baseline["valuation_multiplier"]
        self.funding_availability = baseline["funding_availability"] * self.funding_scale
        self.sentiment_index = baseline["sentiment_index"]
        self.growth_rate = baseline["growth_rate"] + self.growth_bonus
        self._clamp_metrics()

    def _update_industries(self, rng: np.random.Generator) -> None:
        market_cfg = self.config.market
        for metrics in self.industries.values():
            noise = rng.uniform(-1.0, 1.0) * metrics.volatility * market_cfg.industry_noise_scale
            metrics.growth_rate = _clamp(
                metrics.growth_rate * (1.0 + self.growth_rate * market_cfg.industry_growth_coupling) + noise,
                *market_cfg.industry_growth_bounds,
            )
            shift = rng.uniform(-market_cfg.competitiveness_noise, market_cfg.competitiveness_noise)
            metrics.competitiveness = _clamp(metrics.competitiveness + shift, *market_cfg.competitiveness_bounds)

    def _update_trends(self, rng: np.random.Generator, notify: Optional[Notifier]) -> None:
        market_cfg = self.config.market
        remaining = []
        for trend in self.trends:
            trend.elapsed += 1
            if trend.progress >= 1.0:
                if notify:
                    notify(f"The {trend.name} trend has faded", "market")
                continue
            remaining.append(trend)
        self.trends = remaining

        if len(self.trends) >= market_cfg.max_trends:
            return
        if rng.random() >= market_cfg.trend_chance:
            return
        active = {t.name for t in self.trends}
        candidates = [entry for entry in market_cfg.trend_catalog if entry["name"] not in active]
        if not candidates:
            return
        entry = candidates[int(rng.integers(len(candidates)))]
        low, high = market_cfg.trend_duration_range
        trend = MarketTrend(
            name=str(entry["name"]),
            industries=list(entry["industries"]),
            growth_rate=float(entry["growth_rate"]),
            valuation_multiplier=float(entry["valuation_multiplier"]),
            duration=int(rng.integers(low, high + 1)),
        )
        self.trends.append(trend)
        logger.info("New market trend: %s for %d turns", trend.name, trend.duration)
        if notify:
            notify(f"New market trend: {trend.name}", "market")

    def _apply_noise(self, rng: np.random.Generator) -> None:
        market_cfg = self.config.market
        self.valuation_multiplier *= 1.0 + rng.uniform(-market_cfg.valuation_noise, market_cfg.valuation_noise)
        self.funding_availability *= 1.0 + rng.uniform(-market_cfg.funding_noise, market_cfg.funding_noise)
        self.sentiment_index += rng.uniform(-market_cfg.sentiment_noise, market_cfg.sentiment_noise)
        self._clamp_metrics()

    def _clamp_metrics(self) -> None:
        market_cfg = self.config.market
        self.valuation_multiplier = _clamp(self.valuation_multiplier, *market_cfg.valuation_bounds)
        self.funding_availability = _clamp(self.funding_availability, *market_cfg.funding_bounds)
        self.sentiment_index = _clamp(self.sentiment_index, *market_cfg.sentiment_bounds)
        self.growth_rate = _clamp(self.growth_rate, *market_cfg.growth_bounds)

    # --- External adjustments ---
    def apply_event_effects(
        self,
        growth_rate: float = 0.0,
        valuation_multiplier: float = 0.0,
        funding_availability: float = 0.0,
    ) -> None:
        """Additive deltas from events, clamped to the event-safe ranges."""
        market_cfg = self.config.market
        if funding_availability:
            self.funding_availability = _clamp(
                self.funding_availability + funding_availability, *market_cfg.event_funding_bounds
            )
        if growth_rate:
            self.growth_rate = _clamp(self.growth_rate + growth_rate, *market_cfg.growth_bounds)
        if valuation_multiplier:
            self.valuation_multiplier = max(
                market_cfg.event_valuation_floor, self.valuation_multiplier + valuation_multiplier
            )

    def scale_growth(self, factor: float) -> None:
        self.growth_rate = _clamp(self.growth_rate * factor, *self.config.market.growth_bounds)

    def apply_difficulty(self, multiplier: float) -> None:
        """Harder difficulty lowers the valuation environment."""
        self.valuation_multiplier = _clamp(
            self.valuation_multiplier / multiplier, *self.config.market.valuation_bounds
        )

    # --- Serialization ---
    def snapshot(self) -> Dict[str, object]:
        """Compact view used in turn summaries."""
        return {
            "growth_rate": self.growth_rate,
            "valuation_multiplier": self.valuation_multiplier,
            "funding_availability": self.funding_availability,
            "sentiment_index": self.sentiment_index,
            "cycle": self.cycle_phase,
            "cycle_progress": self.cycle_progress,
            "sentiment": self.sentiment_description(),
            "funding": self.funding_description(),
        }

    def to_dict(self) -> Dict[str, object]:
        return {
            "growth_rate": self.growth_rate,
            "valuation_multiplier": self.valuation_multiplier,
            "funding_availability": self.funding_availability,
            "sentiment_index": self.sentiment_index,
            "cycle": {
                "phase": self.cycle_phase,
                "length": self.cycle_length,
                "turn": self.cycle_turn,
                "progress": self.cycle_progress,
            },
            "trends": [t.to_dict() for t in self.trends],
            "industries": {k: v.to_dict() for k, v in self.industries.items()},
            "growth_bonus": self.growth_bonus,
            "funding_scale": self.funding_scale,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object], config: SimulationConfig = CONFIG) -> "MarketModel":
        cycle = data["cycle"]
        return cls(
            growth_rate=float(data["growth_rate"]),
            valuation_multiplier=float(data["valuation_multiplier"]),
            funding_availability=float(data["funding_availability"]),
            sentiment_index=float(data["sentiment_index"]),
            cycle_phase=str(cycle["phase"]),
            cycle_length=int(cycle["length"]),
            cycle_turn=int(cycle["turn"]),
            trends=[MarketTrend.from_dict(t) for t in data.get("trends", [])],
            industries={
                k: IndustryMetrics(float(v["growth_rate"]), float(v["volatility"]), float(v["competitiveness"]))
                for k, v in data.get("industries", {}).items()
            },
            growth_bonus=float(data.get("growth_bonus", 0.0)),
            funding_scale=float(data.get("funding_scale", 1.0)),
            config=config,
        )
