"""
Dynamic Difficulty

Periodically compares the player's valuation, users and revenue against
exponential growth benchmarks and nudges a difficulty multiplier that is
propagated into the market, the competitors, the company churn rate and
the event frequency.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from agents import SimulationContext
from config import CONFIG, SimulationConfig
from event_catalog import DIFFICULTY_EVENT_IDS

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PerformanceSample:
    turn: int
    score: float
    valuation_ratio: float
    users_ratio: float
    revenue_ratio: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "turn": self.turn,
            "score": self.score,
            "valuation_ratio": self.valuation_ratio,
            "users_ratio": self.users_ratio,
            "revenue_ratio": self.revenue_ratio,
        }


@dataclass
class DifficultyFeedback:
    preset: str = "normal"
    multiplier: float = 1.0
    samples: List[PerformanceSample] = field(default_factory=list)
    last_adjustment_turn: int = 0
    config: SimulationConfig = field(default_factory=lambda: CONFIG, repr=False, compare=False)

    def __post_init__(self):
        if self.preset not in self.config.difficulty.presets:
            raise ValueError(f"unknown difficulty preset {self.preset!r}")
        low, high = self.config.difficulty.multiplier_bounds
        self.multiplier = max(low, min(high, self.multiplier))

    def expected(self, turn: int) -> Dict[str, float]:
        """Benchmarks: base * growth ** (turn / 12)."""
        cfg = self.config.difficulty
        years = turn / 12.0
        return {
            "valuation": cfg.valuation_benchmark[0] * cfg.valuation_benchmark[1] ** years,
            "users": cfg.users_benchmark[0] * cfg.users_benchmark[1] ** years,
            "revenue": cfg.revenue_benchmark[0] * cfg.revenue_benchmark[1] ** years,
        }

    def score(self) -> float:
        if not self.samples:
            return 1.0
        return sum(s.score for s in self.samples) / len(self.samples)

    def step_for(self, score: float) -> float:
        cfg = self.config.difficulty
        for threshold, step in cfg.raise_bands:
            if score > threshold:
                return step
        for threshold, step in cfg.lower_bands:
            if score < threshold:
                return step
        return 0.0

    def evaluate(self, ctx: SimulationContext, event_system) -> Optional[object]:
        """
        Run the periodic check for the current turn.

        Mutates state.

        Returns:
            A scripted difficulty event if one was raised, otherwise None
        """
        cfg = self.config.difficulty
        if ctx.turn % cfg.evaluation_interval != 0:
            return None

        company = ctx.player
        expected = self.expected(ctx.turn)
        sample = PerformanceSample(
            turn=ctx.turn,
            score=0.0,
            valuation_ratio=company.valuation / expected["valuation"],
            users_ratio=company.users / expected["users"],
            revenue_ratio=company.revenue / expected["revenue"],
        )
        sample.score = (sample.valuation_ratio + sample.users_ratio + sample.revenue_ratio) / 3.0
        self.samples.append(sample)
        del self.samples[:-cfg.sample_window]

        score = self.score()
        low, high = cfg.multiplier_bounds
        previous = self.multiplier
        updated = max(low, min(high, previous + self.step_for(score)))
        self.last_adjustment_turn = ctx.turn
        if updated == previous:
            return None

        self.multiplier = updated
        logger.info("Difficulty %.2f -> %.2f at turn %d (score %.2f)", previous, updated, ctx.turn, score)
        self.propagate(ctx, event_system)

        if updated > previous + cfg.scripted_event_jump and ctx.rng.random() < cfg.scripted_event_chance:
            template_id = DIFFICULTY_EVENT_IDS[int(ctx.rng.integers(len(DIFFICULTY_EVENT_IDS)))]
            return event_system.raise_scripted(template_id, ctx, apply_now=True)
        return None

    def propagate(self, ctx: SimulationContext, event_system) -> None:
        """Push the current multiplier into market, competitors, company and events."""
        m = self.multiplier
        ctx.market.apply_difficulty(m)
        for competitor in ctx.competitors:
            if competitor.is_active:
                competitor.apply_difficulty(m)
        company = ctx.player
        company.set_churn(max(self.config.difficulty.churn_floor, company.churn_rate * m))
        event_system.frequency = self.config.difficulty.presets[self.preset].event_frequency * m

    def to_dict(self) -> Dict[str, object]:
        return {
            "preset": self.preset,
            "multiplier": self.multiplier,
            "samples": [s.to_dict() for s in self.samples],
            "last_adjustment_turn": self.last_adjustment_turn,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object], config: SimulationConfig = CONFIG) -> "DifficultyFeedback":
        return cls(
            preset=str(data["preset"]),
            multiplier=float(data["multiplier"]),
            samples=[PerformanceSample(**s) for s in data.get("samples", [])],
            last_adjustment_turn=int(data.get("last_adjustment_turn", 0)),
            config=config,
        )
