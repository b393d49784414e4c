"""
Event System

Selects, scales and applies random events, schedules delayed chain
events, and runs the special-effect sub-procedures. Templates come from
the immutable registry in `event_catalog`; every surfaced event is an
owned `GameEvent` instance.
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional

import numpy as np

from agents import CommandResult, CompanyAgent, CompetitorAgent, Outcome, SimulationContext, generate_investor_name
from config import CONFIG, SimulationConfig
from event_catalog import (
    EVENT_REGISTRY,
    CompanyEffects,
    EventChoice,
    EventTemplate,
    MarketEffects,
    SpecialEffect,
)

logger = logging.getLogger(__name__)


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


@dataclass
class GameEvent:
    """An instantiated event: scaled text and effects, owned by one game."""
    instance_id: str
    template_id: str
    title: str
    description: str
    category: str
    kind: str
    choices: List[EventChoice]
    turn: int
    tier: int = 1
    chained: bool = False
    scripted: bool = False
    choice_made: Optional[int] = None

    @property
    def resolved(self) -> bool:
        return self.choice_made is not None

    def to_dict(self) -> Dict[str, object]:
        return {
            "instance_id": self.instance_id,
            "template_id": self.template_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "kind": self.kind,
            "choices": [c.to_dict() for c in self.choices],
            "turn": self.turn,
            "tier": self.tier,
            "chained": self.chained,
            "scripted": self.scripted,
            "choice_made": self.choice_made,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "GameEvent":
        choice_made = data.get("choice_made")
        return cls(
            instance_id=str(data["instance_id"]),
            template_id=str(data["template_id"]),
            title=str(data["title"]),
            description=str(data["description"]),
            category=str(data["category"]),
            kind=str(data["kind"]),
            choices=[EventChoice.from_dict(c) for c in data["choices"]],
            turn=int(data["turn"]),
            tier=int(data.get("tier", 1)),
            chained=bool(data.get("chained", False)),
            scripted=bool(data.get("scripted", False)),
            choice_made=int(choice_made) if choice_made is not None else None,
        )


@dataclass
class PendingChainEvent:
    event_id: str
    trigger_turn: int
    parent_event_id: str
    parent_choice_index: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "event_id": self.event_id,
            "trigger_turn": self.trigger_turn,
            "parent_event_id": self.parent_event_id,
            "parent_choice_index": self.parent_choice_index,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "PendingChainEvent":
        return cls(
            event_id=str(data["event_id"]),
            trigger_turn=int(data["trigger_turn"]),
            parent_event_id=str(data["parent_event_id"]),
            parent_choice_index=int(data["parent_choice_index"]),
        )


def size_tier(company: CompanyAgent, config: SimulationConfig = CONFIG) -> int:
    """
    Company size bucket 1-6: the highest of the valuation, user and
    annual-revenue tiers.
    """
    events = config.events

    def tier_of(value: float, thresholds) -> int:
        return 1 + sum(1 for threshold in thresholds if value >= threshold)

    return max(
        tier_of(company.valuation, events.valuation_tiers),
        tier_of(company.users, events.user_tiers),
        tier_of(company.revenue * 12, events.annual_revenue_tiers),
    )


def scale_text(text: str, phrases: Dict[str, str]) -> str:
    """Swap canonical magnitude phrases in a single pass so replacements never cascade."""
    if not phrases:
        return text
    pattern = re.compile("|".join(re.escape(p) for p in sorted(phrases, key=len, reverse=True)))
    return pattern.sub(lambda m: phrases[m.group(0)], text)


class EventSystem:
    """
    Random and chained event generation plus effect application.

    Cadence: at most one event per turn. Due chain events take priority
    and bypass spacing and probability; otherwise a non-chain event needs
    `min_turns_between_events` since the last one and a successful roll
    against `base_event_chance * frequency`.
    """

    def __init__(self, config: SimulationConfig = CONFIG, registry: Mapping[str, EventTemplate] = EVENT_REGISTRY):
        self.config = config
        self.registry = registry
        self.frequency = 1.0
        self.last_event_turn = 0
        self.log: List[GameEvent] = []  # every surfaced event, in order
        self.history: List[Dict[str, object]] = []  # resolved choices
        self.pending_chains: List[PendingChainEvent] = []
        self._sequence = 0

        self._special_handlers: Dict[SpecialEffect, Callable[[SimulationContext, GameEvent], None]] = {
            SpecialEffect.ACQUISITION_EXIT: self._acquisition_exit,
            SpecialEffect.IPO_LAUNCH: self._ipo_launch,
            SpecialEffect.EMERGENCY_FUNDING: self._emergency_funding,
            SpecialEffect.REGULATORY_APPEAL: self._regulatory_appeal,
            SpecialEffect.REGULATORY_FINAL_OUTCOME: self._regulatory_final_outcome,
            SpecialEffect.VC_MEETING: self._vc_meeting,
            SpecialEffect.UNLOCK_FEATURE: self._unlock_feature,
            SpecialEffect.COMPETITOR_ACQUISITION: self._competitor_acquisition,
            SpecialEffect.EMPLOYEE_POACHING: self._employee_poaching,
            SpecialEffect.NEW_COMPETITOR: self._new_competitor,
            SpecialEffect.COST_INCREASE: self._cost_increase,
            SpecialEffect.MARKET_DOWNTURN: self._market_downturn,
        }
        missing = set(SpecialEffect) - set(self._special_handlers)
        if missing:
            raise ValueError(f"special effects without handlers: {sorted(m.value for m in missing)}")

    # --- Lookup ---
    def has_occurred(self, template_id: str) -> bool:
        return any(e.template_id == template_id for e in self.log)

    def find(self, instance_id: str) -> Optional[GameEvent]:
        for event in reversed(self.log):
            if event.instance_id == instance_id:
                return event
        return None

    @property
    def unresolved(self) -> List[GameEvent]:
        return [e for e in self.log if not e.resolved]

    # --- Generation ---
    def generate(self, ctx: SimulationContext) -> List[GameEvent]:
        """
        Produce this turn's events.

        Every chain due this turn fires, in the order it was scheduled, and
        suppresses the random roll. Otherwise at most one random event.

        Mutates state.
        """
        due = self._pop_due_chains(ctx.turn)
        if due:
            events = []
            for chained in due:
                template = self.registry[chained.event_id]
                events.append(self.instantiate(template, ctx, chained=True))
                logger.info("Chain event %s surfaced on turn %d", template.event_id, ctx.turn)
            return events

        if ctx.turn - self.last_event_turn < self.config.events.min_turns_between_events:
            return []
        if ctx.rng.random() >= self.config.events.base_event_chance * self.frequency:
            return []

        template = self.select_template(ctx)
        if template is None:
            return []
        event = self.instantiate(template, ctx)
        self.last_event_turn = ctx.turn
        logger.info("Event %s generated on turn %d", template.event_id, ctx.turn)
        return [event]

    def _pop_due_chains(self, turn: int) -> List[PendingChainEvent]:
        # Overdue entries from a loaded save fire right away
        due = [p for p in self.pending_chains if p.trigger_turn <= turn]
        self.pending_chains = [p for p in self.pending_chains if p.trigger_turn > turn]
        return due

    def available_categories(self, turn: int) -> List[str]:
        return [name for name, spec in self.config.events.categories.items() if turn >= spec["min_turn"]]

    def eligible_templates(self, category: str, ctx: SimulationContext) -> List[EventTemplate]:
        company = ctx.player
        return [
            t for t in self.registry.values()
            if t.category == category
            and t.is_eligible(company.valuation, company.users, company.revenue, ctx.turn, company.industry)
            and not self.has_occurred(t.event_id)
        ]

    def select_template(self, ctx: SimulationContext) -> Optional[EventTemplate]:
        """Weighted category draw, then a uniform pick among eligible templates."""
        categories = self.available_categories(ctx.turn)
        if not categories:
            return None
        weights = np.array([self.config.events.categories[c]["weight"] for c in categories], dtype=np.float64)
        category = categories[int(ctx.rng.choice(len(categories), p=weights / weights.sum()))]

        eligible = self.eligible_templates(category, ctx)
        if not eligible:
            logger.debug("No eligible events in category %s", category)
            return None
        return eligible[int(ctx.rng.integers(len(eligible)))]

    def instantiate(
        self,
        template: EventTemplate,
        ctx: SimulationContext,
        chained: bool = False,
    ) -> GameEvent:
        """Owned copy of a template with size-tier scaling applied once, logged as surfaced."""
        tier = size_tier(ctx.player, self.config) if ctx.player else 1
        choices = list(template.choices)
        description = template.description
        if template.scale_with_size and tier > 1:
            user_scale, cash_scale, valuation_scale = self.config.events.tier_scales[tier]
            phrases = self.config.events.tier_phrases.get(tier, {})
            description = scale_text(description, phrases)
            choices = [
                EventChoice(
                    text=scale_text(c.text, phrases),
                    company=c.company.scaled(user_scale, cash_scale, valuation_scale),
                    market=c.market,
                    special=c.special,
                    chain=c.chain,
                )
                for c in template.choices
            ]

        self._sequence += 1
        event = GameEvent(
            instance_id=f"{template.event_id}-{ctx.turn}-{self._sequence}",
            template_id=template.event_id,
            title=template.title,
            description=description,
            category=template.category,
            kind=template.kind,
            choices=choices,
            turn=ctx.turn,
            tier=tier,
            chained=chained,
            scripted=template.scripted,
        )
        self.log.append(event)
        return event

    def raise_scripted(self, template_id: str, ctx: SimulationContext, apply_now: bool = False) -> GameEvent:
        """
        Surface an engine-driven template (exit offers, difficulty events).

        With `apply_now` the only choice is applied immediately and the
        event is surfaced already resolved.
        """
        template = self.registry[template_id]
        event = self.instantiate(template, ctx)
        if apply_now:
            self._resolve(event, 0, ctx, announce=False)
        return event

    # --- Resolution ---
    def handle_event_choice(self, instance_id: str, choice_index: int, ctx: SimulationContext) -> CommandResult:
        """
        Apply the chosen option of a surfaced event.

        Idempotent: an event resolves once; later calls fail without
        mutating anything.
        """
        event = self.find(instance_id)
        if event is None:
            return CommandResult.fail(Outcome.INVALID_INPUT, f"Unknown event: {instance_id}")
        if event.resolved:
            return CommandResult.fail(
                Outcome.INELIGIBLE, f"Event already resolved: {instance_id}", choice_made=event.choice_made
            )
        if not isinstance(choice_index, int) or not (0 <= choice_index < len(event.choices)):
            return CommandResult.fail(Outcome.INVALID_INPUT, f"Invalid choice index: {choice_index}")

        chain = self._resolve(event, choice_index, ctx, announce=True)
        return CommandResult.ok(
            event_id=instance_id,
            choice=event.choices[choice_index].text,
            chain_scheduled=chain.to_dict() if chain else None,
        )

    def _resolve(self, event: GameEvent, choice_index: int, ctx: SimulationContext, announce: bool):
        choice = event.choices[choice_index]
        event.choice_made = choice_index
        self.history.append({
            "event_id": event.template_id,
            "instance_id": event.instance_id,
            "turn": ctx.turn,
            "choice_index": choice_index,
        })
        if announce:
            ctx.notify(f"You chose: {choice.text}", "event")

        self.apply_company_effects(choice.company, ctx.player)
        self.apply_market_effects(choice.market, ctx)
        if choice.special is not None:
            self._special_handlers[choice.special](ctx, event)
        return self._maybe_schedule_chain(event, choice_index, ctx)

    def _maybe_schedule_chain(self, event: GameEvent, choice_index: int, ctx: SimulationContext):
        spec = event.choices[choice_index].chain
        if spec is None:
            return None
        if ctx.rng.random() > spec.probability:
            return None
        pending = PendingChainEvent(spec.event_id, ctx.turn + spec.delay, event.instance_id, choice_index)
        self.pending_chains.append(pending)
        logger.info("Chain event %s scheduled for turn %d", spec.event_id, pending.trigger_turn)
        return pending

    def apply_company_effects(self, effects: CompanyEffects, company: CompanyAgent) -> None:
        """
        Apply deltas, then multipliers, then the clamped fields.

        Valuation deltas feed the company's fading valuation premium and
        revenue deltas become recurring contract revenue.
        """
        if effects.cash:
            company.cash += effects.cash
        if effects.users:
            company.users = max(0, int(company.users + effects.users))
        if effects.valuation:
            company.adjust_valuation(effects.valuation)
        if effects.revenue:
            company.adjust_revenue(effects.revenue)

        if effects.cash_multiplier != 1.0:
            company.cash *= effects.cash_multiplier
        if effects.valuation_multiplier != 1.0:
            company.adjust_valuation(company.valuation * (effects.valuation_multiplier - 1.0))
        if effects.users_multiplier != 1.0:
            company.users = max(0, int(company.users * effects.users_multiplier))
        if effects.revenue_multiplier != 1.0:
            company.adjust_revenue(company.revenue * (effects.revenue_multiplier - 1.0))

        if effects.morale:
            company.morale = _clamp(company.morale + effects.morale)
        if effects.quality:
            company.quality = _clamp(company.quality + effects.quality)
        if effects.brand:
            company.brand = _clamp(company.brand + effects.brand)
        if effects.churn_rate:
            company.set_churn(company.churn_rate + effects.churn_rate)

        if effects.player_equity < 0:
            holder = effects.equity_holder or self.config.events.option_pool_holder
            company.dilute(-effects.player_equity, holder)
        elif effects.player_equity > 0:
            logger.debug("Ignoring positive equity effect; only buy-backs return equity")

    def apply_market_effects(self, effects: MarketEffects, ctx: SimulationContext) -> None:
        ctx.market.apply_event_effects(
            growth_rate=effects.growth_rate,
            valuation_multiplier=effects.valuation_multiplier,
            funding_availability=effects.funding_availability,
        )
        if effects.growth_multiplier != 1.0:
            ctx.market.scale_growth(effects.growth_multiplier)

    # --- Special effects ---
    def _end_game(self, ctx: SimulationContext, reason: str, data: Dict[str, object]) -> None:
        if ctx.end_game is not None:
            ctx.end_game(reason, data)

    def _acquisition_exit(self, ctx: SimulationContext, event: GameEvent) -> None:
        cfg = self.config.events
        company = ctx.player
        if ctx.rng.random() >= cfg.acquisition_close_chance:
            ctx.notify("The acquirer walked away during due diligence.", "negative")
            return
        price = float(round(company.valuation * ctx.rng.uniform(*cfg.acquisition_premium_range)))
        payout = float(round(price * company.player_equity))
        ctx.notify(f"{company.name} was acquired for ${price:,.0f}!", "success")
        self._end_game(ctx, "acquisition", {"acquisition_price": price, "player_payout": payout})

    def _ipo_launch(self, ctx: SimulationContext, event: GameEvent) -> None:
        cfg = self.config.events
        company = ctx.player
        chance = _clamp(cfg.ipo_base_chance + cfg.ipo_sentiment_weight * (ctx.market.sentiment_index - 0.5),
                        0.05, 0.95)
        if ctx.rng.random() >= chance:
            company.adjust_valuation(-company.valuation * cfg.ipo_failure_valuation_hit)
            ctx.notify("The IPO was pulled after a weak roadshow.", "negative")
            return
        ipo_value = float(round(company.valuation * cfg.ipo_valuation_premium))
        payout = float(round(ipo_value * company.player_equity * cfg.ipo_cashout_fraction))
        ctx.notify(f"{company.name} went public at a ${ipo_value:,.0f} valuation!", "success")
        self._end_game(ctx, "ipo", {"ipo_value": ipo_value, "player_payout": payout})

    def _emergency_funding(self, ctx: SimulationContext, event: GameEvent) -> None:
        cfg = self.config.events
        company = ctx.player
        if ctx.rng.random() >= cfg.emergency_funding_chance:
            ctx.notify("The rescue investors walked away.", "negative")
            return
        _, cash_scale, _ = cfg.tier_scales[event.tier]
        amount = company.valuation * cfg.emergency_funding_fraction * cash_scale
        equity = cfg.emergency_equity * max(cfg.emergency_equity_floor, 1.0 - (event.tier - 1) * 0.05)
        moved = company.dilute(equity, "Rescue Capital")
        company.cash += amount
        ctx.notify(
            f"Emergency funding secured: ${amount:,.0f} for {moved * 100:.1f}% equity", "neutral"
        )

    def _regulatory_appeal(self, ctx: SimulationContext, event: GameEvent) -> None:
        cfg = self.config.events
        company = ctx.player
        _, cash_scale, valuation_scale = cfg.tier_scales[event.tier]
        if ctx.rng.random() < cfg.regulatory_appeal_win_chance:
            fees = cfg.regulatory_legal_fees * cash_scale
            company.cash -= fees
            ctx.notify(f"You won the regulatory appeal! Legal fees came to ${fees:,.0f}.", "success")
            return
        fine = cfg.regulatory_fine * cash_scale
        hit = cfg.regulatory_valuation_hit * valuation_scale
        company.cash -= fine
        company.adjust_valuation(-hit)
        ctx.notify(
            f"Appeal failed. Court imposed penalties of ${fine:,.0f}, reducing your valuation by ${hit:,.0f}.",
            "negative",
        )

    def _regulatory_final_outcome(self, ctx: SimulationContext, event: GameEvent) -> None:
        cfg = self.config.events
        company = ctx.player
        if ctx.rng.random() < cfg.regulatory_final_win_chance:
            company.adjust_valuation(cfg.regulatory_final_win_valuation)
            company.brand = _clamp(company.brand + 0.1)
            ctx.notify("The highest court ruled in your favor!", "success")
            return
        company.cash -= cfg.regulatory_final_fine
        company.users = max(0, int(company.users * (1.0 - cfg.regulatory_final_user_loss)))
        ctx.notify("The final ruling went against you. Fines and restrictions follow.", "negative")

    def _vc_meeting(self, ctx: SimulationContext, event: GameEvent) -> None:
        cfg = self.config.events
        company = ctx.player
        chance = _clamp(
            cfg.vc_meeting_base_chance * ctx.market.funding_availability * (0.5 + company.quality + company.brand),
            0.05, 0.95,
        )
        if ctx.rng.random() >= chance or company.player_equity <= 0:
            ctx.notify("The partner liked the pitch but passed for now.", "neutral")
            return
        equity = float(ctx.rng.uniform(*cfg.vc_equity_range))
        investor = generate_investor_name("Series A", ctx.rng, self.config.funding)
        moved = company.dilute(equity, investor)
        amount = float(round(company.valuation * moved))
        company.cash += amount
        ctx.notify(f"{investor} invested ${amount:,.0f} for {moved * 100:.1f}% equity", "success")

    def _unlock_feature(self, ctx: SimulationContext, event: GameEvent) -> None:
        company = ctx.player
        eligible = company.eligible_feature_names()
        if not eligible or ctx.rng.random() >= self.config.events.unlock_feature_chance:
            ctx.notify("The prototype didn't survive contact with real users.", "neutral")
            return
        category, name = eligible[int(ctx.rng.integers(len(eligible)))]
        level = self.config.product.complexity_levels["simple"]
        result = company.develop_feature(
            {"name": name, "category": category, "complexity": "simple"}, ctx.rng, ctx.turn
        )
        if not result.success:
            ctx.notify("The prototype couldn't be productized yet.", "neutral")
            return
        feature = company.features[-1]
        # Shipped immediately; refund the build cost already covered by the choice
        company.cash += feature.cost
        feature.progress = 1.0
        feature.completed = True
        feature.completed_at = ctx.turn
        company.quality = _clamp(company.quality + level["impact"])
        ctx.notify(f"New feature unlocked: {name}", "success")

    def _competitor_acquisition(self, ctx: SimulationContext, event: GameEvent) -> None:
        cfg = self.config.events
        active = [c for c in ctx.competitors if c.is_active]
        if not active or ctx.rng.random() >= cfg.competitor_acquisition_chance:
            ctx.notify("The rumored takeover never happened.", "neutral")
            return
        target = active[int(ctx.rng.integers(len(active)))]
        transferred = int(math.floor(target.users * cfg.competitor_acquisition_user_share))
        target.is_active = False
        ctx.player.users += transferred
        ctx.notify(
            f"Competitor {target.name} was acquired by a major player. You gained {transferred:,} users.",
            "success",
        )

    def _employee_poaching(self, ctx: SimulationContext, event: GameEvent) -> None:
        company = ctx.player
        if len(company.employees) < self.config.events.poaching_min_team:
            return
        candidates = [e for e in company.employees if e.role != "founder"]
        if not candidates:
            return
        employee = candidates[int(ctx.rng.integers(len(candidates)))]
        company.fire_employee(employee.employee_id)
        company.morale = max(self.config.team.morale_floor,
                             company.morale - self.config.difficulty.poaching_morale_hit)
        ctx.notify(f"{employee.name} ({employee.role}) has been poached by a competitor!", "negative")

    def _new_competitor(self, ctx: SimulationContext, event: GameEvent) -> None:
        cfg = self.config.events
        company = ctx.player
        next_id = max((c.competitor_id for c in ctx.competitors), default=0) + 1
        rival = CompetitorAgent.create(next_id, "aggressive", company.industry, ctx.rng, self.config)
        rival.cash = max(rival.cash, company.cash * cfg.new_competitor_cash_ratio)
        rival.users = int(company.users * cfg.new_competitor_user_ratio)
        rival.quality = _clamp(company.quality * cfg.new_competitor_quality_ratio, 0.1, 1.0)
        ctx.competitors.append(rival)
        ctx.notify(f'A new well-funded competitor "{rival.name}" has entered your market!', "negative")

    def _cost_increase(self, ctx: SimulationContext, event: GameEvent) -> None:
        increase = float(ctx.rng.uniform(*self.config.events.cost_increase_range))
        ctx.player.operating_cost_multiplier *= 1.0 + increase
        ctx.notify(f"Operational costs have increased by {increase * 100:.0f}% due to market conditions!",
                   "negative")

    def _market_downturn(self, ctx: SimulationContext, event: GameEvent) -> None:
        cfg = self.config.events
        company = ctx.player
        company.adjust_valuation(company.valuation * (cfg.downturn_valuation_factor - 1.0))
        ctx.market.scale_growth(cfg.downturn_growth_factor)
        ctx.notify("Economic conditions have worsened, affecting your industry.", "negative")

    # --- Serialization ---
    def to_dict(self) -> Dict[str, object]:
        return {
            "frequency": self.frequency,
            "last_event_turn": self.last_event_turn,
            "log": [e.to_dict() for e in self.log],
            "history": [dict(h) for h in self.history],
            "pending_chains": [p.to_dict() for p in self.pending_chains],
            "sequence": self._sequence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object], config: SimulationConfig = CONFIG) -> "EventSystem":
        system = cls(config)
        system.frequency = float(data.get("frequency", 1.0))
        system.last_event_turn = int(data.get("last_event_turn", 0))
        system.log = [GameEvent.from_dict(e) for e in data.get("log", [])]
        system.history = [dict(h) for h in data.get("history", [])]
        system.pending_chains = [PendingChainEvent.from_dict(p) for p in data.get("pending_chains", [])]
        system._sequence = int(data.get("sequence", len(system.log)))
        for pending in system.pending_chains:
            if pending.event_id not in system.registry:
                raise ValueError(f"unknown chain event {pending.event_id!r}")
        return system
