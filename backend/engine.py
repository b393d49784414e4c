"""
Startup Simulation Engine

This module implements the turn coordinator that orchestrates the player
company, the AI competitors, the market, the event system and the
difficulty feedback loop through a fixed phase sequence.

All randomness comes from one injected numpy Generator, so a seed fully
determines a run. The engine never talks to a UI directly; it reports
through an `EngineListener`.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

import numpy as np

from agents import CommandResult, CompanyAgent, CompetitorAgent, Feature, Outcome, SimulationContext
from config import CONFIG, SimulationConfig
from difficulty import DifficultyFeedback
from event_catalog import ACQUISITION_OFFER_ID, IPO_OFFER_ID
from events import EventSystem, GameEvent
from market import MarketModel

logger = logging.getLogger(__name__)


class TurnPhase(str, Enum):
    PLAYER_DECISION = "player_decision"
    AI_DECISION = "ai_decision"
    MARKET_EVENTS = "market_events"
    TURN_RESOLUTION = "turn_resolution"


AUTOMATED_PHASES = (TurnPhase.AI_DECISION, TurnPhase.MARKET_EVENTS, TurnPhase.TURN_RESOLUTION)


class EngineListener:
    """Receives engine emissions. Every hook is a no-op by default."""

    def notification(self, message: str, kind: str) -> None:
        pass

    def event_modal(self, event: GameEvent) -> None:
        pass

    def turn_summary(self, summary: "TurnSummary") -> None:
        pass

    def game_over(self, reason: str, data: Dict[str, object]) -> None:
        pass


@dataclass(slots=True)
class Notification:
    message: str
    kind: str
    turn: int

    def to_dict(self) -> Dict[str, object]:
        return {"message": self.message, "kind": self.kind, "turn": self.turn}


@dataclass
class GameSettings:
    company_name: str
    industry: str
    difficulty: str
    max_turns: int
    seed: Optional[int] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "company_name": self.company_name,
            "industry": self.industry,
            "difficulty": self.difficulty,
            "max_turns": self.max_turns,
            "seed": self.seed,
        }


@dataclass
class GameState:
    current_turn: int = 1
    phase: TurnPhase = TurnPhase.PLAYER_DECISION
    game_over: bool = False
    game_over_reason: Optional[str] = None
    game_over_data: Dict[str, object] = field(default_factory=dict)
    notifications: List[Notification] = field(default_factory=list)


@dataclass
class TurnSummary:
    """What changed during one resolved turn."""
    turn: int
    cash: float
    cash_change: float
    revenue: float
    revenue_change: float
    valuation: float
    valuation_change: float
    users: int
    users_change: int
    burn_rate: float
    runway: Optional[float]
    quality: float
    morale: float
    market: Dict[str, object]
    events: List[Dict[str, object]]
    completed_features: List[str]
    competitors: List[Dict[str, object]]

    def to_dict(self) -> Dict[str, object]:
        return {
            "turn": self.turn,
            "cash": self.cash,
            "cash_change": self.cash_change,
            "revenue": self.revenue,
            "revenue_change": self.revenue_change,
            "valuation": self.valuation,
            "valuation_change": self.valuation_change,
            "users": self.users,
            "users_change": self.users_change,
            "burn_rate": self.burn_rate,
            "runway": self.runway,
            "quality": self.quality,
            "morale": self.morale,
            "market": dict(self.market),
            "events": list(self.events),
            "completed_features": list(self.completed_features),
            "competitors": list(self.competitors),
        }


class GameEngine:
    """
    Owns one game: its state, entities, RNG and listener.

    Every command returns a CommandResult. After game over only
    `new_game` succeeds.
    """

    def __init__(
        self,
        config: SimulationConfig = CONFIG,
        rng: Optional[np.random.Generator] = None,
        listener: Optional[EngineListener] = None,
    ):
        self.config = config
        self.rng = rng if rng is not None else np.random.default_rng()
        self.listener = listener or EngineListener()

        self.settings: Optional[GameSettings] = None
        self.state = GameState()
        self.company: Optional[CompanyAgent] = None
        self.competitors: List[CompetitorAgent] = []
        self.market: Optional[MarketModel] = None
        self.events = EventSystem(config)
        self.difficulty = DifficultyFeedback(config=config)

        self._turn_events: List[GameEvent] = []
        self._turn_completed: List[Feature] = []

    @property
    def started(self) -> bool:
        return self.company is not None

    # --- Emissions ---
    def notify(self, message: str, kind: str = "info") -> None:
        self.state.notifications.append(Notification(message, kind, self.state.current_turn))
        del self.state.notifications[:-self.config.rules.max_notifications]
        self.listener.notification(message, kind)

    def _surface(self, event: GameEvent) -> None:
        self._turn_events.append(event)
        self.listener.event_modal(event)

    def trigger_game_over(self, reason: str, data: Optional[Dict[str, object]] = None) -> bool:
        """End the game once; later calls are ignored."""
        if self.state.game_over:
            return False
        payload = self._final_stats()
        payload.update(data or {})
        self.state.game_over = True
        self.state.game_over_reason = reason
        self.state.game_over_data = payload
        logger.info("Game over: %s", reason)
        self.listener.game_over(reason, payload)
        return True

    def _final_stats(self) -> Dict[str, object]:
        if self.company is None:
            return {"turn": self.state.current_turn}
        return {
            "turn": self.state.current_turn,
            "cash": self.company.cash,
            "valuation": self.company.valuation,
            "users": self.company.users,
            "revenue": self.company.revenue,
            "player_equity": self.company.player_equity,
        }

    def context(self) -> SimulationContext:
        return SimulationContext(
            turn=self.state.current_turn,
            rng=self.rng,
            market=self.market,
            notify=self.notify,
            config=self.config,
            player=self.company,
            competitors=self.competitors,
            end_game=self.trigger_game_over,
        )

    # --- Phase machine ---
    def set_phase(self, phase) -> TurnPhase:
        """Switch phase; unknown names fall back to player_decision."""
        try:
            self.state.phase = TurnPhase(phase)
        except ValueError:
            logger.error("Unknown phase %r, resetting to %s", phase, TurnPhase.PLAYER_DECISION.value)
            self.state.phase = TurnPhase.PLAYER_DECISION
        return self.state.phase

    def _run_phase(self, phase: TurnPhase) -> None:
        ctx = self.context()
        if phase is TurnPhase.AI_DECISION:
            for competitor in self.competitors:
                competitor.make_turn_decisions(ctx)
        elif phase is TurnPhase.MARKET_EVENTS:
            self.market.update(self.rng, self.notify)
            for event in self.events.generate(ctx):
                self._surface(event)
        elif phase is TurnPhase.TURN_RESOLUTION:
            self._resolve_turn(ctx)

    def _resolve_turn(self, ctx: SimulationContext) -> None:
        self._turn_completed = self.company.update(ctx)
        for competitor in self.competitors:
            competitor.update(ctx)
            competitor.check_bankruptcy(ctx)

        open_offers = {e.template_id for e in self.events.unresolved} & {ACQUISITION_OFFER_ID, IPO_OFFER_ID}
        signals = self.company.endgame_signals(ctx, open_offers)
        if signals["bankrupt"]:
            self.notify("You've run out of cash. Your startup is bankrupt.", "negative")
            self.trigger_game_over("bankruptcy")
            return
        if signals["acquisition_offer"]:
            self._surface(self.events.raise_scripted(ACQUISITION_OFFER_ID, ctx))
        if signals["ipo_offer"]:
            self._surface(self.events.raise_scripted(IPO_OFFER_ID, ctx))

    # --- Commands ---
    def new_game(self, options: Optional[Dict[str, object]] = None) -> CommandResult:
        """
        Start a fresh game, discarding any current one.

        Args:
            options: company_name, industry, difficulty, seed, max_turns
        """
        options = options or {}
        rules = self.config.rules
        industry = str(options.get("industry") or rules.default_industry)
        difficulty = str(options.get("difficulty") or rules.default_difficulty)
        name = str(options.get("company_name") or rules.default_company_name)
        if industry not in self.config.industries:
            return CommandResult.fail(Outcome.INVALID_INPUT, f"Unknown industry: {industry}")
        if difficulty not in self.config.difficulty.presets:
            return CommandResult.fail(Outcome.INVALID_INPUT, f"Unknown difficulty: {difficulty}")
        max_turns = options.get("max_turns")
        if max_turns is None:
            max_turns = rules.max_turns
        if not isinstance(max_turns, int) or isinstance(max_turns, bool) or max_turns <= 0:
            return CommandResult.fail(Outcome.INVALID_INPUT, f"Invalid max_turns: {max_turns}")

        seed = options.get("seed")
        if seed is not None:
            self.rng = np.random.default_rng(seed)
        preset = self.config.difficulty.presets[difficulty]

        self.settings = GameSettings(name, industry, difficulty, max_turns, seed)
        self.state = GameState()
        self.market = MarketModel.create(
            self.rng, self.config,
            growth_bonus=preset.market_growth_bonus,
            funding_scale=preset.funding_availability,
        )
        self.company = CompanyAgent.create(
            name, industry, self.rng,
            starting_cash=rules.starting_cash * preset.starting_cash_multiplier,
            config=self.config,
        )
        archetypes = sorted(self.config.competitors.archetypes)
        self.competitors = [
            CompetitorAgent.create(
                i + 1,
                archetypes[int(self.rng.integers(len(archetypes)))],
                industry,
                self.rng,
                self.config,
                aggressiveness=preset.competitor_aggressiveness,
            )
            for i in range(self.config.industries[industry].competitors)
        ]
        self.events = EventSystem(self.config)
        self.events.frequency = preset.event_frequency
        self.difficulty = DifficultyFeedback(preset=difficulty, config=self.config)

        logger.info("New game: %s (%s, %s)", name, industry, difficulty)
        self.notify(f"Welcome to {name}! Build your startup into a unicorn.", "info")
        return CommandResult.ok(settings=self.settings.to_dict())

    def _guard(self) -> Optional[CommandResult]:
        if not self.started:
            return CommandResult.fail(Outcome.INVALID_INPUT, "No game in progress")
        if self.state.game_over:
            return CommandResult.fail(Outcome.GAME_OVER, f"Game over: {self.state.game_over_reason}")
        return None

    def end_turn(self) -> CommandResult:
        """
        Resolve the automated phases and advance the turn counter.

        Mutates state.
        """
        blocked = self._guard()
        if blocked:
            return blocked

        before = (self.company.cash, self.company.revenue, self.company.valuation, self.company.users)
        self._turn_events = []
        self._turn_completed = []

        for phase in AUTOMATED_PHASES:
            self.set_phase(phase)
            self._run_phase(self.state.phase)
            if self.state.game_over:
                break

        summary = self._build_summary(before)
        self.listener.turn_summary(summary)

        self.state.current_turn += 1
        self.set_phase(TurnPhase.PLAYER_DECISION)

        if not self.state.game_over:
            scripted = self.difficulty.evaluate(self.context(), self.events)
            if scripted is not None:
                self._surface(scripted)
        if not self.state.game_over and self.state.current_turn > self.settings.max_turns:
            self.trigger_game_over("max_turns_reached")

        return CommandResult.ok(summary=summary.to_dict(), game_over=self.state.game_over)

    def _build_summary(self, before) -> TurnSummary:
        company = self.company
        cash, revenue, valuation, users = before
        return TurnSummary(
            turn=self.state.current_turn,
            cash=company.cash,
            cash_change=company.cash - cash,
            revenue=company.revenue,
            revenue_change=company.revenue - revenue,
            valuation=company.valuation,
            valuation_change=company.valuation - valuation,
            users=company.users,
            users_change=company.users - users,
            burn_rate=company.burn_rate,
            runway=None if company.runway == float("inf") else company.runway,
            quality=company.quality,
            morale=company.morale,
            market=self.market.snapshot(),
            events=[{"instance_id": e.instance_id, "title": e.title} for e in self._turn_events],
            completed_features=[f.name for f in self._turn_completed],
            competitors=[c.summary() for c in self.competitors],
        )

    def allocate_marketing_budget(self, channel_id: str, amount: float) -> CommandResult:
        return self._guard() or self.company.allocate_marketing_budget(channel_id, amount)

    def hire_employee(self, role: str) -> CommandResult:
        blocked = self._guard()
        if blocked:
            return blocked
        result = self.company.hire_employee(role, self.rng, self.state.current_turn)
        if result.success:
            self.notify(f"Hired {result.details['employee']['name']} as {role}", "info")
        return result

    def fire_employee(self, employee_id: int) -> CommandResult:
        blocked = self._guard()
        if blocked:
            return blocked
        result = self.company.fire_employee(employee_id)
        if result.success:
            self.notify(f"{result.details['employee']['name']} has left the company", "info")
        return result

    def develop_feature(self, request: Optional[Dict[str, object]] = None) -> CommandResult:
        blocked = self._guard()
        if blocked:
            return blocked
        result = self.company.develop_feature(request or {}, self.rng, self.state.current_turn)
        if result.success:
            self.notify(f"Started development of {result.details['feature']['name']}", "info")
        return result

    def raise_funding(self, round_name: str) -> CommandResult:
        blocked = self._guard()
        if blocked:
            return blocked
        result = self.company.raise_funding(round_name, self.context())
        if result.success:
            d = result.details
            self.notify(
                f"Raised ${d['investment']:,.0f} from {d['investor']} for {d['equity_percentage']:.1f}% equity",
                "success",
            )
        elif result.outcome is Outcome.FAILED_ROLL:
            self.notify(result.reason, "negative")
        return result

    def buy_back_equity(self, investor: str) -> CommandResult:
        blocked = self._guard()
        if blocked:
            return blocked
        result = self.company.buy_back_equity(investor)
        if result.success:
            self.notify(f"Bought back {investor}'s stake for ${result.details['price']:,.0f}", "success")
        return result

    def handle_event_choice(self, event_id: str, choice_index: int) -> CommandResult:
        return self._guard() or self.events.handle_event_choice(event_id, choice_index, self.context())

    # --- Views ---
    def view(self) -> Dict[str, object]:
        """Full read-only state for a UI."""
        if not self.started:
            return {"started": False}
        return {
            "started": True,
            "settings": self.settings.to_dict(),
            "turn": self.state.current_turn,
            "phase": self.state.phase.value,
            "game_over": self.state.game_over,
            "game_over_reason": self.state.game_over_reason,
            "company": self.company.to_dict(),
            "market": self.market.to_dict(),
            "competitors": [c.summary() for c in self.competitors],
            "pending_events": [e.to_dict() for e in self.events.unresolved],
            "notifications": [n.to_dict() for n in self.state.notifications],
        }
