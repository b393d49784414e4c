"""
Startup Tycoon Agent System

This module defines the entities whose state the simulation advances each
turn: the player's company ledger and the AI-driven competitors. Both are
structurally parallel; the player acts through explicit commands while
competitors pick strategies on their own.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Collection, Dict, List, Optional

import numpy as np

from config import CONFIG, FundingRoundSpec, FundingConfig, SimulationConfig
from market import MarketModel


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


class Outcome(str, Enum):
    OK = "ok"
    INVALID_INPUT = "invalid_input"
    FAILED_ROLL = "failed_roll"
    INELIGIBLE = "ineligible"
    GAME_OVER = "game_over"


@dataclass
class CommandResult:
    """Structured result of a player command."""
    success: bool
    outcome: Outcome = Outcome.OK
    reason: Optional[str] = None
    details: Dict[str, object] = field(default_factory=dict)

    @classmethod
    def ok(cls, **details) -> "CommandResult":
        return cls(True, Outcome.OK, None, details)

    @classmethod
    def fail(cls, outcome: Outcome, reason: str, **details) -> "CommandResult":
        return cls(False, outcome, reason, details)

    def to_dict(self) -> Dict[str, object]:
        return {
            "success": self.success,
            "outcome": self.outcome.value,
            "reason": self.reason,
            "details": dict(self.details),
        }


@dataclass
class SimulationContext:
    """
    Everything an update step may read besides the entity itself.

    Built by the engine for each phase and passed explicitly so entities
    never hold references back to the engine.
    """
    turn: int
    rng: np.random.Generator
    market: MarketModel
    notify: Callable[[str, str], None]
    config: SimulationConfig = field(default_factory=lambda: CONFIG)
    player: Optional["CompanyAgent"] = None
    competitors: List["CompetitorAgent"] = field(default_factory=list)
    end_game: Optional[Callable[[str, Dict[str, object]], None]] = None

    def industry_users(self) -> int:
        total = self.player.users if self.player else 0
        return total + sum(c.users for c in self.competitors if c.is_active)

    def market_saturation(self, industry_id: str) -> float:
        """Share of the addressable market still up for grabs."""
        profile = self.config.industries[industry_id]
        floor = self.config.marketing.market_saturation_floor
        return max(floor, 1.0 - self.industry_users() / profile.addressable_users)


def funding_success_chance(
    round_spec: FundingRoundSpec,
    funding_availability: float,
    quality: float,
    brand: float,
    funding_cfg: FundingConfig,
) -> float:
    """
    Probability that investors commit to a round.

    chance = 1 - difficulty / (market_factor * company_factor), clamped.
    """
    company_factor = min(1.0, quality + brand)
    if company_factor <= 0 or funding_availability <= 0:
        return funding_cfg.min_success_chance
    chance = 1.0 - round_spec.difficulty / (funding_availability * company_factor)
    return _clamp(chance, funding_cfg.min_success_chance, funding_cfg.max_success_chance)


def generate_investor_name(round_name: str, rng: np.random.Generator, funding_cfg: FundingConfig) -> str:
    """Angel names for seed rounds, VC firm names afterwards."""
    if round_name.lower() == "seed":
        first = funding_cfg.angel_first_names[int(rng.integers(len(funding_cfg.angel_first_names)))]
        last = funding_cfg.angel_last_names[int(rng.integers(len(funding_cfg.angel_last_names)))]
        return f"{first} {last}"
    prefix = funding_cfg.firm_prefixes[int(rng.integers(len(funding_cfg.firm_prefixes)))]
    suffix = funding_cfg.firm_suffixes[int(rng.integers(len(funding_cfg.firm_suffixes)))]
    return f"{prefix} {suffix}"


@dataclass(slots=True)
class Employee:
    employee_id: int
    name: str
    role: str
    salary: float
    performance: float  # randomized productivity multiplier
    hired_at: int

    def __post_init__(self):
        if self.salary < 0:
            raise ValueError(f"salary cannot be negative, got {self.salary}")

    def to_dict(self) -> Dict[str, object]:
        return {
            "employee_id": self.employee_id,
            "name": self.name,
            "role": self.role,
            "salary": self.salary,
            "performance": self.performance,
            "hired_at": self.hired_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "Employee":
        return cls(
            employee_id=int(data["employee_id"]),
            name=str(data["name"]),
            role=str(data["role"]),
            salary=float(data["salary"]),
            performance=float(data["performance"]),
            hired_at=int(data["hired_at"]),
        )


@dataclass
class Feature:
    feature_id: int
    name: str
    complexity: str  # "simple", "medium" or "complex"
    cost: float
    time_required: int  # turns for a single average developer
    impact: float  # quality delta on completion
    category: str = "core"
    dependencies: List[str] = field(default_factory=list)
    description: str = ""
    progress: float = 0.0
    completed: bool = False
    started_at: int = 1
    completed_at: Optional[int] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "feature_id": self.feature_id,
            "name": self.name,
            "complexity": self.complexity,
            "cost": self.cost,
            "time_required": self.time_required,
            "impact": self.impact,
            "category": self.category,
            "dependencies": list(self.dependencies),
            "description": self.description,
            "progress": self.progress,
            "completed": self.completed,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "Feature":
        completed_at = data.get("completed_at")
        return cls(
            feature_id=int(data["feature_id"]),
            name=str(data["name"]),
            complexity=str(data["complexity"]),
            cost=float(data["cost"]),
            time_required=int(data["time_required"]),
            impact=float(data["impact"]),
            category=str(data.get("category", "core")),
            dependencies=list(data.get("dependencies", [])),
            description=str(data.get("description", "")),
            progress=float(data.get("progress", 0.0)),
            completed=bool(data.get("completed", False)),
            started_at=int(data.get("started_at", 1)),
            completed_at=int(completed_at) if completed_at is not None else None,
        )


@dataclass(slots=True)
class FundingRecord:
    round_name: str
    amount: float
    valuation: float
    equity: float
    investor: str
    turn: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "round_name": self.round_name,
            "amount": self.amount,
            "valuation": self.valuation,
            "equity": self.equity,
            "investor": self.investor,
            "turn": self.turn,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "FundingRecord":
        return cls(
            round_name=str(data["round_name"]),
            amount=float(data["amount"]),
            valuation=float(data["valuation"]),
            equity=float(data["equity"]),
            investor=str(data["investor"]),
            turn=int(data["turn"]),
        )


def _runway(cash: float, burn_rate: float) -> float:
    if burn_rate >= 0:
        return math.inf
    return float(max(0, math.floor(cash / abs(burn_rate))))


def _encode_runway(runway: float) -> Optional[float]:
    return None if math.isinf(runway) else runway


def _decode_runway(value) -> float:
    return math.inf if value is None else float(value)


@dataclass
class CompanyAgent:
    """
    The player's company.

    Commands validate their input first and return a CommandResult; a
    failed validation never mutates state. `update()` runs the per-turn
    pipeline in a fixed order.
    """

    # Identity
    name: str
    industry: str

    # Financials
    cash: float
    valuation: float
    revenue: float = 0.0
    revenue_bonus: float = 0.0  # contract revenue from events, recurring
    valuation_premium: float = 0.0  # event-driven valuation adjustment, fades per turn
    costs: float = 0.0
    employee_costs: float = 0.0
    operational_costs: float = 0.0
    operating_cost_multiplier: float = 1.0
    burn_rate: float = 0.0
    runway: float = math.inf

    # Ownership
    player_equity: float = 1.0
    investors: Dict[str, float] = field(default_factory=dict)
    funding_round: Optional[str] = None
    funding_history: List[FundingRecord] = field(default_factory=list)

    # Team
    morale: float = 0.8
    employees: List[Employee] = field(default_factory=list)

    # Product
    quality: float = 0.5
    features: List[Feature] = field(default_factory=list)
    development: float = 0.0  # mean progress of in-flight features

    # Marketing
    brand: float = 0.1
    channel_budgets: Dict[str, float] = field(default_factory=dict)
    channel_history: Dict[str, List[int]] = field(default_factory=dict)  # 1 = channel used that turn

    # Users
    users: int = 0
    growth_rate: float = 0.0
    churn_rate: float = 0.05

    next_employee_id: int = 1
    next_feature_id: int = 1

    config: SimulationConfig = field(default_factory=lambda: CONFIG, repr=False, compare=False)

    def __post_init__(self):
        """Validate invariants after initialization."""
        if self.industry not in self.config.industries:
            raise ValueError(f"unknown industry {self.industry!r}")
        for name in ("morale", "quality", "brand", "churn_rate", "player_equity"):
            value = getattr(self, name)
            if not (0.0 <= value <= 1.0):
                raise ValueError(f"{name} must be in [0,1], got {value}")
        if self.users < 0:
            raise ValueError(f"users cannot be negative, got {self.users}")
        for channel_id in self.config.marketing.channels:
            self.channel_budgets.setdefault(channel_id, 0.0)
            self.channel_history.setdefault(channel_id, [])

    @classmethod
    def create(
        cls,
        name: str,
        industry: str,
        rng: np.random.Generator,
        starting_cash: float,
        config: SimulationConfig = CONFIG,
        turn: int = 1,
    ) -> "CompanyAgent":
        """New company with a founder and one developer."""
        company = cls(
            name=name,
            industry=industry,
            cash=starting_cash,
            valuation=config.rules.starting_valuation,
            morale=config.team.initial_morale,
            quality=config.product.initial_quality,
            brand=config.marketing.initial_brand,
            users=config.marketing.initial_users,
            churn_rate=config.marketing.initial_churn,
            config=config,
        )
        company.employees.append(Employee(
            employee_id=company._next_employee_id(),
            name="You (Founder)",
            role="founder",
            salary=config.team.base_salaries.get("founder", 0.0),
            performance=config.team.founder_performance,
            hired_at=turn,
        ))
        company.hire_employee("developer", rng, turn)
        company._calculate_financials()
        return company

    # --- Derived values ---
    @property
    def marketing_budget(self) -> float:
        return sum(self.channel_budgets.values())

    @property
    def industry_profile(self):
        return self.config.industries[self.industry]

    @property
    def completed_feature_names(self) -> set:
        return {f.name for f in self.features if f.completed}

    def _next_employee_id(self) -> int:
        employee_id = self.next_employee_id
        self.next_employee_id += 1
        return employee_id

    def channel_saturation(self, channel_id: str) -> float:
        """Efficiency left in a channel after its recent run of use."""
        marketing = self.config.marketing
        recent = self.channel_history.get(channel_id, [])[-marketing.saturation_window:]
        return max(marketing.saturation_floor, 1.0 - marketing.saturation_penalty_per_turn * sum(recent))

    def dependencies_met(self, feature: Feature) -> bool:
        completed = self.completed_feature_names
        return all(dep in completed for dep in feature.dependencies)

    def eligible_feature_names(self, category: Optional[str] = None) -> List[tuple]:
        """
        (category, name) pairs from the catalogue that are not yet built
        and whose dependencies are all completed.
        """
        catalog = self.config.product.feature_catalog
        built = {f.name for f in self.features}
        completed = self.completed_feature_names
        categories = [category] if category else sorted(catalog)
        eligible = []
        for cat in categories:
            for name, deps in catalog.get(cat, {}).items():
                if name not in built and all(dep in completed for dep in deps):
                    eligible.append((cat, name))
        return eligible

    def _catalog_entry(self, name: str) -> Optional[tuple]:
        for cat, entries in self.config.product.feature_catalog.items():
            if name in entries:
                return cat, list(entries[name])
        return None

    # --- Player commands ---
    def allocate_marketing_budget(self, channel_id: str, amount: float) -> CommandResult:
        """
        Set a channel's budget for the coming turn and pay for it now.

        Re-allocating a channel refunds its previous unspent allocation.
        The amount is capped at the cash available.
        """
        if channel_id not in self.config.marketing.channels:
            return CommandResult.fail(Outcome.INVALID_INPUT, f"Unknown marketing channel: {channel_id}")
        if amount is None or not math.isfinite(amount) or amount < 0:
            return CommandResult.fail(Outcome.INVALID_INPUT, f"Invalid marketing amount: {amount}")

        previous = self.channel_budgets.get(channel_id, 0.0)
        available = self.cash + previous
        spend = min(float(amount), max(0.0, available))
        self.cash = available - spend
        self.channel_budgets[channel_id] = spend
        return CommandResult.ok(channel=channel_id, amount=spend, cash=self.cash)

    def hire_employee(self, role: str, rng: np.random.Generator, turn: int) -> CommandResult:
        team = self.config.team
        if role not in team.base_salaries or role == "founder":
            return CommandResult.fail(Outcome.INVALID_INPUT, f"Unknown role: {role}")
        low, high = team.performance_range
        first = team.first_names[int(rng.integers(len(team.first_names)))]
        last = team.last_names[int(rng.integers(len(team.last_names)))]
        employee = Employee(
            employee_id=self._next_employee_id(),
            name=f"{first} {last}",
            role=role,
            salary=team.base_salaries[role],
            performance=float(rng.uniform(low, high)),
            hired_at=turn,
        )
        self.employees.append(employee)
        self._calculate_financials()
        return CommandResult.ok(employee=employee.to_dict())

    def fire_employee(self, employee_id: int) -> CommandResult:
        employee = next((e for e in self.employees if e.employee_id == employee_id), None)
        if employee is None:
            return CommandResult.fail(Outcome.INVALID_INPUT, f"Employee not found: {employee_id}")
        if employee.role == "founder":
            return CommandResult.fail(Outcome.INVALID_INPUT, "The founder cannot be fired")

        self.employees.remove(employee)
        team = self.config.team
        self.morale = max(team.morale_floor, self.morale - team.fire_morale_hit)
        self._calculate_financials()
        return CommandResult.ok(employee=employee.to_dict())

    def develop_feature(self, request: Dict[str, object], rng: np.random.Generator, turn: int) -> CommandResult:
        """
        Start building a feature and pay its cost up front.

        Args:
            request: name (optional, auto-selected when missing), complexity,
                category, dependencies, description
        """
        product = self.config.product
        complexity = str(request.get("complexity") or "medium")
        if complexity not in product.complexity_levels:
            return CommandResult.fail(Outcome.INVALID_INPUT, f"Unknown complexity: {complexity}")

        category = request.get("category")
        name = request.get("name")
        dependencies = request.get("dependencies")
        if not name:
            eligible = self.eligible_feature_names(category)
            if not eligible:
                return CommandResult.fail(Outcome.INELIGIBLE, "No features are available to build yet")
            category, name = eligible[int(rng.integers(len(eligible)))]
        if any(f.name == name for f in self.features):
            return CommandResult.fail(Outcome.INVALID_INPUT, f"Feature already exists: {name}")

        entry = self._catalog_entry(str(name))
        if entry is not None:
            category = category or entry[0]
            if dependencies is None:
                dependencies = entry[1]

        level = product.complexity_levels[complexity]
        if self.cash < level["cost"]:
            return CommandResult.fail(
                Outcome.INELIGIBLE, f"Not enough cash: need ${level['cost']:,.0f}", cost=level["cost"]
            )

        feature = Feature(
            feature_id=self.next_feature_id,
            name=str(name),
            complexity=complexity,
            cost=level["cost"],
            time_required=int(level["time"]),
            impact=level["impact"],
            category=str(category or "core"),
            dependencies=list(dependencies or []),
            description=str(request.get("description") or ""),
            started_at=turn,
        )
        self.next_feature_id += 1
        self.features.append(feature)
        self.cash -= feature.cost
        return CommandResult.ok(feature=feature.to_dict())

    def raise_funding(self, round_name: str, ctx: SimulationContext) -> CommandResult:
        funding = self.config.funding
        spec = funding.find_round(round_name or "")
        if spec is None:
            return CommandResult.fail(Outcome.INVALID_INPUT, f"Invalid funding round: {round_name}")
        if self.valuation < spec.min_valuation:
            return CommandResult.fail(
                Outcome.INELIGIBLE,
                f"Valuation too low for {spec.name} round. Need at least ${spec.min_valuation:,.0f}",
            )
        if self.player_equity <= 0:
            return CommandResult.fail(Outcome.INELIGIBLE, "No equity left to sell")

        chance = funding_success_chance(
            spec, ctx.market.funding_availability, self.quality, self.brand, funding
        )
        roll = float(ctx.rng.random())
        if roll > chance:
            return CommandResult.fail(
                Outcome.FAILED_ROLL, "Investors passed on this opportunity", success_chance=chance, roll=roll
            )

        jitter = funding.valuation_jitter
        round_valuation = self.valuation * (1.0 + ctx.rng.uniform(-jitter, jitter))
        equity = min(float(ctx.rng.uniform(*spec.equity_range)), self.player_equity)
        investment = float(round(round_valuation * equity))
        investor = generate_investor_name(spec.name, ctx.rng, funding)

        self.cash += investment
        self.player_equity -= equity
        self.investors[investor] = self.investors.get(investor, 0.0) + equity
        self.funding_history.append(FundingRecord(spec.name, investment, round_valuation, equity, investor, ctx.turn))
        self.funding_round = spec.name
        return CommandResult.ok(
            round=spec.name,
            investment=investment,
            valuation=round_valuation,
            equity_percentage=equity * 100,
            investor=investor,
        )

    def buy_back_equity(self, investor: str) -> CommandResult:
        """Repurchase an investor's whole stake at a premium to valuation."""
        share = self.investors.get(investor)
        if share is None:
            return CommandResult.fail(Outcome.INVALID_INPUT, f"Unknown investor: {investor}")
        price = float(round(self.valuation * share * self.config.funding.buyback_premium))
        if self.cash < price:
            return CommandResult.fail(Outcome.INELIGIBLE, f"Buy-back costs ${price:,.0f}", price=price)
        self.cash -= price
        del self.investors[investor]
        self.player_equity = min(1.0, self.player_equity + share)
        return CommandResult.ok(investor=investor, equity=share, price=price)

    # --- Effect helpers (used by events and difficulty) ---
    def dilute(self, amount: float, holder: str) -> float:
        """Move up to `amount` of the player's share to `holder`; returns the moved share."""
        moved = min(max(0.0, amount), self.player_equity)
        if moved > 0:
            self.player_equity -= moved
            self.investors[holder] = self.investors.get(holder, 0.0) + moved
        return moved

    def adjust_valuation(self, delta: float) -> None:
        self.valuation = max(0.0, self.valuation + delta)
        self.valuation_premium += delta

    def adjust_revenue(self, delta: float) -> None:
        self.revenue_bonus = max(0.0, self.revenue_bonus + delta)
        self.revenue = max(0.0, self.revenue + delta)

    def set_churn(self, value: float) -> None:
        self.churn_rate = _clamp(value, *self.config.marketing.churn_bounds)

    # --- Per-turn pipeline ---
    def update(self, ctx: SimulationContext) -> List[Feature]:
        """
        Run the turn resolution for the company.

        Order matters: costs are rolled up before users and revenue change,
        and cash is settled last using the rolled-up recurring costs.

        Mutates state.

        Returns:
            Features completed this turn
        """
        self._calculate_financials()
        completed = self._update_product(ctx)
        self._update_team()
        self._update_users(ctx)
        self._update_revenue()
        self._update_valuation(ctx)
        self._settle_cash()
        return completed

    def _calculate_financials(self) -> None:
        team = self.config.team
        self.employee_costs = float(sum(e.salary for e in self.employees))
        self.operational_costs = (
            team.base_operating_cost + team.per_head_operating_cost * len(self.employees)
        ) * self.operating_cost_multiplier
        self.costs = self.employee_costs + self.operational_costs + self.marketing_budget
        # Marketing is paid at allocation time, so it stays out of the burn rate
        self.burn_rate = self.revenue - (self.employee_costs + self.operational_costs)
        self.runway = _runway(self.cash, self.burn_rate)

    def _update_product(self, ctx: SimulationContext) -> List[Feature]:
        developers = [e for e in self.employees if e.role == "developer"]
        completed_now: List[Feature] = []
        if developers:
            power = sum(e.performance for e in developers) * self.morale
            for feature in self.features:
                if feature.completed or not self.dependencies_met(feature):
                    continue
                feature.progress = min(1.0, feature.progress + power / feature.time_required / len(developers))
                if feature.progress >= 1.0:
                    feature.completed = True
                    feature.completed_at = ctx.turn
                    self.quality = _clamp(self.quality + feature.impact)
                    completed_now.append(feature)
                    ctx.notify(f"Feature completed: {feature.name}", "success")

        self.quality = _clamp(self.quality * (1.0 - self.config.product.quality_decay))
        in_flight = [f.progress for f in self.features if not f.completed]
        self.development = float(np.mean(in_flight)) if in_flight else 0.0
        return completed_now

    def _update_team(self) -> None:
        team = self.config.team
        managers = sum(1 for e in self.employees if e.role in team.management_roles)
        if len(self.employees) > managers * team.max_reports_per_manager:
            self.morale = max(team.morale_floor, self.morale - team.understaffed_penalty)
        elif self.morale < 1.0:
            self.morale = min(1.0, self.morale + team.morale_regen)

    def _update_users(self, ctx: SimulationContext) -> None:
        marketing = self.config.marketing
        before = self.users
        market_saturation = ctx.market_saturation(self.industry)

        acquired = 0
        for channel_id, channel in marketing.channels.items():
            budget = self.channel_budgets.get(channel_id, 0.0)
            history = self.channel_history.setdefault(channel_id, [])
            if budget > 0:
                random_factor = ctx.rng.uniform(*marketing.acquisition_random_range)
                acquired += int(
                    budget / channel["cost_per_user"]
                    * channel["efficiency"]
                    * self.brand
                    * self.quality
                    * random_factor
                    * market_saturation
                    * self.channel_saturation(channel_id)
                )
            history.append(1 if budget > 0 else 0)
            del history[:-marketing.saturation_window]

        self.users += acquired
        churned = int(self.users * self.churn_rate)
        self.users = max(0, self.users - churned)

        if before > 0:
            self.growth_rate = (self.users - before) / before
        else:
            self.growth_rate = 1.0 if self.users > 0 else 0.0

        if self.marketing_budget > 0:
            self.brand += marketing.brand_growth_when_spending
        self.brand = _clamp(self.brand + marketing.brand_growth_per_sqrt_user * math.sqrt(self.users))

    def _update_revenue(self) -> None:
        profile = self.industry_profile
        self.revenue = float(math.floor(self.users * (profile.average_user_value / 12.0) * self.quality))
        self.revenue += self.revenue_bonus

    def _update_valuation(self, ctx: SimulationContext) -> None:
        product = self.config.product
        profile = self.industry_profile
        fundamental = (
            self.revenue * ctx.market.revenue_multiple(self.industry)
            + self.users * profile.average_user_value
            + self.quality * product.valuation_quality_bonus
        )
        self.valuation_premium *= product.valuation_premium_decay
        value = fundamental * ctx.market.valuation_multiplier + self.valuation_premium
        self.valuation = float(round(max(product.minimum_valuation, value)))

    def _settle_cash(self) -> None:
        recurring = self.costs - self.marketing_budget
        self.cash += self.revenue - recurring
        for channel_id in self.channel_budgets:
            self.channel_budgets[channel_id] = 0.0
        self.runway = _runway(self.cash, self.burn_rate)

    def endgame_signals(self, ctx: SimulationContext, open_offers: Collection[str] = ()) -> Dict[str, bool]:
        """
        Bankruptcy flag plus exit-offer rolls for this turn.

        Bankruptcy is `cash <= threshold` alone, independent of burn rate.
        Offers named in `open_offers` are still awaiting an answer and are
        not rolled again.
        """
        rules = self.config.rules
        signals = {"bankrupt": self.cash <= rules.bankruptcy_threshold,
                   "acquisition_offer": False, "ipo_offer": False}
        if signals["bankrupt"]:
            return signals
        if self.valuation >= rules.acquisition_valuation_threshold and "acquisition_offer" not in open_offers:
            signals["acquisition_offer"] = bool(ctx.rng.random() < rules.acquisition_offer_chance)
        if self.valuation >= rules.ipo_valuation_threshold and "ipo_offer" not in open_offers:
            signals["ipo_offer"] = bool(ctx.rng.random() < rules.ipo_offer_chance)
        return signals

    # --- Serialization ---
    def to_dict(self) -> Dict[str, object]:
        """
        Serialize all fields to basic Python types.

        Returns:
            Dictionary representation of the company state
        """
        return {
            "name": self.name,
            "industry": self.industry,
            "cash": self.cash,
            "valuation": self.valuation,
            "revenue": self.revenue,
            "revenue_bonus": self.revenue_bonus,
            "valuation_premium": self.valuation_premium,
            "costs": self.costs,
            "employee_costs": self.employee_costs,
            "operational_costs": self.operational_costs,
            "operating_cost_multiplier": self.operating_cost_multiplier,
            "burn_rate": self.burn_rate,
            "runway": _encode_runway(self.runway),
            "equity": {"player": self.player_equity, "investors": dict(self.investors)},
            "funding_round": self.funding_round,
            "funding_history": [r.to_dict() for r in self.funding_history],
            "team": {"morale": self.morale, "employees": [e.to_dict() for e in self.employees]},
            "product": {
                "quality": self.quality,
                "development": self.development,
                "features": [f.to_dict() for f in self.features],
            },
            "marketing": {
                "brand": self.brand,
                "channels": dict(self.channel_budgets),
                "history": {k: list(v) for k, v in self.channel_history.items()},
            },
            "users": self.users,
            "growth_rate": self.growth_rate,
            "churn_rate": self.churn_rate,
            "next_employee_id": self.next_employee_id,
            "next_feature_id": self.next_feature_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object], config: SimulationConfig = CONFIG) -> "CompanyAgent":
        equity = data["equity"]
        team = data["team"]
        product = data["product"]
        marketing = data["marketing"]
        return cls(
            name=str(data["name"]),
            industry=str(data["industry"]),
            cash=float(data["cash"]),
            valuation=float(data["valuation"]),
            revenue=float(data.get("revenue", 0.0)),
            revenue_bonus=float(data.get("revenue_bonus", 0.0)),
            valuation_premium=float(data.get("valuation_premium", 0.0)),
            costs=float(data.get("costs", 0.0)),
            employee_costs=float(data.get("employee_costs", 0.0)),
            operational_costs=float(data.get("operational_costs", 0.0)),
            operating_cost_multiplier=float(data.get("operating_cost_multiplier", 1.0)),
            burn_rate=float(data.get("burn_rate", 0.0)),
            runway=_decode_runway(data.get("runway")),
            player_equity=float(equity["player"]),
            investors={str(k): float(v) for k, v in equity.get("investors", {}).items()},
            funding_round=data.get("funding_round"),
            funding_history=[FundingRecord.from_dict(r) for r in data.get("funding_history", [])],
            morale=float(team["morale"]),
            employees=[Employee.from_dict(e) for e in team.get("employees", [])],
            quality=float(product["quality"]),
            features=[Feature.from_dict(f) for f in product.get("features", [])],
            development=float(product.get("development", 0.0)),
            brand=float(marketing["brand"]),
            channel_budgets={str(k): float(v) for k, v in marketing.get("channels", {}).items()},
            channel_history={str(k): [int(x) for x in v] for k, v in marketing.get("history", {}).items()},
            users=int(data["users"]),
            growth_rate=float(data.get("growth_rate", 0.0)),
            churn_rate=float(data["churn_rate"]),
            next_employee_id=int(data.get("next_employee_id", 1)),
            next_feature_id=int(data.get("next_feature_id", 1)),
            config=config,
        )


STRATEGIES = ("growth", "product", "consolidation", "pivot")


@dataclass
class CompetitorAgent:
    """
    An AI-driven rival.

    Competitors run a strategy state machine with a countdown timer,
    spend a share of their cash each turn according to the active
    strategy, and use a scalar quality/users/cash model.
    """

    competitor_id: int
    name: str
    archetype: str  # "aggressive", "balanced", "product" or "conservative"
    industry: str
    cash: float
    valuation: float
    users: int
    quality: float
    brand: float
    churn_rate: float

    strategy: str = "growth"
    strategy_timer: int = 3
    aggressiveness: float = 1.0
    is_active: bool = True

    revenue: float = 0.0
    costs: float = 0.0
    burn_rate: float = 0.0
    runway: float = math.inf
    growth_rate: float = 0.0
    marketing_budget: float = 0.0
    product_budget: float = 0.0

    founder_equity: float = 1.0
    investors: Dict[str, float] = field(default_factory=dict)
    funding_round: Optional[str] = None
    funding_history: List[FundingRecord] = field(default_factory=list)
    last_decisions: List[Dict[str, object]] = field(default_factory=list)

    config: SimulationConfig = field(default_factory=lambda: CONFIG, repr=False, compare=False)

    def __post_init__(self):
        """Validate invariants after initialization."""
        if self.archetype not in self.config.competitors.archetypes:
            raise ValueError(f"unknown competitor archetype {self.archetype!r}")
        if self.strategy not in STRATEGIES:
            raise ValueError(f"unknown strategy {self.strategy!r}")
        for name in ("quality", "brand", "churn_rate"):
            value = getattr(self, name)
            if not (0.0 <= value <= 1.0):
                raise ValueError(f"{name} must be in [0,1], got {value}")

    @classmethod
    def create(
        cls,
        competitor_id: int,
        archetype: str,
        industry: str,
        rng: np.random.Generator,
        config: SimulationConfig = CONFIG,
        aggressiveness: float = 1.0,
    ) -> "CompetitorAgent":
        """Randomized rival whose starting position follows its archetype."""
        comp_cfg = config.competitors
        traits = comp_cfg.archetypes[archetype]
        low, high = comp_cfg.strategy_timer_range
        prefix = comp_cfg.name_prefixes[int(rng.integers(len(comp_cfg.name_prefixes)))]
        suffix = comp_cfg.name_suffixes[int(rng.integers(len(comp_cfg.name_suffixes)))]
        return cls(
            competitor_id=competitor_id,
            name=f"{prefix}{suffix}",
            archetype=archetype,
            industry=industry,
            cash=comp_cfg.base_cash * traits["cash_multiplier"] * rng.uniform(0.8, 1.2),
            valuation=float(round(comp_cfg.base_valuation * rng.uniform(0.7, 1.3))),
            users=int(comp_cfg.base_users * traits["user_multiplier"] * rng.uniform(0.6, 1.4)),
            quality=float(rng.uniform(*comp_cfg.quality_range)),
            brand=float(rng.uniform(*comp_cfg.brand_range)),
            churn_rate=float(rng.uniform(*comp_cfg.churn_range)),
            strategy=comp_cfg.initial_strategy.get(archetype, "growth"),
            strategy_timer=int(rng.integers(low, high + 1)),
            aggressiveness=aggressiveness,
            config=config,
        )

    @property
    def traits(self) -> Dict[str, float]:
        return self.config.competitors.archetypes[self.archetype]

    # --- Decision phase ---
    def make_turn_decisions(self, ctx: SimulationContext) -> None:
        """
        Strategy review, resource allocation and funding attempt.

        Mutates state.
        """
        if not self.is_active:
            return
        self.strategy_timer -= 1
        if self.strategy_timer <= 0:
            self._choose_strategy(ctx)
        self._allocate_resources()
        self._consider_funding(ctx)

    def strategy_signals(self, ctx: SimulationContext) -> Dict[str, bool]:
        player = ctx.player
        market = ctx.market
        monthly_revenue = max(self.revenue, 1.0)
        player_quality = player.quality if player else 0.5
        player_users = player.users if player else 0
        return {
            "low_cash": self.cash < monthly_revenue * 6,
            "high_cash": self.cash > monthly_revenue * 24,
            "slow_growth": self.growth_rate < 0.05,
            "fast_growth": self.growth_rate > 0.2,
            "market_good": market.funding_availability > 1.0 and market.sentiment_index > 0.6,
            "market_bad": market.funding_availability < 0.8 or market.sentiment_index < 0.4,
            "quality_low": self.quality < player_quality - 0.2,
            "quality_high": self.quality > player_quality + 0.1,
            "users_low": self.users < player_users * 0.5,
            "users_high": self.users > player_users * 1.5,
        }

    def score_strategies(self, ctx: SimulationContext) -> Dict[str, float]:
        """Weighted score per strategy from boolean signals, floored at 1."""
        s = self.strategy_signals(ctx)
        scores = {
            "growth": (3 * s["market_good"] + 2 * s["high_cash"] + 2 * s["users_low"]
                       + 1 * s["slow_growth"] + 3 * (self.archetype == "aggressive")),
            "product": (3 * s["quality_low"] + 2 * (s["slow_growth"] and not s["low_cash"])
                        + 3 * (self.archetype == "product")),
            "consolidation": (3 * s["low_cash"] + 2 * s["market_bad"] + 1 * s["fast_growth"]
                              + 2 * (self.archetype == "conservative")),
            "pivot": (3 * (s["slow_growth"] and s["quality_low"])
                      + 2 * (s["users_low"] and not s["quality_high"])
                      + 1 * (self.aggressiveness > 0.7)),
        }
        return {name: float(max(1, score)) for name, score in scores.items()}

    def _choose_strategy(self, ctx: SimulationContext) -> None:
        scores = self.score_strategies(ctx)
        weights = np.array([scores[name] for name in STRATEGIES], dtype=np.float64)
        choice = STRATEGIES[int(ctx.rng.choice(len(STRATEGIES), p=weights / weights.sum()))]
        low, high = self.config.competitors.strategy_timer_range
        self.strategy_timer = int(ctx.rng.integers(low, high + 1))

        if choice != self.strategy:
            comp_cfg = self.config.competitors
            if choice == "pivot":
                self.quality = _clamp(self.quality + comp_cfg.pivot_quality_boost, 0.1, 1.0)
                self.users = int(self.users * comp_cfg.pivot_user_retention)
            ctx.notify(f"{self.name} is shifting to a {choice} strategy", "competitor")
        self.strategy = choice

    def _allocate_resources(self) -> None:
        comp_cfg = self.config.competitors
        budget = max(0.0, self.cash) * comp_cfg.allocation_fraction
        ratio = comp_cfg.marketing_ratios[self.strategy]
        if self.archetype == "aggressive":
            ratio *= 1.2
        elif self.archetype == "conservative":
            ratio *= 0.8
        ratio = _clamp(ratio * self.aggressiveness, 0.0, 0.95)

        self.marketing_budget = budget * ratio
        self.product_budget = budget - self.marketing_budget
        self.cash -= budget

    def _funding_target(self):
        taken = {r.round_name for r in self.funding_history}
        target = None
        for spec in self.config.funding.rounds:
            if self.valuation >= spec.min_valuation and spec.name not in taken:
                target = spec
        return target

    def _consider_funding(self, ctx: SimulationContext) -> None:
        comp_cfg = self.config.competitors
        monthly_revenue = max(self.revenue, 1.0)
        wants_funding = (
            self.cash < monthly_revenue * comp_cfg.low_runway_months
            or (self.strategy == "growth" and self.valuation > comp_cfg.growth_funding_valuation)
            or (self.strategy == "pivot" and self.cash < monthly_revenue * comp_cfg.pivot_runway_months)
        )
        if not wants_funding:
            return
        spec = self._funding_target()
        if spec is None or self.founder_equity <= 0:
            return

        funding = self.config.funding
        chance = funding_success_chance(spec, ctx.market.funding_availability, self.quality, self.brand, funding)
        if ctx.rng.random() > chance:
            return
        round_valuation = self.valuation * (1.0 + ctx.rng.uniform(-funding.valuation_jitter, funding.valuation_jitter))
        equity = min(float(ctx.rng.uniform(*spec.equity_range)), self.founder_equity)
        investment = float(round(round_valuation * equity))
        investor = generate_investor_name(spec.name, ctx.rng, funding)

        self.cash += investment
        self.founder_equity -= equity
        self.investors[investor] = self.investors.get(investor, 0.0) + equity
        self.funding_history.append(FundingRecord(spec.name, investment, round_valuation, equity, investor, ctx.turn))
        self.funding_round = spec.name
        ctx.notify(f"{self.name} raised ${investment:,.0f} in a {spec.name} round", "competitor")

    # --- Resolution phase ---
    def update(self, ctx: SimulationContext) -> None:
        """
        Advance product, users, financials and valuation by one turn.

        Mutates state.
        """
        if not self.is_active:
            return
        self._update_product()
        self._update_users(ctx)
        self._update_financials()
        self._update_valuation(ctx)
        self.last_decisions.append({
            "turn": ctx.turn,
            "strategy": self.strategy,
            "marketing": self.marketing_budget,
            "product": self.product_budget,
        })
        del self.last_decisions[:-self.config.competitors.decision_history]

    def _update_product(self) -> None:
        comp_cfg = self.config.competitors
        boost = comp_cfg.quality_boosts[self.strategy]
        if self.archetype == "product":
            boost *= comp_cfg.product_archetype_boost
        self.quality = _clamp(self.quality * (1.0 - comp_cfg.quality_decay) + boost * self.traits["product_focus"],
                              0.1, 1.0)

    def _update_users(self, ctx: SimulationContext) -> None:
        comp_cfg = self.config.competitors
        before = self.users
        saturation = ctx.market_saturation(self.industry)
        paid = math.floor(self.marketing_budget / comp_cfg.cost_per_user * comp_cfg.marketing_efficiency * saturation)
        organic = math.floor(
            self.users * self.quality * comp_cfg.organic_growth_rate
            * (1.0 + ctx.market.industry_growth(self.industry)) * saturation
        )
        churned = math.floor(self.users * self.churn_rate * (1.0 - 0.5 * self.quality))
        self.users = max(0, self.users + paid + organic - churned)
        self.growth_rate = (self.users - before) / before if before > 0 else 0.0
        self.brand = _clamp(self.brand + 0.005 * (self.marketing_budget > 0))

    def _update_financials(self) -> None:
        comp_cfg = self.config.competitors
        profile = self.config.industries[self.industry]
        self.revenue = float(math.floor(self.users * (profile.average_user_value / 12.0) * self.quality))
        self.costs = comp_cfg.fixed_operating_cost + comp_cfg.expense_ratio * self.revenue
        self.burn_rate = self.revenue - self.costs
        self.cash += self.burn_rate
        self.runway = _runway(self.cash, self.burn_rate)

    def _update_valuation(self, ctx: SimulationContext) -> None:
        comp_cfg = self.config.competitors
        profile = self.config.industries[self.industry]
        value = (
            self.revenue * ctx.market.revenue_multiple(self.industry)
            + self.users * profile.average_user_value
            + self.quality * comp_cfg.valuation_quality_bonus
        ) * ctx.market.valuation_multiplier
        value *= 1.0 + ctx.rng.uniform(-comp_cfg.valuation_noise, comp_cfg.valuation_noise)
        self.valuation = float(round(max(comp_cfg.minimum_valuation, value)))

    def check_bankruptcy(self, ctx: SimulationContext) -> Optional[int]:
        """
        Deactivate once when cash runs out and hand users to the player.

        Returns:
            Users transferred to the player, or None if still solvent
        """
        if not self.is_active or self.cash > 0:
            return None
        self.is_active = False
        player_quality = ctx.player.quality if ctx.player else 0.0
        transferred = int(math.floor(self.users * self.config.competitors.user_transfer_fraction) * player_quality)
        if ctx.player is not None:
            ctx.player.users += transferred
        ctx.notify(f"{self.name} has gone bankrupt! You gained {transferred:,} users.", "competitor")
        return transferred

    def apply_difficulty(self, multiplier: float) -> None:
        self.aggressiveness = _clamp(self.aggressiveness * multiplier, 0.1, 2.0)
        self.quality = _clamp(self.quality * multiplier, 0.1, 1.0)

    def summary(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "archetype": self.archetype,
            "strategy": self.strategy,
            "valuation": self.valuation,
            "users": self.users,
            "product_quality": self.quality,
            "is_active": self.is_active,
        }

    # --- Serialization ---
    def to_dict(self) -> Dict[str, object]:
        return {
            "competitor_id": self.competitor_id,
            "name": self.name,
            "archetype": self.archetype,
            "industry": self.industry,
            "cash": self.cash,
            "valuation": self.valuation,
            "users": self.users,
            "quality": self.quality,
            "brand": self.brand,
            "churn_rate": self.churn_rate,
            "strategy": self.strategy,
            "strategy_timer": self.strategy_timer,
            "aggressiveness": self.aggressiveness,
            "is_active": self.is_active,
            "revenue": self.revenue,
            "costs": self.costs,
            "burn_rate": self.burn_rate,
            "runway": _encode_runway(self.runway),
            "growth_rate": self.growth_rate,
            "marketing_budget": self.marketing_budget,
            "product_budget": self.product_budget,
            "equity": {"founders": self.founder_equity, "investors": dict(self.investors)},
            "funding_round": self.funding_round,
            "funding_history": [r.to_dict() for r in self.funding_history],
            "last_decisions": [dict(d) for d in self.last_decisions],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object], config: SimulationConfig = CONFIG) -> "CompetitorAgent":
        equity = data.get("equity", {})
        return cls(
            competitor_id=int(data["competitor_id"]),
            name=str(data["name"]),
            archetype=str(data["archetype"]),
            industry=str(data["industry"]),
            cash=float(data["cash"]),
            valuation=float(data["valuation"]),
            users=int(data["users"]),
            quality=float(data["quality"]),
            brand=float(data["brand"]),
            churn_rate=float(data["churn_rate"]),
            strategy=str(data["strategy"]),
            strategy_timer=int(data["strategy_timer"]),
            aggressiveness=float(data["aggressiveness"]),
            is_active=bool(data["is_active"]),
            revenue=float(data.get("revenue", 0.0)),
            costs=float(data.get("costs", 0.0)),
            burn_rate=float(data.get("burn_rate", 0.0)),
            runway=_decode_runway(data.get("runway")),
            growth_rate=float(data.get("growth_rate", 0.0)),
            marketing_budget=float(data.get("marketing_budget", 0.0)),
            product_budget=float(data.get("product_budget", 0.0)),
            founder_equity=float(equity.get("founders", 1.0)),
            investors={str(k): float(v) for k, v in equity.get("investors", {}).items()},
            funding_round=data.get("funding_round"),
            funding_history=[FundingRecord.from_dict(r) for r in data.get("funding_history", [])],
            last_decisions=[dict(d) for d in data.get("last_decisions", [])],
            config=config,
        )
