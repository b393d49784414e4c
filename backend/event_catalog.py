"""
Event Catalog

Immutable event templates. Templates are frozen dataclasses held in a
read-only registry; the event system instantiates owned, scaled copies
and never mutates what is defined here.
"""

from dataclasses import asdict, dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple


class SpecialEffect(str, Enum):
    """Closed set of effects that run their own roll and payout."""
    ACQUISITION_EXIT = "acquisition_exit"
    IPO_LAUNCH = "ipo_launch"
    EMERGENCY_FUNDING = "emergency_funding"
    REGULATORY_APPEAL = "regulatory_appeal"
    REGULATORY_FINAL_OUTCOME = "regulatory_final_outcome"
    VC_MEETING = "vc_meeting"
    UNLOCK_FEATURE = "unlock_feature"
    COMPETITOR_ACQUISITION = "competitor_acquisition"
    EMPLOYEE_POACHING = "employee_poaching"
    NEW_COMPETITOR = "new_competitor"
    COST_INCREASE = "cost_increase"
    MARKET_DOWNTURN = "market_downturn"


@dataclass(frozen=True)
class CompanyEffects:
    """Deltas applied to the player company; every field is optional."""
    cash: float = 0.0
    users: float = 0.0
    valuation: float = 0.0
    revenue: float = 0.0  # monthly, recurring
    churn_rate: float = 0.0
    morale: float = 0.0
    quality: float = 0.0
    brand: float = 0.0
    player_equity: float = 0.0  # negative values dilute the player
    equity_holder: str = ""
    cash_multiplier: float = 1.0
    valuation_multiplier: float = 1.0
    users_multiplier: float = 1.0
    revenue_multiplier: float = 1.0

    def scaled(self, user_scale: float, cash_scale: float, valuation_scale: float) -> "CompanyEffects":
        return replace(
            self,
            cash=self.cash * cash_scale,
            users=self.users * user_scale,
            valuation=self.valuation * valuation_scale,
            revenue=self.revenue * cash_scale,
        )

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class MarketEffects:
    funding_availability: float = 0.0
    growth_rate: float = 0.0
    valuation_multiplier: float = 0.0  # additive
    growth_multiplier: float = 1.0

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class ChainEventSpec:
    event_id: str
    delay: int  # turns after the choice
    probability: float

    def __post_init__(self):
        if self.delay < 1:
            raise ValueError(f"chain delay must be at least 1, got {self.delay}")
        if not (0.0 <= self.probability <= 1.0):
            raise ValueError(f"chain probability must be in [0,1], got {self.probability}")


@dataclass(frozen=True)
class EventChoice:
    text: str
    company: CompanyEffects = CompanyEffects()
    market: MarketEffects = MarketEffects()
    special: Optional[SpecialEffect] = None
    chain: Optional[ChainEventSpec] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "text": self.text,
            "company": self.company.to_dict(),
            "market": self.market.to_dict(),
            "special": self.special.value if self.special else None,
            "chain": asdict(self.chain) if self.chain else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "EventChoice":
        chain = data.get("chain")
        special = data.get("special")
        return cls(
            text=str(data["text"]),
            company=CompanyEffects(**data.get("company", {})),
            market=MarketEffects(**data.get("market", {})),
            special=SpecialEffect(special) if special else None,
            chain=ChainEventSpec(**chain) if chain else None,
        )


@dataclass(frozen=True)
class EventTemplate:
    """
    A selectable event definition.

    Eligibility gates (min/max valuation, users, monthly revenue, turn,
    industry) are all optional. `chain_only` templates surface only through
    a scheduled chain; `scripted` templates only when the engine raises
    them directly. Selected templates are scaled to the company's size
    tier; `scale_with_size=False` is for templates whose handlers scale
    by the event tier themselves.
    """
    event_id: str
    title: str
    description: str
    category: str
    kind: str  # positive, negative, neutral, opportunity, risk_reward
    choices: Tuple[EventChoice, ...]
    industry: Optional[str] = None
    min_valuation: Optional[float] = None
    max_valuation: Optional[float] = None
    min_users: Optional[float] = None
    max_users: Optional[float] = None
    min_revenue: Optional[float] = None
    max_revenue: Optional[float] = None
    min_turn: int = 0
    chain_only: bool = False
    scripted: bool = False
    scale_with_size: bool = True

    def is_eligible(self, valuation: float, users: float, revenue: float, turn: int, industry: str) -> bool:
        if self.chain_only or self.scripted:
            return False
        if self.industry is not None and self.industry != industry:
            return False
        checks = (
            (self.min_valuation, valuation, False), (self.max_valuation, valuation, True),
            (self.min_users, users, False), (self.max_users, users, True),
            (self.min_revenue, revenue, False), (self.max_revenue, revenue, True),
        )
        for bound, value, is_max in checks:
            if bound is None:
                continue
            if (is_max and value > bound) or (not is_max and value < bound):
                return False
        return turn >= self.min_turn


def _choice(text, special=None, chain=None, market=None, **company) -> EventChoice:
    return EventChoice(
        text=text,
        company=CompanyEffects(**company),
        market=MarketEffects(**(market or {})),
        special=special,
        chain=chain,
    )


def _template(event_id, title, description, category, kind, choices, **gates) -> EventTemplate:
    return EventTemplate(event_id, title, description, category, kind, tuple(choices), **gates)


# --- Market ---
_MARKET = (
    _template(
        "market_boom", "Market Boom",
        "The market is experiencing a sudden boom. Investors are throwing money at startups!",
        "market", "positive",
        [
            _choice("Capitalize on it by raising more funding",
                    market={"valuation_multiplier": 0.2, "funding_availability": 0.3}),
            _choice("Stay cautious and focus on sustainable growth", morale=0.1),
        ],
    ),
    _template(
        "market_crash", "Market Downturn",
        "The market is experiencing a sudden downturn. Investors are becoming more cautious.",
        "market", "negative",
        [
            _choice("Cut costs to extend runway", morale=-0.2, cash=-10_000,
                    chain=ChainEventSpec("team_morale_crisis", 2, 0.7)),
            _choice("Maintain course and weather the storm", cash=-30_000),
            _choice("Take a rescue deal from emergency investors", special=SpecialEffect.EMERGENCY_FUNDING),
        ],
    ),
    _template(
        "market_expansion_opportunity", "Market Expansion Opportunity",
        "A new international market is opening up for your product. Expanding would require "
        "significant investment but could greatly increase your user base.",
        "market", "opportunity",
        [
            _choice("Invest heavily in international expansion", cash=-500_000, users=5_000, valuation=2_000_000),
            _choice("Test the market with a smaller investment", cash=-200_000, users=2_000),
            _choice("Focus on domestic growth for now", morale=0.05),
        ],
        min_valuation=10_000_000, min_users=10_000,
    ),
    _template(
        "major_platform_change", "Major Platform Change",
        "A platform your product heavily relies on has announced significant API changes that will "
        "affect your service. Adapting will require substantial development resources.",
        "market", "negative",
        [
            _choice("Allocate significant resources to adapt quickly", cash=-300_000, quality=0.1),
            _choice("Gradually adapt while maintaining current features", cash=-150_000, users=-1_000, quality=0.05),
            _choice("Minimize changes and focus on alternative platforms", users=-3_000, churn_rate=0.02),
        ],
        min_valuation=5_000_000,
    ),
)

# --- Competitor ---
_COMPETITOR = (
    _template(
        "new_competitor", "New Competitor",
        "A new competitor has entered the market with a similar product and is already courting your first 100 users.",
        "competitor", "negative",
        [
            _choice("Accelerate product development", cash=-20_000, quality=0.1),
            _choice("Increase marketing to maintain market position", cash=-15_000, brand=0.1),
            _choice("Ignore them and focus on your own strategy", morale=0.05),
        ],
    ),
    _template(
        "rival_takeover_rumor", "Rival Takeover Rumor",
        "A larger player is rumored to be circling one of your rivals. Their users may soon be up for grabs.",
        "competitor", "opportunity",
        [
            _choice("Court their users during the transition", cash=-10_000,
                    special=SpecialEffect.COMPETITOR_ACQUISITION),
            _choice("Stay focused on your roadmap", morale=0.05),
        ],
    ),
    _template(
        "major_competitor_merger", "Major Competitor Merger",
        "Two of your significant competitors have announced a merger, creating a formidable rival in the market.",
        "competitor", "negative",
        [
            _choice("Accelerate product development to stay competitive", cash=-1_000_000, quality=0.15, morale=-0.1),
            _choice("Launch aggressive marketing campaign to retain users", cash=-800_000, brand=0.2, churn_rate=-0.02),
            _choice("Explore potential acquisition targets to counter the merger", cash=-500_000, valuation=-1_000_000,
                    chain=ChainEventSpec("acquisition_opportunity", 2, 1.0)),
        ],
        min_valuation=20_000_000, min_users=50_000,
    ),
    _template(
        "talent_poaching", "Talent Poaching",
        "A well-funded competitor is actively recruiting your key team members with lucrative offers.",
        "competitor", "negative",
        [
            _choice("Increase salaries and benefits to retain talent", cash=-500_000, morale=0.15),
            _choice("Offer equity incentives instead of cash", player_equity=-0.05, morale=0.1),
            _choice("Let some talent go and focus on recruiting replacements", morale=-0.2, quality=-0.1),
        ],
        min_valuation=10_000_000,
    ),
)

# --- Internal ---
_INTERNAL = (
    _template(
        "team_conflict", "Team Conflict",
        "There's growing tension in your small team that's affecting productivity.",
        "internal", "negative",
        [
            _choice("Mediate and resolve the conflict", morale=0.1, quality=0.05),
            _choice("Restructure teams to separate conflicting members", morale=-0.05, quality=0.02),
            _choice("Ignore it and hope it resolves itself", morale=-0.2, quality=-0.1),
        ],
    ),
    _template(
        "hackathon_prototype", "Hackathon Prototype",
        "Your small team built a promising prototype over a weekend hackathon.",
        "internal", "positive",
        [
            _choice("Polish it and ship it as a feature", cash=-10_000, special=SpecialEffect.UNLOCK_FEATURE),
            _choice("Archive it and stick to the plan", morale=0.05),
        ],
    ),
    _template(
        "scaling_infrastructure_challenges", "Scaling Infrastructure Challenges",
        "Your platform is experiencing stability issues due to rapid user growth. The current "
        "infrastructure needs significant upgrades.",
        "internal", "negative",
        [
            _choice("Complete infrastructure overhaul", cash=-2_000_000, quality=0.2, churn_rate=-0.05),
            _choice("Implement targeted improvements to critical systems", cash=-800_000, quality=0.1,
                    churn_rate=-0.02),
            _choice("Minimal patches while planning long-term solutions", cash=-200_000, users=-5_000,
                    churn_rate=0.03),
        ],
        min_users=100_000,
    ),
    _template(
        "corporate_restructuring", "Corporate Restructuring Needed",
        "Your company has grown rapidly but organizational inefficiencies are becoming apparent. "
        "A restructuring could improve operations but carries risks.",
        "internal", "neutral",
        [
            _choice("Implement comprehensive restructuring with consultants", cash=-3_000_000, morale=-0.1,
                    quality=0.15, valuation=5_000_000),
            _choice("Gradual departmental reorganization", cash=-1_000_000, morale=0.05, quality=0.05),
            _choice("Maintain current structure but improve processes", cash=-500_000, morale=0.1),
        ],
        min_valuation=50_000_000, min_users=200_000,
    ),
)

# --- Opportunity ---
_OPPORTUNITY = (
    _template(
        "partnership_offer", "Partnership Opportunity",
        "A complementary business has approached you about a strategic partnership and a joint "
        "campaign to 1,000 users.",
        "opportunity", "positive",
        [
            _choice("Accept the partnership", users=500, valuation=50_000),
            _choice("Negotiate better terms", users=200, valuation=20_000),
            _choice("Decline and focus on your core business", morale=0.05),
        ],
    ),
    _template(
        "investor_introduction", "Investor Introduction",
        "A well-connected advisor offers to introduce you to a partner at a top venture firm.",
        "opportunity", "opportunity",
        [
            _choice("Take the meeting and pitch", special=SpecialEffect.VC_MEETING),
            _choice("Politely decline for now", morale=0.02),
        ],
    ),
    _template(
        "acquisition_target", "Acquisition Target Identified",
        "Your team has identified a promising smaller competitor that could be acquired to expand "
        "your market share and technology capabilities.",
        "opportunity", "opportunity",
        [
            _choice("Pursue aggressive acquisition", cash=-20_000_000, users=100_000, quality=0.1,
                    valuation=30_000_000),
            _choice("Negotiate strategic partnership instead", cash=-5_000_000, users=20_000, brand=0.1),
            _choice("Decline and focus on organic growth"),
        ],
        min_valuation=100_000_000, min_users=500_000,
    ),
    _template(
        "major_enterprise_client", "Major Enterprise Client Opportunity",
        "A Fortune 500 company is interested in implementing your solution across their organization, "
        "but requires custom features and dedicated support.",
        "opportunity", "opportunity",
        [
            _choice("Dedicate resources to win and service this client", cash=-2_000_000, revenue=500_000,
                    valuation=10_000_000, morale=-0.05),
            _choice("Offer limited customization within your product roadmap", cash=-500_000, revenue=200_000,
                    valuation=3_000_000),
            _choice("Decline to maintain focus on core market", morale=0.05),
        ],
        min_valuation=50_000_000, min_revenue=500_000,
    ),
)

# --- Global ---
_GLOBAL = (
    _template(
        "economic_recession", "Economic Recession",
        "A global economic downturn is affecting markets worldwide.",
        "global", "negative",
        [
            _choice("Cut costs aggressively", cash=-5_000, morale=-0.2, market={"funding_availability": -0.3}),
            _choice("Maintain operations but delay expansion", cash=-20_000, market={"funding_availability": -0.2}),
            _choice("Invest counter-cyclically to gain market share", cash=-50_000, valuation=-100_000,
                    market={"funding_availability": -0.1}),
        ],
    ),
    _template(
        "privacy_complaint", "Data Privacy Complaint",
        "A regulator has ruled against you on a data privacy complaint and proposed a $50,000 settlement.",
        "global", "negative",
        [
            _choice("Pay the settlement and tighten compliance", cash=-50_000, quality=0.02),
            _choice("Appeal the ruling", special=SpecialEffect.REGULATORY_APPEAL),
        ],
    ),
    _template(
        "regulatory_scrutiny", "Regulatory Scrutiny",
        "As your company has grown, it's attracted attention from regulators concerned about data "
        "privacy and market competition practices.",
        "global", "negative",
        [
            _choice("Proactively implement comprehensive compliance measures", cash=-10_000_000,
                    valuation=-20_000_000, morale=-0.1, quality=-0.05),
            _choice("Engage with regulators while making minimal changes", cash=-5_000_000,
                    valuation=-50_000_000, churn_rate=0.02),
            _choice("Fight regulations through legal challenges", cash=-20_000_000, valuation=-100_000_000,
                    brand=-0.2, chain=ChainEventSpec("regulatory_battle", 3, 1.0)),
        ],
        min_valuation=500_000_000, min_users=1_000_000,
    ),
    _template(
        "international_expansion_challenges", "International Expansion Challenges",
        "Your global expansion is facing unexpected challenges with local regulations, cultural "
        "differences, and established competitors.",
        "global", "negative",
        [
            _choice("Invest heavily in localization and compliance", cash=-15_000_000, users=200_000,
                    valuation=30_000_000),
            _choice("Scale back to focus on most promising markets", cash=-5_000_000, users=50_000,
                    valuation=10_000_000),
            _choice("Partner with local companies in key markets", cash=-8_000_000, users=100_000,
                    player_equity=-0.05, equity_holder="Local Partners"),
        ],
        min_valuation=200_000_000, min_users=500_000,
    ),
)

# --- Risk / reward ---
_RISK_REWARD = (
    _template(
        "risky_feature", "Risky Feature Development",
        "Your team has proposed a high-risk, high-reward feature that could differentiate your "
        "product but might delay other priorities for your small team.",
        "risk_reward", "risk_reward",
        [
            _choice("Go all-in on the risky feature", cash=-30_000, quality=0.2, morale=-0.1),
            _choice("Develop a scaled-down version", cash=-15_000, quality=0.1),
            _choice("Stick to the original roadmap", morale=0.05),
        ],
    ),
    _template(
        "major_pivot_opportunity", "Major Pivot Opportunity",
        "Market analysis suggests a significant opportunity to pivot your business model to capture "
        "a much larger market, but it would require substantial changes.",
        "risk_reward", "risk_reward",
        [
            _choice("Commit to the pivot with full resources", cash=-30_000_000, users=-100_000, churn_rate=0.1,
                    valuation=-50_000_000, chain=ChainEventSpec("major_pivot_outcome", 3, 1.0)),
            _choice("Test the new model with a separate division", cash=-10_000_000, morale=-0.1),
            _choice("Maintain current course with minor adjustments", morale=0.05),
        ],
        min_valuation=100_000_000,
    ),
    _template(
        "ipo_consideration", "IPO Consideration",
        "Your board and investors are pushing for an IPO to provide liquidity. The market conditions "
        "seem favorable, but going public would bring new pressures and scrutiny.",
        "risk_reward", "risk_reward",
        [
            _choice("Begin IPO preparations", cash=-5_000_000, valuation=100_000_000, morale=-0.1,
                    chain=ChainEventSpec("ipo_preparation", 2, 1.0)),
            _choice("Raise one more private funding round instead", valuation=50_000_000, player_equity=-0.1,
                    equity_holder="Late-Stage Investors"),
            _choice("Delay IPO decision for another year", morale=-0.05, valuation=-20_000_000),
        ],
        min_valuation=500_000_000, min_revenue=5_000_000,
    ),
)

# --- Chain follow-ups ---
_CHAIN = (
    _template(
        "team_morale_crisis", "Team Morale Crisis",
        "Recent decisions have led to a significant drop in team morale. Several key employees are "
        "considering leaving.",
        "chain", "negative",
        [
            _choice("Hold team building retreat", cash=-20_000, morale=0.3),
            _choice("One-on-one meetings with key team members", morale=0.2),
            _choice("Offer salary increases", cash=-50_000, morale=0.25),
        ],
        chain_only=True,
    ),
    _template(
        "major_pivot_outcome", "Pivot Results",
        "Your major business pivot is showing initial results. The transition has been challenging "
        "but there are promising signs.",
        "chain", "neutral",
        [
            _choice("Double down on the new direction", cash=-10_000_000, users=200_000, valuation=100_000_000,
                    quality=0.2),
            _choice("Make adjustments based on early feedback", cash=-5_000_000, users=100_000,
                    valuation=50_000_000, quality=0.1),
            _choice("Revert to original business model", users=50_000, valuation=-20_000_000, morale=-0.2),
        ],
        chain_only=True, scale_with_size=False,
    ),
    _template(
        "ipo_preparation", "IPO Preparation Complete",
        "Bankers, auditors and lawyers have finished their work. The roadshow is booked and the "
        "listing window is open.",
        "chain", "risk_reward",
        [
            _choice("Ring the bell and go public", special=SpecialEffect.IPO_LAUNCH),
            _choice("Raise one more private funding round instead", valuation=50_000_000, player_equity=-0.1,
                    equity_holder="Late-Stage Investors"),
            _choice("Delay IPO decision for another year", morale=-0.05, valuation=-20_000_000),
        ],
        chain_only=True, scale_with_size=False,
    ),
    _template(
        "regulatory_battle", "Regulatory Battle Outcome",
        "After months of legal challenges, the regulatory situation has reached a critical point. "
        "Your legal team has presented the likely outcomes.",
        "chain", "negative",
        [
            _choice("Settle and implement required changes", cash=-50_000_000, valuation=-100_000_000,
                    users=-200_000),
            _choice("Continue legal fight to the highest court", cash=-100_000_000, valuation=-200_000_000,
                    morale=-0.2, special=SpecialEffect.REGULATORY_FINAL_OUTCOME),
            _choice("Restructure company to address concerns", cash=-30_000_000, valuation=-50_000_000,
                    quality=-0.1, users=-100_000),
        ],
        chain_only=True, scale_with_size=False,
    ),
    _template(
        "acquisition_opportunity", "Acquisition Target Found",
        "Your team has identified a promising smaller competitor that would complement your business "
        "well. They seem open to acquisition talks.",
        "chain", "opportunity",
        [
            _choice("Make aggressive acquisition offer", cash=-30_000_000, users=100_000, valuation=50_000_000,
                    quality=0.1),
            _choice("Propose merger of equals", cash=-10_000_000, users=50_000, valuation=20_000_000,
                    player_equity=-0.1, equity_holder="Merger Partner"),
            _choice("Decline and focus on organic growth", valuation=-5_000_000),
        ],
        chain_only=True, scale_with_size=False,
    ),
)

# --- Raised directly by the engine ---
ACQUISITION_OFFER_ID = "acquisition_offer"
IPO_OFFER_ID = "ipo_offer"
DIFFICULTY_EVENT_IDS = ("employee_poaching", "market_downturn", "increased_competition", "cost_increase")

_SCRIPTED = (
    _template(
        ACQUISITION_OFFER_ID, "Acquisition Offer",
        "You've received an acquisition offer from a larger company.",
        "exit", "opportunity",
        [
            _choice("Accept the offer and sell the company", special=SpecialEffect.ACQUISITION_EXIT),
            _choice("Reject the offer and continue building", valuation_multiplier=1.1),
        ],
        scripted=True, scale_with_size=False,
    ),
    _template(
        IPO_OFFER_ID, "IPO Window Open",
        "Investment bankers believe your company is ready for the public markets.",
        "exit", "opportunity",
        [
            _choice("Take the company public", special=SpecialEffect.IPO_LAUNCH),
            _choice("Stay private for now", morale=0.02),
        ],
        scripted=True, scale_with_size=False,
    ),
    _template(
        "employee_poaching", "Employee Poached",
        "A competitor has poached one of your employees with a better offer.",
        "internal", "negative",
        [_choice("Acknowledge", special=SpecialEffect.EMPLOYEE_POACHING)],
        scripted=True, scale_with_size=False,
    ),
    _template(
        "market_downturn", "Market Downturn",
        "Economic conditions have worsened, affecting your industry.",
        "market", "negative",
        [_choice("Acknowledge", special=SpecialEffect.MARKET_DOWNTURN)],
        scripted=True, scale_with_size=False,
    ),
    _template(
        "increased_competition", "Increased Competition",
        "A new well-funded competitor has entered your market.",
        "competitor", "negative",
        [_choice("Acknowledge", special=SpecialEffect.NEW_COMPETITOR)],
        scripted=True, scale_with_size=False,
    ),
    _template(
        "cost_increase", "Rising Costs",
        "Operational costs have increased due to market conditions.",
        "internal", "negative",
        [_choice("Acknowledge", special=SpecialEffect.COST_INCREASE)],
        scripted=True, scale_with_size=False,
    ),
)


def _build_registry() -> Mapping[str, EventTemplate]:
    registry: Dict[str, EventTemplate] = {}
    for group in (_MARKET, _COMPETITOR, _INTERNAL, _OPPORTUNITY, _GLOBAL, _RISK_REWARD, _CHAIN, _SCRIPTED):
        for template in group:
            if template.event_id in registry:
                raise ValueError(f"duplicate event id {template.event_id!r}")
            registry[template.event_id] = template
    for template in registry.values():
        for choice in template.choices:
            if choice.chain and choice.chain.event_id not in registry:
                raise ValueError(f"{template.event_id} chains to unknown event {choice.chain.event_id!r}")
            if choice.chain and not registry[choice.chain.event_id].chain_only:
                raise ValueError(f"{choice.chain.event_id} must be chain_only")
    return MappingProxyType(registry)


EVENT_REGISTRY: Mapping[str, EventTemplate] = _build_registry()
