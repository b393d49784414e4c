"""
Integration tests for GameEngine

Tests cover:
- Game setup and option validation
- Phase ordering and recovery from unknown phases
- Turn summaries and the turn counter
- Determinism under a fixed seed
- Bounded state over long runs
- Game over (bankruptcy, max turns) and the post-game command guard
"""
import pytest
from agents import Outcome
from config import CONFIG
from engine import EngineListener, GameEngine, TurnPhase


class RecordingListener(EngineListener):
    def __init__(self):
        self.notifications = []
        self.events = []
        self.summaries = []
        self.game_overs = []

    def notification(self, message, kind):
        self.notifications.append((message, kind))

    def event_modal(self, event):
        self.events.append(event)

    def turn_summary(self, summary):
        self.summaries.append(summary)

    def game_over(self, reason, data):
        self.game_overs.append((reason, data))


def start(seed=1, **options):
    listener = RecordingListener()
    engine = GameEngine(CONFIG, listener=listener)
    options.setdefault("seed", seed)
    result = engine.new_game(options)
    assert result.success
    return engine, listener


def play(engine, turns):
    for _ in range(turns):
        for event in engine.events.unresolved:
            engine.handle_event_choice(event.instance_id, 0)
        if engine.state.game_over:
            break
        engine.allocate_marketing_budget("search", engine.company.cash * 0.02)
        engine.end_turn()
        if engine.state.game_over:
            break


class TestGameSetup:
    """Test suite for new_game"""

    def test_new_game_defaults(self):
        """Test a default game starts on turn 1 in the player phase"""
        engine, listener = start()

        assert engine.state.current_turn == 1
        assert engine.state.phase is TurnPhase.PLAYER_DECISION
        assert engine.company.cash == CONFIG.rules.starting_cash
        assert len(engine.competitors) == CONFIG.industries["saas"].competitors
        assert listener.notifications[0][1] == "info"

    def test_difficulty_scales_starting_cash(self):
        """Test presets adjust starting cash and event frequency"""
        engine, _ = start(difficulty="easy", industry="fintech")

        assert engine.company.cash == pytest.approx(1_500_000)
        assert engine.events.frequency == pytest.approx(0.7)
        assert len(engine.competitors) == CONFIG.industries["fintech"].competitors

    @pytest.mark.parametrize("options", [
        {"industry": "biotech"},
        {"difficulty": "nightmare"},
        {"max_turns": -3},
        {"max_turns": 0},
        {"max_turns": True},
    ])
    def test_invalid_options(self, options):
        """Test bad options are rejected without starting a game"""
        engine = GameEngine(CONFIG)
        result = engine.new_game(options)

        assert result.outcome is Outcome.INVALID_INPUT
        assert not engine.started

    def test_commands_need_a_game(self):
        """Test commands fail before new_game"""
        engine = GameEngine(CONFIG)

        assert engine.end_turn().outcome is Outcome.INVALID_INPUT
        assert engine.hire_employee("developer").outcome is Outcome.INVALID_INPUT

    def test_marketing_example(self):
        """Test $1M starting cash minus a $50k search budget leaves $950k"""
        engine, _ = start()
        result = engine.allocate_marketing_budget("search", 50_000)

        assert result.success
        assert engine.company.cash == 950_000


class TestTurnFlow:
    """Test suite for the phase machine"""

    def test_phase_order(self, monkeypatch):
        """Test automated phases run in order and control returns to the player"""
        engine, _ = start()
        seen = []
        original = engine._run_phase

        def recording(phase):
            seen.append(phase)
            original(phase)

        monkeypatch.setattr(engine, "_run_phase", recording)
        engine.end_turn()

        assert seen == [TurnPhase.AI_DECISION, TurnPhase.MARKET_EVENTS, TurnPhase.TURN_RESOLUTION]
        assert engine.state.phase is TurnPhase.PLAYER_DECISION

    def test_unknown_phase_recovers(self):
        """Test an unknown phase falls back to player_decision"""
        engine, _ = start()
        engine.set_phase(TurnPhase.MARKET_EVENTS)

        assert engine.set_phase("coffee_break") is TurnPhase.PLAYER_DECISION

    def test_summary_before_increment(self):
        """Test the summary carries the resolved turn and the counter then advances"""
        engine, listener = start()
        result = engine.end_turn()

        assert result.success
        assert listener.summaries[0].turn == 1
        assert result.details["summary"]["turn"] == 1
        assert engine.state.current_turn == 2

    def test_unresolved_events_do_not_block(self):
        """Test turns advance with open events"""
        engine, _ = start(seed=4)
        for _ in range(20):
            engine.end_turn()

        assert engine.state.current_turn == 21 or engine.state.game_over

    def test_notifications_capped(self):
        """Test only the latest notifications are kept"""
        engine, _ = start()
        for i in range(80):
            engine.notify(f"message {i}")

        assert len(engine.state.notifications) == CONFIG.rules.max_notifications
        assert engine.state.notifications[-1].message == "message 79"


class TestDeterminism:
    """Test suite for seeded reproducibility"""

    def test_same_seed_same_game(self):
        """Test two engines with the same seed and commands stay identical"""
        first, _ = start(seed=42)
        second, _ = start(seed=42)
        play(first, 30)
        play(second, 30)

        assert first.company.to_dict() == second.company.to_dict()
        assert first.market.to_dict() == second.market.to_dict()
        assert [c.to_dict() for c in first.competitors] == [c.to_dict() for c in second.competitors]
        assert first.events.to_dict() == second.events.to_dict()

    def test_different_seeds_diverge(self):
        """Test different seeds produce different games"""
        first, _ = start(seed=1)
        second, _ = start(seed=2)
        play(first, 10)
        play(second, 10)

        assert first.market.to_dict() != second.market.to_dict()


class TestInvariants:
    """Test suite for state that must stay valid every turn"""

    def test_bounded_fields_over_long_run(self):
        """Test clamped fields and equity hold for a full game"""
        engine, _ = start(seed=7)
        for _ in range(CONFIG.rules.max_turns):
            play(engine, 1)
            company = engine.company
            assert 0.0 <= company.morale <= 1.0
            assert 0.0 <= company.quality <= 1.0
            assert 0.0 <= company.brand <= 1.0
            assert 0.01 <= company.churn_rate <= 0.5
            assert 0.0 <= company.player_equity <= 1.0
            assert company.player_equity + sum(company.investors.values()) == pytest.approx(1.0)
            assert company.users >= 0
            assert len(engine.market.trends) <= CONFIG.market.max_trends
            assert 0.7 <= engine.difficulty.multiplier <= 1.5
            if engine.state.game_over:
                break


class TestGameOver:
    """Test suite for terminal states"""

    def test_bankruptcy_fires_once(self):
        """Test running out of cash ends the game exactly once"""
        engine, listener = start()
        engine.company.cash = -1.0
        engine.end_turn()

        assert engine.state.game_over
        assert engine.state.game_over_reason == "bankruptcy"
        assert len(listener.game_overs) == 1

        result = engine.end_turn()
        assert result.outcome is Outcome.GAME_OVER
        assert len(listener.game_overs) == 1
        assert not engine.trigger_game_over("max_turns_reached")

    def test_max_turns(self):
        """Test the game ends after the last allowed turn"""
        engine, listener = start(max_turns=3)
        for _ in range(3):
            engine.end_turn()

        assert engine.state.game_over
        assert engine.state.game_over_reason == "max_turns_reached"
        assert engine.state.game_over_data["turn"] == 4
        assert listener.game_overs[0][0] == "max_turns_reached"

    def test_commands_after_game_over(self):
        """Test every command except new_game is refused after game over"""
        engine, _ = start(max_turns=1)
        engine.end_turn()

        assert engine.allocate_marketing_budget("search", 10).outcome is Outcome.GAME_OVER
        assert engine.hire_employee("developer").outcome is Outcome.GAME_OVER
        assert engine.fire_employee(2).outcome is Outcome.GAME_OVER
        assert engine.develop_feature({}).outcome is Outcome.GAME_OVER
        assert engine.raise_funding("Seed").outcome is Outcome.GAME_OVER
        assert engine.buy_back_equity("Anyone").outcome is Outcome.GAME_OVER
        assert engine.handle_event_choice("x", 0).outcome is Outcome.GAME_OVER
        assert engine.new_game({"seed": 3}).success
        assert not engine.state.game_over

    def test_view(self):
        """Test the read-only view exposes the main panels"""
        engine = GameEngine(CONFIG)
        assert engine.view() == {"started": False}

        engine.new_game({"seed": 5})
        view = engine.view()
        assert view["turn"] == 1
        assert view["company"]["cash"] == CONFIG.rules.starting_cash
        assert len(view["competitors"]) == len(engine.competitors)


class TestExitOffers:
    """Test suite for acquisition and IPO offers"""

    def test_open_offers_do_not_stack(self):
        """Test an unanswered exit offer is not raised again on later turns"""
        engine, listener = start(seed=8)
        engine.company.valuation_premium = 5_000_000_000
        for _ in range(15):
            engine.company.cash = max(engine.company.cash, 1_000_000_000)
            engine.end_turn()

        offers = [e.template_id for e in engine.events.unresolved if e.template_id in ("acquisition_offer", "ipo_offer")]
        surfaced = [e.template_id for e in listener.events if e.template_id in ("acquisition_offer", "ipo_offer")]
        assert offers
        assert sorted(surfaced) == sorted(offers)
        assert offers.count("acquisition_offer") <= 1
        assert offers.count("ipo_offer") <= 1
