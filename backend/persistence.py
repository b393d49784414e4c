"""
Save / Load

Snapshots are single JSON documents taken between turns:
{version, timestamp, settings, state, company, market, competitors}.
Restoring parses everything into fresh objects first and only swaps them
into the engine once the whole document has been read.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Dict

import numpy as np

from agents import CompanyAgent, CompetitorAgent
from difficulty import DifficultyFeedback
from engine import GameEngine, GameSettings, GameState, Notification, TurnPhase
from events import EventSystem
from market import MarketModel

logger = logging.getLogger(__name__)


def build_snapshot(engine: GameEngine) -> Dict[str, object]:
    if not engine.started:
        raise ValueError("cannot snapshot an engine without a game")
    state = engine.state
    return {
        "version": engine.config.rules.version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "settings": engine.settings.to_dict(),
        "state": {
            "current_turn": state.current_turn,
            "phase": state.phase.value,
            "game_over": state.game_over,
            "game_over_reason": state.game_over_reason,
            "game_over_data": dict(state.game_over_data),
            "notifications": [n.to_dict() for n in state.notifications],
            "events": engine.events.to_dict(),
            "difficulty": engine.difficulty.to_dict(),
            "rng": engine.rng.bit_generator.state,
        },
        "company": engine.company.to_dict(),
        "market": engine.market.to_dict(),
        "competitors": [c.to_dict() for c in engine.competitors],
    }


def restore_snapshot(engine: GameEngine, doc: Dict[str, object]) -> bool:
    """
    Replace the engine's game with the one in `doc`.

    Returns:
        False (engine untouched) if the document cannot be parsed
    """
    config = engine.config
    try:
        settings = GameSettings(**doc["settings"])
        raw_state = doc["state"]
        state = GameState(
            current_turn=int(raw_state["current_turn"]),
            game_over=bool(raw_state["game_over"]),
            game_over_reason=raw_state.get("game_over_reason"),
            game_over_data=dict(raw_state.get("game_over_data", {})),
            notifications=[Notification(**n) for n in raw_state.get("notifications", [])],
        )
        phase = raw_state.get("phase", TurnPhase.PLAYER_DECISION.value)
        events = EventSystem.from_dict(raw_state["events"], config)
        difficulty = DifficultyFeedback.from_dict(raw_state["difficulty"], config)
        company = CompanyAgent.from_dict(doc["company"], config)
        market = MarketModel.from_dict(doc["market"], config)
        competitors = [CompetitorAgent.from_dict(c, config) for c in doc["competitors"]]
        rng = np.random.default_rng()
        rng.bit_generator.state = raw_state["rng"]
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        logger.warning("Rejected save document: %s", exc)
        return False

    engine.settings = settings
    engine.state = state
    engine.set_phase(phase)
    engine.events = events
    engine.difficulty = difficulty
    engine.company = company
    engine.market = market
    engine.competitors = competitors
    engine.rng = rng

    version = doc.get("version")
    if version != config.rules.version:
        logger.warning("Save version %s differs from engine version %s", version, config.rules.version)
        engine.notify(f"This save was made with version {version}; some values may differ.", "warning")
    return True


def save_game(engine: GameEngine, path: str) -> bool:
    snapshot = build_snapshot(engine)
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(snapshot, handle)
    logger.info("Saved game to %s", path)
    return True


def load_game(engine: GameEngine, path: str) -> bool:
    """Load a save file; a missing or corrupt file leaves the engine untouched."""
    try:
        with open(path, "r", encoding="utf-8") as handle:
            doc = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Could not read save file %s: %s", path, exc)
        return False
    if not isinstance(doc, dict):
        logger.warning("Save file %s does not contain a snapshot object", path)
        return False
    return restore_snapshot(engine, doc)
