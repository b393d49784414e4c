"""
Unit tests for save/load

Tests cover:
- Snapshot layout
- Restoring reproduces the game, including the RNG stream
- Version mismatch warning
- Corrupt, missing and incomplete saves leave the engine untouched
"""
import json

import pytest
from config import CONFIG
from engine import GameEngine
from persistence import build_snapshot, load_game, restore_snapshot, save_game


def played_engine(seed=3, turns=10):
    engine = GameEngine(CONFIG)
    engine.new_game({"seed": seed})
    for _ in range(turns):
        for event in engine.events.unresolved:
            engine.handle_event_choice(event.instance_id, 0)
        engine.allocate_marketing_budget("social", 10_000)
        engine.end_turn()
    return engine


class TestPersistence:
    """Test suite for snapshots and save files"""

    def test_snapshot_layout(self):
        """Test the snapshot carries every top-level section"""
        snapshot = build_snapshot(played_engine(turns=2))

        assert set(snapshot) == {"version", "timestamp", "settings", "state", "company", "market", "competitors"}
        assert snapshot["version"] == CONFIG.rules.version
        assert snapshot["state"]["current_turn"] == 3

    def test_snapshot_requires_game(self):
        """Test there is nothing to snapshot before new_game"""
        with pytest.raises(ValueError):
            build_snapshot(GameEngine(CONFIG))

    def test_round_trip_continues_identically(self, tmp_path):
        """Test a restored game plays on exactly like the original"""
        original = played_engine()
        path = tmp_path / "save.json"
        assert save_game(original, str(path))

        restored = GameEngine(CONFIG)
        assert load_game(restored, str(path))
        assert restored.company.to_dict() == original.company.to_dict()
        assert restored.state.current_turn == original.state.current_turn

        for engine in (original, restored):
            for _ in range(5):
                engine.end_turn()

        assert restored.company.to_dict() == original.company.to_dict()
        assert restored.market.to_dict() == original.market.to_dict()
        assert [c.to_dict() for c in restored.competitors] == [c.to_dict() for c in original.competitors]
        assert restored.events.to_dict() == original.events.to_dict()

    def test_version_mismatch_warns(self):
        """Test an older save loads with a warning notification"""
        engine = played_engine(turns=1)
        doc = json.loads(json.dumps(build_snapshot(engine)))
        doc["version"] = "0.0.1"

        target = GameEngine(CONFIG)
        assert restore_snapshot(target, doc)
        assert target.state.notifications[-1].kind == "warning"

    def test_corrupt_file(self, tmp_path):
        """Test unparsable JSON returns False and keeps the current game"""
        engine = played_engine(turns=1)
        company = engine.company
        path = tmp_path / "corrupt.json"
        path.write_text("{not json")

        assert not load_game(engine, str(path))
        assert engine.company is company

    def test_missing_file(self, tmp_path):
        """Test a missing file returns False"""
        engine = GameEngine(CONFIG)

        assert not load_game(engine, str(tmp_path / "nope.json"))
        assert not engine.started

    def test_incomplete_document(self, tmp_path):
        """Test a structurally broken snapshot is rejected without partial changes"""
        engine = played_engine(turns=1)
        turn = engine.state.current_turn
        doc = json.loads(json.dumps(build_snapshot(played_engine(seed=9, turns=4))))
        del doc["company"]["equity"]
        path = tmp_path / "broken.json"
        path.write_text(json.dumps(doc))

        assert not load_game(engine, str(path))
        assert engine.state.current_turn == turn

    def test_non_object_document(self, tmp_path):
        """Test a JSON document that isn't an object is rejected"""
        path = tmp_path / "list.json"
        path.write_text("[1, 2, 3]")

        assert not load_game(GameEngine(CONFIG), str(path))
