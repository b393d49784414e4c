import logging
import os
import sys
from typing import Any, Dict, List, Optional

# Add current directory to path so we can import backend modules
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, ValidationError

from agents import CommandResult
from config import CONFIG
from engine import EngineListener, GameEngine, TurnSummary
from events import GameEvent
from persistence import load_game, save_game

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_SAVE_PATH = os.environ.get("STARTUP_SAVE_PATH", "saves/startup_save.json")

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class NewGameRequest(BaseModel):
    company_name: Optional[str] = None
    industry: Optional[str] = None
    difficulty: Optional[str] = None
    seed: Optional[int] = None
    max_turns: Optional[int] = Field(None, gt=0)


class MarketingRequest(BaseModel):
    channel: str
    amount: float = Field(..., ge=0)


class HireRequest(BaseModel):
    role: str


class FireRequest(BaseModel):
    employee_id: int


class FeatureRequest(BaseModel):
    name: Optional[str] = None
    complexity: str = "medium"
    category: Optional[str] = None
    dependencies: Optional[List[str]] = None
    description: Optional[str] = None


class FundingRequest(BaseModel):
    round_name: str


class BuyBackRequest(BaseModel):
    investor: str


class EventChoiceRequest(BaseModel):
    event_id: str
    choice_index: int = Field(..., ge=0)


class SaveRequest(BaseModel):
    # File name relative to the session save directory
    path: Optional[str] = Field(default=None, min_length=1)


class QueueListener(EngineListener):
    """Buffers engine emissions until the socket handler flushes them."""

    def __init__(self):
        self.messages: List[Dict[str, Any]] = []

    def notification(self, message: str, kind: str) -> None:
        self.messages.append({"type": "NOTIFICATION", "message": message, "kind": kind})

    def event_modal(self, event: GameEvent) -> None:
        self.messages.append({"type": "EVENT", "event": event.to_dict()})

    def turn_summary(self, summary: TurnSummary) -> None:
        self.messages.append({"type": "TURN_SUMMARY", "summary": summary.to_dict()})

    def game_over(self, reason: str, data: Dict[str, object]) -> None:
        self.messages.append({"type": "GAME_OVER", "reason": reason, "data": data})

    def drain(self) -> List[Dict[str, Any]]:
        messages, self.messages = self.messages, []
        return messages


class SessionManager:
    """One engine for the single local UI session."""

    def __init__(self, save_dir: Optional[str] = None):
        self.listener = QueueListener()
        self.engine = GameEngine(CONFIG, listener=self.listener)
        self.active_websocket: Optional[WebSocket] = None
        self.save_dir = os.path.realpath(save_dir or os.path.dirname(os.path.abspath(DEFAULT_SAVE_PATH)))

    def resolve_save_path(self, name: Optional[str]) -> Optional[str]:
        """Absolute path for a save name, or None if it escapes the save directory."""
        if name is None:
            name = os.path.basename(DEFAULT_SAVE_PATH)
        if os.path.isabs(name):
            return None
        path = os.path.realpath(os.path.join(self.save_dir, name))
        if os.path.commonpath([self.save_dir, path]) != self.save_dir or path == self.save_dir:
            return None
        return path

    def dispatch(self, command: Optional[str], payload: Dict[str, Any]) -> Dict[str, Any]:
        """Run one command and build the reply; engine emissions stay queued."""
        engine = self.engine
        if command == "NEW_GAME":
            req = NewGameRequest.model_validate(payload)
            return self._reply(command, engine.new_game(req.model_dump(exclude_none=True)))
        if command == "END_TURN":
            return self._reply(command, engine.end_turn())
        if command == "ALLOCATE_MARKETING":
            req = MarketingRequest.model_validate(payload)
            return self._reply(command, engine.allocate_marketing_budget(req.channel, req.amount))
        if command == "HIRE":
            req = HireRequest.model_validate(payload)
            return self._reply(command, engine.hire_employee(req.role))
        if command == "FIRE":
            req = FireRequest.model_validate(payload)
            return self._reply(command, engine.fire_employee(req.employee_id))
        if command == "DEVELOP_FEATURE":
            req = FeatureRequest.model_validate(payload)
            return self._reply(command, engine.develop_feature(req.model_dump(exclude_none=True)))
        if command == "RAISE_FUNDING":
            req = FundingRequest.model_validate(payload)
            return self._reply(command, engine.raise_funding(req.round_name))
        if command == "BUY_BACK":
            req = BuyBackRequest.model_validate(payload)
            return self._reply(command, engine.buy_back_equity(req.investor))
        if command == "EVENT_CHOICE":
            req = EventChoiceRequest.model_validate(payload)
            return self._reply(command, engine.handle_event_choice(req.event_id, req.choice_index))
        if command == "SAVE":
            req = SaveRequest.model_validate(payload)
            if not engine.started:
                return {"type": "ERROR", "command": command, "error": "No game in progress"}
            path = self.resolve_save_path(req.path)
            if path is None:
                return self._bad_path(command, req.path)
            save_game(engine, path)
            return {"type": "SAVED", "path": path}
        if command == "LOAD":
            req = SaveRequest.model_validate(payload)
            path = self.resolve_save_path(req.path)
            if path is None:
                return self._bad_path(command, req.path)
            loaded = load_game(engine, path)
            return {"type": "LOADED", "success": loaded, "state": engine.view()}
        if command == "STATE":
            return {"type": "STATE", "state": engine.view()}
        return {"type": "ERROR", "command": command, "error": f"Unknown command: {command}"}

    def _reply(self, command: str, result: CommandResult) -> Dict[str, Any]:
        return {"type": "RESULT", "command": command, "result": result.to_dict(), "state": self.engine.view()}

    def _bad_path(self, command: str, name: Optional[str]) -> Dict[str, Any]:
        logger.warning("Rejected save path %r", name)
        return {"type": "ERROR", "command": command, "error": "Save path must stay inside the save directory"}


manager = SessionManager()


@app.get("/health")
async def health():
    return {"status": "ok", "version": CONFIG.rules.version}


@app.get("/state")
async def state():
    return manager.engine.view()


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()
    manager.active_websocket = websocket
    logger.info("WebSocket connected")

    try:
        while True:
            data = await websocket.receive_json()
            command = data.get("command")
            try:
                reply = manager.dispatch(command, data.get("payload") or {})
            except ValidationError as e:
                reply = {"type": "ERROR", "command": command, "error": e.errors(include_url=False)}
            for message in manager.listener.drain():
                await websocket.send_json(message)
            await websocket.send_json(reply)

    except WebSocketDisconnect:
        manager.active_websocket = None
        logger.info("Client disconnected")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
