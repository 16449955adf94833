"""FastAPI surface for the chat engine.

The HTTP client plays the part of the mounted page: commands the engine
dispatches while handling a request are returned in the response body.
"""

from __future__ import annotations

import os
from datetime import timedelta
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .bus import ChatCommand
from .classifier import IntentClassifier
from .config import get_settings
from .engine import ChatEngine, SessionBusyError, TurnResult
from .session import ChatSession, SessionRegistry
from .store import JsonContentStore

app = FastAPI(title="Content Ops Chat")


def _add_cors(app: FastAPI) -> None:
    """Allow the dashboard dev server to call the API during local development."""
    allow_all = os.getenv("CORS_ALLOW_ALL", "true").lower() == "true"
    origins_env = os.getenv("CORS_ALLOW_ORIGINS", "")
    origins = [o.strip() for o in origins_env.split(",") if o.strip()]
    allow_credentials = (
        os.getenv("CORS_ALLOW_CREDENTIALS", "true").lower() == "true"
    )
    if allow_all or not origins:
        origins = ["*"]
    if origins == ["*"] and allow_credentials:
        # Starlette/FastAPI disallow wildcard origins when credentials are enabled.
        allow_credentials = False
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )


_add_cors(app)


class MessageIn(BaseModel):
    text: str


class ButtonIn(BaseModel):
    action: str
    payload: Optional[Dict[str, str]] = None


@lru_cache(maxsize=1)
def get_registry() -> SessionRegistry:
    settings = get_settings()
    return SessionRegistry(inactivity_threshold=timedelta(minutes=settings.inactivity_minutes))


@lru_cache(maxsize=1)
def get_engine() -> ChatEngine:
    settings = get_settings()
    store = JsonContentStore(settings.content_store_path)
    return ChatEngine(store, IntentClassifier(settings=settings), settings=settings)


def _session_or_404(registry: SessionRegistry, user_id: str) -> ChatSession:
    session = registry.get(user_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No active chat session for {user_id}; sign in first.",
        )
    return session


def _command_json(command: ChatCommand) -> Dict[str, Any]:
    return {"type": command.type, "payload": dict(command.payload)}


def _session_json(session: ChatSession) -> Dict[str, Any]:
    pending = session.confirmation.pending
    return {
        "sessionId": session.session_id,
        "messages": [m.model_dump(mode="json", by_alias=True) for m in session.messages],
        "pending": pending.model_dump(mode="json", by_alias=True) if pending else None,
        "isProcessing": session.is_processing,
    }


def _turn_json(session: ChatSession, turn: TurnResult) -> Dict[str, Any]:
    pending = session.confirmation.pending
    return {
        "message": turn.response.model_dump(mode="json", by_alias=True) if turn.response else None,
        "commands": [_command_json(c) for c in turn.commands],
        "intent": turn.intent.type if turn.intent else None,
        "discarded": turn.discarded,
        "pending": pending.model_dump(mode="json", by_alias=True) if pending else None,
    }


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/sessions/{user_id}", status_code=status.HTTP_200_OK)
async def sign_in(
    user_id: str, registry: SessionRegistry = Depends(get_registry)
) -> Dict[str, Any]:
    """Open (or rejoin) the user's session; offerResume asks the UI to show continue/start fresh."""
    session = registry.sign_in(user_id)
    body = _session_json(session)
    body["offerResume"] = session.should_offer_resume()
    return body


@app.delete("/sessions/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(user_id: str, registry: SessionRegistry = Depends(get_registry)) -> None:
    if not registry.sign_out(user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"No active chat session for {user_id}."
        )


@app.get("/sessions/{user_id}/messages")
def list_messages(
    user_id: str, registry: SessionRegistry = Depends(get_registry)
) -> List[Dict[str, Any]]:
    session = _session_or_404(registry, user_id)
    return [m.model_dump(mode="json", by_alias=True) for m in session.messages]


@app.post("/sessions/{user_id}/messages")
async def post_message(
    user_id: str,
    body: MessageIn,
    registry: SessionRegistry = Depends(get_registry),
    engine: ChatEngine = Depends(get_engine),
) -> Dict[str, Any]:
    session = _session_or_404(registry, user_id)
    try:
        turn = await engine.send_message(session, body.text)
    except SessionBusyError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _turn_json(session, turn)


@app.post("/sessions/{user_id}/buttons")
async def click_button(
    user_id: str,
    body: ButtonIn,
    registry: SessionRegistry = Depends(get_registry),
    engine: ChatEngine = Depends(get_engine),
) -> Dict[str, Any]:
    session = _session_or_404(registry, user_id)
    turn = engine.click_button(session, body.action, body.payload)
    return _turn_json(session, turn)


@app.post("/sessions/{user_id}/reset")
async def start_fresh(
    user_id: str, registry: SessionRegistry = Depends(get_registry)
) -> Dict[str, Any]:
    session = _session_or_404(registry, user_id)
    session.start_fresh()
    return _session_json(session)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "content_ops.server:app",
        host=os.getenv("CHAT_HOST", "0.0.0.0"),
        port=int(os.getenv("CHAT_PORT", "8000")),
        reload=os.getenv("CHAT_RELOAD", "false").lower() == "true",
    )
