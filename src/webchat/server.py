"""FastAPI application: chat, history and ping endpoints."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from .completion import GenerationConfig, OpenAIChatCompletion, is_placeholder_key
from .config import load_config
from .errors import ChatError
from .handlers import ChatHandler, CompletionProvider, HistoryHandler, Verifier
from .identity import GoogleIdentityVerifier, is_placeholder_client_id
from .store import HistoryStore

logger = logging.getLogger(__name__)


# -----------------------------
# Pydantic request/response
# -----------------------------
class ChatRequest(BaseModel):
    # Left untyped so a missing or non-string field reaches the handler:
    # a bad message is a 400, a bad token means an anonymous request.
    message: Any = None
    id_token: Any = None


class ChatResponse(BaseModel):
    reply: str


class HistoryRequest(BaseModel):
    id_token: Any = None


class MessageOut(BaseModel):
    role: str
    text: str
    time: str


class HistoryResponse(BaseModel):
    history: List[MessageOut]


# -----------------------------
# Service construction
# -----------------------------
def _make_provider(cfg: Dict[str, Any]) -> OpenAIChatCompletion:
    c = cfg.get("completion", {})
    api_key = c.get("api_key") or ""
    if is_placeholder_key(api_key):
        logger.warning("OPENAI_API_KEY missing or placeholder. Put your real key in .env or the environment.")
    timeout = c.get("timeout")
    return OpenAIChatCompletion(
        api_key,
        api_base=c.get("api_base") or "https://api.openai.com/v1",
        generation=GenerationConfig(
            model=str(c.get("model", GenerationConfig.model)),
            system_prompt=str(c.get("system_prompt", GenerationConfig.system_prompt)).strip(),
            max_tokens=int(c.get("max_tokens", GenerationConfig.max_tokens)),
            temperature=float(c.get("temperature", GenerationConfig.temperature)),
        ),
        timeout=None if timeout is None else float(timeout),
    )


def _make_verifier(cfg: Dict[str, Any]) -> GoogleIdentityVerifier:
    client_id = cfg.get("identity", {}).get("google_client_id") or ""
    if is_placeholder_client_id(client_id):
        logger.warning("Google client id missing or placeholder; signed-in history is disabled.")
    return GoogleIdentityVerifier(client_id)


def _make_store(cfg: Dict[str, Any]) -> HistoryStore:
    return HistoryStore(cfg.get("history", {}).get("data_dir") or "data")


# -----------------------------
# App factory
# -----------------------------
def create_app(
    config_path: Optional[str] = None,
    verifier: Optional[Verifier] = None,
    provider: Optional[CompletionProvider] = None,
    store: Optional[HistoryStore] = None,
) -> FastAPI:
    cfg = load_config(config_path)
    server_cfg = cfg.get("server", {})

    verifier = verifier or _make_verifier(cfg)
    provider = provider or _make_provider(cfg)
    store = store or _make_store(cfg)

    chat_handler = ChatHandler(verifier, provider, store)
    history_handler = HistoryHandler(verifier, store)

    app = FastAPI(title="Web Chat Server", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=server_cfg.get("cors_origins") or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.get("/api/ping")
    async def ping() -> Dict[str, Any]:
        return {"ok": True}

    @app.post("/api/chat", response_model=ChatResponse)
    async def chat(payload: Any = Body(default=None)):
        req = ChatRequest(**payload) if isinstance(payload, dict) else ChatRequest()
        try:
            reply = await chat_handler.handle(req.message, req.id_token)
        except ChatError:
            raise
        except Exception as e:
            logger.exception("Server error handling chat message")
            raise ChatError("Server error") from e
        return ChatResponse(reply=reply)

    @app.post("/api/history", response_model=HistoryResponse)
    async def history(payload: Any = Body(default=None)):
        req = HistoryRequest(**payload) if isinstance(payload, dict) else HistoryRequest()
        try:
            records = await history_handler.handle(req.id_token)
        except ChatError:
            raise
        except Exception as e:
            logger.exception("Server error handling history request")
            raise ChatError("Server error") from e
        return HistoryResponse(history=[MessageOut(**r.to_dict()) for r in records])

    static_dir = server_cfg.get("static_dir")
    if static_dir and Path(static_dir).is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")

    return app
