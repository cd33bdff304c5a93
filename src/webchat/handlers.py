"""Request orchestration: one chat turn, one history read."""
from __future__ import annotations

import logging
from typing import Any, List, Optional, Protocol

from fastapi.concurrency import run_in_threadpool

from .errors import InvalidInput, Unauthorized
from .identity import IdentityClaim
from .store import HistoryStore, MessageRecord

logger = logging.getLogger(__name__)


def _usable_token(token: Any) -> Optional[str]:
    """Only a non-empty string is worth sending to the verifier."""
    return token if isinstance(token, str) and token else None


class Verifier(Protocol):
    async def verify(self, token: Optional[str]) -> Optional[IdentityClaim]: ...


class CompletionProvider(Protocol):
    async def complete(self, prompt: str) -> str: ...


class ChatHandler:
    """Handle one user message end to end.

    A token that fails verification downgrades the request to anonymous
    mode instead of rejecting it. History writes are best effort: a failed
    write is logged by the store and the reply is still returned. A failed
    completion raises before any bot record is written.
    """

    def __init__(self, verifier: Verifier, provider: CompletionProvider, store: HistoryStore) -> None:
        self.verifier = verifier
        self.provider = provider
        self.store = store

    async def _record(self, claim: Optional[IdentityClaim], record: MessageRecord) -> bool:
        if claim is None or not claim.key:
            return False
        saved = await run_in_threadpool(self.store.append, claim.key, record)
        if not saved:
            logger.warning("History not saved for this %s message", record.role)
        return saved

    async def handle(self, message: Any, id_token: Any = None) -> str:
        if not message or not isinstance(message, str):
            raise InvalidInput("No message provided")

        token = _usable_token(id_token)
        claim = await self.verifier.verify(token) if token else None
        await self._record(claim, MessageRecord.user(message))

        reply = await self.provider.complete(message)

        await self._record(claim, MessageRecord.bot(reply))
        return reply


class HistoryHandler:
    """Return the full stored history of a signed-in user."""

    def __init__(self, verifier: Verifier, store: HistoryStore) -> None:
        self.verifier = verifier
        self.store = store

    async def handle(self, id_token: Any) -> List[MessageRecord]:
        token = _usable_token(id_token)
        claim = await self.verifier.verify(token) if token else None
        if claim is None or not claim.key:
            raise Unauthorized("Invalid token")
        return await run_in_threadpool(self.store.read_all, claim.key)
