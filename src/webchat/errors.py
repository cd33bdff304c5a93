"""Error types surfaced by the chat backend.

Every error carries the HTTP status it maps to so the server can render it
as ``{"error": message}`` (plus ``details`` when present) without a lookup
table.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ChatError(Exception):
    status_code: int = 500

    def __init__(self, message: str, *, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class InvalidInput(ChatError):
    """Request body is missing a field or has the wrong type."""
    status_code = 400


class Unauthorized(ChatError):
    """History access without a verified identity."""
    status_code = 401


class ProviderError(ChatError):
    """Completion API answered with a non-success status."""
    status_code = 502


class StorageError(ChatError):
    """History file could not be read back."""
    status_code = 500


class TransportError(ChatError):
    """Network failure talking to an upstream service."""
    status_code = 500
