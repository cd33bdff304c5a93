"""Google ID token verification."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi.concurrency import run_in_threadpool
from google.auth.exceptions import GoogleAuthError
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token

logger = logging.getLogger(__name__)


def is_placeholder_client_id(client_id: Optional[str]) -> bool:
    return not client_id or client_id.startswith("REPLACE")


@dataclass(frozen=True)
class IdentityClaim:
    subject: str
    email: Optional[str] = None

    @property
    def key(self) -> str:
        """History lookup key: the email, or the subject when no email is present."""
        return self.email or self.subject

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "IdentityClaim":
        return cls(subject=str(payload.get("sub") or ""), email=payload.get("email") or None)


class GoogleIdentityVerifier:
    """Turn an opaque Google ID token into an :class:`IdentityClaim`.

    ``verify`` never raises: a missing token, a placeholder client id, a bad
    or expired token and a failure to fetch Google's certificates all come
    back as ``None``.
    """

    def __init__(self, client_id: Optional[str]) -> None:
        self.client_id = client_id or ""
        self._request = google_requests.Request()

    async def verify(self, token: Optional[str]) -> Optional[IdentityClaim]:
        if not token or not isinstance(token, str):
            return None
        if is_placeholder_client_id(self.client_id):
            logger.warning("Google client id is a placeholder; token verification will fail until replaced.")
            return None
        try:
            payload = await run_in_threadpool(
                google_id_token.verify_oauth2_token, token, self._request, self.client_id
            )
        except (ValueError, GoogleAuthError) as e:
            logger.warning("Google token verification failed: %s", e)
            return None
        return IdentityClaim.from_payload(payload or {})
