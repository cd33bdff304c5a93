"""Client for the OpenAI Chat Completions endpoint."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from .errors import ProviderError, TransportError

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "Sorry, I couldn't get a reply."


# -----------------------------
# Types & defaults
# -----------------------------
@dataclass
class GenerationConfig:
    model: str = "gpt-3.5-turbo"
    system_prompt: str = "You are a helpful assistant with a friendly sci-fi persona."
    max_tokens: int = 600
    temperature: float = 0.8


def is_placeholder_key(api_key: Optional[str]) -> bool:
    return not api_key or api_key.startswith("sk-REPLACE")


def extract_reply(data: Any) -> str:
    """Pull ``choices[0].message.content`` out of a response body."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return FALLBACK_REPLY
    if not isinstance(content, str) or not content:
        return FALLBACK_REPLY
    return content


# -----------------------------
# Provider
# -----------------------------
class OpenAIChatCompletion:
    """Send one prompt with a fixed persona and return the generated text."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        api_base: str = "https://api.openai.com/v1",
        generation: Optional[GenerationConfig] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key or ""
        self.url = api_base.rstrip("/") + "/chat/completions"
        self.generation = generation or GenerationConfig()
        self.timeout = timeout
        # Tests hand in an httpx.MockTransport here.
        self._transport = transport

    def _build_body(self, prompt: str) -> Dict[str, Any]:
        g = self.generation
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": g.system_prompt},
            {"role": "user", "content": prompt},
        ]
        return {
            "model": g.model,
            "messages": messages,
            "max_tokens": g.max_tokens,
            "temperature": g.temperature,
        }

    async def complete(self, prompt: str) -> str:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.post(self.url, json=self._build_body(prompt), headers=headers)
        except httpx.HTTPError as e:
            logger.error("Completion request to %s failed: %s", self.url, e)
            raise TransportError("Server error") from e

        if not r.is_success:
            logger.error("OpenAI error: %s %s", r.status_code, r.text)
            raise ProviderError("OpenAI API error", details=r.text)

        try:
            data = r.json()
        except ValueError:
            logger.warning("Completion response was not JSON; using fallback reply")
            return FALLBACK_REPLY
        return extract_reply(data)
