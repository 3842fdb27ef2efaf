# compliance_copilot/backends/error_mapping.py

import asyncio
import logging
from typing import Any, Iterator, Optional

import httpx
from langchain_core.messages import AIMessage

from compliance_copilot.errors import (
    AuthenticationFailed,
    GatewayError,
    TransportFailed,
    UpstreamRejected,
)

_log = logging.getLogger(__name__)

# Gemini finish reasons that mean the model refused to produce an answer
BLOCKING_FINISH_REASONS = {
    "SAFETY",
    "BLOCKLIST",
    "PROHIBITED_CONTENT",
    "SPII",
    "RECITATION",
    "IMAGE_SAFETY",
}

_UNSET_BLOCK_REASONS = {"", "0", "BLOCK_REASON_UNSPECIFIED", "NONE"}

_AUTH_HINTS = ("api key not valid", "api_key_invalid", "invalid api key", "api key expired", "unauthenticated")
_BLOCK_HINTS = ("blocked", "safety", "prohibited content")


def _chain(exc: BaseException) -> Iterator[BaseException]:
    """Walk an exception and its causes (bounded, cycle-safe)."""
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen and len(seen) < 8:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _status_code(exc: BaseException) -> Optional[int]:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    for attr in ("status_code", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    return None


def classify_exception(exc: BaseException) -> GatewayError:
    """
    Map an exception raised by the chat model client onto the gateway taxonomy.

    Anything that is not recognisably an authentication or policy failure is
    reported as a transport failure.
    """
    if isinstance(exc, GatewayError):
        return exc

    for link in _chain(exc):
        code = _status_code(link)
        text = str(link).lower()
        if code in (401, 403) or any(h in text for h in _AUTH_HINTS):
            return AuthenticationFailed("The API key was rejected by the model service.")
        if any(h in text for h in _BLOCK_HINTS):
            return UpstreamRejected(str(link)[:300])
        if isinstance(link, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)):
            return TransportFailed("The request to the model timed out.")

    code = _status_code(exc)
    if code is not None:
        return TransportFailed(f"The model service responded with HTTP {code}.")
    return TransportFailed(f"{type(exc).__name__}: {str(exc)[:300]}")


def blocked_reason(reply: Any) -> Optional[str]:
    """Return the block / finish reason when the reply was withheld by policy, else None."""
    if not isinstance(reply, AIMessage):
        return None
    meta = reply.response_metadata or {}

    finish = str(meta.get("finish_reason") or "").upper()
    # Enum reprs look like 'FinishReason.SAFETY'
    finish = finish.rsplit(".", 1)[-1]
    if finish in BLOCKING_FINISH_REASONS:
        return finish

    feedback = meta.get("prompt_feedback") or {}
    if isinstance(feedback, dict):
        block = str(feedback.get("block_reason") or "").upper().rsplit(".", 1)[-1]
        if block not in _UNSET_BLOCK_REASONS:
            return block
    return None
