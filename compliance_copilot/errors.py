# compliance_copilot/errors.py

from typing import Optional


class CopilotError(Exception):
    """Base class for every error raised by the copilot."""


# ──────────────────────────────────────────────────────────────────────────────
# Turn failures (always rendered as an assistant message in the thread)
# ──────────────────────────────────────────────────────────────────────────────

class TurnFailure(CopilotError):
    """
    A failure that ends a turn.

    Attributes:
        kind    : Stable tag stored on the synthetic failure message.
        summary : Human-readable text shown to the user.
    """
    kind = "failure"
    summary = "Something went wrong while answering your question."

    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(detail or self.summary)
        self.detail = detail

    def user_message(self) -> str:
        if self.detail:
            return f"{self.summary}\n\nDetails: {self.detail}"
        return self.summary


class NoContext(TurnFailure):
    kind = "no_context"
    summary = "No documents are available for the selected context. Upload a document or change the scope first."


class GatewayError(TurnFailure):
    """Failure raised by the model gateway for a single invocation."""
    kind = "gateway_error"


class AuthenticationFailed(GatewayError):
    kind = "authentication_failed"
    summary = "The model rejected the API key (or none is configured). Check your Gemini API key and try again."


class TransportFailed(GatewayError):
    kind = "transport_failed"
    summary = "Could not reach the model service. Check your connection and try again."


class ContractViolation(GatewayError):
    kind = "contract_violation"
    summary = "The model returned a response in an unexpected format, so it was discarded. Try asking again."


class UpstreamRejected(GatewayError):
    kind = "upstream_rejected"
    summary = "The model declined to answer this question (blocked by its safety or policy filters). Try rephrasing it."


# ──────────────────────────────────────────────────────────────────────────────
# Caller errors (raised to the caller, thread untouched)
# ──────────────────────────────────────────────────────────────────────────────

class ThreadBusy(CopilotError):
    """An edit was requested while the thread has a call outstanding."""


class UnknownMessage(CopilotError):
    """The referenced message id does not exist (or cannot be used) in the thread."""


class NoImaginationThread(CopilotError):
    """A follow-up was requested but no imagination thread is open."""


class UnsupportedDocument(CopilotError):
    """The file type cannot be turned into document text."""
