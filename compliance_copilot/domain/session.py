# compliance_copilot/domain/session.py

import logging
from dataclasses import dataclass
from typing import Optional

from compliance_copilot.domain.documents import SCOPE_ALL

_log = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only copy of the session taken at call time."""
    scope: str
    credential: Optional[str]
    model: str

    def __repr__(self) -> str:
        # Keep the credential out of reprs (and therefore out of logs).
        return f"SessionSnapshot(scope={self.scope!r}, model={self.model!r}, credential={'set' if self.credential else 'missing'})"


class SessionContext:
    """
    Mutable per-session state: document scope, credential and model choice.

    Only user actions mutate it; the conversation engine takes a snapshot
    whenever it issues a call.
    """

    def __init__(
        self,
        credential: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        scope: str = SCOPE_ALL,
    ) -> None:
        self._credential = credential
        self._model = model
        self._scope = scope or SCOPE_ALL

    def get_credential(self) -> Optional[str]:
        return self._credential

    def get_model(self) -> str:
        return self._model

    def get_scope(self) -> str:
        return self._scope

    def set_credential(self, credential: Optional[str]) -> None:
        self._credential = credential or None
        _log.info("Session credential %s.", "updated" if self._credential else "cleared")

    def set_model(self, model: str) -> None:
        self._model = model
        _log.info("Session model set to %s", model)

    def set_scope(self, scope: Optional[str]) -> None:
        self._scope = scope or SCOPE_ALL
        _log.info("Session scope set to %s", self._scope)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(scope=self._scope, credential=self._credential, model=self._model)

    def __repr__(self) -> str:
        return f"SessionContext(scope={self._scope!r}, model={self._model!r})"
