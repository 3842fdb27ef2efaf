# compliance_copilot/domain/documents.py

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

_log = logging.getLogger(__name__)

SCOPE_ALL = "all"


@dataclass(frozen=True)
class Document:
    """A parsed user document. `name` is unique within a session."""
    name: str
    content: str


class DocumentStore:
    """
    In-memory holder of the session's documents.

    - Keeps insertion order (used as the concatenation order)
    - Re-adding an existing name replaces that document in place
    - Resolves a scope ('all' or a document name) to the documents it covers
    """

    def __init__(self, documents: Optional[Iterable[Document]] = None) -> None:
        self._docs: Dict[str, Document] = {}
        for doc in documents or ():
            self._docs[doc.name] = doc

    def add(self, name: str, content: str) -> Document:
        name = name.strip()
        if not name:
            raise ValueError("Document name must not be empty.")
        doc = Document(name=name, content=content)
        if name in self._docs:
            _log.info("Replacing existing document: %s", name)
        else:
            _log.info("Adding document: %s (%d chars)", name, len(content))
        self._docs[name] = doc
        return doc

    def remove(self, name: str) -> bool:
        """Delete a document; returns False when the name is unknown."""
        removed = self._docs.pop(name, None)
        if removed is None:
            _log.warning("Cannot remove unknown document: %s", name)
            return False
        _log.info("Removed document: %s", name)
        return True

    def get(self, name: str) -> Optional[Document]:
        return self._docs.get(name)

    def names(self) -> List[str]:
        return list(self._docs)

    def clear(self) -> None:
        self._docs.clear()

    def list_for_scope(self, scope: str) -> List[Document]:
        """
        Return the documents covered by `scope`.

        A scope naming a document that no longer exists falls back to 'all'.
        """
        if scope and scope != SCOPE_ALL:
            doc = self._docs.get(scope)
            if doc is not None:
                return [doc]
            _log.info("Scope %r no longer exists; falling back to all documents.", scope)
        return list(self._docs.values())

    def __len__(self) -> int:
        return len(self._docs)

    def __contains__(self, name: object) -> bool:
        return name in self._docs


def render_documents(documents: Iterable[Document]) -> str:
    """Concatenate document contents, each prefixed by a name delimiter."""
    blocks = [f"--- Document: {doc.name} ---\n{doc.content.strip()}" for doc in documents]
    return "\n\n".join(blocks)
