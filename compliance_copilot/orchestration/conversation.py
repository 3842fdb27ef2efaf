# compliance_copilot/orchestration/conversation.py
"""
Conversation engine: the primary (document-grounded) thread, the imagination
side-thread, edit-and-replay, and escalation between the two answer paths.

Each thread is Idle or Submitting. A turn holds the thread's lock from the
moment its user message is appended until its assistant message (answer or
failure) is appended, so turns on one thread never interleave. Submissions
made while a turn is running wait their turn; edits are refused.
"""

import logging
from typing import Iterable, Optional, Tuple, Union

from compliance_copilot.backends.error_mapping import classify_exception
from compliance_copilot.backends.model_gateway import ModelGateway
from compliance_copilot.domain.documents import DocumentStore, render_documents
from compliance_copilot.domain.messages import (
    EscalationOffer,
    Message,
    Role,
    Thread,
    ThreadKind,
    ThreadStatus,
)
from compliance_copilot.domain.session import SessionContext
from compliance_copilot.errors import (
    ContractViolation,
    NoContext,
    NoImaginationThread,
    ThreadBusy,
    TurnFailure,
    UnknownMessage,
)
from compliance_copilot.orchestration.contracts import (
    ContractKind,
    GroundedAnswer,
    GroundedQuestion,
    OpenKnowledgeAnswer,
    OpenKnowledgeQuestion,
)

_log = logging.getLogger(__name__)

DEFAULT_ESCALATION_TEXT = (
    "I couldn't find this in your documents. Would you like me to try answering "
    "from general knowledge (Imagination)?"
)


def render_history(messages: Iterable[Message]) -> str:
    """Render turns as alternating role-labelled lines; failure notices are skipped."""
    lines = []
    for msg in messages:
        if msg.is_failure:
            continue
        label = "User" if msg.role is Role.USER else "Assistant"
        lines.append(f"{label}: {msg.content}")
    return "\n".join(lines)


def _clean(text: str, what: str = "Question") -> str:
    text = (text or "").strip()
    if not text:
        raise ValueError(f"{what} must not be empty.")
    return text


class ConversationEngine:
    """
    Owns the conversation threads and routes turns to the model gateway.

    Args:
        documents: The session's document store (read at call time).
        session: The session context (scope / credential / model snapshot per call).
        gateway: Model gateway used for every call.
    """

    def __init__(
        self,
        documents: DocumentStore,
        session: SessionContext,
        gateway: ModelGateway,
    ) -> None:
        self.documents = documents
        self.session = session
        self.gateway = gateway
        self._primary = Thread(ThreadKind.PRIMARY)
        self._imagination: Optional[Thread] = None

    # ──────────────────────────────────────────────────────────────────────────
    # Read side (presentation boundary)
    # ──────────────────────────────────────────────────────────────────────────
    def thread(self, kind: Union[ThreadKind, str]) -> Optional[Thread]:
        kind = ThreadKind(kind)
        return self._primary if kind is ThreadKind.PRIMARY else self._imagination

    def messages(self, kind: Union[ThreadKind, str] = ThreadKind.PRIMARY) -> Tuple[Message, ...]:
        thread = self.thread(kind)
        return thread.messages() if thread is not None else ()

    def status(self, kind: Union[ThreadKind, str] = ThreadKind.PRIMARY) -> ThreadStatus:
        thread = self.thread(kind)
        return thread.status if thread is not None else ThreadStatus.IDLE

    @property
    def imagination_topic(self) -> Optional[str]:
        return self._imagination.topic if self._imagination is not None else None

    def latest_escalation_offer(self) -> Optional[Message]:
        """The last primary message, when it is an unanswered lookup offering escalation."""
        msgs = self._primary.messages()
        if msgs and msgs[-1].escalation_offer is not None:
            return msgs[-1]
        return None

    def reset(self) -> None:
        """Start over with empty threads."""
        _log.info("Resetting conversation threads.")
        self._primary = Thread(ThreadKind.PRIMARY)
        self._imagination = None

    # ──────────────────────────────────────────────────────────────────────────
    # Operations
    # ──────────────────────────────────────────────────────────────────────────
    async def submit_primary(self, question: str) -> Message:
        """Ask a document-grounded question; returns the appended assistant message."""
        question = _clean(question)
        thread = self._primary
        async with thread.turn():
            thread.append_user(question)
            return await self._answer_grounded(thread, question)

    async def edit_and_resubmit(
        self,
        thread_kind: Union[ThreadKind, str],
        message_id: int,
        new_content: str,
    ) -> Message:
        """
        Replace a user turn and replay it.

        Everything from `message_id` onwards is dropped, the edited question is
        appended as a new message, and it is answered on the thread's own path.
        """
        new_content = _clean(new_content)
        thread = self.thread(thread_kind)
        if thread is None:
            raise NoImaginationThread("There is no imagination thread to edit.")
        if thread.status is ThreadStatus.SUBMITTING:
            raise ThreadBusy(f"The {thread.kind.value} thread is still waiting for a reply.")

        _, target = thread.find(message_id)
        if not target.is_user:
            raise UnknownMessage(f"Message {message_id} is not a user message and cannot be edited.")

        async with thread.turn():
            dropped = thread.truncate_from(message_id)
            _log.info(
                "Editing message %s in %s thread; dropped %d message(s).",
                message_id, thread.kind.value, len(dropped),
            )
            history = render_history(thread.messages())
            thread.append_user(new_content)
            if thread.kind is ThreadKind.PRIMARY:
                return await self._answer_grounded(thread, new_content)
            return await self._answer_open(thread, new_content, history or None)

    async def escalate(
        self,
        question: str,
        prior_history: Optional[Iterable[Message]] = None,
    ) -> Message:
        """
        Open a fresh imagination thread for `question` (the previous one is discarded).
        """
        question = _clean(question)
        thread = Thread(ThreadKind.IMAGINATION, topic=question)
        if self._imagination is not None:
            _log.info("Discarding previous imagination thread (%d message(s)).", len(self._imagination))
        self._imagination = thread

        async with thread.turn():
            thread.append_user(question)
            history = render_history(prior_history) if prior_history else ""
            return await self._answer_open(thread, question, history or None)

    async def escalate_from(self, message_id: int) -> Message:
        """Escalate the question answered by an assistant message of the primary thread."""
        _, msg = self._primary.find(message_id)
        if msg.is_user or not msg.originating_question:
            raise UnknownMessage(f"Message {message_id} does not answer a question.")
        return await self.escalate(msg.originating_question)

    async def submit_imagination_followup(self, question: str) -> Message:
        """Continue the open imagination thread."""
        question = _clean(question)
        thread = self._imagination
        if thread is None:
            raise NoImaginationThread("Open an imagination thread before asking a follow-up.")
        async with thread.turn():
            history = render_history(thread.messages())
            thread.append_user(question)
            return await self._answer_open(thread, question, history or None)

    # ──────────────────────────────────────────────────────────────────────────
    # Turn resolution (always ends with exactly one appended assistant message)
    # ──────────────────────────────────────────────────────────────────────────
    async def _answer_grounded(self, thread: Thread, question: str) -> Message:
        snapshot = self.session.snapshot()
        docs = self.documents.list_for_scope(snapshot.scope)
        if not docs:
            _log.warning("No documents in scope %r; refusing grounded call.", snapshot.scope)
            return self._append_failure(thread, NoContext(), question)

        payload = GroundedQuestion(documents=render_documents(docs), question=question)
        try:
            answer = await self.gateway.invoke(ContractKind.GROUNDED_QA, payload, snapshot)
        except Exception as exc:
            return self._append_failure(thread, exc, question)

        if not isinstance(answer, GroundedAnswer):
            mismatch = ContractViolation(f"Expected a grounded answer, got {type(answer).__name__}.")
            return self._append_failure(thread, mismatch, question)
        offer = None
        if not answer.answer_found:
            text = (answer.escalation_message or "").strip() or DEFAULT_ESCALATION_TEXT
            offer = EscalationOffer(suggestion_text=text)

        _log.info("Grounded answer settled (answer_found=%s).", answer.answer_found)
        return thread.append_assistant(
            answer.answer,
            implementation=answer.implementation,
            answer_found=answer.answer_found,
            escalation_offer=offer,
            originating_question=question,
            documentation_url=answer.documentation_url,
        )

    async def _answer_open(self, thread: Thread, question: str, history: Optional[str]) -> Message:
        snapshot = self.session.snapshot()
        docs = self.documents.list_for_scope(snapshot.scope)
        payload = OpenKnowledgeQuestion(
            question=question,
            documents=render_documents(docs) if docs else None,
            history=history,
        )
        try:
            answer = await self.gateway.invoke(ContractKind.OPEN_KNOWLEDGE, payload, snapshot)
        except Exception as exc:
            return self._append_failure(thread, exc, question)

        if not isinstance(answer, OpenKnowledgeAnswer):
            mismatch = ContractViolation(f"Expected an open-knowledge answer, got {type(answer).__name__}.")
            return self._append_failure(thread, mismatch, question)
        _log.info("Imagination answer settled.")
        return thread.append_assistant(answer.answer, originating_question=question)

    def _append_failure(self, thread: Thread, exc: Exception, question: str) -> Message:
        failure = exc if isinstance(exc, TurnFailure) else classify_exception(exc)
        if failure is exc:
            _log.warning("Turn failed on %s thread: %s", thread.kind.value, failure.kind)
        else:
            _log.error("Unexpected error on %s thread: %s", thread.kind.value, exc, exc_info=True)
        return thread.append_assistant(
            failure.user_message(),
            failure=failure.kind,
            originating_question=question,
        )
