# compliance_copilot/orchestration/build_flow.py

import logging
from typing import Any, Optional

from langchain_core.messages import AIMessage
from langgraph.graph import END, StateGraph

from compliance_copilot.orchestration.contracts import validate_output
from compliance_copilot.orchestration.session_state import FlowState
from compliance_copilot.orchestration.stages.composer import ComposeNode
from compliance_copilot.orchestration.stages.responder import GenerateNode

_log = logging.getLogger(__name__)

# Module-level singleton for the compiled graph
_GRAPH_SINGLETON: Optional[Any] = None


def reply_text(reply: Any) -> str:
    """Flatten a chat reply's content (plain string or list of parts) into text."""
    content = reply.content if isinstance(reply, AIMessage) else reply
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type", "text") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts)
    return "" if content is None else str(content)


def _finalize(state: FlowState) -> FlowState:
    """Validate the raw reply against the contract output (all-or-nothing)."""
    output = validate_output(state["contract_kind"], reply_text(state.get("reply")))
    _log.info("Reply conforms to the %s contract.", state["contract_kind"])
    return {"output": output}


def build_graph() -> Any:
    """
    Assemble and compile the single-call contract graph:

        compose -> generate -> finalize -> END
    """
    _log.info("Composing contract graph ...")

    g = StateGraph(FlowState)

    g.add_node("compose", ComposeNode())
    g.add_node("generate", GenerateNode())
    g.add_node("finalize", _finalize)

    g.add_edge("compose", "generate")
    g.add_edge("generate", "finalize")
    g.add_edge("finalize", END)

    g.set_entry_point("compose")

    # No checkpointer: conversation state lives in the engine, not the graph
    graph = g.compile()

    _log.info("Contract graph compiled successfully.")
    return graph


def get_graph() -> Any:
    """
    Retrieve or build the contract graph (singleton).
    """
    global _GRAPH_SINGLETON
    if _GRAPH_SINGLETON is None:
        _log.info("Constructing contract graph (singleton).")
        _GRAPH_SINGLETON = build_graph()
    return _GRAPH_SINGLETON
