# compliance_copilot/orchestration/session_state.py

from typing import TypedDict, Optional, Any, List

from langchain_core.messages import AIMessage, BaseMessage
from pydantic import BaseModel


class FlowState(TypedDict, total=False):
    """
    Scratchpad for one model invocation flowing through the contract graph.

    Keys:
        contract_kind : ContractKind value selecting schema + prompt template.
        payload       : Validated contract input (GroundedQuestion / OpenKnowledgeQuestion).
        prompt        : Chat messages rendered from the template (set by 'compose').
        reply         : Raw model reply (set by 'generate').
        output        : Validated contract output (set by 'finalize').
    """
    contract_kind: str
    payload: BaseModel
    prompt: List[BaseMessage]
    reply: AIMessage
    output: Optional[Any]
