# compliance_copilot/orchestration/stages/responder.py

import asyncio
import logging
from typing import Any, Optional

from langchain_core.runnables import RunnableConfig

from compliance_copilot.backends.error_mapping import blocked_reason, classify_exception
from compliance_copilot.errors import TransportFailed, UpstreamRejected
from compliance_copilot.orchestration.session_state import FlowState
from compliance_copilot.orchestration.stages.stage_base import BaseNode

_log = logging.getLogger(__name__)


class GenerateNode(BaseNode):
    """
    Sends the composed prompt to the chat model carried in the run config.

    Exactly one model call is made; failures are raised as gateway errors.
    """

    async def __call__(self, state: FlowState, config: RunnableConfig) -> FlowState:
        configurable = (config or {}).get("configurable", {})
        llm: Any = configurable.get("llm")
        timeout: Optional[float] = configurable.get("timeout")
        if llm is None:
            raise TransportFailed("No chat model was supplied for this call.")

        _log.info("Dispatching %s prompt to the chat model.", state["contract_kind"])
        try:
            call = llm.ainvoke(state["prompt"])
            reply = await asyncio.wait_for(call, timeout) if timeout else await call
        except Exception as exc:
            mapped = classify_exception(exc)
            _log.error("Chat model call failed (%s): %s", mapped.kind, exc, exc_info=True)
            raise mapped from exc

        reason = blocked_reason(reply)
        if reason:
            _log.warning("Chat model withheld its reply (reason=%s).", reason)
            raise UpstreamRejected(f"Blocked by the model (reason: {reason}).")

        _log.info("Chat model replied.")
        return {"reply": reply}
