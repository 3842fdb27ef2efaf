# compliance_copilot/backends/model_gateway.py

import logging
from typing import Any, Callable, Dict, Optional, Union

from langchain_core.runnables import Runnable
from langchain_google_genai import ChatGoogleGenerativeAI
from pydantic import BaseModel

from compliance_copilot.boot.load_settings import AppConfigLoader
from compliance_copilot.domain.session import DEFAULT_MODEL, SessionContext, SessionSnapshot
from compliance_copilot.errors import AuthenticationFailed, ContractViolation, GatewayError
from compliance_copilot.backends.error_mapping import classify_exception
from compliance_copilot.orchestration.build_flow import get_graph
from compliance_copilot.orchestration.contracts import ContractKind, coerce_input, get_contract

_log = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.25
DEFAULT_TIMEOUT = 120.0

LLMFactory = Callable[[SessionSnapshot, Dict[str, Any]], Runnable]


def build_chat_model(snapshot: SessionSnapshot, agent_cfg: Dict[str, Any]) -> Runnable:
    """
    Build the Gemini chat model for one call from the session's key and model.
    """
    model_name = snapshot.model or agent_cfg.get("llm_model", DEFAULT_MODEL)
    temperature = agent_cfg.get("temperature", DEFAULT_TEMPERATURE)
    _log.info("Creating Gemini client: model=%s temperature=%s", model_name, temperature)
    return ChatGoogleGenerativeAI(
        model=model_name,
        temperature=temperature,
        api_key=snapshot.credential,
        # Single attempt: retries are the caller's decision.
        max_retries=1,
    )


class ModelGateway:
    """
    Single-call bridge between a contract input and a validated contract output.

    - Attaches the caller's credential and model from the session snapshot
    - Runs the compose -> generate -> finalize graph (one model call)
    - Raises AuthenticationFailed / TransportFailed / ContractViolation /
      UpstreamRejected; never retries, never caches
    """

    def __init__(
        self,
        agent_config: Optional[Dict[str, Any]] = None,
        llm_factory: Optional[LLMFactory] = None,
    ) -> None:
        if agent_config is None:
            agent_config = AppConfigLoader().get_config().get("agent", {})
        self._agent_cfg = dict(agent_config)
        self._llm_factory = llm_factory or build_chat_model

    @property
    def timeout(self) -> Optional[float]:
        value = self._agent_cfg.get("request_timeout", DEFAULT_TIMEOUT)
        return float(value) if value else None

    async def invoke(
        self,
        contract_kind: ContractKind,
        contract_input: Union[BaseModel, Dict[str, Any]],
        session: Union[SessionContext, SessionSnapshot],
    ) -> BaseModel:
        """
        Execute one contract call.

        Args:
            contract_kind: Which contract (grounded or open-knowledge) to use.
            contract_input: Contract input model or an equivalent mapping.
            session: Live session context or a snapshot of it.

        Returns:
            The validated output model (GroundedAnswer / OpenKnowledgeAnswer).
        """
        contract = get_contract(contract_kind)
        snapshot = session.snapshot() if isinstance(session, SessionContext) else session

        # Malformed caller input raises pydantic.ValidationError (a ValueError)
        payload = coerce_input(contract.kind, contract_input)

        if not snapshot.credential:
            _log.warning("Refusing %s call: no API key configured.", contract.kind.value)
            raise AuthenticationFailed("No API key is configured for this session.")

        _log.info(
            "Invoking %s contract v%s with model %s.",
            contract.kind.value, contract.version, snapshot.model,
        )
        try:
            llm = self._llm_factory(snapshot, self._agent_cfg)
            final_state = await get_graph().ainvoke(
                {"contract_kind": contract.kind.value, "payload": payload},
                config={"configurable": {"llm": llm, "timeout": self.timeout}},
            )
        except GatewayError:
            raise
        except Exception as exc:
            mapped = classify_exception(exc)
            _log.error("Unexpected %s gateway failure: %s", contract.kind.value, exc, exc_info=True)
            raise mapped from exc

        output = final_state.get("output")
        if output is None:
            raise ContractViolation("The model produced no output.")
        return output
