# compliance_copilot/orchestration/stages/composer.py

import logging
from typing import Any, Dict, cast

from langchain_core.prompts import ChatPromptTemplate
from langchain_core.runnables import RunnableConfig

from compliance_copilot.orchestration.contracts import (
    Contract,
    ContractKind,
    GroundedQuestion,
    OpenKnowledgeQuestion,
    get_contract,
)
from compliance_copilot.orchestration.session_state import FlowState
from compliance_copilot.orchestration.stages.stage_base import BaseNode

_log = logging.getLogger(__name__)

QUESTION_TEMPLATE = 'Now, answer this user question: "{question}"'


class ComposeNode(BaseNode):
    """
    Renders the contract's prompt template into chat messages.
    """

    def build_template(self, contract: Contract) -> ChatPromptTemplate:
        system_prompt = self._load_prompt(contract.template_name)
        return ChatPromptTemplate.from_messages(
            [
                ("system", system_prompt),
                ("human", QUESTION_TEMPLATE),
            ]
        )

    def template_variables(self, contract: Contract, payload: Any) -> Dict[str, str]:
        variables = {
            "question": payload.question,
            "format_instructions": contract.format_instructions(),
        }
        if contract.kind is ContractKind.GROUNDED_QA:
            variables["documents"] = cast(GroundedQuestion, payload).documents
            return variables

        open_q = cast(OpenKnowledgeQuestion, payload)
        variables["history_block"] = (
            f"\nCONVERSATION HISTORY:\n---\n{open_q.history}\n---\n" if open_q.history else ""
        )
        variables["documents_block"] = (
            f"\nCOMPLIANCE DOCUMENTS:\n---\n{open_q.documents}\n---\n" if open_q.documents else ""
        )
        return variables

    async def __call__(self, state: FlowState, config: RunnableConfig) -> FlowState:
        contract = get_contract(state["contract_kind"])
        _log.info("Composing %s prompt (contract v%s).", contract.kind.value, contract.version)
        template = self.build_template(contract)
        prompt = template.format_messages(**self.template_variables(contract, state["payload"]))
        _log.debug("Prompt composed with %d messages.", len(prompt))
        return {"prompt": prompt}
