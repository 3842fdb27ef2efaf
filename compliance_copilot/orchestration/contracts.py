# compliance_copilot/orchestration/contracts.py
"""
Request/response contracts for the two model operations.

- GroundedQA     : answer strictly from the supplied documents, plus a
                   multi-cloud implementation guide.
- OpenKnowledge  : "imagination" answer from general knowledge, optionally
                   informed by documents and the imagination thread history.

Replies are validated against the output models; anything that does not
conform is a ContractViolation and is never partially accepted.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from langchain_core.exceptions import OutputParserException
from langchain_core.output_parsers import PydanticOutputParser
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, model_validator

from compliance_copilot.errors import ContractViolation

_log = logging.getLogger(__name__)

CONTRACT_VERSION = "1"

PROVIDERS = ("gcp", "aws", "azure")


class ContractKind(str, Enum):
    GROUNDED_QA = "grounded_qa"
    OPEN_KNOWLEDGE = "open_knowledge"


# ──────────────────────────────────────────────────────────────────────────────
# Output shapes
# ──────────────────────────────────────────────────────────────────────────────

class ImplementationStep(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    title: StrictStr = Field(description="A clear, concise title for the implementation step.")
    instruction: StrictStr = Field(
        description="An executable CLI command or a clear, actionable description of console steps."
    )
    best_practice: Optional[StrictStr] = Field(
        default=None,
        alias="bestPractice",
        description="A best practice or important consideration for this step.",
    )
    reference_url: Optional[StrictStr] = Field(
        default=None,
        alias="referenceUrl",
        description="Official provider documentation URL relevant to this step.",
    )


class ImplementationGuide(BaseModel):
    model_config = ConfigDict(frozen=True)

    gcp: Optional[List[ImplementationStep]] = Field(default=None, description="Steps for Google Cloud Platform.")
    aws: Optional[List[ImplementationStep]] = Field(default=None, description="Steps for Amazon Web Services.")
    azure: Optional[List[ImplementationStep]] = Field(default=None, description="Steps for Microsoft Azure.")

    def steps_for(self, provider: str) -> List[ImplementationStep]:
        return list(getattr(self, provider, None) or [])

    def providers(self) -> List[str]:
        """Providers that have at least one step, in display order."""
        return [p for p in PROVIDERS if self.steps_for(p)]

    def is_empty(self) -> bool:
        return not self.providers()


class GroundedAnswer(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    answer_found: StrictBool = Field(
        alias="answerFound",
        description="Whether a direct answer was found in the provided documents.",
    )
    answer: StrictStr = Field(
        description="Markdown answer based only on the provided documents, or a statement that it was not found."
    )
    implementation: Optional[ImplementationGuide] = Field(
        default=None,
        description="Implementation steps or best practices for GCP, AWS and Azure.",
    )
    suggests_escalation: Optional[StrictBool] = Field(
        default=None,
        alias="suggestsEscalation",
        description="True when answering from general knowledge is suggested.",
    )
    escalation_message: Optional[StrictStr] = Field(
        default=None,
        alias="escalationMessage",
        description="Short message inviting the user to try a general-knowledge answer.",
    )
    documentation_url: Optional[StrictStr] = Field(
        default=None,
        alias="documentationUrl",
        description="A single highly relevant cloud provider documentation URL.",
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_empty_guide(cls, data: Any) -> Any:
        # A guide with no steps for any provider is reported as absent.
        if isinstance(data, dict):
            guide = data.get("implementation")
            if isinstance(guide, dict) and not any(guide.get(p) for p in PROVIDERS):
                data = {k: v for k, v in data.items() if k != "implementation"}
        return data


class OpenKnowledgeAnswer(BaseModel):
    model_config = ConfigDict(frozen=True)

    answer: StrictStr = Field(description="Markdown answer drawing on any knowledge source.")


# ──────────────────────────────────────────────────────────────────────────────
# Input shapes
# ──────────────────────────────────────────────────────────────────────────────

class GroundedQuestion(BaseModel):
    documents: str
    question: str


class OpenKnowledgeQuestion(BaseModel):
    question: str
    documents: Optional[str] = None
    history: Optional[str] = None


# ──────────────────────────────────────────────────────────────────────────────
# Registry
# ──────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Contract:
    kind: ContractKind
    input_model: Type[BaseModel]
    output_model: Type[BaseModel]
    template_name: str
    version: str = CONTRACT_VERSION

    @property
    def parser(self) -> PydanticOutputParser:
        return PydanticOutputParser(pydantic_object=self.output_model)

    def format_instructions(self) -> str:
        return self.parser.get_format_instructions()


CONTRACTS: Dict[ContractKind, Contract] = {
    ContractKind.GROUNDED_QA: Contract(
        kind=ContractKind.GROUNDED_QA,
        input_model=GroundedQuestion,
        output_model=GroundedAnswer,
        template_name="grounded_qa.md",
    ),
    ContractKind.OPEN_KNOWLEDGE: Contract(
        kind=ContractKind.OPEN_KNOWLEDGE,
        input_model=OpenKnowledgeQuestion,
        output_model=OpenKnowledgeAnswer,
        template_name="open_knowledge.md",
    ),
}


def get_contract(kind: ContractKind) -> Contract:
    return CONTRACTS[ContractKind(kind)]


def coerce_input(kind: ContractKind, payload: object) -> BaseModel:
    """Accept either the contract's input model or a plain mapping."""
    contract = get_contract(kind)
    if isinstance(payload, contract.input_model):
        return payload
    if isinstance(payload, BaseModel):
        raise TypeError(
            f"{type(payload).__name__} is not a valid input for contract {contract.kind.value}"
        )
    return contract.input_model.model_validate(payload)


def validate_output(kind: ContractKind, text: str) -> BaseModel:
    """
    Parse a raw model reply and validate it against the contract output.

    Raises:
        ContractViolation: reply is not JSON or does not match the schema.
    """
    contract = get_contract(kind)
    if not isinstance(text, str) or not text.strip():
        raise ContractViolation("The model returned an empty response.")
    try:
        return contract.parser.parse(text)
    except OutputParserException as exc:
        _log.warning("Reply failed %s v%s validation: %s", contract.kind.value, contract.version, exc)
        raise ContractViolation(_short_reason(exc)) from exc


def _short_reason(exc: Exception) -> str:
    first = str(exc).strip().splitlines()
    return first[0][:300] if first else type(exc).__name__
