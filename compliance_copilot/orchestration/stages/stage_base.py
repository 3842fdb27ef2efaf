# compliance_copilot/orchestration/stages/stage_base.py

import logging
from abc import ABC, abstractmethod
from functools import lru_cache
from pathlib import Path

from langchain_core.runnables import RunnableConfig

from compliance_copilot.orchestration.session_state import FlowState

_log = logging.getLogger(__name__)

# Shipped as package data next to the orchestration modules
INSTRUCTIONS_DIR = Path(__file__).resolve().parents[1] / "instructions"


@lru_cache(maxsize=None)
def load_prompt(template_name: str) -> str:
    """
    Read a contract prompt template; cached for the life of the process.

    Raises:
        FileNotFoundError: no template with that name is packaged.
    """
    path = INSTRUCTIONS_DIR / template_name
    if not path.is_file():
        _log.error("Prompt template not found: %s", path)
        raise FileNotFoundError(f"Prompt template not found: {template_name}")
    _log.info("Loading prompt template: %s", template_name)
    return path.read_text(encoding="utf-8")


class BaseNode(ABC):
    """
    Abstract base for contract-graph stages.

    Stages receive the run config so per-call resources (the chat model)
    never live on the compiled graph.
    """

    def _load_prompt(self, template_name: str) -> str:
        return load_prompt(template_name)

    @abstractmethod
    async def __call__(self, state: FlowState, config: RunnableConfig) -> FlowState:
        """Return the state keys this stage updates."""
        raise NotImplementedError("Stages must implement __call__")
