"""Agents that act on the workspace, one per role."""

from pathlib import Path
from typing import Dict

from tdd_machine.models.llm_client import LLMClient
from tdd_machine.roles import Role

from .base import Agent, LLMAgent
from .implementor import ImplementorAgent
from .refactorer import RefactorerAgent
from .tester import TesterAgent

AGENT_CLASSES = {
    Role.TESTER: TesterAgent,
    Role.IMPLEMENTOR: ImplementorAgent,
    Role.REFACTORER: RefactorerAgent,
}


def build_agents(client: LLMClient, root: Path) -> Dict[Role, Agent]:
    """Create the role-keyed registry of model-backed agents sharing ``client``."""
    return {role: agent_cls(client, root) for role, agent_cls in AGENT_CLASSES.items()}


__all__ = [
    "AGENT_CLASSES",
    "Agent",
    "ImplementorAgent",
    "LLMAgent",
    "RefactorerAgent",
    "TesterAgent",
    "build_agents",
]
