"""Refactorer agent: restructures production code without touching tests."""

from __future__ import annotations

from tdd_machine.roles import Role

from .base import LLMAgent


class RefactorerAgent(LLMAgent):
    role = Role.REFACTORER


__all__ = ["RefactorerAgent"]
