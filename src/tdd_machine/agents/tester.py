"""Tester agent: writes the next failing test."""

from __future__ import annotations

from tdd_machine.roles import Role

from .base import LLMAgent


class TesterAgent(LLMAgent):
    role = Role.TESTER


__all__ = ["TesterAgent"]
