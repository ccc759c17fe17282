"""Implementor agent: makes the failing test pass with a small source change."""

from __future__ import annotations

from tdd_machine.roles import Role

from .base import LLMAgent


class ImplementorAgent(LLMAgent):
    role = Role.IMPLEMENTOR


__all__ = ["ImplementorAgent"]
