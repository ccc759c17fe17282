"""Offline client that replays queued responses."""

from __future__ import annotations

from collections import deque
from typing import Iterable, List, Tuple

from tdd_machine.roles import Role

from .llm_client import ChatMessage, LLMClient

__all__ = ["ScriptedLLMClient"]

DEFAULT_RESPONSE = "mock-response"


class ScriptedLLMClient(LLMClient):
    """Return queued replies in order, falling back to a fixed placeholder.

    Every request is recorded in :attr:`calls` so tests can assert on the
    prompts an agent produced.
    """

    def __init__(self, responses: Iterable[str] = ()) -> None:
        super().__init__(max_attempts=1, retry_delay=0.0)
        self._responses = deque(responses)
        self.calls: List[Tuple[Role, List[ChatMessage]]] = []

    def push(self, response: str) -> None:
        self._responses.append(response)

    def extend(self, responses: Iterable[str]) -> None:
        self._responses.extend(responses)

    @property
    def remaining(self) -> int:
        return len(self._responses)

    def _raw_chat(self, agent_role: Role, messages: List[ChatMessage]) -> str:
        self.calls.append((agent_role, list(messages)))
        if self._responses:
            return self._responses.popleft()
        return DEFAULT_RESPONSE
