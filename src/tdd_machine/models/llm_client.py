"""Chat client base class shared by all language-model integrations."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from tdd_machine.roles import Role

__all__ = [
    "ChatMessage",
    "LLMClient",
    "LLMClientError",
    "LLMConfigurationError",
    "LLMResponseFormatError",
    "LLMRetryError",
    "LLMTransportError",
]

LOGGER = logging.getLogger(__name__)


class LLMClientError(RuntimeError):
    """Base error raised for chat client failures."""


class LLMConfigurationError(LLMClientError):
    """Raised when a client cannot be constructed from the configuration."""


class LLMTransportError(LLMClientError):
    """Raised when the underlying transport fails to return a response."""


class LLMResponseFormatError(LLMClientError):
    """Raised when the provider reply does not contain any message text."""


class LLMRetryError(LLMClientError):
    """Raised after exhausting retries due to repeated transport failures."""


@dataclass(frozen=True, slots=True)
class ChatMessage:
    """Single chat turn sent to the provider."""

    role: str
    content: str

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str) -> "ChatMessage":
        return cls(role="assistant", content=content)

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


class LLMClient:
    """Send chat requests on behalf of an agent role, retrying transport errors."""

    def __init__(self, *, max_attempts: int = 3, retry_delay: float = 0.5) -> None:
        self._max_attempts = max(max_attempts, 1)
        self._retry_delay = retry_delay

    def chat(self, agent_role: Role, messages: Sequence[ChatMessage]) -> str:
        """Return the assistant reply for ``messages``."""
        last_error: Optional[Exception] = None
        attempts = self._max_attempts

        for attempt in range(1, attempts + 1):
            try:
                return self._raw_chat(agent_role, list(messages))
            except LLMTransportError as error:
                last_error = error
                LOGGER.warning(
                    "Chat request for %s failed (attempt %d/%d): %s",
                    agent_role.value,
                    attempt,
                    attempts,
                    error,
                )
                if attempt >= attempts:
                    break
                time.sleep(self._retry_delay)

        raise LLMRetryError(
            f"Chat request for {agent_role.value} failed after {attempts} attempt(s)"
        ) from last_error

    def _raw_chat(self, agent_role: Role, messages: List[ChatMessage]) -> str:
        """Perform the transport call. Subclasses must implement."""
        raise NotImplementedError("Subclasses must implement _raw_chat().")

    @staticmethod
    def _render_messages(messages: Sequence[ChatMessage]) -> List[Dict[str, Any]]:
        return [message.to_payload() for message in messages]
