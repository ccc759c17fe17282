"""Convenience exports for tdd-machine chat client implementations."""

from typing import Dict, Optional

from tdd_machine.config import LLMProvider, TddConfig

from .copilot import GitHubCopilotClient
from .llm_client import (
    ChatMessage,
    LLMClient,
    LLMClientError,
    LLMConfigurationError,
    LLMResponseFormatError,
    LLMRetryError,
    LLMTransportError,
)
from .openai_chat import OpenAIChatClient, Transport
from .scripted import ScriptedLLMClient


def create_client(
    config: TddConfig,
    *,
    transport: Optional[Transport] = None,
    env: Optional[Dict[str, str]] = None,
) -> LLMClient:
    """Build the chat client selected by ``llm.provider``."""
    if config.llm.provider is LLMProvider.GITHUB_COPILOT:
        return GitHubCopilotClient.from_config(config.llm, config.roles, transport=transport, env=env)
    return OpenAIChatClient.from_config(config.llm, config.roles, transport=transport, env=env)


__all__ = [
    "ChatMessage",
    "GitHubCopilotClient",
    "LLMClient",
    "LLMClientError",
    "LLMConfigurationError",
    "LLMResponseFormatError",
    "LLMRetryError",
    "LLMTransportError",
    "OpenAIChatClient",
    "ScriptedLLMClient",
    "create_client",
]
