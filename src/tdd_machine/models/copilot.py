"""GitHub Copilot chat client (OpenAI-compatible wire format)."""

from __future__ import annotations

from typing import Any, Dict

from tdd_machine.config import DEFAULT_COPILOT_API_VERSION, LLMConfig

from .openai_chat import OpenAIChatClient

__all__ = ["GitHubCopilotClient"]


class GitHubCopilotClient(OpenAIChatClient):
    """Copilot speaks Chat Completions but requires an API version header."""

    provider_name = "GitHub Copilot"

    def __init__(self, *, api_version: str = DEFAULT_COPILOT_API_VERSION, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._api_version = api_version

    @classmethod
    def _extra_options(cls, llm: LLMConfig) -> Dict[str, Any]:
        return {"api_version": llm.effective_api_version() or DEFAULT_COPILOT_API_VERSION}

    @property
    def api_version(self) -> str:
        return self._api_version

    def headers(self) -> Dict[str, str]:
        headers = super().headers()
        headers["X-GitHub-Api-Version"] = self._api_version
        return headers
