"""Chat Completions client for OpenAI-compatible endpoints."""

from __future__ import annotations

import json
import os
from typing import Any, Callable, Dict, List, Optional

from tdd_machine.config import LLMConfig, RolesConfig
from tdd_machine.roles import Role

from .llm_client import (
    ChatMessage,
    LLMClient,
    LLMConfigurationError,
    LLMResponseFormatError,
    LLMTransportError,
)

__all__ = ["OpenAIChatClient", "Transport"]


Transport = Callable[[str, Dict[str, str], Dict[str, Any]], str]


class OpenAIChatClient(LLMClient):
    """Thin adapter around ``POST {base_url}/chat/completions``."""

    provider_name = "OpenAI"

    def __init__(
        self,
        *,
        base_url: str,
        roles: RolesConfig,
        api_key: Optional[str] = None,
        transport: Optional[Transport] = None,
        timeout: float = 120.0,
        max_attempts: int = 3,
        retry_delay: float = 0.5,
    ) -> None:
        super().__init__(max_attempts=max_attempts, retry_delay=retry_delay)
        self._base_url = base_url.rstrip("/")
        self._roles = roles
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport or self._http_transport

        if transport is None and not self._api_key:
            raise LLMConfigurationError("An API key is required when using the default transport.")

    @classmethod
    def from_config(
        cls,
        llm: LLMConfig,
        roles: RolesConfig,
        *,
        transport: Optional[Transport] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> "OpenAIChatClient":
        environment = os.environ if env is None else env
        api_key = environment.get(llm.api_key_env)
        if transport is None and not api_key:
            raise LLMConfigurationError(
                f"Environment variable {llm.api_key_env} is not set; it must hold the API key."
            )
        return cls(
            base_url=llm.base_url,
            roles=roles,
            api_key=api_key,
            transport=transport,
            timeout=llm.timeout_seconds,
            **cls._extra_options(llm),
        )

    @classmethod
    def _extra_options(cls, llm: LLMConfig) -> Dict[str, Any]:
        return {}

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}/chat/completions"

    def build_payload(self, agent_role: Role, messages: List[ChatMessage]) -> Dict[str, Any]:
        settings = self._roles.for_role(agent_role)
        return {
            "model": settings.model,
            "temperature": settings.temperature,
            "messages": self._render_messages(messages),
            "metadata": {"role": agent_role.value},
        }

    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _raw_chat(self, agent_role: Role, messages: List[ChatMessage]) -> str:
        payload = self.build_payload(agent_role, messages)
        try:
            raw_response = self._transport(self.endpoint, self.headers(), payload)
        except LLMTransportError:
            raise
        except OSError as error:
            raise LLMTransportError(f"Transport rejected the request: {error}") from error
        return self._extract_content(raw_response)

    def _http_transport(self, url: str, headers: Dict[str, str], payload: Dict[str, Any]) -> str:
        """Default HTTP transport built on ``urllib``."""
        import urllib.error
        import urllib.request

        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(url, data=data, headers=headers, method="POST")

        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                raw = response.read()
                status = getattr(response, "status", 200)
        except TimeoutError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError(f"{self.provider_name} response timed out.") from error
        except urllib.error.HTTPError as error:  # pragma: no cover - network-dependent
            message = error.read().decode("utf-8", errors="ignore")
            raise LLMTransportError(f"HTTP {error.code}: {message}") from error
        except urllib.error.URLError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError(
                f"Failed to reach {self.provider_name} endpoint: {error.reason}"
            ) from error

        if status >= 400:
            raise LLMTransportError(f"Unexpected HTTP status {status}")

        return raw.decode("utf-8")

    def _extract_content(self, raw_response: str) -> str:
        """Return ``choices[0].message.content`` from a Chat Completions reply."""
        try:
            data = json.loads(raw_response)
        except json.JSONDecodeError as error:
            raise LLMResponseFormatError(
                f"{self.provider_name} response was not valid JSON: {error}"
            ) from error

        choices = data.get("choices") if isinstance(data, dict) else None
        if isinstance(choices, list):
            for choice in choices:
                if not isinstance(choice, dict):
                    continue
                message = choice.get("message")
                if isinstance(message, dict):
                    content = message.get("content")
                    if isinstance(content, str):
                        return content
        raise LLMResponseFormatError(f"{self.provider_name} response did not contain message content.")
