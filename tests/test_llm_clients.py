from __future__ import annotations

import json
from typing import Any, Dict, List, Tuple

import pytest

from tdd_machine.config import TddConfig, default_config_data
from tdd_machine.models import (
    ChatMessage,
    GitHubCopilotClient,
    LLMConfigurationError,
    LLMResponseFormatError,
    LLMRetryError,
    LLMTransportError,
    OpenAIChatClient,
    ScriptedLLMClient,
    create_client,
)
from tdd_machine.roles import Role


def _config(**llm: Any) -> TddConfig:
    data = default_config_data()
    data["llm"].update(llm)
    return TddConfig.from_mapping(data)


def _reply(content: str) -> str:
    return json.dumps({"choices": [{"message": {"role": "assistant", "content": content}}]})


class _RecordingTransport:
    def __init__(self, replies: List[Any]) -> None:
        self.replies = list(replies)
        self.requests: List[Tuple[str, Dict[str, str], Dict[str, Any]]] = []

    def __call__(self, url: str, headers: Dict[str, str], payload: Dict[str, Any]) -> str:
        self.requests.append((url, headers, payload))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def test_openai_client_posts_chat_completion() -> None:
    transport = _RecordingTransport([_reply("plan text")])
    client = create_client(_config(), transport=transport, env={"OPENAI_API_KEY": "sk-test"})

    answer = client.chat(Role.TESTER, [ChatMessage.system("sys"), ChatMessage.user("hello")])

    assert isinstance(client, OpenAIChatClient)
    assert answer == "plan text"
    url, headers, payload = transport.requests[0]
    assert url == "https://api.openai.com/v1/chat/completions"
    assert headers["Authorization"] == "Bearer sk-test"
    assert payload["model"] == "gpt-4o-mini"
    assert payload["temperature"] == 0.1
    assert payload["metadata"] == {"role": "tester"}
    assert payload["messages"] == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "hello"},
    ]


def test_copilot_client_sends_api_version_header() -> None:
    transport = _RecordingTransport([_reply("ok")])
    config = _config(
        provider="github_copilot",
        base_url="https://api.githubcopilot.com/",
        api_key_env="GITHUB_COPILOT_TOKEN",
    )
    client = create_client(config, transport=transport, env={"GITHUB_COPILOT_TOKEN": "ghu_test"})

    client.chat(Role.IMPLEMENTOR, [ChatMessage.user("go")])

    assert isinstance(client, GitHubCopilotClient)
    url, headers, payload = transport.requests[0]
    assert url == "https://api.githubcopilot.com/chat/completions"
    assert headers["X-GitHub-Api-Version"] == "2023-12-01"
    assert payload["temperature"] == 0.2


def test_missing_api_key_is_a_configuration_error() -> None:
    with pytest.raises(LLMConfigurationError) as excinfo:
        create_client(_config(), env={})

    assert "OPENAI_API_KEY" in str(excinfo.value)


def test_transport_errors_are_retried_then_surface() -> None:
    transport = _RecordingTransport(
        [LLMTransportError("boom"), _reply("second time lucky")]
    )
    client = OpenAIChatClient.from_config(_config().llm, _config().roles, transport=transport)
    client._retry_delay = 0.0

    assert client.chat(Role.REFACTORER, [ChatMessage.user("x")]) == "second time lucky"

    failing = _RecordingTransport([LLMTransportError("down")] * 3)
    client = OpenAIChatClient.from_config(_config().llm, _config().roles, transport=failing)
    client._retry_delay = 0.0
    with pytest.raises(LLMRetryError):
        client.chat(Role.REFACTORER, [ChatMessage.user("x")])
    assert len(failing.requests) == 3


def test_reply_without_content_is_a_format_error() -> None:
    transport = _RecordingTransport([json.dumps({"choices": []})])
    client = OpenAIChatClient.from_config(_config().llm, _config().roles, transport=transport)

    with pytest.raises(LLMResponseFormatError):
        client.chat(Role.TESTER, [ChatMessage.user("x")])


def test_scripted_client_replays_queue_then_placeholder() -> None:
    client = ScriptedLLMClient(["first", "second"])

    assert client.chat(Role.TESTER, [ChatMessage.user("a")]) == "first"
    assert client.chat(Role.TESTER, [ChatMessage.user("b")]) == "second"
    assert client.chat(Role.TESTER, [ChatMessage.user("c")]) == "mock-response"
    assert len(client.calls) == 3
    assert client.calls[0][1][0].content == "a"
