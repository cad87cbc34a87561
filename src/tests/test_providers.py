import json
from typing import Any

import httpx
import pytest

from stepflow.errors import ProviderError
from stepflow.models.processed_input import ProcessedInput
from stepflow.models.prompt_options import PromptOptions
from stepflow.models.provider_settings import ProviderSettings
from stepflow.providers import PydanticAIGateway
from stepflow.providers import attach_file
from stepflow.providers import build_model_settings


class HttpxRequestRecorder:
    def __init__(self, response_json: dict[str, Any], status_code: int = 200) -> None:
        self.response_json = response_json
        self.status_code = status_code
        self.requests: list[httpx.Request] = []
        self.last_json: dict[str, Any] | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.last_json = json.loads(request.content.decode("utf-8"))
        return httpx.Response(self.status_code, json=self.response_json)


def _chat_completion_response(model_name: str, content: str = "ok") -> dict[str, Any]:
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 123,
        "model": model_name,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2},
    }


def _messages_by_role(messages: list[dict[str, Any]], role: str) -> list[dict[str, Any]]:
    return [message for message in messages if message.get("role") == role]


def _settings() -> ProviderSettings:
    return ProviderSettings(base_url="https://example.test/v1", api_key_env="STEPFLOW_TEST_KEY")


@pytest.mark.anyio
async def test_send_prompt_posts_chat_completion(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STEPFLOW_TEST_KEY", "secret")
    recorder = HttpxRequestRecorder(_chat_completion_response("gpt-4o", "hello back"))

    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
        gateway = PydanticAIGateway(_settings(), http_client=client)
        result = await gateway.send_prompt("gpt-4o", "hello", PromptOptions(temperature=0.2, max_output_tokens=64))

    assert result == "hello back"
    assert len(recorder.requests) == 1
    assert recorder.requests[0].headers["authorization"] == "Bearer secret"
    assert recorder.last_json is not None
    assert recorder.last_json["model"] == "gpt-4o"
    assert recorder.last_json["temperature"] == 0.2
    assert recorder.last_json.get("tools") is None
    user_messages = _messages_by_role(recorder.last_json["messages"], "user")
    assert user_messages
    assert "hello" in json.dumps(user_messages[-1]["content"])


@pytest.mark.anyio
async def test_send_prompt_forwards_instructions_and_response_format() -> None:
    recorder = HttpxRequestRecorder(_chat_completion_response("gpt-4o"))
    options = PromptOptions(instructions="be terse", response_format={"type": "json_object"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
        gateway = PydanticAIGateway(_settings(), http_client=client)
        await gateway.send_prompt("gpt-4o", "hello", options)

    assert recorder.last_json is not None
    assert recorder.last_json["response_format"] == {"type": "json_object"}
    system_messages = _messages_by_role(recorder.last_json["messages"], "system")
    assert system_messages
    assert system_messages[0]["content"] == "be terse"


@pytest.mark.anyio
async def test_send_prompt_with_file_attaches_content() -> None:
    recorder = HttpxRequestRecorder(_chat_completion_response("gpt-4o"))
    file = ProcessedInput(path="notes.txt", source="file", text="file body")

    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
        gateway = PydanticAIGateway(_settings(), http_client=client)
        await gateway.send_prompt_with_file("gpt-4o", "## Action\nread", file)

    assert recorder.last_json is not None
    user_messages = _messages_by_role(recorder.last_json["messages"], "user")
    assert "## File: notes.txt" in json.dumps(user_messages[-1]["content"])
    assert "file body" in json.dumps(user_messages[-1]["content"])


@pytest.mark.anyio
async def test_provider_failure_is_wrapped() -> None:
    recorder = HttpxRequestRecorder({"error": {"message": "bad request"}}, status_code=400)

    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
        gateway = PydanticAIGateway(_settings(), http_client=client)
        with pytest.raises(ProviderError, match="model gpt-4o failed"):
            await gateway.send_prompt("gpt-4o", "hello")


def test_build_model_settings() -> None:
    assert build_model_settings(PromptOptions()) is None

    settings = build_model_settings(
        PromptOptions(
            temperature=0.5,
            top_p=0.9,
            max_output_tokens=100,
            previous_response_id="resp_1",
            tools=[{"type": "web_search"}],
        )
    )

    assert settings is not None
    assert settings["temperature"] == 0.5
    assert settings["top_p"] == 0.9
    assert settings["max_tokens"] == 100
    assert settings["extra_body"] == {"previous_response_id": "resp_1", "tools": [{"type": "web_search"}]}


def test_attach_file() -> None:
    file = ProcessedInput(path="a.txt", source="file", text="body\n")

    assert attach_file("## Action\ngo\n", file) == "## Action\ngo\n\n## File: a.txt\nbody\n"


def test_provider_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STEPFLOW_BASE_URL", "http://localhost:11434/v1")
    monkeypatch.setenv("STEPFLOW_MAX_PARALLEL", "2")
    monkeypatch.delenv("STEPFLOW_API_KEY_ENV", raising=False)

    settings = ProviderSettings.from_env()

    assert settings.base_url == "http://localhost:11434/v1"
    assert settings.max_parallel == 2
    assert settings.api_key_env == "OPENAI_API_KEY"
