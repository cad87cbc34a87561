"""Provider gateway: the boundary where prompts reach a model."""

from __future__ import annotations

import logging
import os
from typing import Any, Protocol

import httpx
from pydantic_ai import Agent
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.settings import ModelSettings

from stepflow.errors import ProviderError
from stepflow.models.processed_input import ProcessedInput
from stepflow.models.prompt_options import PromptOptions
from stepflow.models.provider_settings import ProviderSettings


logger = logging.getLogger(__name__)


class ProviderGateway(Protocol):
    async def send_prompt(self, model: str, prompt: str, options: PromptOptions | None = None) -> str: ...

    async def send_prompt_with_file(
        self,
        model: str,
        prompt: str,
        file: ProcessedInput,
        options: PromptOptions | None = None,
    ) -> str: ...


def build_model(
    settings: ProviderSettings,
    model_name: str,
    http_client: httpx.AsyncClient | None = None,
) -> OpenAIChatModel:
    api_key = os.environ.get(settings.api_key_env, "noop")
    provider = OpenAIProvider(base_url=settings.base_url, api_key=api_key, http_client=http_client)
    return OpenAIChatModel(model_name, provider=provider)


def build_model_settings(options: PromptOptions) -> ModelSettings | None:
    model_settings: ModelSettings = {}
    if options.temperature is not None:
        model_settings["temperature"] = options.temperature
    if options.top_p is not None:
        model_settings["top_p"] = options.top_p
    if options.max_output_tokens:
        model_settings["max_tokens"] = options.max_output_tokens

    extra_body: dict[str, Any] = {}
    if options.response_format:
        extra_body["response_format"] = options.response_format
    if options.previous_response_id:
        extra_body["previous_response_id"] = options.previous_response_id
    if options.tools:
        extra_body["tools"] = options.tools
    if extra_body:
        model_settings["extra_body"] = extra_body

    if not model_settings:
        return None
    return model_settings


def attach_file(prompt: str, file: ProcessedInput) -> str:
    return f"{prompt.rstrip()}\n\n## File: {file.path}\n{file.text.rstrip()}\n"


class PydanticAIGateway:
    """Sends prompts to an OpenAI-compatible endpoint through pydantic-ai agents."""

    def __init__(self, settings: ProviderSettings | None = None, http_client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings or ProviderSettings()
        self._http_client = http_client
        self._models: dict[str, OpenAIChatModel] = {}

    def _model(self, model_name: str) -> OpenAIChatModel:
        if model_name not in self._models:
            self._models[model_name] = build_model(self._settings, model_name, self._http_client)
        return self._models[model_name]

    async def send_prompt(self, model: str, prompt: str, options: PromptOptions | None = None) -> str:
        opts = options or PromptOptions()
        agent = Agent(
            self._model(model),
            instructions=opts.instructions or None,
            output_type=str,
        )
        model_settings = build_model_settings(opts)
        logger.debug("Sending %d-character prompt to %s", len(prompt), model)
        try:
            if opts.stream:
                parts: list[str] = []
                async with agent.run_stream(prompt, model_settings=model_settings) as streamed:
                    async for delta in streamed.stream_text(delta=True):
                        parts.append(delta)
                return "".join(parts)
            result = await agent.run(prompt, model_settings=model_settings)
        except Exception as exc:
            raise ProviderError(f"model {model} failed: {exc}") from exc
        return result.output

    async def send_prompt_with_file(
        self,
        model: str,
        prompt: str,
        file: ProcessedInput,
        options: PromptOptions | None = None,
    ) -> str:
        return await self.send_prompt(model, attach_file(prompt, file), options)
