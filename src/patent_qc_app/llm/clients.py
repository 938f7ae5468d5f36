"""Streaming inference clients for the supported LLM providers."""

from __future__ import annotations

from typing import Any, AsyncIterator, Callable, Protocol, Sequence

import ollama
from openai import AsyncOpenAI

from patent_qc_app.config.logging import get_logger
from patent_qc_app.config.settings import AppSettings, get_settings
from patent_qc_app.llm.errors import InvalidCredentialError
from patent_qc_app.llm.models import ContentPart, InlineDataPart, TextPart

LOGGER = get_logger(__name__)


class InferenceClient(Protocol):
    """Streams text fragments for one generation call."""

    def stream_generate(
        self,
        model: str,
        parts: Sequence[ContentPart],
        response_schema: dict[str, Any] | None = None,
    ) -> AsyncIterator[str]:
        ...


ClientFactory = Callable[[str | None], InferenceClient]


class OllamaInferenceClient:
    """Talks to a local or hosted Ollama endpoint."""

    def __init__(self, *, host: str, api_key: str | None = None, temperature: float = 0.1) -> None:
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else None
        self._client = ollama.AsyncClient(host=host, headers=headers)
        self.temperature = temperature

    async def stream_generate(
        self,
        model: str,
        parts: Sequence[ContentPart],
        response_schema: dict[str, Any] | None = None,
    ) -> AsyncIterator[str]:
        text = "\n\n".join(part.text for part in parts if isinstance(part, TextPart))
        images = [part.as_base64() for part in parts if isinstance(part, InlineDataPart)]
        message: dict[str, Any] = {"role": "user", "content": text}
        if images:
            message["images"] = images

        stream = await self._client.chat(
            model=model,
            messages=[message],
            format=response_schema,
            stream=True,
            options={"temperature": self.temperature},
        )
        async for chunk in stream:
            content = chunk["message"]["content"]
            if content:
                yield content


class OpenAIInferenceClient:
    """Talks to any OpenAI-compatible chat completions endpoint."""

    def __init__(self, *, api_key: str | None, base_url: str | None = None, temperature: float = 0.1) -> None:
        if not api_key:
            raise InvalidCredentialError("No API key configured for the OpenAI provider")
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.temperature = temperature

    async def stream_generate(
        self,
        model: str,
        parts: Sequence[ContentPart],
        response_schema: dict[str, Any] | None = None,
    ) -> AsyncIterator[str]:
        content: list[dict[str, Any]] = []
        for part in parts:
            if isinstance(part, TextPart):
                content.append({"type": "text", "text": part.text})
            else:
                content.append(
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{part.mime_type};base64,{part.as_base64()}"},
                    }
                )

        kwargs: dict[str, Any] = {}
        if response_schema is not None:
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "response", "schema": wrap_object_schema(response_schema)},
            }

        stream = await self._client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": content}],
            temperature=self.temperature,
            stream=True,
            **kwargs,
        )
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta


def wrap_object_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Structured outputs need an object at the root; arrays go under ``result``."""
    if schema.get("type") == "object":
        return schema
    return {
        "type": "object",
        "properties": {"result": schema},
        "required": ["result"],
    }


def build_client_factory(settings: AppSettings | None = None) -> ClientFactory:
    """Return a callable that binds a client to one credential."""
    cfg = settings or get_settings()

    def factory(api_key: str | None) -> InferenceClient:
        LOGGER.info("Creating inference client", extra={"provider": cfg.llm_provider})
        if cfg.llm_provider == "ollama":
            return OllamaInferenceClient(host=cfg.ollama_url, api_key=api_key)
        if cfg.llm_provider == "openai":
            return OpenAIInferenceClient(api_key=api_key, base_url=cfg.openai_base_url)
        raise ValueError(f"Unsupported LLM provider: {cfg.llm_provider}")

    return factory
