"""LLM capability seam shared by every agent.

Each external text capability (structuring, language detection, judging) talks to
an injected ``LLMClient``. Clients are built explicitly from settings via
``build_llm_client()``; nothing is instantiated at import time.

Providers supported:
  - openai (GPT-4o family, JSON mode)
  - anthropic (Claude, direct API)
  - google (Gemini, JSON response mime type)
"""

from __future__ import annotations

import json
import time
from abc import ABC, abstractmethod
from typing import Any

import structlog

from app.core.config import settings
from app.modules.extraction.agents.sanitizer import strip_code_fences
from app.modules.extraction.errors import CapabilityUnavailableError, SchemaViolationError

logger = structlog.get_logger()

# Default models per provider
DEFAULT_MODELS: dict[str, str] = {
    "openai": "gpt-4o",
    "anthropic": "claude-sonnet-4-20250514",
    "google": "gemini-2.5-flash",
}


def parse_json(raw_text: str | None) -> dict[str, Any]:
    """Parse LLM output as a JSON object, stripping code fences if present."""
    if not raw_text or not raw_text.strip():
        raise SchemaViolationError("Empty reply from language model")
    try:
        data = json.loads(strip_code_fences(raw_text))
    except json.JSONDecodeError as exc:
        raise SchemaViolationError(f"Reply is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise SchemaViolationError(f"Reply must be a JSON object, got {type(data).__name__}")
    return data


# --- LLM Client abstraction ---


class LLMClient(ABC):
    """Abstract base for LLM providers."""

    provider: str = ""

    def __init__(self, model: str | None = None, api_key: str = "", temperature: float = 0.1) -> None:
        self.model = model or DEFAULT_MODELS[self.provider]
        self.api_key = api_key
        self.temperature = temperature
        self._client: Any = None

    async def extract_json(self, system_prompt: str, user_content: str) -> dict[str, Any]:
        """Send a prompt and return the parsed JSON object.

        Raises:
            CapabilityUnavailableError: the provider call itself failed.
            SchemaViolationError: the provider replied with something that is not a JSON object.
        """
        start = time.time()
        try:
            raw_text = await self._complete(system_prompt, user_content)
        except Exception as exc:
            raise CapabilityUnavailableError(f"{self.provider} call failed: {exc}") from exc

        logger.info(
            "LLM call complete",
            provider=self.provider,
            model=self.model,
            duration_ms=int((time.time() - start) * 1000),
            reply_chars=len(raw_text or ""),
        )
        return parse_json(raw_text)

    @abstractmethod
    async def _complete(self, system_prompt: str, user_content: str) -> str | None:
        """Return the raw text of the model's reply."""
        ...


class OpenAIClient(LLMClient):
    provider = "openai"

    async def _complete(self, system_prompt: str, user_content: str) -> str | None:
        if self._client is None:
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(api_key=self.api_key)
        response = await self._client.chat.completions.create(
            model=self.model,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            temperature=self.temperature,
        )
        return response.choices[0].message.content


class AnthropicClient(LLMClient):
    provider = "anthropic"

    async def _complete(self, system_prompt: str, user_content: str) -> str | None:
        if self._client is None:
            from anthropic import AsyncAnthropic

            self._client = AsyncAnthropic(api_key=self.api_key)
        response = await self._client.messages.create(
            model=self.model,
            max_tokens=8192,
            system=system_prompt,
            messages=[{"role": "user", "content": user_content}],
            temperature=self.temperature,
        )
        return response.content[0].text if response.content else None


class GoogleClient(LLMClient):
    provider = "google"

    async def _complete(self, system_prompt: str, user_content: str) -> str | None:
        from google import genai

        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        response = await self._client.aio.models.generate_content(
            model=self.model,
            contents=user_content,
            config=genai.types.GenerateContentConfig(
                system_instruction=system_prompt,
                response_mime_type="application/json",
                temperature=self.temperature,
            ),
        )
        return response.text


_CLIENTS: dict[str, type[LLMClient]] = {
    "openai": OpenAIClient,
    "anthropic": AnthropicClient,
    "google": GoogleClient,
}


def _api_key(provider: str) -> str:
    return {
        "openai": settings.openai_api_key,
        "anthropic": settings.anthropic_api_key,
        "google": settings.google_ai_api_key,
    }[provider]


def build_llm_client(provider: str, model: str | None = None, temperature: float = 0.1) -> LLMClient:
    """Factory: return a client for *provider* using the configured API key."""
    provider = provider.lower()
    if provider not in _CLIENTS:
        raise ValueError(f"Unknown LLM provider: {provider}")
    return _CLIENTS[provider](model=model or None, api_key=_api_key(provider), temperature=temperature)


class BaseAgent:
    """Base class for agents that wrap one LLMClient with a fixed prompt."""

    agent_name: str = "base"

    def __init__(self, client: LLMClient) -> None:
        self.client = client

        logger.info(
            f"{self.agent_name} initialized",
            provider=client.provider,
            model=client.model,
        )

    @property
    def provider(self) -> str:
        return self.client.provider
