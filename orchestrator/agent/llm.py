"""
Agent LLM: OpenAI (primary) or Hugging Face router (fallback).
When OPENAI_API_KEY is set, uses OpenAI chat completions; otherwise uses HF router.

Provider failures raise CollaboratorError; a missing key raises ServiceUnavailableError.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from orchestrator.core.config import (
    HF_API_KEY,
    HF_CHAT_URL,
    HF_LLM_MODEL,
    LLM_API_TIMEOUT,
    LLM_MAX_TOKENS,
    LLM_TEMPERATURE,
    OPENAI_API_KEY,
    OPENAI_LLM_MODEL,
)
from orchestrator.core.errors import CollaboratorError, ServiceUnavailableError
from orchestrator.core.session_store import Message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionResult:
    text: str
    usage: dict[str, int] = field(default_factory=dict)


def to_chat_messages(messages: list[Message], system_prompt: str | None = None) -> list[dict[str, Any]]:
    """System prompt first, then the conversation in order."""
    out: list[dict[str, Any]] = []
    if system_prompt:
        out.append({"role": "system", "content": system_prompt})
    out.extend({"role": m.role, "content": m.content} for m in messages)
    return out


class CompletionService(ABC):
    provider: str = ""

    @abstractmethod
    async def generate(
        self,
        messages: list[Message],
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> CompletionResult:
        ...


class OpenAICompletionService(CompletionService):
    provider = "openai"

    def __init__(self, api_key: str = OPENAI_API_KEY, model: str = OPENAI_LLM_MODEL, client=None) -> None:
        self._api_key = api_key
        self.model = model
        self._client = client

    def _get_client(self):
        if self._client is None:
            if not self._api_key:
                raise ServiceUnavailableError("OPENAI_API_KEY must be set in .env", provider=self.provider)
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=self._api_key, timeout=LLM_API_TIMEOUT)
        return self._client

    async def generate(
        self,
        messages: list[Message],
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> CompletionResult:
        from openai import APIError

        client = self._get_client()
        chat = to_chat_messages(messages, system_prompt)
        logger.info("[llm:openai] IN  messages=%d model=%s", len(chat), self.model)
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=chat,
                max_tokens=max_tokens or LLM_MAX_TOKENS,
                temperature=LLM_TEMPERATURE if temperature is None else temperature,
            )
        except APIError as e:
            status = getattr(e, "status_code", None)
            logger.warning("[llm:openai] request failed status=%s: %s", status, e)
            raise CollaboratorError(
                "Completion provider failed", provider=self.provider, upstream_status=status, details=str(e),
            ) from e
        msg = response.choices[0].message if response.choices else None
        text = ((msg.content if msg else None) or "").strip()
        if not text:
            raise CollaboratorError("OpenAI returned an empty completion", provider=self.provider)
        usage = {}
        if response.usage is not None:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        logger.info("[llm:openai] OUT response_len=%d usage=%s", len(text), usage)
        return CompletionResult(text=text, usage=usage)


class HFCompletionService(CompletionService):
    provider = "huggingface"

    def __init__(
        self,
        api_key: str = HF_API_KEY,
        model: str = HF_LLM_MODEL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self.model = model
        self._transport = transport

    async def generate(
        self,
        messages: list[Message],
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> CompletionResult:
        if not self._api_key:
            raise ServiceUnavailableError(
                "Set OPENAI_API_KEY or HF_API_KEY in .env to enable completions",
                provider=self.provider,
            )
        headers = {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}
        payload = {
            "model": self.model,
            "messages": to_chat_messages(messages, system_prompt),
            "max_tokens": max_tokens or LLM_MAX_TOKENS,
            "temperature": LLM_TEMPERATURE if temperature is None else temperature,
        }
        logger.info("[llm:hf] IN  messages=%d model=%s", len(payload["messages"]), self.model)
        try:
            async with httpx.AsyncClient(timeout=LLM_API_TIMEOUT, transport=self._transport) as client:
                response = await client.post(HF_CHAT_URL, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise CollaboratorError("Completion request failed", provider=self.provider, details=str(e)) from e
        if response.status_code != 200:
            logger.warning("[llm:hf] HF LLM error %s: %s", response.status_code, response.text[:200])
            raise CollaboratorError(
                "Completion provider failed",
                provider=self.provider,
                upstream_status=response.status_code,
                details=response.text[:200],
            )
        data = response.json()
        choices = data.get("choices") or []
        text = ""
        if choices and isinstance(choices[0], dict):
            text = ((choices[0].get("message") or {}).get("content") or "").strip()
        if not text:
            raise CollaboratorError("HF returned an empty completion", provider=self.provider)
        logger.info("[llm:hf] OUT response_len=%d", len(text))
        return CompletionResult(text=text, usage=dict(data.get("usage") or {}))


def build_completion_service() -> CompletionService:
    """OpenAI when OPENAI_API_KEY is set, else Hugging Face."""
    if OPENAI_API_KEY:
        return OpenAICompletionService()
    return HFCompletionService()
