from __future__ import annotations

import asyncio
from contextlib import contextmanager
from dataclasses import dataclass
from functools import lru_cache
from threading import BoundedSemaphore
from typing import Tuple

from openai import OpenAI

from ..core.config import get_settings

_llm_semaphore: BoundedSemaphore | None = None


def _get_semaphore() -> BoundedSemaphore:
    """
    Lazy-initialised global semaphore for limiting concurrent LLM calls.
    """
    global _llm_semaphore
    if _llm_semaphore is None:
        settings = get_settings()
        _llm_semaphore = BoundedSemaphore(settings.LLM_MAX_CONCURRENCY)
    return _llm_semaphore


@contextmanager
def limit_llm_concurrency():
    """
    Bound concurrent calls to the LLM provider.

    Use inside the worker thread that actually performs the HTTP request.
    """
    sem = _get_semaphore()
    sem.acquire()
    try:
        yield
    finally:
        sem.release()


@lru_cache(maxsize=16)
def get_llm_client(api_key: str) -> OpenAI:
    """
    OpenAI client for one API key.

    Keys come from key-service per request (BYOK or app key), so clients are
    cached per key rather than once per process.
    """
    return OpenAI(api_key=api_key.strip())


def normalize_model_name(model: str | None) -> str:
    m = (model or "").strip().lower()
    if "/" in m:
        m = m.split("/")[-1]
    if ":" in m:
        m = m.split(":")[0]
    return m


def token_cost_names(model: str | None) -> Tuple[str, str]:
    """(input, output) cost names registered in runs-service for a model."""
    name = normalize_model_name(model)
    return f"openai-{name}-tokens-input", f"openai-{name}-tokens-output"


@dataclass(frozen=True)
class LLMResponse:
    content: str
    model: str
    input_tokens: int
    output_tokens: int


class LLMClient:
    """Single-turn JSON-producing chat completion against the configured model."""

    def __init__(self, model: str | None = None, max_output_tokens: int | None = None) -> None:
        settings = get_settings()
        self.model = model or settings.LLM_MODEL
        self.max_output_tokens = max_output_tokens or settings.LLM_MAX_OUTPUT_TOKENS

    async def complete(self, api_key: str, system_prompt: str, user_message: str) -> LLMResponse:
        client = get_llm_client(api_key)

        def _call_sync() -> LLMResponse:
            with limit_llm_concurrency():
                resp = client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_message},
                    ],
                    max_completion_tokens=self.max_output_tokens,
                    response_format={"type": "json_object"},
                )
            usage = resp.usage
            return LLMResponse(
                content=(resp.choices[0].message.content or "").strip(),
                model=resp.model or self.model,
                input_tokens=int(getattr(usage, "prompt_tokens", 0) or 0),
                output_tokens=int(getattr(usage, "completion_tokens", 0) or 0),
            )

        return await asyncio.to_thread(_call_sync)
