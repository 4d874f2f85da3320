# src/llm/adapters/google_adapter.py - v2
"""Google Gemini adapter implementing BaseLLMClient.

Uses google-generativeai SDK. Gemini applies implicit caching to repeated
prompt prefixes; cached tokens are reported as cache_read_tokens.
"""

from __future__ import annotations

import time
from typing import Any

from semkb.core.errors import ProviderPermanentError
from semkb.llm.base_client import BaseLLMClient
from semkb.llm.models import LLMResponse, Message

_PASSTHROUGH_OPTIONS = ("top_p", "top_k", "stop_sequences", "candidate_count")


class GoogleAdapter(BaseLLMClient):
    """Google Gemini adapter."""

    def __init__(self, model: str = "gemini-1.5-pro", api_key: str = "", **kwargs: Any):
        self._model = model
        self._api_key = api_key

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        options: dict[str, Any] | None = None,
    ) -> LLMResponse:
        if not self._api_key:
            raise ProviderPermanentError("Google API key not configured", "gemini")
        import google.generativeai as genai

        system_parts = [system] if system else []
        contents = []
        for m in messages:
            if m.role == "system":
                system_parts.append(m.content)
                continue
            role = "model" if m.role == "assistant" else "user"
            contents.append({"role": role, "parts": [{"text": m.content}]})

        genai.configure(api_key=self._api_key)
        model = genai.GenerativeModel(
            self._model,
            system_instruction="\n\n".join(system_parts) or None,
        )

        gen_config: dict[str, Any] = {
            "max_output_tokens": max_tokens,
            "temperature": temperature,
        }
        for key in _PASSTHROUGH_OPTIONS:
            if options and options.get(key) is not None:
                gen_config[key] = options[key]

        t0 = time.monotonic()
        resp = await model.generate_content_async(
            contents, generation_config=gen_config,
        )
        latency = int((time.monotonic() - t0) * 1000)

        usage = getattr(resp, "usage_metadata", None)
        return LLMResponse(
            content=resp.text if resp.candidates else "",
            input_tokens=getattr(usage, "prompt_token_count", 0) or 0,
            output_tokens=getattr(usage, "candidates_token_count", 0) or 0,
            cache_read_tokens=getattr(usage, "cached_content_token_count", 0) or 0,
            model=self._model,
            provider="gemini",
            latency_ms=latency,
            raw_response=resp,
        )

    @property
    def provider_name(self) -> str:
        return "gemini"

    @property
    def model_name(self) -> str:
        return self._model
