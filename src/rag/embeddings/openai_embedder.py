# src/rag/embeddings/openai_embedder.py - v3
"""OpenAI embedding adapter.

Models: text-embedding-3-small (1536), text-embedding-3-large (3072),
text-embedding-ada-002 (1536). The text-embedding-3 family can return
shortened vectors; a smaller configured dimension is requested from the API.
"""

from __future__ import annotations

import logging
from typing import Any

from semkb.core.errors import ProviderPermanentError
from semkb.rag.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)

_NATIVE_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}
# API limit on inputs per embeddings request.
MAX_BATCH_SIZE = 2048


class OpenAIEmbedder(BaseEmbedder):
    """Embeddings via OpenAI API."""

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: str | None = None,
        dimensions: int | None = None,
        batch_size: int = MAX_BATCH_SIZE,
    ) -> None:
        self._model = model
        self._api_key = api_key
        native = _NATIVE_DIMENSIONS.get(model)
        self._dimensions = dimensions or native or 1536
        self._shortened = (
            model.startswith("text-embedding-3")
            and native is not None
            and self._dimensions < native
        )
        self._batch_size = max(1, min(batch_size, MAX_BATCH_SIZE))
        self.__client = None

    @property
    def _client(self):
        if self.__client is None:
            if not self._api_key:
                raise ProviderPermanentError("OpenAI API key not configured", "openai")
            try:
                import openai
            except ImportError as e:
                raise ImportError(
                    "openai package required: pip install openai"
                ) from e
            self.__client = openai.AsyncOpenAI(api_key=self._api_key)
        return self.__client

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed texts in batches, preserving input order."""
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self._batch_size):
            batch = texts[start : start + self._batch_size]
            response = await self._client.embeddings.create(**self._request(batch))
            ordered = sorted(response.data, key=lambda item: getattr(item, "index", 0))
            vectors.extend(list(item.embedding) for item in ordered)
        return vectors

    async def embed_query(self, query: str) -> list[float]:
        vectors = await self.embed_texts([query])
        return vectors[0]

    def _request(self, batch: list[str]) -> dict[str, Any]:
        request: dict[str, Any] = {"input": batch, "model": self._model}
        if self._shortened:
            request["dimensions"] = self._dimensions
        return request

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        return self._model
