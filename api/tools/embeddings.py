"""OpenAI embeddings client used by knowledge ingestion and search."""

from __future__ import annotations

import os
from typing import List, Optional

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from api.errors import EmbeddingError

logger = structlog.get_logger(__name__)

OPENAI_EMBEDDINGS_URL = "https://api.openai.com/v1/embeddings"


class EmbeddingClient:
    """Embed text with the OpenAI embeddings endpoint.

    `embed` raises `EmbeddingError` when no vector can be produced; callers
    decide whether that skips a chunk or empties a search.
    """

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self.model = model
        self.api_key = api_key if api_key is not None else os.getenv("OPENAI_API_KEY")
        self.timeout = timeout

    async def embed(self, text: str) -> List[float]:
        if not self.api_key:
            raise EmbeddingError("OpenAI API key not configured")
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text")

        try:
            return await self._request(text)
        except httpx.HTTPError as e:
            logger.error("OpenAI embedding error", model=self.model, error=str(e))
            raise EmbeddingError(str(e)) from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _request(self, text: str) -> List[float]:
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout)) as client:
            response = await client.post(
                OPENAI_EMBEDDINGS_URL,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self.model,
                    "input": text[:8000],  # Truncate to avoid token limits
                    "encoding_format": "float",
                },
            )
            response.raise_for_status()
            data = response.json()

        try:
            embedding = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as e:
            raise EmbeddingError(f"Malformed embedding response: {e}") from e

        logger.debug(
            "Embedding generated",
            model=self.model,
            input_length=len(text),
            embedding_dim=len(embedding),
        )
        return embedding
