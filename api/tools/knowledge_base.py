"""
Multi-tenant knowledge base: chunking, embedding and cosine-ranked search.

Chunks are persisted under servers/{tenant_id}/knowledge when a Firestore
client is configured and are always mirrored in an in-process cache keyed by
tenant. Every lookup is scoped to exactly one tenant; there is no code path
that scans chunks across tenants.
"""

from __future__ import annotations

import asyncio
import hashlib
import re
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np
import structlog

from api.errors import CollaboratorError
from libs.common.text import preview
from libs.firestore import knowledge as knowledge_store
from libs.models.firestore import FirestoreKnowledgeChunk as KnowledgeChunk

logger = structlog.get_logger(__name__)

_SENTENCE_BOUNDARY = re.compile(r"[.!?\n]+")

DEFAULT_CHUNK_TOKENS = 500
DEFAULT_TOP_K = 3
DEFAULT_MIN_SIMILARITY = 0.3


def chunk_text(text: str, max_tokens: int = DEFAULT_CHUNK_TOKENS) -> List[str]:
    """
    Split text into sentence-aligned chunks of roughly `max_tokens` tokens.

    Tokens are estimated at four characters each. Sentences are accumulated
    until appending the next one would exceed the budget. A single sentence
    longer than the budget becomes its own chunk.
    """
    budget = max_tokens * 4
    chunks: List[str] = []
    current = ""

    for sentence in _SENTENCE_BOUNDARY.split(text or ""):
        sentence = sentence.strip()
        if not sentence:
            continue

        combined = f"{current}. {sentence}" if current else sentence
        if len(combined) > budget and current:
            chunks.append(current)
            current = sentence
        else:
            current = combined

    if current:
        chunks.append(current)

    return chunks


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors; 0.0 for empty, mismatched or zero vectors."""
    if a is None or b is None or len(a) == 0 or len(b) == 0 or len(a) != len(b):
        return 0.0

    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(va, vb) / (norm_a * norm_b))


class KnowledgeBase:
    """
    Tenant-isolated retrieval over ingested documents.

    Usage:
        kb = KnowledgeBase(embedder=EmbeddingClient())
        await kb.ingest("server-1", text, "handbook.md")
        chunks = await kb.search("server-1", "how do refunds work?")
    """

    def __init__(
        self,
        embedder,
        firestore_client=None,
        chunk_tokens: int = DEFAULT_CHUNK_TOKENS,
        top_k: int = DEFAULT_TOP_K,
        min_similarity: float = DEFAULT_MIN_SIMILARITY,
        embedding_timeout: float = 10.0,
        store_timeout: float = 5.0,
    ):
        self.embedder = embedder
        self.firestore_client = firestore_client
        self.chunk_tokens = chunk_tokens
        self.top_k = top_k
        self.min_similarity = min_similarity
        self.embedding_timeout = embedding_timeout
        self.store_timeout = store_timeout

        self._chunks: Dict[str, List[KnowledgeChunk]] = {}
        self._loaded: Set[str] = set()
        self._tenant_locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, tenant_id: str) -> asyncio.Lock:
        return self._tenant_locks.setdefault(tenant_id, asyncio.Lock())

    async def _embed(self, text: str) -> List[float]:
        return await asyncio.wait_for(self.embedder.embed(text), timeout=self.embedding_timeout)

    async def _tenant_chunks(self, tenant_id: str) -> List[KnowledgeChunk]:
        """Return the tenant's chunks, loading them from the store once."""
        if tenant_id in self._loaded or self.firestore_client is None:
            return self._chunks.get(tenant_id, [])

        try:
            stored = await asyncio.wait_for(
                knowledge_store.load_chunks(self.firestore_client, tenant_id),
                timeout=self.store_timeout,
            )
        except Exception as e:
            logger.warning("Failed to load knowledge chunks, using in-memory copy", tenant_id=tenant_id, error=str(e))
            return self._chunks.get(tenant_id, [])

        stored.sort(key=lambda c: (c.created_at, c.document_id, c.chunk_index))
        self._chunks[tenant_id] = stored
        self._loaded.add(tenant_id)
        return stored

    async def ingest(self, tenant_id: str, document_text: str, document_name: str = "unknown") -> int:
        """
        Chunk, embed and store a document for one tenant.

        Chunks whose embedding fails are logged and skipped.

        Returns:
            Number of chunks stored
        """
        start_time = time.time()
        pieces = chunk_text(document_text, self.chunk_tokens)
        document_id = hashlib.sha256(
            f"{tenant_id}:{document_name}:{time.time_ns()}".encode("utf-8")
        ).hexdigest()[:16]

        logger.info(
            "Ingesting document",
            tenant_id=tenant_id,
            document_name=document_name,
            characters=len(document_text or ""),
            chunk_candidates=len(pieces),
        )

        embedded: List[KnowledgeChunk] = []
        for index, piece in enumerate(pieces):
            try:
                vector = await self._embed(piece)
            except Exception as e:
                logger.error("Failed to embed chunk", tenant_id=tenant_id, chunk_index=index, error=str(e))
                continue

            embedded.append(
                KnowledgeChunk(
                    tenant_id=tenant_id,
                    document_id=document_id,
                    document_name=document_name,
                    chunk_index=index,
                    text=piece,
                    embedding=list(vector),
                    created_at=datetime.now(timezone.utc),
                )
            )

        if not embedded:
            logger.warning("No chunks stored for document", tenant_id=tenant_id, document_name=document_name)
            return 0

        async with self._lock_for(tenant_id):
            existing = await self._tenant_chunks(tenant_id)
            self._chunks[tenant_id] = existing + embedded

            if self.firestore_client is not None:
                try:
                    await asyncio.wait_for(
                        knowledge_store.save_chunks(self.firestore_client, tenant_id, embedded),
                        timeout=self.store_timeout,
                    )
                except Exception as e:
                    logger.error(
                        "Failed to persist knowledge chunks, kept in memory",
                        tenant_id=tenant_id,
                        error=str(e),
                    )

        logger.info(
            "Document ingested",
            tenant_id=tenant_id,
            document_id=document_id,
            chunks_stored=len(embedded),
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        return len(embedded)

    def rank(
        self, query_vector: Sequence[float], chunks: List[KnowledgeChunk], top_k: int
    ) -> List[Tuple[KnowledgeChunk, float]]:
        """Score, sort descending, cut to top_k, then drop low-similarity results."""
        scored = [(chunk, cosine_similarity(query_vector, chunk.embedding)) for chunk in chunks]
        scored.sort(key=lambda item: item[1], reverse=True)
        return [(chunk, score) for chunk, score in scored[:top_k] if score >= self.min_similarity]

    async def search(self, tenant_id: str, query: str, top_k: Optional[int] = None) -> List[str]:
        """
        Return the most relevant chunk texts for this tenant, best first.

        An embedding failure or an empty knowledge base yields an empty list.
        """
        top_k = self.top_k if top_k is None else top_k

        chunks = await self._tenant_chunks(tenant_id)
        if not chunks:
            return []

        try:
            query_vector = await self._embed(query)
        except Exception as e:
            logger.warning("Query embedding failed, skipping knowledge search", tenant_id=tenant_id, error=str(e))
            return []

        ranked = self.rank(query_vector, chunks, top_k)

        logger.info(
            "Knowledge search",
            tenant_id=tenant_id,
            query_preview=preview(query, 40),
            relevant=len(ranked),
            total_chunks=len(chunks),
            top_score=round(ranked[0][1], 3) if ranked else None,
        )
        return [chunk.text for chunk, _ in ranked]

    async def clear(self, tenant_id: str) -> int:
        """
        Delete every chunk of one tenant and drop its in-process cache.

        The store is cleared first. If that fails nothing is dropped from
        memory, so the in-process copy never disagrees with the store.

        Returns:
            Number of chunks removed

        Raises:
            CollaboratorError: If the stored chunks could not be deleted
        """
        async with self._lock_for(tenant_id):
            removed = len(self._chunks.get(tenant_id, []))

            if self.firestore_client is not None:
                try:
                    removed = await asyncio.wait_for(
                        knowledge_store.delete_chunks(self.firestore_client, tenant_id),
                        timeout=self.store_timeout,
                    )
                except Exception as e:
                    logger.error("Failed to delete stored knowledge chunks", tenant_id=tenant_id, error=str(e))
                    raise CollaboratorError(f"knowledge store delete failed: {e}") from e

            self._chunks[tenant_id] = []
            self._loaded.add(tenant_id)

        logger.info("Knowledge base cleared", tenant_id=tenant_id, removed=removed)
        return removed

    async def stats(self, tenant_id: str) -> Dict[str, object]:
        chunks = await self._tenant_chunks(tenant_id)
        names = sorted({chunk.document_name for chunk in chunks})
        return {
            "total_chunks": len(chunks),
            "documents": len({chunk.document_id for chunk in chunks}),
            "document_names": names,
        }
