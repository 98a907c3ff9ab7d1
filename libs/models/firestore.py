"""Pydantic models for Firestore collections.

Every document lives under ``servers/{tenant_id}`` so a tenant's data can
only be reached through its own subtree.
"""
from datetime import datetime, timezone

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)

class FirestoreKnowledgeChunk(BaseModel):
    """One embedded chunk of an ingested knowledge document."""
    tenant_id: str = Field(..., description="Tenant (server) that owns the chunk.")
    document_id: str = Field(..., description="Identifier of the source document.")
    document_name: str = Field("unknown", description="Original filename or title.")
    chunk_index: int = Field(..., ge=0, description="Position of the chunk within the document.")
    text: str = Field(..., description="Chunk text.")
    embedding: list[float] = Field(default_factory=list, description="Embedding vector of the chunk text.")
    created_at: datetime = Field(default_factory=_now, description="Ingestion timestamp.")


class FirestoreFAQ(BaseModel):
    """A static FAQ entry answered without any model call."""
    question: str = Field(..., description="Primary lowercase trigger phrase.")
    variations: list[str] = Field(default_factory=list, description="Alternative lowercase trigger phrases.")
    answer: str = Field(..., description="Canned answer text.")
    is_default: bool = Field(False, description="Seeded from the default FAQ set.")
    created_at: datetime = Field(default_factory=_now)


class FirestoreRules(BaseModel):
    """Tenant rules document stored at servers/{tenant_id}/config/rules."""
    rules: list[str] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=_now)
