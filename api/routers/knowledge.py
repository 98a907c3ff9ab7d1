from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from api.auth import User, get_current_user
from api.dependencies import get_orchestrator
from api.errors import CollaboratorError
from api.models import (
    IngestRequest,
    IngestResponse,
    KnowledgeStatsResponse,
    SearchRequest,
    SearchResponse,
)
from api.orchestrators.triage_orchestrator import TriageOrchestrator

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/v1/knowledge/{tenant_id}/documents", status_code=status.HTTP_201_CREATED, tags=["Knowledge"])
async def ingest_document(
    tenant_id: str,
    request: IngestRequest,
    current_user: User = Depends(get_current_user),
    orchestrator: TriageOrchestrator = Depends(get_orchestrator),
) -> IngestResponse:
    """Chunk, embed and store a document in a community's knowledge base.

    Cached answers for the community are invalidated once chunks are stored.
    """
    chunk_count = await orchestrator.ingest_knowledge(tenant_id, request.document_text, request.document_name)

    if chunk_count == 0:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "error_code": "NOTHING_INGESTED",
                "message": "No chunks could be embedded from this document",
            },
        )

    logger.info(
        "Knowledge document ingested",
        tenant_id=tenant_id,
        document_name=request.document_name,
        chunk_count=chunk_count,
        uid=current_user.uid,
    )
    return IngestResponse(success=True, chunk_count=chunk_count)


@router.get("/v1/knowledge/{tenant_id}/stats", dependencies=[Depends(get_current_user)], tags=["Knowledge"])
async def knowledge_stats(
    tenant_id: str,
    orchestrator: TriageOrchestrator = Depends(get_orchestrator),
) -> KnowledgeStatsResponse:
    return KnowledgeStatsResponse(**await orchestrator.knowledge_base.stats(tenant_id))


@router.post("/v1/knowledge/{tenant_id}/search", dependencies=[Depends(get_current_user)], tags=["Knowledge"])
async def search_knowledge(
    tenant_id: str,
    request: SearchRequest,
    orchestrator: TriageOrchestrator = Depends(get_orchestrator),
) -> SearchResponse:
    """Preview what the FAQ branch would retrieve for a question."""
    results = await orchestrator.knowledge_base.search(tenant_id, request.query, top_k=request.top_k)
    return SearchResponse(results=results)


@router.delete("/v1/knowledge/{tenant_id}", tags=["Knowledge"])
async def clear_knowledge(
    tenant_id: str,
    current_user: User = Depends(get_current_user),
    orchestrator: TriageOrchestrator = Depends(get_orchestrator),
) -> dict:
    try:
        removed = await orchestrator.clear_knowledge(tenant_id)
    except CollaboratorError as e:
        logger.error("Failed to clear knowledge base", tenant_id=tenant_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error_code": "KNOWLEDGE_STORE_UNAVAILABLE", "message": "Could not clear knowledge base"},
        )

    logger.info("Knowledge base cleared via API", tenant_id=tenant_id, removed=removed, uid=current_user.uid)
    return {"removed": removed}
