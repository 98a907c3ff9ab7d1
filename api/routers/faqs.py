from __future__ import annotations

from typing import List

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from api.auth import get_current_user
from api.dependencies import get_orchestrator
from api.models import FAQRequest, FAQResponse
from api.orchestrators.triage_orchestrator import TriageOrchestrator

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/v1/faqs/{tenant_id}", dependencies=[Depends(get_current_user)], tags=["FAQ"])
async def list_faqs(
    tenant_id: str,
    orchestrator: TriageOrchestrator = Depends(get_orchestrator),
) -> List[FAQResponse]:
    faqs = await orchestrator.faq.list_faqs(tenant_id)
    return [
        FAQResponse(question=f.question, variations=f.variations, answer=f.answer, is_default=f.is_default)
        for f in faqs
    ]


@router.post(
    "/v1/faqs/{tenant_id}",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(get_current_user)],
    tags=["FAQ"],
)
async def add_faq(
    tenant_id: str,
    request: FAQRequest,
    orchestrator: TriageOrchestrator = Depends(get_orchestrator),
) -> FAQResponse:
    """Add a custom FAQ entry and invalidate the community's cached answers."""
    try:
        faq = await orchestrator.add_faq(tenant_id, request.question, request.variations, request.answer)
    except Exception as e:
        logger.error("Failed to add FAQ", tenant_id=tenant_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error_code": "FAQ_STORE_UNAVAILABLE", "message": "Could not save FAQ"},
        )

    return FAQResponse(question=faq.question, variations=faq.variations, answer=faq.answer, is_default=False)
