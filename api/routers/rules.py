from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from api.auth import get_current_user
from api.dependencies import get_orchestrator
from api.models import RulesRequest, RulesResponse
from api.orchestrators.triage_orchestrator import TriageOrchestrator
from api.rules import parse_rules

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/v1/rules/{tenant_id}", dependencies=[Depends(get_current_user)], tags=["Rules"])
async def get_rules(
    tenant_id: str,
    orchestrator: TriageOrchestrator = Depends(get_orchestrator),
) -> RulesResponse:
    return RulesResponse(rules=await orchestrator.rules.get_rules(tenant_id))


@router.put("/v1/rules/{tenant_id}", dependencies=[Depends(get_current_user)], tags=["Rules"])
async def set_rules(
    tenant_id: str,
    request: RulesRequest,
    orchestrator: TriageOrchestrator = Depends(get_orchestrator),
) -> RulesResponse:
    """Replace a community's rules.

    Rules are separated by semicolons or newlines. Posting the rules to the
    community and any approval workflow happen outside this service.
    """
    try:
        rules = await orchestrator.set_rules(tenant_id, parse_rules(request.rules_text))
    except Exception as e:
        logger.error("Failed to save rules", tenant_id=tenant_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error_code": "RULES_STORE_UNAVAILABLE", "message": "Failed to save rules"},
        )

    return RulesResponse(rules=rules)
