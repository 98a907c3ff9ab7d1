from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends

from api.auth import get_current_user
from api.dependencies import get_orchestrator
from api.models import CostReportResponse, Message, TriageOutcome
from api.orchestrators.triage_orchestrator import TriageOrchestrator

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/v1/triage", dependencies=[Depends(get_current_user)], tags=["Triage"])
async def triage_message(
    message: Message,
    orchestrator: TriageOrchestrator = Depends(get_orchestrator),
) -> TriageOutcome:
    """Triage one inbound chat message.

    Called by the gateway for every message. The outcome tells the caller
    what to say (if anything), in which persona's voice, and which
    moderation action (if any) to enforce.

    Example:
        ```bash
        curl -X POST http://localhost:8000/api/v1/triage \\
          -H "Authorization: Bearer $TOKEN" \\
          -d '{"server_id": "s1", "user_id": "u1", "text": "hello!"}'
        ```
    """
    return await orchestrator.process_message(message)


@router.get("/v1/report", dependencies=[Depends(get_current_user)], tags=["Triage"])
async def cost_report(
    orchestrator: TriageOrchestrator = Depends(get_orchestrator),
) -> CostReportResponse:
    """Snapshot of call counts, cache efficiency, cost and latency."""
    return CostReportResponse(**orchestrator.report().to_dict())
