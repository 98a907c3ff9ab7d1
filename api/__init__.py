"""Hearth Triage API Service.

This package contains the FastAPI application and the triage pipeline
for multi-tenant chat communities.

Main components:
- main.py: FastAPI application with endpoints
- models.py: Pydantic models for messages, outcomes, requests and responses
- orchestrators/: LangGraph triage state machine
- detectors/: instant PII, phishing, zalgo, spam and raid detectors
- tools/: embeddings and the tenant knowledge base
- analytics.py: community analytics counters
"""

# Avoid importing heavy modules (e.g., FastAPI app) at package import time to
# prevent side effects when tools import `api.*`.
# Intentionally do not re-export runtime objects here.
__all__ = []
