"""Functions for tenant configuration documents (rules, analytics snapshots)."""

from typing import Any, Dict, List, Optional

from google.cloud.firestore_v1.async_client import AsyncClient

from libs.models.firestore import FirestoreRules


async def get_rules(client: AsyncClient, tenant_id: str) -> Optional[List[str]]:
    """Reads the tenant's rules list.

    Returns:
        The stored rules, or None if the tenant has no rules document.
    """
    doc_ref = client.collection("servers").document(tenant_id).collection("config").document("rules")
    snapshot = await doc_ref.get()

    if not snapshot.exists:
        return None

    return FirestoreRules(**snapshot.to_dict()).rules


async def save_rules(client: AsyncClient, tenant_id: str, rules: List[str]) -> None:
    """Overwrites the tenant's rules list."""
    doc_ref = client.collection("servers").document(tenant_id).collection("config").document("rules")
    await doc_ref.set(FirestoreRules(rules=rules).model_dump(), merge=True)


async def save_analytics_snapshot(
    client: AsyncClient,
    tenant_id: str,
    doc_id: str,
    data: Dict[str, Any],
) -> None:
    """Merges an analytics snapshot into servers/{tenant_id}/analytics/{doc_id}."""
    doc_ref = client.collection("servers").document(tenant_id).collection("analytics").document(doc_id)
    await doc_ref.set(data, merge=True)
