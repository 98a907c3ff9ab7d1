"""Functions for managing tenant FAQ entries in Firestore."""

from typing import List

from google.cloud.firestore_v1.async_client import AsyncClient

from libs.models.firestore import FirestoreFAQ


def _faq_collection(client: AsyncClient, tenant_id: str):
    return client.collection("servers").document(tenant_id).collection("faqs")


async def has_faqs(client: AsyncClient, tenant_id: str) -> bool:
    """Returns True if the tenant already has at least one FAQ document."""
    async for _ in _faq_collection(client, tenant_id).limit(1).stream():
        return True
    return False


async def load_faqs(client: AsyncClient, tenant_id: str) -> List[FirestoreFAQ]:
    """Reads all FAQ entries of one tenant."""
    return [
        FirestoreFAQ(**snapshot.to_dict())
        async for snapshot in _faq_collection(client, tenant_id).stream()
    ]


async def add_faq(client: AsyncClient, tenant_id: str, faq: FirestoreFAQ) -> None:
    """Adds a single FAQ entry to the tenant's collection."""
    await _faq_collection(client, tenant_id).add(faq.model_dump())
