"""Functions for managing tenant knowledge chunks in Firestore."""

from typing import List

from google.cloud.firestore_v1.async_client import AsyncClient

from libs.models.firestore import FirestoreKnowledgeChunk

# Firestore rejects batches larger than 500 writes
_BATCH_LIMIT = 400


def _knowledge_collection(client: AsyncClient, tenant_id: str):
    return client.collection("servers").document(tenant_id).collection("knowledge")


async def save_chunks(
    client: AsyncClient,
    tenant_id: str,
    chunks: List[FirestoreKnowledgeChunk],
) -> int:
    """Writes chunks under servers/{tenant_id}/knowledge in batches.

    Args:
        client: The asynchronous Firestore client.
        tenant_id: The tenant that owns the chunks.
        chunks: Chunks to store. Each must carry the same tenant_id.

    Returns:
        The number of chunks written.
    """
    collection = _knowledge_collection(client, tenant_id)
    written = 0

    for start in range(0, len(chunks), _BATCH_LIMIT):
        batch = client.batch()
        for chunk in chunks[start:start + _BATCH_LIMIT]:
            if chunk.tenant_id != tenant_id:
                raise ValueError("Chunk tenant_id does not match target tenant")
            doc_id = f"{chunk.document_id}_{chunk.chunk_index}"
            batch.set(collection.document(doc_id), chunk.model_dump())
        await batch.commit()
        written += len(chunks[start:start + _BATCH_LIMIT])

    return written


async def load_chunks(client: AsyncClient, tenant_id: str) -> List[FirestoreKnowledgeChunk]:
    """Reads every chunk stored for one tenant.

    Only the tenant's own subcollection is queried.
    """
    chunks: List[FirestoreKnowledgeChunk] = []
    async for snapshot in _knowledge_collection(client, tenant_id).stream():
        chunks.append(FirestoreKnowledgeChunk(**snapshot.to_dict()))
    return chunks


async def delete_chunks(client: AsyncClient, tenant_id: str) -> int:
    """Deletes every chunk stored for one tenant.

    Returns:
        The number of chunks deleted.
    """
    refs = [snapshot.reference async for snapshot in _knowledge_collection(client, tenant_id).stream()]

    for start in range(0, len(refs), _BATCH_LIMIT):
        batch = client.batch()
        for ref in refs[start:start + _BATCH_LIMIT]:
            batch.delete(ref)
        await batch.commit()

    return len(refs)
