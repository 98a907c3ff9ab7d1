from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from libs.firestore import config as config_store
from libs.firestore import faqs as faq_store
from libs.firestore import knowledge as knowledge_store
from libs.models.firestore import FirestoreFAQ, FirestoreKnowledgeChunk


# Helper class to mock an async iterator, required for Firestore's `stream()`
class AsyncIterator:
    def __init__(self, items):
        self._items = iter(items)

    def __aiter__(self):
        return self

    async def __anext__(self):
        try:
            return next(self._items)
        except StopIteration:
            raise StopAsyncIteration


def _snapshot(data):
    snapshot = MagicMock()
    snapshot.to_dict.return_value = data
    return snapshot


def _chunk(tenant_id="t1", index=0):
    return FirestoreKnowledgeChunk(
        tenant_id=tenant_id,
        document_id="doc1",
        document_name="handbook.md",
        chunk_index=index,
        text=f"chunk {index}",
        embedding=[0.1, 0.2],
        created_at=datetime(2026, 1, 1),
    )


@pytest.fixture
def mock_client():
    """
    Firestore client whose servers/{tenant}/<sub> chain resolves to one
    subcollection mock, exposed as client.sub.
    """
    client = MagicMock()
    subcollection = MagicMock()
    client.collection.return_value.document.return_value.collection.return_value = subcollection
    client.sub = subcollection

    batch = MagicMock()
    batch.commit = AsyncMock()
    client.batch.return_value = batch
    return client


@pytest.mark.asyncio
async def test_save_chunks_batches_under_tenant(mock_client):
    written = await knowledge_store.save_chunks(mock_client, "t1", [_chunk(index=0), _chunk(index=1)])

    assert written == 2
    mock_client.collection.assert_called_with("servers")
    mock_client.collection.return_value.document.assert_called_with("t1")
    mock_client.sub.document.assert_any_call("doc1_0")
    mock_client.sub.document.assert_any_call("doc1_1")
    assert mock_client.batch.return_value.set.call_count == 2
    mock_client.batch.return_value.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_save_chunks_rejects_foreign_tenant(mock_client):
    with pytest.raises(ValueError):
        await knowledge_store.save_chunks(mock_client, "t1", [_chunk(tenant_id="t2")])


@pytest.mark.asyncio
async def test_load_chunks(mock_client):
    mock_client.sub.stream.return_value = AsyncIterator([_snapshot(_chunk().model_dump())])

    chunks = await knowledge_store.load_chunks(mock_client, "t1")

    assert len(chunks) == 1
    assert chunks[0].text == "chunk 0"
    assert chunks[0].tenant_id == "t1"


@pytest.mark.asyncio
async def test_delete_chunks(mock_client):
    snapshots = [MagicMock(), MagicMock()]
    mock_client.sub.stream.return_value = AsyncIterator(snapshots)

    assert await knowledge_store.delete_chunks(mock_client, "t1") == 2
    assert mock_client.batch.return_value.delete.call_count == 2


@pytest.mark.asyncio
async def test_has_faqs(mock_client):
    mock_client.sub.limit.return_value.stream.return_value = AsyncIterator([])
    assert await faq_store.has_faqs(mock_client, "t1") is False

    mock_client.sub.limit.return_value.stream.return_value = AsyncIterator([MagicMock()])
    assert await faq_store.has_faqs(mock_client, "t1") is True


@pytest.mark.asyncio
async def test_add_and_load_faqs(mock_client):
    mock_client.sub.add = AsyncMock()
    faq = FirestoreFAQ(question="server ip", variations=["ip"], answer="play.example.net")

    await faq_store.add_faq(mock_client, "t1", faq)

    stored = mock_client.sub.add.call_args.args[0]
    assert stored["question"] == "server ip"

    mock_client.sub.stream.return_value = AsyncIterator([_snapshot(stored)])
    faqs = await faq_store.load_faqs(mock_client, "t1")
    assert faqs[0].answer == "play.example.net"


@pytest.mark.asyncio
async def test_get_rules_missing_document(mock_client):
    doc = mock_client.sub.document.return_value
    doc.get = AsyncMock(return_value=MagicMock(exists=False))

    assert await config_store.get_rules(mock_client, "t1") is None
    mock_client.sub.document.assert_called_with("rules")


@pytest.mark.asyncio
async def test_save_and_get_rules(mock_client):
    doc = mock_client.sub.document.return_value
    doc.set = AsyncMock()

    await config_store.save_rules(mock_client, "t1", ["Be kind"])

    data = doc.set.call_args.args[0]
    assert data["rules"] == ["Be kind"]
    assert doc.set.call_args.kwargs == {"merge": True}

    snapshot = _snapshot(data)
    snapshot.exists = True
    doc.get = AsyncMock(return_value=snapshot)
    assert await config_store.get_rules(mock_client, "t1") == ["Be kind"]


@pytest.mark.asyncio
async def test_save_analytics_snapshot(mock_client):
    doc = mock_client.sub.document.return_value
    doc.set = AsyncMock()

    await config_store.save_analytics_snapshot(mock_client, "t1", "sentiment_2026-01-15", {"positive": 3})

    mock_client.sub.document.assert_called_with("sentiment_2026-01-15")
    doc.set.assert_awaited_once_with({"positive": 3}, merge=True)
