import httpx
import pytest

from api.errors import EmbeddingError
from api.tools.embeddings import EmbeddingClient


@pytest.fixture
def mock_transport(monkeypatch):
    """Route the client's HTTP calls through a handler set by each test."""
    state = {"handler": None, "requests": []}
    real_client = httpx.AsyncClient

    def handler(request):
        state["requests"].append(request)
        return state["handler"](request)

    def make_client(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", make_client)
    return state


@pytest.mark.asyncio
async def test_embed_returns_vector(mock_transport):
    mock_transport["handler"] = lambda request: httpx.Response(
        200, json={"data": [{"embedding": [0.1, 0.2, 0.3]}]}
    )
    client = EmbeddingClient(api_key="sk-test")

    assert await client.embed("hello") == [0.1, 0.2, 0.3]

    request = mock_transport["requests"][0]
    assert request.headers["Authorization"] == "Bearer sk-test"


@pytest.mark.asyncio
async def test_http_error_raised_as_embedding_error(mock_transport):
    mock_transport["handler"] = lambda request: httpx.Response(401, json={"error": "bad key"})
    client = EmbeddingClient(api_key="sk-test")

    with pytest.raises(EmbeddingError):
        await client.embed("hello")


@pytest.mark.asyncio
async def test_malformed_response_raises(mock_transport):
    mock_transport["handler"] = lambda request: httpx.Response(200, json={"data": []})
    client = EmbeddingClient(api_key="sk-test")

    with pytest.raises(EmbeddingError):
        await client.embed("hello")


@pytest.mark.asyncio
async def test_missing_api_key_raises(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(EmbeddingError):
        await EmbeddingClient().embed("hello")


@pytest.mark.asyncio
async def test_empty_text_raises():
    with pytest.raises(EmbeddingError):
        await EmbeddingClient(api_key="sk-test").embed("   ")
