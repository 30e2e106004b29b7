"""Tests for query embeddings with mocked providers."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from corrdesk.core.embeddings import embed_text, embed_with_endpoint, embed_with_openai
from corrdesk.core.synthetic_embedding import synthetic_embedding


@pytest.fixture
def mock_openai_response():
    """Create a mock OpenAI embeddings response."""

    def _create_response(dimension: int = 1536):
        mock_response = MagicMock()
        mock_embedding = MagicMock()
        mock_embedding.embedding = [0.1] * dimension
        mock_response.data = [mock_embedding]
        return mock_response

    return _create_response


@pytest.fixture
def mock_settings():
    settings = MagicMock()
    settings.EMBEDDING_API_URL = None
    settings.EMBEDDING_API_KEY = None
    settings.OPENAI_API_KEY = "test-openai-key"
    settings.EMBEDDING_MODEL = "text-embedding-3-small"
    settings.EMBEDDING_DIM = 1536
    settings.EMBEDDING_TIMEOUT_SECONDS = 5.0
    return settings


def test_embed_with_openai_uses_correct_model(mock_openai_response, mock_settings):
    """Test that the configured model is used."""
    with patch("corrdesk.core.embeddings._get_client") as mock_get_client:
        with patch("corrdesk.core.embeddings.get_settings", return_value=mock_settings):
            mock_client = MagicMock()
            mock_client.embeddings.create.return_value = mock_openai_response()
            mock_get_client.return_value = mock_client

            vector = embed_with_openai("Cam duvar")

            assert len(vector) == 1536
            call_args = mock_client.embeddings.create.call_args
            assert call_args[1]["model"] == "text-embedding-3-small"
            assert call_args[1]["input"] == "Cam duvar"


def test_embed_with_openai_dimension_validation(mock_openai_response, mock_settings):
    """Test that dimension mismatch raises ValueError."""
    with patch("corrdesk.core.embeddings._get_client") as mock_get_client:
        with patch("corrdesk.core.embeddings.get_settings", return_value=mock_settings):
            mock_client = MagicMock()
            mock_client.embeddings.create.return_value = mock_openai_response(dimension=512)
            mock_get_client.return_value = mock_client

            with pytest.raises(ValueError, match="Embedding dimension mismatch"):
                embed_with_openai("Test text")


@pytest.mark.asyncio
async def test_embed_text_prefers_openai(mock_openai_response, mock_settings):
    with patch("corrdesk.core.embeddings._get_client") as mock_get_client:
        with patch("corrdesk.core.embeddings.get_settings", return_value=mock_settings):
            mock_client = MagicMock()
            mock_client.embeddings.create.return_value = mock_openai_response()
            mock_get_client.return_value = mock_client

            vector = await embed_text("Cam duvar")

    assert vector == [0.1] * 1536


@pytest.mark.asyncio
async def test_embed_text_falls_back_on_api_failure(mock_settings):
    """API errors never leave the embedding layer."""
    with patch("corrdesk.core.embeddings._get_client") as mock_get_client:
        with patch("corrdesk.core.embeddings.get_settings", return_value=mock_settings):
            mock_client = MagicMock()
            mock_client.embeddings.create.side_effect = Exception("API Error")
            mock_get_client.return_value = mock_client

            vector = await embed_text("Cam duvar")

    assert vector == synthetic_embedding("Cam duvar", 1536)


@pytest.mark.asyncio
async def test_embed_text_falls_back_on_wrong_dimension(mock_openai_response, mock_settings):
    with patch("corrdesk.core.embeddings._get_client") as mock_get_client:
        with patch("corrdesk.core.embeddings.get_settings", return_value=mock_settings):
            mock_client = MagicMock()
            mock_client.embeddings.create.return_value = mock_openai_response(dimension=3)
            mock_get_client.return_value = mock_client

            vector = await embed_text("Cam duvar")

    assert len(vector) == 1536
    assert vector == synthetic_embedding("Cam duvar", 1536)


@pytest.mark.asyncio
async def test_embed_text_without_credentials_is_synthetic():
    """No OPENAI_API_KEY or EMBEDDING_API_URL in the test environment."""
    with patch("corrdesk.core.embeddings._get_client") as mock_get_client:
        vector = await embed_text("Beton döküm")

    mock_get_client.assert_not_called()
    assert vector == synthetic_embedding("Beton döküm", 1536)


@pytest.mark.asyncio
async def test_embed_text_blank_skips_providers(mock_settings):
    with patch("corrdesk.core.embeddings.get_settings", return_value=mock_settings):
        with patch("corrdesk.core.embeddings._get_client") as mock_get_client:
            vector = await embed_text("   ")

    mock_get_client.assert_not_called()
    assert len(vector) == 1536
    assert all(v == 0.0 for v in vector)


@pytest.mark.asyncio
async def test_embed_text_endpoint_takes_precedence(mock_settings):
    mock_settings.EMBEDDING_API_URL = "https://embed.test/v1/embed"

    with patch("corrdesk.core.embeddings.get_settings", return_value=mock_settings):
        with patch(
            "corrdesk.core.embeddings.embed_with_endpoint",
            AsyncMock(return_value=[0.2] * 1536),
        ) as mock_endpoint, patch("corrdesk.core.embeddings._get_client") as mock_get_client:
            vector = await embed_text("Cam")

    mock_endpoint.assert_awaited_once_with("Cam")
    mock_get_client.assert_not_called()
    assert vector == [0.2] * 1536


def _patched_async_client(handler):
    real_client = httpx.AsyncClient

    def _factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    return patch("corrdesk.core.embeddings.httpx.AsyncClient", side_effect=_factory)


@pytest.mark.asyncio
async def test_embed_with_endpoint_posts_text_and_model(mock_settings):
    mock_settings.EMBEDDING_API_URL = "https://embed.test/v1/embed"
    mock_settings.EMBEDDING_API_KEY = "secret"
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = request.content
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"vector": [0.5] * 1536})

    with patch("corrdesk.core.embeddings.get_settings", return_value=mock_settings):
        with _patched_async_client(handler):
            vector = await embed_with_endpoint("Cam")

    assert vector == [0.5] * 1536
    assert b'"model"' in seen["body"]
    assert seen["auth"] == "Bearer secret"


@pytest.mark.asyncio
async def test_embed_text_endpoint_error_status_falls_back(mock_settings):
    mock_settings.EMBEDDING_API_URL = "https://embed.test/v1/embed"

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, json={"error": "bad gateway"})

    with patch("corrdesk.core.embeddings.get_settings", return_value=mock_settings):
        with _patched_async_client(handler):
            vector = await embed_text("Cam")

    assert vector == synthetic_embedding("Cam", 1536)


@pytest.mark.asyncio
async def test_embed_with_endpoint_rejects_missing_vector(mock_settings):
    mock_settings.EMBEDDING_API_URL = "https://embed.test/v1/embed"

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"embedding": [0.5]})

    with patch("corrdesk.core.embeddings.get_settings", return_value=mock_settings):
        with _patched_async_client(handler):
            with pytest.raises(ValueError, match="no 'vector'"):
                await embed_with_endpoint("Cam")
