"""Query embeddings with graceful fallback.

Provider order:
1. EMBEDDING_API_URL - generic endpoint, POST {text, model} -> {vector}
2. OPENAI_API_KEY - OpenAI embeddings API
3. Synthetic hash-based embedding (always available)

embed_text() never raises: any transport error, non-2xx status, dimension
mismatch or missing credential falls through to the synthetic embedding.
"""

import asyncio

import httpx
from openai import OpenAI

from corrdesk.core.config import get_settings
from corrdesk.core.logging import get_logger
from corrdesk.core.synthetic_embedding import synthetic_embedding

logger = get_logger(__name__)


def _get_client() -> OpenAI:
    """Get OpenAI client instance with a bounded timeout and no retries."""
    settings = get_settings()
    return OpenAI(
        api_key=settings.OPENAI_API_KEY,
        timeout=settings.EMBEDDING_TIMEOUT_SECONDS,
        max_retries=0,
    )


def _check_dimension(vector: list[float]) -> list[float]:
    settings = get_settings()
    if len(vector) != settings.EMBEDDING_DIM:
        raise ValueError(
            f"Embedding dimension mismatch: expected {settings.EMBEDDING_DIM}, got {len(vector)}"
        )
    return [float(v) for v in vector]


def embed_with_openai(text: str) -> list[float]:
    """
    Embed one text with OpenAI.

    Raises:
        ValueError: If embedding dimension doesn't match EMBEDDING_DIM
        Exception: If OpenAI API call fails
    """
    settings = get_settings()
    client = _get_client()
    response = client.embeddings.create(model=settings.EMBEDDING_MODEL, input=text)
    return _check_dimension(response.data[0].embedding)


async def embed_with_endpoint(text: str) -> list[float]:
    """
    Embed one text with the configured generic embedding endpoint.

    Raises:
        httpx.HTTPError: On transport failure or non-2xx status
        ValueError: If the reply has no usable vector
    """
    settings = get_settings()
    headers = {}
    if settings.EMBEDDING_API_KEY:
        headers["Authorization"] = f"Bearer {settings.EMBEDDING_API_KEY}"

    async with httpx.AsyncClient(timeout=settings.EMBEDDING_TIMEOUT_SECONDS) as client:
        response = await client.post(
            settings.EMBEDDING_API_URL,
            json={"text": text, "model": settings.EMBEDDING_MODEL},
            headers=headers,
        )
        response.raise_for_status()
        payload = response.json()

    vector = payload.get("vector") if isinstance(payload, dict) else None
    if not isinstance(vector, list):
        raise ValueError("Embedding endpoint reply has no 'vector' list")
    return _check_dimension(vector)


async def embed_text(text: str) -> list[float]:
    """
    Embed query text, degrading to the synthetic embedding on any failure.

    Args:
        text: Query text

    Returns:
        Vector of EMBEDDING_DIM floats
    """
    settings = get_settings()

    if text.strip():
        if settings.EMBEDDING_API_URL:
            try:
                vector = await embed_with_endpoint(text)
                logger.debug("Embedded query via endpoint", extra={"provider": "endpoint"})
                return vector
            except Exception as e:
                logger.warning(f"Embedding endpoint failed, using synthetic embedding: {e}")
        elif settings.OPENAI_API_KEY:
            try:
                vector = await asyncio.to_thread(embed_with_openai, text)
                logger.debug(
                    f"Embedded query using {settings.EMBEDDING_MODEL}",
                    extra={"provider": "openai"},
                )
                return vector
            except Exception as e:
                logger.warning(f"OpenAI embedding failed, using synthetic embedding: {e}")
        else:
            logger.debug("No embedding credentials configured, using synthetic embedding")

    return synthetic_embedding(text, settings.EMBEDDING_DIM)
