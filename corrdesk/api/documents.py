"""API endpoints for document lookup and correspondence statistics."""

from fastapi import APIRouter, HTTPException, Query

from corrdesk.core.correspondence import (
    CorrespondenceStats,
    DocumentPage,
    get_document,
    list_documents,
    load_correspondence_stats,
    similar_documents,
)
from corrdesk.core.errors import DocumentNotFound, StoreUnavailable
from corrdesk.core.logging import get_logger
from corrdesk.core.schemas_documents import Document

logger = get_logger(__name__)

router = APIRouter()


@router.get("", response_model=DocumentPage)
async def list_all_documents(
    limit: int = Query(50, description="Maximum documents to return", ge=1, le=200),
    offset: int = Query(0, description="Number of documents to skip", ge=0),
) -> DocumentPage:
    """
    List documents, newest first.

    Args:
        limit: Maximum documents to return (1-200)
        offset: Pagination offset

    Returns:
        Page of documents with total count
    """
    try:
        return await list_documents(limit=limit, offset=offset)

    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except Exception as e:
        logger.exception("Failed to list documents")
        raise HTTPException(status_code=500, detail="Failed to list documents") from e


@router.get("/stats", response_model=CorrespondenceStats)
async def get_stats() -> CorrespondenceStats:
    """Correspondence counts by month, type, project and direction."""
    try:
        return await load_correspondence_stats()

    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except Exception as e:
        logger.exception("Failed to compute correspondence stats")
        raise HTTPException(status_code=500, detail="Failed to compute stats") from e


@router.get("/{identifier}", response_model=Document)
async def get_one_document(identifier: str) -> Document:
    """
    Get a document by letter number, internal number or id.

    Raises:
        HTTPException 404: If no document matches
        HTTPException 503: If the store is unreachable
    """
    try:
        return await get_document(identifier)

    except DocumentNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except Exception as e:
        logger.exception(f"Failed to get document {identifier}")
        raise HTTPException(status_code=500, detail="Failed to retrieve document") from e


@router.get("/{identifier}/similar", response_model=list[Document])
async def get_similar_documents(identifier: str) -> list[Document]:
    """Up to five documents sharing a keyword with the given one."""
    try:
        return await similar_documents(identifier)

    except DocumentNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except Exception as e:
        logger.exception(f"Failed to find documents similar to {identifier}")
        raise HTTPException(status_code=500, detail="Failed to find similar documents") from e
