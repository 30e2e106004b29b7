"""API endpoint for ranked correspondence search."""

from fastapi import APIRouter, HTTPException

from corrdesk.core.errors import InvalidSearchFilter
from corrdesk.core.logging import get_logger
from corrdesk.core.request_gate import search_gate
from corrdesk.core.schemas_documents import SearchRequest, SearchResponse
from corrdesk.core.search import search

logger = get_logger(__name__)

router = APIRouter()

# Body validation errors on this path are filter errors (400), see corrdesk.main
SEARCH_PATH = "/search"


@router.post(SEARCH_PATH, response_model=SearchResponse)
async def search_documents(request: SearchRequest) -> SearchResponse:
    """
    Rank documents for a query through the retrieval chain.

    When the request carries a session_id, only the newest search of that
    session returns results; a search overtaken while running comes back
    with superseded=true and no results.

    Raises:
        HTTPException 400: If filters or weights are malformed
        HTTPException 500: If search fails unexpectedly
    """
    try:
        token = search_gate.begin(request.session_id) if request.session_id else None
        response = await search(request)

        if token is not None and not search_gate.is_latest(request.session_id, token):
            logger.info(f"Dropping superseded search for session {request.session_id}")
            return SearchResponse(
                stage=response.stage,
                attempted=response.attempted,
                request_id=request.request_id,
                superseded=True,
            )

        return response

    except InvalidSearchFilter as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Search failed")
        raise HTTPException(status_code=500, detail="Search failed") from e
