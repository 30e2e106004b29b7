"""API endpoints for the letter reference graph."""

from typing import Literal

from fastapi import APIRouter, HTTPException, Query

from corrdesk.core.errors import DocumentNotFound, StoreUnavailable
from corrdesk.core.logging import get_logger
from corrdesk.core.reference_graph import extract_island, load_reference_graph, reference_chain

logger = get_logger(__name__)

router = APIRouter()


@router.get("")
async def get_graph() -> dict:
    """
    Full reference graph.

    Returns:
        Dict with nodes (letters, including cited-but-unknown ones) and edges
    """
    try:
        graph = await load_reference_graph()
        return graph.to_dict()

    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except Exception as e:
        logger.exception("Failed to build reference graph")
        raise HTTPException(status_code=500, detail="Failed to build reference graph") from e


@router.get("/island/{seed}")
async def get_island(seed: str) -> dict:
    """
    Connected component of letters around a seed letter.

    Raises:
        HTTPException 404: If the seed is not in the graph
        HTTPException 503: If the store is unreachable
    """
    try:
        graph = await load_reference_graph()
        return extract_island(graph, seed).to_dict()

    except DocumentNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except Exception as e:
        logger.exception(f"Failed to extract island for {seed}")
        raise HTTPException(status_code=500, detail="Failed to extract island") from e


@router.get("/chain/{seed}")
async def get_chain(
    seed: str,
    direction: Literal["backward", "forward"] = Query(
        "backward", description="backward: letters the seed cites; forward: letters citing it"
    ),
) -> dict:
    """Directed citation chain from a seed letter."""
    try:
        graph = await load_reference_graph()
        return reference_chain(graph, seed, direction).to_dict()

    except DocumentNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except Exception as e:
        logger.exception(f"Failed to build {direction} chain for {seed}")
        raise HTTPException(status_code=500, detail="Failed to build reference chain") from e
