"""API endpoint for island timelines."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from corrdesk.core.errors import DocumentNotFound, StoreUnavailable
from corrdesk.core.logging import get_logger
from corrdesk.core.timeline import build_island_timeline

logger = get_logger(__name__)

router = APIRouter()


@router.get("/{seed}")
async def get_timeline(
    seed: str,
    gap_days: Optional[int] = Query(
        None, description="Flag gaps longer than this many days", ge=0
    ),
) -> dict:
    """
    Chronological timeline of the island around a seed letter.

    Args:
        seed: Letter number
        gap_days: Override for the configured gap threshold

    Returns:
        Dict with ordered entries, inbound/outbound letter numbers and gaps

    Raises:
        HTTPException 404: If the seed is not in the graph
        HTTPException 503: If the store is unreachable
    """
    try:
        timeline = await build_island_timeline(seed, gap_threshold_days=gap_days)
        return timeline.to_dict()

    except DocumentNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except Exception as e:
        logger.exception(f"Failed to build timeline for {seed}")
        raise HTTPException(status_code=500, detail="Failed to build timeline") from e
