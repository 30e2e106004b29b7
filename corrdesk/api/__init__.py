"""API router for v1 endpoints."""

from fastapi import APIRouter

from corrdesk.api import documents, graph, search, timeline

router = APIRouter()

router.include_router(search.router, tags=["search"])

router.include_router(documents.router, prefix="/documents", tags=["documents"])

router.include_router(graph.router, prefix="/graph", tags=["graph"])

router.include_router(timeline.router, prefix="/timeline", tags=["timeline"])
