"""FastAPI application entry point."""

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from corrdesk.api import router as api_router
from corrdesk.api.search import SEARCH_PATH

API_PREFIX = "/v1"

app = FastAPI(
    title="Corrdesk",
    description="Correspondence retrieval and letter reference-graph service",
    version="0.1.0",
)


@app.exception_handler(RequestValidationError)
async def search_filter_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed search bodies are filter errors (400); other routes keep FastAPI's 422."""
    if request.url.path == API_PREFIX + SEARCH_PATH:
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})
    return await request_validation_exception_handler(request, exc)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "ok"}, status_code=200)


# Include v1 API router
app.include_router(api_router, prefix=API_PREFIX, tags=["v1"])
