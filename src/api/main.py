"""
FILE: src/api/main.py
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.api.observability import setup_observability
from src.api.persistence_profile import validate_persistence_profile_guardrails
from src.api.routers import documents_lifecycle_routes  # noqa: F401
from src.api.routers.documents import router as document_workflow_router


@asynccontextmanager
async def _app_lifespan(_app: FastAPI):
    validate_persistence_profile_guardrails()
    yield


app = FastAPI(
    title="Document Approval Workflow API",
    version="0.1.0",
    description=(
        "Document lifecycle service with versioned uploads and ordered multi-step approval.\n\n"
        "Document status is one of `draft`, `pending_review`, `approved`, `rejected` or "
        "`archived`."
    ),
    openapi_tags=[
        {
            "name": "Document Workflow",
            "description": "Document creation, approval, versioning, comment and archive endpoints.",
        },
        {
            "name": "Health",
            "description": "Liveness endpoint.",
        },
    ],
    lifespan=_app_lifespan,
)

setup_observability(app)
logger = logging.getLogger(__name__)

app.include_router(document_workflow_router)


@app.exception_handler(Exception)
async def unhandled_exception_to_problem_details(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception while serving request", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        media_type="application/problem+json",
        content={
            "type": "about:blank",
            "title": "Internal Server Error",
            "status": 500,
            "detail": "An unexpected error occurred.",
            "instance": str(request.url.path),
        },
    )


@app.get("/health", tags=["Health"], summary="Liveness Probe")
def health() -> dict[str, str]:
    return {"status": "ok"}
