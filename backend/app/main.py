from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
from pathlib import Path

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.modules.catalog.router import router as products_router
from app.modules.documents.router import analytics_router, router as documents_router
from app.modules.extraction.errors import PipelineError

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
    logger.info(
        "Starting Product Copy Catalog API",
        upload_dir=settings.upload_dir,
        structuring_provider=settings.structuring_provider,
        judges=[settings.primary_judge_provider, settings.secondary_judge_provider],
    )
    yield
    logger.info("Shutting down Product Copy Catalog API")


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    openapi_url="/api/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    """Pipeline errors that escape a router still report their stage."""
    logger.error("Unhandled pipeline error", path=request.url.path, stage=exc.stage, error=exc.message)
    return JSONResponse(status_code=502, content={"detail": exc.to_detail()})


# Mount routers
app.include_router(documents_router, prefix=settings.api_prefix)
app.include_router(products_router, prefix=settings.api_prefix)
app.include_router(analytics_router, prefix=settings.api_prefix)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
