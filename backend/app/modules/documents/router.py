"""Document API — /documents/ and /analytics endpoints.

Processing:
  - /documents/upload           — store a DOCX/PDF and run the pipeline
  - /documents/{id}/reprocess   — re-run the pipeline on the stored original

Documents:
  - /documents                  — paginated list, newest first
  - /documents/{id}             — get / patch / delete

History:
  - /documents/{id}/versions                   — newest first
  - /documents/{id}/versions/{n}               — one version with its payload
  - /documents/{id}/restore-version            — copy a version forward
  - /documents/{id}/versions/{a}/diff/{b}      — per-product field diff

Pipeline failures map to 400 (unsupported input) or 502 with
``{"stage", "error", "retryable"}``; the document is left untouched.
"""

from __future__ import annotations

import math

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.modules.documents import service
from app.modules.documents.models import Document
from app.modules.documents.schemas import (
    AnalyticsResponse,
    DiffEntry,
    DocumentDetail,
    DocumentSummary,
    DocumentUpdate,
    PaginatedDocuments,
    ProductDiff,
    RestoreVersionRequest,
    RestoreVersionResponse,
    VersionDetail,
    VersionDiffResponse,
    VersionSummary,
)
from app.modules.documents.versioning import get_version, get_version_by_number, list_versions
from app.modules.extraction.errors import (
    PipelineError,
    SchemaViolationError,
    UnsupportedInputError,
)
from app.modules.extraction.pipeline import DocumentPipeline

logger = structlog.get_logger()

router = APIRouter(prefix="/documents", tags=["documents"])
analytics_router = APIRouter(prefix="/analytics", tags=["analytics"])


def get_pipeline() -> DocumentPipeline:
    """Pipeline built from the configured providers (overridden in tests)."""
    return DocumentPipeline.from_settings()


def _pipeline_http_error(exc: PipelineError) -> HTTPException:
    if isinstance(exc, UnsupportedInputError):
        return HTTPException(status_code=400, detail=exc.message)
    return HTTPException(status_code=502, detail=exc.to_detail())


async def _get_document_or_404(db: AsyncSession, document_id: int) -> Document:
    document = await service.get_document(db, document_id)
    if document is None:
        raise HTTPException(status_code=404, detail=f"Document {document_id} not found.")
    return document


# ---------------------------------------------------------------------------
# Processing
# ---------------------------------------------------------------------------


@router.post("/upload", response_model=DocumentDetail, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(..., description="DOCX or PDF document"),
    month: str | None = Form(None, max_length=20),
    year: str | None = Form(None, pattern=r"^\d{4}$"),
    is_original: bool = Form(False),
    db: AsyncSession = Depends(get_db),
    pipeline: DocumentPipeline = Depends(get_pipeline),
) -> DocumentDetail:
    """Upload a document, extract and validate its product copy, persist version 1."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="A file name is required.")

    file_bytes = await file.read()
    size_mb = len(file_bytes) / (1024 * 1024)
    if size_mb > settings.max_upload_size_mb:
        raise HTTPException(
            status_code=413,
            detail=f"File too large: {size_mb:.1f} MB (max {settings.max_upload_size_mb} MB).",
        )

    logger.info("Upload request", filename=file.filename, size_mb=round(size_mb, 2))

    try:
        document = await service.ingest_document(
            db,
            pipeline,
            file_bytes,
            file.filename,
            month=month,
            year=year,
            is_original=is_original,
        )
    except PipelineError as exc:
        logger.error(
            "Document processing failed",
            filename=file.filename,
            stage=exc.stage,
            error=exc.message,
        )
        raise _pipeline_http_error(exc) from exc

    return DocumentDetail.model_validate(document, from_attributes=True)


@router.post("/{document_id}/reprocess", response_model=DocumentDetail)
async def reprocess_document(
    document_id: int,
    db: AsyncSession = Depends(get_db),
    pipeline: DocumentPipeline = Depends(get_pipeline),
) -> DocumentDetail:
    """Re-run the pipeline on the stored original and append a new version."""
    document = await _get_document_or_404(db, document_id)

    try:
        updated = await service.reprocess_document(db, pipeline, document)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=410, detail=str(exc)) from exc
    except PipelineError as exc:
        logger.error(
            "Document reprocess failed",
            document_id=document_id,
            stage=exc.stage,
            error=exc.message,
        )
        raise _pipeline_http_error(exc) from exc

    if updated is None:
        raise HTTPException(status_code=404, detail=f"Document {document_id} not found.")
    return DocumentDetail.model_validate(updated, from_attributes=True)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.get("", response_model=PaginatedDocuments)
async def list_documents(
    needs_review: bool | None = Query(None, description="Filter by review flag"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=200, description="Items per page"),
    db: AsyncSession = Depends(get_db),
) -> PaginatedDocuments:
    """Return a paginated list of documents, newest first."""
    items, total = await service.list_documents(
        db, page=page, page_size=page_size, needs_review=needs_review
    )
    return PaginatedDocuments(
        items=[DocumentSummary.model_validate(d, from_attributes=True) for d in items],
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total > 0 else 0,
    )


@router.get("/{document_id}", response_model=DocumentDetail)
async def get_document(
    document_id: int,
    db: AsyncSession = Depends(get_db),
) -> DocumentDetail:
    document = await _get_document_or_404(db, document_id)
    return DocumentDetail.model_validate(document, from_attributes=True)


@router.patch("/{document_id}", response_model=DocumentDetail)
async def update_document(
    document_id: int,
    data: DocumentUpdate,
    db: AsyncSession = Depends(get_db),
) -> DocumentDetail:
    """Partial update. New structured data is normalized and recorded as a version."""
    document = await _get_document_or_404(db, document_id)
    try:
        document = await service.update_document(db, document, data)
    except SchemaViolationError as exc:
        raise HTTPException(status_code=422, detail=exc.message) from exc
    return DocumentDetail.model_validate(document, from_attributes=True)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: int,
    db: AsyncSession = Depends(get_db),
) -> None:
    """Delete a document, its versions, its catalog variants and the stored file."""
    document = await _get_document_or_404(db, document_id)
    await service.delete_document(db, document)


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@router.get("/{document_id}/versions", response_model=list[VersionSummary])
async def get_document_versions(
    document_id: int,
    db: AsyncSession = Depends(get_db),
) -> list[VersionSummary]:
    """Return all versions of a document, newest first."""
    await _get_document_or_404(db, document_id)
    versions = await list_versions(db, document_id)
    return [VersionSummary.model_validate(v, from_attributes=True) for v in versions]


@router.get("/{document_id}/versions/{version_number}", response_model=VersionDetail)
async def get_document_version(
    document_id: int,
    version_number: int,
    db: AsyncSession = Depends(get_db),
) -> VersionDetail:
    await _get_document_or_404(db, document_id)
    version = await get_version_by_number(db, document_id, version_number)
    if version is None:
        raise HTTPException(
            status_code=404,
            detail=f"Version {version_number} of document {document_id} not found.",
        )
    return VersionDetail.model_validate(version, from_attributes=True)


@router.post("/{document_id}/restore-version", response_model=RestoreVersionResponse)
async def restore_document_version(
    document_id: int,
    request: RestoreVersionRequest,
    db: AsyncSession = Depends(get_db),
) -> RestoreVersionResponse:
    """Copy a past version onto the document; the restore becomes a new version."""
    document = await _get_document_or_404(db, document_id)
    version = await get_version(db, document_id, request.version_id)
    if version is None:
        raise HTTPException(
            status_code=404,
            detail=f"Version {request.version_id} of document {document_id} not found.",
        )

    new_version = await service.restore_document_version(
        db, document, version, request.change_description
    )
    return RestoreVersionResponse(
        document=DocumentDetail.model_validate(document, from_attributes=True),
        version=VersionSummary.model_validate(new_version, from_attributes=True),
    )


@router.get(
    "/{document_id}/versions/{version_a}/diff/{version_b}",
    response_model=VersionDiffResponse,
)
async def get_version_diff(
    document_id: int,
    version_a: int,
    version_b: int,
    db: AsyncSession = Depends(get_db),
) -> VersionDiffResponse:
    """Compare two versions (by version number) and return a per-product diff."""
    await _get_document_or_404(db, document_id)
    record_a = await get_version_by_number(db, document_id, version_a)
    record_b = await get_version_by_number(db, document_id, version_b)
    if record_a is None:
        raise HTTPException(status_code=404, detail=f"Version {version_a} not found.")
    if record_b is None:
        raise HTTPException(status_code=404, detail=f"Version {version_b} not found.")

    products, total = service.compute_version_diff(
        record_a.structured_data, record_b.structured_data
    )

    changes = [c for p in products for c in p["changes"]]
    added = sum(1 for c in changes if c["change_type"] == "added")
    removed = sum(1 for c in changes if c["change_type"] == "removed")
    changed = sum(1 for c in changes if c["change_type"] == "changed")
    summary = f"{changed} changed, {added} added, {removed} removed"

    return VersionDiffResponse(
        version_a=VersionSummary.model_validate(record_a, from_attributes=True),
        version_b=VersionSummary.model_validate(record_b, from_attributes=True),
        products=[
            ProductDiff(
                section=p["section"],
                product=p["product"],
                changes=[DiffEntry(**c) for c in p["changes"]],
            )
            for p in products
        ],
        total_changes=total,
        summary=summary,
    )


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


@analytics_router.get("", response_model=AnalyticsResponse)
async def get_analytics(db: AsyncSession = Depends(get_db)) -> AnalyticsResponse:
    """Section coverage and field completeness across all documents."""
    return await service.compute_analytics(db)
