"""Version history for documents.

History is append-only: every successful (re)processing, manual edit and
restore adds a DocumentVersion with the next number for that document.
Nothing here updates or deletes an existing version.
"""

from __future__ import annotations

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.documents.models import Document, DocumentVersion
from app.modules.extraction.agent_schemas import ConsensusVerdict

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# Version numbers
# ---------------------------------------------------------------------------


async def next_version_number(db: AsyncSession, document_id: int) -> int:
    """1 + the highest existing version number for the document (1 when none)."""
    max_version_query = select(func.max(DocumentVersion.version_number)).where(
        DocumentVersion.document_id == document_id
    )
    max_version = (await db.execute(max_version_query)).scalar_one_or_none()
    return (max_version or 0) + 1


async def latest_version_number(db: AsyncSession, document_id: int) -> int | None:
    result = await db.execute(
        select(func.max(DocumentVersion.version_number)).where(
            DocumentVersion.document_id == document_id
        )
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Appending versions
# ---------------------------------------------------------------------------


async def _append_version(
    db: AsyncSession,
    document_id: int,
    *,
    extracted_text: str | None,
    structured_data: dict | None,
    validation_confidence: float | None,
    validation_issues: list[str] | None,
    needs_review: bool,
    change_description: str | None,
) -> DocumentVersion:
    version = DocumentVersion(
        document_id=document_id,
        version_number=await next_version_number(db, document_id),
        extracted_text=extracted_text,
        structured_data=structured_data,
        validation_confidence=validation_confidence,
        validation_issues=list(validation_issues or []),
        needs_review=needs_review,
        change_description=change_description,
    )
    db.add(version)
    await db.flush()
    await db.refresh(version)

    logger.info(
        "Document version created",
        document_id=document_id,
        version_number=version.version_number,
        change_description=change_description,
    )
    return version


async def create_version(
    db: AsyncSession,
    document_id: int,
    structured_data: dict | None,
    verdict: ConsensusVerdict | None = None,
    *,
    extracted_text: str | None = None,
    change_description: str | None = None,
) -> DocumentVersion:
    """Append a version for a freshly processed extraction and its verdict."""
    return await _append_version(
        db,
        document_id,
        extracted_text=extracted_text,
        structured_data=structured_data,
        validation_confidence=verdict.confidence if verdict else None,
        validation_issues=verdict.issues if verdict else [],
        needs_review=verdict.needs_review if verdict else False,
        change_description=change_description,
    )


async def snapshot_document(
    db: AsyncSession,
    document: Document,
    change_description: str | None = None,
) -> DocumentVersion:
    """Append a version copying the document's current live state."""
    return await _append_version(
        db,
        document.id,
        extracted_text=document.extracted_text,
        structured_data=document.structured_data,
        validation_confidence=document.validation_confidence,
        validation_issues=document.validation_issues,
        needs_review=document.needs_review,
        change_description=change_description,
    )


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def list_versions(db: AsyncSession, document_id: int) -> list[DocumentVersion]:
    """All versions of a document, newest first."""
    result = await db.execute(
        select(DocumentVersion)
        .where(DocumentVersion.document_id == document_id)
        .order_by(DocumentVersion.version_number.desc())
    )
    return list(result.scalars().all())


async def get_version(
    db: AsyncSession, document_id: int, version_id: int,
) -> DocumentVersion | None:
    """A version by id, only if it belongs to *document_id*."""
    result = await db.execute(
        select(DocumentVersion)
        .where(DocumentVersion.id == version_id)
        .where(DocumentVersion.document_id == document_id)
    )
    return result.scalar_one_or_none()


async def get_version_by_number(
    db: AsyncSession, document_id: int, version_number: int,
) -> DocumentVersion | None:
    result = await db.execute(
        select(DocumentVersion)
        .where(DocumentVersion.document_id == document_id)
        .where(DocumentVersion.version_number == version_number)
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Restore
# ---------------------------------------------------------------------------


async def restore_version(
    db: AsyncSession,
    document: Document,
    version: DocumentVersion,
    change_description: str | None = None,
) -> DocumentVersion:
    """Copy *version* onto the live document and record the restore as a new version.

    The restored version itself is left untouched.
    """
    document.extracted_text = version.extracted_text
    document.structured_data = version.structured_data
    document.is_processed = version.structured_data is not None
    document.validation_confidence = version.validation_confidence
    document.validation_issues = list(version.validation_issues or [])
    document.needs_review = version.needs_review
    await db.flush()
    await db.refresh(document)

    logger.info(
        "Document restored",
        document_id=document.id,
        restored_version=version.version_number,
    )
    return await snapshot_document(
        db,
        document,
        change_description or f"Restored from version {version.version_number}",
    )
