"""Document service — ingestion, reprocessing, edits, history and analytics.

Processing writes happen only after the pipeline has fully succeeded, so a
failed attempt never partially overwrites a document. Writes after a
reprocess are update-by-id: if the document was deleted while the pipeline
ran, the result is discarded.
"""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Any

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.modules.catalog.models import ProductVariant
from app.modules.catalog.projector import project_products_from_document
from app.modules.documents.models import Document, DocumentVersion
from app.modules.documents.schemas import (
    AnalyticsResponse,
    DocumentAnalysis,
    DocumentUpdate,
    QualityMetrics,
    SectionCompleteness,
    SectionCoverage,
)
from app.modules.documents.versioning import (
    create_version,
    restore_version,
    snapshot_document,
)
from app.modules.extraction import superscripts
from app.modules.extraction.agents.sanitizer import normalize_extraction, to_extraction
from app.modules.extraction.pipeline import DocumentPipeline, PipelineResult
from app.modules.extraction.schemas import SECTION_ORDER, ProductEntry
from app.modules.extraction.text_extractor import ensure_supported, file_kind_from_filename

logger = structlog.get_logger()

INITIAL_VERSION_DESCRIPTION = "Initial extraction"
REPROCESS_VERSION_DESCRIPTION = "Reprocessed"
MANUAL_EDIT_DESCRIPTION = "Manual edit"


# ---------------------------------------------------------------------------
# File storage
# ---------------------------------------------------------------------------


def store_upload(file_bytes: bytes, file_name: str) -> Path:
    """Write the original file under the upload directory; return its path."""
    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    path = upload_dir / f"{uuid.uuid4().hex}_{Path(file_name).name}"
    path.write_bytes(file_bytes)
    return path


def remove_stored_file(file_path: str | Path) -> None:
    """Best-effort removal of a stored original."""
    try:
        Path(file_path).unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not remove stored file", file_path=str(file_path), error=str(e))


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def list_documents(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 50,
    needs_review: bool | None = None,
) -> tuple[list[Document], int]:
    """Return a paginated list of documents, newest first."""
    base = select(Document)
    count_base = select(func.count()).select_from(Document)
    if needs_review is not None:
        base = base.where(Document.needs_review == needs_review)
        count_base = count_base.where(Document.needs_review == needs_review)

    total = (await db.execute(count_base)).scalar_one()

    query = (
        base.order_by(Document.created_at.desc(), Document.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def get_document(db: AsyncSession, document_id: int) -> Document | None:
    """Return a single document by ID (or None)."""
    result = await db.execute(select(Document).where(Document.id == document_id))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Processing
# ---------------------------------------------------------------------------


def _result_values(result: PipelineResult) -> dict[str, Any]:
    return {
        "language": result.language,
        "extracted_text": result.raw_text,
        "structured_data": result.structured_data,
        "is_processed": True,
        "validation_confidence": result.verdict.confidence,
        "validation_issues": list(result.verdict.issues),
        "needs_review": result.verdict.needs_review,
    }


async def ingest_document(
    db: AsyncSession,
    pipeline: DocumentPipeline,
    file_bytes: bytes,
    file_name: str,
    *,
    month: str | None = None,
    year: str | None = None,
    is_original: bool = False,
) -> Document:
    """Store an upload, run the pipeline and persist the result as version 1.

    month, year and is_original are catalogue metadata kept as given.

    Raises PipelineError subclasses; on failure the stored file is removed
    and nothing is written.
    """
    file_kind = file_kind_from_filename(file_name)
    ensure_supported(file_kind)

    path = store_upload(file_bytes, file_name)
    try:
        result = await pipeline.run(file_bytes, file_kind, file_name=file_name)
    except Exception:
        remove_stored_file(path)
        raise

    document = Document(
        name=file_name,
        file_type=file_kind,
        file_path=str(path),
        size=len(file_bytes),
        month=month,
        year=year,
        is_original=is_original,
        **_result_values(result),
    )
    db.add(document)
    await db.flush()

    await create_version(
        db,
        document.id,
        result.structured_data,
        result.verdict,
        extracted_text=result.raw_text,
        change_description=INITIAL_VERSION_DESCRIPTION,
    )
    await project_products_from_document(db, document.id)
    await db.refresh(document)

    logger.info(
        "Document ingested",
        document_id=document.id,
        file_kind=file_kind,
        language=document.language,
        needs_review=document.needs_review,
    )
    return document


async def reprocess_document(
    db: AsyncSession,
    pipeline: DocumentPipeline,
    document: Document,
) -> Document | None:
    """Re-run the pipeline on the stored original and append a version.

    Returns None when the document disappeared while the pipeline ran.

    Raises:
        FileNotFoundError: the stored original is gone.
        PipelineError: any pipeline stage failed; the document is unchanged.
    """
    document_id = document.id
    path = Path(document.file_path)
    if not path.is_file():
        raise FileNotFoundError(f"Original file for document {document_id} is missing")

    result = await pipeline.run(path.read_bytes(), document.file_type, file_name=document.name)

    written = await db.execute(
        update(Document)
        .where(Document.id == document_id)
        .values(**_result_values(result))
        .execution_options(synchronize_session=False)
    )
    if written.rowcount == 0:
        logger.warning("Document vanished during reprocess, result discarded", document_id=document_id)
        return None

    await db.refresh(document)
    await create_version(
        db,
        document_id,
        result.structured_data,
        result.verdict,
        extracted_text=result.raw_text,
        change_description=REPROCESS_VERSION_DESCRIPTION,
    )
    await project_products_from_document(db, document_id)

    logger.info(
        "Document reprocessed",
        document_id=document_id,
        confidence=document.validation_confidence,
        needs_review=document.needs_review,
    )
    return document


# ---------------------------------------------------------------------------
# Edits, restore, delete
# ---------------------------------------------------------------------------


def _refresh_cross_reference_issues(issues: list[str] | None, structured_data: dict) -> list[str]:
    kept = [issue for issue in issues or [] if not superscripts.is_cross_reference_issue(issue)]
    fresh = superscripts.check_cross_references(to_extraction(structured_data))
    return list(dict.fromkeys([*kept, *fresh]))


async def update_document(
    db: AsyncSession,
    document: Document,
    data: DocumentUpdate,
) -> Document:
    """Apply a partial update.

    New structured data is normalized, recorded as a version and re-projected.
    A language change re-projects too, since variants carry the locale.
    Cross-reference issues are recomputed for the edited extraction; judge
    issues are kept as they were.

    Raises:
        SchemaViolationError: structured_data is not a valid extraction.
    """
    changes = data.model_dump(exclude_unset=True)
    description = changes.pop("change_description", None)
    new_structured = changes.pop("structured_data", None)

    for field in ("name", "language", "translated_text", "month", "year", "is_original"):
        if field in changes:
            setattr(document, field, changes[field])

    if new_structured is not None:
        document.structured_data = normalize_extraction(new_structured)
        document.is_processed = True
        document.validation_issues = _refresh_cross_reference_issues(
            document.validation_issues, document.structured_data
        )
    await db.flush()
    await db.refresh(document)

    if new_structured is not None:
        await snapshot_document(db, document, description or MANUAL_EDIT_DESCRIPTION)
    if new_structured is not None or "language" in changes:
        await project_products_from_document(db, document.id)

    logger.info("Document updated", document_id=document.id, fields=sorted(data.model_fields_set))
    return document


async def restore_document_version(
    db: AsyncSession,
    document: Document,
    version: DocumentVersion,
    change_description: str | None = None,
) -> DocumentVersion:
    """Restore *version* onto the document, record it and re-project."""
    new_version = await restore_version(db, document, version, change_description)
    await project_products_from_document(db, document.id)
    await db.refresh(document)
    return new_version


async def delete_document(db: AsyncSession, document: Document) -> None:
    """Delete a document with its versions and variants, then its stored file."""
    document_id = document.id
    file_path = document.file_path

    await db.execute(delete(ProductVariant).where(ProductVariant.document_id == document_id))
    await db.execute(delete(DocumentVersion).where(DocumentVersion.document_id == document_id))
    await db.delete(document)
    await db.flush()

    remove_stored_file(file_path)
    logger.info("Document deleted", document_id=document_id)


# ---------------------------------------------------------------------------
# Version diff
# ---------------------------------------------------------------------------

_LIST_FIELDS = ("Headlines", "KeyFeatureBullets", "LegalReferences")
_TEXT_FIELDS = ("AdvertisingCopy",)


def _entries_by_name(entries: list[dict]) -> dict[str, dict]:
    """Key entries by product name; repeated names get a " #2" suffix."""
    keyed: dict[str, dict] = {}
    for entry in entries:
        name = entry.get("ProductName") or "(unnamed)"
        key, n = name, 1
        while key in keyed:
            n += 1
            key = f"{name} #{n}"
        keyed[key] = entry
    return keyed


def _entry_changes(entry_a: dict, entry_b: dict) -> list[dict]:
    changes: list[dict] = []

    for field in _LIST_FIELDS:
        la = set(entry_a.get(field) or [])
        lb = set(entry_b.get(field) or [])
        added = sorted(lb - la)
        removed = sorted(la - lb)
        if added:
            changes.append(
                {"field": field, "change_type": "added", "old_value": None, "new_value": added}
            )
        if removed:
            changes.append(
                {"field": field, "change_type": "removed", "old_value": removed, "new_value": None}
            )

    for field in _TEXT_FIELDS:
        sa = entry_a.get(field) or ""
        sb = entry_b.get(field) or ""
        if sa == sb:
            continue
        if not sa and sb:
            ct = "added"
        elif sa and not sb:
            ct = "removed"
        else:
            ct = "changed"
        changes.append(
            {"field": field, "change_type": ct, "old_value": sa or None, "new_value": sb or None}
        )

    return changes


def compute_version_diff(
    data_a: dict | None, data_b: dict | None
) -> tuple[list[dict], int]:
    """Per-section, per-product diff of two stored extractions.

    Returns ``(products, total_change_count)`` where *products* is a list of
    ``{"section", "product", "changes": [DiffEntry-like dicts]}``.
    """
    products: list[dict] = []
    total = 0

    for section in SECTION_ORDER:
        entries_a = _entries_by_name((data_a or {}).get(section) or [])
        entries_b = _entries_by_name((data_b or {}).get(section) or [])

        for name in [*entries_a, *(n for n in entries_b if n not in entries_a)]:
            entry_a, entry_b = entries_a.get(name), entries_b.get(name)
            if entry_a is None:
                changes = [{"field": "ProductName", "change_type": "added",
                            "old_value": None, "new_value": name}]
            elif entry_b is None:
                changes = [{"field": "ProductName", "change_type": "removed",
                            "old_value": name, "new_value": None}]
            else:
                changes = _entry_changes(entry_a, entry_b)

            if changes:
                products.append({"section": section, "product": name, "changes": changes})
                total += len(changes)

    return products, total


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------

_SECTION_ATTRS = {
    "ProductCopy": "product_copy",
    "BusinessCopy": "business_copy",
    "UpgraderCopy": "upgrader_copy",
}


def _entry_missing_fields(entry: ProductEntry) -> bool:
    return not (
        entry.product_name.strip()
        and entry.headlines
        and entry.advertising_copy.strip()
        and entry.key_feature_bullets
        and entry.legal_references
    )


def section_completeness(entries: list[ProductEntry]) -> SectionCompleteness:
    """A field counts as present only when every entry in the section has it."""
    return SectionCompleteness(
        entries=len(entries),
        has_product_name=all(e.product_name.strip() for e in entries),
        has_headlines=all(e.headlines for e in entries),
        has_advertising_copy=all(e.advertising_copy.strip() for e in entries),
        has_key_feature_bullets=all(e.key_feature_bullets for e in entries),
        has_legal_references=all(e.legal_references for e in entries),
        headlines_count=sum(len(e.headlines) for e in entries),
        key_feature_bullets_count=sum(len(e.key_feature_bullets) for e in entries),
        legal_references_count=sum(len(e.legal_references) for e in entries),
    )


async def compute_analytics(db: AsyncSession) -> AnalyticsResponse:
    """Document counts, section coverage and field completeness across all documents."""
    result = await db.execute(select(Document).order_by(Document.id))
    documents = list(result.scalars().all())

    coverage = SectionCoverage()
    quality = QualityMetrics()
    analyses: list[DocumentAnalysis] = []

    for document in documents:
        if not document.structured_data:
            continue

        extraction = to_extraction(document.structured_data)
        present = dict(extraction.sections())
        all_entries = [entry for entries in present.values() for entry in entries]

        analysis: dict[str, Any] = {"id": document.id, "name": document.name}
        for section, attr in _SECTION_ATTRS.items():
            entries = present.get(section)
            analysis[f"has_{attr}"] = entries is not None
            analysis[attr] = section_completeness(entries) if entries else None
            if entries:
                setattr(coverage, attr, getattr(coverage, attr) + 1)

        if any(not e.key_feature_bullets for e in all_entries):
            quality.documents_with_empty_key_feature_bullets += 1
        if any(_entry_missing_fields(e) for e in all_entries):
            quality.documents_with_missing_fields += 1

        analyses.append(DocumentAnalysis(**analysis))

    processed = sum(1 for d in documents if d.is_processed)
    return AnalyticsResponse(
        total_documents=len(documents),
        processed_documents=processed,
        unprocessed_documents=len(documents) - processed,
        needs_review_documents=sum(1 for d in documents if d.needs_review),
        section_coverage=coverage,
        quality_metrics=quality,
        document_analysis=analyses,
    )
