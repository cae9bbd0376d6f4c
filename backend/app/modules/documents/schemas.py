"""Document API schemas.

``file_path`` is deliberately absent from every response model.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# Document views
# ---------------------------------------------------------------------------


class DocumentSummary(BaseModel):
    """Compact view of a Document (used in lists)."""

    model_config = {"from_attributes": True}

    id: int
    name: str
    file_type: str
    size: int
    language: str | None = None
    month: str | None = None
    year: str | None = None
    is_original: bool = False
    is_processed: bool = False
    validation_confidence: float | None = None
    needs_review: bool = False
    created_at: datetime
    updated_at: datetime | None = None


class DocumentDetail(DocumentSummary):
    """Full document including raw text, structured extraction and issues."""

    extracted_text: str | None = None
    translated_text: str | None = None
    structured_data: dict[str, Any] | None = Field(
        None, description="Ordered ProductCopy / BusinessCopy / UpgraderCopy object"
    )
    validation_issues: list[str] = Field(default_factory=list)

    @field_validator("validation_issues", mode="before")
    @classmethod
    def _null_issues(cls, value: Any) -> Any:
        return [] if value is None else value


class DocumentUpdate(BaseModel):
    """PATCH body; only the fields sent are changed."""

    name: str | None = None
    language: str | None = None
    translated_text: str | None = None
    month: str | None = Field(None, max_length=20)
    year: str | None = Field(None, pattern=r"^\d{4}$")
    is_original: bool = False
    structured_data: dict[str, Any] | None = None
    change_description: str | None = Field(
        None, description="Recorded on the new version when structured_data changes"
    )


class PaginatedDocuments(BaseModel):
    items: list[DocumentSummary]
    total: int
    page: int
    page_size: int
    pages: int


# ---------------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------------


class VersionSummary(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    document_id: int
    version_number: int
    validation_confidence: float | None = None
    needs_review: bool = False
    change_description: str | None = None
    created_at: datetime


class VersionDetail(VersionSummary):
    extracted_text: str | None = None
    structured_data: dict[str, Any] | None = None
    validation_issues: list[str] = Field(default_factory=list)

    @field_validator("validation_issues", mode="before")
    @classmethod
    def _null_issues(cls, value: Any) -> Any:
        return [] if value is None else value


class RestoreVersionRequest(BaseModel):
    version_id: int
    change_description: str | None = None


class RestoreVersionResponse(BaseModel):
    document: DocumentDetail
    version: VersionSummary


# ---------------------------------------------------------------------------
# Version diff
# ---------------------------------------------------------------------------


class DiffEntry(BaseModel):
    """A single field-level change between two versions."""

    field: str
    change_type: str  # "added" | "removed" | "changed"
    old_value: str | list[str] | None = None
    new_value: str | list[str] | None = None


class ProductDiff(BaseModel):
    """Changes to one product entry within one section."""

    section: str
    product: str
    changes: list[DiffEntry]


class VersionDiffResponse(BaseModel):
    version_a: VersionSummary
    version_b: VersionSummary
    products: list[ProductDiff]
    total_changes: int
    summary: str


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


class SectionCompleteness(BaseModel):
    """Field coverage of one section across its entries."""

    entries: int
    has_product_name: bool
    has_headlines: bool
    has_advertising_copy: bool
    has_key_feature_bullets: bool
    has_legal_references: bool
    headlines_count: int
    key_feature_bullets_count: int
    legal_references_count: int


class DocumentAnalysis(BaseModel):
    id: int
    name: str
    has_product_copy: bool
    has_business_copy: bool
    has_upgrader_copy: bool
    product_copy: SectionCompleteness | None = None
    business_copy: SectionCompleteness | None = None
    upgrader_copy: SectionCompleteness | None = None


class SectionCoverage(BaseModel):
    product_copy: int = 0
    business_copy: int = 0
    upgrader_copy: int = 0


class QualityMetrics(BaseModel):
    documents_with_empty_key_feature_bullets: int = 0
    documents_with_missing_fields: int = 0


class AnalyticsResponse(BaseModel):
    total_documents: int
    processed_documents: int
    unprocessed_documents: int
    needs_review_documents: int
    section_coverage: SectionCoverage
    quality_metrics: QualityMetrics
    document_analysis: list[DocumentAnalysis]
