"""Document persistence models — Document + DocumentVersion.

Document holds the live state of one uploaded file: raw text, the current
structured extraction and the latest validation outcome. DocumentVersion is an
append-only history of that state; rows are never updated.

Structured extractions are stored as plain JSON (not JSONB): JSONB reorders
object keys, and the ProductCopy / BusinessCopy / UpgraderCopy order is part
of the storage contract.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class Document(Base):
    """One uploaded DOCX/PDF and its current extraction state."""

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    file_type: Mapped[str] = mapped_column(String(10), nullable=False)
    file_path: Mapped[str] = mapped_column(Text, nullable=False)  # never serialized
    size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    language: Mapped[Optional[str]] = mapped_column(String(50))
    month: Mapped[Optional[str]] = mapped_column(String(20))
    year: Mapped[Optional[str]] = mapped_column(String(4))
    is_original: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    is_processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    extracted_text: Mapped[Optional[str]] = mapped_column(Text)
    translated_text: Mapped[Optional[str]] = mapped_column(Text)
    structured_data: Mapped[Optional[dict]] = mapped_column(JSON)

    validation_confidence: Mapped[Optional[float]] = mapped_column(Float)
    validation_issues: Mapped[Optional[list[str]]] = mapped_column(JSON, default=list)
    needs_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class DocumentVersion(Base):
    """Immutable snapshot of a Document's extraction at one point in time."""

    __tablename__ = "document_versions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    document_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)

    extracted_text: Mapped[Optional[str]] = mapped_column(Text)
    structured_data: Mapped[Optional[dict]] = mapped_column(JSON)
    validation_confidence: Mapped[Optional[float]] = mapped_column(Float)
    validation_issues: Mapped[Optional[list[str]]] = mapped_column(JSON, default=list)
    needs_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    change_description: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        # Version numbers are never reused within a document
        Index(
            "uq_document_versions_document_version",
            "document_id",
            "version_number",
            unique=True,
        ),
    )
