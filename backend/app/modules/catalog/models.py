"""Catalog models — Product + ProductVariant.

Products are created lazily the first time an entry with that exact name is
projected and are never deleted automatically. Variants belong to the document
they were projected from and are fully replaced on every re-projection.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class Product(Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, unique=True, nullable=False)  # case-sensitive
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class ProductVariant(Base):
    """One product's copy from one (document, section, locale) at projection time."""

    __tablename__ = "product_variants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    document_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False
    )
    version_number: Mapped[Optional[int]] = mapped_column(Integer)
    locale: Mapped[Optional[str]] = mapped_column(String(50))
    copy_type: Mapped[str] = mapped_column(String(50), nullable=False)

    headlines: Mapped[Optional[list[str]]] = mapped_column(JSON, default=list)
    advertising_copy: Mapped[Optional[str]] = mapped_column(Text)
    key_feature_bullets: Mapped[Optional[list[str]]] = mapped_column(JSON, default=list)
    legal_references: Mapped[Optional[list[str]]] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_product_variants_product", "product_id"),
        Index("idx_product_variants_document", "document_id"),
        Index("idx_product_variants_locale", "locale"),
    )
