"""Catalog API schemas — read-only views of Product & ProductVariant."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ProductVariantOut(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    product_id: int
    document_id: int
    version_number: int | None = None
    locale: str | None = None
    copy_type: str
    headlines: list[str] = Field(default_factory=list)
    advertising_copy: str | None = None
    key_feature_bullets: list[str] = Field(default_factory=list)
    legal_references: list[str] = Field(default_factory=list)
    created_at: datetime


class ProductSummary(BaseModel):
    """Product with a count of its variants and the locales they cover."""

    id: int
    name: str
    variant_count: int = 0
    locales: list[str] = Field(default_factory=list)
    created_at: datetime


class ProductDetail(ProductSummary):
    variants: list[ProductVariantOut] = Field(default_factory=list)


class PaginatedProducts(BaseModel):
    items: list[ProductSummary]
    total: int
    page: int
    page_size: int
    pages: int
