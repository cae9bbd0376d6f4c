"""Product catalog API — /products endpoints (read-only).

The catalog is derived data: it is written only by the projector when a
document is processed, edited or restored.
"""

from __future__ import annotations

import math

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.modules.catalog import service
from app.modules.catalog.schemas import (
    PaginatedProducts,
    ProductDetail,
    ProductSummary,
    ProductVariantOut,
)
from app.modules.extraction.schemas import CopySection

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=PaginatedProducts)
async def list_products(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=200, description="Items per page"),
    db: AsyncSession = Depends(get_db),
) -> PaginatedProducts:
    """Return products ordered by name, with variant counts and locales."""
    products, total = await service.list_products(db, page=page, page_size=page_size)
    variants = await service.list_variants(db, [p.id for p in products])

    items = []
    for product in products:
        count, locales = service.summarize_variants(
            [v for v in variants if v.product_id == product.id]
        )
        items.append(
            ProductSummary(
                id=product.id,
                name=product.name,
                variant_count=count,
                locales=locales,
                created_at=product.created_at,
            )
        )

    return PaginatedProducts(
        items=items,
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total > 0 else 0,
    )


@router.get("/{product_id}", response_model=ProductDetail)
async def get_product(
    product_id: int,
    locale: str | None = Query(None, description="Only variants in this language"),
    copy_type: CopySection | None = Query(None, description="Only variants from this section"),
    db: AsyncSession = Depends(get_db),
) -> ProductDetail:
    """Return a product with its variants across documents and languages."""
    product = await service.get_product(db, product_id)
    if product is None:
        raise HTTPException(status_code=404, detail=f"Product {product_id} not found.")

    variants = await service.list_variants(
        db, [product.id], locale=locale, copy_type=copy_type
    )
    count, locales = service.summarize_variants(variants)
    return ProductDetail(
        id=product.id,
        name=product.name,
        variant_count=count,
        locales=locales,
        created_at=product.created_at,
        variants=[ProductVariantOut.model_validate(v, from_attributes=True) for v in variants],
    )
