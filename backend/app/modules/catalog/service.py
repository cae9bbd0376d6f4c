"""Catalog queries — products and their variants."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.catalog.models import Product, ProductVariant


async def list_products(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 50,
) -> tuple[list[Product], int]:
    """Return a paginated list of products, ordered by name."""
    total = (await db.execute(select(func.count()).select_from(Product))).scalar_one()

    query = (
        select(Product)
        .order_by(Product.name.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def get_product(db: AsyncSession, product_id: int) -> Product | None:
    result = await db.execute(select(Product).where(Product.id == product_id))
    return result.scalar_one_or_none()


async def list_variants(
    db: AsyncSession,
    product_ids: list[int],
    locale: str | None = None,
    copy_type: str | None = None,
) -> list[ProductVariant]:
    """Variants of the given products, optionally filtered by locale and section."""
    if not product_ids:
        return []

    query = select(ProductVariant).where(ProductVariant.product_id.in_(product_ids))
    if locale is not None:
        query = query.where(ProductVariant.locale == locale)
    if copy_type is not None:
        query = query.where(ProductVariant.copy_type == copy_type)
    query = query.order_by(
        ProductVariant.product_id, ProductVariant.document_id, ProductVariant.id
    )
    result = await db.execute(query)
    return list(result.scalars().all())


def summarize_variants(variants: list[ProductVariant]) -> tuple[int, list[str]]:
    """(variant count, distinct non-empty locales in first-seen order)."""
    locales = list(dict.fromkeys(v.locale for v in variants if v.locale))
    return len(variants), locales
