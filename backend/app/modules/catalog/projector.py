"""Product projection — flattens a document's structured extraction into the catalog.

For each section and each entry with a product name, find-or-create the
Product by exact name and add a ProductVariant owned by the document, tagged
with the document's language, the section and its latest version number.

Every run first deletes all of the document's variants, so a section that
disappears between reprocessings disappears from the catalog too and running
the projection twice on an unchanged document gives the same variants.
"""

from __future__ import annotations

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.catalog.models import Product, ProductVariant
from app.modules.documents.models import Document
from app.modules.documents.versioning import latest_version_number
from app.modules.extraction.agents.sanitizer import to_extraction

logger = structlog.get_logger()


async def get_product_by_name(db: AsyncSession, name: str) -> Product | None:
    result = await db.execute(select(Product).where(Product.name == name))
    return result.scalar_one_or_none()


async def find_or_create_product(db: AsyncSession, name: str) -> Product:
    """Exact, case-sensitive lookup; creates the product on first sight."""
    product = await get_product_by_name(db, name)
    if product is not None:
        return product

    try:
        async with db.begin_nested():
            product = Product(name=name)
            db.add(product)
            await db.flush()
    except IntegrityError:
        # Another projection created it between our lookup and insert
        logger.info("Product created concurrently, reusing it", product_name=name)
        existing = await get_product_by_name(db, name)
        if existing is None:
            raise
        return existing

    logger.info("Product created", product_id=product.id, product_name=name)
    return product


async def project_products_from_document(db: AsyncSession, document_id: int) -> int:
    """Replace the document's variants with ones derived from its extraction.

    Returns the number of variants created. A missing document or one that was
    never structured is a no-op. An empty extraction clears the document's variants.
    """
    document = await db.get(Document, document_id)
    if document is None or document.structured_data is None:
        logger.info("Projection skipped, no structured data", document_id=document_id)
        return 0

    await db.execute(delete(ProductVariant).where(ProductVariant.document_id == document_id))

    extraction = to_extraction(document.structured_data)
    version_number = await latest_version_number(db, document_id)

    created = 0
    for section, entries in extraction.sections():
        for entry in entries:
            if not entry.product_name.strip():
                continue

            product = await find_or_create_product(db, entry.product_name)
            db.add(
                ProductVariant(
                    product_id=product.id,
                    document_id=document_id,
                    version_number=version_number,
                    locale=document.language,
                    copy_type=section,
                    headlines=list(entry.headlines),
                    advertising_copy=entry.advertising_copy,
                    key_feature_bullets=list(entry.key_feature_bullets),
                    legal_references=list(entry.legal_references),
                )
            )
            created += 1

    await db.flush()

    logger.info(
        "Products projected",
        document_id=document_id,
        version_number=version_number,
        variants=created,
    )
    return created
