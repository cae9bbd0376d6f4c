#!/usr/bin/env python3
"""Catalog backfill — re-project every processed document into products/variants.

Run once after introducing the catalog tables, or whenever the catalog has
drifted from the documents' structured data. Projection replaces each
document's variants, so running it repeatedly is safe.

Usage:
    python -m scripts.backfill_products
    python -m scripts.backfill_products --document-id 42
    python -m scripts.backfill_products --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Add backend to path for imports
_backend = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_backend))

# Load .env before importing app modules
from dotenv import load_dotenv
load_dotenv(_backend / ".env")

import structlog

structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ]
)

from sqlalchemy import select

from app.core.database import async_session_factory
from app.modules.catalog import service as catalog_service
from app.modules.catalog.projector import project_products_from_document
from app.modules.documents.models import Document

logger = structlog.get_logger()


async def backfill(document_id: int | None = None, dry_run: bool = False) -> dict[str, int]:
    """Project each document with structured data; return processed/skipped/error counts."""
    counts = {"processed": 0, "skipped": 0, "errors": 0}

    async with async_session_factory() as db:
        query = select(Document).order_by(Document.id)
        if document_id is not None:
            query = query.where(Document.id == document_id)
        documents = list((await db.execute(query)).scalars().all())
        logger.info("Documents found", count=len(documents))

        for document in documents:
            if document.structured_data is None:
                logger.info("Skipping document without structured data", document_id=document.id)
                counts["skipped"] += 1
                continue

            if dry_run:
                logger.info("Would project document", document_id=document.id, name=document.name)
                counts["processed"] += 1
                continue

            try:
                async with db.begin_nested():
                    variants = await project_products_from_document(db, document.id)
            except Exception as e:
                counts["errors"] += 1
                logger.error(
                    "Projection failed",
                    document_id=document.id,
                    name=document.name,
                    error=str(e),
                )
                continue

            counts["processed"] += 1
            logger.info(
                "Document projected",
                document_id=document.id,
                name=document.name,
                variants=variants,
            )

        if dry_run:
            await db.rollback()
        else:
            await db.commit()

        await print_summary(db)

    logger.info("Backfill complete", **counts)
    return counts


async def print_summary(db) -> None:
    """One line per product: variant count and the locales they cover."""
    products, total = await catalog_service.list_products(db, page=1, page_size=10_000)
    variants = await catalog_service.list_variants(db, [p.id for p in products])

    print(f"\nTotal products: {total}")
    for product in products:
        count, locales = catalog_service.summarize_variants(
            [v for v in variants if v.product_id == product.id]
        )
        print(
            f"  - {product.name}: {count} variants across {len(locales)} locales"
            f" ({', '.join(locales)})"
        )


def main() -> None:
    parser = argparse.ArgumentParser(description="Re-project documents into the product catalog")
    parser.add_argument(
        "--document-id",
        type=int,
        default=None,
        help="Only project this document",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List what would be projected without writing",
    )
    args = parser.parse_args()

    counts = asyncio.run(backfill(document_id=args.document_id, dry_run=args.dry_run))
    sys.exit(1 if counts["errors"] else 0)


if __name__ == "__main__":
    main()
