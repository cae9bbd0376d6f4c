"""Structuring agent: raw document text -> StructuredExtraction.

The model is asked for a JSON object with English field names and untranslated
content values. Its reply is validated against the product entry schema and
normalized deterministically (see ``sanitizer``); a reply that does not fit the
schema raises SchemaViolationError instead of being patched up.
"""

from __future__ import annotations

import structlog

from app.modules.extraction.agents.base import BaseAgent
from app.modules.extraction.agents.sanitizer import to_extraction
from app.modules.extraction.errors import PipelineError
from app.modules.extraction.schemas import StructuredExtraction

logger = structlog.get_logger()

STRUCTURING_PROMPT = """\
You are a product documentation extraction specialist. Extract structured product
copy from the provided text and return it as a single JSON object.

## Language rules
- JSON field names MUST be in English, exactly as listed below.
- Content values (product names, headlines, copy, bullets, legal text) MUST stay in
  the document's original language. Never translate.

## Sections
The document may contain up to three copy sections:
- ProductCopy   — general product copy
- BusinessCopy  — copy aimed at business customers
- UpgraderCopy  — copy aimed at customers upgrading from an older product

Each section is a LIST with one entry per product. Scan the ENTIRE document for
every product mentioned in each section. If a table of contents lists N products
for a section, that section must contain N separate entries, never one merged entry.
Omit a section that does not appear in the document.

## Superscripts — three distinct cases
A. Footnotes / claim references (¹, ², ³ …) and existing {{sup:N}} tokens:
   write them as {{sup:N}} in content, and start the matching legal reference with
   the SAME token.
   Example: "battery for several days{{sup:1}}" and
            "{{sup:1}} Battery life varies by use and configuration."
B. Legal marks (™, ®, ℠): leave them out of the text.
C. Units and scientific notation (cm², 10⁶, CO₂e): keep the literal characters.

## Output shape (LegalReferences is always the last field of an entry)
{
  "ProductCopy": [
    {
      "ProductName": "string",
      "Headlines": ["string"],
      "AdvertisingCopy": "string with {{sup:N}} tokens",
      "KeyFeatureBullets": ["string with {{sup:N}} tokens"],
      "LegalReferences": ["{{sup:1}} footnote text", "legal text without a marker"]
    }
  ],
  "BusinessCopy": [ ... ],
  "UpgraderCopy": [ ... ]
}

Use empty strings or empty arrays for fields that are not present. Never invent content.
"""


class StructuringAgent(BaseAgent):
    """Turns raw document text into a normalized StructuredExtraction."""

    agent_name = "Structurer"

    async def structure(self, text: str, file_name: str = "") -> StructuredExtraction:
        """Run the schema-constrained structuring call and normalize the reply.

        Raises:
            CapabilityUnavailableError: provider failure (retryable).
            SchemaViolationError: reply does not satisfy the schema (retryable).
        """
        user_content = f"Extract the product copy from this document.\n\n---\n\n{text}"

        try:
            data = await self.client.extract_json(STRUCTURING_PROMPT, user_content)
            extraction = to_extraction(data)
        except PipelineError as exc:
            exc.stage = "structuring"
            logger.error(
                "Structuring failed",
                file=file_name,
                provider=self.provider,
                error=exc.message,
            )
            raise

        logger.info(
            "Structuring complete",
            file=file_name,
            provider=self.provider,
            sections=[name for name, _ in extraction.sections()],
            entries=sum(len(entries) for _, entries in extraction.sections()),
            ignored_keys=extraction.ignored_keys,
        )
        return extraction
