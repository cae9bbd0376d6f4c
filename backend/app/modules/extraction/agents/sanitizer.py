"""Post-processing of structuring output.

Deterministic normalization applied to every reply before it is stored:
  1. Code fences around JSON replies are stripped.
  2. Each section is parsed as either a legacy single object or a list of
     entries, and always comes out as a list.
  3. Missing list fields default to [] and missing string fields to "".
  4. The top-level object is rebuilt in the fixed order
     ProductCopy, BusinessCopy, UpgraderCopy; empty sections are omitted.

Shape problems (wrong types, non-object sections, a reply whose keys are all
unknown) raise SchemaViolationError; nothing is coerced into plausible-looking
data. Unknown keys next to real sections are dropped but reported through
``StructuredExtraction.ignored_keys``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from app.modules.extraction.errors import SchemaViolationError
from app.modules.extraction.schemas import SECTION_ORDER, ProductEntry, StructuredExtraction


# ---------------------------------------------------------------------------
# Helper: strip markdown code fences from LLM output
# ---------------------------------------------------------------------------

def strip_code_fences(raw_text: str) -> str:
    """Strip markdown code fences (```json ... ```) from LLM response."""
    text = raw_text.strip()
    if text.startswith("```"):
        first_newline = text.find("\n")
        text = text[first_newline + 1:] if first_newline != -1 else text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


# ---------------------------------------------------------------------------
# Section shapes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LegacySingle:
    """Older replies carried one product object per section."""

    entry: ProductEntry

    def entries(self) -> list[ProductEntry]:
        return [self.entry]


@dataclass(frozen=True)
class EntryList:
    items: list[ProductEntry]

    def entries(self) -> list[ProductEntry]:
        return list(self.items)


SectionShape = LegacySingle | EntryList


def parse_section(name: str, raw: Any) -> SectionShape:
    """Classify and validate one raw section value."""
    try:
        if isinstance(raw, dict):
            return LegacySingle(ProductEntry.model_validate(raw))
        if isinstance(raw, list):
            items = []
            for idx, item in enumerate(raw):
                if not isinstance(item, dict):
                    raise SchemaViolationError(
                        f"{name}[{idx}] must be an object, got {type(item).__name__}"
                    )
                items.append(ProductEntry.model_validate(item))
            return EntryList(items)
    except ValidationError as exc:
        raise SchemaViolationError(f"{name} does not match the product entry schema: {exc}") from exc
    raise SchemaViolationError(
        f"{name} must be an object or a list of objects, got {type(raw).__name__}"
    )


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def to_extraction(data: Any) -> StructuredExtraction:
    """Validate a raw reply and return the normalized model."""
    if not isinstance(data, dict):
        raise SchemaViolationError(
            f"Structured extraction must be a JSON object, got {type(data).__name__}"
        )

    ignored = [str(key) for key in data if key not in SECTION_ORDER]
    if data and len(ignored) == len(data):
        # Sections under other names (e.g. translated keys) must not become an empty extraction
        raise SchemaViolationError(
            f"No ProductCopy, BusinessCopy or UpgraderCopy section in reply; "
            f"got: {', '.join(ignored)}"
        )

    sections: dict[str, list[ProductEntry]] = {}
    for name in SECTION_ORDER:
        raw = data.get(name)
        if raw is None:
            continue
        sections[name] = parse_section(name, raw).entries()

    extraction = StructuredExtraction.model_validate(sections)
    extraction._ignored_keys = ignored
    return extraction


def normalize_extraction(data: Any) -> dict[str, Any]:
    """Return the ordered storage form of a raw or already-normalized extraction.

    Idempotent: ``normalize_extraction(normalize_extraction(x)) == normalize_extraction(x)``.
    """
    return to_extraction(data).to_storage()
