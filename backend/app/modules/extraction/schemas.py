"""Structured product-copy schema.

A structured extraction maps each copy section (``ProductCopy``, ``BusinessCopy``,
``UpgraderCopy``) to an ordered list of product entries. Field names are always
English; values stay in the source document's language.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

# Storage contract: sections are always serialized in this order.
SECTION_ORDER: tuple[str, ...] = ("ProductCopy", "BusinessCopy", "UpgraderCopy")

CopySection = Literal["ProductCopy", "BusinessCopy", "UpgraderCopy"]

ENTRY_FIELDS: tuple[str, ...] = (
    "ProductName",
    "Headlines",
    "AdvertisingCopy",
    "KeyFeatureBullets",
    "LegalReferences",
)


class ProductEntry(BaseModel):
    """One product's copy within a section.

    Field declaration order is the serialization order; ``LegalReferences``
    is always last.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    product_name: str = Field("", alias="ProductName")
    headlines: list[str] = Field(default_factory=list, alias="Headlines")
    advertising_copy: str = Field("", alias="AdvertisingCopy")
    key_feature_bullets: list[str] = Field(default_factory=list, alias="KeyFeatureBullets")
    legal_references: list[str] = Field(
        default_factory=list,
        alias="LegalReferences",
        description="Footnote texts; referenced ones start with their {{sup:N}} token",
    )

    @field_validator("product_name", "advertising_copy", mode="before")
    @classmethod
    def _null_string(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("headlines", "key_feature_bullets", "legal_references", mode="before")
    @classmethod
    def _null_list(cls, value: Any) -> Any:
        return [] if value is None else value

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    def content_fields(self) -> list[str]:
        """Every string that may carry a footnote token (legal texts excluded)."""
        return [*self.headlines, self.advertising_copy, *self.key_feature_bullets]


class StructuredExtraction(BaseModel):
    """Normalized extraction: every section is a list, empty sections are omitted."""

    model_config = ConfigDict(populate_by_name=True)

    product_copy: list[ProductEntry] = Field(default_factory=list, alias="ProductCopy")
    business_copy: list[ProductEntry] = Field(default_factory=list, alias="BusinessCopy")
    upgrader_copy: list[ProductEntry] = Field(default_factory=list, alias="UpgraderCopy")

    # Top-level keys of the raw reply that are not sections; never stored
    _ignored_keys: list[str] = PrivateAttr(default_factory=list)

    @property
    def ignored_keys(self) -> list[str]:
        return list(self._ignored_keys)

    def section(self, name: str) -> list[ProductEntry]:
        return {
            "ProductCopy": self.product_copy,
            "BusinessCopy": self.business_copy,
            "UpgraderCopy": self.upgrader_copy,
        }[name]

    def sections(self) -> list[tuple[str, list[ProductEntry]]]:
        """Non-empty sections in storage order."""
        return [(name, self.section(name)) for name in SECTION_ORDER if self.section(name)]

    def is_empty(self) -> bool:
        return not self.sections()

    def to_storage(self) -> dict[str, Any]:
        """Ordered-key dict: ProductCopy, BusinessCopy, UpgraderCopy; empty sections omitted."""
        data: dict[str, Any] = {}
        for name, entries in self.sections():
            data[name] = [entry.to_storage() for entry in entries]
        return data
