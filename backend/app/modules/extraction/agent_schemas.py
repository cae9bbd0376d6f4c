"""Validation contracts — Pydantic models exchanged between judges and the validator.

  JudgeAgent          -> ConsensusValidator:  JudgeVerdict
  ConsensusValidator  -> DocumentPipeline:    ConsensusVerdict
  quick_validation_checks                  :  QuickCheckResult
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

# A verdict passes only when every criterion holds AND confidence reaches this.
PASS_CONFIDENCE_THRESHOLD = 0.7


# ---------------------------------------------------------------------------
# Criteria
# ---------------------------------------------------------------------------


class ValidationCriteria(BaseModel):
    """The five boolean checks every judge scores."""

    field_names_english: bool = Field(..., description="All JSON field names are English")
    content_language_preserved: bool = Field(
        ..., description="Content values are in the source language (untranslated)"
    )
    superscripts_correct: bool = Field(
        ..., description="Footnote superscripts converted to {{sup:N}} tokens"
    )
    completeness: bool = Field(..., description="Every product in the source was extracted")
    legal_refs_match: bool = Field(
        ..., description="Legal references start with the token they belong to"
    )

    @classmethod
    def all_true(cls) -> ValidationCriteria:
        return cls(
            field_names_english=True,
            content_language_preserved=True,
            superscripts_correct=True,
            completeness=True,
            legal_refs_match=True,
        )

    @classmethod
    def all_false(cls) -> ValidationCriteria:
        return cls(
            field_names_english=False,
            content_language_preserved=False,
            superscripts_correct=False,
            completeness=False,
            legal_refs_match=False,
        )

    def all_passed(self) -> bool:
        return all(self.model_dump().values())

    def failed(self) -> list[str]:
        return [name for name, ok in self.model_dump().items() if not ok]

    def combine(self, other: ValidationCriteria) -> ValidationCriteria:
        """Logical AND per criterion: both judges must agree that it holds."""
        mine, theirs = self.model_dump(), other.model_dump()
        return ValidationCriteria(**{name: mine[name] and theirs[name] for name in mine})


# ---------------------------------------------------------------------------
# Judge output
# ---------------------------------------------------------------------------


class JudgeReply(BaseModel):
    """Raw JSON shape a judge model must return."""

    model_config = ConfigDict(extra="ignore")

    reasoning: str = ""
    criteria_scores: ValidationCriteria
    overall_confidence: float = Field(..., ge=0.0, le=1.0)
    issues_found: list[str] = Field(default_factory=list)


class JudgeVerdict(BaseModel):
    """One judge's evaluation of an extraction."""

    judge: str = Field(..., description="Label of the judge that produced this verdict")
    confidence: float = Field(..., ge=0.0, le=1.0)
    criteria: ValidationCriteria
    reasoning: str = ""
    issues: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Combined output
# ---------------------------------------------------------------------------


class ConsensusVerdict(BaseModel):
    """Combined result of the dual-judge validation."""

    confidence: float = Field(..., ge=0.0, le=1.0)
    criteria: ValidationCriteria
    issues: list[str] = Field(default_factory=list)
    reasoning: str = ""
    passed: bool
    judges: list[JudgeVerdict] = Field(
        default_factory=list, description="Verdicts that contributed to this result"
    )

    @property
    def needs_review(self) -> bool:
        return not self.passed


class QuickCheckResult(BaseModel):
    """Outcome of the cheap structural pre-check run before any judge call."""

    passed: bool
    issues: list[str] = Field(default_factory=list)


def verdict_passes(criteria: ValidationCriteria, confidence: float) -> bool:
    return criteria.all_passed() and confidence >= PASS_CONFIDENCE_THRESHOLD
