"""Dual-judge consensus validation.

Estimates extraction correctness without ground truth:

  1. quick_validation_checks() — cheap structural pre-check, no LLM call.
     A failure short-circuits to passed=False.
  2. Two independent judges run concurrently. Each judge's failure (error,
     timeout, schema violation) is caught locally and becomes ``None`` so it
     never cancels or blocks the other.
  3. combine_verdicts() merges whatever came back:
       - no judge     -> neutral 0.5 verdict flagged for manual review
       - one judge    -> that judge's verdict
       - both judges  -> mean confidence, AND-ed criteria, union of issues
     passed = all five criteria hold AND confidence >= 0.7.
"""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import Sequence
from typing import Any

import structlog

from app.core.config import settings
from app.modules.extraction.agent_schemas import (
    ConsensusVerdict,
    JudgeVerdict,
    QuickCheckResult,
    ValidationCriteria,
    verdict_passes,
)
from app.modules.extraction.agents.judge import JudgeAgent
from app.modules.extraction.schemas import SECTION_ORDER

logger = structlog.get_logger()

BOTH_JUDGES_FAILED_ISSUE = "Both validation judges failed - manual review recommended"

_NON_ASCII = re.compile(r"[^\x00-\x7F]")


# ---------------------------------------------------------------------------
# Quick checks (cheaper than full AI validation)
# ---------------------------------------------------------------------------


def quick_validation_checks(
    extracted_data: Any, extra_field_names: Sequence[str] = (),
) -> QuickCheckResult:
    """Structural sanity of an extraction payload.

    Checks that the payload is an object, that at least one of the English section
    names is present, and that no top-level field name contains non-ASCII
    characters. The last one is a crude heuristic: transliterated non-English
    keys pass and accented English keys fail.

    *extra_field_names* are top-level keys the structuring reply carried but
    normalization dropped; they are checked for non-ASCII characters too.
    """
    issues: list[str] = []

    if isinstance(extracted_data, (str, bytes)):
        try:
            extracted_data = json.loads(extracted_data)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return QuickCheckResult(passed=False, issues=["Invalid JSON structure"])

    if not isinstance(extracted_data, dict):
        return QuickCheckResult(passed=False, issues=["Invalid JSON structure"])

    if not any(name in extracted_data for name in SECTION_ORDER):
        issues.append(
            "Missing expected field names (ProductCopy, BusinessCopy, or UpgraderCopy)"
        )

    field_names = [*extracted_data, *(n for n in extra_field_names if n not in extracted_data)]
    non_english = [name for name in field_names if _NON_ASCII.search(str(name))]
    if non_english:
        issues.append(f"Found non-English field names: {', '.join(non_english)}")

    return QuickCheckResult(passed=not issues, issues=issues)


# ---------------------------------------------------------------------------
# Combination policy
# ---------------------------------------------------------------------------


def _dedupe(issues: list[str]) -> list[str]:
    return list(dict.fromkeys(issues))


def combine_verdicts(first: JudgeVerdict | None, second: JudgeVerdict | None) -> ConsensusVerdict:
    """Merge zero, one or two judge verdicts into a single ConsensusVerdict."""
    judges = [v for v in (first, second) if v is not None]
    if not judges:
        return ConsensusVerdict(
            confidence=0.5,
            criteria=ValidationCriteria.all_true(),
            issues=[BOTH_JUDGES_FAILED_ISSUE],
            reasoning="Validation failed due to judge unavailability",
            passed=False,
        )

    if len(judges) == 1:
        only = judges[0]
        return ConsensusVerdict(
            confidence=only.confidence,
            criteria=only.criteria,
            issues=_dedupe(only.issues),
            reasoning=f"Single judge ({only.judge}): {only.reasoning}",
            passed=verdict_passes(only.criteria, only.confidence),
            judges=[only],
        )

    # Equal weight, no asymmetric trust
    first, second = judges
    confidence = (first.confidence + second.confidence) / 2
    criteria = first.criteria.combine(second.criteria)

    return ConsensusVerdict(
        confidence=confidence,
        criteria=criteria,
        issues=_dedupe([*first.issues, *second.issues]),
        reasoning=(
            f"Dual-Judge Analysis ({first.judge}: {round(first.confidence * 100)}%, "
            f"{second.judge}: {round(second.confidence * 100)}%)"
        ),
        passed=verdict_passes(criteria, confidence),
        judges=[first, second],
    )


def quick_check_verdict(quick: QuickCheckResult) -> ConsensusVerdict:
    """Verdict for a payload rejected by the quick checks; no judge is consulted."""
    return ConsensusVerdict(
        confidence=0.0,
        criteria=ValidationCriteria.all_false(),
        issues=quick.issues,
        reasoning="Quick validation checks failed",
        passed=False,
    )


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------


class ConsensusValidator:
    """Runs two judges concurrently and combines their verdicts."""

    def __init__(
        self,
        primary: JudgeAgent,
        secondary: JudgeAgent,
        timeout_seconds: float | None = None,
    ) -> None:
        self.primary = primary
        self.secondary = secondary
        self.timeout_seconds = timeout_seconds or settings.judge_timeout_seconds

    async def _run_judge(
        self, judge: JudgeAgent, source_text: str, extraction: dict,
    ) -> JudgeVerdict | None:
        try:
            return await asyncio.wait_for(
                judge.judge(source_text, extraction), timeout=self.timeout_seconds,
            )
        except Exception as e:
            logger.warning(
                "Judge failed, continuing without it",
                judge=judge.label,
                error=str(e) or type(e).__name__,
            )
            return None

    async def validate(
        self, source_text: str, extraction: Any, extra_field_names: Sequence[str] = (),
    ) -> ConsensusVerdict:
        """Validate *extraction* against *source_text*. Never raises for judge failures."""
        quick = quick_validation_checks(extraction, extra_field_names)
        if not quick.passed:
            logger.info("Quick validation checks failed", issues=quick.issues)
            return quick_check_verdict(quick)

        first, second = await asyncio.gather(
            self._run_judge(self.primary, source_text, extraction),
            self._run_judge(self.secondary, source_text, extraction),
        )
        verdict = combine_verdicts(first, second)

        logger.info(
            "Consensus validation complete",
            judges=[j.judge for j in verdict.judges],
            confidence=round(verdict.confidence, 3),
            passed=verdict.passed,
            failed_criteria=verdict.criteria.failed(),
            issues=len(verdict.issues),
        )
        return verdict
