"""Unit tests for quick checks, the verdict combination policy and the validator."""

from __future__ import annotations

import asyncio

import pytest

from app.modules.extraction.agent_schemas import JudgeVerdict, ValidationCriteria
from app.modules.extraction.agents.judge import JudgeAgent
from app.modules.extraction.consensus import (
    BOTH_JUDGES_FAILED_ISSUE,
    ConsensusValidator,
    combine_verdicts,
    quick_validation_checks,
)
from conftest import WIDGET_EXTRACTION, FakeLLMClient, judge_reply


def _verdict(judge: str, confidence: float, issues: list[str] | None = None, **criteria: bool) -> JudgeVerdict:
    scores = ValidationCriteria.all_true().model_dump()
    scores.update(criteria)
    return JudgeVerdict(
        judge=judge,
        confidence=confidence,
        criteria=ValidationCriteria(**scores),
        reasoning=f"{judge} reasoning",
        issues=issues or [],
    )


# ---------------------------------------------------------------------------
# Quick checks
# ---------------------------------------------------------------------------


def test_quick_checks_pass_for_valid_payload() -> None:
    result = quick_validation_checks(WIDGET_EXTRACTION)
    assert result.passed
    assert result.issues == []


def test_quick_checks_reject_malformed_json() -> None:
    result = quick_validation_checks('{"ProductCopy": [')
    assert not result.passed
    assert result.issues == ["Invalid JSON structure"]


def test_quick_checks_reject_non_object() -> None:
    assert quick_validation_checks([1, 2, 3]).issues == ["Invalid JSON structure"]


def test_quick_checks_accept_json_string() -> None:
    assert quick_validation_checks('{"BusinessCopy": []}').passed


def test_quick_checks_require_a_section() -> None:
    result = quick_validation_checks({"Produktkopie": []})
    assert not result.passed
    assert "Missing expected field names" in result.issues[0]


def test_quick_checks_flag_non_ascii_keys() -> None:
    result = quick_validation_checks({"ProductCopy": [], "Überschrift": []})
    assert not result.passed
    assert result.issues == ["Found non-English field names: Überschrift"]


def test_quick_checks_flag_dropped_non_ascii_keys() -> None:
    result = quick_validation_checks(WIDGET_EXTRACTION, ["Überschriften", "Notes"])
    assert not result.passed
    assert result.issues == ["Found non-English field names: Überschriften"]


# ---------------------------------------------------------------------------
# Combination policy
# ---------------------------------------------------------------------------


def test_both_judges_combine_with_mean_and_and() -> None:
    a = _verdict("a", 0.9)
    b = _verdict("b", 0.5, completeness=False)

    verdict = combine_verdicts(a, b)

    assert verdict.confidence == pytest.approx(0.7)
    assert verdict.criteria.failed() == ["completeness"]
    assert verdict.passed is False
    assert verdict.needs_review is True


def test_both_judges_passing() -> None:
    verdict = combine_verdicts(_verdict("a", 0.95), _verdict("b", 0.9))
    assert verdict.confidence == pytest.approx(0.925)
    assert verdict.passed is True
    assert verdict.reasoning.startswith("Dual-Judge Analysis")


def test_confidence_gate_fails_with_all_criteria_true() -> None:
    verdict = combine_verdicts(_verdict("a", 0.6), _verdict("b", 0.7))
    assert verdict.criteria.all_passed()
    assert verdict.passed is False


def test_issues_are_unioned_and_deduplicated() -> None:
    a = _verdict("a", 0.8, issues=["Missing product X", "Headline translated"])
    b = _verdict("b", 0.8, issues=["Headline translated", "Bad token"])
    verdict = combine_verdicts(a, b)
    assert verdict.issues == ["Missing product X", "Headline translated", "Bad token"]


@pytest.mark.parametrize("missing", ["first", "second"])
def test_single_judge_verdict_is_used_directly(missing: str) -> None:
    only = _verdict("solo", 0.8, issues=["One issue"], legal_refs_match=False)
    first, second = (None, only) if missing == "first" else (only, None)

    verdict = combine_verdicts(first, second)

    assert verdict.confidence == only.confidence
    assert verdict.criteria == only.criteria
    assert verdict.issues == ["One issue"]
    assert verdict.reasoning == "Single judge (solo): solo reasoning"
    assert verdict.passed is False


def test_both_judges_failed_fallback() -> None:
    verdict = combine_verdicts(None, None)
    assert verdict.confidence == 0.5
    assert verdict.criteria.all_passed()
    assert verdict.passed is False
    assert BOTH_JUDGES_FAILED_ISSUE in verdict.issues


# ---------------------------------------------------------------------------
# Validator (fake judges)
# ---------------------------------------------------------------------------


def _validator(primary, secondary, timeout: float = 5) -> ConsensusValidator:
    return ConsensusValidator(
        primary=JudgeAgent(FakeLLMClient(primary), label="judge-a"),
        secondary=JudgeAgent(FakeLLMClient(secondary), label="judge-b"),
        timeout_seconds=timeout,
    )


async def test_validator_runs_both_judges() -> None:
    validator = _validator(judge_reply(0.95), judge_reply(0.9))
    verdict = await validator.validate("source", WIDGET_EXTRACTION)

    assert verdict.confidence == pytest.approx(0.925)
    assert verdict.passed
    assert [j.judge for j in verdict.judges] == ["judge-a", "judge-b"]


async def test_validator_survives_one_judge_error() -> None:
    validator = _validator(judge_reply(0.8), RuntimeError("quota exceeded"))
    verdict = await validator.validate("source", WIDGET_EXTRACTION)

    assert verdict.confidence == 0.8
    assert verdict.reasoning.startswith("Single judge (judge-a)")
    assert verdict.passed


async def test_validator_drops_schema_violating_judge() -> None:
    bad_reply = {"reasoning": "no scores", "overall_confidence": 0.9}
    validator = _validator(bad_reply, judge_reply(0.75, completeness=False))
    verdict = await validator.validate("source", WIDGET_EXTRACTION)

    assert [j.judge for j in verdict.judges] == ["judge-b"]
    assert verdict.criteria.failed() == ["completeness"]


async def test_validator_drops_out_of_range_confidence() -> None:
    validator = _validator(judge_reply(1.5), judge_reply(0.9))
    verdict = await validator.validate("source", WIDGET_EXTRACTION)
    assert [j.judge for j in verdict.judges] == ["judge-b"]


async def test_validator_both_judges_fail_without_raising() -> None:
    validator = _validator(ConnectionError("down"), "not json at all")
    verdict = await validator.validate("source", WIDGET_EXTRACTION)

    assert verdict.confidence == 0.5
    assert verdict.passed is False
    assert verdict.issues == [BOTH_JUDGES_FAILED_ISSUE]


async def test_validator_times_out_hung_judge() -> None:
    class SlowClient(FakeLLMClient):
        async def _complete(self, system_prompt: str, user_content: str) -> str | None:
            await asyncio.sleep(10)
            return await super()._complete(system_prompt, user_content)

    validator = ConsensusValidator(
        primary=JudgeAgent(SlowClient(judge_reply(0.99)), label="slow"),
        secondary=JudgeAgent(FakeLLMClient(judge_reply(0.85)), label="fast"),
        timeout_seconds=0.05,
    )
    verdict = await validator.validate("source", WIDGET_EXTRACTION)

    assert [j.judge for j in verdict.judges] == ["fast"]
    assert verdict.confidence == 0.85


async def test_quick_check_failure_skips_judges() -> None:
    primary = FakeLLMClient(judge_reply(0.9))
    secondary = FakeLLMClient(judge_reply(0.9))
    validator = ConsensusValidator(
        primary=JudgeAgent(primary), secondary=JudgeAgent(secondary), timeout_seconds=5,
    )

    verdict = await validator.validate("source", {"Unrelated": []})

    assert verdict.passed is False
    assert verdict.confidence == 0.0
    assert primary.calls == [] and secondary.calls == []
