"""End-to-end pipeline tests with fake LLM clients (no database)."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest

from app.modules.extraction.agents.language import LanguageDetectorAgent
from app.modules.extraction.consensus import BOTH_JUDGES_FAILED_ISSUE
from app.modules.extraction.errors import (
    CapabilityUnavailableError,
    SchemaViolationError,
    TextExtractionError,
    UnsupportedInputError,
)
from conftest import WIDGET_EXTRACTION, FakeLLMClient, judge_reply, make_pipeline

SOURCE_TEXT = "Widget sells great¹.\n¹ Guarantee void outside US."


async def test_widget_scenario_passes() -> None:
    pipeline = make_pipeline()
    structurer_client = pipeline.structurer.client

    result = await pipeline.run_text(SOURCE_TEXT, file_name="widget.docx")

    # The structurer sees tokens, the judges see the original text
    _, sent = structurer_client.calls[0]
    assert "Widget sells great{{sup:1}}." in sent
    assert "{{sup:1}} Guarantee void outside US." in sent

    entry = result.structured_data["ProductCopy"][0]
    assert "{{sup:1}}" in entry["AdvertisingCopy"]
    assert entry["LegalReferences"][0] == "{{sup:1}} Guarantee void outside US."

    assert result.raw_text == SOURCE_TEXT
    assert result.language == "English"
    assert result.verdict.confidence == pytest.approx(0.925)
    assert result.verdict.passed is True
    assert result.verdict.needs_review is False
    assert result.verdict.issues == []


async def test_run_extracts_text_first() -> None:
    pipeline = make_pipeline()
    with patch(
        "app.modules.extraction.pipeline.extract_text", return_value=SOURCE_TEXT
    ) as mock_extract:
        result = await pipeline.run(b"docx-bytes", "docx", file_name="widget.docx")

    mock_extract.assert_called_once_with(b"docx-bytes", "docx")
    assert result.verdict.passed


async def test_language_and_structuring_run_concurrently() -> None:
    started: list[str] = []
    both_started = asyncio.Event()

    class GatedClient(FakeLLMClient):
        def __init__(self, name: str, reply) -> None:
            super().__init__(reply)
            self.name = name

        async def _complete(self, system_prompt: str, user_content: str) -> str | None:
            started.append(self.name)
            if len(started) == 2:
                both_started.set()
            await asyncio.wait_for(both_started.wait(), timeout=2)
            return await super()._complete(system_prompt, user_content)

    pipeline = make_pipeline()
    pipeline.structurer.client = GatedClient("structurer", WIDGET_EXTRACTION)
    pipeline.language_detector = LanguageDetectorAgent(GatedClient("language", {"language": "English"}))

    result = await pipeline.run_text(SOURCE_TEXT)

    assert sorted(started) == ["language", "structurer"]
    assert result.language == "English"


async def test_unsupported_kind_fails_before_any_call() -> None:
    pipeline = make_pipeline()
    with pytest.raises(UnsupportedInputError):
        await pipeline.run(b"...", "pages")
    assert pipeline.structurer.client.calls == []


async def test_blank_document_is_an_extraction_error() -> None:
    pipeline = make_pipeline()
    with patch("app.modules.extraction.pipeline.extract_text", return_value="  \n "):
        with pytest.raises(TextExtractionError) as exc_info:
            await pipeline.run(b"...", "pdf")
    assert exc_info.value.stage == "extraction"


async def test_structuring_failure_propagates_with_stage() -> None:
    pipeline = make_pipeline(structured=ConnectionError("provider down"))
    with pytest.raises(CapabilityUnavailableError) as exc_info:
        await pipeline.run_text(SOURCE_TEXT)
    assert exc_info.value.to_detail() == {
        "stage": "structuring",
        "error": exc_info.value.message,
        "retryable": True,
    }


async def test_structuring_schema_violation_is_not_coerced() -> None:
    pipeline = make_pipeline(structured="Sorry, I cannot help with that.")
    with pytest.raises(SchemaViolationError):
        await pipeline.run_text(SOURCE_TEXT)


async def test_language_failure_does_not_fail_pipeline() -> None:
    pipeline = make_pipeline(language=RuntimeError("quota"))
    result = await pipeline.run_text(SOURCE_TEXT)
    assert result.language == "Unknown"
    assert result.verdict.passed


async def test_judges_unavailable_flags_review() -> None:
    pipeline = make_pipeline(primary=RuntimeError("a down"), secondary=RuntimeError("b down"))
    result = await pipeline.run_text(SOURCE_TEXT)

    assert result.verdict.confidence == 0.5
    assert result.verdict.needs_review is True
    assert BOTH_JUDGES_FAILED_ISSUE in result.verdict.issues


async def test_missing_legal_reference_is_reported() -> None:
    structured = {
        "ProductCopy": [{"ProductName": "Widget", "AdvertisingCopy": "Great{{sup:1}}"}]
    }
    pipeline = make_pipeline(structured=structured)

    result = await pipeline.run_text(SOURCE_TEXT)

    assert "ProductCopy / Widget: {{sup:1}} has no matching legal reference" in result.verdict.issues
    # Local issues inform reviewers; the judges' verdict still decides pass/fail
    assert result.verdict.passed is True


async def test_ambiguous_superscript_is_reported() -> None:
    pipeline = make_pipeline(primary=judge_reply(0.9, issues=["minor"]))
    result = await pipeline.run_text("Only $499² today.\n² Offer ends soon.")

    assert result.verdict.issues[0] == "minor"
    assert any(i.startswith("Ambiguous superscript treated as footnote 2") for i in result.verdict.issues)


async def test_reply_with_only_translated_sections_fails_structuring() -> None:
    pipeline = make_pipeline(structured={"ProduktKopie": [{"ProductName": "Widget"}]})

    with pytest.raises(SchemaViolationError) as exc_info:
        await pipeline.run_text(SOURCE_TEXT)
    assert exc_info.value.stage == "structuring"


async def test_translated_key_next_to_sections_fails_validation() -> None:
    pipeline = make_pipeline(structured={**WIDGET_EXTRACTION, "Überschriften": ["Das Widget"]})

    result = await pipeline.run_text(SOURCE_TEXT)

    assert result.structured_data == WIDGET_EXTRACTION
    assert result.verdict.passed is False
    assert result.verdict.confidence == 0.0
    assert "Found non-English field names: Überschriften" in result.verdict.issues
    assert pipeline.validator.primary.client.calls == []
    assert pipeline.validator.secondary.client.calls == []
