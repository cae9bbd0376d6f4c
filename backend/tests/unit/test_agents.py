"""Unit tests for the LLM seam and the agents built on it (fake clients only)."""

from __future__ import annotations

import pytest

from app.modules.extraction.agents.base import build_llm_client, parse_json
from app.modules.extraction.agents.judge import JudgeAgent
from app.modules.extraction.agents.language import UNKNOWN_LANGUAGE, LanguageDetectorAgent
from app.modules.extraction.agents.structurer import StructuringAgent
from app.modules.extraction.errors import CapabilityUnavailableError, SchemaViolationError
from conftest import WIDGET_EXTRACTION, FakeLLMClient, judge_reply

# ---------------------------------------------------------------------------
# parse_json / client factory
# ---------------------------------------------------------------------------


def test_parse_json_strips_fences() -> None:
    assert parse_json('```json\n{"language": "German"}\n```') == {"language": "German"}


@pytest.mark.parametrize("raw", [None, "", "   ", "{not json", "[1, 2]"])
def test_parse_json_rejects_bad_replies(raw) -> None:
    with pytest.raises(SchemaViolationError):
        parse_json(raw)


def test_build_llm_client_rejects_unknown_provider() -> None:
    with pytest.raises(ValueError, match="Unknown LLM provider"):
        build_llm_client("carrier-pigeon")


def test_build_llm_client_defaults_model() -> None:
    client = build_llm_client("anthropic")
    assert client.provider == "anthropic"
    assert client.model.startswith("claude")


# ---------------------------------------------------------------------------
# Structurer
# ---------------------------------------------------------------------------


async def test_structurer_normalizes_reply() -> None:
    legacy = {"ProductCopy": WIDGET_EXTRACTION["ProductCopy"][0]}
    agent = StructuringAgent(FakeLLMClient(legacy))

    extraction = await agent.structure("Widget sells great{{sup:1}}.")

    assert extraction.to_storage() == WIDGET_EXTRACTION


async def test_structurer_sends_text_to_capability() -> None:
    client = FakeLLMClient(WIDGET_EXTRACTION)
    await StructuringAgent(client).structure("Widget sells great{{sup:1}}.")

    system_prompt, user_content = client.calls[0]
    assert "English" in system_prompt
    assert "Widget sells great{{sup:1}}." in user_content


async def test_structurer_schema_violation_names_stage() -> None:
    agent = StructuringAgent(FakeLLMClient({"ProductCopy": "just a string"}))

    with pytest.raises(SchemaViolationError) as exc_info:
        await agent.structure("text")

    assert exc_info.value.stage == "structuring"
    assert exc_info.value.retryable is True


async def test_structurer_provider_failure_is_retryable() -> None:
    agent = StructuringAgent(FakeLLMClient(TimeoutError("read timeout")))

    with pytest.raises(CapabilityUnavailableError) as exc_info:
        await agent.structure("text")

    assert exc_info.value.retryable is True
    assert exc_info.value.to_detail()["stage"] == "structuring"


# ---------------------------------------------------------------------------
# Language detector
# ---------------------------------------------------------------------------


async def test_language_detected() -> None:
    agent = LanguageDetectorAgent(FakeLLMClient({"language": " Japanese "}))
    assert await agent.detect("こんにちは") == "Japanese"


@pytest.mark.parametrize(
    "reply",
    [RuntimeError("boom"), "garbage", {"language": ""}, {"lang": "German"}],
)
async def test_language_detector_never_raises(reply) -> None:
    agent = LanguageDetectorAgent(FakeLLMClient(reply))
    assert await agent.detect("Some text") == UNKNOWN_LANGUAGE


async def test_language_detector_skips_blank_text() -> None:
    client = FakeLLMClient({"language": "English"})
    assert await LanguageDetectorAgent(client).detect("   ") == UNKNOWN_LANGUAGE
    assert client.calls == []


# ---------------------------------------------------------------------------
# Judge
# ---------------------------------------------------------------------------


async def test_judge_returns_verdict() -> None:
    agent = JudgeAgent(FakeLLMClient(judge_reply(0.8, issues=["x"], completeness=False)))

    verdict = await agent.judge("source", WIDGET_EXTRACTION)

    assert verdict.judge == "fake:fake-model"
    assert verdict.confidence == 0.8
    assert verdict.criteria.failed() == ["completeness"]
    assert verdict.issues == ["x"]


async def test_judge_truncates_source_text() -> None:
    client = FakeLLMClient(judge_reply(0.9))
    agent = JudgeAgent(client, max_source_chars=10)

    await agent.judge("0123456789ABCDEF", WIDGET_EXTRACTION)

    _, user_content = client.calls[0]
    assert "0123456789 ...[truncated]" in user_content
    assert "ABCDEF" not in user_content
    assert '"ProductName": "Widget"' in user_content


async def test_judge_schema_violation() -> None:
    agent = JudgeAgent(FakeLLMClient({"overall_confidence": 0.9}))
    with pytest.raises(SchemaViolationError) as exc_info:
        await agent.judge("source", WIDGET_EXTRACTION)
    assert exc_info.value.stage == "validation"
