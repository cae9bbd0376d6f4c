"""Judge agent: scores a structured extraction against its source text.

Two judges backed by independent providers are run per validation (see
``consensus``). A judge either returns a complete JudgeVerdict or raises;
partial or out-of-range replies are schema violations.
"""

from __future__ import annotations

import json

import structlog
from pydantic import ValidationError

from app.core.config import settings
from app.modules.extraction.agent_schemas import JudgeReply, JudgeVerdict
from app.modules.extraction.agents.base import BaseAgent, LLMClient
from app.modules.extraction.errors import SchemaViolationError

logger = structlog.get_logger()

JUDGE_PROMPT = """\
You are a meticulous quality assurance judge evaluating document extraction accuracy.

Compare the ORIGINAL TEXT with the EXTRACTED JSON and check these rules:

1. JSON field names (ProductCopy, BusinessCopy, UpgraderCopy, ProductName, Headlines,
   AdvertisingCopy, KeyFeatureBullets, LegalReferences) MUST be in English.
2. Content values (product names, headlines, copy, features) MUST remain in the
   source document's original language (no translation).
3. Footnote superscripts (¹, ², ³ …) MUST be converted to {{sup:N}} tokens in content.
   Units and scientific notation (cm², 10⁶) stay literal; ™ ® ℠ are dropped.
4. ALL products mentioned in the document MUST be extracted.
5. Legal references MUST start with the {{sup:N}} token they belong to.

Think step by step: identify the source language, check each criterion, list the
specific issues you found, then give an overall confidence between 0 and 1.

Respond with valid JSON only (no markdown):
{
  "reasoning": "step-by-step analysis",
  "criteria_scores": {
    "field_names_english": true,
    "content_language_preserved": true,
    "superscripts_correct": true,
    "completeness": true,
    "legal_refs_match": true
  },
  "overall_confidence": 0.0,
  "issues_found": ["specific issue"]
}
"""


class JudgeAgent(BaseAgent):
    """One independent evaluator of extraction quality."""

    agent_name = "Judge"

    def __init__(
        self,
        client: LLMClient,
        label: str | None = None,
        max_source_chars: int | None = None,
    ) -> None:
        super().__init__(client)
        self.label = label or f"{client.provider}:{client.model}"
        self.max_source_chars = max_source_chars or settings.judge_max_source_chars

    def build_user_content(self, source_text: str, extraction: dict) -> str:
        # Truncate source to control costs
        source = source_text[: self.max_source_chars]
        if len(source_text) > self.max_source_chars:
            source += " ...[truncated]"

        extraction_json = json.dumps(extraction, indent=2, ensure_ascii=False)
        return (
            f"ORIGINAL TEXT:\n{source}\n\n"
            f"EXTRACTED JSON:\n{extraction_json}\n\n"
            "Evaluate the extraction against the five rules."
        )

    async def judge(self, source_text: str, extraction: dict) -> JudgeVerdict:
        """Evaluate *extraction* against *source_text*.

        Raises:
            CapabilityUnavailableError: provider failure.
            SchemaViolationError: reply does not match the judge contract.
        """
        data = await self.client.extract_json(
            JUDGE_PROMPT, self.build_user_content(source_text, extraction)
        )

        try:
            reply = JudgeReply.model_validate(data)
        except ValidationError as exc:
            raise SchemaViolationError(
                f"{self.label} reply does not match the judge schema: {exc}",
                stage="validation",
            ) from exc

        verdict = JudgeVerdict(
            judge=self.label,
            confidence=reply.overall_confidence,
            criteria=reply.criteria_scores,
            reasoning=reply.reasoning,
            issues=reply.issues_found,
        )

        logger.info(
            "Judge: evaluation complete",
            judge=self.label,
            confidence=verdict.confidence,
            failed_criteria=verdict.criteria.failed(),
            issues=len(verdict.issues),
        )
        return verdict
