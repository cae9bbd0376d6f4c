"""Document processing pipeline controller.

Pure Python orchestration — the LLM work happens in the injected agents:

    bytes -> extract_text -> raw text
          -> encode superscripts
          -> {LanguageDetector, Structurer} concurrently
          -> ConsensusValidator (quick checks, then two judges concurrently)
          -> PipelineResult

Failures are raised as PipelineError subclasses naming the failing stage
(extraction, structuring, validation). Nothing is persisted here.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any

import structlog

from app.core.config import settings
from app.modules.extraction import superscripts
from app.modules.extraction.agent_schemas import ConsensusVerdict
from app.modules.extraction.agents.base import build_llm_client
from app.modules.extraction.agents.judge import JudgeAgent
from app.modules.extraction.agents.language import LanguageDetectorAgent
from app.modules.extraction.agents.structurer import StructuringAgent
from app.modules.extraction.consensus import ConsensusValidator
from app.modules.extraction.errors import PipelineError, TextExtractionError
from app.modules.extraction.schemas import StructuredExtraction
from app.modules.extraction.text_extractor import ensure_supported, extract_text

logger = structlog.get_logger()


@dataclass
class PipelineResult:
    """Everything one successful processing attempt produced."""

    raw_text: str
    language: str
    extraction: StructuredExtraction
    verdict: ConsensusVerdict

    @property
    def structured_data(self) -> dict[str, Any]:
        return self.extraction.to_storage()


class DocumentPipeline:
    """Runs one document through extraction, structuring and validation."""

    def __init__(
        self,
        structurer: StructuringAgent,
        language_detector: LanguageDetectorAgent,
        validator: ConsensusValidator,
    ) -> None:
        self.structurer = structurer
        self.language_detector = language_detector
        self.validator = validator

    @classmethod
    def from_settings(cls) -> DocumentPipeline:
        """Build the production pipeline from configured providers."""
        return cls(
            structurer=StructuringAgent(
                build_llm_client(settings.structuring_provider, settings.structuring_model)
            ),
            language_detector=LanguageDetectorAgent(
                build_llm_client(settings.language_provider, settings.language_model)
            ),
            validator=ConsensusValidator(
                primary=JudgeAgent(
                    build_llm_client(settings.primary_judge_provider, settings.primary_judge_model)
                ),
                secondary=JudgeAgent(
                    build_llm_client(settings.secondary_judge_provider, settings.secondary_judge_model)
                ),
            ),
        )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run(self, file_bytes: bytes, file_kind: str, file_name: str = "") -> PipelineResult:
        """Process a binary document of the given kind."""
        ensure_supported(file_kind)

        raw_text = extract_text(file_bytes, file_kind)
        if not raw_text.strip():
            raise TextExtractionError(
                f"No text could be extracted from {file_name or 'the document'}. "
                "Scanned documents need a text layer."
            )
        return await self.run_text(raw_text, file_name=file_name)

    async def run_text(self, raw_text: str, file_name: str = "") -> PipelineResult:
        """Process already-extracted raw text."""
        start = time.time()
        logger.info("Pipeline: processing document", file=file_name, chars=len(raw_text))

        encoded = superscripts.encode(raw_text)

        # Language detection never raises; structuring errors propagate with their stage.
        language, extraction = await asyncio.gather(
            self.language_detector.detect(raw_text, file_name=file_name),
            self.structurer.structure(encoded.text, file_name=file_name),
        )

        try:
            verdict = await self.validator.validate(
                raw_text, extraction.to_storage(), extra_field_names=extraction.ignored_keys
            )
        except PipelineError:
            raise
        except Exception as exc:
            raise PipelineError(f"Validation failed: {exc}", stage="validation") from exc

        local_issues = encoded.issues + superscripts.check_cross_references(extraction)
        if local_issues:
            verdict = verdict.model_copy(
                update={"issues": list(dict.fromkeys([*verdict.issues, *local_issues]))}
            )

        logger.info(
            "Pipeline: document processed",
            file=file_name,
            language=language,
            sections=[name for name, _ in extraction.sections()],
            confidence=round(verdict.confidence, 3),
            passed=verdict.passed,
            duration_ms=int((time.time() - start) * 1000),
        )

        return PipelineResult(
            raw_text=raw_text,
            language=language,
            extraction=extraction,
            verdict=verdict,
        )
