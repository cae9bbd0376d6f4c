"""Language detector: dominant language of a document's raw text.

Best effort. Any failure (provider error, odd reply) yields "Unknown";
this agent never raises.
"""

from __future__ import annotations

import structlog

from app.modules.extraction.agents.base import BaseAgent

logger = structlog.get_logger()

UNKNOWN_LANGUAGE = "Unknown"

# Max chars from document to send to the detector (~first 2 pages)
_MAX_CONTENT_CHARS = 4000

LANGUAGE_PROMPT = """\
Identify the dominant language of the document excerpt you are given.
Answer with the language's English name (for example "English", "Japanese",
"Spanish", "French", "German") and nothing else.

Respond with JSON only: {"language": "<English name>"}
"""


class LanguageDetectorAgent(BaseAgent):
    agent_name = "LanguageDetector"

    async def detect(self, text: str, file_name: str = "") -> str:
        sample = text[:_MAX_CONTENT_CHARS]
        if not sample.strip():
            return UNKNOWN_LANGUAGE

        try:
            data = await self.client.extract_json(LANGUAGE_PROMPT, sample)
        except Exception as e:
            logger.warning(
                "Language detection failed, falling back to 'Unknown'",
                file=file_name,
                provider=self.provider,
                error=str(e),
            )
            return UNKNOWN_LANGUAGE

        language = data.get("language")
        if not isinstance(language, str) or not language.strip():
            logger.warning("Language detector returned no language", file=file_name, reply=data)
            return UNKNOWN_LANGUAGE

        language = language.strip()
        logger.info("Language detected", file=file_name, language=language)
        return language
