"""Product-copy agents, each wrapping one injected LLMClient.

  Structurer:        raw text -> ProductCopy / BusinessCopy / UpgraderCopy JSON
  LanguageDetector:  dominant language of the raw text (never raises)
  Judge:             scores an extraction against its source on five criteria

The DocumentPipeline controller (``extraction.pipeline``) runs them; it makes
no LLM calls itself.
"""
