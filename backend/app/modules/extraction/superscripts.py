"""Superscript codec — footnote markers as portable ``{{sup:N}}`` tokens.

Three disjoint categories of superscript usage in product copy:

  A. Footnote references (¹, ², ³ …) — replaced by ``{{sup:N}}``. The legal text
     for footnote N must start with the same token.
  B. Legal marks (™, ®, ℠) — dropped; they carry no extractable content.
  C. Units and scientific notation (cm², 10⁶, Fe³⁺) — kept as literal Unicode.

A superscript that cannot be classified is tokenized as a footnote and reported
as an issue, so traceability is never lost silently.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from app.modules.extraction.schemas import StructuredExtraction

SUPERSCRIPT_DIGITS = "⁰¹²³⁴⁵⁶⁷⁸⁹"
LEGAL_MARKS = "™®℠"

_TO_ASCII = str.maketrans(SUPERSCRIPT_DIGITS, "0123456789")
_TO_SUPERSCRIPT = str.maketrans("0123456789", SUPERSCRIPT_DIGITS)
_DROP_MARKS = str.maketrans("", "", LEGAL_MARKS)

_SUP_RUN = re.compile(f"[{SUPERSCRIPT_DIGITS}]+")
_TOKEN = re.compile(r"\{\{sup:(\d+)\}\}")
_LEADING_TOKEN = re.compile(r"^\s*\{\{sup:(\d+)\}\}")
_CROSS_REFERENCE_ISSUE = re.compile(
    r": \{\{sup:\d+\}\} has (?:no matching legal reference|\d+ legal references)$"
)
_TRAILING_WORD = re.compile(r"([A-Za-zµμ]+)$")
_NUMBER_BEFORE_WORD = re.compile(r"\d[\d.,]*\s?$")

# Unit symbols that take a power (cm², m³, m/s²)
UNIT_SYMBOLS = frozenset({
    "nm", "µm", "μm", "mm", "cm", "dm", "m", "km",
    "in", "ft", "yd", "mi",
    "s", "ms", "g", "kg",
})

FOOTNOTE = "footnote"
UNIT = "unit"
AMBIGUOUS = "ambiguous"


@dataclass
class EncodedText:
    """Result of encoding one text."""

    text: str
    footnotes: list[int] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)


def token(ordinal: int) -> str:
    return f"{{{{sup:{ordinal}}}}}"


def classify(text: str, start: int, end: int) -> str:
    """Classify the superscript digit run ``text[start:end]``."""
    before = text[:start]
    prev = before[-1:] if before else ""
    after = text[end:end + 1]

    # 10⁶, m⁻¹, Fe³⁺
    if before.endswith("10") or prev in "⁻⁺" or after in ("⁻", "⁺"):
        return UNIT
    # "$499¹" is a footnote, "2³" a power
    if prev.isdigit():
        return AMBIGUOUS

    word = _TRAILING_WORD.search(before)
    if word:
        symbol = word.group(1)
        if symbol in UNIT_SYMBOLS:
            return UNIT
        # "5 qz²": a short token right after a number looks like a unit we don't know
        if len(symbol) <= 3 and _NUMBER_BEFORE_WORD.search(before[: word.start()]):
            return AMBIGUOUS

    return FOOTNOTE


def encode(text: str) -> EncodedText:
    """Tokenize footnote markers, drop legal marks, keep units untouched."""
    text = text.translate(_DROP_MARKS)
    parts: list[str] = []
    footnotes: list[int] = []
    issues: list[str] = []
    pos = 0

    for match in _SUP_RUN.finditer(text):
        parts.append(text[pos:match.start()])
        pos = match.end()

        kind = classify(text, match.start(), match.end())
        if kind == UNIT:
            parts.append(match.group())
            continue

        ordinal = int(match.group().translate(_TO_ASCII))
        parts.append(token(ordinal))
        if ordinal not in footnotes:
            footnotes.append(ordinal)
        if kind == AMBIGUOUS:
            context = text[max(0, match.start() - 20):match.end()].strip()
            issues.append(
                f"Ambiguous superscript treated as footnote {ordinal}: '{context}'"
            )

    parts.append(text[pos:])
    return EncodedText(text="".join(parts), footnotes=footnotes, issues=issues)


def decode(text: str) -> str:
    """Render ``{{sup:N}}`` tokens back as Unicode superscript digits."""
    return _TOKEN.sub(lambda m: m.group(1).translate(_TO_SUPERSCRIPT), text)


def find_tokens(text: str) -> list[int]:
    """Footnote ordinals referenced in *text*, in order of appearance."""
    return [int(m.group(1)) for m in _TOKEN.finditer(text)]


def leading_token(text: str) -> int | None:
    match = _LEADING_TOKEN.match(text)
    return int(match.group(1)) if match else None


def check_cross_references(extraction: StructuredExtraction) -> list[str]:
    """Every token used in content needs exactly one legal reference starting with it."""
    issues: list[str] = []
    for section, entries in extraction.sections():
        for entry in entries:
            label = f"{section} / {entry.product_name or '(unnamed)'}"

            referenced: list[int] = []
            for text in entry.content_fields():
                for ordinal in find_tokens(text):
                    if ordinal not in referenced:
                        referenced.append(ordinal)

            leading = [leading_token(ref) for ref in entry.legal_references]
            for ordinal in referenced:
                count = leading.count(ordinal)
                if count == 0:
                    issues.append(f"{label}: {token(ordinal)} has no matching legal reference")
                elif count > 1:
                    issues.append(f"{label}: {token(ordinal)} has {count} legal references")
    return issues


def is_cross_reference_issue(issue: str) -> bool:
    """True for issue strings produced by check_cross_references()."""
    return _CROSS_REFERENCE_ISSUE.search(issue) is not None
