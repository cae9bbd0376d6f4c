"""Text extraction — PDF (PyMuPDF) and DOCX (OOXML) to raw text.

Superscript runs in DOCX files and Word footnote references are rendered as
Unicode superscript digits, so footnote markers reach the superscript codec.
Proprietary layouts (Apple Pages) are rejected up front with an actionable
message instead of a lossy best-effort parse.
"""

from __future__ import annotations

import io
import zipfile
from pathlib import PurePath
from xml.etree import ElementTree as ET

import fitz  # PyMuPDF
import structlog

from app.modules.extraction.errors import TextExtractionError, UnsupportedInputError
from app.modules.extraction.superscripts import SUPERSCRIPT_DIGITS

logger = structlog.get_logger()

SUPPORTED_KINDS = ("docx", "pdf")

CONVERT_MESSAGE = "Please convert the document to PDF or DOCX format."

_W = "{http://schemas.openxmlformats.org/wordprocessingml/2006/main}"
_TO_SUPERSCRIPT = str.maketrans("0123456789", SUPERSCRIPT_DIGITS)


def file_kind_from_filename(filename: str) -> str:
    """Lower-cased extension without the dot ("" when there is none)."""
    return PurePath(filename).suffix.lstrip(".").lower()


def ensure_supported(file_kind: str) -> None:
    """Fail fast, before any network call, on kinds we cannot read."""
    if file_kind == "pages":
        raise UnsupportedInputError(f"Pages format not supported. {CONVERT_MESSAGE}")
    if file_kind not in SUPPORTED_KINDS:
        label = file_kind or "(none)"
        raise UnsupportedInputError(f"Unsupported file type: {label}. {CONVERT_MESSAGE}")


def extract_text(file_bytes: bytes, file_kind: str) -> str:
    """Return the raw text of a document."""
    ensure_supported(file_kind)
    if file_kind == "pdf":
        text = _extract_pdf(file_bytes)
    else:
        text = _extract_docx(file_bytes)

    logger.info("Text extracted", file_kind=file_kind, chars=len(text))
    return text


# ---------------------------------------------------------------------------
# PDF
# ---------------------------------------------------------------------------


def _extract_pdf(pdf_bytes: bytes) -> str:
    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except Exception as exc:
        raise TextExtractionError(f"Failed to extract text from pdf file: {exc}") from exc

    try:
        pages = [(page.get_text("text") or "").strip() for page in doc]
    finally:
        doc.close()

    return "\n\n".join(p for p in pages if p)


# ---------------------------------------------------------------------------
# DOCX
# ---------------------------------------------------------------------------


def _run_text(run: ET.Element, footnote_ordinals: dict[str, int]) -> str:
    """Text of one ``w:r`` run; superscript digits become Unicode superscripts."""
    v_align = run.find(f"{_W}rPr/{_W}vertAlign")
    superscript = v_align is not None and v_align.get(f"{_W}val") == "superscript"

    parts: list[str] = []
    for child in run:
        if child.tag == f"{_W}t" and child.text:
            parts.append(child.text)
        elif child.tag == f"{_W}tab":
            parts.append("\t")
        elif child.tag in (f"{_W}br", f"{_W}cr"):
            parts.append("\n")
        elif child.tag == f"{_W}footnoteReference":
            note_id = child.get(f"{_W}id", "")
            ordinal = footnote_ordinals.setdefault(note_id, len(footnote_ordinals) + 1)
            parts.append(str(ordinal).translate(_TO_SUPERSCRIPT))

    text = "".join(parts)
    return text.translate(_TO_SUPERSCRIPT) if superscript else text


def _paragraphs(root: ET.Element, footnote_ordinals: dict[str, int]) -> list[str]:
    lines = []
    for paragraph in root.iter(f"{_W}p"):
        line = "".join(_run_text(run, footnote_ordinals) for run in paragraph.iter(f"{_W}r"))
        if line.strip():
            lines.append(line)
    return lines


def _footnote_lines(archive: zipfile.ZipFile, footnote_ordinals: dict[str, int]) -> list[str]:
    """Footnote bodies as "¹ text" lines, in reference order."""
    if not footnote_ordinals or "word/footnotes.xml" not in archive.namelist():
        return []

    root = ET.fromstring(archive.read("word/footnotes.xml"))
    bodies: dict[str, str] = {}
    for note in root.iter(f"{_W}footnote"):
        note_id = note.get(f"{_W}id", "")
        if note_id in footnote_ordinals:
            bodies[note_id] = " ".join(_paragraphs(note, {})).strip()

    lines = []
    for note_id, ordinal in sorted(footnote_ordinals.items(), key=lambda item: item[1]):
        body = bodies.get(note_id)
        if body:
            lines.append(f"{str(ordinal).translate(_TO_SUPERSCRIPT)} {body}")
    return lines


def _extract_docx(docx_bytes: bytes) -> str:
    try:
        with zipfile.ZipFile(io.BytesIO(docx_bytes)) as archive:
            root = ET.fromstring(archive.read("word/document.xml"))
            footnote_ordinals: dict[str, int] = {}
            lines = _paragraphs(root, footnote_ordinals)
            lines.extend(_footnote_lines(archive, footnote_ordinals))
    except (zipfile.BadZipFile, KeyError, ET.ParseError) as exc:
        raise TextExtractionError(f"Failed to extract text from docx file: {exc}") from exc

    return "\n".join(lines)
