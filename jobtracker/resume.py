"""Build the stored resume from pasted text or a PDF.

PDF text is extracted once, at upload, with pypdf; the document itself is
kept as a base64 data URL so it survives sync and backup.
"""
from __future__ import annotations

import base64
import io
import re
from pathlib import Path

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from jobtracker.log import get_logger
from jobtracker.models import ResumeData

log = get_logger(__name__)

PDF_DATA_URL_PREFIX = "data:application/pdf;base64,"


def _fix_spacing(text: str) -> str:
    """Re-insert spaces when PDF extraction merges words together.

    Detects the problem by checking if the space-to-character ratio is
    abnormally low, then applies heuristic space insertion.
    """
    if not text or len(text) < 50:
        return text
    space_ratio = text.count(" ") / len(text)
    if space_ratio > 0.08:
        return text

    log.debug("Low space ratio (%.2f%%) — applying spacing fix", space_ratio * 100)
    fixed = re.sub(r"([a-z])([A-Z])", r"\1 \2", text)
    fixed = re.sub(r"([.!?,;:])([A-Za-z])", r"\1 \2", fixed)
    return fixed


def resume_from_text(text: str) -> ResumeData:
    if not text.strip():
        raise ValueError("Resume text is empty")
    return ResumeData(type="text", content=text, extracted_text=text)


def extract_pdf_text(data: bytes) -> str:
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [_fix_spacing(page.extract_text() or "") for page in reader.pages]
    except (PdfReadError, ValueError, OSError) as exc:
        raise ValueError(f"Failed to parse PDF: {exc}") from exc
    return "\n".join(pages).strip()


def resume_from_pdf(source: Path | bytes) -> ResumeData:
    if isinstance(source, Path):
        if source.suffix.lower() != ".pdf":
            raise ValueError(f"Please upload a PDF file, got {source.name}")
        data = source.read_bytes()
    else:
        data = source
    text = extract_pdf_text(data)
    if not text:
        raise ValueError("No text layer found in PDF. Paste the resume text instead.")
    log.info("Extracted %d chars from PDF resume", len(text))
    return ResumeData(
        type="pdf",
        content=PDF_DATA_URL_PREFIX + base64.b64encode(data).decode("ascii"),
        extracted_text=text,
    )


def pdf_bytes(resume: ResumeData) -> bytes:
    """Original PDF bytes back from a stored pdf resume."""
    if resume.type != "pdf" or not resume.content.startswith("data:"):
        raise ValueError("Resume is not a stored PDF")
    _, _, payload = resume.content.partition(",")
    return base64.b64decode(payload)
