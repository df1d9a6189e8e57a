"""
Tests for resume ingestion

Tests cover:
- Text resumes
- PDF text extraction with pypdf, stored as a data URL
- PDFs without a text layer and non-PDF input
"""

import base64
import io

import pytest
from pypdf import PdfWriter

from jobtracker.models import ResumeData
from jobtracker.resume import (
    PDF_DATA_URL_PREFIX,
    _fix_spacing,
    pdf_bytes,
    resume_from_pdf,
    resume_from_text,
)


def text_pdf(text: str) -> bytes:
    """Single-page PDF with one line of Helvetica text."""
    stream = f"BT /F1 12 Tf 72 720 Td ({text}) Tj ET".encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R "
        b"/Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    out = io.BytesIO()
    out.write(b"%PDF-1.4\n")
    offsets = []
    for n, body in enumerate(objects, 1):
        offsets.append(out.tell())
        out.write(b"%d 0 obj\n" % n + body + b"\nendobj\n")
    xref = out.tell()
    out.write(b"xref\n0 %d\n0000000000 65535 f \n" % (len(objects) + 1))
    for offset in offsets:
        out.write(b"%010d 00000 n \n" % offset)
    out.write(b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objects) + 1, xref))
    return out.getvalue()


def blank_pdf() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


class TestTextResume:
    def test_text(self):
        resume = resume_from_text("Jane Doe\nPython, SQL")
        assert resume == ResumeData(type="text", content="Jane Doe\nPython, SQL", extracted_text="Jane Doe\nPython, SQL")

    def test_empty(self):
        with pytest.raises(ValueError):
            resume_from_text("  \n")


class TestPdfResume:
    def test_extracts_text_and_keeps_document(self):
        data = text_pdf("Jane Doe Senior Python Engineer")
        resume = resume_from_pdf(data)
        assert resume.type == "pdf"
        assert "Jane Doe" in resume.extracted_text
        assert resume.content.startswith(PDF_DATA_URL_PREFIX)
        assert pdf_bytes(resume) == data

    def test_from_path(self, tmp_path):
        path = tmp_path / "cv.PDF"
        path.write_bytes(text_pdf("Jane Doe"))
        assert "Jane Doe" in resume_from_pdf(path).extracted_text

    def test_wrong_extension(self, tmp_path):
        path = tmp_path / "cv.docx"
        path.write_bytes(b"PK")
        with pytest.raises(ValueError, match="PDF"):
            resume_from_pdf(path)

    def test_no_text_layer(self):
        with pytest.raises(ValueError, match="No text layer"):
            resume_from_pdf(blank_pdf())

    def test_garbage_bytes(self):
        with pytest.raises(ValueError):
            resume_from_pdf(b"this is not a pdf at all")

    def test_pdf_bytes_requires_pdf(self):
        with pytest.raises(ValueError):
            pdf_bytes(resume_from_text("cv"))

    def test_data_url_is_standard_base64(self):
        data = text_pdf("Jane Doe")
        payload = resume_from_pdf(data).content[len(PDF_DATA_URL_PREFIX):]
        assert base64.b64decode(payload, validate=True) == data


class TestFixSpacing:
    def test_merged_words_are_split(self):
        merged = "SeniorEngineerAtAcme.LedPlatformTeam,ShippedBillingSystemAndMentoredJuniors"
        fixed = _fix_spacing(merged)
        assert "Senior Engineer At Acme. Led Platform Team, Shipped" in fixed

    def test_normal_text_untouched(self):
        text = "Senior engineer at Acme. Led the platform team and shipped the billing system."
        assert _fix_spacing(text) == text
