"""Regex extraction used when no LLM key is configured."""
from __future__ import annotations

import re
from typing import Any

from jobtracker.errors import INVALID_REQUEST, RemoteError
from jobtracker.extraction.base import DETAILS, PAGE, ExtractionBackend, ExtractionRequest, SearchResult
from jobtracker.log import get_logger

log = get_logger(__name__)

_MONEY = r"[$£€]\s?\d[\d,.]*\s?[kKmM]?"
_SALARY_RE = re.compile(rf"{_MONEY}(?:\s?(?:-|–|to)\s?(?:{_MONEY}|\d[\d,.]*\s?[kKmM]?))?")
_LABELLED_COMPANY_RE = re.compile(r"^\s*(?:company|employer|organi[sz]ation)\s*[:\-]\s*(.+)$", re.IGNORECASE | re.MULTILINE)
_AT_COMPANY_RE = re.compile(r"\b(?:at|join|with)\s+((?:[A-Z][\w&'\-]*)(?:\s+(?:[A-Z][\w&'\-]*|&|of))*)")
_LABELLED_TITLE_RE = re.compile(r"^\s*(?:job\s+)?title\s*[:\-]\s*(.+)$", re.IGNORECASE | re.MULTILINE)

_NOT_COMPANIES = {"We", "Our", "The", "This", "You", "Remote", "Home", "Least", "A", "An"}


def _company(text: str) -> str:
    m = _LABELLED_COMPANY_RE.search(text)
    if m:
        return m.group(1).strip()[:80]
    for m in _AT_COMPANY_RE.finditer(text):
        name = m.group(1).strip(" .,'-")
        if name and name.split()[0] not in _NOT_COMPANIES:
            return name[:80]
    return "Unknown"


def _salary(text: str) -> str:
    m = _SALARY_RE.search(text)
    return re.sub(r"\s+", "", m.group(0)) if m else "Not found"


class HeuristicBackend(ExtractionBackend):
    """Best-effort company/salary extraction without an LLM."""

    def run(self, request: ExtractionRequest) -> Any:
        if request.task not in (DETAILS, PAGE):
            raise RemoteError(f"'{request.task}' needs an LLM — set GROQ_API_KEY", kind=INVALID_REQUEST)
        text = request.text
        data: dict[str, Any] = {"company": _company(text), "salaryRange": _salary(text)}
        if request.task == PAGE:
            m = _LABELLED_TITLE_RE.search(text)
            data["title"] = m.group(1).strip()[:120] if m else "Not found"
            data["description"] = text[:3000]
        log.debug("Heuristic %s → company=%s salary=%s", request.task, data["company"], data["salaryRange"])
        return data

    def search(self, request: ExtractionRequest) -> SearchResult:
        raise RemoteError("Search-grounded import needs GROQ_API_KEY and SERPAPI_KEY", kind=INVALID_REQUEST)
