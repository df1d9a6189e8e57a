"""Turn job-posting text or URLs into structured fields, with graceful fallbacks.

``extract_from_description`` never raises. ``import_from_url`` always returns
a result and says how far it trusts it: ``direct`` (page text was fetched and
parsed), ``search`` (a web-search summary of the URL) or ``none`` (sentinels;
the user should paste the description). Match analysis and offer comparison
have no safe sentinel, so remote failures surface there as ``AnalysisError``.
"""
from __future__ import annotations

import html
import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence
from urllib.parse import quote, urlparse

import requests

from jobtracker.config import Settings
from jobtracker.errors import AnalysisError, ExtractionParseError, describe_error
from jobtracker.extraction.base import (
    DETAILS,
    MATCH,
    OFFERS,
    PAGE,
    SEARCH,
    ExtractionBackend,
    ExtractionRequest,
)
from jobtracker.log import get_logger
from jobtracker.models import (
    SALARY_NOT_EXTRACTED,
    SALARY_NOT_FOUND,
    UNKNOWN_COMPANY,
    JobApplication,
    MatchAnalysis,
)
from jobtracker.retry import with_retry

log = get_logger(__name__)

DIRECT = "direct"
VIA_SEARCH = "search"
NO_METHOD = "none"

PARSE_FAILED_GAP = "Analysis failed to parse."

_WALLED_NAMES: dict[str, str] = {
    "linkedin.com": "LinkedIn",
    "glassdoor.com": "Glassdoor",
}

# ── Result types ─────────────────────────────────────────────────────────


@dataclass
class ExtractedJob:
    company: str
    salary_range: str
    title: str | None = None
    description: str | None = None
    sources: list[dict[str, str]] = field(default_factory=list)


@dataclass
class ImportResult:
    data: ExtractedJob
    method: str
    confidence: str
    warning: str | None = None


@dataclass
class OfferRanking:
    rank: int
    company: str
    title: str
    why: str
    pros: list[str] = field(default_factory=list)
    cons: list[str] = field(default_factory=list)


# ── Prompts ──────────────────────────────────────────────────────────────

_DETAILS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"company": {"type": "string"}, "salaryRange": {"type": "string"}},
    "required": ["company", "salaryRange"],
}

_POSTING_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "description": "The job title"},
        "company": {"type": "string", "description": "The company name"},
        "salaryRange": {"type": "string", "description": "Salary or compensation range, if mentioned"},
        "description": {"type": "string", "description": "Summary of responsibilities and requirements (max 500 words)"},
    },
    "required": ["title", "company", "salaryRange", "description"],
}

_MATCH_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "score": {"type": "number", "minimum": 0, "maximum": 100},
        "strengths": {"type": "array", "items": {"type": "string"}},
        "gaps": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["score", "strengths", "gaps"],
}

_OFFERS_SCHEMA: dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "rank": {"type": "number"},
            "company": {"type": "string"},
            "title": {"type": "string"},
            "why": {"type": "string"},
            "pros": {"type": "array", "items": {"type": "string"}},
            "cons": {"type": "array", "items": {"type": "string"}},
        },
        "required": ["rank", "company", "title", "why", "pros", "cons"],
    },
}

_DETAILS_PROMPT = """\
Extract the company name and salary range from this job description.
Return JSON matching this schema: {schema}
Use "Unknown" for a missing company and "Not found" for a missing salary.

Job description:
{text}
"""

_PAGE_PROMPT = """\
You are extracting job posting details from a webpage's text content.
The URL was: {url}
Return JSON matching this schema: {schema}
If a field is not found, use "Not found".

PAGE CONTENT:
{text}
"""

_SEARCH_PROMPT = """\
Using the search results above, find the job posting at this URL: {url}
Extract the exact job title, the company name, the salary/compensation range
(if available) and a detailed summary of responsibilities and requirements.
Return JSON matching this schema: {schema}
If you cannot find a field, use "Not found". Do not make up information.
"""

_MATCH_PROMPT = """\
Perform a detailed compatibility analysis between this resume and job description.
Score 0-100. Be objective and critical; list missing skills as gaps.
Return JSON matching this schema: {schema}

RESUME:
{resume}

JOB DESCRIPTION:
{description}
"""

_OFFERS_PROMPT = """\
Rank these job offers, best first, weighing role impact, growth potential and
company culture as described. Return a JSON array matching this schema: {schema}

OFFERS:
{offers}
"""

# ── Coercion (one per response shape) ────────────────────────────────────


def _text(value: Any, default: str) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str) or not value.strip():
        return default
    return value.strip()


def _strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [s.strip() for s in value if isinstance(s, str) and s.strip()]


def coerce_details(payload: Any, salary_default: str = SALARY_NOT_EXTRACTED) -> ExtractedJob:
    if not isinstance(payload, dict):
        raise ExtractionParseError(f"Expected an object, got {type(payload).__name__}")
    return ExtractedJob(
        company=_text(payload.get("company"), UNKNOWN_COMPANY),
        salary_range=_text(payload.get("salaryRange") or payload.get("salary_range"), salary_default),
    )


def coerce_posting(payload: Any) -> ExtractedJob:
    job = coerce_details(payload, salary_default=SALARY_NOT_FOUND)
    job.title = _text(payload.get("title"), "Not found")
    job.description = _text(payload.get("description"), "")
    return job


def coerce_analysis(payload: Any) -> MatchAnalysis:
    if not isinstance(payload, dict):
        raise ExtractionParseError(f"Expected an object, got {type(payload).__name__}")
    score = payload.get("score")
    if isinstance(score, str):
        try:
            score = float(score.strip().rstrip("%"))
        except ValueError:
            score = None
    if not isinstance(score, (int, float)) or isinstance(score, bool):
        raise ExtractionParseError("Analysis has no numeric score")
    return MatchAnalysis(
        score=int(round(min(max(score, 0), 100))),
        strengths=_strings(payload.get("strengths")),
        gaps=_strings(payload.get("gaps")),
    )


def coerce_rankings(payload: Any) -> list[OfferRanking]:
    if isinstance(payload, dict):
        payload = payload.get("offers") or payload.get("rankings")
    if not isinstance(payload, list):
        raise ExtractionParseError("Expected an array of rankings")
    rankings: list[OfferRanking] = []
    for item in payload:
        if not isinstance(item, dict) or not isinstance(item.get("rank"), (int, float)):
            log.debug("Skipping malformed ranking: %r", item)
            continue
        rankings.append(
            OfferRanking(
                rank=int(item["rank"]),
                company=_text(item.get("company"), UNKNOWN_COMPANY),
                title=_text(item.get("title"), ""),
                why=_text(item.get("why"), ""),
                pros=_strings(item.get("pros")),
                cons=_strings(item.get("cons")),
            )
        )
    return sorted(rankings, key=lambda r: r.rank)


# ── Page fetching ────────────────────────────────────────────────────────

_SCRIPT_RE = re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style[\s\S]*?</style>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


def html_to_text(markup: str) -> str:
    text = _STYLE_RE.sub("", _SCRIPT_RE.sub("", markup))
    text = html.unescape(_TAG_RE.sub(" ", text))
    return _WS_RE.sub(" ", text).strip()


def host_of(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


# ── Service ──────────────────────────────────────────────────────────────


class ExtractionService:
    def __init__(
        self,
        backend: ExtractionBackend,
        settings: Settings | None = None,
        fetcher: Callable[[str], str | None] | None = None,
    ) -> None:
        self.backend = backend
        self.settings = settings or Settings()
        self.fetcher = fetcher or self.fetch_page_text

    def _call(self, fn: Callable[[], Any], label: str) -> Any:
        return with_retry(
            fn,
            max_retries=self.settings.max_retries,
            base_delay_ms=self.settings.base_delay_ms,
            label=label,
        )

    def _request(self, task: str, text: str, prompt: str, schema: dict[str, Any], model: str | None = None) -> ExtractionRequest:
        return ExtractionRequest(task=task, text=text, prompt=prompt, schema=schema, model=model)

    # -- description ------------------------------------------------------

    def extract_from_description(self, text: str) -> ExtractedJob:
        """Company and salary from a pasted description; sentinels on any failure."""
        prompt = _DETAILS_PROMPT.format(schema=json.dumps(_DETAILS_SCHEMA), text=text[:12000])
        request = self._request(DETAILS, text, prompt, _DETAILS_SCHEMA, self.settings.llm_model)
        try:
            payload = self._call(lambda: self.backend.run(request), "extract_details")
            job = coerce_details(payload)
            log.info("Extracted details: company=%s salary=%s", job.company, job.salary_range)
            return job
        except Exception as exc:
            log.warning("Detail extraction failed (%s), using sentinels", exc)
            return ExtractedJob(company=UNKNOWN_COMPANY, salary_range=SALARY_NOT_EXTRACTED)

    # -- URL import -------------------------------------------------------

    def walled_domain(self, url: str) -> str | None:
        host = host_of(url)
        for domain in self.settings.login_walled_domains:
            if host == domain or host.endswith("." + domain):
                return domain
        return None

    def fetch_page_text(self, url: str) -> str | None:
        """Rendered text of *url* through the fetch proxy, or None if unusable."""
        proxied = self.settings.fetch_proxy.format(url=quote(url, safe=""))
        try:
            r = requests.get(proxied, timeout=self.settings.fetch_timeout)
        except requests.RequestException as exc:
            log.debug("Page fetch failed for %s: %s", url, exc)
            return None
        if not r.ok:
            log.debug("Page fetch for %s returned HTTP %d", url, r.status_code)
            return None
        return r.text

    def _usable_text(self, url: str) -> str | None:
        raw = self.fetcher(url)
        if not raw:
            return None
        text = html_to_text(raw)
        if len(text) < self.settings.min_page_chars:
            log.info("Page text for %s too short (%d chars)", url, len(text))
            return None
        return text[: self.settings.max_page_chars]

    def _extract_page(self, url: str, text: str) -> ExtractedJob:
        prompt = _PAGE_PROMPT.format(url=url, schema=json.dumps(_POSTING_SCHEMA), text=text)
        request = self._request(PAGE, text, prompt, _POSTING_SCHEMA, self.settings.llm_model)
        return coerce_posting(self._call(lambda: self.backend.run(request), "extract_page"))

    def _extract_via_search(self, url: str) -> ExtractedJob:
        prompt = _SEARCH_PROMPT.format(url=url, schema=json.dumps(_POSTING_SCHEMA))
        request = self._request(SEARCH, url, prompt, _POSTING_SCHEMA, self.settings.analysis_model)
        result = self._call(lambda: self.backend.search(request), "extract_search")
        job = coerce_posting(result.payload)
        job.sources = list(result.sources)
        return job

    def import_from_url(self, url: str) -> ImportResult:
        walled = self.walled_domain(url)
        site = _WALLED_NAMES.get(walled or "", walled)

        if walled is None:
            text = self._usable_text(url)
            if text:
                try:
                    data = self._extract_page(url, text)
                    log.info("Imported %s directly: %s @ %s", url, data.title, data.company)
                    return ImportResult(data=data, method=DIRECT, confidence="high")
                except Exception as exc:
                    log.warning("Page fetched but extraction failed (%s); trying search", exc)
        else:
            log.info("%s is login-walled; skipping direct fetch", walled)

        try:
            data = self._extract_via_search(url)
        except Exception as exc:
            log.warning("Search-grounded import failed for %s: %s", url, exc)
            if walled:
                warning = (
                    f"{site} jobs are behind a login wall and cannot be imported automatically. "
                    "Please copy and paste the job description."
                )
            else:
                warning = "Could not fetch details from this URL. Please paste the job description manually."
            return ImportResult(
                data=ExtractedJob(company=UNKNOWN_COMPANY, salary_range=SALARY_NOT_FOUND, description=""),
                method=NO_METHOD,
                confidence="low",
                warning=warning,
            )

        useful = data.company != UNKNOWN_COMPANY and len(data.description or "") > 20
        if walled:
            warning = (
                f"{site} jobs require authentication. Details were found via web search and may be "
                "incomplete. Consider pasting the description directly."
            )
        elif useful:
            warning = "Could not access the page directly. Details were found via web search and may be incomplete."
        else:
            warning = "Could not access this page or find it via web search. Please paste the job description manually."
        log.info("Imported %s via search (useful=%s)", url, useful)
        return ImportResult(data=data, method=VIA_SEARCH, confidence="low", warning=warning)

    # -- analysis ---------------------------------------------------------

    def analyze_match(self, resume_text: str, description: str) -> MatchAnalysis:
        """Score resume fit; a parse failure returns score 0 flagged in ``gaps``."""
        prompt = _MATCH_PROMPT.format(
            schema=json.dumps(_MATCH_SCHEMA), resume=resume_text[:12000], description=description[:12000]
        )
        request = self._request(MATCH, description, prompt, _MATCH_SCHEMA, self.settings.analysis_model)
        try:
            payload = self._call(lambda: self.backend.run(request), "analyze_match")
        except ExtractionParseError as exc:
            log.warning("Match analysis reply unparseable: %s", exc)
            return MatchAnalysis(score=0, strengths=[], gaps=[PARSE_FAILED_GAP])
        except Exception as exc:
            raise AnalysisError(describe_error(exc)) from exc
        try:
            return coerce_analysis(payload)
        except ExtractionParseError as exc:
            log.warning("Match analysis malformed: %s", exc)
            return MatchAnalysis(score=0, strengths=[], gaps=[PARSE_FAILED_GAP])

    def compare_offers(self, offers: Sequence[JobApplication]) -> list[OfferRanking]:
        if len(offers) < 2:
            raise ValueError("Need at least two offers to compare")
        listing = json.dumps(
            [{"title": o.title, "company": o.company, "description": o.description[:4000]} for o in offers],
            ensure_ascii=False,
        )
        prompt = _OFFERS_PROMPT.format(schema=json.dumps(_OFFERS_SCHEMA), offers=listing)
        request = self._request(OFFERS, listing, prompt, _OFFERS_SCHEMA, self.settings.analysis_model)
        try:
            payload = self._call(lambda: self.backend.run(request), "compare_offers")
        except ExtractionParseError as exc:
            log.warning("Offer comparison reply unparseable: %s", exc)
            return []
        except Exception as exc:
            raise AnalysisError(describe_error(exc)) from exc
        try:
            return coerce_rankings(payload)
        except ExtractionParseError as exc:
            log.warning("Offer comparison malformed: %s", exc)
            return []
