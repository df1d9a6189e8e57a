from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from jobtracker.errors import (
    AUTH,
    BLOCKED,
    INVALID_REQUEST,
    OVERLOADED,
    RATE_LIMITED,
    TIMEOUT,
    UNKNOWN,
    ExtractionParseError,
    RemoteError,
)

# Task kinds understood by every backend.
DETAILS = "details"
PAGE = "page"
SEARCH = "search"
MATCH = "match"
OFFERS = "offers"


@dataclass(frozen=True)
class ExtractionRequest:
    task: str
    text: str
    prompt: str
    schema: dict[str, Any]
    model: str | None = None


@dataclass
class SearchResult:
    payload: Any
    sources: list[dict[str, str]] = field(default_factory=list)


class ExtractionBackend(ABC):
    @abstractmethod
    def run(self, request: ExtractionRequest) -> Any:
        """Return JSON-decoded output for *request* or raise RemoteError."""

    @abstractmethod
    def search(self, request: ExtractionRequest) -> SearchResult:
        """Like :meth:`run`, grounded on web search results for ``request.text``."""


def remote_error_for_status(status: int | None, message: str) -> RemoteError:
    """Map an HTTP-style status to a RemoteError of the right kind."""
    if status == 429:
        kind = RATE_LIMITED
    elif status == 503:
        kind = OVERLOADED
    elif status in (408, 504):
        kind = TIMEOUT
    elif status in (401, 403):
        kind = AUTH
    elif status in (400, 404, 413, 422):
        kind = INVALID_REQUEST
    elif status == 451 or "safety" in message.lower() or "blocked" in message.lower():
        kind = BLOCKED
    else:
        kind = UNKNOWN
    return RemoteError(message, status=status, kind=kind)


_FENCE_RE = re.compile(r"```(?:json)?\s*|```")


def parse_json_reply(raw: str) -> Any:
    """Pull the first JSON object or array out of a model reply."""
    text = _FENCE_RE.sub("", raw or "").strip()
    if not text:
        raise ExtractionParseError("Empty reply")
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        raise ExtractionParseError("Reply contains no JSON")
    start = min(starts)
    closer = "}" if text[start] == "{" else "]"
    end = text.rfind(closer) + 1
    if end <= start:
        raise ExtractionParseError("Reply contains unterminated JSON")
    try:
        return json.loads(text[start:end])
    except ValueError as exc:
        raise ExtractionParseError(f"Reply is not valid JSON: {exc}") from exc
