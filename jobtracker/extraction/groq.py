"""Groq-hosted LLM backend (OpenAI-compatible API), with SerpAPI grounding for search."""
from __future__ import annotations

import json
from typing import Any, Callable

import openai
import requests

from jobtracker.errors import INVALID_REQUEST, TIMEOUT, RemoteError
from jobtracker.extraction.base import (
    ExtractionBackend,
    ExtractionRequest,
    SearchResult,
    parse_json_reply,
    remote_error_for_status,
)
from jobtracker.log import get_logger

log = get_logger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
SERPAPI_URL = "https://serpapi.com/search"

_SEARCH_CONTEXT = """\
Web search results for "{query}":

{results}

{prompt}"""


class GroqBackend(ExtractionBackend):
    def __init__(self, api_key: str, model: str, env_getter: Callable[[str], str] | None = None) -> None:
        self.api_key = api_key
        self.model = model
        self.serpapi_key: str = env_getter("SERPAPI_KEY") if env_getter else ""
        self._client = None

    @property
    def client(self):
        if self._client is None:
            self._client = openai.OpenAI(api_key=self.api_key, base_url=GROQ_BASE_URL, max_retries=0)
        return self._client

    def _complete(self, prompt: str, model: str | None) -> str:
        try:
            resp = self.client.chat.completions.create(
                model=model or self.model,
                messages=[
                    {"role": "system", "content": "Reply with JSON only. No prose, no markdown."},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=2000,
                temperature=0.1,
            )
        except openai.APITimeoutError as exc:
            raise RemoteError(f"Request timed out: {exc}", status=504, kind=TIMEOUT) from exc
        except openai.APIConnectionError as exc:
            raise RemoteError(f"Connection failed: {exc}", kind=TIMEOUT) from exc
        except openai.APIStatusError as exc:
            body = exc.response.text if exc.response is not None else str(exc)
            raise remote_error_for_status(exc.status_code, body or str(exc)) from exc
        choice = resp.choices[0]
        if choice.finish_reason == "content_filter":
            raise remote_error_for_status(None, "Response blocked by safety filter")
        return (choice.message.content or "").strip()

    def run(self, request: ExtractionRequest) -> Any:
        raw = self._complete(request.prompt, request.model)
        log.debug("Groq %s reply: %d chars", request.task, len(raw))
        return parse_json_reply(raw)

    def _google(self, query: str) -> list[dict[str, str]]:
        if not self.serpapi_key:
            raise RemoteError("Search grounding needs SERPAPI_KEY", kind=INVALID_REQUEST)
        try:
            r = requests.get(
                SERPAPI_URL,
                params={"engine": "google", "q": query, "api_key": self.serpapi_key},
                timeout=20,
            )
        except requests.Timeout as exc:
            raise RemoteError(f"Search timed out: {exc}", kind=TIMEOUT) from exc
        except requests.RequestException as exc:
            raise RemoteError(f"Search failed: {exc}") from exc
        if not r.ok:
            raise remote_error_for_status(r.status_code, r.text[:500])
        hits = r.json().get("organic_results", [])
        return [
            {"title": h.get("title", ""), "uri": h.get("link", ""), "snippet": h.get("snippet", "")}
            for h in hits[:8]
            if h.get("link")
        ]

    def search(self, request: ExtractionRequest) -> SearchResult:
        hits = self._google(request.text)
        if not hits:
            raise RemoteError(f"No search results for {request.text}", kind=INVALID_REQUEST)
        results = "\n".join(f"- {h['title']} ({h['uri']}): {h['snippet']}" for h in hits)
        prompt = _SEARCH_CONTEXT.format(query=request.text, results=results, prompt=request.prompt)
        payload = parse_json_reply(self._complete(prompt, request.model))
        log.debug("Grounded %s on %d search hit(s): %s", request.task, len(hits), json.dumps([h["uri"] for h in hits]))
        return SearchResult(payload=payload, sources=[{"uri": h["uri"], "title": h["title"]} for h in hits])
