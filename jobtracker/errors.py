"""Error taxonomy shared by the store, the extraction adapter and the codec."""
from __future__ import annotations

RATE_LIMITED = "rate_limited"
OVERLOADED = "overloaded"
TIMEOUT = "timeout"
TRANSIENT_KINDS: frozenset[str] = frozenset({RATE_LIMITED, OVERLOADED, TIMEOUT})

BLOCKED = "blocked"
INVALID_REQUEST = "invalid_request"
AUTH = "auth"
UNKNOWN = "unknown"


class TrackerError(Exception):
    """Base class for every error raised on purpose by jobtracker."""


class RemoteError(TrackerError):
    """A call to the extraction backend failed.

    ``status`` mirrors the HTTP-style code when one is known; ``kind`` is one
    of the module-level kind constants and decides whether a retry makes sense.
    """

    def __init__(self, message: str, *, status: int | None = None, kind: str = UNKNOWN) -> None:
        super().__init__(message)
        self.status = status
        self.kind = kind

    @property
    def transient(self) -> bool:
        return self.kind in TRANSIENT_KINDS


class ExtractionParseError(TrackerError):
    """The backend answered, but not with the shape we asked for."""


class AnalysisError(TrackerError):
    pass


class SyncError(TrackerError):
    pass


class DecodeError(SyncError):
    """Sync string is not a valid encoding."""


class SchemaError(SyncError):
    """Payload decoded but lacks a ``jobs`` array."""


class ParseError(SyncError):
    """Backup file is not valid JSON."""


_TRANSIENT_HINTS: dict[str, str] = {
    RATE_LIMITED: "The AI service is rate limiting requests. Wait a minute and try again.",
    OVERLOADED: "The AI service is overloaded right now. Wait a few seconds and try again.",
    TIMEOUT: "The AI service timed out. Try again shortly.",
}


def describe_error(exc: BaseException) -> str:
    """User-facing message for an error surfaced after fallbacks ran out."""
    kind = getattr(exc, "kind", None)
    if kind in _TRANSIENT_HINTS:
        return _TRANSIENT_HINTS[kind]
    if isinstance(exc, RemoteError):
        if kind == AUTH:
            return "The AI service rejected the API key. Check GROQ_API_KEY in .env."
        return (
            f"The AI service refused the request ({exc}). "
            "Try simplifying your input, or enter the details manually."
        )
    if isinstance(exc, (ExtractionParseError, AnalysisError)):
        return f"Analysis failed: {exc}"
    return str(exc)
