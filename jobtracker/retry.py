"""Retry with exponential backoff for transient remote failures — stdlib only."""
from __future__ import annotations

import json
import random
import time
from typing import Callable, TypeVar

from jobtracker.errors import OVERLOADED, RATE_LIMITED, TIMEOUT, TRANSIENT_KINDS
from jobtracker.log import get_logger

log = get_logger(__name__)

T = TypeVar("T")

JITTER_MS = 1000.0

_STATUS_KINDS: dict[int, str] = {
    429: RATE_LIMITED,
    503: OVERLOADED,
    504: TIMEOUT,
}

# Checked in order; the first substring found in the lowered message wins.
_MESSAGE_KINDS: list[tuple[str, str]] = [
    ("429", RATE_LIMITED),
    ("too many requests", RATE_LIMITED),
    ("rate limit", RATE_LIMITED),
    ("resource_exhausted", RATE_LIMITED),
    ("503", OVERLOADED),
    ("overloaded", OVERLOADED),
    ("unavailable", OVERLOADED),
    ("504", TIMEOUT),
    ("timed out", TIMEOUT),
    ("timeout", TIMEOUT),
]


def _status_of(exc: BaseException) -> int | None:
    for attr in ("status", "status_code", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
    return None


def classify(exc: BaseException) -> str | None:
    """Return the transient kind of *exc*, or None when it must not be retried."""
    kind = getattr(exc, "kind", None)
    if isinstance(kind, str):
        return kind if kind in TRANSIENT_KINDS else None
    status = _status_of(exc)
    if status in _STATUS_KINDS:
        return _STATUS_KINDS[status]
    message = str(exc).lower()
    for needle, kind in _MESSAGE_KINDS:
        if needle in message:
            return kind
    return None


def clean_message(exc: BaseException) -> None:
    """Replace a stringified JSON error payload with its inner message, in place."""
    message = str(exc)
    if not message.startswith("{"):
        return
    try:
        payload = json.loads(message)
    except ValueError:
        return
    inner = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(inner, dict) and isinstance(inner.get("message"), str):
        exc.args = (inner["message"],) + tuple(exc.args[1:])


def backoff_delay(attempt: int, base_delay_ms: float) -> float:
    """Seconds to wait before retry number *attempt* (0-based)."""
    return (base_delay_ms * (2 ** attempt) + random.uniform(0, JITTER_MS)) / 1000.0


def with_retry(
    operation: Callable[[], T],
    max_retries: int = 5,
    base_delay_ms: float = 2000,
    *,
    label: str | None = None,
) -> T:
    """Run *operation*, retrying transient failures up to *max_retries* times.

    Non-transient errors propagate on first sight. After the budget is spent
    the last error propagates, its message cleaned if it carried a JSON body.
    """
    name = label or getattr(operation, "__qualname__", repr(operation))
    attempt = 0
    while True:
        try:
            return operation()
        except Exception as exc:
            kind = classify(exc)
            if kind is None:
                clean_message(exc)
                raise
            if attempt >= max_retries:
                clean_message(exc)
                log.error("%s failed after %d retries (%s): %s", name, max_retries, kind, exc)
                raise
            delay = backoff_delay(attempt, base_delay_ms)
            attempt += 1
            log.warning(
                "%s transient failure (%s), retry %d/%d in %.1fs",
                name,
                kind,
                attempt,
                max_retries,
                delay,
            )
            time.sleep(delay)
