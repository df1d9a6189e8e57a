"""Sync strings and JSON backups of the whole store.

Both import paths replace the current store wholesale; there is no merge.
Callers confirm with the user before handing the result to
``RecordStore.replace_all``.
"""
from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any

from jobtracker.errors import DecodeError, ParseError, SchemaError
from jobtracker.log import get_logger
from jobtracker.models import StoreSnapshot

log = get_logger(__name__)


@dataclass(frozen=True)
class Backup:
    content: bytes
    filename: str


def _validate(payload: Any) -> StoreSnapshot:
    if not isinstance(payload, dict) or not isinstance(payload.get("jobs"), list):
        raise SchemaError("Invalid format: expected an object with a 'jobs' array")
    try:
        return StoreSnapshot.from_dict(payload)
    except (KeyError, ValueError, TypeError, AttributeError) as exc:
        raise SchemaError(f"Invalid job record: {exc}") from exc


def encode(snapshot: StoreSnapshot) -> str:
    text = json.dumps(snapshot.to_dict(), ensure_ascii=False, sort_keys=True, separators=(",", ":"))
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode(sync_string: str) -> StoreSnapshot:
    cleaned = "".join(sync_string.split())
    if not cleaned:
        raise DecodeError("Sync code is empty")
    try:
        raw = base64.b64decode(cleaned, validate=True)
        text = raw.decode("utf-8")
        payload = json.loads(text)
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        raise DecodeError(
            "Failed to read sync code. Make sure you copied the whole string exactly as it was generated."
        ) from exc
    snapshot = _validate(payload)
    log.info("Decoded sync code: %d job(s)", len(snapshot.jobs))
    return snapshot


def export_to_file(snapshot: StoreSnapshot, today: date | None = None) -> Backup:
    today = today or date.today()
    text = json.dumps(snapshot.to_dict(), ensure_ascii=False, indent=2)
    return Backup(content=text.encode("utf-8"), filename=f"backup_{today.isoformat()}.json")


def write_backup(snapshot: StoreSnapshot, directory: Path, today: date | None = None) -> Path:
    backup = export_to_file(snapshot, today=today)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / backup.filename
    path.write_bytes(backup.content)
    log.info("Backup written → %s (%d job(s))", path, len(snapshot.jobs))
    return path


def import_from_file(content: bytes) -> StoreSnapshot:
    try:
        payload = json.loads(content.decode("utf-8-sig"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise ParseError("Invalid backup file: could not parse JSON.") from exc
    snapshot = _validate(payload)
    log.info("Read backup: %d job(s)", len(snapshot.jobs))
    return snapshot
