"""Load tracker settings and env configuration."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from jobtracker.log import get_logger

log = get_logger(__name__)

load_dotenv()

ROOT_DIR: Path = Path(os.environ.get("TRACKER_HOME") or Path(__file__).resolve().parent.parent)
CONFIG_DIR: Path = ROOT_DIR / "config"
SETTINGS_PATH: Path = CONFIG_DIR / "settings.yaml"
DATA_DIR: Path = ROOT_DIR / "data"
BACKUP_DIR: Path = ROOT_DIR / "backups"
REPORTS_DIR: Path = ROOT_DIR / "reports"

DEFAULT_PROXY = "https://api.allorigins.win/raw?url={url}"


@dataclass
class Settings:
    max_retries: int = 5
    base_delay_ms: int = 2000
    llm_model: str = "llama-3.3-70b-versatile"
    analysis_model: str = "llama-3.3-70b-versatile"
    fetch_proxy: str = DEFAULT_PROXY
    fetch_timeout: float = 10.0
    min_page_chars: int = 100
    max_page_chars: int = 30000
    login_walled_domains: list[str] = field(default_factory=lambda: ["linkedin.com"])
    jobs_key: str = "jobs"
    resume_key: str = "resume"
    strict: bool = False


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def load_settings(path: Path | None = None) -> Settings:
    """Defaults, overlaid by config/settings.yaml, overlaid by env."""
    path = path or SETTINGS_PATH
    data: dict[str, Any] = {}
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            log.warning("Ignoring %s: expected a mapping, got %s", path.name, type(data).__name__)
            data = {}

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        log.warning("Unknown settings ignored: %s", ", ".join(unknown))
    settings = Settings(**{k: v for k, v in data.items() if k in known})

    if get_env("GROQ_LLM_MODEL"):
        settings.llm_model = get_env("GROQ_LLM_MODEL")
    if get_env("GROQ_ANALYSIS_MODEL"):
        settings.analysis_model = get_env("GROQ_ANALYSIS_MODEL")
    if get_env("TRACKER_STRICT").lower() in ("1", "true", "yes"):
        settings.strict = True
    return settings


def ensure_dirs() -> None:
    for d in (DATA_DIR, BACKUP_DIR, REPORTS_DIR):
        d.mkdir(parents=True, exist_ok=True)
