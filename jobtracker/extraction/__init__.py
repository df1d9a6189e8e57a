from .base import ExtractionBackend, ExtractionRequest, SearchResult
from .groq import GroqBackend
from .heuristic import HeuristicBackend
from .service import ExtractedJob, ExtractionService, ImportResult, OfferRanking

from jobtracker.config import Settings
from jobtracker.log import get_logger

log = get_logger(__name__)

__all__ = [
    "ExtractionBackend", "ExtractionRequest", "SearchResult",
    "GroqBackend", "HeuristicBackend",
    "ExtractedJob", "ExtractionService", "ImportResult", "OfferRanking",
    "get_backend", "build_service",
]


def get_backend(env_getter, settings: Settings | None = None) -> ExtractionBackend:
    settings = settings or Settings()
    api_key = env_getter("GROQ_API_KEY")
    if api_key:
        log.info("Extraction backend: Groq (%s)", settings.llm_model)
        return GroqBackend(api_key, settings.llm_model, env_getter)
    log.info("No GROQ_API_KEY — using heuristic extraction")
    return HeuristicBackend()


def build_service(env_getter, settings: Settings | None = None) -> ExtractionService:
    settings = settings or Settings()
    return ExtractionService(get_backend(env_getter, settings), settings)
