"""
Used-car listing aggregator: collection, matching and ranking
"""
from .models import (
    AggregateInsights,
    EnrichedListing,
    InvalidFiltersError,
    RawListing,
    SearchContext,
    SearchFilters,
    SearchResponse,
)
from .core import SearchService, enhance_filters, run_search
from .extraction import extract
from .collector import PlatformCollector
from .orchestrator import CollectionOrchestrator
from .oracle import QueryOracle
from .matching import MatchingEngine
from .insights import summarize
from .export import save_output_rows
from .utils import init_logger, now_iso

__version__ = "1.0.0"

__all__ = [
    "AggregateInsights",
    "EnrichedListing",
    "InvalidFiltersError",
    "RawListing",
    "SearchContext",
    "SearchFilters",
    "SearchResponse",
    "SearchService",
    "enhance_filters",
    "run_search",
    "extract",
    "PlatformCollector",
    "CollectionOrchestrator",
    "QueryOracle",
    "MatchingEngine",
    "summarize",
    "save_output_rows",
    "init_logger",
    "now_iso"
]
