"""
Data models for the car listing aggregator.

All entities are request-scoped values. Listings are frozen: pipeline stages
produce new values with ``dataclasses.replace`` instead of mutating.
"""
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from .utils import extract_numeric_price


MIN_YEAR = 1990


class InvalidFiltersError(ValueError):
    """Raised when search filters are missing or inconsistent."""


@dataclass(frozen=True)
class SearchFilters:
    """User supplied search filters. Only ``model`` is required."""

    model: str
    brand: Optional[str] = None
    year: Optional[int] = None
    color: Optional[str] = None
    location: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None

    # Filled in from the price prediction when the user gave no bounds.
    # Sample data is priced inside them; they never act as cutoffs.
    suggested_min_price: Optional[float] = None
    suggested_max_price: Optional[float] = None

    def validate(self) -> "SearchFilters":
        """Check required fields and ranges, returning a trimmed copy."""
        if not isinstance(self.model, str) or not self.model.strip():
            raise InvalidFiltersError("Car model is required")

        if self.year is not None:
            max_year = datetime.now().year + 1
            if not MIN_YEAR <= int(self.year) <= max_year:
                raise InvalidFiltersError("Invalid year provided")

        if self.min_price is not None and self.min_price < 0:
            raise InvalidFiltersError("Invalid minimum price")
        if self.max_price is not None and self.max_price < 0:
            raise InvalidFiltersError("Invalid maximum price")
        if self.has_inverted_price_range:
            raise InvalidFiltersError("Minimum price cannot be greater than maximum price")

        brand = self.brand.strip() if self.brand else None
        return replace(self, model=self.model.strip(), brand=brand or None)

    @property
    def has_inverted_price_range(self) -> bool:
        return (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        )

    @property
    def query_text(self) -> str:
        return " ".join(p for p in (self.brand, self.model) if p).strip()

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


@dataclass(frozen=True)
class ListingSpecs:
    year: Optional[int] = None
    color: Optional[str] = None
    location: Optional[str] = None
    mileage_km: Optional[int] = None
    transmission: Optional[str] = None  # "Automatic" | "Manual"
    fuel_type: Optional[str] = None


@dataclass(frozen=True)
class ExtractionMeta:
    """How a listing was extracted and how much to trust it."""

    strategy_name: str
    confidence: str  # "high" | "medium" | "low" | "none"
    page_number: int = 1
    field_confidence: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RawListing:
    """A single listing as scraped from one platform."""

    platform: str
    title: str
    price_text: str
    link: str
    image_url: Optional[str] = None
    specs: ListingSpecs = field(default_factory=ListingSpecs)
    extraction: ExtractionMeta = field(
        default_factory=lambda: ExtractionMeta(strategy_name="unknown", confidence="none")
    )
    synthetic: bool = False


@dataclass(frozen=True)
class AIInsights:
    recommended: bool = False
    suspicious: bool = False
    market_analysis: Optional[str] = None
    price_score: Optional[int] = None


@dataclass(frozen=True)
class EnrichedListing(RawListing):
    """A raw listing annotated by the matching and ranking engine."""

    price_value: float = 0.0
    match_score: Optional[float] = None  # 0 = best .. 1 = worst
    matched_term: Optional[str] = None
    semantic_score: Optional[float] = None  # 0 .. 1, higher is better
    price_flag: Optional[str] = None
    ai_insights: AIInsights = field(default_factory=AIInsights)
    rank_score: Optional[float] = None
    score_breakdown: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: RawListing) -> "EnrichedListing":
        if isinstance(raw, EnrichedListing):
            return raw
        values = {f.name: getattr(raw, f.name) for f in fields(RawListing)}
        return cls(price_value=extract_numeric_price(raw.price_text), **values)


@dataclass(frozen=True)
class StandardizedQuery:
    original: str
    brand: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None


@dataclass(frozen=True)
class QueryEnhancement:
    standardized: StandardizedQuery
    alternatives: List[str] = field(default_factory=list)
    search_terms: List[str] = field(default_factory=list)
    source: str = "fallback"  # "oracle" | "fallback"


@dataclass(frozen=True)
class PricePrediction:
    min_price: float
    max_price: float
    average_price: float
    confidence: str = "low"
    factors: List[str] = field(default_factory=list)
    recommendation: Optional[str] = None


@dataclass(frozen=True)
class SearchContext:
    """Query enhancement and price prediction for one request."""

    enhancement: QueryEnhancement
    price_prediction: Optional[PricePrediction] = None

    @property
    def standardized(self) -> StandardizedQuery:
        return self.enhancement.standardized

    @property
    def alternatives(self) -> List[str]:
        return self.enhancement.alternatives

    @property
    def search_terms(self) -> List[str]:
        return self.enhancement.search_terms

    @property
    def confidence(self) -> str:
        """Lower when the oracle was unavailable and local fallbacks were used."""
        if self.enhancement.source == "oracle":
            return "high" if self.price_prediction else "medium"
        return "low"


@dataclass(frozen=True)
class Recommendation:
    car_index: int
    title: str
    reason: str
    pros: List[str] = field(default_factory=list)
    cons: List[str] = field(default_factory=list)
    score: int = 0

    def summary(self) -> str:
        return f"{self.title} ({self.score}/10): {self.reason}"


@dataclass(frozen=True)
class PriceRange:
    min: float
    max: float
    average: float


@dataclass(frozen=True)
class AggregateInsights:
    market_size: int
    price_range: Optional[PriceRange]
    platform_distribution: Dict[str, int]
    recommendations: List[str] = field(default_factory=list)
    price_prediction: Optional[PricePrediction] = None


@dataclass(frozen=True)
class SearchAnalysis:
    total_found: int
    after_filtering: int
    price_prediction: Optional[PricePrediction] = None
    search_enhancement: Optional[QueryEnhancement] = None


@dataclass(frozen=True)
class SearchResponse:
    results: List[EnrichedListing]
    analysis: SearchAnalysis
    recommendations: List[Recommendation] = field(default_factory=list)
    search_context: Optional[SearchContext] = None
