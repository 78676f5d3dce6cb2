"""
Pydantic models for API request/response serialization.

Wire names are camelCase; Python attributes stay snake_case.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from carscout.models import SearchFilters


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class SearchRequest(CamelModel):
    """Search filters. Range and consistency checks happen in ``SearchFilters.validate``."""
    model: str = ""
    brand: Optional[str] = None
    year: Optional[int] = None
    color: Optional[str] = None
    location: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None

    @field_validator("model", mode="before")
    @classmethod
    def none_model_to_blank(cls, v):
        return "" if v is None else v

    @field_validator("brand", "color", "location", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("year", "min_price", "max_price", mode="before")
    @classmethod
    def empty_number_to_none(cls, v):
        # Form clients send "" or 0 for unset numeric fields
        if v in ("", 0):
            return None
        return v

    def to_filters(self) -> SearchFilters:
        return SearchFilters(
            model=self.model,
            brand=self.brand,
            year=self.year,
            color=self.color,
            location=self.location,
            min_price=self.min_price,
            max_price=self.max_price,
        )


class SpecsOut(CamelModel):
    year: Optional[int] = None
    color: Optional[str] = None
    location: Optional[str] = None
    mileage_km: Optional[int] = None
    transmission: Optional[str] = None
    fuel_type: Optional[str] = None


class ExtractionOut(CamelModel):
    strategy_name: str
    confidence: str
    page_number: int = 1


class AIInsightsOut(CamelModel):
    recommended: bool = False
    suspicious: bool = False
    market_analysis: Optional[str] = None
    price_score: Optional[int] = None


class ListingOut(CamelModel):
    """Output model for a ranked listing."""
    platform: str
    title: str
    price_text: str
    price_value: float = 0.0
    link: str
    image_url: Optional[str] = None
    specs: SpecsOut
    extraction: ExtractionOut
    synthetic: bool = False
    match_score: Optional[float] = None
    matched_term: Optional[str] = None
    semantic_score: Optional[float] = None
    price_flag: Optional[str] = None
    ai_insights: AIInsightsOut
    rank_score: Optional[float] = None
    score_breakdown: Dict[str, float] = {}


class PricePredictionOut(CamelModel):
    min_price: float
    max_price: float
    average_price: float
    confidence: str = "low"
    factors: List[str] = []
    recommendation: Optional[str] = None


class StandardizedQueryOut(CamelModel):
    original: str
    brand: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None


class SearchEnhancementOut(CamelModel):
    standardized: StandardizedQueryOut
    alternatives: List[str] = []
    search_terms: List[str] = []
    source: str = "fallback"


class AnalysisOut(CamelModel):
    total_found: int
    after_filtering: int
    price_prediction: Optional[PricePredictionOut] = None
    search_enhancement: Optional[SearchEnhancementOut] = None


class RecommendationOut(CamelModel):
    car_index: int
    title: str
    reason: str
    pros: List[str] = []
    cons: List[str] = []
    score: int = 0


class MetadataOut(CamelModel):
    processing_time: int
    timestamp: str
    ai_enhanced: bool
    confidence: str = "low"


class SearchResponseOut(CamelModel):
    success: bool = True
    data: List[ListingOut]
    analysis: AnalysisOut
    recommendations: List[RecommendationOut] = []
    metadata: MetadataOut


class PriceRangeOut(CamelModel):
    min: float
    max: float
    average: float


class InsightsOut(CamelModel):
    market_size: int
    price_range: Optional[PriceRangeOut] = None
    platform_distribution: Dict[str, int]
    recommendations: List[str] = []
    price_prediction: Optional[PricePredictionOut] = None


class InsightsResponseOut(CamelModel):
    success: bool = True
    insights: Optional[InsightsOut] = None
    timestamp: str
