"""
Top-level search pipeline.

filters -> oracle context -> concurrent collection -> matching and ranking
-> response. Dependencies point one way: the service drives collectors, the
oracle and the engine; none of them call back into it.
"""
import asyncio
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from .collector import PlatformCollector
from .config import Settings, settings as default_settings
from .fetcher import playwright_session_factory
from .insights import summarize
from .matching import MatchingEngine
from .models import (
    AggregateInsights,
    SearchAnalysis,
    SearchContext,
    SearchFilters,
    SearchResponse,
)
from .oracle import QueryOracle
from .orchestrator import CollectionOrchestrator
from .platforms import get_platforms

logger = logging.getLogger(__name__)


AI_FEATURES = ("queryEnhancement", "pricePrediction", "anomalyDetection", "recommendations")


def enhance_filters(filters: SearchFilters, context: SearchContext) -> SearchFilters:
    """
    Fill blank brand/model/year from the standardized query and, when the
    user set no price bounds, carry the prediction as suggested bounds.
    """
    std = context.standardized
    updates: Dict[str, Any] = {}
    if not filters.brand and std.brand:
        updates["brand"] = std.brand
    if not filters.model and std.model:
        updates["model"] = std.model
    if not filters.year and std.year:
        updates["year"] = std.year

    prediction = context.price_prediction
    if prediction and filters.min_price is None and filters.max_price is None:
        updates["suggested_min_price"] = prediction.min_price
        updates["suggested_max_price"] = prediction.max_price

    return replace(filters, **updates) if updates else filters


class SearchService:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        oracle: Optional[QueryOracle] = None,
        orchestrator: Optional[CollectionOrchestrator] = None,
        engine: Optional[MatchingEngine] = None,
        fetcher_factory: Optional[Callable] = None,
    ):
        self.settings = settings or default_settings
        self.oracle = oracle or QueryOracle(self.settings)

        if orchestrator is None:
            factory = fetcher_factory or playwright_session_factory(self.settings.headless)
            collectors = [
                PlatformCollector(p, factory, self.settings)
                for p in get_platforms(self.settings.enabled_platforms)
            ]
            orchestrator = CollectionOrchestrator(collectors, self.settings.platform_timeout_s)
        self.orchestrator = orchestrator
        self.engine = engine or MatchingEngine(self.oracle, self.settings.platform_trust)

    async def build_context(self, filters: SearchFilters) -> SearchContext:
        enhancement, prediction = await asyncio.gather(
            self.oracle.enhance_query(filters.model),
            self.oracle.predict_price_range(filters),
        )
        return SearchContext(enhancement=enhancement, price_prediction=prediction)

    async def search(self, filters: SearchFilters) -> SearchResponse:
        """Run one search. Raises ``InvalidFiltersError`` before any network work."""
        filters = filters.validate()
        logger.info(f"Search request: {filters.to_dict()}")

        context = await self.build_context(filters)
        enhanced = enhance_filters(filters, context)

        raw = await self.orchestrator.collect_all(filters, enhanced)
        matched = await self.engine.process(raw, filters, context)

        logger.info(
            f"Search complete: {len(raw)} found, {len(matched.results)} after filtering "
            f"(context confidence: {context.confidence})"
        )
        return SearchResponse(
            results=matched.results,
            analysis=SearchAnalysis(
                total_found=len(raw),
                after_filtering=len(matched.results),
                price_prediction=context.price_prediction,
                search_enhancement=context.enhancement,
            ),
            recommendations=matched.recommendations,
            search_context=context,
        )

    async def market_insights(self, filters: SearchFilters) -> Optional[AggregateInsights]:
        response = await self.search(filters)
        return summarize(
            response.results,
            response.recommendations,
            response.analysis.price_prediction,
        )

    def supported_platforms(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": c.name,
                "baseUrl": c.platform.base_url,
                "maxPages": c.platform.max_pages,
                "trust": self.settings.platform_trust.get(c.name, 5),
                "aiEnhanced": self.oracle.enabled,
            }
            for c in self.orchestrator.collectors
        ]

    def status(self) -> Dict[str, Any]:
        return {
            "totalAgents": len(self.orchestrator.collectors),
            "platforms": [c.name for c in self.orchestrator.collectors],
            "aiEnabled": self.oracle.enabled,
            "aiFeatures": {name: self.oracle.enabled for name in AI_FEATURES},
            "status": "active",
        }


async def run_search(filters: SearchFilters, settings: Optional[Settings] = None) -> SearchResponse:
    """Convenience entry point: build a default service and run one search."""
    return await SearchService(settings).search(filters)
