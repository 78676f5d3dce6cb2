"""
End-to-end pipeline tests with in-memory fetchers and a fake oracle client.
"""
import asyncio

import pytest

from carscout.collector import PlatformCollector
from carscout.config import Settings
from carscout.core import SearchService, enhance_filters
from carscout.models import (
    InvalidFiltersError,
    PricePrediction,
    QueryEnhancement,
    SearchContext,
    SearchFilters,
    StandardizedQuery,
)
from carscout.oracle import QueryOracle
from carscout.orchestrator import CollectionOrchestrator
from carscout.platforms import BIKROY, OLX
from carscout.test_oracle import FakeClient

SETTINGS = Settings(enabled_platforms=("Bikroy", "OLX"), page_delay_range=(0.0, 0.0))

BIKROY_PAGE = """
<ul>
  <li data-testid="ad-card">
    <div data-testid="ad-title"><a href="/en/ad/corolla-1">Toyota Corolla X 2004</a></div>
    <div data-testid="ad-price">Tk 1,190,000</div>
  </li>
  <li data-testid="ad-card">
    <div data-testid="ad-title"><a href="/en/ad/civic-1">Honda Civic 2020</a></div>
    <div data-testid="ad-price">Tk 2,800,000</div>
  </li>
</ul>"""

OLX_PAGE = """
<div data-aut-id="itemBox">
  <a href="/item/corolla-2"><span data-aut-id="itemTitle">Toyota Corolla G 2012 White</span></a>
  <span data-aut-id="itemPrice">৳ 16,50,000</span>
  <span data-aut-id="item-location">Gulshan, Dhaka</span>
</div>"""


class StaticFetcher:
    def __init__(self, html):
        self.html = html
        self.calls = 0

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None

    async def fetch(self, url, timeout_ms=30_000):
        self.calls += 1
        return self.html if self.calls == 1 else ""


class RecordingOrchestrator:
    def __init__(self, results=()):
        self.results = list(results)
        self.collectors = []
        self.calls = []

    async def collect_all(self, filters, enhanced_filters=None):
        self.calls.append((filters, enhanced_filters))
        return list(self.results)


def make_service(oracle=None):
    pages = {"Bikroy": BIKROY_PAGE, "OLX": OLX_PAGE}
    factory = lambda platform: StaticFetcher(pages[platform.name])
    collectors = [PlatformCollector(p, factory, SETTINGS) for p in (BIKROY, OLX)]
    return SearchService(
        SETTINGS,
        oracle=oracle or QueryOracle(SETTINGS),
        orchestrator=CollectionOrchestrator(collectors, SETTINGS.platform_timeout_s),
    )


def test_search_end_to_end():
    service = make_service()
    response = asyncio.run(service.search(SearchFilters(model="Corolla", brand="Toyota")))

    assert response.analysis.total_found == 3
    assert response.analysis.after_filtering == 2
    assert {r.platform for r in response.results} == {"Bikroy", "OLX"}
    assert all("Corolla" in r.title for r in response.results)
    assert response.results[0].rank_score >= response.results[1].rank_score
    assert response.analysis.price_prediction is None
    assert response.analysis.search_enhancement.source == "fallback"
    assert response.search_context.confidence == "low"
    assert response.recommendations == []


def test_invalid_filters_rejected_before_collection():
    orchestrator = RecordingOrchestrator()
    service = SearchService(SETTINGS, oracle=QueryOracle(SETTINGS), orchestrator=orchestrator)

    with pytest.raises(InvalidFiltersError, match="Car model is required"):
        asyncio.run(service.search(SearchFilters(model="  ")))
    with pytest.raises(InvalidFiltersError, match="Minimum price cannot be greater"):
        asyncio.run(service.search(SearchFilters(model="Corolla", min_price=5, max_price=1)))
    with pytest.raises(InvalidFiltersError, match="Invalid year"):
        asyncio.run(service.search(SearchFilters(model="Corolla", year=1950)))

    assert orchestrator.calls == []


def test_oracle_failure_means_user_bounds_only():
    """Every oracle call raises: no prediction, no range flags, user cutoffs still apply."""
    failures = [RuntimeError("oracle down")] * 4
    oracle = QueryOracle(SETTINGS, client=FakeClient(*failures))
    service = make_service(oracle)

    response = asyncio.run(service.search(SearchFilters(model="Corolla", brand="Toyota", max_price=1_500_000)))

    assert response.analysis.price_prediction is None
    assert [r.title for r in response.results] == ["Toyota Corolla X 2004"]
    assert all(r.price_flag is None for r in response.results)
    assert response.search_context.confidence == "low"


def test_enhance_filters_fills_blanks_and_suggests_prices():
    context = SearchContext(
        enhancement=QueryEnhancement(
            standardized=StandardizedQuery(original="corola 2015", brand="Toyota", model="Corolla", year=2015),
            source="oracle",
        ),
        price_prediction=PricePrediction(min_price=1_200_000, max_price=1_800_000, average_price=1_500_000),
    )
    enhanced = enhance_filters(SearchFilters(model="corola 2015"), context)

    assert enhanced.brand == "Toyota"
    assert enhanced.model == "corola 2015"
    assert enhanced.year == 2015
    assert (enhanced.suggested_min_price, enhanced.suggested_max_price) == (1_200_000, 1_800_000)
    assert enhanced.min_price is None

    bounded = enhance_filters(SearchFilters(model="Corolla", min_price=1_000_000), context)
    assert bounded.suggested_min_price is None


def test_market_insights_no_data():
    service = SearchService(SETTINGS, oracle=QueryOracle(SETTINGS), orchestrator=RecordingOrchestrator())
    assert asyncio.run(service.market_insights(SearchFilters(model="Corolla"))) is None


def test_market_insights():
    insights = asyncio.run(make_service().market_insights(SearchFilters(model="Corolla", brand="Toyota")))
    assert insights.market_size == 2
    assert insights.price_range.min == 1_190_000
    assert insights.price_range.max == 1_650_000
    assert sorted(insights.platform_distribution) == ["Bikroy", "OLX"]


def test_platforms_and_status():
    service = make_service()
    platforms = service.supported_platforms()

    assert [p["name"] for p in platforms] == ["Bikroy", "OLX"]
    assert platforms[0]["maxPages"] == 4
    assert platforms[0]["trust"] == 25
    assert platforms[1]["trust"] == 15

    status = service.status()
    assert status["totalAgents"] == 2
    assert status["aiEnabled"] is False
    assert set(status["aiFeatures"].values()) == {False}


def test_default_service_builds_enabled_collectors():
    service = SearchService(SETTINGS, fetcher_factory=lambda p: StaticFetcher(""))
    assert [c.name for c in service.orchestrator.collectors] == ["Bikroy", "OLX"]
