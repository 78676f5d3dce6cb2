"""
Tests for concurrent collection and failure isolation.
"""
import asyncio

from carscout.models import RawListing, SearchFilters
from carscout.orchestrator import CollectionOrchestrator, platform_distribution

FILTERS = SearchFilters(model="Corolla", brand="Toyota")


def listing(platform, n):
    return RawListing(platform=platform, title=f"Toyota Corolla {n}", price_text="Tk 1,000,000", link=f"{platform}/{n}")


class StubCollector:
    def __init__(self, name, count=2, delay=0.0, error=None):
        self.name = name
        self.count = count
        self.delay = delay
        self.error = error
        self.seen_filters = None

    async def collect(self, filters):
        self.seen_filters = filters
        await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return [listing(self.name, i) for i in range(self.count)]

    def fallback(self, filters):
        return [listing(self.name, "sample")]


def test_results_flattened_in_platform_order():
    """The slow first platform still comes first."""
    collectors = [StubCollector("Bikroy", delay=0.05), StubCollector("OLX", count=1)]
    results = asyncio.run(CollectionOrchestrator(collectors).collect_all(FILTERS))

    assert [r.platform for r in results] == ["Bikroy", "Bikroy", "OLX"]


def test_failing_platform_does_not_affect_others():
    collectors = [
        StubCollector("Bikroy"),
        StubCollector("Carmudi", error=RuntimeError("boom")),
        StubCollector("OLX", count=3),
    ]
    results = asyncio.run(CollectionOrchestrator(collectors).collect_all(FILTERS))

    assert platform_distribution(results) == {"Bikroy": 2, "OLX": 3}


def test_all_platforms_failing_is_an_empty_result():
    collectors = [StubCollector("Bikroy", error=ValueError("x")), StubCollector("OLX", error=KeyError("y"))]
    assert asyncio.run(CollectionOrchestrator(collectors).collect_all(FILTERS)) == []


def test_platform_over_budget_uses_fallback():
    collectors = [StubCollector("Bikroy", delay=5), StubCollector("OLX", count=1)]
    orchestrator = CollectionOrchestrator(collectors, platform_timeout_s=0.05)
    results = asyncio.run(orchestrator.collect_all(FILTERS))

    assert [r.link for r in results] == ["Bikroy/sample", "OLX/0"]


def test_enhanced_filters_are_passed_to_collectors():
    collector = StubCollector("Bikroy")
    enhanced = SearchFilters(model="Corolla", brand="Toyota", suggested_min_price=1e6, suggested_max_price=2e6)
    asyncio.run(CollectionOrchestrator([collector]).collect_all(FILTERS, enhanced))

    assert collector.seen_filters is enhanced


def test_platform_distribution_counts():
    results = [listing("OLX", 1), listing("Bikroy", 1), listing("OLX", 2)]
    assert list(platform_distribution(results).items()) == [("OLX", 2), ("Bikroy", 1)]
