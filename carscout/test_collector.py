"""
Tests for the platform collector with an in-memory page fetcher.
"""
import asyncio
import logging
import random
import re
import time

from playwright.async_api import TimeoutError as PlaywrightTimeout

from carscout.collector import PlatformCollector, dedupe_within_platform
from carscout.config import Settings
from carscout.fetcher import FetchError, PlaywrightFetcher
from carscout.models import RawListing, SearchFilters
from carscout.platforms import BIKROY, CARMUDI
from carscout.samples import SAMPLE_STRATEGY

FILTERS = SearchFilters(model="Corolla", brand="Toyota")


def card(i, title=None, price="Tk 1,190,000"):
    title = title or f"Toyota Corolla {2001 + i} G"
    return f"""
    <li data-testid="ad-card">
      <div data-testid="ad-title"><a href="/en/ad/car-{i}">{title}</a></div>
      <div data-testid="ad-price">{price}</div>
    </li>"""


def page(*cards):
    return f"<html><body><ul>{''.join(cards)}</ul></body></html>"


class FakeFetcher:
    """Returns queued pages in order; queued exceptions are raised."""

    def __init__(self, pages):
        self.pages = list(pages)
        self.urls = []
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.closed = True

    async def fetch(self, url, timeout_ms=30_000):
        self.urls.append(url)
        item = self.pages.pop(0) if self.pages else ""
        if isinstance(item, Exception):
            raise item
        return item


class BrokenSession:
    async def __aenter__(self):
        raise RuntimeError("browser failed to launch")

    async def __aexit__(self, exc_type, exc, tb):
        return None


def make_collector(platform, fetcher):
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    collector = PlatformCollector(
        platform,
        fetcher_factory=lambda p: fetcher,
        settings=Settings(),
        rng=random.Random(42),
        sleep=fake_sleep,
    )
    return collector, delays


def test_pagination_stops_on_empty_page():
    fetcher = FakeFetcher([page(card(1), card(2)), page(card(3)), page()])
    collector, delays = make_collector(BIKROY, fetcher)

    listings = asyncio.run(collector.collect(FILTERS))

    assert len(listings) == 3
    assert len(fetcher.urls) == 3
    assert "page=2" in fetcher.urls[1]
    assert [l.extraction.page_number for l in listings] == [1, 1, 2]
    assert len(delays) == 2
    assert all(5.0 <= d <= 8.0 for d in delays)
    assert fetcher.closed


def test_fetch_error_skips_page_and_continues():
    fetcher = FakeFetcher([FetchError("timed out"), page(card(1)), page()])
    collector, _ = make_collector(BIKROY, fetcher)

    listings = asyncio.run(collector.collect(FILTERS))

    assert len(fetcher.urls) == 3
    assert len(listings) == 1
    assert listings[0].extraction.page_number == 2
    assert not listings[0].synthetic


def test_duplicates_across_pages_collapse():
    fetcher = FakeFetcher([
        page(card(1, title="Toyota Corolla X 2004")),
        page(card(2, title="toyota  corolla X 2004!")),
        page(),
    ])
    collector, _ = make_collector(BIKROY, fetcher)

    listings = asyncio.run(collector.collect(FILTERS))

    assert len(listings) == 1
    assert listings[0].link.endswith("/en/ad/car-1")


def test_empty_scrape_falls_back_to_sample_data():
    fetcher = FakeFetcher([page()])
    collector, _ = make_collector(CARMUDI, fetcher)

    listings = asyncio.run(collector.collect(FILTERS))

    assert len(listings) >= 3
    for listing in listings:
        assert listing.synthetic
        assert listing.platform == "Carmudi"
        assert listing.extraction.strategy_name == SAMPLE_STRATEGY
        assert listing.extraction.confidence == "low"
        assert re.fullmatch(r"\d{4}", str(listing.specs.year))
        assert listing.title.startswith("Toyota Corolla")
        assert int(re.sub(r"\D", "", listing.price_text)) > 0


def test_bikroy_fallback_sample_size():
    fetcher = FakeFetcher([])
    collector, _ = make_collector(BIKROY, fetcher)

    listings = asyncio.run(collector.collect(FILTERS))

    assert len(fetcher.urls) == 1
    assert 12 <= len(listings) <= 20


def test_session_failure_contributes_nothing():
    collector = PlatformCollector(BIKROY, fetcher_factory=lambda p: BrokenSession(), settings=Settings())
    assert asyncio.run(collector.collect(FILTERS)) == []


def test_dedupe_within_platform_keeps_first():
    a = RawListing(platform="OLX", title="Honda Civic 2018", price_text="Tk 2,500,000", link="a")
    b = RawListing(platform="OLX", title="honda civic, 2018", price_text="৳ 25,00,000", link="b")
    c = RawListing(platform="OLX", title="Honda Civic 2018", price_text="Tk 2,400,000", link="c")

    assert [x.link for x in dedupe_within_platform([a, b, c])] == ["a", "c"]


class UnreadyPage:
    """Playwright page stand-in: navigation is instant, no ready selector ever appears."""

    def __init__(self, pages):
        self.pages = list(pages)
        self.waits = []

    def is_closed(self):
        return False

    async def goto(self, url, timeout=None, wait_until=None):
        self.url = url

    async def wait_for_selector(self, selector, timeout=None):
        self.waits.append(timeout)
        await asyncio.sleep(timeout / 1000)
        raise PlaywrightTimeout(f"waiting for {selector}")

    async def content(self):
        return self.pages.pop(0) if self.pages else page()


class OfflinePlaywrightFetcher(PlaywrightFetcher):
    def __init__(self, fake_page, **kwargs):
        super().__init__(**kwargs)
        self.fake_page = fake_page

    async def __aenter__(self):
        self._context = object()
        self._page = self.fake_page
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None


def test_ready_selector_waits_share_the_fetch_budget():
    fake_page = UnreadyPage([page(card(1))])
    fetcher = OfflinePlaywrightFetcher(fake_page, ready_selectors=BIKROY.ready_selectors, settle_delay_range=(0.0, 0.0))
    fetcher_start = time.monotonic()

    async def run():
        async with fetcher:
            return await fetcher.fetch("https://bikroy.com/en/ads", timeout_ms=300)

    html = asyncio.run(run())

    assert "Toyota Corolla" in html
    assert sum(fake_page.waits) <= 300
    assert time.monotonic() - fetcher_start < 2


def test_unready_page_is_still_extracted():
    """A page without any ready selector keeps its listings and ends pagination when empty."""
    fake_page = UnreadyPage([page(card(1))])
    fetcher = OfflinePlaywrightFetcher(fake_page, ready_selectors=BIKROY.ready_selectors, settle_delay_range=(0.0, 0.0))
    collector = PlatformCollector(
        BIKROY,
        fetcher_factory=lambda p: fetcher,
        settings=Settings(fetch_timeout_ms=200, page_delay_range=(0.0, 0.0)),
        rng=random.Random(1),
    )

    listings = asyncio.run(collector.collect(FILTERS))

    assert [l.title for l in listings] == ["Toyota Corolla 2002 G"]
    assert not listings[0].synthetic


def test_page_timeout_is_logged_with_its_type(caplog):
    fetcher = FakeFetcher([asyncio.TimeoutError(), page(card(1)), page()])
    collector, _ = make_collector(BIKROY, fetcher)

    with caplog.at_level(logging.ERROR, logger="carscout.collector"):
        asyncio.run(collector.collect(FILTERS))

    assert "Bikroy: error on page 1: TimeoutError()" in caplog.text


def test_sample_prices_follow_suggested_range():
    filters = SearchFilters(model="Corolla", brand="Toyota", suggested_min_price=1_000_000, suggested_max_price=1_200_000)
    collector, _ = make_collector(CARMUDI, FakeFetcher([page()]))

    listings = asyncio.run(collector.collect(filters))

    assert listings and all(l.synthetic for l in listings)
    for listing in listings:
        assert 1_000_000 <= int(re.sub(r"\D", "", listing.price_text)) <= 1_200_000
