"""
Per-platform collection: pagination, extraction, dedup and sample fallback.
"""
import asyncio
import logging
import random
from typing import Awaitable, Callable, List, Optional

from .config import Settings, settings as default_settings
from .extraction import extract
from .fetcher import PageFetcher, playwright_session_factory
from .models import RawListing, SearchFilters
from .platforms import PlatformConfig
from .samples import generate_sample_listings
from .utils import digits_only, normalize_title

logger = logging.getLogger(__name__)


def listing_key(listing: RawListing) -> str:
    return f"{normalize_title(listing.title)}-{digits_only(listing.price_text)}"


def dedupe_within_platform(listings: List[RawListing]) -> List[RawListing]:
    """Drop repeats by normalized title + digits of price, keeping the first."""
    seen = set()
    unique = []
    for listing in listings:
        key = listing_key(listing)
        if key in seen:
            continue
        seen.add(key)
        unique.append(listing)
    return unique


class PlatformCollector:
    """
    Collects listings from one marketplace.

    ``collect`` never raises: fetch errors skip a page, and an empty final
    set is replaced by synthetic sample data. Only a failure to open the
    fetch session makes the platform contribute nothing.
    """

    def __init__(
        self,
        platform: PlatformConfig,
        fetcher_factory: Optional[Callable] = None,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.platform = platform
        self.settings = settings or default_settings
        self.fetcher_factory = fetcher_factory or playwright_session_factory(self.settings.headless)
        self.rng = rng or random.Random()
        self._sleep = sleep

    @property
    def name(self) -> str:
        return self.platform.name

    @property
    def max_results_per_page(self) -> int:
        return min(self.platform.max_results_per_page, self.settings.max_results_per_page)

    async def collect(self, filters: SearchFilters) -> List[RawListing]:
        logger.info(f"{self.name}: starting search for {filters.query_text}")
        try:
            async with self.fetcher_factory(self.platform) as fetcher:
                scraped = await self._collect_pages(fetcher, filters)
        except Exception:
            logger.exception(f"{self.name}: fetch session failed, contributing no results")
            return []

        unique = dedupe_within_platform(scraped)
        if not unique:
            logger.warning(f"{self.name}: no results found from scraping, returning sample data")
            return self.fallback(filters)

        logger.info(f"{self.name}: collected {len(unique)} unique listings ({len(scraped)} before dedup)")
        return unique

    def fallback(self, filters: SearchFilters) -> List[RawListing]:
        return generate_sample_listings(
            platform=self.name,
            base_url=self.platform.base_url,
            filters=filters,
            rng=self.rng,
            count_range=self.platform.sample_count,
        )

    async def _collect_pages(self, fetcher: PageFetcher, filters: SearchFilters) -> List[RawListing]:
        results: List[RawListing] = []
        timeout_ms = self.settings.fetch_timeout_ms
        max_pages = self.platform.max_pages

        for page in range(1, max_pages + 1):
            url = self.platform.search_url(filters, page)
            logger.info(f">>> {self.name}: scraping page {page}: {url}")

            try:
                # Guard against fetchers that overrun their own timeout budget
                html = await asyncio.wait_for(fetcher.fetch(url, timeout_ms=timeout_ms), timeout=timeout_ms / 1000 + 5)
                page_results = extract(
                    html,
                    self.platform.strategies,
                    platform=self.name,
                    base_url=self.platform.base_url,
                    page_number=page,
                    max_results=self.max_results_per_page,
                    default_location=self.platform.default_location,
                )
            except Exception as e:
                logger.error(f"{self.name}: error on page {page}: {e!r}")
                continue

            if not page_results:
                logger.info(f"{self.name}: no results on page {page}, stopping pagination")
                break

            results.extend(page_results)
            logger.info(f"{self.name}: page {page} - found {len(page_results)} listings (total: {len(results)})")

            if page < max_pages:
                await self._sleep(self.rng.uniform(*self.settings.page_delay_range))

        return results
