"""
Runs every platform collector concurrently and merges their results.
"""
import asyncio
import logging
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence

from .collector import PlatformCollector
from .models import RawListing, SearchFilters

logger = logging.getLogger(__name__)


def platform_distribution(listings: Sequence[RawListing]) -> Dict[str, int]:
    """Count listings per platform, in order of first appearance."""
    counts: Dict[str, int] = OrderedDict()
    for listing in listings:
        counts[listing.platform] = counts.get(listing.platform, 0) + 1
    return counts


class CollectionOrchestrator:
    def __init__(self, collectors: Sequence[PlatformCollector], platform_timeout_s: float = 180.0):
        self.collectors = list(collectors)
        self.platform_timeout_s = platform_timeout_s

    @property
    def platform_names(self) -> List[str]:
        return [c.name for c in self.collectors]

    async def collect_all(
        self,
        filters: SearchFilters,
        enhanced_filters: Optional[SearchFilters] = None,
    ) -> List[RawListing]:
        """
        Join all collectors and flatten their output in platform order.

        ``enhanced_filters`` (oracle-completed brand/model/year and suggested
        price bounds) are what the collectors search with when given.
        """
        search_filters = enhanced_filters or filters
        logger.info(f"Starting search across {len(self.collectors)} platforms: {', '.join(self.platform_names)}")

        per_platform = await asyncio.gather(*(self._run_one(c, search_filters) for c in self.collectors))

        results: List[RawListing] = []
        for collector, listings in zip(self.collectors, per_platform):
            logger.info(f"{collector.name}: {len(listings)} results")
            results.extend(listings)

        logger.info(f"Total results found: {len(results)} {dict(platform_distribution(results))}")
        return results

    async def _run_one(self, collector: PlatformCollector, filters: SearchFilters) -> List[RawListing]:
        try:
            return await asyncio.wait_for(collector.collect(filters), timeout=self.platform_timeout_s)
        except asyncio.TimeoutError:
            logger.warning(f"{collector.name}: exceeded {self.platform_timeout_s}s budget, using sample data")
            return collector.fallback(filters)
        except Exception:
            logger.exception(f"{collector.name}: collector failed")
            return []
