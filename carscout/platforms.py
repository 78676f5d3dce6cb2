"""
Per-platform configuration: base URL, selector strategies and URL builder.

Collectors are generic; everything that differs between marketplaces lives
in a ``PlatformConfig`` entry.
"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlencode

from .extraction import GENERIC_STRATEGY, SelectorStrategy
from .models import SearchFilters


def _slug(text: str) -> str:
    return "-".join(text.lower().split())


def _price_param(value: Optional[float]) -> Optional[str]:
    return str(int(value)) if value else None


def _with_query(url: str, params: List[Tuple[str, Optional[str]]]) -> str:
    pairs = [(k, v) for k, v in params if v not in (None, "")]
    return f"{url}?{urlencode(pairs)}" if pairs else url


@dataclass(frozen=True)
class PlatformConfig:
    name: str
    base_url: str
    strategies: Tuple[SelectorStrategy, ...]
    build_url: Callable[["PlatformConfig", SearchFilters, int], str]
    max_pages: int = 1
    max_results_per_page: int = 15
    ready_selectors: Tuple[str, ...] = ()
    default_location: Optional[str] = "Dhaka"
    sample_count: Tuple[int, int] = (3, 5)

    def search_url(self, filters: SearchFilters, page: int = 1) -> str:
        return self.build_url(self, filters, page)


def bikroy_url(platform: PlatformConfig, filters: SearchFilters, page: int = 1) -> str:
    url = f"{platform.base_url}/en/ads/bangladesh/cars"
    if filters.brand and filters.model:
        url += f"/{_slug(filters.brand)}/{_slug(filters.model)}"
    elif filters.brand:
        url += f"/{_slug(filters.brand)}"

    params: List[Tuple[str, Optional[str]]] = []
    if page > 1:
        params.append(("page", str(page)))
    params += [("sort", "date"), ("order", "desc"), ("buy_now", "0"), ("urgent", "0")]
    if filters.brand:
        brand = filters.brand.lower()
        model = (filters.model or "").lower()
        params.append(("tree.brand", f"{brand}_{brand}-{model}"))
    if filters.location and filters.location.lower() != "dhaka":
        params.append(("location", filters.location))
    params.append(("min_price", _price_param(filters.min_price)))
    params.append(("max_price", _price_param(filters.max_price)))
    if filters.year:
        params += [("year_min", str(filters.year)), ("year_max", str(filters.year))]
    return _with_query(url, params)


def carmudi_url(platform: PlatformConfig, filters: SearchFilters, page: int = 1) -> str:
    params = [
        ("make", filters.brand.lower() if filters.brand else None),
        ("model", filters.model.lower() if filters.model else None),
        ("year_from", str(filters.year) if filters.year else None),
        ("price_from", _price_param(filters.min_price)),
        ("price_to", _price_param(filters.max_price)),
        ("page", str(page) if page > 1 else None),
    ]
    return _with_query(f"{platform.base_url}/cars", params)


def olx_url(platform: PlatformConfig, filters: SearchFilters, page: int = 1) -> str:
    query = filters.query_text
    params = [("q", query or None), ("page", str(page) if page > 1 else None)]
    return _with_query(f"{platform.base_url}/cars_c84", params)


def cardekho_url(platform: PlatformConfig, filters: SearchFilters, page: int = 1) -> str:
    params = [
        ("make", filters.brand.lower() if filters.brand else None),
        ("model", filters.model.lower() if filters.model else None),
        ("city", filters.location.lower() if filters.location else None),
        ("page", str(page) if page > 1 else None),
    ]
    return _with_query(f"{platform.base_url}/used-cars", params)


BIKROY = PlatformConfig(
    name="Bikroy",
    base_url="https://bikroy.com",
    strategies=(
        SelectorStrategy(
            name="Modern Bikroy",
            container=('[data-testid="ad-card"]', ".gtm-ad-item", ".normal-ad", ".list-item"),
            title=('[data-testid="ad-title"] a', ".add-title a", ".title--3yncE a", "h2 a", ".ad-title a"),
            price=('[data-testid="ad-price"]', ".price--3SnqI", ".tk--1fmBz", ".price", ".ad-price"),
            link=('a[href*="/ad/"]',),
            image=('img[src*="bikroy"]', 'img[data-src*="bikroy"]', 'img[src*="cloudfront"]', "img"),
            location=('[data-testid="ad-location"]', ".location--2Xivr", ".location", ".ad-location"),
        ),
        SelectorStrategy(
            name="Alternative Layout",
            container=(".ad-card", ".listing-card", ".card", ".item-card"),
            title=(".ad-title a", ".title a", "h3 a", "h2 a", ".item-title a"),
            price=(".price", ".amount", ".tk", ".cost", ".ad-price"),
            link=("a",),
            image=("img",),
            location=(".location", ".area", ".city", ".ad-location"),
        ),
        GENERIC_STRATEGY,
    ),
    build_url=bikroy_url,
    max_pages=4,
    max_results_per_page=30,
    ready_selectors=(
        ".results-info-selector", '[data-testid="ad-card"]', ".ad-card", ".listing-card",
        ".gtm-ad-item", ".card-list-wrapper", ".normal-ad", ".list-item",
    ),
    sample_count=(12, 20),
)

CARMUDI = PlatformConfig(
    name="Carmudi",
    base_url="https://www.carmudi.com.bd",
    strategies=(
        SelectorStrategy(
            name="Carmudi Listing",
            container=(".listing-item", ".car-item", ".vehicle-card", ".product-card", ".car-card"),
            title=(".title", ".car-title", "h3 a", "h2 a", ".name"),
            price=(".price", ".car-price", ".amount", ".cost"),
            link=("a",),
            image=("img",),
            location=(".location", ".car-location"),
        ),
    ),
    build_url=carmudi_url,
    ready_selectors=(".listing-item", ".car-item", ".vehicle-card"),
)

OLX = PlatformConfig(
    name="OLX",
    base_url="https://www.olx.com.bd",
    strategies=(
        SelectorStrategy(
            name="OLX Item Box",
            container=('[data-aut-id="itemBox"]', ".listing-card", "._2gr4", ".item-card", ".ad-card"),
            title=('[data-aut-id="itemTitle"]', ".title", "h3 a", "h2"),
            price=('[data-aut-id="itemPrice"]', ".price", "._1zgtX", ".amount"),
            link=("a",),
            image=("img",),
            location=('[data-aut-id="item-location"]', ".location"),
        ),
    ),
    build_url=olx_url,
    ready_selectors=('[data-aut-id="itemBox"]', ".listing-card"),
)

CARDEKHO = PlatformConfig(
    name="CarDekho",
    base_url="https://www.cardekho.com",
    strategies=(
        SelectorStrategy(
            name="CarDekho Used Car",
            container=(".gsc_col_1", ".used-car-item", ".car-info", ".car-card", ".vehicle-item"),
            title=(".car-name", ".title", "h3 a", "h2 a", ".name"),
            price=(".price", ".car-price", ".amount", ".cost"),
            link=("a",),
            image=("img",),
            location=(".location", ".city"),
        ),
    ),
    build_url=cardekho_url,
    ready_selectors=(".gsc_col_1", ".used-car-item"),
)

PLATFORMS: Dict[str, PlatformConfig] = {p.name: p for p in (BIKROY, CARMUDI, OLX, CARDEKHO)}


def get_platforms(names: Sequence[str]) -> List[PlatformConfig]:
    """Look up platforms by name (case-insensitive), keeping the given order."""
    by_lower = {k.lower(): v for k, v in PLATFORMS.items()}
    missing = [n for n in names if n.lower() not in by_lower]
    if missing:
        raise ValueError(f"Unknown platforms: {', '.join(missing)}")
    return [by_lower[n.lower()] for n in names]
