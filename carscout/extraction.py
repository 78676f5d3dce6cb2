"""
Listing extraction from a materialized page snapshot.

Extraction is a pure function of page HTML: the fetch layer hands over
``page.content()`` and everything here runs on BeautifulSoup, so it can be
tested without a browser.
"""
import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from .models import ExtractionMeta, ListingSpecs, RawListing
from .utils import (
    clean_text,
    extract_color,
    extract_fuel,
    extract_mileage_km,
    extract_numeric_price,
    extract_transmission,
    extract_year,
)

logger = logging.getLogger(__name__)


MAX_RESULTS_PER_PAGE = 30
MIN_TITLE_LENGTH = 5
MIN_PRICE_VALUE = 10_000
HEURISTIC_TEXT_RANGE = (50, 1000)

CONFIDENCE_ORDER = {"none": 0, "low": 1, "medium": 2, "high": 3}

CAR_KEYWORDS = [
    "toyota", "honda", "suzuki", "nissan", "mitsubishi", "hyundai",
    "bmw", "mercedes", "audi", "ford", "mazda", "corolla", "civic",
    "swift", "vitz", "axio", "allion", "premio", "car", "vehicle",
    "sedan", "hatchback", "suv", "jeep", "auto", "manual",
]

# Brand and model names only; generic words like "car" are too noisy here.
_TITLE_KEYWORDS = CAR_KEYWORDS[:18]

_HEURISTIC_CAR_WORDS = ["car", "vehicle"] + _TITLE_KEYWORDS
_HEURISTIC_PRICE_WORDS = ["tk", "৳", "lakh", "lac", "crore", "bdt", "₹", "rs."]

_YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")
_MODEL_WORD_RE = re.compile(r"\b(model|edition|version)\b", re.I)
_PRICE_TOKEN_RE = re.compile(r"৳|\btk|lakh|crore|bdt", re.I)

# (pattern, name, confidence); the first pattern with a plausible match wins.
PRICE_PATTERNS = [
    (re.compile(r"৳\s*[\d,]+(?:\.\d+)?(?:\s*(?:lakh|lac|crore))?", re.I), "Bengali Taka", "medium"),
    (re.compile(r"Tk\.?\s*[\d,]+(?:\.\d+)?(?:\s*(?:lakh|lac|crore))?", re.I), "Tk format", "medium"),
    (re.compile(r"\d+(?:\.\d+)?\s*(?:lakh|lac|crore)", re.I), "Lakh/Crore", "medium"),
    (re.compile(r"[\d,]+\s*৳", re.I), "Number + Taka", "medium"),
    (re.compile(r"BDT\s*[\d,]+", re.I), "BDT format", "medium"),
    (re.compile(r"(?:₹|Rs\.?)\s*[\d,]+(?:\.\d+)?(?:\s*(?:lakh|lac|crore))?", re.I), "Rupee format", "medium"),
    (re.compile(r"\b\d{5,}\b"), "Large number fallback", "low"),
]

IMAGE_ATTRIBUTES = ["src", "data-src", "data-lazy-src", "data-original", "data-srcset"]


@dataclass(frozen=True)
class SelectorStrategy:
    """Ordered CSS selector lists for one page layout."""

    name: str
    container: Tuple[str, ...]
    title: Tuple[str, ...]
    price: Tuple[str, ...]
    link: Tuple[str, ...] = ("a[href]",)
    image: Tuple[str, ...] = ("img",)
    location: Tuple[str, ...] = ()


GENERIC_STRATEGY = SelectorStrategy(
    name="Generic Fallback",
    container=(
        'div[class*="ad"]', 'div[class*="card"]', 'div[class*="listing"]', 'div[class*="item"]',
    ),
    title=("a[title]", "h1 a", "h2 a", "h3 a", "h4 a", ".title a"),
    price=('*[class*="price"]', '*[class*="tk"]', '*[class*="amount"]', '*[class*="cost"]'),
    link=("a[href]",),
    image=("img",),
    location=('*[class*="location"]', '*[class*="area"]', '*[class*="city"]'),
)

HEURISTIC_STRATEGY = SelectorStrategy(
    name="Heuristic Text Scan",
    container=(),
    title=GENERIC_STRATEGY.title,
    price=GENERIC_STRATEGY.price,
    link=GENERIC_STRATEGY.link,
    image=GENERIC_STRATEGY.image,
    location=GENERIC_STRATEGY.location,
)


def _select_one(element: Tag, selectors: Iterable[str]) -> Optional[Tag]:
    """Return the first hit, trying selectors in priority order."""
    for sel in selectors:
        try:
            found = element.select_one(sel)
        except SelectorSyntaxError:
            logger.debug(f"Invalid selector skipped: {sel}")
            continue
        if found is not None:
            return found
    return None


def _text(element: Optional[Tag]) -> str:
    if element is None:
        return ""
    return clean_text(element.get_text(" ", strip=True))


def locate_containers(soup: BeautifulSoup, strategies: Sequence[SelectorStrategy]) -> Tuple[List[Tag], Optional[SelectorStrategy]]:
    """Find listing containers with the first strategy that matches anything."""
    for strategy in strategies:
        for sel in strategy.container:
            try:
                elements = soup.select(sel)
            except SelectorSyntaxError:
                logger.debug(f"Invalid container selector skipped: {sel}")
                continue
            if elements:
                logger.debug(f"Strategy '{strategy.name}' matched {len(elements)} containers via {sel}")
                return elements, strategy
    return [], None


def heuristic_candidates(soup: BeautifulSoup) -> List[Tag]:
    """Block elements mentioning a car keyword and a price token."""
    lo, hi = HEURISTIC_TEXT_RANGE
    found = []
    for el in soup.find_all(["div", "article", "li", "section"]):
        text = el.get_text(" ", strip=True)
        if not lo <= len(text) <= hi:
            continue
        lowered = text.lower()
        if not any(w in lowered for w in _HEURISTIC_CAR_WORDS):
            continue
        if not any(w in lowered for w in _HEURISTIC_PRICE_WORDS):
            continue
        found.append(el)
    return found


def extract_title(element: Tag, selectors: Sequence[str]) -> Tuple[Optional[str], str]:
    """Return (title, confidence)."""
    for sel in selectors:
        try:
            node = element.select_one(sel)
        except SelectorSyntaxError:
            continue
        text = _text(node)
        if len(text) >= MIN_TITLE_LENGTH:
            return text, "high"

    for heading in element.select("h1, h2, h3, h4, h5, h6, .title, .ad-title"):
        text = _text(heading)
        if 10 < len(text) < 150:
            return text, "medium"

    for link in element.find_all("a"):
        text = _text(link)
        if 15 < len(text) < 100 and any(k in text.lower() for k in _TITLE_KEYWORDS):
            return text, "low"

    return None, "none"


def extract_price(element: Tag, selectors: Sequence[str]) -> Tuple[Optional[str], str]:
    """Return (price text, confidence)."""
    for sel in selectors:
        try:
            node = element.select_one(sel)
        except SelectorSyntaxError:
            continue
        text = _text(node)
        if re.search(r"\d", text):
            return text, "high"

    full_text = _text(element)
    for pattern, name, confidence in PRICE_PATTERNS:
        candidates = [
            (extract_numeric_price(m.group(0)), clean_text(m.group(0)))
            for m in pattern.finditer(full_text)
        ]
        candidates = [c for c in candidates if c[0] > MIN_PRICE_VALUE]
        if candidates:
            # Real prices dominate stray numbers such as mileage or phone fragments.
            best = max(candidates, key=lambda c: c[0])
            logger.debug(f"Price via pattern '{name}': {best[1]}")
            return best[1], confidence

    return None, "none"


def is_car_listing(title: str, full_text: str) -> bool:
    """True when the text names a car and carries a year, price or model word."""
    title_lower = (title or "").lower()
    text_lower = (full_text or "").lower()

    has_keyword = any(k in title_lower or k in text_lower for k in CAR_KEYWORDS)
    if not has_keyword:
        return False

    has_year = bool(_YEAR_RE.search(title or ""))
    has_model_word = bool(_MODEL_WORD_RE.search(full_text or ""))
    has_price_token = bool(_PRICE_TOKEN_RE.search(full_text or ""))
    return has_year or has_model_word or has_price_token


def extract_image_url(element: Optional[Tag]) -> Optional[str]:
    if element is None:
        return None
    for attr in IMAGE_ATTRIBUTES:
        src = element.get(attr)
        if not src:
            continue
        src = src.split(",")[0].split(" ")[0] if attr == "data-srcset" else src
        if src.startswith("//"):
            return f"https:{src}"
        if src.startswith("http"):
            return src
    return None


def build_link(href: Optional[str], base_url: str) -> str:
    if not href:
        return base_url
    return urljoin(base_url + "/", href)


def _weakest(*tags: str) -> str:
    return min(tags, key=lambda t: CONFIDENCE_ORDER.get(t, 0))


def parse_element(
    element: Tag,
    strategy: SelectorStrategy,
    platform: str,
    base_url: str,
    page_number: int,
    default_location: Optional[str] = None,
) -> Optional[RawListing]:
    """Turn one container element into a listing, or None if it is not one."""
    title, title_conf = extract_title(element, strategy.title)
    if not title or len(title) < MIN_TITLE_LENGTH:
        return None

    price_text, price_conf = extract_price(element, strategy.price)
    if not price_text:
        return None

    full_text = _text(element)
    if not is_car_listing(title, full_text):
        return None

    link_el = _select_one(element, strategy.link) or element.find("a", href=True)
    image_el = _select_one(element, strategy.image)
    location_el = _select_one(element, strategy.location) if strategy.location else None

    specs = ListingSpecs(
        year=extract_year(title),
        color=extract_color(title),
        location=_text(location_el) or default_location,
        mileage_km=extract_mileage_km(full_text),
        transmission=extract_transmission(full_text),
        fuel_type=extract_fuel(full_text),
    )

    return RawListing(
        platform=platform,
        title=title,
        price_text=price_text,
        link=build_link(link_el.get("href") if link_el else None, base_url),
        image_url=extract_image_url(image_el),
        specs=specs,
        extraction=ExtractionMeta(
            strategy_name=strategy.name,
            confidence=_weakest(title_conf, price_conf),
            page_number=page_number,
            field_confidence={"title": title_conf, "price": price_conf},
        ),
    )


def extract(
    html: str,
    strategies: Sequence[SelectorStrategy],
    platform: str,
    base_url: str,
    page_number: int = 1,
    max_results: int = MAX_RESULTS_PER_PAGE,
    default_location: Optional[str] = None,
) -> List[RawListing]:
    """
    Extract listings from one page of HTML.

    The first strategy whose container selector matches is used for the whole
    page. When none match, a keyword/price heuristic scan picks candidate
    blocks instead.
    """
    if not html:
        return []

    soup = BeautifulSoup(html, "html.parser")
    elements, strategy = locate_containers(soup, strategies)
    if not elements:
        elements = heuristic_candidates(soup)
        strategy = HEURISTIC_STRATEGY
        logger.debug(f"{platform}: no containers matched, heuristic scan found {len(elements)} blocks")

    listings: List[RawListing] = []
    for index, element in enumerate(elements):
        if len(listings) >= max_results:
            break
        try:
            listing = parse_element(element, strategy, platform, base_url, page_number, default_location)
        except Exception as e:
            logger.debug(f"{platform}: error parsing element {index + 1}: {e}")
            continue
        if listing is not None:
            listings.append(listing)

    logger.debug(f"{platform}: page {page_number} extracted {len(listings)} listings with '{strategy.name}'")
    return listings
