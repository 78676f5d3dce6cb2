"""
Matching and ranking engine.

Turns the flattened raw listings of all platforms into a filtered,
deduplicated and ranked result set. Stages run in a fixed order, each on the
previous stage's output:

    basic filter -> fuzzy match -> semantic similarity -> price filter
    -> cross-source dedup -> anomaly annotation -> ranking -> recommendations

A listing dropped by one stage is never reinstated. The text-matching stages
(fuzzy, semantic) fall back to a lenient rule instead of emptying the set;
price cutoffs are hard.
"""
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Dict, List, Mapping, Optional, Sequence

from rapidfuzz import fuzz, utils as fuzz_utils
from rapidfuzz.distance import JaroWinkler

from .config import DEFAULT_PLATFORM_TRUST
from .models import (
    EnrichedListing,
    PricePrediction,
    RawListing,
    Recommendation,
    SearchContext,
    SearchFilters,
)
from .utils import digits_only

logger = logging.getLogger(__name__)


FUZZY_THRESHOLD = 0.4
LENIENT_MATCH_SCORE = 0.5
SEMANTIC_FLOOR = 0.1
TOKEN_SIMILARITY = 0.7
DUPLICATE_SIMILARITY = 0.9
PRICE_BUFFER_RATIO = 0.5
OUTSIDE_PREDICTED_RANGE = "outside_predicted_range"
UNKNOWN_PLATFORM_TRUST = 5

_TOKEN_RE = re.compile(r"[a-z0-9]+")
_SUFFIXES = ("ing", "ed", "es", "s")


@dataclass(frozen=True)
class RankingWeights:
    match: float = 30.0
    semantic: float = 20.0
    price: float = 20.0
    recommended_bonus: float = 15.0
    suspicious_penalty: float = 10.0
    synthetic_penalty: float = 10.0
    completeness: Mapping[str, float] = field(default_factory=lambda: {
        "image": 5, "year": 3, "color": 2, "location": 2, "mileage": 3,
    })


@dataclass(frozen=True)
class MatchResult:
    results: List[EnrichedListing]
    recommendations: List[Recommendation] = field(default_factory=list)


# Stage 1

def basic_filter(listings: Sequence[RawListing]) -> List[EnrichedListing]:
    """Drop placeholder titles (<3 chars) and empty or zero prices."""
    kept = []
    for listing in listings:
        if not listing.title or len(listing.title.strip()) < 3:
            continue
        if not listing.price_text or not listing.price_text.strip():
            continue
        digits = digits_only(listing.price_text)
        if digits and int(digits) == 0:
            continue
        kept.append(EnrichedListing.from_raw(listing))
    return kept


# Stage 2

def query_terms(filters: SearchFilters, context: Optional[SearchContext] = None) -> List[str]:
    terms = [filters.model, filters.brand]
    if context is not None:
        terms += list(context.search_terms) + list(context.alternatives)
    seen = {}
    for term in terms:
        if term and len(term.strip()) >= 2:
            seen.setdefault(term.strip().lower(), term.strip())
    return list(seen.values())


def fuzzy_distance(term: str, title: str) -> float:
    """0 = best .. 1 = worst."""
    return 1 - fuzz.partial_ratio(term, title, processor=fuzz_utils.default_process) / 100


def lenient_filter(listings: Sequence[EnrichedListing], filters: SearchFilters) -> List[EnrichedListing]:
    """Keep listings whose title contains any model or brand keyword longer than 2 chars."""
    keywords = []
    for text in (filters.model, filters.brand):
        keywords += [k for k in (text or "").lower().split() if len(k) > 2]

    kept = []
    for listing in listings:
        title = listing.title.lower()
        hit = next((k for k in keywords if k in title), None)
        if hit:
            kept.append(replace(listing, match_score=LENIENT_MATCH_SCORE, matched_term=hit))
    return kept


def fuzzy_match(
    listings: Sequence[EnrichedListing],
    filters: SearchFilters,
    context: Optional[SearchContext] = None,
    threshold: float = FUZZY_THRESHOLD,
) -> List[EnrichedListing]:
    terms = query_terms(filters, context)
    if not terms:
        return list(listings)

    matched = []
    for listing in listings:
        best_term, best = None, 1.0
        for term in terms:
            d = fuzzy_distance(term, listing.title)
            if d < best:
                best_term, best = term, d
        if best < threshold:
            matched.append(replace(listing, match_score=round(best, 4), matched_term=best_term))

    if not matched:
        logger.warning("No fuzzy matches, using lenient keyword filter")
        return lenient_filter(listings, filters)

    return sorted(matched, key=lambda l: l.match_score)


# Stage 3

def stem(token: str) -> str:
    for suffix in _SUFFIXES:
        if len(token) > len(suffix) + 2 and token.endswith(suffix):
            return token[: -len(suffix)]
    return token


def tokenize(text: str) -> List[str]:
    return [stem(t) for t in _TOKEN_RE.findall((text or "").lower())]


def semantic_similarity(query_tokens: Sequence[str], title_tokens: Sequence[str]) -> float:
    total = max(len(query_tokens), len(title_tokens))
    if total == 0:
        return 0.0
    matches = 0
    for q in query_tokens:
        for t in title_tokens:
            if q == t or JaroWinkler.normalized_similarity(q, t) > TOKEN_SIMILARITY:
                matches += 1
                break
    return matches / total


def semantic_filter(
    listings: Sequence[EnrichedListing],
    filters: SearchFilters,
    floor: float = SEMANTIC_FLOOR,
) -> List[EnrichedListing]:
    if not listings:
        return []
    query_tokens = tokenize(filters.model)
    scored = [
        replace(l, semantic_score=round(semantic_similarity(query_tokens, tokenize(l.title)), 4))
        for l in listings
    ]
    kept = [l for l in scored if l.semantic_score > floor]
    if not kept:
        logger.warning("Semantic floor would drop every candidate, keeping fuzzy matches")
        return scored
    return kept


# Stage 4

def price_filter(
    listings: Sequence[EnrichedListing],
    filters: SearchFilters,
    prediction: Optional[PricePrediction] = None,
) -> List[EnrichedListing]:
    """
    Drop non-positive prices and anything outside the user's bounds; flag,
    without dropping, prices far outside the predicted range. An inverted
    user range selects nothing.
    """
    if filters.has_inverted_price_range:
        return []

    low = high = None
    if prediction is not None:
        buffer = (prediction.max_price - prediction.min_price) * PRICE_BUFFER_RATIO
        low, high = prediction.min_price - buffer, prediction.max_price + buffer

    kept = []
    for listing in listings:
        price = listing.price_value
        if price <= 0:
            continue
        if filters.min_price is not None and price < filters.min_price:
            continue
        if filters.max_price is not None and price > filters.max_price:
            continue
        if low is not None and (price < low or price > high):
            listing = replace(listing, price_flag=OUTSIDE_PREDICTED_RANGE)
        kept.append(listing)
    return kept


# Stage 5

def remove_duplicates(listings: Sequence[EnrichedListing], threshold: float = DUPLICATE_SIMILARITY) -> List[EnrichedListing]:
    """Drop titles too similar to an already accepted one, keeping the first."""
    accepted: List[EnrichedListing] = []
    seen_titles: List[str] = []
    for listing in listings:
        title = listing.title.lower()
        if any(fuzz.ratio(title, seen) / 100 > threshold for seen in seen_titles):
            continue
        accepted.append(listing)
        seen_titles.append(title)
    return accepted


# Stage 7

def price_points(price: float, average: float, max_points: float = 20.0) -> float:
    """Highest near 0.9 x average, falling linearly with relative deviation."""
    if average == 0:
        return max_points / 2
    deviation = abs(price - average * 0.9) / average
    return max(0.0, max_points - deviation * max_points)


def completeness_points(listing: RawListing, weights: RankingWeights) -> float:
    present = {
        "image": bool(listing.image_url),
        "year": bool(listing.specs.year),
        "color": bool(listing.specs.color),
        "location": bool(listing.specs.location),
        "mileage": bool(listing.specs.mileage_km),
    }
    return float(sum(weights.completeness.get(k, 0) for k, v in present.items() if v))


def score_listing(
    listing: EnrichedListing,
    average_price: float,
    platform_trust: Mapping[str, int],
    weights: RankingWeights,
) -> Dict[str, float]:
    match_score = listing.match_score if listing.match_score is not None else LENIENT_MATCH_SCORE
    ai = 0.0
    if listing.ai_insights.recommended:
        ai += weights.recommended_bonus
    if listing.ai_insights.suspicious:
        ai -= weights.suspicious_penalty

    return {
        "price": round(price_points(listing.price_value, average_price, weights.price), 4),
        "match": round((1 - match_score) * weights.match, 4),
        "semantic": round((listing.semantic_score or 0) * weights.semantic, 4),
        "trust": float(platform_trust.get(listing.platform, UNKNOWN_PLATFORM_TRUST)),
        "ai": ai,
        "completeness": completeness_points(listing, weights),
        "synthetic": -weights.synthetic_penalty if listing.synthetic else 0.0,
    }


def rank_listings(
    listings: Sequence[EnrichedListing],
    platform_trust: Optional[Mapping[str, int]] = None,
    weights: Optional[RankingWeights] = None,
) -> List[EnrichedListing]:
    """Score and stable-sort, highest first. Deterministic for equal inputs."""
    if not listings:
        return []
    platform_trust = DEFAULT_PLATFORM_TRUST if platform_trust is None else platform_trust
    weights = weights or RankingWeights()
    average = sum(l.price_value for l in listings) / len(listings)

    scored = []
    for listing in listings:
        breakdown = score_listing(listing, average, platform_trust, weights)
        price_score = round(breakdown["price"] / weights.price * 100) if weights.price else None
        scored.append(replace(
            listing,
            rank_score=round(sum(breakdown.values()), 4),
            score_breakdown=breakdown,
            ai_insights=replace(listing.ai_insights, price_score=price_score),
        ))
    return sorted(scored, key=lambda l: l.rank_score, reverse=True)


class MatchingEngine:
    """
    Runs the stages in order. The oracle is optional; without it the anomaly
    and recommendation stages are no-ops.
    """

    def __init__(self, oracle=None, platform_trust: Optional[Mapping[str, int]] = None, weights: Optional[RankingWeights] = None):
        self.oracle = oracle
        self.platform_trust = dict(DEFAULT_PLATFORM_TRUST if platform_trust is None else platform_trust)
        self.weights = weights or RankingWeights()

    async def process(
        self,
        raw_listings: Sequence[RawListing],
        filters: SearchFilters,
        context: Optional[SearchContext] = None,
    ) -> MatchResult:
        if not raw_listings:
            logger.warning("No results to filter")
            return MatchResult(results=[])

        logger.info(f"Matching: processing {len(raw_listings)} raw results")
        prediction = context.price_prediction if context else None

        candidates = basic_filter(raw_listings)
        logger.info(f"After basic filtering: {len(candidates)}")

        if candidates:
            candidates = fuzzy_match(candidates, filters, context)
            logger.info(f"After fuzzy matching: {len(candidates)}")

        if candidates:
            candidates = semantic_filter(candidates, filters)
            logger.info(f"After semantic matching: {len(candidates)}")

        candidates = price_filter(candidates, filters, prediction)
        logger.info(f"After price filtering: {len(candidates)}")

        candidates = remove_duplicates(candidates)
        logger.info(f"After duplicate removal: {len(candidates)}")

        if candidates and self.oracle is not None:
            candidates = await self.oracle.analyze_anomalies(candidates)

        candidates = rank_listings(candidates, self.platform_trust, self.weights)

        recommendations: List[Recommendation] = []
        if candidates and self.oracle is not None:
            recommendations = await self.oracle.recommend(filters, candidates)

        return MatchResult(results=candidates, recommendations=recommendations)
