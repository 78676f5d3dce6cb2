"""
Optional LLM advisory oracle.

Four calls: query enhancement, price prediction, anomaly analysis and
recommendations. Each has a bounded timeout, and any failure (timeout,
transport error, malformed JSON, out-of-range indices) resolves to a cheap
deterministic fallback. Nothing here raises to the caller.
"""
import asyncio
import json
import logging
import re
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

from .config import Settings, settings as default_settings
from .models import (
    AIInsights,
    EnrichedListing,
    PricePrediction,
    QueryEnhancement,
    Recommendation,
    SearchFilters,
    StandardizedQuery,
)
from .utils import YEAR_RE

logger = logging.getLogger(__name__)


ANOMALY_SAMPLE_SIZE = 10
RECOMMEND_SAMPLE_SIZE = 5
MAX_RECOMMENDATIONS = 3
MARKET_ANALYSIS_LEADING = 3

KNOWN_BRANDS = [
    "toyota", "honda", "suzuki", "nissan", "mitsubishi", "hyundai",
    "bmw", "mercedes", "audi", "ford", "mazda",
]
KNOWN_MODELS = [
    "corolla", "civic", "swift", "vitz", "axio", "allion", "premio",
    "fit", "vezel", "x-trail", "cr-v", "rav4",
]
MODEL_SYNONYMS = {
    "corolla": ["corolla", "carolla", "corola"],
    "civic": ["civic", "civick"],
    "swift": ["swift", "suzuki swift"],
    "vitz": ["vitz", "toyota vitz", "yaris"],
    "axio": ["axio", "toyota axio", "corolla axio"],
    "allion": ["allion", "toyota allion"],
    "premio": ["premio", "toyota premio"],
}

SYSTEM_PROMPT = "You are a used-car market expert for Bangladesh. Always answer with a single JSON object."


class OracleError(Exception):
    """The oracle answered, but not with something usable."""


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:]


def fallback_enhancement(query: str) -> QueryEnhancement:
    """Keyword-table standardization used when the oracle is unavailable."""
    query = query or ""
    lower = query.lower()

    brand = next((_capitalize(b) for b in KNOWN_BRANDS if b in lower), None)
    # Unknown model names pass through as typed
    model = next((_capitalize(m) for m in KNOWN_MODELS if m in lower), query or None)
    year_match = YEAR_RE.search(query)
    year = int(year_match.group(0)) if year_match else None

    alternatives: List[str] = []
    for key, alts in MODEL_SYNONYMS.items():
        if key in lower:
            alternatives = list(alts)
            break

    search_terms = list(dict.fromkeys([t for t in [query, *alternatives] if t]))
    return QueryEnhancement(
        standardized=StandardizedQuery(original=query, brand=brand, model=model, year=year),
        alternatives=alternatives,
        search_terms=search_terms,
        source="fallback",
    )


def _to_year(value: Any) -> Optional[int]:
    if value is None:
        return None
    match = YEAR_RE.search(str(value))
    return int(match.group(0)) if match else None


def _to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() in ("null", "none", "unknown"):
        return None
    return text


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip()]


def _index_list(value: Any, size: int) -> List[int]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise OracleError(f"Expected a list of indices, got {type(value).__name__}")
    indices = []
    for v in value:
        if isinstance(v, bool) or not isinstance(v, int) or not 0 <= v < size:
            raise OracleError(f"Listing index out of range: {v!r}")
        indices.append(v)
    return indices


class QueryOracle:
    """
    Wraps an ``AsyncOpenAI`` client. The client is only created when AI is
    enabled and a key is configured; tests inject a fake one.
    """

    def __init__(self, settings: Optional[Settings] = None, client=None):
        self.settings = settings or default_settings
        if client is None and self.settings.oracle_enabled:
            from openai import AsyncOpenAI

            client = AsyncOpenAI(api_key=self.settings.openai_api_key, timeout=self.settings.oracle_timeout_s)
            logger.info("OpenAI oracle initialized")
        elif client is None:
            logger.info("OpenAI oracle disabled (AI_ENABLED=false or no API key), using local fallbacks")
        self.client = client

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def _complete_json(self, prompt: str, temperature: float = 0.3, max_tokens: int = 600) -> Dict[str, Any]:
        response = await asyncio.wait_for(
            self.client.chat.completions.create(
                model=self.settings.openai_model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=temperature,
                max_tokens=max_tokens,
            ),
            timeout=self.settings.oracle_timeout_s,
        )
        content = response.choices[0].message.content
        if not content:
            raise OracleError("Empty oracle response")
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise OracleError(f"Invalid JSON from oracle: {e}") from e
        if not isinstance(data, dict):
            raise OracleError("Oracle response is not a JSON object")
        return data

    async def enhance_query(self, query: str) -> QueryEnhancement:
        if not self.enabled or not query:
            return fallback_enhancement(query)

        prompt = (
            f'A user is searching for the car "{query}".\n'
            "Extract and standardize brand, model and year (if mentioned), and suggest "
            "alternative spellings or closely related models sold in Bangladesh.\n"
            "Return JSON: {\"standardized\": {\"brand\": str|null, \"model\": str|null, "
            "\"year\": int|null, \"original\": str}, \"alternatives\": [str], \"searchTerms\": [str]}"
        )
        try:
            data = await self._complete_json(prompt, temperature=0.3, max_tokens=500)
            std = data.get("standardized")
            if not isinstance(std, dict):
                raise OracleError("Missing 'standardized' object")
            enhancement = QueryEnhancement(
                standardized=StandardizedQuery(
                    original=query,
                    brand=_to_text(std.get("brand")),
                    model=_to_text(std.get("model")),
                    year=_to_year(std.get("year")),
                ),
                alternatives=_string_list(data.get("alternatives")),
                search_terms=_string_list(data.get("searchTerms")) or [query],
                source="oracle",
            )
        except Exception as e:
            logger.warning(f"Oracle query enhancement failed, using fallback: {e}")
            return fallback_enhancement(query)

        logger.info(f"Oracle query enhancement: {enhancement.standardized}")
        return enhancement

    async def predict_price_range(self, filters: SearchFilters) -> Optional[PricePrediction]:
        """Predicted market price range, or ``None`` when unavailable."""
        if not self.enabled:
            return None

        prompt = (
            "Predict a reasonable used-car price range in BDT for the Bangladesh market.\n"
            f"Brand: {filters.brand or 'Unknown'}\n"
            f"Model: {filters.model or 'Unknown'}\n"
            f"Year: {filters.year or 'Unknown'}\n"
            f"Location: {filters.location or 'Dhaka'}\n"
            "Consider current market conditions, depreciation, import duties and model popularity.\n"
            "Return JSON: {\"prediction\": {\"minPrice\": number, \"maxPrice\": number, "
            "\"averagePrice\": number, \"confidence\": \"high\"|\"medium\"|\"low\", "
            "\"factors\": [str], \"recommendation\": str}}"
        )
        try:
            data = await self._complete_json(prompt, temperature=0.3, max_tokens=600)
            pred = data.get("prediction", data)
            if not isinstance(pred, dict):
                raise OracleError("Missing 'prediction' object")
            lo = float(pred["minPrice"])
            hi = float(pred["maxPrice"])
            avg = float(pred.get("averagePrice") or (lo + hi) / 2)
            if lo <= 0 or hi <= 0 or lo > hi:
                raise OracleError(f"Implausible price range {lo}..{hi}")
            confidence = str(pred.get("confidence") or "low").lower()
            if confidence not in ("high", "medium", "low"):
                confidence = "low"
            prediction = PricePrediction(
                min_price=lo,
                max_price=hi,
                average_price=avg,
                confidence=confidence,
                factors=_string_list(pred.get("factors")),
                recommendation=_to_text(pred.get("recommendation")),
            )
        except Exception as e:
            logger.warning(f"Oracle price prediction failed: {e}")
            return None

        logger.info(f"Price prediction: {prediction.min_price:,.0f} - {prediction.max_price:,.0f} BDT")
        return prediction

    async def analyze_anomalies(self, listings: Sequence[EnrichedListing]) -> List[EnrichedListing]:
        """Annotate the leading listings; on failure return them unchanged."""
        listings = list(listings)
        if not self.enabled or not listings:
            return listings

        sample = listings[:ANOMALY_SAMPLE_SIZE]
        payload = [
            {"index": i, "site": l.platform, "title": l.title[:50], "price": l.price_value}
            for i, l in enumerate(sample)
        ]
        prompt = (
            "Analyze these car listing prices from the Bangladesh market for anomalies:\n"
            f"{json.dumps(payload, ensure_ascii=False, indent=2)}\n"
            "Identify suspiciously low prices (possible scams), overpriced listings, the fair "
            "market range and the most reliable listings.\n"
            "Return JSON: {\"analysis\": {\"averagePrice\": number, \"priceRange\": {\"min\": number, "
            "\"max\": number}, \"suspiciousListings\": [index], \"recommendedListings\": [index], "
            "\"marketInsights\": str}}"
        )
        try:
            data = await self._complete_json(prompt, temperature=0.2, max_tokens=800)
            analysis = data.get("analysis", data)
            if not isinstance(analysis, dict):
                raise OracleError("Missing 'analysis' object")
            suspicious = set(_index_list(analysis.get("suspiciousListings"), len(sample)))
            recommended = set(_index_list(analysis.get("recommendedListings"), len(sample)))
            insights_text = _to_text(analysis.get("marketInsights"))
        except Exception as e:
            logger.warning(f"Oracle price analysis failed, listings left unannotated: {e}")
            return listings

        annotated = []
        for i, listing in enumerate(listings):
            if i >= len(sample):
                annotated.append(listing)
                continue
            annotated.append(replace(listing, ai_insights=replace(
                listing.ai_insights,
                suspicious=i in suspicious,
                recommended=i in recommended,
                market_analysis=insights_text if i < MARKET_ANALYSIS_LEADING else None,
            )))
        logger.info(f"Anomaly analysis: {len(suspicious)} suspicious, {len(recommended)} recommended")
        return annotated

    async def recommend(self, filters: SearchFilters, listings: Sequence[EnrichedListing]) -> List[Recommendation]:
        if not self.enabled or not listings:
            return []

        sample = list(listings)[:RECOMMEND_SAMPLE_SIZE]
        cars = [
            {
                "index": i,
                "title": l.title,
                "price": l.price_text,
                "site": l.platform,
                "year": l.specs.year,
                "location": l.specs.location,
            }
            for i, l in enumerate(sample)
        ]
        prompt = (
            "Generate personalized car recommendations.\n"
            f"User preferences:\n{json.dumps(filters.to_dict(), ensure_ascii=False, indent=2)}\n"
            f"Available cars:\n{json.dumps(cars, ensure_ascii=False, indent=2)}\n"
            f"Pick up to {MAX_RECOMMENDATIONS} cars and explain why.\n"
            "Return JSON: {\"recommendations\": [{\"carIndex\": number, \"reason\": str, "
            "\"pros\": [str], \"cons\": [str], \"score\": number (1-10)}]}"
        )
        try:
            data = await self._complete_json(prompt, temperature=0.4, max_tokens=1000)
            items = data.get("recommendations")
            if not isinstance(items, list):
                raise OracleError("Missing 'recommendations' list")
            recommendations = []
            for item in items[:MAX_RECOMMENDATIONS]:
                if not isinstance(item, dict):
                    raise OracleError("Recommendation is not an object")
                idx = _index_list([item.get("carIndex")], len(sample))[0]
                score = int(round(float(item.get("score") or 0)))
                recommendations.append(Recommendation(
                    car_index=idx,
                    title=sample[idx].title,
                    reason=_to_text(item.get("reason")) or "",
                    pros=_string_list(item.get("pros")),
                    cons=_string_list(item.get("cons")),
                    score=max(0, min(10, score)),
                ))
        except Exception as e:
            logger.warning(f"Oracle recommendations failed: {e}")
            return []

        return recommendations

    async def health(self) -> Dict[str, Any]:
        """Round-trip a tiny enhancement call to check the oracle."""
        if not self.enabled:
            return {"status": "disabled", "enabled": False}
        enhancement = await self.enhance_query("Toyota Corolla 2015")
        return {
            "status": "healthy" if enhancement.source == "oracle" else "degraded",
            "enabled": True,
            "model": self.settings.openai_model,
            "test": {
                "brand": enhancement.standardized.brand,
                "model": enhancement.standardized.model,
                "year": enhancement.standardized.year,
            },
        }
