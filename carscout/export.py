"""
Export utilities for ranked search results.
"""
from typing import List, Sequence

import pandas as pd

from .models import EnrichedListing
from .utils import parse_price

EXPORT_COLUMNS = [
    "rank", "platform", "title", "price_text", "price_value", "currency", "year", "color",
    "location", "mileage_km", "transmission", "fuel_type", "match_score",
    "semantic_score", "rank_score", "price_flag", "recommended", "suspicious",
    "synthetic", "strategy", "confidence", "page_number", "image_url", "link",
]


def listing_row(rank: int, x: EnrichedListing) -> dict:
    _, currency = parse_price(x.price_text)
    return {
        "rank": rank,
        "platform": x.platform,
        "title": x.title,
        "price_text": x.price_text,
        "price_value": x.price_value,
        "currency": currency,
        "year": x.specs.year,
        "color": x.specs.color,
        "location": x.specs.location,
        "mileage_km": x.specs.mileage_km,
        "transmission": x.specs.transmission,
        "fuel_type": x.specs.fuel_type,
        "match_score": x.match_score,
        "semantic_score": x.semantic_score,
        "rank_score": x.rank_score,
        "price_flag": x.price_flag,
        "recommended": x.ai_insights.recommended,
        "suspicious": x.ai_insights.suspicious,
        "synthetic": x.synthetic,
        "strategy": x.extraction.strategy_name,
        "confidence": x.extraction.confidence,
        "page_number": x.extraction.page_number,
        "image_url": x.image_url or "",
        "link": x.link,
    }


def results_to_frame(results: Sequence[EnrichedListing]) -> pd.DataFrame:
    """One row per listing in rank order; empty frames keep the headers."""
    rows: List[dict] = [listing_row(i, x) for i, x in enumerate(results, start=1)]
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def save_output_rows(results: Sequence[EnrichedListing], out_path: str, logger=None):
    """Save ranked results to CSV or Excel file."""
    df = results_to_frame(results)
    if out_path.lower().endswith(".xlsx"):
        df.to_excel(out_path, index=False)
    else:
        df.to_csv(out_path, index=False)

    if logger:
        logger.info(f">>> Saved {len(df)} rows to {out_path}")
    else:
        print(f">>> Saved {len(df)} rows to {out_path}")
