"""
Summary statistics over a final result set.
"""
from typing import Optional, Sequence

import pandas as pd

from .models import AggregateInsights, EnrichedListing, PricePrediction, PriceRange, Recommendation
from .orchestrator import platform_distribution

TOP_RECOMMENDATIONS = 3


def summarize(
    results: Sequence[EnrichedListing],
    recommendations: Sequence[Recommendation] = (),
    price_prediction: Optional[PricePrediction] = None,
) -> Optional[AggregateInsights]:
    """
    Aggregate price range and per-platform counts.

    Returns ``None`` when ``results`` is empty. ``price_range`` is ``None``
    when no listing has a positive parsed price.
    """
    if not results:
        return None

    df = pd.DataFrame([{"platform": r.platform, "price": r.price_value} for r in results])

    prices = df.loc[df["price"] > 0, "price"]
    price_range = None
    if not prices.empty:
        price_range = PriceRange(
            min=float(prices.min()),
            max=float(prices.max()),
            average=round(float(prices.mean()), 2),
        )

    return AggregateInsights(
        market_size=len(df),
        price_range=price_range,
        platform_distribution=dict(platform_distribution(results)),
        recommendations=[r.summary() for r in list(recommendations)[:TOP_RECOMMENDATIONS]],
        price_prediction=price_prediction,
    )
