"""
Synthetic sample listings used when a platform yields nothing.

Values are derived from the filters and a base-price table; year, color and
price vary randomly (price within +/-15%). When the filters carry a suggested
price range from the price prediction, prices are drawn from that range instead. Every record is marked
``synthetic=True`` so ranking can tell it apart from scraped data.
"""
import random
from datetime import datetime
from typing import List, Optional

from .models import ExtractionMeta, ListingSpecs, RawListing, SearchFilters


SAMPLE_STRATEGY = "Sample Data"
SAMPLE_IMAGE_URL = "https://images.pexels.com/photos/170811/pexels-photo-170811.jpeg?auto=compress&cs=tinysrgb&w=400"
DEFAULT_BASE_PRICE = 1_500_000
PRICE_VARIANCE = 0.15

MODEL_BASE_PRICES = {
    "corolla": 1_500_000,
    "civic": 1_800_000,
    "swift": 1_200_000,
    "vitz": 800_000,
    "axio": 1_300_000,
    "allion": 1_600_000,
    "premio": 1_700_000,
    "fit": 900_000,
    "vezel": 2_200_000,
    "x-trail": 2_500_000,
    "cr-v": 2_800_000,
    "rav4": 3_000_000,
    "camry": 3_500_000,
    "land cruiser": 8_000_000,
}

COLORS = ["White", "Black", "Silver", "Red", "Blue", "Gray"]
LOCATIONS = ["Dhaka", "Chittagong", "Sylhet", "Rajshahi"]
TRANSMISSIONS = ["Automatic", "Manual"]


def base_price_for_model(model: Optional[str]) -> int:
    return MODEL_BASE_PRICES.get((model or "").strip().lower(), DEFAULT_BASE_PRICE)


def generate_sample_listings(
    platform: str,
    base_url: str,
    filters: SearchFilters,
    rng: Optional[random.Random] = None,
    count_range: tuple = (3, 5),
    current_year: Optional[int] = None,
) -> List[RawListing]:
    rng = rng or random.Random()
    current_year = current_year or datetime.now().year
    brand = filters.brand or "Toyota"
    model = filters.model or "Corolla"
    base_price = base_price_for_model(model)
    suggested = (filters.suggested_min_price, filters.suggested_max_price)
    use_suggested = all(suggested) and suggested[0] <= suggested[1]

    lo, hi = count_range
    count = rng.randint(max(3, lo), max(3, hi))

    listings = []
    for i in range(count):
        year = current_year - rng.randint(1, 8)
        if use_suggested:
            price = int(rng.uniform(*suggested))
        else:
            price = int(base_price * (1 + rng.uniform(-PRICE_VARIANCE, PRICE_VARIANCE)))
        color = rng.choice(COLORS)
        transmission = rng.choice(TRANSMISSIONS)

        listings.append(RawListing(
            platform=platform,
            title=f"{brand} {model} {year} - {color} ({transmission})",
            price_text=f"৳ {price:,}",
            link=f"{base_url}/ad/sample-{brand.lower()}-{model.lower().replace(' ', '-')}-{year}-{i + 1}",
            image_url=SAMPLE_IMAGE_URL,
            specs=ListingSpecs(
                year=year,
                color=color,
                location=rng.choice(LOCATIONS),
                mileage_km=rng.randint(20_000, 119_999),
                transmission=transmission,
            ),
            extraction=ExtractionMeta(
                strategy_name=SAMPLE_STRATEGY,
                confidence="low",
                page_number=i // 5 + 1,
                field_confidence={"title": "low", "price": "low"},
            ),
            synthetic=True,
        ))

    return listings
