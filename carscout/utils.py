"""
Utility functions for text processing, price parsing, and logging.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Optional, Tuple


LAKH = 100_000
CRORE = 10_000_000
KM_PER_MILE = 1.609344

_BENGALI_DIGITS = str.maketrans("০১২৩৪৫৬৭৮৯", "0123456789")

_MULTIPLIER_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(lakhs?|lacs?|crores?|cr)(?![\w-])", re.I)
_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")
_CURRENCY_NUMBER_RE = re.compile(r"(?:৳|\btk\.?|\bbdt|\btaka|₹|\brs\.?|\binr|\$|\busd)\s*(\d+(?:\.\d+)?)", re.I)

_CURRENCY_PATTERNS = [
    (re.compile(r"৳|\btk\b|\btk\.?(?=\s*\d)|\bbdt\b|\btaka\b", re.I), "BDT"),
    (re.compile(r"₹|\brs\.?(?=\s*\d)|\binr\b", re.I), "INR"),
    (re.compile(r"\$|\busd\b", re.I), "USD"),
]

COLORS = ["white", "black", "silver", "red", "blue", "gray", "grey", "green", "brown", "yellow", "gold"]

YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")


def init_logger(
    name: str = "carscout",
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    log_file: Optional[str] = "carscout.log"
) -> logging.Logger:
    """Initialize logger with console and optional file handlers."""
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    if logger.handlers:
        return logger

    console_level_num = getattr(logging, console_level.upper(), logging.INFO)
    ch = logging.StreamHandler()
    ch.setLevel(console_level_num)

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    if log_file:  # Create file handler only if log_file is provided
        file_level_num = getattr(logging, file_level.upper(), logging.DEBUG)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level_num)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    return logger


def now_iso() -> str:
    """Return current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def clean_text(s: Optional[str]) -> str:
    """Clean and normalize text by removing extra whitespace."""
    if not s:
        return ""
    s = re.sub(r"\s+", " ", s)
    return s.strip()


def digits_only(s: Optional[str]) -> str:
    if not s:
        return ""
    return re.sub(r"\D", "", s.translate(_BENGALI_DIGITS))


def normalize_title(title: Optional[str]) -> str:
    """Lowercase, collapse whitespace and strip punctuation."""
    t = clean_text(title).lower()
    t = re.sub(r"[^\w\s]", "", t)
    return clean_text(t)


def extract_numeric_price(price_text: Optional[str]) -> float:
    """
    Convert marketplace price text to a number.

    "৳ 1,275,000", "Tk1275000" and "12.75 lakh" all give 1275000.0.
    Lakh and crore multipliers are applied to the number they follow.
    Returns 0.0 when no number is present.
    """
    if not price_text:
        return 0.0

    s = price_text.translate(_BENGALI_DIGITS).replace(",", "").replace("\xa0", " ")

    m = _MULTIPLIER_RE.search(s)
    if m:
        unit = m.group(2).lower()
        factor = CRORE if unit.startswith("cr") else LAKH
        return round(float(m.group(1)) * factor, 2)

    # a number right after a currency mark wins over model numbers and years
    m = _CURRENCY_NUMBER_RE.search(s)
    if m:
        return float(m.group(1))

    m = _NUMBER_RE.search(s)
    if not m:
        return 0.0
    return float(m.group(0))


def parse_price(price_text: str) -> Tuple[Optional[float], Optional[str]]:
    """
    Parse price text to extract numeric value and currency.

    Supports Taka (৳, Tk, BDT), Rupee (₹, Rs, INR) and USD notations.
    """
    if not price_text:
        return (None, None)

    value = extract_numeric_price(price_text)
    cur = None
    for pattern, code in _CURRENCY_PATTERNS:
        if pattern.search(price_text):
            cur = code
            break

    return (value if value > 0 else None, cur)


def extract_year(text: Optional[str]) -> Optional[int]:
    if not text:
        return None
    m = YEAR_RE.search(text)
    return int(m.group(0)) if m else None


def extract_color(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    lowered = text.lower()
    for color in COLORS:
        if re.search(rf"\b{color}\b", lowered):
            return color.capitalize()
    return None


def extract_mileage_km(text: Optional[str]) -> Optional[int]:
    """
    Extract mileage in kilometers.

    Handles formats like "75,000 km", "120000 kilometers", "45,000 miles".
    Miles are converted to kilometers.
    """
    if not text:
        return None

    m = re.search(r"(\d+(?:,\d+)*)\s*(km|kilometer|kilometre|mile|kilo)", text, re.I)
    if not m:
        return None
    try:
        value = int(m.group(1).replace(",", ""))
    except ValueError:
        return None
    if m.group(2).lower() == "mile":
        return round(value * KM_PER_MILE)
    return value


def extract_transmission(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    if re.search(r"\b(automatic|auto)\b", text, re.I):
        return "Automatic"
    if re.search(r"\bmanual\b", text, re.I):
        return "Manual"
    return None


def extract_fuel(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    if re.search(r"\bdiesel\b", text, re.I):
        return "Diesel"
    if re.search(r"\b(petrol|octane|gasoline)\b", text, re.I):
        return "Petrol"
    if re.search(r"\bcng\b", text, re.I):
        return "CNG"
    if re.search(r"\bhybrid\b", text, re.I):
        return "Hybrid"
    if re.search(r"\b(ev|electric)\b", text, re.I):
        return "Electric"
    return None
