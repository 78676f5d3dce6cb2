"""
Pipeline configuration and settings management.
"""
import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .platforms import get_platforms

DEFAULT_PLATFORMS = ("Bikroy", "Carmudi", "OLX", "CarDekho")

# Higher means a more reliable source
DEFAULT_PLATFORM_TRUST = {"Bikroy": 25, "Carmudi": 20, "OLX": 15, "CarDekho": 10}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(name, "")
    items = tuple(x.strip() for x in raw.split(",") if x.strip())
    return items or default


@dataclass(frozen=True)
class Settings:
    """Process-wide settings, read once at startup."""

    enabled_platforms: Tuple[str, ...] = DEFAULT_PLATFORMS
    platform_trust: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_PLATFORM_TRUST))

    # Oracle
    ai_enabled: bool = False
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-3.5-turbo"
    oracle_timeout_s: float = 20.0

    # Scraping
    headless: bool = True
    fetch_timeout_ms: int = 45_000
    platform_timeout_s: float = 180.0
    page_delay_range: Tuple[float, float] = (5.0, 8.0)
    max_results_per_page: int = 30

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            enabled_platforms=_env_list("CARSCOUT_PLATFORMS", DEFAULT_PLATFORMS),
            ai_enabled=_env_bool("AI_ENABLED", False),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_model=os.getenv("OPENAI_MODEL", "gpt-3.5-turbo"),
            oracle_timeout_s=float(os.getenv("ORACLE_TIMEOUT", "20")),
            headless=_env_bool("HEADLESS", True),
            fetch_timeout_ms=int(os.getenv("FETCH_TIMEOUT_MS", "45000")),
            platform_timeout_s=float(os.getenv("PLATFORM_TIMEOUT", "180")),
            page_delay_range=(
                float(os.getenv("PAGE_DELAY_MIN", "5")),
                float(os.getenv("PAGE_DELAY_MAX", "8")),
            ),
            max_results_per_page=int(os.getenv("MAX_RESULTS_PER_PAGE", "30")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    @property
    def oracle_enabled(self) -> bool:
        return bool(self.ai_enabled and self.openai_api_key)

    def validate(self) -> None:
        """Validate configuration on startup."""
        if not self.enabled_platforms:
            raise ValueError("At least one platform must be enabled")
        get_platforms(self.enabled_platforms)

        lo, hi = self.page_delay_range
        if lo < 0 or hi < lo:
            raise ValueError(f"Invalid page delay range: {self.page_delay_range}")
        if self.fetch_timeout_ms <= 0 or self.platform_timeout_s <= 0 or self.oracle_timeout_s <= 0:
            raise ValueError("Timeouts must be positive")


# Global settings instance
settings = Settings.from_env()
