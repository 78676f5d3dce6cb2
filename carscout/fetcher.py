"""
Browser page fetching.

A fetch session is an async context manager: the browser is launched on
enter and always released on exit, including on errors.
"""
import asyncio
import logging
import random
from typing import Protocol, Sequence, Tuple

from playwright.async_api import async_playwright, TimeoutError as PlaywrightTimeout

logger = logging.getLogger(__name__)


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)


class FetchError(Exception):
    """Navigation or timeout failure while fetching a page."""


class PageFetcher(Protocol):
    async def fetch(self, url: str, timeout_ms: int = 30_000) -> str:
        """Return the rendered HTML of ``url``."""
        ...


class PlaywrightFetcher:
    """Chromium session owned by a single platform collector."""

    def __init__(
        self,
        headless: bool = True,
        ready_selectors: Sequence[str] = (),
        ready_timeout_ms: int = 5_000,
        settle_delay_range: Tuple[float, float] = (1.0, 2.0),
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.headless = headless
        self.ready_selectors = list(ready_selectors)
        self.ready_timeout_ms = ready_timeout_ms
        self.settle_delay_range = settle_delay_range
        self.user_agent = user_agent
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None

    async def __aenter__(self) -> "PlaywrightFetcher":
        launch_args = [
            "--disable-blink-features=AutomationControlled",
            "--disable-dev-shm-usage",
            "--no-first-run",
            "--window-size=1366,768",
        ]
        if self.headless:
            launch_args += ["--no-sandbox", "--disable-gpu"]

        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(headless=self.headless, args=launch_args)
            self._context = await self._browser.new_context(
                viewport={"width": 1366, "height": 768},
                user_agent=self.user_agent,
                locale="en-US",
                extra_http_headers={
                    "Accept-Language": "en-US,en;q=0.9",
                    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
                },
            )
            self._context.set_default_timeout(30_000)
            self._context.set_default_navigation_timeout(60_000)
            self._page = await self._context.new_page()
        except Exception:
            await self.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Release page, context, browser and driver; errors are logged only."""
        for name in ("_page", "_context", "_browser"):
            resource = getattr(self, name)
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception as e:
                logger.debug(f"Error closing {name.strip('_')}: {e}")
            setattr(self, name, None)
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug(f"Error stopping playwright: {e}")
            self._playwright = None

    async def _wait_for_content(self, page, deadline: float) -> bool:
        """Try ready selectors in order until one appears or the fetch deadline passes."""
        loop = asyncio.get_running_loop()
        for sel in self.ready_selectors:
            remaining_ms = int((deadline - loop.time()) * 1000)
            if remaining_ms <= 0:
                return False
            try:
                await page.wait_for_selector(sel, timeout=min(self.ready_timeout_ms, remaining_ms))
                logger.debug(f"Content loaded with selector: {sel}")
                return True
            except PlaywrightTimeout:
                continue
        return False

    async def fetch(self, url: str, timeout_ms: int = 30_000) -> str:
        """
        Navigate to ``url`` and return its HTML.

        Navigation, settling and the ready-selector waits all share the one
        ``timeout_ms`` budget; a page that never shows a ready selector is
        returned as it is once the budget runs out.
        """
        if self._context is None:
            raise FetchError("Fetch session is not open")

        # Recreate page if it crashed on a previous navigation
        if self._page is None or self._page.is_closed():
            self._page = await self._context.new_page()

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000

        try:
            await self._page.goto(url, timeout=timeout_ms, wait_until="domcontentloaded")
        except PlaywrightTimeout as e:
            raise FetchError(f"Timed out loading {url}") from e
        except Exception as e:
            raise FetchError(f"Navigation to {url} failed: {e}") from e

        settle = random.uniform(*self.settle_delay_range)
        await asyncio.sleep(max(0.0, min(settle, deadline - loop.time())))
        if self.ready_selectors and not await self._wait_for_content(self._page, deadline):
            logger.debug(f"No ready selector matched on {url}, using page as is")

        try:
            return await self._page.content()
        except Exception as e:
            raise FetchError(f"Could not read content of {url}: {e}") from e


def playwright_session_factory(headless: bool = True):
    """Return a factory creating a fresh fetch session for a platform."""
    def factory(platform) -> PlaywrightFetcher:
        return PlaywrightFetcher(headless=headless, ready_selectors=platform.ready_selectors)
    return factory
