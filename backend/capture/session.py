"""
Browser session for the crawler.

One Chromium page driven through the Playwright async API. The session is the
traffic source the correlator listens on: every completed response on the page
is forwarded to subscribed handlers as a ``NetworkExchange``.
"""
from __future__ import annotations

import asyncio
import re
from typing import Any, Iterable, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    Response,
    async_playwright,
)
from playwright.async_api import Error as PlaywrightError

from shared.config import Settings, get_settings
from shared.models.domain import PlayerBasicInfo
from shared.utils.logging import get_logger

from capture.correlator import ResponseCorrelator
from capture.traffic import ExchangeHandler, NetworkExchange

logger = get_logger(__name__)

# Images and fonts are never needed for data capture
BLOCKED_RESOURCES = re.compile(r"\.(png|jpg|jpeg|gif|svg|webp|ico|woff|woff2|ttf|eot)(\?.*)?$")

PLAYER_HREF = re.compile(r"/football/player/([^/]+)/(\d+)")

TAB_VISIBLE_TIMEOUT_MS = 3000

_NEXT_DATA_JS = """() => {
    const el = document.getElementById('__NEXT_DATA__');
    return el ? JSON.parse(el.textContent || '{}') : null;
}"""

_FETCH_JSON_JS = """async (url) => {
    try {
        const res = await fetch(url);
        if (res.ok) return await res.json();
        return null;
    } catch {
        return null;
    }
}"""


def tab_selectors(name: str) -> list[str]:
    """Selectors tried in order to locate a tab by its label."""
    return [
        f'text="{name}"',
        f'a:has-text("{name}")',
        f'button:has-text("{name}")',
        f'div[role="tab"]:has-text("{name}")',
    ]


def parse_player_href(href: str, text: str = "") -> Optional[PlayerBasicInfo]:
    """Build a player reference from ``/football/player/{slug}/{id}`` links."""
    match = PLAYER_HREF.search(href)
    if not match:
        return None
    slug, player_id = match.group(1), int(match.group(2))
    name = text.strip() or slug.replace("-", " ")
    return PlayerBasicInfo(player_id=player_id, slug=slug, name=name)


class BrowserSession:
    """
    Async context manager owning browser, context and page.

    Usage:
        async with BrowserSession(headless=False) as session:
            stats = await session.navigate_and_capture(url, pattern)
    """

    def __init__(self, headless: bool | None = None, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._headless = self._settings.headless if headless is None else headless
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._listeners: dict[ExchangeHandler, Any] = {}
        self.correlator = ResponseCorrelator(self, api_root=self._settings.api_root)

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser not launched. Use 'async with BrowserSession()'.")
        return self._page

    # ── Lifecycle ───────────────────────────────────────────────────────

    async def open(self) -> None:
        logger.info(
            "browser_launching",
            headless=self._headless,
            channel=self._settings.browser_channel,
        )
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self._headless,
            channel=self._settings.browser_channel,
        )
        self._context = await self._browser.new_context(
            user_agent=self._settings.user_agent,
            viewport={
                "width": self._settings.viewport_width,
                "height": self._settings.viewport_height,
            },
        )
        await self._context.route(BLOCKED_RESOURCES, lambda route: route.abort())
        self._page = await self._context.new_page()
        logger.info("browser_launched")

    async def close(self) -> None:
        for handler in list(self._listeners):
            self.unsubscribe(handler)
        if self._context is not None:
            await self._context.close()
            self._context = None
            self._page = None
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
        logger.info("browser_closed")

    async def __aenter__(self) -> "BrowserSession":
        try:
            await self.open()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ── Traffic source ──────────────────────────────────────────────────

    def subscribe(self, handler: ExchangeHandler) -> None:
        if handler in self._listeners:
            return

        def on_response(response: Response) -> None:
            handler(NetworkExchange(url=response.url, status=response.status, read_body=response.body))

        self._listeners[handler] = on_response
        self.page.on("response", on_response)

    def unsubscribe(self, handler: ExchangeHandler) -> None:
        listener = self._listeners.pop(handler, None)
        if listener is not None and self._page is not None:
            self._page.remove_listener("response", listener)

    # ── Page actions ────────────────────────────────────────────────────

    async def goto(self, url: str, wait_until: str = "domcontentloaded") -> None:
        await self.page.goto(
            url,
            wait_until=wait_until,
            timeout=self._settings.navigation_timeout_s * 1000,
        )

    async def click_tab(self, name: str) -> bool:
        """Click the first visible element labelled ``name``; False if none found."""
        for selector in tab_selectors(name):
            try:
                element = self.page.locator(selector).first
                if await element.is_visible(timeout=TAB_VISIBLE_TIMEOUT_MS):
                    await element.click()
                    logger.debug("tab_clicked", tab=name)
                    return True
            except PlaywrightError:
                continue
        logger.debug("tab_not_found", tab=name)
        return False

    async def extract_next_data(self) -> Optional[dict[str, Any]]:
        """Server-rendered ``__NEXT_DATA__`` of the current page."""
        return await self.page.evaluate(_NEXT_DATA_JS)

    async def fetch_json(self, url: str) -> Any:
        """Fetch ``url`` from inside the page; None on non-OK or network error."""
        return await self.page.evaluate(_FETCH_JSON_JS, url)

    async def player_links(self) -> list[PlayerBasicInfo]:
        """Distinct player references linked from the current page, in page order."""
        players: list[PlayerBasicInfo] = []
        seen_hrefs: set[str] = set()
        for link in await self.page.locator('a[href*="/player/"]').all():
            try:
                href = await link.get_attribute("href")
                if not href or href in seen_hrefs:
                    continue
                seen_hrefs.add(href)
                player = parse_player_href(href, await link.text_content() or "")
            except PlaywrightError as exc:
                logger.debug("player_link_unreadable", error=str(exc))
                continue
            if player is not None:
                players.append(player)
        return players

    async def page_text_lines(self) -> list[str]:
        """Non-empty, stripped lines of the rendered body text."""
        text = await self.page.evaluate("() => document.body.innerText")
        return [line.strip() for line in (text or "").split("\n") if line.strip()]

    async def pause(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    # ── Correlated actions ──────────────────────────────────────────────

    async def navigate_and_capture(
        self,
        url: str,
        pattern: str,
        timeout_s: float | None = None,
        wait_until: str = "domcontentloaded",
    ) -> Any:
        """Subscribe for ``pattern``, navigate, then wait for the payload."""
        return await self.correlator.await_one(
            pattern, timeout_s, trigger=lambda: self.goto(url, wait_until)
        )

    async def navigate_and_capture_all(
        self,
        url: str,
        patterns: Iterable[str],
        timeout_s: float | None = None,
        wait_until: str = "domcontentloaded",
    ) -> dict[str, Any]:
        return await self.correlator.await_all(
            patterns, timeout_s, trigger=lambda: self.goto(url, wait_until)
        )

    async def click_and_capture(
        self, tab: str, pattern: str, timeout_s: float | None = None
    ) -> Any:
        """
        Subscribe for ``pattern``, click ``tab``, then wait for the payload.

        Raises:
            TabNotFound: No element labelled ``tab`` was visible.
            CaptureTimeout: The click produced no qualifying response.
        """
        async def trigger() -> None:
            if not await self.click_tab(tab):
                raise TabNotFound(tab)

        return await self.correlator.await_one(pattern, timeout_s, trigger=trigger)


class TabNotFound(LookupError):
    def __init__(self, tab: str) -> None:
        self.tab = tab
        super().__init__(f"Could not find tab: {tab}")
