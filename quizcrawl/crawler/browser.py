"""Browser capability surface used by the crawler.

The crawl engine and the login heuristic only talk to :class:`BrowserPage`.
:class:`PlaywrightBrowser` implements it with the Playwright sync API; tests
substitute an in-memory page.

Playwright sync objects must be used from the thread that created them, so a
``PlaywrightBrowser`` is always launched and driven from one session worker
thread (see ``sessions.SessionWorker``).
"""
from __future__ import annotations

from typing import Any, Callable, Optional, Protocol

from playwright.sync_api import (
    Browser,
    BrowserContext,
    Frame,
    Page,
    Playwright,
    sync_playwright,
)

from . import config

DialogHandler = Callable[[Any], None]


class BrowserPage(Protocol):
    def navigate(self, url: str, *, timeout_ms: Optional[int] = None, wait_until: str = "load") -> None: ...

    def evaluate(self, script: str) -> Any: ...

    def content(self) -> str: ...

    def click(self, selector: str, *, timeout_ms: Optional[int] = None) -> None: ...

    def fill(self, selector: str, value: str, *, timeout_ms: Optional[int] = None) -> None: ...

    def is_visible(self, selector: str) -> bool: ...

    def wait(self, ms: int) -> None: ...

    def on_dialog(self, handler: DialogHandler) -> None: ...

    def navigation_count(self) -> int: ...

    def current_url(self) -> str: ...

    def close(self) -> None: ...


class PlaywrightBrowser:
    """One Chromium instance with a single context and page."""

    def __init__(
        self,
        playwright: Playwright,
        browser: Browser,
        context: BrowserContext,
        page: Page,
    ) -> None:
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self._page = page
        self._navigations = 0
        page.on("framenavigated", self._on_frame_navigated)

    def _on_frame_navigated(self, frame: Frame) -> None:
        if frame == self._page.main_frame:
            self._navigations += 1

    def navigate(self, url: str, *, timeout_ms: Optional[int] = None, wait_until: str = "load") -> None:
        self._page.goto(url, timeout=timeout_ms, wait_until=wait_until)

    def evaluate(self, script: str) -> Any:
        return self._page.evaluate(script)

    def content(self) -> str:
        return self._page.content()

    def click(self, selector: str, *, timeout_ms: Optional[int] = None) -> None:
        self._page.click(selector, timeout=timeout_ms)

    def fill(self, selector: str, value: str, *, timeout_ms: Optional[int] = None) -> None:
        self._page.fill(selector, value, timeout=timeout_ms)

    def is_visible(self, selector: str) -> bool:
        return self._page.is_visible(selector)

    def wait(self, ms: int) -> None:
        self._page.wait_for_timeout(ms)

    def on_dialog(self, handler: DialogHandler) -> None:
        self._page.on("dialog", handler)

    def navigation_count(self) -> int:
        return self._navigations

    def current_url(self) -> str:
        return self._page.url

    def close(self) -> None:
        try:
            self._context.close()
            self._browser.close()
        finally:
            self._playwright.stop()


def launch_browser(headless: Optional[bool] = None) -> PlaywrightBrowser:
    """Start Playwright and open one Chromium page."""

    playwright = sync_playwright().start()
    try:
        browser = playwright.chromium.launch(
            headless=config.BROWSER_HEADLESS if headless is None else headless
        )
        context = browser.new_context()
        page = context.new_page()
    except Exception:
        playwright.stop()
        raise
    return PlaywrightBrowser(playwright, browser, context, page)


__all__ = ["BrowserPage", "DialogHandler", "PlaywrightBrowser", "launch_browser"]
