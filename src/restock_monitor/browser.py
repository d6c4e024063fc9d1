from __future__ import annotations

import logging
import re
from pathlib import Path

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from .errors import ProbeError, ProbeTimeout
from .http_client import DEFAULT_USER_AGENTS


logger = logging.getLogger(__name__)

# textContent (not innerText) so phrases inside hidden stock widgets still match.
_CONTAINS_TEXT_JS = """
phrase => {
    const root = document.documentElement;
    return !!root && (root.textContent || "").includes(phrase);
}
"""


def _ms(seconds: float) -> float:
    return max(0.0, float(seconds)) * 1000.0


class BrowserPage:
    def __init__(self, page) -> None:
        self._page = page

    def goto(self, url: str, *, timeout: float) -> None:
        try:
            self._page.goto(url, wait_until="domcontentloaded", timeout=_ms(timeout))
        except PlaywrightTimeoutError as e:
            raise ProbeTimeout(f"navigation timed out after {timeout:g}s") from e
        except PlaywrightError as e:
            raise ProbeError(f"navigation failed: {e.message}") from e

    def wait_for_element(self, selector: str, pattern: str, *, timeout: float) -> None:
        locator = self._page.locator(selector or "*")
        if pattern:
            try:
                locator = locator.filter(has_text=re.compile(pattern))
            except re.error as e:
                raise ProbeError(f"invalid presence pattern {pattern!r}: {e}") from e
        try:
            locator.first.wait_for(state="attached", timeout=_ms(timeout))
        except PlaywrightTimeoutError as e:
            raise ProbeTimeout(f"element {selector!r}/{pattern!r} not found within {timeout:g}s") from e
        except PlaywrightError as e:
            raise ProbeError(f"element wait failed: {e.message}") from e

    def wait_for_network_idle(self, *, timeout: float) -> None:
        try:
            self._page.wait_for_load_state("networkidle", timeout=_ms(timeout))
        except PlaywrightTimeoutError as e:
            raise ProbeTimeout(f"network did not settle within {timeout:g}s") from e
        except PlaywrightError as e:
            raise ProbeError(f"network idle wait failed: {e.message}") from e

    def contains_text(self, phrase: str, *, timeout: float) -> bool:
        try:
            self._page.wait_for_function(_CONTAINS_TEXT_JS, arg=phrase, timeout=_ms(timeout))
        except PlaywrightTimeoutError:
            return False
        except PlaywrightError as e:
            raise ProbeError(f"text search failed: {e.message}") from e
        return True

    def screenshot(self, path: Path, *, timeout: float) -> Path:
        try:
            self._page.screenshot(path=str(path), full_page=True, timeout=_ms(timeout))
        except PlaywrightError as e:
            raise ProbeError(f"screenshot failed: {e.message}") from e
        return path

    def close(self) -> None:
        try:
            self._page.close()
        except PlaywrightError as e:
            logger.debug("[browser] page close failed: %s", e.message)


class BrowserProber:
    """Chromium via Playwright's sync API.

    Playwright objects are bound to the thread that created them, so each
    worker enters its own prober and uses it only from that thread.
    """

    def __init__(self, *, headless: bool = True, user_agent: str | None = None) -> None:
        self._headless = headless
        self._user_agent = user_agent or DEFAULT_USER_AGENTS[0]
        self._playwright = None
        self._browser = None
        self._context = None

    def __enter__(self) -> BrowserProber:
        self._playwright = sync_playwright().start()
        try:
            self._browser = self._playwright.chromium.launch(headless=self._headless)
            self._context = self._browser.new_context(user_agent=self._user_agent, java_script_enabled=True)
        except Exception:
            self.close()
            raise
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def new_page(self) -> BrowserPage:
        if self._context is None:
            raise ProbeError("browser prober used outside its context")
        try:
            return BrowserPage(self._context.new_page())
        except PlaywrightError as e:
            raise ProbeError(f"cannot open page: {e.message}") from e

    def close(self) -> None:
        if self._browser is not None:
            try:
                self._browser.close()
            except PlaywrightError as e:
                logger.debug("[browser] close failed: %s", e.message)
            self._browser = None
            self._context = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None
