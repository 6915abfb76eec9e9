"""Browser sessions for the crawl stages.

A navigator hands out one page handle per ``session()`` block and always
releases the underlying resources when the block exits, whether it returns,
raises, or times out. Handles expose only what the spiders need:

- ``load(url, wait_until)``: navigate and wait for the load policy
- ``find_attribute(selector, attr, timeout_ms)``: wait for an element, read an attribute
- ``all_anchors()``: absolute hrefs of every ``<a>`` in the document
- ``settle(delay_ms)``: fixed delay for client-rendered lists

``BrowserNavigator`` drives headless Chromium via Playwright. ``HtmlNavigator``
serves static HTML snapshots (in-memory, on disk, or fetched over plain HTTP)
and is what the runner's ``--file`` mode and the tests use.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional
from urllib.parse import urljoin, urlparse

import httpx
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright
from selectolax.parser import HTMLParser

from app.services.errors import NavigationError, SessionError

logger = logging.getLogger(__name__)

NETWORK_IDLE = "networkidle"


class BrowserPage:
    def __init__(self, page, *, navigation_timeout_ms: int) -> None:
        self._page = page
        self.navigation_timeout_ms = int(navigation_timeout_ms)

    def load(self, url: str, wait_until: str = NETWORK_IDLE) -> None:
        try:
            self._page.goto(url, wait_until=wait_until, timeout=self.navigation_timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise NavigationError(f"Timed out loading {url} after {self.navigation_timeout_ms} ms") from exc
        except PlaywrightError as exc:
            raise NavigationError(f"Failed to load {url}: {exc}") from exc

    def find_attribute(self, selector: str, attr_name: str, timeout_ms: int) -> Optional[str]:
        try:
            el = self._page.wait_for_selector(selector, timeout=timeout_ms)
            if el is None:
                return None
            return el.get_attribute(attr_name)
        except PlaywrightTimeoutError:
            return None
        except PlaywrightError as exc:
            raise NavigationError(f"Browser failed while waiting for {selector}: {exc}") from exc

    def all_anchors(self) -> List[str]:
        # a.href is the resolved absolute URL, unlike getAttribute("href")
        try:
            hrefs = self._page.eval_on_selector_all("a", "anchors => anchors.map(a => a.href)")
        except PlaywrightError as exc:
            raise NavigationError(f"Browser failed while reading anchors: {exc}") from exc
        return [h for h in hrefs or [] if h]

    def settle(self, delay_ms: int) -> None:
        if delay_ms <= 0:
            return
        try:
            self._page.wait_for_timeout(delay_ms)
        except PlaywrightError as exc:
            raise NavigationError(f"Browser failed during settle delay: {exc}") from exc


class BrowserNavigator:
    """Launches a fresh headless browser for every session; nothing is pooled."""

    def __init__(self, *, headless: bool = True, navigation_timeout_ms: int = 30000) -> None:
        self.headless = headless
        self.navigation_timeout_ms = int(navigation_timeout_ms)

    @contextmanager
    def session(self) -> Iterator[BrowserPage]:
        try:
            pw = sync_playwright().start()
        except PlaywrightError as exc:
            raise SessionError(f"Failed to start Playwright: {exc}") from exc

        browser = None
        try:
            try:
                browser = pw.chromium.launch(headless=self.headless)
                page = browser.new_page()
            except PlaywrightError as exc:
                raise SessionError(f"Failed to launch browser: {exc}") from exc
            page.set_default_timeout(self.navigation_timeout_ms)
            yield BrowserPage(page, navigation_timeout_ms=self.navigation_timeout_ms)
        finally:
            if browser is not None:
                try:
                    browser.close()
                except PlaywrightError as exc:
                    logger.warning("Browser close failed: %s", exc)
            try:
                pw.stop()
            except PlaywrightError as exc:
                logger.warning("Playwright stop failed: %s", exc)


class HtmlPage:
    def __init__(self, navigator: "HtmlNavigator") -> None:
        self._nav = navigator
        self._doc: Optional[HTMLParser] = None
        self._url: Optional[str] = None

    def load(self, url: str, wait_until: str = NETWORK_IDLE) -> None:
        html = self._nav.read(url)
        self._doc = HTMLParser(html)
        self._url = url

    def _document(self) -> HTMLParser:
        if self._doc is None:
            raise NavigationError("No document loaded")
        return self._doc

    def find_attribute(self, selector: str, attr_name: str, timeout_ms: int) -> Optional[str]:
        # Static documents never change, so there is nothing to wait for.
        node = self._document().css_first(selector)
        if node is None:
            return None
        return node.attributes.get(attr_name)

    def all_anchors(self) -> List[str]:
        out: List[str] = []
        for node in self._document().css("a"):
            href = (node.attributes.get("href") or "").strip()
            if href:
                out.append(urljoin(self._url or "", href))
        return out

    def settle(self, delay_ms: int) -> None:
        return None


class HtmlNavigator:
    """Serves pre-rendered HTML instead of driving a browser.

    Lookup order for a URL: the ``pages`` map, then ``file://`` or a local path,
    then a plain HTTP GET (no JavaScript is executed).
    """

    def __init__(
        self,
        pages: Optional[Dict[str, str]] = None,
        *,
        timeout: float = 12.0,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.pages = dict(pages or {})
        self.timeout = float(timeout)
        self.headers = headers or {"User-Agent": "WalletSync-Crawler/0.1"}

    @contextmanager
    def session(self) -> Iterator[HtmlPage]:
        yield HtmlPage(self)

    def read(self, url: str) -> str:
        if url in self.pages:
            return self.pages[url]
        parsed = urlparse(url)
        if parsed.scheme == "file" or (not parsed.scheme and os.path.isfile(url)):
            path = parsed.path if parsed.scheme == "file" else url
            try:
                with open(path, "r", encoding="utf-8") as f:
                    return f.read()
            except OSError as exc:
                raise NavigationError(f"Failed to read {url}: {exc}") from exc
        if parsed.scheme in ("http", "https"):
            try:
                with httpx.Client(timeout=self.timeout, headers=self.headers, follow_redirects=True) as client:
                    r = client.get(url)
                    r.raise_for_status()
                    return r.text
            except httpx.HTTPError as exc:
                raise NavigationError(f"Failed to load {url}: {exc}") from exc
        raise NavigationError(f"No page available for {url}")
