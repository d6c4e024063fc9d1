from __future__ import annotations

import re
from pathlib import Path

from bs4 import BeautifulSoup

from .errors import ProbeError, ProbeTimeout
from .http_client import HttpClient


class StaticPage:
    """A page fetched once over plain HTTP; nothing renders, so waits resolve immediately."""

    def __init__(self, client: HttpClient) -> None:
        self._client = client
        self._html: str | None = None
        self._soup: BeautifulSoup | None = None

    def _require_soup(self) -> BeautifulSoup:
        if self._soup is None:
            raise ProbeError("page has not been loaded")
        return self._soup

    def goto(self, url: str, *, timeout: float) -> None:
        # The client's own timeout bounds each request.
        fetch = self._client.fetch_text(url)
        if not fetch.ok or fetch.text is None:
            if fetch.timed_out:
                raise ProbeTimeout(fetch.error or "request timed out")
            raise ProbeError(fetch.error or "fetch failed")
        self._html = fetch.text
        self._soup = BeautifulSoup(fetch.text, "lxml")

    def wait_for_element(self, selector: str, pattern: str, *, timeout: float) -> None:
        soup = self._require_soup()
        try:
            regex = re.compile(pattern) if pattern else None
        except re.error as e:
            raise ProbeError(f"invalid presence pattern {pattern!r}: {e}") from e
        try:
            elements = soup.select(selector or "*")
        except Exception as e:
            raise ProbeError(f"invalid selector {selector!r}: {e}") from e
        for el in elements:
            if regex is None or regex.search(el.get_text(" ", strip=True)):
                return
        raise ProbeTimeout(f"element {selector!r}/{pattern!r} not present in static page")

    def wait_for_network_idle(self, *, timeout: float) -> None:
        self._require_soup()

    def contains_text(self, phrase: str, *, timeout: float) -> bool:
        return phrase in self._require_soup().get_text()

    def screenshot(self, path: Path, *, timeout: float) -> Path:
        # No renderer: keep the fetched markup as the diagnostic artifact.
        out = path.with_suffix(".html")
        try:
            out.write_text(self._html or "", encoding="utf-8")
        except OSError as e:
            raise ProbeError(f"cannot write page snapshot {out}: {e}") from e
        return out

    def close(self) -> None:
        self._html = None
        self._soup = None


class StaticProber:
    def __init__(self, *, timeout_seconds: float, proxy_url: str | None = None, max_retries: int = 2) -> None:
        self._client = HttpClient(timeout_seconds=timeout_seconds, proxy_url=proxy_url, max_retries=max_retries)

    def __enter__(self) -> StaticProber:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def new_page(self) -> StaticPage:
        return StaticPage(self._client)

    def close(self) -> None:
        self._client.close()
