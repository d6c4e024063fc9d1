from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol

from .errors import ProbeError, ProbeTimeout
from .models import ProbeOutcome, SiteProfile, Target


logger = logging.getLogger(__name__)


class Page(Protocol):
    """A rendered page handle.

    Every wait is bounded by the timeout passed in. Implementations raise
    ProbeTimeout when the wait runs out and ProbeError for anything else.
    """

    def goto(self, url: str, *, timeout: float) -> None: ...

    def wait_for_element(self, selector: str, pattern: str, *, timeout: float) -> None: ...

    def wait_for_network_idle(self, *, timeout: float) -> None: ...

    def contains_text(self, phrase: str, *, timeout: float) -> bool: ...

    def screenshot(self, path: Path, *, timeout: float) -> Path: ...

    def close(self) -> None: ...


class Prober(Protocol):
    """Owns the pages for one worker; entered and closed on the same thread."""

    def __enter__(self) -> Prober: ...

    def __exit__(self, *exc) -> None: ...

    def new_page(self) -> Page: ...

    def close(self) -> None: ...


@dataclass(frozen=True)
class ProbeTimeouts:
    presence: float = 30.0
    phrase: float = 5.0
    network_idle: float = 60.0
    in_stock: float = 5.0
    screenshot: float = 10.0
    navigation: float = 60.0


def probe_target(
    page: Page,
    target: Target,
    profile: SiteProfile,
    timeouts: ProbeTimeouts,
    *,
    on_timeout: Callable[[Page], None] | None = None,
) -> ProbeOutcome:
    """Run the bounded checks for one target and classify the result."""
    try:
        page.goto(target.url, timeout=timeouts.navigation)
        if target.has_presence_check:
            page.wait_for_element(target.element_type, target.phrase, timeout=timeouts.presence)
    except ProbeTimeout:
        logger.warning("[probe] unable to resolve webpage %s", target.url)
        if on_timeout is not None:
            on_timeout(page)
        return ProbeOutcome.ELEMENT_TIMEOUT
    except ProbeError as e:
        logger.warning("[probe] error url=%s :: %s", target.url, e)
        return ProbeOutcome.OTHER_ERROR

    if profile.wait_for_network_idle:
        try:
            page.wait_for_network_idle(timeout=timeouts.network_idle)
        except ProbeError as e:
            logger.warning("[probe] unstable url=%s :: %s", target.url, e)
            return ProbeOutcome.OTHER_ERROR

    if not target.out_of_stock_phrase:
        return ProbeOutcome.POSSIBLY_IN_STOCK
    try:
        found = page.contains_text(target.out_of_stock_phrase, timeout=timeouts.phrase)
    except ProbeTimeout:
        found = False
    except ProbeError as e:
        logger.warning("[probe] phrase search failed url=%s :: %s", target.url, e)
        return ProbeOutcome.OTHER_ERROR
    return ProbeOutcome.OUT_OF_STOCK_CONFIRMED if found else ProbeOutcome.POSSIBLY_IN_STOCK


def confirm_in_stock(page: Page, target: Target, timeouts: ProbeTimeouts) -> bool:
    """Secondary check: with no in-stock phrase configured there is nothing to refute."""
    if not target.in_stock_phrase:
        return True
    try:
        return page.contains_text(target.in_stock_phrase, timeout=timeouts.in_stock)
    except ProbeError as e:
        logger.info("[probe] in-stock phrase check failed url=%s :: %s", target.url, e)
        return False
