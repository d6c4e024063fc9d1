from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable

from .errors import ProbeError
from .logutil import debug_stream
from .models import DEFAULT_PROFILE, Decision, ProbeOutcome, SiteProfile, Target, TargetResult
from .notifier import Notifier
from .probe import Page, ProbeTimeouts, Prober, confirm_in_stock, probe_target
from .screenshots import CANT_LOAD, IN_STOCK, ScreenshotSink
from .state import AlertStateStore
from .timeutil import clock_label, now_ns, seconds_to_ns


logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_SECONDS = 300.0


def format_alert_message(target: Target, ts_ns: int) -> str:
    label = target.product_label or target.url
    return f"{clock_label(ts_ns)} - {label} available at {target.url}"


class StockEngine:
    """Per-target restock state machine.

    One call to `check_target` is one monitoring cycle for one target: it
    reads the stored alert, probes the page when needed, and applies the
    resulting transition to the store. A notification is sent only on the
    transition into stock, and the stored alert is never rolled back when
    delivery fails.
    """

    def __init__(
        self,
        *,
        store: AlertStateStore,
        notifier: Notifier,
        profiles: dict[str, SiteProfile] | None = None,
        screenshots: ScreenshotSink | None = None,
        timeouts: ProbeTimeouts | None = None,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], int] = now_ns,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._profiles = profiles or {}
        self._screenshots = screenshots or ScreenshotSink(None)
        self._timeouts = timeouts or ProbeTimeouts()
        self._cooldown_ns = seconds_to_ns(cooldown_seconds)
        self._clock = clock

    def profile_for(self, target: Target) -> SiteProfile:
        return self._profiles.get(target.url, DEFAULT_PROFILE)

    def in_cooldown(self, alerted_at: int | None, now: int) -> bool:
        # An alert exactly cooldown old is expired.
        return alerted_at is not None and (now - alerted_at) < self._cooldown_ns

    def check_target(self, target: Target, prober: Prober) -> TargetResult:
        started = time.perf_counter()
        started_at = datetime.now(timezone.utc)
        now = self._clock()
        alerted_at = self._store.alerted_at(target.url)

        def result(decision: Decision, outcome: ProbeOutcome | None, *, in_stock: bool = False, notified: bool | None = None, error: str | None = None) -> TargetResult:
            return TargetResult(
                url=target.url,
                decision=decision,
                outcome=outcome,
                in_stock=in_stock,
                duration_ms=int((time.perf_counter() - started) * 1000),
                notified=notified,
                error=error,
            )

        if self.in_cooldown(alerted_at, now):
            logger.info("[engine] skip url=%s alerted %.1fs ago", target.url, (now - alerted_at) / 1e9)
            return result(Decision.SKIP, None, in_stock=True)

        try:
            page = prober.new_page()
        except ProbeError as e:
            logger.warning("[engine] cannot open page url=%s :: %s", target.url, e)
            return result(Decision.NOOP, ProbeOutcome.OTHER_ERROR, error=str(e))

        try:
            profile = self.profile_for(target)
            outcome = probe_target(
                page,
                target,
                profile,
                self._timeouts,
                on_timeout=lambda p: self._screenshots.capture(p, CANT_LOAD, now),
            )
            if outcome in (ProbeOutcome.ELEMENT_TIMEOUT, ProbeOutcome.OTHER_ERROR):
                return result(Decision.NOOP, outcome)

            if outcome is ProbeOutcome.OUT_OF_STOCK_CONFIRMED:
                if profile.is_flaky:
                    self._store.reset_counter(profile.source)
                if alerted_at is not None:
                    self._store.clear_alert(target.url)
                    logger.info("[engine] clear url=%s out of stock again", target.url)
                    return result(Decision.CLEAR, outcome)
                return result(Decision.NOOP, outcome)

            if not confirm_in_stock(page, target, self._timeouts):
                debug_stream().debug("%s:%s took %.3fs", started_at.isoformat(), target.url, time.perf_counter() - started)
                if profile.is_flaky:
                    self._store.reset_counter(profile.source)
                self._store.clear_alert(target.url)
                logger.info("[engine] false positive url=%s in-stock phrase missing", target.url)
                return result(Decision.FALSE_POSITIVE, outcome)

            if alerted_at is not None:
                self._store.set_alert(target.url, now)
                logger.info("[engine] refresh url=%s still in stock", target.url)
                return result(Decision.REFRESH, outcome, in_stock=True)

            if profile.is_flaky:
                crossed, count = self._store.bump_counter(profile.source, profile.debounce_threshold)
                logger.info("[engine] %s hit count=%d/%d url=%s", profile.source, count, profile.debounce_threshold, target.url)
                if not crossed:
                    return result(Decision.DEBOUNCE, outcome)

            notified = self._fire(target, page, now)
            return result(Decision.FIRE, outcome, in_stock=True, notified=notified)
        finally:
            page.close()

    def _fire(self, target: Target, page: Page, now: int) -> bool:
        self._store.set_alert(target.url, now)
        logger.info("[engine] fire url=%s label=%s", target.url, target.product_label)
        self._screenshots.capture(page, IN_STOCK, now)

        message = format_alert_message(target, now)
        try:
            delivered = self._notifier.send(message)
        except Exception:
            logger.exception("[notify] notifier raised url=%s", target.url)
            delivered = False
        if not delivered:
            # The stored alert stands: a lost message beats a duplicate one.
            logger.error("[notify] delivery failed; alert kept for manual follow-up message=%r", message)
        return delivered
