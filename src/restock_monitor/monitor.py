from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable

from .engine import StockEngine
from .models import Decision, ProbeOutcome, RunSummary, Target, TargetResult
from .probe import Prober
from .timeutil import utc_now_iso


logger = logging.getLogger(__name__)

IN_STOCK_SUMMARY = "At least one item in stock"
OUT_OF_STOCK_SUMMARY = "Still out of stock"

_PROBE_FAILURES = (ProbeOutcome.ELEMENT_TIMEOUT, ProbeOutcome.OTHER_ERROR)


def _check_one(engine: StockEngine, prober: Prober, target: Target) -> TargetResult:
    # Per-target failures stop here; the cycle always moves on to the next target.
    try:
        return engine.check_target(target, prober)
    except Exception as e:
        logger.exception("[monitor] unexpected error url=%s", target.url)
        return TargetResult(
            url=target.url,
            decision=Decision.ERROR,
            outcome=None,
            in_stock=False,
            duration_ms=0,
            error=f"{type(e).__name__}: {e}",
        )


def _run_chunk(engine: StockEngine, prober_factory: Callable[[], Prober], chunk: list[Target]) -> list[TargetResult]:
    with prober_factory() as prober:
        return [_check_one(engine, prober, t) for t in chunk]


def _chunks(targets: list[Target], n: int) -> list[list[Target]]:
    n = max(1, min(n, len(targets)))
    return [targets[i::n] for i in range(n)]


def _log_result(res: TargetResult, done: int, total: int) -> None:
    logger.info(
        "[monitor] progress=%d/%d url=%s decision=%s outcome=%s %dms",
        done,
        total,
        res.url,
        res.decision.value,
        res.outcome.value if res.outcome else "-",
        res.duration_ms,
    )


def summarize(results: list[TargetResult], *, started_at: str, finished_at: str) -> RunSummary:
    def count(*decisions: Decision) -> int:
        return sum(1 for r in results if r.decision in decisions)

    return RunSummary(
        started_at=started_at,
        finished_at=finished_at,
        targets=len(results),
        fired=count(Decision.FIRE),
        cleared=count(Decision.CLEAR),
        refreshed=count(Decision.REFRESH),
        skipped=count(Decision.SKIP),
        suppressed=count(Decision.FALSE_POSITIVE, Decision.DEBOUNCE),
        errors=count(Decision.ERROR) + sum(1 for r in results if r.outcome in _PROBE_FAILURES),
        notify_failures=sum(1 for r in results if r.notified is False),
        any_in_stock=any(r.in_stock for r in results),
    )


def run_monitor(
    *,
    targets: list[Target],
    engine: StockEngine,
    prober_factory: Callable[[], Prober],
    max_workers: int = 1,
) -> tuple[list[TargetResult], RunSummary]:
    """Process every target once.

    With more than one worker the targets are split round-robin; each worker
    owns a prober for its whole share since browser handles are thread-bound.
    """
    started_at = utc_now_iso()
    total = len(targets)
    logger.info("[monitor] start targets=%d workers=%d", total, max_workers)

    results: list[TargetResult] = []
    if max_workers <= 1 or total <= 1:
        if targets:
            with prober_factory() as prober:
                for target in targets:
                    res = _check_one(engine, prober, target)
                    results.append(res)
                    _log_result(res, len(results), total)
    else:
        chunks = _chunks(targets, max_workers)
        with ThreadPoolExecutor(max_workers=len(chunks)) as ex:
            futures = [ex.submit(_run_chunk, engine, prober_factory, chunk) for chunk in chunks]
            for fut in as_completed(futures):
                for res in fut.result():
                    results.append(res)
                    _log_result(res, len(results), total)

    summary = summarize(results, started_at=started_at, finished_at=utc_now_iso())
    logger.info(
        "[monitor] done targets=%d fired=%d cleared=%d refreshed=%d skipped=%d suppressed=%d errors=%d notify_failures=%d",
        summary.targets,
        summary.fired,
        summary.cleared,
        summary.refreshed,
        summary.skipped,
        summary.suppressed,
        summary.errors,
        summary.notify_failures,
    )
    logger.info(IN_STOCK_SUMMARY if summary.any_in_stock else OUT_OF_STOCK_SUMMARY)
    return results, summary
