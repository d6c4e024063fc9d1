from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

from .errors import StateStoreError


logger = logging.getLogger(__name__)

# Source counters share the flat file with url records; urls never start with this.
COUNTER_PREFIX = "counter:"


class AlertStateStore:
    """Last-alert timestamps per target url plus debounce counters per source.

    All access goes through the lock so targets may be checked from worker
    threads while the final flush iterates both tables.
    """

    def __init__(self, alerts: dict[str, int] | None = None, counters: dict[str, int] | None = None) -> None:
        self._alerts: dict[str, int] = dict(alerts or {})
        self._counters: dict[str, int] = dict(counters or {})
        self._lock = threading.Lock()

    def alerted_at(self, url: str) -> int | None:
        with self._lock:
            return self._alerts.get(url)

    def set_alert(self, url: str, ts_ns: int) -> None:
        with self._lock:
            self._alerts[url] = int(ts_ns)

    def clear_alert(self, url: str) -> None:
        with self._lock:
            self._alerts.pop(url, None)

    def counter(self, source: str) -> int:
        with self._lock:
            return self._counters.get(source, 0)

    def reset_counter(self, source: str) -> None:
        with self._lock:
            self._counters[source] = 0

    def bump_counter(self, source: str, threshold: int) -> tuple[bool, int]:
        """Count one more qualifying hit for `source`.

        Returns (crossed, count). When the threshold is reached the counter is
        reset to zero in the same critical section.
        """
        with self._lock:
            count = self._counters.get(source, 0) + 1
            if count >= threshold:
                self._counters[source] = 0
                return True, count
            self._counters[source] = count
            return False, count

    def active_alerts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._alerts)

    def counters(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counters)

    def to_lines(self) -> list[str]:
        with self._lock:
            lines = [f"{url},{ts}" for url, ts in sorted(self._alerts.items())]
            lines += [f"{COUNTER_PREFIX}{src},{n}" for src, n in sorted(self._counters.items()) if n > 0]
        return lines


def parse_state_lines(lines) -> AlertStateStore:
    alerts: dict[str, int] = {}
    counters: dict[str, int] = {}
    for lineno, line in enumerate(lines, start=1):
        raw = line.strip()
        if not raw:
            continue
        fields = raw.split(",")
        if len(fields) < 2:
            logger.warning("[state] line %d has a single field; ignoring the rest of the file", lineno)
            break
        key, value = fields[0].strip(), fields[1].strip()
        try:
            number = int(value)
        except ValueError:
            logger.warning("[state] line %d has a non-numeric value %r; skipped", lineno, value)
            continue
        if key.startswith(COUNTER_PREFIX):
            source = key[len(COUNTER_PREFIX):]
            if source and number > 0:
                counters[source] = number
            continue
        if key:
            alerts[key] = number
    return AlertStateStore(alerts, counters)


def load_state(path: Path, *, allow_missing: bool = False) -> AlertStateStore:
    """Read the alert state. A missing file is fatal unless `allow_missing` (first run)."""
    if not path.exists():
        if not allow_missing:
            raise StateStoreError(f"alert state {path} does not exist (pass --init-state on the first run)")
        logger.info("[state] %s does not exist; starting with an empty store", path)
        return AlertStateStore()
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise StateStoreError(f"cannot read alert state {path}: {e}") from e
    store = parse_state_lines(text.splitlines())
    logger.info("[state] loaded active_alerts=%d counters=%d", len(store.active_alerts()), len(store.counters()))
    return store


def save_state(path: Path, store: AlertStateStore) -> None:
    """Replace the state file wholesale; inactive entries are simply not written."""
    lines = store.to_lines()
    tmp = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
        os.replace(tmp, path)
    except OSError as e:
        raise StateStoreError(f"cannot write alert state {path}: {e}") from e
    logger.info("[state] saved %d records to %s", len(lines), path)
