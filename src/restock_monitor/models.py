from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Target:
    url: str
    out_of_stock_phrase: str
    element_type: str
    phrase: str
    product_label: str
    in_stock_phrase: str = ""

    @property
    def has_presence_check(self) -> bool:
        return bool(self.element_type or self.phrase)


class ProbeOutcome(str, Enum):
    ELEMENT_TIMEOUT = "element_timeout"
    OTHER_ERROR = "other_error"
    OUT_OF_STOCK_CONFIRMED = "out_of_stock_confirmed"
    POSSIBLY_IN_STOCK = "possibly_in_stock"


@dataclass(frozen=True)
class SiteProfile:
    match: str = ""
    source: str | None = None
    wait_for_network_idle: bool = False
    debounce_threshold: int = 0

    @property
    def is_flaky(self) -> bool:
        return bool(self.source) and self.debounce_threshold > 0


DEFAULT_PROFILE = SiteProfile()


class Decision(str, Enum):
    SKIP = "skip"
    CLEAR = "clear"
    REFRESH = "refresh"
    NOOP = "noop"
    FALSE_POSITIVE = "false_positive"
    DEBOUNCE = "debounce"
    FIRE = "fire"
    ERROR = "error"


@dataclass(frozen=True)
class TargetResult:
    url: str
    decision: Decision
    outcome: ProbeOutcome | None
    in_stock: bool
    duration_ms: int
    notified: bool | None = None
    error: str | None = None


@dataclass(frozen=True)
class RunSummary:
    started_at: str
    finished_at: str
    targets: int
    fired: int
    cleared: int
    refreshed: int
    skipped: int
    suppressed: int
    errors: int
    notify_failures: int
    any_in_stock: bool
