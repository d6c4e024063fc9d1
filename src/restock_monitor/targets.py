from __future__ import annotations

import logging
import re
from pathlib import Path

from .errors import TargetListError
from .models import Target


logger = logging.getLogger(__name__)

FIELD_COUNT = 6

# Presence patterns also run as JavaScript RegExp inside the browser, so
# Python-only syntax is refused up front.
_PYTHON_ONLY_SYNTAX = (
    (re.compile(r"\(\?P[<=>]"), "named group (?P...)"),
    (re.compile(r"\(\?#"), "comment group (?#...)"),
    (re.compile(r"(?<!\\)(?:\\\\)*\\[AZ]"), "anchor \\A or \\Z"),
    (re.compile(r"\(\?[aiLmsux]+\)"), "inline flag group"),
)


def presence_pattern_error(pattern: str) -> str | None:
    """Return why `pattern` cannot be used as a presence pattern, or None."""
    if not pattern:
        return None
    try:
        re.compile(pattern)
    except re.error as e:
        return f"invalid regex: {e}"
    for check, label in _PYTHON_ONLY_SYNTAX:
        if check.search(pattern):
            return f"{label} is not supported by the browser"
    return None


def parse_target_line(line: str) -> Target | None:
    """Parse one `url,outOfStockPhrase,elementType,phrase,productLabel,inStockPhrase` line.

    Short lines are padded with empty trailing fields; blank lines and `#`
    comments yield None.
    """
    raw = line.strip()
    if not raw or raw.startswith("#"):
        return None
    fields = [f.strip() for f in raw.split(",")]
    if len(fields) < FIELD_COUNT:
        fields += [""] * (FIELD_COUNT - len(fields))
    url = fields[0]
    if not url:
        return None
    return Target(
        url=url,
        out_of_stock_phrase=fields[1],
        element_type=fields[2],
        phrase=fields[3],
        product_label=fields[4],
        in_stock_phrase=fields[5],
    )


def parse_targets(lines) -> list[Target]:
    targets: list[Target] = []
    seen: set[str] = set()
    for lineno, line in enumerate(lines, start=1):
        target = parse_target_line(line)
        if target is None:
            if line.strip() and not line.strip().startswith("#"):
                logger.warning("[targets] line %d has no url; skipped", lineno)
            continue
        problem = presence_pattern_error(target.phrase)
        if problem:
            logger.warning("[targets] line %d has an unusable presence pattern %r (%s); skipped", lineno, target.phrase, problem)
            continue
        if target.url in seen:
            logger.warning("[targets] duplicate url on line %d: %s", lineno, target.url)
            continue
        seen.add(target.url)
        targets.append(target)
    return targets


def load_targets(path: Path) -> list[Target]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise TargetListError(f"cannot read target list {path}: {e}") from e
    targets = parse_targets(text.splitlines())
    logger.info("[targets] loaded %d targets from %s", len(targets), path)
    return targets
