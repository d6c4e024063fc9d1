from __future__ import annotations

import logging
from pathlib import Path

from .errors import ProbeError
from .probe import Page


logger = logging.getLogger(__name__)

CANT_LOAD = "cantload"
IN_STOCK = "instock"


class ScreenshotSink:
    """Writes `<root>/<kind>/<ns>.png`; a failed capture is logged, never raised."""

    def __init__(self, root: Path | None, *, timeout: float = 10.0) -> None:
        self._root = root
        self._timeout = timeout

    def path_for(self, kind: str, ts_ns: int) -> Path | None:
        if self._root is None:
            return None
        return self._root / kind / f"{ts_ns}.png"

    def capture(self, page: Page, kind: str, ts_ns: int) -> Path | None:
        path = self.path_for(kind, ts_ns)
        if path is None:
            return None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            written = page.screenshot(path, timeout=self._timeout)
        except (OSError, ProbeError) as e:
            logger.warning("[screenshot] %s capture failed: %s", kind, e)
            return None
        logger.info("[screenshot] %s saved %s", kind, written)
        return written
