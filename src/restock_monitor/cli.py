from __future__ import annotations

import argparse
import logging
import os
import sys
from functools import partial
from pathlib import Path

from .engine import DEFAULT_COOLDOWN_SECONDS, StockEngine
from .errors import ConfigError, FatalError
from .logutil import setup_logging
from .monitor import run_monitor
from .notifier import build_notifier
from .probe import ProbeTimeouts
from .profiles import load_profiles, resolve_profiles
from .screenshots import ScreenshotSink
from .state import load_state, save_state
from .targets import load_targets


logger = logging.getLogger("restock_monitor")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="restock-monitor")
    parser.add_argument("--targets", default=os.getenv("TARGETS_PATH", "urls.csv"))
    parser.add_argument("--state", default=os.getenv("STATE_PATH", "instock.csv"))
    parser.add_argument(
        "--profiles",
        default=os.getenv("PROFILES_PATH", ""),
        help="JSON list of site quirk profiles. Defaults to the built-in table.",
    )
    parser.add_argument("--screenshots", default=os.getenv("SCREENSHOT_DIR", "screenshots"))
    parser.add_argument("--log-file", default=os.getenv("LOG_FILE", os.path.join("logs", "logfile.txt")))
    parser.add_argument("--debug-file", default=os.getenv("DEBUG_LOG_FILE", os.path.join("logs", "debug.txt")))
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "INFO"))
    parser.add_argument(
        "--cooldown-seconds",
        type=float,
        default=float(os.getenv("COOLDOWN_SECONDS", str(DEFAULT_COOLDOWN_SECONDS))),
    )
    parser.add_argument("--presence-timeout", type=float, default=float(os.getenv("PRESENCE_TIMEOUT_SECONDS", "30")))
    parser.add_argument("--phrase-timeout", type=float, default=float(os.getenv("PHRASE_TIMEOUT_SECONDS", "5")))
    parser.add_argument(
        "--network-idle-timeout",
        type=float,
        default=float(os.getenv("NETWORK_IDLE_TIMEOUT_SECONDS", "60")),
    )
    parser.add_argument("--max-workers", type=int, default=int(os.getenv("MAX_WORKERS", "1")))
    parser.add_argument("--prober", choices=("browser", "static"), default=os.getenv("PROBER", "browser"))
    parser.add_argument("--notifier", choices=("telegram", "webhook"), default=os.getenv("NOTIFIER", "telegram"))
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log notifications instead of sending them.",
    )
    parser.add_argument(
        "--init-state",
        action="store_true",
        help="Start with an empty alert state when the state file does not exist yet.",
    )
    parser.add_argument("--headed", action="store_true", help="Show the browser window.")
    return parser


def _prober_factory(args: argparse.Namespace, timeouts: ProbeTimeouts):
    if args.prober == "static":
        from .static_page import StaticProber

        proxy_url = os.getenv("PROXY_URL", "").strip() or None
        return partial(StaticProber, timeout_seconds=timeouts.presence, proxy_url=proxy_url)
    if args.prober == "browser":
        from .browser import BrowserProber

        return partial(BrowserProber, headless=not args.headed)
    raise ConfigError(f"unknown prober {args.prober!r}")


def run(args: argparse.Namespace) -> int:
    if args.max_workers < 1:
        raise ConfigError("--max-workers must be >= 1")
    if args.cooldown_seconds < 0:
        raise ConfigError("--cooldown-seconds must be >= 0")

    targets = load_targets(Path(args.targets))
    profiles = resolve_profiles(targets, load_profiles(Path(args.profiles) if args.profiles else None))
    store = load_state(Path(args.state), allow_missing=args.init_state)

    notifier = build_notifier(args.notifier, dry_run=args.dry_run)
    notifier.verify()

    timeouts = ProbeTimeouts(
        presence=args.presence_timeout,
        phrase=args.phrase_timeout,
        network_idle=args.network_idle_timeout,
        in_stock=args.phrase_timeout,
    )
    engine = StockEngine(
        store=store,
        notifier=notifier,
        profiles=profiles,
        screenshots=ScreenshotSink(Path(args.screenshots) if args.screenshots else None, timeout=timeouts.screenshot),
        timeouts=timeouts,
        cooldown_seconds=args.cooldown_seconds,
    )

    run_monitor(
        targets=targets,
        engine=engine,
        prober_factory=_prober_factory(args, timeouts),
        max_workers=args.max_workers,
    )
    save_state(Path(args.state), store)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        setup_logging(
            level=args.log_level,
            log_file=args.log_file or None,
            debug_file=args.debug_file or None,
            console=os.getenv("MONITOR_LOG", "1").strip() != "0",
        )
    except FatalError as e:
        print(f"[monitor] fatal: {e}", file=sys.stderr)
        return 1

    try:
        return run(args)
    except FatalError as e:
        logger.error("[monitor] fatal: %s", e)
        return 1
