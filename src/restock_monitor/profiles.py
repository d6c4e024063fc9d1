from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .errors import ConfigError
from .models import DEFAULT_PROFILE, SiteProfile, Target


# Retailers whose pages need extra care. Matched by substring against the target url.
DEFAULT_PROFILES = [
    # Renders an "available" intermediate state before the real stock widget loads.
    SiteProfile(match="microsoft.co", source="microsoft", wait_for_network_idle=True, debounce_threshold=4),
    SiteProfile(match="xbox.com", wait_for_network_idle=True),
]


def _profile_from_dict(raw: Any) -> SiteProfile:
    if not isinstance(raw, dict):
        raise ConfigError(f"profile entry must be an object, got {type(raw).__name__}")
    match = str(raw.get("match") or "").strip()
    if not match:
        raise ConfigError("profile entry is missing 'match'")
    source = raw.get("source")
    source = str(source).strip() if source else None
    try:
        threshold = int(raw.get("debounce_threshold") or 0)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid debounce_threshold for {match!r}") from e
    if threshold < 0:
        raise ConfigError(f"debounce_threshold must be >= 0 for {match!r}")
    if threshold > 0 and not source:
        # The counter needs a key; default to the match string itself.
        source = match
    return SiteProfile(
        match=match,
        source=source,
        wait_for_network_idle=bool(raw.get("wait_for_network_idle", False)),
        debounce_threshold=threshold,
    )


def load_profiles(path: Path | None) -> list[SiteProfile]:
    if path is None:
        return list(DEFAULT_PROFILES)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigError(f"cannot read profile table {path}: {e}") from e
    if not isinstance(data, list):
        raise ConfigError(f"profile table {path} must be a JSON list")
    return [_profile_from_dict(item) for item in data]


def resolve_profile(url: str, profiles: list[SiteProfile]) -> SiteProfile:
    url_l = url.lower()
    for profile in profiles:
        if profile.match.lower() in url_l:
            return profile
    return DEFAULT_PROFILE


def resolve_profiles(targets: list[Target], profiles: list[SiteProfile]) -> dict[str, SiteProfile]:
    return {t.url: resolve_profile(t.url, profiles) for t in targets}
