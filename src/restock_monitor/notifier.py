from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Protocol

import requests

from .errors import ConfigError, NotifierAuthError


logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def verify(self) -> None: ...

    def send(self, message: str) -> bool: ...


@dataclass(frozen=True)
class TelegramConfig:
    bot_token: str
    chat_id: str


def load_telegram_config() -> TelegramConfig | None:
    token = os.getenv("TELEGRAM_BOT_TOKEN", "").strip()
    chat_id = os.getenv("TELEGRAM_CHAT_ID", "").strip()
    if not token or not chat_id:
        return None
    return TelegramConfig(bot_token=token, chat_id=chat_id)


def _parse_retry_after_seconds(resp: requests.Response) -> float | None:
    hdr = resp.headers.get("Retry-After")
    if hdr:
        try:
            return float(hdr)
        except ValueError:
            pass
    try:
        payload = resp.json()
    except ValueError:
        return None
    retry_after = (payload or {}).get("parameters", {}).get("retry_after")
    try:
        return float(retry_after)
    except (TypeError, ValueError):
        return None


def _short_body(resp: requests.Response) -> str:
    body = (resp.text or "").strip().replace("\n", " ")
    if len(body) > 300:
        body = body[:300] + "..."
    return body


class TelegramNotifier:
    def __init__(self, cfg: TelegramConfig, *, timeout_seconds: float = 15.0) -> None:
        self._cfg = cfg
        self._timeout_seconds = timeout_seconds
        self._max_retries = int(os.getenv("TELEGRAM_MAX_RETRIES", "6"))
        self._base_delay_seconds = float(os.getenv("TELEGRAM_RETRY_BASE_SECONDS", "1.0"))
        self._min_interval_seconds = float(os.getenv("TELEGRAM_MIN_INTERVAL_SECONDS", "0.8"))
        self._last_send_at: float | None = None
        self._send_lock = threading.Lock()

    def _api_url(self, method: str) -> str:
        return f"https://api.telegram.org/bot{self._cfg.bot_token}/{method}"

    def verify(self) -> None:
        try:
            resp = requests.get(self._api_url("getMe"), timeout=(self._timeout_seconds, self._timeout_seconds))
        except requests.RequestException as e:
            raise NotifierAuthError(f"[telegram] credential check failed: {type(e).__name__}: {e}") from e
        if resp.status_code != 200:
            raise NotifierAuthError(f"[telegram] credential check failed: {resp.status_code} {_short_body(resp)}")
        try:
            ok = bool(resp.json().get("ok"))
        except ValueError:
            ok = False
        if not ok:
            raise NotifierAuthError("[telegram] credential check failed: getMe returned ok=false")
        logger.info("[telegram] credentials verified")

    def send(self, message: str) -> bool:
        # One message at a time so the min-interval pacing holds across workers.
        with self._send_lock:
            return self._send(message)

    def _send(self, message: str) -> bool:
        url = self._api_url("sendMessage")
        for attempt in range(self._max_retries + 1):
            if self._last_send_at is not None:
                remaining = self._min_interval_seconds - (time.perf_counter() - self._last_send_at)
                if remaining > 0:
                    time.sleep(remaining)

            try:
                resp = requests.post(
                    url,
                    data={
                        "chat_id": self._cfg.chat_id,
                        "text": message,
                        "disable_web_page_preview": "true",
                    },
                    timeout=(self._timeout_seconds, self._timeout_seconds),
                )
            except requests.RequestException as e:
                if attempt >= self._max_retries:
                    logger.warning("[telegram] send failed after retries: %s: %s", type(e).__name__, e)
                    return False
                time.sleep(self._base_delay_seconds * (2**attempt))
                continue
            finally:
                self._last_send_at = time.perf_counter()

            if resp.status_code == 429:
                retry_after = _parse_retry_after_seconds(resp) or (self._base_delay_seconds * (2**attempt))
                if attempt >= self._max_retries:
                    logger.warning("[telegram] rate limited (429) after retries; retry_after=%s", retry_after)
                    return False
                time.sleep(min(60.0, max(0.1, retry_after)))
                continue

            if 500 <= resp.status_code <= 599:
                if attempt >= self._max_retries:
                    logger.warning("[telegram] server error after retries: %s", resp.status_code)
                    return False
                time.sleep(self._base_delay_seconds * (2**attempt))
                continue

            if resp.status_code >= 400:
                logger.warning("[telegram] send failed: %s %s", resp.status_code, _short_body(resp))
                return False
            return True
        return False


class WebhookNotifier:
    """Posts `{"content": message}` to a chat webhook (Discord-compatible)."""

    def __init__(self, url: str, *, timeout_seconds: float = 15.0) -> None:
        self._url = url
        self._timeout_seconds = timeout_seconds

    def verify(self) -> None:
        try:
            resp = requests.get(self._url, timeout=(self._timeout_seconds, self._timeout_seconds))
        except requests.RequestException as e:
            raise NotifierAuthError(f"[webhook] credential check failed: {type(e).__name__}: {e}") from e
        if resp.status_code >= 400:
            raise NotifierAuthError(f"[webhook] credential check failed: {resp.status_code} {_short_body(resp)}")
        logger.info("[webhook] endpoint verified")

    def send(self, message: str) -> bool:
        try:
            resp = requests.post(self._url, json={"content": message}, timeout=(self._timeout_seconds, self._timeout_seconds))
        except requests.RequestException as e:
            logger.warning("[webhook] send failed: %s: %s", type(e).__name__, e)
            return False
        if resp.status_code >= 400:
            logger.warning("[webhook] send failed: %s %s", resp.status_code, _short_body(resp))
            return False
        return True


class DryRunNotifier:
    def verify(self) -> None:
        logger.info("[notify] dry run; notifications are logged only")

    def send(self, message: str) -> bool:
        logger.info("[notify] dry run message=%r", message)
        return True


def build_notifier(kind: str, *, dry_run: bool, timeout_seconds: float = 15.0) -> Notifier:
    if dry_run:
        return DryRunNotifier()
    if kind == "telegram":
        cfg = load_telegram_config()
        if cfg is None:
            raise NotifierAuthError("TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID must be set (or pass --dry-run)")
        return TelegramNotifier(cfg, timeout_seconds=timeout_seconds)
    if kind == "webhook":
        url = os.getenv("WEBHOOK_URL", "").strip()
        if not url:
            raise NotifierAuthError("WEBHOOK_URL must be set (or pass --dry-run)")
        return WebhookNotifier(url, timeout_seconds=timeout_seconds)
    raise ConfigError(f"unknown notifier {kind!r}")
