# dealbot/integrations.py
# --- Outbound hand-off to the messaging transport ------------------------------
from __future__ import annotations

import time
from typing import Callable, Iterable, Optional

import requests
from loguru import logger

FORWARD_TIMEOUT_SEC = 8

_last_sent_at = 0.0


def _rate_limited_delay(min_delay_ms: int, *, clock: Callable[[], float] = time.monotonic,
                        sleep: Callable[[float], None] = time.sleep) -> None:
    """Keep at least min_delay_ms between consecutive outbound posts."""
    global _last_sent_at
    if min_delay_ms > 0 and _last_sent_at:
        wait = (min_delay_ms / 1000.0) - (clock() - _last_sent_at)
        if wait > 0:
            sleep(wait)
    _last_sent_at = clock()


def send_outbound(webhook_url: str, text: str, *, image_url: Optional[str] = None) -> bool:
    """
    Post one converted message to a transport webhook. Returns True if accepted.
    """
    if not webhook_url or not (text or "").strip():
        return False

    payload = {
        "message": text,
        "image_url": image_url,
        "parse_mode": "html",
    }
    try:
        r = requests.post(webhook_url, json=payload, timeout=FORWARD_TIMEOUT_SEC)
    except requests.RequestException as e:
        logger.error("[Forward] ❌ post to {} failed: {}", webhook_url, e)
        return False
    if not r.ok:
        logger.error("[Forward] ❌ {} answered {}", webhook_url, r.status_code)
        return False
    logger.info("[Forward] ✅ sent to {} (image={})", webhook_url, bool(image_url))
    return True


def forward_message(
    text: str,
    webhook_urls: Iterable[str],
    *,
    image_url: Optional[str] = None,
    min_delay_ms: int = 2000,
) -> int:
    """Send to every configured target in turn; returns how many accepted it."""
    delivered = 0
    for url in webhook_urls:
        _rate_limited_delay(min_delay_ms)
        if send_outbound(url, text, image_url=image_url):
            delivered += 1
    return delivered
