# dealbot/media.py
"""
Product image lookup for an outgoing deal: fetch the first product page in the
message and pull its og:image (or Amazon's #landingImage). Best effort only.
"""

from __future__ import annotations

from typing import Optional

from bs4 import BeautifulSoup
import requests
from loguru import logger

from dealbot.scanner import URL_RE

USER_AGENT = "Mozilla/5.0"
PAGE_TIMEOUT_SEC = 8
IMAGE_TIMEOUT_SEC = 10


def first_url(text: str) -> Optional[str]:
    m = URL_RE.search(text or "")
    return m.group(0) if m else None


def extract_image_url(page_html: str) -> Optional[str]:
    soup = BeautifulSoup(page_html or "", "html.parser")
    src = None
    meta = soup.find("meta", property="og:image")
    if meta:
        src = meta.get("content")
    if not src:
        img = soup.find(id="landingImage")
        src = img.get("src") if img else None
    return (src or "").strip() or None


def get_product_image(text: str, *, timeout: float = PAGE_TIMEOUT_SEC) -> Optional[str]:
    url = first_url(text)
    if not url:
        return None
    try:
        r = requests.get(url, headers={"User-Agent": USER_AGENT}, timeout=timeout)
        r.raise_for_status()
    except requests.RequestException as e:
        logger.error("[Media] ❌ image scrape failed for {}: {}", url, e)
        return None
    img = extract_image_url(r.text)
    logger.info("[Media] image for {}: {}", url, img)
    return img


def download_image(image_url: str, *, timeout: float = IMAGE_TIMEOUT_SEC) -> Optional[bytes]:
    try:
        r = requests.get(image_url, headers={"User-Agent": USER_AGENT}, timeout=timeout)
        r.raise_for_status()
    except requests.RequestException as e:
        logger.error("[Media] ❌ image download failed for {}: {}", image_url, e)
        return None
    return r.content
