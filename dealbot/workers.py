# dealbot/workers.py
"""
RQ jobs for the deal forwarder.

convert_message_job: one inbound message end to end
  promo -> product image lookup -> link conversion -> hand-off to the transport
The worker runs jobs one at a time, so conversions never overlap.
"""

from __future__ import annotations

import os
from dataclasses import replace
from typing import Any, Dict, Optional

from loguru import logger

from dealbot.config import Settings, get_settings
from dealbot.converter import LinkConverter
from dealbot.integrations import forward_message
from dealbot.media import get_product_image
from dealbot.promo import add_promo

_converter: Optional[LinkConverter] = None
_api_converter: Optional[LinkConverter] = None


def get_converter(settings: Optional[Settings] = None) -> LinkConverter:
    """The process's converter; mappings are loaded once, on first use."""
    global _converter
    if _converter is None:
        _converter = LinkConverter(settings or get_settings())
    return _converter


def get_api_converter(settings: Optional[Settings] = None) -> LinkConverter:
    """
    Converter for synchronous POST /convert calls in the API process.

    MappingStore.save() rewrites its whole file from memory, so the API and the
    RQ worker must never share one: the API writes API_URL_MAPPINGS_PATH and
    the worker owns URL_MAPPINGS_PATH.
    """
    global _api_converter
    if _api_converter is None:
        settings = settings or get_settings()
        if os.path.abspath(settings.api_mappings_path) == os.path.abspath(settings.mappings_path):
            raise RuntimeError("API_URL_MAPPINGS_PATH must differ from URL_MAPPINGS_PATH")
        _api_converter = LinkConverter(replace(settings, mappings_path=settings.api_mappings_path))
    return _api_converter


def convert_message_job(
    text_val: str,
    *,
    source: Optional[str] = None,
    forward: bool = True,
) -> Dict[str, Any]:
    settings = get_settings()
    original = str(text_val or "")
    logger.info("[Worker][Start] source={} text_len={}", source, len(original))

    text_out = add_promo(original) if settings.promo_enabled else original

    # Scrape the source link, not the rewritten one: synthesized redirects don't resolve.
    image_url = get_product_image(original) if settings.image_lookup_enabled else None

    result = get_converter(settings).convert_all(text_out)

    delivered = 0
    if forward and settings.forward_webhook_urls:
        delivered = forward_message(
            result.text,
            settings.forward_webhook_urls,
            image_url=image_url,
            min_delay_ms=settings.forward_min_delay_ms,
        )
    elif forward:
        logger.warning("[Worker] FORWARD_WEBHOOK_URLS not set; converted text not delivered")

    logger.info("[Worker][Done] source={} converted={} delivered={}", source, result.stats.total, delivered)
    return {
        "text": result.text,
        "image_url": image_url,
        "stats": result.stats.as_dict(),
        "delivered": delivered,
    }
