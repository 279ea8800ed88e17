# dealbot/config.py
"""
Env-driven settings for the link converter and the services around it.

Affiliate identifiers are each optional: a missing one switches off that
network only. Nothing here is fatal except REDIS_URL, and only once a queue
is actually requested (see task_queue.get_queue).
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional, Tuple

from dotenv import load_dotenv
from loguru import logger

load_dotenv()

_TRUE = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off"}


# =========================
# ENV HELPERS
# =========================
def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()

def _env_opt(name: str) -> Optional[str]:
    v = _env_str(name)
    return v or None

def _env_bool(name: str, default: bool) -> bool:
    raw = _env_str(name).lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    return default

def _env_int(name: str, default: int) -> int:
    raw = _env_str(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("[Config] {}={!r} is not an int; using {}", name, raw, default)
        return default

def _env_list(name: str) -> Tuple[str, ...]:
    return tuple(p.strip() for p in _env_str(name).split(",") if p.strip())


# =========================
# SETTINGS
# =========================
@dataclass(frozen=True)
class Settings:
    amazon_tag: Optional[str] = None
    earnpe_id: Optional[str] = None
    earnkaro_id: Optional[str] = None

    mappings_path: str = "url_mappings.json"
    api_mappings_path: str = "url_mappings.api.json"
    log_path: Optional[str] = "conversion.log"
    log_level: str = "INFO"

    promo_enabled: bool = True
    image_lookup_enabled: bool = True
    forward_webhook_urls: Tuple[str, ...] = field(default_factory=tuple)
    forward_min_delay_ms: int = 2000

    redis_url: Optional[str] = None
    queue_name: str = "dealbot_queue"
    job_timeout_sec: int = 120
    result_ttl_sec: int = 900
    enqueue_dedupe_ttl_sec: int = 8

    webhook_secret: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            amazon_tag=_env_opt("AMAZON_TAG"),
            earnpe_id=_env_opt("EARNPE_ID"),
            earnkaro_id=_env_opt("EARNKARO_ID"),
            mappings_path=_env_str("URL_MAPPINGS_PATH", "url_mappings.json"),
            api_mappings_path=_env_str("API_URL_MAPPINGS_PATH", "url_mappings.api.json"),
            log_path=_env_opt("CONVERSION_LOG_PATH") if "CONVERSION_LOG_PATH" in os.environ else "conversion.log",
            log_level=_env_str("LOG_LEVEL", "INFO").upper(),
            promo_enabled=_env_bool("PROMO_ENABLED", True),
            image_lookup_enabled=_env_bool("IMAGE_LOOKUP_ENABLED", True),
            forward_webhook_urls=_env_list("FORWARD_WEBHOOK_URLS"),
            forward_min_delay_ms=_env_int("FORWARD_MIN_DELAY_MS", 2000),
            redis_url=_env_opt("REDIS_URL"),
            queue_name=_env_str("QUEUE_NAME", "dealbot_queue"),
            job_timeout_sec=_env_int("WORKER_JOB_TIMEOUT", 120),
            result_ttl_sec=_env_int("WORKER_RESULT_TTL", 900),
            enqueue_dedupe_ttl_sec=_env_int("ENQUEUE_DEDUPE_TTL_SEC", 8),
            webhook_secret=_env_opt("WEBHOOK_SECRET"),
        )

    def affiliate_id(self, network) -> Optional[str]:
        """Identifier configured for a network (accepts a Network or its value)."""
        key = getattr(network, "value", network)
        return {
            "amazon": self.amazon_tag,
            "earnpe": self.earnpe_id,
            "earnkaro": self.earnkaro_id,
        }.get(key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, read once."""
    s = Settings.from_env()
    logger.info(
        "[Config] amazon_tag={} earnpe_id={} earnkaro_id={} mappings={} queue={}",
        bool(s.amazon_tag), bool(s.earnpe_id), bool(s.earnkaro_id), s.mappings_path, s.queue_name,
    )
    return s


# =========================
# LOGGING
# =========================
_file_sink_id: Optional[int] = None

def configure_logging(settings: Settings) -> None:
    """
    Console at LOG_LEVEL plus an optional conversion log file.
    Safe to call more than once; the file sink is replaced, not duplicated.
    """
    global _file_sink_id
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    _file_sink_id = None
    if settings.log_path:
        _file_sink_id = logger.add(
            settings.log_path,
            level=settings.log_level,
            rotation="10 MB",
            retention=5,
            enqueue=False,
            format="[{time:YYYY-MM-DDTHH:mm:ss.SSSZ}] [{level}] {message}",
        )
