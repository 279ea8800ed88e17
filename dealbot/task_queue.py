# dealbot/task_queue.py
from __future__ import annotations
from typing import Optional

import hashlib

from loguru import logger
from redis import Redis
from rq import Queue

from dealbot.config import Settings, get_settings

_queue: Optional[Queue] = None

# ---------- Queue ----------
def get_queue(settings: Optional[Settings] = None) -> Queue:
    """
    One Queue per process, built on first use.
    The API and the worker must agree on QUEUE_NAME.
    """
    global _queue
    if _queue is not None:
        return _queue
    settings = settings or get_settings()
    if not settings.redis_url:
        raise RuntimeError("REDIS_URL is not set")
    conn = Redis.from_url(settings.redis_url)
    _queue = Queue(settings.queue_name, connection=conn)
    logger.info("[QueueBoot] queue={} redis={}", settings.queue_name, settings.redis_url)
    return _queue

# ---------- De-dupe helpers ----------
def _enqueue_key(text_val: str, source: Optional[str]) -> str:
    """
    Stable hash so the same inbound message arriving twice (webhook retry) is queued once.
    """
    digest = hashlib.sha256(f"{source or ''}|{text_val or ''}".encode()).hexdigest()
    return f"dealbot:enqueue:{digest}"

def _should_skip_enqueue(q: Queue, key: str, ttl_sec: int) -> bool:
    """
    True if this payload was enqueued within the last ttl_sec.
    SETNX + EXPIRE on the queue's own connection; fail-open on Redis errors.
    """
    if ttl_sec <= 0:
        return False
    try:
        r = q.connection
        if r.setnx(key, "1"):
            r.expire(key, ttl_sec)
            return False
        return True
    except Exception as e:
        logger.warning("[Queue] de-dupe check failed ({}); enqueueing anyway", e)
        return False

# ---------- Public API ----------
def enqueue_convert_message(
    text_val: str,
    *,
    source: Optional[str] = None,
    msg_id: Optional[str] = None,
    q: Optional[Queue] = None,
    settings: Optional[Settings] = None,
):
    """
    Queue one inbound message for conversion + forwarding.
    Returns the RQ job, or None when suppressed as a duplicate.
    """
    settings = settings or get_settings()
    q = q or get_queue(settings)
    key = f"dealbot:enqueue:{msg_id}" if msg_id else _enqueue_key(text_val, source)

    if _should_skip_enqueue(q, key, settings.enqueue_dedupe_ttl_sec):
        logger.warning("[Queue] duplicate suppressed key={} source={}", key, source)
        return None

    job = q.enqueue(
        "dealbot.workers.convert_message_job",     # lazy import by string
        args=(text_val,),
        kwargs={"source": source},
        job_timeout=settings.job_timeout_sec,
        result_ttl=settings.result_ttl_sec,
    )
    logger.info("[Queue] ✅ enqueued job_id={} queue={}", getattr(job, "id", None), getattr(q, "name", None))
    return job
