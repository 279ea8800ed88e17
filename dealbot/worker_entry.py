# dealbot/worker_entry.py
"""
RQ worker entry point: `python -m dealbot.worker_entry`.

Reads REDIS_URL / QUEUE_NAME, sets up logging, loads the URL mappings once
up front, then works the queue with a single worker so batches run in order.
"""

from __future__ import annotations

from loguru import logger
from rq import Worker

from dealbot.config import configure_logging, get_settings
from dealbot.task_queue import get_queue
from dealbot.workers import get_converter


def main() -> None:
    settings = get_settings()
    configure_logging(settings)
    logger.info("[env] AMAZON_TAG={} EARNPE_ID={} EARNKARO_ID={} MAPPINGS={}",
                bool(settings.amazon_tag), bool(settings.earnpe_id),
                bool(settings.earnkaro_id), settings.mappings_path)

    get_converter(settings)
    q = get_queue(settings)

    worker = Worker([q], connection=q.connection)
    logger.info("🚀 dealbot-worker is online, listening on '{}'", q.name)
    worker.work(logging_level=settings.log_level)


if __name__ == "__main__":
    main()
