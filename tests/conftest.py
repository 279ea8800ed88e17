"""
Shared fixtures: isolated settings and mapping files under tmp_path, a fixed
clock, and a loguru sink so tests can assert on what got logged.
"""

import pytest
from loguru import logger

import dealbot.integrations as integrations
import dealbot.task_queue as task_queue
import dealbot.workers as workers
from dealbot.config import Settings, get_settings
from dealbot.converter import LinkConverter
from dealbot.mappings import MappingStore

FIXED_NOW = 1_700_000_000.0


@pytest.fixture(autouse=True)
def _reset_process_state():
    workers._converter = None
    workers._api_converter = None
    task_queue._queue = None
    integrations._last_sent_at = 0.0
    get_settings.cache_clear()
    yield
    workers._converter = None
    workers._api_converter = None
    task_queue._queue = None
    get_settings.cache_clear()


@pytest.fixture
def mappings_path(tmp_path):
    return tmp_path / "url_mappings.json"


@pytest.fixture
def settings(mappings_path):
    return Settings(
        amazon_tag="mytag-21",
        earnpe_id="E123",
        earnkaro_id="K456",
        mappings_path=str(mappings_path),
        api_mappings_path=str(mappings_path.with_name("url_mappings.api.json")),
        log_path=None,
        forward_min_delay_ms=0,
    )


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def store(mappings_path, clock):
    return MappingStore(mappings_path, clock=clock)


@pytest.fixture
def converter(settings, store):
    return LinkConverter(settings, store=store)


@pytest.fixture
def log_lines():
    lines = []
    sink_id = logger.add(
        lambda msg: lines.append(f"{msg.record['level'].name} {msg.record['message']}"),
        level="DEBUG",
    )
    yield lines
    logger.remove(sink_id)
