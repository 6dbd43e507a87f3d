# tests/test_adapter.py
import json
import logging
from unittest.mock import MagicMock, patch

import pytest

from live_monitor.symbol_delta_monitor import adapter
from live_monitor.symbol_delta_monitor.adapter import (
    build_notifier,
    build_pipeline,
    build_sink,
    handle_blob,
)
from live_monitor.symbol_delta_monitor.core.dispatch.deletion import (
    HttpDeletionNotifier,
    NullDeletionNotifier,
)
from live_monitor.symbol_delta_monitor.core.dispatch.sinks import (
    MemorySink,
    RedisStreamSink,
    ServiceBusSink,
)
from live_monitor.symbol_delta_monitor.core.storage.cache_store import (
    InMemoryCacheStore,
)
from live_monitor.symbol_delta_monitor.core.storage.redis_client import (
    RedisCacheStore,
)
from live_monitor.symbol_delta_monitor.core.utils.config import Settings
from live_monitor.symbol_delta_monitor.core.utils.errors import (
    ConfigError,
    MalformedInputError,
)
from live_monitor.symbol_delta_monitor.core.utils.logger import PACKAGE_LOGGER


@pytest.fixture
def local_pipeline():
    store = InMemoryCacheStore()
    sink = MemorySink()
    notifier = MagicMock()
    pipeline = build_pipeline(Settings(), store=store, sink=sink, notifier=notifier)
    return pipeline, store, sink, notifier


def test_scenario_first_then_delta_then_reset(local_pipeline):
    pipeline, store, sink, notifier = local_pipeline

    handle_blob(b'{"symbol": "AAPL", "value": "150"}', "a.json", pipeline=pipeline)
    handle_blob(b'{"symbol": "MSFT", "value": "300"}', "b.json", pipeline=pipeline)
    handle_blob(b'{"symbol": "AAPL", "value": "155"}', "c.json", pipeline=pipeline)
    assert store.snapshot() == {"AAPL": "155", "MSFT": "300"}

    handle_blob(b'{"symbol": "AAPL", "value": "0"}', "d.json", pipeline=pipeline)
    assert store.snapshot() == {}

    messages = [json.loads(m) for m in sink.messages]
    assert [m.get("delta") for m in messages] == [None, None, "5", "0"]
    orders = [m["origOrder"] for m in messages]
    assert orders == ["a.json", "b.json", "c.json", "d.json"]
    assert notifier.notify.call_count == 4


def test_malformed_blob_touches_nothing(local_pipeline):
    pipeline, store, sink, notifier = local_pipeline

    with pytest.raises(MalformedInputError):
        handle_blob(b'{"symbol": "AAPL"', "bad.json", pipeline=pipeline)

    assert len(store) == 0
    assert sink.messages == []
    notifier.notify.assert_not_called()


def test_build_pipeline_defaults_to_redis_store():
    pipeline = build_pipeline(Settings(cache_host="cache.example"))

    assert isinstance(pipeline.engine.store, RedisCacheStore)
    assert pipeline.engine.store.host == "cache.example"
    assert isinstance(pipeline.sink, MemorySink)
    assert isinstance(pipeline.notifier, NullDeletionNotifier)


def test_build_pipeline_passes_conflict_retries():
    pipeline = build_pipeline(
        Settings(max_conflict_retries=7), store=InMemoryCacheStore()
    )

    assert pipeline.engine.max_conflict_retries == 7


def test_build_sink_service_bus():
    sink = build_sink(
        Settings(sb_connection_string="Endpoint=sb://x/", sb_queue_name="q")
    )

    assert isinstance(sink, ServiceBusSink)
    assert sink.queue_name == "q"


def test_build_sink_service_bus_needs_queue():
    with pytest.raises(ConfigError):
        build_sink(Settings(sb_connection_string="Endpoint=sb://x/"))


def test_build_sink_redis_stream():
    sink = build_sink(Settings(sink_backend="redis-stream", redis_stream_name="deltas"))

    assert isinstance(sink, RedisStreamSink)
    assert sink.stream_name == "deltas"


def test_build_notifier_uses_url_and_key():
    notifier = build_notifier(
        Settings(delete_blob_url="https://apim.example/del", apim_api_key="k")
    )

    assert isinstance(notifier, HttpDeletionNotifier)
    assert notifier.url == "https://apim.example/del"
    assert notifier.api_key == "k"


def test_build_notifier_warns_without_api_key(caplog):
    notifier = build_notifier(Settings(delete_blob_url="https://apim.example/del"))

    assert isinstance(notifier, HttpDeletionNotifier)
    assert any(
        r.levelno == logging.WARNING and "APIM_API_KEY not set" in r.getMessage()
        for r in caplog.records
    )


def test_build_notifier_with_api_key_does_not_warn(caplog):
    build_notifier(
        Settings(delete_blob_url="https://apim.example/del", apim_api_key="k")
    )

    assert not [r for r in caplog.records if "APIM_API_KEY" in r.getMessage()]


@pytest.fixture
def default_pipeline_reset(monkeypatch):
    monkeypatch.setattr(adapter, "_default_pipeline", None)
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    level = package_logger.level
    yield
    package_logger.handlers.clear()
    package_logger.setLevel(level)


def test_default_path_sets_up_package_logging(default_pipeline_reset, caplog):
    store = InMemoryCacheStore()
    with patch(
        "live_monitor.symbol_delta_monitor.adapter.load_settings",
        return_value=Settings(),
    ), patch(
        "live_monitor.symbol_delta_monitor.adapter.RedisCacheStore"
    ) as redis_store:
        redis_store.from_settings.return_value = store
        outcome = handle_blob(b'{"symbol": "AAPL", "value": "150"}', "a.json")

    assert outcome.record.symbol == "AAPL"
    assert store.snapshot() == {"AAPL": "150"}
    assert logging.getLogger(PACKAGE_LOGGER).level == logging.INFO
    # INFO records from module loggers reach the handlers without caplog.set_level
    messages = [r.getMessage() for r in caplog.records if r.levelno == logging.INFO]
    assert any(m.startswith("Cache ping:") for m in messages)
    assert any(m.startswith("Processing blob.") for m in messages)
