"""
Event adapter: blob content + blob name in, dispatched DeltaRecord out.
Wires the collaborators from Settings the first time it is used.
"""

from threading import Lock
from typing import Optional, Union

import redis

from live_monitor.symbol_delta_monitor.core.data.schema import (
    DispatchOutcome,
    parse_symbol_event,
)
from live_monitor.symbol_delta_monitor.core.dispatch.deletion import (
    DeletionNotifier,
    HttpDeletionNotifier,
    NullDeletionNotifier,
)
from live_monitor.symbol_delta_monitor.core.dispatch.pipeline import DispatchPipeline
from live_monitor.symbol_delta_monitor.core.dispatch.sinks import (
    MemorySink,
    MessageSink,
    RedisStreamSink,
    ServiceBusSink,
)
from live_monitor.symbol_delta_monitor.core.engine.delta_engine import DeltaEngine
from live_monitor.symbol_delta_monitor.core.storage.cache_store import CacheStore
from live_monitor.symbol_delta_monitor.core.storage.redis_client import (
    RedisCacheStore,
)
from live_monitor.symbol_delta_monitor.core.utils.config import Settings, load_settings
from live_monitor.symbol_delta_monitor.core.utils.errors import ConfigError
from live_monitor.symbol_delta_monitor.core.utils.logger import (
    PACKAGE_LOGGER,
    get_logger,
    setup_logger,
)

logger = get_logger(__name__)

_default_pipeline: Optional[DispatchPipeline] = None
_default_lock = Lock()


def build_sink(settings: Settings) -> MessageSink:
    backend = settings.resolved_sink_backend()

    if backend == "servicebus":
        if not settings.sb_connection_string or not settings.sb_queue_name:
            raise ConfigError("servicebus sink needs SB_CON_STR and SB_QNAME")
        return ServiceBusSink(settings.sb_connection_string, settings.sb_queue_name)

    if backend == "redis-stream":
        client = redis.Redis(
            host=settings.cache_host,
            port=settings.cache_port,
            password=settings.cache_key,
            ssl=settings.cache_ssl,
            socket_timeout=settings.cache_timeout,
            decode_responses=True,
        )
        return RedisStreamSink(client, settings.redis_stream_name)

    logger.warning("No message sink configured, records are kept in memory only")
    return MemorySink()


def build_notifier(settings: Settings) -> DeletionNotifier:
    if not settings.delete_blob_url:
        logger.warning("DELETEBLOB_URL not set, blobs will not be deleted")
        return NullDeletionNotifier()
    if not settings.apim_api_key:
        logger.warning(
            "APIM_API_KEY not set, delete requests go out without "
            "Ocp-Apim-Subscription-Key"
        )
    return HttpDeletionNotifier(
        settings.delete_blob_url,
        api_key=settings.apim_api_key,
        timeout=settings.delete_blob_timeout,
    )


def build_pipeline(
    settings: Optional[Settings] = None,
    store: Optional[CacheStore] = None,
    sink: Optional[MessageSink] = None,
    notifier: Optional[DeletionNotifier] = None,
) -> DispatchPipeline:
    """Pipeline from settings; any collaborator passed in is used as is"""
    if settings is None:
        settings = load_settings()

    if store is None:
        store = RedisCacheStore.from_settings(settings)
    if sink is None:
        sink = build_sink(settings)
    if notifier is None:
        notifier = build_notifier(settings)

    engine = DeltaEngine(store, max_conflict_retries=settings.max_conflict_retries)
    return DispatchPipeline(engine, sink, notifier)


def get_default_pipeline() -> DispatchPipeline:
    global _default_pipeline
    with _default_lock:
        if _default_pipeline is None:
            settings = load_settings()
            setup_logger(
                PACKAGE_LOGGER,
                log_dir=settings.log_dir,
                level=settings.log_level,
                log_to_file=settings.log_dir is not None,
            )
            _default_pipeline = build_pipeline(settings)
        return _default_pipeline


def handle_blob(
    content: Union[str, bytes],
    name: str,
    pipeline: Optional[DispatchPipeline] = None,
) -> DispatchOutcome:
    """
    Entry point for one blob write

    Args:
        content: raw blob content, UTF-8 JSON {"symbol": ..., "value": ...}
        name: blob name, used as origOrder and as the deletion target
        pipeline: pipeline to use (default: built once from the environment)
    """
    if pipeline is None:
        pipeline = get_default_pipeline()

    logger.info(f"Processing blob. Name: {name} Size: {len(content)} Bytes")

    event = parse_symbol_event(content)
    logger.info(f"Symbol: {event.symbol} Value: {event.value}")

    return pipeline.dispatch(event, name)
