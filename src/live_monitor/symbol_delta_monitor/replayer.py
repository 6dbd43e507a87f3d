"""
Replayer for symbol event blobs saved as local files.
Feeds each file through the same adapter a blob trigger would call, and
offers a couple of cache maintenance commands.
"""

import argparse
import glob
import os
import time
from dataclasses import dataclass, field
from typing import List, Optional

from prometheus_client import start_http_server

from live_monitor.symbol_delta_monitor.adapter import build_pipeline, handle_blob
from live_monitor.symbol_delta_monitor.core.dispatch.deletion import (
    LocalFileDeletionNotifier,
    NullDeletionNotifier,
)
from live_monitor.symbol_delta_monitor.core.dispatch.pipeline import DispatchPipeline
from live_monitor.symbol_delta_monitor.core.dispatch.sinks import MemorySink
from live_monitor.symbol_delta_monitor.core.engine.delta_engine import DeltaEngine
from live_monitor.symbol_delta_monitor.core.storage.cache_store import (
    CacheStore,
    InMemoryCacheStore,
)
from live_monitor.symbol_delta_monitor.core.storage.redis_client import (
    RedisCacheStore,
)
from live_monitor.symbol_delta_monitor.core.utils.config import Settings, load_settings
from live_monitor.symbol_delta_monitor.core.utils.errors import DeltaMonitorError
from live_monitor.symbol_delta_monitor.core.utils.logger import (
    PACKAGE_LOGGER,
    setup_logger,
)


@dataclass
class ReplaySummary:
    processed: int = 0
    failed: int = 0
    send_failed: int = 0
    failed_files: List[str] = field(default_factory=list)


def list_blob_files(blob_dir: str, pattern: str = "*.json") -> List[str]:
    """files in blob_dir matching pattern, oldest first (name as tiebreak)"""
    files = glob.glob(os.path.join(blob_dir, pattern))
    return sorted(files, key=lambda f: (os.path.getmtime(f), os.path.basename(f)))


def replay_directory(
    blob_dir: str,
    pipeline: DispatchPipeline,
    pattern: str = "*.json",
    interval: float = 0.0,
    logger=None,
) -> ReplaySummary:
    """
    Replay blob files from blob_dir through the pipeline

    Args:
        blob_dir: directory holding one JSON event per file
        pipeline: dispatch pipeline to feed
        pattern: glob pattern for event files
        interval: seconds to wait between files
    """
    if logger is None:
        logger = setup_logger(PACKAGE_LOGGER, log_to_file=False)

    summary = ReplaySummary()

    if not os.path.isdir(blob_dir):
        logger.error(f"Directory not found: {blob_dir}")
        return summary

    files = list_blob_files(blob_dir, pattern)
    logger.info(f"Found {len(files)} files to replay in {blob_dir}")

    for i, path in enumerate(files):
        if i > 0 and interval > 0:
            time.sleep(interval)

        name = os.path.basename(path)
        try:
            with open(path, "rb") as f:
                content = f.read()
            outcome = handle_blob(content, name, pipeline=pipeline)
        except (DeltaMonitorError, OSError) as e:
            logger.error(f"Error processing file {name}: {e}")
            summary.failed += 1
            summary.failed_files.append(name)
            continue

        summary.processed += 1
        if not outcome.sent:
            summary.send_failed += 1

    logger.info(
        f"Replay finished: {summary.processed} processed, "
        f"{summary.failed} failed, {summary.send_failed} not sent"
    )
    return summary


def build_store(settings: Settings, memory: bool) -> CacheStore:
    if memory:
        return InMemoryCacheStore()
    return RedisCacheStore.from_settings(settings)


def run_replay(args, settings: Settings, logger) -> int:
    store = build_store(settings, args.memory)
    sink = MemorySink() if args.memory else None
    notifier = None
    if args.delete_local:
        notifier = LocalFileDeletionNotifier(args.dir)
    elif args.memory:
        notifier = NullDeletionNotifier()

    pipeline = build_pipeline(settings, store=store, sink=sink, notifier=notifier)
    summary = replay_directory(
        args.dir, pipeline, pattern=args.pattern, interval=args.interval, logger=logger
    )

    if args.memory:
        for message in sink.messages:
            print(message)

    return 1 if summary.failed else 0


def run_flush(args, settings: Settings, logger) -> int:
    engine = DeltaEngine(RedisCacheStore.from_settings(settings))
    engine.reset_all()
    logger.info("Cache flushed")
    return 0


def run_get(args, settings: Settings, logger) -> int:
    if not args.symbol:
        logger.error("--symbol is required for get mode")
        return 2

    store = RedisCacheStore.from_settings(settings)
    with store.session():
        value = store.get(args.symbol)
    print(f"{args.symbol} -> {value}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Symbol delta monitor - replay blob files or inspect the cache",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # replay a folder of saved blobs against the configured cache and sink
  symbol-delta-replay --mode replay --dir ./symboleventsin

  # dry run, in-memory cache, records printed to stdout
  symbol-delta-replay --mode replay --dir ./symboleventsin --memory

  # look at / reset the cache
  symbol-delta-replay --mode get --symbol AAPL
  symbol-delta-replay --mode flush
        """,
    )
    parser.add_argument(
        "--mode",
        choices=["replay", "flush", "get"],
        default="replay",
        help="replay blob files, flush the cache, or read one symbol (default: replay)",
    )
    parser.add_argument("--dir", default="symboleventsin", help="Blob file directory")
    parser.add_argument("--pattern", default="*.json", help="Blob file glob pattern")
    parser.add_argument(
        "--interval", type=float, default=0.0, help="Seconds between files"
    )
    parser.add_argument(
        "--delete-local",
        action="store_true",
        help="Delete each replayed file instead of calling DELETEBLOB_URL",
    )
    parser.add_argument("--symbol", help="Symbol to read (get mode only)")
    parser.add_argument(
        "--memory",
        action="store_true",
        help="Replay only: in-memory cache, records printed instead of sent",
    )
    parser.add_argument(
        "--metrics-port", type=int, help="Expose prometheus metrics on this port"
    )
    args = parser.parse_args(argv)

    # flush/get against a fresh in-memory cache would only look like they worked
    if args.memory and args.mode != "replay":
        parser.error("--memory is only supported with --mode replay")

    try:
        settings = load_settings()
    except DeltaMonitorError as e:
        print(f"Configuration error: {e}")
        return 2

    logger = setup_logger(
        PACKAGE_LOGGER,
        log_dir=settings.log_dir,
        level=settings.log_level,
        log_to_file=settings.log_dir is not None,
    )

    if args.metrics_port:
        start_http_server(args.metrics_port)
        logger.info(f"Metrics on localhost:{args.metrics_port}/metrics")

    modes = {"replay": run_replay, "flush": run_flush, "get": run_get}
    try:
        return modes[args.mode](args, settings, logger)
    except DeltaMonitorError as e:
        logger.error(f"{args.mode} failed: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
