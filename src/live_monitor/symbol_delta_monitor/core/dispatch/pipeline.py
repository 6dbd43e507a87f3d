"""
Dispatch Pipeline
Turns the engine output into a DeltaRecord and hands it to the message sink
and the deletion notifier. Both are best effort: once the cache has been
updated the event counts as processed, whatever happens downstream.
"""

import time
from typing import Callable, Optional

from prometheus_client import Counter, Summary

from live_monitor.symbol_delta_monitor.core.data.schema import (
    DeltaRecord,
    DispatchOutcome,
    SymbolEvent,
)
from live_monitor.symbol_delta_monitor.core.dispatch.deletion import (
    DeletionNotifier,
    NullDeletionNotifier,
)
from live_monitor.symbol_delta_monitor.core.dispatch.sinks import MessageSink
from live_monitor.symbol_delta_monitor.core.engine.delta_engine import DeltaEngine
from live_monitor.symbol_delta_monitor.core.utils.logger import get_logger

logger = get_logger(__name__)

DISPATCH_LATENCY = Summary(
    "symbol_delta_dispatch_latency_seconds", "Time spent dispatching one event"
)
EVENTS_TOTAL = Counter(
    "symbol_delta_events_total", "Events seen by the dispatch pipeline", ["outcome"]
)
SINK_FAILURES = Counter(
    "symbol_delta_sink_failures_total", "Records the message sink failed to send"
)
DELETE_FAILURES = Counter(
    "symbol_delta_delete_failures_total", "Blob deletion requests that failed"
)


def current_millis() -> int:
    return time.time_ns() // 1_000_000


class DispatchPipeline:
    def __init__(
        self,
        engine: DeltaEngine,
        sink: MessageSink,
        notifier: Optional[DeletionNotifier] = None,
        clock: Callable[[], int] = current_millis,
    ):
        self.engine = engine
        self.sink = sink
        self.notifier = notifier if notifier is not None else NullDeletionNotifier()
        self.clock = clock

    def build_record(
        self, event: SymbolEvent, origin_id: str, delta: Optional[str]
    ) -> DeltaRecord:
        # timestamp is read once here, never again for this record
        return DeltaRecord(
            symbol=event.symbol,
            delta=delta,
            cur_value=event.value,
            orig_order=origin_id,
            proc_time_stamp=str(self.clock()),
        )

    @DISPATCH_LATENCY.time()
    def dispatch(self, event: SymbolEvent, origin_id: str) -> DispatchOutcome:
        """
        Process one event end to end.

        Engine errors propagate and nothing is sent. Sink and deletion
        failures are logged and reported on the returned outcome.
        """
        try:
            result = self.engine.compute_delta(event.symbol, event.value)
        except Exception:
            EVENTS_TOTAL.labels(outcome="failed").inc()
            raise

        record = self.build_record(event, origin_id, result.delta)
        outcome = DispatchOutcome(record=record)

        payload = record.to_json()
        logger.info(f"Sink payload: {payload}")
        try:
            self.sink.send(payload)
            outcome.sent = True
        except Exception as e:
            SINK_FAILURES.inc()
            outcome.send_error = str(e)
            logger.error(
                f"Sending record for {event.symbol} ({origin_id}) failed, "
                f"cache already holds {event.value}: {e}"
            )

        try:
            self.notifier.notify(origin_id)
            outcome.deleted = True
        except Exception as e:
            DELETE_FAILURES.inc()
            outcome.delete_error = str(e)
            logger.warning(f"Deletion request for {origin_id} failed: {e}")

        EVENTS_TOTAL.labels(
            outcome="dispatched" if outcome.sent else "send_failed"
        ).inc()
        return outcome
