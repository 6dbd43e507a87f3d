# tests/dispatch/test_sinks.py
from unittest.mock import MagicMock, patch

import pytest
import redis
from azure.servicebus.exceptions import ServiceBusError

from live_monitor.symbol_delta_monitor.core.dispatch.sinks import (
    MemorySink,
    RedisStreamSink,
    ServiceBusSink,
)
from live_monitor.symbol_delta_monitor.core.utils.errors import SinkError

SB_CLIENT_PATH = "live_monitor.symbol_delta_monitor.core.dispatch.sinks.ServiceBusClient"
SB_MESSAGE_PATH = (
    "live_monitor.symbol_delta_monitor.core.dispatch.sinks.ServiceBusMessage"
)
PAYLOAD = '{"symbol":"AAPL","curValue":"150","origOrder":"a","procTimeStamp":"1"}'


def test_memory_sink_collects():
    sink = MemorySink()

    sink.send(PAYLOAD)

    assert sink.messages == [PAYLOAD]


def test_redis_stream_sink_xadds_payload():
    client = MagicMock()
    client.ttl.return_value = -1
    sink = RedisStreamSink(client, "symbol_delta_stream", ttl_seconds=60)

    sink.send(PAYLOAD)

    client.xadd.assert_called_once_with(
        "symbol_delta_stream", {"data": PAYLOAD}, maxlen=10000
    )
    client.expire.assert_called_once_with("symbol_delta_stream", 60)


def test_redis_stream_sink_keeps_existing_ttl():
    client = MagicMock()
    client.ttl.return_value = 30
    sink = RedisStreamSink(client, "s")

    sink.send(PAYLOAD)

    client.expire.assert_not_called()


def test_redis_stream_sink_wraps_errors():
    client = MagicMock()
    client.xadd.side_effect = redis.exceptions.ConnectionError("down")

    with pytest.raises(SinkError):
        RedisStreamSink(client, "s").send(PAYLOAD)


def test_service_bus_sink_sends_one_message():
    with patch(SB_CLIENT_PATH) as client_cls, patch(SB_MESSAGE_PATH) as message_cls:
        client = client_cls.from_connection_string.return_value.__enter__.return_value
        sender = client.get_queue_sender.return_value.__enter__.return_value

        ServiceBusSink("Endpoint=sb://x/", "symbol-deltas").send(PAYLOAD)

    client_cls.from_connection_string.assert_called_once_with("Endpoint=sb://x/")
    client.get_queue_sender.assert_called_once_with(queue_name="symbol-deltas")
    message_cls.assert_called_once_with(PAYLOAD)
    sender.send_messages.assert_called_once_with(message_cls.return_value)


def test_service_bus_errors_become_sink_error():
    with patch(SB_CLIENT_PATH) as client_cls:
        client_cls.from_connection_string.side_effect = ServiceBusError("no auth")

        with pytest.raises(SinkError):
            ServiceBusSink("Endpoint=sb://x/", "q").send(PAYLOAD)
