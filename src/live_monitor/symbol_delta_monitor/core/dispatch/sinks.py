"""
Message sinks for serialized DeltaRecords.
One send() call carries exactly one record.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

import redis
from azure.servicebus import ServiceBusClient, ServiceBusMessage
from azure.servicebus.exceptions import ServiceBusError

from live_monitor.symbol_delta_monitor.core.utils.errors import SinkError
from live_monitor.symbol_delta_monitor.core.utils.logger import get_logger

logger = get_logger(__name__)


class MessageSink(ABC):
    @abstractmethod
    def send(self, payload: str) -> None:
        """send one JSON message, raise SinkError on failure"""
        pass


class ServiceBusSink(MessageSink):
    """Azure Service Bus queue sender, one client per message"""

    def __init__(self, connection_string: str, queue_name: str):
        self.connection_string = connection_string
        self.queue_name = queue_name

    def send(self, payload: str) -> None:
        try:
            with ServiceBusClient.from_connection_string(
                self.connection_string
            ) as client:
                with client.get_queue_sender(queue_name=self.queue_name) as sender:
                    sender.send_messages(ServiceBusMessage(payload))
        except (ServiceBusError, ValueError) as e:
            raise SinkError(
                f"Service Bus send to {self.queue_name} failed: {e}"
            ) from e

        logger.info(f"Sent a single message to the queue: {self.queue_name}")


class RedisStreamSink(MessageSink):
    """XADD onto a capped Redis stream"""

    def __init__(
        self,
        client: redis.Redis,
        stream_name: str,
        maxlen: int = 10000,
        ttl_seconds: Optional[int] = 7 * 24 * 3600,
    ):
        self.client = client
        self.stream_name = stream_name
        self.maxlen = maxlen
        self.ttl_seconds = ttl_seconds

    def send(self, payload: str) -> None:
        try:
            message_id = self.client.xadd(
                self.stream_name, {"data": payload}, maxlen=self.maxlen
            )
            if self.ttl_seconds and self.client.ttl(self.stream_name) < 0:
                self.client.expire(self.stream_name, self.ttl_seconds)
        except redis.exceptions.RedisError as e:
            raise SinkError(f"XADD to {self.stream_name} failed: {e}") from e

        logger.info(f"Published to stream {self.stream_name}: {message_id}")


class MemorySink(MessageSink):
    """Keeps messages in a list, for tests and dry runs"""

    def __init__(self):
        self.messages: List[str] = []

    def send(self, payload: str) -> None:
        self.messages.append(payload)
        logger.debug(f"Captured message #{len(self.messages)}")
