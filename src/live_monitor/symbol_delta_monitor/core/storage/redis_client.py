import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

import redis

from live_monitor.symbol_delta_monitor.core.storage.cache_store import CacheStore
from live_monitor.symbol_delta_monitor.core.utils.config import Settings
from live_monitor.symbol_delta_monitor.core.utils.errors import (
    CacheUnavailableError,
)
from live_monitor.symbol_delta_monitor.core.utils.logger import get_logger

logger = get_logger(__name__)

# ARGV[1] = "1" when the key is expected to be absent
CAS_SCRIPT = """
local current = redis.call("GET", KEYS[1])
if ARGV[1] == "1" then
    if current then
        return 0
    end
elseif current ~= ARGV[2] then
    return 0
end
redis.call("SET", KEYS[1], ARGV[3])
return 1
"""


class RedisCacheStore(CacheStore):
    """
    Redis backed cache store.

    Every session opens its own connection and closes it on exit, so one
    invocation never reuses another invocation's connection. Sessions are
    tracked per thread and nested sessions reuse the outer connection.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6380,
        password: Optional[str] = None,
        ssl: bool = True,
        socket_timeout: Optional[float] = 5.0,
        db: int = 0,
        client_factory: Callable[..., redis.Redis] = redis.Redis,
    ):
        self.host = host
        self.port = port
        self.password = password
        self.ssl = ssl
        self.socket_timeout = socket_timeout
        self.db = db
        self._client_factory = client_factory
        self._local = threading.local()

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisCacheStore":
        return cls(
            host=settings.cache_host,
            port=settings.cache_port,
            password=settings.cache_key,
            ssl=settings.cache_ssl,
            socket_timeout=settings.cache_timeout,
        )

    # ------------------------------------------------------------------
    def _connect(self) -> redis.Redis:
        return self._client_factory(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            ssl=self.ssl,
            socket_timeout=self.socket_timeout,
            decode_responses=True,
        )

    @contextmanager
    def session(self) -> Iterator["RedisCacheStore"]:
        depth = getattr(self._local, "depth", 0)
        if depth == 0:
            self._local.client = self._connect()
        self._local.depth = depth + 1
        try:
            yield self
        finally:
            self._local.depth -= 1
            if self._local.depth == 0:
                client = self._local.client
                self._local.client = None
                try:
                    client.close()
                except redis.exceptions.RedisError as e:
                    logger.warning(f"Error closing Redis connection: {e}")

    @property
    def client(self) -> redis.Redis:
        client = getattr(self._local, "client", None)
        if client is None:
            raise RuntimeError("RedisCacheStore used outside of a session()")
        return client

    # ------------------------------------------------------------------
    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.exceptions.RedisError as e:
            raise CacheUnavailableError(f"Redis ping failed: {e}") from e

    def get(self, key: str) -> Optional[str]:
        try:
            return self.client.get(key)
        except redis.exceptions.RedisError as e:
            raise CacheUnavailableError(f"Redis GET {key} failed: {e}") from e

    def set(self, key: str, value: str) -> None:
        try:
            self.client.set(key, value)
        except redis.exceptions.RedisError as e:
            raise CacheUnavailableError(f"Redis SET {key} failed: {e}") from e

    def flush_all(self) -> None:
        try:
            self.client.flushdb()
        except redis.exceptions.RedisError as e:
            raise CacheUnavailableError(f"Redis FLUSHDB failed: {e}") from e

    def compare_and_set(self, key: str, expected: Optional[str], value: str) -> bool:
        # compare and write happen inside one server-side script, no client GET
        absent = "1" if expected is None else "0"
        try:
            script = self.client.register_script(CAS_SCRIPT)
            return bool(script(keys=[key], args=[absent, expected or "", value]))
        except redis.exceptions.RedisError as e:
            raise CacheUnavailableError(f"Redis CAS {key} failed: {e}") from e
