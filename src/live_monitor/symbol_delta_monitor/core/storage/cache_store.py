# Abstract Cache Store
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterator, Optional


class CacheStore(ABC):
    """
    Last-seen value per symbol.

    Values are strings; a missing key is returned as None.
    """

    @contextmanager
    def session(self) -> Iterator["CacheStore"]:
        """Scope of one invocation; stores with connections open them here"""
        yield self

    @abstractmethod
    def ping(self) -> bool:
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def flush_all(self) -> None:
        """drop every key in the store"""
        pass

    @abstractmethod
    def compare_and_set(self, key: str, expected: Optional[str], value: str) -> bool:
        """
        Write value only if the key still holds expected (None = absent).
        Returns False when another writer got there first.
        """
        pass


class InMemoryCacheStore(CacheStore):
    """Thread-safe dict store for tests and local replays"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def ping(self) -> bool:
        return True

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def flush_all(self) -> None:
        with self._lock:
            self._data.clear()

    def compare_and_set(self, key: str, expected: Optional[str], value: str) -> bool:
        with self._lock:
            if self._data.get(key) != expected:
                return False
            self._data[key] = value
            return True

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._data)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
