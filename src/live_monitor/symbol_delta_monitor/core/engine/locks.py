import threading
import weakref
from contextlib import contextmanager
from typing import Iterator


class SymbolLocks:
    """
    One lock per symbol, created on first use.

    Entries live only while someone holds or waits on the lock.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = (
            weakref.WeakValueDictionary()
        )
        self._guard = threading.Lock()

    def _lock_for(self, symbol: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(symbol)
            if lock is None:
                lock = threading.Lock()
                self._locks[symbol] = lock
            return lock

    @contextmanager
    def hold(self, symbol: str) -> Iterator[None]:
        lock = self._lock_for(symbol)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class ResetGate:
    """
    Readers-writer gate around the whole store.

    Per-symbol updates hold it shared; a full reset holds it exclusively and
    waits for in-flight updates to drain. New updates queue behind a waiting
    reset.
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._readers = 0
        self._writer = False

    @contextmanager
    def shared(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._writer = True
            while self._readers:
                self._cond.wait()
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()
