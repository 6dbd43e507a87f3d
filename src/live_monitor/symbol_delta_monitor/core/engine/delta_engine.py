"""
Delta Engine
Computes the change of a symbol's value against the last cached value and
moves the cache forward.
"""

import re
from typing import Optional

from live_monitor.symbol_delta_monitor.core.data.schema import (
    CacheMutation,
    DeltaResult,
)
from live_monitor.symbol_delta_monitor.core.engine.locks import ResetGate, SymbolLocks
from live_monitor.symbol_delta_monitor.core.storage.cache_store import CacheStore
from live_monitor.symbol_delta_monitor.core.utils.errors import (
    CacheConflictError,
    MalformedInputError,
)
from live_monitor.symbol_delta_monitor.core.utils.logger import get_logger

logger = get_logger(__name__)

RESET_SENTINEL = "0"
INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")


def is_reset_value(value: Optional[str]) -> bool:
    return bool(value) and value == RESET_SENTINEL


def parse_integer(value: str, label: str) -> int:
    """base-10 integer with optional sign, nothing else"""
    if value is None or not INTEGER_PATTERN.fullmatch(value):
        raise MalformedInputError(f"{label} is not a valid integer: {value!r}")
    return int(value)


class DeltaEngine:
    def __init__(
        self,
        store: CacheStore,
        max_conflict_retries: int = 3,
        symbol_locks: Optional[SymbolLocks] = None,
        reset_gate: Optional[ResetGate] = None,
    ):
        self.store = store
        self.max_conflict_retries = max_conflict_retries
        self._symbol_locks = (
            symbol_locks if symbol_locks is not None else SymbolLocks()
        )
        self._reset_gate = reset_gate if reset_gate is not None else ResetGate()

    def compute_delta(self, symbol: str, cur_value: str) -> DeltaResult:
        """
        Compute delta for symbol and update the cache.

        "0" flushes the whole cache and yields delta "0". Otherwise the delta
        is cur_value minus the cached value (None on first sight) and
        cur_value becomes the cached value.

        Raises:
            MalformedInputError: empty symbol, or a non-integer value when a
                delta has to be computed. Nothing is written.
            CacheUnavailableError: the store could not be reached.
            CacheConflictError: the symbol kept changing under us.
        """
        if not symbol:
            raise MalformedInputError("symbol must be a non-empty string")
        if cur_value is None:
            raise MalformedInputError(f"value for {symbol} is missing")

        with self.store.session():
            logger.info(f"Cache ping: {self.store.ping()}")

            if is_reset_value(cur_value):
                self.reset_all()
                logger.info(f"Reset value received for {symbol}, cache flushed")
                return DeltaResult(
                    delta=RESET_SENTINEL, mutation=CacheMutation.FLUSH_ALL
                )

            with self._reset_gate.shared(), self._symbol_locks.hold(symbol):
                delta = self._update_symbol(symbol, cur_value)

        logger.info(f"Cached: {symbol} -> {cur_value}")
        return DeltaResult(delta=delta, mutation=CacheMutation.SET)

    def reset_all(self) -> None:
        """Flush every symbol from the cache, waiting out in-flight updates"""
        with self._reset_gate.exclusive():
            with self.store.session():
                self.store.flush_all()

    def _update_symbol(self, symbol: str, cur_value: str) -> Optional[str]:
        conflicts = 0
        while True:
            cached = self.store.get(symbol)

            delta = None
            if cached:
                logger.info(f"Cached hit: {symbol} -> {cached}")
                delta = str(
                    parse_integer(cur_value, f"value for {symbol}")
                    - parse_integer(cached, f"cached value for {symbol}")
                )

            if self.store.compare_and_set(symbol, cached, cur_value):
                return delta

            conflicts += 1
            if conflicts > self.max_conflict_retries:
                raise CacheConflictError(symbol, conflicts)
            logger.warning(
                f"Cache value for {symbol} changed during update, "
                f"recomputing ({conflicts}/{self.max_conflict_retries})"
            )
