"""
Exception types raised while processing a symbol event.

Engine-side errors (malformed input, cache unavailable, cache conflict) abort
the event before anything is dispatched. Sink and deletion errors are raised
by the collaborators and reported by the pipeline without escalating.
"""


class DeltaMonitorError(Exception):
    """Base class for all symbol delta monitor errors"""


class ConfigError(DeltaMonitorError):
    """Required configuration is missing or invalid"""


class MalformedInputError(DeltaMonitorError):
    """Inbound payload or value cannot be used to compute a delta"""


class CacheUnavailableError(DeltaMonitorError):
    """Cache store could not be reached or returned an error"""


class CacheConflictError(DeltaMonitorError):
    """Another writer kept replacing the cached value for a symbol"""

    def __init__(self, symbol: str, attempts: int):
        super().__init__(
            f"Cache value for {symbol} changed concurrently {attempts} times"
        )
        self.symbol = symbol
        self.attempts = attempts


class SinkError(DeltaMonitorError):
    """Message sink rejected or failed to send a record"""


class DeletionError(DeltaMonitorError):
    """Deletion request for the originating blob failed"""
