"""Change notifications with reentrant batching.

Writers wrap a transaction in a batch; events emitted inside are collected,
deduplicated by name and delivered once when the outermost batch commits.
If any level of the batch fails, the collected events are dropped.
"""

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from enum import Enum

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class Events(str, Enum):
    """Event names emitted by the trip store."""

    TRIPS_CHANGED = "trips_changed"
    PARTICIPANTS_CHANGED = "participants_changed"
    EXPENSES_CHANGED = "expenses_changed"
    SETTLEMENTS_CHANGED = "settlements_changed"


class ChangeNotifier:
    """Injected publish/subscribe hub. One instance per store, never global."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}
        self._depth = 0
        self._pending: dict[str, None] = {}  # insertion-ordered set
        self._failed = False
        self._lock = threading.RLock()

    @property
    def batch_depth(self) -> int:
        return self._depth

    def on(self, event: str, callback: Listener) -> Callable[[], None]:
        """
        Subscribe to an event.

        Returns:
            Function that removes the subscription
        """
        key = _key(event)
        with self._lock:
            self._listeners.setdefault(key, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(key, [])
                if callback in listeners:
                    listeners.remove(callback)

        return unsubscribe

    def emit(self, event: str) -> None:
        """Deliver an event now, or queue it if a batch is open."""
        key = _key(event)
        with self._lock:
            if self._depth > 0:
                self._pending[key] = None
                return
        self._deliver(key)

    def begin_batch(self) -> None:
        with self._lock:
            if self._depth == 0:
                self._failed = False
            self._depth += 1

    def end_batch(self, commit: bool = True) -> None:
        """
        Close one batch level.

        Args:
            commit: False if the work inside this level failed
        """
        with self._lock:
            if self._depth == 0:
                raise RuntimeError("end_batch() called without a matching begin_batch()")
            if not commit:
                self._failed = True
            self._depth -= 1
            if self._depth > 0:
                return
            pending = list(self._pending)
            self._pending.clear()
            failed = self._failed
            self._failed = False

        if failed:
            logger.debug("Batch rolled back, dropped %d pending event(s)", len(pending))
            return
        logger.debug("Batch committed, flushing %d event(s)", len(pending))
        for key in pending:
            self._deliver(key)

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Context manager form: commits on success, drops events on error."""
        self.begin_batch()
        try:
            yield
        except BaseException:
            self.end_batch(commit=False)
            raise
        self.end_batch(commit=True)

    def _deliver(self, key: str) -> None:
        with self._lock:
            listeners = list(self._listeners.get(key, []))
        for callback in listeners:
            callback()


def _key(event: str) -> str:
    return event.value if isinstance(event, Events) else event
