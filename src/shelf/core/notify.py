"""Debounced fan-out of collection updates to subscribers.

The bus is a two-state machine:

- IDLE -> notify(immediate=False): arm one timer, go PENDING.
- PENDING -> notify(immediate=False): replace the pending snapshot only.
- PENDING -> timer fires: compute counts, deliver, go IDLE.
- any -> notify(immediate=True): cancel the timer, deliver now, go IDLE.

The debounce window starts at the first event of a burst and is not
extended by later events.
"""

import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from typing import Any

from shelf.core.config import DEBOUNCE_SECONDS
from shelf.core.errors import CollectionError
from shelf.core.types import (
    CollectionsListener,
    CollectionWithCount,
    Scheduler,
    TimerHandle,
)

logger = logging.getLogger(__name__)


def threading_scheduler(delay: float, callback: Callable[[], None]) -> TimerHandle:
    """Run ``callback`` once on a daemon timer thread after ``delay`` seconds."""
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class BusState(Enum):
    """State of the notification bus."""

    IDLE = "idle"
    PENDING = "pending"


@dataclass(frozen=True)
class Delivery:
    """Result of one fan-out to subscribers."""

    collections: list[CollectionWithCount] = field(default_factory=list)
    delivered: int = 0
    failures: list[tuple[CollectionsListener, Exception]] = field(
        default_factory=list
    )
    error: CollectionError | None = None


class NotificationBus:
    """Coalesces bursts of collection changes into single notifications."""

    def __init__(
        self,
        compute: Callable[[Sequence[Any]], list[CollectionWithCount]],
        debounce_seconds: float | None = None,
        scheduler: Scheduler | None = None,
    ):
        """
        Initialize the bus.

        Args:
            compute: Builds the collections-with-counts list for a note snapshot
            debounce_seconds: Debounce window (defaults to SHELF_DEBOUNCE_SECONDS)
            scheduler: Timer factory (defaults to threading_scheduler)
        """
        self._compute = compute
        self.debounce_seconds = (
            DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )
        self._scheduler = scheduler or threading_scheduler
        self._listeners: dict[int, CollectionsListener] = {}
        self._next_token = 0
        self._lock = Lock()
        self._state = BusState.IDLE
        self._timer: TimerHandle | None = None
        # Bumped whenever a timer is armed or cancelled; stale fires are ignored
        self._generation = 0
        # None until a caller supplies a note set
        self._latest_notes: tuple[Any, ...] | None = None

    @property
    def state(self) -> BusState:
        """Current state of the bus."""
        return self._state

    @property
    def listener_count(self) -> int:
        """Number of registered listeners."""
        return len(self._listeners)

    def subscribe(self, listener: CollectionsListener) -> Callable[[], None]:
        """
        Register a listener for collection updates.

        Args:
            listener: Called with the recomputed collections-with-counts list

        Returns:
            Function that removes the listener; safe to call more than once
        """
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._listeners[token] = listener

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(token, None)

        return unsubscribe

    def notify(
        self, notes: Iterable[Any] | None = None, immediate: bool = False
    ) -> Delivery | None:
        """
        Signal that collections or notes changed.

        Args:
            notes: Current note set; None reuses the latest known snapshot
            immediate: Deliver now instead of waiting for the debounce window

        Returns:
            The Delivery for immediate notifications (empty before any note
            set was seen), None when deferred
        """
        with self._lock:
            if notes is not None:
                self._latest_notes = tuple(notes)
            snapshot = self._latest_notes

            if snapshot is None:
                logger.debug("No note snapshot yet, skipping notification")
                return Delivery() if immediate else None

            if immediate:
                self._cancel_timer_locked()
            elif self._state is BusState.PENDING:
                logger.debug("Debounced notification already pending")
                return None
            else:
                self._generation += 1
                generation = self._generation
                self._state = BusState.PENDING
                self._timer = self._scheduler(
                    self.debounce_seconds, lambda: self._fire(generation)
                )
                logger.debug("Debounced notification scheduled")
                return None

        logger.debug("Immediate notification requested")
        return self._deliver(snapshot)

    def cleanup(self) -> None:
        """Cancel any pending timer and drop all listeners."""
        with self._lock:
            self._cancel_timer_locked()
            self._listeners.clear()

    def _fire(self, generation: int) -> Delivery | None:
        with self._lock:
            if generation != self._generation or self._state is not BusState.PENDING:
                return None
            self._state = BusState.IDLE
            self._timer = None
            snapshot = self._latest_notes or ()
        return self._deliver(snapshot)

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._generation += 1
        self._state = BusState.IDLE

    def _deliver(self, notes: Sequence[Any]) -> Delivery:
        with self._lock:
            listeners = list(self._listeners.values())

        if not listeners:
            logger.debug("No listeners to notify, skipping update")
            return Delivery()

        try:
            collections = self._compute(notes)
        except CollectionError as exc:
            logger.error(f"Error computing collection counts for notification: {exc}")
            return Delivery(error=exc)

        logger.debug(f"Notifying {len(listeners)} listeners of collection updates")
        failures: list[tuple[CollectionsListener, Exception]] = []
        for listener in listeners:
            try:
                listener(list(collections))
            except Exception as exc:
                logger.exception("Error in collection update listener")
                failures.append((listener, exc))

        return Delivery(
            collections=collections,
            delivered=len(listeners) - len(failures),
            failures=failures,
        )
