"""
Queue count store for the dashboard status bar.

Holds the number of invoices awaiting action. Callers may apply an optimistic
overlay right after a local change (an approval, say); periodic reconciliation
with the source of truth only replaces the overlay when forced or when the
source has caught up.
"""

from typing import Callable, List, Optional

from app.utils.logging import setup_logging


logger = setup_logging(__name__)

Subscriber = Callable[[int], None]


class QueueCountStore:
    """Shared queue counter with subscribe/publish and reconciliation."""

    def __init__(self, initial_count: int = 0):
        self._confirmed = initial_count
        self._optimistic: Optional[int] = None
        self._subscribers: List[Subscriber] = []

    @property
    def count(self) -> int:
        """Current value: the optimistic overlay if one is active, else the confirmed count."""
        return self._optimistic if self._optimistic is not None else self._confirmed

    @property
    def confirmed_count(self) -> int:
        return self._confirmed

    @property
    def has_pending_overlay(self) -> bool:
        return self._optimistic is not None

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for count changes; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self) -> None:
        value = self.count
        for callback in list(self._subscribers):
            callback(value)

    def apply_optimistic(self, delta: int) -> int:
        """Adjust the displayed count ahead of confirmation."""
        self._optimistic = max(0, self.count + delta)
        logger.debug(f"Optimistic queue count {self._optimistic} (confirmed {self._confirmed})")
        self.publish()
        return self._optimistic

    def reconcile(self, source_count: int, force: bool = False) -> int:
        """
        Take the count from the source of truth.

        The optimistic overlay wins unless force is set or the source already
        agrees with it, in which case the overlay is dropped.
        """
        previous = self.count
        self._confirmed = source_count

        if self._optimistic is not None and (force or self._optimistic == source_count):
            self._optimistic = None

        if self.count != previous:
            self.publish()
        return self.count

    def clear_overlay(self) -> int:
        if self._optimistic is not None:
            self._optimistic = None
            self.publish()
        return self.count
