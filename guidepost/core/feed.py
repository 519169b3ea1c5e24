"""Guidepost - Venue Change Feed.

Push-based notification of committed venue snapshots. The store publishes
after every successful commit; subscribers (the websocket route, tests)
derive whatever they need from each snapshot.
"""

import threading
from collections import defaultdict
from typing import Callable, Dict, List, Optional

from guidepost.core.logging import get_logger
from guidepost.models.venue_models import VenueSnapshot

logger = get_logger("feed")

# Called with the new snapshot, or None once the venue is deleted
OnChange = Callable[[Optional[VenueSnapshot]], None]
Unsubscribe = Callable[[], None]


class VenueFeed:
    """In-process subscription registry keyed by venue id."""

    def __init__(self):
        self._subscribers: Dict[str, List[OnChange]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, venue_id: str, on_change: OnChange) -> Unsubscribe:
        with self._lock:
            self._subscribers[venue_id].append(on_change)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(venue_id, [])
                if on_change in callbacks:
                    callbacks.remove(on_change)
                if not callbacks:
                    self._subscribers.pop(venue_id, None)

        return unsubscribe

    def publish(self, snapshot: VenueSnapshot) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(snapshot.id, []))
        for callback in callbacks:
            try:
                callback(snapshot)
            except Exception:
                # A broken listener must not fail the write that triggered it
                logger.exception(
                    "Venue feed subscriber failed", extra={"venue_id": snapshot.id}
                )

    def publish_removed(self, venue_id: str) -> None:
        """Tell subscribers the venue is gone, then drop them."""
        with self._lock:
            callbacks = self._subscribers.pop(venue_id, [])
        for callback in callbacks:
            try:
                callback(None)
            except Exception:
                logger.exception("Venue feed subscriber failed", extra={"venue_id": venue_id})

    def subscriber_count(self, venue_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(venue_id, []))

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()
