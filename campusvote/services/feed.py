"""
Activity feed and live subscriptions.

``ActivityFeed.record`` persists a content-free "a vote happened" entry and
pushes it to every open ``FeedSubscription`` in this process. A subscription
keeps the newest ``limit`` entries, newest first, and moves through
CONNECTING -> ACTIVE -> (ERROR | CLOSED). Feed order is display-only;
nothing in tallying reads it.
"""

import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional, Set

from campusvote.config import FEED_DEFAULT_LIMIT
from campusvote.exceptions import CampusVoteError, ValidationFailed
from campusvote.models.vote_model import FeedEntry

logger = logging.getLogger(__name__)

FeedListener = Callable[[List[FeedEntry]], None]

class SubscriptionState(str, Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    ERROR = "error"
    CLOSED = "closed"


class FeedSubscription:
    """A live, cancellable window over the newest feed entries."""

    def __init__(self, feed: "ActivityFeed", election_id: Optional[str], limit: int):
        self.election_id = election_id
        self.limit = limit
        self.state = SubscriptionState.CONNECTING
        self.error: Optional[CampusVoteError] = None
        self._feed = feed
        self._lock = threading.Lock()
        self._changed = threading.Condition(self._lock)
        self._version = 0
        self._seen_version = 0
        self._entries: Dict[str, FeedEntry] = {}
        self._listeners: List[FeedListener] = []

    def __enter__(self) -> "FeedSubscription":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __iter__(self) -> Iterator[List[FeedEntry]]:
        """Block for each new window until the subscription is closed."""
        while True:
            window = self.wait_for_update()
            if window is None:
                return
            yield window

    @property
    def closed(self) -> bool:
        return self.state is SubscriptionState.CLOSED

    @property
    def entries(self) -> List[FeedEntry]:
        with self._lock:
            return self._window()

    def matches(self, entry: FeedEntry) -> bool:
        return self.election_id is None or entry.election_id == self.election_id

    def add_listener(self, listener: FeedListener) -> None:
        with self._lock:
            if self.state is not SubscriptionState.CLOSED:
                self._listeners.append(listener)

    def remove_listener(self, listener: FeedListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def refresh(self) -> bool:
        """(Re)load the newest entries from storage. Returns True once ACTIVE.

        On failure the last known window is kept and the state becomes ERROR.
        """
        try:
            snapshot = self._feed.recent(self.election_id, self.limit)
        except CampusVoteError as e:
            with self._lock:
                if self.state is SubscriptionState.CLOSED:
                    return False
                self.state = SubscriptionState.ERROR
                self.error = e
            logger.warning(f"Feed subscription for election={self.election_id} failed: {e}")
            self._notify()
            return False

        with self._lock:
            if self.state is SubscriptionState.CLOSED:
                return False
            for entry in snapshot:
                self._entries[entry.id] = entry
            self._trim()
            self.state = SubscriptionState.ACTIVE
            self.error = None
        self._notify()
        return True

    def deliver(self, entry: FeedEntry) -> None:
        """Accept a pushed entry; arrivals may be out of timestamp order."""
        if not self.matches(entry):
            return
        with self._lock:
            if self.state is SubscriptionState.CLOSED or entry.id in self._entries:
                return
            self._entries[entry.id] = entry
            self._trim()
            if entry.id not in self._entries:
                # older than everything already visible
                return
        self._notify()

    def wait_for_update(self, timeout: Optional[float] = None) -> Optional[List[FeedEntry]]:
        """Current window if it changed since the last call, or None on timeout or close.

        Changes between calls collapse into one; the returned window is always
        the newest one, whatever order concurrent deliveries finished in.
        """
        with self._changed:
            changed = self._changed.wait_for(
                lambda: self.closed or self._version != self._seen_version, timeout
            )
            if not changed or self.closed:
                return None
            self._seen_version = self._version
            return self._window()

    def close(self) -> None:
        with self._lock:
            if self.state is SubscriptionState.CLOSED:
                return
            self.state = SubscriptionState.CLOSED
            self._listeners.clear()
            self._changed.notify_all()
        self._feed._unregister(self)
        logger.debug(f"Feed subscription for election={self.election_id} closed")

    def _window(self) -> List[FeedEntry]:
        # caller holds self._lock
        ordered = sorted(
            self._entries.values(), key=lambda e: (e.timestamp, e.id), reverse=True
        )
        return ordered[: self.limit]

    def _trim(self) -> None:
        self._entries = {e.id: e for e in self._window()}

    def _notify(self) -> None:
        with self._lock:
            if self.state is SubscriptionState.CLOSED:
                return
            window = self._window()
            listeners = list(self._listeners)
            self._version += 1
            self._changed.notify_all()
        # listeners run on the delivering thread and may see windows out of
        # order under concurrent delivery; ``entries`` is always current
        for listener in listeners:
            try:
                listener(window)
            except Exception:
                logger.exception("Feed listener raised; continuing delivery")


class ActivityFeed:
    """Persists feed entries and fans them out to live subscriptions."""

    def __init__(self, storage):
        self._storage = storage
        self._lock = threading.Lock()
        self._subscriptions: Set[FeedSubscription] = set()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def record(
        self, voter_name: str, election_id: str, election_title: str, timestamp: datetime
    ) -> FeedEntry:
        entry = self._storage.insert_feed_entry(
            {
                "voter_name": voter_name,
                "election_id": election_id,
                "election_title": election_title,
                "timestamp": timestamp,
            }
        )
        self.publish(entry)
        return entry

    def publish(self, entry: FeedEntry) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.deliver(entry)

    def recent(self, election_id: Optional[str] = None, limit: int = FEED_DEFAULT_LIMIT) -> List[FeedEntry]:
        return self._storage.recent_feed_entries(election_id, limit)

    def subscribe(self, election_id: Optional[str] = None, limit: int = FEED_DEFAULT_LIMIT) -> FeedSubscription:
        if limit < 1:
            raise ValidationFailed("Feed limit must be at least 1", {"limit": limit})
        subscription = FeedSubscription(self, election_id, limit)
        # register before the snapshot so nothing recorded in between is missed
        with self._lock:
            self._subscriptions.add(subscription)
        subscription.refresh()
        return subscription

    def _unregister(self, subscription: FeedSubscription) -> None:
        with self._lock:
            self._subscriptions.discard(subscription)
