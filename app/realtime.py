"""
Live queries over the document collections

A subscriber registers a loader (a query run against a fresh session) for a
collection. Every committed write to that collection re-runs the loader and
hands the complete result list to the subscriber - a snapshot replace, never
an incremental diff. Loader failures are reported through ``on_error`` and
the subscriber falls back to an empty snapshot.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from .database import SessionLocal

logger = logging.getLogger(__name__)

Loader = Callable[[Session], list[Any]]
SnapshotCallback = Callable[[list[Any]], None]
ErrorCallback = Callable[[Exception], None]

COLLECTIONS = ("users", "appointments", "companies", "notifications")


@dataclass(eq=False)
class Subscription:
    collection: str
    loader: Loader
    on_snapshot: SnapshotCallback
    on_error: Optional[ErrorCallback] = None
    hub: Optional["SnapshotHub"] = field(default=None, repr=False)
    active: bool = True

    def unsubscribe(self) -> None:
        if self.hub is not None and self.active:
            self.hub.remove(self)
        self.active = False


class SnapshotHub:
    """In-process registry of live queries, one list of subscriptions per collection"""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(
        self,
        collection: str,
        loader: Loader,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
        deliver_initial: bool = True,
    ) -> Subscription:
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {collection}")

        subscription = Subscription(collection, loader, on_snapshot, on_error, hub=self)
        with self._lock:
            self._subscriptions.setdefault(collection, []).append(subscription)
        logger.debug(f"📡 Live query registered on {collection}")

        if deliver_initial:
            self._deliver(subscription)
        return subscription

    def remove(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._subscriptions.get(subscription.collection, [])
            if subscription in subscribers:
                subscribers.remove(subscription)

    def subscriber_count(self, collection: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(collection, []))

    def publish(self, collection: str) -> int:
        """Re-run every live query on ``collection``; returns how many were notified"""
        with self._lock:
            subscribers = list(self._subscriptions.get(collection, []))

        for subscription in subscribers:
            self._deliver(subscription)
        return len(subscribers)

    def _deliver(self, subscription: Subscription) -> None:
        if not subscription.active:
            return

        db = self.session_factory()
        try:
            documents = subscription.loader(db)
        except Exception as e:
            logger.error(f"❌ Live query on {subscription.collection} failed: {e}")
            if subscription.on_error is not None:
                subscription.on_error(e)
            documents = []
        finally:
            db.close()

        try:
            subscription.on_snapshot(documents)
        except Exception as e:
            # A broken subscriber must not stop delivery to the others
            logger.error(f"❌ Snapshot callback on {subscription.collection} raised: {e}")


snapshot_hub = SnapshotHub()
