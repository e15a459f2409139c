# campops_console/data_processing/live_collection.py
# LIVE COLLECTION - KEYED SNAPSHOT SUBSCRIPTIONS

"""
Keeps the latest full snapshot of one store collection.

Each LiveCollection is owned by the view that composes it and is the sole
in-memory authority for its collection. Snapshots always replace the previous
map wholesale; subscribers never receive deltas.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from .store import ErrorCallback, Store, StoreUnavailableError, Unsubscribe

logger = logging.getLogger(__name__)

RecordMap = Dict[str, Dict[str, Any]]
SnapshotListener = Callable[[RecordMap], None]


class Subscription:
    """
    Cancellation handle returned by LiveCollection.subscribe.

    Once cancelled, no further callbacks fire, including snapshots the store
    had already queued before cancellation. Usable as a context manager.
    """
    def __init__(self, collection_name: str):
        self.collection_name = collection_name
        self.cancelled = False
        self._release: Optional[Unsubscribe] = None

    def _attach(self, release: Unsubscribe) -> None:
        self._release = release

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        if self._release is not None:
            self._release()
            self._release = None
        logger.debug(f"({self.collection_name}) Subscription cancelled.")

    __call__ = cancel

    def __enter__(self) -> 'Subscription':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()


class LiveCollection:
    """A subscription wrapper that re-keys a collection snapshot by record id."""

    def __init__(self, store: Store, collection_name: str, consumer: str = "default"):
        self.store = store
        self.collection_name = collection_name
        self.consumer = consumer
        self._snapshot: RecordMap = {}
        self._subscription: Optional[Subscription] = None
        self.has_data = False
        self.last_error: Optional[str] = None

    @property
    def context(self) -> str:
        return f"{self.consumer}:{self.collection_name}"

    @staticmethod
    def rekey(raw: Optional[Dict[str, Any]], context: str = "snapshot") -> RecordMap:
        """Turns a raw collection value into {id: record-with-id}, skipping non-dict entries."""
        if not isinstance(raw, dict):
            return {}
        keyed: RecordMap = {}
        for record_id, record in raw.items():
            if not isinstance(record, dict):
                logger.warning(f"({context}) Skipping record '{record_id}': expected an object, got {type(record).__name__}.")
                continue
            keyed[str(record_id)] = {**record, 'id': str(record_id)}
        return keyed

    def subscribe(self, on_snapshot: SnapshotListener, on_error: Optional[ErrorCallback] = None) -> Subscription:
        """
        Registers interest in the collection. Re-subscribing cancels the prior
        subscription so a consumer never receives duplicate callbacks.
        """
        if self._subscription is not None:
            logger.info(f"({self.context}) Replacing active subscription.")
            self._subscription.cancel()

        subscription = Subscription(self.collection_name)
        self._subscription = subscription

        def handle_value(raw: Optional[Dict[str, Any]]) -> None:
            if subscription.cancelled:
                logger.debug(f"({self.context}) Discarding snapshot delivered after unsubscribe.")
                return
            self._snapshot = self.rekey(raw, self.context)
            self.has_data = True
            self.last_error = None
            logger.debug(f"({self.context}) Snapshot received with {len(self._snapshot)} records.")
            on_snapshot(dict(self._snapshot))

        def handle_error(reason: str) -> None:
            if subscription.cancelled:
                return
            self.last_error = reason
            logger.error(f"({self.context}) Subscription error: {reason}")
            if on_error is not None:
                on_error(reason)

        try:
            subscription._attach(self.store.subscribe(self.collection_name, handle_value, handle_error))
        except StoreUnavailableError as e:
            handle_error(str(e))
            subscription.cancel()
            self._subscription = None
        return subscription

    def unsubscribe(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None and not self._subscription.cancelled

    @property
    def snapshot(self) -> RecordMap:
        return dict(self._snapshot)

    def records(self) -> List[Dict[str, Any]]:
        return list(self._snapshot.values())

    def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        return self._snapshot.get(record_id)

    def __enter__(self) -> 'LiveCollection':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()
