# campops_console/data_processing/store.py
# STORE BOUNDARY - PROTOCOL & IN-MEMORY TREE STORE

"""
The document/tree store is an external collaborator. This module fixes the
four primitives the core relies on (subscribe, get, merge, push) and ships an
in-memory implementation used by the console demo and the test-suite.

Paths are slash-separated ('healthCamps/-abc123'). A collection path maps
record ids to record dicts.
"""

import copy
import logging
import uuid
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[Optional[Dict[str, Any]]], None]
ErrorCallback = Callable[[str], None]
Unsubscribe = Callable[[], None]


class StoreUnavailableError(Exception):
    """Raised when a subscribe/read/write fails at the I/O boundary."""


class Store(Protocol):
    def subscribe(self, path: str, on_value: SnapshotCallback, on_error: Optional[ErrorCallback] = None) -> Unsubscribe: ...

    def get(self, path: str) -> Optional[Any]: ...

    def merge(self, path: str, patch: Dict[str, Any]) -> None: ...

    def push(self, collection_path: str, record: Dict[str, Any]) -> str: ...


def _split(path: str) -> List[str]:
    return [p for p in path.strip('/').split('/') if p]


class InMemoryStore:
    """
    A tree store with "subscribe to full collection" semantics.

    Every write re-emits the complete value of each subscribed path it touches.
    With `auto_flush=False` emissions queue up until `flush()` is called, which
    lets callers model snapshots that are still in flight.
    """
    def __init__(self, initial: Optional[Dict[str, Any]] = None, auto_flush: bool = True):
        self._tree: Dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self._listeners: Dict[int, Tuple[str, SnapshotCallback, Optional[ErrorCallback]]] = {}
        self._next_token = 0
        self._pending: Deque[Tuple[int, Optional[Dict[str, Any]]]] = deque()
        self.auto_flush = auto_flush
        self.available = True

    # --- Internal helpers ---
    def _check_available(self, operation: str, path: str) -> None:
        if not self.available:
            raise StoreUnavailableError(f"Store unavailable during {operation} on '{path}'.")

    def _read(self, path: str) -> Optional[Any]:
        node: Any = self._tree
        for part in _split(path):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

    def _emit(self, changed_path: str) -> None:
        changed = _split(changed_path)
        for token, (path, _, _) in list(self._listeners.items()):
            watched = _split(path)
            depth = min(len(watched), len(changed))
            if watched[:depth] == changed[:depth]:
                self._pending.append((token, copy.deepcopy(self._read(path))))
        if self.auto_flush:
            self.flush()

    # --- Public API ---
    def flush(self) -> int:
        """Delivers queued snapshots in emission order; returns how many were delivered."""
        delivered = 0
        while self._pending:
            token, value = self._pending.popleft()
            listener = self._listeners.get(token)
            if listener is None:
                continue
            listener[1](value)
            delivered += 1
        return delivered

    def fail_subscribers(self, reason: str) -> None:
        """Reports a connectivity/permission failure to every active subscriber."""
        for _, (path, _, on_error) in list(self._listeners.items()):
            if on_error is not None:
                on_error(reason)

    def subscribe(self, path: str, on_value: SnapshotCallback, on_error: Optional[ErrorCallback] = None) -> Unsubscribe:
        self._check_available('subscribe', path)
        token = self._next_token
        self._next_token += 1
        self._listeners[token] = (path, on_value, on_error)
        logger.debug(f"(store) Listener {token} attached to '{path}'.")
        self._pending.append((token, copy.deepcopy(self._read(path))))
        if self.auto_flush:
            self.flush()

        def unsubscribe() -> None:
            if self._listeners.pop(token, None) is not None:
                logger.debug(f"(store) Listener {token} detached from '{path}'.")

        return unsubscribe

    def get(self, path: str) -> Optional[Any]:
        self._check_available('get', path)
        return copy.deepcopy(self._read(path))

    def merge(self, path: str, patch: Dict[str, Any]) -> None:
        """Shallow merge at the subtree; sibling fields are left untouched."""
        self._check_available('merge', path)
        node = self._tree
        for part in _split(path):
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node.update(copy.deepcopy(patch))
        self._emit(path)

    def push(self, collection_path: str, record: Dict[str, Any]) -> str:
        self._check_available('push', collection_path)
        new_id = f"-{uuid.uuid4().hex[:20]}"
        self.merge(f"{collection_path}/{new_id}", record)
        return new_id

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
