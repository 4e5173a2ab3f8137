"""
Change Notification Bus

Two delivery paths:
- ChangeBus: same-process publish/subscribe keyed by event name
  ("<collection>-updated"). Handlers run synchronously, once each, in
  subscription order, before publish() returns.
- StoreWatcher: notices writes made by other processes by tracking the last
  seen version of each collection, and re-announces them on the bus as
  "store-changed" plus the collection's own "-updated" event.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from services.collection_store import COLLECTIONS, CollectionStore, StoreUnavailableError

logger = logging.getLogger(__name__)

STORE_CHANGED = 'store-changed'

# Provenance of a write
ORIGIN_USER = 'user'
ORIGIN_CASCADE = 'cascade'
ORIGIN_EXTERNAL = 'external'


def updated_event(collection: str) -> str:
    return f"{collection}-updated"


@dataclass(frozen=True)
class ChangeEvent:
    name: str
    collection: Optional[str] = None
    origin: str = ORIGIN_USER
    version: Optional[int] = None


Handler = Callable[[ChangeEvent], None]


class ChangeBus:
    """Synchronous in-process event bus"""

    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}
        self._dispatching = set()
        self.context_lock = threading.RLock()

    def subscribe(self, name: str, handler: Handler) -> Callable[[], None]:
        """Register a handler; returns a callable that unsubscribes it"""
        with self.context_lock:
            self._subscribers.setdefault(name, []).append(handler)

        def unsubscribe():
            self.unsubscribe(name, handler)

        return unsubscribe

    def unsubscribe(self, name: str, handler: Handler):
        with self.context_lock:
            handlers = self._subscribers.get(name, [])
            if handler in handlers:
                handlers.remove(handler)

    def subscriber_count(self, name: str) -> int:
        with self.context_lock:
            return len(self._subscribers.get(name, []))

    def publish(self, name: str, collection: Optional[str] = None,
                origin: str = ORIGIN_USER, version: Optional[int] = None) -> bool:
        """
        Deliver an event to its subscribers.

        A publish of an event that is already being dispatched (a handler
        re-publishing what it is reacting to) is dropped.

        Returns:
            True if the event was dispatched, False if suppressed
        """
        with self.context_lock:
            if name in self._dispatching:
                logger.debug(f"Suppressed re-entrant publish of '{name}' (origin={origin})")
                return False

            event = ChangeEvent(name=name, collection=collection, origin=origin, version=version)
            handlers = list(self._subscribers.get(name, []))
            self._dispatching.add(name)
            try:
                for handler in handlers:
                    try:
                        handler(event)
                    except Exception as e:
                        logger.error(f"Handler {getattr(handler, '__name__', handler)!s} for '{name}' failed: {e}",
                                     exc_info=True)
            finally:
                self._dispatching.discard(name)

        return True


class StoreWatcher:
    """
    Version-tracking consumer of the collection store.

    Local writes announced on the bus update the last-seen version, so
    poll() only reports writes made elsewhere.
    """

    def __init__(self, store: CollectionStore, bus: ChangeBus, collections: Iterable[str] = COLLECTIONS):
        self.store = store
        self.bus = bus
        self.collections = tuple(collections)
        self._lock = threading.Lock()
        self._seen: Dict[str, int] = {}
        for collection in self.collections:
            self._seen[collection] = self._current_version(collection) or 0
            bus.subscribe(updated_event(collection), self._record_local_write)

    def _current_version(self, collection: str) -> Optional[int]:
        try:
            return self.store.version(collection)
        except StoreUnavailableError as e:
            logger.warning(f"Cannot check version of '{collection}': {e}")
            return None

    def _record_local_write(self, event: ChangeEvent):
        if event.origin == ORIGIN_EXTERNAL or event.version is None or event.collection is None:
            return
        with self._lock:
            self._seen[event.collection] = event.version

    def last_seen(self, collection: str) -> int:
        with self._lock:
            return self._seen.get(collection, 0)

    def poll(self) -> List[str]:
        """
        Re-read collection versions and announce the ones that moved.

        Runs under the bus context lock so a local write that has been
        persisted but not yet announced is never mistaken for an external one.

        Returns:
            Names of the collections that changed since the last poll
        """
        with self.bus.context_lock:
            changed = []
            for collection in self.collections:
                version = self._current_version(collection)
                if version is None:
                    continue
                with self._lock:
                    # A reset store counts as a change too
                    if version == self._seen.get(collection):
                        continue
                    self._seen[collection] = version
                changed.append((collection, version))

            for collection, version in changed:
                logger.info(f"External change detected in '{collection}' (version {version})")
                self.bus.publish(STORE_CHANGED, collection=collection, origin=ORIGIN_EXTERNAL, version=version)
                self.bus.publish(updated_event(collection), collection=collection,
                                 origin=ORIGIN_EXTERNAL, version=version)

        return [collection for collection, _ in changed]
