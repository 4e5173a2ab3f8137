"""
Tests for the change bus and store watcher
"""
import pytest

from services.collection_store import JSONCollectionStore
from services.event_bus import (
    ORIGIN_EXTERNAL,
    ORIGIN_USER,
    STORE_CHANGED,
    StoreWatcher,
    updated_event,
)


@pytest.mark.unit
class TestChangeBus:
    """Same-process publish/subscribe"""

    def test_handlers_run_in_subscription_order(self, bus):
        calls = []
        bus.subscribe('quotes-updated', lambda e: calls.append('first'))
        bus.subscribe('quotes-updated', lambda e: calls.append('second'))

        assert bus.publish('quotes-updated', collection='quotes') is True
        assert calls == ['first', 'second']

    def test_event_carries_provenance(self, bus):
        events = []
        bus.subscribe('jobs-updated', events.append)

        bus.publish('jobs-updated', collection='jobs', origin=ORIGIN_USER, version=3)

        assert events[0].collection == 'jobs'
        assert events[0].origin == ORIGIN_USER
        assert events[0].version == 3

    def test_unsubscribe(self, bus):
        calls = []
        unsubscribe = bus.subscribe('jobs-updated', calls.append)
        unsubscribe()

        bus.publish('jobs-updated')
        assert calls == []
        assert bus.subscriber_count('jobs-updated') == 0

    def test_reentrant_publish_is_suppressed(self, bus):
        calls = []

        def echo(event):
            calls.append(event)
            bus.publish('quotes-updated', collection='quotes')

        bus.subscribe('quotes-updated', echo)
        bus.publish('quotes-updated', collection='quotes')

        assert len(calls) == 1

    def test_failing_handler_does_not_stop_others(self, bus):
        calls = []

        def broken(event):
            raise RuntimeError('boom')

        bus.subscribe('quotes-updated', broken)
        bus.subscribe('quotes-updated', calls.append)
        bus.publish('quotes-updated')

        assert len(calls) == 1

    def test_updated_event_name(self):
        assert updated_event('crew-notifications') == 'crew-notifications-updated'


@pytest.mark.unit
class TestStoreWatcher:
    """Cross-process change detection by version"""

    def test_local_writes_are_not_reported(self, store, bus):
        watcher = StoreWatcher(store, bus, collections=['quotes'])
        version = store.write('quotes', [{'id': 'Q-1'}])
        bus.publish('quotes-updated', collection='quotes', origin=ORIGIN_USER, version=version)

        assert watcher.poll() == []

    def test_external_write_is_announced(self, store, bus, tmp_path):
        watcher = StoreWatcher(store, bus, collections=['quotes', 'jobs'])
        events = []
        bus.subscribe(STORE_CHANGED, events.append)
        bus.subscribe('quotes-updated', events.append)

        other_process = JSONCollectionStore(str(tmp_path / 'store'))
        other_process.write('quotes', [{'id': 'Q-1'}])

        assert watcher.poll() == ['quotes']
        assert {e.name for e in events} == {STORE_CHANGED, 'quotes-updated'}
        assert all(e.origin == ORIGIN_EXTERNAL for e in events)
        assert watcher.last_seen('quotes') == 1

        # Nothing new on the next poll
        assert watcher.poll() == []

    def test_reset_store_counts_as_change(self, store, bus, tmp_path):
        store.write('jobs', [{'id': 'J-1'}])
        store.write('jobs', [{'id': 'J-1'}])
        watcher = StoreWatcher(store, bus, collections=['jobs'])

        (tmp_path / 'store' / 'jobs.json').unlink()

        assert watcher.poll() == ['jobs']
        assert watcher.last_seen('jobs') == 0
