"""
Tests for archiving customers and crew members
"""
import pytest

from services.archive_service import ArchiveService


@pytest.fixture
def archive(store, bus):
    return ArchiveService(store, bus)


@pytest.fixture
def customer(store):
    store.write('customers', [
        {'id': 'C-1', 'name': 'Jane Smith', 'email': 'jane@example.com'},
        {'id': 'C-2', 'name': 'Bob Jones'},
    ])
    return 'C-1'


@pytest.mark.unit
class TestArchive:

    def test_archive_moves_record(self, archive, store, customer):
        result = archive.archive('customer', customer)

        assert result['success'] is True
        assert result['record']['archivedDate']
        assert [c['id'] for c in store.read('customers')] == ['C-2']
        assert [c['id'] for c in store.read('archived-customers')] == ['C-1']

    def test_archive_publishes_both_collections(self, archive, bus, customer):
        events = []
        bus.subscribe('customers-updated', events.append)
        bus.subscribe('archived-customers-updated', events.append)

        archive.archive('customer', customer)

        # Archive copy lands before the active record is removed
        assert [e.name for e in events] == ['archived-customers-updated', 'customers-updated']

    def test_restore_clears_archived_date(self, archive, store, customer):
        archive.archive('customer', customer)
        result = archive.restore('customer', customer)

        assert result['success'] is True
        assert 'archivedDate' not in result['record']
        assert {c['id'] for c in store.read('customers')} == {'C-1', 'C-2'}
        assert store.read('archived-customers') == []

    def test_restore_returns_record_as_it_was(self, archive, store):
        before = {'id': 'C-7', 'name': 'Jane Smith', 'email': 'jane@example.com',
                  'phone': '5551234567', 'address': '12 Harbor Rd', 'status': 'active',
                  'gateCode': '1234'}
        store.write('customers', [before])

        archive.archive('customer', 'C-7')
        result = archive.restore('customer', 'C-7')

        assert result['record'] == before
        assert store.read('customers') == [before]

    def test_restore_crew_member_as_it_was(self, archive, store):
        before = {'id': '3', 'name': 'Maria Lopez', 'phone': '5559876543',
                  'email': 'maria@example.com', 'role': 'Crew Lead'}
        store.write('crew-members', [before])

        archive.archive('crew-member', '3')
        result = archive.restore('crew-member', '3')

        assert result['record'] == before
        assert store.read('crew-members') == [before]

    def test_permanent_delete_only_touches_archive(self, archive, store, customer):
        store.write('quotes', [{'id': 'Q-1', 'customerName': 'Jane Smith', 'services': []}])
        archive.archive('customer', customer)

        assert archive.permanently_delete('customer', customer)['success'] is True
        assert store.read('archived-customers') == []
        assert store.read('quotes')[0]['customerName'] == 'Jane Smith'

    def test_crew_members_archive(self, archive, store):
        store.write('crew-members', [{'id': '1', 'name': 'Kevin Rodriguez'}])

        archive.archive('crew-member', '1')

        assert store.read('crew-members') == []
        assert archive.list_archived('crew-member')[0]['name'] == 'Kevin Rodriguez'

    def test_missing_records(self, archive, customer):
        assert archive.archive('customer', 'nope')['not_found'] is True
        assert archive.restore('customer', 'nope')['not_found'] is True
        assert archive.permanently_delete('customer', 'nope')['not_found'] is True

    def test_unknown_kind(self, archive):
        with pytest.raises(ValueError):
            archive.archive('invoice', 'INV-1')
