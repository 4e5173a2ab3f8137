"""
Archive Service - soft delete for customers and crew members.

Archiving appends the record (stamped with archivedDate) to the archive
collection before removing it from the active one, so an interruption
between the two writes leaves a duplicate rather than a lost record.
Restoring does the reverse. Permanent deletion only touches the archive;
quotes, jobs and invoices that mention the name are left as they are.
"""

import logging
from typing import Any, Dict, List

from services.collection_store import (
    ARCHIVED_CREW_MEMBERS,
    ARCHIVED_CUSTOMERS,
    CREW_MEMBERS,
    CUSTOMERS,
    CollectionStore,
    StoreUnavailableError,
)
from services.event_bus import ORIGIN_USER, ChangeBus, updated_event
from services.records import CrewMember, Customer, now_iso
from services.repositories import Repository

logger = logging.getLogger(__name__)

ARCHIVE_KINDS = {
    'customer': (CUSTOMERS, ARCHIVED_CUSTOMERS, Customer),
    'crew-member': (CREW_MEMBERS, ARCHIVED_CREW_MEMBERS, CrewMember),
}


class ArchiveService:
    """Archive, restore and permanently delete customers and crew members"""

    def __init__(self, store: CollectionStore, bus: ChangeBus):
        self.store = store
        self.bus = bus

    def _repositories(self, kind: str):
        if kind not in ARCHIVE_KINDS:
            raise ValueError(f"Unknown archive kind: {kind}")
        active, archived, model = ARCHIVE_KINDS[kind]
        return Repository(self.store, active, model), Repository(self.store, archived, model)

    def _save(self, repository: Repository, records: list):
        version = repository.save_all(records)
        self.bus.publish(updated_event(repository.collection), collection=repository.collection,
                         origin=ORIGIN_USER, version=version)

    def list_archived(self, kind: str) -> List[Dict[str, Any]]:
        _, archive = self._repositories(kind)
        return [r.to_dict() for r in archive.load_all()]

    def archive(self, kind: str, record_id: str) -> Dict[str, Any]:
        """Move an active record into the archive with an archivedDate"""
        active, archive = self._repositories(kind)
        try:
            with self.bus.context_lock:
                active_records = active.load_all()
                record = next((r for r in active_records if r.id == record_id), None)
                if record is None:
                    return {'success': False, 'error': f"{kind} not found: {record_id}", 'not_found': True}

                archived = record.model_copy(update={'archived_date': now_iso()})
                archived_records = [r for r in archive.load_all() if r.id != record_id]
                self._save(archive, [*archived_records, archived])
                self._save(active, [r for r in active.load_all() if r.id != record_id])
        except StoreUnavailableError as e:
            logger.error(f"Archiving {kind} {record_id} failed: {e}")
            return {'success': False, 'error': str(e), 'unavailable': True}

        logger.info(f"Archived {kind} {record_id} ({record.name})")
        return {'success': True, 'record': archived.to_dict()}

    def restore(self, kind: str, record_id: str) -> Dict[str, Any]:
        """Move an archived record back to its active collection"""
        active, archive = self._repositories(kind)
        try:
            with self.bus.context_lock:
                record = next((r for r in archive.load_all() if r.id == record_id), None)
                if record is None:
                    return {'success': False, 'error': f"Archived {kind} not found: {record_id}", 'not_found': True}

                restored = record.model_copy(update={'archived_date': None})
                active_records = [r for r in active.load_all() if r.id != record_id]
                self._save(active, [*active_records, restored])
                self._save(archive, [r for r in archive.load_all() if r.id != record_id])
        except StoreUnavailableError as e:
            logger.error(f"Restoring {kind} {record_id} failed: {e}")
            return {'success': False, 'error': str(e), 'unavailable': True}

        logger.info(f"Restored {kind} {record_id} ({record.name})")
        return {'success': True, 'record': restored.to_dict()}

    def permanently_delete(self, kind: str, record_id: str) -> Dict[str, Any]:
        """Erase a record from the archive; nothing else is touched"""
        _, archive = self._repositories(kind)
        try:
            with self.bus.context_lock:
                records = archive.load_all()
                remaining = [r for r in records if r.id != record_id]
                if len(remaining) == len(records):
                    return {'success': False, 'error': f"Archived {kind} not found: {record_id}", 'not_found': True}
                self._save(archive, remaining)
        except StoreUnavailableError as e:
            logger.error(f"Deleting archived {kind} {record_id} failed: {e}")
            return {'success': False, 'error': str(e), 'unavailable': True}

        logger.info(f"Permanently deleted archived {kind} {record_id}")
        return {'success': True}
