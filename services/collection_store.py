"""
Persistent Collection Store - named collections replaced whole on every write.

Every collection is an ordered list of plain JSON records. Writes bump a
per-collection version counter so other processes sharing the same medium
can tell that something changed. There is no cross-process locking: two
writers racing on one collection lose an update (last write wins).

Backends:
- JSONCollectionStore: one JSON file per collection under the store folder
- DatabaseCollectionStore: one row per collection in the `collections` table
"""

import os
import re
import copy
import json
import logging
import threading
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

# Collection names (stable across the system)
CUSTOMERS = 'customers'
APPOINTMENTS = 'appointments'
QUOTES = 'quotes'
JOBS = 'jobs'
INVOICES = 'invoices'
CREW_MEMBERS = 'crew-members'
CREW_NOTIFICATIONS = 'crew-notifications'
ARCHIVED_CUSTOMERS = 'archived-customers'
ARCHIVED_CREW_MEMBERS = 'archived-crew-members'
DELETED_JOB_REFERENCES = 'deleted-job-references'
TECHNICIANS = 'technicians'
DISMISSED_YEARLY_REMINDERS = 'dismissed-yearly-reminders'

COLLECTIONS = (
    CUSTOMERS,
    APPOINTMENTS,
    QUOTES,
    JOBS,
    INVOICES,
    CREW_MEMBERS,
    CREW_NOTIFICATIONS,
    ARCHIVED_CUSTOMERS,
    ARCHIVED_CREW_MEMBERS,
    DELETED_JOB_REFERENCES,
    TECHNICIANS,
    DISMISSED_YEARLY_REMINDERS,
)

COLLECTION_NAME_PATTERN = re.compile(r'^[a-z0-9][a-z0-9-]{0,99}$')


class StoreUnavailableError(Exception):
    """Raised when a collection cannot be read or persisted"""
    def __init__(self, collection: str, message: str):
        self.collection = collection
        self.message = message
        super().__init__(f"Store unavailable for '{collection}': {message}")


def validate_collection_name(name: str) -> str:
    if not isinstance(name, str) or not COLLECTION_NAME_PATTERN.match(name):
        raise ValueError(f"Invalid collection name: {name!r}")
    return name


class CollectionStore:
    """Contract shared by every store backend"""

    def read(self, name: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def write(self, name: str, records: List[Dict[str, Any]]) -> int:
        """Replace the whole collection and return its new version"""
        raise NotImplementedError

    def version(self, name: str) -> int:
        raise NotImplementedError

    def versions(self, names: Optional[Iterable[str]] = None) -> Dict[str, int]:
        return {name: self.version(name) for name in (names or COLLECTIONS)}

    def clear(self, name: str) -> int:
        """Empty a collection; the version still advances"""
        return self.write(name, [])


# File lock for thread-safe operations
_file_locks: Dict[str, threading.Lock] = {}
_file_locks_guard = threading.Lock()


def get_file_lock(filepath: str) -> threading.Lock:
    """Get or create a lock for a specific file"""
    with _file_locks_guard:
        if filepath not in _file_locks:
            _file_locks[filepath] = threading.Lock()
        return _file_locks[filepath]


class JSONCollectionStore(CollectionStore):
    """
    File-per-collection store.

    Each file holds {"version": n, "records": [...]}. A bare list (records
    written by hand or by an older tool) is read as version 0.
    """

    def __init__(self, folder: str):
        self.folder = folder
        os.makedirs(folder, exist_ok=True)

    def _path(self, name: str) -> str:
        return os.path.join(self.folder, f"{validate_collection_name(name)}.json")

    def _load_unlocked(self, filepath: str) -> Dict[str, Any]:
        empty = {'version': 0, 'records': []}
        if not os.path.exists(filepath):
            return empty
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                content = f.read().strip()
            if not content:
                return empty
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.error(f"JSON decode error in {filepath}: {e}")
            backup_path = f"{filepath}.backup.{datetime.now().strftime('%Y%m%d_%H%M%S')}"
            os.rename(filepath, backup_path)
            logger.warning(f"Corrupted file backed up to {backup_path}")
            return empty
        except OSError as e:
            raise StoreUnavailableError(os.path.basename(filepath), str(e))

        if isinstance(data, list):
            return {'version': 0, 'records': data}
        return {
            'version': int(data.get('version', 0)),
            'records': list(data.get('records', [])),
        }

    def read(self, name: str) -> List[Dict[str, Any]]:
        filepath = self._path(name)
        with get_file_lock(filepath):
            return self._load_unlocked(filepath)['records']

    def version(self, name: str) -> int:
        filepath = self._path(name)
        with get_file_lock(filepath):
            return self._load_unlocked(filepath)['version']

    def write(self, name: str, records: List[Dict[str, Any]]) -> int:
        filepath = self._path(name)
        temp_path = f"{filepath}.tmp"
        with get_file_lock(filepath):
            new_version = self._load_unlocked(filepath)['version'] + 1
            try:
                # Write to temp file first, then rename (atomic operation)
                with open(temp_path, 'w', encoding='utf-8') as f:
                    json.dump({'version': new_version, 'records': list(records)}, f, indent=2, default=str)
                os.replace(temp_path, filepath)
            except (OSError, TypeError, ValueError) as e:
                logger.error(f"Error saving {filepath}: {e}")
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise StoreUnavailableError(name, str(e))

        logger.debug(f"Wrote {len(records)} records to '{name}' (version {new_version})")
        return new_version


class DatabaseCollectionStore(CollectionStore):
    """Collection store backed by the SQLAlchemy `collections` table"""

    def __init__(self, session_factory=None):
        self.session_factory = session_factory

    def _session(self):
        from database.connection import get_db_session
        return get_db_session(self.session_factory)

    def read(self, name: str) -> List[Dict[str, Any]]:
        from database.models import CollectionRecord

        validate_collection_name(name)
        try:
            with self._session() as db:
                row = db.get(CollectionRecord, name)
                return copy.deepcopy(list(row.records or [])) if row else []
        except SQLAlchemyError as e:
            logger.error(f"Database read failed for '{name}': {e}")
            raise StoreUnavailableError(name, str(e))

    def version(self, name: str) -> int:
        from database.models import CollectionRecord

        validate_collection_name(name)
        try:
            with self._session() as db:
                row = db.get(CollectionRecord, name)
                return row.version if row else 0
        except SQLAlchemyError as e:
            logger.error(f"Database version check failed for '{name}': {e}")
            raise StoreUnavailableError(name, str(e))

    def write(self, name: str, records: List[Dict[str, Any]]) -> int:
        from database.models import CollectionRecord

        validate_collection_name(name)
        try:
            with self._session() as db:
                row = db.get(CollectionRecord, name)
                if row is None:
                    row = CollectionRecord(name=name, records=[], version=0)
                    db.add(row)
                row.records = copy.deepcopy(list(records))
                row.version = (row.version or 0) + 1
                new_version = row.version
        except SQLAlchemyError as e:
            logger.error(f"Database write failed for '{name}': {e}")
            raise StoreUnavailableError(name, str(e))

        logger.debug(f"Wrote {len(records)} records to '{name}' (version {new_version})")
        return new_version


def create_store(config) -> CollectionStore:
    """
    Build the collection store selected by configuration.

    Args:
        config: Flask app config (or any mapping with DATABASE_URL / STORE_FOLDER)
    """
    from config import get_storage_mode

    if get_storage_mode(config) == 'database':
        from database.connection import get_session_factory, init_db, get_engine

        session_factory = get_session_factory(config.get('DATABASE_URL'))
        init_db(get_engine())
        logger.info("Collection store: database")
        return DatabaseCollectionStore(session_factory)

    folder = config.get('STORE_FOLDER', 'store_data')
    logger.info(f"Collection store: JSON files in {folder}")
    return JSONCollectionStore(folder)
