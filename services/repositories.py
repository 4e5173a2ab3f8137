"""
Typed repositories over the collection store.

Record shapes are enforced here: whatever comes out of load_all() and goes
into save_all() has passed model validation. Stored entries that fail
validation are hidden from load_all() but written back untouched by
save_all(), so a whole-collection write never drops them.
"""

import logging
from typing import Any, Generic, List, Type, TypeVar

from pydantic import ValidationError

from services.collection_store import (
    CollectionStore,
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
    DISMISSED_YEARLY_REMINDERS,
)
from services.records import (
    Record,
    Customer,
    CrewMember,
    Appointment,
    Quote,
    Job,
    Invoice,
    CrewNotification,
)

logger = logging.getLogger(__name__)

T = TypeVar('T', bound=Record)


class Repository(Generic[T]):
    """load_all/save_all for one collection of records"""

    def __init__(self, store: CollectionStore, collection: str, model: Type[T]):
        self.store = store
        self.collection = collection
        self.model = model

    def load_all(self) -> List[T]:
        records = []
        for raw in self.store.read(self.collection):
            try:
                records.append(self.model.model_validate(raw))
            except ValidationError as e:
                logger.warning(
                    f"Skipping malformed record in '{self.collection}' "
                    f"(id={raw.get('id') if isinstance(raw, dict) else None}): {e.error_count()} errors"
                )
        return records

    def unreadable(self) -> List[Any]:
        """Stored entries that do not validate as this collection's model"""
        kept = []
        for raw in self.store.read(self.collection):
            try:
                self.model.model_validate(raw)
            except ValidationError:
                kept.append(raw)
        return kept

    def save_all(self, records: List[T]) -> int:
        validated = [self.model.model_validate(r) if isinstance(r, dict) else r for r in records]
        ids = {r.id for r in validated}
        preserved = [
            raw for raw in self.unreadable()
            if not (isinstance(raw, dict) and raw.get('id') in ids)
        ]
        if preserved:
            logger.info(f"Keeping {len(preserved)} unreadable record(s) in '{self.collection}'")
        return self.store.write(self.collection, [r.to_dict() for r in validated] + preserved)

    def get(self, record_id: str):
        return next((r for r in self.load_all() if r.id == record_id), None)


class ReferenceSet:
    """Ordered set of plain string ids (tombstones, dismissed reminders)"""

    def __init__(self, store: CollectionStore, collection: str):
        self.store = store
        self.collection = collection

    def load(self) -> List[str]:
        values = []
        for value in self.store.read(self.collection):
            if isinstance(value, str) and value not in values:
                values.append(value)
        return values

    def save(self, values: List[str]) -> int:
        preserved = [v for v in self.store.read(self.collection) if not isinstance(v, str)]
        return self.store.write(self.collection, list(dict.fromkeys(values)) + preserved)

    def add(self, value: str) -> bool:
        values = self.load()
        if value in values:
            return False
        values.append(value)
        self.save(values)
        return True

    def __contains__(self, value: str) -> bool:
        return value in self.load()


class Repositories:
    """Every typed repository for one store"""

    def __init__(self, store: CollectionStore):
        self.store = store
        self.customers = Repository(store, CUSTOMERS, Customer)
        self.crew_members = Repository(store, CREW_MEMBERS, CrewMember)
        self.appointments = Repository(store, APPOINTMENTS, Appointment)
        self.quotes = Repository(store, QUOTES, Quote)
        self.jobs = Repository(store, JOBS, Job)
        self.invoices = Repository(store, INVOICES, Invoice)
        self.crew_notifications = Repository(store, CREW_NOTIFICATIONS, CrewNotification)
        self.archived_customers = Repository(store, ARCHIVED_CUSTOMERS, Customer)
        self.archived_crew_members = Repository(store, ARCHIVED_CREW_MEMBERS, CrewMember)
        self.deleted_job_references = ReferenceSet(store, DELETED_JOB_REFERENCES)
        self.dismissed_yearly_reminders = ReferenceSet(store, DISMISSED_YEARLY_REMINDERS)
