"""
Services package for the K&R back office.
Contains the collection store, change bus, cascade engine and the services built on them.
"""

from services.collection_store import CollectionStore, JSONCollectionStore, DatabaseCollectionStore, create_store
from services.event_bus import ChangeBus, StoreWatcher
from services.workflow_service import WorkflowService
from services.notification_service import CrewNotificationService, CrewFeedRegistry
from services.archive_service import ArchiveService
from services.reminder_service import YearlyReminderService

__all__ = [
    'CollectionStore',
    'JSONCollectionStore',
    'DatabaseCollectionStore',
    'create_store',
    'ChangeBus',
    'StoreWatcher',
    'WorkflowService',
    'CrewNotificationService',
    'CrewFeedRegistry',
    'ArchiveService',
    'YearlyReminderService'
]
