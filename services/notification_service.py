"""
Crew Notification Service - per-crew-member feed of schedule changes.

Notifications are kept most-recent-first in the `crew-notifications`
collection. They are never deleted here; reading them only flips `read`,
and `read` never goes back to false.
"""

import logging
import random
import string
import time
from typing import Any, Dict, List, Optional

from services.collection_store import CREW_NOTIFICATIONS, CollectionStore, StoreUnavailableError
from services.event_bus import (
    ChangeBus,
    ChangeEvent,
    ORIGIN_CASCADE,
    ORIGIN_USER,
    STORE_CHANGED,
    updated_event,
)
from services.records import CrewNotification, NotificationDetails, now_iso
from services.repositories import Repository

logger = logging.getLogger(__name__)

CREW_NOTIFICATIONS_UPDATED = updated_event(CREW_NOTIFICATIONS)

NOTIFICATION_TYPES = {
    'new_assignment': 'New assignment',
    'assignment_removed': 'Assignment removed',
    'date_changed': 'Date changed',
    'time_changed': 'Time changed',
    'schedule_changed': 'Schedule changed',
}


def generate_notification_id() -> str:
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"notif-{int(time.time() * 1000)}-{suffix}"


class CrewNotificationService:
    """Creates, lists and retires crew notifications."""

    def __init__(self, store: CollectionStore, bus: ChangeBus):
        self.store = store
        self.bus = bus
        self.repository = Repository(store, CREW_NOTIFICATIONS, CrewNotification)

    def _save(self, notifications: List[CrewNotification], origin: str) -> int:
        version = self.repository.save_all(notifications)
        self.bus.publish(CREW_NOTIFICATIONS_UPDATED, collection=CREW_NOTIFICATIONS,
                         origin=origin, version=version)
        return version

    def create_notification(self, crew_member_name: str, notification_type: str, message: str,
                            details: Optional[Dict[str, Any]] = None,
                            origin: str = ORIGIN_CASCADE) -> Dict[str, Any]:
        """
        Put a new unread notification at the front of the feed.

        Args:
            crew_member_name: Crew member the notification is for
            notification_type: One of NOTIFICATION_TYPES
            message: Human readable text
            details: customerName/date/time/address/oldDate/newDate/oldTime/newTime

        Returns:
            {'success': True, 'notification': {...}} or {'success': False, 'error': ...}
        """
        if notification_type not in NOTIFICATION_TYPES:
            return {'success': False, 'error': f"Unknown notification type: {notification_type}"}
        if not crew_member_name:
            return {'success': False, 'error': 'Crew member name is required'}

        notification = CrewNotification(
            id=generate_notification_id(),
            crew_member_name=crew_member_name,
            type=notification_type,
            message=message,
            details=NotificationDetails.model_validate(details or {}),
            timestamp=now_iso(),
            read=False,
        )

        try:
            with self.bus.context_lock:
                existing = self.repository.load_all()
                self._save([notification, *existing], origin)
        except StoreUnavailableError as e:
            logger.error(f"Failed to store notification for {crew_member_name}: {e}")
            return {'success': False, 'error': str(e), 'unavailable': True}

        logger.info(f"Crew notification {notification.type} for {crew_member_name}: {message}")
        return {'success': True, 'notification': notification.to_dict()}

    def get_notifications(self, crew_member_name: Optional[str] = None,
                          unread_only: bool = False, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        notifications = [
            n for n in self.repository.load_all()
            if (crew_member_name is None or n.crew_member_name == crew_member_name)
            and (not unread_only or not n.read)
        ]
        if limit:
            notifications = notifications[:limit]
        return [n.to_dict() for n in notifications]

    def get_unread(self, crew_member_name: str) -> List[Dict[str, Any]]:
        """Unread notifications for one crew member, most recent first"""
        return self.get_notifications(crew_member_name, unread_only=True)

    def get_current(self, crew_member_name: str) -> Optional[Dict[str, Any]]:
        """The notification the crew view shows next"""
        unread = self.get_unread(crew_member_name)
        return unread[0] if unread else None

    def get_unread_count(self, crew_member_name: str) -> int:
        return len(self.get_unread(crew_member_name))

    def mark_as_read(self, notification_id: str) -> Dict[str, Any]:
        try:
            with self.bus.context_lock:
                notifications = self.repository.load_all()
                target = next((n for n in notifications if n.id == notification_id), None)
                if target is None:
                    return {'success': False, 'error': 'Notification not found', 'not_found': True}
                if not target.read:
                    self._save(
                        [n.model_copy(update={'read': True}) if n is target else n for n in notifications],
                        ORIGIN_USER,
                    )
        except StoreUnavailableError as e:
            logger.error(f"Failed to mark notification {notification_id} as read: {e}")
            return {'success': False, 'error': str(e), 'unavailable': True}

        return {'success': True}

    def mark_all_as_read(self, crew_member_name: str) -> Dict[str, Any]:
        try:
            with self.bus.context_lock:
                notifications = self.repository.load_all()
                count = sum(1 for n in notifications if n.crew_member_name == crew_member_name and not n.read)
                if count:
                    self._save(
                        [
                            n.model_copy(update={'read': True})
                            if n.crew_member_name == crew_member_name else n
                            for n in notifications
                        ],
                        ORIGIN_USER,
                    )
        except StoreUnavailableError as e:
            logger.error(f"Failed to mark notifications read for {crew_member_name}: {e}")
            return {'success': False, 'error': str(e), 'unavailable': True}

        return {'success': True, 'count': count}


class CrewNotificationFeed:
    """
    Crew-facing consumer of the notification collection.

    Re-reads only when the collection version it last saw has moved. Change
    signals from the bus trigger a refresh immediately; poll() is the
    fixed-interval fallback.
    """

    def __init__(self, service: CrewNotificationService, crew_member_name: str):
        self.service = service
        self.crew_member_name = crew_member_name
        self.last_version: Optional[int] = None
        self._unread: List[Dict[str, Any]] = []
        self._unsubscribers = [
            service.bus.subscribe(CREW_NOTIFICATIONS_UPDATED, self._on_change),
            service.bus.subscribe(STORE_CHANGED, self._on_change),
        ]
        self.refresh()

    def _on_change(self, event: ChangeEvent):
        if event.collection in (None, CREW_NOTIFICATIONS):
            self.refresh()

    def refresh(self, force: bool = False) -> bool:
        """
        Re-read the feed if its version advanced.

        Returns:
            True if the feed was re-read
        """
        try:
            version = self.service.store.version(CREW_NOTIFICATIONS)
        except StoreUnavailableError as e:
            logger.warning(f"Notification feed for {self.crew_member_name} could not refresh: {e}")
            return False

        if not force and version == self.last_version:
            return False

        self._unread = self.service.get_unread(self.crew_member_name)
        self.last_version = version
        return True

    def poll(self) -> bool:
        return self.refresh()

    @property
    def unread(self) -> List[Dict[str, Any]]:
        return list(self._unread)

    def current(self) -> Optional[Dict[str, Any]]:
        return self._unread[0] if self._unread else None

    def acknowledge(self) -> Optional[Dict[str, Any]]:
        """Mark the current notification read and return the next one"""
        current = self.current()
        if current:
            self.service.mark_as_read(current['id'])
            self.refresh(force=True)
        return self.current()

    def acknowledge_all(self) -> int:
        result = self.service.mark_all_as_read(self.crew_member_name)
        self.refresh(force=True)
        return result.get('count', 0)

    def close(self):
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []


class CrewFeedRegistry:
    """One feed per crew member, polled together by the scheduler"""

    def __init__(self, service: CrewNotificationService):
        self.service = service
        self._feeds: Dict[str, CrewNotificationFeed] = {}

    def get_feed(self, crew_member_name: str) -> CrewNotificationFeed:
        with self.service.bus.context_lock:
            if crew_member_name not in self._feeds:
                self._feeds[crew_member_name] = CrewNotificationFeed(self.service, crew_member_name)
            return self._feeds[crew_member_name]

    def poll_all(self) -> int:
        with self.service.bus.context_lock:
            feeds = list(self._feeds.values())
        return sum(1 for feed in feeds if feed.poll())

    def close(self):
        with self.service.bus.context_lock:
            for feed in self._feeds.values():
                feed.close()
            self._feeds = {}
