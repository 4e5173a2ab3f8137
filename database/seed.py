"""
Store seeding for the K&R back office.
Creates the default crew roster if the crew-members collection was never written.
"""

import logging

from services.collection_store import CREW_MEMBERS, StoreUnavailableError
from services.event_bus import ORIGIN_USER, updated_event

logger = logging.getLogger(__name__)

DEFAULT_CREW_MEMBERS = [
    {'id': '1', 'name': 'Kevin Rodriguez', 'phone': '(555) 123-4567',
     'email': 'kevin@krpowerwashing.org', 'role': 'Lead Technician'},
    {'id': '2', 'name': 'Ryan Mitchell', 'phone': '(555) 234-5678',
     'email': 'ryan@krpowerwashing.org', 'role': 'Sr. Technician'},
    {'id': '3', 'name': 'Marcus Thompson', 'phone': '(555) 345-6789',
     'email': 'marcus@krpowerwashing.org', 'role': 'Technician'},
    {'id': '4', 'name': 'Jake Wilson', 'phone': '(555) 456-7890',
     'email': 'jake@krpowerwashing.org', 'role': 'Technician'},
    {'id': '5', 'name': 'Tyler Anderson', 'phone': '(555) 567-8901',
     'email': 'tyler@krpowerwashing.org', 'role': 'Apprentice'},
]


def seed_default_crew(store, bus=None) -> bool:
    """
    Write the default crew roster on first start.
    A roster that was emptied on purpose (version > 0) is left alone.

    Returns:
        True if the roster was written
    """
    try:
        if store.version(CREW_MEMBERS) > 0 or store.read(CREW_MEMBERS):
            logger.info("Crew roster already exists")
            return False

        version = store.write(CREW_MEMBERS, [dict(member) for member in DEFAULT_CREW_MEMBERS])
    except StoreUnavailableError as e:
        logger.error(f"Crew seeding failed: {e}")
        return False

    if bus is not None:
        bus.publish(updated_event(CREW_MEMBERS), collection=CREW_MEMBERS, origin=ORIGIN_USER, version=version)
    logger.info(f"Seeded {len(DEFAULT_CREW_MEMBERS)} default crew members")
    return True
