"""
Yearly Reminder Service - annual follow-up for completed jobs.

A completed job becomes a reminder candidate around the first anniversary
of its completedDate. Reminders can be dismissed (kept in the
dismissed-yearly-reminders collection) or marked sent, which flags the job
through the workflow service so the flag travels with the job record.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from services import linker
from services.collection_store import DISMISSED_YEARLY_REMINDERS, StoreUnavailableError
from services.event_bus import ORIGIN_USER, ChangeBus, updated_event
from services.records import Customer, Job
from services.repositories import Repositories

logger = logging.getLogger(__name__)

REMINDER_WINDOW_DAYS = 30

REMINDER_EMAIL_SUBJECT = 'Time for Annual Service - K&R POWERWASHING'


def add_one_year(moment: datetime) -> datetime:
    """Same calendar day next year; Feb 29 falls back to Feb 28"""
    try:
        return moment.replace(year=moment.year + 1)
    except ValueError:
        return moment.replace(year=moment.year + 1, day=28)


def days_between(later: datetime, earlier: datetime) -> int:
    """Whole days from `earlier` to `later`, truncated toward zero"""
    return int((later - earlier).total_seconds() / 86400)


def _parse(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone()
    return parsed.replace(tzinfo=None)


def reminder_email(job: Job, customer: Customer, completed: datetime) -> Dict[str, str]:
    """Draft of the annual service email for the office to send"""
    body = (
        f"Hi {customer.name},\n\n"
        f"It's been about a year since we completed your {job.service} service at "
        f"{job.address} on {completed:%b} {completed.day}, {completed.year}.\n\n"
        "We'd love to help you maintain your property with our professional "
        "power washing services again this year!\n\n"
        f"Would you like to schedule your annual {job.service}? We're offering loyal "
        "customer pricing for repeat services.\n\n"
        "Thank you for being a valued customer!\n\n"
        "Best regards,\n"
        "K&R POWERWASHING Team"
    )
    return {'to': customer.email, 'subject': REMINDER_EMAIL_SUBJECT, 'body': body}


class YearlyReminderService:
    """Finds, dismisses and completes yearly follow-up reminders"""

    def __init__(self, store, bus: ChangeBus, workflow=None, window_days: int = REMINDER_WINDOW_DAYS):
        self.store = store
        self.bus = bus
        self.workflow = workflow
        self.window_days = window_days
        self.repos = Repositories(store)

    def get_yearly_reminders(self, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """
        Completed jobs whose first anniversary is within the window.

        Returns:
            List of {job, customer, anniversary, daysUntilAnniversary, urgency, email}
            sorted most urgent (most overdue) first
        """
        now = now or datetime.now()
        dismissed = set(self.repos.dismissed_yearly_reminders.load())
        customers = self.repos.customers.load_all()

        reminders = []
        for job in self.repos.jobs.load_all():
            if job.status != 'completed' or not job.completed_date or job.yearly_reminder_sent:
                continue
            if job.id in dismissed:
                continue

            completed = _parse(job.completed_date)
            if completed is None:
                logger.warning(f"Job {job.id} has an unreadable completedDate: {job.completed_date}")
                continue

            anniversary = add_one_year(completed)
            days_until = days_between(anniversary, now)
            if abs(days_until) > self.window_days:
                continue

            customer = linker.find_customer_by_name(customers, job.customer_name)
            if customer is None:
                continue

            if days_until < 0:
                urgency = 'overdue'
            elif days_until == 0:
                urgency = 'today'
            else:
                urgency = 'upcoming'

            reminders.append({
                'job': job.to_dict(),
                'customer': customer.to_dict(),
                'anniversary': anniversary.isoformat(),
                'daysUntilAnniversary': days_until,
                'urgency': urgency,
                'email': reminder_email(job, customer, completed),
            })

        reminders.sort(key=lambda r: r['daysUntilAnniversary'])
        return reminders

    def dismiss(self, job_id: str) -> Dict[str, Any]:
        """Hide a reminder for good; dismissing twice is harmless"""
        references = self.repos.dismissed_yearly_reminders
        try:
            with self.bus.context_lock:
                values = references.load()
                if job_id not in values:
                    version = references.save([*values, job_id])
                    self.bus.publish(updated_event(DISMISSED_YEARLY_REMINDERS),
                                     collection=DISMISSED_YEARLY_REMINDERS,
                                     origin=ORIGIN_USER, version=version)
        except StoreUnavailableError as e:
            logger.error(f"Could not dismiss yearly reminder for job {job_id}: {e}")
            return {'success': False, 'error': str(e), 'unavailable': True}

        return {'success': True}

    def mark_sent(self, job_id: str) -> Dict[str, Any]:
        if self.workflow is None:
            return {'success': False, 'error': 'Workflow service is not available'}
        result = self.workflow.mark_yearly_reminder_sent(job_id)
        if result.get('success'):
            logger.info(f"Yearly reminder sent for job {job_id}")
        return result
