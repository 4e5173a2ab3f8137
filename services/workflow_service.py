"""
Workflow Service - persists what the cascade engine computes.

Every operation follows the same cycle under the bus context lock:
fresh read of the state, apply_cascade(), write each changed collection,
publish "<collection>-updated" once per write, then hand crew notifications
to the notification service.

Writes are not transactional. If a later collection fails to persist, the
earlier ones stand and the result reports the partial failure; the
resynchronization pass repairs the drift later.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError as RecordValidationError

from services import linker
from services.accounting_client import AccountingSyncError
from services.cascade import (
    AddJobPhoto,
    CollectionChanged,
    Command,
    CreateAppointment,
    CreateJob,
    CreateQuote,
    DeleteAppointment,
    DeleteInvoice,
    DeleteJob,
    DeleteQuote,
    EditAppointment,
    EditJob,
    EditQuote,
    MarkYearlyReminderSent,
    NotifyCrew,
    RecordNotFoundError,
    RemoveJobPhoto,
    Resynchronize,
    SetAppointmentStatus,
    SetInvoiceStatus,
    SetJobStatus,
    SetQuoteStatus,
    WorkflowState,
    apply_cascade,
    INVOICE_DUE_DAYS,
)
from services.collection_store import (
    APPOINTMENTS,
    CUSTOMERS,
    CREW_MEMBERS,
    DELETED_JOB_REFERENCES,
    INVOICES,
    JOBS,
    QUOTES,
    CollectionStore,
    StoreUnavailableError,
)
from services.event_bus import (
    ORIGIN_CASCADE,
    ORIGIN_USER,
    STORE_CHANGED,
    ChangeBus,
    ChangeEvent,
    updated_event,
)
from services.records import Customer, CrewMember, generate_id
from services.repositories import Repositories

logger = logging.getLogger(__name__)

# Tombstones go first so a crash mid-delete never lets a resync resurrect a job
WRITE_ORDER = (DELETED_JOB_REFERENCES, QUOTES, JOBS, INVOICES, APPOINTMENTS, CUSTOMERS)

# Collections cleared by reset_all()
BUSINESS_COLLECTIONS = (CUSTOMERS, JOBS, QUOTES, INVOICES, APPOINTMENTS, DELETED_JOB_REFERENCES)


class WorkflowService:
    """Adapter between the pure cascade engine and the store/bus"""

    def __init__(self, store: CollectionStore, bus: ChangeBus, notifications=None,
                 invoice_due_days: int = INVOICE_DUE_DAYS,
                 clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.bus = bus
        self.notifications = notifications
        self.invoice_due_days = invoice_due_days
        self.clock = clock
        self.repos = Repositories(store)
        self._unsubscribers: List[Callable[[], None]] = []

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def load_state(self) -> WorkflowState:
        return WorkflowState(
            customers=tuple(self.repos.customers.load_all()),
            appointments=tuple(self.repos.appointments.load_all()),
            quotes=tuple(self.repos.quotes.load_all()),
            jobs=tuple(self.repos.jobs.load_all()),
            invoices=tuple(self.repos.invoices.load_all()),
            deleted_job_references=tuple(self.repos.deleted_job_references.load()),
        )

    def _persist(self, collection: str, state: WorkflowState) -> int:
        if collection == DELETED_JOB_REFERENCES:
            return self.repos.deleted_job_references.save(list(state.deleted_job_references))
        repository = {
            CUSTOMERS: self.repos.customers,
            APPOINTMENTS: self.repos.appointments,
            QUOTES: self.repos.quotes,
            JOBS: self.repos.jobs,
            INVOICES: self.repos.invoices,
        }[collection]
        return repository.save_all(list(getattr(state, collection)))

    def dispatch(self, command: Command, origin: str = ORIGIN_USER) -> Dict[str, Any]:
        """
        Run one command through the cascade engine and persist the result.

        Args:
            command: Cascade command
            origin: Provenance of the primary write; dependent writes are tagged 'cascade'

        Returns:
            {'success': True, 'record': {...}, 'written': [...], 'notifications': n}
            or {'success': False, 'error': ..., 'written': [...]}
        """
        with self.bus.context_lock:
            try:
                state = self.load_state()
                new_state, effects = apply_cascade(
                    state, command,
                    now=self.clock(),
                    invoice_due_days=self.invoice_due_days,
                )
            except RecordNotFoundError as e:
                logger.warning(f"{type(command).__name__}: {e}")
                return {'success': False, 'error': str(e), 'not_found': True, 'written': []}
            except StoreUnavailableError as e:
                logger.error(f"{type(command).__name__}: could not read state: {e}")
                return {'success': False, 'error': str(e), 'unavailable': True, 'written': []}

            changed = {e.collection for e in effects if isinstance(e, CollectionChanged)}
            written = []
            for collection in WRITE_ORDER:
                if collection not in changed:
                    continue
                try:
                    version = self._persist(collection, new_state)
                except StoreUnavailableError as e:
                    logger.error(
                        f"{type(command).__name__}: partial cascade, wrote {written} "
                        f"then failed on '{collection}': {e}"
                    )
                    return {
                        'success': False,
                        'error': f"Failed to save {collection}: {e.message}",
                        'unavailable': True,
                        'written': written,
                        'partial': bool(written),
                    }
                written.append(collection)
                write_origin = origin if collection == command.collection else ORIGIN_CASCADE
                self.bus.publish(updated_event(collection), collection=collection,
                                 origin=write_origin, version=version)

            sent = self._deliver_notifications([e for e in effects if isinstance(e, NotifyCrew)])

        if written:
            logger.info(f"{type(command).__name__} ({origin}) wrote {', '.join(written)}")

        record = None
        if command.collection and command.target_id():
            found = new_state.find(command.collection, command.target_id())
            record = found.to_dict() if found else None

        return {'success': True, 'record': record, 'written': written, 'notifications': sent}

    def _deliver_notifications(self, effects: List[NotifyCrew]) -> int:
        if not effects:
            return 0
        if self.notifications is None:
            logger.warning(f"Dropping {len(effects)} crew notification(s): no notification service")
            return 0

        sent = 0
        for effect in effects:
            result = self.notifications.create_notification(
                effect.crew_member_name, effect.type, effect.message, effect.details
            )
            if result.get('success'):
                sent += 1
            else:
                logger.error(f"Crew notification for {effect.crew_member_name} failed: {result.get('error')}")
        return sent

    # =========================================================================
    # CROSS-CONTEXT RESYNC
    # =========================================================================

    def attach(self):
        """Resynchronize whenever another process changes the quotes collection"""
        if not self._unsubscribers:
            self._unsubscribers.append(self.bus.subscribe(STORE_CHANGED, self._on_store_changed))

    def detach(self):
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def _on_store_changed(self, event: ChangeEvent):
        if event.origin == ORIGIN_CASCADE:
            return
        if event.collection in (QUOTES, JOBS, DELETED_JOB_REFERENCES):
            logger.info(f"'{event.collection}' changed elsewhere; running resynchronization")
            self.resynchronize(origin=ORIGIN_CASCADE)

    # =========================================================================
    # QUOTES
    # =========================================================================

    def create_quote(self, customer_name: str, services: List[str], amount: float = 0, **fields) -> Dict[str, Any]:
        return self.dispatch(CreateQuote(customer_name=customer_name, services=services, amount=amount, **fields))

    def edit_quote(self, quote_id: str, **changes) -> Dict[str, Any]:
        return self.dispatch(EditQuote(quote_id=quote_id, **changes))

    def set_quote_status(self, quote_id: str, status: str) -> Dict[str, Any]:
        return self.dispatch(SetQuoteStatus(quote_id=quote_id, status=status))

    def approve_quote(self, quote_id: str) -> Dict[str, Any]:
        return self.set_quote_status(quote_id, 'approved')

    def delete_quote(self, quote_id: str) -> Dict[str, Any]:
        return self.dispatch(DeleteQuote(quote_id=quote_id))

    # =========================================================================
    # INVOICES
    # =========================================================================

    def set_invoice_status(self, invoice_id: str, status: str) -> Dict[str, Any]:
        return self.dispatch(SetInvoiceStatus(invoice_id=invoice_id, status=status))

    def delete_invoice(self, invoice_id: str) -> Dict[str, Any]:
        return self.dispatch(DeleteInvoice(invoice_id=invoice_id))

    def sync_invoice_to_accounting(self, invoice_id: str, client) -> Dict[str, Any]:
        """
        Send an invoice to the accounting bridge and record the result.

        The invoice is only marked synced after the bridge confirms; a failed
        sync leaves it untouched so it can be retried.
        """
        invoice = self.repos.invoices.get(invoice_id)
        if invoice is None:
            return {'success': False, 'error': f"Invoice not found: {invoice_id}", 'not_found': True}

        try:
            response = client.sync_invoice(invoice.to_dict())
        except AccountingSyncError as e:
            logger.warning(f"Accounting sync failed for {invoice_id}: {e.message}")
            return {
                'success': False,
                'error': e.message,
                'troubleshooting': e.troubleshooting,
                'details': e.details,
                'status': e.status,
            }

        quickbooks_id = response.get('quickbooksInvoiceId')
        try:
            with self.bus.context_lock:
                invoices = self.repos.invoices.load_all()
                updated = [
                    i.model_copy(update={'quickbooks_synced': True, 'quickbooks_id': quickbooks_id})
                    if i.id == invoice_id else i
                    for i in invoices
                ]
                version = self.repos.invoices.save_all(updated)
                self.bus.publish(updated_event(INVOICES), collection=INVOICES, origin=ORIGIN_USER, version=version)
        except StoreUnavailableError as e:
            logger.error(f"Invoice {invoice_id} synced as {quickbooks_id} but could not be saved: {e}")
            return {'success': False, 'error': str(e), 'unavailable': True, 'quickbooksInvoiceId': quickbooks_id}

        logger.info(f"Invoice {invoice_id} synced to accounting as {quickbooks_id}")
        return {
            'success': True,
            'quickbooksInvoiceId': quickbooks_id,
            'mockMode': bool(response.get('mockMode')),
            'message': response.get('message'),
            'warning': response.get('warning'),
        }

    # =========================================================================
    # JOBS
    # =========================================================================

    def create_job(self, customer_name: str, scheduled_date: str, **fields) -> Dict[str, Any]:
        return self.dispatch(CreateJob(customer_name=customer_name, scheduled_date=scheduled_date, **fields))

    def edit_job(self, job_id: str, **changes) -> Dict[str, Any]:
        return self.dispatch(EditJob(job_id=job_id, **changes))

    def set_job_status(self, job_id: str, status: str) -> Dict[str, Any]:
        return self.dispatch(SetJobStatus(job_id=job_id, status=status))

    def add_job_photo(self, job_id: str, url: str, photo_type: str) -> Dict[str, Any]:
        return self.dispatch(AddJobPhoto(job_id=job_id, url=url, type=photo_type))

    def remove_job_photo(self, job_id: str, photo_id: str) -> Dict[str, Any]:
        return self.dispatch(RemoveJobPhoto(job_id=job_id, photo_id=photo_id))

    def delete_job(self, job_id: str) -> Dict[str, Any]:
        return self.dispatch(DeleteJob(job_id=job_id))

    def mark_yearly_reminder_sent(self, job_id: str) -> Dict[str, Any]:
        return self.dispatch(MarkYearlyReminderSent(job_id=job_id))

    # =========================================================================
    # APPOINTMENTS
    # =========================================================================

    def create_appointment(self, customer_name: str, date: str, **fields) -> Dict[str, Any]:
        return self.dispatch(CreateAppointment(customer_name=customer_name, date=date, **fields))

    def edit_appointment(self, appointment_id: str, **changes) -> Dict[str, Any]:
        return self.dispatch(EditAppointment(appointment_id=appointment_id, **changes))

    def set_appointment_status(self, appointment_id: str, status: str) -> Dict[str, Any]:
        return self.dispatch(SetAppointmentStatus(appointment_id=appointment_id, status=status))

    def delete_appointment(self, appointment_id: str) -> Dict[str, Any]:
        return self.dispatch(DeleteAppointment(appointment_id=appointment_id))

    # =========================================================================
    # RESYNC / RESET
    # =========================================================================

    def resynchronize(self, origin: str = ORIGIN_USER) -> Dict[str, Any]:
        """Recreate jobs missing for quotes, skipping tombstoned quote ids"""
        return self.dispatch(Resynchronize(), origin=origin)

    def reset_all(self) -> Dict[str, Any]:
        """Clear every business collection (crew members and notifications stay)"""
        cleared = []
        with self.bus.context_lock:
            for collection in BUSINESS_COLLECTIONS:
                try:
                    version = self.store.clear(collection)
                except StoreUnavailableError as e:
                    logger.error(f"Reset stopped at '{collection}': {e}")
                    return {'success': False, 'error': str(e), 'unavailable': True, 'cleared': cleared}
                cleared.append(collection)
                self.bus.publish(updated_event(collection), collection=collection,
                                 origin=ORIGIN_USER, version=version)
        logger.warning(f"All business data cleared: {', '.join(cleared)}")
        return {'success': True, 'cleared': cleared}

    # =========================================================================
    # LISTINGS
    # =========================================================================

    def list_quotes(self) -> List[Dict[str, Any]]:
        return [q.to_dict() for q in self.repos.quotes.load_all()]

    def list_jobs(self, crew_member_name: Optional[str] = None) -> List[Dict[str, Any]]:
        jobs = self.repos.jobs.load_all()
        if crew_member_name:
            jobs = [j for j in jobs if j.assigned_crew == crew_member_name]
        return [j.to_dict() for j in jobs]

    def get_job(self, job_id: str) -> Optional[Dict[str, Any]]:
        job = self.repos.jobs.get(job_id)
        return job.to_dict() if job else None

    def list_invoices(self) -> List[Dict[str, Any]]:
        return [i.to_dict() for i in self.repos.invoices.load_all()]

    def list_appointments(self) -> List[Dict[str, Any]]:
        return [a.to_dict() for a in self.repos.appointments.load_all()]

    # =========================================================================
    # CUSTOMERS & CREW MEMBERS (plain records, no cascade)
    # =========================================================================

    def list_customers(self) -> List[Dict[str, Any]]:
        return [c.to_dict() for c in self.repos.customers.load_all()]

    def get_customer(self, customer_id: str) -> Optional[Dict[str, Any]]:
        customer = self.repos.customers.get(customer_id)
        return customer.to_dict() if customer else None

    def create_customer(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._create_plain(self.repos.customers, Customer, 'C', data, 'customer')

    def update_customer(self, customer_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._update_plain(self.repos.customers, customer_id, data, 'customer',
                                  ('name', 'email', 'phone', 'address', 'status'))

    def customer_summary(self, customer_id: str) -> Dict[str, Any]:
        customer = self.repos.customers.get(customer_id)
        if customer is None:
            return {'success': False, 'error': f"Customer not found: {customer_id}", 'not_found': True}
        summary = linker.customer_summary(
            customer.name,
            self.repos.quotes.load_all(),
            self.repos.jobs.load_all(),
            self.repos.invoices.load_all(),
        )
        return {'success': True, 'customer': customer.to_dict(), 'summary': summary}

    def list_crew_members(self) -> List[Dict[str, Any]]:
        return [m.to_dict() for m in self.repos.crew_members.load_all()]

    def create_crew_member(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._create_plain(self.repos.crew_members, CrewMember, 'CM', data, 'crew member')

    def update_crew_member(self, member_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._update_plain(self.repos.crew_members, member_id, data, 'crew member',
                                  ('name', 'email', 'phone', 'role'))

    def _create_plain(self, repository, model, prefix: str, data: Dict[str, Any], kind: str) -> Dict[str, Any]:
        try:
            with self.bus.context_lock:
                records = repository.load_all()
                email = (data.get('email') or '').strip().lower()
                if email and any((r.email or '').lower() == email for r in records):
                    return {'success': False, 'error': f"A {kind} with email {email} already exists"}

                record = model.model_validate({**data, 'id': generate_id(prefix)})
                version = repository.save_all([*records, record])
                self.bus.publish(updated_event(repository.collection), collection=repository.collection,
                                 origin=ORIGIN_USER, version=version)
        except RecordValidationError as e:
            return {'success': False, 'error': f"Invalid {kind}: {e.errors()[0]['msg']}"}
        except StoreUnavailableError as e:
            logger.error(f"Failed to create {kind}: {e}")
            return {'success': False, 'error': str(e), 'unavailable': True}

        logger.info(f"Created {kind} {record.id} ({record.name})")
        return {'success': True, kind.replace(' ', '_'): record.to_dict()}

    def _update_plain(self, repository, record_id: str, data: Dict[str, Any], kind: str,
                      fields) -> Dict[str, Any]:
        try:
            with self.bus.context_lock:
                records = repository.load_all()
                current = next((r for r in records if r.id == record_id), None)
                if current is None:
                    return {'success': False, 'error': f"{kind.capitalize()} not found: {record_id}", 'not_found': True}

                updated = repository.model.model_validate({
                    **current.to_dict(),
                    **{k: v for k, v in data.items() if k in fields},
                })
                version = repository.save_all([updated if r is current else r for r in records])
                self.bus.publish(updated_event(repository.collection), collection=repository.collection,
                                 origin=ORIGIN_USER, version=version)
        except RecordValidationError as e:
            return {'success': False, 'error': f"Invalid {kind}: {e.errors()[0]['msg']}"}
        except StoreUnavailableError as e:
            logger.error(f"Failed to update {kind} {record_id}: {e}")
            return {'success': False, 'error': str(e), 'unavailable': True}

        return {'success': True, kind.replace(' ', '_'): updated.to_dict()}
