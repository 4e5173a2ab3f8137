"""
Workflow Cascade Engine

apply_cascade(state, command) computes every dependent write a command
implies and returns the new state plus the effects to carry out:

- CollectionChanged(collection) for each collection that must be persisted
- NotifyCrew(...) for each crew notification to send

The function is pure: the input state is never mutated and no I/O happens
here. WorkflowService (services/workflow_service.py) persists and publishes.

Every rule is idempotent. A missing linked record (join-miss) is created
rather than treated as an error; ambiguous name joins take the first match.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, ClassVar, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from services import linker
from services.collection_store import (
    CUSTOMERS,
    APPOINTMENTS,
    QUOTES,
    JOBS,
    INVOICES,
    DELETED_JOB_REFERENCES,
)
from services.records import (
    UNASSIGNED,
    Appointment,
    AppointmentStatus,
    Customer,
    Invoice,
    InvoiceStatus,
    Job,
    JobPhoto,
    JobStatus,
    PhotoType,
    Quote,
    QuoteStatus,
    generate_id,
    is_assigned,
)

logger = logging.getLogger(__name__)

INVOICE_DUE_DAYS = 30

# Status of a job recreated for a quote that lost it
JOB_STATUS_FOR_QUOTE = {
    'pending': 'pending',
    'approved': 'scheduled',
    'invoiced': 'completed',
    'rejected': 'cancelled',
}


class RecordNotFoundError(LookupError):
    """The record a command targets does not exist"""
    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind.capitalize()} not found: {record_id}")


@dataclass(frozen=True)
class WorkflowState:
    """Snapshot of every collection the cascade rules read or write"""
    customers: Tuple[Customer, ...] = ()
    appointments: Tuple[Appointment, ...] = ()
    quotes: Tuple[Quote, ...] = ()
    jobs: Tuple[Job, ...] = ()
    invoices: Tuple[Invoice, ...] = ()
    deleted_job_references: Tuple[str, ...] = ()

    def find(self, collection: str, record_id: str):
        items = {
            CUSTOMERS: self.customers,
            APPOINTMENTS: self.appointments,
            QUOTES: self.quotes,
            JOBS: self.jobs,
            INVOICES: self.invoices,
        }[collection]
        return next((r for r in items if r.id == record_id), None)


# =============================================================================
# EFFECTS
# =============================================================================

@dataclass(frozen=True)
class CollectionChanged:
    collection: str


@dataclass(frozen=True)
class NotifyCrew:
    crew_member_name: str
    type: str
    message: str
    details: Dict[str, str] = field(default_factory=dict)


Effect = Union[CollectionChanged, NotifyCrew]


# =============================================================================
# COMMANDS
# =============================================================================

class Command(BaseModel):
    model_config = ConfigDict(frozen=True, extra='forbid')

    # Collection holding the record the command is about
    collection: ClassVar[Optional[str]] = None
    id_field: ClassVar[Optional[str]] = None
    nullable_fields: ClassVar[frozenset] = frozenset()

    def target_id(self) -> Optional[str]:
        return getattr(self, self.id_field) if self.id_field else None

    def changes(self) -> dict:
        """Fields explicitly given on an edit command; None only clears nullable fields"""
        return {
            k: getattr(self, k)
            for k in self.model_fields_set
            if k != self.id_field and (getattr(self, k) is not None or k in self.nullable_fields)
        }


class CreateQuote(Command):
    collection: ClassVar[str] = QUOTES
    id_field: ClassVar[str] = 'quote_id'

    quote_id: str = Field(default_factory=lambda: generate_id('Q'))
    customer_name: str
    services: List[str]
    amount: float = 0
    date: Optional[str] = None
    notes: str = ''
    time: Optional[str] = None
    assigned_crew: Optional[str] = None


class EditQuote(Command):
    collection: ClassVar[str] = QUOTES
    id_field: ClassVar[str] = 'quote_id'
    nullable_fields: ClassVar[frozenset] = frozenset({'time', 'assigned_crew'})

    quote_id: str
    customer_name: Optional[str] = None
    services: Optional[List[str]] = None
    amount: Optional[float] = None
    date: Optional[str] = None
    notes: Optional[str] = None
    time: Optional[str] = None
    assigned_crew: Optional[str] = None


class SetQuoteStatus(Command):
    collection: ClassVar[str] = QUOTES
    id_field: ClassVar[str] = 'quote_id'

    quote_id: str
    status: QuoteStatus


class DeleteQuote(Command):
    collection: ClassVar[str] = QUOTES
    id_field: ClassVar[str] = 'quote_id'

    quote_id: str


class SetInvoiceStatus(Command):
    collection: ClassVar[str] = INVOICES
    id_field: ClassVar[str] = 'invoice_id'

    invoice_id: str
    status: InvoiceStatus


class DeleteInvoice(Command):
    collection: ClassVar[str] = INVOICES
    id_field: ClassVar[str] = 'invoice_id'

    invoice_id: str


class CreateJob(Command):
    collection: ClassVar[str] = JOBS
    id_field: ClassVar[str] = 'job_id'

    job_id: str = Field(default_factory=lambda: generate_id('J'))
    customer_name: str
    service: str = ''
    address: str = ''
    scheduled_date: str
    scheduled_time: Optional[str] = None
    assigned_crew: str = UNASSIGNED
    status: JobStatus = 'pending'
    notes: str = ''
    quote_id: Optional[str] = None


class EditJob(Command):
    collection: ClassVar[str] = JOBS
    id_field: ClassVar[str] = 'job_id'
    nullable_fields: ClassVar[frozenset] = frozenset({'scheduled_time'})

    job_id: str
    customer_name: Optional[str] = None
    service: Optional[str] = None
    address: Optional[str] = None
    scheduled_date: Optional[str] = None
    scheduled_time: Optional[str] = None
    assigned_crew: Optional[str] = None
    notes: Optional[str] = None


class SetJobStatus(Command):
    collection: ClassVar[str] = JOBS
    id_field: ClassVar[str] = 'job_id'

    job_id: str
    status: JobStatus


class AddJobPhoto(Command):
    collection: ClassVar[str] = JOBS
    id_field: ClassVar[str] = 'job_id'

    job_id: str
    photo_id: str = Field(default_factory=lambda: generate_id('P'))
    url: str
    type: PhotoType
    uploaded_at: Optional[str] = None


class RemoveJobPhoto(Command):
    collection: ClassVar[str] = JOBS
    id_field: ClassVar[str] = 'job_id'

    job_id: str
    photo_id: str


class DeleteJob(Command):
    collection: ClassVar[str] = JOBS
    id_field: ClassVar[str] = 'job_id'

    job_id: str


class MarkYearlyReminderSent(Command):
    collection: ClassVar[str] = JOBS
    id_field: ClassVar[str] = 'job_id'

    job_id: str


class CreateAppointment(Command):
    collection: ClassVar[str] = APPOINTMENTS
    id_field: ClassVar[str] = 'appointment_id'

    appointment_id: str = Field(default_factory=lambda: generate_id('A'))
    customer_id: str = ''
    customer_name: str
    services: List[str] = Field(default_factory=list)
    date: str
    time: str = ''
    address: str = ''
    notes: str = ''
    status: AppointmentStatus = 'scheduled'
    assigned_employee: Optional[str] = None


class EditAppointment(Command):
    collection: ClassVar[str] = APPOINTMENTS
    id_field: ClassVar[str] = 'appointment_id'
    nullable_fields: ClassVar[frozenset] = frozenset({'assigned_employee'})

    appointment_id: str
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    services: Optional[List[str]] = None
    date: Optional[str] = None
    time: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    assigned_employee: Optional[str] = None


class SetAppointmentStatus(Command):
    collection: ClassVar[str] = APPOINTMENTS
    id_field: ClassVar[str] = 'appointment_id'

    appointment_id: str
    status: AppointmentStatus


class DeleteAppointment(Command):
    collection: ClassVar[str] = APPOINTMENTS
    id_field: ClassVar[str] = 'appointment_id'

    appointment_id: str


class Resynchronize(Command):
    pass


# =============================================================================
# WORKING COPY
# =============================================================================

class _Working:
    """Mutable copy of a state; records are replaced, never changed in place"""

    def __init__(self, state: WorkflowState, now: datetime, new_id: Callable[[str], str],
                 invoice_due_days: int):
        self.now = now
        self.new_id = new_id
        self.invoice_due_days = invoice_due_days
        self.customers = list(state.customers)
        self.appointments = list(state.appointments)
        self.quotes = list(state.quotes)
        self.jobs = list(state.jobs)
        self.invoices = list(state.invoices)
        self.deleted_job_references = list(state.deleted_job_references)
        self.changed: List[str] = []
        self.effects: List[Effect] = []

    def items(self, collection: str) -> list:
        return {
            CUSTOMERS: self.customers,
            APPOINTMENTS: self.appointments,
            QUOTES: self.quotes,
            JOBS: self.jobs,
            INVOICES: self.invoices,
        }[collection]

    def touch(self, collection: str):
        if collection not in self.changed:
            self.changed.append(collection)

    def find(self, collection: str, record_id: str, kind: str):
        record = next((r for r in self.items(collection) if r.id == record_id), None)
        if record is None:
            raise RecordNotFoundError(kind, record_id)
        return record

    def add(self, collection: str, record):
        self.items(collection).append(record)
        self.touch(collection)
        return record

    def remove(self, collection: str, record):
        items = self.items(collection)
        items[:] = [r for r in items if r is not record]
        self.touch(collection)

    def update(self, collection: str, record, **changes):
        """Replace `record` with a copy carrying `changes`; no-op when nothing differs"""
        if all(getattr(record, key) == value for key, value in changes.items()):
            return record
        updated = record.model_copy(update=changes)
        items = self.items(collection)
        index = next(i for i, r in enumerate(items) if r is record)
        items[index] = updated
        self.touch(collection)
        return updated

    def tombstone(self, quote_id: str):
        if quote_id not in self.deleted_job_references:
            self.deleted_job_references.append(quote_id)
            self.touch(DELETED_JOB_REFERENCES)

    def notify(self, crew_member_name: str, notification_type: str, message: str, **details):
        self.effects.append(NotifyCrew(
            crew_member_name=crew_member_name,
            type=notification_type,
            message=message,
            details={k: v for k, v in details.items() if v not in (None, '')},
        ))

    def to_state(self) -> WorkflowState:
        return WorkflowState(
            customers=tuple(self.customers),
            appointments=tuple(self.appointments),
            quotes=tuple(self.quotes),
            jobs=tuple(self.jobs),
            invoices=tuple(self.invoices),
            deleted_job_references=tuple(self.deleted_job_references),
        )


_HANDLERS: Dict[type, Callable[[_Working, Command], None]] = {}


def handles(command_type):
    def register(func):
        _HANDLERS[command_type] = func
        return func
    return register


# =============================================================================
# SHARED RULES
# =============================================================================

def _noon_today(now: datetime) -> str:
    return now.replace(hour=12, minute=0, second=0, microsecond=0).isoformat()


def _set_job_status(w: _Working, job: Job, status: str) -> Job:
    changes = {'status': status}
    if status == 'completed' and not job.completed_date:
        changes['completed_date'] = w.now.isoformat()
    return w.update(JOBS, job, **changes)


def _set_invoice_status(w: _Working, invoice: Invoice, status: str) -> Invoice:
    if status == 'paid':
        return w.update(INVOICES, invoice, status=status, paid_date=invoice.paid_date or w.now.isoformat())
    return w.update(INVOICES, invoice, status=status, paid_date=None)


def _job_from_quote(w: _Working, quote: Quote, status: str, scheduled_date: Optional[str] = None) -> Job:
    """Job for a quote, scheduled on the quote date unless a date is given"""
    customer = linker.find_customer_by_name(w.customers, quote.customer_name)
    if customer is None:
        logger.info(f"No customer named '{quote.customer_name}' for quote {quote.id}; job has no address")

    job = Job(
        id=w.new_id('J'),
        quote_id=quote.id,
        customer_name=quote.customer_name,
        service=linker.compose_service(quote.services),
        address=customer.address if customer else '',
        scheduled_date=scheduled_date or quote.date or _noon_today(w.now),
        assigned_crew=UNASSIGNED,
        status=status,
        notes=quote.notes,
        completed_date=w.now.isoformat() if status == 'completed' else None,
    )
    logger.info(f"Created job {job.id} ({status}) for quote {quote.id}")
    return w.add(JOBS, job)


def _invoice_from_quote(w: _Working, quote: Quote, status: str) -> Invoice:
    invoice = Invoice(
        id=w.new_id('INV'),
        quote_id=quote.id,
        customer_name=quote.customer_name,
        service=linker.compose_service(quote.services),
        amount=quote.amount,
        status=status,
        due_date=(w.now + timedelta(days=w.invoice_due_days)).isoformat(),
        paid_date=w.now.isoformat() if status == 'paid' else None,
        quickbooks_synced=False,
    )
    logger.info(f"Created invoice {invoice.id} ({status}) for quote {quote.id}")
    return w.add(INVOICES, invoice)


def _cascade_quote_status(w: _Working, quote: Quote):
    job = linker.find_job_for_quote(w.jobs, quote.id)

    if quote.status == 'approved':
        if job:
            _set_job_status(w, job, 'scheduled')
        else:
            logger.info(f"Join-miss: no job for approved quote {quote.id}")
            _job_from_quote(w, quote, 'scheduled')
        if not any(i.quote_id == quote.id for i in w.invoices):
            _invoice_from_quote(w, quote, 'pending')

    elif quote.status == 'rejected':
        if job:
            _set_job_status(w, job, 'cancelled')
        for invoice in linker.find_invoices_for_quote(w.invoices, quote):
            _set_invoice_status(w, invoice, 'void')

    elif quote.status == 'invoiced':
        if job:
            _set_job_status(w, job, 'completed')
        elif quote.id not in w.deleted_job_references:
            logger.info(f"Join-miss: no job for invoiced quote {quote.id}")
            _job_from_quote(w, quote, 'completed')
        invoices = linker.find_invoices_for_quote(w.invoices, quote)
        if not invoices:
            logger.info(f"Join-miss: no invoice for invoiced quote {quote.id}")
            _invoice_from_quote(w, quote, 'paid')
        for invoice in invoices:
            _set_invoice_status(w, invoice, 'paid')


def _notify_schedule_change(w: _Working, label: str, customer_name: str, address: str,
                            old_assignee: Optional[str], new_assignee: Optional[str],
                            old_date: Optional[str], new_date: Optional[str],
                            old_time: Optional[str], new_time: Optional[str]):
    old_name = old_assignee if is_assigned(old_assignee) else None
    new_name = new_assignee if is_assigned(new_assignee) else None
    old_day = linker.calendar_date(old_date) or old_date
    new_day = linker.calendar_date(new_date) or new_date

    if old_name != new_name:
        if old_name:
            w.notify(old_name, 'assignment_removed',
                     f"You have been removed from the {label} for {customer_name} on {old_day}",
                     customerName=customer_name, date=old_day, time=old_time, address=address)
        if new_name:
            at = f" at {new_time}" if new_time else ''
            w.notify(new_name, 'new_assignment',
                     f"New {label} assigned: {customer_name} on {new_day}{at}",
                     customerName=customer_name, date=new_day, time=new_time, address=address)
        return

    if not new_name:
        return

    date_moved = not linker.same_day(old_date, new_date)
    time_moved = (old_time or '') != (new_time or '')

    if date_moved and time_moved:
        before = ' '.join(part for part in (old_day, old_time) if part)
        after = ' '.join(part for part in (new_day, new_time) if part)
        w.notify(new_name, 'schedule_changed',
                 f"The {label} for {customer_name} moved from {before} to {after}",
                 customerName=customer_name, address=address,
                 oldDate=old_day, newDate=new_day, oldTime=old_time, newTime=new_time)
    elif date_moved:
        w.notify(new_name, 'date_changed',
                 f"The {label} for {customer_name} moved from {old_day} to {new_day}",
                 customerName=customer_name, address=address, time=new_time,
                 oldDate=old_day, newDate=new_day)
    elif time_moved:
        w.notify(new_name, 'time_changed',
                 f"The {label} for {customer_name} on {new_day} is now at {new_time or 'no set time'}",
                 customerName=customer_name, address=address, date=new_day,
                 oldTime=old_time, newTime=new_time)


# =============================================================================
# QUOTES
# =============================================================================

@handles(CreateQuote)
def _create_quote(w: _Working, cmd: CreateQuote):
    if any(q.id == cmd.quote_id for q in w.quotes):
        quote = w.find(QUOTES, cmd.quote_id, 'quote')
    else:
        quote = w.add(QUOTES, Quote(
            id=cmd.quote_id,
            customer_name=cmd.customer_name,
            services=list(cmd.services),
            amount=cmd.amount,
            status='pending',
            date=cmd.date or w.now.isoformat(),
            notes=cmd.notes,
            time=cmd.time,
            assigned_crew=cmd.assigned_crew,
        ))

    if linker.find_job_for_quote(w.jobs, quote.id) is None:
        _job_from_quote(w, quote, 'pending', scheduled_date=_noon_today(w.now))


@handles(EditQuote)
def _edit_quote(w: _Working, cmd: EditQuote):
    old = w.find(QUOTES, cmd.quote_id, 'quote')
    # Resolve name-linked invoices before the name or services change
    linked_invoices = linker.find_invoices_for_quote(w.invoices, old)

    changes = cmd.changes()
    if 'services' in changes:
        changes['services'] = list(changes['services'] or [])
    quote = w.update(QUOTES, old, **changes)
    service = linker.compose_service(quote.services)

    job = linker.find_job_for_quote(w.jobs, quote.id)
    if job:
        w.update(JOBS, job, service=service, customer_name=quote.customer_name, notes=quote.notes)
    elif quote.id not in w.deleted_job_references:
        logger.info(f"Join-miss: no job for edited quote {quote.id}")
        _job_from_quote(w, quote, JOB_STATUS_FOR_QUOTE[quote.status])

    for invoice in linked_invoices:
        w.update(INVOICES, invoice, service=service, customer_name=quote.customer_name, amount=quote.amount)


@handles(SetQuoteStatus)
def _set_quote_status(w: _Working, cmd: SetQuoteStatus):
    quote = w.find(QUOTES, cmd.quote_id, 'quote')
    quote = w.update(QUOTES, quote, status=cmd.status)
    _cascade_quote_status(w, quote)


@handles(DeleteQuote)
def _delete_quote(w: _Working, cmd: DeleteQuote):
    quote = w.find(QUOTES, cmd.quote_id, 'quote')
    linked_invoices = linker.find_invoices_for_quote(w.invoices, quote)

    w.remove(QUOTES, quote)
    job = linker.find_job_for_quote(w.jobs, quote.id)
    if job:
        w.remove(JOBS, job)
    for invoice in linked_invoices:
        w.remove(INVOICES, invoice)
    w.tombstone(quote.id)
    logger.info(f"Deleted quote {quote.id} with {1 if job else 0} job(s) and {len(linked_invoices)} invoice(s)")


# =============================================================================
# INVOICES
# =============================================================================

@handles(SetInvoiceStatus)
def _set_invoice_status_command(w: _Working, cmd: SetInvoiceStatus):
    invoice = w.find(INVOICES, cmd.invoice_id, 'invoice')
    invoice = _set_invoice_status(w, invoice, cmd.status)
    if cmd.status != 'paid':
        return

    quote = linker.find_quote_for_invoice(w.quotes, invoice)
    if quote is None:
        logger.info(f"No quote matches paid invoice {invoice.id}; nothing to mark invoiced")
        return
    if quote.status != 'invoiced':
        quote = w.update(QUOTES, quote, status='invoiced')
        _cascade_quote_status(w, quote)


@handles(DeleteInvoice)
def _delete_invoice(w: _Working, cmd: DeleteInvoice):
    w.remove(INVOICES, w.find(INVOICES, cmd.invoice_id, 'invoice'))


# =============================================================================
# JOBS
# =============================================================================

@handles(CreateJob)
def _create_job(w: _Working, cmd: CreateJob):
    if any(j.id == cmd.job_id for j in w.jobs):
        return

    job = w.add(JOBS, Job(
        id=cmd.job_id,
        quote_id=cmd.quote_id,
        customer_name=cmd.customer_name,
        service=cmd.service,
        address=cmd.address,
        scheduled_date=cmd.scheduled_date,
        scheduled_time=cmd.scheduled_time,
        assigned_crew=cmd.assigned_crew or UNASSIGNED,
        status=cmd.status,
        notes=cmd.notes,
        completed_date=w.now.isoformat() if cmd.status == 'completed' else None,
    ))
    _notify_schedule_change(w, 'job', job.customer_name, job.address,
                            None, job.assigned_crew,
                            job.scheduled_date, job.scheduled_date,
                            job.scheduled_time, job.scheduled_time)


@handles(EditJob)
def _edit_job(w: _Working, cmd: EditJob):
    old = w.find(JOBS, cmd.job_id, 'job')
    changes = cmd.changes()
    if 'assigned_crew' in changes:
        changes['assigned_crew'] = changes['assigned_crew'] or UNASSIGNED
    job = w.update(JOBS, old, **changes)

    _notify_schedule_change(w, 'job', job.customer_name, job.address,
                            old.assigned_crew, job.assigned_crew,
                            old.scheduled_date, job.scheduled_date,
                            old.scheduled_time, job.scheduled_time)


@handles(SetJobStatus)
def _set_job_status_command(w: _Working, cmd: SetJobStatus):
    _set_job_status(w, w.find(JOBS, cmd.job_id, 'job'), cmd.status)


@handles(AddJobPhoto)
def _add_job_photo(w: _Working, cmd: AddJobPhoto):
    job = w.find(JOBS, cmd.job_id, 'job')
    if any(p.id == cmd.photo_id for p in job.photos):
        return
    photo = JobPhoto(id=cmd.photo_id, url=cmd.url, type=cmd.type,
                     uploaded_at=cmd.uploaded_at or w.now.isoformat())
    w.update(JOBS, job, photos=[*job.photos, photo])


@handles(RemoveJobPhoto)
def _remove_job_photo(w: _Working, cmd: RemoveJobPhoto):
    job = w.find(JOBS, cmd.job_id, 'job')
    w.update(JOBS, job, photos=[p for p in job.photos if p.id != cmd.photo_id])


@handles(DeleteJob)
def _delete_job(w: _Working, cmd: DeleteJob):
    job = w.find(JOBS, cmd.job_id, 'job')
    w.remove(JOBS, job)
    if job.quote_id:
        w.tombstone(job.quote_id)


@handles(MarkYearlyReminderSent)
def _mark_yearly_reminder_sent(w: _Working, cmd: MarkYearlyReminderSent):
    w.update(JOBS, w.find(JOBS, cmd.job_id, 'job'), yearly_reminder_sent=True)


# =============================================================================
# APPOINTMENTS
# =============================================================================

@handles(CreateAppointment)
def _create_appointment(w: _Working, cmd: CreateAppointment):
    if any(a.id == cmd.appointment_id for a in w.appointments):
        return

    appointment = w.add(APPOINTMENTS, Appointment(
        id=cmd.appointment_id,
        customer_id=cmd.customer_id,
        customer_name=cmd.customer_name,
        services=list(cmd.services),
        date=cmd.date,
        time=cmd.time,
        address=cmd.address,
        status=cmd.status,
        notes=cmd.notes,
        assigned_employee=cmd.assigned_employee or None,
    ))
    _notify_schedule_change(w, 'appointment', appointment.customer_name, appointment.address,
                            None, appointment.assigned_employee,
                            appointment.date, appointment.date,
                            appointment.time, appointment.time)


@handles(EditAppointment)
def _edit_appointment(w: _Working, cmd: EditAppointment):
    old = w.find(APPOINTMENTS, cmd.appointment_id, 'appointment')
    changes = cmd.changes()
    if 'services' in changes:
        changes['services'] = list(changes['services'] or [])
    if 'assigned_employee' in changes:
        changes['assigned_employee'] = changes['assigned_employee'] or None
    appointment = w.update(APPOINTMENTS, old, **changes)

    _notify_schedule_change(w, 'appointment', appointment.customer_name, appointment.address,
                            old.assigned_employee, appointment.assigned_employee,
                            old.date, appointment.date,
                            old.time, appointment.time)


@handles(SetAppointmentStatus)
def _set_appointment_status(w: _Working, cmd: SetAppointmentStatus):
    w.update(APPOINTMENTS, w.find(APPOINTMENTS, cmd.appointment_id, 'appointment'), status=cmd.status)


@handles(DeleteAppointment)
def _delete_appointment(w: _Working, cmd: DeleteAppointment):
    appointment = w.find(APPOINTMENTS, cmd.appointment_id, 'appointment')
    w.remove(APPOINTMENTS, appointment)

    # Completed work stays completed
    for job in linker.jobs_for_customer_on(w.jobs, appointment.customer_name, appointment.date):
        if job.status != 'completed':
            _set_job_status(w, job, 'cancelled')

    for quote in linker.quotes_for_customer_on(w.quotes, appointment.customer_name, appointment.date):
        w.update(QUOTES, quote, time=None, assigned_crew=UNASSIGNED)

    # Paid and void invoices are settled
    for invoice in list(w.invoices):
        if linker.names_match(invoice.customer_name, appointment.customer_name) \
                and invoice.status not in ('paid', 'void'):
            _set_invoice_status(w, invoice, 'pending')

    if is_assigned(appointment.assigned_employee):
        day = linker.calendar_date(appointment.date) or appointment.date
        w.notify(appointment.assigned_employee, 'assignment_removed',
                 f"The appointment for {appointment.customer_name} on {day} was cancelled",
                 customerName=appointment.customer_name, date=day,
                 time=appointment.time, address=appointment.address)


# =============================================================================
# RESYNCHRONIZATION
# =============================================================================

@handles(Resynchronize)
def _resynchronize(w: _Working, cmd: Resynchronize):
    created = 0
    for quote in list(w.quotes):
        if quote.id in w.deleted_job_references:
            continue
        if linker.find_job_for_quote(w.jobs, quote.id) is None:
            _job_from_quote(w, quote, JOB_STATUS_FOR_QUOTE.get(quote.status, 'pending'))
            created += 1
    if created:
        logger.info(f"Resynchronization created {created} missing job(s)")


# =============================================================================
# ENTRY POINT
# =============================================================================

def apply_cascade(state: WorkflowState, command: Command, now: Optional[datetime] = None,
                  new_id: Callable[[str], str] = generate_id,
                  invoice_due_days: int = INVOICE_DUE_DAYS) -> Tuple[WorkflowState, List[Effect]]:
    """
    Compute the result of a command and everything it cascades to.

    Args:
        state: Current snapshot (left untouched)
        command: One of the Command subclasses above
        now: Clock value used for dates and due dates
        new_id: Id generator for records created by the cascade
        invoice_due_days: Days from approval until an invoice is due

    Returns:
        Tuple of (new_state, effects)

    Raises:
        RecordNotFoundError: If the command targets a record that does not exist
    """
    handler = _HANDLERS.get(type(command))
    if handler is None:
        raise TypeError(f"Unknown command: {type(command).__name__}")

    w = _Working(state, now or datetime.now(), new_id, invoice_due_days)
    handler(w, command)

    effects: List[Effect] = [CollectionChanged(collection) for collection in w.changed]
    effects.extend(w.effects)
    return w.to_state(), effects
