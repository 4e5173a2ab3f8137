"""
Record shapes for every business collection.

Records are stored with camelCase keys (customerName, quoteId, ...) and used
in Python with snake_case attributes. Unknown keys are kept so that records
written by other tools survive a load/save cycle.
"""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

UNASSIGNED = 'Unassigned'

CustomerStatus = Literal['active', 'inactive']
AppointmentStatus = Literal['scheduled', 'completed', 'cancelled']
QuoteStatus = Literal['pending', 'approved', 'rejected', 'invoiced']
JobStatus = Literal['pending', 'scheduled', 'in-progress', 'completed', 'cancelled']
InvoiceStatus = Literal['paid', 'pending', 'overdue', 'void']
PhotoType = Literal['before', 'after']
NotificationType = Literal[
    'new_assignment',
    'assignment_removed',
    'date_changed',
    'time_changed',
    'schedule_changed',
]

QUOTE_STATUSES = ('pending', 'approved', 'rejected', 'invoiced')
JOB_STATUSES = ('pending', 'scheduled', 'in-progress', 'completed', 'cancelled')
INVOICE_STATUSES = ('paid', 'pending', 'overdue', 'void')
APPOINTMENT_STATUSES = ('scheduled', 'completed', 'cancelled')


def generate_id(prefix: str) -> str:
    """Opaque, never reused record id"""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def now_iso() -> str:
    return datetime.now().isoformat()


class Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='allow',
    )

    id: str

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class Customer(Record):
    name: str
    email: str = ''
    phone: str = ''
    address: str = ''
    status: CustomerStatus = 'active'
    archived_date: Optional[str] = None


class CrewMember(Record):
    name: str
    phone: str = ''
    email: str = ''
    role: str = 'Technician'
    archived_date: Optional[str] = None


class Appointment(Record):
    customer_id: str = ''
    customer_name: str
    services: List[str] = Field(default_factory=list)
    date: str
    time: str = ''
    address: str = ''
    status: AppointmentStatus = 'scheduled'
    notes: str = ''
    assigned_employee: Optional[str] = None


class Quote(Record):
    customer_name: str
    services: List[str] = Field(default_factory=list)
    amount: float = 0
    status: QuoteStatus = 'pending'
    date: str = Field(default_factory=now_iso)
    notes: str = ''
    time: Optional[str] = None
    assigned_crew: Optional[str] = None

    @field_validator('services', mode='before')
    @classmethod
    def split_service_string(cls, v):
        # Older records carry a single comma-joined string
        if isinstance(v, str):
            return [s.strip() for s in v.split(',') if s.strip()]
        return v


class JobPhoto(Record):
    url: str
    type: PhotoType
    uploaded_at: str = Field(default_factory=now_iso)


class Job(Record):
    quote_id: Optional[str] = None
    customer_name: str
    service: str = ''
    address: str = ''
    scheduled_date: str
    scheduled_time: Optional[str] = None
    assigned_crew: str = UNASSIGNED
    status: JobStatus = 'pending'
    photos: List[JobPhoto] = Field(default_factory=list)
    notes: str = ''
    reminder_sent: Optional[bool] = None
    completed_date: Optional[str] = None
    yearly_reminder_sent: Optional[bool] = None

    @field_validator('assigned_crew', mode='before')
    @classmethod
    def blank_crew_is_unassigned(cls, v):
        return v or UNASSIGNED


class Invoice(Record):
    quote_id: Optional[str] = None
    customer_name: str
    service: str = ''
    amount: float = 0
    status: InvoiceStatus = 'pending'
    due_date: str
    paid_date: Optional[str] = None
    quickbooks_synced: bool = False
    quickbooks_id: Optional[str] = None


class NotificationDetails(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='allow')

    customer_name: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    address: Optional[str] = None
    old_date: Optional[str] = None
    new_date: Optional[str] = None
    old_time: Optional[str] = None
    new_time: Optional[str] = None


class CrewNotification(Record):
    crew_member_name: str
    type: NotificationType
    message: str
    details: NotificationDetails = Field(default_factory=NotificationDetails)
    timestamp: str = Field(default_factory=now_iso)
    read: bool = False


def is_assigned(crew_name: Optional[str]) -> bool:
    return bool(crew_name) and crew_name != UNASSIGNED
