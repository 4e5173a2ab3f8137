"""
Best-effort linker - every join that matches on names, dates or composed
service strings instead of a stable id lives here.

Name joins can hit zero, one or many candidates; callers get the first match.
"""

import re
from datetime import date, datetime
from typing import Iterable, List, Optional, Sequence

from services.records import Customer, Invoice, Job, Quote

CALENDAR_DATE_PATTERN = re.compile(r'^(\d{4}-\d{2}-\d{2})')


def compose_service(services: Iterable[str]) -> str:
    """Service string stored on Jobs and Invoices"""
    return ', '.join(services)


def calendar_date(value) -> Optional[str]:
    """YYYY-MM-DD part of a date, datetime or ISO string"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    match = CALENDAR_DATE_PATTERN.match(str(value))
    return match.group(1) if match else None


def same_day(a, b) -> bool:
    """Calendar-date equality; the time of day never matters"""
    day = calendar_date(a)
    return day is not None and day == calendar_date(b)


def names_match(a: Optional[str], b: Optional[str]) -> bool:
    return (a or '').strip().lower() == (b or '').strip().lower() and bool((a or '').strip())


def find_customer_by_name(customers: Sequence[Customer], name: str) -> Optional[Customer]:
    return next((c for c in customers if names_match(c.name, name)), None)


def find_job_for_quote(jobs: Sequence[Job], quote_id: str) -> Optional[Job]:
    return next((j for j in jobs if j.quote_id == quote_id), None)


def find_invoices_for_quote(invoices: Sequence[Invoice], quote: Quote) -> List[Invoice]:
    """
    Invoices linked to a quote: by quoteId, or by customer name and composed
    service string for invoices that carry no quoteId.
    """
    service = compose_service(quote.services)
    linked = []
    for invoice in invoices:
        if invoice.quote_id:
            if invoice.quote_id == quote.id:
                linked.append(invoice)
        elif names_match(invoice.customer_name, quote.customer_name) and invoice.service == service:
            linked.append(invoice)
    return linked


def find_quote_for_invoice(quotes: Sequence[Quote], invoice: Invoice) -> Optional[Quote]:
    """
    The quote an invoice came from.

    With a quoteId the link is exact. Without one, the first quote for the
    same customer whose composed service string equals the invoice service
    and which is not yet invoiced wins.
    """
    if invoice.quote_id:
        return next((q for q in quotes if q.id == invoice.quote_id), None)

    return next(
        (
            q for q in quotes
            if names_match(q.customer_name, invoice.customer_name)
            and compose_service(q.services) == invoice.service
            and q.status != 'invoiced'
        ),
        None,
    )


def jobs_for_customer_on(jobs: Sequence[Job], customer_name: str, day) -> List[Job]:
    return [j for j in jobs if names_match(j.customer_name, customer_name) and same_day(j.scheduled_date, day)]


def quotes_for_customer_on(quotes: Sequence[Quote], customer_name: str, day) -> List[Quote]:
    return [q for q in quotes if names_match(q.customer_name, customer_name) and same_day(q.date, day)]


def customer_summary(customer_name: str, quotes: Sequence[Quote], jobs: Sequence[Job],
                     invoices: Sequence[Invoice]) -> dict:
    """Per-customer activity, recomputed by name"""
    customer_quotes = [q for q in quotes if names_match(q.customer_name, customer_name)]
    customer_jobs = [j for j in jobs if names_match(j.customer_name, customer_name)]
    customer_invoices = [i for i in invoices if names_match(i.customer_name, customer_name)]

    return {
        'customerName': customer_name,
        'quoteCount': len(customer_quotes),
        'jobCount': len(customer_jobs),
        'completedJobCount': sum(1 for j in customer_jobs if j.status == 'completed'),
        'invoiceCount': len(customer_invoices),
        'totalPaid': round(sum(i.amount for i in customer_invoices if i.status == 'paid'), 2),
        'totalOutstanding': round(
            sum(i.amount for i in customer_invoices if i.status in ('pending', 'overdue')), 2
        ),
    }
