"""
API Blueprints Package

All HTTP route handlers for the application, organized by domain.
Each module defines a Flask Blueprint registered in app/__init__.py.

BLUEPRINT REFERENCE:
====================

Workflow:
- quotes.py        : Quotes, status changes, approval (/api/quotes)
- jobs.py          : Jobs, status changes, before/after photos (/api/jobs)
- invoices.py      : Invoice status and QuickBooks sync (/api/invoices)
- appointments.py  : Calendar appointments (/api/appointments)

Records:
- customers.py     : Customers, activity summary, archive (/api/customers)
- crew.py          : Crew members, notification feed, weekly schedule (/api/crew)
- reminders.py     : Yearly follow-up reminders (/api/reminders)

Other:
- auth_routes.py   : Office/crew session (/api/auth/*)
- admin.py         : Resync, reset, store info (/api/admin/*)
- quickbooks.py    : QuickBooks bridge endpoints (/api/quickbooks/*)
- scheduler.py     : Background poller status

Health endpoints are registered separately by health_checks.py.
"""

# All blueprints are imported and registered in app/__init__.py
# This file serves as documentation only

__all__ = []
