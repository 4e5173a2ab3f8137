"""
Crew Schedule - one crew member's work for a Sunday-to-Saturday week.
"""

from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional, Union

from services import linker
from services.repositories import Repositories

CLOSED_JOB_STATUSES = ('completed', 'cancelled')


def week_start(day: date) -> date:
    """Sunday on or before `day`"""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def _as_date(value: Union[date, datetime, str, None]) -> date:
    if value is None:
        return date.today()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(linker.calendar_date(value) or str(value))


def get_crew_schedule(store, crew_member_name: str,
                      week_of: Union[date, datetime, str, None] = None) -> Dict[str, Any]:
    """
    Open jobs and scheduled appointments assigned to a crew member, by day.

    Args:
        store: Collection store to read from
        crew_member_name: Exact crew member name as assigned on jobs/appointments
        week_of: Any day in the week to show (defaults to today)

    Returns:
        {'crewMemberName', 'weekStart', 'weekEnd', 'days': [...], 'totalItems'}
    """
    repos = Repositories(store)
    start = week_start(_as_date(week_of))

    jobs = [
        j for j in repos.jobs.load_all()
        if j.assigned_crew == crew_member_name and j.status not in CLOSED_JOB_STATUSES
    ]
    appointments = [
        a for a in repos.appointments.load_all()
        if a.assigned_employee == crew_member_name and a.status == 'scheduled'
    ]

    days = []
    for offset in range(7):
        day = (start + timedelta(days=offset)).isoformat()
        days.append({
            'date': day,
            'jobs': [j.to_dict() for j in jobs if linker.same_day(j.scheduled_date, day)],
            'appointments': [a.to_dict() for a in appointments if linker.same_day(a.date, day)],
        })

    return {
        'crewMemberName': crew_member_name,
        'weekStart': start.isoformat(),
        'weekEnd': (start + timedelta(days=6)).isoformat(),
        'days': days,
        'totalItems': sum(len(d['jobs']) + len(d['appointments']) for d in days),
    }


def parse_week_of(value: Optional[str]) -> Optional[date]:
    """Query-string helper; raises ValueError on a malformed date"""
    if not value:
        return None
    return _as_date(value)
