"""
Calendar Service - Merged calendar feed.

Combines school tasks (crm_task), school meetings (crm_meeting) and, when an
account is connected, Google Calendar events (google_event).
"""

import logging
from datetime import datetime, timedelta
from typing import List, Dict, Any, Optional

from services.reminder_service import compute_due_at

logger = logging.getLogger(__name__)

CRM_EVENT_DURATION = timedelta(hours=1)


def build_crm_events(schools: List[Dict]) -> List[Dict[str, Any]]:
    """One calendar event per school task. Tasks without a time are all-day."""
    events = []
    for school in schools:
        for task in school.get('tasks') or []:
            start = compute_due_at(task)
            if start is None:
                continue
            events.append({
                'id': task.get('id'),
                'title': task.get('title', ''),
                'start': start,
                'end': start + CRM_EVENT_DURATION,
                'type': 'crm_meeting' if task.get('is_meeting') else 'crm_task',
                'school_id': school.get('id'),
                'school_name': school.get('name'),
                'is_all_day': not task.get('due_time'),
                'completed': bool(task.get('completed'))
            })
    return events


def merge_calendar_events(crm_events: List[Dict], google_events: List[Dict],
                          start: Optional[datetime] = None,
                          end: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Events overlapping [start, end], ordered by start time."""
    merged = []
    for event in list(crm_events) + list(google_events):
        if start and event['end'] < start:
            continue
        if end and event['start'] > end:
            continue
        merged.append(event)
    return sorted(merged, key=lambda event: event['start'])


def serialize_event(event: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(event)
    data['start'] = event['start'].isoformat()
    data['end'] = event['end'].isoformat()
    return data


class CalendarService:
    """Builds the calendar feed from the database and Google Calendar."""

    def __init__(self, session, google=None):
        self.session = session
        self.google = google

    def get_events(self, start: datetime, end: datetime,
                   include_google: bool = True) -> Dict[str, Any]:
        """
        Calendar events between start and end.

        Google failures do not break the feed; they are reported in
        google_error and the CRM events are still returned.
        """
        from services.school_repository import SchoolRepository

        schools = SchoolRepository(self.session).list_schools()
        crm_events = build_crm_events(schools)

        google_events = []
        google_error = None
        if include_google and self.google is not None and self.google.is_connected():
            from services.google_calendar import GoogleCalendarError
            try:
                google_events = self.google.fetch_events(start, end)
            except (GoogleCalendarError, OSError) as e:
                logger.warning(f"Could not load Google Calendar events: {e}")
                google_error = str(e)

        events = merge_calendar_events(crm_events, google_events, start, end)
        return {
            'events': [serialize_event(e) for e in events],
            'google_connected': bool(self.google is not None and self.google.is_connected()),
            'google_error': google_error
        }
