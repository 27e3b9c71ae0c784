"""
Reminder Service - Upcoming task and meeting reminders.

This service:
- Computes which incomplete school tasks fall due inside the look-ahead window
- Stores per-user reminder preferences
- Polls on an interval and notifies each upcoming item exactly once
"""

import logging
import threading
from typing import Dict, List, Any, Optional, Callable, Tuple
from datetime import datetime, date, timedelta
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


DEFAULT_REMINDER_SETTINGS = {
    'notifications_enabled': True,
    'check_interval_minutes': 1,
    'remind_minutes_before': 15,
    'remind_minutes_before_follow_up': 15,
    'remind_for_tasks': True,
    'remind_for_meetings': True,
}

DEFAULT_DUE_TIME = '09:00'

NOTIFICATION_TITLE_PREFIX = 'Finomik CRM'
NOTIFICATION_LABELS = {
    True: 'Próxima reunión',
    False: 'Próxima tarea',
}

PERMISSION_DEFAULT = 'default'
PERMISSION_GRANTED = 'granted'
PERMISSION_DENIED = 'denied'


MINUTE_SETTINGS = ('check_interval_minutes', 'remind_minutes_before', 'remind_minutes_before_follow_up')


def _valid_setting(key: str, value: Any) -> bool:
    if key in MINUTE_SETTINGS:
        return isinstance(value, int) and not isinstance(value, bool) and value > 0
    return isinstance(value, bool)


def merge_reminder_settings(stored: Optional[Dict] = None, overrides: Optional[Dict] = None) -> Dict[str, Any]:
    """
    Overlay stored and override values on the defaults.

    Unknown keys are ignored. A value of the wrong type (minutes must be
    positive ints, flags must be bools) keeps the default for that key, so a
    corrupt stored record never reaches the reminder computation.
    """
    merged = dict(DEFAULT_REMINDER_SETTINGS)
    for source in (stored, overrides):
        if not isinstance(source, dict):
            continue
        for key, value in source.items():
            if key not in merged or value is None:
                continue
            if not _valid_setting(key, value):
                logger.warning(f"Ignoring invalid reminder setting {key}={value!r}")
                continue
            merged[key] = value
    return merged


def _parse_due_date(value) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        return None
    try:
        from dateutil import parser
        return parser.parse(str(value)).date()
    except (ValueError, OverflowError):
        return None


def _parse_due_time(value: Optional[str], title: str = '') -> Tuple[int, int]:
    raw = value or DEFAULT_DUE_TIME
    try:
        hours, minutes = (int(part) for part in raw.split(':')[:2])
        if not (0 <= hours < 24 and 0 <= minutes < 60):
            raise ValueError(raw)
        return hours, minutes
    except (ValueError, AttributeError):
        logger.warning(f"Malformed due time '{value}' on task '{title}', using {DEFAULT_DUE_TIME}")
        return 9, 0


def compute_due_at(task: Dict) -> Optional[datetime]:
    """Due timestamp for a task: due date at due time (09:00 when missing)."""
    due_date = _parse_due_date(task.get('due_date'))
    if due_date is None:
        return None
    hours, minutes = _parse_due_time(task.get('due_time'), task.get('title', ''))
    return datetime(due_date.year, due_date.month, due_date.day, hours, minutes)


def get_upcoming_reminder_items(schools: List[Dict], settings: Dict,
                                now: Optional[datetime] = None) -> List[Dict]:
    """
    Return the incomplete tasks due within [now, now + look-ahead].

    Meetings use remind_minutes_before_follow_up, every other task uses
    remind_minutes_before. Items are sorted by due timestamp.

    Args:
        schools: School dicts, each with a 'tasks' list
        settings: Reminder settings (see DEFAULT_REMINDER_SETTINGS)
        now: Reference time, defaults to the current local time

    Returns:
        List of dicts with title, at, school_name, school_id and is_meeting
    """
    settings = merge_reminder_settings(settings)
    if not settings['remind_for_tasks'] and not settings['remind_for_meetings']:
        return []

    now = now or datetime.now()
    task_limit = now + timedelta(minutes=settings['remind_minutes_before'])
    meeting_limit = now + timedelta(minutes=settings['remind_minutes_before_follow_up'])

    items = []
    for school in schools:
        for task in school.get('tasks') or []:
            if task.get('completed'):
                continue

            is_meeting = task.get('is_meeting') is True
            if is_meeting and not settings['remind_for_meetings']:
                continue
            if not is_meeting and not settings['remind_for_tasks']:
                continue

            at = compute_due_at(task)
            if at is None:
                continue

            limit = meeting_limit if is_meeting else task_limit
            if now <= at <= limit:
                items.append({
                    'title': task.get('title', ''),
                    'at': at,
                    'school_name': school.get('name', ''),
                    'school_id': school.get('id'),
                    'is_meeting': is_meeting,
                })

    items.sort(key=lambda item: item['at'])
    return items


def reminder_key(item: Dict) -> str:
    """Dedupe key for an upcoming item: epoch milliseconds plus title."""
    millis = int(item['at'].timestamp() * 1000)
    return f"{millis}-{item['title']}"


def format_reminder_notification(item: Dict) -> Tuple[str, str]:
    """Build the (title, body) pair shown to the user."""
    label = NOTIFICATION_LABELS[bool(item.get('is_meeting'))]
    title = f"{NOTIFICATION_TITLE_PREFIX} – {label}"
    body = f"{item['title']} – {item['school_name']} a las {item['at'].strftime('%H:%M')}"
    return title, body


def serialize_reminder_item(item: Dict) -> Dict:
    """JSON-friendly copy of an upcoming item."""
    return {
        'title': item['title'],
        'at': item['at'].isoformat(),
        'school_name': item['school_name'],
        'school_id': item['school_id'],
        'is_meeting': item['is_meeting'],
        'key': reminder_key(item),
    }


class ReminderSettingsRepository:
    """Persists reminder preferences per user."""

    def __init__(self, session: Session):
        self.session = session

    def get_settings(self, user_id: str) -> Dict[str, Any]:
        """Stored settings merged over the defaults."""
        from database.models import ReminderSetting

        try:
            row = self.session.query(ReminderSetting).filter(
                ReminderSetting.user_id == user_id
            ).first()
        except Exception as e:
            logger.error(f"Error loading reminder settings for {user_id}: {e}")
            return merge_reminder_settings()

        return merge_reminder_settings(row.settings if row else None)

    def update_settings(self, user_id: str, partial: Dict) -> Dict[str, Any]:
        """Merge a partial update into the stored settings and persist them."""
        from database.models import ReminderSetting
        from validators import validate_reminder_settings, require_valid

        require_valid(validate_reminder_settings(partial))

        row = self.session.query(ReminderSetting).filter(
            ReminderSetting.user_id == user_id
        ).first()

        merged = merge_reminder_settings(row.settings if row else None, partial)

        if row is None:
            row = ReminderSetting(user_id=user_id, settings=merged)
            self.session.add(row)
        else:
            row.settings = merged
            row.updated_at = datetime.utcnow()

        self.session.flush()
        logger.info(f"Updated reminder settings for {user_id}")
        return merged


class ReminderPoller:
    """
    Periodic check that surfaces each upcoming reminder once.

    The notifier must expose a `permission` attribute ('default', 'granted'
    or 'denied'), `request_permission()` and `notify(title, body, item)`.
    """

    def __init__(self, load_schools: Callable[[], List[Dict]],
                 load_settings: Callable[[], Dict], notifier):
        self.load_schools = load_schools
        self.load_settings = load_settings
        self.notifier = notifier
        self.notified_keys = set()
        self._lock = threading.Lock()

    @property
    def interval_seconds(self) -> int:
        settings = merge_reminder_settings(self.load_settings())
        return int(settings['check_interval_minutes']) * 60

    def check(self, now: Optional[datetime] = None) -> List[Dict]:
        """Run one poll step and return the items that were newly recorded."""
        settings = merge_reminder_settings(self.load_settings())

        if not settings['notifications_enabled']:
            return []
        if self.notifier.permission == PERMISSION_DENIED:
            return []
        if self.notifier.permission == PERMISSION_DEFAULT:
            self.notifier.request_permission()

        upcoming = get_upcoming_reminder_items(self.load_schools(), settings, now)

        # The scheduler thread and the manual check endpoint share this poller
        with self._lock:
            new_items = []
            for item in upcoming:
                key = reminder_key(item)
                if key not in self.notified_keys:
                    self.notified_keys.add(key)
                    new_items.append(item)

        if self.notifier.permission == PERMISSION_GRANTED:
            for item in new_items:
                title, body = format_reminder_notification(item)
                self.notifier.notify(title, body, item)

        if new_items:
            logger.info(f"Reminder check found {len(new_items)} new upcoming item(s)")
        return new_items

    def reset(self):
        """Forget every notified key."""
        with self._lock:
            self.notified_keys.clear()


class InAppNotifier:
    """Delivers reminder notifications as in-app notifications."""

    def __init__(self, user_id: Optional[str] = None, permission: str = PERMISSION_DEFAULT):
        self.user_id = user_id
        self.permission = permission

    def request_permission(self) -> str:
        # In-app delivery has no external consent step
        if self.permission == PERMISSION_DEFAULT:
            self.permission = PERMISSION_GRANTED
        return self.permission

    def notify(self, title: str, body: str, item: Dict):
        from database.connection import get_db_session
        from services.notification_service import NotificationService

        with get_db_session() as session:
            NotificationService(session).create_notification(
                title=title,
                message=body,
                notification_type='reminder',
                priority='high' if item.get('is_meeting') else 'normal',
                user_id=self.user_id,
                entity_type='school',
                entity_id=item.get('school_id'),
                metadata=serialize_reminder_item(item)
            )


# Global poller instance
_poller = None

DEFAULT_SETTINGS_USER = 'default'


def _load_all_schools() -> List[Dict]:
    from database.connection import get_db_session
    from services.school_repository import SchoolRepository

    with get_db_session() as session:
        return SchoolRepository(session).list_schools()


def _load_default_settings() -> Dict:
    from database.connection import get_db_session

    with get_db_session() as session:
        return ReminderSettingsRepository(session).get_settings(DEFAULT_SETTINGS_USER)


def get_reminder_poller() -> ReminderPoller:
    """Get or create the global reminder poller."""
    global _poller
    if _poller is None:
        _poller = ReminderPoller(_load_all_schools, _load_default_settings, InAppNotifier())
    return _poller
