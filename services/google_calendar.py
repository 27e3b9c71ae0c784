"""
Google Calendar Service - OAuth2 connection and event sync.

Credentials and tokens are kept in a JSON file under the data folder.
Events are read from and written to the connected account's primary calendar.
"""

import os
import logging
import requests
from datetime import datetime, timedelta
from typing import List, Optional, Dict, Any
from requests_oauthlib import OAuth2Session

from app.utils.helpers import load_json_file, save_json_file, parse_date, parse_datetime

logger = logging.getLogger(__name__)

AUTHORIZATION_URL = 'https://accounts.google.com/o/oauth2/v2/auth'
TOKEN_URL = 'https://oauth2.googleapis.com/token'
CALENDAR_API = 'https://www.googleapis.com/calendar/v3'
CALENDAR_SCOPE = 'https://www.googleapis.com/auth/calendar.events'

CONFIG_FILENAME = 'google_config.json'
UNTITLED_EVENT = '(Sin título)'
DEFAULT_EVENT_DURATION = timedelta(hours=1)
REQUEST_TIMEOUT = 15

# Refresh slightly before the token actually expires
EXPIRY_MARGIN_SECONDS = 60


class GoogleCalendarError(Exception):
    """Raised when Google rejects a request or the account is not connected."""
    pass


class GoogleCalendarService:
    """Thin client for the Google Calendar v3 REST API."""

    def __init__(self, data_folder: str, client_id: str = None, client_secret: str = None,
                 redirect_uri: str = None, timezone: str = 'Europe/Madrid'):
        self.config_file = os.path.join(data_folder, CONFIG_FILENAME)
        self.defaults = {
            'client_id': client_id or '',
            'client_secret': client_secret or '',
            'redirect_uri': redirect_uri or '',
        }
        self.timezone = timezone

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def load_config(self) -> Dict[str, Any]:
        config = dict(self.defaults)
        stored = load_json_file(self.config_file, {})
        config.update({key: value for key, value in stored.items() if value not in (None, '')})
        return config

    def save_config(self, config: Dict[str, Any]):
        save_json_file(self.config_file, config)

    def get_public_config(self) -> Dict[str, Any]:
        """Configuration without secrets or tokens."""
        config = self.load_config()
        return {
            'client_id': config.get('client_id', ''),
            'redirect_uri': config.get('redirect_uri', ''),
            'configured': bool(config.get('client_id')),
            'connected': self.is_connected()
        }

    def update_config(self, data: Dict[str, Any]) -> Dict[str, Any]:
        stored = load_json_file(self.config_file, {})
        for key in ('client_id', 'client_secret', 'redirect_uri'):
            if key in data:
                stored[key] = data[key] or ''
        self.save_config(stored)
        logger.info("Google Calendar configuration saved")
        return self.get_public_config()

    def is_connected(self) -> bool:
        config = self.load_config()
        return bool(config.get('access_token') or config.get('refresh_token'))

    # =========================================================================
    # OAUTH
    # =========================================================================

    def _oauth_session(self, config: Dict[str, Any], state: str = None) -> OAuth2Session:
        return OAuth2Session(
            client_id=config['client_id'],
            redirect_uri=config.get('redirect_uri') or None,
            scope=[CALENDAR_SCOPE],
            state=state
        )

    def get_authorization_url(self) -> Dict[str, str]:
        """Build the consent screen URL. Returns url and state."""
        config = self.load_config()
        if not config.get('client_id'):
            raise GoogleCalendarError('Google client ID not configured')

        oauth = self._oauth_session(config)
        url, state = oauth.authorization_url(
            AUTHORIZATION_URL, access_type='offline', prompt='consent'
        )
        return {'auth_url': url, 'state': state}

    def exchange_code(self, code: str) -> Dict[str, Any]:
        """Exchange an authorization code for tokens and store them."""
        if not code:
            raise GoogleCalendarError('Authorization code required')

        config = self.load_config()
        if not config.get('client_id') or not config.get('client_secret'):
            raise GoogleCalendarError('Google client credentials not configured')

        oauth = self._oauth_session(config)
        token = oauth.fetch_token(
            TOKEN_URL,
            code=code,
            client_secret=config['client_secret'],
            include_client_id=True
        )

        stored = load_json_file(self.config_file, {})
        stored['access_token'] = token.get('access_token')
        stored['refresh_token'] = token.get('refresh_token') or stored.get('refresh_token')
        stored['token_expiry'] = token.get('expires_at') or (
            datetime.now().timestamp() + token.get('expires_in', 3600)
        )
        self.save_config(stored)

        logger.info("Google Calendar account connected")
        return self.get_public_config()

    def get_access_token(self) -> Optional[str]:
        """Current access token, refreshed when expired. None when not connected."""
        config = self.load_config()
        access_token = config.get('access_token')
        expiry = config.get('token_expiry')

        if access_token and expiry and datetime.now().timestamp() < float(expiry) - EXPIRY_MARGIN_SECONDS:
            return access_token

        if not config.get('refresh_token'):
            return access_token or None

        response = requests.post(TOKEN_URL, data={
            'client_id': config.get('client_id'),
            'client_secret': config.get('client_secret'),
            'refresh_token': config['refresh_token'],
            'grant_type': 'refresh_token'
        }, timeout=REQUEST_TIMEOUT)

        if response.status_code != 200:
            logger.warning(f"Google token refresh failed: {response.status_code}")
            return None

        tokens = response.json()
        stored = load_json_file(self.config_file, {})
        stored['access_token'] = tokens.get('access_token')
        stored['token_expiry'] = datetime.now().timestamp() + tokens.get('expires_in', 3600)
        self.save_config(stored)
        return stored['access_token']

    def disconnect(self):
        """Forget stored tokens; client credentials are kept."""
        stored = load_json_file(self.config_file, {})
        for key in ('access_token', 'refresh_token', 'token_expiry'):
            stored.pop(key, None)
        self.save_config(stored)
        logger.info("Google Calendar account disconnected")

    def _headers(self) -> Dict[str, str]:
        token = self.get_access_token()
        if not token:
            raise GoogleCalendarError('Google account not connected')
        return {'Authorization': f'Bearer {token}'}

    # =========================================================================
    # EVENTS
    # =========================================================================

    def create_event(self, summary: str, start: datetime, end: datetime,
                     description: str = None, location: str = None) -> Dict[str, str]:
        """Create an event in the primary calendar. Returns id and html_link."""
        body = {
            'summary': summary,
            'start': {'dateTime': start.isoformat(), 'timeZone': self.timezone},
            'end': {'dateTime': end.isoformat(), 'timeZone': self.timezone},
        }
        if description:
            body['description'] = description
        if location:
            body['location'] = location

        response = requests.post(
            f'{CALENDAR_API}/calendars/primary/events',
            headers=self._headers(), json=body, timeout=REQUEST_TIMEOUT
        )
        if response.status_code not in (200, 201):
            logger.error(f"Calendar API error {response.status_code}: {response.text}")
            raise GoogleCalendarError(f'Failed to create event ({response.status_code})')

        data = response.json()
        logger.info(f"Created Google Calendar event: {data.get('id')}")
        return {'id': data.get('id'), 'html_link': data.get('htmlLink', '')}

    def fetch_events(self, time_min: datetime, time_max: datetime) -> List[Dict[str, Any]]:
        """
        Events between time_min and time_max, recurring events expanded.

        Returns:
            List of dicts with id, title, start, end (naive local datetimes)
            and type 'google_event'
        """
        params = {
            'timeMin': _rfc3339(time_min),
            'timeMax': _rfc3339(time_max),
            'singleEvents': 'true',
            'orderBy': 'startTime'
        }
        response = requests.get(
            f'{CALENDAR_API}/calendars/primary/events',
            headers=self._headers(), params=params, timeout=REQUEST_TIMEOUT
        )
        if response.status_code != 200:
            logger.error(f"Calendar list error {response.status_code}: {response.text}")
            raise GoogleCalendarError(f'Failed to fetch events ({response.status_code})')

        return [parse_event(item) for item in response.json().get('items', [])]

    def sync_task(self, title: str, due_date, due_time: str = None, school_name: str = None,
                  is_meeting: bool = False) -> Dict[str, str]:
        """
        Push a CRM task or meeting to Google Calendar.

        Meetings last one hour; tasks are zero-length markers at their due time.
        """
        start, end = task_event_window(due_date, due_time, is_meeting)
        description = f"CRM - {school_name}" if school_name else None
        return self.create_event(title, start, end, description=description)


def _rfc3339(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.astimezone()
    return value.isoformat()


def _event_time(part: Optional[Dict[str, str]]) -> Optional[datetime]:
    if not part:
        return None
    if part.get('dateTime'):
        return parse_datetime(part['dateTime'])
    if part.get('date'):
        day = parse_date(part['date'])
        return datetime(day.year, day.month, day.day) if day else None
    return None


def parse_event(item: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a Calendar API event into the calendar feed shape."""
    start = _event_time(item.get('start')) or datetime.now()
    end = _event_time(item.get('end')) or start + DEFAULT_EVENT_DURATION
    return {
        'id': item.get('id'),
        'title': item.get('summary') or UNTITLED_EVENT,
        'start': start,
        'end': end,
        'type': 'google_event'
    }


def task_event_window(due_date, due_time: str = None, is_meeting: bool = False):
    """Start and end of the calendar event for a task due at due_date/due_time."""
    from services.reminder_service import compute_due_at

    start = compute_due_at({'due_date': due_date, 'due_time': due_time})
    if start is None:
        raise GoogleCalendarError('Task has no valid due date')
    end = start + DEFAULT_EVENT_DURATION if is_meeting else start
    return start, end
