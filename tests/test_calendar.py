"""
Tests for Google Calendar sync and the merged calendar feed
"""
import json
from datetime import datetime, timedelta

import pytest
from unittest.mock import Mock, patch

from services.google_calendar import (
    CONFIG_FILENAME,
    GoogleCalendarError,
    GoogleCalendarService,
    parse_event,
    task_event_window,
)
from services.calendar_service import (
    CalendarService,
    build_crm_events,
    merge_calendar_events,
    serialize_event,
)


@pytest.fixture
def google(tmp_path):
    return GoogleCalendarService(str(tmp_path), client_id='client-id', client_secret='secret',
                                 redirect_uri='http://localhost/callback')


def write_tokens(service, **tokens):
    config = {'access_token': 'token', 'refresh_token': 'refresh',
              'token_expiry': datetime.now().timestamp() + 3600}
    config.update(tokens)
    service.save_config(config)


def mock_response(status_code=200, payload=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    response.text = json.dumps(payload or {})
    return response


@pytest.mark.unit
class TestGoogleCalendarConfig:
    """Tests for stored configuration and connection state"""

    def test_not_connected_without_tokens(self, google):
        """Test that a fresh service is configured but not connected"""
        config = google.get_public_config()
        assert config == {
            'client_id': 'client-id',
            'redirect_uri': 'http://localhost/callback',
            'configured': True,
            'connected': False
        }

    def test_public_config_hides_secrets(self, google):
        """Test that secrets and tokens never leave the service"""
        write_tokens(google)
        config = google.get_public_config()
        assert 'client_secret' not in config
        assert 'access_token' not in config
        assert config['connected'] is True

    def test_update_config_persists(self, google, tmp_path):
        """Test that saved credentials override the defaults"""
        google.update_config({'client_id': 'other-id'})
        with open(tmp_path / CONFIG_FILENAME) as f:
            assert json.load(f)['client_id'] == 'other-id'
        assert google.get_public_config()['client_id'] == 'other-id'

    def test_disconnect_keeps_credentials(self, google):
        """Test that disconnecting drops tokens only"""
        google.update_config({'client_id': 'stored-id'})
        write_tokens(google, client_id='stored-id')
        google.disconnect()

        assert google.is_connected() is False
        assert google.get_public_config()['client_id'] == 'stored-id'

    def test_authorization_url_requires_client_id(self, tmp_path):
        """Test that the consent URL needs a client id"""
        with pytest.raises(GoogleCalendarError):
            GoogleCalendarService(str(tmp_path)).get_authorization_url()

    def test_authorization_url(self, google):
        """Test that the consent URL asks for offline access"""
        result = google.get_authorization_url()
        assert result['auth_url'].startswith('https://accounts.google.com/o/oauth2/v2/auth')
        assert 'access_type=offline' in result['auth_url']
        assert result['state']

    @patch('services.google_calendar.OAuth2Session')
    def test_exchange_code_stores_tokens(self, mock_session_class, google):
        """Test that exchanging a code stores the tokens"""
        mock_session_class.return_value.fetch_token.return_value = {
            'access_token': 'new-token', 'refresh_token': 'new-refresh', 'expires_at': 9999999999
        }

        config = google.exchange_code('auth-code')

        assert config['connected'] is True
        stored = google.load_config()
        assert stored['access_token'] == 'new-token'
        assert stored['refresh_token'] == 'new-refresh'

    def test_exchange_code_requires_code(self, google):
        """Test that an empty code is rejected"""
        with pytest.raises(GoogleCalendarError):
            google.exchange_code('')


@pytest.mark.unit
class TestGoogleCalendarTokens:
    """Tests for access token refresh"""

    def test_valid_token_is_reused(self, google):
        """Test that an unexpired token is returned without a refresh"""
        write_tokens(google)
        with patch('services.google_calendar.requests') as mock_requests:
            assert google.get_access_token() == 'token'
            mock_requests.post.assert_not_called()

    @patch('services.google_calendar.requests')
    def test_expired_token_is_refreshed(self, mock_requests, google):
        """Test that an expired token is refreshed and stored"""
        write_tokens(google, token_expiry=datetime.now().timestamp() - 10)
        mock_requests.post.return_value = mock_response(200, {'access_token': 'fresh', 'expires_in': 3600})

        assert google.get_access_token() == 'fresh'
        assert google.load_config()['access_token'] == 'fresh'
        assert mock_requests.post.call_args.kwargs['data']['grant_type'] == 'refresh_token'

    @patch('services.google_calendar.requests')
    def test_failed_refresh_returns_none(self, mock_requests, google):
        """Test that a rejected refresh yields no token"""
        write_tokens(google, token_expiry=0)
        mock_requests.post.return_value = mock_response(400, {'error': 'invalid_grant'})

        assert google.get_access_token() is None

    def test_headers_require_connection(self, google):
        """Test that API calls fail when not connected"""
        with pytest.raises(GoogleCalendarError):
            google.fetch_events(datetime(2024, 5, 1), datetime(2024, 5, 31))


@pytest.mark.unit
class TestGoogleCalendarEvents:
    """Tests for creating and reading events"""

    @patch('services.google_calendar.requests')
    def test_sync_meeting_lasts_one_hour(self, mock_requests, google):
        """Test that meetings are pushed as one hour events"""
        write_tokens(google)
        mock_requests.post.return_value = mock_response(200, {'id': 'evt1', 'htmlLink': 'https://cal/evt1'})

        result = google.sync_task('Reunión', '2024-05-10', '10:30', school_name='Colegio Sur', is_meeting=True)

        assert result == {'id': 'evt1', 'html_link': 'https://cal/evt1'}
        body = mock_requests.post.call_args.kwargs['json']
        assert body['start']['dateTime'] == '2024-05-10T10:30:00'
        assert body['end']['dateTime'] == '2024-05-10T11:30:00'
        assert body['start']['timeZone'] == 'Europe/Madrid'
        assert body['description'] == 'CRM - Colegio Sur'

    @patch('services.google_calendar.requests')
    def test_create_event_error(self, mock_requests, google):
        """Test that an API error raises GoogleCalendarError"""
        write_tokens(google)
        mock_requests.post.return_value = mock_response(403, {'error': 'forbidden'})

        with pytest.raises(GoogleCalendarError):
            google.create_event('X', datetime(2024, 5, 10, 9), datetime(2024, 5, 10, 10))

    @patch('services.google_calendar.requests')
    def test_fetch_events(self, mock_requests, google):
        """Test that listed events are parsed into feed events"""
        write_tokens(google)
        mock_requests.get.return_value = mock_response(200, {'items': [
            {'id': 'a', 'summary': 'Claustro', 'start': {'dateTime': '2024-05-10T09:00:00'},
             'end': {'dateTime': '2024-05-10T10:00:00'}},
            {'id': 'b', 'start': {'date': '2024-05-11'}, 'end': {'date': '2024-05-12'}},
        ]})

        events = google.fetch_events(datetime(2024, 5, 1), datetime(2024, 5, 31))

        assert [e['title'] for e in events] == ['Claustro', '(Sin título)']
        assert events[1]['start'] == datetime(2024, 5, 11)
        assert mock_requests.get.call_args.kwargs['params']['singleEvents'] == 'true'

    def test_parse_event_without_end(self):
        """Test that events without end last one hour"""
        event = parse_event({'id': 'x', 'summary': 'S', 'start': {'dateTime': '2024-05-10T09:00:00'}})
        assert event['end'] == datetime(2024, 5, 10, 10, 0)
        assert event['type'] == 'google_event'

    def test_task_event_window(self):
        """Test that tasks are zero-length and default to 09:00"""
        start, end = task_event_window('2024-05-10')
        assert start == end == datetime(2024, 5, 10, 9, 0)

        with pytest.raises(GoogleCalendarError):
            task_event_window(None)


@pytest.mark.unit
class TestCalendarFeed:
    """Tests for the merged calendar feed"""

    SCHOOLS = [{
        'id': 's1', 'name': 'Colegio Norte',
        'tasks': [
            {'id': 't1', 'title': 'Llamar', 'due_date': '2024-05-10', 'due_time': None,
             'completed': True, 'is_meeting': False},
            {'id': 't2', 'title': 'Reunión', 'due_date': '2024-05-12', 'due_time': '16:00',
             'completed': False, 'is_meeting': True},
            {'id': 't3', 'title': 'Rota', 'due_date': None},
        ]
    }]

    def test_build_crm_events(self):
        """Test that tasks become one hour events, including completed ones"""
        events = build_crm_events(self.SCHOOLS)

        assert [e['id'] for e in events] == ['t1', 't2']
        assert events[0]['type'] == 'crm_task'
        assert events[0]['is_all_day'] is True
        assert events[0]['completed'] is True
        assert events[0]['start'] == datetime(2024, 5, 10, 9, 0)
        assert events[1]['type'] == 'crm_meeting'
        assert events[1]['end'] - events[1]['start'] == timedelta(hours=1)

    def test_merge_filters_and_sorts(self):
        """Test that events outside the window are dropped and the rest sorted"""
        crm = build_crm_events(self.SCHOOLS)
        google = [{'id': 'g', 'title': 'G', 'start': datetime(2024, 5, 11, 8), 'end': datetime(2024, 5, 11, 9),
                   'type': 'google_event'}]

        merged = merge_calendar_events(crm, google, datetime(2024, 5, 11), datetime(2024, 5, 31))
        assert [e['id'] for e in merged] == ['g', 't2']

    def test_serialize_event(self):
        """Test that datetimes are serialized as ISO strings"""
        event = build_crm_events(self.SCHOOLS)[1]
        data = serialize_event(event)
        assert data['start'] == '2024-05-12T16:00:00'
        assert isinstance(event['start'], datetime)

    def test_google_failure_keeps_crm_events(self, db_session, school_factory):
        """Test that a Google error is reported without breaking the feed"""
        from services.school_repository import SchoolRepository

        school = school_factory()
        SchoolRepository(db_session).create_task(school['id'], {'title': 'Visita', 'due_date': '2024-05-10'})
        google = Mock()
        google.is_connected.return_value = True
        google.fetch_events.side_effect = GoogleCalendarError('Failed to fetch events (500)')

        result = CalendarService(db_session, google).get_events(datetime(2024, 5, 1), datetime(2024, 5, 31))

        assert [e['title'] for e in result['events']] == ['Visita']
        assert result['google_connected'] is True
        assert result['google_error'] == 'Failed to fetch events (500)'

    def test_google_skipped_when_not_requested(self, db_session):
        """Test that include_google False never calls Google"""
        google = Mock()
        google.is_connected.return_value = True

        result = CalendarService(db_session, google).get_events(
            datetime(2024, 5, 1), datetime(2024, 5, 31), include_google=False
        )

        google.fetch_events.assert_not_called()
        assert result['events'] == []
        assert result['google_error'] is None
