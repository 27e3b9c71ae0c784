"""
Google Calendar Routes Blueprint

Handles the Google Calendar connection:
- /api/google/config - Configuration management
- /api/google/auth-url - OAuth URL generation
- /api/google/callback - OAuth code exchange
- /api/google/disconnect - Disconnect account
- /api/google/events - List/create events
- /api/google/sync-task/<task_id> - Push a CRM task or meeting to the calendar
"""

import logging
from datetime import datetime, timedelta
from flask import Blueprint, request, jsonify, current_app

from app.utils.helpers import parse_datetime
from services.google_calendar import GoogleCalendarError

logger = logging.getLogger(__name__)

# Create blueprint
google_bp = Blueprint('google_bp', __name__)

DEFAULT_EVENTS_WINDOW = timedelta(days=30)


def get_google_calendar():
    """Google Calendar client attached to the app"""
    from app_init import get_google_calendar as app_google_calendar
    return app_google_calendar(current_app)


# ============================================================================
# GOOGLE CONFIG & OAUTH
# ============================================================================

@google_bp.route('/api/google/config', methods=['GET', 'POST'])
def handle_google_config():
    """Manage Google API configuration (secrets are never returned)"""
    try:
        google = get_google_calendar()
        if request.method == 'GET':
            return jsonify({'success': True, 'config': google.get_public_config()})

        config = google.update_config(request.get_json(silent=True) or {})
        return jsonify({'success': True, 'config': config, 'message': 'Google configuration saved'})

    except Exception as e:
        logger.error(f"Error handling Google config: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@google_bp.route('/api/google/auth-url', methods=['GET'])
def get_google_auth_url():
    try:
        result = get_google_calendar().get_authorization_url()
        return jsonify({'success': True, **result})

    except GoogleCalendarError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Error building Google auth URL: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@google_bp.route('/api/google/callback', methods=['POST'])
def google_oauth_callback():
    """Exchange the authorization code for tokens"""
    try:
        code = (request.get_json(silent=True) or {}).get('code')
        config = get_google_calendar().exchange_code(code)
        return jsonify({
            'success': True,
            'config': config,
            'message': 'Google account connected successfully'
        })

    except GoogleCalendarError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Google token exchange failed: {e}")
        return jsonify({'success': False, 'error': f'Token exchange failed: {e}'}), 400


@google_bp.route('/api/google/disconnect', methods=['POST'])
def disconnect_google():
    try:
        get_google_calendar().disconnect()
        return jsonify({'success': True, 'message': 'Google account disconnected'})

    except Exception as e:
        logger.error(f"Error disconnecting Google: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# GOOGLE CALENDAR
# ============================================================================

@google_bp.route('/api/google/events', methods=['GET', 'POST'])
def handle_google_events():
    """List events (?time_min, ?time_max) or create one"""
    try:
        google = get_google_calendar()
        if not google.is_connected():
            return jsonify({'success': False, 'error': 'Google account not connected'}), 401

        if request.method == 'GET':
            time_min = parse_datetime(request.args.get('time_min')) or datetime.now()
            time_max = parse_datetime(request.args.get('time_max')) or time_min + DEFAULT_EVENTS_WINDOW
            events = google.fetch_events(time_min, time_max)
            from services.calendar_service import serialize_event
            return jsonify({'success': True, 'events': [serialize_event(e) for e in events]})

        data = request.get_json(silent=True) or {}
        start = parse_datetime(data.get('start'))
        if not start:
            return jsonify({'success': False, 'error': 'Valid start required'}), 400
        end = parse_datetime(data.get('end')) or start + timedelta(hours=1)

        event = google.create_event(
            data.get('title', ''), start, end,
            description=data.get('description'),
            location=data.get('location')
        )
        return jsonify({'success': True, 'event': event}), 201

    except GoogleCalendarError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Error handling Google events: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@google_bp.route('/api/google/sync-task/<task_id>', methods=['POST'])
def sync_task_to_google(task_id):
    """Create a calendar event for a school task and remember its event ID"""
    try:
        from database.connection import get_db_session
        from services.school_repository import SchoolRepository

        google = get_google_calendar()
        if not google.is_connected():
            return jsonify({'success': False, 'error': 'Google account not connected'}), 401

        with get_db_session() as session:
            repo = SchoolRepository(session)
            task = repo.get_task(task_id)
            if task is None:
                return jsonify({'success': False, 'error': 'Task not found'}), 404

            school = repo.get_school(task['school_id'])
            event = google.sync_task(
                task['title'],
                task['due_date'],
                task.get('due_time'),
                school_name=school['name'] if school else None,
                is_meeting=task.get('is_meeting', False)
            )
            task = repo.update_task(task_id, {'google_event_id': event['id']})

        return jsonify({'success': True, 'event': event, 'task': task})

    except GoogleCalendarError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Error syncing task {task_id} to Google: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
