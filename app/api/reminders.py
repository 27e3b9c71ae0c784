"""
Reminder Routes Blueprint

Handles upcoming task/meeting reminders:
- /api/reminders/settings: Get/update reminder preferences
- /api/reminders/upcoming: Tasks and meetings due within the look-ahead window
- /api/reminders/check: Run one poll step now
- /api/reminders/permission: Notification permission of the poller
"""

import logging
from flask import Blueprint, request, jsonify

from security import current_user_id
from validators import ValidationError, format_validation_error

logger = logging.getLogger(__name__)

# Create blueprint
reminders_bp = Blueprint('reminders_bp', __name__)

PERMISSION_VALUES = ['default', 'granted', 'denied']


def _settings_user():
    from services.reminder_service import DEFAULT_SETTINGS_USER
    return current_user_id() or DEFAULT_SETTINGS_USER


@reminders_bp.route('/api/reminders/settings', methods=['GET', 'PUT'])
def handle_reminder_settings():
    try:
        from database.connection import get_db_session
        from services.reminder_service import ReminderSettingsRepository, DEFAULT_SETTINGS_USER

        user_id = _settings_user()
        with get_db_session() as session:
            repo = ReminderSettingsRepository(session)
            if request.method == 'GET':
                return jsonify({'success': True, 'settings': repo.get_settings(user_id)})

            settings = repo.update_settings(user_id, request.get_json(silent=True) or {})

        if user_id == DEFAULT_SETTINGS_USER:
            from services.scheduler import reschedule_reminder_job
            reschedule_reminder_job(int(settings['check_interval_minutes']) * 60)

        return jsonify({'success': True, 'settings': settings})

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling reminder settings: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@reminders_bp.route('/api/reminders/upcoming', methods=['GET'])
def get_upcoming_reminders():
    """Upcoming items for the caller's settings; ?now= overrides the reference time."""
    try:
        from database.connection import get_db_session
        from services.school_repository import SchoolRepository
        from services.reminder_service import (
            ReminderSettingsRepository, get_upcoming_reminder_items, serialize_reminder_item
        )
        from app.utils.helpers import parse_datetime

        now = parse_datetime(request.args.get('now'))
        with get_db_session() as session:
            settings = ReminderSettingsRepository(session).get_settings(_settings_user())
            schools = SchoolRepository(session).list_schools()

        items = get_upcoming_reminder_items(schools, settings, now)
        return jsonify({
            'success': True,
            'items': [serialize_reminder_item(item) for item in items],
            'count': len(items)
        })

    except Exception as e:
        logger.error(f"Error getting upcoming reminders: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@reminders_bp.route('/api/reminders/check', methods=['POST'])
def run_reminder_check():
    """Poll now and return the items that had not been notified yet."""
    try:
        from services.reminder_service import get_reminder_poller, serialize_reminder_item

        new_items = get_reminder_poller().check()
        return jsonify({
            'success': True,
            'items': [serialize_reminder_item(item) for item in new_items],
            'count': len(new_items)
        })

    except Exception as e:
        logger.error(f"Error running reminder check: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@reminders_bp.route('/api/reminders/permission', methods=['GET', 'PUT'])
def handle_reminder_permission():
    try:
        from services.reminder_service import get_reminder_poller

        notifier = get_reminder_poller().notifier
        if request.method == 'PUT':
            permission = (request.get_json(silent=True) or {}).get('permission')
            if permission not in PERMISSION_VALUES:
                return jsonify(format_validation_error(
                    'permission', f"Must be one of: {', '.join(PERMISSION_VALUES)}"
                )), 400
            notifier.permission = permission
            logger.info(f"Reminder notification permission set to {permission}")

        return jsonify({'success': True, 'permission': notifier.permission})

    except Exception as e:
        logger.error(f"Error handling reminder permission: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
