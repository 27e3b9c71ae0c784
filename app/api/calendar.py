"""
Calendar Routes Blueprint

- /api/calendar/events: CRM tasks and meetings merged with Google events
  (?start, ?end, ?include_google=false)
"""

import logging
from datetime import datetime, timedelta
from flask import Blueprint, request, jsonify, current_app

from app.utils.helpers import parse_datetime

logger = logging.getLogger(__name__)

# Create blueprint
calendar_bp = Blueprint('calendar_bp', __name__)

DEFAULT_WINDOW_DAYS = 31


@calendar_bp.route('/api/calendar/events', methods=['GET'])
def get_calendar_events():
    try:
        from app_init import get_google_calendar
        from database.connection import get_db_session
        from services.calendar_service import CalendarService

        today = datetime.now().replace(hour=0, minute=0, second=0, microsecond=0)
        start = parse_datetime(request.args.get('start')) or today
        end = parse_datetime(request.args.get('end')) or start + timedelta(days=DEFAULT_WINDOW_DAYS)
        if end < start:
            return jsonify({'success': False, 'error': 'end must be after start'}), 400

        include_google = request.args.get('include_google', 'true').lower() != 'false'

        with get_db_session() as session:
            result = CalendarService(session, get_google_calendar(current_app)).get_events(
                start, end, include_google=include_google
            )

        return jsonify({'success': True, **result})

    except Exception as e:
        logger.error(f"Error getting calendar events: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
