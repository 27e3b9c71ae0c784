"""
Notification Routes Blueprint

Handles in-app notifications:
- /api/notifications: List notifications for the caller
- /api/notifications/unread-count: Unread badge count
- /api/notifications/<id>/read: Mark one read
- /api/notifications/read-all: Mark all read
- /api/notifications/<id>: Delete
"""

import logging
from flask import Blueprint, request, jsonify

from security import current_user_id

logger = logging.getLogger(__name__)

# Create blueprint
notifications_bp = Blueprint('notifications_bp', __name__)


@notifications_bp.route('/api/notifications', methods=['GET'])
def get_notifications():
    try:
        from database.connection import get_db_session
        from services.notification_service import NotificationService

        with get_db_session() as session:
            notifications = NotificationService(session).get_notifications(
                user_id=current_user_id(),
                unread_only=request.args.get('unread_only', 'false').lower() == 'true',
                notification_type=request.args.get('type'),
                limit=int(request.args.get('limit', 50))
            )
            return jsonify({'success': True, 'notifications': notifications})

    except Exception as e:
        logger.error(f"Error getting notifications: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@notifications_bp.route('/api/notifications/unread-count', methods=['GET'])
def get_unread_count():
    try:
        from database.connection import get_db_session
        from services.notification_service import NotificationService

        with get_db_session() as session:
            count = NotificationService(session).get_unread_count(
                user_id=current_user_id(),
                notification_type=request.args.get('type')
            )
            return jsonify({'success': True, 'count': count})

    except Exception as e:
        logger.error(f"Error getting unread count: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@notifications_bp.route('/api/notifications/<notification_id>/read', methods=['POST'])
def mark_notification_read(notification_id):
    try:
        from database.connection import get_db_session
        from services.notification_service import NotificationService

        with get_db_session() as session:
            if not NotificationService(session).mark_as_read(notification_id):
                return jsonify({'success': False, 'error': 'Notification not found'}), 404
            return jsonify({'success': True})

    except Exception as e:
        logger.error(f"Error marking notification read: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@notifications_bp.route('/api/notifications/read-all', methods=['POST'])
def mark_all_notifications_read():
    try:
        from database.connection import get_db_session
        from services.notification_service import NotificationService

        with get_db_session() as session:
            count = NotificationService(session).mark_all_as_read(user_id=current_user_id())
            return jsonify({'success': True, 'count': count})

    except Exception as e:
        logger.error(f"Error marking all notifications read: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@notifications_bp.route('/api/notifications/<notification_id>', methods=['DELETE'])
def delete_notification(notification_id):
    try:
        from database.connection import get_db_session
        from services.notification_service import NotificationService

        with get_db_session() as session:
            if not NotificationService(session).delete_notification(notification_id):
                return jsonify({'success': False, 'error': 'Notification not found'}), 404
            return jsonify({'success': True})

    except Exception as e:
        logger.error(f"Error deleting notification: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
