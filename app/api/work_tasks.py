"""
Work Tasks Routes Blueprint

Handles the team Tasks tool:
- /api/work-tasks: List (filters, sort, paging) / create
- /api/work-tasks/mine: Open tasks assigned to the caller
- /api/work-tasks/<task_id>: Get/update/delete
- /api/work-tasks/<task_id>/done, /snooze, /links
- /api/work-tasks/notifications/*: Reminder notifications for the caller
"""

import logging
from flask import Blueprint, request, jsonify

from security import current_user_id, require_user
from validators import ValidationError, format_validation_error

logger = logging.getLogger(__name__)

# Create blueprint
work_tasks_bp = Blueprint('work_tasks_bp', __name__)

FILTER_ARGS = ['assignee_user_id', 'priority', 'due_from', 'due_to', 'search', 'entity_type']


def _filters_from_args():
    filters = {key: request.args.get(key) for key in FILTER_ARGS if request.args.get(key)}
    statuses = request.args.getlist('status')
    if len(statuses) == 1:
        filters['status'] = statuses[0]
    elif statuses:
        filters['status'] = statuses
    if request.args.get('overdue', '').lower() == 'true':
        filters['overdue'] = True
    return filters


@work_tasks_bp.route('/api/work-tasks', methods=['GET', 'POST'])
def handle_work_tasks():
    try:
        from database.connection import get_db_session
        from services.work_task_repository import WorkTaskRepository

        with get_db_session() as session:
            repo = WorkTaskRepository(session)
            if request.method == 'GET':
                tasks = repo.list_all_tasks(
                    filters=_filters_from_args(),
                    sort_by=request.args.get('sort_by', 'updated_at'),
                    sort_asc=request.args.get('sort_order', 'desc').lower() == 'asc',
                    limit=int(request.args.get('limit', 500)),
                    offset=int(request.args.get('offset', 0))
                )
                return jsonify({'success': True, 'tasks': tasks, 'count': len(tasks)})

            task = repo.create_task(
                request.get_json(silent=True) or {},
                created_by_user_id=current_user_id()
            )
            return jsonify({'success': True, 'task': task}), 201

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling work tasks: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@work_tasks_bp.route('/api/work-tasks/mine', methods=['GET'])
@require_user
def list_my_work_tasks():
    try:
        from database.connection import get_db_session
        from services.work_task_repository import WorkTaskRepository

        user_id = current_user_id()
        with get_db_session() as session:
            tasks = WorkTaskRepository(session).list_my_tasks(user_id)
            return jsonify({'success': True, 'tasks': tasks, 'count': len(tasks)})

    except Exception as e:
        logger.error(f"Error listing my work tasks: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@work_tasks_bp.route('/api/work-tasks/<task_id>', methods=['GET', 'PUT', 'DELETE'])
def handle_work_task(task_id):
    try:
        from database.connection import get_db_session
        from services.work_task_repository import WorkTaskRepository

        with get_db_session() as session:
            repo = WorkTaskRepository(session)
            if request.method == 'DELETE':
                if not repo.delete_task(task_id):
                    return jsonify({'success': False, 'error': 'Task not found'}), 404
                return jsonify({'success': True, 'message': 'Task deleted'})

            if request.method == 'GET':
                task = repo.get_task(task_id)
            else:
                task = repo.update_task(task_id, request.get_json(silent=True) or {})

            if task is None:
                return jsonify({'success': False, 'error': 'Task not found'}), 404
            return jsonify({'success': True, 'task': task})

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling work task {task_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@work_tasks_bp.route('/api/work-tasks/<task_id>/done', methods=['POST'])
def mark_work_task_done(task_id):
    try:
        from database.connection import get_db_session
        from services.work_task_repository import WorkTaskRepository

        with get_db_session() as session:
            task = WorkTaskRepository(session).mark_done(task_id)
            if task is None:
                return jsonify({'success': False, 'error': 'Task not found'}), 404
            return jsonify({'success': True, 'task': task})

    except Exception as e:
        logger.error(f"Error completing work task {task_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@work_tasks_bp.route('/api/work-tasks/<task_id>/snooze', methods=['POST'])
def snooze_work_task(task_id):
    """Body: {"remind_at": "<iso datetime>"}"""
    try:
        from database.connection import get_db_session
        from services.work_task_repository import WorkTaskRepository

        remind_at = (request.get_json(silent=True) or {}).get('remind_at')
        if not remind_at:
            return jsonify(format_validation_error('remind_at', 'remind_at is required')), 400

        with get_db_session() as session:
            task = WorkTaskRepository(session).snooze(task_id, remind_at)
            if task is None:
                return jsonify({'success': False, 'error': 'Task not found'}), 404
            return jsonify({'success': True, 'task': task})

    except Exception as e:
        logger.error(f"Error snoozing work task {task_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@work_tasks_bp.route('/api/work-tasks/<task_id>/links', methods=['PUT'])
def update_work_task_links(task_id):
    """Replace every link. Body: {"links": [{"entity_type", "entity_id"}]}"""
    try:
        from database.connection import get_db_session
        from services.work_task_repository import WorkTaskRepository

        links = (request.get_json(silent=True) or {}).get('links') or []
        with get_db_session() as session:
            task = WorkTaskRepository(session).update_links(task_id, links)
            if task is None:
                return jsonify({'success': False, 'error': 'Task not found'}), 404
            return jsonify({'success': True, 'task': task})

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error updating links for work task {task_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# REMINDER NOTIFICATIONS
# ============================================================================

@work_tasks_bp.route('/api/work-tasks/notifications/unread-count', methods=['GET'])
def get_work_task_unread_count():
    try:
        from database.connection import get_db_session
        from services.work_task_repository import WorkTaskRepository

        with get_db_session() as session:
            count = WorkTaskRepository(session).get_unread_notification_count(current_user_id())
            return jsonify({'success': True, 'count': count})

    except Exception as e:
        logger.error(f"Error getting work task unread count: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@work_tasks_bp.route('/api/work-tasks/notifications/<notification_id>/read', methods=['POST'])
def mark_work_task_notification_read(notification_id):
    try:
        from database.connection import get_db_session
        from services.work_task_repository import WorkTaskRepository

        with get_db_session() as session:
            if not WorkTaskRepository(session).mark_notification_read(notification_id):
                return jsonify({'success': False, 'error': 'Notification not found'}), 404
            return jsonify({'success': True})

    except Exception as e:
        logger.error(f"Error marking notification {notification_id} read: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@work_tasks_bp.route('/api/work-tasks/notifications/read-all', methods=['POST'])
def mark_all_work_task_notifications_read():
    try:
        from database.connection import get_db_session
        from services.work_task_repository import WorkTaskRepository

        with get_db_session() as session:
            count = WorkTaskRepository(session).mark_all_notifications_read(current_user_id())
            return jsonify({'success': True, 'count': count})

    except Exception as e:
        logger.error(f"Error marking work task notifications read: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
