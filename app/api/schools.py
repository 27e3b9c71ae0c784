"""
Schools Routes Blueprint

Handles the schools pipeline:
- /api/schools: List/create schools
- /api/schools/<school_id>: Get/update/delete a school
- /api/schools/<school_id>/phase: Move a school to another pipeline phase
- /api/schools/pipeline: Schools grouped by phase
- /api/schools/<school_id>/activities: Activity log
- /api/schools/<school_id>/tasks, /api/tasks: School tasks and meetings
- /api/schools/import: CSV import
"""

import logging
from flask import Blueprint, request, jsonify

from validators import ValidationError, format_validation_error, validate_import_upload

logger = logging.getLogger(__name__)

# Create blueprint
schools_bp = Blueprint('schools_bp', __name__)


def _bool_arg(name, default=True):
    value = request.args.get(name)
    if value is None:
        return default
    return value.lower() in ('1', 'true', 'yes')


# ============================================================================
# SCHOOLS
# ============================================================================

@schools_bp.route('/api/schools', methods=['GET', 'POST'])
def handle_schools():
    """List schools (filters: phase, status, search) or create one."""
    try:
        from database.connection import get_db_session
        from services.school_repository import SchoolRepository

        with get_db_session() as session:
            repo = SchoolRepository(session)
            if request.method == 'GET':
                schools = repo.list_schools(
                    phase=request.args.get('phase'),
                    status=request.args.get('status'),
                    search=request.args.get('search')
                )
                return jsonify({'success': True, 'schools': schools, 'count': len(schools)})

            school = repo.create_school(request.get_json(silent=True) or {})
            return jsonify({'success': True, 'school': school}), 201

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling schools: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@schools_bp.route('/api/schools/<school_id>', methods=['GET', 'PUT', 'DELETE'])
def handle_school(school_id):
    try:
        from database.connection import get_db_session
        from services.school_repository import SchoolRepository

        with get_db_session() as session:
            repo = SchoolRepository(session)
            if request.method == 'GET':
                school = repo.get_school(school_id)
            elif request.method == 'PUT':
                school = repo.update_school(school_id, request.get_json(silent=True) or {})
            else:
                if not repo.delete_school(school_id):
                    return jsonify({'success': False, 'error': 'School not found'}), 404
                return jsonify({'success': True, 'message': 'School deleted'})

            if school is None:
                return jsonify({'success': False, 'error': 'School not found'}), 404
            return jsonify({'success': True, 'school': school})

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling school {school_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@schools_bp.route('/api/schools/<school_id>/phase', methods=['PUT'])
def move_school_phase(school_id):
    """Move a school to another pipeline column."""
    try:
        from database.connection import get_db_session
        from services.school_repository import SchoolRepository

        data = request.get_json(silent=True) or {}
        with get_db_session() as session:
            school = SchoolRepository(session).move_to_phase(school_id, data.get('phase'))
            if school is None:
                return jsonify({'success': False, 'error': 'School not found'}), 404
            return jsonify({'success': True, 'school': school})

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error moving school {school_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@schools_bp.route('/api/schools/pipeline', methods=['GET'])
def get_pipeline():
    try:
        from database.connection import get_db_session
        from services.school_repository import SchoolRepository

        with get_db_session() as session:
            columns = SchoolRepository(session).get_pipeline(
                status=request.args.get('status'),
                search=request.args.get('search')
            )
            return jsonify({'success': True, 'pipeline': columns})

    except Exception as e:
        logger.error(f"Error getting pipeline: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@schools_bp.route('/api/schools/import', methods=['POST'])
def import_schools_csv():
    """Import schools from an uploaded CSV file (field 'file')."""
    try:
        from database.connection import get_db_session
        from services.school_import import parse_import_rows, import_schools

        upload = request.files.get('file')
        is_valid, error, filename = validate_import_upload(upload)
        if not is_valid:
            return jsonify({'success': False, 'error': error}), 400

        text = upload.read().decode('utf-8-sig', errors='replace')
        rows = parse_import_rows(text)

        with get_db_session() as session:
            result = import_schools(session, rows)

        logger.info(f"Imported {filename}: {result['total']} rows")
        return jsonify({'success': True, 'result': result})

    except Exception as e:
        logger.error(f"Error importing schools: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# ACTIVITIES
# ============================================================================

@schools_bp.route('/api/schools/<school_id>/activities', methods=['GET', 'POST'])
def handle_activities(school_id):
    try:
        from database.connection import get_db_session
        from services.school_repository import SchoolRepository

        with get_db_session() as session:
            repo = SchoolRepository(session)
            if request.method == 'GET':
                return jsonify({'success': True, 'activities': repo.list_activities(school_id)})

            activity = repo.add_activity(school_id, request.get_json(silent=True) or {})
            if activity is None:
                return jsonify({'success': False, 'error': 'School not found'}), 404
            return jsonify({'success': True, 'activity': activity}), 201

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling activities for {school_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@schools_bp.route('/api/activities/<activity_id>', methods=['PUT', 'DELETE'])
def handle_activity(activity_id):
    try:
        from database.connection import get_db_session
        from services.school_repository import SchoolRepository

        with get_db_session() as session:
            repo = SchoolRepository(session)
            if request.method == 'DELETE':
                if not repo.delete_activity(activity_id):
                    return jsonify({'success': False, 'error': 'Activity not found'}), 404
                return jsonify({'success': True, 'message': 'Activity deleted'})

            activity = repo.update_activity(activity_id, request.get_json(silent=True) or {})
            if activity is None:
                return jsonify({'success': False, 'error': 'Activity not found'}), 404
            return jsonify({'success': True, 'activity': activity})

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling activity {activity_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# TASKS & MEETINGS
# ============================================================================

@schools_bp.route('/api/tasks', methods=['GET'])
def list_all_tasks():
    """All school tasks; ?include_completed=false hides completed ones."""
    try:
        from database.connection import get_db_session
        from services.school_repository import SchoolRepository

        with get_db_session() as session:
            tasks = SchoolRepository(session).list_tasks(
                include_completed=_bool_arg('include_completed')
            )
            return jsonify({'success': True, 'tasks': tasks})

    except Exception as e:
        logger.error(f"Error listing tasks: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@schools_bp.route('/api/schools/<school_id>/tasks', methods=['GET', 'POST'])
def handle_school_tasks(school_id):
    try:
        from database.connection import get_db_session
        from services.school_repository import SchoolRepository

        with get_db_session() as session:
            repo = SchoolRepository(session)
            if request.method == 'GET':
                tasks = repo.list_tasks(
                    school_id=school_id,
                    include_completed=_bool_arg('include_completed')
                )
                return jsonify({'success': True, 'tasks': tasks})

            task = repo.create_task(school_id, request.get_json(silent=True) or {})
            if task is None:
                return jsonify({'success': False, 'error': 'School not found'}), 404
            return jsonify({'success': True, 'task': task}), 201

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling tasks for {school_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@schools_bp.route('/api/tasks/<task_id>', methods=['GET', 'PUT', 'DELETE'])
def handle_task(task_id):
    try:
        from database.connection import get_db_session
        from services.school_repository import SchoolRepository

        with get_db_session() as session:
            repo = SchoolRepository(session)
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
        logger.error(f"Error handling task {task_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@schools_bp.route('/api/tasks/<task_id>/toggle', methods=['POST'])
def toggle_task(task_id):
    try:
        from database.connection import get_db_session
        from services.school_repository import SchoolRepository

        with get_db_session() as session:
            task = SchoolRepository(session).toggle_task_completed(task_id)
            if task is None:
                return jsonify({'success': False, 'error': 'Task not found'}), 404
            return jsonify({'success': True, 'task': task})

    except Exception as e:
        logger.error(f"Error toggling task {task_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
