"""
Resources Routes Blueprint

Handles the resource library:
- /api/resources: List (filters) / create
- /api/resources/picker: Non-archived resources for selectors
- /api/resources/entity/<entity_type>/<entity_id>: Primary vs other resources
- /api/resources/client/<client_id>: Linked plus folder resources of a school
- /api/resources/<resource_id>: Get/update/delete, /archive
- /api/resources/<resource_id>/links, /api/resource-links/<link_id>[/primary]
- /api/resources/<resource_id>/aliases, /api/resource-aliases/<alias_id>
- /api/resource-folders[/<folder_id>], /api/resource-folders/tree
"""

import logging
from flask import Blueprint, request, jsonify

from validators import ValidationError, format_validation_error

logger = logging.getLogger(__name__)

# Create blueprint
resources_bp = Blueprint('resources_bp', __name__)


def _folder_filter():
    """?folder_id=<id> filters by folder, ?folder_id=none keeps unfiled resources"""
    from services.resource_repository import ANY_FOLDER

    if 'folder_id' not in request.args:
        return ANY_FOLDER
    value = request.args.get('folder_id')
    return None if value in ('', 'none', 'null') else value


# ============================================================================
# RESOURCES
# ============================================================================

@resources_bp.route('/api/resources', methods=['GET', 'POST'])
def handle_resources():
    try:
        from database.connection import get_db_session
        from services.resource_repository import ResourceRepository

        with get_db_session() as session:
            repo = ResourceRepository(session)
            if request.method == 'GET':
                resources = repo.list_resources(
                    resource_type=request.args.get('type'),
                    status=request.args.get('status'),
                    source=request.args.get('source'),
                    entity_type=request.args.get('entity_type'),
                    entity_id=request.args.get('entity_id'),
                    only_primary=request.args.get('only_primary', 'false').lower() == 'true',
                    search=request.args.get('search'),
                    folder_id=_folder_filter()
                )
                return jsonify({'success': True, 'resources': resources})

            resource = repo.create_resource(request.get_json(silent=True) or {})
            return jsonify({'success': True, 'resource': resource}), 201

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling resources: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@resources_bp.route('/api/resources/picker', methods=['GET'])
def list_resources_for_picker():
    try:
        from database.connection import get_db_session
        from services.resource_repository import ResourceRepository

        with get_db_session() as session:
            return jsonify({'success': True, 'resources': ResourceRepository(session).list_for_picker()})

    except Exception as e:
        logger.error(f"Error listing resources for picker: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@resources_bp.route('/api/resources/entity/<entity_type>/<entity_id>', methods=['GET'])
def get_resources_by_entity(entity_type, entity_id):
    try:
        from database.connection import get_db_session
        from services.resource_repository import ResourceRepository

        with get_db_session() as session:
            result = ResourceRepository(session).get_resources_by_entity(entity_type, entity_id)
            return jsonify({'success': True, **result})

    except Exception as e:
        logger.error(f"Error getting resources for {entity_type} {entity_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@resources_bp.route('/api/resources/client/<client_id>', methods=['GET'])
def get_resources_for_client(client_id):
    try:
        from database.connection import get_db_session
        from services.resource_repository import ResourceRepository

        with get_db_session() as session:
            resources = ResourceRepository(session).get_resources_for_client(client_id)
            return jsonify({'success': True, 'resources': resources})

    except Exception as e:
        logger.error(f"Error getting resources for client {client_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@resources_bp.route('/api/resources/<resource_id>', methods=['GET', 'PUT', 'DELETE'])
def handle_resource(resource_id):
    try:
        from database.connection import get_db_session
        from services.resource_repository import ResourceRepository

        with get_db_session() as session:
            repo = ResourceRepository(session)
            if request.method == 'DELETE':
                if not repo.delete_resource(resource_id):
                    return jsonify({'success': False, 'error': 'Resource not found'}), 404
                return jsonify({'success': True, 'message': 'Resource deleted'})

            if request.method == 'GET':
                resource = repo.get_resource(resource_id)
            else:
                resource = repo.update_resource(resource_id, request.get_json(silent=True) or {})

            if resource is None:
                return jsonify({'success': False, 'error': 'Resource not found'}), 404
            return jsonify({'success': True, 'resource': resource})

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling resource {resource_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@resources_bp.route('/api/resources/<resource_id>/archive', methods=['POST'])
def archive_resource(resource_id):
    try:
        from database.connection import get_db_session
        from services.resource_repository import ResourceRepository

        with get_db_session() as session:
            if not ResourceRepository(session).archive_resource(resource_id):
                return jsonify({'success': False, 'error': 'Resource not found'}), 404
            return jsonify({'success': True})

    except Exception as e:
        logger.error(f"Error archiving resource {resource_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# LINKS & ALIASES
# ============================================================================

@resources_bp.route('/api/resources/<resource_id>/links', methods=['POST'])
def link_resource(resource_id):
    """Body: {"entity_type", "entity_id", "is_primary"}"""
    try:
        from database.connection import get_db_session
        from services.resource_repository import ResourceRepository

        data = request.get_json(silent=True) or {}
        with get_db_session() as session:
            link = ResourceRepository(session).link_resource(
                resource_id,
                data.get('entity_type'),
                data.get('entity_id'),
                is_primary=bool(data.get('is_primary', False))
            )
            if link is None:
                return jsonify({'success': False, 'error': 'Resource not found'}), 404
            return jsonify({'success': True, 'link': link}), 201

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error linking resource {resource_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@resources_bp.route('/api/resource-links/<link_id>', methods=['DELETE'])
def unlink_resource(link_id):
    try:
        from database.connection import get_db_session
        from services.resource_repository import ResourceRepository

        with get_db_session() as session:
            if not ResourceRepository(session).unlink_resource(link_id):
                return jsonify({'success': False, 'error': 'Link not found'}), 404
            return jsonify({'success': True})

    except Exception as e:
        logger.error(f"Error removing resource link {link_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@resources_bp.route('/api/resource-links/<link_id>/primary', methods=['POST'])
def set_primary_link(link_id):
    try:
        from database.connection import get_db_session
        from services.resource_repository import ResourceRepository

        with get_db_session() as session:
            link = ResourceRepository(session).set_primary_link(link_id)
            if link is None:
                return jsonify({'success': False, 'error': 'Link not found'}), 404
            return jsonify({'success': True, 'link': link})

    except Exception as e:
        logger.error(f"Error setting primary link {link_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@resources_bp.route('/api/resources/<resource_id>/aliases', methods=['POST'])
def add_alias(resource_id):
    try:
        from database.connection import get_db_session
        from services.resource_repository import ResourceRepository

        alias = (request.get_json(silent=True) or {}).get('alias')
        if not (alias or '').strip():
            return jsonify(format_validation_error('alias', 'Alias cannot be empty')), 400

        with get_db_session() as session:
            row = ResourceRepository(session).add_alias(resource_id, alias)
            if row is None:
                return jsonify({'success': False, 'error': 'Resource not found'}), 404
            return jsonify({'success': True, 'alias': row}), 201

    except Exception as e:
        logger.error(f"Error adding alias to resource {resource_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@resources_bp.route('/api/resource-aliases/<alias_id>', methods=['DELETE'])
def remove_alias(alias_id):
    try:
        from database.connection import get_db_session
        from services.resource_repository import ResourceRepository

        with get_db_session() as session:
            if not ResourceRepository(session).remove_alias(alias_id):
                return jsonify({'success': False, 'error': 'Alias not found'}), 404
            return jsonify({'success': True})

    except Exception as e:
        logger.error(f"Error removing alias {alias_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# FOLDERS
# ============================================================================

@resources_bp.route('/api/resource-folders', methods=['GET', 'POST'])
def handle_folders():
    try:
        from database.connection import get_db_session
        from services.resource_folders import ResourceFolderRepository

        with get_db_session() as session:
            repo = ResourceFolderRepository(session)
            if request.method == 'GET':
                return jsonify({'success': True, 'folders': repo.list_folders()})

            data = request.get_json(silent=True) or {}
            folder = repo.create_folder(data.get('name'), data.get('parent_id'), data.get('school_id'))
            return jsonify({'success': True, 'folder': folder}), 201

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling resource folders: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@resources_bp.route('/api/resource-folders/tree', methods=['GET'])
def get_folder_tree():
    """Folder tree; ensures the default roots and one folder per school first"""
    try:
        from database.connection import get_db_session
        from services.resource_folders import ResourceFolderRepository

        with get_db_session() as session:
            repo = ResourceFolderRepository(session)
            repo.ensure_default_folders()
            repo.ensure_school_folders_exist()
            return jsonify({'success': True, 'tree': repo.get_tree()})

    except Exception as e:
        logger.error(f"Error building folder tree: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@resources_bp.route('/api/resource-folders/<folder_id>', methods=['PUT', 'DELETE'])
def handle_folder(folder_id):
    try:
        from database.connection import get_db_session
        from services.resource_folders import ResourceFolderRepository

        with get_db_session() as session:
            repo = ResourceFolderRepository(session)
            if request.method == 'DELETE':
                if not repo.delete_folder(folder_id):
                    return jsonify({'success': False, 'error': 'Folder not found'}), 404
                return jsonify({'success': True, 'message': 'Folder deleted'})

            folder = repo.rename_folder(folder_id, (request.get_json(silent=True) or {}).get('name'))
            if folder is None:
                return jsonify({'success': False, 'error': 'Folder not found'}), 404
            return jsonify({'success': True, 'folder': folder})

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling folder {folder_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
