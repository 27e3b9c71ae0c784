"""
Documents Routes Blueprint

Handles the document library:
- /api/documents/categories[/<category_id>]
- /api/documents: List (?category_id, ?search) / create
- /api/documents/<document_id>: Get/update/delete
"""

import logging
from flask import Blueprint, request, jsonify

from validators import ValidationError, format_validation_error

logger = logging.getLogger(__name__)

# Create blueprint
documents_bp = Blueprint('documents_bp', __name__)


# ============================================================================
# CATEGORIES
# ============================================================================

@documents_bp.route('/api/documents/categories', methods=['GET', 'POST'])
def handle_categories():
    try:
        from database.connection import get_db_session
        from services.document_repository import DocumentRepository

        with get_db_session() as session:
            repo = DocumentRepository(session)
            if request.method == 'GET':
                return jsonify({'success': True, 'categories': repo.list_categories()})

            data = request.get_json(silent=True) or {}
            category = repo.create_category(data.get('name'), data.get('description', ''))
            return jsonify({'success': True, 'category': category}), 201

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling document categories: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@documents_bp.route('/api/documents/categories/<category_id>', methods=['PUT', 'DELETE'])
def handle_category(category_id):
    try:
        from database.connection import get_db_session
        from services.document_repository import DocumentRepository

        with get_db_session() as session:
            repo = DocumentRepository(session)
            if request.method == 'DELETE':
                if not repo.delete_category(category_id):
                    return jsonify({'success': False, 'error': 'Category not found'}), 404
                return jsonify({'success': True, 'message': 'Category deleted'})

            category = repo.update_category(category_id, request.get_json(silent=True) or {})
            if category is None:
                return jsonify({'success': False, 'error': 'Category not found'}), 404
            return jsonify({'success': True, 'category': category})

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling document category {category_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# DOCUMENTS
# ============================================================================

@documents_bp.route('/api/documents', methods=['GET', 'POST'])
def handle_documents():
    try:
        from database.connection import get_db_session
        from services.document_repository import DocumentRepository

        with get_db_session() as session:
            repo = DocumentRepository(session)
            if request.method == 'GET':
                documents = repo.list_documents(
                    category_id=request.args.get('category_id'),
                    search=request.args.get('search')
                )
                return jsonify({'success': True, 'documents': documents})

            document = repo.create_document(request.get_json(silent=True) or {})
            return jsonify({'success': True, 'document': document}), 201

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling documents: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@documents_bp.route('/api/documents/<document_id>', methods=['GET', 'PUT', 'DELETE'])
def handle_document(document_id):
    try:
        from database.connection import get_db_session
        from services.document_repository import DocumentRepository

        with get_db_session() as session:
            repo = DocumentRepository(session)
            if request.method == 'DELETE':
                if not repo.delete_document(document_id):
                    return jsonify({'success': False, 'error': 'Document not found'}), 404
                return jsonify({'success': True, 'message': 'Document deleted'})

            if request.method == 'GET':
                document = repo.get_document(document_id)
            else:
                document = repo.update_document(document_id, request.get_json(silent=True) or {})

            if document is None:
                return jsonify({'success': False, 'error': 'Document not found'}), 404
            return jsonify({'success': True, 'document': document})

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling document {document_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
