"""
Expenses Routes Blueprint

Handles accounting expenses:
- /api/expenses: List (?from, ?to, ?only_unexported) / create
- /api/expenses/<expense_id>: Get/update/delete
- /api/expenses/<expense_id>/toggle-paid: Flip the paid flag
- /api/expenses/mark-exported: Stamp exported_at on a list of IDs
- /api/expenses/export: Download the accounting CSV
"""

import logging
from flask import Blueprint, request, jsonify, Response

from security import current_user_id
from validators import ValidationError, format_validation_error

logger = logging.getLogger(__name__)

# Create blueprint
expenses_bp = Blueprint('expenses_bp', __name__)


def _only_unexported():
    return request.args.get('only_unexported', 'false').lower() == 'true'


@expenses_bp.route('/api/expenses', methods=['GET', 'POST'])
def handle_expenses():
    try:
        from database.connection import get_db_session
        from services.expense_repository import ExpenseRepository

        with get_db_session() as session:
            repo = ExpenseRepository(session, user_id=current_user_id())
            if request.method == 'GET':
                expenses = repo.list_expenses(
                    from_date=request.args.get('from'),
                    to_date=request.args.get('to'),
                    only_unexported=_only_unexported()
                )
                return jsonify({'success': True, 'expenses': expenses, 'count': len(expenses)})

            expense = repo.create_expense(request.get_json(silent=True) or {})
            return jsonify({'success': True, 'expense': expense}), 201

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling expenses: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@expenses_bp.route('/api/expenses/<expense_id>', methods=['GET', 'PUT', 'DELETE'])
def handle_expense(expense_id):
    try:
        from database.connection import get_db_session
        from services.expense_repository import ExpenseRepository

        with get_db_session() as session:
            repo = ExpenseRepository(session)
            if request.method == 'DELETE':
                if not repo.delete_expense(expense_id):
                    return jsonify({'success': False, 'error': 'Expense not found'}), 404
                return jsonify({'success': True, 'message': 'Expense deleted'})

            if request.method == 'GET':
                expense = repo.get_expense(expense_id)
            else:
                expense = repo.update_expense(expense_id, request.get_json(silent=True) or {})

            if expense is None:
                return jsonify({'success': False, 'error': 'Expense not found'}), 404
            return jsonify({'success': True, 'expense': expense})

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling expense {expense_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@expenses_bp.route('/api/expenses/<expense_id>/toggle-paid', methods=['POST'])
def toggle_expense_paid(expense_id):
    try:
        from database.connection import get_db_session
        from services.expense_repository import ExpenseRepository

        with get_db_session() as session:
            expense = ExpenseRepository(session).toggle_paid(expense_id)
            if expense is None:
                return jsonify({'success': False, 'error': 'Expense not found'}), 404
            return jsonify({'success': True, 'expense': expense})

    except Exception as e:
        logger.error(f"Error toggling expense {expense_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@expenses_bp.route('/api/expenses/mark-exported', methods=['POST'])
def mark_expenses_exported():
    """Body: {"ids": [...]}"""
    try:
        from database.connection import get_db_session
        from services.expense_repository import ExpenseRepository

        ids = (request.get_json(silent=True) or {}).get('ids') or []
        with get_db_session() as session:
            count = ExpenseRepository(session).mark_exported(ids)
            return jsonify({'success': True, 'count': count})

    except Exception as e:
        logger.error(f"Error marking expenses exported: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@expenses_bp.route('/api/expenses/export', methods=['GET'])
def export_expenses():
    """Accounting CSV download. With only_unexported=true the rows are stamped as exported."""
    try:
        from database.connection import get_db_session
        from services.expense_repository import ExpenseRepository

        with get_db_session() as session:
            export = ExpenseRepository(session).export_csv(
                from_date=request.args.get('from'),
                to_date=request.args.get('to'),
                only_unexported=_only_unexported()
            )

        logger.info(f"Exported {export['count']} expense(s) to {export['filename']}")
        return Response(
            export['content'],
            mimetype='text/csv',
            headers={'Content-Disposition': f"attachment; filename={export['filename']}"}
        )

    except Exception as e:
        logger.error(f"Error exporting expenses: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
