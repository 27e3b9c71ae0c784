"""
Finance Routes Blueprint

Handles contracts, invoices, finance expenses and the finance dashboard:
- /api/finance/contracts[/<id>]
- /api/finance/invoices[/<id>], /api/finance/invoices/due
- /api/finance/expenses[/<id>], /api/finance/expenses/summary,
  /api/finance/expenses/upcoming-recurring
- /api/finance/settings
- /api/finance/dashboard, /dashboard/kpis, /dashboard/monthly,
  /dashboard/categories, /dashboard/forecast, /dashboard/aging
"""

import logging
from flask import Blueprint, request, jsonify

from app.utils.helpers import parse_date
from validators import ValidationError, format_validation_error

logger = logging.getLogger(__name__)

# Create blueprint
finance_bp = Blueprint('finance_bp', __name__)

RECORD_LABELS = {
    'contract': 'Contract',
    'invoice': 'Invoice',
    'expense': 'Expense',
}


def _float_arg(name):
    value = request.args.get(name)
    if value in (None, ''):
        return None
    return float(value)


def _handle_record(kind, record_id):
    """GET/PUT/DELETE for a single contract, invoice or expense"""
    from database.connection import get_db_session
    from services.finance_repository import FinanceRepository

    label = RECORD_LABELS[kind]
    with get_db_session() as session:
        repo = FinanceRepository(session)
        if request.method == 'DELETE':
            if not getattr(repo, f'delete_{kind}')(record_id):
                return jsonify({'success': False, 'error': f'{label} not found'}), 404
            return jsonify({'success': True, 'message': f'{label} deleted'})

        if request.method == 'GET':
            record = getattr(repo, f'get_{kind}')(record_id)
        else:
            record = getattr(repo, f'update_{kind}')(record_id, request.get_json(silent=True) or {})

        if record is None:
            return jsonify({'success': False, 'error': f'{label} not found'}), 404
        return jsonify({'success': True, kind: record})


# ============================================================================
# CONTRACTS
# ============================================================================

@finance_bp.route('/api/finance/contracts', methods=['GET', 'POST'])
def handle_contracts():
    try:
        from database.connection import get_db_session
        from services.finance_repository import FinanceRepository

        with get_db_session() as session:
            repo = FinanceRepository(session)
            if request.method == 'GET':
                contracts = repo.list_contracts(
                    status=request.args.get('status'),
                    client_id=request.args.get('client_id')
                )
                return jsonify({'success': True, 'contracts': contracts})

            contract = repo.create_contract(request.get_json(silent=True) or {})
            return jsonify({'success': True, 'contract': contract}), 201

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling contracts: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@finance_bp.route('/api/finance/contracts/<contract_id>', methods=['GET', 'PUT', 'DELETE'])
def handle_contract(contract_id):
    try:
        return _handle_record('contract', contract_id)
    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling contract {contract_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# INVOICES
# ============================================================================

@finance_bp.route('/api/finance/invoices', methods=['GET', 'POST'])
def handle_invoices():
    """List invoices (?status may repeat, ?from, ?to on issue date) or create one"""
    try:
        from database.connection import get_db_session
        from services.finance_repository import FinanceRepository

        with get_db_session() as session:
            repo = FinanceRepository(session)
            if request.method == 'GET':
                statuses = request.args.getlist('status')
                invoices = repo.list_invoices(
                    status=statuses[0] if len(statuses) == 1 else (statuses or None),
                    issue_date_from=request.args.get('from'),
                    issue_date_to=request.args.get('to')
                )
                return jsonify({'success': True, 'invoices': invoices})

            invoice = repo.create_invoice(request.get_json(silent=True) or {})
            return jsonify({'success': True, 'invoice': invoice}), 201

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling invoices: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@finance_bp.route('/api/finance/invoices/due', methods=['GET'])
def get_invoices_due():
    try:
        from database.connection import get_db_session
        from services.finance_repository import FinanceRepository

        with get_db_session() as session:
            invoices = FinanceRepository(session).list_invoices_due(
                limit=int(request.args.get('limit', 8))
            )
            return jsonify({'success': True, 'invoices': invoices})

    except Exception as e:
        logger.error(f"Error getting invoices due: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@finance_bp.route('/api/finance/invoices/<invoice_id>', methods=['GET', 'PUT', 'DELETE'])
def handle_invoice(invoice_id):
    try:
        return _handle_record('invoice', invoice_id)
    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling invoice {invoice_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# EXPENSES
# ============================================================================

@finance_bp.route('/api/finance/expenses', methods=['GET', 'POST'])
def handle_finance_expenses():
    try:
        from database.connection import get_db_session
        from services.finance_repository import FinanceRepository

        with get_db_session() as session:
            repo = FinanceRepository(session)
            if request.method == 'GET':
                expenses = repo.list_expenses(
                    from_date=request.args.get('from'),
                    to_date=request.args.get('to'),
                    category=request.args.get('category'),
                    status=request.args.get('status')
                )
                return jsonify({'success': True, 'expenses': expenses})

            expense = repo.create_expense(request.get_json(silent=True) or {})
            return jsonify({'success': True, 'expense': expense}), 201

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling finance expenses: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@finance_bp.route('/api/finance/expenses/summary', methods=['GET'])
def get_finance_expenses_summary():
    try:
        from database.connection import get_db_session
        from services.finance_repository import FinanceRepository

        with get_db_session() as session:
            summary = FinanceRepository(session).get_expenses_summary()
            return jsonify({'success': True, 'summary': summary})

    except Exception as e:
        logger.error(f"Error getting expenses summary: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@finance_bp.route('/api/finance/expenses/upcoming-recurring', methods=['GET'])
def get_upcoming_recurring_expenses():
    try:
        from database.connection import get_db_session
        from services.finance_repository import FinanceRepository

        with get_db_session() as session:
            expenses = FinanceRepository(session).list_upcoming_recurring_expenses(
                limit=int(request.args.get('limit', 8))
            )
            return jsonify({'success': True, 'expenses': expenses})

    except Exception as e:
        logger.error(f"Error getting upcoming recurring expenses: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@finance_bp.route('/api/finance/expenses/<expense_id>', methods=['GET', 'PUT', 'DELETE'])
def handle_finance_expense(expense_id):
    try:
        return _handle_record('expense', expense_id)
    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling finance expense {expense_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# SETTINGS
# ============================================================================

@finance_bp.route('/api/finance/settings', methods=['GET', 'PUT'])
def handle_finance_settings():
    try:
        from database.connection import get_db_session
        from services.finance_repository import FinanceRepository

        with get_db_session() as session:
            repo = FinanceRepository(session)
            if request.method == 'GET':
                settings = repo.get_settings()
            else:
                settings = repo.update_settings(request.get_json(silent=True) or {})
            return jsonify({'success': True, 'settings': settings})

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error handling finance settings: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# DASHBOARD
# ============================================================================

@finance_bp.route('/api/finance/dashboard', methods=['GET'])
def get_finance_overview():
    try:
        from database.connection import get_db_session
        from services.finance_dashboard import FinanceDashboard

        with get_db_session() as session:
            overview = FinanceDashboard(session).get_overview()
            return jsonify({'success': True, **overview})

    except Exception as e:
        logger.error(f"Error getting finance dashboard: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@finance_bp.route('/api/finance/dashboard/kpis', methods=['GET'])
def get_finance_kpis():
    """?starting_cash overrides the stored starting cash"""
    try:
        from database.connection import get_db_session
        from services.finance_dashboard import FinanceDashboard

        with get_db_session() as session:
            kpis = FinanceDashboard(session).get_kpis(starting_cash=_float_arg('starting_cash'))
            return jsonify({'success': True, 'kpis': kpis})

    except ValueError:
        return jsonify(format_validation_error('starting_cash', 'Must be a number')), 400
    except Exception as e:
        logger.error(f"Error getting finance KPIs: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@finance_bp.route('/api/finance/dashboard/monthly', methods=['GET'])
def get_income_expenses_by_month():
    """?months=12, or an explicit ?from/?to range"""
    try:
        from database.connection import get_db_session
        from services.finance_dashboard import FinanceDashboard

        from_date = parse_date(request.args.get('from'))
        to_date = parse_date(request.args.get('to'))
        with get_db_session() as session:
            dashboard = FinanceDashboard(session)
            if from_date and to_date:
                months = dashboard.get_income_expenses_by_month_range(from_date, to_date)
            else:
                months = dashboard.get_income_expenses_by_month(
                    months_back=int(request.args.get('months', 12))
                )
            return jsonify({'success': True, 'months': months})

    except Exception as e:
        logger.error(f"Error getting monthly finance data: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@finance_bp.route('/api/finance/dashboard/categories', methods=['GET'])
def get_expenses_by_category():
    """?months=3, or an explicit ?from/?to range"""
    try:
        from database.connection import get_db_session
        from services.finance_dashboard import FinanceDashboard

        from_date = parse_date(request.args.get('from'))
        to_date = parse_date(request.args.get('to'))
        with get_db_session() as session:
            dashboard = FinanceDashboard(session)
            if from_date and to_date:
                categories = dashboard.get_expenses_by_category_range(from_date, to_date)
            else:
                categories = dashboard.get_expenses_by_category(
                    months_back=int(request.args.get('months', 3))
                )
            return jsonify({'success': True, 'categories': categories})

    except Exception as e:
        logger.error(f"Error getting expenses by category: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@finance_bp.route('/api/finance/dashboard/forecast', methods=['GET'])
def get_forecast():
    try:
        from database.connection import get_db_session
        from services.finance_dashboard import FinanceDashboard

        with get_db_session() as session:
            projection = FinanceDashboard(session).get_forecast_projection(
                days=int(request.args.get('days', 90)),
                starting_cash=_float_arg('starting_cash')
            )
            return jsonify({'success': True, 'projection': projection})

    except ValueError:
        return jsonify(format_validation_error('days', 'Invalid number')), 400
    except Exception as e:
        logger.error(f"Error getting forecast: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@finance_bp.route('/api/finance/dashboard/aging', methods=['GET'])
def get_payable_owing():
    try:
        from database.connection import get_db_session
        from services.finance_dashboard import FinanceDashboard

        with get_db_session() as session:
            summary = FinanceDashboard(session).get_payable_owing_summary()
            return jsonify({'success': True, 'aging': summary})

    except Exception as e:
        logger.error(f"Error getting payable/owing summary: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
