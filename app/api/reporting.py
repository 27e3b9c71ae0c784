"""
Reporting Routes Blueprint

Handles the reporting tabs:
- /api/reporting/operational: Work task KPIs and charts
- /api/reporting/financial: Finance KPIs and charts (?range=last30|last90|ytd|custom, ?from, ?to)
"""

import logging
from flask import Blueprint, request, jsonify

from validators import ValidationError, format_validation_error

logger = logging.getLogger(__name__)

# Create blueprint
reporting_bp = Blueprint('reporting_bp', __name__)


@reporting_bp.route('/api/reporting/operational', methods=['GET'])
def get_operational_report():
    try:
        from database.connection import get_db_session
        from services.reporting_service import ReportingService

        with get_db_session() as session:
            service = ReportingService(session)
            return jsonify({
                'success': True,
                'kpis': service.get_operational_kpis(),
                'charts': service.get_operational_charts()
            })

    except Exception as e:
        logger.error(f"Error getting operational report: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@reporting_bp.route('/api/reporting/financial', methods=['GET'])
def get_financial_report():
    try:
        from database.connection import get_db_session
        from services.dashboard_service import get_date_range
        from services.reporting_service import ReportingService

        date_range = get_date_range(
            request.args.get('range', 'last30'),
            custom_from=request.args.get('from'),
            custom_to=request.args.get('to')
        )
        with get_db_session() as session:
            service = ReportingService(session)
            return jsonify({
                'success': True,
                'range': {
                    'key': date_range['key'],
                    'from': date_range['from'].isoformat(),
                    'to': date_range['to'].isoformat()
                },
                'kpis': service.get_financial_kpis(date_range['from'], date_range['to']),
                'charts': service.get_financial_charts(date_range['from'], date_range['to'])
            })

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error getting financial report: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
