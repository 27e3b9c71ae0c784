"""
Dashboard Routes Blueprint

Handles the home dashboard:
- /api/dashboard/metrics: Pipeline metrics (?range=last30|last90|ytd|custom, ?from, ?to)
"""

import logging
from flask import Blueprint, request, jsonify

from validators import ValidationError, format_validation_error

logger = logging.getLogger(__name__)

# Create blueprint
dashboard_bp = Blueprint('dashboard_bp', __name__)


@dashboard_bp.route('/api/dashboard/metrics', methods=['GET'])
def get_dashboard_metrics():
    try:
        from database.connection import get_db_session
        from services.dashboard_service import DashboardService, get_date_range

        date_range = get_date_range(
            request.args.get('range', 'last30'),
            custom_from=request.args.get('from'),
            custom_to=request.args.get('to')
        )
        with get_db_session() as session:
            metrics = DashboardService(session).get_metrics(date_range)
            return jsonify({'success': True, 'metrics': metrics})

    except ValidationError as e:
        return jsonify(format_validation_error(e.field, e.message)), 400
    except Exception as e:
        logger.error(f"Error getting dashboard metrics: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
