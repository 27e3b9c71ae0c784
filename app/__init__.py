"""
Finomik CRM - Application Package

This package contains the HTTP layer:
- api/: HTTP route handlers (Flask Blueprints)
- utils/: Shared utility functions

The app factory lives in app_init.py at the project root; business logic
lives in the root services/ package.
"""

import logging

logger = logging.getLogger(__name__)


def register_blueprints(app):
    """
    Register all API blueprints with the Flask app.
    Called from app_init.create_app after infrastructure setup.

    Blueprints are imported here rather than at module level because the
    services they call import app.utils.
    """
    from app.api.schools import schools_bp
    from app.api.reminders import reminders_bp
    from app.api.work_tasks import work_tasks_bp
    from app.api.notifications import notifications_bp
    from app.api.calendar import calendar_bp
    from app.api.google import google_bp
    from app.api.expenses import expenses_bp
    from app.api.finance import finance_bp
    from app.api.documents import documents_bp
    from app.api.resources import resources_bp
    from app.api.dashboard import dashboard_bp
    from app.api.reporting import reporting_bp
    from app.api.scheduler import scheduler_bp

    blueprints = [
        schools_bp,
        reminders_bp,
        work_tasks_bp,
        notifications_bp,
        calendar_bp,
        google_bp,
        expenses_bp,
        finance_bp,
        documents_bp,
        resources_bp,
        dashboard_bp,
        reporting_bp,
        scheduler_bp,
    ]
    for blueprint in blueprints:
        app.register_blueprint(blueprint)

    logger.info(f"Registered {len(blueprints)} API blueprints")


__all__ = ['register_blueprints']
