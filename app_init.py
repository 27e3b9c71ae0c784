"""
Application Initialization Module
Properly initializes Flask app with all infrastructure components
"""
import os
from flask import Flask
from config import config_by_name, get_config, validate_storage_config
from logging_config import setup_logging
from security import setup_security
from health_checks import register_health_checks
from database.connection import configure_engine, init_db
from database.seed import seed_database
from services.google_calendar import GoogleCalendarService
from services.notification_service import configure_email
import logging

logger = logging.getLogger(__name__)


def create_app(config_name=None):
    """
    Application factory that creates and configures Flask app with all infrastructure

    Args:
        config_name: 'development', 'production' or 'testing'; defaults to FLASK_ENV

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__)

    config_class = config_by_name.get(config_name) if config_name else get_config()
    app.config.from_object(config_class)

    setup_logging(app)

    logger.info("=" * 60)
    logger.info("Initializing Finomik CRM")
    logger.info("=" * 60)
    logger.info(f"Environment: {config_name or os.environ.get('FLASK_ENV', 'development')}")
    logger.info(f"Debug mode: {app.debug}")

    # Fail fast in production without a database
    validate_storage_config(config_class)

    # Setup security (CORS, headers, error handlers)
    setup_security(app, app.config)

    initialize_database(app)
    create_required_directories(app)

    app.google_calendar = initialize_google_calendar(app)

    configure_email(app.config)

    register_health_checks(app)

    from app import register_blueprints
    register_blueprints(app)

    if app.config.get('SCHEDULER_ENABLED'):
        from services.scheduler import init_scheduler
        init_scheduler()

    logger.info("Application initialization complete")
    logger.info("=" * 60)

    return app


def initialize_database(app):
    """
    Configure the SQLAlchemy engine from app config

    Args:
        app: Flask application instance
    """
    url = app.config.get('DATABASE_URL')
    if not url:
        logger.warning("DATABASE_URL not set - API routes will fail until it is configured")
        return

    configure_engine(url)

    if app.config.get('AUTO_CREATE_TABLES'):
        init_db()
        seed_database()


def create_required_directories(app):
    """
    Create all required application directories

    Args:
        app: Flask application instance
    """
    directories = [app.config['DATA_FOLDER']]
    if not app.config.get('TESTING'):
        directories.append('logs')

    for directory in directories:
        try:
            os.makedirs(directory, exist_ok=True)
            logger.debug(f"Directory ensured: {directory}")
        except OSError as e:
            logger.error(f"Failed to create directory {directory}: {e}")


def initialize_google_calendar(app):
    """
    Build the Google Calendar client from config

    Args:
        app: Flask application instance

    Returns:
        GoogleCalendarService instance
    """
    service = GoogleCalendarService(
        data_folder=app.config['DATA_FOLDER'],
        client_id=app.config.get('GOOGLE_CLIENT_ID', ''),
        client_secret=app.config.get('GOOGLE_CLIENT_SECRET', ''),
        redirect_uri=app.config.get('GOOGLE_REDIRECT_URI', ''),
        timezone=app.config.get('GOOGLE_CALENDAR_TIMEZONE', 'Europe/Madrid'),
    )

    if service.is_connected():
        logger.info("Google Calendar connected")
    else:
        logger.info("Google Calendar not connected")

    return service


def get_google_calendar(app):
    """
    Get the Google Calendar client from the app

    Args:
        app: Flask application instance

    Returns:
        GoogleCalendarService instance
    """
    if not hasattr(app, 'google_calendar'):
        logger.warning("Google Calendar not initialized, creating new instance")
        app.google_calendar = initialize_google_calendar(app)

    return app.google_calendar
