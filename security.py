"""
Request hardening for the CRM API
CORS for the frontend, response headers, JSON error pages, request logging
and the caller identity sent by the frontend.
"""
import os
import secrets
import time
from functools import wraps
from typing import Callable, Dict, Any, Optional
from flask import Flask, g, request, jsonify, Response
from flask_cors import CORS
import logging

from validators import ValidationError, format_validation_error

logger = logging.getLogger(__name__)

USER_ID_HEADER = 'X-User-Id'

# Probes hit these every few seconds
QUIET_PATHS = ('/api/health', '/api/ping')

MIN_SECRET_KEY_LENGTH = 32
WEAK_SECRET_MARKERS = ('dev', 'test', 'secret', 'password', '12345', 'finomik')

API_RESPONSE_HEADERS = {
    'X-Frame-Options': 'DENY',
    'X-Content-Type-Options': 'nosniff',
    'Content-Security-Policy': "default-src 'none'; frame-ancestors 'none'",
    'Referrer-Policy': 'strict-origin-when-cross-origin',
    'Permissions-Policy': 'geolocation=(), microphone=(), camera=()',
}

HTTP_ERRORS = {
    400: ('Bad Request', 'The request could not be understood or was missing required parameters'),
    404: ('Not Found', 'The requested resource was not found'),
    405: ('Method Not Allowed', 'The method is not allowed for the requested URL'),
    413: ('Payload Too Large', 'The uploaded file is too large'),
    503: ('Service Unavailable', 'The service is temporarily unavailable. Please try again later'),
}


# ============================================================================
# CALLER IDENTITY
# ============================================================================

def current_user_id() -> Optional[str]:
    """Profile ID sent by the frontend, if any."""
    value = request.headers.get(USER_ID_HEADER) or request.args.get('user_id')
    return value.strip() if value and value.strip() else None


def require_user(f: Callable) -> Callable:
    """
    Reject requests that do not say which profile is calling

    Usage:
        @bp.route('/api/work-tasks/mine')
        @require_user
        def list_mine():
            ...
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user_id():
            logger.warning(f"Missing {USER_ID_HEADER} for {request.path}")
            return jsonify(format_validation_error('user_id', 'User ID required')), 400
        return f(*args, **kwargs)

    return decorated_function


# ============================================================================
# SECRET KEY
# ============================================================================

def is_strong_secret_key(secret_key: Optional[str]) -> bool:
    if not secret_key or len(secret_key) < MIN_SECRET_KEY_LENGTH:
        return False
    lowered = secret_key.lower()
    return not any(marker in lowered for marker in WEAK_SECRET_MARKERS)


def resolve_secret_key(config: Dict[str, Any]) -> str:
    """Return the configured key, or a fresh one when it is missing or weak."""
    secret_key = config.get('SECRET_KEY')
    if is_strong_secret_key(secret_key):
        return secret_key

    if not config.get('DEBUG'):
        logger.error("No secure SECRET_KEY configured; sessions will not survive a restart")
    generated = secrets.token_hex(MIN_SECRET_KEY_LENGTH)
    logger.warning(f"Generated new secret key (length: {len(generated)})")
    return generated


# ============================================================================
# MIDDLEWARE
# ============================================================================

def setup_cors(app: Flask, config: Dict[str, Any]):
    """
    Allow the frontend origins to call the API

    The Content-Disposition header is exposed so the browser can read the
    expense export filename.
    """
    origins = config.get('CORS_ORIGINS', ['*'])
    if not app.debug and '*' in origins:
        logger.warning("Using wildcard CORS in production! Set CORS_ORIGINS environment variable.")

    CORS(
        app,
        origins=origins,
        methods=config.get('CORS_METHODS'),
        allow_headers=config.get('CORS_ALLOW_HEADERS'),
        expose_headers=['Content-Disposition'],
        supports_credentials=True,
        max_age=3600
    )
    logger.info(f"CORS configured: origins={origins}")


def setup_response_headers(app: Flask):
    @app.after_request
    def add_response_headers(response: Response) -> Response:
        for header, value in API_RESPONSE_HEADERS.items():
            response.headers[header] = value
        if not app.debug:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response


def error_payload(error: Exception, include_details: bool = False) -> Dict[str, Any]:
    """Body for unexpected errors; details only in debug."""
    payload = {
        'success': False,
        'error': 'Internal Server Error',
        'message': 'An error occurred while processing your request'
    }
    if include_details:
        payload['details'] = str(error)
        payload['type'] = type(error).__name__
    return payload


def setup_error_handlers(app: Flask):
    """Answer every error with JSON; stack traces stay in the log."""

    @app.errorhandler(ValidationError)
    def validation_error(error):
        return jsonify(format_validation_error(error.field, error.message)), 400

    def register(status, title, message):
        @app.errorhandler(status)
        def handler(error):
            return jsonify({'success': False, 'error': title, 'message': message}), status

    for status, (title, message) in HTTP_ERRORS.items():
        register(status, title, message)

    @app.errorhandler(500)
    def internal_server_error(error):
        logger.error(f"Internal server error: {error}", exc_info=True)
        return jsonify(error_payload(error, include_details=app.debug)), 500


def setup_request_logging(app: Flask):
    """One line per request with status, caller and duration."""

    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def log_response(response: Response) -> Response:
        if request.path in QUIET_PATHS:
            return response

        elapsed_ms = (time.perf_counter() - g.get('request_started', time.perf_counter())) * 1000
        logger.info(
            f"{request.method} {request.path} status={response.status_code} "
            f"user={current_user_id() or '-'} {elapsed_ms:.1f}ms"
        )
        return response


def warn_missing_settings(app: Flask, names=('SECRET_KEY', 'DATABASE_URL')) -> bool:
    """Log settings absent from the environment. Returns True when all are set."""
    missing = [name for name in names if not os.environ.get(name)]
    for name in missing:
        logger.warning(f"Missing environment variable: {name}")
    return not missing


def setup_security(app: Flask, config: Dict[str, Any]):
    """
    Install every request-level protection on the app

    Args:
        app: Flask application instance
        config: Application configuration dictionary
    """
    app.secret_key = resolve_secret_key(config)
    setup_cors(app, config)
    setup_response_headers(app)
    setup_error_handlers(app)
    setup_request_logging(app)

    if not app.debug:
        warn_missing_settings(app)

    logger.info("Security configuration complete")
