"""
Security Utilities & Middleware
Provides security hardening for production deployment
"""
import os
import secrets
from functools import wraps
from typing import Callable, Dict, Any
from flask import Flask, current_app, request, jsonify, Response
from flask_cors import CORS
from pydantic import ValidationError
import logging

from services.collection_store import StoreUnavailableError
from validators import ValidationError as RequestValidationError, format_validation_error

logger = logging.getLogger(__name__)

QUIET_PATHS = ('/api/health', '/api/ping')


MIN_SECRET_KEY_LENGTH = 32
WEAK_SECRET_FRAGMENTS = ('dev', 'test', 'secret', 'password', '12345', 'kr-')


class SecurityConfig:
    """Session signing key checks"""

    @staticmethod
    def generate_secret_key() -> str:
        return secrets.token_hex(32)

    @staticmethod
    def validate_secret_key(secret_key: str) -> bool:
        """A session key is usable when it is long and not a placeholder"""
        if not secret_key or len(secret_key) < MIN_SECRET_KEY_LENGTH:
            logger.warning(f"Secret key is shorter than {MIN_SECRET_KEY_LENGTH} characters")
            return False
        if any(fragment in secret_key.lower() for fragment in WEAK_SECRET_FRAGMENTS):
            logger.warning("Secret key looks like a placeholder")
            return False
        return True

    @staticmethod
    def ensure_secret_key(config: Dict[str, Any]) -> str:
        """
        Key used to sign the office/crew session cookie.

        A generated key logs everyone out on restart, so production should
        always set SECRET_KEY.
        """
        secret_key = config.get('SECRET_KEY')
        if config.get('TESTING') and secret_key:
            return secret_key

        if SecurityConfig.validate_secret_key(secret_key):
            return secret_key

        if os.environ.get('FLASK_ENV') == 'production':
            logger.error("No usable SECRET_KEY in production; office and crew sessions end on every restart")
        secret_key = SecurityConfig.generate_secret_key()
        logger.warning(f"Generated new secret key (length: {len(secret_key)})")
        return secret_key


def setup_security_headers(app: Flask):
    """
    Add security headers to all responses

    Args:
        app: Flask application instance
    """
    @app.after_request
    def add_security_headers(response: Response) -> Response:
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-Content-Type-Options'] = 'nosniff'

        # Strict Transport Security (HTTPS only in production)
        if not app.debug and not app.testing:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        # JSON API only; uploaded photos are served with their own type
        response.headers['Content-Security-Policy'] = "default-src 'none'; img-src 'self'; frame-ancestors 'none'"
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'

        return response

    logger.info("Security headers configured")


def setup_cors(app: Flask, config: Dict[str, Any]):
    """
    Configure CORS for the office and crew front ends

    Args:
        app: Flask application instance
        config: Application configuration dictionary
    """
    cors_origins = config.get('CORS_ORIGINS', ['*'])
    cors_methods = config.get('CORS_METHODS', ['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'])
    cors_headers = config.get('CORS_ALLOW_HEADERS', ['Content-Type', 'Authorization'])

    # Warn if using wildcard CORS in production
    if not app.debug and '*' in cors_origins:
        logger.warning("⚠️  Using wildcard CORS in production! Set CORS_ORIGINS environment variable.")

    CORS(
        app,
        origins=cors_origins,
        methods=cors_methods,
        allow_headers=cors_headers,
        supports_credentials=True,
        max_age=3600
    )

    logger.info(f"CORS configured: origins={cors_origins}")


def require_api_key(f: Callable) -> Callable:
    """
    Decorator to require the bridge API key when BRIDGE_API_KEY is configured

    Usage:
        @bp.route('/quickbooks/sync-invoice', methods=['POST'])
        @require_api_key
        def sync_invoice():
            ...
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected_key = current_app.config.get('BRIDGE_API_KEY')
        if not expected_key:
            return f(*args, **kwargs)

        api_key = request.headers.get('X-API-Key')
        if not api_key:
            logger.warning(f"Missing API key for {request.path}")
            return jsonify({'error': 'API key required'}), 401

        if not secrets.compare_digest(api_key, expected_key):
            logger.warning(f"Invalid API key for {request.path}")
            return jsonify({'error': 'Invalid API key'}), 403

        return f(*args, **kwargs)

    return decorated_function


def sanitize_error_response(error: Exception, include_details: bool = False) -> Dict[str, Any]:
    """
    Sanitize error response to prevent information leakage

    Args:
        error: Exception object
        include_details: Whether to include detailed error info (dev only)

    Returns:
        Sanitized error response dictionary
    """
    error_response = {
        'success': False,
        'error': 'Internal Server Error',
        'message': 'An error occurred while processing your request'
    }

    # Only include details in development
    if include_details:
        error_response['details'] = str(error)
        error_response['type'] = type(error).__name__

    return error_response


def format_pydantic_error(error: ValidationError) -> Dict[str, Any]:
    """400 body for a request that failed record validation"""
    first = error.errors()[0] if error.error_count() else {}
    field = '.'.join(str(part) for part in first.get('loc', ()))
    return {
        'success': False,
        'error': f"{field}: {first.get('msg')}" if field else first.get('msg', 'Invalid request'),
        'errors': [
            {'field': '.'.join(str(part) for part in e.get('loc', ())), 'message': e.get('msg')}
            for e in error.errors()
        ],
    }


def setup_error_handlers(app: Flask):
    """
    Register secure error handlers that don't expose stack traces

    Args:
        app: Flask application instance
    """
    include_details = app.debug

    @app.errorhandler(ValidationError)
    def validation_failed(error):
        return jsonify(format_pydantic_error(error)), 400

    @app.errorhandler(RequestValidationError)
    def request_invalid(error):
        return jsonify(format_validation_error(error.field, error.message)), 400

    @app.errorhandler(StoreUnavailableError)
    def store_unavailable(error):
        logger.error(f"Store unavailable: {error}")
        return jsonify({'success': False, 'error': str(error)}), 503

    @app.errorhandler(400)
    def bad_request(error):
        return jsonify({
            'success': False,
            'error': 'Bad Request',
            'message': 'The request could not be understood or was missing required parameters'
        }), 400

    @app.errorhandler(401)
    def unauthorized(error):
        return jsonify({
            'success': False,
            'error': 'Unauthorized',
            'message': 'Authentication required'
        }), 401

    @app.errorhandler(403)
    def forbidden(error):
        return jsonify({
            'success': False,
            'error': 'Forbidden',
            'message': 'You do not have permission to access this resource'
        }), 403

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({
            'success': False,
            'error': 'Not Found',
            'message': 'The requested resource was not found'
        }), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({
            'success': False,
            'error': 'Method Not Allowed',
            'message': 'The method is not allowed for the requested URL'
        }), 405

    @app.errorhandler(413)
    def request_entity_too_large(error):
        return jsonify({
            'success': False,
            'error': 'Payload Too Large',
            'message': 'The uploaded file or request is too large'
        }), 413

    @app.errorhandler(500)
    def internal_server_error(error):
        logger.error(f"Internal server error: {error}", exc_info=True)
        return jsonify(sanitize_error_response(error, include_details)), 500

    @app.errorhandler(503)
    def service_unavailable(error):
        return jsonify({
            'success': False,
            'error': 'Service Unavailable',
            'message': 'The collection store is temporarily unavailable. Please try again later'
        }), 503

    logger.info("Error handlers registered")


def setup_request_logging(app: Flask):
    """
    Setup request/response logging

    Args:
        app: Flask application instance
    """
    @app.before_request
    def log_request():
        # Don't log health checks to reduce noise
        if request.path in QUIET_PATHS:
            return

        logger.info(
            f"Request: {request.method} {request.path} "
            f"from {request.remote_addr}"
        )

    @app.after_request
    def log_response(response: Response) -> Response:
        if request.path in QUIET_PATHS:
            return response

        logger.info(
            f"Response: {request.method} {request.path} "
            f"status={response.status_code} "
            f"size={response.content_length}"
        )

        return response

    logger.info("Request logging configured")


def validate_environment_variables(required_vars: list, app: Flask):
    """
    Validate that required environment variables are set

    Args:
        required_vars: List of required environment variable names
        app: Flask application instance
    """
    missing_vars = []

    for var in required_vars:
        if not os.environ.get(var):
            missing_vars.append(var)
            logger.warning(f"Missing environment variable: {var}")

    if missing_vars and not app.debug:
        logger.error(f"Missing required environment variables in production: {missing_vars}")
        logger.error("Application may not function correctly!")

    return len(missing_vars) == 0


def setup_security(app: Flask, config: Dict[str, Any]):
    """
    Setup all security features for the application

    Args:
        app: Flask application instance
        config: Application configuration dictionary
    """
    logger.info("Configuring application security...")

    # Ensure secure secret key
    app.secret_key = SecurityConfig.ensure_secret_key(config)

    setup_cors(app, config)
    setup_security_headers(app)
    setup_error_handlers(app)
    setup_request_logging(app)

    # Validate environment in production
    if not app.debug and not app.testing:
        validate_environment_variables(
            ['SECRET_KEY', 'ADMIN_ACCESS_CODE', 'CREW_ACCESS_CODE'],
            app
        )

    logger.info("✅ Security configuration complete")
