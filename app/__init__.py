"""
K&R Powerwashing Back Office - Application Package

This package contains the HTTP layer:
- api/: HTTP route handlers (Flask Blueprints)
- utils/: Shared helpers for the blueprints

The app factory and core Flask setup remain in app_init.py at the project root;
the workflow services live in the top-level services package.

STORAGE POLICY:
- DATABASE_URL set: collections live in one SQL table (shared by every process).
- Otherwise: one JSON file per collection under STORE_FOLDER (host-local).
"""

import logging

from app.api.auth_routes import auth_bp
from app.api.admin import admin_bp
from app.api.appointments import appointments_bp
from app.api.crew import crew_bp
from app.api.customers import customers_bp
from app.api.invoices import invoices_bp
from app.api.jobs import jobs_bp
from app.api.quickbooks import quickbooks_bp
from app.api.quotes import quotes_bp
from app.api.reminders import reminders_bp
from app.api.scheduler import scheduler_bp

logger = logging.getLogger(__name__)


def validate_storage_policy(config):
    """
    Validate storage configuration at startup.

    Args:
        config: Flask app config

    Returns:
        'database' or 'json'

    Raises:
        StoragePolicyError: If the JSON store folder is not writable in production
    """
    from config import get_app_env, get_storage_mode, validate_storage_config

    storage_mode = get_storage_mode(config)

    logger.info(f"🔧 Environment: {get_app_env().upper()}")
    logger.info(f"💾 Storage mode: {storage_mode}")

    validate_storage_config(config)

    if storage_mode == 'database':
        logger.info("✅ Using the database collection store (shared across processes)")
    else:
        logger.info(f"📁 Using JSON collection files in {config.get('STORE_FOLDER')}")

    return storage_mode


def register_blueprints(app):
    """
    Register all API blueprints with the Flask app.
    Called from app_init.create_app().

    Args:
        app: Flask application instance
    """
    app.config['STORAGE_MODE'] = validate_storage_policy(app.config)

    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(crew_bp)
    app.register_blueprint(quotes_bp)
    app.register_blueprint(jobs_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(appointments_bp)
    app.register_blueprint(reminders_bp)
    app.register_blueprint(quickbooks_bp)
    app.register_blueprint(scheduler_bp)


__all__ = [
    'register_blueprints', 'validate_storage_policy', 'auth_bp', 'admin_bp', 'customers_bp',
    'crew_bp', 'quotes_bp', 'jobs_bp', 'invoices_bp', 'appointments_bp', 'reminders_bp',
    'quickbooks_bp', 'scheduler_bp',
]
