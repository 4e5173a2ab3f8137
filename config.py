"""
Centralized Configuration for K&R Powerwashing Back Office
Manages environment-specific settings, storage selection, access codes and
accounting bridge credentials.
"""
import os
from datetime import timedelta


class StoragePolicyError(RuntimeError):
    """Raised when the configured storage backend is not allowed in this environment"""


class Config:
    """Base configuration with defaults"""

    # Flask Settings
    SECRET_KEY = os.environ.get('SECRET_KEY') or os.urandom(32).hex()
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB max photo upload

    # CORS Settings
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')
    CORS_METHODS = ['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS']
    CORS_ALLOW_HEADERS = ['Content-Type', 'Authorization', 'X-Requested-With', 'X-API-Key']

    # Database Settings (collection store backend when set)
    DATABASE_URL = os.environ.get('DATABASE_URL')

    # File Storage Paths
    BASE_DIR = os.path.dirname(os.path.abspath(__file__))
    STORE_FOLDER = os.environ.get('STORE_FOLDER', 'store_data')
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER', 'uploads')

    # Workflow Settings
    CREW_POLL_INTERVAL_SECONDS = 2
    INVOICE_DUE_DAYS = 30
    YEARLY_REMINDER_WINDOW_DAYS = 30
    ENABLE_SCHEDULER = os.environ.get('ENABLE_SCHEDULER', 'true').lower() == 'true'
    SEED_DEFAULT_CREW = os.environ.get('SEED_DEFAULT_CREW', 'true').lower() == 'true'
    RESYNC_ON_STARTUP = True

    # Access codes for the session flag
    ADMIN_ACCESS_CODE = os.environ.get('ADMIN_ACCESS_CODE', 'kr-admin')
    CREW_ACCESS_CODE = os.environ.get('CREW_ACCESS_CODE', 'kr-crew')

    # QuickBooks bridge credentials
    QUICKBOOKS_CLIENT_ID = os.environ.get('QUICKBOOKS_CLIENT_ID')
    QUICKBOOKS_ACCESS_TOKEN = os.environ.get('QUICKBOOKS_ACCESS_TOKEN')
    QUICKBOOKS_REALM_ID = os.environ.get('QUICKBOOKS_REALM_ID')
    QUICKBOOKS_API_BASE = os.environ.get('QUICKBOOKS_API_BASE', 'https://sandbox-quickbooks.api.intuit.com')
    QUICKBOOKS_MINOR_VERSION = '65'

    # Accounting client (remote bridge when set, in-process bridge otherwise).
    # Site root of the bridge app; a trailing /api is accepted too.
    ACCOUNTING_BRIDGE_URL = os.environ.get('ACCOUNTING_BRIDGE_URL')
    ACCOUNTING_TIMEOUT = int(os.environ.get('ACCOUNTING_TIMEOUT', '30'))  # seconds

    # Shared key for the /api/quickbooks endpoints (unprotected when unset)
    BRIDGE_API_KEY = os.environ.get('BRIDGE_API_KEY')

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    LOG_FILE = os.environ.get('LOG_FILE', 'app.log')

    # Session Configuration
    SESSION_PERMANENT = False
    PERMANENT_SESSION_LIFETIME = timedelta(days=7)


class DevelopmentConfig(Config):
    """Development-specific configuration"""
    DEBUG = True
    TESTING = False
    LOG_LEVEL = 'DEBUG'
    # Allow all CORS in development
    CORS_ORIGINS = ['*']


class ProductionConfig(Config):
    """Production-specific configuration"""
    DEBUG = False
    TESTING = False
    # Strict CORS in production
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', 'https://krpowerwashing.org').split(',')
    # Force HTTPS
    PREFERRED_URL_SCHEME = 'https'
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'


class TestingConfig(Config):
    """Testing-specific configuration"""
    DEBUG = True
    TESTING = True
    DATABASE_URL = None  # Use JSON files for tests
    ENABLE_SCHEDULER = False
    SEED_DEFAULT_CREW = False
    ADMIN_ACCESS_CODE = 'test-admin-code'
    CREW_ACCESS_CODE = 'test-crew-code'
    QUICKBOOKS_CLIENT_ID = None
    QUICKBOOKS_ACCESS_TOKEN = None
    QUICKBOOKS_REALM_ID = None
    ACCOUNTING_BRIDGE_URL = None
    BRIDGE_API_KEY = None


# Configuration selector
config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig,
}


def get_app_env():
    """Current environment name from FLASK_ENV"""
    return os.environ.get('FLASK_ENV', 'development')


def is_production():
    return get_app_env() == 'production'


def get_config():
    """Get configuration based on FLASK_ENV environment variable"""
    return config_by_name.get(get_app_env(), DevelopmentConfig)


def has_database(config=None):
    """Check whether a database URL is configured for the collection store"""
    if config is not None:
        return bool(config.get('DATABASE_URL'))
    return bool(os.environ.get('DATABASE_URL'))


def get_storage_mode(config=None):
    """
    Storage backend for the collection store

    Returns:
        'database' when DATABASE_URL is configured, 'json' otherwise
    """
    return 'database' if has_database(config) else 'json'


def validate_storage_config(config=None):
    """
    Validate storage configuration at startup.

    JSON files are the host-local store and are allowed everywhere, but a
    production deployment must be able to write its store folder.

    Raises:
        StoragePolicyError: If the JSON store folder is not writable in production
    """
    if get_storage_mode(config) == 'database':
        return
    folder = (config or {}).get('STORE_FOLDER', Config.STORE_FOLDER)
    if is_production() and os.path.isdir(folder) and not os.access(folder, os.W_OK):
        raise StoragePolicyError(f"Store folder is not writable: {folder}")
