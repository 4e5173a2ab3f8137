"""
Health Check & Monitoring Endpoints
Provides endpoints for deployment health checks and monitoring
"""
import os
import sys
import time
import psutil
from datetime import datetime
from typing import Dict, Any
from flask import Blueprint, current_app, jsonify
import logging

from services.collection_store import COLLECTIONS, StoreUnavailableError

logger = logging.getLogger(__name__)

# Create Blueprint for health check routes
health_bp = Blueprint('health', __name__)

# Track application start time
START_TIME = time.time()

SERVICE_NAME = 'kr-backoffice'


def get_system_metrics() -> Dict[str, Any]:
    """
    Get basic system metrics

    Returns:
        Dictionary of system metrics
    """
    try:
        process = psutil.Process()

        return {
            'cpu_percent': process.cpu_percent(interval=0.1),
            'memory_mb': process.memory_info().rss / 1024 / 1024,
            'memory_percent': process.memory_percent(),
            'threads': process.num_threads(),
            'open_files': len(process.open_files()),
        }
    except psutil.Error as e:
        logger.warning(f"Failed to get system metrics: {e}")
        return {}


def get_uptime() -> Dict[str, Any]:
    uptime_seconds = time.time() - START_TIME

    return {
        'uptime_seconds': round(uptime_seconds, 2),
        'uptime_minutes': round(uptime_seconds / 60, 2),
        'uptime_hours': round(uptime_seconds / 3600, 2),
        'started_at': datetime.fromtimestamp(START_TIME).isoformat()
    }


def check_store(app) -> Dict[str, Any]:
    """
    Check that the collection store answers and report collection versions

    Args:
        app: Flask application instance

    Returns:
        {'healthy': bool, 'mode': 'json'|'database', 'versions': {...}}
    """
    services = app.config.get('SERVICES')
    if services is None:
        return {'healthy': False, 'mode': None, 'error': 'Services not initialized'}

    try:
        versions = services.store.versions(COLLECTIONS)
    except StoreUnavailableError as e:
        logger.error(f"Store health check failed: {e}")
        return {'healthy': False, 'mode': app.config.get('STORAGE_MODE'), 'error': str(e)}

    return {'healthy': True, 'mode': app.config.get('STORAGE_MODE'), 'versions': versions}


def check_integrations(app) -> Dict[str, bool]:
    """Which optional integrations are configured"""
    return {
        'quickbooks': bool(
            app.config.get('QUICKBOOKS_CLIENT_ID')
            and app.config.get('QUICKBOOKS_ACCESS_TOKEN')
            and app.config.get('QUICKBOOKS_REALM_ID')
        ),
        'remote_accounting_bridge': bool(app.config.get('ACCOUNTING_BRIDGE_URL')),
        'database': bool(app.config.get('DATABASE_URL')),
    }


def check_filesystem(app) -> Dict[str, Dict[str, bool]]:
    """
    Check if required directories exist and are writable

    Returns:
        Dictionary of filesystem checks
    """
    required_dirs = [app.config.get('UPLOAD_FOLDER', 'uploads')]
    if app.config.get('STORAGE_MODE') != 'database':
        required_dirs.append(app.config.get('STORE_FOLDER', 'store_data'))

    filesystem_status = {}

    for dir_path in required_dirs:
        exists = os.path.exists(dir_path)
        writable = os.access(dir_path, os.W_OK) if exists else False

        filesystem_status[dir_path] = {
            'exists': exists,
            'writable': writable,
            'healthy': exists and writable
        }

    return filesystem_status


@health_bp.route('/health', methods=['GET'])
def health_check():
    """
    Basic health check endpoint
    Returns 200 if application is running
    """
    return jsonify({
        'status': 'healthy',
        'timestamp': datetime.utcnow().isoformat(),
        'service': SERVICE_NAME
    }), 200


@health_bp.route('/ready', methods=['GET'])
def readiness_check():
    """
    Readiness probe endpoint
    Returns 200 if the store answers and its folders are writable
    """
    store = check_store(current_app)
    filesystem = check_filesystem(current_app)
    filesystem_healthy = all(status['healthy'] for status in filesystem.values())

    is_ready = store['healthy'] and filesystem_healthy

    response = {
        'status': 'ready' if is_ready else 'not_ready',
        'timestamp': datetime.utcnow().isoformat(),
        'checks': {
            'store': store,
            'filesystem': filesystem,
            'filesystem_healthy': filesystem_healthy
        }
    }

    return jsonify(response), 200 if is_ready else 503


@health_bp.route('/metrics', methods=['GET'])
def metrics():
    """
    Basic metrics endpoint
    Returns system metrics and application statistics
    """
    services = current_app.config.get('SERVICES')
    scheduler = services.scheduler if services else None

    response = {
        'timestamp': datetime.utcnow().isoformat(),
        'service': SERVICE_NAME,
        'version': '1.0.0',
        'environment': os.environ.get('FLASK_ENV', 'production'),
        'uptime': get_uptime(),
        'system': get_system_metrics(),
        'integrations': check_integrations(current_app),
        'store': check_store(current_app),
        'scheduler': scheduler.get_job_status() if scheduler else None,
        'python_version': sys.version.split()[0]
    }

    return jsonify(response), 200


@health_bp.route('/ping', methods=['GET'])
def ping():
    """
    Simple ping endpoint
    Returns immediate response for basic connectivity tests
    """
    return 'pong', 200


def register_health_checks(app):
    """
    Register health check blueprint with Flask app

    Args:
        app: Flask application instance
    """
    app.register_blueprint(health_bp, url_prefix='/api')
    logger.info("Health check endpoints registered")
    logger.info("Available endpoints: /api/health, /api/ready, /api/metrics, /api/ping")
