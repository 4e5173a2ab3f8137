"""
Admin Routes Blueprint

Office maintenance: resynchronization, full reset, store inspection and a
manual change poll.
"""

from flask import Blueprint, current_app, jsonify
import logging

from auth import admin_required
from app.utils import get_json_body, get_services, result_response
from validators import ValidationError

logger = logging.getLogger(__name__)

# Create blueprint
admin_bp = Blueprint('admin_bp', __name__, url_prefix='/api/admin')


@admin_bp.route('/resync', methods=['POST'])
@admin_required
def resync():
    """Recreate jobs missing for approved/in-progress/invoiced quotes"""
    return result_response(get_services().workflow.resynchronize())


@admin_bp.route('/reset', methods=['POST'])
@admin_required
def reset_all():
    """
    Clear every business collection.

    Body: {"confirm": true}
    """
    data = get_json_body()
    if data.get('confirm') is not True:
        raise ValidationError("Reset requires {\"confirm\": true}", 'confirm')

    logger.warning("🗑️  Full data reset requested from the office")
    return result_response(get_services().workflow.reset_all())


@admin_bp.route('/store', methods=['GET'])
@admin_required
def store_info():
    """Collection versions and the backend in use"""
    services = get_services()
    return jsonify({
        'success': True,
        'storageMode': current_app.config.get('STORAGE_MODE'),
        'versions': services.store.versions(),
    })


@admin_bp.route('/poll', methods=['POST'])
@admin_required
def poll_store():
    """Check for changes made by other processes right now"""
    services = get_services()
    changed = services.watcher.poll()
    refreshed = services.feeds.poll_all()
    return jsonify({'success': True, 'changed': changed, 'feedsRefreshed': refreshed})
