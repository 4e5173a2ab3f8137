"""
Scheduler Routes Blueprint

Handles the background poller:
- /api/scheduler/status: Get scheduler status
- /api/scheduler/run/<job_id>: Manually trigger a job
"""

import logging
from flask import Blueprint, jsonify

from auth import admin_required
from app.utils import get_services

logger = logging.getLogger(__name__)

# Create blueprint
scheduler_bp = Blueprint('scheduler_bp', __name__)


# ============================================================================
# SCHEDULER API
# ============================================================================

@scheduler_bp.route('/api/scheduler/status', methods=['GET'])
@admin_required
def get_scheduler_status():
    """Get the status of background jobs."""
    scheduler = get_services().scheduler
    if scheduler is None:
        return jsonify({'success': True, 'running': False, 'jobs': {}})

    return jsonify({
        'success': True,
        'running': scheduler.running,
        'jobs': scheduler.get_job_status()
    })


@scheduler_bp.route('/api/scheduler/run/<job_id>', methods=['POST'])
@admin_required
def run_scheduler_job(job_id):
    """Manually trigger a scheduled job."""
    scheduler = get_services().scheduler
    if scheduler is not None and scheduler.run_job_now(job_id):
        return jsonify({'success': True, 'message': f'Job {job_id} executed'})
    return jsonify({'success': False, 'error': 'Job not found'}), 404
