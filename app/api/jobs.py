"""
Job Routes Blueprint

Job edits, status changes and before/after photos. Status changes run
through the workflow service so the source quote and its invoices follow.
"""

from flask import Blueprint, current_app, jsonify, request, send_from_directory
from werkzeug.utils import secure_filename
import logging
import os
import time

import auth
from auth import admin_required, login_required
from app.utils import check, get_json_body, get_services, pick_fields, result_response
from validators import (
    JOB_STATUSES,
    PHOTO_TYPES,
    ValidationError,
    validate_choice,
    validate_image_upload,
    validate_job_request,
    validate_required_fields,
)

logger = logging.getLogger(__name__)

jobs_bp = Blueprint('jobs_bp', __name__, url_prefix='/api/jobs')

JOB_FIELDS = ('customerName', 'service', 'address', 'scheduledDate', 'scheduledTime',
              'assignedCrew', 'notes')
CREATE_FIELDS = JOB_FIELDS + ('status', 'quoteId')

PHOTO_URL_PREFIX = '/api/jobs/photos/'


def _photo_folder(job_id):
    return os.path.join(current_app.config['UPLOAD_FOLDER'], 'jobs', secure_filename(job_id))


def _can_touch_job(job):
    return auth.is_admin() or auth.current_crew_member() == job.get('assignedCrew')


@jobs_bp.route('', methods=['GET'])
@login_required
def list_jobs():
    """All jobs for the office; a crew session only gets its own"""
    crew_member_name = None if auth.is_admin() else auth.current_crew_member()
    jobs = get_services().workflow.list_jobs(crew_member_name)
    return jsonify({'success': True, 'jobs': jobs, 'count': len(jobs)})


@jobs_bp.route('', methods=['POST'])
@admin_required
def create_job():
    data = get_json_body()
    check(validate_job_request(data))
    fields = pick_fields(data, CREATE_FIELDS)
    return result_response(get_services().workflow.create_job(**fields), 201)


@jobs_bp.route('/<job_id>', methods=['PUT'])
@admin_required
def update_job(job_id):
    """Edit job fields; crew changes notify the crew members involved"""
    data = get_json_body()
    check(validate_job_request(data, partial=True))
    changes = pick_fields(data, JOB_FIELDS)
    return result_response(get_services().workflow.edit_job(job_id, **changes))


@jobs_bp.route('/<job_id>/status', methods=['POST'])
@login_required
def set_job_status(job_id):
    data = get_json_body()
    check(validate_required_fields(data, ['status']))
    check(validate_choice(data['status'], JOB_STATUSES))

    workflow = get_services().workflow
    job = workflow.get_job(job_id)
    if job is None:
        return jsonify({'success': False, 'error': f"Job not found: {job_id}"}), 404
    if not _can_touch_job(job):
        return jsonify({'success': False, 'error': 'Access denied'}), 403

    return result_response(workflow.set_job_status(job_id, data['status']))


@jobs_bp.route('/<job_id>', methods=['DELETE'])
@admin_required
def delete_job(job_id):
    """Delete a job and tombstone it so resync does not bring it back"""
    return result_response(get_services().workflow.delete_job(job_id))


# ============================================================================
# PHOTOS
# ============================================================================

@jobs_bp.route('/<job_id>/photos', methods=['POST'])
@login_required
def upload_job_photo(job_id):
    """
    Attach a before/after photo.

    Multipart form: photo=<file>, type=before|after
    """
    photo_type = request.form.get('type', '')
    check(validate_choice(photo_type, PHOTO_TYPES, field='type'))

    workflow = get_services().workflow
    job = workflow.get_job(job_id)
    if job is None:
        return jsonify({'success': False, 'error': f"Job not found: {job_id}"}), 404
    if not _can_touch_job(job):
        return jsonify({'success': False, 'error': 'Access denied'}), 403

    file = request.files.get('photo')
    is_valid, error, safe_name = validate_image_upload(file)
    if not is_valid:
        raise ValidationError(error, 'photo')

    folder = _photo_folder(job_id)
    os.makedirs(folder, exist_ok=True)
    filename = f"{photo_type}_{int(time.time() * 1000)}_{safe_name}"
    file.save(os.path.join(folder, filename))
    logger.info(f"📷 Saved {photo_type} photo for job {job_id}: {filename}")

    url = f"{PHOTO_URL_PREFIX}{secure_filename(job_id)}/{filename}"
    return result_response(workflow.add_job_photo(job_id, url, photo_type), 201)


@jobs_bp.route('/photos/<job_id>/<filename>', methods=['GET'])
@login_required
def get_job_photo(job_id, filename):
    return send_from_directory(os.path.abspath(_photo_folder(job_id)), secure_filename(filename))


@jobs_bp.route('/<job_id>/photos/<photo_id>', methods=['DELETE'])
@admin_required
def delete_job_photo(job_id, photo_id):
    workflow = get_services().workflow
    job = workflow.get_job(job_id)
    photo = next((p for p in (job or {}).get('photos', []) if p['id'] == photo_id), None)

    result = workflow.remove_job_photo(job_id, photo_id)
    if result.get('success') and photo and photo['url'].startswith(PHOTO_URL_PREFIX):
        path = os.path.join(_photo_folder(job_id), os.path.basename(photo['url']))
        try:
            os.remove(path)
        except FileNotFoundError:
            logger.warning(f"Photo file already gone: {path}")
    return result_response(result)
