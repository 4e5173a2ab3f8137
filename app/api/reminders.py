"""
Yearly Reminder Routes Blueprint
"""

from flask import Blueprint, jsonify
import logging

from auth import admin_required
from app.utils import get_services, result_response

logger = logging.getLogger(__name__)

reminders_bp = Blueprint('reminders_bp', __name__, url_prefix='/api/reminders')


@reminders_bp.route('/yearly', methods=['GET'])
@admin_required
def get_yearly_reminders():
    reminders = get_services().reminders.get_yearly_reminders()
    return jsonify({'success': True, 'reminders': reminders, 'count': len(reminders)})


@reminders_bp.route('/yearly/<job_id>/dismiss', methods=['POST'])
@admin_required
def dismiss_yearly_reminder(job_id):
    return result_response(get_services().reminders.dismiss(job_id))


@reminders_bp.route('/yearly/<job_id>/sent', methods=['POST'])
@admin_required
def mark_yearly_reminder_sent(job_id):
    return result_response(get_services().reminders.mark_sent(job_id))
