"""
Appointment Routes Blueprint

Appointments are the calendar view; edits and status changes carry over to
the matching quotes and jobs for the same customer and day.
"""

from flask import Blueprint, jsonify
import logging

from auth import admin_required
from app.utils import check, get_json_body, get_services, pick_fields, result_response
from validators import (
    APPOINTMENT_STATUSES,
    validate_appointment_request,
    validate_choice,
    validate_required_fields,
)

logger = logging.getLogger(__name__)

appointments_bp = Blueprint('appointments_bp', __name__, url_prefix='/api/appointments')

APPOINTMENT_FIELDS = ('customerId', 'customerName', 'services', 'date', 'time', 'address',
                      'notes', 'assignedEmployee')


@appointments_bp.route('', methods=['GET'])
@admin_required
def list_appointments():
    appointments = get_services().workflow.list_appointments()
    return jsonify({'success': True, 'appointments': appointments, 'count': len(appointments)})


@appointments_bp.route('', methods=['POST'])
@admin_required
def create_appointment():
    data = get_json_body()
    check(validate_appointment_request(data))
    fields = pick_fields(data, APPOINTMENT_FIELDS + ('status',))
    return result_response(get_services().workflow.create_appointment(**fields), 201)


@appointments_bp.route('/<appointment_id>', methods=['PUT'])
@admin_required
def update_appointment(appointment_id):
    data = get_json_body()
    check(validate_appointment_request(data, partial=True))
    changes = pick_fields(data, APPOINTMENT_FIELDS)
    return result_response(get_services().workflow.edit_appointment(appointment_id, **changes))


@appointments_bp.route('/<appointment_id>/status', methods=['POST'])
@admin_required
def set_appointment_status(appointment_id):
    data = get_json_body()
    check(validate_required_fields(data, ['status']))
    check(validate_choice(data['status'], APPOINTMENT_STATUSES))
    return result_response(
        get_services().workflow.set_appointment_status(appointment_id, data['status'])
    )


@appointments_bp.route('/<appointment_id>', methods=['DELETE'])
@admin_required
def delete_appointment(appointment_id):
    """Delete the appointment and cancel the unfinished jobs booked that day"""
    return result_response(get_services().workflow.delete_appointment(appointment_id))
