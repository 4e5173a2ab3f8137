"""
Quote Routes Blueprint

Quote edits and status changes run through the workflow service, which
keeps the linked job and invoices in step.
"""

from flask import Blueprint, jsonify
import logging

from auth import admin_required
from app.utils import check, get_json_body, get_services, pick_fields, result_response
from validators import (
    QUOTE_STATUSES,
    validate_choice,
    validate_quote_request,
    validate_required_fields,
)

logger = logging.getLogger(__name__)

quotes_bp = Blueprint('quotes_bp', __name__, url_prefix='/api/quotes')

QUOTE_FIELDS = ('customerName', 'services', 'amount', 'date', 'notes', 'time', 'assignedCrew')


@quotes_bp.route('', methods=['GET'])
@admin_required
def list_quotes():
    quotes = get_services().workflow.list_quotes()
    return jsonify({'success': True, 'quotes': quotes, 'count': len(quotes)})


@quotes_bp.route('', methods=['POST'])
@admin_required
def create_quote():
    """
    Create a pending quote.

    Body: {"customerName", "services": [...], "amount", "date", "time", "notes", "assignedCrew"}
    """
    data = get_json_body()
    check(validate_quote_request(data))
    fields = pick_fields(data, QUOTE_FIELDS)
    return result_response(get_services().workflow.create_quote(**fields), 201)


@quotes_bp.route('/<quote_id>', methods=['PUT'])
@admin_required
def update_quote(quote_id):
    """Edit quote fields; an approved quote pushes the changes to its job"""
    data = get_json_body()
    check(validate_quote_request(data, partial=True))
    changes = pick_fields(data, QUOTE_FIELDS)
    return result_response(get_services().workflow.edit_quote(quote_id, **changes))


@quotes_bp.route('/<quote_id>/status', methods=['POST'])
@admin_required
def set_quote_status(quote_id):
    data = get_json_body()
    check(validate_required_fields(data, ['status']))
    check(validate_choice(data['status'], QUOTE_STATUSES))
    return result_response(get_services().workflow.set_quote_status(quote_id, data['status']))


@quotes_bp.route('/<quote_id>/approve', methods=['POST'])
@admin_required
def approve_quote(quote_id):
    """Shortcut for status 'approved'"""
    return result_response(get_services().workflow.approve_quote(quote_id))


@quotes_bp.route('/<quote_id>', methods=['DELETE'])
@admin_required
def delete_quote(quote_id):
    return result_response(get_services().workflow.delete_quote(quote_id))
