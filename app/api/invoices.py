"""
Invoice Routes Blueprint

Invoice status changes (paid/void cascade back to the quote and job) and
QuickBooks sync through the accounting client.
"""

from flask import Blueprint, jsonify
import logging

from auth import admin_required
from app.utils import check, get_json_body, get_services, result_response
from services.accounting_client import AccountingSyncError
from validators import validate_invoice_status_request

logger = logging.getLogger(__name__)

invoices_bp = Blueprint('invoices_bp', __name__, url_prefix='/api/invoices')


@invoices_bp.route('', methods=['GET'])
@admin_required
def list_invoices():
    invoices = get_services().workflow.list_invoices()
    return jsonify({'success': True, 'invoices': invoices, 'count': len(invoices)})


@invoices_bp.route('/<invoice_id>/status', methods=['POST'])
@admin_required
def set_invoice_status(invoice_id):
    data = get_json_body()
    check(validate_invoice_status_request(data))
    return result_response(get_services().workflow.set_invoice_status(invoice_id, data['status']))


@invoices_bp.route('/<invoice_id>', methods=['DELETE'])
@admin_required
def delete_invoice(invoice_id):
    return result_response(get_services().workflow.delete_invoice(invoice_id))


@invoices_bp.route('/<invoice_id>/sync', methods=['POST'])
@admin_required
def sync_invoice(invoice_id):
    """Send the invoice to QuickBooks; the invoice is only flagged synced on success"""
    services = get_services()
    result = services.workflow.sync_invoice_to_accounting(invoice_id, services.accounting)
    if not result.get('success') and result.get('status'):
        return jsonify(result), 502
    return result_response(result)


@invoices_bp.route('/<invoice_id>/sync-status', methods=['GET'])
@admin_required
def get_sync_status(invoice_id):
    try:
        status = get_services().accounting.get_sync_status(invoice_id)
    except AccountingSyncError as e:
        logger.warning(f"Sync status unavailable for {invoice_id}: {e.message}")
        return jsonify({'success': False, 'error': e.message}), 502
    return jsonify({'success': True, **status})
