"""
QuickBooks Bridge Routes Blueprint

The bridge endpoints the accounting client calls when it runs against a
remote bridge (ACCOUNTING_BRIDGE_URL). Protected by X-API-Key when
BRIDGE_API_KEY is configured.
"""

from flask import Blueprint, jsonify, request
import logging

from app.utils import get_services
from security import require_api_key

logger = logging.getLogger(__name__)

quickbooks_bp = Blueprint('quickbooks_bp', __name__, url_prefix='/api/quickbooks')


@quickbooks_bp.route('/sync-invoice', methods=['POST'])
@require_api_key
def sync_invoice():
    """
    Create the invoice in QuickBooks (or record a demo sync).

    Body: {"invoice": {...}}
    """
    data = request.get_json(silent=True) or {}
    body, status = get_services().bridge.sync_invoice(data.get('invoice'))
    return jsonify(body), status


@quickbooks_bp.route('/invoice/<invoice_id>', methods=['GET'])
@require_api_key
def get_invoice_sync_status(invoice_id):
    return jsonify(get_services().bridge.get_sync_status(invoice_id))
