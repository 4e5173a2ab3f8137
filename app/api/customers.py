"""
Customer Routes Blueprint

Customer records, per-customer activity summary, and the customer archive.
"""

from flask import Blueprint, jsonify
import logging

from auth import admin_required
from app.utils import check, get_json_body, get_services, result_response
from validators import sanitize_string, validate_customer_request

logger = logging.getLogger(__name__)

customers_bp = Blueprint('customers_bp', __name__, url_prefix='/api/customers')

CUSTOMER_FIELDS = ('name', 'email', 'phone', 'address', 'status')
ARCHIVE_KIND = 'customer'


def _clean(data):
    return {
        key: sanitize_string(value, 500) if isinstance(value, str) else value
        for key, value in data.items() if key in CUSTOMER_FIELDS
    }


@customers_bp.route('', methods=['GET'])
@admin_required
def list_customers():
    customers = get_services().workflow.list_customers()
    return jsonify({'success': True, 'customers': customers, 'count': len(customers)})


@customers_bp.route('', methods=['POST'])
@admin_required
def create_customer():
    data = get_json_body()
    check(validate_customer_request(data))
    return result_response(get_services().workflow.create_customer(_clean(data)), 201)


@customers_bp.route('/<customer_id>', methods=['GET'])
@admin_required
def get_customer(customer_id):
    customer = get_services().workflow.get_customer(customer_id)
    if customer is None:
        return jsonify({'success': False, 'error': f"Customer not found: {customer_id}"}), 404
    return jsonify({'success': True, 'customer': customer})


@customers_bp.route('/<customer_id>', methods=['PUT'])
@admin_required
def update_customer(customer_id):
    data = get_json_body()
    check(validate_customer_request(data, partial=True))
    return result_response(get_services().workflow.update_customer(customer_id, _clean(data)))


@customers_bp.route('/<customer_id>/summary', methods=['GET'])
@admin_required
def customer_summary(customer_id):
    """Quote/job/invoice activity recomputed by customer name"""
    return result_response(get_services().workflow.customer_summary(customer_id))


# ============================================================================
# ARCHIVE
# ============================================================================

@customers_bp.route('/<customer_id>/archive', methods=['POST'])
@admin_required
def archive_customer(customer_id):
    return result_response(get_services().archive.archive(ARCHIVE_KIND, customer_id))


@customers_bp.route('/archived', methods=['GET'])
@admin_required
def list_archived_customers():
    customers = get_services().archive.list_archived(ARCHIVE_KIND)
    return jsonify({'success': True, 'customers': customers, 'count': len(customers)})


@customers_bp.route('/archived/<customer_id>/restore', methods=['POST'])
@admin_required
def restore_customer(customer_id):
    return result_response(get_services().archive.restore(ARCHIVE_KIND, customer_id))


@customers_bp.route('/archived/<customer_id>', methods=['DELETE'])
@admin_required
def delete_archived_customer(customer_id):
    """Erase from the archive; quotes, jobs and invoices keep the name"""
    return result_response(get_services().archive.permanently_delete(ARCHIVE_KIND, customer_id))
