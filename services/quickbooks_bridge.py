"""
QuickBooks Bridge - pushes invoices to QuickBooks Online.

Without credentials (or with credentials that are obviously not real) the
bridge runs in demo mode and hands out QB-<invoiceId>-<millis> ids so the
office workflow can be exercised end to end. Every successful sync, demo or
real, is recorded in the store under `quickbooks-invoice-syncs`.
"""

import json
import logging
import time
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple

import requests
from requests_oauthlib import OAuth2Session

from services.collection_store import CollectionStore, StoreUnavailableError

logger = logging.getLogger(__name__)

SYNC_COLLECTION = 'quickbooks-invoice-syncs'

DEFAULT_API_BASE = 'https://sandbox-quickbooks.api.intuit.com'
DEFAULT_MINOR_VERSION = '65'
MIN_REALM_ID_LENGTH = 5
MIN_ACCESS_TOKEN_LENGTH = 50

TROUBLESHOOTING = "Check: 1) Access token is valid, 2) Realm ID is correct, 3) QuickBooks company is properly set up"

STATUS_MESSAGES = {
    401: "QuickBooks authentication failed. Your access token may be expired. Please refresh your token.",
    403: "QuickBooks authorization failed. Please check your credentials and permissions.",
    502: "QuickBooks API is temporarily unavailable. This might also indicate incorrect credentials or API endpoint.",
    503: "QuickBooks API is temporarily unavailable. This might also indicate incorrect credentials or API endpoint.",
}


def build_invoice_payload(invoice: Dict[str, Any], today: Optional[date] = None) -> Dict[str, Any]:
    """QuickBooks invoice body for one stored invoice"""
    today = today or date.today()
    amount = invoice.get('amount', 0)
    due_date = datetime.fromisoformat(str(invoice['dueDate']).replace('Z', '+00:00')).date()

    return {
        'Line': [
            {
                'Amount': amount,
                'DetailType': 'SalesItemLineDetail',
                'Description': invoice.get('service') or 'Power Washing Service',
                'SalesItemLineDetail': {
                    'Qty': 1,
                    'UnitPrice': amount,
                    'ItemRef': {'name': 'Services', 'value': '1'},
                },
            }
        ],
        'CustomerRef': {'name': invoice.get('customerName'), 'value': '1'},
        'TxnDate': today.isoformat(),
        'DueDate': due_date.isoformat(),
        'DocNumber': invoice.get('id'),
    }


def explain_error(status: int, response_text: str) -> str:
    """Human readable message for a failed QuickBooks call"""
    message = f"QuickBooks API returned {status}"
    try:
        fault = json.loads(response_text).get('Fault')
    except (ValueError, AttributeError):
        logger.error(f"Could not parse QuickBooks error response: {response_text}")
        fault = None
    if fault:
        errors = fault.get('Error') or [{}]
        message = errors[0].get('Message') or message
        logger.error(f"QuickBooks API Fault: {fault}")

    if status == 400:
        return (f"QuickBooks API error: {message}. Check that your QuickBooks company "
                "has the required setup (customer, items, etc.)")
    return STATUS_MESSAGES.get(status, message)


class QuickBooksBridge:
    """Sync endpoint logic shared by the HTTP route and the in-process client"""

    def __init__(self, store: CollectionStore, config=None, session_factory=None):
        config = config or {}
        self.store = store
        self.client_id = config.get('QUICKBOOKS_CLIENT_ID')
        self.access_token = config.get('QUICKBOOKS_ACCESS_TOKEN')
        self.realm_id = config.get('QUICKBOOKS_REALM_ID')
        self.api_base = (config.get('QUICKBOOKS_API_BASE') or DEFAULT_API_BASE).rstrip('/')
        self.minor_version = config.get('QUICKBOOKS_MINOR_VERSION') or DEFAULT_MINOR_VERSION
        self.timeout = config.get('ACCOUNTING_TIMEOUT', 30)
        self._session_factory = session_factory or self._oauth_session

    def _oauth_session(self) -> OAuth2Session:
        return OAuth2Session(
            client_id=self.client_id,
            token={'access_token': self.access_token, 'token_type': 'Bearer'},
        )

    @property
    def invoice_url(self) -> str:
        return f"{self.api_base}/v3/company/{self.realm_id}/invoice?minorversion={self.minor_version}"

    def credentials_configured(self) -> bool:
        return bool(self.client_id and self.access_token and self.realm_id)

    def credentials_look_valid(self) -> bool:
        return len(self.realm_id or '') >= MIN_REALM_ID_LENGTH and \
            len(self.access_token or '') >= MIN_ACCESS_TOKEN_LENGTH

    # =========================================================================
    # SYNC RECORDS
    # =========================================================================

    def _record_sync(self, invoice_id: str, quickbooks_id: Optional[str], mock_mode: bool,
                     reason: Optional[str] = None):
        record = {
            'id': invoice_id,
            'invoiceId': invoice_id,
            'quickbooksId': quickbooks_id,
            'syncedAt': datetime.now().isoformat(),
            'mockMode': mock_mode,
        }
        if reason:
            record['reason'] = reason
        records = [r for r in self.store.read(SYNC_COLLECTION) if r.get('invoiceId') != invoice_id]
        self.store.write(SYNC_COLLECTION, [*records, record])

    def get_sync_status(self, invoice_id: str) -> Dict[str, Any]:
        record = next(
            (r for r in self.store.read(SYNC_COLLECTION) if r.get('invoiceId') == invoice_id),
            None,
        )
        if record is None:
            return {'synced': False, 'message': 'Invoice not synced to QuickBooks'}
        return {
            'synced': True,
            'quickbooksId': record.get('quickbooksId'),
            'syncedAt': record.get('syncedAt'),
        }

    # =========================================================================
    # SYNC
    # =========================================================================

    def _demo_sync(self, invoice_id: str, reason: Optional[str] = None) -> str:
        quickbooks_id = f"QB-{invoice_id}-{int(time.time() * 1000)}"
        self._record_sync(invoice_id, quickbooks_id, mock_mode=True, reason=reason)
        return quickbooks_id

    def sync_invoice(self, invoice: Optional[Dict[str, Any]]) -> Tuple[Dict[str, Any], int]:
        """
        Push one invoice to QuickBooks.

        Args:
            invoice: Stored invoice record (camelCase keys)

        Returns:
            Tuple of (response body, HTTP status)
        """
        if not invoice:
            logger.error("No invoice data provided in request")
            return {'error': 'Invoice data is required'}, 400

        invoice_id = invoice.get('id')
        logger.info(f"Starting QuickBooks sync for invoice: {invoice_id}")

        try:
            if not self.credentials_configured():
                logger.warning("QuickBooks credentials not configured - using demo mode")
                quickbooks_id = self._demo_sync(invoice_id)
                return {
                    'success': True,
                    'quickbooksInvoiceId': quickbooks_id,
                    'message': f"Invoice {invoice_id} synced in DEMO mode (QuickBooks credentials not configured)",
                    'mockMode': True,
                }, 200

            if not self.credentials_look_valid():
                logger.warning(
                    f"QuickBooks credentials appear invalid - using demo mode "
                    f"(realm id length {len(self.realm_id)}, token length {len(self.access_token)})"
                )
                quickbooks_id = self._demo_sync(invoice_id, reason='Invalid credentials format')
                return {
                    'success': True,
                    'quickbooksInvoiceId': quickbooks_id,
                    'message': f"Invoice {invoice_id} synced in DEMO mode (invalid credentials - using demo mode)",
                    'mockMode': True,
                    'warning': 'QuickBooks credentials appear invalid. Using demo mode for testing.',
                }, 200

            payload = build_invoice_payload(invoice)
            logger.debug(f"Sending invoice to QuickBooks: {json.dumps(payload)}")

            session = self._session_factory()
            response = session.post(
                self.invoice_url,
                json=payload,
                headers={'Accept': 'application/json'},
                timeout=self.timeout,
            )
            logger.info(f"QuickBooks API response status: {response.status_code}")

            if not response.ok:
                message = explain_error(response.status_code, response.text)
                logger.error(f"QuickBooks API error ({response.status_code}): {message}")
                return {
                    'error': message,
                    'details': response.text,
                    'status': response.status_code,
                    'troubleshooting': TROUBLESHOOTING,
                }, response.status_code

            quickbooks_id = (response.json().get('Invoice') or {}).get('Id')
            self._record_sync(invoice_id, quickbooks_id, mock_mode=False)

        except (requests.RequestException, StoreUnavailableError, ValueError, KeyError) as e:
            logger.error(f"Error syncing invoice to QuickBooks: {e}", exc_info=True)
            return {
                'error': f"Failed to sync invoice to QuickBooks: {e}",
                'details': repr(e),
                'troubleshooting': 'Check server logs for detailed error information',
            }, 500

        logger.info(f"Successfully synced invoice to QuickBooks: {quickbooks_id}")
        return {
            'success': True,
            'quickbooksInvoiceId': quickbooks_id,
            'message': f"Invoice {invoice_id} successfully synced to QuickBooks",
            'mockMode': False,
        }, 200
