"""
Accounting client - how the office reaches the QuickBooks bridge.

With ACCOUNTING_BRIDGE_URL set the bridge is called over HTTP; otherwise the
in-process QuickBooksBridge is used directly. Either way a failure surfaces
as AccountingSyncError carrying the bridge's troubleshooting hint.
"""

import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class AccountingSyncError(Exception):
    """The bridge refused or failed to sync an invoice"""
    def __init__(self, message: str, troubleshooting: Optional[str] = None,
                 details: Optional[str] = None, status: Optional[int] = None):
        self.message = message
        self.troubleshooting = troubleshooting
        self.details = details
        self.status = status
        super().__init__(message)


def _raise_for_body(body: Dict[str, Any], status: int):
    if status >= 400 or not body.get('success'):
        raise AccountingSyncError(
            body.get('error') or f"Accounting bridge returned {status}",
            troubleshooting=body.get('troubleshooting'),
            details=body.get('details'),
            status=body.get('status') or status,
        )


def _api_root(base_url: str) -> str:
    """Bridge routes live under /api; accept the site root or the /api root"""
    base = base_url.rstrip('/')
    return base if base.endswith('/api') else f"{base}/api"


class AccountingClient:

    def __init__(self, bridge=None, base_url: Optional[str] = None, timeout: int = DEFAULT_TIMEOUT,
                 api_key: Optional[str] = None):
        if bridge is None and not base_url:
            raise ValueError("AccountingClient needs a bridge or a base_url")
        self.bridge = bridge
        self.base_url = _api_root(base_url) if base_url else None
        self.timeout = timeout
        self.headers = {'X-API-Key': api_key} if api_key else {}

    def sync_invoice(self, invoice: Dict[str, Any]) -> Dict[str, Any]:
        """
        Sync one invoice.

        Returns:
            Bridge response with quickbooksInvoiceId, message, mockMode and warning

        Raises:
            AccountingSyncError: On any bridge or transport failure
        """
        if self.base_url:
            return self._sync_remote(invoice)

        body, status = self.bridge.sync_invoice(invoice)
        _raise_for_body(body, status)
        return body

    def _sync_remote(self, invoice: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/quickbooks/sync-invoice"
        try:
            response = requests.post(url, json={'invoice': invoice}, headers=self.headers,
                                     timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Accounting bridge unreachable at {url}: {e}")
            raise AccountingSyncError(
                f"Failed to reach accounting bridge: {e}",
                troubleshooting='Check that ACCOUNTING_BRIDGE_URL is correct and the bridge is running',
            ) from e

        try:
            body = response.json()
        except ValueError:
            body = {'error': f"Accounting bridge returned {response.status_code}", 'details': response.text}

        _raise_for_body(body, response.status_code)
        return body

    def get_sync_status(self, invoice_id: str) -> Dict[str, Any]:
        if not self.base_url:
            return self.bridge.get_sync_status(invoice_id)

        url = f"{self.base_url}/quickbooks/invoice/{invoice_id}"
        try:
            response = requests.get(url, headers=self.headers, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise AccountingSyncError(f"Failed to read sync status: {e}") from e
