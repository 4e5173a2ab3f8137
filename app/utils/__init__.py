"""
Utilities Package

Shared helper functions used across the API blueprints.
"""

from app.utils.helpers import (
    get_services,
    get_json_body,
    check,
    pick_fields,
    result_response,
)

__all__ = [
    'get_services',
    'get_json_body',
    'check',
    'pick_fields',
    'result_response',
]
