"""
Helper utility functions shared by the API blueprints.
"""

import re

from flask import current_app, jsonify, request

from validators import ValidationError

_CAMEL_BOUNDARY = re.compile(r'(?<!^)(?=[A-Z])')


def get_services():
    """Service container built by app_init.create_app"""
    return current_app.config['SERVICES']


def get_json_body():
    """
    Parsed JSON object body of the current request.

    Raises:
        ValidationError: If the body is missing or not a JSON object
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def check(result):
    """
    Raise ValidationError for a failed (is_valid, error) validator tuple.

    Args:
        result: Tuple returned by a validators.validate_* function
    """
    is_valid, error = result
    if not is_valid:
        raise ValidationError(error)


def to_snake(name):
    return _CAMEL_BOUNDARY.sub('_', name).lower()


def pick_fields(data, fields):
    """
    camelCase request keys mapped to snake_case keyword arguments.

    Args:
        data: Request body
        fields: camelCase keys to keep

    Returns:
        Dict of snake_case keyword arguments for the keys present in data
    """
    return {to_snake(key): data[key] for key in fields if key in data}


def result_response(result, success_status=200):
    """
    Turn a service result dict into a JSON response.

    not_found -> 404, unavailable store -> 503, other failures -> 400
    """
    if result.get('success'):
        return jsonify(result), success_status
    if result.get('not_found'):
        return jsonify(result), 404
    if result.get('unavailable'):
        return jsonify(result), 503
    return jsonify(result), 400
