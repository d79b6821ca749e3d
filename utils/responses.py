"""
JSON response helpers for the Campus Portal API
"""

from datetime import date

from flask import jsonify, request

from utils.db_helpers import pagination_meta
from utils.errors import ValidationError

def success_response(data=None, message=None, status=200, pagination=None, **extra):
    """Build the standard success envelope"""
    body = {'success': True, 'data': data}
    if message:
        body['message'] = message
    if pagination is not None:
        body['pagination'] = pagination_meta(pagination)
    body.update(extra)
    return jsonify(body), status

def error_response(message, status=400, details=None):
    """Build the standard error envelope"""
    body = {'success': False, 'error': message}
    if details:
        body['details'] = details
    return jsonify(body), status

def get_json_body():
    """Request body as a dict; malformed or non-object bodies are rejected"""
    payload = request.get_json(silent=True)
    if payload is None:
        raise ValidationError("Request body must be valid JSON")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload

def arg_bool(name):
    """Optional boolean query argument ('true'/'false'); None when absent"""
    value = request.args.get(name)
    if value is None or value == '':
        return None
    return value.strip().lower() in ('true', '1', 'yes')

def arg_date(name, label=None):
    """Optional YYYY-MM-DD query argument as a date; None when absent"""
    value = request.args.get(name)
    if value is None or value.strip() == '':
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValidationError("Validation failed", details={
            name: f"{label or name.replace('_', ' ').capitalize()} must be a date in YYYY-MM-DD format",
        })
