# routes/__init__.py
# Shared helpers for the JSON blueprints

from flask import jsonify, request

from errors import InvalidInputError


def api_response(data=None, message=None, status=200):
    body = {'success': True}
    if message:
        body['message'] = message
    if data is not None:
        body['data'] = data
    return jsonify(body), status


def json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidInputError('Request body must be a JSON object')
    return data


def require_fields(data, *fields):
    missing = [f for f in fields if data.get(f) in (None, '')]
    if missing:
        raise InvalidInputError(f'Missing required fields: {", ".join(missing)}')


def page_args(default_limit):
    page = request.args.get('page', 1, type=int)
    limit = request.args.get('limit', default_limit, type=int)
    return max(page, 1), max(min(limit, 100), 1)
