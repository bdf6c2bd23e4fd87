from flask import request

from ..errors import InvalidInput


def json_body():
    """Request JSON as a dict; anything else is rejected as InvalidInput."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidInput("request body must be a JSON object")
    return data
